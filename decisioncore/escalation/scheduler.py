"""
Escalation Scheduler — derive a card's current owner and level from time.

Levels:
1. initial owner, from the clock anchor
2. escalate_to_role once elapsed >= escalation_threshold_hours
3. final_escalate_to_role once elapsed >= final_escalation_hours (final)

The clock anchor is ``reactivated_at`` when set, else ``created_at``.
``max_level`` caps the ladder: below 3 the upper rungs are cut off, above 3
the extra levels are reachable only by manual escalation.

A manual escalation sets ``owner_overridden`` and stores a level above the
natural one. The stored owner holds while it stays above the natural level;
once the clock catches up to that level the rule owner takes over again.

Pure: the same card, rules and ``now`` always give the same path.
"""

from datetime import datetime, timezone
from typing import Iterable, Optional

import structlog

from decisioncore.decisions.schemas import DecisionCard
from decisioncore.escalation.schemas import EscalationPath, EscalationRule
from decisioncore.exceptions import InvalidConfigurationError

logger = structlog.get_logger(__name__)

MAX_LEVEL: int = 3
RULE_LEVELS: int = 3      # initial, escalate_to, final_escalate_to


def _hours_between(start: datetime, end: datetime) -> float:
    return max(0.0, (end - start).total_seconds() / 3600.0)


class EscalationScheduler:

    def __init__(self, max_level: int = MAX_LEVEL):
        if max_level < 1:
            raise InvalidConfigurationError(
                f"max_escalation_level must be at least 1, got {max_level}",
                config_key="max_escalation_level",
            )
        self.max_level = max_level

    @classmethod
    def from_settings(cls, settings) -> "EscalationScheduler":
        return cls(max_level=settings.max_escalation_level)

    @property
    def top_natural_level(self) -> int:
        """Highest level reached by elapsed time alone."""
        return min(RULE_LEVELS, self.max_level)

    @staticmethod
    def select_rule(
        card: DecisionCard, rules: Iterable[EscalationRule]
    ) -> Optional[EscalationRule]:
        """First active rule for the card's tenant, ordered by (priority, id)."""
        candidates = [
            r for r in rules
            if r.is_active
            and r.tenant_id == card.tenant_id
            and (r.card_priority is None or r.card_priority == card.priority)
        ]
        if not candidates:
            return None
        return min(candidates, key=lambda r: (r.priority, r.id))

    def natural_level(self, rule: EscalationRule, elapsed_hours: float) -> int:
        if elapsed_hours >= rule.final_escalation_hours:
            level = 3
        elif elapsed_hours >= rule.escalation_threshold_hours:
            level = 2
        else:
            level = 1
        return min(level, self.top_natural_level)

    def compute_path(
        self,
        card: DecisionCard,
        rules: Iterable[EscalationRule],
        now: Optional[datetime] = None,
    ) -> EscalationPath:
        """
        Compute the escalation path for a card. Never raises.

        Without a matching rule the stored owner and level are returned as is,
        with ``is_final`` derived from ``max_level``.
        """
        now = now or datetime.now(timezone.utc)
        rule = self.select_rule(card, rules)

        if card.is_terminal:
            # Frozen at the moment the card was resolved
            return EscalationPath(
                current_level=card.escalation_level,
                current_owner_role=card.owner_role,
                is_final=card.escalation_level >= self.max_level,
                is_overridden=card.owner_overridden,
                elapsed_hours=round(_hours_between(card.clock_anchor, card.updated_at), 4),
                rule_id=rule.id if rule else None,
            )

        elapsed = _hours_between(card.clock_anchor, now)

        if rule is None:
            logger.debug(
                "escalation_rule_missing",
                tenant_id=card.tenant_id,
                card_id=card.id,
            )
            return EscalationPath(
                current_level=card.escalation_level,
                current_owner_role=card.owner_role,
                is_final=card.escalation_level >= self.max_level,
                is_overridden=card.owner_overridden,
                elapsed_hours=round(elapsed, 4),
            )

        natural = self.natural_level(rule, elapsed)
        overridden = card.owner_overridden and card.escalation_level > natural
        if overridden:
            level = min(card.escalation_level, self.max_level)
            owner = card.owner_role
        else:
            level = natural
            owner = rule.role_for_level(natural)

        # No time-driven step left above this level
        is_final = level >= self.top_natural_level
        next_role = None
        time_until = None
        if not is_final:
            next_role = rule.role_for_level(level + 1)
            time_until = round(rule.threshold_for_level(level + 1) - elapsed, 4)

        return EscalationPath(
            current_level=level,
            current_owner_role=owner,
            next_escalation_role=next_role,
            time_until_escalation_hours=time_until,
            is_final=is_final,
            is_warning=elapsed >= rule.warning_threshold_hours and not is_final,
            is_overridden=overridden,
            elapsed_hours=round(elapsed, 4),
            rule_id=rule.id,
        )
