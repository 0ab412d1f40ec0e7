"""
Signal Aggregator — merge signals per subject into a ranked, capped queue.

Pipeline:
1. Group signals by subject_id (first appearance fixes group order)
2. Sum money per component: cash_lock → cash_locked, lost_revenue → lost_revenue,
   margin_leak → margin_leak. markdown_risk / size_break carry no money; they
   override the dominant category and supply the group's ETA (minimum wins)
3. Dominant category: markdown_risk > size_break > largest component
   (ties: cash_locked > lost_revenue > margin_leak)
4. total_damage = sum of components; groups with total_damage <= 0 are dropped
5. Urgency from ETA and total_damage
6. Stable sort by total_damage descending, cap at max_items, rank = index + 1

Rebuilt from scratch on every pass; nothing is mutated incrementally.
"""

import math
from dataclasses import dataclass, field
from typing import Iterable, Optional

import structlog

from decisioncore.signals.schemas import (
    CATEGORY_FOR_COMPONENT,
    COMPONENT_FOR_CATEGORY,
    COMPONENT_PRECEDENCE,
    ComponentDamages,
    DamageComponent,
    PriorityItem,
    Signal,
    SignalCategory,
)
from decisioncore.signals.urgency import UrgencyPolicy

logger = structlog.get_logger(__name__)

# ── Configuration ─────────────────────────────────────────────────────────

MAX_ITEMS: int = 7
MAX_CONTRIBUTORS: int = 3

ETA_CATEGORIES: frozenset[SignalCategory] = frozenset({
    SignalCategory.MARKDOWN_RISK,
    SignalCategory.SIZE_BREAK,
})


@dataclass
class _SubjectGroup:
    """Working state for one subject during a single pass."""
    subject_id: str
    amounts: dict[DamageComponent, list[float]] = field(
        default_factory=lambda: {c: [] for c in COMPONENT_PRECEDENCE}
    )
    signals: list[Signal] = field(default_factory=list)
    categories: set[SignalCategory] = field(default_factory=set)
    eta_days: Optional[int] = None

    def add(self, signal: Signal) -> None:
        self.signals.append(signal)
        self.categories.add(signal.category)

        component = COMPONENT_FOR_CATEGORY.get(signal.category)
        if component is not None and signal.amount is not None:
            self.amounts[component].append(signal.amount)

        if signal.category in ETA_CATEGORIES and signal.eta_days is not None:
            if self.eta_days is None or signal.eta_days < self.eta_days:
                self.eta_days = signal.eta_days

    def component_damages(self) -> ComponentDamages:
        # fsum keeps totals independent of input order
        return ComponentDamages(
            cash_locked=math.fsum(self.amounts[DamageComponent.CASH_LOCKED]),
            lost_revenue=math.fsum(self.amounts[DamageComponent.LOST_REVENUE]),
            margin_leak=math.fsum(self.amounts[DamageComponent.MARGIN_LEAK]),
        )


class SignalAggregator:
    """
    Rank subjects by financial exposure.

    Pure: output depends only on the signals passed in. Malformed signals are
    skipped and logged, never fatal to the pass.
    """

    def __init__(
        self,
        urgency_policy: Optional[UrgencyPolicy] = None,
        max_items: int = MAX_ITEMS,
        max_contributors: int = MAX_CONTRIBUTORS,
    ):
        self.urgency_policy = urgency_policy or UrgencyPolicy()
        self.max_items = max_items
        self.max_contributors = max_contributors

    @classmethod
    def from_settings(cls, settings) -> "SignalAggregator":
        return cls(
            urgency_policy=UrgencyPolicy.from_settings(settings),
            max_items=settings.priority_max_items,
        )

    def aggregate(
        self,
        tenant_id: str,
        signals: Iterable[Signal],
        max_items: Optional[int] = None,
    ) -> list[PriorityItem]:
        """
        Aggregate one tenant's signals into at most ``max_items`` ranked items.

        An empty input yields an empty list.
        """
        limit = self.max_items if max_items is None else max_items

        groups: dict[str, _SubjectGroup] = {}
        n_ignored = 0
        for signal in signals:
            if signal.is_noop:
                n_ignored += 1
                logger.info(
                    "signal_ignored_malformed",
                    tenant_id=tenant_id,
                    subject_id=signal.subject_id,
                    category=signal.category.value,
                    source=signal.source,
                )
                continue
            group = groups.get(signal.subject_id)
            if group is None:
                group = groups[signal.subject_id] = _SubjectGroup(subject_id=signal.subject_id)
            group.add(signal)

        if not groups or limit <= 0:
            logger.debug("aggregation_empty", tenant_id=tenant_id, n_ignored=n_ignored)
            return []

        candidates: list[PriorityItem] = []
        n_discarded = 0
        for group in groups.values():
            item = self._build_item(group)
            if item is None:
                n_discarded += 1
                continue
            candidates.append(item)

        # sorted() is stable: equal damage keeps first-appearance order
        ranked = sorted(candidates, key=lambda i: -i.total_damage)[:limit]
        items = [
            item.model_copy(update={"rank": index + 1})
            for index, item in enumerate(ranked)
        ]

        logger.info(
            "signals_aggregated",
            tenant_id=tenant_id,
            n_subjects=len(groups),
            n_ranked=len(items),
            n_discarded=n_discarded,
            n_ignored=n_ignored,
        )
        return items

    def _build_item(self, group: _SubjectGroup) -> Optional[PriorityItem]:
        damages = group.component_damages()
        total = math.fsum(damages.get(c) for c in COMPONENT_PRECEDENCE)
        if total <= 0:
            logger.debug(
                "subject_discarded_no_damage",
                subject_id=group.subject_id,
                categories=sorted(c.value for c in group.categories),
            )
            return None

        return PriorityItem(
            subject_id=group.subject_id,
            dominant_category=self._dominant_category(group, damages),
            total_damage=total,
            component_damages=damages,
            eta_days=group.eta_days,
            urgency=self.urgency_policy.classify(group.eta_days, total),
            time_pressure=self.urgency_policy.time_pressure(group.eta_days),
            top_contributors=self._top_contributors(group),
            signal_count=len(group.signals),
            categories=sorted(group.categories, key=lambda c: c.value),
        )

    @staticmethod
    def _dominant_category(group: _SubjectGroup, damages: ComponentDamages) -> SignalCategory:
        if SignalCategory.MARKDOWN_RISK in group.categories:
            return SignalCategory.MARKDOWN_RISK
        if SignalCategory.SIZE_BREAK in group.categories:
            return SignalCategory.SIZE_BREAK

        # max() returns the first maximal element, so precedence breaks ties
        best = max(COMPONENT_PRECEDENCE, key=lambda c: damages.get(c))
        return CATEGORY_FOR_COMPONENT[best]

    def _top_contributors(self, group: _SubjectGroup) -> list[Signal]:
        monetary = [
            s for s in group.signals
            if s.is_monetary and s.amount is not None and s.amount > 0
        ]
        monetary.sort(key=lambda s: -s.amount)
        return monetary[: self.max_contributors]
