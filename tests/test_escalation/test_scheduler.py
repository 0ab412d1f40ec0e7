"""
Tests for the Escalation Scheduler.

Covers:
- Level progression over elapsed time
- Rule selection (tenant, activity, priority filter, ordering)
- Missing rule fallback
- Manual override semantics and reactivation anchor
- max_level ceiling below and above the three rule levels
- Frozen paths for terminal cards
"""

from datetime import timedelta

import pytest
from pydantic import ValidationError

from decisioncore.decisions.schemas import (
    CardPriority,
    CardStatus,
    DecisionCard,
    OwnerRole,
)
from decisioncore.escalation.scheduler import EscalationScheduler
from decisioncore.exceptions import InvalidConfigurationError
from decisioncore.signals.schemas import SignalCategory
from tests.factories import OTHER_TENANT, T0, TENANT, make_rule


def _card(**overrides) -> DecisionCard:
    data = dict(
        id="card-1",
        tenant_id=TENANT,
        subject_id="P1",
        category=SignalCategory.LOST_REVENUE,
        owner_role=OwnerRole.COO,
        priority=CardPriority.P2,
        created_at=T0,
        updated_at=T0,
    )
    data.update(overrides)
    return DecisionCard(**data)


def _at(hours: float):
    return T0 + timedelta(hours=hours)


class TestLevels:

    def setup_method(self):
        self.scheduler = EscalationScheduler()
        self.rules = [make_rule()]      # warning 2h, escalation 4h, final 8h

    def test_fresh_card_is_level_one(self):
        """createdAt = now → level 1, initial owner."""
        path = self.scheduler.compute_path(_card(), self.rules, now=T0)
        assert path.current_level == 1
        assert path.current_owner_role == OwnerRole.COO
        assert path.next_escalation_role == OwnerRole.CFO
        assert path.time_until_escalation_hours == 4.0
        assert path.is_final is False
        assert path.is_warning is False
        assert path.rule_id == "rule-default"

    def test_warning_before_escalation(self):
        path = self.scheduler.compute_path(_card(), self.rules, now=_at(3))
        assert path.current_level == 1
        assert path.is_warning is True
        assert path.time_until_escalation_hours == 1.0

    def test_second_level_at_threshold(self):
        path = self.scheduler.compute_path(_card(), self.rules, now=_at(4))
        assert path.current_level == 2
        assert path.current_owner_role == OwnerRole.CFO
        assert path.next_escalation_role == OwnerRole.CEO
        assert path.time_until_escalation_hours == 4.0

    def test_final_level(self):
        """Older than final_escalation_hours → final owner, no next step."""
        path = self.scheduler.compute_path(_card(), self.rules, now=_at(100))
        assert path.current_level == 3
        assert path.current_owner_role == OwnerRole.CEO
        assert path.is_final is True
        assert path.next_escalation_role is None
        assert path.time_until_escalation_hours is None
        assert path.is_warning is False

    def test_clock_before_creation_counts_as_zero(self):
        path = self.scheduler.compute_path(_card(), self.rules, now=_at(-5))
        assert path.elapsed_hours == 0.0
        assert path.current_level == 1

    def test_pure(self):
        card = _card()
        a = self.scheduler.compute_path(card, self.rules, now=_at(5))
        b = self.scheduler.compute_path(card, self.rules, now=_at(5))
        assert a == b
        assert card.escalation_level == 1


class TestRuleSelection:

    def setup_method(self):
        self.scheduler = EscalationScheduler()

    def test_lowest_priority_number_wins(self):
        rules = [make_rule("late", priority=20), make_rule("early", priority=5)]
        assert self.scheduler.select_rule(_card(), rules).id == "early"

    def test_id_breaks_priority_ties(self):
        rules = [make_rule("b", priority=5), make_rule("a", priority=5)]
        assert self.scheduler.select_rule(_card(), rules).id == "a"

    def test_skips_inactive_and_foreign_rules(self):
        rules = [
            make_rule("off", priority=1, is_active=False),
            make_rule("other", priority=2, tenant_id=OTHER_TENANT),
            make_rule("mine", priority=3),
        ]
        assert self.scheduler.select_rule(_card(), rules).id == "mine"

    def test_card_priority_filter(self):
        rules = [
            make_rule("p1-only", priority=1, card_priority=CardPriority.P1),
            make_rule("any", priority=9),
        ]
        assert self.scheduler.select_rule(_card(priority=CardPriority.P2), rules).id == "any"
        assert self.scheduler.select_rule(_card(priority=CardPriority.P1), rules).id == "p1-only"

    def test_no_rule_falls_back_to_card(self):
        """Missing configuration never raises."""
        card = _card(owner_role=OwnerRole.CMO, escalation_level=2)
        path = self.scheduler.compute_path(card, [], now=_at(1000))
        assert path.current_owner_role == OwnerRole.CMO
        assert path.current_level == 2
        assert path.is_final is False
        assert path.rule_id is None

    def test_no_rule_final_at_default_ceiling(self):
        path = self.scheduler.compute_path(_card(escalation_level=3), [], now=T0)
        assert path.is_final is True


class TestOverride:

    def setup_method(self):
        self.scheduler = EscalationScheduler()
        self.rules = [make_rule()]

    def test_override_is_authoritative(self):
        """A manual owner above the natural level stays in charge."""
        card = _card(owner_role=OwnerRole.CMO, escalation_level=2, owner_overridden=True)

        early = self.scheduler.compute_path(card, self.rules, now=_at(1))
        assert early.current_owner_role == OwnerRole.CMO
        assert early.current_level == 2
        assert early.is_overridden is True
        assert early.next_escalation_role == OwnerRole.CEO
        assert early.time_until_escalation_hours == 7.0

        still = self.scheduler.compute_path(card, self.rules, now=_at(3.9))
        assert still.current_owner_role == OwnerRole.CMO

    def test_reaching_override_level_hands_back_to_rule(self):
        card = _card(owner_role=OwnerRole.CMO, escalation_level=2, owner_overridden=True)
        path = self.scheduler.compute_path(card, self.rules, now=_at(5))
        assert path.current_owner_role == OwnerRole.CFO
        assert path.current_level == 2
        assert path.is_overridden is False

    def test_later_threshold_hands_back_to_rule(self):
        card = _card(owner_role=OwnerRole.CMO, escalation_level=2, owner_overridden=True)
        path = self.scheduler.compute_path(card, self.rules, now=_at(9))
        assert path.current_owner_role == OwnerRole.CEO
        assert path.current_level == 3
        assert path.is_overridden is False

    def test_top_level_override_ends_at_final_threshold(self):
        card = _card(owner_role=OwnerRole.CMO, escalation_level=3, owner_overridden=True)

        held = self.scheduler.compute_path(card, self.rules, now=_at(6))
        assert held.current_owner_role == OwnerRole.CMO
        assert held.is_final is True

        path = self.scheduler.compute_path(card, self.rules, now=_at(100))
        assert path.current_owner_role == OwnerRole.CEO
        assert path.current_level == 3
        assert path.is_final is True
        assert path.is_overridden is False

    def test_reactivation_restarts_clock(self):
        card = _card(reactivated_at=_at(50))
        path = self.scheduler.compute_path(card, self.rules, now=_at(51))
        assert path.current_level == 1
        assert path.elapsed_hours == 1.0


class TestLevelCeiling:

    def test_lower_ceiling_cuts_the_ladder(self):
        scheduler = EscalationScheduler(max_level=2)

        second = scheduler.compute_path(_card(), [make_rule()], now=_at(5))
        assert second.current_level == 2
        assert second.current_owner_role == OwnerRole.CFO
        assert second.is_final is True
        assert second.next_escalation_role is None
        assert second.time_until_escalation_hours is None

        late = scheduler.compute_path(_card(), [make_rule()], now=_at(100))
        assert late.current_level == 2
        assert late.current_owner_role == OwnerRole.CFO

    def test_single_level(self):
        path = EscalationScheduler(max_level=1).compute_path(_card(), [make_rule()], now=_at(100))
        assert path.current_level == 1
        assert path.current_owner_role == OwnerRole.COO
        assert path.is_final is True

    def test_higher_ceiling_keeps_manual_levels(self):
        scheduler = EscalationScheduler(max_level=5)
        card = _card(owner_role=OwnerRole.CMO, escalation_level=4, owner_overridden=True)

        path = scheduler.compute_path(card, [make_rule()], now=T0)

        assert path.current_level == 4
        assert path.current_owner_role == OwnerRole.CMO
        assert path.is_overridden is True
        assert path.next_escalation_role is None

    def test_higher_ceiling_natural_ladder_unchanged(self):
        path = EscalationScheduler(max_level=5).compute_path(_card(), [make_rule()], now=_at(100))
        assert path.current_level == 3
        assert path.current_owner_role == OwnerRole.CEO
        assert path.is_final is True

    def test_ceiling_below_one_rejected(self):
        with pytest.raises(InvalidConfigurationError):
            EscalationScheduler(max_level=0)


class TestTerminal:

    def test_path_frozen(self):
        card = _card(
            status=CardStatus.DECIDED,
            escalation_level=2,
            owner_role=OwnerRole.CFO,
            updated_at=_at(5),
        )
        path = EscalationScheduler().compute_path(card, [make_rule()], now=_at(500))
        assert path.current_level == 2
        assert path.current_owner_role == OwnerRole.CFO
        assert path.next_escalation_role is None
        assert path.time_until_escalation_hours is None
        assert path.elapsed_hours == 5.0


class TestRuleValidation:

    def test_thresholds_must_be_ordered(self):
        with pytest.raises(ValidationError):
            make_rule(warning=5.0, escalation=4.0, final=8.0)
        with pytest.raises(ValidationError):
            make_rule(warning=1.0, escalation=9.0, final=8.0)

    def test_equal_thresholds_allowed(self):
        rule = make_rule(warning=4.0, escalation=4.0, final=4.0)
        assert rule.final_escalation_hours == 4.0

    def test_negative_threshold_rejected(self):
        with pytest.raises(ValidationError):
            make_rule(warning=-1.0)
