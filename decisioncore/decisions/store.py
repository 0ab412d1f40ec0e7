"""
Card Store — persistence seam for cards, audit, history, alert links and rules.

Every write is a single-row upsert keyed by primary key; last writer wins.
Every read is scoped by tenant_id.
"""

from abc import ABC, abstractmethod
from typing import Iterable, Optional

from decisioncore.decisions.schemas import (
    TERMINAL_STATUSES,
    AlertLink,
    AuditEntry,
    CardStatus,
    DecisionCard,
    EscalationHistoryEntry,
)
from decisioncore.escalation.schemas import EscalationRule
from decisioncore.signals.schemas import SignalCategory


class CardStore(ABC):

    # ── Cards ────────────────────────────────────────────────────────────

    @abstractmethod
    async def save_card(self, card: DecisionCard) -> DecisionCard: ...

    @abstractmethod
    async def get_card(self, tenant_id: str, card_id: str) -> Optional[DecisionCard]: ...

    @abstractmethod
    async def list_cards(
        self,
        tenant_id: str,
        statuses: Optional[Iterable[CardStatus]] = None,
    ) -> list[DecisionCard]:
        """Cards for a tenant, oldest first."""

    async def find_open_card(
        self, tenant_id: str, subject_id: str, category: SignalCategory
    ) -> Optional[DecisionCard]:
        """Non-terminal card for this subject and category, if any."""
        open_statuses = [s for s in CardStatus if s not in TERMINAL_STATUSES]
        for card in await self.list_cards(tenant_id, open_statuses):
            if card.subject_id == subject_id and card.category == category:
                return card
        return None

    # ── Audit & history ──────────────────────────────────────────────────

    @abstractmethod
    async def append_audit(self, entry: AuditEntry) -> None: ...

    @abstractmethod
    async def list_audit(self, tenant_id: str, card_id: str) -> list[AuditEntry]: ...

    @abstractmethod
    async def append_history(self, entry: EscalationHistoryEntry) -> None: ...

    @abstractmethod
    async def list_history(self, tenant_id: str, card_id: str) -> list[EscalationHistoryEntry]: ...

    # ── Alert links ──────────────────────────────────────────────────────

    @abstractmethod
    async def save_link(self, link: AlertLink) -> None: ...

    @abstractmethod
    async def get_link(self, tenant_id: str, alert_id: str) -> Optional[AlertLink]: ...

    @abstractmethod
    async def list_links(self, tenant_id: str, card_id: str) -> list[AlertLink]: ...

    async def linked_alert_ids(self, tenant_id: str, alert_ids: Iterable[str]) -> set[str]:
        linked: set[str] = set()
        for alert_id in alert_ids:
            if await self.get_link(tenant_id, alert_id) is not None:
                linked.add(alert_id)
        return linked

    # ── Escalation rules ─────────────────────────────────────────────────

    @abstractmethod
    async def save_rule(self, rule: EscalationRule) -> EscalationRule: ...

    @abstractmethod
    async def list_rules(self, tenant_id: str) -> list[EscalationRule]: ...


class InMemoryCardStore(CardStore):
    """
    Process-local store.

    State is keyed by (tenant_id, id); nothing leaks across tenants.
    """

    def __init__(self):
        self._cards: dict[tuple[str, str], DecisionCard] = {}
        self._audit: dict[tuple[str, str], list[AuditEntry]] = {}
        self._history: dict[tuple[str, str], list[EscalationHistoryEntry]] = {}
        self._links: dict[tuple[str, str], AlertLink] = {}
        self._rules: dict[tuple[str, str], EscalationRule] = {}

    async def save_card(self, card: DecisionCard) -> DecisionCard:
        self._cards[(card.tenant_id, card.id)] = card.model_copy()
        return card

    async def get_card(self, tenant_id: str, card_id: str) -> Optional[DecisionCard]:
        card = self._cards.get((tenant_id, card_id))
        return card.model_copy() if card else None

    async def list_cards(
        self,
        tenant_id: str,
        statuses: Optional[Iterable[CardStatus]] = None,
    ) -> list[DecisionCard]:
        wanted = set(statuses) if statuses is not None else None
        cards = [
            c.model_copy() for (t, _), c in self._cards.items()
            if t == tenant_id and (wanted is None or c.status in wanted)
        ]
        cards.sort(key=lambda c: c.created_at)
        return cards

    async def append_audit(self, entry: AuditEntry) -> None:
        self._audit.setdefault((entry.tenant_id, entry.card_id), []).append(entry)

    async def list_audit(self, tenant_id: str, card_id: str) -> list[AuditEntry]:
        return list(self._audit.get((tenant_id, card_id), []))

    async def append_history(self, entry: EscalationHistoryEntry) -> None:
        self._history.setdefault((entry.tenant_id, entry.card_id), []).append(entry)

    async def list_history(self, tenant_id: str, card_id: str) -> list[EscalationHistoryEntry]:
        return list(self._history.get((tenant_id, card_id), []))

    async def save_link(self, link: AlertLink) -> None:
        self._links[(link.tenant_id, link.alert_id)] = link

    async def get_link(self, tenant_id: str, alert_id: str) -> Optional[AlertLink]:
        return self._links.get((tenant_id, alert_id))

    async def list_links(self, tenant_id: str, card_id: str) -> list[AlertLink]:
        return [
            link for (t, _), link in self._links.items()
            if t == tenant_id and link.card_id == card_id
        ]

    async def save_rule(self, rule: EscalationRule) -> EscalationRule:
        self._rules[(rule.tenant_id, rule.id)] = rule
        return rule

    async def list_rules(self, tenant_id: str) -> list[EscalationRule]:
        return [r for (t, _), r in self._rules.items() if t == tenant_id]

    def reset(self) -> None:
        """Drop all state (for testing)."""
        self._cards.clear()
        self._audit.clear()
        self._history.clear()
        self._links.clear()
        self._rules.clear()
