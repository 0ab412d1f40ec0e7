"""
Decision Card Schemas — trackable units of executive action.

A card is promoted from a ranked PriorityItem (or one severe Signal) and
moves through a small lifecycle:

    NEW → OPEN → IN_PROGRESS → DECIDED | DISMISSED
    any non-terminal → EXPIRED once the deadline passes

Audit and escalation history are append-only.
"""

from datetime import datetime
from enum import StrEnum
from typing import Optional

from pydantic import BaseModel, Field

from decisioncore.signals.schemas import SignalCategory, Urgency


class CardStatus(StrEnum):
    NEW = "NEW"
    OPEN = "OPEN"
    IN_PROGRESS = "IN_PROGRESS"
    DECIDED = "DECIDED"
    DISMISSED = "DISMISSED"
    EXPIRED = "EXPIRED"


TERMINAL_STATUSES: frozenset[CardStatus] = frozenset({
    CardStatus.DECIDED,
    CardStatus.DISMISSED,
    CardStatus.EXPIRED,
})


class CardAction(StrEnum):
    APPROVE = "APPROVE"
    REJECT = "REJECT"
    SNOOZE = "SNOOZE"
    ACKNOWLEDGE = "ACKNOWLEDGE"
    START = "START"


class CardPriority(StrEnum):
    P1 = "P1"
    P2 = "P2"
    P3 = "P3"


PRIORITY_FOR_URGENCY: dict[Urgency, CardPriority] = {
    Urgency.CRITICAL: CardPriority.P1,
    Urgency.URGENT: CardPriority.P2,
    Urgency.WARNING: CardPriority.P3,
}


class OwnerRole(StrEnum):
    CEO = "CEO"
    CFO = "CFO"
    COO = "COO"
    CMO = "CMO"


class DismissReason(StrEnum):
    NOT_RELEVANT = "NOT_RELEVANT"
    ALREADY_HANDLED = "ALREADY_HANDLED"
    FALSE_POSITIVE = "FALSE_POSITIVE"
    AWAITING_DATA = "AWAITING_DATA"
    OTHER = "OTHER"


class AuditAction(StrEnum):
    CREATE = "CREATE"
    APPROVE = "APPROVE"
    REJECT = "REJECT"
    SNOOZE = "SNOOZE"
    ACKNOWLEDGE = "ACKNOWLEDGE"
    START = "START"
    EXPIRE = "EXPIRE"
    REACTIVATE = "REACTIVATE"


class EscalationKind(StrEnum):
    MANUAL = "manual"
    AUTO = "auto"
    REACTIVATED = "reactivated"
    OVERRIDE_RESET = "override_reset"


class RejectionReason(StrEnum):
    """Why a lifecycle operation was refused without changing anything."""
    ALREADY_RESOLVED = "already_resolved"
    EXPIRED = "expired"
    INVALID_TRANSITION = "invalid_transition"
    DUPLICATE = "duplicate"
    NO_IMPACT = "no_impact"
    NOT_TERMINAL = "not_terminal"
    MAX_LEVEL = "max_level"
    NOT_OVERRIDDEN = "not_overridden"
    ALERT_ALREADY_LINKED = "alert_already_linked"
    NO_CHANGE = "no_change"


class DecisionCard(BaseModel):
    id: str
    tenant_id: str
    subject_id: str
    category: SignalCategory
    title: str = ""
    status: CardStatus = CardStatus.NEW
    priority: CardPriority = CardPriority.P3
    urgency: Urgency = Urgency.WARNING
    owner_role: OwnerRole
    escalation_level: int = 1
    owner_overridden: bool = False
    impact_amount: float = 0.0
    impact_currency: str = "VND"
    eta_days: Optional[int] = None
    created_at: datetime
    updated_at: datetime
    deadline_at: Optional[datetime] = None
    snoozed_until: Optional[datetime] = None
    snooze_count: int = 0
    reactivated_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None
    dismiss_reason: Optional[DismissReason] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def clock_anchor(self) -> datetime:
        """Escalation clock starts at the latest reactivation, else creation."""
        return self.reactivated_at or self.created_at

    def is_overdue(self, now: datetime) -> bool:
        return (
            not self.is_terminal
            and self.deadline_at is not None
            and now >= self.deadline_at
        )


class AuditEntry(BaseModel):
    """Immutable record of one change to a card."""
    id: str
    tenant_id: str
    card_id: str
    action: AuditAction
    actor: str
    from_status: Optional[CardStatus] = None
    to_status: CardStatus
    comment: Optional[str] = None
    dismiss_reason: Optional[DismissReason] = None
    created_at: datetime


class EscalationHistoryEntry(BaseModel):
    id: str
    tenant_id: str
    card_id: str
    kind: EscalationKind
    from_level: int
    to_level: int
    from_role: Optional[OwnerRole] = None
    to_role: OwnerRole
    actor: Optional[str] = None
    reason: Optional[str] = None
    created_at: datetime


class AlertLink(BaseModel):
    """A monitoring alert attached to a card. One card per alert."""
    tenant_id: str
    alert_id: str
    card_id: str
    linked_at: datetime
    resolved_at: Optional[datetime] = None
    resolution: Optional[str] = None


class NotificationKind(StrEnum):
    CREATED = "created"
    RESOLVED = "resolved"


class NotificationEvent(BaseModel):
    """What the delivery layer needs to tell an owner about a card."""
    kind: NotificationKind
    tenant_id: str
    card_id: str
    status: CardStatus
    owner_role: OwnerRole
    impact_amount: float
    impact_currency: str
    emitted_at: datetime


class LifecycleResult(BaseModel):
    """
    Outcome of a lifecycle operation.

    ``accepted=False`` means nothing was written; ``reason`` says why and
    ``card`` holds the unchanged card when one exists.
    """
    accepted: bool
    card: Optional[DecisionCard] = None
    reason: Optional[RejectionReason] = None


class CardStats(BaseModel):
    tenant_id: str
    total: int = 0
    by_status: dict[CardStatus, int] = Field(default_factory=dict)
    open_by_priority: dict[CardPriority, int] = Field(default_factory=dict)
    overdue: int = 0
    open_impact: float = 0.0


# ── Request bodies ───────────────────────────────────────────────────────


class CardCreateRequest(BaseModel):
    """Promote a single signal (or raw impact) to a card."""
    subject_id: str
    category: SignalCategory
    impact_amount: float = Field(default=0.0, ge=0, allow_inf_nan=False)
    urgency: Optional[Urgency] = None
    eta_days: Optional[int] = None
    title: str = ""


class TransitionRequest(BaseModel):
    action: CardAction
    comment: Optional[str] = None
    dismiss_reason: Optional[DismissReason] = None


class EscalateRequest(BaseModel):
    to_role: Optional[OwnerRole] = None
    reason: Optional[str] = None


class AlertLinkRequest(BaseModel):
    alert_id: str


class VisibleAlertsRequest(BaseModel):
    alert_ids: list[str]


class ReactivateRequest(BaseModel):
    reason: Optional[str] = None


class VisibleAlertsResponse(BaseModel):
    alert_ids: list[str]
