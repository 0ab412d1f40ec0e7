"""
Signal Schemas — the common shape every collector emits, and the ranked
priority items the aggregator produces from them.
"""

from datetime import datetime
from enum import StrEnum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class SignalCategory(StrEnum):
    SIZE_BREAK = "size_break"
    MARKDOWN_RISK = "markdown_risk"
    CASH_LOCK = "cash_lock"
    MARGIN_LEAK = "margin_leak"
    LOST_REVENUE = "lost_revenue"


class DamageComponent(StrEnum):
    CASH_LOCKED = "cash_locked"
    LOST_REVENUE = "lost_revenue"
    MARGIN_LEAK = "margin_leak"


# Money-carrying categories and the component they sum into.
COMPONENT_FOR_CATEGORY: dict[SignalCategory, DamageComponent] = {
    SignalCategory.CASH_LOCK: DamageComponent.CASH_LOCKED,
    SignalCategory.LOST_REVENUE: DamageComponent.LOST_REVENUE,
    SignalCategory.MARGIN_LEAK: DamageComponent.MARGIN_LEAK,
}

# Fixed tie-break order for the dominant component
COMPONENT_PRECEDENCE: tuple[DamageComponent, ...] = (
    DamageComponent.CASH_LOCKED,
    DamageComponent.LOST_REVENUE,
    DamageComponent.MARGIN_LEAK,
)

CATEGORY_FOR_COMPONENT: dict[DamageComponent, SignalCategory] = {
    v: k for k, v in COMPONENT_FOR_CATEGORY.items()
}


class Urgency(StrEnum):
    CRITICAL = "critical"
    URGENT = "urgent"
    WARNING = "warning"


class TimePressure(StrEnum):
    OVERDUE = "overdue"         # ETA already passed
    IMMINENT = "imminent"       # Within the critical ETA window
    SOON = "soon"               # Within the urgent ETA window
    SCHEDULED = "scheduled"     # ETA known, further out
    NONE = "none"               # No ETA


class Signal(BaseModel):
    """
    One unit of risk evidence for a subject, emitted by a collector.

    Immutable for the aggregation pass it belongs to.
    """
    model_config = ConfigDict(frozen=True)

    subject_id: str
    category: SignalCategory
    amount: Optional[float] = Field(default=None, allow_inf_nan=False)
    eta_days: Optional[int] = None
    detail: dict[str, Any] = Field(default_factory=dict)
    source: str = "unknown"

    @property
    def is_monetary(self) -> bool:
        return self.category in COMPONENT_FOR_CATEGORY

    @property
    def is_noop(self) -> bool:
        """Carries neither damage nor ETA, so contributes nothing."""
        return self.amount is None and self.eta_days is None


class ComponentDamages(BaseModel):
    cash_locked: float = 0.0
    lost_revenue: float = 0.0
    margin_leak: float = 0.0

    def get(self, component: DamageComponent) -> float:
        return getattr(self, component.value)


class PriorityItem(BaseModel):
    """All signals for one subject, attributed and ranked."""
    subject_id: str
    rank: int = 0
    dominant_category: SignalCategory
    total_damage: float
    component_damages: ComponentDamages
    eta_days: Optional[int] = None
    urgency: Urgency
    time_pressure: TimePressure = TimePressure.NONE
    top_contributors: list[Signal] = Field(default_factory=list)
    signal_count: int = 0
    categories: list[SignalCategory] = Field(default_factory=list)


class CollectorStatus(StrEnum):
    OK = "ok"
    TIMEOUT = "timeout"
    ERROR = "error"


class CollectorReport(BaseModel):
    """How one collector fared in a collection pass."""
    collector: str
    status: CollectorStatus
    n_signals: int = 0
    duration_ms: float = 0.0
    error: Optional[str] = None


class PriorityQueue(BaseModel):
    """Result of one aggregation pass for a tenant."""
    tenant_id: str
    items: list[PriorityItem]
    collectors: list[CollectorReport] = Field(default_factory=list)
    is_partial: bool = False        # At least one collector timed out or failed
    n_signals: int = 0
    generated_at: datetime


class AggregateRequest(BaseModel):
    signals: list[Signal]
    max_items: Optional[int] = Field(default=None, ge=0)
