"""
DecisionCore SQLAlchemy Models.

Every table carries tenant_id; every query filters on it. Audit and
escalation history tables are append-only and read back in ``seq`` order.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, Float, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from decisioncore.db.compat import UTCDateTime
from decisioncore.db.engine import Base


class DecisionCardModel(Base):
    __tablename__ = "dc_decision_cards"
    __table_args__ = (
        Index("ix_cards_tenant_status", "tenant_id", "status"),
        Index("ix_cards_tenant_subject", "tenant_id", "subject_id", "category"),
    )

    tenant_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    subject_id: Mapped[str] = mapped_column(String(255), nullable=False)
    category: Mapped[str] = mapped_column(String(30), nullable=False)
    title: Mapped[str] = mapped_column(String(500), nullable=False, default="")
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    priority: Mapped[str] = mapped_column(String(5), nullable=False)
    urgency: Mapped[str] = mapped_column(String(20), nullable=False)
    owner_role: Mapped[str] = mapped_column(String(10), nullable=False)
    escalation_level: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    owner_overridden: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    impact_amount: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    impact_currency: Mapped[str] = mapped_column(String(3), nullable=False, default="VND")
    eta_days: Mapped[Optional[int]] = mapped_column(Integer)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    deadline_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime())
    snoozed_until: Mapped[Optional[datetime]] = mapped_column(UTCDateTime())
    snooze_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    reactivated_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime())
    resolved_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime())
    dismiss_reason: Mapped[Optional[str]] = mapped_column(String(30))


class CardAuditModel(Base):
    """Append-only. NO UPDATE, NO DELETE."""

    __tablename__ = "dc_card_audit"
    __table_args__ = (
        Index("ix_card_audit_card", "tenant_id", "card_id"),
    )

    seq: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    id: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False)
    card_id: Mapped[str] = mapped_column(String(64), nullable=False)
    action: Mapped[str] = mapped_column(String(20), nullable=False)
    actor: Mapped[str] = mapped_column(String(255), nullable=False)
    from_status: Mapped[Optional[str]] = mapped_column(String(20))
    to_status: Mapped[str] = mapped_column(String(20), nullable=False)
    comment: Mapped[Optional[str]] = mapped_column(Text)
    dismiss_reason: Mapped[Optional[str]] = mapped_column(String(30))
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)


class EscalationHistoryModel(Base):
    """Append-only."""

    __tablename__ = "dc_escalation_history"
    __table_args__ = (
        Index("ix_escalation_history_card", "tenant_id", "card_id"),
    )

    seq: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    id: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False)
    card_id: Mapped[str] = mapped_column(String(64), nullable=False)
    kind: Mapped[str] = mapped_column(String(20), nullable=False)
    from_level: Mapped[int] = mapped_column(Integer, nullable=False)
    to_level: Mapped[int] = mapped_column(Integer, nullable=False)
    from_role: Mapped[Optional[str]] = mapped_column(String(10))
    to_role: Mapped[str] = mapped_column(String(10), nullable=False)
    actor: Mapped[Optional[str]] = mapped_column(String(255))
    reason: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)


class AlertLinkModel(Base):
    """One row per alert: an alert belongs to at most one card."""

    __tablename__ = "dc_alert_links"
    __table_args__ = (
        Index("ix_alert_links_card", "tenant_id", "card_id"),
    )

    tenant_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    alert_id: Mapped[str] = mapped_column(String(255), primary_key=True)
    card_id: Mapped[str] = mapped_column(String(64), nullable=False)
    linked_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    resolved_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime())
    resolution: Mapped[Optional[str]] = mapped_column(String(50))


class EscalationRuleModel(Base):
    __tablename__ = "dc_escalation_rules"

    tenant_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    priority: Mapped[int] = mapped_column(Integer, nullable=False, default=100)
    warning_threshold_hours: Mapped[float] = mapped_column(Float, nullable=False)
    escalation_threshold_hours: Mapped[float] = mapped_column(Float, nullable=False)
    final_escalation_hours: Mapped[float] = mapped_column(Float, nullable=False)
    initial_owner_role: Mapped[str] = mapped_column(String(10), nullable=False)
    escalate_to_role: Mapped[str] = mapped_column(String(10), nullable=False)
    final_escalate_to_role: Mapped[str] = mapped_column(String(10), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    card_priority: Mapped[Optional[str]] = mapped_column(String(5))
