"""
SQL-backed CardStore.

Each call runs in its own session and commits on success. Writes are
single-row merges by primary key, so concurrent writers resolve as
last-writer-wins.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Iterable, Optional

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from decisioncore.db.models import (
    AlertLinkModel,
    CardAuditModel,
    DecisionCardModel,
    EscalationHistoryModel,
    EscalationRuleModel,
)
from decisioncore.decisions.schemas import (
    AlertLink,
    AuditEntry,
    CardStatus,
    DecisionCard,
    EscalationHistoryEntry,
)
from decisioncore.decisions.store import CardStore
from decisioncore.escalation.schemas import EscalationRule
from decisioncore.signals.schemas import SignalCategory

logger = structlog.get_logger(__name__)


class SqlCardStore(CardStore):

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    @asynccontextmanager
    async def _session(self) -> AsyncGenerator[AsyncSession, None]:
        async with self.session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    # ── Cards ────────────────────────────────────────────────────────────

    async def save_card(self, card: DecisionCard) -> DecisionCard:
        async with self._session() as db:
            await db.merge(DecisionCardModel(**card.model_dump()))
        return card

    async def get_card(self, tenant_id: str, card_id: str) -> Optional[DecisionCard]:
        async with self._session() as db:
            row = await db.get(DecisionCardModel, (tenant_id, card_id))
            return DecisionCard.model_validate(row, from_attributes=True) if row else None

    async def list_cards(
        self,
        tenant_id: str,
        statuses: Optional[Iterable[CardStatus]] = None,
    ) -> list[DecisionCard]:
        stmt = select(DecisionCardModel).where(DecisionCardModel.tenant_id == tenant_id)
        if statuses is not None:
            stmt = stmt.where(DecisionCardModel.status.in_([s.value for s in statuses]))
        stmt = stmt.order_by(DecisionCardModel.created_at.asc(), DecisionCardModel.id.asc())
        async with self._session() as db:
            result = await db.execute(stmt)
            return [
                DecisionCard.model_validate(row, from_attributes=True)
                for row in result.scalars().all()
            ]

    async def find_open_card(
        self, tenant_id: str, subject_id: str, category: SignalCategory
    ) -> Optional[DecisionCard]:
        open_statuses = [s.value for s in (CardStatus.NEW, CardStatus.OPEN, CardStatus.IN_PROGRESS)]
        stmt = (
            select(DecisionCardModel)
            .where(
                DecisionCardModel.tenant_id == tenant_id,
                DecisionCardModel.subject_id == subject_id,
                DecisionCardModel.category == category.value,
                DecisionCardModel.status.in_(open_statuses),
            )
            .order_by(DecisionCardModel.created_at.asc())
            .limit(1)
        )
        async with self._session() as db:
            row = (await db.execute(stmt)).scalar_one_or_none()
            return DecisionCard.model_validate(row, from_attributes=True) if row else None

    # ── Audit & history ──────────────────────────────────────────────────

    async def append_audit(self, entry: AuditEntry) -> None:
        async with self._session() as db:
            db.add(CardAuditModel(**entry.model_dump()))

    async def list_audit(self, tenant_id: str, card_id: str) -> list[AuditEntry]:
        stmt = (
            select(CardAuditModel)
            .where(CardAuditModel.tenant_id == tenant_id, CardAuditModel.card_id == card_id)
            .order_by(CardAuditModel.seq.asc())
        )
        async with self._session() as db:
            result = await db.execute(stmt)
            return [AuditEntry.model_validate(r, from_attributes=True) for r in result.scalars().all()]

    async def append_history(self, entry: EscalationHistoryEntry) -> None:
        async with self._session() as db:
            db.add(EscalationHistoryModel(**entry.model_dump()))

    async def list_history(self, tenant_id: str, card_id: str) -> list[EscalationHistoryEntry]:
        stmt = (
            select(EscalationHistoryModel)
            .where(
                EscalationHistoryModel.tenant_id == tenant_id,
                EscalationHistoryModel.card_id == card_id,
            )
            .order_by(EscalationHistoryModel.seq.asc())
        )
        async with self._session() as db:
            result = await db.execute(stmt)
            return [
                EscalationHistoryEntry.model_validate(r, from_attributes=True)
                for r in result.scalars().all()
            ]

    # ── Alert links ──────────────────────────────────────────────────────

    async def save_link(self, link: AlertLink) -> None:
        async with self._session() as db:
            await db.merge(AlertLinkModel(**link.model_dump()))

    async def get_link(self, tenant_id: str, alert_id: str) -> Optional[AlertLink]:
        async with self._session() as db:
            row = await db.get(AlertLinkModel, (tenant_id, alert_id))
            return AlertLink.model_validate(row, from_attributes=True) if row else None

    async def list_links(self, tenant_id: str, card_id: str) -> list[AlertLink]:
        stmt = select(AlertLinkModel).where(
            AlertLinkModel.tenant_id == tenant_id,
            AlertLinkModel.card_id == card_id,
        )
        async with self._session() as db:
            result = await db.execute(stmt)
            return [AlertLink.model_validate(r, from_attributes=True) for r in result.scalars().all()]

    async def linked_alert_ids(self, tenant_id: str, alert_ids: Iterable[str]) -> set[str]:
        ids = list(alert_ids)
        if not ids:
            return set()
        stmt = select(AlertLinkModel.alert_id).where(
            AlertLinkModel.tenant_id == tenant_id,
            AlertLinkModel.alert_id.in_(ids),
        )
        async with self._session() as db:
            result = await db.execute(stmt)
            return set(result.scalars().all())

    # ── Escalation rules ─────────────────────────────────────────────────

    async def save_rule(self, rule: EscalationRule) -> EscalationRule:
        async with self._session() as db:
            await db.merge(EscalationRuleModel(**rule.model_dump()))
        return rule

    async def list_rules(self, tenant_id: str) -> list[EscalationRule]:
        stmt = (
            select(EscalationRuleModel)
            .where(EscalationRuleModel.tenant_id == tenant_id)
            .order_by(EscalationRuleModel.priority.asc(), EscalationRuleModel.id.asc())
        )
        async with self._session() as db:
            result = await db.execute(stmt)
            return [
                EscalationRule.model_validate(r, from_attributes=True)
                for r in result.scalars().all()
            ]
