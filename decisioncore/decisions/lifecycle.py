"""
Decision Card Lifecycle — promote ranked signals to cards and move them along.

Flow:
1. create: PriorityItem or Signal → card (owner from category, deadline from
   priority, capped by ETA). Duplicate open cards are refused.
2. transition: APPROVE → DECIDED, REJECT → DISMISSED, SNOOZE pushes the
   deadline, ACKNOWLEDGE → OPEN, START → IN_PROGRESS.
3. expire: overdue non-terminal cards become EXPIRED.
4. reactivate: terminal → NEW with a fresh clock anchor.

Every change appends an audit entry. Ownership changes append escalation
history. Terminal states resolve linked alerts in bulk and notify.

Invalid operations never raise; they return LifecycleResult(accepted=False).
Only an unknown card id raises CardNotFoundError.
"""

import math
import uuid
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterable, Optional

import structlog

from decisioncore.decisions.notifications import NotificationEmitter
from decisioncore.decisions.ownership import owner_for
from decisioncore.decisions.schemas import (
    PRIORITY_FOR_URGENCY,
    TERMINAL_STATUSES,
    AlertLink,
    AuditAction,
    AuditEntry,
    CardAction,
    CardPriority,
    CardStats,
    CardStatus,
    DecisionCard,
    DismissReason,
    EscalationHistoryEntry,
    EscalationKind,
    LifecycleResult,
    NotificationEvent,
    NotificationKind,
    OwnerRole,
    RejectionReason,
)
from decisioncore.decisions.store import CardStore
from decisioncore.escalation.scheduler import EscalationScheduler
from decisioncore.escalation.schemas import EscalationPath
from decisioncore.exceptions import CardNotFoundError
from decisioncore.signals.schemas import PriorityItem, Signal, SignalCategory, Urgency
from decisioncore.signals.urgency import UrgencyPolicy

logger = structlog.get_logger(__name__)

# ── Configuration ─────────────────────────────────────────────────────────

REVIEW_WINDOW_HOURS: int = 168
DEADLINE_HOURS: dict[CardPriority, int] = {
    CardPriority.P1: 4,
    CardPriority.P2: 48,
    CardPriority.P3: 168,
}
SNOOZE_HOURS: int = 24
DEFAULT_CURRENCY: str = "VND"
SYSTEM_ACTOR: str = "system"
FALLBACK_ESCALATION_ROLE: OwnerRole = OwnerRole.CEO

# Allowed source statuses per action. Terminal cards are refused earlier.
_ALLOWED_FROM: dict[CardAction, frozenset[CardStatus]] = {
    CardAction.APPROVE: frozenset({CardStatus.NEW, CardStatus.OPEN, CardStatus.IN_PROGRESS}),
    CardAction.REJECT: frozenset({CardStatus.NEW, CardStatus.OPEN, CardStatus.IN_PROGRESS}),
    CardAction.SNOOZE: frozenset({CardStatus.NEW, CardStatus.OPEN, CardStatus.IN_PROGRESS}),
    CardAction.ACKNOWLEDGE: frozenset({CardStatus.NEW}),
    CardAction.START: frozenset({CardStatus.NEW, CardStatus.OPEN}),
}

_TARGET_STATUS: dict[CardAction, Optional[CardStatus]] = {
    CardAction.APPROVE: CardStatus.DECIDED,
    CardAction.REJECT: CardStatus.DISMISSED,
    CardAction.SNOOZE: None,                    # Status unchanged
    CardAction.ACKNOWLEDGE: CardStatus.OPEN,
    CardAction.START: CardStatus.IN_PROGRESS,
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


class DecisionCardService:
    """Lifecycle operations over a CardStore."""

    def __init__(
        self,
        store: CardStore,
        scheduler: Optional[EscalationScheduler] = None,
        emitter: Optional[NotificationEmitter] = None,
        urgency_policy: Optional[UrgencyPolicy] = None,
        deadline_hours: Optional[dict[CardPriority, int]] = None,
        review_window_hours: int = REVIEW_WINDOW_HOURS,
        snooze_hours: int = SNOOZE_HOURS,
        currency: str = DEFAULT_CURRENCY,
        clock: Optional[Callable[[], datetime]] = None,
        id_factory: Optional[Callable[[], str]] = None,
    ):
        self.store = store
        self.scheduler = scheduler or EscalationScheduler()
        self.emitter = emitter or NotificationEmitter()
        self.urgency_policy = urgency_policy or UrgencyPolicy()
        self.deadline_hours = dict(DEADLINE_HOURS if deadline_hours is None else deadline_hours)
        self.review_window_hours = review_window_hours
        self.snooze_hours = snooze_hours
        self.currency = currency
        self._clock = clock or _utcnow
        self._new_id = id_factory or _new_id

    @classmethod
    def from_settings(
        cls,
        settings,
        store: CardStore,
        emitter: Optional[NotificationEmitter] = None,
    ) -> "DecisionCardService":
        return cls(
            store=store,
            scheduler=EscalationScheduler.from_settings(settings),
            emitter=emitter,
            urgency_policy=UrgencyPolicy.from_settings(settings),
            deadline_hours={
                CardPriority.P1: settings.deadline_p1_hours,
                CardPriority.P2: settings.deadline_p2_hours,
                CardPriority.P3: settings.deadline_p3_hours,
            },
            review_window_hours=settings.review_window_hours,
            snooze_hours=settings.snooze_hours,
            currency=settings.default_currency,
        )

    # ── Reads ────────────────────────────────────────────────────────────

    async def get_card(self, tenant_id: str, card_id: str) -> DecisionCard:
        card = await self.store.get_card(tenant_id, card_id)
        if card is None:
            raise CardNotFoundError(tenant_id, card_id)
        return card

    async def list_cards(
        self, tenant_id: str, statuses: Optional[Iterable[CardStatus]] = None
    ) -> list[DecisionCard]:
        return await self.store.list_cards(tenant_id, statuses)

    async def list_audit(self, tenant_id: str, card_id: str) -> list[AuditEntry]:
        await self.get_card(tenant_id, card_id)
        return await self.store.list_audit(tenant_id, card_id)

    async def list_history(self, tenant_id: str, card_id: str) -> list[EscalationHistoryEntry]:
        await self.get_card(tenant_id, card_id)
        return await self.store.list_history(tenant_id, card_id)

    async def get_path(
        self, tenant_id: str, card_id: str, now: Optional[datetime] = None
    ) -> EscalationPath:
        card = await self.get_card(tenant_id, card_id)
        rules = await self.store.list_rules(tenant_id)
        return self.scheduler.compute_path(card, rules, now or self._clock())

    # ── Creation ─────────────────────────────────────────────────────────

    async def create_from_item(
        self,
        tenant_id: str,
        item: PriorityItem,
        actor: str = SYSTEM_ACTOR,
        now: Optional[datetime] = None,
    ) -> LifecycleResult:
        return await self._create(
            tenant_id=tenant_id,
            subject_id=item.subject_id,
            category=item.dominant_category,
            impact_amount=item.total_damage,
            urgency=item.urgency,
            eta_days=item.eta_days,
            title="",
            actor=actor,
            now=now,
        )

    async def create_from_signal(
        self,
        tenant_id: str,
        signal: Signal,
        actor: str = SYSTEM_ACTOR,
        urgency: Optional[Urgency] = None,
        title: str = "",
        now: Optional[datetime] = None,
    ) -> LifecycleResult:
        """
        Promote one signal. Only money-carrying categories contribute impact;
        markdown and size-break signals qualify through their urgency.
        """
        impact = signal.amount if signal.is_monetary and signal.amount else 0.0
        impact = max(impact, 0.0)
        if urgency is None:
            urgency = self.urgency_policy.classify(signal.eta_days, impact)
        return await self._create(
            tenant_id=tenant_id,
            subject_id=signal.subject_id,
            category=signal.category,
            impact_amount=impact,
            urgency=urgency,
            eta_days=signal.eta_days,
            title=title,
            actor=actor,
            now=now,
        )

    async def _create(
        self,
        tenant_id: str,
        subject_id: str,
        category: SignalCategory,
        impact_amount: float,
        urgency: Urgency,
        eta_days: Optional[int],
        title: str,
        actor: str,
        now: Optional[datetime],
    ) -> LifecycleResult:
        now = now or self._clock()

        if impact_amount <= 0 and urgency == Urgency.WARNING:
            logger.info(
                "card_create_rejected",
                tenant_id=tenant_id,
                subject_id=subject_id,
                reason=RejectionReason.NO_IMPACT.value,
            )
            return LifecycleResult(accepted=False, reason=RejectionReason.NO_IMPACT)

        existing = await self.store.find_open_card(tenant_id, subject_id, category)
        if existing is not None:
            logger.info(
                "card_create_rejected",
                tenant_id=tenant_id,
                subject_id=subject_id,
                card_id=existing.id,
                reason=RejectionReason.DUPLICATE.value,
            )
            return LifecycleResult(accepted=False, card=existing, reason=RejectionReason.DUPLICATE)

        priority = PRIORITY_FOR_URGENCY[urgency]
        card = DecisionCard(
            id=self._new_id(),
            tenant_id=tenant_id,
            subject_id=subject_id,
            category=category,
            title=title or f"{category.value}: {subject_id}",
            status=CardStatus.NEW,
            priority=priority,
            urgency=urgency,
            owner_role=owner_for(category),
            impact_amount=impact_amount,
            impact_currency=self.currency,
            eta_days=eta_days,
            created_at=now,
            updated_at=now,
            deadline_at=self._deadline_for(priority, eta_days, now),
        )
        await self.store.save_card(card)
        await self._audit(card, AuditAction.CREATE, actor, None, now)

        logger.info(
            "card_created",
            tenant_id=tenant_id,
            card_id=card.id,
            subject_id=subject_id,
            category=category.value,
            priority=priority.value,
            owner_role=card.owner_role.value,
            impact_amount=impact_amount,
        )
        await self._notify(card, NotificationKind.CREATED, now)
        return LifecycleResult(accepted=True, card=card)

    def _deadline_for(
        self, priority: CardPriority, eta_days: Optional[int], now: datetime
    ) -> datetime:
        hours = self.deadline_hours.get(priority, self.review_window_hours)
        deadline = now + timedelta(hours=hours)
        if eta_days is not None and eta_days > 0:
            deadline = min(deadline, now + timedelta(days=eta_days))
        return deadline

    # ── Transitions ──────────────────────────────────────────────────────

    async def transition(
        self,
        tenant_id: str,
        card_id: str,
        action: CardAction,
        actor: str,
        comment: Optional[str] = None,
        dismiss_reason: Optional[DismissReason] = None,
        now: Optional[datetime] = None,
    ) -> LifecycleResult:
        """
        Apply a user action.

        Refused without writing anything when the card is terminal or the
        action does not apply to its status. An overdue card is expired first
        and the action is refused.
        """
        now = now or self._clock()
        card = await self.get_card(tenant_id, card_id)

        if card.is_terminal:
            return self._reject(card, action, RejectionReason.ALREADY_RESOLVED)

        if card.is_overdue(now):
            expired = await self._expire(card, now)
            return self._reject(expired, action, RejectionReason.EXPIRED)

        if card.status not in _ALLOWED_FROM[action]:
            return self._reject(card, action, RejectionReason.INVALID_TRANSITION)

        from_status = card.status
        update: dict = {"updated_at": now}

        if action == CardAction.SNOOZE:
            base = card.deadline_at or now
            update.update(
                deadline_at=base + timedelta(hours=self.snooze_hours),
                snoozed_until=now + timedelta(hours=self.snooze_hours),
                snooze_count=card.snooze_count + 1,
            )
        else:
            update["status"] = _TARGET_STATUS[action]

        if action == CardAction.REJECT:
            update["dismiss_reason"] = dismiss_reason or DismissReason.OTHER

        new_status = update.get("status", from_status)
        if new_status in TERMINAL_STATUSES:
            update["resolved_at"] = now

        card = card.model_copy(update=update)
        await self.store.save_card(card)
        await self._audit(
            card,
            AuditAction(action.value),
            actor,
            from_status,
            now,
            comment=comment,
            dismiss_reason=card.dismiss_reason if action == CardAction.REJECT else None,
        )

        logger.info(
            "card_transitioned",
            tenant_id=tenant_id,
            card_id=card.id,
            action=action.value,
            from_status=from_status.value,
            to_status=card.status.value,
            actor=actor,
        )

        if card.is_terminal:
            await self._on_terminal(card, now)
        return LifecycleResult(accepted=True, card=card)

    def _reject(
        self, card: DecisionCard, action: CardAction, reason: RejectionReason
    ) -> LifecycleResult:
        logger.info(
            "card_transition_rejected",
            tenant_id=card.tenant_id,
            card_id=card.id,
            action=action.value,
            status=card.status.value,
            reason=reason.value,
        )
        return LifecycleResult(accepted=False, card=card, reason=reason)

    async def expire_overdue(
        self, tenant_id: str, now: Optional[datetime] = None
    ) -> list[DecisionCard]:
        """Move every overdue non-terminal card to EXPIRED."""
        now = now or self._clock()
        open_statuses = [s for s in CardStatus if s not in TERMINAL_STATUSES]
        expired: list[DecisionCard] = []
        for card in await self.store.list_cards(tenant_id, open_statuses):
            if card.is_overdue(now):
                expired.append(await self._expire(card, now))
        if expired:
            logger.info("cards_expired", tenant_id=tenant_id, count=len(expired))
        return expired

    async def _expire(self, card: DecisionCard, now: datetime) -> DecisionCard:
        from_status = card.status
        card = card.model_copy(update={
            "status": CardStatus.EXPIRED,
            "updated_at": now,
            "resolved_at": now,
        })
        await self.store.save_card(card)
        await self._audit(card, AuditAction.EXPIRE, SYSTEM_ACTOR, from_status, now)
        logger.info(
            "card_expired",
            tenant_id=card.tenant_id,
            card_id=card.id,
            deadline_at=card.deadline_at.isoformat() if card.deadline_at else None,
        )
        await self._on_terminal(card, now)
        return card

    async def _on_terminal(self, card: DecisionCard, now: datetime) -> None:
        await self.resolve_alerts_by_card(card.tenant_id, card.id, card.status.value.lower(), now)
        await self._notify(card, NotificationKind.RESOLVED, now)

    # ── Reactivation ─────────────────────────────────────────────────────

    async def reactivate(
        self,
        tenant_id: str,
        card_id: str,
        actor: str,
        reason: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> LifecycleResult:
        """
        Bring a terminal card back as NEW.

        Existing audit and history are kept; a ``reactivated`` history entry
        is appended and the escalation clock restarts.
        """
        now = now or self._clock()
        card = await self.get_card(tenant_id, card_id)

        if not card.is_terminal:
            logger.info(
                "card_reactivate_rejected",
                tenant_id=tenant_id,
                card_id=card_id,
                status=card.status.value,
            )
            return LifecycleResult(accepted=False, card=card, reason=RejectionReason.NOT_TERMINAL)

        other = await self.store.find_open_card(tenant_id, card.subject_id, card.category)
        if other is not None:
            logger.info(
                "card_reactivate_rejected",
                tenant_id=tenant_id,
                card_id=card_id,
                open_card_id=other.id,
            )
            return LifecycleResult(accepted=False, card=card, reason=RejectionReason.DUPLICATE)

        rules = await self.store.list_rules(tenant_id)
        rule = self.scheduler.select_rule(card, rules)
        owner = rule.initial_owner_role if rule else owner_for(card.category)

        from_status = card.status
        from_level, from_role = card.escalation_level, card.owner_role
        card = card.model_copy(update={
            "status": CardStatus.NEW,
            "owner_role": owner,
            "escalation_level": 1,
            "owner_overridden": False,
            "reactivated_at": now,
            "updated_at": now,
            "deadline_at": now + timedelta(hours=self.review_window_hours),
            "resolved_at": None,
            "dismiss_reason": None,
            "snoozed_until": None,
        })
        await self.store.save_card(card)
        await self._audit(card, AuditAction.REACTIVATE, actor, from_status, now, comment=reason)
        await self._history(card, EscalationKind.REACTIVATED, from_level, from_role, actor, reason, now)

        logger.info(
            "card_reactivated",
            tenant_id=tenant_id,
            card_id=card_id,
            from_status=from_status.value,
            owner_role=owner.value,
        )
        return LifecycleResult(accepted=True, card=card)

    # ── Escalation ───────────────────────────────────────────────────────

    async def escalate(
        self,
        tenant_id: str,
        card_id: str,
        actor: str,
        to_role: Optional[OwnerRole] = None,
        reason: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> LifecycleResult:
        """
        Manually raise a card one level. The new owner is authoritative
        until reset or until elapsed time reaches the same level.
        """
        now = now or self._clock()
        card = await self.get_card(tenant_id, card_id)
        if card.is_terminal:
            return LifecycleResult(accepted=False, card=card, reason=RejectionReason.ALREADY_RESOLVED)

        rules = await self.store.list_rules(tenant_id)
        path = self.scheduler.compute_path(card, rules, now)
        if path.current_level >= self.scheduler.max_level:
            logger.info(
                "card_escalate_rejected",
                tenant_id=tenant_id,
                card_id=card_id,
                level=path.current_level,
            )
            return LifecycleResult(accepted=False, card=card, reason=RejectionReason.MAX_LEVEL)

        new_role = to_role or path.next_escalation_role or FALLBACK_ESCALATION_ROLE
        from_level, from_role = card.escalation_level, card.owner_role
        card = card.model_copy(update={
            "owner_role": new_role,
            "escalation_level": path.current_level + 1,
            "owner_overridden": True,
            "updated_at": now,
        })
        await self.store.save_card(card)
        await self._history(card, EscalationKind.MANUAL, from_level, from_role, actor, reason, now)

        logger.info(
            "card_escalated",
            tenant_id=tenant_id,
            card_id=card_id,
            kind=EscalationKind.MANUAL.value,
            from_level=from_level,
            to_level=card.escalation_level,
            owner_role=new_role.value,
            actor=actor,
        )
        return LifecycleResult(accepted=True, card=card)

    async def reset_override(
        self,
        tenant_id: str,
        card_id: str,
        actor: str,
        now: Optional[datetime] = None,
    ) -> LifecycleResult:
        """Drop a manual override and hand the card back to the rule."""
        now = now or self._clock()
        card = await self.get_card(tenant_id, card_id)
        if card.is_terminal:
            return LifecycleResult(accepted=False, card=card, reason=RejectionReason.ALREADY_RESOLVED)
        if not card.owner_overridden:
            return LifecycleResult(accepted=False, card=card, reason=RejectionReason.NOT_OVERRIDDEN)

        from_level, from_role = card.escalation_level, card.owner_role
        card = card.model_copy(update={"owner_overridden": False})
        rules = await self.store.list_rules(tenant_id)
        path = self.scheduler.compute_path(card, rules, now)
        card = card.model_copy(update={
            "owner_role": path.current_owner_role,
            "escalation_level": path.current_level,
            "updated_at": now,
        })
        await self.store.save_card(card)
        await self._history(card, EscalationKind.OVERRIDE_RESET, from_level, from_role, actor, None, now)

        logger.info(
            "card_override_reset",
            tenant_id=tenant_id,
            card_id=card_id,
            owner_role=card.owner_role.value,
            level=card.escalation_level,
        )
        return LifecycleResult(accepted=True, card=card)

    async def apply_escalation(
        self, tenant_id: str, now: Optional[datetime] = None
    ) -> list[DecisionCard]:
        """
        Write computed owner and level back to open cards that drifted.

        Reads never need this; it keeps stored owners current for hosts that
        query the store directly.
        """
        now = now or self._clock()
        rules = await self.store.list_rules(tenant_id)
        open_statuses = [s for s in CardStatus if s not in TERMINAL_STATUSES]

        updated: list[DecisionCard] = []
        for card in await self.store.list_cards(tenant_id, open_statuses):
            path = self.scheduler.compute_path(card, rules, now)
            if path.rule_id is None or path.is_overridden:
                continue
            if (
                path.current_level == card.escalation_level
                and path.current_owner_role == card.owner_role
                and not card.owner_overridden
            ):
                continue

            from_level, from_role = card.escalation_level, card.owner_role
            card = card.model_copy(update={
                "owner_role": path.current_owner_role,
                "escalation_level": path.current_level,
                "owner_overridden": False,
                "updated_at": now,
            })
            await self.store.save_card(card)
            await self._history(
                card, EscalationKind.AUTO, from_level, from_role, SYSTEM_ACTOR,
                f"rule {path.rule_id}", now,
            )
            logger.info(
                "card_escalated",
                tenant_id=tenant_id,
                card_id=card.id,
                kind=EscalationKind.AUTO.value,
                from_level=from_level,
                to_level=card.escalation_level,
                owner_role=card.owner_role.value,
            )
            updated.append(card)
        return updated

    # ── Alert links ──────────────────────────────────────────────────────

    async def link_to_alert(
        self,
        tenant_id: str,
        card_id: str,
        alert_id: str,
        now: Optional[datetime] = None,
    ) -> LifecycleResult:
        now = now or self._clock()
        card = await self.get_card(tenant_id, card_id)
        if card.is_terminal:
            return LifecycleResult(accepted=False, card=card, reason=RejectionReason.ALREADY_RESOLVED)

        existing = await self.store.get_link(tenant_id, alert_id)
        if existing is not None:
            if existing.card_id == card_id:
                return LifecycleResult(accepted=False, card=card, reason=RejectionReason.NO_CHANGE)
            logger.info(
                "alert_link_rejected",
                tenant_id=tenant_id,
                alert_id=alert_id,
                card_id=card_id,
                linked_card_id=existing.card_id,
            )
            return LifecycleResult(
                accepted=False, card=card, reason=RejectionReason.ALERT_ALREADY_LINKED
            )

        await self.store.save_link(AlertLink(
            tenant_id=tenant_id,
            alert_id=alert_id,
            card_id=card_id,
            linked_at=now,
        ))
        logger.info("alert_linked", tenant_id=tenant_id, alert_id=alert_id, card_id=card_id)
        return LifecycleResult(accepted=True, card=card)

    async def resolve_alerts_by_card(
        self,
        tenant_id: str,
        card_id: str,
        resolution: str,
        now: Optional[datetime] = None,
    ) -> int:
        """Resolve every still-open alert linked to the card. Returns the count."""
        now = now or self._clock()
        resolved = 0
        for link in await self.store.list_links(tenant_id, card_id):
            if link.resolved_at is not None:
                continue
            await self.store.save_link(link.model_copy(update={
                "resolved_at": now,
                "resolution": resolution,
            }))
            resolved += 1
        if resolved:
            logger.info(
                "alerts_resolved_by_card",
                tenant_id=tenant_id,
                card_id=card_id,
                count=resolved,
                resolution=resolution,
            )
        return resolved

    async def visible_alerts(self, tenant_id: str, alert_ids: list[str]) -> list[str]:
        """Alert ids not attached to any card, in input order."""
        linked = await self.store.linked_alert_ids(tenant_id, alert_ids)
        return [a for a in alert_ids if a not in linked]

    # ── Stats ────────────────────────────────────────────────────────────

    async def card_stats(self, tenant_id: str, now: Optional[datetime] = None) -> CardStats:
        now = now or self._clock()
        cards = await self.store.list_cards(tenant_id)

        by_status = {s: 0 for s in CardStatus}
        open_by_priority = {p: 0 for p in CardPriority}
        overdue = 0
        open_impact: list[float] = []
        for card in cards:
            by_status[card.status] += 1
            if card.is_terminal:
                continue
            open_by_priority[card.priority] += 1
            open_impact.append(card.impact_amount)
            if card.is_overdue(now):
                overdue += 1

        return CardStats(
            tenant_id=tenant_id,
            total=len(cards),
            by_status=by_status,
            open_by_priority=open_by_priority,
            overdue=overdue,
            open_impact=math.fsum(open_impact),
        )

    # ── Internals ────────────────────────────────────────────────────────

    async def _audit(
        self,
        card: DecisionCard,
        action: AuditAction,
        actor: str,
        from_status: Optional[CardStatus],
        now: datetime,
        comment: Optional[str] = None,
        dismiss_reason: Optional[DismissReason] = None,
    ) -> None:
        await self.store.append_audit(AuditEntry(
            id=self._new_id(),
            tenant_id=card.tenant_id,
            card_id=card.id,
            action=action,
            actor=actor,
            from_status=from_status,
            to_status=card.status,
            comment=comment,
            dismiss_reason=dismiss_reason,
            created_at=now,
        ))

    async def _history(
        self,
        card: DecisionCard,
        kind: EscalationKind,
        from_level: int,
        from_role: Optional[OwnerRole],
        actor: Optional[str],
        reason: Optional[str],
        now: datetime,
    ) -> None:
        await self.store.append_history(EscalationHistoryEntry(
            id=self._new_id(),
            tenant_id=card.tenant_id,
            card_id=card.id,
            kind=kind,
            from_level=from_level,
            to_level=card.escalation_level,
            from_role=from_role,
            to_role=card.owner_role,
            actor=actor,
            reason=reason,
            created_at=now,
        ))

    async def _notify(self, card: DecisionCard, kind: NotificationKind, now: datetime) -> None:
        await self.emitter.emit(NotificationEvent(
            kind=kind,
            tenant_id=card.tenant_id,
            card_id=card.id,
            status=card.status,
            owner_role=card.owner_role,
            impact_amount=card.impact_amount,
            impact_currency=card.impact_currency,
            emitted_at=now,
        ))
