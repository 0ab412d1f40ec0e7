"""
Decision Card API.

POST /api/v1/cards                        — promote a signal to a card
POST /api/v1/cards/from-item              — promote a ranked PriorityItem
GET  /api/v1/cards                        — list cards (optional ?status=)
GET  /api/v1/cards/stats                  — counts by status and priority
POST /api/v1/cards/expire                 — expire overdue cards
POST /api/v1/cards/escalate-due           — write computed escalation back
GET  /api/v1/cards/{card_id}              — one card
POST /api/v1/cards/{card_id}/transition   — APPROVE / REJECT / SNOOZE / ACKNOWLEDGE / START
POST /api/v1/cards/{card_id}/escalate     — manual escalation
POST /api/v1/cards/{card_id}/reset-override
POST /api/v1/cards/{card_id}/reactivate
GET  /api/v1/cards/{card_id}/escalation   — computed escalation path
GET  /api/v1/cards/{card_id}/audit
GET  /api/v1/cards/{card_id}/history      — escalation history
POST /api/v1/cards/{card_id}/alerts       — attach a monitoring alert

Refused operations answer 200 with accepted=false and a reason.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from decisioncore.api.deps import get_actor, get_card_service, get_tenant_id
from decisioncore.decisions.lifecycle import DecisionCardService
from decisioncore.decisions.schemas import (
    AlertLinkRequest,
    AuditEntry,
    CardCreateRequest,
    CardStats,
    CardStatus,
    DecisionCard,
    EscalateRequest,
    EscalationHistoryEntry,
    LifecycleResult,
    ReactivateRequest,
    TransitionRequest,
)
from decisioncore.escalation.schemas import EscalationPath
from decisioncore.signals.schemas import PriorityItem, Signal

router = APIRouter(prefix="/api/v1/cards", tags=["cards"])


# ── Collection ─────────────────────────────────────────────────────────


@router.post("", response_model=LifecycleResult)
async def create_card(
    body: CardCreateRequest,
    tenant_id: str = Depends(get_tenant_id),
    actor: str = Depends(get_actor),
    service: DecisionCardService = Depends(get_card_service),
):
    signal = Signal(
        subject_id=body.subject_id,
        category=body.category,
        amount=body.impact_amount,
        eta_days=body.eta_days,
        source="api",
    )
    return await service.create_from_signal(
        tenant_id, signal, actor=actor, urgency=body.urgency, title=body.title
    )


@router.post("/from-item", response_model=LifecycleResult)
async def create_card_from_item(
    body: PriorityItem,
    tenant_id: str = Depends(get_tenant_id),
    actor: str = Depends(get_actor),
    service: DecisionCardService = Depends(get_card_service),
):
    return await service.create_from_item(tenant_id, body, actor=actor)


@router.get("", response_model=list[DecisionCard])
async def list_cards(
    status: Optional[list[CardStatus]] = Query(default=None),
    tenant_id: str = Depends(get_tenant_id),
    service: DecisionCardService = Depends(get_card_service),
):
    return await service.list_cards(tenant_id, status)


@router.get("/stats", response_model=CardStats)
async def card_stats(
    tenant_id: str = Depends(get_tenant_id),
    service: DecisionCardService = Depends(get_card_service),
):
    return await service.card_stats(tenant_id)


@router.post("/expire", response_model=list[DecisionCard])
async def expire_overdue(
    tenant_id: str = Depends(get_tenant_id),
    service: DecisionCardService = Depends(get_card_service),
):
    return await service.expire_overdue(tenant_id)


@router.post("/escalate-due", response_model=list[DecisionCard])
async def apply_escalation(
    tenant_id: str = Depends(get_tenant_id),
    service: DecisionCardService = Depends(get_card_service),
):
    return await service.apply_escalation(tenant_id)


# ── Single card ────────────────────────────────────────────────────────


@router.get("/{card_id}", response_model=DecisionCard)
async def get_card(
    card_id: str,
    tenant_id: str = Depends(get_tenant_id),
    service: DecisionCardService = Depends(get_card_service),
):
    return await service.get_card(tenant_id, card_id)


@router.post("/{card_id}/transition", response_model=LifecycleResult)
async def transition_card(
    card_id: str,
    body: TransitionRequest,
    tenant_id: str = Depends(get_tenant_id),
    actor: str = Depends(get_actor),
    service: DecisionCardService = Depends(get_card_service),
):
    return await service.transition(
        tenant_id,
        card_id,
        body.action,
        actor=actor,
        comment=body.comment,
        dismiss_reason=body.dismiss_reason,
    )


@router.post("/{card_id}/escalate", response_model=LifecycleResult)
async def escalate_card(
    card_id: str,
    body: EscalateRequest,
    tenant_id: str = Depends(get_tenant_id),
    actor: str = Depends(get_actor),
    service: DecisionCardService = Depends(get_card_service),
):
    return await service.escalate(
        tenant_id, card_id, actor=actor, to_role=body.to_role, reason=body.reason
    )


@router.post("/{card_id}/reset-override", response_model=LifecycleResult)
async def reset_override(
    card_id: str,
    tenant_id: str = Depends(get_tenant_id),
    actor: str = Depends(get_actor),
    service: DecisionCardService = Depends(get_card_service),
):
    return await service.reset_override(tenant_id, card_id, actor=actor)


@router.post("/{card_id}/reactivate", response_model=LifecycleResult)
async def reactivate_card(
    card_id: str,
    body: ReactivateRequest,
    tenant_id: str = Depends(get_tenant_id),
    actor: str = Depends(get_actor),
    service: DecisionCardService = Depends(get_card_service),
):
    return await service.reactivate(tenant_id, card_id, actor=actor, reason=body.reason)


@router.get("/{card_id}/escalation", response_model=EscalationPath)
async def escalation_path(
    card_id: str,
    tenant_id: str = Depends(get_tenant_id),
    service: DecisionCardService = Depends(get_card_service),
):
    return await service.get_path(tenant_id, card_id)


@router.get("/{card_id}/audit", response_model=list[AuditEntry])
async def card_audit(
    card_id: str,
    tenant_id: str = Depends(get_tenant_id),
    service: DecisionCardService = Depends(get_card_service),
):
    return await service.list_audit(tenant_id, card_id)


@router.get("/{card_id}/history", response_model=list[EscalationHistoryEntry])
async def card_history(
    card_id: str,
    tenant_id: str = Depends(get_tenant_id),
    service: DecisionCardService = Depends(get_card_service),
):
    return await service.list_history(tenant_id, card_id)


@router.post("/{card_id}/alerts", response_model=LifecycleResult)
async def link_alert(
    card_id: str,
    body: AlertLinkRequest,
    tenant_id: str = Depends(get_tenant_id),
    service: DecisionCardService = Depends(get_card_service),
):
    return await service.link_to_alert(tenant_id, card_id, body.alert_id)
