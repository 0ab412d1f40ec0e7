"""
Escalation Rule API.

GET  /api/v1/escalation-rules — list the tenant's rules in selection order
POST /api/v1/escalation-rules — create or replace a rule
"""

import uuid

from fastapi import APIRouter, Depends, HTTPException
from pydantic import ValidationError

from decisioncore.api.deps import get_store, get_tenant_id
from decisioncore.decisions.store import CardStore
from decisioncore.escalation.schemas import EscalationRule, EscalationRuleCreateRequest

router = APIRouter(prefix="/api/v1/escalation-rules", tags=["escalation"])


@router.get("", response_model=list[EscalationRule])
async def list_rules(
    tenant_id: str = Depends(get_tenant_id),
    store: CardStore = Depends(get_store),
):
    rules = await store.list_rules(tenant_id)
    return sorted(rules, key=lambda r: (r.priority, r.id))


@router.post("", response_model=EscalationRule, status_code=201)
async def create_rule(
    body: EscalationRuleCreateRequest,
    tenant_id: str = Depends(get_tenant_id),
    store: CardStore = Depends(get_store),
):
    """Thresholds must satisfy warning <= escalation <= final."""
    data = body.model_dump()
    data["id"] = data["id"] or f"rule_{uuid.uuid4().hex[:12]}"
    try:
        rule = EscalationRule(tenant_id=tenant_id, **data)
    except ValidationError as e:
        raise HTTPException(
            status_code=422,
            detail=e.errors(include_url=False, include_context=False, include_input=False),
        )
    return await store.save_rule(rule)
