"""
Alert Feed API.

POST /api/v1/alerts/visible — filter out alerts already attached to a card
"""

from fastapi import APIRouter, Depends

from decisioncore.api.deps import get_card_service, get_tenant_id
from decisioncore.decisions.lifecycle import DecisionCardService
from decisioncore.decisions.schemas import VisibleAlertsRequest, VisibleAlertsResponse

router = APIRouter(prefix="/api/v1/alerts", tags=["alerts"])


@router.post("/visible", response_model=VisibleAlertsResponse)
async def visible_alerts(
    body: VisibleAlertsRequest,
    tenant_id: str = Depends(get_tenant_id),
    service: DecisionCardService = Depends(get_card_service),
):
    visible = await service.visible_alerts(tenant_id, body.alert_ids)
    return VisibleAlertsResponse(alert_ids=visible)
