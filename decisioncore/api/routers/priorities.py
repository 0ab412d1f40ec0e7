"""
Priority Queue API.

POST /api/v1/priorities/aggregate — rank a batch of signals for the tenant
"""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from decisioncore.api.deps import get_aggregator, get_tenant_id
from decisioncore.signals.aggregator import SignalAggregator
from decisioncore.signals.schemas import AggregateRequest, PriorityQueue

router = APIRouter(prefix="/api/v1/priorities", tags=["priorities"])


@router.post("/aggregate", response_model=PriorityQueue)
async def aggregate_signals(
    body: AggregateRequest,
    tenant_id: str = Depends(get_tenant_id),
    aggregator: SignalAggregator = Depends(get_aggregator),
):
    """Aggregate host-supplied signals into a ranked, capped queue."""
    items = aggregator.aggregate(tenant_id, body.signals, body.max_items)
    return PriorityQueue(
        tenant_id=tenant_id,
        items=items,
        n_signals=len(body.signals),
        generated_at=datetime.now(timezone.utc),
    )
