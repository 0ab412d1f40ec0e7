"""
FastAPI dependencies for tenant context and engine services.

Services are built once in create_app() and hung off app.state.
"""

from fastapi import HTTPException, Request

from decisioncore.decisions.lifecycle import DecisionCardService
from decisioncore.decisions.store import CardStore
from decisioncore.signals.aggregator import SignalAggregator

ANONYMOUS_ACTOR = "anonymous"


def get_tenant_id(request: Request) -> str:
    """Extract tenant_id from request state (set by TenantMiddleware)."""
    tenant_id = getattr(request.state, "tenant_id", None)
    if not tenant_id:
        raise HTTPException(status_code=401, detail="Missing tenant context")
    return tenant_id


def get_actor(request: Request) -> str:
    return getattr(request.state, "user_id", None) or ANONYMOUS_ACTOR


def get_card_service(request: Request) -> DecisionCardService:
    return request.app.state.card_service


def get_store(request: Request) -> CardStore:
    return request.app.state.card_service.store


def get_aggregator(request: Request) -> SignalAggregator:
    return request.app.state.aggregator
