"""
DecisionCore — FastAPI Application.

Host integration surface for the engine.
Run: uvicorn decisioncore.main:app --host 0.0.0.0 --port 8000 --reload

  - POST /api/v1/priorities/aggregate   ← rank signals
  - /api/v1/cards/*                     ← decision card lifecycle
  - /api/v1/escalation-rules            ← tenant escalation configuration
  - POST /api/v1/alerts/visible         ← alert feed visibility filter
  - GET  /health                        ← health check
"""

from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import FastAPI

from decisioncore.config import Settings, settings as default_settings
from decisioncore.db import build_store
from decisioncore.decisions.lifecycle import DecisionCardService
from decisioncore.decisions.notifications import NotificationEmitter
from decisioncore.decisions.store import CardStore
from decisioncore.logging_config import configure_logging
from decisioncore.middleware.error_handler import ErrorHandlerMiddleware
from decisioncore.middleware.tenant import TenantMiddleware
from decisioncore.signals.aggregator import SignalAggregator

from decisioncore.api.routers.alerts import router as alerts_router
from decisioncore.api.routers.cards import router as cards_router
from decisioncore.api.routers.escalation_rules import router as escalation_rules_router
from decisioncore.api.routers.priorities import router as priorities_router

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan — startup and shutdown."""
    app_settings: Settings = app.state.settings
    logger.info(
        "decisioncore_starting",
        version=app_settings.app_version,
        card_store=app_settings.card_store,
    )
    if app_settings.card_store.lower() == "sql":
        from decisioncore.db.engine import close_db, init_db

        await init_db()
        yield
        await close_db()
    else:
        yield
    logger.info("decisioncore_shutdown")


def create_app(
    app_settings: Optional[Settings] = None,
    store: Optional[CardStore] = None,
    emitter: Optional[NotificationEmitter] = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""
    app_settings = app_settings or default_settings
    configure_logging(app_settings.log_level, app_settings.log_format)

    app = FastAPI(
        title=app_settings.app_name,
        description=(
            "# DecisionCore — Confidence & Priority Engine\n\n"
            "- **Priorities**: Signals → Aggregation → Ranked queue\n"
            "- **Decision Cards**: Create → Transition → Expire / Reactivate\n"
            "- **Escalation**: computed on read from tenant rules\n\n"
            "## Tenant context\n"
            "All endpoints except /health require an `X-Tenant-ID` header. "
            "`X-User-ID` names the actor recorded in audit entries.\n"
        ),
        version=app_settings.app_version,
        lifespan=lifespan,
        docs_url="/docs" if app_settings.debug else None,
        redoc_url="/redoc" if app_settings.debug else None,
    )

    app.state.settings = app_settings
    app.state.aggregator = SignalAggregator.from_settings(app_settings)
    app.state.card_service = DecisionCardService.from_settings(
        app_settings,
        store=store if store is not None else build_store(app_settings),
        emitter=emitter,
    )

    # ── Middleware (last added = outermost) ──────────────────────────
    app.add_middleware(TenantMiddleware)
    app.add_middleware(ErrorHandlerMiddleware)

    # ── Routes ───────────────────────────────────────────────────────
    app.include_router(priorities_router)
    app.include_router(cards_router)
    app.include_router(escalation_rules_router)
    app.include_router(alerts_router)

    @app.get("/health", tags=["health"])
    async def health():
        return {"status": "healthy", "version": app_settings.app_version}

    return app


app = create_app()
