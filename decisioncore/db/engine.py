"""
Async SQLAlchemy plumbing for the SQL-backed card store.

One engine and one session factory per process, built on first use from
``settings.async_database_url`` (asyncpg for Postgres, aiosqlite otherwise).
Nothing here is touched unless ``CARD_STORE=sql``.
"""

from typing import Any, Optional

import structlog
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from decisioncore.config import settings

logger = structlog.get_logger(__name__)


class Base(DeclarativeBase):
    """Metadata root for cards, audit, escalation history, rules and alert links."""


class _DatabaseState:
    engine: Optional[AsyncEngine] = None
    sessions: Optional[async_sessionmaker[AsyncSession]] = None


_state = _DatabaseState()


def _engine_options(url: str) -> dict[str, Any]:
    options: dict[str, Any] = {"echo": settings.debug}
    # SQLite pools do not recycle connections
    if not make_url(url).get_backend_name().startswith("sqlite"):
        options["pool_recycle"] = settings.db_pool_recycle
        options["pool_pre_ping"] = True
    return options


def get_engine() -> AsyncEngine:
    if _state.engine is None:
        url = settings.async_database_url
        _state.engine = create_async_engine(url, **_engine_options(url))
        logger.info("database_engine_created", backend=make_url(url).get_backend_name())
    return _state.engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Sessions keep loaded rows usable after commit; repositories return plain models."""
    if _state.sessions is None:
        _state.sessions = async_sessionmaker(
            get_engine(), class_=AsyncSession, expire_on_commit=False,
        )
    return _state.sessions


async def init_db() -> None:
    """
    Bind the engine and, in development, create any missing tables.

    Other environments own their schema; the engine only connects.
    """
    from decisioncore.db import models  # noqa: F401  registers tables on Base

    engine = get_engine()
    if settings.environment.lower() != "development":
        logger.info("schema_create_skipped", environment=settings.environment)
        return

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("schema_created", tables=sorted(Base.metadata.tables))


async def close_db() -> None:
    engine, _state.engine, _state.sessions = _state.engine, None, None
    if engine is not None:
        await engine.dispose()
        logger.info("database_engine_disposed")
