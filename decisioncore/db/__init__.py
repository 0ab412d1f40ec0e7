"""
Persistence — SQLAlchemy async engine, ORM models and the SQL CardStore.
"""

import structlog

from decisioncore.decisions.store import CardStore, InMemoryCardStore
from decisioncore.exceptions import InvalidConfigurationError

logger = structlog.get_logger(__name__)


def build_store(settings) -> CardStore:
    """Pick the card store named by ``settings.card_store``."""
    kind = settings.card_store.lower()
    if kind == "memory":
        logger.info("card_store_selected", store="memory")
        return InMemoryCardStore()
    if kind == "sql":
        from decisioncore.db.engine import get_session_factory
        from decisioncore.db.repositories import SqlCardStore

        logger.info("card_store_selected", store="sql")
        return SqlCardStore(get_session_factory())
    raise InvalidConfigurationError(
        f"Unknown card store '{settings.card_store}' (expected 'memory' or 'sql')",
        config_key="card_store",
    )
