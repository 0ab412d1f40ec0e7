"""
DecisionCore Configuration.

Every tunable the engine reads: thresholds, deadlines, cache TTLs and storage.
Values come from the process environment or a local ``.env`` file.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Field names are snake_case; the environment uses the upper-case aliases."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # ── Application ──────────────────────────────────────────────────────
    app_name: str = "DecisionCore"
    app_version: str = "1.0.0"
    environment: str = Field(default="development", alias="ENVIRONMENT")
    debug: bool = Field(default=False, alias="DEBUG")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_format: str = Field(default="console", alias="LOG_FORMAT")

    # ── Storage ──────────────────────────────────────────────────────────
    card_store: str = Field(
        default="memory", alias="CARD_STORE",
        description="'memory' for the in-process store, 'sql' for SQLAlchemy",
    )
    database_url: str = Field(
        default="sqlite+aiosqlite:///./decisioncore.db",
        alias="DATABASE_URL",
    )
    db_pool_recycle: int = Field(default=3600, alias="DB_POOL_RECYCLE")

    # ── Confidence Resolver ──────────────────────────────────────────────
    provider_timeout_seconds: float = Field(default=2.0, alias="PROVIDER_TIMEOUT_SECONDS")
    cache_ttl_locked_seconds: int = Field(default=3600, alias="CACHE_TTL_LOCKED_SECONDS")
    cache_ttl_observed_seconds: int = Field(default=300, alias="CACHE_TTL_OBSERVED_SECONDS")
    cache_ttl_estimated_seconds: int = Field(default=60, alias="CACHE_TTL_ESTIMATED_SECONDS")
    cache_max_entries: int = Field(default=1024, alias="CACHE_MAX_ENTRIES")

    # ── Signal Aggregation ───────────────────────────────────────────────
    priority_max_items: int = Field(default=7, alias="PRIORITY_MAX_ITEMS")
    urgency_critical_damage: float = Field(default=500_000_000.0, alias="URGENCY_CRITICAL_DAMAGE")
    urgency_urgent_damage: float = Field(default=100_000_000.0, alias="URGENCY_URGENT_DAMAGE")
    urgency_critical_eta_days: int = Field(default=7, alias="URGENCY_CRITICAL_ETA_DAYS")
    urgency_urgent_eta_days: int = Field(default=14, alias="URGENCY_URGENT_ETA_DAYS")
    collector_timeout_seconds: float = Field(default=10.0, alias="COLLECTOR_TIMEOUT_SECONDS")

    # ── Decision Cards ───────────────────────────────────────────────────
    review_window_hours: int = Field(default=168, alias="REVIEW_WINDOW_HOURS")
    deadline_p1_hours: int = Field(default=4, alias="DEADLINE_P1_HOURS")
    deadline_p2_hours: int = Field(default=48, alias="DEADLINE_P2_HOURS")
    deadline_p3_hours: int = Field(default=168, alias="DEADLINE_P3_HOURS")
    snooze_hours: int = Field(default=24, alias="SNOOZE_HOURS")
    default_currency: str = Field(default="VND", alias="DEFAULT_CURRENCY")

    # ── Escalation ───────────────────────────────────────────────────────
    max_escalation_level: int = Field(default=3, ge=1, alias="MAX_ESCALATION_LEVEL")

    @property
    def async_database_url(self) -> str:
        """``DATABASE_URL`` with a bare scheme swapped for its async driver."""
        scheme, sep, rest = self.database_url.partition("://")
        return f"{_ASYNC_DRIVERS.get(scheme, scheme)}{sep}{rest}"


_ASYNC_DRIVERS = {
    "postgresql": "postgresql+asyncpg",
    "postgres": "postgresql+asyncpg",
    "sqlite": "sqlite+aiosqlite",
}


settings = Settings()
