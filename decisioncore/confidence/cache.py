"""
Tier Cache — bounded, in-memory cache of resolved metrics.

Each entry lives for the TTL of the tier it resolved to. LOCKED values are
finalized upstream and cached longest; ESTIMATED values are cheap to recompute
and cached shortest. Eviction is least-recently-used once max_entries is hit.

State is per process; every key is scoped by tenant.
"""

import json
from collections import OrderedDict
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional

import structlog

from decisioncore.confidence.schemas import ConfidenceTier, ResolvedMetric

logger = structlog.get_logger(__name__)

# TTL in seconds per tier
DEFAULT_TIER_TTLS: dict[ConfidenceTier, int] = {
    ConfidenceTier.LOCKED: 3600,
    ConfidenceTier.OBSERVED: 300,
    ConfidenceTier.ESTIMATED: 60,
}

MAX_ENTRIES: int = 1024


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def cache_key(
    tenant_id: str,
    metric_key: str,
    estimated_default: Optional[float] = None,
    context: Optional[dict[str, Any]] = None,
) -> str:
    """Same tenant + metric + default + context → same key."""
    ctx = json.dumps(context or {}, sort_keys=True, default=str)
    return f"{tenant_id}|{metric_key}|{estimated_default}|{ctx}"


class TierCache:
    """LRU cache with per-tier expiry."""

    def __init__(
        self,
        ttls: Optional[dict[ConfidenceTier, int]] = None,
        max_entries: int = MAX_ENTRIES,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.ttls = {**DEFAULT_TIER_TTLS, **(ttls or {})}
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.max_entries = max_entries
        self._clock = clock or _utcnow
        # key → (expires_at, metric)
        self._entries: OrderedDict[str, tuple[datetime, ResolvedMetric]] = OrderedDict()

    @classmethod
    def from_settings(cls, settings) -> "TierCache":
        return cls(
            ttls={
                ConfidenceTier.LOCKED: settings.cache_ttl_locked_seconds,
                ConfidenceTier.OBSERVED: settings.cache_ttl_observed_seconds,
                ConfidenceTier.ESTIMATED: settings.cache_ttl_estimated_seconds,
            },
            max_entries=settings.cache_max_entries,
        )

    def get(self, key: str) -> Optional[ResolvedMetric]:
        """Return the cached metric, or None on miss / expiry."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, metric = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            return None
        self._entries.move_to_end(key)
        return metric

    def put(self, key: str, metric: ResolvedMetric) -> None:
        ttl = self.ttls.get(metric.tier, 0)
        if ttl <= 0:
            return
        self._entries[key] = (self._clock() + timedelta(seconds=ttl), metric)
        self._entries.move_to_end(key)
        while len(self._entries) > self.max_entries:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug("tier_cache_evicted", key=evicted)

    def invalidate(self, tenant_id: str, metric_key: Optional[str] = None) -> int:
        """Drop a tenant's entries (optionally for one metric). Returns count dropped."""
        prefix = f"{tenant_id}|" if metric_key is None else f"{tenant_id}|{metric_key}|"
        stale = [k for k in self._entries if k.startswith(prefix)]
        for k in stale:
            del self._entries[k]
        return len(stale)

    def reset(self) -> None:
        """Reset all state (for testing)."""
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
