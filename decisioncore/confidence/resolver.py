"""
Confidence Resolver — resolve a metric through a fixed fallback chain.

Chain (strict order, first success wins):
1. LOCKED:    a different module's finalized value for this metric
2. OBSERVED:  aggregated from this module's own transactional data
3. ESTIMATED: caller-supplied default, else an industry benchmark

Provider errors and timeouts count as "absent" and fall through. The only
hard failure is a missing estimate, which is a caller bug.
"""

import asyncio
import math
from datetime import datetime, timezone
from typing import Any, Callable, Optional, Protocol, runtime_checkable

import structlog

from decisioncore.confidence.benchmarks import DEFAULT_BENCHMARKS, benchmark_source_id
from decisioncore.confidence.cache import TierCache, cache_key
from decisioncore.confidence.schemas import ConfidenceTier, MetricRequest, ResolvedMetric
from decisioncore.exceptions import MissingEstimateError

logger = structlog.get_logger(__name__)

PROVIDER_TIMEOUT_SECONDS: float = 2.0
CALLER_DEFAULT_SOURCE: str = "caller_default"


@runtime_checkable
class MetricProvider(Protocol):
    """A value source for one tier. Returns None when it has nothing."""

    source_id: str
    module: str

    async def fetch(
        self, tenant_id: str, metric_key: str, context: dict[str, Any]
    ) -> Optional[float]:
        ...


class InMemoryMetricProvider:
    """Dict-backed provider: tenant_id → metric_key → value."""

    def __init__(self, source_id: str, module: str):
        self.source_id = source_id
        self.module = module
        self._values: dict[str, dict[str, float]] = {}

    def set(self, tenant_id: str, metric_key: str, value: Optional[float]) -> None:
        self._values.setdefault(tenant_id, {})[metric_key] = value

    def clear(self, tenant_id: Optional[str] = None) -> None:
        if tenant_id is None:
            self._values.clear()
        else:
            self._values.pop(tenant_id, None)

    async def fetch(
        self, tenant_id: str, metric_key: str, context: dict[str, Any]
    ) -> Optional[float]:
        return self._values.get(tenant_id, {}).get(metric_key)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _is_present(value: Any) -> bool:
    if value is None:
        return False
    try:
        return math.isfinite(float(value))
    except (TypeError, ValueError):
        return False


class ConfidenceResolver:
    """
    Resolve metrics to a value plus trust tier.

    Stateless apart from the optional TierCache; every call is independent,
    so resolutions for different metric keys may run concurrently.
    """

    def __init__(
        self,
        locked_provider: Optional[MetricProvider] = None,
        observed_provider: Optional[MetricProvider] = None,
        benchmarks: Optional[dict[str, float]] = None,
        cache: Optional[TierCache] = None,
        timeout_seconds: float = PROVIDER_TIMEOUT_SECONDS,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.locked_provider = locked_provider
        self.observed_provider = observed_provider
        self.benchmarks = DEFAULT_BENCHMARKS.copy() if benchmarks is None else dict(benchmarks)
        self.cache = cache
        self.timeout_seconds = timeout_seconds
        self._clock = clock or _utcnow

    @classmethod
    def from_settings(
        cls,
        settings,
        locked_provider: Optional[MetricProvider] = None,
        observed_provider: Optional[MetricProvider] = None,
    ) -> "ConfidenceResolver":
        return cls(
            locked_provider=locked_provider,
            observed_provider=observed_provider,
            cache=TierCache.from_settings(settings),
            timeout_seconds=settings.provider_timeout_seconds,
        )

    async def resolve(
        self,
        tenant_id: str,
        metric_key: str,
        estimated_default: Optional[float] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> ResolvedMetric:
        """
        Resolve one metric. Never returns None.

        Raises:
            MissingEstimateError: neither provider answered and no estimate exists
        """
        context = context or {}
        key = cache_key(tenant_id, metric_key, estimated_default, context)

        if self.cache is not None:
            cached = self.cache.get(key)
            if cached is not None:
                return cached.model_copy(update={"resolved_at": self._clock()})

        metric = await self._resolve_chain(tenant_id, metric_key, estimated_default, context)

        if self.cache is not None:
            self.cache.put(key, metric)
        return metric

    async def resolve_many(
        self,
        tenant_id: str,
        requests: list[MetricRequest],
    ) -> list[ResolvedMetric]:
        """
        Resolve several requests concurrently, one result per request in
        request order. Repeated metric keys resolve independently.
        """
        return list(await asyncio.gather(*(
            self.resolve(tenant_id, r.metric_key, r.estimated_default, r.context)
            for r in requests
        )))

    async def _resolve_chain(
        self,
        tenant_id: str,
        metric_key: str,
        estimated_default: Optional[float],
        context: dict[str, Any],
    ) -> ResolvedMetric:
        # ── 1. Cross-module locked ───────────────────────────────────
        value = await self._query(self.locked_provider, ConfidenceTier.LOCKED, tenant_id, metric_key, context)
        if value is not None:
            return ResolvedMetric(
                metric_key=metric_key,
                value=value,
                tier=ConfidenceTier.LOCKED,
                source_id=self.locked_provider.source_id,
                source_module=self.locked_provider.module,
                is_cross_module=True,
                resolved_at=self._clock(),
            )

        # ── 2. Same-module observed ──────────────────────────────────
        value = await self._query(self.observed_provider, ConfidenceTier.OBSERVED, tenant_id, metric_key, context)
        if value is not None:
            return ResolvedMetric(
                metric_key=metric_key,
                value=value,
                tier=ConfidenceTier.OBSERVED,
                source_id=self.observed_provider.source_id,
                is_cross_module=False,
                resolved_at=self._clock(),
            )

        # ── 3. Estimated ─────────────────────────────────────────────
        if estimated_default is not None:
            value, source_id = float(estimated_default), CALLER_DEFAULT_SOURCE
        elif metric_key in self.benchmarks:
            value, source_id = float(self.benchmarks[metric_key]), benchmark_source_id(metric_key)
        else:
            logger.error("metric_estimate_missing", tenant_id=tenant_id, metric_key=metric_key)
            raise MissingEstimateError(metric_key)

        logger.debug(
            "metric_resolved_estimated",
            tenant_id=tenant_id,
            metric_key=metric_key,
            source_id=source_id,
        )
        return ResolvedMetric(
            metric_key=metric_key,
            value=value,
            tier=ConfidenceTier.ESTIMATED,
            source_id=source_id,
            is_cross_module=False,
            resolved_at=self._clock(),
        )

    async def _query(
        self,
        provider: Optional[MetricProvider],
        tier: ConfidenceTier,
        tenant_id: str,
        metric_key: str,
        context: dict[str, Any],
    ) -> Optional[float]:
        """Ask one provider. Errors, timeouts and non-finite values all mean absent."""
        if provider is None:
            return None
        try:
            value = await asyncio.wait_for(
                provider.fetch(tenant_id, metric_key, context),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning(
                "metric_provider_timeout",
                tier=tier.value,
                source_id=provider.source_id,
                tenant_id=tenant_id,
                metric_key=metric_key,
                timeout_seconds=self.timeout_seconds,
            )
            return None
        except Exception as e:
            logger.warning(
                "metric_provider_failed",
                tier=tier.value,
                source_id=provider.source_id,
                tenant_id=tenant_id,
                metric_key=metric_key,
                error=str(e),
            )
            return None

        if not _is_present(value):
            return None
        return float(value)
