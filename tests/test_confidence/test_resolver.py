"""
Tests for the Confidence Resolver.

Covers:
- Fallback order LOCKED → OBSERVED → ESTIMATED
- Provider errors, timeouts and non-finite values treated as absent
- Caller default vs benchmark for the estimated tier
- Missing estimate as the only hard failure
- Tier cache hits and concurrent resolve_many
"""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from decisioncore.confidence.cache import TierCache
from decisioncore.confidence.resolver import ConfidenceResolver, InMemoryMetricProvider
from decisioncore.confidence.schemas import ConfidenceTier, MetricRequest
from decisioncore.exceptions import MissingEstimateError
from tests.factories import TENANT, FakeClock


class FailingProvider:
    source_id = "broken_view"
    module = "finance"

    def __init__(self):
        self.calls = 0

    async def fetch(self, tenant_id, metric_key, context):
        self.calls += 1
        raise ConnectionError("database unavailable")


class SlowProvider:
    source_id = "slow_view"
    module = "finance"

    async def fetch(self, tenant_id, metric_key, context):
        await asyncio.sleep(1.0)
        return 42.0


@pytest.fixture
def locked():
    return InMemoryMetricProvider(source_id="fdp_locked_costs", module="FDP")


@pytest.fixture
def observed():
    return InMemoryMetricProvider(source_id="mdp_order_costs", module="MDP")


@pytest.fixture
def resolver(locked, observed):
    return ConfidenceResolver(locked_provider=locked, observed_provider=observed)


class TestFallbackChain:

    @pytest.mark.asyncio
    async def test_locked_wins_over_everything(self, resolver, locked, observed):
        """A LOCKED value short-circuits the chain."""
        locked.set(TENANT, "cogs_percent", 48.0)
        observed.set(TENANT, "cogs_percent", 51.0)

        result = await resolver.resolve(TENANT, "cogs_percent", estimated_default=55.0)

        assert result.tier == ConfidenceTier.LOCKED
        assert result.value == 48.0
        assert result.is_cross_module is True
        assert result.source_module == "FDP"
        assert result.source_id == "fdp_locked_costs"

    @pytest.mark.asyncio
    async def test_observed_when_locked_absent(self, resolver, observed):
        observed.set(TENANT, "cogs_percent", 51.0)

        result = await resolver.resolve(TENANT, "cogs_percent", estimated_default=55.0)

        assert result.tier == ConfidenceTier.OBSERVED
        assert result.value == 51.0
        assert result.is_cross_module is False
        assert result.source_module is None

    @pytest.mark.asyncio
    async def test_estimated_with_caller_default(self, resolver):
        """No LOCKED or OBSERVED value for cogs_percent, default 55 supplied."""
        result = await resolver.resolve(TENANT, "cogs_percent", estimated_default=55)

        assert result.value == 55
        assert result.tier == ConfidenceTier.ESTIMATED
        assert result.is_cross_module is False
        assert result.source_id == "caller_default"

    @pytest.mark.asyncio
    async def test_estimated_falls_back_to_benchmark(self, resolver):
        result = await resolver.resolve(TENANT, "cogs_percent")

        assert result.tier == ConfidenceTier.ESTIMATED
        assert result.value == 55.0
        assert result.source_id == "benchmark:cogs_percent"

    @pytest.mark.asyncio
    async def test_missing_estimate_raises(self, resolver):
        """Unknown metric with no default is a caller bug."""
        with pytest.raises(MissingEstimateError) as exc_info:
            await resolver.resolve(TENANT, "unknown_metric")
        assert exc_info.value.metric_key == "unknown_metric"

    @pytest.mark.asyncio
    async def test_values_are_tenant_scoped(self, resolver, locked):
        locked.set("other-tenant", "cogs_percent", 30.0)

        result = await resolver.resolve(TENANT, "cogs_percent", estimated_default=55.0)

        assert result.tier == ConfidenceTier.ESTIMATED

    @pytest.mark.asyncio
    async def test_no_providers_configured(self):
        resolver = ConfidenceResolver()
        result = await resolver.resolve(TENANT, "return_rate_percent")
        assert result.tier == ConfidenceTier.ESTIMATED
        assert result.value == 5.0


class TestDegradation:

    @pytest.mark.asyncio
    async def test_provider_error_falls_through(self, observed):
        """A transport error at the LOCKED step is treated as absent."""
        failing = FailingProvider()
        observed.set(TENANT, "cogs_percent", 51.0)
        resolver = ConfidenceResolver(locked_provider=failing, observed_provider=observed)

        result = await resolver.resolve(TENANT, "cogs_percent", estimated_default=55.0)

        assert failing.calls == 1
        assert result.tier == ConfidenceTier.OBSERVED

    @pytest.mark.asyncio
    async def test_provider_timeout_falls_through(self):
        resolver = ConfidenceResolver(
            locked_provider=SlowProvider(),
            timeout_seconds=0.01,
        )

        result = await resolver.resolve(TENANT, "cogs_percent", estimated_default=55.0)

        assert result.tier == ConfidenceTier.ESTIMATED

    @pytest.mark.asyncio
    async def test_nan_is_absent(self, resolver, locked):
        locked.set(TENANT, "cogs_percent", float("nan"))

        result = await resolver.resolve(TENANT, "cogs_percent", estimated_default=55.0)

        assert result.tier == ConfidenceTier.ESTIMATED

    @pytest.mark.asyncio
    async def test_infinite_values_are_absent(self, resolver, locked, observed):
        locked.set(TENANT, "cogs_percent", float("inf"))
        observed.set(TENANT, "cogs_percent", float("-inf"))

        result = await resolver.resolve(TENANT, "cogs_percent", estimated_default=55.0)

        assert result.tier == ConfidenceTier.ESTIMATED
        assert result.value == 55.0

    @pytest.mark.asyncio
    async def test_zero_is_a_real_value(self, resolver, observed):
        """0 is present, not absent."""
        observed.set(TENANT, "return_rate_percent", 0.0)

        result = await resolver.resolve(TENANT, "return_rate_percent")

        assert result.tier == ConfidenceTier.OBSERVED
        assert result.value == 0.0


class TestDeterminism:

    @pytest.mark.asyncio
    async def test_identical_inputs_identical_result(self, resolver, observed):
        """Only resolved_at may differ between two resolutions."""
        observed.set(TENANT, "cogs_percent", 51.0)

        a = await resolver.resolve(TENANT, "cogs_percent", estimated_default=55.0)
        b = await resolver.resolve(TENANT, "cogs_percent", estimated_default=55.0)

        assert a.model_dump(exclude={"resolved_at"}) == b.model_dump(exclude={"resolved_at"})


class TestCaching:

    @pytest.mark.asyncio
    async def test_cache_hit_skips_providers(self, observed):
        clock = FakeClock()
        failing = FailingProvider()
        resolver = ConfidenceResolver(
            locked_provider=failing,
            observed_provider=observed,
            cache=TierCache(clock=clock),
            clock=clock,
        )
        observed.set(TENANT, "cogs_percent", 51.0)

        first = await resolver.resolve(TENANT, "cogs_percent")
        clock.advance(seconds=30)
        second = await resolver.resolve(TENANT, "cogs_percent")

        assert failing.calls == 1
        assert second.value == first.value
        assert second.tier == first.tier
        assert second.resolved_at == first.resolved_at + timedelta(seconds=30)

    @pytest.mark.asyncio
    async def test_cache_expires_per_tier(self, observed):
        clock = FakeClock()
        resolver = ConfidenceResolver(
            observed_provider=observed,
            cache=TierCache(clock=clock),
            clock=clock,
        )
        observed.set(TENANT, "cogs_percent", 51.0)
        await resolver.resolve(TENANT, "cogs_percent")

        observed.set(TENANT, "cogs_percent", 49.0)
        clock.advance(seconds=301)   # OBSERVED TTL is 300s
        result = await resolver.resolve(TENANT, "cogs_percent")

        assert result.value == 49.0


class TestResolveMany:

    @pytest.mark.asyncio
    async def test_resolves_each_request_in_order(self, resolver, locked, observed):
        locked.set(TENANT, "platform_fee_percent", 18.0)
        observed.set(TENANT, "cogs_percent", 51.0)

        results = await resolver.resolve_many(TENANT, [
            MetricRequest(metric_key="platform_fee_percent"),
            MetricRequest(metric_key="cogs_percent"),
            MetricRequest(metric_key="ad_spend", estimated_default=1_000_000),
        ])

        assert [m.metric_key for m in results] == ["platform_fee_percent", "cogs_percent", "ad_spend"]
        assert [m.tier for m in results] == [
            ConfidenceTier.LOCKED, ConfidenceTier.OBSERVED, ConfidenceTier.ESTIMATED,
        ]
        assert results[2].value == 1_000_000

    @pytest.mark.asyncio
    async def test_repeated_key_resolves_independently(self, resolver):
        results = await resolver.resolve_many(TENANT, [
            MetricRequest(metric_key="cogs_percent", estimated_default=55),
            MetricRequest(metric_key="cogs_percent", estimated_default=60, context={"channel": "shopee"}),
        ])

        assert len(results) == 2
        assert [m.value for m in results] == [55.0, 60.0]

    @pytest.mark.asyncio
    async def test_empty_request_list(self, resolver):
        assert await resolver.resolve_many(TENANT, []) == []

    @pytest.mark.asyncio
    async def test_resolved_at_is_clock_time(self, locked, observed):
        fixed = datetime(2026, 1, 1, tzinfo=timezone.utc)
        resolver = ConfidenceResolver(locked, observed, clock=lambda: fixed)
        result = await resolver.resolve(TENANT, "cogs_percent")
        assert result.resolved_at == fixed


class TestFromSettings:

    @pytest.mark.asyncio
    async def test_builds_cache_and_timeout(self, locked):
        from decisioncore.config import Settings

        resolver = ConfidenceResolver.from_settings(
            Settings(PROVIDER_TIMEOUT_SECONDS=0.5), locked_provider=locked
        )
        locked.set(TENANT, "cogs_percent", 48.0)

        result = await resolver.resolve(TENANT, "cogs_percent")

        assert resolver.timeout_seconds == 0.5
        assert resolver.cache is not None
        assert result.tier == ConfidenceTier.LOCKED
