"""
Signal Collectors — per-source adapters normalized to the Signal shape.

The data behind each collector is computed elsewhere (SQL views, other
services). A collector only reads it and emits Signals. Collection for a
tenant fans out to every collector concurrently; a collector that times out
or fails contributes zero signals and the pass carries on with partial data.
"""

import asyncio
import math
import time
from typing import Any, Awaitable, Callable, Optional, Protocol, runtime_checkable

import structlog

from decisioncore.signals.schemas import (
    CollectorReport,
    CollectorStatus,
    Signal,
    SignalCategory,
)

logger = structlog.get_logger(__name__)

COLLECTOR_TIMEOUT_SECONDS: float = 10.0

RowFetcher = Callable[[str], Awaitable[list[dict[str, Any]]]]


@runtime_checkable
class SignalCollector(Protocol):
    name: str

    async def collect(self, tenant_id: str) -> list[Signal]:
        ...


class StaticSignalCollector:
    """Serves a fixed signal list per tenant. Used for tests and host-pushed data."""

    def __init__(self, name: str, signals: Optional[dict[str, list[Signal]]] = None):
        self.name = name
        self._signals: dict[str, list[Signal]] = {
            tenant: list(items) for tenant, items in (signals or {}).items()
        }

    def set(self, tenant_id: str, signals: list[Signal]) -> None:
        self._signals[tenant_id] = list(signals)

    async def collect(self, tenant_id: str) -> list[Signal]:
        return list(self._signals.get(tenant_id, []))


def _as_amount(value: Any) -> Optional[float]:
    if value is None:
        return None
    amount = float(value)
    if math.isnan(amount) or math.isinf(amount):
        raise ValueError(f"non-finite amount: {value!r}")
    return amount


def _as_eta(value: Any) -> Optional[int]:
    if value is None:
        return None
    days = float(value)
    if not days.is_integer():
        raise ValueError(f"non-integral eta_days: {value!r}")
    return int(days)


class RowSignalCollector:
    """
    Turn raw rows from one source into Signals of a single category.

    Each row must carry the subject field; the amount and ETA fields are
    optional. Fields not consumed are kept in ``detail``. A row that cannot
    be parsed is logged and skipped.
    """

    def __init__(
        self,
        name: str,
        category: SignalCategory,
        fetch_rows: RowFetcher,
        subject_field: str = "product_id",
        amount_field: Optional[str] = None,
        eta_field: Optional[str] = None,
    ):
        self.name = name
        self.category = category
        self.fetch_rows = fetch_rows
        self.subject_field = subject_field
        self.amount_field = amount_field
        self.eta_field = eta_field

    async def collect(self, tenant_id: str) -> list[Signal]:
        rows = await self.fetch_rows(tenant_id)
        signals: list[Signal] = []
        for row in rows:
            signal = self._to_signal(tenant_id, row)
            if signal is not None:
                signals.append(signal)
        return signals

    def _to_signal(self, tenant_id: str, row: dict[str, Any]) -> Optional[Signal]:
        subject_id = row.get(self.subject_field)
        if not subject_id:
            logger.info(
                "collector_row_skipped",
                collector=self.name,
                tenant_id=tenant_id,
                reason="missing_subject",
            )
            return None

        try:
            amount = _as_amount(row.get(self.amount_field)) if self.amount_field else None
            eta_days = _as_eta(row.get(self.eta_field)) if self.eta_field else None
        except (TypeError, ValueError) as e:
            logger.info(
                "collector_row_skipped",
                collector=self.name,
                tenant_id=tenant_id,
                subject_id=str(subject_id),
                reason=str(e),
            )
            return None

        consumed = {self.subject_field, self.amount_field, self.eta_field}
        detail = {k: v for k, v in row.items() if k not in consumed}
        return Signal(
            subject_id=str(subject_id),
            category=self.category,
            amount=amount,
            eta_days=eta_days,
            detail=detail,
            source=self.name,
        )

    # ── Standard sources ─────────────────────────────────────────────────

    @classmethod
    def cash_lock(cls, fetch_rows: RowFetcher) -> "RowSignalCollector":
        return cls("cash_lock", SignalCategory.CASH_LOCK, fetch_rows, amount_field="cash_locked_value")

    @classmethod
    def lost_revenue(cls, fetch_rows: RowFetcher) -> "RowSignalCollector":
        return cls("lost_revenue", SignalCategory.LOST_REVENUE, fetch_rows, amount_field="lost_revenue_est")

    @classmethod
    def margin_leak(cls, fetch_rows: RowFetcher) -> "RowSignalCollector":
        return cls("margin_leak", SignalCategory.MARGIN_LEAK, fetch_rows, amount_field="margin_leak_value")

    @classmethod
    def markdown_risk(cls, fetch_rows: RowFetcher) -> "RowSignalCollector":
        return cls("markdown_risk", SignalCategory.MARKDOWN_RISK, fetch_rows, eta_field="markdown_eta_days")

    @classmethod
    def size_health(cls, fetch_rows: RowFetcher) -> "RowSignalCollector":
        return cls("size_health", SignalCategory.SIZE_BREAK, fetch_rows, eta_field="stockout_eta_days")


class SignalCollectionPass:
    """Fan out to every collector for one tenant and gather what comes back."""

    def __init__(
        self,
        collectors: list[SignalCollector],
        timeout_seconds: float = COLLECTOR_TIMEOUT_SECONDS,
    ):
        self.collectors = list(collectors)
        self.timeout_seconds = timeout_seconds

    async def collect(self, tenant_id: str) -> tuple[list[Signal], list[CollectorReport]]:
        """
        Run all collectors concurrently.

        Returns:
            (signals, reports); signals keep collector order, then emission order
        """
        results = await asyncio.gather(*(
            self._run_one(collector, tenant_id) for collector in self.collectors
        ))

        signals: list[Signal] = []
        reports: list[CollectorReport] = []
        for collected, report in results:
            signals.extend(collected)
            reports.append(report)
        return signals, reports

    async def _run_one(
        self, collector: SignalCollector, tenant_id: str
    ) -> tuple[list[Signal], CollectorReport]:
        start = time.perf_counter()
        try:
            collected = await asyncio.wait_for(
                collector.collect(tenant_id), timeout=self.timeout_seconds
            )
        except asyncio.TimeoutError:
            duration_ms = (time.perf_counter() - start) * 1000
            logger.warning(
                "collector_timeout",
                collector=collector.name,
                tenant_id=tenant_id,
                timeout_seconds=self.timeout_seconds,
            )
            return [], CollectorReport(
                collector=collector.name,
                status=CollectorStatus.TIMEOUT,
                duration_ms=round(duration_ms, 2),
            )
        except Exception as e:
            duration_ms = (time.perf_counter() - start) * 1000
            logger.warning(
                "collector_failed",
                collector=collector.name,
                tenant_id=tenant_id,
                error=str(e),
            )
            return [], CollectorReport(
                collector=collector.name,
                status=CollectorStatus.ERROR,
                duration_ms=round(duration_ms, 2),
                error=str(e),
            )

        duration_ms = (time.perf_counter() - start) * 1000
        return list(collected), CollectorReport(
            collector=collector.name,
            status=CollectorStatus.OK,
            n_signals=len(collected),
            duration_ms=round(duration_ms, 2),
        )
