"""
Priority Pipeline — collect then aggregate, one pass per tenant.

Passes are independent and hold no state between runs, so different tenants
can be processed in parallel.
"""

from datetime import datetime, timezone
from typing import Callable, Optional

import structlog

from decisioncore.signals.aggregator import SignalAggregator
from decisioncore.signals.collectors import SignalCollectionPass, SignalCollector
from decisioncore.signals.schemas import CollectorStatus, PriorityQueue

logger = structlog.get_logger(__name__)


class PriorityPipeline:

    def __init__(
        self,
        collection: SignalCollectionPass,
        aggregator: Optional[SignalAggregator] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.collection = collection
        self.aggregator = aggregator or SignalAggregator()
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    @classmethod
    def from_settings(cls, settings, collectors: list[SignalCollector]) -> "PriorityPipeline":
        return cls(
            collection=SignalCollectionPass(collectors, settings.collector_timeout_seconds),
            aggregator=SignalAggregator.from_settings(settings),
        )

    async def run(self, tenant_id: str, max_items: Optional[int] = None) -> PriorityQueue:
        signals, reports = await self.collection.collect(tenant_id)
        items = self.aggregator.aggregate(tenant_id, signals, max_items)

        is_partial = any(r.status != CollectorStatus.OK for r in reports)
        if is_partial:
            logger.warning(
                "priority_pass_partial",
                tenant_id=tenant_id,
                failed=[r.collector for r in reports if r.status != CollectorStatus.OK],
            )

        return PriorityQueue(
            tenant_id=tenant_id,
            items=items,
            collectors=reports,
            is_partial=is_partial,
            n_signals=len(signals),
            generated_at=self._clock(),
        )
