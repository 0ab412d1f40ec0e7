"""
Confidence Schemas — trust tiers and resolved metric values.

Tiers are totally ordered by trust: LOCKED (100) > OBSERVED (75) > ESTIMATED (40).
Tier scores are for comparison and sorting only, never for arithmetic on values.
"""

from datetime import datetime
from enum import StrEnum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class ConfidenceTier(StrEnum):
    LOCKED = "LOCKED"           # Another module's finalized computation
    OBSERVED = "OBSERVED"       # Aggregated from this module's own transactions
    ESTIMATED = "ESTIMATED"     # Benchmark or caller-supplied constant

    @property
    def score(self) -> int:
        return TIER_SCORES[self]


TIER_SCORES: dict[ConfidenceTier, int] = {
    ConfidenceTier.LOCKED: 100,
    ConfidenceTier.OBSERVED: 75,
    ConfidenceTier.ESTIMATED: 40,
}


def get_confidence_score(tier: ConfidenceTier) -> int:
    """Trust score for a tier (100 / 75 / 40)."""
    return TIER_SCORES[ConfidenceTier(tier)]


class ResolvedMetric(BaseModel):
    """
    A metric value tagged with the tier it was resolved from.

    Produced once per resolution call and never mutated.
    """
    model_config = ConfigDict(frozen=True)

    metric_key: str
    value: float
    tier: ConfidenceTier
    source_id: str
    source_module: Optional[str] = None
    is_cross_module: bool = False
    resolved_at: datetime

    @model_validator(mode="after")
    def _check_provenance(self) -> "ResolvedMetric":
        if self.source_module is not None and (
            not self.is_cross_module or self.tier == ConfidenceTier.ESTIMATED
        ):
            raise ValueError(
                "source_module is only set for cross-module, non-estimated metrics"
            )
        if self.is_cross_module and self.tier != ConfidenceTier.LOCKED:
            raise ValueError("only LOCKED metrics can be cross-module")
        return self

    @property
    def confidence_score(self) -> int:
        return self.tier.score


class MetricRequest(BaseModel):
    """One metric to resolve, with an optional caller-supplied estimate."""
    metric_key: str
    estimated_default: Optional[float] = None
    context: dict[str, Any] = Field(default_factory=dict)


class ConfidenceSummary(BaseModel):
    """Overall trust across a set of resolved metrics."""
    score: float                     # Mean tier score (0-100)
    n_metrics: int
    n_estimated: int
    lowest_tier: Optional[ConfidenceTier] = None
    estimated_keys: list[str] = Field(default_factory=list)


def summarize_confidence(metrics: list[ResolvedMetric]) -> ConfidenceSummary:
    """Average tier score and the estimated inputs behind a derived figure."""
    if not metrics:
        return ConfidenceSummary(score=0.0, n_metrics=0, n_estimated=0)

    estimated = [m.metric_key for m in metrics if m.tier == ConfidenceTier.ESTIMATED]
    lowest = min((m.tier for m in metrics), key=lambda t: t.score)
    return ConfidenceSummary(
        score=round(sum(m.tier.score for m in metrics) / len(metrics), 2),
        n_metrics=len(metrics),
        n_estimated=len(estimated),
        lowest_tier=lowest,
        estimated_keys=sorted(estimated),
    )
