"""
Confidence Resolver.

Components:
- schemas: ConfidenceTier, ResolvedMetric, confidence summaries
- resolver: LOCKED → OBSERVED → ESTIMATED fallback chain
- cache: Bounded per-tier TTL cache for resolved metrics
- benchmarks: Industry benchmark defaults for the estimated tier
"""
