"""
Industry benchmark defaults for the ESTIMATED tier.

Used when the caller does not pass an explicit estimate. Percent metrics are
expressed in percent units (55 means 55%).
"""

DEFAULT_BENCHMARKS: dict[str, float] = {
    "cogs_percent": 55.0,
    "platform_fee_percent": 20.0,
    "logistics_cost_percent": 5.0,
    "payment_fee_percent": 2.0,
    "return_rate_percent": 5.0,
    "marketing_cost_percent": 15.0,
}


def benchmark_source_id(metric_key: str) -> str:
    return f"benchmark:{metric_key}"
