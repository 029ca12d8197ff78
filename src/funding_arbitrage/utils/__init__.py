"""Utility functions for the funding arbitrage engine."""

from funding_arbitrage.utils.math import (
    EPSILON,
    annualize,
    format_usd,
    hourly_to_annual,
    relative_deviation,
    to_hourly,
)
from funding_arbitrage.utils.time import (
    LatencyTimer,
    format_duration_s,
    get_timestamp_ms,
    get_timestamp_us,
    hours_between,
)


__all__ = [
    "EPSILON",
    "LatencyTimer",
    "annualize",
    "format_duration_s",
    "format_usd",
    "get_timestamp_ms",
    "get_timestamp_us",
    "hourly_to_annual",
    "hours_between",
    "relative_deviation",
    "to_hourly",
]
