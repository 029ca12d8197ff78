"""
Mathematical utilities for funding calculations.

Funding rates are fractions in each venue's native period; helpers here
convert between per-period, hourly and annualized representations.
"""

from typing import Final

from funding_arbitrage.config.constants import DAYS_PER_YEAR, HOURS_PER_DAY


# Epsilon for floating point comparisons
EPSILON: Final[float] = 1e-10


def to_hourly(rate: float, payments_per_day: int) -> float:
    """
    Normalize a per-period funding rate to one hour.

    Args:
        rate: Funding rate per settlement period.
        payments_per_day: Settlements per day.

    Returns:
        Equivalent hourly rate.

    Example:
        >>> to_hourly(0.0008, 3)
        0.0001
    """
    return rate * payments_per_day / HOURS_PER_DAY


def annualize(rate: float, payments_per_day: int) -> float:
    """
    Annualize a per-period funding rate.

    Args:
        rate: Funding rate per settlement period.
        payments_per_day: Settlements per day.

    Returns:
        Annualized rate as a fraction (0.5 = 50% APR).
    """
    return rate * payments_per_day * DAYS_PER_YEAR


def hourly_to_annual(rate: float) -> float:
    """Annualize an hourly rate."""
    return rate * HOURS_PER_DAY * DAYS_PER_YEAR


def relative_deviation(a: float, b: float) -> float:
    """
    Relative deviation between two prices.

    Args:
        a: First price.
        b: Second price.

    Returns:
        |a - b| / max(a, b), or infinity when either price is not positive.
    """
    if a <= 0 or b <= 0:
        return float("inf")
    return abs(a - b) / max(a, b)


def format_usd(value: float) -> str:
    """Format a signed USD amount."""
    sign = "-" if value < 0 else ""
    return f"{sign}${abs(value):,.2f}"
