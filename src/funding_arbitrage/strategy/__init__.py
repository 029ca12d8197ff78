"""Spread calculation, ranking and allocation."""

from funding_arbitrage.strategy.allocation import AllocationEngine
from funding_arbitrage.strategy.calculator import SpreadCalculator, SpreadComputation
from funding_arbitrage.strategy.selector import RankedSelector, SpreadHistory


__all__ = [
    "AllocationEngine",
    "RankedSelector",
    "SpreadCalculator",
    "SpreadComputation",
    "SpreadHistory",
]
