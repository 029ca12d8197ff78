"""Market data module for funding snapshots and asset mappings."""

from funding_arbitrage.market.mappings import (
    DEFAULT_MAPPINGS,
    MappingRegistry,
    detect_multiplier,
    suggest_canonical,
)
from funding_arbitrage.market.rates import FundingRateCache


__all__ = [
    "DEFAULT_MAPPINGS",
    "FundingRateCache",
    "MappingRegistry",
    "detect_multiplier",
    "suggest_canonical",
]
