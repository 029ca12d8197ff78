"""Configuration module for the funding arbitrage engine."""

from funding_arbitrage.config.constants import (
    ASTER_PAYMENTS_PER_DAY,
    ASTER_REST_URL,
    HYPERLIQUID_PAYMENTS_PER_DAY,
    HYPERLIQUID_REST_URL,
    MAX_CLOSED_POSITIONS,
)
from funding_arbitrage.config.settings import Settings, get_settings
from funding_arbitrage.config.strategy import MappingConfig, StrategyConfig


__all__ = [
    "ASTER_PAYMENTS_PER_DAY",
    "ASTER_REST_URL",
    "HYPERLIQUID_PAYMENTS_PER_DAY",
    "HYPERLIQUID_REST_URL",
    "MAX_CLOSED_POSITIONS",
    "MappingConfig",
    "Settings",
    "StrategyConfig",
    "get_settings",
]
