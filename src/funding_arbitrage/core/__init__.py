"""Core module containing the event bus, errors, and type definitions."""

from funding_arbitrage.core.errors import (
    ConfigurationError,
    ExchangeResponseError,
    FundingArbitrageError,
    MarketDataUnavailable,
    OrderExecutionError,
)
from funding_arbitrage.core.event_bus import Event, EventBus, EventType, Notification
from funding_arbitrage.core.types import (
    AssetMapping,
    ExchangeName,
    ExitReason,
    FundingRate,
    FundingSpread,
    OrderSide,
    PositionStatus,
    StrategyPosition,
)


__all__ = [
    "AssetMapping",
    "ConfigurationError",
    "Event",
    "EventBus",
    "EventType",
    "ExchangeName",
    "ExchangeResponseError",
    "ExitReason",
    "FundingArbitrageError",
    "FundingRate",
    "FundingSpread",
    "MarketDataUnavailable",
    "Notification",
    "OrderExecutionError",
    "OrderSide",
    "PositionStatus",
    "StrategyPosition",
]
