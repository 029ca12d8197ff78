"""
Exception hierarchy for the funding arbitrage engine.

Configuration problems are raised to the caller before any order is placed.
Market data and execution failures are raised inside a single cycle and
converted into reported state by the engine; they never escape a periodic
task.
"""

from funding_arbitrage.core.types import ExchangeName, OrderSide


class FundingArbitrageError(Exception):
    """Base exception for funding arbitrage errors."""


class ConfigurationError(FundingArbitrageError):
    """Invalid strategy configuration or a command not allowed in the current state."""


class MarketDataUnavailable(FundingArbitrageError):
    """A funding rate or mark price required for a symbol is missing or stale."""

    def __init__(self, canonical: str, detail: str) -> None:
        super().__init__(f"{canonical}: {detail}")
        self.canonical = canonical
        self.detail = detail


class OrderExecutionError(FundingArbitrageError):
    """A leg could not be placed; carries enough detail for reconciliation."""

    def __init__(
        self,
        message: str,
        exchange: ExchangeName,
        symbol: str,
        side: OrderSide,
    ) -> None:
        super().__init__(f"{exchange.value} {symbol} {side.value}: {message}")
        self.exchange = exchange
        self.symbol = symbol
        self.side = side


class ExchangeResponseError(FundingArbitrageError):
    """A feed response was unreachable or did not match its schema."""

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status
