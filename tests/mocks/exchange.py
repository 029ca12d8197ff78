"""
Mock exchange client for testing.

Provides a realistic mock of the ExchangeClient protocol with order
recording and scripted failures.
"""

import asyncio
from dataclasses import dataclass
from typing import Any

from funding_arbitrage.core.types import ExchangeName, OrderResult, OrderSide, OrderType


@dataclass
class _FailureRule:
    symbol: str | None
    reduce_only: bool | None
    remaining: int | None
    error: str
    raises: bool

    def matches(self, symbol: str, reduce_only: bool) -> bool:
        if self.remaining is not None and self.remaining <= 0:
            return False
        if self.symbol is not None and self.symbol != symbol:
            return False
        return self.reduce_only is None or self.reduce_only == reduce_only


class MockExchangeClient:
    """
    Mock ExchangeClient for testing.

    Simulates order fills without network calls. Every order is recorded,
    filled ones at the given price (or the configured default price).
    """

    def __init__(
        self,
        name: ExchangeName,
        balance: float = 10_000.0,
        fill_orders: bool = True,
        latency_ms: float = 0.0,
        default_price: float = 100.0,
    ) -> None:
        """
        Initialize mock client.

        Args:
            name: Exchange served by the client.
            balance: Available USD balance reported.
            fill_orders: Whether to fill orders.
            latency_ms: Simulated latency in milliseconds.
            default_price: Fill price for orders sent without a price.
        """
        self._name = name
        self.balance = balance
        self._fill_orders = fill_orders
        self._latency_ms = latency_ms
        self._default_price = default_price
        self._orders: list[dict[str, Any]] = []
        self._rules: list[_FailureRule] = []
        self._order_id = 0
        self.balance_error: Exception | None = None
        self.closed = False

    @property
    def name(self) -> ExchangeName:
        return self._name

    def fail_orders(
        self,
        symbol: str | None = None,
        reduce_only: bool | None = None,
        times: int | None = None,
        error: str = "rejected by mock exchange",
        raises: bool = False,
    ) -> None:
        """
        Script order failures.

        Args:
            symbol: Only fail orders for this symbol, any when None.
            reduce_only: Only fail entries (False) or closes (True).
            times: Number of failures, unlimited when None.
            error: Error reported on the rejected order.
            raises: Raise instead of returning a failed result.
        """
        self._rules.append(_FailureRule(symbol, reduce_only, times, error, raises))

    def clear_failures(self) -> None:
        """Drop all scripted failures."""
        self._rules.clear()

    async def place_order(
        self,
        symbol: str,
        side: OrderSide,
        size_usd: float,
        price: float | None = None,
        order_type: OrderType = OrderType.MARKET,
        reduce_only: bool = False,
    ) -> OrderResult:
        """Mock order placement."""
        if self._latency_ms > 0:
            await asyncio.sleep(self._latency_ms / 1000)

        self._order_id += 1
        order = {
            "order_id": self._order_id,
            "symbol": symbol,
            "side": side,
            "size_usd": size_usd,
            "price": price,
            "type": order_type,
            "reduce_only": reduce_only,
            "filled": False,
        }
        self._orders.append(order)

        for rule in self._rules:
            if rule.matches(symbol, reduce_only):
                if rule.remaining is not None:
                    rule.remaining -= 1
                if rule.raises:
                    raise ConnectionError(rule.error)
                return OrderResult(success=False, error=rule.error)

        if not self._fill_orders:
            return OrderResult(success=True, order_id=f"mock_{self._order_id}", filled=False)

        order["filled"] = True
        return OrderResult(
            success=True,
            order_id=f"mock_{self._order_id}",
            price=price if price is not None else self._default_price,
            size=size_usd,
            filled=True,
        )

    async def get_available_balance(self) -> float:
        """Mock balance lookup."""
        if self.balance_error is not None:
            raise self.balance_error
        return self.balance

    async def close(self) -> None:
        """Mock close."""
        self.closed = True

    @property
    def orders(self) -> list[dict[str, Any]]:
        """Get all placed orders."""
        return self._orders

    @property
    def filled_orders(self) -> list[dict[str, Any]]:
        """Orders that filled."""
        return [o for o in self._orders if o["filled"]]

    def orders_for(self, symbol: str) -> list[dict[str, Any]]:
        """Orders placed for one symbol."""
        return [o for o in self._orders if o["symbol"] == symbol]
