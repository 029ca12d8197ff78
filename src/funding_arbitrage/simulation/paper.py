"""
Paper exchange for simulated order fills.

Implements the ExchangeClient protocol against an in-memory USD balance
so the full strategy can run without credentials.
"""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass

from funding_arbitrage.config.constants import DEFAULT_PAPER_BALANCE
from funding_arbitrage.core.types import ExchangeName, OrderResult, OrderSide, OrderType
from funding_arbitrage.utils.math import EPSILON
from funding_arbitrage.utils.time import get_timestamp_us


logger = logging.getLogger(__name__)

# Returns the current mark price of a symbol, None if unknown
PriceLookup = Callable[[str], float | None]


@dataclass
class PaperFill:
    """Record of a simulated fill."""

    order_id: str
    symbol: str
    side: OrderSide
    size_usd: float
    price: float
    reduce_only: bool
    timestamp_us: int


class PaperExchange:
    """
    Simulated exchange holding signed USD exposure per symbol.

    Margin is modeled as the absolute exposure, so opening a leg reduces
    the available balance by its size and closing it releases the same
    amount.
    """

    def __init__(
        self,
        name: ExchangeName,
        balance: float = DEFAULT_PAPER_BALANCE,
        price_lookup: PriceLookup | None = None,
        fee_rate: float = 0.0,
        latency_s: float = 0.0,
    ) -> None:
        """
        Initialize paper exchange.

        Args:
            name: Exchange being simulated.
            balance: Starting USD balance.
            price_lookup: Mark price source for orders sent without a price.
            fee_rate: Fee charged on notional per fill.
            latency_s: Simulated order round trip.
        """
        self._name = name
        self._balance = balance
        self._price_lookup = price_lookup
        self._fee_rate = fee_rate
        self._latency_s = latency_s
        self._exposure: dict[str, float] = {}
        self._fills: list[PaperFill] = []
        self._order_seq = 0
        self._failing_symbols: set[str] = set()
        self._closed = False

    @property
    def name(self) -> ExchangeName:
        return self._name

    async def place_order(
        self,
        symbol: str,
        side: OrderSide,
        size_usd: float,
        price: float | None = None,
        order_type: OrderType = OrderType.MARKET,
        reduce_only: bool = False,
    ) -> OrderResult:
        """Fill an order immediately at the given or looked-up price."""
        if self._latency_s > 0:
            await asyncio.sleep(self._latency_s)

        if self._closed:
            return OrderResult(success=False, error="exchange session closed")

        if symbol in self._failing_symbols:
            return OrderResult(success=False, error=f"{symbol} rejected by paper exchange")

        if size_usd <= 0:
            return OrderResult(success=False, error=f"invalid size {size_usd}")

        fill_price = price if price and price > 0 else None
        if fill_price is None and self._price_lookup is not None:
            fill_price = self._price_lookup(symbol)
        if fill_price is None or fill_price <= 0:
            return OrderResult(success=False, error=f"no price available for {symbol}")

        signed = size_usd if side is OrderSide.BUY else -size_usd
        current = self._exposure.get(symbol, 0.0)

        if reduce_only and (abs(current) < EPSILON or (current > 0) == (signed > 0)):
            return OrderResult(
                success=False,
                error=f"reduce-only {side.value} would increase {symbol} exposure",
            )
        if reduce_only and abs(signed) > abs(current):
            signed = -current

        new_exposure = current + signed
        margin_delta = abs(new_exposure) - abs(current)
        fee = abs(signed) * self._fee_rate
        if margin_delta + fee > self.available + EPSILON:
            return OrderResult(success=False, error="insufficient paper balance")

        self._exposure[symbol] = new_exposure
        if abs(new_exposure) < EPSILON:
            del self._exposure[symbol]
        self._balance -= fee

        self._order_seq += 1
        order_id = f"PAPER-{self._name.value}-{self._order_seq}"
        self._fills.append(
            PaperFill(
                order_id=order_id,
                symbol=symbol,
                side=side,
                size_usd=abs(signed),
                price=fill_price,
                reduce_only=reduce_only,
                timestamp_us=get_timestamp_us(),
            )
        )

        logger.debug(
            f"[PAPER] {self._name.value} {side.value} {symbol} ${abs(signed):.2f} @ {fill_price}"
        )
        return OrderResult(
            success=True,
            order_id=order_id,
            price=fill_price,
            size=abs(signed),
            filled=True,
        )

    async def get_available_balance(self) -> float:
        return self.available

    async def close(self) -> None:
        self._closed = True

    @property
    def available(self) -> float:
        """Balance not used as margin."""
        return self._balance - sum(abs(v) for v in self._exposure.values())

    @property
    def exposure(self) -> dict[str, float]:
        """Signed USD exposure per symbol, positive is long."""
        return dict(self._exposure)

    @property
    def fills(self) -> list[PaperFill]:
        """Every simulated fill, oldest first."""
        return list(self._fills)

    def fail_symbol(self, symbol: str, failing: bool = True) -> None:
        """Reject every order for a symbol until cleared."""
        if failing:
            self._failing_symbols.add(symbol)
        else:
            self._failing_symbols.discard(symbol)
