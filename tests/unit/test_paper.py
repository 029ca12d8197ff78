"""
Unit tests for PaperExchange.

Tests simulated fills, margin accounting and reduce-only handling.
"""

import pytest

from funding_arbitrage.core.types import ExchangeName, OrderSide
from funding_arbitrage.simulation.paper import PaperExchange


class TestPaperExchange:
    """Tests for PaperExchange."""

    @pytest.fixture
    def exchange(self) -> PaperExchange:
        """Paper venue with $1,000 and a fixed mark price."""
        return PaperExchange(
            ExchangeName.ASTER,
            balance=1000.0,
            price_lookup=lambda symbol: 3500.0 if symbol == "ETHUSDT" else None,
        )

    @pytest.mark.asyncio
    async def test_open_and_close(self, exchange: PaperExchange) -> None:
        """Test that a round trip releases the margin."""
        opened = await exchange.place_order("ETHUSDT", OrderSide.SELL, 300.0)

        assert opened.is_filled
        assert opened.price == 3500.0
        assert exchange.exposure == {"ETHUSDT": -300.0}
        assert await exchange.get_available_balance() == pytest.approx(700.0)

        closed = await exchange.place_order("ETHUSDT", OrderSide.BUY, 300.0, reduce_only=True)

        assert closed.is_filled
        assert exchange.exposure == {}
        assert exchange.available == pytest.approx(1000.0)
        assert len(exchange.fills) == 2

    @pytest.mark.asyncio
    async def test_explicit_price(self, exchange: PaperExchange) -> None:
        """Test that a given price overrides the lookup."""
        result = await exchange.place_order("ETHUSDT", OrderSide.BUY, 100.0, price=3600.0)

        assert result.price == 3600.0

    @pytest.mark.asyncio
    async def test_no_price(self, exchange: PaperExchange) -> None:
        """Test rejection when no price is known."""
        result = await exchange.place_order("XYZUSDT", OrderSide.BUY, 100.0)

        assert not result.success
        assert "no price" in result.error

    @pytest.mark.asyncio
    async def test_insufficient_balance(self, exchange: PaperExchange) -> None:
        """Test rejection beyond the available balance."""
        result = await exchange.place_order("ETHUSDT", OrderSide.BUY, 1500.0)

        assert not result.success
        assert result.error == "insufficient paper balance"

    @pytest.mark.asyncio
    async def test_reduce_only_cannot_open(self, exchange: PaperExchange) -> None:
        """Test that reduce-only orders never add exposure."""
        result = await exchange.place_order("ETHUSDT", OrderSide.BUY, 100.0, reduce_only=True)

        assert not result.success
        assert "reduce-only" in result.error

    @pytest.mark.asyncio
    async def test_reduce_only_clipped(self, exchange: PaperExchange) -> None:
        """Test that an oversized reduce-only order only flattens."""
        await exchange.place_order("ETHUSDT", OrderSide.BUY, 100.0)

        result = await exchange.place_order("ETHUSDT", OrderSide.SELL, 250.0, reduce_only=True)

        assert result.is_filled
        assert result.size == pytest.approx(100.0)
        assert exchange.exposure == {}

    @pytest.mark.asyncio
    async def test_failing_symbol(self, exchange: PaperExchange) -> None:
        """Test scripted rejections."""
        exchange.fail_symbol("ETHUSDT")
        assert not (await exchange.place_order("ETHUSDT", OrderSide.BUY, 100.0)).success

        exchange.fail_symbol("ETHUSDT", failing=False)
        assert (await exchange.place_order("ETHUSDT", OrderSide.BUY, 100.0)).is_filled

    @pytest.mark.asyncio
    async def test_closed_session(self, exchange: PaperExchange) -> None:
        """Test that orders fail after close."""
        await exchange.close()

        result = await exchange.place_order("ETHUSDT", OrderSide.BUY, 100.0)

        assert result.error == "exchange session closed"

    @pytest.mark.asyncio
    async def test_fees(self) -> None:
        """Test that fees reduce the balance."""
        exchange = PaperExchange(ExchangeName.HYPERLIQUID, balance=1000.0, fee_rate=0.001)

        await exchange.place_order("ETH", OrderSide.BUY, 100.0, price=3500.0)

        assert exchange.available == pytest.approx(1000.0 - 100.0 - 0.1)
