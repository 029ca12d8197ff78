"""
Integration tests for pair execution.

Tests concurrent leg placement, unwinding of orphaned legs and closing
retries against mocked exchanges.
"""

import pytest

from funding_arbitrage.core.types import (
    Allocation,
    ExchangeName,
    ExecutionStatus,
    FundingSpread,
    OrderSide,
    StrategyPosition,
)
from funding_arbitrage.execution.executor import PairExecutor
from funding_arbitrage.execution.recovery import LegRecovery
from tests.mocks.exchange import MockExchangeClient


def _executor(clients: dict[ExchangeName, MockExchangeClient]) -> PairExecutor:
    recovery = LegRecovery(clients, attempts=2, retry_delay_s=0.0)  # type: ignore[arg-type]
    return PairExecutor(
        clients,  # type: ignore[arg-type]
        recovery,
        close_retry_attempts=1,
        close_retry_delay_s=0.0,
    )


def _allocation() -> Allocation:
    return Allocation(rank=1, canonical="ETH", allocation_pct=60.0, size_usd=60.0)


def _open_position(spread: FundingSpread) -> StrategyPosition:
    return StrategyPosition(
        id="ETH-test",
        canonical="ETH",
        rank=1,
        allocation_pct=60.0,
        long_exchange=spread.long_exchange,
        long_symbol=spread.long_symbol,
        long_size=30.0,
        long_entry_price=3500.0,
        long_rate=spread.rate_for(spread.long_exchange).rate,
        long_payments_per_day=24,
        short_exchange=spread.short_exchange,
        short_symbol=spread.short_symbol,
        short_size=30.0,
        short_entry_price=3500.0,
        short_rate=spread.rate_for(spread.short_exchange).rate,
        short_payments_per_day=3,
        entry_spread=spread.favorable_spread,
        spread=spread.favorable_spread,
        entry_time_ms=1,
    )


class TestOpenPair:
    """Tests for entering a pair."""

    @pytest.mark.asyncio
    async def test_both_legs_fill(
        self,
        clients: dict[ExchangeName, MockExchangeClient],
        eth_spread: FundingSpread,
    ) -> None:
        """Test a clean entry: long HyperLiquid, short Aster."""
        executor = _executor(clients)

        result = await executor.open_pair(eth_spread, _allocation())

        assert result.status is ExecutionStatus.SUCCESS
        assert result.failed_legs == []

        hyper_order = clients[ExchangeName.HYPERLIQUID].orders[0]
        aster_order = clients[ExchangeName.ASTER].orders[0]
        assert hyper_order["symbol"] == "ETH"
        assert hyper_order["side"] is OrderSide.BUY
        assert hyper_order["size_usd"] == 30.0
        assert aster_order["symbol"] == "ETHUSDT"
        assert aster_order["side"] is OrderSide.SELL
        assert aster_order["reduce_only"] is False
        assert executor.stats["successful_entries"] == 1

    @pytest.mark.asyncio
    async def test_orphaned_leg_unwound(
        self,
        clients: dict[ExchangeName, MockExchangeClient],
        eth_spread: FundingSpread,
    ) -> None:
        """Test that a lone filled leg is offset with a reduce-only order."""
        clients[ExchangeName.ASTER].fail_orders(symbol="ETHUSDT")
        executor = _executor(clients)

        result = await executor.open_pair(eth_spread, _allocation())

        assert result.status is ExecutionStatus.ROLLED_BACK
        assert result.residuals == []

        hyper_orders = clients[ExchangeName.HYPERLIQUID].orders
        assert len(hyper_orders) == 2
        assert hyper_orders[1]["side"] is OrderSide.SELL
        assert hyper_orders[1]["reduce_only"] is True
        assert executor.success_rate == 0.0

    @pytest.mark.asyncio
    async def test_unwind_failure_leaves_residual(
        self,
        clients: dict[ExchangeName, MockExchangeClient],
        eth_spread: FundingSpread,
    ) -> None:
        """Test that exposure that cannot be unwound is recorded."""
        clients[ExchangeName.ASTER].fail_orders(symbol="ETHUSDT", raises=True)
        clients[ExchangeName.HYPERLIQUID].fail_orders(reduce_only=True)
        executor = _executor(clients)

        result = await executor.open_pair(eth_spread, _allocation())

        assert result.status is ExecutionStatus.PARTIAL
        assert len(result.residuals) == 1
        residual = result.residuals[0]
        assert residual.exchange is ExchangeName.HYPERLIQUID
        assert residual.symbol == "ETH"
        assert residual.side is OrderSide.BUY
        assert len(executor.recovery.residuals) == 1

    @pytest.mark.asyncio
    async def test_both_legs_fail(
        self,
        clients: dict[ExchangeName, MockExchangeClient],
        eth_spread: FundingSpread,
    ) -> None:
        """Test that nothing is unwound when neither leg filled."""
        for client in clients.values():
            client.fail_orders()
        executor = _executor(clients)

        result = await executor.open_pair(eth_spread, _allocation())

        assert result.status is ExecutionStatus.FAILED
        assert len(result.failed_legs) == 2
        assert all(len(c.orders) == 1 for c in clients.values())


class TestClosePair:
    """Tests for closing a pair."""

    @pytest.mark.asyncio
    async def test_close_both_legs(
        self,
        clients: dict[ExchangeName, MockExchangeClient],
        eth_spread: FundingSpread,
    ) -> None:
        """Test reduce-only closing orders on both venues."""
        executor = _executor(clients)

        result = await executor.close_pair(_open_position(eth_spread))

        assert result.is_success
        assert clients[ExchangeName.HYPERLIQUID].orders[0]["side"] is OrderSide.SELL
        assert clients[ExchangeName.ASTER].orders[0]["side"] is OrderSide.BUY
        assert all(c.orders[0]["reduce_only"] for c in clients.values())

    @pytest.mark.asyncio
    async def test_close_retried(
        self,
        clients: dict[ExchangeName, MockExchangeClient],
        eth_spread: FundingSpread,
    ) -> None:
        """Test that a transient closing failure is retried."""
        clients[ExchangeName.ASTER].fail_orders(times=1)
        executor = _executor(clients)

        result = await executor.close_pair(_open_position(eth_spread))

        assert result.is_success
        assert result.short_leg is not None
        assert result.short_leg.attempts == 2

    @pytest.mark.asyncio
    async def test_close_partial(
        self,
        clients: dict[ExchangeName, MockExchangeClient],
        eth_spread: FundingSpread,
    ) -> None:
        """Test a close where one leg keeps failing."""
        clients[ExchangeName.ASTER].fail_orders(error="reduce-only rejected")
        executor = _executor(clients)

        result = await executor.close_pair(_open_position(eth_spread))

        assert result.status is ExecutionStatus.PARTIAL
        assert [leg.symbol for leg in result.failed_legs] == ["ETHUSDT"]
        assert "reduce-only rejected" in result.error_message
        assert len(clients[ExchangeName.ASTER].orders) == 2
        assert executor.stats["failed_closes"] == 1

    @pytest.mark.asyncio
    async def test_only_open_legs_closed(
        self,
        clients: dict[ExchangeName, MockExchangeClient],
        eth_spread: FundingSpread,
    ) -> None:
        """Test that an already closed leg is not traded again."""
        position = _open_position(eth_spread)
        position.long_open = False
        executor = _executor(clients)

        result = await executor.close_pair(position)

        assert result.is_success
        assert result.long_leg is None
        assert clients[ExchangeName.HYPERLIQUID].orders == []
