"""
Unit tests for pre-trade validation and leg recovery.
"""

import pytest

from funding_arbitrage.config.strategy import StrategyConfig
from funding_arbitrage.core.types import ExchangeName, LegResult, OrderResult, OrderSide
from funding_arbitrage.execution.recovery import LegRecovery, RecoveryAction
from funding_arbitrage.execution.risk import PreTradeValidator
from tests.mocks.exchange import MockExchangeClient


WALLETS = {"aster": "0xaster", "hyperliquid": "0xhyper"}


def _filled_leg(exchange: ExchangeName, symbol: str, side: OrderSide) -> LegResult:
    return LegResult(
        exchange=exchange,
        symbol=symbol,
        side=side,
        size_usd=30.0,
        order=OrderResult(success=True, order_id="1", price=3500.0, size=30.0, filled=True),
    )


class TestPreTradeValidator:
    """Tests for PreTradeValidator."""

    @pytest.mark.asyncio
    async def test_sufficient_balances(
        self,
        clients: dict[ExchangeName, MockExchangeClient],
        strategy_config: StrategyConfig,
    ) -> None:
        """Test a passing validation."""
        config = strategy_config.model_copy(update={"wallet_addresses": WALLETS})

        result = await PreTradeValidator(clients).validate(config)

        assert result.valid
        assert bool(result) is True
        assert result.errors == []
        assert result.warnings == []
        assert result.balances == {"aster": 10_000.0, "hyperliquid": 10_000.0}

    @pytest.mark.asyncio
    async def test_half_capital_per_exchange(
        self,
        clients: dict[ExchangeName, MockExchangeClient],
        strategy_config: StrategyConfig,
    ) -> None:
        """Test that each venue needs half of the undeployed capital."""
        clients[ExchangeName.ASTER].balance = 49.0
        clients[ExchangeName.HYPERLIQUID].balance = 50.0

        result = await PreTradeValidator(clients).validate(strategy_config)

        assert not result.valid
        assert len(result.errors) == 1
        assert result.errors[0].startswith("aster: available $49.00 below required $50.00")

    @pytest.mark.asyncio
    async def test_committed_capital_reduces_requirement(
        self,
        clients: dict[ExchangeName, MockExchangeClient],
        strategy_config: StrategyConfig,
    ) -> None:
        """Test that open positions are not double counted."""
        clients[ExchangeName.ASTER].balance = 25.0
        clients[ExchangeName.HYPERLIQUID].balance = 25.0

        result = await PreTradeValidator(clients).validate(strategy_config, committed=60.0)

        assert result.valid

    @pytest.mark.asyncio
    async def test_balance_failure(
        self,
        clients: dict[ExchangeName, MockExchangeClient],
        strategy_config: StrategyConfig,
    ) -> None:
        """Test that an unreachable venue fails validation."""
        clients[ExchangeName.HYPERLIQUID].balance_error = ConnectionError("timeout")

        result = await PreTradeValidator(clients).validate(strategy_config)

        assert not result.valid
        assert "hyperliquid: balance unavailable" in result.errors[0]

    @pytest.mark.asyncio
    async def test_missing_wallets(
        self,
        clients: dict[ExchangeName, MockExchangeClient],
        strategy_config: StrategyConfig,
    ) -> None:
        """Test wallet checks as warnings, or errors when required."""
        relaxed = await PreTradeValidator(clients).validate(strategy_config)
        strict = await PreTradeValidator(clients, require_wallets=True).validate(strategy_config)

        assert relaxed.valid
        assert len(relaxed.warnings) == 2
        assert not strict.valid
        assert "aster: no wallet address configured" in strict.errors


class TestLegRecovery:
    """Tests for LegRecovery."""

    @pytest.mark.asyncio
    async def test_unwind(self, clients: dict[ExchangeName, MockExchangeClient]) -> None:
        """Test offsetting an orphaned leg."""
        recovery = LegRecovery(clients, attempts=2, retry_delay_s=0.0)
        leg = _filled_leg(ExchangeName.HYPERLIQUID, "ETH", OrderSide.BUY)

        result = await recovery.unwind(leg, "short leg failed")

        assert result.action is RecoveryAction.UNWIND
        assert result.success
        order = clients[ExchangeName.HYPERLIQUID].orders[-1]
        assert order["side"] is OrderSide.SELL
        assert order["reduce_only"] is True
        assert order["size_usd"] == 30.0
        assert recovery.residuals == []

    @pytest.mark.asyncio
    async def test_unfilled_leg_needs_nothing(
        self, clients: dict[ExchangeName, MockExchangeClient]
    ) -> None:
        """Test that an unfilled leg is left alone."""
        recovery = LegRecovery(clients)
        leg = LegResult(ExchangeName.ASTER, "ETHUSDT", OrderSide.SELL, 30.0)

        result = await recovery.unwind(leg, "unused")

        assert result.action is RecoveryAction.NONE
        assert clients[ExchangeName.ASTER].orders == []

    @pytest.mark.asyncio
    async def test_retry_then_unwind(
        self, clients: dict[ExchangeName, MockExchangeClient]
    ) -> None:
        """Test that a transient failure is retried."""
        clients[ExchangeName.ASTER].fail_orders(times=1, raises=True)
        recovery = LegRecovery(clients, attempts=3, retry_delay_s=0.0)

        result = await recovery.unwind(
            _filled_leg(ExchangeName.ASTER, "ETHUSDT", OrderSide.SELL), "long leg failed"
        )

        assert result.success
        assert result.attempts == 2

    @pytest.mark.asyncio
    async def test_residual_recorded(
        self, clients: dict[ExchangeName, MockExchangeClient]
    ) -> None:
        """Test that an exposure that cannot be unwound is recorded."""
        clients[ExchangeName.ASTER].fail_orders(error="market closed")
        recovery = LegRecovery(clients, attempts=2, retry_delay_s=0.0)

        result = await recovery.unwind(
            _filled_leg(ExchangeName.ASTER, "ETHUSDT", OrderSide.SELL), "long leg failed"
        )

        assert result.action is RecoveryAction.RESIDUAL
        assert not result.success
        assert result.attempts == 2
        assert result.residual is not None
        assert result.residual.side is OrderSide.SELL
        assert "market closed" in result.residual.reason
        assert len(recovery.residuals) == 1

    @pytest.mark.asyncio
    async def test_acknowledge(self, clients: dict[ExchangeName, MockExchangeClient]) -> None:
        """Test clearing reconciled residuals."""
        clients[ExchangeName.ASTER].fail_orders()
        recovery = LegRecovery(clients, attempts=1, retry_delay_s=0.0)
        await recovery.unwind(_filled_leg(ExchangeName.ASTER, "ETHUSDT", OrderSide.SELL), "x")

        assert recovery.acknowledge(ExchangeName.HYPERLIQUID, "ETHUSDT") == 0
        assert recovery.acknowledge(ExchangeName.ASTER, "ETHUSDT") == 1
        assert recovery.residuals == []
