"""
Unit tests for AllocationEngine.

Tests configuration validation, per-rank sizing and capital caps.
"""

import pytest

from funding_arbitrage.config.strategy import StrategyConfig
from funding_arbitrage.core.errors import ConfigurationError
from funding_arbitrage.core.types import Allocation, FundingSpread
from funding_arbitrage.strategy.allocation import AllocationEngine
from tests.mocks.market import make_spread


@pytest.fixture
def allocation() -> AllocationEngine:
    """Allocation engine with the default tolerance."""
    return AllocationEngine()


@pytest.fixture
def four_spreads() -> list[FundingSpread]:
    """Four spreads in rank order."""
    return [make_spread(name, 0.0005, 0.0) for name in ("A", "B", "C", "D")]


class TestValidate:
    """Tests for configuration validation."""

    def test_valid(self, allocation: AllocationEngine) -> None:
        """Test that the defaults validate."""
        allocation.validate(StrategyConfig())

    def test_allocations_must_sum_to_100(self, allocation: AllocationEngine) -> None:
        """Test rejection of a table that does not sum to 100%."""
        config = StrategyConfig(number_of_pairs=2, allocations=(60.0, 30.0))

        with pytest.raises(ConfigurationError, match="sum to 100%"):
            allocation.validate(config)

    def test_tolerance(self, allocation: AllocationEngine) -> None:
        """Test that rounding within the tolerance is accepted."""
        allocation.validate(
            StrategyConfig(number_of_pairs=3, allocations=(33.333, 33.333, 33.334))
        )

    def test_only_active_entries_count(self, allocation: AllocationEngine) -> None:
        """Test that entries past number_of_pairs are ignored."""
        allocation.validate(StrategyConfig(number_of_pairs=2, allocations=(60.0, 40.0, 99.0)))

    def test_too_few_entries(self, allocation: AllocationEngine) -> None:
        """Test rejection when ranks have no allocation entry."""
        config = StrategyConfig(number_of_pairs=3, allocations=(60.0, 40.0))

        with pytest.raises(ConfigurationError, match="allocation entries"):
            allocation.validate(config)

    def test_capital_must_be_positive(self, allocation: AllocationEngine) -> None:
        """Test rejection of zero capital."""
        with pytest.raises(ConfigurationError, match="total capital"):
            allocation.validate(StrategyConfig(total_capital=0.0))

    def test_pairs_must_be_positive(self, allocation: AllocationEngine) -> None:
        """Test rejection of zero pairs."""
        with pytest.raises(ConfigurationError, match="at least 1"):
            allocation.validate(StrategyConfig(number_of_pairs=0))

    def test_negative_allocation(self, allocation: AllocationEngine) -> None:
        """Test rejection of negative percentages."""
        config = StrategyConfig(number_of_pairs=2, allocations=(120.0, -20.0))

        with pytest.raises(ConfigurationError, match="negative"):
            allocation.validate(config)


class TestPlan:
    """Tests for per-rank sizing."""

    def test_hundred_dollars_two_pairs(
        self,
        allocation: AllocationEngine,
        four_spreads: list[FundingSpread],
    ) -> None:
        """Test $100 split 60/40 into $30/$30 and $20/$20 legs."""
        config = StrategyConfig(total_capital=100.0, number_of_pairs=2, allocations=(60.0, 40.0))

        plan = allocation.plan(four_spreads[:2], config)

        assert [a.size_usd for a in plan] == [pytest.approx(60.0), pytest.approx(40.0)]
        assert (plan[0].long_size, plan[0].short_size) == (pytest.approx(30.0), pytest.approx(30.0))
        assert (plan[1].long_size, plan[1].short_size) == (pytest.approx(20.0), pytest.approx(20.0))
        assert [a.rank for a in plan] == [1, 2]
        assert [a.canonical for a in plan] == ["A", "B"]

    def test_default_table(
        self,
        allocation: AllocationEngine,
        four_spreads: list[FundingSpread],
    ) -> None:
        """Test the default 30/30/20/10/10 table on $10,000."""
        config = StrategyConfig(total_capital=10_000.0, redistribute_unfilled=False)

        plan = allocation.plan(four_spreads, config)

        assert [a.size_usd for a in plan] == [
            pytest.approx(3000.0),
            pytest.approx(3000.0),
            pytest.approx(2000.0),
            pytest.approx(1000.0),
        ]

    def test_redistribute_unfilled(
        self,
        allocation: AllocationEngine,
        four_spreads: list[FundingSpread],
    ) -> None:
        """Test that unfilled ranks are spread proportionally over filled ones."""
        config = StrategyConfig(total_capital=100.0, number_of_pairs=2, allocations=(60.0, 40.0))

        plan = allocation.plan(four_spreads[:1], config)

        assert len(plan) == 1
        assert plan[0].allocation_pct == pytest.approx(100.0)
        assert plan[0].size_usd == pytest.approx(100.0)

    def test_no_redistribution(
        self,
        allocation: AllocationEngine,
        four_spreads: list[FundingSpread],
    ) -> None:
        """Test that the unfilled share stays idle when disabled."""
        config = StrategyConfig(
            total_capital=100.0,
            number_of_pairs=2,
            allocations=(60.0, 40.0),
            redistribute_unfilled=False,
        )

        plan = allocation.plan(four_spreads[:1], config)

        assert plan[0].size_usd == pytest.approx(60.0)

    def test_nothing_selected(self, allocation: AllocationEngine) -> None:
        """Test an empty selection."""
        assert allocation.plan([], StrategyConfig()) == []

    def test_never_exceeds_capital(
        self,
        allocation: AllocationEngine,
        four_spreads: list[FundingSpread],
    ) -> None:
        """Test that a table at the tolerance edge deploys at most 100%."""
        config = StrategyConfig(
            total_capital=100.0,
            number_of_pairs=2,
            allocations=(60.005, 40.004),
        )

        plan = allocation.plan(four_spreads[:2], config)

        assert sum(a.size_usd for a in plan) <= 100.0 + 1e-9


class TestCapToAvailable:
    """Tests for the capital cap."""

    def test_trim_to_remaining(self, allocation: AllocationEngine) -> None:
        """Test that entries are trimmed to uncommitted capital."""
        config = StrategyConfig(total_capital=100.0, number_of_pairs=2, allocations=(60.0, 40.0))
        plan = [Allocation(2, "B", 40.0, 40.0)]

        capped, warnings = allocation.cap_to_available(plan, committed=70.0, config=config)

        assert capped[0].size_usd == pytest.approx(30.0)
        assert warnings == []

    def test_below_minimum_dropped(self, allocation: AllocationEngine) -> None:
        """Test that a trimmed entry below the minimum is not opened."""
        config = StrategyConfig(
            total_capital=100.0,
            number_of_pairs=2,
            allocations=(60.0, 40.0),
            min_position_usd=10.0,
        )
        plan = [Allocation(2, "B", 40.0, 40.0)]

        capped, warnings = allocation.cap_to_available(plan, committed=95.0, config=config)

        assert capped == []
        assert "below the $10.00 minimum" in warnings[0]

    def test_fully_available(self, allocation: AllocationEngine) -> None:
        """Test that nothing changes with no committed capital."""
        config = StrategyConfig(total_capital=100.0, number_of_pairs=2, allocations=(60.0, 40.0))
        plan = [Allocation(1, "A", 60.0, 60.0), Allocation(2, "B", 40.0, 40.0)]

        capped, _ = allocation.cap_to_available(plan, committed=0.0, config=config)

        assert [a.size_usd for a in capped] == [60.0, 40.0]
