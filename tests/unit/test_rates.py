"""
Unit tests for FundingRateCache.
"""

import pytest

from funding_arbitrage.core.types import ExchangeName
from funding_arbitrage.market.rates import FundingRateCache
from tests.mocks.market import TEST_MAPPINGS, ScriptedFundingFeed, aster_rate, hyperliquid_rate


class TestFundingRateCache:
    """Tests for FundingRateCache."""

    def test_keeps_latest(self) -> None:
        """Test that a newer snapshot replaces the older one."""
        cache = FundingRateCache()

        cache.update([aster_rate("ETHUSDT", 0.0001, 3500.0, timestamp_ms=1)])
        cache.update([aster_rate("ETHUSDT", 0.0003, 3510.0, timestamp_ms=2)])

        latest = cache.get(ExchangeName.ASTER, "ETHUSDT")
        assert latest is not None
        assert latest.rate == 0.0003
        assert len(cache) == 1
        assert cache.last_update_ms > 0

    def test_empty_update(self) -> None:
        """Test that nothing stored leaves the update time untouched."""
        cache = FundingRateCache()

        assert cache.update([]) == 0
        assert cache.last_update_ms == 0

    def test_all_rates_ordered(self) -> None:
        """Test ordering by exchange then symbol."""
        cache = FundingRateCache()
        cache.update(
            [
                hyperliquid_rate("ETH", 0.00001, 3500.0),
                aster_rate("SOLUSDT", 0.0001, 180.0),
                aster_rate("BTCUSDT", 0.0001, 65000.0),
            ]
        )

        assert [r.symbol for r in cache.all_rates()] == ["BTCUSDT", "SOLUSDT", "ETH"]

    def test_market_stats(self) -> None:
        """Test that liquidity is the thinner venue's volume."""
        cache = FundingRateCache()
        cache.update_volumes(ExchangeName.ASTER, {"ETHUSDT": 9e8, "BTCUSDT": 5e9})
        cache.update_volumes(ExchangeName.HYPERLIQUID, {"ETH": 4e8})

        stats = cache.market_stats(TEST_MAPPINGS)

        assert stats["ETH"].volume_24h == 4e8
        assert stats["ETH"].market_cap == 370_000_000_000
        assert stats["BTC"].volume_24h == 5e9
        assert stats["SOL"].volume_24h is None

    @pytest.mark.asyncio
    async def test_refresh(self) -> None:
        """Test polling feeds into the cache."""
        cache = FundingRateCache()
        aster = ScriptedFundingFeed(
            ExchangeName.ASTER,
            rates=[aster_rate("ETHUSDT", 0.0005, 3500.0)],
            volumes={"ETHUSDT": 9e8},
        )
        hyper = ScriptedFundingFeed(
            ExchangeName.HYPERLIQUID,
            rates=[hyperliquid_rate("ETH", 0.00001, 3500.0)],
            volumes={"ETH": 4e8},
        )

        errors = await cache.refresh([aster, hyper])

        assert errors == []
        assert len(cache) == 2
        assert cache.market_stats(TEST_MAPPINGS)["ETH"].volume_24h == 4e8

    @pytest.mark.asyncio
    async def test_failing_feed_keeps_old_snapshots(self) -> None:
        """Test that one failing feed does not affect the other."""
        cache = FundingRateCache()
        cache.update([hyperliquid_rate("ETH", 0.00002, 3500.0, timestamp_ms=1)])
        aster = ScriptedFundingFeed(
            ExchangeName.ASTER, rates=[aster_rate("ETHUSDT", 0.0005, 3500.0)]
        )
        hyper = ScriptedFundingFeed(ExchangeName.HYPERLIQUID, error=ConnectionError("503"))

        errors = await cache.refresh([aster, hyper])

        assert len(errors) == 1
        assert errors[0].startswith("hyperliquid feed refresh failed")
        old = cache.get(ExchangeName.HYPERLIQUID, "ETH")
        assert old is not None
        assert old.timestamp_ms == 1
        assert cache.get(ExchangeName.ASTER, "ETHUSDT") is not None
