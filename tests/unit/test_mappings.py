"""
Unit tests for asset mappings.

Tests the curated registry, manual overrides and mapping helpers.
"""

import pytest

from funding_arbitrage.config.strategy import MappingConfig
from funding_arbitrage.core.types import AssetMapping, ExchangeName
from funding_arbitrage.market.mappings import (
    DEFAULT_MAPPINGS,
    MappingRegistry,
    detect_multiplier,
    suggest_canonical,
)


class TestDefaults:
    """Tests for the curated mapping table."""

    def test_unique_canonicals(self) -> None:
        """Test that every canonical appears once."""
        names = [m.canonical for m in DEFAULT_MAPPINGS]
        assert len(names) == len(set(names))

    def test_majors_present(self) -> None:
        """Test the largest assets are mapped."""
        registry = MappingRegistry()
        btc = registry.get("BTC")

        assert btc is not None
        assert btc.aster_symbol == "BTCUSDT"
        assert btc.hyperliquid_symbol == "BTC"
        assert btc.symbol_for(ExchangeName.ASTER) == "BTCUSDT"
        assert btc.symbol_for(ExchangeName.HYPERLIQUID) == "BTC"

    def test_thousand_contracts(self) -> None:
        """Test that 1000x contracts on both venues keep a unit multiplier."""
        pepe = MappingRegistry().get("PEPE")

        assert pepe is not None
        assert pepe.aster_symbol == "1000PEPEUSDT"
        assert pepe.hyperliquid_symbol == "kPEPE"
        assert pepe.multiplier == 1.0


class TestMappingRegistry:
    """Tests for MappingRegistry."""

    @pytest.fixture
    def registry(self) -> MappingRegistry:
        """Registry with two defaults."""
        return MappingRegistry(
            [
                AssetMapping("BTC", "BTCUSDT", "BTC", 1.0, 1e12),
                AssetMapping("ETH", "ETHUSDT", "ETH", 1.0, 3e11),
            ]
        )

    def test_lookup_case_insensitive(self, registry: MappingRegistry) -> None:
        """Test canonical lookup ignores case."""
        assert registry.get("eth") is registry.get("ETH")
        assert registry.get("DOGE") is None

    def test_manual_overrides_default(self, registry: MappingRegistry) -> None:
        """Test that a manual mapping replaces the curated one."""
        registry.set_manual(
            [MappingConfig(canonical="eth", aster_symbol="ETH2USDT", hyperliquid_symbol="ETH")]
        )

        eth = registry.get("ETH")
        assert eth is not None
        assert eth.aster_symbol == "ETH2USDT"
        # Market cap is inherited from the default
        assert eth.market_cap == 3e11
        assert len(registry) == 2

    def test_manual_addition(self, registry: MappingRegistry) -> None:
        """Test that a new asset can be added manually."""
        registry.set_manual(
            [
                MappingConfig(
                    canonical="BONK",
                    aster_symbol="1000BONKUSDT",
                    hyperliquid_symbol="BONK",
                    multiplier=1000.0,
                )
            ]
        )

        bonk = registry.get("BONK")
        assert bonk is not None
        assert bonk.multiplier == 1000.0
        assert bonk.market_cap is None
        assert [m.canonical for m in registry.all()] == ["BTC", "ETH", "BONK"]

    def test_set_manual_replaces(self, registry: MappingRegistry) -> None:
        """Test that manual mappings are replaced, not merged."""
        registry.set_manual(
            [MappingConfig(canonical="BONK", aster_symbol="BONKUSDT", hyperliquid_symbol="BONK")]
        )
        registry.set_manual([])

        assert registry.get("BONK") is None
        assert len(registry) == 2

    def test_market_cap(self, registry: MappingRegistry) -> None:
        """Test market cap lookup."""
        assert registry.market_cap("BTC") == 1e12
        assert registry.market_cap("XYZ") is None


class TestHelpers:
    """Tests for mapping helpers."""

    @pytest.mark.parametrize(
        ("aster", "hyperliquid", "expected"),
        [
            (65000.0, 65010.0, 1.0),
            (0.0123, 0.0000124, 1000.0),
            (0.0000124, 0.0123, 0.001),
            (12.0, 0.0012, 10_000.0),
            (3.0, 1.0, 3.0),
            (0.0, 1.0, 1.0),
        ],
    )
    def test_detect_multiplier(self, aster: float, hyperliquid: float, expected: float) -> None:
        """Test multiplier snapping."""
        assert detect_multiplier(aster, hyperliquid) == pytest.approx(expected)

    @pytest.mark.parametrize(
        ("aster", "hyperliquid", "expected"),
        [
            ("BTCUSDT", "BTC", "BTC"),
            ("1000PEPEUSDT", "kPEPE", "PEPE"),
            ("1000SHIBUSDT", "kSHIB", "SHIB"),
            ("RNDRUSDT", "RENDER", "RNDR"),
        ],
    )
    def test_suggest_canonical(self, aster: str, hyperliquid: str, expected: str) -> None:
        """Test canonical suggestions."""
        assert suggest_canonical(aster, hyperliquid) == expected
