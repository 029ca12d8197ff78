"""
Pytest configuration and shared fixtures.

Provides reusable test fixtures for all test modules.
"""

import pytest

from funding_arbitrage.config.settings import Settings
from funding_arbitrage.config.strategy import StrategyConfig
from funding_arbitrage.core.engine import FundingArbitrageEngine
from funding_arbitrage.core.types import ExchangeName, FundingRate, FundingSpread
from funding_arbitrage.market.mappings import MappingRegistry
from funding_arbitrage.market.rates import FundingRateCache
from funding_arbitrage.storage.state_store import InMemoryStateStore
from funding_arbitrage.strategy.calculator import SpreadCalculator
from tests.mocks.exchange import MockExchangeClient
from tests.mocks.market import TEST_MAPPINGS, aster_rate, hyperliquid_rate, set_rates


# Aster 8h rate, HyperLiquid hourly rate
# ETH: Aster 54.75% vs HL 8.76% -> 45.99% APR, short Aster
# SOL: Aster 10.95% vs HL 43.80% -> 32.85% APR, short HyperLiquid
# BTC: 10.95% on both -> no spread
SCENARIO_RATES: dict[str, tuple[float, float]] = {
    "ETH": (0.0005, 0.00001),
    "SOL": (0.0001, 0.00005),
    "BTC": (0.0001, 0.0000125),
}


# =============================================================================
# Market Data Fixtures
# =============================================================================


@pytest.fixture
def eth_aster_rate() -> FundingRate:
    """ETH on Aster paying 0.05% per 8h."""
    return aster_rate("ETHUSDT", 0.0005, 3500.0)


@pytest.fixture
def eth_hyperliquid_rate() -> FundingRate:
    """ETH on HyperLiquid paying 0.001% per hour."""
    return hyperliquid_rate("ETH", 0.00001, 3500.0)


@pytest.fixture
def eth_spread(eth_aster_rate: FundingRate, eth_hyperliquid_rate: FundingRate) -> FundingSpread:
    """ETH spread, short Aster / long HyperLiquid."""
    return SpreadCalculator.compute_pair("ETH", eth_aster_rate, eth_hyperliquid_rate)


@pytest.fixture
def sol_spread() -> FundingSpread:
    """SOL spread, short HyperLiquid / long Aster."""
    return SpreadCalculator.compute_pair(
        "SOL",
        aster_rate("SOLUSDT", 0.0001, 180.0),
        hyperliquid_rate("SOL", 0.00005, 180.0),
    )


@pytest.fixture
def mapping_registry() -> MappingRegistry:
    """Registry limited to BTC, ETH and SOL."""
    return MappingRegistry(TEST_MAPPINGS)


@pytest.fixture
def rate_cache() -> FundingRateCache:
    """Cache holding the ETH/SOL/BTC scenario."""
    cache = FundingRateCache()
    set_rates(cache, SCENARIO_RATES)
    return cache


# =============================================================================
# Configuration Fixtures
# =============================================================================


@pytest.fixture
def strategy_config() -> StrategyConfig:
    """$100 over two pairs split 60/40."""
    return StrategyConfig(
        total_capital=100.0,
        number_of_pairs=2,
        allocations=(60.0, 40.0),
        min_spread_threshold=10.0,
        min_position_usd=10.0,
        manual_rebalance_cooldown_seconds=0.0,
    )


@pytest.fixture
def settings(strategy_config: StrategyConfig) -> Settings:
    """Settings with fast retries and no background ticking."""
    return Settings(
        paper_mode=True,
        state_file=None,
        close_retry_attempts=2,
        close_retry_delay_seconds=0.0,
        monitor_interval_seconds=3600.0,
        rate_refresh_interval_seconds=3600.0,
        strategy=strategy_config,
    )


# =============================================================================
# Mock Fixtures
# =============================================================================


@pytest.fixture
def aster_client() -> MockExchangeClient:
    """Mocked Aster client."""
    return MockExchangeClient(ExchangeName.ASTER)


@pytest.fixture
def hyperliquid_client() -> MockExchangeClient:
    """Mocked HyperLiquid client."""
    return MockExchangeClient(ExchangeName.HYPERLIQUID)


@pytest.fixture
def clients(
    aster_client: MockExchangeClient,
    hyperliquid_client: MockExchangeClient,
) -> dict[ExchangeName, MockExchangeClient]:
    """Both mocked clients keyed by venue."""
    return {ExchangeName.ASTER: aster_client, ExchangeName.HYPERLIQUID: hyperliquid_client}


@pytest.fixture
def state_store() -> InMemoryStateStore:
    """Empty in-memory state store."""
    return InMemoryStateStore()


# =============================================================================
# Engine Fixtures
# =============================================================================


@pytest.fixture
def engine(
    clients: dict[ExchangeName, MockExchangeClient],
    settings: Settings,
    state_store: InMemoryStateStore,
    mapping_registry: MappingRegistry,
    rate_cache: FundingRateCache,
) -> FundingArbitrageEngine:
    """Engine over mocked clients and a populated rate cache."""
    return FundingArbitrageEngine(
        clients,  # type: ignore[arg-type]
        settings=settings,
        state_store=state_store,
        mappings=mapping_registry,
        rate_cache=rate_cache,
    )
