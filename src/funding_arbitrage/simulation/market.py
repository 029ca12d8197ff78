"""
Funding market simulator for demo mode.

Generates mark prices and funding rates for both venues with random
walks, including occasional regime changes that flip a spread's sign, so
the whole strategy can be demonstrated without network access.
"""

import asyncio
import copy
import logging
import random
from dataclasses import dataclass, field

from funding_arbitrage.core.types import AssetMapping, ExchangeName, FundingRate
from funding_arbitrage.utils.time import get_timestamp_ms


logger = logging.getLogger(__name__)


@dataclass
class SimulatedAsset:
    """Configuration and state for one simulated asset."""

    mapping: AssetMapping
    base_price: float
    aster_rate: float  # per 8h
    hyperliquid_rate: float  # per 1h
    volume_24h: float = 50_000_000.0
    volatility: float = 0.0005
    rate_volatility: float = 0.000005
    current_price: float = field(init=False)

    def __post_init__(self) -> None:
        self.current_price = self.base_price


def _asset(canonical: str, price: float, aster: float, hyper: float) -> SimulatedAsset:
    mapping = AssetMapping(canonical, f"{canonical}USDT", canonical, 1.0, None)
    return SimulatedAsset(mapping, price, aster, hyper)


class FundingMarketSimulator:
    """
    Simulates funding rates and mark prices on both venues.

    Features:
    - Brownian motion price movements shared by both venues
    - Mean-reverting funding rates with occasional sign flips
    - FundingFeed views per exchange for the rate cache
    """

    DEFAULT_ASSETS = [
        _asset("BTC", 65000.0, 0.00010, 0.0000125),
        _asset("ETH", 3500.0, 0.00025, -0.0000050),
        _asset("SOL", 180.0, 0.00040, 0.0000100),
        _asset("XRP", 0.62, -0.00005, 0.0000300),
        _asset("DOGE", 0.15, 0.00060, 0.0000050),
        _asset("LINK", 18.5, 0.00015, 0.0000400),
        _asset("AVAX", 35.0, 0.00030, -0.0000100),
        _asset("ARB", 1.10, -0.00020, 0.0000200),
    ]

    def __init__(
        self,
        assets: list[SimulatedAsset] | None = None,
        tick_interval_s: float = 1.0,
        flip_probability: float = 0.01,
        seed: int | None = None,
    ) -> None:
        """
        Initialize market simulator.

        Args:
            assets: Assets to simulate (default: common majors).
            tick_interval_s: Seconds between updates.
            flip_probability: Chance per tick that one asset's spread flips.
            seed: Random seed for reproducible runs.
        """
        assets = assets if assets is not None else copy.deepcopy(self.DEFAULT_ASSETS)
        self._assets = {a.mapping.canonical: a for a in assets}
        self._tick_interval_s = tick_interval_s
        self._flip_probability = flip_probability
        self._random = random.Random(seed)
        self._running = False
        self._tick_count = 0
        self._flips = 0

    @property
    def mappings(self) -> list[AssetMapping]:
        """Mappings for every simulated asset."""
        return [a.mapping for a in self._assets.values()]

    def feed(self, exchange: ExchangeName) -> "SimulatedFundingFeed":
        """FundingFeed view of one venue."""
        return SimulatedFundingFeed(self, exchange)

    def rates(self, exchange: ExchangeName) -> list[FundingRate]:
        """Current snapshots for one venue."""
        now = get_timestamp_ms()
        rates = []
        for asset in self._assets.values():
            if exchange is ExchangeName.ASTER:
                symbol, rate = asset.mapping.aster_symbol, asset.aster_rate
                next_funding = (now // 28_800_000 + 1) * 28_800_000
            else:
                symbol, rate = asset.mapping.hyperliquid_symbol, asset.hyperliquid_rate
                next_funding = (now // 3_600_000 + 1) * 3_600_000
            rates.append(
                FundingRate(
                    exchange=exchange,
                    symbol=symbol,
                    rate=rate,
                    mark_price=asset.current_price,
                    next_funding_time_ms=next_funding,
                    timestamp_ms=now,
                )
            )
        return rates

    def volumes(self, exchange: ExchangeName) -> dict[str, float]:
        """24h volumes for one venue."""
        return {
            a.mapping.symbol_for(exchange): a.volume_24h for a in self._assets.values()
        }

    def price_of(self, exchange: ExchangeName, symbol: str) -> float | None:
        """Current mark price of a venue symbol."""
        for asset in self._assets.values():
            if asset.mapping.symbol_for(exchange) == symbol:
                return asset.current_price
        return None

    def set_rates(self, canonical: str, aster_rate: float, hyperliquid_rate: float) -> None:
        """Force the funding rates of an asset."""
        asset = self._assets[canonical]
        asset.aster_rate = aster_rate
        asset.hyperliquid_rate = hyperliquid_rate

    def tick(self) -> None:
        """Execute one simulation step."""
        self._tick_count += 1

        for asset in self._assets.values():
            shock = self._random.gauss(0, asset.volatility)
            asset.current_price *= 1 + shock
            # Drift back toward base price
            asset.current_price += (asset.base_price - asset.current_price) * 0.01

            asset.aster_rate += self._random.gauss(0, asset.rate_volatility * 8)
            asset.hyperliquid_rate += self._random.gauss(0, asset.rate_volatility)

        if self._assets and self._random.random() < self._flip_probability:
            asset = self._random.choice(list(self._assets.values()))
            # Swap which venue pays more, per-period scale adjusted
            asset.aster_rate, asset.hyperliquid_rate = (
                asset.hyperliquid_rate * 8,
                asset.aster_rate / 8,
            )
            self._flips += 1
            logger.info(f"[DEMO] Funding regime flipped for {asset.mapping.canonical}")

    async def run(self) -> None:
        """Run the simulation loop."""
        self._running = True
        while self._running:
            self.tick()
            await asyncio.sleep(self._tick_interval_s)

    def stop(self) -> None:
        """Stop the simulation."""
        self._running = False

    async def start(self) -> asyncio.Task[None]:
        """Start simulation as background task."""
        return asyncio.create_task(self.run())

    @property
    def tick_count(self) -> int:
        """Get number of ticks processed."""
        return self._tick_count

    @property
    def flips(self) -> int:
        """Number of regime flips generated."""
        return self._flips

    @property
    def is_running(self) -> bool:
        """Check if simulator is running."""
        return self._running


class SimulatedFundingFeed:
    """FundingFeed backed by the simulator."""

    def __init__(self, simulator: FundingMarketSimulator, exchange: ExchangeName) -> None:
        self._simulator = simulator
        self._exchange = exchange

    @property
    def exchange(self) -> ExchangeName:
        return self._exchange

    async def fetch_rates(self) -> list[FundingRate]:
        return self._simulator.rates(self._exchange)

    async def fetch_volumes(self) -> dict[str, float]:
        return self._simulator.volumes(self._exchange)

    async def close(self) -> None:
        return None
