"""
Entry point for the funding arbitrage engine.

Usage:
    python -m funding_arbitrage
    funding-arbitrage  # if installed via pip
"""

import asyncio
import sys

import uvicorn

from funding_arbitrage import __version__
from funding_arbitrage.api.server import create_app
from funding_arbitrage.config.constants import STATUS_REPORT_INTERVAL
from funding_arbitrage.config.settings import Settings, get_settings
from funding_arbitrage.core.engine import create_engine
from funding_arbitrage.core.errors import FundingArbitrageError
from funding_arbitrage.core.types import ExchangeClient, ExchangeName, FundingFeed, StateStore
from funding_arbitrage.exchange.client import AsterFundingFeed, HyperliquidFundingFeed
from funding_arbitrage.market.rates import FundingRateCache
from funding_arbitrage.simulation.market import FundingMarketSimulator
from funding_arbitrage.simulation.paper import PaperExchange, PriceLookup
from funding_arbitrage.storage.state_store import InMemoryStateStore, JsonFileStateStore
from funding_arbitrage.telemetry.logger import setup_logging
from funding_arbitrage.telemetry.reporter import CLIReporter


def _price_lookup(cache: FundingRateCache, exchange: ExchangeName) -> PriceLookup:
    def lookup(symbol: str) -> float | None:
        rate = cache.get(exchange, symbol)
        return rate.mark_price if rate else None

    return lookup


def build_feeds(
    settings: Settings,
    simulator: FundingMarketSimulator | None,
) -> list[FundingFeed]:
    """Simulated feeds in demo mode, public exchange feeds otherwise."""
    if simulator is not None:
        return [simulator.feed(ExchangeName.ASTER), simulator.feed(ExchangeName.HYPERLIQUID)]
    return [
        AsterFundingFeed(settings.aster_rest_url, timeout_seconds=settings.request_timeout_seconds),
        HyperliquidFundingFeed(
            settings.hyperliquid_rest_url, timeout_seconds=settings.request_timeout_seconds
        ),
    ]


def build_clients(settings: Settings, cache: FundingRateCache) -> dict[ExchangeName, ExchangeClient]:
    """Paper exchanges filling at the cached mark prices."""
    return {
        name: PaperExchange(
            name,
            balance=settings.paper_balance,
            price_lookup=_price_lookup(cache, name),
        )
        for name in ExchangeName
    }


def build_state_store(settings: Settings) -> StateStore:
    if settings.state_file is None:
        return InMemoryStateStore()
    return JsonFileStateStore(settings.state_file)


async def run(settings: Settings) -> int:
    """Run the engine and control API until interrupted."""
    simulator = None
    if settings.demo_mode:
        simulator = FundingMarketSimulator()
        await simulator.start()

    cache = FundingRateCache()
    feeds = build_feeds(settings, simulator)
    clients = build_clients(settings, cache)

    try:
        async with create_engine(
            clients,
            feeds,
            settings=settings,
            state_store=build_state_store(settings),
            rate_cache=cache,
        ) as engine:
            if settings.auto_start and not engine.is_running:
                try:
                    await engine.start()
                except FundingArbitrageError as e:
                    print(f"Could not start strategy: {e}")

            reporter = CLIReporter(
                engine.metrics,
                engine.get_status,
                paper_mode=settings.paper_mode,
            )
            reporter.start(interval=STATUS_REPORT_INTERVAL)

            server = uvicorn.Server(
                uvicorn.Config(
                    create_app(engine),
                    host=settings.api_host,
                    port=settings.api_port,
                    log_config=None,
                    loop="none",
                )
            )
            try:
                await server.serve()
            finally:
                reporter.stop()
                reporter.print_summary()
    finally:
        if simulator is not None:
            simulator.stop()

    return 0


def main() -> int:
    """
    Main entry point.

    Returns:
        Exit code (0 for success).
    """
    print(
        f"""
╔═══════════════════════════════════════════════════════════════╗
║     FUNDING RATE ARBITRAGE ENGINE v{__version__:<21}      ║
║                                                               ║
║     Delta-neutral funding capture: AsterDEX x HyperLiquid     ║
╚═══════════════════════════════════════════════════════════════╝
    """
    )

    try:
        settings = get_settings()
    except Exception as e:
        print(f"Configuration error: {e}")
        print("\nCheck your .env file; strategy fields use the STRATEGY__ prefix, e.g.")
        print("  STRATEGY__TOTAL_CAPITAL=10000")
        print("  STRATEGY__NUMBER_OF_PAIRS=5")
        return 1

    if not settings.paper_mode:
        print("Live order routing needs an authenticated ExchangeClient; set PAPER_MODE=true.")
        return 1

    strategy = settings.strategy
    print("Configuration:")
    print(f"  Mode:           {'DEMO (simulated market)' if settings.demo_mode else 'PAPER (live rates)'}")
    print(f"  Capital:        ${strategy.total_capital:,.2f}")
    print(f"  Pairs:          {strategy.number_of_pairs}")
    print(f"  Allocations:    {', '.join(f'{a:g}%' for a in strategy.active_allocations)}")
    print(f"  Min spread:     {strategy.min_spread_threshold:g}% APR")
    print(f"  Rebalance:      every {strategy.rebalance_interval_minutes:g} min")
    print(f"  Control API:    http://{settings.api_host}:{settings.api_port}")
    print(f"  uvloop:         {'Enabled' if settings.use_uvloop else 'Disabled'}")
    print()

    async_logger = setup_logging(level=settings.log_level, log_file=settings.log_file)

    try:
        if settings.use_uvloop and sys.platform != "win32":
            import uvloop

            return uvloop.run(run(settings))
        return asyncio.run(run(settings))

    except KeyboardInterrupt:
        print("\nInterrupted by user")
        return 0

    finally:
        async_logger.stop()


if __name__ == "__main__":
    sys.exit(main())
