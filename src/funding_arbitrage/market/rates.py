"""
Latest-snapshot funding rate cache.

Holds the most recent FundingRate per exchange and symbol, plus 24h
volumes for liquidity filtering. Feeds write into it, the engine reads
copies.
"""

import asyncio
import logging
from collections.abc import Iterable, Sequence

from funding_arbitrage.core.types import (
    AssetMapping,
    ExchangeName,
    FundingFeed,
    FundingRate,
    MarketStats,
)
from funding_arbitrage.utils.time import get_timestamp_ms


logger = logging.getLogger(__name__)


class FundingRateCache:
    """
    Funding snapshots keyed by exchange and symbol.

    Only the latest snapshot per symbol is kept.
    """

    def __init__(self) -> None:
        self._rates: dict[ExchangeName, dict[str, FundingRate]] = {
            name: {} for name in ExchangeName
        }
        self._volumes: dict[ExchangeName, dict[str, float]] = {name: {} for name in ExchangeName}
        self._last_update_ms = 0

    def update(self, rates: Iterable[FundingRate]) -> int:
        """
        Store new snapshots.

        Args:
            rates: Snapshots from one or more exchanges.

        Returns:
            Number of snapshots stored.
        """
        count = 0
        for rate in rates:
            self._rates[rate.exchange][rate.symbol] = rate
            count += 1
        if count:
            self._last_update_ms = get_timestamp_ms()
        return count

    def update_volumes(self, exchange: ExchangeName, volumes: dict[str, float]) -> None:
        """Replace 24h volumes for an exchange."""
        self._volumes[exchange] = dict(volumes)

    def snapshot(self, exchange: ExchangeName) -> dict[str, FundingRate]:
        """Copy of the latest snapshots for an exchange."""
        return dict(self._rates[exchange])

    def get(self, exchange: ExchangeName, symbol: str) -> FundingRate | None:
        """Latest snapshot for one symbol."""
        return self._rates[exchange].get(symbol)

    def all_rates(self) -> list[FundingRate]:
        """Every observed snapshot, mapped or not, ordered by exchange then symbol."""
        return [
            rate
            for name in ExchangeName
            for _, rate in sorted(self._rates[name].items())
        ]

    def market_stats(self, mappings: Sequence[AssetMapping]) -> dict[str, MarketStats]:
        """
        Eligibility metrics per canonical asset.

        Liquidity is the thinner of the two venues' 24h volumes.
        """
        stats: dict[str, MarketStats] = {}
        for mapping in mappings:
            volumes = [
                v
                for v in (
                    self._volumes[ExchangeName.ASTER].get(mapping.aster_symbol),
                    self._volumes[ExchangeName.HYPERLIQUID].get(mapping.hyperliquid_symbol),
                )
                if v is not None
            ]
            stats[mapping.canonical] = MarketStats(
                canonical=mapping.canonical,
                market_cap=mapping.market_cap,
                volume_24h=min(volumes) if volumes else None,
            )
        return stats

    @property
    def last_update_ms(self) -> int:
        """Time of the last successful update."""
        return self._last_update_ms

    def __len__(self) -> int:
        return sum(len(r) for r in self._rates.values())

    async def refresh(self, feeds: Sequence[FundingFeed]) -> list[str]:
        """
        Poll every feed once.

        A failing feed leaves its previous snapshots in place; they age
        out through the staleness check.

        Args:
            feeds: Funding feeds to poll.

        Returns:
            Error messages for feeds that failed.
        """
        results = await asyncio.gather(
            *(self._refresh_feed(feed) for feed in feeds),
            return_exceptions=True,
        )

        errors: list[str] = []
        for feed, result in zip(feeds, results, strict=True):
            if isinstance(result, BaseException):
                message = f"{feed.exchange.value} feed refresh failed: {result}"
                logger.error(message)
                errors.append(message)
        return errors

    async def _refresh_feed(self, feed: FundingFeed) -> None:
        rates, volumes = await asyncio.gather(feed.fetch_rates(), feed.fetch_volumes())
        stored = self.update(rates)
        self.update_volumes(feed.exchange, volumes)
        logger.debug(f"{feed.exchange.value}: {stored} funding rates, {len(volumes)} volumes")
