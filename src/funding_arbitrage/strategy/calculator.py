"""
Funding spread calculation.

Turns the latest funding snapshots of both exchanges into one signed,
annualized spread per mapped asset, with the trade direction that collects
the differential.
"""

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

from funding_arbitrage.config.constants import PRICE_MATCH_TOLERANCE
from funding_arbitrage.core.errors import MarketDataUnavailable
from funding_arbitrage.core.types import AssetMapping, FundingRate, FundingSpread
from funding_arbitrage.utils.math import relative_deviation
from funding_arbitrage.utils.time import get_timestamp_ms


logger = logging.getLogger(__name__)


@dataclass(slots=True)
class SpreadComputation:
    """Spreads for one evaluation cycle and the mappings that were skipped."""

    spreads: list[FundingSpread] = field(default_factory=list)
    skipped: list[MarketDataUnavailable] = field(default_factory=list)

    def by_canonical(self) -> dict[str, FundingSpread]:
        """Index spreads by canonical asset."""
        return {s.canonical: s for s in self.spreads}


class SpreadCalculator:
    """
    Computes funding spreads for curated asset mappings.

    Rates are normalized to a common one-hour period before differencing so
    that an 8-hourly and an hourly venue compare like for like.
    """

    __slots__ = ("_max_age_ms", "_price_tolerance")

    def __init__(
        self,
        max_age_ms: int | None = None,
        price_tolerance: float = PRICE_MATCH_TOLERANCE,
    ) -> None:
        """
        Initialize calculator.

        Args:
            max_age_ms: Snapshots older than this are treated as unavailable.
            price_tolerance: Allowed relative gap between normalized mark prices.
        """
        self._max_age_ms = max_age_ms
        self._price_tolerance = price_tolerance

    @staticmethod
    def compute_pair(
        canonical: str,
        rate_a: FundingRate,
        rate_b: FundingRate,
        timestamp_ms: int | None = None,
    ) -> FundingSpread:
        """
        Build the spread between two snapshots of the same asset.

        The side with the higher annualized rate is shorted (it is paid by
        longs), the other side is longed.

        Args:
            canonical: Canonical asset name.
            rate_a: Snapshot on the first exchange.
            rate_b: Snapshot on the second exchange.
            timestamp_ms: Evaluation time, defaults to now.

        Returns:
            FundingSpread signed relative to (a, b).
        """
        spread = rate_a.hourly_rate - rate_b.hourly_rate
        annual_spread = rate_a.annual_rate - rate_b.annual_rate

        if annual_spread > 0:
            short, long = rate_a, rate_b
        else:
            short, long = rate_b, rate_a

        return FundingSpread(
            canonical=canonical,
            exchange_a=rate_a.exchange,
            exchange_b=rate_b.exchange,
            rate_a=rate_a,
            rate_b=rate_b,
            spread=spread,
            annual_spread=annual_spread,
            long_exchange=long.exchange,
            short_exchange=short.exchange,
            long_symbol=long.symbol,
            short_symbol=short.symbol,
            long_rate=long.rate,
            short_rate=short.rate,
            long_mark_price=long.mark_price,
            short_mark_price=short.mark_price,
            timestamp_ms=timestamp_ms if timestamp_ms is not None else get_timestamp_ms(),
        )

    def compute(
        self,
        aster_rates: Mapping[str, FundingRate],
        hyperliquid_rates: Mapping[str, FundingRate],
        mappings: Iterable[AssetMapping],
        now_ms: int | None = None,
    ) -> SpreadComputation:
        """
        Compute spreads for every mapping with both sides available.

        Args:
            aster_rates: Latest Aster snapshots keyed by symbol.
            hyperliquid_rates: Latest HyperLiquid snapshots keyed by symbol.
            mappings: Curated asset mappings.
            now_ms: Evaluation time, defaults to now.

        Returns:
            SpreadComputation with spreads and skip reasons.
        """
        now = now_ms if now_ms is not None else get_timestamp_ms()
        result = SpreadComputation()

        for mapping in mappings:
            try:
                aster = self._require(mapping.canonical, aster_rates, mapping.aster_symbol, now)
                hyper = self._require(
                    mapping.canonical, hyperliquid_rates, mapping.hyperliquid_symbol, now
                )
                self._check_prices(mapping, aster, hyper)
            except MarketDataUnavailable as e:
                result.skipped.append(e)
                continue

            result.spreads.append(self.compute_pair(mapping.canonical, aster, hyper, now))

        if result.skipped:
            logger.debug(f"Skipped {len(result.skipped)} mappings without usable data")

        return result

    def _require(
        self,
        canonical: str,
        rates: Mapping[str, FundingRate],
        symbol: str,
        now_ms: int,
    ) -> FundingRate:
        """Look up a fresh snapshot or raise MarketDataUnavailable."""
        rate = rates.get(symbol)
        if rate is None:
            raise MarketDataUnavailable(canonical, f"no funding rate for {symbol}")

        if (
            self._max_age_ms is not None
            and rate.timestamp_ms > 0
            and now_ms - rate.timestamp_ms > self._max_age_ms
        ):
            age_s = (now_ms - rate.timestamp_ms) / 1000
            raise MarketDataUnavailable(canonical, f"stale funding rate for {symbol} ({age_s:.0f}s)")

        return rate

    def _check_prices(
        self,
        mapping: AssetMapping,
        aster: FundingRate,
        hyper: FundingRate,
    ) -> None:
        """Reject mappings whose normalized mark prices disagree."""
        if aster.mark_price <= 0 or hyper.mark_price <= 0:
            raise MarketDataUnavailable(mapping.canonical, "missing mark price")

        normalized = aster.mark_price / mapping.multiplier
        deviation = relative_deviation(normalized, hyper.mark_price)
        if deviation > self._price_tolerance:
            raise MarketDataUnavailable(
                mapping.canonical,
                f"mark prices disagree by {deviation:.1%} "
                f"({mapping.aster_symbol}={aster.mark_price}, "
                f"{mapping.hyperliquid_symbol}={hyper.mark_price}, x{mapping.multiplier:g})",
            )
