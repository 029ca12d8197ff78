"""
Ranked selection of funding spreads.

Applies eligibility filters and returns the top-N candidates ordered by
absolute annualized spread.
"""

import logging
from collections import deque
from collections.abc import Iterable, Mapping, Sequence

from funding_arbitrage.config.constants import DEFAULT_AVERAGE_APR_WINDOW
from funding_arbitrage.config.strategy import StrategyConfig
from funding_arbitrage.core.types import (
    EligibilityFailure,
    FundingSpread,
    MarketStats,
    SelectionResult,
)


logger = logging.getLogger(__name__)


class SpreadHistory:
    """Bounded window of APR observations per canonical asset."""

    def __init__(self, window: int = DEFAULT_AVERAGE_APR_WINDOW) -> None:
        self._window = window
        self._observations: dict[str, deque[float]] = {}

    @property
    def window(self) -> int:
        """Observations kept per asset."""
        return self._window

    def resize(self, window: int) -> None:
        """Change the window, keeping the most recent observations."""
        if window == self._window:
            return
        self._window = window
        self._observations = {
            k: deque(v, maxlen=window) for k, v in self._observations.items()
        }

    def record(self, spreads: Iterable[FundingSpread]) -> None:
        """Append the current APR of each spread."""
        for spread in spreads:
            obs = self._observations.get(spread.canonical)
            if obs is None:
                obs = deque(maxlen=self._window)
                self._observations[spread.canonical] = obs
            obs.append(spread.apr_pct)

    def observations(self, canonical: str) -> list[float]:
        """Recorded APR percentages, oldest first."""
        return list(self._observations.get(canonical, ()))

    def average_apr(self, canonical: str) -> float | None:
        """Mean APR percent over the window, None without observations."""
        obs = self._observations.get(canonical)
        if not obs:
            return None
        return sum(obs) / len(obs)

    def clear(self) -> None:
        """Drop all observations."""
        self._observations.clear()


class RankedSelector:
    """
    Filters and ranks funding spreads.

    Ties keep their input order because ranking relies on Python's stable
    sort.
    """

    def select(
        self,
        spreads: Sequence[FundingSpread],
        config: StrategyConfig,
        stats: Mapping[str, MarketStats] | None = None,
        history: SpreadHistory | None = None,
    ) -> SelectionResult:
        """
        Select the top-N eligible spreads.

        Args:
            spreads: Candidate spreads for this cycle.
            config: Strategy configuration snapshot.
            stats: Market cap and volume per canonical asset.
            history: APR observations for the average-APR filter.

        Returns:
            SelectionResult with selected spreads in rank order.
        """
        stats = stats or {}
        eligible: list[FundingSpread] = []
        rejected: list[EligibilityFailure] = []

        for spread in spreads:
            reason = self._check(spread, config, stats.get(spread.canonical), history)
            if reason is None:
                eligible.append(spread)
            else:
                rejected.append(EligibilityFailure(spread.canonical, reason))

        ranked = sorted(eligible, key=lambda s: abs(s.annual_spread), reverse=True)
        selected = ranked[: config.number_of_pairs]

        warnings: list[str] = []
        wanted = config.number_of_pairs
        if len(selected) < wanted:
            missing = wanted - len(selected)
            warnings.append(
                f"only {len(selected)} of {wanted} configured pairs qualified "
                f"({missing} did not qualify)"
            )
            logger.warning(warnings[-1])

        return SelectionResult(selected=selected, rejected=rejected, warnings=warnings)

    def _check(
        self,
        spread: FundingSpread,
        config: StrategyConfig,
        stats: MarketStats | None,
        history: SpreadHistory | None,
    ) -> str | None:
        """Return the first failed eligibility rule, or None."""
        if config.is_excluded(spread.canonical):
            return "excluded symbol"

        if spread.apr_pct < config.min_spread_threshold:
            return f"APR {spread.apr_pct:.2f}% below threshold {config.min_spread_threshold:.2f}%"

        if config.min_market_cap is not None:
            market_cap = stats.market_cap if stats else None
            if market_cap is None:
                return "market cap unknown"
            if market_cap < config.min_market_cap:
                return f"market cap ${market_cap:,.0f} below ${config.min_market_cap:,.0f}"

        if config.min_liquidity is not None:
            volume = stats.volume_24h if stats else None
            if volume is None:
                return "24h volume unknown"
            if volume < config.min_liquidity:
                return f"24h volume ${volume:,.0f} below ${config.min_liquidity:,.0f}"

        if config.min_average_apr is not None:
            average = history.average_apr(spread.canonical) if history else None
            if average is None:
                average = spread.apr_pct
            if average < config.min_average_apr:
                return f"average APR {average:.2f}% below {config.min_average_apr:.2f}%"

        return None
