"""
Capital allocation across ranks.

Validates the per-rank percentage table and turns selected spreads into
USD sizes, split evenly between the long and short legs.
"""

import logging
from collections.abc import Sequence

from funding_arbitrage.config.constants import ALLOCATION_TOLERANCE
from funding_arbitrage.config.strategy import StrategyConfig
from funding_arbitrage.core.errors import ConfigurationError
from funding_arbitrage.core.types import Allocation, FundingSpread
from funding_arbitrage.utils.math import EPSILON


logger = logging.getLogger(__name__)


class AllocationEngine:
    """Sizes positions from a capital budget and a rank percentage table."""

    __slots__ = ("_tolerance",)

    def __init__(self, tolerance: float = ALLOCATION_TOLERANCE) -> None:
        self._tolerance = tolerance

    def validate(self, config: StrategyConfig) -> None:
        """
        Validate capital and allocation settings.

        Args:
            config: Strategy configuration snapshot.

        Raises:
            ConfigurationError: If the configuration cannot be deployed.
        """
        if config.total_capital <= 0:
            raise ConfigurationError(f"total capital must be positive, got {config.total_capital}")

        if config.number_of_pairs < 1:
            raise ConfigurationError("number of pairs must be at least 1")

        if len(config.allocations) < config.number_of_pairs:
            raise ConfigurationError(
                f"{config.number_of_pairs} pairs configured but only "
                f"{len(config.allocations)} allocation entries"
            )

        active = config.active_allocations
        negative = [pct for pct in active if pct < 0]
        if negative:
            raise ConfigurationError(f"allocations must not be negative: {negative}")

        total = sum(active)
        if abs(total - 100.0) > self._tolerance:
            raise ConfigurationError(f"allocations must sum to 100%, got {total:.4f}%")

    def plan(
        self,
        selected: Sequence[FundingSpread],
        config: StrategyConfig,
    ) -> list[Allocation]:
        """
        Map selected spreads to per-rank USD sizes.

        When fewer ranks are filled than configured, the unfilled
        percentage is spread proportionally over the filled ranks if
        ``redistribute_unfilled`` is set.

        Args:
            selected: Spreads in rank order.
            config: Strategy configuration snapshot.

        Returns:
            One Allocation per selected spread.
        """
        configured = config.active_allocations
        filled = list(configured[: len(selected)])
        if not filled:
            return []

        configured_sum = sum(configured)
        filled_sum = sum(filled)

        if config.redistribute_unfilled and len(filled) < len(configured) and filled_sum > EPSILON:
            factor = min(configured_sum, 100.0) / filled_sum
        else:
            # Never deploy more than 100% when the table sits at the tolerance edge
            factor = min(1.0, 100.0 / configured_sum) if configured_sum > EPSILON else 0.0

        plan = []
        for rank, (spread, pct) in enumerate(zip(selected, filled, strict=False), start=1):
            effective = pct * factor
            plan.append(
                Allocation(
                    rank=rank,
                    canonical=spread.canonical,
                    allocation_pct=effective,
                    size_usd=config.total_capital * effective / 100.0,
                )
            )
        return plan

    def cap_to_available(
        self,
        plan: Sequence[Allocation],
        committed: float,
        config: StrategyConfig,
    ) -> tuple[list[Allocation], list[str]]:
        """
        Trim new allocations to the capital not already committed.

        Args:
            plan: Allocations for positions about to be opened, rank order.
            committed: USD held by positions that stay open.
            config: Strategy configuration snapshot.

        Returns:
            Tuple of (allocations to open, warnings).
        """
        available = max(0.0, config.total_capital - committed)
        capped: list[Allocation] = []
        warnings: list[str] = []

        for alloc in plan:
            size = min(alloc.size_usd, available)
            if size < config.min_position_usd or size <= EPSILON:
                message = (
                    f"{alloc.canonical}: ${size:.2f} available is below the "
                    f"${config.min_position_usd:.2f} minimum position"
                )
                warnings.append(message)
                logger.warning(message)
                continue

            if size < alloc.size_usd:
                logger.info(
                    f"{alloc.canonical}: trimmed from ${alloc.size_usd:.2f} to ${size:.2f}"
                )

            capped.append(
                Allocation(
                    rank=alloc.rank,
                    canonical=alloc.canonical,
                    allocation_pct=alloc.allocation_pct,
                    size_usd=size,
                )
            )
            available -= size

        return capped, warnings
