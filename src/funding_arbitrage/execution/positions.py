"""
Position book and lifecycle.

Owns every StrategyPosition: records entries, accrues funding, marks P&L
on each tick, detects flipped spreads and moves closed positions into a
bounded history. Callers only ever receive copies.
"""

import copy
import logging
from collections import deque
from collections.abc import Iterable, Mapping
from uuid import uuid4

from funding_arbitrage.config.constants import MAX_CLOSED_POSITIONS
from funding_arbitrage.core.event_bus import EventBus, EventType
from funding_arbitrage.core.types import (
    Allocation,
    ExitReason,
    FundingSpread,
    NotificationLevel,
    PairExecutionResult,
    PositionStatus,
    StrategyPosition,
)
from funding_arbitrage.execution.executor import PairExecutor
from funding_arbitrage.utils.math import format_usd
from funding_arbitrage.utils.time import get_timestamp_ms, hours_between


logger = logging.getLogger(__name__)


class PositionManager:
    """
    Tracks delta-neutral positions through pending, open, closing and closed.

    A position is recorded open only after both entry legs filled. A close
    that leaves a leg open keeps the position in the book as closing with
    that leg flagged; the next close attempt only addresses the remaining
    leg.
    """

    def __init__(
        self,
        executor: PairExecutor,
        event_bus: EventBus | None = None,
        exit_spread_window: int = 1,
        max_closed: int = MAX_CLOSED_POSITIONS,
    ) -> None:
        """
        Initialize position manager.

        Args:
            executor: Pair executor for entries and exits.
            event_bus: Notification channel.
            exit_spread_window: Spread observations averaged for the exit check.
            max_closed: Closed positions kept in history.
        """
        self._executor = executor
        self._event_bus = event_bus or EventBus()
        self._exit_spread_window = max(1, exit_spread_window)
        self._positions: dict[str, StrategyPosition] = {}
        self._pending: dict[str, StrategyPosition] = {}
        self._closed: deque[StrategyPosition] = deque(maxlen=max_closed)

    # =========================================================================
    # Queries
    # =========================================================================

    def get(self, canonical: str) -> StrategyPosition | None:
        """Copy of a held position."""
        position = self._positions.get(canonical)
        return copy.deepcopy(position) if position else None

    def holds(self, canonical: str) -> bool:
        """Check if a position (open or closing) is held for an asset."""
        return canonical in self._positions or canonical in self._pending

    def open_positions(self) -> list[StrategyPosition]:
        """Copies of held positions, ordered by rank."""
        return [copy.deepcopy(p) for p in sorted(self._positions.values(), key=lambda p: p.rank)]

    def closed_positions(self) -> list[StrategyPosition]:
        """Copies of closed positions, newest first."""
        return [copy.deepcopy(p) for p in self._closed]

    @property
    def canonicals(self) -> list[str]:
        """Canonical assets currently held."""
        return list(self._positions)

    @property
    def committed_capital(self) -> float:
        """USD committed by held and pending positions."""
        held = sum(p.notional for p in self._positions.values())
        return held + sum(p.notional for p in self._pending.values())

    @property
    def total_pnl(self) -> float:
        """Unrealized P&L of held positions."""
        return sum(p.pnl for p in self._positions.values())

    @property
    def total_funding(self) -> float:
        """Funding accrued by held positions."""
        return sum(p.funding_earned for p in self._positions.values())

    @property
    def closing_positions(self) -> list[str]:
        """Canonicals stuck in closing with a leg still open."""
        return [c for c, p in self._positions.items() if p.status is PositionStatus.CLOSING]

    def set_exit_spread_window(self, window: int) -> None:
        """Change the number of observations averaged for exits."""
        self._exit_spread_window = max(1, window)
        for position in self._positions.values():
            del position.recent_spreads[: -self._exit_spread_window]

    # =========================================================================
    # Entry
    # =========================================================================

    async def open_position(
        self,
        spread: FundingSpread,
        allocation: Allocation,
    ) -> StrategyPosition | None:
        """
        Open a pair for a selected spread.

        Args:
            spread: Spread to trade.
            allocation: Rank and USD size.

        Returns:
            Copy of the open position, or None when the entry failed.
        """
        if self.holds(spread.canonical):
            logger.warning(f"{spread.canonical} already held, entry skipped")
            return None

        now = get_timestamp_ms()
        long_rate = spread.rate_for(spread.long_exchange)
        short_rate = spread.rate_for(spread.short_exchange)

        position = StrategyPosition(
            id=f"{spread.canonical}-{uuid4().hex[:8]}",
            canonical=spread.canonical,
            rank=allocation.rank,
            allocation_pct=allocation.allocation_pct,
            long_exchange=spread.long_exchange,
            long_symbol=spread.long_symbol,
            long_size=allocation.long_size,
            long_entry_price=spread.long_mark_price,
            long_rate=long_rate.rate,
            long_payments_per_day=long_rate.payments_per_day,
            short_exchange=spread.short_exchange,
            short_symbol=spread.short_symbol,
            short_size=allocation.short_size,
            short_entry_price=spread.short_mark_price,
            short_rate=short_rate.rate,
            short_payments_per_day=short_rate.payments_per_day,
            entry_spread=spread.favorable_spread,
            spread=spread.favorable_spread,
            entry_time_ms=now,
        )
        self._pending[spread.canonical] = position

        try:
            result = await self._executor.open_pair(spread, allocation)
        finally:
            self._pending.pop(spread.canonical, None)

        if not result.is_success:
            await self._report_entry_failure(spread, result)
            return None

        if result.long_leg and result.long_leg.fill_price:
            position.long_entry_price = result.long_leg.fill_price
        if result.short_leg and result.short_leg.fill_price:
            position.short_entry_price = result.short_leg.fill_price
        position.long_current_price = position.long_entry_price
        position.short_current_price = position.short_entry_price
        position.entry_time_ms = get_timestamp_ms()
        position.last_accrual_ms = position.entry_time_ms
        position.recent_spreads = [position.spread]
        position.status = PositionStatus.OPEN
        self._positions[spread.canonical] = position

        await self._event_bus.notify(
            EventType.POSITION_OPENED,
            NotificationLevel.SUCCESS,
            f"Opened {spread.canonical} #{allocation.rank}: "
            f"long {spread.long_exchange.value} / short {spread.short_exchange.value}, "
            f"{format_usd(position.notional)} at {spread.apr_pct:.2f}% APR",
            data=position.to_dict(),
            source="positions",
        )
        return copy.deepcopy(position)

    async def _report_entry_failure(
        self,
        spread: FundingSpread,
        result: PairExecutionResult,
    ) -> None:
        """Publish entry failure and any residual exposure."""
        await self._event_bus.notify(
            EventType.ENTRY_FAILED,
            NotificationLevel.ERROR,
            f"Entry for {spread.canonical} failed ({result.status.value}): {result.error_message}",
            data={
                "canonical": spread.canonical,
                "status": result.status.value,
                "failed_legs": [
                    {
                        "exchange": leg.exchange.value,
                        "symbol": leg.symbol,
                        "side": leg.side.value,
                        "error": leg.error_message,
                    }
                    for leg in result.failed_legs
                ],
            },
            source="positions",
        )

        for residual in result.residuals:
            await self._event_bus.notify(
                EventType.ERROR,
                NotificationLevel.ERROR,
                f"Residual exposure on {residual.exchange.value} {residual.symbol} "
                f"{residual.side.value} ${residual.size_usd:.2f} needs manual reconciliation",
                data=residual.to_dict(),
                source="positions",
            )

    # =========================================================================
    # Ticks
    # =========================================================================

    def update_tick(
        self,
        spreads: Mapping[str, FundingSpread],
        now_ms: int | None = None,
    ) -> list[str]:
        """
        Mark positions to market and accrue funding.

        Args:
            spreads: Latest spreads keyed by canonical asset.
            now_ms: Tick time, defaults to now.

        Returns:
            Canonicals of open positions whose spread turned unfavorable.
        """
        now = now_ms if now_ms is not None else get_timestamp_ms()
        flipped: list[str] = []

        for canonical, position in self._positions.items():
            spread = spreads.get(canonical)
            if spread is not None:
                self._apply_market(position, spread)
            self._accrue(position, now)

            if spread is None or position.status is not PositionStatus.OPEN:
                continue

            position.recent_spreads.append(position.spread)
            del position.recent_spreads[: -self._exit_spread_window]

            if position.smoothed_spread < 0:
                flipped.append(canonical)

        return flipped

    def _apply_market(self, position: StrategyPosition, spread: FundingSpread) -> None:
        """Refresh marks and rates of a position from the latest spread."""
        long_rate = spread.rate_for(position.long_exchange)
        short_rate = spread.rate_for(position.short_exchange)

        if long_rate.mark_price > 0:
            position.long_current_price = long_rate.mark_price
        if short_rate.mark_price > 0:
            position.short_current_price = short_rate.mark_price

        position.long_rate = long_rate.rate
        position.long_payments_per_day = long_rate.payments_per_day
        position.short_rate = short_rate.rate
        position.short_payments_per_day = short_rate.payments_per_day
        position.spread = position.short_hourly_rate - position.long_hourly_rate

    @staticmethod
    def _accrue(position: StrategyPosition, now_ms: int) -> None:
        """Accrue funding for the elapsed hours and recompute P&L."""
        hours = hours_between(position.last_accrual_ms, now_ms)
        if hours > 0:
            received = position.short_size * position.short_hourly_rate * hours
            paid = position.long_size * position.long_hourly_rate * hours
            if not position.short_open:
                received = 0.0
            if not position.long_open:
                paid = 0.0
            position.funding_earned += received - paid
            position.last_accrual_ms = now_ms

        position.pnl = position.long_price_pnl + position.short_price_pnl + position.funding_earned

    # =========================================================================
    # Exit
    # =========================================================================

    def update_rank(self, canonical: str, rank: int, allocation_pct: float) -> None:
        """Update rank metadata of a held position without trading."""
        position = self._positions.get(canonical)
        if position is not None:
            position.rank = rank
            position.allocation_pct = allocation_pct

    async def close_position(self, canonical: str, reason: ExitReason) -> bool:
        """
        Close a held position.

        Args:
            canonical: Asset to close.
            reason: Exit reason recorded on the position.

        Returns:
            True when every leg closed and the position moved to history.

        Raises:
            KeyError: If no position is held for the asset.
        """
        position = self._positions[canonical]

        self._accrue(position, get_timestamp_ms())
        position.status = PositionStatus.CLOSING
        if position.exit_reason is None:
            position.exit_reason = reason

        result = await self._executor.close_pair(position)

        if result.long_leg is not None and result.long_leg.is_filled:
            position.long_open = False
            if result.long_leg.fill_price:
                position.long_current_price = result.long_leg.fill_price
        if result.short_leg is not None and result.short_leg.is_filled:
            position.short_open = False
            if result.short_leg.fill_price:
                position.short_current_price = result.short_leg.fill_price

        self._accrue(position, get_timestamp_ms())

        if position.has_open_legs:
            position.last_error = result.error_message
            await self._event_bus.notify(
                EventType.CLOSE_FAILED,
                NotificationLevel.ERROR,
                f"Close of {canonical} incomplete, position left closing: {result.error_message}",
                data={
                    "canonical": canonical,
                    "open_legs": [
                        {"exchange": leg.exchange.value, "symbol": leg.symbol, "side": leg.side.value}
                        for leg in result.failed_legs
                    ],
                    "position": position.to_dict(),
                },
                source="positions",
            )
            return False

        position.status = PositionStatus.CLOSED
        position.exit_time_ms = get_timestamp_ms()
        position.last_error = ""
        del self._positions[canonical]
        self._closed.appendleft(position)

        await self._event_bus.notify(
            EventType.POSITION_CLOSED,
            NotificationLevel.SUCCESS,
            f"Closed {canonical} ({position.exit_reason.value if position.exit_reason else reason.value}): "
            f"P&L {format_usd(position.pnl)}, funding {format_usd(position.funding_earned)}",
            data=position.to_dict(),
            source="positions",
        )
        return True

    async def close_all(self, reason: ExitReason) -> dict[str, bool]:
        """
        Close every held position.

        Returns:
            Outcome per canonical.
        """
        outcomes: dict[str, bool] = {}
        for canonical in list(self._positions):
            outcomes[canonical] = await self.close_position(canonical, reason)
        return outcomes

    # =========================================================================
    # Persistence
    # =========================================================================

    def restore(
        self,
        positions: Iterable[StrategyPosition],
        closed: Iterable[StrategyPosition],
    ) -> None:
        """Reload positions and history from persisted state."""
        self._positions = {p.canonical: p for p in positions}
        self._pending.clear()
        self._closed.clear()
        self._closed.extend(closed)
