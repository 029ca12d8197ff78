"""
CLI reporter for real-time status display.

Provides a terminal-based panel showing strategy state, held pairs
and funding performance.
"""

import asyncio
import sys
from collections.abc import Callable
from datetime import timedelta
from typing import TextIO

from funding_arbitrage.core.types import PositionStatus, StrategyStatus
from funding_arbitrage.telemetry.metrics import MetricsCollector
from funding_arbitrage.utils.math import format_usd
from funding_arbitrage.utils.time import format_duration_s, get_timestamp_ms


StatusProvider = Callable[[], StrategyStatus]


class CLIReporter:
    """
    Real-time CLI panel for monitoring.

    Displays a formatted status panel with:
    - Strategy state and capital usage
    - Held pairs with spread and P&L
    - Entry/exit counters
    """

    # Box drawing characters
    BOX_TL = "\u2554"  # ╔
    BOX_TR = "\u2557"  # ╗
    BOX_BL = "\u255a"  # ╚
    BOX_BR = "\u255d"  # ╝
    BOX_H = "\u2550"  # ═
    BOX_V = "\u2551"  # ║
    BOX_LT = "\u2560"  # ╠
    BOX_RT = "\u2563"  # ╣
    THIN_V = "\u2502"  # │

    def __init__(
        self,
        metrics: MetricsCollector,
        status_provider: StatusProvider,
        width: int = 76,
        output: TextIO | None = None,
        paper_mode: bool = True,
    ) -> None:
        """
        Initialize CLI reporter.

        Args:
            metrics: Metrics collector instance.
            status_provider: Returns the current strategy snapshot.
            width: Panel width in characters.
            output: Output stream (default: stdout).
            paper_mode: Whether orders are paper-filled.
        """
        self._metrics = metrics
        self._status_provider = status_provider
        self._width = width
        self._output = output or sys.stdout
        self._paper_mode = paper_mode
        self._running = False
        self._task: asyncio.Task[None] | None = None

    def _format_uptime(self, seconds: float) -> str:
        """Format uptime as HH:MM:SS."""
        td = timedelta(seconds=int(seconds))
        hours, remainder = divmod(int(td.total_seconds()), 3600)
        minutes, secs = divmod(remainder, 60)
        return f"{hours:02d}:{minutes:02d}:{secs:02d}"

    def _pad(self, text: str, width: int) -> str:
        return text.ljust(width)[:width]

    def _line(self, content: str) -> str:
        return f"{self.BOX_V}{self._pad(content, self._width - 2)}{self.BOX_V}"

    def _divider(self) -> str:
        return f"{self.BOX_LT}{self.BOX_H * (self._width - 2)}{self.BOX_RT}"

    def render(self) -> str:
        """
        Render the status panel.

        Returns:
            Formatted panel string.
        """
        status = self._status_provider()
        stats = self._metrics.stats
        mode = "PAPER" if self._paper_mode else "LIVE"
        state = "RUNNING" if status.enabled else "STOPPED"

        if status.next_rebalance_ms is not None:
            remaining = (status.next_rebalance_ms - get_timestamp_ms()) / 1000
            next_text = f"in {format_duration_s(remaining)}"
        else:
            next_text = "---"

        lines = [f"{self.BOX_TL}{self.BOX_H * (self._width - 2)}{self.BOX_TR}"]
        lines.append(self._line(f"  FUNDING ARBITRAGE | ASTER x HYPERLIQUID | {mode} | {state}"))
        lines.append(self._divider())
        lines.append(
            self._line(
                f"  Uptime: {self._format_uptime(self._metrics.uptime_seconds)}"
                f"  |  Next rebalance: {next_text}"
            )
        )
        lines.append(
            self._line(
                f"  Capital: {format_usd(status.total_capital)}"
                f"  Allocated: {format_usd(status.allocated_capital)}"
                f"  Free: {format_usd(status.available_capital)}"
            )
        )
        lines.append(self._divider())

        header = f"  {'#':<3}{'ASSET':<8}{'LONG':<13}{'SHORT':<13}{'APR':>9}  {'P&L':>11}"
        lines.append(self._line(header))
        if not status.open_positions:
            lines.append(self._line("  no open positions"))
        for p in status.open_positions:
            flag = "" if p.status is PositionStatus.OPEN else f" ({p.status.value})"
            row = (
                f"  {p.rank:<3}{p.canonical:<8}{p.long_exchange.value:<13}"
                f"{p.short_exchange.value:<13}{p.annual_spread * 100:>8.2f}%"
                f"  {format_usd(p.pnl):>11}{flag}"
            )
            lines.append(self._line(row))

        lines.append(self._divider())
        lines.append(
            self._line(
                f"  Opened: {stats.entries_opened} {self.THIN_V} Failed: {stats.entries_failed}"
                f" {self.THIN_V} Closed: {stats.positions_closed}"
                f" {self.THIN_V} Flips: {stats.negative_spread_exits}"
            )
        )
        lines.append(
            self._line(
                f"  P&L: {format_usd(status.total_pnl)}"
                f"  Funding: {format_usd(status.total_funding_earned)}"
                f"  Realized: {format_usd(stats.realized_pnl)}"
            )
        )
        if status.residual_exposures:
            lines.append(
                self._line(f"  !! {len(status.residual_exposures)} residual exposure(s) to reconcile")
            )
        lines.append(f"{self.BOX_BL}{self.BOX_H * (self._width - 2)}{self.BOX_BR}")

        return "\n".join(lines)

    def display(self) -> None:
        """Display the panel once."""
        self._output.write("\033[2J\033[H")
        self._output.write(self.render())
        self._output.write("\n")
        self._output.flush()

    async def run(self, interval: float = 5.0) -> None:
        """
        Run continuous display updates.

        Args:
            interval: Update interval in seconds.
        """
        self._running = True

        while self._running:
            self.display()
            await asyncio.sleep(interval)

    def start(self, interval: float = 5.0) -> asyncio.Task[None]:
        """Start the reporter as a background task."""
        self._task = asyncio.create_task(self.run(interval))
        return self._task

    def stop(self) -> None:
        """Stop the reporter."""
        self._running = False
        if self._task:
            self._task.cancel()

    def print_summary(self) -> None:
        """Print a final summary."""
        stats = self._metrics.stats
        status = self._status_provider()

        print("\n" + "=" * 50)
        print("  SESSION SUMMARY")
        print("=" * 50)
        print(f"  Uptime: {self._format_uptime(self._metrics.uptime_seconds)}")
        print(f"  Rebalances: {stats.rebalances:,} ({stats.rebalances_skipped:,} skipped)")
        print()
        print("  POSITIONS:")
        print(f"    Opened:       {stats.entries_opened:,}")
        print(f"    Failed:       {stats.entries_failed:,}")
        print(f"    Closed:       {stats.positions_closed:,}")
        print(f"    Still open:   {len(status.open_positions):,}")
        print(f"    Success rate: {stats.entry_success_rate:.1%}")
        print()
        print("  P&L:")
        print(f"    Realized:   {format_usd(stats.realized_pnl)}")
        print(f"    Funding:    {format_usd(stats.realized_funding)}")
        print(f"    Unrealized: {format_usd(status.total_pnl)}")
        print("=" * 50)
