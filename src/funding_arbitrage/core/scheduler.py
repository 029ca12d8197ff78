"""
Periodic strategy jobs.

Runs the rebalance timer, the position monitor and the market data
refresh as asyncio tasks, and guards rebalances against overlap and
manual spamming.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from funding_arbitrage.config.constants import (
    DEFAULT_MANUAL_REBALANCE_COOLDOWN_S,
    DEFAULT_MONITOR_INTERVAL_S,
    DEFAULT_RATE_REFRESH_INTERVAL_S,
    DEFAULT_REBALANCE_INTERVAL_MINUTES,
)
from funding_arbitrage.utils.time import get_timestamp_ms


logger = logging.getLogger(__name__)

Job = Callable[[], Awaitable[Any]]


class RebalanceScheduler:
    """
    Owns the strategy's periodic tasks.

    Jobs run shielded from task cancellation: stopping the scheduler
    cancels the timers, while a rebalance that already started runs to
    completion under the rebalance lock.
    """

    def __init__(
        self,
        rebalance: Job,
        monitor: Job,
        refresh: Job | None = None,
        rebalance_interval_s: float = DEFAULT_REBALANCE_INTERVAL_MINUTES * 60,
        monitor_interval_s: float = DEFAULT_MONITOR_INTERVAL_S,
        refresh_interval_s: float = DEFAULT_RATE_REFRESH_INTERVAL_S,
        cooldown_s: float = DEFAULT_MANUAL_REBALANCE_COOLDOWN_S,
    ) -> None:
        """
        Initialize scheduler.

        Args:
            rebalance: Scheduled rebalance job.
            monitor: Position tick job.
            refresh: Market data refresh job.
            rebalance_interval_s: Seconds between scheduled rebalances.
            monitor_interval_s: Seconds between position ticks.
            refresh_interval_s: Seconds between feed polls.
            cooldown_s: Minimum seconds between a rebalance and a manual one.
        """
        self._rebalance = rebalance
        self._monitor = monitor
        self._refresh = refresh
        self._rebalance_interval_s = rebalance_interval_s
        self._monitor_interval_s = monitor_interval_s
        self._refresh_interval_s = refresh_interval_s
        self._cooldown_s = cooldown_s

        self._lock = asyncio.Lock()
        self._last_rebalance_ms = 0
        self._next_due_ms = 0
        self._timer_task: asyncio.Task[None] | None = None
        self._monitor_task: asyncio.Task[None] | None = None
        self._refresh_task: asyncio.Task[None] | None = None

    # =========================================================================
    # Configuration
    # =========================================================================

    def configure(self, rebalance_interval_s: float, cooldown_s: float) -> None:
        """Apply strategy timing from a new configuration."""
        self._rebalance_interval_s = rebalance_interval_s
        self._cooldown_s = cooldown_s

    @property
    def lock(self) -> asyncio.Lock:
        """Lock held while a rebalance (or a close) is in flight."""
        return self._lock

    @property
    def in_flight(self) -> bool:
        """Check if a rebalance is running."""
        return self._lock.locked()

    @property
    def last_rebalance_ms(self) -> int:
        return self._last_rebalance_ms

    def mark_rebalanced(self, timestamp_ms: int | None = None) -> None:
        """Record the time of a completed rebalance."""
        self._last_rebalance_ms = timestamp_ms if timestamp_ms is not None else get_timestamp_ms()

    def cooldown_remaining(self, now_ms: int | None = None) -> float:
        """
        Seconds until a manual rebalance is allowed again.

        Returns:
            0.0 when a manual rebalance may run now.
        """
        if self._last_rebalance_ms <= 0:
            return 0.0
        now = now_ms if now_ms is not None else get_timestamp_ms()
        elapsed_s = (now - self._last_rebalance_ms) / 1000
        return max(0.0, self._cooldown_s - elapsed_s)

    @property
    def next_rebalance_ms(self) -> int | None:
        """Time of the next scheduled rebalance, None while stopped."""
        if not self.is_running or not self._next_due_ms:
            return None
        return self._next_due_ms

    # =========================================================================
    # Lifecycle
    # =========================================================================

    @property
    def _interval_ms(self) -> int:
        return int(self._rebalance_interval_s * 1000)

    @property
    def is_running(self) -> bool:
        """Check if the strategy timers are active."""
        return self._timer_task is not None and not self._timer_task.done()

    def start(self) -> None:
        """Start the rebalance timer and the position monitor."""
        if self.is_running:
            return
        now = get_timestamp_ms()
        if self._last_rebalance_ms:
            self._next_due_ms = max(now, self._last_rebalance_ms + self._interval_ms)
        else:
            self._next_due_ms = now + self._interval_ms
        self._timer_task = asyncio.create_task(self._timer_loop(), name="rebalance-timer")
        self._monitor_task = asyncio.create_task(self._monitor_loop(), name="position-monitor")
        logger.info(
            f"Scheduler started: rebalance every {self._rebalance_interval_s:.0f}s, "
            f"monitor every {self._monitor_interval_s:.0f}s"
        )

    async def stop(self) -> None:
        """Cancel the strategy timers."""
        tasks = [t for t in (self._timer_task, self._monitor_task) if t is not None]
        self._timer_task = None
        self._monitor_task = None
        await self._cancel(tasks)
        if tasks:
            logger.info("Scheduler stopped")

    def start_refresh(self) -> None:
        """Start polling market data, independent of the strategy timers."""
        if self._refresh is None or (self._refresh_task and not self._refresh_task.done()):
            return
        self._refresh_task = asyncio.create_task(
            self._refresh_loop(self._refresh), name="market-refresh"
        )

    async def stop_refresh(self) -> None:
        """Stop polling market data."""
        task = self._refresh_task
        self._refresh_task = None
        await self._cancel([task] if task else [])

    @staticmethod
    async def _cancel(tasks: list[asyncio.Task[None]]) -> None:
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    # =========================================================================
    # Loops
    # =========================================================================

    async def _timer_loop(self) -> None:
        while True:
            await asyncio.sleep(max(0.0, (self._next_due_ms - get_timestamp_ms()) / 1000))
            await self._run_job("rebalance", self._rebalance)
            self._next_due_ms = get_timestamp_ms() + self._interval_ms

    async def _monitor_loop(self) -> None:
        while True:
            await asyncio.sleep(self._monitor_interval_s)
            await self._run_job("monitor", self._monitor)

    async def _refresh_loop(self, job: Job) -> None:
        while True:
            await self._run_job("refresh", job)
            await asyncio.sleep(self._refresh_interval_s)

    @staticmethod
    async def _run_job(name: str, job: Job) -> None:
        """Run one iteration, logging failures instead of ending the loop."""
        try:
            await asyncio.shield(job())
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.exception(f"Scheduled {name} failed: {e}")
