"""
Metrics collection for strategy monitoring.

Tracks latencies, counters and position statistics with efficient
in-memory storage. Position and rebalance outcomes are fed from the
event bus.
"""

import time
from collections import deque
from dataclasses import dataclass
from typing import Any

from funding_arbitrage.core.event_bus import Event, EventBus, EventType, Notification


@dataclass
class LatencyStats:
    """Aggregated latency statistics."""

    min_us: int = 0
    max_us: int = 0
    avg_us: float = 0.0
    p50_us: int = 0
    p95_us: int = 0
    p99_us: int = 0
    count: int = 0


@dataclass
class StrategyStats:
    """Position and rebalance statistics."""

    rebalances: int = 0
    rebalances_skipped: int = 0
    validation_failures: int = 0
    entries_opened: int = 0
    entries_failed: int = 0
    positions_closed: int = 0
    close_failures: int = 0
    negative_spread_exits: int = 0
    realized_pnl: float = 0.0
    realized_funding: float = 0.0

    @property
    def entry_success_rate(self) -> float:
        """Share of entries that opened both legs."""
        total = self.entries_opened + self.entries_failed
        return self.entries_opened / total if total > 0 else 0.0


class MetricsCollector:
    """
    Collects and aggregates strategy metrics.

    Features:
    - Rolling window latency tracking
    - Counter-based event tracking
    - Realized P&L accumulation from closed positions
    """

    def __init__(
        self,
        latency_window_size: int = 1000,
    ) -> None:
        """
        Initialize metrics collector.

        Args:
            latency_window_size: Number of samples to keep for latency stats.
        """
        self._window_size = latency_window_size
        self._latencies: dict[str, deque[int]] = {}
        self._counters: dict[str, int] = {}
        self._stats = StrategyStats()
        self._start_time = time.time()

    def attach(self, event_bus: EventBus) -> None:
        """Count position and rebalance outcomes published on the bus."""
        for event_type in (
            EventType.POSITION_OPENED,
            EventType.POSITION_CLOSED,
            EventType.ENTRY_FAILED,
            EventType.CLOSE_FAILED,
            EventType.NEGATIVE_SPREAD,
            EventType.REBALANCE_COMPLETE,
            EventType.REBALANCE_SKIPPED,
            EventType.VALIDATION_FAILED,
        ):
            event_bus.subscribe_sync(event_type, self._on_event)

    def _on_event(self, event: Event[Notification]) -> None:
        stats = self._stats
        match event.type:
            case EventType.POSITION_OPENED:
                stats.entries_opened += 1
            case EventType.ENTRY_FAILED:
                stats.entries_failed += 1
            case EventType.POSITION_CLOSED:
                stats.positions_closed += 1
                stats.realized_pnl += float(event.payload.data.get("pnl", 0.0))
                stats.realized_funding += float(event.payload.data.get("funding_earned", 0.0))
            case EventType.CLOSE_FAILED:
                stats.close_failures += 1
            case EventType.NEGATIVE_SPREAD:
                stats.negative_spread_exits += 1
            case EventType.REBALANCE_COMPLETE:
                stats.rebalances += 1
            case EventType.REBALANCE_SKIPPED:
                stats.rebalances_skipped += 1
            case EventType.VALIDATION_FAILED:
                stats.validation_failures += 1

    def record_latency(self, name: str, latency_us: int) -> None:
        """
        Record a latency measurement.

        Args:
            name: Metric name (e.g., "rebalance", "feed_refresh").
            latency_us: Latency in microseconds.
        """
        if name not in self._latencies:
            self._latencies[name] = deque(maxlen=self._window_size)

        self._latencies[name].append(latency_us)

    def increment_counter(self, name: str, value: int = 1) -> None:
        """Increment a counter."""
        self._counters[name] = self._counters.get(name, 0) + value

    def get_counter(self, name: str) -> int:
        """Get counter value."""
        return self._counters.get(name, 0)

    def get_latency_stats(self, name: str) -> LatencyStats:
        """
        Get latency statistics for a metric.

        Args:
            name: Metric name.

        Returns:
            LatencyStats with aggregated values.
        """
        samples = self._latencies.get(name)
        if not samples:
            return LatencyStats()

        sorted_samples = sorted(samples)
        n = len(sorted_samples)

        return LatencyStats(
            min_us=sorted_samples[0],
            max_us=sorted_samples[-1],
            avg_us=sum(sorted_samples) / n,
            p50_us=sorted_samples[n // 2],
            p95_us=sorted_samples[int(n * 0.95)],
            p99_us=sorted_samples[int(n * 0.99)] if n > 1 else sorted_samples[-1],
            count=n,
        )

    def get_all_latency_stats(self) -> dict[str, LatencyStats]:
        """Get latency stats for all metrics."""
        return {name: self.get_latency_stats(name) for name in self._latencies}

    @property
    def stats(self) -> StrategyStats:
        """Get strategy statistics."""
        return self._stats

    @property
    def uptime_seconds(self) -> float:
        """Get uptime in seconds."""
        return time.time() - self._start_time

    def to_dict(self) -> dict[str, Any]:
        """
        Export all metrics as a dict.

        Returns:
            Dict representation of all metrics.
        """
        stats = self._stats
        return {
            "uptime_seconds": self.uptime_seconds,
            "counters": dict(self._counters),
            "latencies": {
                name: {
                    "min": s.min_us,
                    "max": s.max_us,
                    "avg": s.avg_us,
                    "p50": s.p50_us,
                    "p99": s.p99_us,
                    "count": s.count,
                }
                for name, s in self.get_all_latency_stats().items()
            },
            "strategy": {
                "rebalances": stats.rebalances,
                "rebalances_skipped": stats.rebalances_skipped,
                "validation_failures": stats.validation_failures,
                "entries_opened": stats.entries_opened,
                "entries_failed": stats.entries_failed,
                "positions_closed": stats.positions_closed,
                "close_failures": stats.close_failures,
                "negative_spread_exits": stats.negative_spread_exits,
                "realized_pnl": stats.realized_pnl,
                "realized_funding": stats.realized_funding,
            },
        }

    def reset(self) -> None:
        """Reset all metrics."""
        self._latencies.clear()
        self._counters.clear()
        self._stats = StrategyStats()
        self._start_time = time.time()
