"""
Unit tests for metrics, the event log and the CLI reporter.
"""

import io

import pytest

from funding_arbitrage.core.event_bus import EventBus, EventType
from funding_arbitrage.core.types import NotificationLevel, StrategyStatus
from funding_arbitrage.telemetry.event_log import EventLog
from funding_arbitrage.telemetry.metrics import MetricsCollector
from funding_arbitrage.telemetry.reporter import CLIReporter


def _idle_status() -> StrategyStatus:
    return StrategyStatus(
        enabled=False,
        total_capital=100.0,
        allocated_capital=0.0,
        available_capital=100.0,
        open_positions=[],
        total_pnl=0.0,
        total_funding_earned=0.0,
        last_rebalance_ms=0,
        next_rebalance_ms=None,
    )


class TestMetricsCollector:
    """Tests for MetricsCollector."""

    @pytest.mark.asyncio
    async def test_counts_bus_events(self) -> None:
        """Test that outcomes published on the bus are counted."""
        bus = EventBus()
        metrics = MetricsCollector()
        metrics.attach(bus)

        await bus.notify(EventType.POSITION_OPENED, NotificationLevel.SUCCESS, "opened ETH")
        await bus.notify(EventType.ENTRY_FAILED, NotificationLevel.ERROR, "SOL failed")
        await bus.notify(
            EventType.POSITION_CLOSED,
            NotificationLevel.INFO,
            "closed ETH",
            data={"pnl": 1.5, "funding_earned": 0.25},
        )
        await bus.notify(EventType.REBALANCE_COMPLETE, NotificationLevel.INFO, "done")

        stats = metrics.stats
        assert stats.entries_opened == 1
        assert stats.entries_failed == 1
        assert stats.entry_success_rate == 0.5
        assert stats.positions_closed == 1
        assert stats.realized_pnl == pytest.approx(1.5)
        assert stats.realized_funding == pytest.approx(0.25)
        assert stats.rebalances == 1

    def test_latency_stats(self) -> None:
        """Test latency aggregation."""
        metrics = MetricsCollector(latency_window_size=3)
        for value in (100, 200, 300, 400):
            metrics.record_latency("rebalance", value)

        stats = metrics.get_latency_stats("rebalance")

        assert stats.count == 3
        assert stats.min_us == 200
        assert stats.max_us == 400
        assert metrics.get_latency_stats("unknown").count == 0

    def test_counters_and_reset(self) -> None:
        """Test counters and export."""
        metrics = MetricsCollector()
        metrics.increment_counter("feed_errors", 2)

        assert metrics.get_counter("feed_errors") == 2
        assert metrics.to_dict()["counters"] == {"feed_errors": 2}

        metrics.reset()
        assert metrics.get_counter("feed_errors") == 0


class TestEventLog:
    """Tests for EventLog."""

    @pytest.mark.asyncio
    async def test_records_notifications(self) -> None:
        """Test newest-first recording and filtering."""
        bus = EventBus()
        log = EventLog(max_entries=2)
        log.attach(bus)

        await bus.notify(EventType.WARNING, NotificationLevel.WARNING, "first")
        await bus.notify(EventType.ERROR, NotificationLevel.ERROR, "second", source="engine")
        await bus.notify(EventType.WARNING, NotificationLevel.WARNING, "third")

        assert len(log) == 2
        assert [e["message"] for e in log.entries()] == ["third", "second"]
        assert log.entries(limit=1)[0]["type"] == "warning"

        errors = log.entries(level=NotificationLevel.ERROR)
        assert len(errors) == 1
        assert errors[0]["source"] == "engine"

        log.clear()
        assert log.entries() == []


class TestCLIReporter:
    """Tests for CLIReporter."""

    def test_render_idle(self) -> None:
        """Test the panel without positions."""
        output = io.StringIO()
        reporter = CLIReporter(MetricsCollector(), _idle_status, output=output)

        panel = reporter.render()

        assert "PAPER" in panel
        assert "STOPPED" in panel
        assert "no open positions" in panel
        assert "Next rebalance: ---" in panel

        reporter.display()
        assert "FUNDING ARBITRAGE" in output.getvalue()
