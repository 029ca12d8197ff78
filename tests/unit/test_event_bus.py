"""
Unit tests for EventBus.

Tests subscription ordering, error isolation and notifications.
"""

from typing import Any

import pytest

from funding_arbitrage.core.event_bus import Event, EventBus, EventType, Notification
from funding_arbitrage.core.types import NotificationLevel


class TestEventBus:
    """Tests for EventBus."""

    @pytest.mark.asyncio
    async def test_priority_order(self) -> None:
        """Test that higher priority handlers run first."""
        bus = EventBus()
        calls: list[str] = []

        async def low(event: Event[Any]) -> None:
            calls.append("low")

        async def high(event: Event[Any]) -> None:
            calls.append("high")

        bus.subscribe(EventType.WARNING, low, priority=0)
        bus.subscribe(EventType.WARNING, high, priority=10)
        bus.subscribe_sync(EventType.WARNING, lambda e: calls.append("sync"))

        await bus.publish(Event(type=EventType.WARNING, payload=None))

        assert calls == ["sync", "high", "low"]

    @pytest.mark.asyncio
    async def test_handler_errors_isolated(self) -> None:
        """Test that a failing handler does not stop delivery."""
        bus = EventBus()
        received: list[Event[Any]] = []

        async def broken(event: Event[Any]) -> None:
            raise RuntimeError("boom")

        async def collect(event: Event[Any]) -> None:
            received.append(event)

        bus.subscribe(EventType.ERROR, broken, priority=1)
        bus.subscribe(EventType.ERROR, collect)

        await bus.publish(Event(type=EventType.ERROR, payload="x"))

        assert len(received) == 1

    @pytest.mark.asyncio
    async def test_subscribe_all(self) -> None:
        """Test catch-all handlers see every type."""
        bus = EventBus()
        seen: list[EventType] = []

        async def collect(event: Event[Any]) -> None:
            seen.append(event.type)

        bus.subscribe_all(collect)
        await bus.publish(Event(type=EventType.POSITION_OPENED, payload=None))
        await bus.publish(Event(type=EventType.SHUTDOWN, payload=None))

        assert seen == [EventType.POSITION_OPENED, EventType.SHUTDOWN]
        assert bus.unsubscribe(None, collect) is True
        assert bus.unsubscribe(None, collect) is False

    @pytest.mark.asyncio
    async def test_notify(self) -> None:
        """Test that notifications carry level, message and data."""
        bus = EventBus()
        received: list[Event[Notification]] = []
        bus.subscribe_sync(EventType.NEGATIVE_SPREAD, received.append)

        await bus.notify(
            EventType.NEGATIVE_SPREAD,
            NotificationLevel.WARNING,
            "ETH spread turned negative",
            data={"canonical": "ETH"},
            source="engine",
        )

        assert len(received) == 1
        event = received[0]
        assert event.payload.level is NotificationLevel.WARNING
        assert event.payload.message == "ETH spread turned negative"
        assert event.payload.data == {"canonical": "ETH"}
        assert event.source == "engine"
        assert event.timestamp_us > 0

    @pytest.mark.asyncio
    async def test_pause(self) -> None:
        """Test that a paused bus drops events."""
        bus = EventBus()
        received: list[Event[Any]] = []
        bus.subscribe_sync(EventType.WARNING, received.append)

        bus.pause()
        await bus.publish(Event(type=EventType.WARNING, payload=None))
        bus.resume()
        await bus.publish(Event(type=EventType.WARNING, payload=None))

        assert len(received) == 1
        assert bus.is_paused is False

    def test_unsubscribe(self) -> None:
        """Test removing a typed handler."""
        bus = EventBus()

        async def handler(event: Event[Any]) -> None:
            return None

        bus.subscribe(EventType.WARNING, handler)

        assert bus.handler_count(EventType.WARNING) == 1
        assert bus.unsubscribe(EventType.WARNING, handler) is True
        assert bus.handler_count(EventType.WARNING) == 0
