"""
Bounded execution log.

Keeps the most recent notifications published on the event bus so the
control API can show what the strategy did without a log file.
"""

from collections import deque
from typing import Any

from funding_arbitrage.config.constants import MAX_EVENT_LOG_SIZE
from funding_arbitrage.core.event_bus import Event, EventBus, Notification
from funding_arbitrage.core.types import NotificationLevel


class EventLog:
    """Newest-first ring buffer of notifications."""

    def __init__(self, max_entries: int = MAX_EVENT_LOG_SIZE) -> None:
        self._entries: deque[dict[str, Any]] = deque(maxlen=max_entries)

    def attach(self, event_bus: EventBus) -> None:
        """Record every notification published on the bus."""
        event_bus.subscribe_all(self._on_event)

    async def _on_event(self, event: Event[Any]) -> None:
        if isinstance(event.payload, Notification):
            self.record(event)

    def record(self, event: Event[Notification]) -> None:
        """Append a notification event."""
        self._entries.appendleft(
            {
                "timestamp_ms": event.timestamp_us // 1000,
                "type": event.type.name.lower(),
                "level": event.payload.level.value,
                "message": event.payload.message,
                "source": event.source,
                "data": event.payload.data,
            }
        )

    def entries(
        self,
        limit: int | None = None,
        level: NotificationLevel | None = None,
    ) -> list[dict[str, Any]]:
        """
        Recent entries, newest first.

        Args:
            limit: Maximum number of entries.
            level: Only entries of this severity.
        """
        items = [e for e in self._entries if level is None or e["level"] == level.value]
        return items[:limit] if limit is not None else items

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
