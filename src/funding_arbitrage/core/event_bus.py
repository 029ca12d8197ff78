"""
Internal event bus for decoupled communication.

Provides publish/subscribe messaging between the strategy service and its
consumers (log, execution log, API stream) without tight coupling.
"""

import logging
from collections import defaultdict
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Generic, TypeVar

from funding_arbitrage.core.types import NotificationLevel
from funding_arbitrage.utils.time import get_timestamp_us


logger = logging.getLogger(__name__)

_LOG_LEVELS: dict[NotificationLevel, int] = {
    NotificationLevel.INFO: logging.INFO,
    NotificationLevel.SUCCESS: logging.INFO,
    NotificationLevel.WARNING: logging.WARNING,
    NotificationLevel.ERROR: logging.ERROR,
}


class EventType(Enum):
    """System event types."""

    # Market data events
    SPREADS_COMPUTED = auto()

    # Position events
    POSITION_OPENED = auto()
    POSITION_CLOSED = auto()
    ENTRY_FAILED = auto()
    CLOSE_FAILED = auto()
    NEGATIVE_SPREAD = auto()

    # Rebalance events
    REBALANCE_COMPLETE = auto()
    REBALANCE_SKIPPED = auto()
    VALIDATION_FAILED = auto()

    # System events
    STRATEGY_STARTED = auto()
    STRATEGY_STOPPED = auto()
    WARNING = auto()
    ERROR = auto()
    SHUTDOWN = auto()


T = TypeVar("T")


@dataclass(slots=True)
class Notification:
    """Structured message for display consumers."""

    level: NotificationLevel
    message: str
    data: dict[str, Any] = field(default_factory=dict)


@dataclass
class Event(Generic[T]):
    """Generic event with typed payload."""

    type: EventType
    payload: T
    timestamp_us: int = 0
    source: str = ""


# Type alias for event handlers
EventHandler = Callable[[Event[Any]], Awaitable[None]]
SyncEventHandler = Callable[[Event[Any]], None]


class EventBus:
    """
    Async-safe event bus for internal messaging.

    Features:
    - Type-safe publish/subscribe
    - Async and sync handler support
    - Priority-based handler ordering
    - Error isolation per handler
    - Catch-all subscribers for stream consumers
    """

    def __init__(self) -> None:
        """Initialize event bus."""
        self._handlers: dict[EventType, list[tuple[int, EventHandler]]] = defaultdict(list)
        self._sync_handlers: dict[EventType, list[tuple[int, SyncEventHandler]]] = defaultdict(list)
        self._global_handlers: list[EventHandler] = []
        self._paused = False

    def subscribe(
        self,
        event_type: EventType,
        handler: EventHandler,
        priority: int = 0,
    ) -> None:
        """
        Subscribe an async handler to an event type.

        Args:
            event_type: Event type to handle.
            handler: Async handler function.
            priority: Handler priority (higher = earlier execution).
        """
        self._handlers[event_type].append((priority, handler))
        self._handlers[event_type].sort(key=lambda x: x[0], reverse=True)

    def subscribe_sync(
        self,
        event_type: EventType,
        handler: SyncEventHandler,
        priority: int = 0,
    ) -> None:
        """
        Subscribe a sync handler to an event type.

        Args:
            event_type: Event type to handle.
            handler: Sync handler function.
            priority: Handler priority.
        """
        self._sync_handlers[event_type].append((priority, handler))
        self._sync_handlers[event_type].sort(key=lambda x: x[0], reverse=True)

    def subscribe_all(self, handler: EventHandler) -> None:
        """Subscribe an async handler to every event type."""
        self._global_handlers.append(handler)

    def unsubscribe(
        self,
        event_type: EventType | None,
        handler: EventHandler | SyncEventHandler,
    ) -> bool:
        """
        Unsubscribe a handler.

        Args:
            event_type: Event type, or None for a catch-all handler.
            handler: Handler to remove.

        Returns:
            True if handler was found and removed.
        """
        if event_type is None:
            if handler in self._global_handlers:
                self._global_handlers.remove(handler)  # type: ignore[arg-type]
                return True
            return False

        for i, (_, ah) in enumerate(self._handlers[event_type]):
            if ah is handler:
                self._handlers[event_type].pop(i)
                return True

        for i, (_, sh) in enumerate(self._sync_handlers[event_type]):
            if sh is handler:
                self._sync_handlers[event_type].pop(i)
                return True

        return False

    async def publish(self, event: Event[Any]) -> None:
        """
        Publish an event to all subscribers.

        Args:
            event: Event to publish.
        """
        if self._paused:
            return

        # Run sync handlers first (they're typically faster)
        for _, sync_handler in self._sync_handlers[event.type]:
            try:
                sync_handler(event)
            except Exception as e:
                logger.error(f"Sync handler error for {event.type}: {e}")

        for _, async_handler in self._handlers[event.type]:
            try:
                await async_handler(event)
            except Exception as e:
                logger.error(f"Async handler error for {event.type}: {e}")

        for global_handler in list(self._global_handlers):
            try:
                await global_handler(event)
            except Exception as e:
                logger.error(f"Stream handler error for {event.type}: {e}")

    async def notify(
        self,
        event_type: EventType,
        level: NotificationLevel,
        message: str,
        data: dict[str, Any] | None = None,
        source: str = "",
    ) -> None:
        """
        Log and publish a notification.

        Args:
            event_type: Event type to publish under.
            level: Notification severity.
            message: Human-readable message.
            data: Structured detail for consumers.
            source: Publishing component.
        """
        logger.log(_LOG_LEVELS[level], message)
        await self.publish(
            Event(
                type=event_type,
                payload=Notification(level=level, message=message, data=data or {}),
                timestamp_us=get_timestamp_us(),
                source=source,
            )
        )

    def pause(self) -> None:
        """Pause event delivery."""
        self._paused = True

    def resume(self) -> None:
        """Resume event delivery."""
        self._paused = False

    def clear(self, event_type: EventType | None = None) -> None:
        """
        Clear handlers.

        Args:
            event_type: Specific type to clear, or None for all.
        """
        if event_type:
            self._handlers[event_type].clear()
            self._sync_handlers[event_type].clear()
        else:
            self._handlers.clear()
            self._sync_handlers.clear()
            self._global_handlers.clear()

    def handler_count(self, event_type: EventType) -> int:
        """Get number of handlers for an event type."""
        return (
            len(self._handlers[event_type])
            + len(self._sync_handlers[event_type])
            + len(self._global_handlers)
        )

    @property
    def is_paused(self) -> bool:
        """Check if event bus is paused."""
        return self._paused
