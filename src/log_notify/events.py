"""Thread-safe event bus for watcher and pipeline notifications."""

from __future__ import annotations

import logging
import threading
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Protocol

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Event:
    """
    Immutable notification published on the event bus.

    Attributes:
        event_type: Type of the event (e.g., "watcher.update", "pipeline.completed")
        source: Origin of the event (e.g., "watcher", "pipeline")
        data: Event-specific data payload
        timestamp: When the event occurred
    """

    event_type: str
    source: str
    data: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))


class EventHandler(Protocol):
    """Callable that receives published events."""

    def __call__(self, event: Event) -> None: ...


WATCHER_EVENT_TYPES: dict[str, str] = {
    "watcher.ready": "Watched file found and offsets initialized",
    "watcher.update": "New content appended to the watched file",
    "watcher.rotated": "Watched file was rotated or truncated",
    "watcher.error": "Transient I/O failure while checking",
    "watcher.stopped": "Watcher stopped",
    "pipeline.summarized": "Summary produced for new content",
    "pipeline.completed": "Content delivered and marked consumed",
    "pipeline.failed": "Summarization failed, content left unconsumed",
}


class EventBus:
    """
    Thread-safe event bus with pub/sub pattern.

    Subscribers register interest in specific event types and are called
    synchronously, in subscription order, when a matching event is
    published. A handler that raises is logged and skipped; it never
    breaks the publisher or other handlers.

    Example:
        bus = EventBus()
        sub_id = bus.subscribe("watcher.update", lambda e: print(e.data))
        bus.publish(Event(event_type="watcher.update", source="watcher"))
        bus.unsubscribe(sub_id)
    """

    def __init__(self) -> None:
        # Map of event_type -> list of (subscription_id, handler) tuples
        self._subscribers: dict[str, list[tuple[str, EventHandler]]] = {}
        self._lock = threading.Lock()

    def subscribe(self, event_type: str, handler: EventHandler) -> str:
        """
        Subscribe to events of a specific type.

        Args:
            event_type: Type of events to receive
            handler: Callable that processes events

        Returns:
            Subscription ID for unsubscribing
        """
        if event_type not in WATCHER_EVENT_TYPES:
            logger.warning(f"Subscribing to unknown event type: {event_type}")

        subscription_id = str(uuid.uuid4())
        with self._lock:
            self._subscribers.setdefault(event_type, []).append((subscription_id, handler))

        logger.debug(f"Subscribed {subscription_id} to {event_type}")
        return subscription_id

    def unsubscribe(self, subscription_id: str) -> bool:
        """
        Remove a subscription.

        Returns:
            True if unsubscribed, False if ID not found
        """
        with self._lock:
            for event_type, subscribers in self._subscribers.items():
                for i, (sub_id, _) in enumerate(subscribers):
                    if sub_id == subscription_id:
                        subscribers.pop(i)
                        logger.debug(f"Unsubscribed {subscription_id} from {event_type}")
                        return True

        logger.warning(f"Subscription ID not found: {subscription_id}")
        return False

    def publish(self, event: Event) -> None:
        """
        Publish an event to all subscribers synchronously.

        Args:
            event: Event to publish
        """
        # Snapshot so handlers may (un)subscribe while being called
        with self._lock:
            subscribers = self._subscribers.get(event.event_type, []).copy()

        for subscription_id, handler in subscribers:
            try:
                handler(event)
            except Exception as e:
                logger.error(
                    f"Handler {subscription_id} for {event.event_type} raised "
                    f"{type(e).__name__}: {e}"
                )

    def get_subscriber_count(self, event_type: str | None = None) -> int:
        """Get the number of subscribers, for one event type or in total."""
        with self._lock:
            if event_type is not None:
                return len(self._subscribers.get(event_type, []))
            return sum(len(subs) for subs in self._subscribers.values())
