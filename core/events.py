"""
Store-mutation events.

Stores publish an event after every committed mutation so an outer layer
(live UI refresh, audit tail) can subscribe without the stores knowing
about it. Delivery is synchronous and in-process; a subscriber that
raises is logged and skipped, the mutation it observed stays committed.

Usage:
    bus = EventBus()
    bus.subscribe("reel.stock_changed", on_stock_change)
    bus.subscribe("*", audit_tail)
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List

from logging_config import get_logger


logger = get_logger(__name__)

WILDCARD = "*"


@dataclass(frozen=True)
class StoreEvent:
    """One committed mutation."""

    topic: str
    """Dotted name, e.g. 'reel.stock_changed'."""

    payload: Dict[str, Any]
    """Serialized record after the mutation."""

    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


Subscriber = Callable[[StoreEvent], None]


class EventBus:
    """
    Thread-safe topic registry with synchronous fan-out.

    Subscribers are copied under the lock and called outside it, so a
    subscriber may itself subscribe or publish.
    """

    def __init__(self):
        self._subscribers: Dict[str, List[Subscriber]] = {}
        self._lock = threading.Lock()

    def subscribe(self, topic: str, callback: Subscriber) -> Callable[[], None]:
        """
        Register a callback for a topic ('*' receives everything).

        Returns:
            A function that removes the subscription
        """
        with self._lock:
            self._subscribers.setdefault(topic, []).append(callback)

        def unsubscribe() -> None:
            with self._lock:
                callbacks = self._subscribers.get(topic, [])
                if callback in callbacks:
                    callbacks.remove(callback)

        return unsubscribe

    def publish(self, topic: str, payload: Dict[str, Any]) -> StoreEvent:
        event = StoreEvent(topic=topic, payload=payload)

        with self._lock:
            callbacks = list(self._subscribers.get(topic, []))
            callbacks += self._subscribers.get(WILDCARD, [])

        for callback in callbacks:
            try:
                callback(event)
            except Exception as e:
                logger.error(f"Subscriber for '{topic}' failed: {e}", exc_info=True)

        return event
