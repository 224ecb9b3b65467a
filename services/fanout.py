"""In-process publish/subscribe for real-time reading updates.

Delivery is at-most-once: listeners only see messages published while they
are subscribed, and nothing is buffered or replayed. Consumers that need
durability re-read through the query service.
"""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass
from threading import Lock
from typing import Any, Callable, Dict

logger = logging.getLogger(__name__)

Listener = Callable[[Any], None]


def reading_topic(device_id: str) -> str:
    return f"water-level:{device_id}"


@dataclass(frozen=True)
class Subscription:
    topic: str
    token: int


class FanoutChannel:
    def __init__(self) -> None:
        self._listeners: Dict[str, Dict[int, Listener]] = {}
        self._tokens = itertools.count(1)
        self._lock = Lock()

    def subscribe(self, topic: str, listener: Listener) -> Subscription:
        with self._lock:
            token = next(self._tokens)
            self._listeners.setdefault(topic, {})[token] = listener
        return Subscription(topic=topic, token=token)

    def unsubscribe(self, subscription: Subscription) -> None:
        with self._lock:
            listeners = self._listeners.get(subscription.topic)
            if listeners is None:
                return
            listeners.pop(subscription.token, None)
            if not listeners:
                del self._listeners[subscription.topic]

    def subscriber_count(self, topic: str) -> int:
        with self._lock:
            return len(self._listeners.get(topic, {}))

    def publish(self, topic: str, message: Any) -> int:
        """Invoke every current listener for ``topic``; return how many were called."""
        with self._lock:
            listeners = list(self._listeners.get(topic, {}).values())

        for listener in listeners:
            try:
                listener(message)
            except Exception:
                logger.exception("Fan-out listener failed", extra={"topic": topic})
        if listeners:
            logger.debug("Published update", extra={"topic": topic, "listeners": len(listeners)})
        return len(listeners)
