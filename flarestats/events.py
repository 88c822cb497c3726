from __future__ import annotations
"""
In-process publish/subscribe for pipeline events.
The presentation layer subscribes to ANALYTICS_REFRESHED_EVENT to receive
each snapshot the background refresher produces.
"""

import threading
from collections import defaultdict
from typing import Any, Callable, Dict, List

from flarestats.utils.logs import log_event

ANALYTICS_REFRESHED_EVENT = "analytics-refreshed"

Subscriber = Callable[[Any], None]


class EventBus:
    """Thread-safe, fire-and-forget event fan-out"""

    def __init__(self):
        self._subscribers: Dict[str, List[Subscriber]] = defaultdict(list)
        self._lock = threading.Lock()

    def subscribe(self, event: str, callback: Subscriber) -> Callable[[], None]:
        """Register a callback; returns a function that removes it again."""
        with self._lock:
            self._subscribers[event].append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers[event]:
                    self._subscribers[event].remove(callback)

        return unsubscribe

    def emit(self, event: str, payload: Any) -> int:
        """
        Deliver payload to every subscriber of event.
        A failing subscriber is logged and skipped. Returns the number of
        successful deliveries.
        """
        with self._lock:
            callbacks = list(self._subscribers.get(event, []))

        delivered = 0
        for callback in callbacks:
            try:
                callback(payload)
                delivered += 1
            except Exception as e:
                log_event("EVENTS", f"Subscriber for '{event}' failed: {e}", "WARNING")
        return delivered


event_bus = EventBus()
