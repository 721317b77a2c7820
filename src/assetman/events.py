"""Named in-process notifications (``error`` and ``change``)."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field

EventCallback = Callable[[str], None]


@dataclass(slots=True)
class EventBus:
    """Subscriber lists keyed by event name, called in subscription order."""

    _subscribers: dict[str, list[EventCallback]] = field(default_factory=dict)

    def subscribe(self, name: str, callback: EventCallback) -> Callable[[], None]:
        """Register a callback and return a function that removes it again."""
        self._subscribers.setdefault(name, []).append(callback)

        def unsubscribe() -> None:
            callbacks = self._subscribers.get(name, [])
            if callback in callbacks:
                callbacks.remove(callback)

        return unsubscribe

    def publish(self, name: str, payload: str) -> int:
        """Deliver payload to every subscriber; returns how many were called."""
        callbacks = tuple(self._subscribers.get(name, ()))
        for callback in callbacks:
            callback(payload)
        return len(callbacks)

    def subscriber_count(self, name: str) -> int:
        return len(self._subscribers.get(name, ()))
