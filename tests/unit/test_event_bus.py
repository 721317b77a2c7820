from __future__ import annotations

from assetman.events import EventBus


def test_publish_calls_subscribers_in_order() -> None:
    bus = EventBus()
    seen: list[str] = []
    bus.subscribe("change", lambda path: seen.append(f"first:{path}"))
    bus.subscribe("change", lambda path: seen.append(f"second:{path}"))

    delivered = bus.publish("change", "app.js")

    assert delivered == 2
    assert seen == ["first:app.js", "second:app.js"]


def test_unsubscribe_is_idempotent() -> None:
    bus = EventBus()
    seen: list[str] = []
    unsubscribe = bus.subscribe("error", seen.append)

    unsubscribe()
    unsubscribe()

    assert bus.publish("error", "boom") == 0
    assert bus.subscriber_count("error") == 0
    assert seen == []


def test_events_without_subscribers_are_dropped() -> None:
    assert EventBus().publish("change", "a.css") == 0
