"""Event bus tests."""

import asyncio
from datetime import UTC, datetime, timedelta

import pytest

from eventbus.events.bus import EventBus
from eventbus.events.registry import DAY_MS, EventTypeRegistry
from eventbus.events.types import EventTypeDefinition, Priority
from eventbus.exceptions import (
    QueueFullError,
    StreamLimitError,
    SubscriberNotFoundError,
    UnknownEventTypeError,
)


@pytest.mark.asyncio
async def test_publish_copies_type_definition() -> None:
    """Published events carry the priority and handlers of their type."""
    bus = EventBus()
    event = await bus.publish("workflow.failed", {"workflow": "deploy"}, source="ci")

    assert event.priority is Priority.CRITICAL
    assert event.handlers == ["notification-service", "error-handler", "monitoring-service"]
    assert event.data == {"workflow": "deploy"}
    assert event.source == "ci"
    assert bus.queue_size == 1
    assert bus.history_size == 1
    assert bus.metrics().events_published == 1


@pytest.mark.asyncio
async def test_publish_unknown_type_raises() -> None:
    """Publishing an unregistered type is rejected without side effects."""
    bus = EventBus()
    with pytest.raises(UnknownEventTypeError, match="Unknown event type: nope"):
        await bus.publish("nope", {})
    assert bus.queue_size == 0
    assert bus.metrics().events_published == 0


@pytest.mark.asyncio
async def test_publish_rejects_when_queue_full() -> None:
    """Queue capacity is bounded by max_events."""
    bus = EventBus(max_events=2)
    await bus.publish("task.created")
    await bus.publish("task.created")
    with pytest.raises(QueueFullError):
        await bus.publish("task.created")


@pytest.mark.asyncio
async def test_history_keeps_newest_events() -> None:
    """History drops the oldest events beyond max_events."""
    bus = EventBus(max_events=2)
    first = await bus.publish("task.created", {"n": 1})
    bus.next_event()
    await bus.publish("task.created", {"n": 2})
    bus.next_event()
    await bus.publish("task.created", {"n": 3})

    ids = [e.id for e in bus.history(limit=10)]
    assert len(ids) == 2
    assert first.id not in ids


@pytest.mark.asyncio
async def test_queue_is_fifo() -> None:
    bus = EventBus()
    a = await bus.publish("task.created")
    b = await bus.publish("task.completed")
    assert bus.next_event() == a
    assert bus.next_event() == b
    assert bus.next_event() is None


@pytest.mark.asyncio
async def test_history_is_newest_first_with_filter_and_offset() -> None:
    bus = EventBus()
    created = [await bus.publish("task.created", {"n": n}) for n in range(3)]
    await bus.publish("project.created")

    tasks = bus.history(limit=10, event_type="task.created")
    assert [e.data["n"] for e in tasks] == [2, 1, 0]
    assert bus.history(limit=1, offset=1, event_type="task.created") == [created[1]]
    assert bus.history(limit=1)[0].type == "project.created"


@pytest.mark.asyncio
async def test_subscribe_creates_subscriber_once() -> None:
    bus = EventBus()
    assert await bus.subscribe("task.created", "planner") is True
    assert await bus.subscribe("task.created", "planner") is False
    assert await bus.subscribe("task.completed", "planner") is True

    [subscriber] = bus.subscribers()
    assert subscriber.id == "planner"
    assert subscriber.events == ["task.created", "task.completed"]
    assert subscriber.status == "active"
    assert bus.metrics().subscribers_active == 1


@pytest.mark.asyncio
async def test_subscribe_unknown_type_raises() -> None:
    bus = EventBus()
    with pytest.raises(UnknownEventTypeError):
        await bus.subscribe("task.exploded", "planner")
    assert bus.subscriber_count == 0


@pytest.mark.asyncio
async def test_unsubscribe_single_type_keeps_subscriber() -> None:
    bus = EventBus()
    await bus.subscribe("task.created", "planner")
    await bus.subscribe("task.completed", "planner")

    await bus.unsubscribe("planner", "task.created")
    assert bus.subscribers()[0].events == ["task.completed"]

    await bus.unsubscribe("planner", "task.completed")
    assert bus.subscriber_count == 0


@pytest.mark.asyncio
async def test_unsubscribe_all_and_unknown() -> None:
    bus = EventBus()
    await bus.subscribe("task.created", "planner")
    await bus.unsubscribe("planner")
    assert bus.subscriber_ids() == []
    assert bus.metrics().subscribers_active == 0

    with pytest.raises(SubscriberNotFoundError, match="Subscriber planner not found"):
        await bus.unsubscribe("planner")


@pytest.mark.asyncio
async def test_inbox_delivery_and_poll() -> None:
    """Only subscribers of the event type receive it."""
    bus = EventBus()
    await bus.subscribe("task.created", "planner")
    await bus.subscribe("project.created", "auditor")
    event = await bus.publish("task.created", {"id": 1})

    assert bus.deliver_to_subscribers(event) == 1
    assert bus.poll("planner") == [event]
    assert bus.poll("planner") == []
    assert bus.poll("auditor") == []

    with pytest.raises(SubscriberNotFoundError):
        bus.poll("ghost")


@pytest.mark.asyncio
async def test_inbox_drops_oldest_when_full() -> None:
    bus = EventBus(inbox_size=2)
    await bus.subscribe("task.created", "planner")
    events = [await bus.publish("task.created", {"n": n}) for n in range(3)]
    for event in events:
        bus.deliver_to_subscribers(event)

    assert bus.poll("planner", max_events=10) == events[1:]
    assert bus.metrics().events_dropped == 1


@pytest.mark.asyncio
async def test_prune_history_uses_type_retention() -> None:
    registry = EventTypeRegistry(
        {
            "short.lived": EventTypeDefinition(handlers=[], retention=1000),
            "long.lived": EventTypeDefinition(handlers=[]),
        },
        default_retention=DAY_MS,
    )
    bus = EventBus(registry=registry)
    await bus.publish("short.lived")
    await bus.publish("long.lived")

    removed = bus.prune_history(datetime.now(UTC) + timedelta(hours=1))

    assert removed == 1
    assert [e.type for e in bus.history()] == ["long.lived"]
    assert bus.prune_history(datetime.now(UTC) + timedelta(days=2)) == 1
    assert bus.history_size == 0


@pytest.mark.asyncio
async def test_stream_receives_matching_events() -> None:
    bus = EventBus()
    stream_id, events = await bus.open_stream(["task.created"])
    assert bus.stream_count == 1

    await bus.publish("project.created")
    published = await bus.publish("task.created", {"id": 7})

    received = await asyncio.wait_for(events.__anext__(), timeout=1.0)
    assert received == published

    await events.aclose()
    assert bus.stream_count == 0


@pytest.mark.asyncio
async def test_full_stream_queue_drops_oldest() -> None:
    bus = EventBus(stream_queue_size=2)
    _, events = await bus.open_stream(["task.created"])

    published = [await bus.publish("task.created", {"n": n}) for n in range(3)]

    received = [
        await asyncio.wait_for(events.__anext__(), timeout=1.0) for _ in range(2)
    ]
    assert received == published[1:]
    assert bus.metrics().events_dropped == 1
    await events.aclose()


@pytest.mark.asyncio
async def test_stream_rejects_unknown_filter_and_limit() -> None:
    bus = EventBus(max_streams=1)
    with pytest.raises(UnknownEventTypeError):
        await bus.open_stream(["bogus.type"])

    stream_id, _ = await bus.open_stream()
    with pytest.raises(StreamLimitError):
        await bus.open_stream()
    await bus.close_stream(stream_id)
    assert bus.stream_count == 0


@pytest.mark.asyncio
async def test_snapshot_restore_discards_unregistered_types() -> None:
    bus = EventBus()
    await bus.subscribe("task.created", "planner")
    await bus.subscribe("project.created", "auditor")
    await bus.publish("task.created", {"id": 1})
    await bus.publish("project.created", {"id": 2})
    snapshot = bus.snapshot()

    registry = EventTypeRegistry({"task.created": EventTypeDefinition(handlers=["a"])})
    restored = EventBus(registry=registry)
    restored.restore(snapshot)

    assert [e.type for e in restored.history()] == ["task.created"]
    assert restored.queue_size == 1
    assert restored.subscriber_ids() == ["planner"]
    assert restored.poll("planner") == []
