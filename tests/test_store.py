"""Snapshot persistence tests."""

from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from eventbus.app import create_app
from eventbus.config import Settings
from eventbus.events.bus import EventBus
from eventbus.events.store import EventStore
from eventbus.exceptions import SnapshotError


def test_load_missing_snapshot_returns_none(tmp_path: Path) -> None:
    assert EventStore(tmp_path / "events.json").load() is None


@pytest.mark.asyncio
async def test_persist_and_restore(tmp_path: Path) -> None:
    store = EventStore(tmp_path / "data" / "events.json")
    bus = EventBus()
    await bus.subscribe("task.created", "planner")
    event = await bus.publish("task.created", {"id": 3}, source="tracker")

    await store.persist(bus)
    assert store.path.is_file()
    assert not store.path.with_suffix(".json.tmp").exists()

    restored = EventBus()
    assert store.restore_into(restored) is True
    assert restored.history() == [event]
    assert restored.next_event() == event
    assert restored.subscriber_ids() == ["planner"]


def test_snapshot_is_camel_case(tmp_path: Path) -> None:
    store = EventStore(tmp_path / "events.json")
    store.save(EventBus().snapshot())
    assert '"savedAt"' in store.path.read_text()


def test_corrupt_snapshot(tmp_path: Path) -> None:
    store = EventStore(tmp_path / "events.json")
    store.path.write_text("{not json")

    with pytest.raises(SnapshotError, match="Corrupt snapshot"):
        store.load()
    assert store.restore_into(EventBus()) is False


@pytest.mark.asyncio
async def test_app_restores_at_startup_and_saves_at_shutdown(settings: Settings) -> None:
    store = EventStore(settings.snapshot_path)
    previous = EventBus()
    await previous.subscribe("task.created", "planner")
    earlier = await previous.publish("project.created", {"name": "apollo"})
    store.save(previous.snapshot())

    with TestClient(create_app(settings)) as client:
        assert [s["id"] for s in client.get("/events/subscribers").json()] == ["planner"]
        assert client.get("/events/history").json()[0]["id"] == earlier.id
        later = client.post("/events/publish", json={"type": "task.created"}).json()

    saved = store.load()
    assert saved is not None
    assert [e.id for e in saved.history] == [earlier.id, later["eventId"]]
    assert [s.id for s in saved.subscribers] == ["planner"]
