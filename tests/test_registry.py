"""Event type registry tests."""

import json
from pathlib import Path

import pytest

from eventbus.events.registry import DAY_MS, DEFAULT_EVENT_TYPES, EventTypeRegistry
from eventbus.events.types import EventTypeDefinition, Priority
from eventbus.exceptions import EventBusError, UnknownEventTypeError


def test_default_registry_has_twelve_types() -> None:
    registry = EventTypeRegistry()
    assert len(registry) == 12
    assert registry.names()[0] == "project.created"
    assert "system.health" in registry


def test_default_definitions_match_handlers_and_priorities() -> None:
    registry = EventTypeRegistry()
    deleted = registry.get("project.deleted")
    assert deleted.priority is Priority.HIGH
    assert deleted.handlers[-1] == "cleanup-service"
    assert deleted.retention == 30 * DAY_MS
    assert registry.get("notification.sent").priority is Priority.LOW


def test_get_unknown_type_raises() -> None:
    with pytest.raises(UnknownEventTypeError) as exc_info:
        EventTypeRegistry().get("task.vanished")
    assert exc_info.value.event_type == "task.vanished"


def test_all_handlers_are_unique_in_first_seen_order() -> None:
    handlers = EventTypeRegistry().all_handlers()
    assert handlers[:3] == ["notification-service", "analytics-service", "audit-service"]
    assert len(handlers) == len(set(handlers))
    assert {"session-manager", "alert-service", "cleanup-service"} <= set(handlers)


def test_retention_falls_back_to_default() -> None:
    registry = EventTypeRegistry(
        {"custom.event": EventTypeDefinition(handlers=["x"])},
        default_retention=5000,
    )
    assert registry.retention_ms("custom.event") == 5000


def test_registry_copies_definitions() -> None:
    """Mutating a registry never leaks into the module defaults."""
    registry = EventTypeRegistry()
    registry.get("task.created").handlers.append("rogue-service")
    assert "rogue-service" not in DEFAULT_EVENT_TYPES["task.created"].handlers


def test_dump_writes_plain_layout_and_loads_back(tmp_path: Path) -> None:
    path = tmp_path / "config" / "event-types.json"
    EventTypeRegistry().dump(path)

    raw = json.loads(path.read_text())
    assert raw["workflow.failed"] == {
        "description": "Workflow failed event",
        "handlers": ["notification-service", "error-handler", "monitoring-service"],
        "priority": "critical",
        "retention": 30 * DAY_MS,
    }
    assert EventTypeRegistry.load(path).names() == EventTypeRegistry().names()


def test_load_rejects_malformed_file(tmp_path: Path) -> None:
    path = tmp_path / "event-types.json"
    path.write_text(json.dumps({"bad.type": {"priority": "urgent"}}))
    with pytest.raises(EventBusError, match="Invalid event type registry"):
        EventTypeRegistry.load(path)
