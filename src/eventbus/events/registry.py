"""Registry of event types and the handler services that receive them."""

import json
from pathlib import Path

import structlog
from pydantic import TypeAdapter, ValidationError

from eventbus.events.types import EventTypeDefinition, Priority
from eventbus.exceptions import EventBusError, UnknownEventTypeError

logger = structlog.get_logger()

DAY_MS = 86_400_000

_NOTIFY = "notification-service"
_ANALYTICS = "analytics-service"
_AUDIT = "audit-service"
_MONITORING = "monitoring-service"
_ERRORS = "error-handler"

DEFAULT_EVENT_TYPES: dict[str, EventTypeDefinition] = {
    "project.created": EventTypeDefinition(
        description="Project created event",
        handlers=[_NOTIFY, _ANALYTICS, _AUDIT],
        priority=Priority.HIGH,
        retention=30 * DAY_MS,
    ),
    "project.updated": EventTypeDefinition(
        description="Project updated event",
        handlers=[_NOTIFY, _ANALYTICS, _AUDIT],
        priority=Priority.MEDIUM,
        retention=30 * DAY_MS,
    ),
    "project.deleted": EventTypeDefinition(
        description="Project deleted event",
        handlers=[_NOTIFY, _ANALYTICS, _AUDIT, "cleanup-service"],
        priority=Priority.HIGH,
        retention=30 * DAY_MS,
    ),
    "task.created": EventTypeDefinition(
        description="Task created event",
        handlers=[_NOTIFY, "ai-planner", "workflow-orchestrator"],
        priority=Priority.MEDIUM,
        retention=14 * DAY_MS,
    ),
    "task.completed": EventTypeDefinition(
        description="Task completed event",
        handlers=[_NOTIFY, _ANALYTICS, "ai-planner"],
        priority=Priority.MEDIUM,
        retention=14 * DAY_MS,
    ),
    "workflow.started": EventTypeDefinition(
        description="Workflow started event",
        handlers=[_NOTIFY, _MONITORING, _AUDIT],
        priority=Priority.HIGH,
        retention=14 * DAY_MS,
    ),
    "workflow.completed": EventTypeDefinition(
        description="Workflow completed event",
        handlers=[_NOTIFY, _ANALYTICS, _MONITORING],
        priority=Priority.HIGH,
        retention=14 * DAY_MS,
    ),
    "workflow.failed": EventTypeDefinition(
        description="Workflow failed event",
        handlers=[_NOTIFY, _ERRORS, _MONITORING],
        priority=Priority.CRITICAL,
        retention=30 * DAY_MS,
    ),
    "notification.sent": EventTypeDefinition(
        description="Notification sent event",
        handlers=[_ANALYTICS, _AUDIT],
        priority=Priority.LOW,
        retention=7 * DAY_MS,
    ),
    "user.authenticated": EventTypeDefinition(
        description="User authenticated event",
        handlers=[_ANALYTICS, _AUDIT, "session-manager"],
        priority=Priority.MEDIUM,
        retention=7 * DAY_MS,
    ),
    "error.occurred": EventTypeDefinition(
        description="Error occurred event",
        handlers=[_ERRORS, _NOTIFY, _MONITORING],
        priority=Priority.CRITICAL,
        retention=30 * DAY_MS,
    ),
    "system.health": EventTypeDefinition(
        description="System health check event",
        handlers=[_MONITORING, "alert-service"],
        priority=Priority.LOW,
        retention=7 * DAY_MS,
    ),
}

_REGISTRY_ADAPTER = TypeAdapter(dict[str, EventTypeDefinition])


class EventTypeRegistry:
    """Lookup table of event types.

    Attributes:
        default_retention: Retention in milliseconds for types without one.
    """

    def __init__(
        self,
        definitions: dict[str, EventTypeDefinition] | None = None,
        default_retention: int = DAY_MS,
    ) -> None:
        """Initialize registry.

        Args:
            definitions: Event type definitions. Uses the defaults if None.
            default_retention: Retention for types that declare none.
        """
        source = DEFAULT_EVENT_TYPES if definitions is None else definitions
        self._definitions = {
            name: definition.model_copy(deep=True) for name, definition in source.items()
        }
        self.default_retention = default_retention

    def __contains__(self, event_type: object) -> bool:
        return event_type in self._definitions

    def __len__(self) -> int:
        return len(self._definitions)

    def get(self, event_type: str) -> EventTypeDefinition:
        """Look up an event type.

        Args:
            event_type: Event type name.

        Returns:
            The registered definition.

        Raises:
            UnknownEventTypeError: If the type is not registered.
        """
        definition = self._definitions.get(event_type)
        if definition is None:
            raise UnknownEventTypeError(event_type)
        return definition

    def names(self) -> list[str]:
        return list(self._definitions)

    def items(self) -> list[tuple[str, EventTypeDefinition]]:
        return list(self._definitions.items())

    def all_handlers(self) -> list[str]:
        """Every handler service named by any event type, in first-seen order."""
        seen: dict[str, None] = {}
        for definition in self._definitions.values():
            for handler in definition.handlers:
                seen.setdefault(handler, None)
        return list(seen)

    def retention_ms(self, event_type: str) -> int:
        """Retention for an event type, falling back to the default."""
        definition = self._definitions.get(event_type)
        if definition is None or definition.retention is None:
            return self.default_retention
        return definition.retention

    def to_dict(self) -> dict[str, dict[str, object]]:
        return {
            name: definition.model_dump(mode="json", by_alias=True)
            for name, definition in self._definitions.items()
        }

    def dump(self, path: Path) -> None:
        """Write the registry as JSON.

        Args:
            path: Destination file.
        """
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(self.to_dict(), indent=2))

    @classmethod
    def load(cls, path: Path, default_retention: int = DAY_MS) -> "EventTypeRegistry":
        """Read a registry written by ``dump``.

        Args:
            path: Registry JSON file.
            default_retention: Retention for types that declare none.

        Returns:
            Registry with the definitions from the file.

        Raises:
            EventBusError: If the file is unreadable or malformed.
        """
        try:
            definitions = _REGISTRY_ADAPTER.validate_json(path.read_bytes())
        except (OSError, ValidationError) as e:
            raise EventBusError(f"Invalid event type registry {path}: {e}") from e

        logger.info("event_types_loaded", path=str(path), count=len(definitions))
        return cls(definitions, default_retention=default_retention)
