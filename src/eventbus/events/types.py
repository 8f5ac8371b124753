"""Event, subscriber and registry models."""
from datetime import datetime
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model serialized with camelCase keys on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Priority(str, Enum):
    """Delivery priority declared by an event type."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


SubscriberStatus = Literal["active", "inactive"]


class EventTypeDefinition(CamelModel):
    """Registry entry describing an event type.

    Attributes:
        description: Human-readable description.
        handlers: Names of handler services that receive the event.
        priority: Delivery priority.
        retention: How long the event stays in history, in milliseconds.
    """

    description: str = ""
    handlers: list[str] = Field(default_factory=list)
    priority: Priority = Priority.MEDIUM
    retention: int | None = Field(default=None, ge=0)


class Event(CamelModel):
    """Published event.

    Attributes:
        id: Unique event identifier (UUID).
        type: Registered event type name.
        data: Arbitrary JSON payload supplied by the publisher.
        source: Optional name of the publishing service.
        timestamp: Publication time (UTC).
        priority: Priority copied from the event type.
        handlers: Handler services copied from the event type.
    """

    id: str = Field(description="Unique event identifier (UUID)")
    type: str = Field(description="Registered event type")
    data: Any = Field(default=None, description="Event payload")
    source: str | None = Field(default=None, description="Publishing service")
    timestamp: datetime = Field(description="Publication time (UTC)")
    priority: Priority
    handlers: list[str] = Field(default_factory=list)


class Subscriber(CamelModel):
    """Registered subscriber and the event types it listens to."""

    id: str
    events: list[str] = Field(default_factory=list)
    status: SubscriberStatus = "active"
    created: datetime


class BusMetrics(CamelModel):
    """Counters maintained by the bus."""

    events_published: int = 0
    events_processed: int = 0
    events_failed: int = 0
    events_dropped: int = 0
    subscribers_active: int = 0
    start_time: int = Field(description="Start time in epoch milliseconds")


class Snapshot(CamelModel):
    """Persisted bus state."""

    saved_at: datetime
    history: list[Event] = Field(default_factory=list)
    pending: list[Event] = Field(default_factory=list)
    subscribers: list[Subscriber] = Field(default_factory=list)
