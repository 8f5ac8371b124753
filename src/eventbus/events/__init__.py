"""Events subsystem: registry, bus, dispatcher, streaming and persistence."""
from eventbus.events.bus import EventBus
from eventbus.events.delivery import ProcessingLog, WebhookDelivery
from eventbus.events.dispatcher import EventDispatcher
from eventbus.events.hub import BroadcastHub
from eventbus.events.registry import DEFAULT_EVENT_TYPES, EventTypeRegistry
from eventbus.events.store import EventStore
from eventbus.events.types import (
    BusMetrics,
    Event,
    EventTypeDefinition,
    Priority,
    Snapshot,
    Subscriber,
)

__all__ = [
    "DEFAULT_EVENT_TYPES",
    "BroadcastHub",
    "BusMetrics",
    "Event",
    "EventBus",
    "EventDispatcher",
    "EventStore",
    "EventTypeDefinition",
    "EventTypeRegistry",
    "Priority",
    "ProcessingLog",
    "Snapshot",
    "Subscriber",
    "WebhookDelivery",
]
