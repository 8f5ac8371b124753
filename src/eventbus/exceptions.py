"""Exceptions raised by the event bus."""


class EventBusError(Exception):
    """Base class for event bus errors."""


class UnknownEventTypeError(EventBusError):
    """Raised when an event type is not in the registry."""

    def __init__(self, event_type: str) -> None:
        super().__init__(f"Unknown event type: {event_type}")
        self.event_type = event_type


class SubscriberNotFoundError(EventBusError):
    """Raised when a subscriber id is not registered."""

    def __init__(self, subscriber_id: str) -> None:
        super().__init__(f"Subscriber {subscriber_id} not found")
        self.subscriber_id = subscriber_id


class QueueFullError(EventBusError):
    """Raised when the processing queue has reached capacity."""

    def __init__(self, capacity: int) -> None:
        super().__init__(f"Event queue is full ({capacity} events)")
        self.capacity = capacity


class StreamLimitError(EventBusError):
    """Raised when the live stream limit has been reached."""


class SnapshotError(EventBusError):
    """Raised when a persisted snapshot cannot be read."""


class DeliveryError(EventBusError):
    """Raised when a handler delivery attempt fails."""

    def __init__(self, handler: str, reason: str) -> None:
        super().__init__(f"Delivery to {handler} failed: {reason}")
        self.handler = handler
        self.reason = reason
