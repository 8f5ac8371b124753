"""In-memory event bus with a processing queue, history and subscribers."""
import asyncio
import time
import uuid
from collections import deque
from collections.abc import AsyncIterator, Iterable
from datetime import UTC, datetime, timedelta
from typing import Any

import structlog

from eventbus.events.registry import EventTypeRegistry
from eventbus.events.types import BusMetrics, Event, Snapshot, Subscriber
from eventbus.exceptions import (
    QueueFullError,
    StreamLimitError,
    SubscriberNotFoundError,
)

logger = structlog.get_logger()


class EventBus:
    """Async event bus with a FIFO processing queue and topic fan-out.

    Published events are queued for the dispatcher, recorded in history
    and pushed immediately to any live stream whose filter matches.
    Registered subscribers receive events in bounded inboxes once the
    dispatcher has processed them. Full stream queues and inboxes drop
    their oldest entry.

    Attributes:
        registry: Event type registry.
        max_events: Capacity of the queue and of the history.
    """

    def __init__(
        self,
        registry: EventTypeRegistry | None = None,
        max_events: int = 10000,
        inbox_size: int = 100,
        stream_queue_size: int = 100,
        max_streams: int = 100,
    ) -> None:
        """Initialize event bus.

        Args:
            registry: Event type registry. Uses the defaults if None.
            max_events: Maximum queued events and retained history.
            inbox_size: Maximum pending events per subscriber.
            stream_queue_size: Maximum buffered events per live stream.
            max_streams: Maximum concurrent live streams.
        """
        self.registry = registry if registry is not None else EventTypeRegistry()
        self.max_events = max_events
        self._inbox_size = inbox_size
        self._stream_queue_size = stream_queue_size
        self.max_streams = max_streams

        self._queue: deque[Event] = deque()
        self._history: deque[Event] = deque(maxlen=max_events)
        self._subscribers: dict[str, Subscriber] = {}
        self._inboxes: dict[str, deque[Event]] = {}
        self._streams: dict[str, tuple[frozenset[str] | None, asyncio.Queue[Event]]] = {}
        self._lock = asyncio.Lock()

        self._started = time.monotonic()
        self._metrics = BusMetrics(start_time=int(time.time() * 1000))

    @property
    def queue_size(self) -> int:
        return len(self._queue)

    @property
    def history_size(self) -> int:
        return len(self._history)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    @property
    def stream_count(self) -> int:
        return len(self._streams)

    @property
    def uptime_ms(self) -> int:
        return int((time.monotonic() - self._started) * 1000)

    def metrics(self) -> BusMetrics:
        """Copy of the current counters."""
        return self._metrics.model_copy()

    def record_processed(self) -> None:
        self._metrics.events_processed += 1

    def record_failed(self) -> None:
        self._metrics.events_failed += 1

    async def publish(
        self,
        event_type: str,
        data: Any = None,
        source: str | None = None,
    ) -> Event:
        """Publish an event of a registered type.

        Args:
            event_type: Registered event type name.
            data: JSON payload.
            source: Optional name of the publishing service.

        Returns:
            The published event.

        Raises:
            UnknownEventTypeError: If the type is not registered.
            QueueFullError: If the processing queue is at capacity.
        """
        definition = self.registry.get(event_type)
        if len(self._queue) >= self.max_events:
            raise QueueFullError(self.max_events)

        event = Event(
            id=str(uuid.uuid4()),
            type=event_type,
            data=data,
            source=source,
            timestamp=datetime.now(UTC),
            priority=definition.priority,
            handlers=list(definition.handlers),
        )

        self._queue.append(event)
        self._history.append(event)
        self._metrics.events_published += 1

        streamed = self._fan_out(event)
        logger.info(
            "event_published",
            event_type=event_type,
            event_id=event.id,
            source=source,
            streamed_to=streamed,
        )
        return event

    def _fan_out(self, event: Event) -> int:
        delivered = 0
        for types, queue in list(self._streams.values()):
            if types is not None and event.type not in types:
                continue
            try:
                queue.put_nowait(event)
                delivered += 1
            except asyncio.QueueFull:
                try:
                    queue.get_nowait()
                    queue.put_nowait(event)
                    delivered += 1
                    self._metrics.events_dropped += 1
                except asyncio.QueueEmpty:
                    pass
        return delivered

    async def subscribe(self, event_type: str, subscriber_id: str) -> bool:
        """Subscribe a subscriber to an event type.

        The subscriber record is created on first use.

        Args:
            event_type: Registered event type name.
            subscriber_id: Client-chosen subscriber identifier.

        Returns:
            True if the subscription was added, False if it already existed.

        Raises:
            UnknownEventTypeError: If the type is not registered.
        """
        self.registry.get(event_type)

        async with self._lock:
            subscriber = self._subscribers.get(subscriber_id)
            if subscriber is None:
                subscriber = Subscriber(id=subscriber_id, created=datetime.now(UTC))
                self._subscribers[subscriber_id] = subscriber
                self._inboxes[subscriber_id] = deque(maxlen=self._inbox_size)

            if event_type in subscriber.events:
                logger.warning(
                    "subscriber_already_subscribed",
                    subscriber_id=subscriber_id,
                    event_type=event_type,
                )
                return False

            subscriber.events.append(event_type)
            self._metrics.subscribers_active = len(self._subscribers)

        logger.info("subscriber_added", subscriber_id=subscriber_id, event_type=event_type)
        return True

    async def unsubscribe(self, subscriber_id: str, event_type: str | None = None) -> None:
        """Remove a subscription or a whole subscriber.

        Args:
            subscriber_id: Subscriber identifier.
            event_type: Single type to drop. Drops every type if None.

        Raises:
            SubscriberNotFoundError: If the subscriber is not registered.
        """
        async with self._lock:
            subscriber = self._subscribers.get(subscriber_id)
            if subscriber is None:
                raise SubscriberNotFoundError(subscriber_id)

            if event_type is not None and event_type in subscriber.events:
                subscriber.events.remove(event_type)

            removed = event_type is None or not subscriber.events
            if removed:
                del self._subscribers[subscriber_id]
                self._inboxes.pop(subscriber_id, None)
            self._metrics.subscribers_active = len(self._subscribers)

        logger.info(
            "subscriber_removed" if removed else "subscription_removed",
            subscriber_id=subscriber_id,
            event_type=event_type,
        )

    def subscribers(self) -> list[Subscriber]:
        return [s.model_copy(deep=True) for s in self._subscribers.values()]

    def subscriber_ids(self) -> list[str]:
        return list(self._subscribers)

    def next_event(self) -> Event | None:
        """Pop the oldest queued event, or None when the queue is empty."""
        if not self._queue:
            return None
        return self._queue.popleft()

    def deliver_to_subscribers(self, event: Event) -> int:
        """Place a processed event in the inbox of every matching subscriber.

        Args:
            event: Processed event.

        Returns:
            Number of inboxes that received the event.
        """
        delivered = 0
        for subscriber_id, subscriber in self._subscribers.items():
            if subscriber.status != "active" or event.type not in subscriber.events:
                continue
            inbox = self._inboxes[subscriber_id]
            if inbox.maxlen is not None and len(inbox) == inbox.maxlen:
                self._metrics.events_dropped += 1
            inbox.append(event)
            delivered += 1
        return delivered

    def poll(self, subscriber_id: str, max_events: int = 50) -> list[Event]:
        """Drain pending events from a subscriber inbox, oldest first.

        Args:
            subscriber_id: Subscriber identifier.
            max_events: Maximum number of events to return.

        Returns:
            Drained events.

        Raises:
            SubscriberNotFoundError: If the subscriber is not registered.
        """
        inbox = self._inboxes.get(subscriber_id)
        if inbox is None:
            raise SubscriberNotFoundError(subscriber_id)
        drained: list[Event] = []
        while inbox and len(drained) < max_events:
            drained.append(inbox.popleft())
        return drained

    def history(
        self,
        limit: int = 10,
        offset: int = 0,
        event_type: str | None = None,
    ) -> list[Event]:
        """Recent events, newest first.

        Args:
            limit: Maximum number of events.
            offset: Number of newest matching events to skip.
            event_type: Only return events of this type.

        Returns:
            Matching events.
        """
        events = list(reversed(self._history))
        if event_type is not None:
            events = [e for e in events if e.type == event_type]
        return events[offset : offset + limit]

    def prune_history(self, now: datetime | None = None) -> int:
        """Remove history entries older than their type's retention.

        Args:
            now: Reference time. Defaults to the current time.

        Returns:
            Number of events removed.
        """
        now = now or datetime.now(UTC)
        kept = [
            e
            for e in self._history
            if now - e.timestamp <= timedelta(milliseconds=self.registry.retention_ms(e.type))
        ]
        removed = len(self._history) - len(kept)
        if removed:
            self._history = deque(kept, maxlen=self.max_events)
            logger.info("history_pruned", removed=removed, remaining=len(kept))
        return removed

    async def open_stream(
        self,
        event_types: Iterable[str] | None = None,
    ) -> tuple[str, AsyncIterator[Event]]:
        """Open a live stream of published events.

        Args:
            event_types: Types to receive. Receives every type if None or empty.

        Returns:
            Tuple of (stream_id, event_iterator).

        Raises:
            UnknownEventTypeError: If a filter names an unregistered type.
            StreamLimitError: If the maximum number of streams is open.
        """
        types = frozenset(event_types or ()) or None
        for event_type in types or ():
            self.registry.get(event_type)

        async with self._lock:
            if len(self._streams) >= self.max_streams:
                raise StreamLimitError("Maximum streams reached")

            stream_id = str(uuid.uuid4())
            queue: asyncio.Queue[Event] = asyncio.Queue(maxsize=self._stream_queue_size)
            self._streams[stream_id] = (types, queue)

        async def event_iterator() -> AsyncIterator[Event]:
            try:
                while True:
                    yield await queue.get()
            finally:
                await self.close_stream(stream_id)

        return stream_id, event_iterator()

    async def close_stream(self, stream_id: str) -> None:
        async with self._lock:
            if self._streams.pop(stream_id, None) is not None:
                logger.debug("stream_closed", stream_id=stream_id)

    def snapshot(self) -> Snapshot:
        """Capture history, pending events and subscribers."""
        return Snapshot(
            saved_at=datetime.now(UTC),
            history=list(self._history),
            pending=list(self._queue),
            subscribers=self.subscribers(),
        )

    def restore(self, snapshot: Snapshot) -> None:
        """Replace bus state with a snapshot.

        Events and subscriptions naming types that are no longer
        registered are discarded.

        Args:
            snapshot: Previously captured state.
        """
        self._history = deque(
            (e for e in snapshot.history if e.type in self.registry),
            maxlen=self.max_events,
        )
        self._queue = deque(e for e in snapshot.pending if e.type in self.registry)
        self._subscribers = {}
        self._inboxes = {}
        for subscriber in snapshot.subscribers:
            subscriber.events = [t for t in subscriber.events if t in self.registry]
            if not subscriber.events:
                continue
            self._subscribers[subscriber.id] = subscriber
            self._inboxes[subscriber.id] = deque(maxlen=self._inbox_size)
        self._metrics.subscribers_active = len(self._subscribers)

        logger.info(
            "bus_restored",
            history=len(self._history),
            pending=len(self._queue),
            subscribers=len(self._subscribers),
        )
