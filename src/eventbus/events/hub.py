"""SSE broadcast hub for streaming published events to clients."""

import asyncio
import contextlib
import json
from collections.abc import AsyncIterator
from datetime import UTC, datetime

import structlog
from sse_starlette import ServerSentEvent

from eventbus.events.bus import EventBus
from eventbus.events.types import Event

logger = structlog.get_logger()

HEARTBEAT_EVENT = "heartbeat"


class BroadcastHub:
    """SSE broadcast hub bridging bus streams to HTTP clients.

    Attributes:
        heartbeat_interval: Seconds of silence before a heartbeat is sent.
    """

    def __init__(
        self,
        event_bus: EventBus,
        heartbeat_interval: float = 15.0,
    ) -> None:
        """Initialize broadcast hub.

        Args:
            event_bus: Event bus to stream from.
            heartbeat_interval: Seconds between heartbeats.
        """
        self._bus = event_bus
        self.heartbeat_interval = heartbeat_interval
        self._active_connections = 0
        self._lock = asyncio.Lock()

    @property
    def active_connections(self) -> int:
        """Number of active SSE connections."""
        return self._active_connections

    async def connect(
        self,
        event_types: list[str] | None = None,
    ) -> tuple[str, AsyncIterator[ServerSentEvent]]:
        """Open a bus stream and wrap it as an SSE event generator.

        The bus stream is opened eagerly so filter and limit errors surface
        before any response is started.

        Args:
            event_types: Types to stream. Streams every type if None or empty.

        Returns:
            Tuple of (stream_id, server-sent event generator).

        Raises:
            UnknownEventTypeError: If a filter names an unregistered type.
            StreamLimitError: If the maximum number of streams is open.
        """
        stream_id, event_iter = await self._bus.open_stream(event_types)
        return stream_id, self._stream(stream_id, event_iter, event_types)

    async def _stream(
        self,
        stream_id: str,
        event_iter: AsyncIterator[Event],
        event_types: list[str] | None,
    ) -> AsyncIterator[ServerSentEvent]:
        async with self._lock:
            self._active_connections += 1

        logger.info(
            "sse_client_connected",
            stream_id=stream_id,
            event_types=event_types,
            active_connections=self._active_connections,
        )

        queue: asyncio.Queue[Event] = asyncio.Queue(maxsize=10)

        async def pump_events() -> None:
            async for event in event_iter:
                await queue.put(event)

        pump_task = asyncio.create_task(pump_events())

        try:
            while True:
                try:
                    event = await asyncio.wait_for(
                        queue.get(),
                        timeout=self.heartbeat_interval,
                    )
                    yield ServerSentEvent(
                        id=event.id,
                        event=event.type,
                        data=event.model_dump_json(by_alias=True),
                    )
                except TimeoutError:
                    yield ServerSentEvent(
                        event=HEARTBEAT_EVENT,
                        data=json.dumps({"timestamp": datetime.now(UTC).isoformat()}),
                    )
        finally:
            pump_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await pump_task
            await self._bus.close_stream(stream_id)

            async with self._lock:
                self._active_connections -= 1

            logger.info(
                "sse_client_disconnected",
                stream_id=stream_id,
                active_connections=self._active_connections,
            )

    async def shutdown(self) -> None:
        """Log the shutdown with connection and drop counts."""
        logger.info(
            "broadcast_hub_shutdown",
            active_connections=self._active_connections,
            dropped_events=self._bus.metrics().events_dropped,
        )
