"""Queue processor that routes events to handler services."""

import asyncio
from collections import defaultdict

import structlog

from eventbus.config import RoutingStrategy
from eventbus.events.bus import EventBus
from eventbus.events.delivery import ProcessingLog, WebhookDelivery
from eventbus.events.types import Event
from eventbus.exceptions import DeliveryError
from eventbus.lifecycle import GracefulShutdown

logger = structlog.get_logger()


class EventDispatcher:
    """Drains the bus queue and delivers each event to its handlers.

    Routing strategies:
    - ``multicast``: the handlers declared by the event type.
    - ``broadcast``: every handler named anywhere in the registry.
    - ``unicast``: one of the type's handlers, rotating per event type.

    Each handler gets up to ``retry_attempts`` attempts with exponential
    backoff. A failing handler never blocks delivery to the others.
    """

    def __init__(
        self,
        bus: EventBus,
        delivery: WebhookDelivery,
        processing_log: ProcessingLog,
        strategy: RoutingStrategy = "multicast",
        retry_attempts: int = 3,
        retry_delay: float = 1.0,
    ) -> None:
        """Initialize dispatcher.

        Args:
            bus: Event bus to drain.
            delivery: Transport for handler deliveries.
            processing_log: Record of delivery outcomes.
            strategy: Routing strategy.
            retry_attempts: Attempts per handler, at least one.
            retry_delay: Base backoff delay in seconds.
        """
        self._bus = bus
        self._delivery = delivery
        self._log = processing_log
        self.strategy = strategy
        self._attempts = max(1, retry_attempts)
        self._retry_delay = retry_delay
        self._cursors: dict[str, int] = defaultdict(int)
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    def route(self, event: Event) -> list[str]:
        """Select the handlers that receive an event.

        Args:
            event: Event to route.

        Returns:
            Handler service names.
        """
        if self.strategy == "broadcast":
            return self._bus.registry.all_handlers()

        handlers = event.handlers
        if self.strategy == "unicast":
            if not handlers:
                return []
            cursor = self._cursors[event.type]
            self._cursors[event.type] = cursor + 1
            return [handlers[cursor % len(handlers)]]

        return list(handlers)

    async def _deliver(self, handler: str, event: Event) -> bool:
        delay = self._retry_delay
        error = ""

        for attempt in range(1, self._attempts + 1):
            try:
                await self._delivery.deliver(handler, event)
            except DeliveryError as e:
                error = e.reason
                logger.warning(
                    "handler_delivery_retry",
                    handler=handler,
                    event_id=event.id,
                    attempt=attempt,
                    error=error,
                )
                if attempt < self._attempts:
                    await asyncio.sleep(delay)
                    delay *= 2
                continue

            await self._record(event, handler, "processed", attempt)
            return True

        logger.error(
            "handler_delivery_failed",
            handler=handler,
            event_id=event.id,
            attempts=self._attempts,
            error=error,
        )
        await self._record(event, handler, "failed", self._attempts, error=error)
        return False

    async def _record(
        self,
        event: Event,
        handler: str,
        status: str,
        attempts: int,
        error: str | None = None,
    ) -> None:
        # The delivery outcome stands even when the log line cannot be written.
        try:
            await self._log.record(event, handler, status, attempts, error=error)
        except OSError as e:
            logger.error(
                "processing_log_write_failed",
                handler=handler,
                event_id=event.id,
                error=str(e),
            )

    async def process_event(self, event: Event) -> None:
        """Deliver one event to its routed handlers and subscriber inboxes.

        Args:
            event: Event taken from the queue.
        """
        handlers = self.route(event)
        logger.info(
            "event_processing",
            event_type=event.type,
            event_id=event.id,
            handlers=handlers,
        )

        for handler in handlers:
            if await self._deliver(handler, event):
                self._bus.record_processed()
            else:
                self._bus.record_failed()

        inboxes = self._bus.deliver_to_subscribers(event)
        if inboxes:
            logger.debug("event_delivered_to_inboxes", event_id=event.id, inboxes=inboxes)

    async def process_pending(self) -> int:
        """Process every queued event.

        Returns:
            Number of events processed.
        """
        count = 0
        while (event := self._bus.next_event()) is not None:
            await self.process_event(event)
            count += 1
        return count

    async def _tick(self) -> None:
        try:
            await self.process_pending()
        except Exception:
            logger.exception("dispatcher_tick_failed", queue_size=self._bus.queue_size)

    async def run(self, shutdown: GracefulShutdown, interval: float = 1.0) -> None:
        """Process the queue every interval until shutdown.

        A failing tick is logged and the loop carries on with the next one.

        Args:
            shutdown: Shutdown coordinator.
            interval: Seconds between queue drains.
        """
        self._running = True
        logger.info("dispatcher_started", strategy=self.strategy, interval=interval)
        try:
            while True:
                await self._tick()
                if await shutdown.sleep(interval):
                    break
            await self._tick()
        finally:
            self._running = False
            logger.info("dispatcher_stopped", queue_size=self._bus.queue_size)
