"""Delivery of events to handler services."""

import asyncio
import json
from datetime import UTC, datetime
from pathlib import Path

import httpx
import structlog

from eventbus.events.types import Event
from eventbus.exceptions import DeliveryError

logger = structlog.get_logger()

PROCESSING_LOG_NAME = "event-processing.log"


class ProcessingLog:
    """Append-only JSON-lines record of handler deliveries."""

    def __init__(self, logs_dir: Path) -> None:
        """Initialize processing log.

        Args:
            logs_dir: Directory holding the log file.
        """
        self.path = logs_dir / PROCESSING_LOG_NAME

    def _append(self, line: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.path.open("a", encoding="utf-8") as f:
            f.write(line + "\n")

    async def record(
        self,
        event: Event,
        handler: str,
        status: str,
        attempts: int,
        error: str | None = None,
    ) -> None:
        """Append one delivery outcome.

        Args:
            event: Delivered event.
            handler: Handler service name.
            status: ``processed`` or ``failed``.
            attempts: Number of delivery attempts made.
            error: Last error message for failed deliveries.
        """
        entry: dict[str, object] = {
            "timestamp": datetime.now(UTC).isoformat(),
            "eventId": event.id,
            "eventType": event.type,
            "handler": handler,
            "status": status,
            "attempts": attempts,
        }
        if error is not None:
            entry["error"] = error
        await asyncio.to_thread(self._append, json.dumps(entry))


class WebhookDelivery:
    """Sends events to handler services over HTTP.

    Handlers without a configured URL have no remote endpoint; delivering
    to them succeeds immediately and is only recorded in the processing log.
    """

    def __init__(
        self,
        handler_urls: dict[str, str],
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize webhook delivery.

        Args:
            handler_urls: Mapping of handler name to webhook URL.
            timeout: Request timeout in seconds.
            client: HTTP client to use. One is created if None.
        """
        self._urls = dict(handler_urls)
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = client is None

    def has_endpoint(self, handler: str) -> bool:
        return handler in self._urls

    async def deliver(self, handler: str, event: Event) -> None:
        """Deliver an event to one handler.

        Args:
            handler: Handler service name.
            event: Event to deliver.

        Raises:
            DeliveryError: If the request fails or returns a non-2xx status.
        """
        url = self._urls.get(handler)
        if url is None:
            return

        try:
            response = await self._client.post(
                url,
                content=event.model_dump_json(by_alias=True),
                headers={
                    "Content-Type": "application/json",
                    "X-Event-Type": event.type,
                    "X-Event-Id": event.id,
                },
            )
        except httpx.HTTPError as e:
            raise DeliveryError(handler, str(e) or type(e).__name__) from e

        if not response.is_success:
            raise DeliveryError(handler, f"HTTP {response.status_code}")

        logger.debug(
            "webhook_delivered",
            handler=handler,
            event_id=event.id,
            status=response.status_code,
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
