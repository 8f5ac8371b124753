"""HTTP client for a running event bus."""

from typing import Any

import httpx

from eventbus.exceptions import EventBusError


class EventBusClient:
    """Synchronous client for the event bus HTTP API.

    Usage:
        with EventBusClient("http://localhost:4000") as client:
            event_id = client.publish("task.created", {"id": 42})
    """

    def __init__(
        self,
        base_url: str,
        token: str = "",
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize client.

        Args:
            base_url: Root URL of the bus, e.g. ``http://localhost:4000``.
            token: Auth token, sent as a bearer token when non-empty.
            timeout: Request timeout in seconds.
            transport: Optional transport, used to target an in-process app.
        """
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        self._client = httpx.Client(
            base_url=base_url,
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    def __enter__(self) -> "EventBusClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        try:
            response = self._client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            raise EventBusError(f"Event bus unreachable: {e}") from e

        if response.is_error:
            try:
                message = response.json().get("error", response.text)
            except ValueError:
                message = response.text
            raise EventBusError(f"HTTP {response.status_code}: {message}")
        return response.json()

    def publish(self, event_type: str, data: Any = None, source: str | None = None) -> str:
        """Publish an event and return its id."""
        body: dict[str, Any] = {"type": event_type, "data": data}
        if source is not None:
            body["source"] = source
        return self._request("POST", "/events/publish", json=body)["eventId"]

    def subscribe(self, event_type: str, subscriber_id: str) -> None:
        self._request(
            "POST",
            "/events/subscribe",
            json={"eventType": event_type, "subscriberId": subscriber_id},
        )

    def unsubscribe(self, subscriber_id: str, event_type: str | None = None) -> None:
        body: dict[str, Any] = {"subscriberId": subscriber_id}
        if event_type is not None:
            body["eventType"] = event_type
        self._request("POST", "/events/unsubscribe", json=body)

    def poll(self, subscriber_id: str, max_events: int = 50) -> list[dict[str, Any]]:
        return self._request(
            "GET",
            "/events/poll",
            params={"subscriberId": subscriber_id, "max": max_events},
        )

    def history(self, limit: int = 10, event_type: str | None = None) -> list[dict[str, Any]]:
        params: dict[str, Any] = {"limit": limit}
        if event_type is not None:
            params["type"] = event_type
        return self._request("GET", "/events/history", params=params)

    def event_types(self) -> dict[str, dict[str, Any]]:
        return self._request("GET", "/events/types")

    def subscribers(self) -> list[dict[str, Any]]:
        return self._request("GET", "/events/subscribers")

    def status(self) -> dict[str, Any]:
        return self._request("GET", "/status")

    def metrics(self) -> dict[str, Any]:
        return self._request("GET", "/metrics")

    def health(self) -> dict[str, Any]:
        """Fetch health; a 503 still carries the check results."""
        try:
            response = self._client.get("/health")
        except httpx.HTTPError as e:
            raise EventBusError(f"Event bus unreachable: {e}") from e
        return response.json()
