"""Publish, subscribe and query endpoints for the event bus."""

from typing import TYPE_CHECKING, Any

from fastapi import APIRouter, HTTPException, Query, Request, status
from pydantic import Field
from sse_starlette.sse import EventSourceResponse
from starlette.background import BackgroundTask

from eventbus.events.types import CamelModel, Event, EventTypeDefinition, Subscriber
from eventbus.exceptions import SubscriberNotFoundError

if TYPE_CHECKING:
    from eventbus.events.bus import EventBus
    from eventbus.events.hub import BroadcastHub

router = APIRouter(prefix="/events", tags=["events"])


class PublishRequest(CamelModel):
    """Request body for publishing an event."""

    type: str = Field(..., min_length=1)
    data: Any = None
    source: str | None = Field(default=None, max_length=200)


class PublishResponse(CamelModel):
    success: bool
    event_id: str
    message: str


class SubscribeRequest(CamelModel):
    """Request body for subscribing to an event type."""

    event_type: str = Field(..., min_length=1)
    subscriber_id: str = Field(..., min_length=1, max_length=200)


class UnsubscribeRequest(CamelModel):
    """Request body for unsubscribing.

    Without an event type the subscriber is removed from every type.
    """

    subscriber_id: str = Field(..., min_length=1, max_length=200)
    event_type: str | None = None


class AckResponse(CamelModel):
    success: bool
    message: str


class ListResponse(CamelModel):
    event_types: list[str]
    subscribers: list[str]
    queue_size: int
    history_size: int


def _bus(request: Request) -> "EventBus":
    return request.app.state.event_bus


@router.post("/publish", response_model=PublishResponse)
async def publish_event(body: PublishRequest, request: Request) -> PublishResponse:
    """Publish an event of a registered type.

    Args:
        body: Event type, payload and optional source.
        request: FastAPI request object.

    Returns:
        Identifier of the published event.
    """
    event = await _bus(request).publish(body.type, body.data, source=body.source)
    return PublishResponse(
        success=True,
        event_id=event.id,
        message="Event published successfully",
    )


@router.post("/subscribe", response_model=AckResponse)
async def subscribe_event(body: SubscribeRequest, request: Request) -> AckResponse:
    """Subscribe a subscriber to an event type.

    Subscribing twice to the same type is accepted and has no effect.
    """
    await _bus(request).subscribe(body.event_type, body.subscriber_id)
    return AckResponse(success=True, message="Subscribed successfully")


@router.post("/unsubscribe", response_model=AckResponse)
async def unsubscribe_event(body: UnsubscribeRequest, request: Request) -> AckResponse:
    """Remove a subscription or a whole subscriber."""
    await _bus(request).unsubscribe(body.subscriber_id, body.event_type)
    return AckResponse(success=True, message="Unsubscribed successfully")


@router.get("/list", response_model=ListResponse)
async def list_events(request: Request) -> ListResponse:
    """Summarize registered types, subscribers and queue sizes."""
    bus = _bus(request)
    return ListResponse(
        event_types=bus.registry.names(),
        subscribers=bus.subscriber_ids(),
        queue_size=bus.queue_size,
        history_size=bus.history_size,
    )


@router.get("/types", response_model=dict[str, EventTypeDefinition])
async def list_event_types(request: Request) -> dict[str, EventTypeDefinition]:
    """Return the full event type registry."""
    return dict(_bus(request).registry.items())


@router.get("/subscribers", response_model=list[Subscriber])
async def list_subscribers(request: Request) -> list[Subscriber]:
    """Return every registered subscriber."""
    return _bus(request).subscribers()


@router.get("/history", response_model=list[Event])
async def event_history(
    request: Request,
    limit: int = Query(default=10, ge=1, le=1000),
    offset: int = Query(default=0, ge=0),
    event_type: str | None = Query(default=None, alias="type"),
) -> list[Event]:
    """Return recent events, newest first.

    Args:
        request: FastAPI request object.
        limit: Maximum number of events.
        offset: Number of newest matching events to skip.
        event_type: Optional event type filter.

    Returns:
        Matching events.
    """
    return _bus(request).history(limit=limit, offset=offset, event_type=event_type)


@router.get(
    "/poll",
    response_model=list[Event],
    responses={404: {"description": "Subscriber not found"}},
)
async def poll_events(
    request: Request,
    subscriber_id: str = Query(..., alias="subscriberId", min_length=1),
    max_events: int = Query(default=50, alias="max", ge=1, le=1000),
) -> list[Event]:
    """Drain processed events waiting in a subscriber inbox.

    Raises:
        HTTPException: 404 if the subscriber is not registered.
    """
    try:
        return _bus(request).poll(subscriber_id, max_events)
    except SubscriberNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e


@router.get("/stream")
async def event_stream(
    request: Request,
    event_types: list[str] | None = Query(
        default=None,
        alias="type",
        description="Event types to stream; all types when omitted",
    ),
) -> EventSourceResponse:
    """Stream published events via Server-Sent Events.

    Includes periodic heartbeat events while no events arrive. The bus stream
    is opened before the response starts and released once it finishes.

    Args:
        request: FastAPI request object.
        event_types: Event type filter.

    Returns:
        SSE response stream.
    """
    hub: BroadcastHub = request.app.state.broadcast_hub
    stream_id, events = await hub.connect(event_types)

    return EventSourceResponse(
        events,
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
        background=BackgroundTask(_bus(request).close_stream, stream_id),
    )
