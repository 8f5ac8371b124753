"""Status and metrics endpoints."""

from typing import Literal

from fastapi import APIRouter, Request

from eventbus.config import Settings
from eventbus.events.types import BusMetrics, CamelModel

router = APIRouter(tags=["monitoring"])


class StatusResponse(CamelModel):
    """Bus status summary. Uptime is in milliseconds."""

    status: Literal["running"]
    uptime: int
    event_types: int
    subscribers: int
    queue_size: int
    history_size: int
    metrics: BusMetrics


class MetricsConfig(CamelModel):
    port: int
    host: str
    max_events: int
    security: bool
    monitoring: bool


class MetricsResponse(BusMetrics):
    """Counters plus current sizes and the relevant configuration."""

    uptime: int
    event_types: int
    subscribers: int
    streams: int
    queue_size: int
    history_size: int
    config: MetricsConfig


@router.get("/status", response_model=StatusResponse)
async def bus_status(request: Request) -> StatusResponse:
    """Report uptime, sizes and counters."""
    bus = request.app.state.event_bus
    return StatusResponse(
        status="running",
        uptime=bus.uptime_ms,
        event_types=len(bus.registry),
        subscribers=bus.subscriber_count,
        queue_size=bus.queue_size,
        history_size=bus.history_size,
        metrics=bus.metrics(),
    )


@router.get("/metrics", response_model=MetricsResponse)
async def bus_metrics(request: Request) -> MetricsResponse:
    """Report counters together with sizes and configuration."""
    bus = request.app.state.event_bus
    settings: Settings = request.app.state.settings
    return MetricsResponse(
        **bus.metrics().model_dump(),
        uptime=bus.uptime_ms,
        event_types=len(bus.registry),
        subscribers=bus.subscriber_count,
        streams=bus.stream_count,
        queue_size=bus.queue_size,
        history_size=bus.history_size,
        config=MetricsConfig(
            port=settings.port,
            host=settings.host,
            max_events=settings.max_events,
            security=settings.security_enabled,
            monitoring=settings.monitoring_enabled,
        ),
    )
