"""Health check endpoints for liveness and overall bus health."""
import os
from datetime import UTC, datetime
from typing import Literal

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from eventbus.config import Settings
from eventbus.events.types import CamelModel

router = APIRouter(prefix="/health", tags=["health"])

CheckState = Literal["healthy", "warning", "unhealthy", "running", "stopped", "disabled"]


class LivenessResponse(BaseModel):
    """Response model for liveness probe.

    Attributes:
        status: Always 'alive' when process is running.
    """

    status: Literal["alive"]


class HealthChecks(CamelModel):
    """Individual check results.

    Attributes:
        server: Whether the dispatcher loop is running.
        event_types: Whether any event type is registered.
        subscribers: Subscriber table state.
        queue: 'warning' once the queue reaches capacity.
        persistence: Whether the snapshot directory is writable.
    """

    server: Literal["running", "stopped"]
    event_types: Literal["healthy", "unhealthy"]
    subscribers: Literal["healthy"]
    queue: Literal["healthy", "warning"]
    persistence: Literal["healthy", "unhealthy", "disabled"]


class HealthResponse(CamelModel):
    """Response model for the health endpoint.

    Attributes:
        status: 'unhealthy' if any check failed, 'degraded' on warnings.
        timestamp: Time of the check.
        checks: Individual check results.
    """

    status: Literal["healthy", "degraded", "unhealthy"]
    timestamp: datetime
    checks: HealthChecks


def _check_persistence(settings: Settings) -> Literal["healthy", "unhealthy", "disabled"]:
    """Verify the snapshot directory exists and is writable."""
    if not settings.persistence_enabled:
        return "disabled"
    data_dir = settings.data_dir
    if data_dir.is_dir() and os.access(data_dir, os.W_OK):
        return "healthy"
    return "unhealthy"


def collect_health(request: Request) -> HealthResponse:
    """Run every health check against the running application."""
    settings: Settings = request.app.state.settings
    bus = request.app.state.event_bus
    dispatcher = request.app.state.dispatcher

    checks = HealthChecks(
        server="running" if dispatcher.is_running else "stopped",
        event_types="healthy" if len(bus.registry) > 0 else "unhealthy",
        subscribers="healthy",
        queue="healthy" if bus.queue_size < bus.max_events else "warning",
        persistence=_check_persistence(settings),
    )

    values = checks.model_dump().values()
    if "unhealthy" in values or "stopped" in values:
        overall: Literal["healthy", "degraded", "unhealthy"] = "unhealthy"
    elif "warning" in values:
        overall = "degraded"
    else:
        overall = "healthy"

    return HealthResponse(status=overall, timestamp=datetime.now(UTC), checks=checks)


@router.get("/live", response_model=LivenessResponse)
async def liveness() -> LivenessResponse:
    """Liveness probe endpoint.

    Returns immediate success if the process is running.

    Returns:
        Liveness status response.
    """
    return LivenessResponse(status="alive")


@router.get("", response_model=HealthResponse)
async def health(request: Request) -> JSONResponse:
    """Health endpoint.

    Returns 200 when healthy or degraded, 503 when any check fails.

    Returns:
        Overall status with individual check results.
    """
    response = collect_health(request)
    code = (
        status.HTTP_503_SERVICE_UNAVAILABLE
        if response.status == "unhealthy"
        else status.HTTP_200_OK
    )
    return JSONResponse(content=response.model_dump(mode="json", by_alias=True), status_code=code)
