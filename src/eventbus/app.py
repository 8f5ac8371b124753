"""FastAPI application factory and lifespan management."""

import asyncio
import contextlib
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from eventbus.config import Settings
from eventbus.events import (
    BroadcastHub,
    EventBus,
    EventDispatcher,
    EventStore,
    ProcessingLog,
    WebhookDelivery,
)
from eventbus.exceptions import (
    EventBusError,
    QueueFullError,
    StreamLimitError,
)
from eventbus.lifecycle import GracefulShutdown
from eventbus.middleware.auth import TokenAuthMiddleware
from eventbus.middleware.cors import configure_cors
from eventbus.middleware.logging import RequestLoggingMiddleware
from eventbus.routes import events, health, monitoring
from eventbus.workspace import ensure_directories, load_registry

logger = structlog.get_logger()


async def prune_history(bus: EventBus, shutdown: GracefulShutdown, interval: float) -> None:
    """Drop expired history entries every interval until shutdown."""
    while not await shutdown.sleep(interval):
        bus.prune_history()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Manage application lifecycle events.

    Restores the last snapshot, then runs the dispatcher, history
    pruning and snapshot loops for the lifetime of the application.
    On shutdown the queue is drained and a final snapshot written.

    Args:
        app: FastAPI application instance.

    Yields:
        None during application runtime.
    """
    settings: Settings = app.state.settings
    bus: EventBus = app.state.event_bus
    dispatcher: EventDispatcher = app.state.dispatcher
    store: EventStore = app.state.event_store
    logger.info(
        "event_bus_startup",
        host=settings.host,
        port=settings.port,
        event_types=len(bus.registry),
        security=settings.security_enabled,
        strategy=settings.routing_strategy,
    )

    ensure_directories(settings)
    if settings.persistence_enabled:
        store.restore_into(bus)

    shutdown = GracefulShutdown(timeout=settings.shutdown_timeout)
    tasks = [
        asyncio.create_task(dispatcher.run(shutdown, interval=settings.process_interval)),
        asyncio.create_task(prune_history(bus, shutdown, settings.maintenance_interval)),
    ]
    if settings.persistence_enabled:
        tasks.append(
            asyncio.create_task(store.run(bus, shutdown, interval=settings.backup_interval))
        )

    try:
        yield
    finally:
        shutdown.trigger()
        _, pending = await asyncio.wait(tasks, timeout=shutdown.timeout)
        for task in pending:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

        if settings.persistence_enabled:
            try:
                await store.persist(bus)
            except OSError as e:
                logger.error("snapshot_save_failed", path=str(store.path), error=str(e))

        await app.state.delivery.aclose()
        await app.state.broadcast_hub.shutdown()
        logger.info("event_bus_shutdown")


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def register_error_handlers(app: FastAPI) -> None:
    """Render every error as ``{"error": message}``."""

    @app.exception_handler(EventBusError)
    async def bus_error(request: Request, exc: EventBusError) -> JSONResponse:
        code = (
            status.HTTP_503_SERVICE_UNAVAILABLE
            if isinstance(exc, QueueFullError | StreamLimitError)
            else status.HTTP_400_BAD_REQUEST
        )
        logger.warning("request_rejected", path=request.url.path, error=str(exc))
        return _error(code, str(exc))

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = exc.errors()
        if errors:
            first = errors[0]
            location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
            message = f"{location}: {first.get('msg')}" if location else str(first.get("msg"))
        else:
            message = "Invalid request"
        return _error(status.HTTP_400_BAD_REQUEST, message)

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail},
            headers=getattr(exc, "headers", None),
        )


def create_app(settings: Settings | None = None) -> FastAPI:
    """Factory function to create configured FastAPI application.

    Args:
        settings: Configuration instance. Creates default if None.

    Returns:
        Configured FastAPI application.
    """
    if settings is None:
        settings = Settings()

    app = FastAPI(
        title="Event Bus",
        version="0.1.0",
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url=None,
        openapi_url="/openapi.json" if settings.debug else None,
    )

    event_bus = EventBus(
        registry=load_registry(settings),
        max_events=settings.max_events,
        inbox_size=settings.inbox_size,
        stream_queue_size=settings.stream_queue_size,
        max_streams=settings.max_streams,
    )
    delivery = WebhookDelivery(settings.handler_urls, timeout=settings.handler_timeout)

    app.state.settings = settings
    app.state.event_bus = event_bus
    app.state.delivery = delivery
    app.state.dispatcher = EventDispatcher(
        event_bus,
        delivery,
        ProcessingLog(settings.logs_dir),
        strategy=settings.routing_strategy,
        retry_attempts=settings.retry_attempts,
        retry_delay=settings.retry_delay,
    )
    app.state.broadcast_hub = BroadcastHub(
        event_bus,
        heartbeat_interval=settings.sse_heartbeat_interval,
    )
    app.state.event_store = EventStore(settings.snapshot_path)

    register_error_handlers(app)
    configure_cors(app, settings.cors_origins)
    app.add_middleware(RequestLoggingMiddleware)
    if settings.security_enabled:
        app.add_middleware(TokenAuthMiddleware, token=settings.auth_token)

    app.include_router(health.router)
    app.include_router(events.router)
    if settings.monitoring_enabled:
        app.include_router(monitoring.router)

    return app
