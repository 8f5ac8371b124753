"""Command line entry point for the event bus."""

import argparse
import asyncio
import contextlib
import json
import os
import signal
import sys
from pathlib import Path
from typing import Any

import structlog
import uvicorn

from eventbus.app import create_app
from eventbus.client import EventBusClient
from eventbus.config import Settings
from eventbus.exceptions import EventBusError
from eventbus.lifecycle import GracefulShutdown
from eventbus.logging import configure_logging
from eventbus.workspace import initialize

logger = structlog.get_logger()


async def serve(settings: Settings) -> None:
    """Run uvicorn server with graceful shutdown support.

    Handles SIGTERM/SIGINT for clean shutdown.

    Args:
        settings: Server configuration.
    """
    app = create_app(settings)
    shutdown = GracefulShutdown(timeout=settings.shutdown_timeout)

    config = uvicorn.Config(
        app,
        host=settings.host,
        port=settings.port,
        log_level="warning",
        access_log=False,
    )
    server = uvicorn.Server(config)

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, shutdown.trigger)

    async def shutdown_server() -> None:
        """Wait for shutdown signal and stop server."""
        await shutdown.wait_for_trigger()
        server.should_exit = True

    watcher = asyncio.create_task(shutdown_server())
    try:
        await server.serve()
    finally:
        watcher.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await watcher


def format_status(
    status: dict[str, Any],
    event_types: dict[str, dict[str, Any]],
    subscribers: list[dict[str, Any]],
    config: dict[str, Any],
) -> str:
    """Render the status report printed by ``status``.

    ``config`` is the configuration block reported by the running bus.
    """
    lines = [
        "Event Bus Status",
        "================",
        f"Status: {status['status']}",
        f"Uptime: {status['uptime'] // 1000}s",
        "",
        f"Event Types: {len(event_types)}",
    ]
    for name, definition in event_types.items():
        lines += [
            f"  - {name}",
            f"    Description: {definition['description']}",
            f"    Priority: {definition['priority']}",
            f"    Handlers: {len(definition['handlers'])}",
        ]
    lines += ["", f"Subscribers: {len(subscribers)}"]
    for subscriber in subscribers:
        lines += [
            f"  - {subscriber['id']}",
            f"    Events: {len(subscriber['events'])}",
            f"    Status: {subscriber['status']}",
        ]
    lines += [
        "",
        "Configuration:",
        f"  Port: {config['port']}",
        f"  Host: {config['host']}",
        f"  Max Events: {config['maxEvents']}",
        f"  Security: {config['security']}",
        f"  Monitoring: {config['monitoring']}",
    ]
    return "\n".join(lines)


def format_metrics(metrics: dict[str, Any]) -> str:
    """Render the metrics report printed by ``metrics``."""
    return "\n".join(
        [
            "Event Bus Metrics",
            "=================",
            f"Events Published: {metrics['eventsPublished']}",
            f"Events Processed: {metrics['eventsProcessed']}",
            f"Events Failed: {metrics['eventsFailed']}",
            f"Events Dropped: {metrics['eventsDropped']}",
            f"Active Subscribers: {metrics['subscribersActive']}",
            f"Uptime: {round(metrics['uptime'] / 1000)}s",
            f"Queue Size: {metrics['queueSize']}",
            f"History Size: {metrics['historySize']}",
        ]
    )


def read_pid(path: Path) -> int | None:
    """Return the pid recorded in ``path``, or None when absent or unreadable."""
    try:
        return int(path.read_text().strip())
    except (FileNotFoundError, ValueError):
        return None


def process_alive(pid: int) -> bool:
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    return True


def cmd_init(settings: Settings, args: argparse.Namespace) -> int:
    paths = initialize(settings)
    print(f"Configuration: {paths['config']}")
    print(f"Event Types: {paths['event_types']}")
    return 0


def cmd_start(settings: Settings, args: argparse.Namespace) -> int:
    running = read_pid(settings.pid_path)
    if running is not None and process_alive(running):
        print(f"Event bus is already running (pid {running})", file=sys.stderr)
        return 1

    pid = os.getpid()
    settings.home_dir.mkdir(parents=True, exist_ok=True)
    settings.pid_path.write_text(str(pid))
    try:
        with contextlib.suppress(KeyboardInterrupt):
            asyncio.run(serve(settings))
    finally:
        # Another start may have claimed the pid file meanwhile.
        if read_pid(settings.pid_path) == pid:
            settings.pid_path.unlink(missing_ok=True)
    return 0


def cmd_stop(settings: Settings, args: argparse.Namespace) -> int:
    pid = read_pid(settings.pid_path)
    if pid is None:
        print("Event bus is not running", file=sys.stderr)
        return 1

    try:
        os.kill(pid, signal.SIGTERM)
    except ProcessLookupError:
        settings.pid_path.unlink(missing_ok=True)
        print(f"No process {pid}; removed stale pid file", file=sys.stderr)
        return 1

    print(f"Sent SIGTERM to event bus (pid {pid})")
    return 0


def cmd_status(settings: Settings, args: argparse.Namespace) -> int:
    with EventBusClient(settings.base_url, token=settings.auth_token) as client:
        report = format_status(
            client.status(),
            client.event_types(),
            client.subscribers(),
            client.metrics()["config"],
        )
    print(report)
    return 0


def cmd_metrics(settings: Settings, args: argparse.Namespace) -> int:
    with EventBusClient(settings.base_url, token=settings.auth_token) as client:
        print(format_metrics(client.metrics()))
    return 0


def cmd_publish(settings: Settings, args: argparse.Namespace) -> int:
    try:
        data = json.loads(args.data) if args.data is not None else None
    except json.JSONDecodeError as e:
        print(f"Invalid --data JSON: {e}", file=sys.stderr)
        return 2

    with EventBusClient(settings.base_url, token=settings.auth_token) as client:
        event_id = client.publish(args.type, data, source=args.source)
    print(f"Event published: {args.type} ({event_id})")
    return 0


COMMANDS = {
    "init": cmd_init,
    "start": cmd_start,
    "stop": cmd_stop,
    "status": cmd_status,
    "metrics": cmd_metrics,
    "publish": cmd_publish,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="eventbus",
        description="Event-driven pub/sub bus with an HTTP interface.",
    )
    parser.add_argument("--host", help="Override the bind/target host")
    parser.add_argument("--port", type=int, help="Override the bind/target port")
    parser.add_argument("--home", help="Override the workspace directory")

    sub = parser.add_subparsers(dest="command")
    sub.add_parser("init", help="Create the workspace and configuration files")
    sub.add_parser("start", help="Start the event bus server")
    sub.add_parser("stop", help="Stop a running event bus server")
    sub.add_parser("status", help="Show event bus status")
    sub.add_parser("metrics", help="Show event bus metrics")
    publish = sub.add_parser("publish", help="Publish an event")
    publish.add_argument("type", help="Event type, e.g. task.created")
    publish.add_argument("--data", help="JSON payload")
    publish.add_argument("--source", help="Publishing service name")
    sub.add_parser("help", help="Show this help")
    return parser


def main(argv: list[str] | None = None) -> int:
    """Entry point for python -m eventbus."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command in (None, "help"):
        parser.print_help()
        return 0

    overrides: dict[str, Any] = {}
    if args.host is not None:
        overrides["host"] = args.host
    if args.port is not None:
        overrides["port"] = args.port
    if args.home is not None:
        overrides["home_dir"] = args.home
    settings = Settings(**overrides)
    configure_logging(debug=settings.debug, json_output=args.command == "start")

    try:
        return COMMANDS[args.command](settings, args)
    except EventBusError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
