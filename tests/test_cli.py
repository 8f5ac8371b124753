"""Command line and HTTP client tests."""

import json
import os
from pathlib import Path

import httpx
import pytest

import eventbus.__main__ as cli
from eventbus.__main__ import format_metrics, format_status, main
from eventbus.client import EventBusClient
from eventbus.config import Settings
from eventbus.exceptions import EventBusError


def test_help_exits_cleanly(capsys: pytest.CaptureFixture[str]) -> None:
    assert main(["help"]) == 0
    assert "publish" in capsys.readouterr().out


def test_init_writes_workspace(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    home = tmp_path / "bus"
    assert main(["--home", str(home), "init"]) == 0
    assert (home / "config" / "event-bus.json").is_file()
    assert (home / "config" / "event-types.json").is_file()
    assert "Event Types:" in capsys.readouterr().out


def test_stop_without_pid_file(tmp_path: Path) -> None:
    assert main(["--home", str(tmp_path), "stop"]) == 1


def test_start_refuses_when_bus_is_running(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    pid_path = tmp_path / "event-bus.pid"
    pid_path.write_text(str(os.getpid()))

    assert main(["--home", str(tmp_path), "start"]) == 1

    assert pid_path.read_text() == str(os.getpid())
    assert "already running" in capsys.readouterr().err


def test_start_replaces_unreadable_pid_file_and_cleans_up(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    pid_path = tmp_path / "event-bus.pid"
    pid_path.write_text("garbage")
    seen: list[str] = []

    async def fake_serve(settings: Settings) -> None:
        seen.append(settings.pid_path.read_text())

    monkeypatch.setattr(cli, "serve", fake_serve)

    assert main(["--home", str(tmp_path), "start"]) == 0
    assert seen == [str(os.getpid())]
    assert not pid_path.exists()


def test_start_keeps_pid_file_claimed_by_another_process(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    pid_path = tmp_path / "event-bus.pid"

    async def fake_serve(settings: Settings) -> None:
        settings.pid_path.write_text("424242")

    monkeypatch.setattr(cli, "serve", fake_serve)

    assert main(["--home", str(tmp_path), "start"]) == 0
    assert pid_path.read_text() == "424242"


def test_port_zero_override_is_honored(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    seen: list[int] = []

    def fake_metrics(settings: Settings, args: object) -> int:
        seen.append(settings.port)
        return 0

    monkeypatch.setitem(cli.COMMANDS, "metrics", fake_metrics)

    assert main(["--home", str(tmp_path), "--port", "0", "metrics"]) == 0
    assert seen == [0]


def test_publish_rejects_invalid_json(tmp_path: Path) -> None:
    assert main(["--home", str(tmp_path), "publish", "task.created", "--data", "{oops"]) == 2


def test_status_against_unreachable_bus(tmp_path: Path) -> None:
    assert main(["--home", str(tmp_path), "--port", "9", "status"]) == 1


def test_format_metrics() -> None:
    report = format_metrics(
        {
            "eventsPublished": 4,
            "eventsProcessed": 10,
            "eventsFailed": 2,
            "eventsDropped": 0,
            "subscribersActive": 1,
            "uptime": 61_400,
            "queueSize": 0,
            "historySize": 4,
        }
    )
    assert "Events Processed: 10" in report
    assert "Uptime: 61s" in report


def test_format_status_lists_types_and_subscribers() -> None:
    report = format_status(
        {"status": "running", "uptime": 5000},
        {
            "task.created": {
                "description": "Task created event",
                "priority": "medium",
                "handlers": ["a", "b"],
            }
        },
        [{"id": "planner", "events": ["task.created"], "status": "active"}],
        {"port": 4100, "host": "0.0.0.0", "maxEvents": 500, "security": True, "monitoring": True},
    )
    assert "Event Types: 1" in report
    assert "Handlers: 2" in report
    assert "  - planner" in report
    assert "Port: 4100" in report
    assert "Max Events: 500" in report


def make_client(handler: object, token: str = "") -> EventBusClient:
    return EventBusClient(
        "http://bus.local",
        token=token,
        transport=httpx.MockTransport(handler),  # type: ignore[arg-type]
    )


def test_client_publish_sends_camel_case_body() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"success": True, "eventId": "abc", "message": "ok"})

    with make_client(handler, token="t0k") as client:
        assert client.publish("task.created", {"id": 1}, source="cli") == "abc"

    [request] = seen
    assert request.url.path == "/events/publish"
    assert request.headers["Authorization"] == "Bearer t0k"
    assert json.loads(request.content) == {
        "type": "task.created",
        "data": {"id": 1},
        "source": "cli",
    }


def test_client_raises_server_error_message() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"error": "Unknown event type: x"})

    with make_client(handler) as client, pytest.raises(EventBusError, match="Unknown event type: x"):
        client.publish("x")


def test_client_poll_passes_query() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.params["subscriberId"] == "planner"
        assert request.url.params["max"] == "5"
        return httpx.Response(200, json=[])

    with make_client(handler) as client:
        assert client.poll("planner", max_events=5) == []
