"""Pytest configuration and fixtures."""

import sys
import time
from collections.abc import Callable, Iterator
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import pytest
import structlog
from fastapi.testclient import TestClient

from eventbus.app import create_app
from eventbus.config import Settings


@pytest.fixture(autouse=True)
def reset_structlog(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Undo logging configuration a test applied through the CLI.

    configure_logging binds structlog to the sys.stdout of the test that
    ran it, and pytest closes that capture stream once the test finishes.
    Module-level loggers must not cache that binding across tests.
    """
    import eventbus.__main__ as cli

    real_configure = cli.configure_logging

    def configure_uncached(*args: object, **kwargs: object) -> None:
        real_configure(*args, **kwargs)
        structlog.configure(cache_logger_on_first_use=False)

    monkeypatch.setattr(cli, "configure_logging", configure_uncached)
    yield
    structlog.reset_defaults()


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Create test settings rooted in a temporary workspace."""
    return Settings(
        host="127.0.0.1",
        port=4000,
        debug=True,
        home_dir=tmp_path / "event-bus",
        retry_delay=0.0,
        process_interval=0.02,
        maintenance_interval=3600.0,
        backup_interval=3600.0,
    )


@pytest.fixture
def client(settings: Settings) -> Iterator[TestClient]:
    """Create test client with the application lifespan running."""
    app = create_app(settings)
    with TestClient(app) as test_client:
        yield test_client


def wait_until(condition: Callable[[], bool], timeout: float = 2.0) -> bool:
    """Poll a condition until it holds or the timeout expires."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if condition():
            return True
        time.sleep(0.01)
    return condition()
