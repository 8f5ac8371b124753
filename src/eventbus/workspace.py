"""Workspace directories and generated configuration files."""

import json
from pathlib import Path

import structlog

from eventbus.config import Settings
from eventbus.events.registry import EventTypeRegistry

logger = structlog.get_logger()

CONFIG_FILE_NAME = "event-bus.json"


def ensure_directories(settings: Settings) -> list[Path]:
    """Create missing workspace directories.

    Args:
        settings: Configuration naming the workspace root.

    Returns:
        Directories that were created.
    """
    created: list[Path] = []
    for directory in (
        settings.home_dir,
        settings.config_dir,
        settings.logs_dir,
        settings.subscribers_dir,
        settings.data_dir,
    ):
        if not directory.is_dir():
            directory.mkdir(parents=True, exist_ok=True)
            created.append(directory)
            logger.info("directory_created", path=str(directory))
    return created


def config_document(settings: Settings) -> dict[str, object]:
    """Describe the effective configuration, leaving out the auth token."""
    return {
        "port": settings.port,
        "host": settings.host,
        "maxEvents": settings.max_events,
        "retentionPeriod": settings.retention_period,
        "persistence": {
            "enabled": settings.persistence_enabled,
            "file": settings.persistence_file,
            "backupInterval": int(settings.backup_interval * 1000),
        },
        "security": {"enabled": settings.security_enabled},
        "monitoring": {"enabled": settings.monitoring_enabled},
        "routing": {
            "strategy": settings.routing_strategy,
            "retryAttempts": settings.retry_attempts,
            "retryDelay": int(settings.retry_delay * 1000),
            "timeout": int(settings.handler_timeout * 1000),
        },
    }


def load_registry(settings: Settings) -> EventTypeRegistry:
    """Load the workspace registry, or the defaults if none was written."""
    if settings.event_types_path.is_file():
        return EventTypeRegistry.load(
            settings.event_types_path,
            default_retention=settings.retention_period,
        )
    return EventTypeRegistry(default_retention=settings.retention_period)


def initialize(
    settings: Settings,
    registry: EventTypeRegistry | None = None,
) -> dict[str, Path]:
    """Create the workspace and write its configuration files.

    An existing event type registry is kept so local edits survive
    re-initialization.

    Args:
        settings: Configuration to record.
        registry: Registry to write when none exists yet.

    Returns:
        Mapping of file role to path.
    """
    ensure_directories(settings)

    config_path = settings.config_dir / CONFIG_FILE_NAME
    config_path.write_text(json.dumps(config_document(settings), indent=2))

    types_path = settings.event_types_path
    if not types_path.is_file():
        (registry or EventTypeRegistry()).dump(types_path)

    logger.info(
        "workspace_initialized",
        config=str(config_path),
        event_types=str(types_path),
    )
    return {"config": config_path, "event_types": types_path}
