"""Event bus configuration loaded from environment variables."""
from pathlib import Path
from typing import Literal

from pydantic import computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict

RoutingStrategy = Literal["broadcast", "unicast", "multicast"]


class Settings(BaseSettings):
    """Event bus configuration loaded from environment variables.

    Attributes:
        host: Bind address for the HTTP server.
        port: Port number for the HTTP server.
        debug: Enable debug logging and API documentation.
        home_dir: Workspace root holding config, logs and snapshots.
        max_events: Capacity of the processing queue and of the history.
        retention_period: Default history retention in milliseconds.
        persistence_enabled: Snapshot bus state to disk.
        persistence_file: Snapshot filename inside the data directory.
        backup_interval: Seconds between snapshots.
        auth_token: Shared secret; security is enabled when non-empty.
        monitoring_enabled: Expose the status and metrics endpoints.
        routing_strategy: How events fan out to handler services.
        retry_attempts: Delivery attempts per handler before giving up.
        retry_delay: Base delay in seconds between delivery attempts.
        handler_timeout: Seconds before a webhook delivery times out.
        process_interval: Seconds between dispatcher ticks.
        maintenance_interval: Seconds between history pruning runs.
        inbox_size: Maximum pending events per subscriber inbox.
        stream_queue_size: Maximum buffered events per live stream.
        max_streams: Maximum concurrent live streams.
        sse_heartbeat_interval: Seconds between SSE heartbeat events.
        cors_origins_raw: Raw comma-separated CORS origins string.
        handler_urls_raw: Comma-separated ``name=url`` webhook endpoints.
        shutdown_timeout: Seconds to wait for graceful shutdown.
    """

    model_config = SettingsConfigDict(
        env_prefix="EVENT_BUS_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    host: str = "localhost"
    port: int = 4000
    debug: bool = False
    home_dir: Path = Path("event-bus")

    max_events: int = 10000
    retention_period: int = 86_400_000

    persistence_enabled: bool = True
    persistence_file: str = "events.json"
    backup_interval: float = 3600.0

    auth_token: str = ""
    monitoring_enabled: bool = True

    routing_strategy: RoutingStrategy = "multicast"
    retry_attempts: int = 3
    retry_delay: float = 1.0
    handler_timeout: float = 30.0
    process_interval: float = 1.0
    maintenance_interval: float = 60.0

    inbox_size: int = 100
    stream_queue_size: int = 100
    max_streams: int = 100
    sse_heartbeat_interval: float = 15.0

    cors_origins_raw: str = "*"
    handler_urls_raw: str = ""
    shutdown_timeout: float = 30.0

    @computed_field
    @property
    def cors_origins(self) -> list[str]:
        """Parse CORS origins from comma-separated string.

        Returns:
            List of allowed origin URLs.
        """
        return [
            origin.strip()
            for origin in self.cors_origins_raw.split(",")
            if origin.strip()
        ]

    @computed_field
    @property
    def handler_urls(self) -> dict[str, str]:
        """Parse handler webhook endpoints from ``name=url`` pairs.

        Returns:
            Mapping of handler service name to webhook URL.
        """
        urls: dict[str, str] = {}
        for pair in self.handler_urls_raw.split(","):
            name, sep, url = pair.partition("=")
            if sep and name.strip() and url.strip():
                urls[name.strip()] = url.strip()
        return urls

    @computed_field
    @property
    def security_enabled(self) -> bool:
        """Whether requests must carry the auth token."""
        return bool(self.auth_token)

    @property
    def config_dir(self) -> Path:
        return self.home_dir / "config"

    @property
    def logs_dir(self) -> Path:
        return self.home_dir / "logs"

    @property
    def subscribers_dir(self) -> Path:
        return self.home_dir / "subscribers"

    @property
    def data_dir(self) -> Path:
        return self.home_dir / "data"

    @property
    def snapshot_path(self) -> Path:
        return self.data_dir / self.persistence_file

    @property
    def event_types_path(self) -> Path:
        return self.config_dir / "event-types.json"

    @property
    def pid_path(self) -> Path:
        return self.home_dir / "event-bus.pid"

    @property
    def base_url(self) -> str:
        return f"http://{self.host}:{self.port}"
