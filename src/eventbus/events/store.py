"""Snapshot persistence for bus state."""

import asyncio
import os
from pathlib import Path

import structlog
from pydantic import ValidationError

from eventbus.events.bus import EventBus
from eventbus.events.types import Snapshot
from eventbus.exceptions import SnapshotError
from eventbus.lifecycle import GracefulShutdown

logger = structlog.get_logger()


class EventStore:
    """Reads and writes bus snapshots as a JSON file."""

    def __init__(self, path: Path) -> None:
        """Initialize store.

        Args:
            path: Snapshot file location.
        """
        self.path = path

    def save(self, snapshot: Snapshot) -> None:
        """Write a snapshot, replacing the previous one atomically.

        Args:
            snapshot: State to persist.
        """
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(snapshot.model_dump_json(by_alias=True, indent=2), encoding="utf-8")
        os.replace(tmp, self.path)

    def load(self) -> Snapshot | None:
        """Read the last snapshot.

        Returns:
            The snapshot, or None if none has been written.

        Raises:
            SnapshotError: If the file exists but cannot be parsed.
        """
        try:
            raw = self.path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise SnapshotError(f"Cannot read snapshot {self.path}: {e}") from e

        try:
            return Snapshot.model_validate_json(raw)
        except ValidationError as e:
            raise SnapshotError(f"Corrupt snapshot {self.path}: {e}") from e

    async def persist(self, bus: EventBus) -> None:
        """Snapshot the bus without blocking the event loop."""
        snapshot = bus.snapshot()
        await asyncio.to_thread(self.save, snapshot)
        logger.info(
            "snapshot_saved",
            path=str(self.path),
            history=len(snapshot.history),
            pending=len(snapshot.pending),
            subscribers=len(snapshot.subscribers),
        )

    def restore_into(self, bus: EventBus) -> bool:
        """Load the last snapshot into the bus.

        A corrupt snapshot is logged and the bus starts empty.

        Returns:
            True if state was restored.
        """
        try:
            snapshot = self.load()
        except SnapshotError as e:
            logger.error("snapshot_restore_failed", error=str(e))
            return False
        if snapshot is None:
            return False
        bus.restore(snapshot)
        return True

    async def run(
        self,
        bus: EventBus,
        shutdown: GracefulShutdown,
        interval: float = 3600.0,
    ) -> None:
        """Snapshot the bus every interval until shutdown.

        Args:
            bus: Event bus to snapshot.
            shutdown: Shutdown coordinator.
            interval: Seconds between snapshots.
        """
        while not await shutdown.sleep(interval):
            try:
                await self.persist(bus)
            except OSError as e:
                logger.error("snapshot_save_failed", path=str(self.path), error=str(e))
