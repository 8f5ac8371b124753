"""Graceful shutdown coordinator for the bus background loops."""
import asyncio

import structlog

logger = structlog.get_logger()


class GracefulShutdown:
    """Coordinates graceful shutdown across the server and its loops.

    Background loops sleep through ``sleep`` so that a shutdown signal
    interrupts their interval instead of waiting it out.

    Attributes:
        is_triggered: Whether shutdown has been triggered.
        timeout: Seconds allowed for in-flight work after the trigger.
    """

    def __init__(self, timeout: float = 30.0) -> None:
        """Initialize shutdown coordinator.

        Args:
            timeout: Seconds to wait for background loops to finish.
        """
        self._event = asyncio.Event()
        self.timeout = timeout

    @property
    def is_triggered(self) -> bool:
        """Check if shutdown has been triggered.

        Returns:
            True if shutdown signal received.
        """
        return self._event.is_set()

    def trigger(self) -> None:
        """Signal all waiting tasks to begin shutdown.

        Idempotent - calling multiple times has no additional effect.
        """
        if self._event.is_set():
            return
        logger.info("shutdown_triggered")
        self._event.set()

    async def wait_for_trigger(self) -> None:
        """Block until trigger() is called from another task or signal handler."""
        await self._event.wait()

    async def sleep(self, seconds: float) -> bool:
        """Sleep for an interval unless shutdown is triggered first.

        Args:
            seconds: Interval to sleep.

        Returns:
            True if shutdown was triggered, False if the interval elapsed.
        """
        try:
            await asyncio.wait_for(self._event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return False
        return True
