"""System scheduler for periodic maintenance.

Runs file cleanup in a background asyncio task for the lifetime of the
application. Started and stopped by the Application container.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from lensdrop.config import LensDropConfig
    from lensdrop.services.file_service import FileService

logger = logging.getLogger(__name__)


class SystemScheduler:
    """Runs file cleanup once at start and then every interval."""

    FILE_CLEANUP_INTERVAL_SECONDS = 3600

    def __init__(
        self,
        config: "LensDropConfig",
        file_service: "FileService",
        *,
        interval_seconds: float | None = None,
    ) -> None:
        """Initialize the system scheduler.

        Args:
            config: Application configuration.
            file_service: FileService for cleanup operations.
            interval_seconds: Override of the hourly cleanup interval.
        """
        self.config = config
        self.file_service = file_service
        self.interval_seconds = interval_seconds or self.FILE_CLEANUP_INTERVAL_SECONDS
        self._running = False
        self._cleanup_task: asyncio.Task | None = None
        self._stop_event = asyncio.Event()

    async def start(self) -> None:
        """Start the cleanup loop in the background."""
        if self._running:
            logger.warning("SystemScheduler is already running")
            return

        self._running = True
        self._stop_event.clear()
        self._cleanup_task = asyncio.create_task(self._run_file_cleanup_loop())

        logger.info(
            "SystemScheduler started, file cleanup every %d seconds",
            self.interval_seconds,
        )

    async def stop(self) -> None:
        """Stop the cleanup loop, cancelling it if it does not exit in time."""
        if not self._running:
            return

        logger.info("Stopping SystemScheduler...")
        self._running = False
        self._stop_event.set()

        if self._cleanup_task:
            try:
                await asyncio.wait_for(self._cleanup_task, timeout=10.0)
            except asyncio.TimeoutError:
                logger.warning("SystemScheduler task did not stop gracefully, cancelling")
                self._cleanup_task.cancel()
                try:
                    await self._cleanup_task
                except asyncio.CancelledError:
                    pass
            except asyncio.CancelledError:
                pass
            finally:
                self._cleanup_task = None

        logger.info("SystemScheduler stopped")

    async def _run_file_cleanup_loop(self) -> None:
        while self._running:
            await self.run_cleanup_once()

            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self.interval_seconds)
                break
            except asyncio.TimeoutError:
                continue

        logger.info("File cleanup loop ended")

    async def run_cleanup_once(self) -> int:
        """Delete stored files older than the configured retention period.

        Failures are logged and reported as 0 deletions so the loop keeps
        running.
        """
        retention_hours = self.config.file_retention_hours
        try:
            deleted = await self.file_service.cleanup_old_files(max_age_hours=retention_hours)
        except Exception as e:
            logger.exception("File cleanup failed: %s", e)
            return 0

        if deleted:
            logger.info("Removed %d stored files older than %d hours", deleted, retention_hours)
        return deleted

    @property
    def is_running(self) -> bool:
        return self._running
