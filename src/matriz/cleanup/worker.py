"""Background worker for delivery log retention."""

import asyncio
import contextlib
import logging

from matriz.cleanup.service import CleanupResult, DeliveryLogCleanupService
from matriz.config import Settings, get_settings
from matriz.db.session import get_async_session_factory

logger = logging.getLogger(__name__)

# Shorter wait between runs while a backlog is being worked off
CATCHUP_INTERVAL_SECONDS = 300
ERROR_RETRY_SECONDS = 60


class CleanupWorker:
    """Periodically deletes delivery logs past the retention period.

    Disabled unless ``delivery_log_cleanup_enabled`` is set.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        service: DeliveryLogCleanupService | None = None,
    ):
        self.settings = settings or get_settings()
        self.service = service
        self._task: asyncio.Task | None = None

    def _service(self) -> DeliveryLogCleanupService:
        if self.service is None:
            self.service = DeliveryLogCleanupService(self.settings, get_async_session_factory())
        return self.service

    async def run_once(self) -> CleanupResult:
        return await self._service().cleanup(dry_run=False)

    def _next_delay(self, result: CleanupResult) -> float:
        if result.has_more:
            return CATCHUP_INTERVAL_SECONDS
        return self.settings.delivery_log_cleanup_interval_hours * 3600

    async def run(self) -> None:
        """Worker loop. The first run happens one interval after startup."""
        interval_hours = self.settings.delivery_log_cleanup_interval_hours
        logger.info(
            f"Cleanup worker started (interval: {interval_hours}h, "
            f"retention: {self.settings.delivery_log_retention_days}d)"
        )
        delay: float = interval_hours * 3600
        while True:
            await asyncio.sleep(delay)
            try:
                result = await self.run_once()
            except Exception:
                logger.exception("Delivery log cleanup failed")
                delay = ERROR_RETRY_SECONDS
                continue
            delay = self._next_delay(result)

    def start(self) -> None:
        """Start the worker in the background if enabled."""
        if not self.settings.delivery_log_cleanup_enabled:
            logger.info("Cleanup worker disabled by configuration")
            return
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run())

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def stop(self) -> None:
        """Cancel the worker and wait for it to exit."""
        if self._task and not self._task.done():
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
        self._task = None
        logger.info("Cleanup worker stopped")
