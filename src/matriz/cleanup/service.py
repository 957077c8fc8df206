"""Retention cleanup for webhook delivery logs."""

import asyncio
import logging
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from matriz.config import Settings
from matriz.db.models import WebhookDeliveryLog

logger = logging.getLogger(__name__)


@dataclass
class CleanupResult:
    """Result of a cleanup run."""

    deleted_count: int
    dry_run: bool
    cutoff_date: datetime
    has_more: bool = False  # per-run cap reached before everything expired was removed


class DeliveryLogCleanupService:
    """Deletes delivery attempts older than the retention period.

    Rows are removed in batches, each batch in its own short transaction,
    so dispatches can keep writing logs while a cleanup runs.
    """

    def __init__(self, settings: Settings, session_factory: async_sessionmaker[AsyncSession]):
        self.settings = settings
        self.session_factory = session_factory

    def cutoff_for(self, retention_days: int | None = None) -> datetime:
        days = retention_days or self.settings.delivery_log_retention_days
        return datetime.now(UTC) - timedelta(days=days)

    async def count_expired(self, cutoff_date: datetime) -> int:
        stmt = (
            select(func.count())
            .select_from(WebhookDeliveryLog)
            .where(WebhookDeliveryLog.dispatched_at < cutoff_date)
        )
        async with self.session_factory() as session:
            return (await session.execute(stmt)).scalar() or 0

    async def _delete_batch(self, cutoff_date: datetime, limit: int) -> int:
        async with self.session_factory() as session:
            ids = (
                await session.execute(
                    select(WebhookDeliveryLog.id)
                    .where(WebhookDeliveryLog.dispatched_at < cutoff_date)
                    .order_by(WebhookDeliveryLog.dispatched_at)
                    .limit(limit)
                )
            ).scalars().all()
            if not ids:
                return 0
            await session.execute(delete(WebhookDeliveryLog).where(WebhookDeliveryLog.id.in_(ids)))
            await session.commit()
            return len(ids)

    async def cleanup(
        self,
        dry_run: bool = False,
        retention_days: int | None = None,
    ) -> CleanupResult:
        """Delete expired delivery logs.

        Args:
            dry_run: Only count the rows that would be deleted
            retention_days: Override the configured retention period

        Returns:
            CleanupResult with the number of rows deleted (or counted)
        """
        cutoff_date = self.cutoff_for(retention_days)

        if dry_run:
            expired = await self.count_expired(cutoff_date)
            logger.info(f"Dry run: {expired} delivery logs older than {cutoff_date}")
            return CleanupResult(deleted_count=expired, dry_run=True, cutoff_date=cutoff_date)

        batch_size = self.settings.delivery_log_cleanup_batch_size
        max_per_run = self.settings.delivery_log_cleanup_max_per_run
        batch_delay = self.settings.delivery_log_cleanup_batch_delay_ms / 1000.0

        deleted = 0
        while deleted < max_per_run:
            if deleted and batch_delay > 0:
                await asyncio.sleep(batch_delay)

            removed = await self._delete_batch(cutoff_date, min(batch_size, max_per_run - deleted))
            if removed == 0:
                break
            deleted += removed
            logger.debug(f"Deleted batch of {removed} delivery logs")

        has_more = deleted >= max_per_run
        logger.info(
            f"Deleted {deleted} delivery logs older than {cutoff_date}"
            + (" (per-run limit reached)" if has_more else "")
        )
        return CleanupResult(
            deleted_count=deleted,
            dry_run=False,
            cutoff_date=cutoff_date,
            has_more=has_more,
        )
