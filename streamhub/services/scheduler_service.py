import logging
from datetime import datetime, timezone
from typing import Awaitable, Callable

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from streamhub.config import settings


logger = logging.getLogger(__name__)

REFRESH_JOB_ID = "stream_refresh"


class RefreshScheduler:
    """Scheduler for periodic stream refreshes"""

    def __init__(self):
        self.scheduler: AsyncIOScheduler | None = None
        self._refresh: Callable[[], Awaitable[object]] | None = None

    async def _refresh_job(self) -> None:
        """Background job that runs one refresh cycle"""
        logger.debug("Scheduled refresh triggered")
        if self._refresh is None:
            logger.warning("No refresh callback registered")
            return
        try:
            result = await self._refresh()
            error = getattr(result, "error", None)
            if error and not getattr(result, "degraded", False):
                logger.error(f"Scheduled refresh failed: {error}")
        except Exception as e:
            logger.error(f"Exception in scheduled refresh: {e}", exc_info=True)

    def start(self, refresh: Callable[[], Awaitable[object]]) -> None:
        """Start the scheduler with the refresh job"""
        if self.scheduler and self.scheduler.running:
            logger.warning("Scheduler already running")
            return

        self._refresh = refresh
        self.scheduler = AsyncIOScheduler(timezone="UTC")
        self.scheduler.add_job(
            self._refresh_job,
            trigger=IntervalTrigger(seconds=settings.refresh_interval_sec),
            id=REFRESH_JOB_ID,
            max_instances=settings.refresh_max_overlap,
            coalesce=False,
            next_run_time=datetime.now(timezone.utc),
        )

        self.scheduler.start()
        next_time = self.get_next_run_time()
        logger.info(
            "Scheduler started. Next refresh: %s",
            next_time.isoformat() if next_time else "unknown",
        )

    def shutdown(self) -> None:
        """Shutdown the scheduler"""
        if self.scheduler and self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Scheduler stopped")
        self.scheduler = None

    @property
    def running(self) -> bool:
        return bool(self.scheduler and self.scheduler.running)

    def get_next_run_time(self) -> datetime | None:
        """Get next scheduled refresh time"""
        if not self.scheduler:
            return None
        job = self.scheduler.get_job(REFRESH_JOB_ID)
        return job.next_run_time if job else None


refresh_scheduler = RefreshScheduler()
