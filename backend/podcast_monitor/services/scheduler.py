import logging
from datetime import datetime
from typing import Awaitable, Callable, Optional
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger


logger = logging.getLogger(__name__)

FEED_CHECK_JOB = "feed_check"
DIGEST_JOB = "daily_digest"


class SchedulerService:
    """Service for the time-based triggers: feed checks and the daily digest."""

    def __init__(self, timezone: str = "UTC"):
        self.timezone = timezone
        self.scheduler = AsyncIOScheduler(timezone=timezone)
        self._feed_check_hours = ""
        self._digest_hour: Optional[int] = None

    def start(self):
        """Start the scheduler."""
        if not self.scheduler.running:
            self.scheduler.start()
            logger.info("Scheduler started")

    def stop(self):
        """Stop the scheduler."""
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Scheduler stopped")

    def _add_cron_job(self, job_id: str, name: str, callback: Callable[[], Awaitable], hour: str):
        self.scheduler.add_job(
            self._run_job,
            trigger=CronTrigger(hour=hour, minute=0, timezone=self.timezone),
            args=[name, callback],
            id=job_id,
            name=name,
            replace_existing=True
        )

    def schedule_feed_checks(self, callback: Callable[[], Awaitable], hours: str = "8,14,20"):
        """Run the feed check at the given hours every day."""
        self._feed_check_hours = hours
        self._add_cron_job(FEED_CHECK_JOB, "Check RSS feeds", callback, hours)
        logger.info(f"Scheduled feed checks at hours {hours} ({self.timezone})")

    def schedule_daily_digest(self, callback: Callable[[], Awaitable], hour: int = 8):
        """Send the digest once a day at the given hour."""
        self._digest_hour = hour
        self._add_cron_job(DIGEST_JOB, "Send daily digest", callback, str(hour))
        logger.info(f"Scheduled daily digest at {hour}:00 ({self.timezone})")

    @staticmethod
    async def _run_job(name: str, callback: Callable[[], Awaitable]):
        logger.info(f"Running scheduled job: {name}")
        try:
            await callback()
        except Exception as e:
            logger.error(f"Scheduled job '{name}' failed: {e}")

    def get_next_run_time(self, job_id: str) -> Optional[datetime]:
        job = self.scheduler.get_job(job_id)
        if job:
            # Pending jobs (scheduler not started yet) have no run time
            return getattr(job, "next_run_time", None)
        return None

    @property
    def is_running(self) -> bool:
        return self.scheduler.running

    @property
    def feed_check_hours(self) -> str:
        return self._feed_check_hours

    @property
    def digest_hour(self) -> Optional[int]:
        return self._digest_hour


# Global scheduler instance
_scheduler: Optional[SchedulerService] = None


def get_scheduler(timezone: str = "UTC") -> SchedulerService:
    """Get or create the global scheduler instance."""
    global _scheduler
    if _scheduler is None:
        _scheduler = SchedulerService(timezone=timezone)
    return _scheduler
