"""In-process reminder scheduler."""

import structlog
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from app.config import settings
from app.database import AsyncSessionLocal
from app.services.reminder_service import ReminderService

logger = structlog.get_logger(__name__)

REMINDER_JOB_ID = "reminder_sweep"


async def run_reminder_sweep() -> None:
    """Run every sweep with a fresh session; errors are logged, not raised."""
    async with AsyncSessionLocal() as session:
        try:
            results = await ReminderService(session).run_all()
        except Exception as e:
            logger.error("scheduled_reminder_sweep_failed", error=str(e))
            return

    logger.info(
        "scheduled_reminder_sweep_completed",
        **{f"{kind.value}_sent": result.sent for kind, result in results.items()},
    )


class ReminderScheduler:
    """Runs the reminder sweeps on a fixed interval inside the API process."""

    def __init__(self, interval_minutes: int | None = None):
        """Initialize scheduler with sweep interval."""
        self.interval_minutes = interval_minutes or settings.reminder_sweep_interval_minutes
        self.scheduler = AsyncIOScheduler()

    @property
    def running(self) -> bool:
        return self.scheduler.running

    def start(self) -> None:
        """Register the sweep job and start the scheduler."""
        if self.scheduler.running:
            return

        self.scheduler.add_job(
            run_reminder_sweep,
            IntervalTrigger(minutes=self.interval_minutes),
            id=REMINDER_JOB_ID,
            name="Appointment reminder sweep",
            replace_existing=True,
            # A slow sweep is never run twice concurrently by this process
            max_instances=1,
            coalesce=True,
        )
        self.scheduler.start()
        logger.info("reminder_scheduler_started", interval_minutes=self.interval_minutes)

    def shutdown(self) -> None:
        """Stop the scheduler without waiting for a running sweep."""
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("reminder_scheduler_stopped")
