"""Scheduler for automated jobs (task reminders)."""

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from src.core.config import constants
from src.core.scheduler_tracker import retry_job_with_backoff
from src.modules.tasks.scheduler_jobs import send_due_reminders


logger = logging.getLogger(__name__)

# Global scheduler instance
scheduler = AsyncIOScheduler()

# Jobs reported by the scheduler health endpoint
JOB_NAMES = ["due_reminders"]


async def run_due_reminders() -> None:
    """Run the reminder job with retries and tracking."""
    await retry_job_with_backoff(send_due_reminders, "due_reminders")


def start_scheduler() -> None:
    """Start the scheduler and register all jobs.

    This should be called during FastAPI app startup.
    """
    logger.info("Starting scheduler")

    scheduler.add_job(
        run_due_reminders,
        trigger=CronTrigger(hour=constants.DAILY_REMINDER_HOUR, minute=0),
        id="due_reminders",
        name="Send Due Task Reminders",
        replace_existing=True,
    )
    logger.info(f"Scheduled due reminders job: daily at {constants.DAILY_REMINDER_HOUR}:00")

    scheduler.start()
    logger.info("Scheduler started successfully")


def stop_scheduler() -> None:
    """Stop the scheduler.

    This should be called during FastAPI app shutdown.
    """
    if not scheduler.running:
        return
    logger.info("Stopping scheduler")
    scheduler.shutdown(wait=True)
    logger.info("Scheduler stopped")
