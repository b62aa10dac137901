"""
Scheduler Service

In-process background jobs that reset usage counters at UTC period
boundaries. Worker deployments run the same jobs from Celery beat instead.
"""

import logging
from datetime import datetime, timedelta
from functools import lru_cache

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from app.services import get_enforcement_gate
from app.services.reset_scheduler import ResetScheduler

logger = logging.getLogger(__name__)

# Global scheduler instance
scheduler = BackgroundScheduler(timezone="UTC")


@lru_cache()
def get_reset_scheduler() -> ResetScheduler:
    """Reset scheduler bound to the application database."""
    gate = get_enforcement_gate()
    return ResetScheduler(gate.store, gate.notifier)


def daily_reset_job():
    """Reset daily counters and daily notification records."""
    logger.info("Starting scheduled daily usage reset...")
    try:
        summary = get_reset_scheduler().run_daily_reset()
    except Exception as e:
        logger.error(f"Daily usage reset failed: {e}")
        raise
    logger.info(f"Daily usage reset complete: {summary.counters_reset} counters")


def monthly_reset_job():
    """Reset monthly counters and monthly notification records."""
    logger.info("Starting scheduled monthly usage reset...")
    try:
        summary = get_reset_scheduler().run_monthly_reset()
    except Exception as e:
        logger.error(f"Monthly usage reset failed: {e}")
        raise
    logger.info(f"Monthly usage reset complete: {summary.counters_reset} counters")


def start_scheduler():
    """
    Start the background scheduler with all jobs configured.

    Schedule:
    - 00:00 UTC daily: Reset daily counters
    - 00:00 UTC on the 1st: Reset monthly counters
    - On startup: Catch up on both, in case a boundary passed while down
    """
    if scheduler.running:
        logger.info("Scheduler already running")
        return

    scheduler.add_job(
        daily_reset_job,
        CronTrigger(hour=0, minute=0, timezone="UTC"),
        id="daily_usage_reset",
        replace_existing=True,
        name="Reset daily usage counters",
        misfire_grace_time=3600,
        coalesce=True,
    )

    scheduler.add_job(
        monthly_reset_job,
        CronTrigger(day=1, hour=0, minute=0, timezone="UTC"),
        id="monthly_usage_reset",
        replace_existing=True,
        name="Reset monthly usage counters",
        misfire_grace_time=3600,
        coalesce=True,
    )

    # Catch up on boundaries passed while the process was down
    startup = datetime.utcnow() + timedelta(seconds=15)
    scheduler.add_job(
        daily_reset_job,
        "date",
        run_date=startup,
        id="daily_usage_reset_startup",
        replace_existing=True,
        name="Reset daily usage counters (startup)",
    )
    scheduler.add_job(
        monthly_reset_job,
        "date",
        run_date=startup,
        id="monthly_usage_reset_startup",
        replace_existing=True,
        name="Reset monthly usage counters (startup)",
    )

    scheduler.start()
    logger.info("Scheduler started with jobs:")
    for job in scheduler.get_jobs():
        logger.info(f"  - {job.name}: {job.trigger}")


def stop_scheduler():
    """Stop the scheduler gracefully."""
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped")


def get_scheduler_status():
    """Get current scheduler status and job info."""
    jobs = []
    for job in scheduler.get_jobs():
        jobs.append({
            "id": job.id,
            "name": job.name,
            "next_run": job.next_run_time.isoformat() if getattr(job, "next_run_time", None) else None,
            "trigger": str(job.trigger),
        })

    return {
        "running": scheduler.running,
        "jobs": jobs,
    }
