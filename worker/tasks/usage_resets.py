"""
Usage reset tasks.

Beat-driven counterparts of the in-process reset jobs.
"""

import logging

from celery import shared_task

from app.services.scheduler import get_reset_scheduler

logger = logging.getLogger(__name__)


@shared_task(bind=True, max_retries=3, default_retry_delay=300)
def reset_daily_usage(self):
    """Reset daily counters and notification records for the current boundary."""
    logger.info("Resetting daily usage counters")
    try:
        summary = get_reset_scheduler().run_daily_reset()
    except Exception as e:
        logger.error(f"Daily usage reset failed: {e}")
        raise self.retry(exc=e)
    return summary.model_dump(mode="json")


@shared_task(bind=True, max_retries=3, default_retry_delay=300)
def reset_monthly_usage(self):
    """Reset monthly counters and notification records for the current boundary."""
    logger.info("Resetting monthly usage counters")
    try:
        summary = get_reset_scheduler().run_monthly_reset()
    except Exception as e:
        logger.error(f"Monthly usage reset failed: {e}")
        raise self.retry(exc=e)
    return summary.model_dump(mode="json")
