"""Celery tasks package."""

from worker.celery_app import celery_app
from worker.tasks.notifications import deliver_usage_notification, redeliver_pending_notifications
from worker.tasks.usage_resets import reset_daily_usage, reset_monthly_usage
from worker.tasks.consumption import retry_record_consumption

__all__ = [
    "celery_app",
    "deliver_usage_notification",
    "redeliver_pending_notifications",
    "reset_daily_usage",
    "reset_monthly_usage",
    "retry_record_consumption",
]
