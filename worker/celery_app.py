"""
Celery application configuration.

Defines the Celery app instance and beat schedule for periodic tasks.
"""

from celery import Celery
from celery.schedules import crontab

from app.config import settings

# Create Celery app
celery_app = Celery(
    "quota_engine",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=[
        "worker.tasks.notifications",
        "worker.tasks.usage_resets",
        "worker.tasks.consumption",
    ],
)

# Celery configuration
celery_app.conf.update(
    # Task settings
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,

    # Task execution settings
    task_acks_late=True,  # Acknowledge after task completes
    task_reject_on_worker_lost=True,  # Reject task if worker dies
    worker_prefetch_multiplier=1,  # One task at a time per worker

    # Result backend settings
    result_expires=3600,  # Results expire after 1 hour

    # Task routing
    task_routes={
        "worker.tasks.notifications.*": {"queue": "notifications"},
        "worker.tasks.consumption.*": {"queue": "metering"},
        "worker.tasks.usage_resets.*": {"queue": "maintenance"},
    },

    # Rate limiting
    task_annotations={
        "worker.tasks.notifications.deliver_usage_notification": {"rate_limit": "60/m"},
    },
)

# Beat schedule for periodic tasks
celery_app.conf.beat_schedule = {
    # Daily counters - every day at midnight UTC
    "reset-daily-usage": {
        "task": "worker.tasks.usage_resets.reset_daily_usage",
        "schedule": crontab(minute=0, hour=0),
        "options": {"queue": "maintenance"},
    },

    # Monthly counters - first day of each month at midnight UTC
    "reset-monthly-usage": {
        "task": "worker.tasks.usage_resets.reset_monthly_usage",
        "schedule": crontab(minute=0, hour=0, day_of_month=1),
        "options": {"queue": "maintenance"},
    },

    # Notifications whose hand-off failed - every 5 minutes
    "redeliver-pending-notifications": {
        "task": "worker.tasks.notifications.redeliver_pending_notifications",
        "schedule": crontab(minute="*/5"),
        "options": {"queue": "notifications"},
    },
}
