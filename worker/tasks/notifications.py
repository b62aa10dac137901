"""
Usage notification hand-off.

Forwards queued notification events to the external dispatcher, which owns
templating and delivery, and re-queues events whose first hand-off failed.
"""

import logging

import httpx
from celery import shared_task

from app.config import settings
from app.exceptions import StoreUnavailable
from app.services import get_enforcement_gate

logger = logging.getLogger(__name__)


@shared_task(bind=True, max_retries=5, default_retry_delay=60)
def deliver_usage_notification(self, event: dict):
    """
    Post a usage notification event to the dispatcher inbox.

    Args:
        event: NotificationEvent serialized as JSON-compatible dict
    """
    tenant_id = event.get("tenant_id")
    tier = event.get("tier")

    if not settings.notification_webhook_url:
        logger.warning(f"No notification dispatcher configured, dropping {tier} event for tenant {tenant_id}")
        return {"status": "skipped"}

    try:
        response = httpx.post(
            settings.notification_webhook_url,
            json=event,
            timeout=settings.notification_timeout_seconds,
        )
        response.raise_for_status()
    except httpx.HTTPError as e:
        logger.error(f"Failed to hand off {tier} notification for tenant {tenant_id}: {e}")
        raise self.retry(exc=e)

    logger.info(f"Delivered {tier} notification for tenant {tenant_id} to dispatcher")
    return {"status": "delivered", "status_code": response.status_code}


@shared_task(bind=True, max_retries=3, default_retry_delay=60)
def redeliver_pending_notifications(self):
    """Re-queue threshold notifications left pending by a failed hand-off."""
    try:
        delivered = get_enforcement_gate().notifier.redispatch_pending()
    except StoreUnavailable as e:
        logger.error(f"Pending notification sweep failed: {e}")
        raise self.retry(exc=e)

    if delivered:
        logger.info(f"Re-queued {delivered} pending usage notifications")
    return {"redelivered": delivered}
