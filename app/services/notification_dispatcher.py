"""
Notification dispatch.

Hands usage notification events to the external dispatcher without waiting
on delivery. Templating, transport and delivery retries belong to the
dispatcher; this side only enqueues.
"""

import logging

from app.exceptions import NotificationDispatchFailure
from app.schemas.usage import NotificationEvent

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    """Outbound port for notification events."""

    def dispatch(self, event: NotificationEvent) -> None:
        """
        Queue an event for delivery.

        Raises:
            NotificationDispatchFailure: If the event could not be queued
        """
        raise NotImplementedError


class CeleryNotificationDispatcher(NotificationDispatcher):
    """Queues events on the Celery `notifications` queue."""

    def __init__(self, queue: str = "notifications"):
        self.queue = queue

    def dispatch(self, event: NotificationEvent) -> None:
        from worker.tasks.notifications import deliver_usage_notification

        try:
            deliver_usage_notification.apply_async(
                args=[event.model_dump(mode="json")],
                queue=self.queue,
                retry=False,
            )
        except Exception as e:
            raise NotificationDispatchFailure(f"Could not enqueue notification: {e}") from e

        logger.info(
            f"Queued {event.tier.value} notification for tenant {event.tenant_id} "
            f"({event.resource.value}/{event.period.value})"
        )
