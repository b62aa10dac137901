"""
Quota Engine Database Models

All SQLAlchemy models are imported here for easy access.
"""

from app.models.tenant import Tenant
from app.models.usage_counter import UsageCounter
from app.models.notification_record import NotificationRecord

__all__ = [
    "Tenant",
    "UsageCounter",
    "NotificationRecord",
]
