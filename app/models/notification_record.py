"""
Notification Record Model

De-duplication key for threshold notifications: at most one row per
(tenant, resource, period, tier) per reset cycle. Rows whose event could not
be handed off stay behind as an outbox for redelivery.
"""

from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, Boolean, UniqueConstraint

from app.database import Base


class NotificationRecord(Base):
    """Record that a threshold tier was reached in a period."""

    __tablename__ = "notification_records"
    __table_args__ = (
        UniqueConstraint(
            "tenant_id", "resource", "period", "tier", "period_start",
            name="uq_notification_record",
        ),
    )

    # Primary key
    id = Column(Integer, primary_key=True, autoincrement=True)

    # Identity
    tenant_id = Column(String(64), nullable=False, index=True)
    resource = Column(String(32), nullable=False)
    period = Column(String(16), nullable=False)
    tier = Column(String(20), nullable=False)  # high_usage, nearly_full, limit_reached

    # Reset cycle this record belongs to
    period_start = Column(DateTime, nullable=False)

    # Delivery state
    emitted = Column(Boolean, nullable=False, default=False)  # handed to the dispatcher
    suppressed = Column(Boolean, nullable=False, default=False)  # covered by a higher tier's event

    # Usage when the tier was reached, replayed on redelivery
    count = Column(Integer, nullable=False, default=0)
    usage_limit = Column(Integer, nullable=False, default=0)
    percentage = Column(Integer, nullable=False, default=0)

    sent_at = Column(DateTime, nullable=False)

    def __repr__(self):
        return f"<NotificationRecord {self.tenant_id} {self.resource}/{self.period} {self.tier}>"
