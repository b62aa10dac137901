"""
Usage Counter Model

One row per (tenant, resource, period). Reset in place at period boundaries.
"""

from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, UniqueConstraint

from app.database import Base


class UsageCounter(Base):
    """Per-tenant consumption counter for one resource and period."""

    __tablename__ = "usage_counters"
    __table_args__ = (
        UniqueConstraint("tenant_id", "resource", "period", name="uq_usage_counter"),
    )

    # Primary key
    id = Column(Integer, primary_key=True, autoincrement=True)

    # Identity
    tenant_id = Column(String(64), nullable=False, index=True)
    resource = Column(String(32), nullable=False)  # tracking, ai_generation
    period = Column(String(16), nullable=False)  # daily, monthly

    # Counter state
    count = Column(Integer, nullable=False, default=0)
    period_start = Column(DateTime, nullable=False, index=True)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<UsageCounter {self.tenant_id} {self.resource}/{self.period}={self.count}>"
