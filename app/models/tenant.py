"""
Tenant Model

Billing subject whose usage is metered. Owned by the billing subsystem;
the quota engine only reads plan and billing status.
"""

from datetime import datetime
from sqlalchemy import Column, String, Boolean, DateTime

from app.database import Base


class Tenant(Base):
    """Billing subject (one per customer account)."""

    __tablename__ = "tenants"

    # Primary key
    id = Column(String(64), primary_key=True)

    # Plan
    plan_id = Column(String(50), nullable=False, default="solopreneur")
    billing_status = Column(String(20), nullable=False, default="trial")
    # Status: trial, active, inactive
    has_payment_method = Column(Boolean, default=False)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<Tenant {self.id} - {self.plan_id} ({self.billing_status})>"
