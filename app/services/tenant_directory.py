"""
Tenant Directory

Read-only access to the billing fields the quota engine needs.
"""

import logging
from typing import NamedTuple, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from app.database import SessionLocal
from app.exceptions import StoreUnavailable, TenantNotFound
from app.models import Tenant
from app.schemas.usage import BillingStatus

logger = logging.getLogger(__name__)


class TenantRecord(NamedTuple):
    tenant_id: str
    plan_id: str
    billing_status: BillingStatus
    has_payment_method: bool


def parse_billing_status(tenant_id: str, value: Optional[str]) -> BillingStatus:
    """Map a stored status to BillingStatus; anything unrecognised counts as inactive."""
    try:
        return BillingStatus(value)
    except ValueError:
        logger.warning(f"Tenant {tenant_id} has unknown billing status {value!r}, treating as inactive")
        return BillingStatus.INACTIVE


class TenantDirectory:
    """Looks up a tenant's plan and billing status."""

    def __init__(self, session_factory: sessionmaker = SessionLocal):
        self._session_factory = session_factory

    def get_tenant(self, tenant_id: str) -> TenantRecord:
        """
        Raises:
            TenantNotFound: If no tenant row exists
            StoreUnavailable: If the database cannot be reached
        """
        try:
            with self._session_factory() as db:
                tenant = db.get(Tenant, tenant_id)
                if tenant is None:
                    raise TenantNotFound(tenant_id)
                return TenantRecord(
                    tenant_id=tenant.id,
                    plan_id=tenant.plan_id,
                    billing_status=parse_billing_status(tenant.id, tenant.billing_status),
                    has_payment_method=bool(tenant.has_payment_method),
                )
        except SQLAlchemyError as e:
            logger.error(f"Tenant lookup failed for {tenant_id}: {e}")
            raise StoreUnavailable(str(e)) from e
