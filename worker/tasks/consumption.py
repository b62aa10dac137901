"""
Consumption retry tasks.

Picks up increments the request path could not write so that usage is
never under-counted.
"""

import logging

from celery import shared_task

from app.exceptions import StoreUnavailable
from app.schemas.usage import Period, ResourceKind
from app.services import get_enforcement_gate

logger = logging.getLogger(__name__)


@shared_task(bind=True, max_retries=10, default_retry_delay=30)
def retry_record_consumption(self, tenant_id: str, resource: str, periods: list[str]):
    """
    Apply queued increments, one period at a time.

    Args:
        tenant_id: Tenant identifier
        resource: ResourceKind value
        periods: Period values still to be incremented
    """
    gate = get_enforcement_gate()
    kind = ResourceKind(resource)
    remaining = [Period(p) for p in periods]
    counts = {}

    while remaining:
        period = remaining[0]
        try:
            counts[period.value] = gate.store.increment(tenant_id, kind, period)
        except StoreUnavailable as e:
            logger.warning(
                f"Queued {resource} increment for tenant {tenant_id} still failing "
                f"(retry {self.request.retries}): {e}"
            )
            raise self.retry(
                exc=e,
                countdown=min(600, 30 * 2 ** self.request.retries),
                kwargs={
                    "tenant_id": tenant_id,
                    "resource": resource,
                    "periods": [p.value for p in remaining],
                },
            )
        remaining.pop(0)

    logger.info(f"Recorded queued {resource} consumption for tenant {tenant_id}: {counts}")
    gate.check_thresholds(tenant_id, kind, [Period(p) for p in counts])
    return {"tenant_id": tenant_id, "resource": resource, "counts": counts}
