"""
Quota engine exceptions.

Only plan/tenant lookup failures are meaningful to callers; store faults are
turned into degraded decisions by the enforcement gate.
"""


class QuotaEngineError(Exception):
    """Base class for quota engine errors."""


class PlanNotFound(QuotaEngineError):
    """Tenant references a plan the catalog does not know."""

    def __init__(self, plan_id: str):
        self.plan_id = plan_id
        super().__init__(f"Plan not found: {plan_id}")


class TenantNotFound(QuotaEngineError):
    """No billing record exists for the tenant."""

    def __init__(self, tenant_id: str):
        self.tenant_id = tenant_id
        super().__init__(f"Tenant not found: {tenant_id}")


class StoreUnavailable(QuotaEngineError):
    """The counter store could not be read or written."""


class NotificationDispatchFailure(QuotaEngineError):
    """The notification dispatcher rejected or could not accept an event."""
