"""
Plan Limit Resolver

Maps a plan identifier to its typed limits from the in-process catalog.
Cheap enough to call on every authorization.
"""

import logging
from typing import Mapping, Optional

from app.config import PLAN_CATALOG, PLAN_CATALOG_VERSION, PlanDefinition, Settings, settings as default_settings
from app.exceptions import PlanNotFound
from app.schemas.usage import LAPSED_STATUSES, BillingStatus, PlanInfo, PlanLimits
from app.services.tenant_directory import TenantRecord

logger = logging.getLogger(__name__)


class PlanLimitResolver:
    """Resolves plan limits, honouring trial and development overrides."""

    def __init__(
        self,
        catalog: Mapping[str, PlanDefinition] = PLAN_CATALOG,
        settings: Optional[Settings] = None,
        catalog_version: str = PLAN_CATALOG_VERSION,
    ):
        self.catalog = catalog
        self.settings = settings or default_settings
        self.catalog_version = catalog_version

    def resolve_limits(self, plan_id: str) -> PlanLimits:
        """
        Get the limits for a plan.

        Raises:
            PlanNotFound: If the plan is not in the catalog
        """
        plan = self.catalog.get(plan_id.lower()) if plan_id else None
        if plan is None:
            raise PlanNotFound(plan_id)

        limits = plan.limits
        if self.settings.enable_testing_limits:
            limits = limits.model_copy(
                update={"tracking_monthly": self.settings.testing_tracking_monthly_limit}
            )
        return limits

    def effective_plan_id(self, tenant: TenantRecord) -> str:
        """
        Pick the plan a tenant is metered against.

        Trials without a payment method and lapsed accounts (inactive, expired,
        cancelled) get the trial allowance; everyone else is metered on their
        own plan.
        """
        status = tenant.billing_status
        if status in LAPSED_STATUSES:
            return self.settings.trial_plan_id
        if status == BillingStatus.TRIAL and not tenant.has_payment_method:
            return self.settings.trial_plan_id
        return tenant.plan_id

    def limits_for_tenant(self, tenant: TenantRecord) -> tuple[str, PlanLimits]:
        plan_id = self.effective_plan_id(tenant)
        return plan_id, self.resolve_limits(plan_id)

    def trial_limits(self) -> tuple[str, PlanLimits]:
        """Limits for tenants without a billing record."""
        plan_id = self.settings.trial_plan_id
        return plan_id, self.resolve_limits(plan_id)

    def list_plans(self) -> list[PlanInfo]:
        """List catalog entries with resolved limits."""
        return [
            PlanInfo(
                plan_id=plan.plan_id,
                display_name=plan.display_name,
                price_monthly=plan.price_monthly,
                limits=self.resolve_limits(plan.plan_id),
                catalog_version=self.catalog_version,
            )
            for plan in self.catalog.values()
        ]
