"""
Unit tests for plan limit resolution.

Covers the production catalog values, unknown plans, billing-status driven
plan selection and the development override.
"""

import pytest

from app.config import PLAN_CATALOG, PLAN_CATALOG_VERSION, Settings
from app.exceptions import PlanNotFound
from app.schemas.usage import BillingStatus, Period, ResourceKind
from app.services.plan_limits import PlanLimitResolver
from app.services.tenant_directory import TenantRecord, parse_billing_status

from tests.conftest import TEST_CATALOG


@pytest.fixture
def catalog_resolver():
    return PlanLimitResolver(settings=Settings(_env_file=None, enable_testing_limits=False))


class TestPlanCatalog:
    """Tests for the shipped catalog."""

    @pytest.mark.parametrize(
        "plan_id,tracking_monthly",
        [("solopreneur", 11), ("growth", 60), ("scale", 114)],
    )
    def test_tracking_monthly_from_price(self, catalog_resolver, plan_id, tracking_monthly):
        limits = catalog_resolver.resolve_limits(plan_id)
        assert limits.tracking_monthly == tracking_monthly
        assert limits.tracking_daily == 100

    def test_ai_is_unlimited(self, catalog_resolver):
        for plan_id in PLAN_CATALOG:
            limits = catalog_resolver.resolve_limits(plan_id)
            assert limits.ai_daily == 0
            assert limits.ai_monthly == 0

    def test_lookup_is_case_insensitive(self, catalog_resolver):
        assert catalog_resolver.resolve_limits("Growth") == catalog_resolver.resolve_limits("growth")

    def test_list_plans(self, catalog_resolver):
        plans = catalog_resolver.list_plans()
        assert [p.plan_id for p in plans] == ["solopreneur", "growth", "scale"]
        assert all(p.catalog_version == PLAN_CATALOG_VERSION for p in plans)


class TestResolveLimits:
    """Tests for resolver behaviour."""

    @pytest.mark.parametrize("plan_id", ["enterprise", "", None])
    def test_unknown_plan(self, catalog_resolver, plan_id):
        with pytest.raises(PlanNotFound):
            catalog_resolver.resolve_limits(plan_id)

    def test_limit_for(self):
        limits = TEST_CATALOG["monthly100"].limits
        assert limits.limit_for(ResourceKind.TRACKING, Period.DAILY) == 0
        assert limits.limit_for(ResourceKind.TRACKING, Period.MONTHLY) == 100
        assert limits.limit_for(ResourceKind.AI_GENERATION, Period.DAILY) == 5
        assert limits.limit_for(ResourceKind.AI_GENERATION, Period.MONTHLY) == 20

    def test_testing_override(self):
        resolver = PlanLimitResolver(
            settings=Settings(_env_file=None, enable_testing_limits=True, testing_tracking_monthly_limit=500)
        )
        limits = resolver.resolve_limits("solopreneur")
        assert limits.tracking_monthly == 500
        assert limits.tracking_daily == 100
        # Catalog entry itself is untouched
        assert PLAN_CATALOG["solopreneur"].limits.tracking_monthly == 11


class TestEffectivePlan:
    """Tests for billing-status aware plan selection."""

    @pytest.fixture
    def resolver(self):
        return PlanLimitResolver(
            catalog=TEST_CATALOG,
            settings=Settings(_env_file=None, trial_plan_id="daily10"),
        )

    def _tenant(self, status, has_payment_method):
        return TenantRecord("t", "monthly100", status, has_payment_method)

    def test_active_uses_own_plan(self, resolver):
        assert resolver.effective_plan_id(self._tenant(BillingStatus.ACTIVE, True)) == "monthly100"

    def test_trial_with_payment_uses_own_plan(self, resolver):
        assert resolver.effective_plan_id(self._tenant(BillingStatus.TRIAL, True)) == "monthly100"

    def test_trial_without_payment_uses_trial_plan(self, resolver):
        assert resolver.effective_plan_id(self._tenant(BillingStatus.TRIAL, False)) == "daily10"

    def test_inactive_uses_trial_plan(self, resolver):
        assert resolver.effective_plan_id(self._tenant(BillingStatus.INACTIVE, True)) == "daily10"

    @pytest.mark.parametrize("status", [BillingStatus.EXPIRED, BillingStatus.CANCELLED])
    def test_lapsed_uses_trial_plan(self, resolver, status):
        assert resolver.effective_plan_id(self._tenant(status, True)) == "daily10"

    def test_beta_tester_uses_own_plan(self, resolver):
        assert resolver.effective_plan_id(self._tenant(BillingStatus.BETA_TESTER, False)) == "monthly100"

    def test_trial_limits(self, resolver):
        plan_id, limits = resolver.trial_limits()
        assert plan_id == "daily10"
        assert limits.tracking_daily == 10


class TestParseBillingStatus:
    """Stored billing statuses mapped to BillingStatus."""

    @pytest.mark.parametrize("value", ["trial", "active", "expired", "cancelled", "beta_tester"])
    def test_known(self, value):
        assert parse_billing_status("t", value) == BillingStatus(value)

    @pytest.mark.parametrize("value", ["suspended", "", None])
    def test_unknown_counts_as_inactive(self, value):
        assert parse_billing_status("t", value) == BillingStatus.INACTIVE
