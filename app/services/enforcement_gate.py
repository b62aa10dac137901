"""
Enforcement Gate

Single entry point consulted around every metered call:

1. `authorize` - may this tenant consume one more unit of a resource now?
2. `record_consumption` - count one consumption on both horizons, then let
   the threshold notifier look at the new state.
3. `get_usage_snapshot` - evaluated counters for dashboards.

Denials never mutate anything. Store failures fail closed on `authorize`
and are retried (then queued) on `record_consumption`, so consumption is
never silently dropped.
"""

import logging
import time
from typing import Callable, Iterable, Optional

from app.config import Settings, settings as default_settings
from app.exceptions import PlanNotFound, StoreUnavailable, TenantNotFound
from app.schemas.usage import (
    ConsumptionResult,
    Decision,
    DenyReason,
    Period,
    PeriodUsage,
    PlanLimits,
    ResourceKind,
    UsageSnapshot,
    UsageStatus,
)
from app.services.plan_limits import PlanLimitResolver
from app.services.quota_evaluator import evaluate
from app.services.tenant_directory import TenantDirectory
from app.services.threshold_notifier import ThresholdNotifier
from app.services.usage_counter_store import CounterState, UsageCounterStore
from app.utils.clock import Clock, next_period_start

logger = logging.getLogger(__name__)

ConsumptionQueue = Callable[[str, ResourceKind, list[Period]], None]


def queue_consumption_retry(tenant_id: str, resource: ResourceKind, periods: list[Period]) -> None:
    """Hand unrecorded increments to the worker for retry."""
    from worker.tasks.consumption import retry_record_consumption

    retry_record_consumption.apply_async(
        kwargs={
            "tenant_id": tenant_id,
            "resource": resource.value,
            "periods": [period.value for period in periods],
        },
        queue="metering",
    )


def build_period_usage(
    resource: ResourceKind,
    period: Period,
    state: CounterState,
    limit: int,
) -> PeriodUsage:
    """Evaluate one counter into its dashboard/decision form."""
    result = evaluate(state.count, limit)
    return PeriodUsage(
        resource=resource,
        period=period,
        count=state.count,
        limit=limit,
        percentage=result.percentage,
        status=result.status,
        unlimited=limit == 0,
        period_start=state.period_start,
        resets_at=next_period_start(period, state.period_start),
    )


class EnforcementGate:
    """Authorizes and records metered consumption."""

    def __init__(
        self,
        store: UsageCounterStore,
        notifier: ThresholdNotifier,
        resolver: Optional[PlanLimitResolver] = None,
        tenants: Optional[TenantDirectory] = None,
        settings: Optional[Settings] = None,
        consumption_queue: ConsumptionQueue = queue_consumption_retry,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.store = store
        self.notifier = notifier
        self.settings = settings or default_settings
        self.resolver = resolver or PlanLimitResolver(settings=self.settings)
        self.tenants = tenants or TenantDirectory()
        self.consumption_queue = consumption_queue
        self._sleep = sleep

    @property
    def clock(self) -> Clock:
        return self.store.clock

    # =========================================================================
    # Limits
    # =========================================================================

    def resolve_tenant_limits(self, tenant_id: str) -> tuple[str, PlanLimits]:
        """
        Resolve the plan a tenant is metered against, fresh on every call so
        plan changes apply to the next check. Tenants without a billing record
        are metered on the trial plan.

        Raises:
            PlanNotFound, StoreUnavailable
        """
        try:
            tenant = self.tenants.get_tenant(tenant_id)
        except TenantNotFound:
            logger.info(f"No billing record for tenant {tenant_id}, using trial limits")
            return self.resolver.trial_limits()
        return self.resolver.limits_for_tenant(tenant)

    def _evaluate_resource(
        self,
        tenant_id: str,
        resource: ResourceKind,
        limits: PlanLimits,
        periods: Iterable[Period] = tuple(Period),
    ) -> list[PeriodUsage]:
        return [
            build_period_usage(
                resource,
                period,
                self.store.get(tenant_id, resource, period),
                limits.limit_for(resource, period),
            )
            for period in periods
        ]

    # =========================================================================
    # Authorization
    # =========================================================================

    def authorize(self, tenant_id: str, resource: ResourceKind) -> Decision:
        """
        Decide whether one more unit of `resource` may be consumed.

        Denies when either the daily or the monthly allowance is exhausted;
        when both are, the one that stays closed longer is reported.
        """
        try:
            _, limits = self.resolve_tenant_limits(tenant_id)
        except PlanNotFound as e:
            logger.error(f"Denying {resource.value} for tenant {tenant_id}: {e}")
            return Decision.deny(tenant_id, resource, DenyReason.PLAN_NOT_FOUND)
        except StoreUnavailable:
            logger.warning(f"Denying {resource.value} for tenant {tenant_id}: store unavailable")
            return Decision.deny(tenant_id, resource, DenyReason.UNAVAILABLE)

        try:
            usage = self._evaluate_resource(tenant_id, resource, limits)
        except StoreUnavailable:
            logger.warning(f"Denying {resource.value} for tenant {tenant_id}: counters unavailable")
            return Decision.deny(tenant_id, resource, DenyReason.UNAVAILABLE)

        exhausted = [
            entry for entry in usage
            if not entry.unlimited and entry.status == UsageStatus.LIMIT_REACHED
        ]
        if exhausted:
            blocking = max(exhausted, key=lambda entry: entry.resets_at)
            logger.info(
                f"{resource.value} paused for tenant {tenant_id}: "
                f"{blocking.period.value} limit {blocking.limit} reached"
            )
            return Decision.deny(
                tenant_id,
                resource,
                DenyReason.LIMIT_REACHED,
                period=blocking.period,
                resets_at=blocking.resets_at,
                usage=usage,
            )

        return Decision.allow(tenant_id, resource, usage)

    # =========================================================================
    # Consumption
    # =========================================================================

    def _increment_with_retry(self, tenant_id: str, resource: ResourceKind, period: Period) -> int:
        attempts = max(1, self.settings.consumption_retry_attempts)
        delay = self.settings.consumption_retry_backoff_seconds

        attempt = 1
        while True:
            try:
                return self.store.increment(tenant_id, resource, period)
            except StoreUnavailable as e:
                if attempt >= attempts:
                    raise
                logger.warning(
                    f"Increment {resource.value}/{period.value} for tenant {tenant_id} "
                    f"failed (attempt {attempt}/{attempts}): {e}"
                )
                self._sleep(delay)
                delay *= 2
                attempt += 1

    def record_consumption(self, tenant_id: str, resource: ResourceKind) -> ConsumptionResult:
        """
        Record one consumption event on both the daily and monthly counters.

        Increments that still fail after in-process retries are queued for the
        worker. Notification problems are logged and never reach the caller.

        Raises:
            StoreUnavailable: If an increment could neither be written nor queued
        """
        counts: dict[Period, int] = {}
        pending: list[Period] = []

        for period in Period:
            try:
                counts[period] = self._increment_with_retry(tenant_id, resource, period)
            except StoreUnavailable:
                pending.append(period)

        if pending:
            try:
                self.consumption_queue(tenant_id, resource, pending)
            except Exception as e:
                logger.critical(
                    f"Lost {resource.value} consumption for tenant {tenant_id} "
                    f"({', '.join(p.value for p in pending)}): {e}"
                )
                raise StoreUnavailable(f"Could not record or queue consumption: {e}") from e
            logger.warning(
                f"Queued {resource.value} consumption for tenant {tenant_id} "
                f"({', '.join(p.value for p in pending)})"
            )

        if counts:
            self.check_thresholds(tenant_id, resource, list(counts))

        return ConsumptionResult(
            tenant_id=tenant_id,
            resource=resource,
            daily_count=counts.get(Period.DAILY, 0),
            monthly_count=counts.get(Period.MONTHLY, 0),
            queued=bool(pending),
        )

    def check_thresholds(
        self,
        tenant_id: str,
        resource: ResourceKind,
        periods: Iterable[Period] = tuple(Period),
    ) -> None:
        """Run the threshold notifier over the given periods of a resource."""
        try:
            _, limits = self.resolve_tenant_limits(tenant_id)
            for entry in self._evaluate_resource(tenant_id, resource, limits, periods):
                self.notifier.process(tenant_id, entry)
        except (PlanNotFound, StoreUnavailable) as e:
            logger.warning(f"Skipped threshold check for tenant {tenant_id}: {e}")

    def consume(self, tenant_id: str, resource: ResourceKind) -> tuple[Decision, Optional[ConsumptionResult]]:
        """Authorize and, when allowed, record one unit in a single call."""
        decision = self.authorize(tenant_id, resource)
        if not decision.allowed:
            return decision, None
        return decision, self.record_consumption(tenant_id, resource)

    # =========================================================================
    # Reporting and administration
    # =========================================================================

    def get_usage_snapshot(self, tenant_id: str) -> UsageSnapshot:
        """
        Evaluate every counter of a tenant against its current plan.

        Raises:
            PlanNotFound, StoreUnavailable
        """
        plan_id, limits = self.resolve_tenant_limits(tenant_id)
        states = self.store.get_all(tenant_id)

        usage = [
            build_period_usage(resource, period, states[(resource, period)], limits.limit_for(resource, period))
            for resource in ResourceKind
            for period in Period
        ]

        return UsageSnapshot(
            tenant_id=tenant_id,
            plan_id=plan_id,
            catalog_version=self.resolver.catalog_version,
            generated_at=self.clock.now(),
            usage=usage,
        )

    def reset_usage(self, tenant_id: str, resource: ResourceKind) -> None:
        """Zero both periods of one resource for a tenant and clear its notification history."""
        for period in Period:
            self.store.force_reset(tenant_id, resource, period)
            self.notifier.clear_for(tenant_id, resource, period)
        logger.info(f"Usage reset for tenant {tenant_id} ({resource.value})")
