"""Service layer for the quota engine."""

from functools import lru_cache

from app.services.enforcement_gate import EnforcementGate
from app.services.notification_dispatcher import CeleryNotificationDispatcher
from app.services.plan_limits import PlanLimitResolver
from app.services.quota_evaluator import evaluate
from app.services.tenant_directory import TenantDirectory
from app.services.threshold_notifier import ThresholdNotifier
from app.services.usage_counter_store import UsageCounterStore


@lru_cache()
def get_enforcement_gate() -> EnforcementGate:
    """Enforcement gate bound to the application database and Celery dispatcher."""
    store = UsageCounterStore()
    notifier = ThresholdNotifier(CeleryNotificationDispatcher(), clock=store.clock)
    return EnforcementGate(store, notifier, PlanLimitResolver(), TenantDirectory())


__all__ = [
    "EnforcementGate",
    "PlanLimitResolver",
    "TenantDirectory",
    "ThresholdNotifier",
    "UsageCounterStore",
    "evaluate",
    "get_enforcement_gate",
]
