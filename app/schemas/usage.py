"""Usage metering and quota Pydantic schemas."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class ResourceKind(str, Enum):
    """Upstream resources that are metered per tenant."""

    TRACKING = "tracking"
    AI_GENERATION = "ai_generation"


class Period(str, Enum):
    """Horizon over which a counter accumulates before resetting."""

    DAILY = "daily"
    MONTHLY = "monthly"


class UsageStatus(str, Enum):
    """Usage band derived from percentage of limit."""

    NORMAL = "normal"
    HIGH_USAGE = "high_usage"
    NEARLY_FULL = "nearly_full"
    LIMIT_REACHED = "limit_reached"

    @property
    def rank(self) -> int:
        return _STATUS_ORDER.index(self)


_STATUS_ORDER = [
    UsageStatus.NORMAL,
    UsageStatus.HIGH_USAGE,
    UsageStatus.NEARLY_FULL,
    UsageStatus.LIMIT_REACHED,
]

# Tiers that produce a notification, lowest first.
NOTIFIABLE_TIERS = _STATUS_ORDER[1:]


class DenyReason(str, Enum):
    """Why an authorization was refused."""

    LIMIT_REACHED = "limit_reached"
    PLAN_NOT_FOUND = "plan_not_found"
    UNAVAILABLE = "unavailable"


class BillingStatus(str, Enum):
    TRIAL = "trial"
    ACTIVE = "active"
    INACTIVE = "inactive"
    EXPIRED = "expired"
    CANCELLED = "cancelled"
    BETA_TESTER = "beta_tester"


# Statuses whose tenants fall back to the trial allowance
LAPSED_STATUSES = frozenset({BillingStatus.INACTIVE, BillingStatus.EXPIRED, BillingStatus.CANCELLED})


class PlanLimits(BaseModel):
    """Resolved limits for one plan. A limit of 0 means unlimited."""

    tracking_daily: int = Field(ge=0)
    tracking_monthly: int = Field(ge=0)
    ai_daily: int = Field(ge=0)
    ai_monthly: int = Field(ge=0)

    model_config = {"frozen": True}

    def limit_for(self, resource: ResourceKind, period: Period) -> int:
        """Return the limit governing one (resource, period) counter."""
        if resource == ResourceKind.TRACKING:
            return self.tracking_daily if period == Period.DAILY else self.tracking_monthly
        return self.ai_daily if period == Period.DAILY else self.ai_monthly


class QuotaEvaluation(BaseModel):
    """Percentage and status of one counter against its limit."""

    percentage: int
    status: UsageStatus


class PeriodUsage(BaseModel):
    """Evaluated state of one (resource, period) counter."""

    resource: ResourceKind
    period: Period
    count: int
    limit: int
    percentage: int
    status: UsageStatus
    unlimited: bool
    period_start: datetime
    resets_at: datetime


class UsageSnapshot(BaseModel):
    """All counters of one tenant, evaluated against its current plan."""

    tenant_id: str
    plan_id: str
    catalog_version: str
    generated_at: datetime
    usage: list[PeriodUsage]

    def get(self, resource: ResourceKind, period: Period) -> PeriodUsage:
        for entry in self.usage:
            if entry.resource == resource and entry.period == period:
                return entry
        raise KeyError((resource, period))


class Decision(BaseModel):
    """Answer to "may this tenant consume one more unit now?"."""

    allowed: bool
    tenant_id: str
    resource: ResourceKind
    reason: Optional[DenyReason] = None
    period: Optional[Period] = None
    resets_at: Optional[datetime] = None
    usage: list[PeriodUsage] = Field(default_factory=list)

    @classmethod
    def allow(cls, tenant_id: str, resource: ResourceKind, usage: list[PeriodUsage]) -> "Decision":
        return cls(allowed=True, tenant_id=tenant_id, resource=resource, usage=usage)

    @classmethod
    def deny(
        cls,
        tenant_id: str,
        resource: ResourceKind,
        reason: DenyReason,
        period: Optional[Period] = None,
        resets_at: Optional[datetime] = None,
        usage: Optional[list[PeriodUsage]] = None,
    ) -> "Decision":
        return cls(
            allowed=False,
            tenant_id=tenant_id,
            resource=resource,
            reason=reason,
            period=period,
            resets_at=resets_at,
            usage=usage or [],
        )


class NotificationEvent(BaseModel):
    """Event handed to the external notification dispatcher."""

    tenant_id: str
    resource: ResourceKind
    period: Period
    tier: UsageStatus
    count: int
    limit: int
    percentage: int
    resets_at: datetime
    emitted_at: datetime


class ConsumptionResult(BaseModel):
    """Counters after one recorded consumption event."""

    tenant_id: str
    resource: ResourceKind
    daily_count: int
    monthly_count: int
    queued: bool = False


class ResetSummary(BaseModel):
    """Outcome of one reset run."""

    period: Period
    boundary: datetime
    counters_reset: int
    notifications_cleared: int


class PlanInfo(BaseModel):
    """Plan catalog entry for listing."""

    plan_id: str
    display_name: str
    price_monthly: float
    limits: PlanLimits
    catalog_version: str
