"""Pydantic schemas for the quota engine."""

from app.schemas.usage import (
    BillingStatus,
    ConsumptionResult,
    Decision,
    DenyReason,
    NotificationEvent,
    Period,
    PeriodUsage,
    PlanInfo,
    PlanLimits,
    QuotaEvaluation,
    ResetSummary,
    ResourceKind,
    UsageSnapshot,
    UsageStatus,
)

__all__ = [
    "BillingStatus",
    "ConsumptionResult",
    "Decision",
    "DenyReason",
    "NotificationEvent",
    "Period",
    "PeriodUsage",
    "PlanInfo",
    "PlanLimits",
    "QuotaEvaluation",
    "ResetSummary",
    "ResourceKind",
    "UsageSnapshot",
    "UsageStatus",
]
