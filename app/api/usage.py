"""
Usage metering API endpoints.

Thin adapter over the enforcement gate for request handlers and dashboards.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from app.api.deps import get_gate, parse_resource
from app.exceptions import PlanNotFound, StoreUnavailable
from app.schemas.usage import (
    ConsumptionResult,
    Decision,
    DenyReason,
    PlanInfo,
    ResourceKind,
    UsageSnapshot,
)
from app.services import EnforcementGate

router = APIRouter()

DENY_STATUS = {
    DenyReason.LIMIT_REACHED: status.HTTP_429_TOO_MANY_REQUESTS,
    DenyReason.PLAN_NOT_FOUND: status.HTTP_409_CONFLICT,
    DenyReason.UNAVAILABLE: status.HTTP_503_SERVICE_UNAVAILABLE,
}


class ConsumeResponse(BaseModel):
    """Decision plus the counters after recording."""

    decision: Decision
    consumption: Optional[ConsumptionResult] = None


def _denied(decision: Decision, body: dict) -> JSONResponse:
    headers = {}
    if decision.resets_at:
        headers["X-Quota-Reset"] = decision.resets_at.isoformat()
    return JSONResponse(
        status_code=DENY_STATUS[decision.reason],
        content={
            "message": _pause_message(decision),
            **body,
        },
        headers=headers,
    )


def _pause_message(decision: Decision) -> str:
    if decision.reason == DenyReason.LIMIT_REACHED:
        return f"{decision.resource.value} paused until {decision.period.value} reset"
    if decision.reason == DenyReason.PLAN_NOT_FOUND:
        return f"{decision.resource.value} paused: plan not configured"
    return f"{decision.resource.value} temporarily paused"


@router.get("/plans", response_model=List[PlanInfo])
async def list_plans(gate: EnforcementGate = Depends(get_gate)):
    """
    List plans with their resolved limits.
    """
    return gate.resolver.list_plans()


@router.get("/usage/{tenant_id}", response_model=UsageSnapshot)
def get_usage(tenant_id: str, gate: EnforcementGate = Depends(get_gate)):
    """
    Get a tenant's usage for every resource and period.
    """
    try:
        return gate.get_usage_snapshot(tenant_id)
    except PlanNotFound as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except StoreUnavailable:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Usage data temporarily unavailable",
        )


@router.post("/usage/{tenant_id}/{resource}/authorize", response_model=Decision)
def authorize(
    tenant_id: str,
    resource: ResourceKind = Depends(parse_resource),
    gate: EnforcementGate = Depends(get_gate),
):
    """
    Ask whether one more unit may be consumed. Never records consumption.
    """
    decision = gate.authorize(tenant_id, resource)
    if not decision.allowed:
        return _denied(decision, decision.model_dump(mode="json"))
    return decision


@router.post("/usage/{tenant_id}/{resource}/consume", response_model=ConsumeResponse)
def consume(
    tenant_id: str,
    resource: ResourceKind = Depends(parse_resource),
    gate: EnforcementGate = Depends(get_gate),
):
    """
    Authorize and record one unit of consumption.
    """
    try:
        decision, consumption = gate.consume(tenant_id, resource)
    except StoreUnavailable:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Consumption could not be recorded",
        )

    response = ConsumeResponse(decision=decision, consumption=consumption)
    if not decision.allowed:
        return _denied(decision, response.model_dump(mode="json"))
    return response


@router.post("/usage/{tenant_id}/{resource}/record", response_model=ConsumptionResult)
def record(
    tenant_id: str,
    resource: ResourceKind = Depends(parse_resource),
    gate: EnforcementGate = Depends(get_gate),
):
    """
    Record one unit consumed after a previously authorized call.
    """
    try:
        return gate.record_consumption(tenant_id, resource)
    except StoreUnavailable:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Consumption could not be recorded",
        )


@router.post("/usage/{tenant_id}/{resource}/reset")
def reset(
    tenant_id: str,
    resource: ResourceKind = Depends(parse_resource),
    gate: EnforcementGate = Depends(get_gate),
):
    """
    Admin: zero a tenant's daily and monthly usage of one resource.
    """
    try:
        gate.reset_usage(tenant_id, resource)
    except StoreUnavailable:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Usage store unavailable",
        )
    return {"message": "Usage reset", "tenant_id": tenant_id, "resource": resource.value}
