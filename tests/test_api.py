"""
Tests for the usage HTTP endpoints.
"""

import pytest
from fastapi.testclient import TestClient

from app.api.deps import get_gate
from app.main import app
from app.schemas.usage import Period, ResourceKind

TRACKING = ResourceKind.TRACKING


@pytest.fixture
def client(gate):
    app.dependency_overrides[get_gate] = lambda: gate
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestUsageEndpoints:
    """Endpoints under /api/v1/usage."""

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_list_plans(self, client):
        response = client.get("/api/v1/plans")

        assert response.status_code == 200
        plans = {plan["plan_id"]: plan for plan in response.json()}
        assert set(plans) == {"daily10", "monthly100"}
        assert plans["daily10"]["limits"]["tracking_daily"] == 10

    def test_authorize_allowed(self, client, add_tenant):
        add_tenant()
        response = client.post("/api/v1/usage/tenant-1/tracking/authorize")

        assert response.status_code == 200
        assert response.json()["allowed"] is True

    def test_authorize_limit_reached(self, client, add_tenant, store):
        add_tenant()
        store.increment("tenant-1", TRACKING, Period.DAILY, by=10)

        response = client.post("/api/v1/usage/tenant-1/tracking/authorize")

        assert response.status_code == 429
        assert response.headers["X-Quota-Reset"] == "2024-09-15T00:00:00"
        body = response.json()
        assert body["reason"] == "limit_reached"
        assert body["message"] == "tracking paused until daily reset"

    def test_authorize_unknown_plan(self, client, add_tenant):
        add_tenant(plan_id="enterprise")
        response = client.post("/api/v1/usage/tenant-1/tracking/authorize")

        assert response.status_code == 409
        assert response.json()["reason"] == "plan_not_found"

    def test_unknown_resource(self, client, add_tenant):
        add_tenant()
        response = client.post("/api/v1/usage/tenant-1/storage/authorize")
        assert response.status_code == 404

    def test_consume(self, client, add_tenant):
        add_tenant()
        response = client.post("/api/v1/usage/tenant-1/tracking/consume")

        assert response.status_code == 200
        body = response.json()
        assert body["decision"]["allowed"] is True
        assert body["consumption"]["daily_count"] == 1

    def test_consume_denied(self, client, add_tenant, store):
        add_tenant()
        store.increment("tenant-1", TRACKING, Period.DAILY, by=10)

        response = client.post("/api/v1/usage/tenant-1/tracking/consume")

        assert response.status_code == 429
        assert response.json()["consumption"] is None
        assert store.get("tenant-1", TRACKING, Period.DAILY).count == 10

    def test_record(self, client, add_tenant):
        add_tenant()
        client.post("/api/v1/usage/tenant-1/ai_generation/record")
        response = client.post("/api/v1/usage/tenant-1/ai_generation/record")

        assert response.status_code == 200
        assert response.json()["monthly_count"] == 2

    def test_usage_snapshot(self, client, add_tenant):
        add_tenant()
        client.post("/api/v1/usage/tenant-1/tracking/consume")

        response = client.get("/api/v1/usage/tenant-1")

        assert response.status_code == 200
        body = response.json()
        assert body["plan_id"] == "daily10"
        daily = next(u for u in body["usage"] if u["resource"] == "tracking" and u["period"] == "daily")
        assert daily["count"] == 1
        assert daily["percentage"] == 10
        assert daily["status"] == "normal"

    def test_usage_without_billing_record(self, client):
        response = client.get("/api/v1/usage/no-billing-row")

        assert response.status_code == 200
        assert response.json()["plan_id"] == "daily10"

    def test_authorize_cancelled_tenant(self, client, add_tenant):
        add_tenant(plan_id="monthly100", billing_status="cancelled")
        response = client.post("/api/v1/usage/tenant-1/tracking/authorize")

        assert response.status_code == 200
        assert response.json()["allowed"] is True

    def test_reset(self, client, add_tenant, store):
        add_tenant()
        store.increment("tenant-1", TRACKING, Period.DAILY, by=10)

        response = client.post("/api/v1/usage/tenant-1/tracking/reset")

        assert response.status_code == 200
        assert store.get("tenant-1", TRACKING, Period.DAILY).count == 0
