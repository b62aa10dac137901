"""
Shared pytest fixtures for quota engine tests.

Provides fixtures for:
- File-backed SQLite database per test (shared across threads)
- Fixed clock
- Recording notification dispatcher
- Fully wired enforcement gate with a small test plan catalog
"""

import os

# Configure before any app module reads settings
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("ENABLE_SCHEDULER", "false")
os.environ.setdefault("CONSUMPTION_RETRY_BACKOFF_SECONDS", "0")

import logging
import threading
from contextlib import contextmanager
from datetime import datetime

import pytest
from sqlalchemy.orm import sessionmaker

from app.config import PlanDefinition, Settings
from app.database import Base, build_engine
from app.models import Tenant
from app.schemas.usage import PlanLimits
from app.services.enforcement_gate import EnforcementGate
from app.services.notification_dispatcher import NotificationDispatcher
from app.services.plan_limits import PlanLimitResolver
from app.services.reset_scheduler import ResetScheduler
from app.services.tenant_directory import TenantDirectory
from app.services.threshold_notifier import ThresholdNotifier
from app.services.usage_counter_store import UsageCounterStore
from app.utils.clock import FixedClock


TEST_CATALOG = {
    "daily10": PlanDefinition(
        plan_id="daily10",
        display_name="Daily Ten",
        price_monthly=10.0,
        cost_per_resolution=1.0,
        limits=PlanLimits(tracking_daily=10, tracking_monthly=1000, ai_daily=0, ai_monthly=0),
    ),
    "monthly100": PlanDefinition(
        plan_id="monthly100",
        display_name="Monthly Hundred",
        price_monthly=100.0,
        cost_per_resolution=1.0,
        limits=PlanLimits(tracking_daily=0, tracking_monthly=100, ai_daily=5, ai_monthly=20),
    ),
}


# ============================================================================
# Helpers
# ============================================================================


class RecordingDispatcher(NotificationDispatcher):
    """Collects dispatched events in memory."""

    def __init__(self):
        self.events = []
        self._lock = threading.Lock()

    def dispatch(self, event):
        with self._lock:
            self.events.append(event)

    def tiers(self):
        return [event.tier for event in self.events]


class RecordingQueue:
    """Stands in for the Celery consumption retry queue."""

    def __init__(self):
        self.calls = []

    def __call__(self, tenant_id, resource, periods):
        self.calls.append((tenant_id, resource, list(periods)))


@contextmanager
def always_acquired(key):
    yield True


# ============================================================================
# Logging Fixtures
# ============================================================================


@pytest.fixture(autouse=True)
def configure_test_logging(caplog):
    """Configure logging for all tests."""
    caplog.set_level(logging.DEBUG)
    return caplog


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture
def engine(tmp_path):
    """Fresh SQLite database with all tables."""
    engine = build_engine(f"sqlite:///{tmp_path / 'quota.db'}")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def add_tenant(session_factory):
    """Insert a tenant row."""

    def _add(tenant_id="tenant-1", plan_id="daily10", billing_status="active", has_payment_method=True):
        with session_factory() as db:
            db.add(Tenant(
                id=tenant_id,
                plan_id=plan_id,
                billing_status=billing_status,
                has_payment_method=has_payment_method,
            ))
            db.commit()
        return tenant_id

    return _add


# ============================================================================
# Engine Fixtures
# ============================================================================


@pytest.fixture
def clock():
    """Mid-month, mid-day clock."""
    return FixedClock(datetime(2024, 9, 14, 12, 0, 0))


@pytest.fixture
def test_settings():
    return Settings(
        _env_file=None,
        trial_plan_id="daily10",
        enable_testing_limits=False,
        consumption_retry_attempts=3,
        consumption_retry_backoff_seconds=0,
    )


@pytest.fixture
def dispatcher():
    return RecordingDispatcher()


@pytest.fixture
def consumption_queue():
    return RecordingQueue()


@pytest.fixture
def store(session_factory, clock):
    return UsageCounterStore(session_factory, clock)


@pytest.fixture
def notifier(dispatcher, session_factory, clock):
    return ThresholdNotifier(dispatcher, session_factory, clock)


@pytest.fixture
def resolver(test_settings):
    return PlanLimitResolver(catalog=TEST_CATALOG, settings=test_settings, catalog_version="test")


@pytest.fixture
def gate(store, notifier, resolver, session_factory, test_settings, consumption_queue):
    return EnforcementGate(
        store,
        notifier,
        resolver=resolver,
        tenants=TenantDirectory(session_factory),
        settings=test_settings,
        consumption_queue=consumption_queue,
        sleep=lambda seconds: None,
    )


@pytest.fixture
def reset_scheduler(store, notifier, clock):
    return ResetScheduler(store, notifier, clock, lock_factory=always_acquired)
