"""
Usage Counter Store

Durable per-tenant, per-resource, per-period counters with atomic increment
and idempotent reset. The store knows nothing about limits; enforcement
happens before increment is called.
"""

import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Iterator, NamedTuple, Optional

from sqlalchemy import and_, case, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from app.database import SessionLocal
from app.exceptions import StoreUnavailable
from app.models import UsageCounter
from app.schemas.usage import Period, ResourceKind
from app.utils.clock import Clock, SystemClock, period_start

logger = logging.getLogger(__name__)


class CounterState(NamedTuple):
    """Read-only view of one counter."""

    count: int
    period_start: datetime


def dialect_insert(db: Session, model):
    """Return an INSERT construct that supports ON CONFLICT for the bound dialect."""
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert(model)
    if dialect == "sqlite":
        return sqlite.insert(model)
    raise ValueError(f"Usage counters need PostgreSQL or SQLite, got dialect {dialect!r}")


class UsageCounterStore:
    """
    Counter persistence.

    Every mutation is a single SQL statement (or an insert-then-update pair in
    one transaction), so concurrent callers never lose updates and no caller
    needs to read-modify-write a counter itself.
    """

    def __init__(
        self,
        session_factory: sessionmaker = SessionLocal,
        clock: Optional[Clock] = None,
    ):
        self._session_factory = session_factory
        self.clock = clock or SystemClock()

    @contextmanager
    def _session(self) -> Iterator[Session]:
        try:
            with self._session_factory() as db:
                yield db
        except SQLAlchemyError as e:
            logger.error(f"Usage counter store error: {e}")
            raise StoreUnavailable(str(e)) from e

    @staticmethod
    def _key(tenant_id: str, resource: ResourceKind, period: Period):
        return and_(
            UsageCounter.tenant_id == tenant_id,
            UsageCounter.resource == resource.value,
            UsageCounter.period == period.value,
        )

    def increment(
        self,
        tenant_id: str,
        resource: ResourceKind,
        period: Period,
        by: int = 1,
    ) -> int:
        """
        Atomically add `by` to a counter and return the new count.

        The counter is created at 0 on first use. A counter whose period-start
        predates the current boundary is rolled over in the same statement,
        so a late reset run never inflates the new period.
        """
        if by < 0:
            raise ValueError("Increment must be non-negative")

        now = self.clock.now()
        boundary = period_start(period, now)
        key = self._key(tenant_id, resource, period)

        with self._session() as db:
            create = dialect_insert(db, UsageCounter).values(
                tenant_id=tenant_id,
                resource=resource.value,
                period=period.value,
                count=0,
                period_start=boundary,
                created_at=now,
                updated_at=now,
            ).on_conflict_do_nothing(index_elements=["tenant_id", "resource", "period"])
            db.execute(create)

            stale = UsageCounter.period_start < boundary
            db.execute(
                update(UsageCounter)
                .where(key)
                .values(
                    count=case((stale, by), else_=UsageCounter.count + by),
                    period_start=case((stale, boundary), else_=UsageCounter.period_start),
                    updated_at=now,
                )
                .execution_options(synchronize_session=False)
            )

            new_count = db.execute(select(UsageCounter.count).where(key)).scalar_one()
            db.commit()

        return new_count

    def get(self, tenant_id: str, resource: ResourceKind, period: Period) -> CounterState:
        """
        Read one counter.

        Missing counters, and counters left over from a period whose reset has
        not run yet, read as 0 at the current boundary.
        """
        boundary = period_start(period, self.clock.now())

        with self._session() as db:
            row = db.execute(
                select(UsageCounter.count, UsageCounter.period_start).where(
                    self._key(tenant_id, resource, period)
                )
            ).first()

        if row is None or row.period_start < boundary:
            return CounterState(0, boundary)
        return CounterState(row.count, row.period_start)

    def get_all(self, tenant_id: str) -> dict[tuple[ResourceKind, Period], CounterState]:
        """Read every counter of a tenant in one query."""
        now = self.clock.now()
        states = {
            (resource, period): CounterState(0, period_start(period, now))
            for resource in ResourceKind
            for period in Period
        }

        with self._session() as db:
            rows = db.execute(
                select(
                    UsageCounter.resource,
                    UsageCounter.period,
                    UsageCounter.count,
                    UsageCounter.period_start,
                ).where(UsageCounter.tenant_id == tenant_id)
            ).all()

        for row in rows:
            try:
                key = (ResourceKind(row.resource), Period(row.period))
            except ValueError:
                logger.warning(f"Ignoring counter with unknown key {row.resource}/{row.period}")
                continue
            if row.period_start >= states[key].period_start:
                states[key] = CounterState(row.count, row.period_start)

        return states

    def reset(
        self,
        tenant_id: str,
        resource: ResourceKind,
        period: Period,
        new_period_start: datetime,
    ) -> bool:
        """
        Zero a counter for a new boundary.

        Returns False when the counter is absent or already at (or past) that
        boundary, which makes repeated calls no-ops.
        """
        with self._session() as db:
            result = db.execute(
                update(UsageCounter)
                .where(
                    self._key(tenant_id, resource, period),
                    UsageCounter.period_start < new_period_start,
                )
                .values(count=0, period_start=new_period_start, updated_at=self.clock.now())
                .execution_options(synchronize_session=False)
            )
            db.commit()

        return result.rowcount > 0

    def reset_period(self, period: Period, boundary: datetime) -> list[tuple[str, ResourceKind]]:
        """
        Reset every counter of `period` whose period-start predates `boundary`.

        Returns the (tenant, resource) pairs that were reset.
        """
        with self._session() as db:
            stale = db.execute(
                select(UsageCounter.tenant_id, UsageCounter.resource).where(
                    UsageCounter.period == period.value,
                    UsageCounter.period_start < boundary,
                )
            ).all()

            db.execute(
                update(UsageCounter)
                .where(
                    UsageCounter.period == period.value,
                    UsageCounter.period_start < boundary,
                )
                .values(count=0, period_start=boundary, updated_at=self.clock.now())
                .execution_options(synchronize_session=False)
            )
            db.commit()

        reset = []
        for row in stale:
            try:
                reset.append((row.tenant_id, ResourceKind(row.resource)))
            except ValueError:
                continue
        return reset

    def force_reset(self, tenant_id: str, resource: ResourceKind, period: Period) -> None:
        """Zero a counter immediately, regardless of its period-start."""
        now = self.clock.now()
        with self._session() as db:
            db.execute(
                update(UsageCounter)
                .where(self._key(tenant_id, resource, period))
                .values(count=0, period_start=period_start(period, now), updated_at=now)
                .execution_options(synchronize_session=False)
            )
            db.commit()
