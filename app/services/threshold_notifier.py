"""
Threshold Notifier

Decides when a usage tier notification must be emitted and records it so
each tier fires at most once per reset cycle.

Per (tenant, resource, period) the notifier tracks which of HighUsage,
NearlyFull and LimitReached already fired in the current cycle. When an
evaluation reaches one or more unrecorded tiers, only the highest one is
emitted; the lower ones are recorded silently so a later dip and re-climb
cannot fire them. Records are only cleared at period boundaries.

A record whose hand-off to the dispatcher failed stays pending
(`emitted=False`) until `redispatch_pending` hands it off; a closed counter
is never evaluated again within its cycle.
"""

import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Iterator, Optional

from sqlalchemy import and_, delete, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from app.database import SessionLocal
from app.exceptions import NotificationDispatchFailure, StoreUnavailable
from app.models import NotificationRecord
from app.schemas.usage import (
    NOTIFIABLE_TIERS,
    NotificationEvent,
    Period,
    PeriodUsage,
    ResourceKind,
    UsageStatus,
)
from app.services.notification_dispatcher import NotificationDispatcher
from app.services.usage_counter_store import dialect_insert
from app.utils.clock import Clock, SystemClock, next_period_start, period_start

logger = logging.getLogger(__name__)


class ThresholdNotifier:
    """Threshold state machine backed by notification records."""

    def __init__(
        self,
        dispatcher: NotificationDispatcher,
        session_factory: sessionmaker = SessionLocal,
        clock: Optional[Clock] = None,
    ):
        self.dispatcher = dispatcher
        self._session_factory = session_factory
        self.clock = clock or SystemClock()

    @contextmanager
    def _session(self) -> Iterator[Session]:
        try:
            with self._session_factory() as db:
                yield db
        except SQLAlchemyError as e:
            logger.error(f"Notification record store error: {e}")
            raise StoreUnavailable(str(e)) from e

    def process(self, tenant_id: str, usage: PeriodUsage) -> Optional[NotificationEvent]:
        """
        Evaluate one counter's new state and emit a notification if a new tier
        was reached.

        Returns:
            The emitted event, or None when nothing new was reached or the
            hand-off failed (the tier is then left pending for redelivery)
        """
        if usage.unlimited or usage.status == UsageStatus.NORMAL:
            return None

        reached = [tier for tier in NOTIFIABLE_TIERS if tier.rank <= usage.status.rank]
        top = reached[-1]
        lower = [tier.value for tier in reached[:-1]]
        now = self.clock.now()

        with self._session() as db:
            top_inserted = False
            for tier in reached:
                stmt = dialect_insert(db, NotificationRecord).values(
                    tenant_id=tenant_id,
                    resource=usage.resource.value,
                    period=usage.period.value,
                    tier=tier.value,
                    period_start=usage.period_start,
                    emitted=tier == top,
                    suppressed=tier != top,
                    count=usage.count,
                    usage_limit=usage.limit,
                    percentage=usage.percentage,
                    sent_at=now,
                ).on_conflict_do_nothing(
                    index_elements=["tenant_id", "resource", "period", "tier", "period_start"]
                )
                result = db.execute(stmt)
                if tier == top:
                    top_inserted = result.rowcount > 0

            if top_inserted and lower:
                # Lower tiers still waiting for redelivery are covered by this event
                db.execute(
                    update(NotificationRecord)
                    .where(
                        self._counter_key(tenant_id, usage.resource, usage.period),
                        NotificationRecord.period_start == usage.period_start,
                        NotificationRecord.tier.in_(lower),
                        NotificationRecord.emitted.is_(False),
                    )
                    .values(suppressed=True)
                    .execution_options(synchronize_session=False)
                )
            db.commit()

        if not top_inserted:
            return None

        event = NotificationEvent(
            tenant_id=tenant_id,
            resource=usage.resource,
            period=usage.period,
            tier=top,
            count=usage.count,
            limit=usage.limit,
            percentage=usage.percentage,
            resets_at=usage.resets_at,
            emitted_at=now,
        )

        if not self._hand_off(event):
            self._release(
                and_(
                    self._counter_key(tenant_id, usage.resource, usage.period),
                    NotificationRecord.tier == top.value,
                    NotificationRecord.period_start == usage.period_start,
                )
            )
            return None

        logger.info(
            f"{top.value} notification emitted for tenant {tenant_id} "
            f"({usage.resource.value}/{usage.period.value} {usage.count}/{usage.limit}, {usage.percentage}%)"
        )
        return event

    def redispatch_pending(self) -> int:
        """
        Hand off every event of the current cycles whose earlier hand-off failed.

        Each pending record is claimed before dispatch, so concurrent runs
        never send the same event twice.

        Returns:
            Number of events handed off
        """
        now = self.clock.now()

        with self._session() as db:
            rows = db.execute(
                select(
                    NotificationRecord.id,
                    NotificationRecord.tenant_id,
                    NotificationRecord.resource,
                    NotificationRecord.period,
                    NotificationRecord.tier,
                    NotificationRecord.period_start,
                    NotificationRecord.count,
                    NotificationRecord.usage_limit,
                    NotificationRecord.percentage,
                )
                .where(
                    NotificationRecord.emitted.is_(False),
                    NotificationRecord.suppressed.is_(False),
                )
                .order_by(NotificationRecord.id)
            ).all()

        delivered = 0
        for row in rows:
            period = Period(row.period)
            if row.period_start < period_start(period, now):
                continue

            if not self._claim(row.id):
                continue

            event = NotificationEvent(
                tenant_id=row.tenant_id,
                resource=ResourceKind(row.resource),
                period=period,
                tier=UsageStatus(row.tier),
                count=row.count,
                limit=row.usage_limit,
                percentage=row.percentage,
                resets_at=next_period_start(period, row.period_start),
                emitted_at=now,
            )
            if not self._hand_off(event):
                self._release(NotificationRecord.id == row.id)
                continue

            delivered += 1
            logger.info(
                f"Redelivered {event.tier.value} notification for tenant {event.tenant_id} "
                f"({event.resource.value}/{event.period.value})"
            )

        return delivered

    @staticmethod
    def _counter_key(tenant_id: str, resource: ResourceKind, period: Period):
        return and_(
            NotificationRecord.tenant_id == tenant_id,
            NotificationRecord.resource == resource.value,
            NotificationRecord.period == period.value,
        )

    def _hand_off(self, event: NotificationEvent) -> bool:
        try:
            self.dispatcher.dispatch(event)
        except NotificationDispatchFailure as e:
            logger.error(
                f"Notification dispatch failed for tenant {event.tenant_id}, "
                f"{event.tier.value} left pending: {e}"
            )
            return False
        return True

    def _claim(self, record_id: int) -> bool:
        with self._session() as db:
            result = db.execute(
                update(NotificationRecord)
                .where(NotificationRecord.id == record_id, NotificationRecord.emitted.is_(False))
                .values(emitted=True)
                .execution_options(synchronize_session=False)
            )
            db.commit()
        return result.rowcount > 0

    def _release(self, condition) -> None:
        with self._session() as db:
            db.execute(
                update(NotificationRecord)
                .where(condition)
                .values(emitted=False)
                .execution_options(synchronize_session=False)
            )
            db.commit()

    def recorded_tiers(
        self,
        tenant_id: str,
        resource: ResourceKind,
        period: Period,
        period_start: datetime,
    ) -> set[UsageStatus]:
        """Tiers already recorded for one counter in the cycle starting at `period_start`."""
        with self._session() as db:
            rows = db.execute(
                select(NotificationRecord.tier).where(
                    NotificationRecord.tenant_id == tenant_id,
                    NotificationRecord.resource == resource.value,
                    NotificationRecord.period == period.value,
                    NotificationRecord.period_start == period_start,
                )
            ).scalars().all()
        return {UsageStatus(tier) for tier in rows}

    def clear_period(self, period: Period, boundary: datetime) -> int:
        """Delete records of `period` belonging to cycles before `boundary`."""
        with self._session() as db:
            result = db.execute(
                delete(NotificationRecord).where(
                    NotificationRecord.period == period.value,
                    NotificationRecord.period_start < boundary,
                )
            )
            db.commit()
        return result.rowcount

    def clear_for(self, tenant_id: str, resource: ResourceKind, period: Period) -> int:
        """Delete every record of one counter, whatever its cycle."""
        with self._session() as db:
            result = db.execute(
                delete(NotificationRecord).where(
                    NotificationRecord.tenant_id == tenant_id,
                    NotificationRecord.resource == resource.value,
                    NotificationRecord.period == period.value,
                )
            )
            db.commit()
        return result.rowcount
