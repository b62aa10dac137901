"""
Reset Scheduler

Zeroes daily counters at each UTC midnight and monthly counters at the first
instant of each month, clearing the matching notification records. Safe to
run any number of times for the same boundary; resets are silent.
"""

import logging
from datetime import datetime
from typing import Callable, ContextManager, Optional

from app.schemas.usage import Period, ResetSummary
from app.services.threshold_notifier import ThresholdNotifier
from app.services.usage_counter_store import UsageCounterStore
from app.utils.clock import Clock, period_start
from app.utils.redis_client import BoundaryLock

logger = logging.getLogger(__name__)

LockFactory = Callable[[str], ContextManager[bool]]


class ResetScheduler:
    """Runs period resets against the counter store and notifier."""

    def __init__(
        self,
        store: UsageCounterStore,
        notifier: ThresholdNotifier,
        clock: Optional[Clock] = None,
        lock_factory: LockFactory = BoundaryLock,
    ):
        self.store = store
        self.notifier = notifier
        self.clock = clock or store.clock
        self.lock_factory = lock_factory

    def run_reset(self, period: Period, boundary: Optional[datetime] = None) -> ResetSummary:
        """
        Reset every counter of `period` that predates `boundary`.

        Args:
            period: Daily or Monthly
            boundary: Reset boundary; defaults to the one containing now

        Returns:
            ResetSummary with the number of counters reset and records cleared
        """
        if boundary is None:
            boundary = period_start(period, self.clock.now())

        lock_key = f"quota:reset:{period.value}:{boundary.isoformat()}"
        with self.lock_factory(lock_key) as acquired:
            if not acquired:
                logger.info(f"{period.value} reset for {boundary} already running elsewhere")
                return ResetSummary(period=period, boundary=boundary, counters_reset=0, notifications_cleared=0)

            reset = self.store.reset_period(period, boundary)
            cleared = self.notifier.clear_period(period, boundary)

        logger.info(
            f"{period.value} reset at {boundary}: {len(reset)} counters reset, "
            f"{cleared} notification records cleared"
        )
        return ResetSummary(
            period=period,
            boundary=boundary,
            counters_reset=len(reset),
            notifications_cleared=cleared,
        )

    def run_daily_reset(self, boundary: Optional[datetime] = None) -> ResetSummary:
        return self.run_reset(Period.DAILY, boundary)

    def run_monthly_reset(self, boundary: Optional[datetime] = None) -> ResetSummary:
        return self.run_reset(Period.MONTHLY, boundary)
