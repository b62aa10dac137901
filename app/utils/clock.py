"""
Clock abstraction and UTC period boundaries.

All timestamps inside the engine are naive datetimes in UTC, matching the
DateTime columns they are stored in.
"""

from datetime import datetime, timedelta, timezone
from typing import Protocol

from app.schemas.usage import Period


class Clock(Protocol):
    def now(self) -> datetime:
        ...


class SystemClock:
    """Wall clock in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc).replace(tzinfo=None)


class FixedClock:
    """Clock that only moves when told to."""

    def __init__(self, current: datetime):
        self.current = current

    def now(self) -> datetime:
        return self.current

    def set(self, current: datetime) -> None:
        self.current = current

    def advance(self, **kwargs) -> datetime:
        self.current = self.current + timedelta(**kwargs)
        return self.current


def period_start(period: Period, at: datetime) -> datetime:
    """Return the reset boundary that opened the period containing `at`."""
    midnight = at.replace(hour=0, minute=0, second=0, microsecond=0)
    if period == Period.DAILY:
        return midnight
    return midnight.replace(day=1)


def next_period_start(period: Period, at: datetime) -> datetime:
    """Return the next reset boundary after `at`."""
    start = period_start(period, at)
    if period == Period.DAILY:
        return start + timedelta(days=1)
    if start.month == 12:
        return start.replace(year=start.year + 1, month=1)
    return start.replace(month=start.month + 1)
