"""Utility modules for the quota engine."""

from app.utils.clock import Clock, FixedClock, SystemClock, next_period_start, period_start
from app.utils.redis_client import BoundaryLock, redis_client

__all__ = [
    "Clock",
    "FixedClock",
    "SystemClock",
    "next_period_start",
    "period_start",
    "BoundaryLock",
    "redis_client",
]
