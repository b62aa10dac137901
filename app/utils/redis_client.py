"""
Redis client utilities.

Provides the shared client and a non-blocking lock used to keep several
scheduler instances from running the same reset at once.
"""

import logging
from typing import Optional

import redis
from redis.exceptions import LockError, RedisError

from app.config import settings

logger = logging.getLogger(__name__)


# Global Redis client
redis_client = redis.from_url(
    settings.redis_url,
    decode_responses=True,
    socket_connect_timeout=5,
    socket_timeout=5,
)


class BoundaryLock:
    """
    Non-blocking Redis lock keyed by a reset boundary.

    Usage:
        with BoundaryLock("quota:reset:daily:2024-09-01") as acquired:
            if acquired:
                ...

    If Redis is unreachable the body still runs (`acquired` is True); resets
    are idempotent, so the lock only saves duplicate work.
    """

    def __init__(
        self,
        key: str,
        timeout: Optional[int] = None,
        client: Optional[redis.Redis] = None,
    ):
        self.key = key
        self.timeout = timeout or settings.reset_lock_timeout_seconds
        self.client = client or redis_client
        self._lock = None

    def __enter__(self) -> bool:
        try:
            lock = self.client.lock(self.key, timeout=self.timeout)
            if not lock.acquire(blocking=False):
                return False
            self._lock = lock
        except RedisError as e:
            logger.warning(f"Redis lock {self.key} unavailable, running unlocked: {e}")
        return True

    def __exit__(self, exc_type, exc, tb) -> None:
        if self._lock is None:
            return
        try:
            self._lock.release()
        except (LockError, RedisError) as e:
            logger.warning(f"Could not release Redis lock {self.key}: {e}")
        finally:
            self._lock = None
