"""Redis lock that keeps monitoring passes from overlapping.

The HTTP cron trigger and the in-process scheduler can both start a pass;
only one may run at a time.
"""

from __future__ import annotations

import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from scorewatch.core.constants import MONITOR_PASS_LOCK_NAME, REDIS_PREFIX
from scorewatch.core.logging import get_logger

if TYPE_CHECKING:
    from redis.asyncio import Redis

logger = get_logger(__name__)

# Atomic check-and-delete: only the holder may release
_RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
else
    return 0
end
"""


class PassLock:
    """Non-blocking SET NX EX lock with token-checked release.

    The TTL must exceed the pass budget so the lock outlives a healthy pass
    but still expires if the holder dies.
    """

    def __init__(self, redis: Redis, ttl_seconds: int, name: str = MONITOR_PASS_LOCK_NAME) -> None:
        self.key = f"{REDIS_PREFIX}:lock:{name}"
        self._redis = redis
        self._ttl = ttl_seconds
        self._token = str(uuid.uuid4())
        self._acquired = False

    @property
    def acquired(self) -> bool:
        return self._acquired

    async def acquire(self) -> bool:
        """Try once to take the lock. Returns False if another pass holds it."""
        ok = await self._redis.set(self.key, self._token, ex=self._ttl, nx=True)
        self._acquired = bool(ok)
        if self._acquired:
            logger.debug("Pass lock acquired", key=self.key, ttl=self._ttl)
        else:
            logger.info("Pass lock held elsewhere", key=self.key)
        return self._acquired

    async def release(self) -> bool:
        """Release the lock if this instance still holds it."""
        if not self._acquired:
            return False
        self._acquired = False
        result = await self._redis.eval(_RELEASE_SCRIPT, 1, self.key, self._token)
        if not result:
            logger.warning("Pass lock expired before release", key=self.key)
            return False
        logger.debug("Pass lock released", key=self.key)
        return True

    @asynccontextmanager
    async def hold(self) -> AsyncIterator[bool]:
        """Yield whether the lock was taken; release on exit if it was."""
        acquired = await self.acquire()
        try:
            yield acquired
        finally:
            if acquired:
                try:
                    await self.release()
                except Exception:
                    logger.exception("Failed to release pass lock", key=self.key)
