"""
Per-user limit on relayed push frames.

A fixed one-minute window counted in Redis. Each window gets its own key,
which expires shortly after the window closes. Redis errors never block a
relay: the frame is let through and the failure is logged.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional

from redis.asyncio import Redis
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)

WINDOW_SECONDS = 60


class RelayRateLimiter:
    """
    Async callable ``(event, user_id) -> bool`` for ``HubSession``.

    With no Redis client or a non-positive limit every frame is allowed.
    """

    def __init__(
        self,
        redis: Optional[Redis],
        limit_per_minute: Optional[int],
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.redis = redis
        self.limit_per_minute = limit_per_minute
        self._clock = clock

    @property
    def enabled(self) -> bool:
        return self.redis is not None and bool(self.limit_per_minute) and self.limit_per_minute > 0

    def key(self, event: str, user_id: str) -> str:
        window = int(self._clock() // WINDOW_SECONDS)
        return f"inbox:relay:{event}:{user_id}:{window}"

    async def __call__(self, event: str, user_id: str) -> bool:
        if not self.enabled:
            return True
        key = self.key(event, user_id)
        try:
            pipe = self.redis.pipeline()
            pipe.incr(key)
            pipe.expire(key, WINDOW_SECONDS * 2)
            count, _ = await pipe.execute()
        except RedisError as e:
            logger.warning("Relay rate limit check failed, allowing %s: %s", event, e)
            return True
        if count > self.limit_per_minute:
            logger.info("Relay of %s by %s rate limited (%d this window)", event, user_id, count)
            return False
        return True
