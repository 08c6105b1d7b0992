"""
Fixed-Window Rate Limiter

Counts hits per key inside a window; used on the password-reset
endpoints (per client IP). Memory backend for development, Redis
otherwise, selected like the revocation store.
"""

import logging
import time
from abc import ABC, abstractmethod
from functools import lru_cache
from typing import Optional

from redis import asyncio as aioredis

from tablehub.core.config import get_settings

logger = logging.getLogger(__name__)


class BaseRateLimiter(ABC):

    @abstractmethod
    async def hit(self, key: str, limit: int, window_seconds: int) -> bool:
        """
        Record one request.

        Returns:
            True while the key is within its limit for the current window
        """
        pass


class MemoryRateLimiter(BaseRateLimiter):

    def __init__(self):
        # key -> (window start, count, window length)
        self._windows: dict[str, tuple[float, int, int]] = {}

    def __len__(self) -> int:
        return len(self._windows)

    def _evict_expired(self, now: float) -> None:
        expired = [
            key for key, (started, _, length) in self._windows.items()
            if now - started >= length
        ]
        for key in expired:
            del self._windows[key]

    async def hit(self, key: str, limit: int, window_seconds: int) -> bool:
        now = time.monotonic()
        self._evict_expired(now)
        started, count, _ = self._windows.get(key, (now, 0, window_seconds))
        count += 1
        self._windows[key] = (started, count, window_seconds)
        return count <= limit

    def reset(self) -> None:
        self._windows.clear()


class RedisRateLimiter(BaseRateLimiter):

    def __init__(self, redis_url: str, client: Optional[aioredis.Redis] = None):
        self.client = client or aioredis.Redis.from_url(redis_url, decode_responses=True)

    async def hit(self, key: str, limit: int, window_seconds: int) -> bool:
        redis_key = f"tablehub:ratelimit:{key}"
        count = await self.client.incr(redis_key)
        if count == 1:
            await self.client.expire(redis_key, window_seconds)
        return count <= limit


@lru_cache()
def get_rate_limiter() -> BaseRateLimiter:
    settings = get_settings()

    if settings.effective_cache_backend == "redis":
        logger.info("Rate Limiter: Using RedisRateLimiter")
        return RedisRateLimiter(settings.redis_url)
    logger.info("Rate Limiter: Using MemoryRateLimiter")
    return MemoryRateLimiter()
