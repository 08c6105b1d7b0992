"""
Redis Revocation Store

Each revoked token is a key that expires together with the token, so the
list never outgrows the set of still-valid tokens and is shared by every
API instance.
"""

import logging
import math
from datetime import datetime
from typing import Optional

from redis import asyncio as aioredis
from redis.exceptions import RedisError

from tablehub.core.time_utils import utcnow
from tablehub.services.revocation.base import BaseRevocationStore, token_fingerprint

logger = logging.getLogger(__name__)

KEY_PREFIX = "tablehub:revoked"


class RedisRevocationStore(BaseRevocationStore):

    def __init__(self, redis_url: str, client: Optional[aioredis.Redis] = None):
        self.client = client or aioredis.Redis.from_url(redis_url, decode_responses=True)
        logger.info("RedisRevocationStore initialized")

    @property
    def provider_name(self) -> str:
        return "redis"

    @staticmethod
    def _key(token: str, role: str) -> str:
        return f"{KEY_PREFIX}:{role}:{token_fingerprint(token)}"

    async def add(self, token: str, role: str, expires_at: datetime) -> None:
        ttl = math.ceil((expires_at - utcnow()).total_seconds())
        if ttl <= 0:
            return
        await self.client.setex(self._key(token, role), ttl, "1")

    async def contains(self, token: str, role: str) -> bool:
        return bool(await self.client.exists(self._key(token, role)))

    async def sweep(self) -> int:
        # Keys expire on their own
        return 0

    async def health_check(self) -> bool:
        try:
            return bool(await self.client.ping())
        except RedisError as e:
            logger.error(f"Redis health check failed: {e}")
            return False
