"""
In-Memory Revocation Store

Process-local; used in development and tests. The API process sweeps it
periodically (see the lifespan in tablehub.main).
"""

import logging
from datetime import datetime

from tablehub.core.time_utils import utcnow
from tablehub.services.revocation.base import BaseRevocationStore, token_fingerprint

logger = logging.getLogger(__name__)


class MemoryRevocationStore(BaseRevocationStore):

    def __init__(self):
        self._entries: dict[tuple[str, str], datetime] = {}

    @property
    def provider_name(self) -> str:
        return "memory"

    async def add(self, token: str, role: str, expires_at: datetime) -> None:
        self._entries[(token_fingerprint(token), role)] = expires_at

    async def contains(self, token: str, role: str) -> bool:
        expires_at = self._entries.get((token_fingerprint(token), role))
        return expires_at is not None and expires_at > utcnow()

    async def sweep(self) -> int:
        now = utcnow()
        expired = [key for key, expires_at in self._entries.items() if expires_at <= now]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug(f"Swept {len(expired)} expired revocations")
        return len(expired)

    async def health_check(self) -> bool:
        return True

    def __len__(self) -> int:
        return len(self._entries)
