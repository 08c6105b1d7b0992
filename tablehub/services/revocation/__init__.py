"""
Revocation Store Factory

Returns the memory or Redis store based on CACHE_BACKEND (memory by
default in development, Redis otherwise).
"""

import logging
from functools import lru_cache

from tablehub.core.config import get_settings
from tablehub.services.revocation.base import BaseRevocationStore, token_fingerprint
from tablehub.services.revocation.memory import MemoryRevocationStore
from tablehub.services.revocation.redis_store import RedisRevocationStore

logger = logging.getLogger(__name__)


@lru_cache()
def get_revocation_store() -> BaseRevocationStore:
    """Get the configured revocation store."""
    settings = get_settings()

    if settings.effective_cache_backend == "redis":
        logger.info("Revocation Store: Using RedisRevocationStore")
        return RedisRevocationStore(settings.redis_url)
    logger.info("Revocation Store: Using MemoryRevocationStore")
    return MemoryRevocationStore()


__all__ = [
    "get_revocation_store",
    "BaseRevocationStore",
    "MemoryRevocationStore",
    "RedisRevocationStore",
    "token_fingerprint",
]
