"""
Token Revocation Store Abstract Base Class

Holds logged-out access tokens until they would have expired anyway.
Entries are keyed by (token, role) so a logout in one role never revokes
a token presented under another role.
"""

import hashlib
from abc import ABC, abstractmethod
from datetime import datetime


def token_fingerprint(token: str) -> str:
    """Tokens are stored by digest, never verbatim."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


class BaseRevocationStore(ABC):
    """Abstract base class for revocation stores."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        pass

    @abstractmethod
    async def add(self, token: str, role: str, expires_at: datetime) -> None:
        """Revoke `token` for `role` until `expires_at` (naive UTC)."""
        pass

    @abstractmethod
    async def contains(self, token: str, role: str) -> bool:
        pass

    @abstractmethod
    async def sweep(self) -> int:
        """
        Drop entries whose token has expired.

        Returns:
            Number of entries removed
        """
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        pass
