"""
Access Token Service

Issues, verifies and revokes the bearer tokens handed out at login.
Vendor and customer tokens live for VENDOR_TOKEN_TTL_HOURS, both admin
roles for the shorter ADMIN_TOKEN_TTL_HOURS.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from tablehub.core.config import Settings
from tablehub.core.errors import TokenInvalid, TokenRevoked
from tablehub.core.security import decode_access_token, encode_access_token
from tablehub.models import Account, AccountRole
from tablehub.services.revocation import BaseRevocationStore

logger = logging.getLogger(__name__)


@dataclass
class IssuedToken:
    token: str
    expires_at: datetime


@dataclass
class TokenClaims:
    account_id: str
    role: AccountRole
    expires_at: datetime
    token: str


class TokenService:
    def __init__(self, settings: Settings, revocation_store: BaseRevocationStore):
        self.settings = settings
        self.revocation_store = revocation_store

    def ttl_for(self, role: AccountRole) -> timedelta:
        if role.is_admin:
            return timedelta(hours=self.settings.admin_token_ttl_hours)
        return timedelta(hours=self.settings.vendor_token_ttl_hours)

    def issue_token(self, account: Account) -> IssuedToken:
        token, expires_at = encode_access_token(
            account.id, account.role.value, self.ttl_for(account.role)
        )
        return IssuedToken(token=token, expires_at=expires_at)

    async def verify(self, token: str) -> TokenClaims:
        """
        Raises:
            TokenInvalid / TokenExpired: bad or stale token
            TokenRevoked: logged out under the role the token carries
        """
        payload = decode_access_token(token)
        try:
            role = AccountRole(payload["role"])
        except ValueError:
            raise TokenInvalid()

        if await self.revocation_store.contains(token, role.value):
            raise TokenRevoked()

        return TokenClaims(
            account_id=str(payload["sub"]),
            role=role,
            expires_at=datetime.fromtimestamp(payload["exp"], timezone.utc).replace(tzinfo=None),
            token=token,
        )

    async def logout(self, claims: TokenClaims) -> None:
        await self.revocation_store.add(claims.token, claims.role.value, claims.expires_at)
        logger.info(f"Token revoked for {claims.role.value} {claims.account_id}")

    def refresh(self, account: Account) -> IssuedToken:
        return self.issue_token(account)
