"""
FastAPI Dependencies

Resolve the caller from the bearer token, enforce roles, build the
caller's vendor scope and wire services onto the request's session.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from tablehub.core.config import Settings, get_settings
from tablehub.core.errors import (
    Forbidden,
    RateLimited,
    TokenExpired,
    TokenInvalid,
    TokenRevoked,
    Unauthorized,
)
from tablehub.database import get_db
from tablehub.models import Account, AccountRole
from tablehub.services.access_grants import AccessGrantRegistry
from tablehub.services.analytics import AnalyticsAggregator
from tablehub.services.credentials import CredentialService
from tablehub.services.notifications import (
    BaseNotificationService,
    NotificationDispatcher,
    get_dispatcher,
    get_notification_service,
)
from tablehub.services.orders import OrderEngine
from tablehub.services.rate_limit import BaseRateLimiter, get_rate_limiter
from tablehub.services.revocation import BaseRevocationStore, get_revocation_store
from tablehub.services.scope import CallerScope
from tablehub.services.tokens import TokenClaims, TokenService

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)

ADMIN_ROLES = (AccountRole.GENERAL_ADMIN, AccountRole.MULTI_VENDOR_ADMIN)


@dataclass
class Principal:
    """The authenticated caller."""
    account: Account
    claims: TokenClaims

    @property
    def role(self) -> AccountRole:
        return self.claims.role


# =============================================================================
# SERVICES
# =============================================================================

def get_token_service(
    settings: Settings = Depends(get_settings),
    store: BaseRevocationStore = Depends(get_revocation_store),
) -> TokenService:
    return TokenService(settings, store)


def get_credential_service(
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
    notifications: BaseNotificationService = Depends(get_notification_service),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> CredentialService:
    return CredentialService(db, settings, notifications, dispatcher)


def get_grant_registry(
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
    notifications: BaseNotificationService = Depends(get_notification_service),
) -> AccessGrantRegistry:
    return AccessGrantRegistry(db, settings, notifications)


def get_order_engine(
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> OrderEngine:
    return OrderEngine(db, settings, dispatcher)


# =============================================================================
# AUTHENTICATION
# =============================================================================

async def _resolve_principal(
    credentials: Optional[HTTPAuthorizationCredentials],
    db: AsyncSession,
    tokens: TokenService,
) -> Principal:
    if credentials is None or not credentials.credentials:
        raise Unauthorized()

    claims = await tokens.verify(credentials.credentials)
    account = await db.get(Account, claims.account_id)
    if account is None or account.role != claims.role:
        raise TokenInvalid()
    if not account.is_active:
        raise Unauthorized("Account is deactivated")
    return Principal(account=account, claims=claims)


async def get_current_principal(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
    tokens: TokenService = Depends(get_token_service),
) -> Principal:
    return await _resolve_principal(credentials, db, tokens)


async def get_optional_principal(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
    tokens: TokenService = Depends(get_token_service),
) -> Optional[Principal]:
    """Public routes: a bad or missing token means anonymous."""
    if credentials is None:
        return None
    try:
        return await _resolve_principal(credentials, db, tokens)
    except (Unauthorized, TokenInvalid, TokenExpired, TokenRevoked) as e:
        logger.debug(f"Ignoring unusable token on public route: {e}")
        return None


def require_roles(*roles: AccountRole) -> Callable:
    """Dependency factory restricting a route to the given roles."""

    async def dependency(principal: Principal = Depends(get_current_principal)) -> Principal:
        if principal.role not in roles:
            raise Forbidden(f"Access denied. {' or '.join(r.value for r in roles)} role required")
        return principal

    return dependency


require_vendor = require_roles(AccountRole.VENDOR)
require_customer = require_roles(AccountRole.CUSTOMER)
require_admin = require_roles(*ADMIN_ROLES)
require_vendor_or_admin = require_roles(AccountRole.VENDOR, *ADMIN_ROLES)


# =============================================================================
# SCOPE
# =============================================================================

async def build_scope(principal: Principal, registry: AccessGrantRegistry) -> CallerScope:
    account = principal.account
    if principal.role == AccountRole.GENERAL_ADMIN:
        return CallerScope.unrestricted(principal.role, account.id)
    if principal.role == AccountRole.MULTI_VENDOR_ADMIN:
        vendor_ids = await registry.resolve_vendor_scope(account.email)
        return CallerScope.for_vendors(principal.role, account.id, vendor_ids)
    if principal.role == AccountRole.VENDOR:
        return CallerScope.for_vendors(principal.role, account.id, [account.id])
    return CallerScope.for_vendors(principal.role, account.id, [])


async def get_caller_scope(
    principal: Principal = Depends(get_current_principal),
    registry: AccessGrantRegistry = Depends(get_grant_registry),
) -> CallerScope:
    return await build_scope(principal, registry)


async def get_admin_analytics(
    principal: Principal = Depends(require_admin),
    registry: AccessGrantRegistry = Depends(get_grant_registry),
    db: AsyncSession = Depends(get_db),
) -> AnalyticsAggregator:
    scope = await build_scope(principal, registry)
    return AnalyticsAggregator(db, scope)


# =============================================================================
# RATE LIMITING
# =============================================================================

def client_address(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def rate_limit(scope: str, limit_setting: str) -> Callable:
    """
    Dependency factory: at most `settings.<limit_setting>` requests per
    client address per RATE_LIMIT_WINDOW_SECONDS for this scope.
    """

    async def dependency(
        request: Request,
        settings: Settings = Depends(get_settings),
        limiter: BaseRateLimiter = Depends(get_rate_limiter),
    ) -> None:
        key = f"{scope}:{client_address(request)}"
        allowed = await limiter.hit(
            key, getattr(settings, limit_setting), settings.rate_limit_window_seconds
        )
        if not allowed:
            logger.warning(f"Rate limit exceeded for {key}")
            raise RateLimited()

    return dependency


forgot_password_limit = rate_limit("forgot-password", "forgot_password_limit")
reset_password_limit = rate_limit("reset-password", "reset_password_limit")
