"""
Access Grant Registry

A vendor delegates its data to a multi-vendor admin by email:

    pending --(token redeemed, login, or accept)--> active
    pending / active --(vendor revokes)--> revoked   (terminal)

A grant is live while active and not past expires_at. The set of vendors
with a live grant is a multi-vendor admin's scope for orders and
analytics.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional
from urllib.parse import quote

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from tablehub.core.config import Settings
from tablehub.core.errors import (
    ConflictError,
    EmailMismatch,
    Forbidden,
    GrantExpired,
    GrantRevoked,
    NotFoundError,
    ValidationFailed,
)
from tablehub.core.security import generate_invitation_token, hash_password
from tablehub.core.time_utils import to_naive_utc, utcnow
from tablehub.models import AccessGrant, Account, AccountRole, GrantStatus
from tablehub.services.credentials import normalize_email
from tablehub.services.notifications import BaseNotificationService

logger = logging.getLogger(__name__)


@dataclass
class GrantInvitation:
    """Outcome of granting access."""
    grant: AccessGrant
    invitation_link: str
    warnings: list[str] = field(default_factory=list)


class AccessGrantRegistry:
    def __init__(
        self,
        db: AsyncSession,
        settings: Settings,
        notifications: BaseNotificationService,
    ):
        self.db = db
        self.settings = settings
        self.notifications = notifications

    # =========================================================================
    # LOOKUP
    # =========================================================================

    async def _get(self, grant_id: str) -> AccessGrant:
        grant = await self.db.get(AccessGrant, grant_id)
        if grant is None:
            raise NotFoundError("Access record not found")
        return grant

    async def _find_pair(self, vendor_id: str, email: str) -> Optional[AccessGrant]:
        result = await self.db.execute(
            select(AccessGrant).where(
                AccessGrant.vendor_id == vendor_id,
                AccessGrant.user_email == email,
            )
        )
        return result.scalar_one_or_none()

    async def _find_by_token(self, token: str, status: Optional[GrantStatus] = None) -> Optional[AccessGrant]:
        if not token:
            return None
        query = select(AccessGrant).where(AccessGrant.access_token == token)
        if status is not None:
            query = query.where(AccessGrant.status == status)
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    def invitation_link(self, token: str, email: str) -> str:
        return (
            f"{self.settings.admin_frontend_url}/multi-vendor-admin-register"
            f"?token={token}&email={quote(email)}"
        )

    # =========================================================================
    # GRANT
    # =========================================================================

    async def grant(
        self,
        vendor: Account,
        user_email: str,
        user_name: Optional[str] = None,
        expires_at: Optional[datetime] = None,
        notes: Optional[str] = None,
    ) -> GrantInvitation:
        """
        Invite `user_email` to manage `vendor`.

        A revoked grant for the same pair is replaced by a fresh pending one.
        The invitation email is sent right away; if it fails the grant
        stands and the failure is returned as a warning.

        Raises:
            ConflictError: a pending or active grant already exists
        """
        email = normalize_email(user_email)
        expires_at = to_naive_utc(expires_at)
        now = utcnow()
        if expires_at is not None and expires_at <= now:
            raise ValidationFailed("Expiry date must be in the future")

        grant = await self._find_pair(vendor.id, email)
        if grant is not None and grant.status != GrantStatus.REVOKED:
            raise ConflictError("Access already granted or pending for this user")

        token = generate_invitation_token()
        if grant is None:
            grant = AccessGrant(vendor_id=vendor.id, user_email=email, created_at=now)
            self.db.add(grant)
        grant.vendor = vendor
        grant.granted_by = vendor.id
        grant.user_name = user_name
        grant.status = GrantStatus.PENDING
        grant.access_token = token
        grant.invited_at = now
        grant.accepted_at = None
        grant.last_accessed_at = None
        grant.expires_at = expires_at
        grant.notes = notes
        grant.updated_at = now

        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise ConflictError("Access already granted or pending for this user")

        logger.info(f"Vendor {vendor.id} invited {email} (grant {grant.id})")

        link = self.invitation_link(token, email)
        invitation = GrantInvitation(grant=grant, invitation_link=link)

        result = await self.notifications.send_notification("access_invitation", {
            "to": email,
            "user_name": user_name,
            "vendor_name": vendor.name,
            "invitation_link": link,
            "expires_at": expires_at.strftime("%Y-%m-%d %H:%M UTC") if expires_at else None,
        })
        if not result.success:
            logger.warning(f"Invitation email for grant {grant.id} failed: {result.error_message}")
            invitation.warnings.append(
                "Access granted, but the invitation email could not be sent"
            )
        return invitation

    # =========================================================================
    # TOKENS
    # =========================================================================

    async def verify_invitation(self, token: str) -> AccessGrant:
        """Pre-registration check of an invitation token."""
        grant = await self._find_by_token(token, GrantStatus.PENDING)
        if grant is None:
            raise NotFoundError("Invalid or expired access token")
        if grant.is_expired():
            raise GrantExpired()
        return grant

    async def redeem_token(self, token: str, email: str, password: str, name: str) -> tuple[Account, AccessGrant]:
        """
        Register a multi-vendor admin from an invitation. Single use.

        Raises:
            NotFoundError: no grant carries the token (unknown or already used)
            EmailMismatch: email differs from the invited one
            GrantExpired: invitation past expires_at
            GrantRevoked: vendor revoked the invitation
            ConflictError: a multi-vendor admin with this email exists
        """
        grant = await self._find_by_token(token)
        if grant is None:
            raise NotFoundError("Invalid or already used access token")

        email = normalize_email(email)
        if email != grant.user_email:
            raise EmailMismatch()
        if grant.is_expired():
            raise GrantExpired()
        if grant.status == GrantStatus.REVOKED:
            raise GrantRevoked()

        existing = await self.db.execute(
            select(Account.id).where(
                Account.role == AccountRole.MULTI_VENDOR_ADMIN,
                Account.email == email,
            )
        )
        if existing.scalar_one_or_none() is not None:
            raise ConflictError(
                "A multi-vendor admin with this email already exists. Please log in instead."
            )

        now = utcnow()
        account = Account(
            role=AccountRole.MULTI_VENDOR_ADMIN,
            name=name.strip(),
            email=email,
            password_hash=hash_password(password),
            is_active=True,
            login_attempts=0,
            last_login=now,
            created_at=now,
            updated_at=now,
            vendor_profile=None,
            customer_profile=None,
        )
        self.db.add(account)

        grant.status = GrantStatus.ACTIVE
        grant.accepted_at = now
        grant.last_accessed_at = now
        grant.access_token = None

        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise ConflictError("A multi-vendor admin with this email already exists")

        logger.info(f"Grant {grant.id} redeemed by new multi-vendor admin {account.id}")
        return account, grant

    async def accept(self, grant_id: str, email: str) -> AccessGrant:
        """Explicit acceptance by an authenticated user."""
        grant = await self._get(grant_id)
        if normalize_email(email) != grant.user_email:
            raise EmailMismatch()
        if grant.status == GrantStatus.REVOKED:
            raise GrantRevoked()
        if grant.is_expired():
            raise GrantExpired()

        now = utcnow()
        grant.status = GrantStatus.ACTIVE
        grant.accepted_at = grant.accepted_at or now
        grant.last_accessed_at = now
        grant.access_token = None
        await self.db.commit()
        return grant

    # =========================================================================
    # SCOPE
    # =========================================================================

    async def resolve_vendor_scope(self, email: str) -> set[str]:
        """
        Vendor ids the email holds a live grant for.

        Pending, unexpired grants are promoted to active first, so the
        first authentication after an invitation activates it.
        """
        email = normalize_email(email)
        now = utcnow()
        result = await self.db.execute(
            select(AccessGrant).where(
                AccessGrant.user_email == email,
                AccessGrant.status.in_([GrantStatus.PENDING, GrantStatus.ACTIVE]),
            )
        )
        grants = result.scalars().all()

        promoted = 0
        scope: set[str] = set()
        for grant in grants:
            if grant.status == GrantStatus.PENDING and not grant.is_expired(now):
                grant.status = GrantStatus.ACTIVE
                grant.accepted_at = now
                grant.last_accessed_at = now
                grant.access_token = None
                promoted += 1
            if grant.is_live(now):
                scope.add(grant.vendor_id)

        if promoted:
            await self.db.commit()
            logger.info(f"Activated {promoted} pending grant(s) for {email}")
        return scope

    # =========================================================================
    # VENDOR MANAGEMENT
    # =========================================================================

    async def revoke(self, grant_id: str, by_vendor_id: str) -> AccessGrant:
        """Revoke a grant. Revoking a revoked grant changes nothing."""
        grant = await self._get(grant_id)
        if grant.vendor_id != by_vendor_id:
            raise Forbidden("You can only revoke access to your own restaurant")
        if grant.status == GrantStatus.REVOKED:
            return grant

        grant.status = GrantStatus.REVOKED
        await self.db.commit()
        logger.info(f"Vendor {by_vendor_id} revoked grant {grant.id} ({grant.user_email})")
        return grant

    async def update(
        self,
        grant_id: str,
        by_vendor_id: str,
        status: Optional[GrantStatus] = None,
        notes: Optional[str] = None,
    ) -> AccessGrant:
        grant = await self._get(grant_id)
        if grant.vendor_id != by_vendor_id:
            raise Forbidden("You can only manage access to your own restaurant")

        if status is not None and status != grant.status:
            if grant.status == GrantStatus.REVOKED:
                raise ValidationFailed("Revoked access cannot be reinstated; grant access again")
            if status == GrantStatus.PENDING:
                raise ValidationFailed("Access cannot be moved back to pending")
            grant.status = status
            if status == GrantStatus.ACTIVE:
                grant.accepted_at = grant.accepted_at or utcnow()
                grant.access_token = None
        if notes is not None:
            grant.notes = notes

        await self.db.commit()
        return grant

    async def list_for_vendor(self, vendor_id: str, requesting_vendor_id: str) -> list[AccessGrant]:
        if vendor_id != requesting_vendor_id:
            raise Forbidden("You can only view access for your own restaurant")
        result = await self.db.execute(
            select(AccessGrant)
            .where(AccessGrant.vendor_id == vendor_id)
            .order_by(AccessGrant.created_at.desc())
        )
        return list(result.scalars().all())

    async def list_for_user(self, email: str) -> list[AccessGrant]:
        """Live grants for an email."""
        now = utcnow()
        result = await self.db.execute(
            select(AccessGrant)
            .where(
                AccessGrant.user_email == normalize_email(email),
                AccessGrant.status == GrantStatus.ACTIVE,
                or_(AccessGrant.expires_at.is_(None), AccessGrant.expires_at > now),
            )
            .order_by(AccessGrant.accepted_at.desc())
        )
        return list(result.scalars().all())
