"""
Credential Service

Registration, login with brute-force lockout, password reset and
password change for every account role.

Lockout policy:
    - Each wrong password increments login_attempts
    - At MAX_LOGIN_ATTEMPTS the account is locked for LOCKOUT_MINUTES
    - A locked account is refused before its password is checked
    - A failure after the lock has elapsed starts counting again at 1
    - A successful login resets the counter immediately
"""

import logging
from datetime import timedelta
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from tablehub.core.config import Settings
from tablehub.core.errors import (
    AccountLocked,
    DuplicateEmail,
    InvalidCredentials,
    ServiceError,
    ValidationFailed,
)
from tablehub.core.security import (
    generate_reset_token,
    hash_password,
    hash_token,
    verify_password,
)
from tablehub.core.time_utils import utcnow
from tablehub.models import Account, AccountRole, CustomerProfile, VendorProfile
from tablehub.services.notifications import BaseNotificationService, NotificationDispatcher

logger = logging.getLogger(__name__)

MIN_RESET_PASSWORD_LENGTH = 8

GENERIC_RESET_MESSAGE = (
    "If an account with that email exists, a password reset link has been sent."
)

VENDOR_PROFILE_FIELDS = (
    "address", "city", "state", "zip_code", "phone", "cuisine", "description", "logo",
)
CUSTOMER_PROFILE_FIELDS = ("first_name", "last_name", "phone")


def normalize_email(email: str) -> str:
    return email.strip().lower()


class CredentialService:
    def __init__(
        self,
        db: AsyncSession,
        settings: Settings,
        notifications: BaseNotificationService,
        dispatcher: NotificationDispatcher,
    ):
        self.db = db
        self.settings = settings
        self.notifications = notifications
        self.dispatcher = dispatcher

    # =========================================================================
    # LOOKUP
    # =========================================================================

    async def find_account(self, role: AccountRole, email: str) -> Optional[Account]:
        result = await self.db.execute(
            select(Account).where(
                Account.role == role,
                Account.email == normalize_email(email),
            )
        )
        return result.scalar_one_or_none()

    # =========================================================================
    # REGISTRATION
    # =========================================================================

    async def register(
        self,
        role: AccountRole,
        name: str,
        email: str,
        password: str,
        profile: Optional[dict[str, Any]] = None,
        send_welcome: bool = True,
    ) -> Account:
        """
        Create an account in the role's email namespace.

        Raises:
            DuplicateEmail: the email is taken within this role
        """
        email = normalize_email(email)
        if await self.find_account(role, email) is not None:
            raise DuplicateEmail(f"A {role.value.replace('_', ' ')} with this email already exists")

        now = utcnow()
        account = Account(
            role=role,
            name=name.strip(),
            email=email,
            password_hash=hash_password(password),
            is_active=True,
            login_attempts=0,
            created_at=now,
            updated_at=now,
        )
        # Both payloads are set so serializing the new account never lazy-loads
        account.vendor_profile = None
        account.customer_profile = None
        profile = profile or {}
        if role == AccountRole.VENDOR:
            account.vendor_profile = VendorProfile(
                rating=0.0,
                tax_rate=0.0,
                service_charge_rate=0.0,
                **{k: profile.get(k) for k in VENDOR_PROFILE_FIELDS},
            )
        elif role == AccountRole.CUSTOMER:
            account.customer_profile = CustomerProfile(
                **{k: profile.get(k) for k in CUSTOMER_PROFILE_FIELDS}
            )

        self.db.add(account)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise DuplicateEmail()

        logger.info(f"Registered {role.value} {account.id} ({email})")

        if send_welcome:
            self.dispatcher.submit("welcome", {
                "to": account.email,
                "name": account.name,
                "role": role.value,
                "login_url": self._login_url(role),
            })
        return account

    async def register_general_admin(
        self, name: str, email: str, password: str, admin_code: str
    ) -> Account:
        if admin_code != self.settings.admin_registration_code:
            logger.warning(f"Admin registration with invalid code for {email}")
            raise ValidationFailed("Invalid admin registration code")
        return await self.register(AccountRole.GENERAL_ADMIN, name, email, password)

    # =========================================================================
    # LOGIN
    # =========================================================================

    async def authenticate(self, role: AccountRole, email: str, password: str) -> Account:
        """
        Check credentials and update lockout state.

        Raises:
            InvalidCredentials: unknown email, inactive account or wrong password
            AccountLocked: too many recent failures
        """
        account = await self.find_account(role, email)
        if account is None or not account.is_active:
            raise InvalidCredentials()

        now = utcnow()
        if account.is_locked(now):
            raise AccountLocked()

        if not verify_password(password, account.password_hash):
            locked = account.register_failed_login(
                self.settings.max_login_attempts,
                timedelta(minutes=self.settings.lockout_minutes),
                now,
            )
            await self.db.commit()
            if locked:
                logger.warning(
                    f"{role.value} {account.id} locked after {account.login_attempts} failed logins"
                )
            raise InvalidCredentials()

        account.reset_login_attempts(now)
        await self.db.commit()
        return account

    # =========================================================================
    # PASSWORDS
    # =========================================================================

    async def initiate_password_reset(self, role: AccountRole, email: str) -> str:
        """
        Email a reset link if the account exists.

        Returns the same message whether or not it does.

        Raises:
            ServiceError: the email could not be sent (the token is discarded)
        """
        account = await self.find_account(role, email)
        if account is None or not account.is_active:
            logger.info(f"Password reset requested for unknown {role.value} email")
            return GENERIC_RESET_MESSAGE

        raw_token, token_hash = generate_reset_token()
        ttl = self.settings.password_reset_ttl_minutes
        account.set_password_reset(token_hash, utcnow() + timedelta(minutes=ttl))
        await self.db.commit()

        result = await self.notifications.send_notification("password_reset", {
            "to": account.email,
            "name": account.name,
            "reset_link": self._reset_url(role, raw_token),
            "ttl_minutes": ttl,
        })
        if not result.success:
            logger.error(f"Password reset email to {account.id} failed: {result.error_message}")
            account.clear_password_reset()
            await self.db.commit()
            raise ServiceError("Email could not be sent. Please try again later.")

        return GENERIC_RESET_MESSAGE

    async def complete_password_reset(self, role: AccountRole, token: str, password: str) -> Account:
        """
        Raises:
            ValidationFailed: short password, or unknown/expired token
        """
        if not password or len(password) < MIN_RESET_PASSWORD_LENGTH:
            raise ValidationFailed(
                f"Password must be at least {MIN_RESET_PASSWORD_LENGTH} characters long"
            )

        result = await self.db.execute(
            select(Account).where(
                Account.role == role,
                Account.reset_password_token_hash == hash_token(token),
            )
        )
        account = result.scalar_one_or_none()
        if account is None or not account.password_reset_valid():
            raise ValidationFailed("Password reset token is invalid or has expired")

        account.password_hash = hash_password(password)
        account.clear_password_reset()
        account.login_attempts = 0
        account.lock_until = None
        await self.db.commit()

        logger.info(f"Password reset completed for {role.value} {account.id}")
        return account

    async def change_password(self, account: Account, current_password: str, new_password: str) -> None:
        if not verify_password(current_password, account.password_hash):
            raise InvalidCredentials("Current password is incorrect")
        account.password_hash = hash_password(new_password)
        await self.db.commit()
        logger.info(f"Password changed for {account.role.value} {account.id}")

    # =========================================================================
    # LINKS
    # =========================================================================

    def _login_url(self, role: AccountRole) -> str:
        if role.is_admin:
            return f"{self.settings.admin_frontend_url}/login"
        if role == AccountRole.VENDOR:
            return f"{self.settings.frontend_url}/vendor-login"
        return f"{self.settings.frontend_url}/customer-menu"

    def _reset_url(self, role: AccountRole, token: str) -> str:
        if role.is_admin:
            return f"{self.settings.admin_frontend_url}/reset-password?token={token}"
        if role == AccountRole.VENDOR:
            return f"{self.settings.frontend_url}/vendor-reset-password?token={token}"
        return f"{self.settings.frontend_url}/customer-reset-password?token={token}"
