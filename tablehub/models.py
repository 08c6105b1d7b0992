"""
SQLAlchemy Database Models

Multi-tenant restaurant ordering:
- One accounts table for every role (vendor, customer, both admin kinds)
- Role payloads (vendor profile with billing settings, customer profile)
- Per-vendor access grants for multi-vendor admins
- Menu items, orders and their ordered lines

All timestamps are naive UTC. Primary keys are UUID strings.

Version: 1.0.0
"""

import enum
import uuid
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    Column,
    String,
    Float,
    DateTime,
    Text,
    Enum,
    Boolean,
    Integer,
    Numeric,
    ForeignKey,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from tablehub.core.time_utils import utcnow
from tablehub.database import Base

# Money is stored as exact decimal cents
Money = Numeric(10, 2)


def new_id() -> str:
    return str(uuid.uuid4())


def _values(enum_cls: type[enum.Enum]) -> list[str]:
    return [member.value for member in enum_cls]


def _enum(enum_cls: type[enum.Enum]) -> Enum:
    """Store the enum's value (not its name) in a portable VARCHAR column."""
    return Enum(enum_cls, values_callable=_values, native_enum=False, length=32)


# =============================================================================
# ENUMS
# =============================================================================

class AccountRole(str, enum.Enum):
    """Role tag of an account; each role is its own email namespace."""
    VENDOR = "vendor"
    CUSTOMER = "customer"
    GENERAL_ADMIN = "general_admin"
    MULTI_VENDOR_ADMIN = "multi_vendor_admin"

    @property
    def is_admin(self) -> bool:
        return self in (AccountRole.GENERAL_ADMIN, AccountRole.MULTI_VENDOR_ADMIN)


class GrantStatus(str, enum.Enum):
    """Access grant lifecycle: pending -> active -> revoked (terminal)."""
    PENDING = "pending"
    ACTIVE = "active"
    REVOKED = "revoked"


class AccessType(str, enum.Enum):
    ADMIN_ACCESS = "admin_access"


class OrderStatus(str, enum.Enum):
    """Order status workflow."""
    PENDING = "pending"
    PREPARING = "preparing"
    READY = "ready"
    SERVED = "served"
    CANCELLED = "cancelled"


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    PAID = "paid"
    REFUNDED = "refunded"


class PaymentMethod(str, enum.Enum):
    CASH = "cash"
    CARD = "card"
    MOBILE = "mobile"


# =============================================================================
# CREDENTIALS
# =============================================================================

class CredentialMixin:
    """
    Password, lockout and password-reset state shared by every account.

    An account is locked while `lock_until` is in the future. Failed logins
    are counted in `login_attempts`; the count restarts once a lock has
    elapsed.
    """

    password_hash = Column(String(255), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    last_login = Column(DateTime, nullable=True)
    login_attempts = Column(Integer, default=0, nullable=False)
    lock_until = Column(DateTime, nullable=True)
    reset_password_token_hash = Column(String(64), nullable=True, index=True)
    reset_password_expires_at = Column(DateTime, nullable=True)

    def is_locked(self, now: Optional[datetime] = None) -> bool:
        now = now or utcnow()
        return self.lock_until is not None and self.lock_until > now

    def register_failed_login(
        self,
        max_attempts: int,
        lockout: timedelta,
        now: Optional[datetime] = None,
    ) -> bool:
        """
        Count a wrong password.

        Returns:
            True when this failure locked the account
        """
        now = now or utcnow()
        if self.lock_until is not None and self.lock_until <= now:
            # Previous lock has elapsed, start a fresh window
            self.login_attempts = 1
            self.lock_until = None
        else:
            self.login_attempts = (self.login_attempts or 0) + 1

        if self.login_attempts >= max_attempts and not self.is_locked(now):
            self.lock_until = now + lockout
            return True
        return False

    def reset_login_attempts(self, now: Optional[datetime] = None) -> None:
        """Successful login: clear lockout state and stamp last_login."""
        self.login_attempts = 0
        self.lock_until = None
        self.last_login = now or utcnow()

    def set_password_reset(self, token_hash: str, expires_at: datetime) -> None:
        self.reset_password_token_hash = token_hash
        self.reset_password_expires_at = expires_at

    def clear_password_reset(self) -> None:
        self.reset_password_token_hash = None
        self.reset_password_expires_at = None

    def password_reset_valid(self, now: Optional[datetime] = None) -> bool:
        now = now or utcnow()
        return (
            self.reset_password_token_hash is not None
            and self.reset_password_expires_at is not None
            and self.reset_password_expires_at > now
        )


# =============================================================================
# ACCOUNTS
# =============================================================================

class Account(CredentialMixin, Base):
    """
    Every login identity, tagged by role.

    Email is case-folded and unique within a role, so a vendor and a
    customer may share an address.
    """
    __tablename__ = "accounts"
    __table_args__ = (
        UniqueConstraint("role", "email", name="uq_accounts_role_email"),
    )

    id = Column(String(36), primary_key=True, default=new_id)
    role = Column(_enum(AccountRole), nullable=False, index=True)
    name = Column(String(120), nullable=False)
    email = Column(String(255), nullable=False, index=True)

    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    vendor_profile = relationship(
        "VendorProfile",
        back_populates="account",
        uselist=False,
        lazy="selectin",
        cascade="all, delete-orphan",
    )
    customer_profile = relationship(
        "CustomerProfile",
        back_populates="account",
        uselist=False,
        lazy="selectin",
        cascade="all, delete-orphan",
    )

    def __repr__(self):
        return f"<Account {self.id} - {self.role.value} - {self.email}>"


class VendorProfile(Base):
    """Restaurant details and billing settings (percent rates, 0-100)."""
    __tablename__ = "vendor_profiles"

    account_id = Column(String(36), ForeignKey("accounts.id"), primary_key=True)

    # =========================================================================
    # LOCATION & CONTACT
    # =========================================================================
    address = Column(String(255), nullable=True)
    city = Column(String(100), nullable=True)
    state = Column(String(100), nullable=True)
    zip_code = Column(String(20), nullable=True)
    phone = Column(String(30), nullable=True)

    # =========================================================================
    # LISTING
    # =========================================================================
    cuisine = Column(String(100), nullable=True, index=True)
    description = Column(Text, nullable=True)
    logo = Column(String(500), nullable=True)
    rating = Column(Float, default=0.0, nullable=False)

    # =========================================================================
    # BILLING SETTINGS
    # =========================================================================
    tax_rate = Column(Float, default=0.0, nullable=False)
    service_charge_rate = Column(Float, default=0.0, nullable=False)

    account = relationship("Account", back_populates="vendor_profile")


class CustomerProfile(Base):
    __tablename__ = "customer_profiles"

    account_id = Column(String(36), ForeignKey("accounts.id"), primary_key=True)
    first_name = Column(String(60), nullable=True)
    last_name = Column(String(60), nullable=True)
    phone = Column(String(30), nullable=True)

    account = relationship("Account", back_populates="customer_profile")


# =============================================================================
# ACCESS GRANTS
# =============================================================================

class AccessGrant(Base):
    """
    Delegates one vendor's data to a multi-vendor admin, addressed by email.

    There is no foreign key to the grantee: the invitation usually exists
    before the grantee has an account.
    """
    __tablename__ = "access_grants"
    __table_args__ = (
        UniqueConstraint("vendor_id", "user_email", name="uq_access_grants_vendor_email"),
    )

    id = Column(String(36), primary_key=True, default=new_id)
    vendor_id = Column(String(36), ForeignKey("accounts.id"), nullable=False, index=True)
    granted_by = Column(String(36), ForeignKey("accounts.id"), nullable=False)

    user_email = Column(String(255), nullable=False, index=True)
    user_name = Column(String(120), nullable=True)
    access_type = Column(_enum(AccessType), default=AccessType.ADMIN_ACCESS, nullable=False)
    status = Column(_enum(GrantStatus), default=GrantStatus.PENDING, nullable=False, index=True)

    # One-time invitation token, cleared once redeemed or accepted
    access_token = Column(String(64), nullable=True, unique=True, index=True)

    invited_at = Column(DateTime, default=utcnow, nullable=False)
    accepted_at = Column(DateTime, nullable=True)
    last_accessed_at = Column(DateTime, nullable=True)
    expires_at = Column(DateTime, nullable=True)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    vendor = relationship("Account", foreign_keys=[vendor_id], lazy="selectin")

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        now = now or utcnow()
        return self.expires_at is not None and self.expires_at <= now

    def is_live(self, now: Optional[datetime] = None) -> bool:
        return self.status == GrantStatus.ACTIVE and not self.is_expired(now)

    def __repr__(self):
        return f"<AccessGrant {self.id} - vendor {self.vendor_id} - {self.user_email} - {self.status.value}>"


# =============================================================================
# MENU
# =============================================================================

class MenuItem(Base):
    __tablename__ = "menu_items"

    id = Column(String(36), primary_key=True, default=new_id)
    vendor_id = Column(String(36), ForeignKey("accounts.id"), nullable=False, index=True)

    name = Column(String(120), nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Money, nullable=False)
    category = Column(String(60), nullable=True)
    available = Column(Boolean, default=True, nullable=False)
    preparation_time = Column(Integer, default=15, nullable=False)  # minutes

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    def __repr__(self):
        return f"<MenuItem {self.id} - {self.name} - {self.price}>"


# =============================================================================
# ORDERS
# =============================================================================

class Order(Base):
    """
    Main Order table.

    Invariant: total_amount == subtotal + tax_amount + service_charge_amount
    + tip_amount, each component already rounded to cents.
    """
    __tablename__ = "orders"

    id = Column(String(36), primary_key=True, default=new_id)
    vendor_id = Column(String(36), ForeignKey("accounts.id"), nullable=False, index=True)

    # =========================================================================
    # CUSTOMER INFORMATION
    # =========================================================================
    customer_id = Column(String(36), ForeignKey("accounts.id"), nullable=True, index=True)
    customer_email = Column(String(255), nullable=True)
    customer_phone = Column(String(30), nullable=True)
    table_number = Column(String(20), nullable=False)

    # =========================================================================
    # PRICING
    # =========================================================================
    subtotal = Column(Money, nullable=False, default=0)
    tax_rate = Column(Float, nullable=False, default=0.0)
    tax_amount = Column(Money, nullable=False, default=0)
    service_charge_rate = Column(Float, nullable=False, default=0.0)
    service_charge_amount = Column(Money, nullable=False, default=0)
    tip_percentage = Column(Float, nullable=True)
    tip_amount = Column(Money, nullable=False, default=0)
    total_amount = Column(Money, nullable=False, default=0)

    # =========================================================================
    # STATUS & PAYMENT
    # =========================================================================
    status = Column(_enum(OrderStatus), default=OrderStatus.PENDING, nullable=False, index=True)
    payment_status = Column(_enum(PaymentStatus), default=PaymentStatus.PENDING, nullable=False)
    payment_method = Column(_enum(PaymentMethod), default=PaymentMethod.CASH, nullable=False)

    # =========================================================================
    # KITCHEN
    # =========================================================================
    special_requests = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    estimated_preparation_time = Column(Integer, nullable=True)  # minutes
    actual_preparation_time = Column(Integer, nullable=True)  # minutes

    # =========================================================================
    # TIMESTAMPS
    # =========================================================================
    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    lines = relationship(
        "OrderLine",
        back_populates="order",
        order_by="OrderLine.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    vendor = relationship("Account", foreign_keys=[vendor_id], lazy="selectin")
    customer = relationship("Account", foreign_keys=[customer_id], lazy="selectin")

    @property
    def is_terminal(self) -> bool:
        return self.status in (OrderStatus.SERVED, OrderStatus.CANCELLED)

    def __repr__(self):
        return f"<Order {self.id} - table {self.table_number} - {self.status.value}>"


class OrderLine(Base):
    """One ordered item; name and price are snapshots of the menu item."""
    __tablename__ = "order_lines"

    id = Column(String(36), primary_key=True, default=new_id)
    order_id = Column(String(36), ForeignKey("orders.id"), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)

    menu_item_id = Column(String(36), ForeignKey("menu_items.id"), nullable=False)
    name = Column(String(120), nullable=False)
    price = Column(Money, nullable=False)
    quantity = Column(Integer, nullable=False, default=1)
    notes = Column(Text, nullable=True)

    order = relationship("Order", back_populates="lines")

    @property
    def line_total(self) -> Decimal:
        return Decimal(str(self.price)) * self.quantity
