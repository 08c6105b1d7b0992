"""
Pydantic Schemas for Request/Response Validation

Bodies travel as camelCase JSON; snake_case keys are accepted on input.
Every response is wrapped in the envelope:

    {"success": bool, "message"?: str, "data"?: object, "errors"?: [str]}

Version: 1.0.0
"""

from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Annotated, Any, Optional, List

from pydantic import (
    AliasChoices,
    BaseModel,
    BeforeValidator,
    ConfigDict,
    EmailStr,
    Field,
    PlainSerializer,
)
from pydantic.alias_generators import to_camel

from tablehub.models import (
    AccessType,
    AccountRole,
    GrantStatus,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
)
from tablehub.core.money import to_cents


def _cents(value: Any) -> Any:
    if value is None or isinstance(value, bool):
        return value
    try:
        return to_cents(value)
    except (InvalidOperation, TypeError, ValueError):
        return value


# Decimal cents in Python, a plain number in JSON
Money = Annotated[
    Decimal,
    BeforeValidator(_cents),
    PlainSerializer(float, return_type=float, when_used="json"),
]


class CamelModel(BaseModel):
    """Base for every schema: camelCase aliases, ORM attribute reading."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )

    def dump(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


# =============================================================================
# ENVELOPE
# =============================================================================

def success_response(
    data: Any = None,
    message: Optional[str] = None,
    **extra: Any,
) -> dict[str, Any]:
    """Build a success envelope; pydantic models are dumped with camelCase keys."""
    body: dict[str, Any] = {"success": True}
    if message:
        body["message"] = message
    if data is not None:
        body["data"] = _dump(data)
    body.update(extra)
    return body


def error_body(message: str, errors: Optional[list[str]] = None) -> dict[str, Any]:
    body: dict[str, Any] = {"success": False, "message": message}
    if errors:
        body["errors"] = errors
    return body


def _dump(value: Any) -> Any:
    if isinstance(value, CamelModel):
        return value.dump()
    if isinstance(value, list):
        return [_dump(v) for v in value]
    if isinstance(value, dict):
        return {k: _dump(v) for k, v in value.items()}
    return value


def round_figures(value: Any, ndigits: int = 2) -> Any:
    """Round every float in a nested stats payload."""
    if isinstance(value, bool):
        return value
    if isinstance(value, float):
        return round(value, ndigits)
    if isinstance(value, list):
        return [round_figures(v, ndigits) for v in value]
    if isinstance(value, dict):
        return {k: round_figures(v, ndigits) for k, v in value.items()}
    return value


# =============================================================================
# AUTH REQUESTS
# =============================================================================

class LoginRequest(CamelModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class VendorRegisterRequest(CamelModel):
    name: str = Field(..., min_length=2, max_length=120, examples=["Bella Napoli"])
    email: EmailStr
    password: str = Field(..., min_length=6)
    address: Optional[str] = Field(None, max_length=255, validation_alias=AliasChoices("address", "location"))
    city: Optional[str] = Field(None, max_length=100)
    state: Optional[str] = Field(None, max_length=100)
    zip_code: Optional[str] = Field(None, max_length=20)
    phone: Optional[str] = Field(None, max_length=30)
    cuisine: Optional[str] = Field(None, max_length=100, examples=["Italian"])
    description: Optional[str] = None
    logo: Optional[str] = Field(None, max_length=500)


class CustomerRegisterRequest(CamelModel):
    first_name: str = Field(..., min_length=1, max_length=60)
    last_name: str = Field(..., min_length=1, max_length=60)
    email: EmailStr
    password: str = Field(..., min_length=6)
    phone: Optional[str] = Field(None, max_length=30)


class AdminRegisterRequest(CamelModel):
    name: str = Field(..., min_length=2, max_length=120)
    email: EmailStr
    password: str = Field(..., min_length=6)
    admin_code: str


class MultiVendorRegisterRequest(CamelModel):
    token: str = Field(..., min_length=1)
    email: EmailStr
    password: str = Field(..., min_length=6)
    name: str = Field(..., min_length=2, max_length=120)


class ForgotPasswordRequest(CamelModel):
    email: EmailStr


class ResetPasswordRequest(CamelModel):
    token: str = Field(..., min_length=1)
    # Length is checked by the credential service so the message is specific
    password: str


class ChangePasswordRequest(CamelModel):
    current_password: str
    new_password: str = Field(..., min_length=6)


class ProfileUpdateRequest(CamelModel):
    name: Optional[str] = Field(None, min_length=2, max_length=120)
    first_name: Optional[str] = Field(None, max_length=60)
    last_name: Optional[str] = Field(None, max_length=60)
    phone: Optional[str] = Field(None, max_length=30)


# =============================================================================
# ACCOUNT RESPONSES
# =============================================================================

class VendorProfileOut(CamelModel):
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    phone: Optional[str] = None
    cuisine: Optional[str] = None
    description: Optional[str] = None
    logo: Optional[str] = None
    rating: float = 0.0
    tax_rate: float = 0.0
    service_charge_rate: float = 0.0


class CustomerProfileOut(CamelModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None


class AccountOut(CamelModel):
    id: str
    role: AccountRole
    name: str
    email: str
    is_active: bool
    last_login: Optional[datetime] = None
    created_at: datetime
    vendor_profile: Optional[VendorProfileOut] = None
    customer_profile: Optional[CustomerProfileOut] = None


class AuthPayload(CamelModel):
    token: str
    expires_at: datetime
    account: AccountOut
    vendor_ids: Optional[List[str]] = None


# =============================================================================
# VENDOR
# =============================================================================

class VendorProfileUpdateRequest(CamelModel):
    name: Optional[str] = Field(None, min_length=2, max_length=120)
    address: Optional[str] = Field(None, max_length=255)
    city: Optional[str] = Field(None, max_length=100)
    state: Optional[str] = Field(None, max_length=100)
    zip_code: Optional[str] = Field(None, max_length=20)
    phone: Optional[str] = Field(None, max_length=30)
    cuisine: Optional[str] = Field(None, max_length=100)
    description: Optional[str] = None
    logo: Optional[str] = Field(None, max_length=500)


class BillingSettingsRequest(CamelModel):
    tax_rate: Optional[float] = Field(None, ge=0, le=100, examples=[8.5])
    service_charge_rate: Optional[float] = Field(None, ge=0, le=100, examples=[10])


class BillingSettingsOut(CamelModel):
    tax_rate: float
    service_charge_rate: float


# =============================================================================
# ACCESS GRANTS
# =============================================================================

class GrantCreateRequest(CamelModel):
    user_email: EmailStr
    user_name: Optional[str] = Field(None, max_length=120)
    expires_at: Optional[datetime] = None
    notes: Optional[str] = None


class GrantUpdateRequest(CamelModel):
    status: Optional[GrantStatus] = None
    notes: Optional[str] = None


class GrantOut(CamelModel):
    id: str
    vendor_id: str
    vendor_name: Optional[str] = None
    granted_by: str
    user_email: str
    user_name: Optional[str] = None
    access_type: AccessType
    status: GrantStatus
    invited_at: datetime
    accepted_at: Optional[datetime] = None
    last_accessed_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    notes: Optional[str] = None

    @classmethod
    def from_grant(cls, grant) -> "GrantOut":
        out = cls.model_validate(grant)
        if grant.vendor is not None:
            out.vendor_name = grant.vendor.name
        return out


# =============================================================================
# MENU
# =============================================================================

class MenuItemCreateRequest(CamelModel):
    name: str = Field(..., min_length=1, max_length=120, examples=["Pizza Margherita"])
    description: Optional[str] = None
    price: Money = Field(..., ge=0, examples=[14.99])
    category: Optional[str] = Field(None, max_length=60)
    available: bool = True
    preparation_time: int = Field(default=15, ge=0)


class MenuItemUpdateRequest(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=120)
    description: Optional[str] = None
    price: Optional[Money] = Field(None, ge=0)
    category: Optional[str] = Field(None, max_length=60)
    available: Optional[bool] = None
    preparation_time: Optional[int] = Field(None, ge=0)


class MenuItemOut(CamelModel):
    id: str
    vendor_id: str
    name: str
    description: Optional[str] = None
    price: Money
    category: Optional[str] = None
    available: bool
    preparation_time: int
    created_at: datetime


# =============================================================================
# ORDERS
# =============================================================================

class OrderLineRequest(CamelModel):
    """Single item in an order."""
    menu_item_id: str = Field(..., min_length=1)
    quantity: int = Field(default=1, ge=1, le=99, examples=[2])
    notes: Optional[str] = Field(None, max_length=200)


class OrderCreateRequest(CamelModel):
    """Request schema for creating a new order."""
    table_number: str = Field(default="", max_length=20, examples=["4"])
    items: List[OrderLineRequest] = Field(default_factory=list)
    payment_method: PaymentMethod = PaymentMethod.CASH
    tip_amount: Optional[Money] = Field(None, ge=0)
    tip_percentage: Optional[float] = Field(None, ge=0, le=100)
    notes: Optional[str] = Field(None, max_length=500)
    special_requests: Optional[str] = Field(None, max_length=500)
    customer_phone: Optional[str] = Field(None, max_length=30)
    customer_email: Optional[EmailStr] = None


class OrderUpdateRequest(CamelModel):
    items: Optional[List[OrderLineRequest]] = None
    notes: Optional[str] = Field(None, max_length=500)
    estimated_preparation_time: Optional[int] = Field(None, ge=0)


class StatusUpdateRequest(CamelModel):
    # Plain string: unknown values are reported as an invalid transition
    status: str


class PaymentStatusUpdateRequest(CamelModel):
    payment_status: str


class OrderLineOut(CamelModel):
    menu_item_id: str
    name: str
    price: Money
    quantity: int
    notes: Optional[str] = None
    line_total: Money


class OrderOut(CamelModel):
    id: str
    vendor_id: str
    customer_id: Optional[str] = None
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None
    table_number: str
    items: List[OrderLineOut] = Field(
        default_factory=list,
        validation_alias=AliasChoices("lines", "items"),
    )
    subtotal: Money
    tax_rate: float
    tax_amount: Money
    service_charge_rate: float
    service_charge_amount: Money
    tip_percentage: Optional[float] = None
    tip_amount: Money
    total_amount: Money
    status: OrderStatus
    payment_status: PaymentStatus
    payment_method: PaymentMethod
    special_requests: Optional[str] = None
    notes: Optional[str] = None
    estimated_preparation_time: Optional[int] = None
    actual_preparation_time: Optional[int] = None
    created_at: datetime
    updated_at: datetime


class OrderPage(CamelModel):
    orders: List[OrderOut]
    total: int
    page: int
    limit: int
    pages: int


# =============================================================================
# HEALTH
# =============================================================================

class HealthResponse(CamelModel):
    """Health check response."""
    status: str
    database: str
    cache: str
    notifications: str
    timestamp: datetime
