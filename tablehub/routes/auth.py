"""
Authentication Routes

Registration and login per role, password reset (rate limited per client
address), and session endpoints for any authenticated caller.
"""

import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, status

from tablehub.core.errors import ValidationFailed
from tablehub.dependencies import (
    Principal,
    forgot_password_limit,
    get_credential_service,
    get_current_principal,
    get_grant_registry,
    get_token_service,
    reset_password_limit,
)
from tablehub.models import Account, AccountRole, CustomerProfile
from tablehub.schemas import (
    AccountOut,
    AdminRegisterRequest,
    AuthPayload,
    ChangePasswordRequest,
    CustomerRegisterRequest,
    ForgotPasswordRequest,
    LoginRequest,
    MultiVendorRegisterRequest,
    ProfileUpdateRequest,
    ResetPasswordRequest,
    VendorRegisterRequest,
    success_response,
)
from tablehub.services.access_grants import AccessGrantRegistry
from tablehub.services.credentials import VENDOR_PROFILE_FIELDS, CredentialService
from tablehub.services.tokens import TokenService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Auth"])


def _auth_payload(
    account: Account,
    tokens: TokenService,
    vendor_ids: Optional[set[str]] = None,
) -> AuthPayload:
    issued = tokens.issue_token(account)
    return AuthPayload(
        token=issued.token,
        expires_at=issued.expires_at,
        account=AccountOut.model_validate(account),
        vendor_ids=sorted(vendor_ids) if vendor_ids is not None else None,
    )


# =============================================================================
# VENDOR
# =============================================================================

@router.post("/vendor/register", status_code=status.HTTP_201_CREATED, summary="Register Vendor")
async def register_vendor(
    payload: VendorRegisterRequest,
    credentials: CredentialService = Depends(get_credential_service),
    tokens: TokenService = Depends(get_token_service),
) -> dict[str, Any]:
    account = await credentials.register(
        AccountRole.VENDOR,
        payload.name,
        payload.email,
        payload.password,
        profile=payload.model_dump(include=set(VENDOR_PROFILE_FIELDS)),
    )
    return success_response(_auth_payload(account, tokens), "Vendor registered successfully")


@router.post("/vendor/login", summary="Vendor Login")
async def login_vendor(
    payload: LoginRequest,
    credentials: CredentialService = Depends(get_credential_service),
    tokens: TokenService = Depends(get_token_service),
) -> dict[str, Any]:
    account = await credentials.authenticate(AccountRole.VENDOR, payload.email, payload.password)
    return success_response(_auth_payload(account, tokens), "Login successful")


# =============================================================================
# CUSTOMER
# =============================================================================

@router.post("/user/register", status_code=status.HTTP_201_CREATED, summary="Register Customer")
async def register_customer(
    payload: CustomerRegisterRequest,
    credentials: CredentialService = Depends(get_credential_service),
    tokens: TokenService = Depends(get_token_service),
) -> dict[str, Any]:
    account = await credentials.register(
        AccountRole.CUSTOMER,
        f"{payload.first_name} {payload.last_name}",
        payload.email,
        payload.password,
        profile={
            "first_name": payload.first_name,
            "last_name": payload.last_name,
            "phone": payload.phone,
        },
    )
    return success_response(_auth_payload(account, tokens), "Customer registered successfully")


@router.post("/user/login", summary="Customer Login")
async def login_customer(
    payload: LoginRequest,
    credentials: CredentialService = Depends(get_credential_service),
    tokens: TokenService = Depends(get_token_service),
) -> dict[str, Any]:
    account = await credentials.authenticate(AccountRole.CUSTOMER, payload.email, payload.password)
    return success_response(_auth_payload(account, tokens), "Login successful")


# =============================================================================
# ADMINS
# =============================================================================

@router.post("/admin/register", status_code=status.HTTP_201_CREATED, summary="Register General Admin")
async def register_admin(
    payload: AdminRegisterRequest,
    credentials: CredentialService = Depends(get_credential_service),
    tokens: TokenService = Depends(get_token_service),
) -> dict[str, Any]:
    account = await credentials.register_general_admin(
        payload.name, payload.email, payload.password, payload.admin_code
    )
    return success_response(_auth_payload(account, tokens), "Admin registered successfully")


@router.post("/admin/login", summary="General Admin Login")
async def login_admin(
    payload: LoginRequest,
    credentials: CredentialService = Depends(get_credential_service),
    tokens: TokenService = Depends(get_token_service),
) -> dict[str, Any]:
    account = await credentials.authenticate(AccountRole.GENERAL_ADMIN, payload.email, payload.password)
    return success_response(_auth_payload(account, tokens), "Login successful")


@router.post("/admin/multi-vendor-login", summary="Multi-Vendor Admin Login")
async def login_multi_vendor_admin(
    payload: LoginRequest,
    credentials: CredentialService = Depends(get_credential_service),
    registry: AccessGrantRegistry = Depends(get_grant_registry),
    tokens: TokenService = Depends(get_token_service),
) -> dict[str, Any]:
    """Login also activates any pending invitations for this email."""
    account = await credentials.authenticate(
        AccountRole.MULTI_VENDOR_ADMIN, payload.email, payload.password
    )
    vendor_ids = await registry.resolve_vendor_scope(account.email)
    return success_response(_auth_payload(account, tokens, vendor_ids), "Login successful")


@router.post(
    "/admin/multi-vendor-register",
    status_code=status.HTTP_201_CREATED,
    summary="Register Multi-Vendor Admin From Invitation",
)
async def register_multi_vendor_admin(
    payload: MultiVendorRegisterRequest,
    registry: AccessGrantRegistry = Depends(get_grant_registry),
    tokens: TokenService = Depends(get_token_service),
) -> dict[str, Any]:
    account, _ = await registry.redeem_token(
        payload.token, payload.email, payload.password, payload.name
    )
    vendor_ids = await registry.resolve_vendor_scope(account.email)
    return success_response(
        _auth_payload(account, tokens, vendor_ids),
        "Multi-vendor admin registered successfully",
    )


# =============================================================================
# PASSWORD RESET
# =============================================================================

async def _forgot(role: AccountRole, payload: ForgotPasswordRequest, credentials: CredentialService) -> dict[str, Any]:
    message = await credentials.initiate_password_reset(role, payload.email)
    return success_response(message=message)


async def _reset(role: AccountRole, payload: ResetPasswordRequest, credentials: CredentialService) -> dict[str, Any]:
    await credentials.complete_password_reset(role, payload.token, payload.password)
    return success_response(message="Password has been reset successfully. You can now log in.")


@router.post("/forgot-password", dependencies=[Depends(forgot_password_limit)], summary="Vendor Forgot Password")
async def forgot_password_vendor(
    payload: ForgotPasswordRequest,
    credentials: CredentialService = Depends(get_credential_service),
) -> dict[str, Any]:
    return await _forgot(AccountRole.VENDOR, payload, credentials)


@router.post("/customer/forgot-password", dependencies=[Depends(forgot_password_limit)], summary="Customer Forgot Password")
async def forgot_password_customer(
    payload: ForgotPasswordRequest,
    credentials: CredentialService = Depends(get_credential_service),
) -> dict[str, Any]:
    return await _forgot(AccountRole.CUSTOMER, payload, credentials)


@router.post("/admin/forgot-password", dependencies=[Depends(forgot_password_limit)], summary="Admin Forgot Password")
async def forgot_password_admin(
    payload: ForgotPasswordRequest,
    credentials: CredentialService = Depends(get_credential_service),
) -> dict[str, Any]:
    return await _forgot(AccountRole.GENERAL_ADMIN, payload, credentials)


@router.post("/reset-password", dependencies=[Depends(reset_password_limit)], summary="Vendor Reset Password")
async def reset_password_vendor(
    payload: ResetPasswordRequest,
    credentials: CredentialService = Depends(get_credential_service),
) -> dict[str, Any]:
    return await _reset(AccountRole.VENDOR, payload, credentials)


@router.post("/customer/reset-password", dependencies=[Depends(reset_password_limit)], summary="Customer Reset Password")
async def reset_password_customer(
    payload: ResetPasswordRequest,
    credentials: CredentialService = Depends(get_credential_service),
) -> dict[str, Any]:
    return await _reset(AccountRole.CUSTOMER, payload, credentials)


@router.post("/admin/reset-password", dependencies=[Depends(reset_password_limit)], summary="Admin Reset Password")
async def reset_password_admin(
    payload: ResetPasswordRequest,
    credentials: CredentialService = Depends(get_credential_service),
) -> dict[str, Any]:
    return await _reset(AccountRole.GENERAL_ADMIN, payload, credentials)


# =============================================================================
# SESSION
# =============================================================================

@router.get("/me", summary="Current Account")
async def get_me(principal: Principal = Depends(get_current_principal)) -> dict[str, Any]:
    return success_response(AccountOut.model_validate(principal.account))


@router.put("/me", summary="Update Current Account")
async def update_me(
    payload: ProfileUpdateRequest,
    principal: Principal = Depends(get_current_principal),
    credentials: CredentialService = Depends(get_credential_service),
) -> dict[str, Any]:
    account = principal.account
    changes = payload.model_dump(exclude_unset=True)
    if not changes:
        raise ValidationFailed("Nothing to update")

    if account.role == AccountRole.CUSTOMER:
        profile = account.customer_profile
        if profile is None:
            profile = CustomerProfile()
            account.customer_profile = profile
        for field in ("first_name", "last_name", "phone"):
            if field in changes:
                setattr(profile, field, changes[field])
        if "name" not in changes and ("first_name" in changes or "last_name" in changes):
            account.name = f"{profile.first_name or ''} {profile.last_name or ''}".strip() or account.name
    elif account.role == AccountRole.VENDOR and "phone" in changes and account.vendor_profile:
        account.vendor_profile.phone = changes["phone"]

    if changes.get("name"):
        account.name = changes["name"]

    await credentials.db.commit()
    return success_response(AccountOut.model_validate(account), "Profile updated successfully")


@router.put("/change-password", summary="Change Password")
async def change_password(
    payload: ChangePasswordRequest,
    principal: Principal = Depends(get_current_principal),
    credentials: CredentialService = Depends(get_credential_service),
) -> dict[str, Any]:
    await credentials.change_password(principal.account, payload.current_password, payload.new_password)
    return success_response(message="Password changed successfully")


@router.post("/logout", summary="Logout")
async def logout(
    principal: Principal = Depends(get_current_principal),
    tokens: TokenService = Depends(get_token_service),
) -> dict[str, Any]:
    """Revoke the presented token for the caller's role until it expires."""
    await tokens.logout(principal.claims)
    return success_response(message="Logged out successfully")


@router.post("/refresh", summary="Refresh Token")
async def refresh_token(
    principal: Principal = Depends(get_current_principal),
    tokens: TokenService = Depends(get_token_service),
) -> dict[str, Any]:
    issued = tokens.refresh(principal.account)
    return success_response(
        {"token": issued.token, "expiresAt": issued.expires_at.isoformat()},
        "Token refreshed",
    )
