"""
Vendor Self-Service Routes

Restaurant profile and billing settings. Rate changes apply to orders
placed afterwards; existing orders keep the rates they were created with.
"""

import logging
from typing import Any

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from tablehub.core.errors import ValidationFailed
from tablehub.database import get_db
from tablehub.dependencies import Principal, require_vendor
from tablehub.models import Account, VendorProfile
from tablehub.schemas import (
    AccountOut,
    BillingSettingsOut,
    BillingSettingsRequest,
    VendorProfileUpdateRequest,
    success_response,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/vendors", tags=["Vendors"])


def _profile(account: Account) -> VendorProfile:
    if account.vendor_profile is None:
        account.vendor_profile = VendorProfile()
    return account.vendor_profile


@router.get("/me", summary="My Restaurant")
async def get_my_restaurant(principal: Principal = Depends(require_vendor)) -> dict[str, Any]:
    return success_response(AccountOut.model_validate(principal.account))


@router.put("/me", summary="Update My Restaurant")
async def update_my_restaurant(
    payload: VendorProfileUpdateRequest,
    principal: Principal = Depends(require_vendor),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    account = principal.account
    changes = payload.model_dump(exclude_unset=True)
    if not changes:
        raise ValidationFailed("Nothing to update")

    name = changes.pop("name", None)
    if name:
        account.name = name
    profile = _profile(account)
    for field, value in changes.items():
        setattr(profile, field, value)

    await db.commit()
    logger.info(f"Vendor {account.id} updated profile: {sorted(changes)}")
    return success_response(AccountOut.model_validate(account), "Profile updated successfully")


@router.get("/me/billing-settings", summary="Billing Settings")
async def get_billing_settings(principal: Principal = Depends(require_vendor)) -> dict[str, Any]:
    profile = principal.account.vendor_profile
    return success_response(
        BillingSettingsOut(
            tax_rate=profile.tax_rate if profile else 0.0,
            service_charge_rate=profile.service_charge_rate if profile else 0.0,
        )
    )


@router.put("/me/billing-settings", summary="Update Billing Settings")
async def update_billing_settings(
    payload: BillingSettingsRequest,
    principal: Principal = Depends(require_vendor),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    if not changes:
        raise ValidationFailed("Provide taxRate and/or serviceChargeRate")

    profile = _profile(principal.account)
    for field, value in changes.items():
        setattr(profile, field, value)
    await db.commit()

    logger.info(
        f"Vendor {principal.account.id} billing: tax {profile.tax_rate}% "
        f"service {profile.service_charge_rate}%"
    )
    return success_response(
        BillingSettingsOut.model_validate(profile),
        "Billing settings updated successfully",
    )
