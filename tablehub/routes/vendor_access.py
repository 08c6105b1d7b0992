"""
Vendor Access Routes

Vendors invite multi-vendor admins to manage their restaurant; invitees
verify and accept. Invitation tokens are never returned by the API, only
sent by email.
"""

import logging
from typing import Any

from fastapi import APIRouter, Depends, status

from tablehub.core.errors import Forbidden
from tablehub.dependencies import (
    Principal,
    get_current_principal,
    get_grant_registry,
    require_roles,
    require_vendor,
)
from tablehub.models import AccountRole
from tablehub.schemas import (
    GrantCreateRequest,
    GrantOut,
    GrantUpdateRequest,
    success_response,
)
from tablehub.services.access_grants import AccessGrantRegistry
from tablehub.services.credentials import normalize_email

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/vendor-access", tags=["Vendor Access"])


@router.post("/grant", status_code=status.HTTP_201_CREATED, summary="Grant Access")
async def grant_access(
    payload: GrantCreateRequest,
    principal: Principal = Depends(require_vendor),
    registry: AccessGrantRegistry = Depends(get_grant_registry),
) -> dict[str, Any]:
    invitation = await registry.grant(
        principal.account,
        payload.user_email,
        user_name=payload.user_name,
        expires_at=payload.expires_at,
        notes=payload.notes,
    )
    extra = {"warnings": invitation.warnings} if invitation.warnings else {}
    return success_response(
        GrantOut.from_grant(invitation.grant),
        "Access granted. Invitation sent.",
        **extra,
    )


@router.get("/vendor/{vendor_id}", summary="List Vendor Grants")
async def list_vendor_grants(
    vendor_id: str,
    principal: Principal = Depends(require_vendor),
    registry: AccessGrantRegistry = Depends(get_grant_registry),
) -> dict[str, Any]:
    grants = await registry.list_for_vendor(vendor_id, principal.account.id)
    return success_response([GrantOut.from_grant(g) for g in grants])


@router.get("/user/{email}", summary="List Grants For User")
async def list_user_grants(
    email: str,
    principal: Principal = Depends(get_current_principal),
    registry: AccessGrantRegistry = Depends(get_grant_registry),
) -> dict[str, Any]:
    """Live grants for an email. Only general admins may look up someone else."""
    if (
        principal.role != AccountRole.GENERAL_ADMIN
        and normalize_email(email) != normalize_email(principal.account.email)
    ):
        raise Forbidden("You can only view your own access")
    grants = await registry.list_for_user(email)
    return success_response([GrantOut.from_grant(g) for g in grants])


@router.put("/{grant_id}", summary="Update Grant")
async def update_grant(
    grant_id: str,
    payload: GrantUpdateRequest,
    principal: Principal = Depends(require_vendor),
    registry: AccessGrantRegistry = Depends(get_grant_registry),
) -> dict[str, Any]:
    grant = await registry.update(
        grant_id, principal.account.id, status=payload.status, notes=payload.notes
    )
    return success_response(GrantOut.from_grant(grant), "Access updated successfully")


@router.delete("/{grant_id}", summary="Revoke Grant")
async def revoke_grant(
    grant_id: str,
    principal: Principal = Depends(require_vendor),
    registry: AccessGrantRegistry = Depends(get_grant_registry),
) -> dict[str, Any]:
    grant = await registry.revoke(grant_id, principal.account.id)
    return success_response(GrantOut.from_grant(grant), "Access revoked successfully")


@router.get("/verify/{token}", summary="Verify Invitation")
async def verify_invitation(
    token: str,
    registry: AccessGrantRegistry = Depends(get_grant_registry),
) -> dict[str, Any]:
    grant = await registry.verify_invitation(token)
    return success_response(GrantOut.from_grant(grant), "Invitation is valid")


@router.post("/{grant_id}/accept", summary="Accept Invitation")
async def accept_invitation(
    grant_id: str,
    principal: Principal = Depends(require_roles(AccountRole.MULTI_VENDOR_ADMIN)),
    registry: AccessGrantRegistry = Depends(get_grant_registry),
) -> dict[str, Any]:
    grant = await registry.accept(grant_id, principal.account.email)
    return success_response(GrantOut.from_grant(grant), "Access accepted successfully")
