"""
Menu Routes

Vendors maintain their own menu; anyone can browse a restaurant's menu.
"""

import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tablehub.core.errors import NotFoundError, ValidationFailed
from tablehub.core.time_utils import utcnow
from tablehub.database import get_db
from tablehub.dependencies import Principal, require_vendor
from tablehub.models import MenuItem
from tablehub.schemas import (
    MenuItemCreateRequest,
    MenuItemOut,
    MenuItemUpdateRequest,
    success_response,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/menu", tags=["Menu"])


async def _get_item(db: AsyncSession, item_id: str) -> MenuItem:
    item = await db.get(MenuItem, item_id)
    if item is None:
        raise NotFoundError("Menu item not found")
    return item


@router.post("", status_code=status.HTTP_201_CREATED, summary="Add Menu Item")
async def create_menu_item(
    payload: MenuItemCreateRequest,
    principal: Principal = Depends(require_vendor),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    now = utcnow()
    item = MenuItem(
        vendor_id=principal.account.id,
        created_at=now,
        updated_at=now,
        **payload.model_dump(),
    )
    db.add(item)
    await db.commit()
    logger.info(f"Vendor {principal.account.id} added menu item {item.id} ({item.name})")
    return success_response(MenuItemOut.model_validate(item), "Menu item created successfully")


@router.patch("/{item_id}", summary="Update Menu Item")
async def update_menu_item(
    item_id: str,
    payload: MenuItemUpdateRequest,
    principal: Principal = Depends(require_vendor),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """Price changes never touch orders already placed."""
    item = await _get_item(db, item_id)
    if item.vendor_id != principal.account.id:
        # Another vendor's item is reported as missing
        raise NotFoundError("Menu item not found")

    changes = payload.model_dump(exclude_unset=True)
    if not changes:
        raise ValidationFailed("Nothing to update")
    for field, value in changes.items():
        if value is None and field in ("name", "price", "available", "preparation_time"):
            raise ValidationFailed(f"{field} cannot be empty")
        setattr(item, field, value)
    item.updated_at = utcnow()

    await db.commit()
    return success_response(MenuItemOut.model_validate(item), "Menu item updated successfully")


@router.get("/vendor/{vendor_id}", summary="Vendor Menu")
async def list_vendor_menu(
    vendor_id: str,
    available: Optional[bool] = Query(None),
    category: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    query = select(MenuItem).where(MenuItem.vendor_id == vendor_id)
    if available is not None:
        query = query.where(MenuItem.available.is_(available))
    if category:
        query = query.where(MenuItem.category == category)

    result = await db.execute(query.order_by(MenuItem.category, MenuItem.name))
    items = result.scalars().all()
    return success_response([MenuItemOut.model_validate(i) for i in items])


@router.get("/{item_id}", summary="Get Menu Item")
async def get_menu_item(
    item_id: str,
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    item = await _get_item(db, item_id)
    return success_response(MenuItemOut.model_validate(item))
