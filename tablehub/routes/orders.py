"""
Order Routes

Public order placement and lookup, scoped listing for vendors and
admins, and vendor-only edits and status changes.
"""

import logging
import math
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query, status

from tablehub.dependencies import (
    Principal,
    get_caller_scope,
    get_optional_principal,
    get_order_engine,
    require_customer,
    require_vendor,
    require_vendor_or_admin,
)
from tablehub.models import AccountRole
from tablehub.schemas import (
    OrderCreateRequest,
    OrderOut,
    OrderPage,
    OrderUpdateRequest,
    PaymentStatusUpdateRequest,
    StatusUpdateRequest,
    success_response,
)
from tablehub.services.orders import OrderEngine
from tablehub.services.scope import CallerScope

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/orders", tags=["Orders"])


# =============================================================================
# PLACE & READ
# =============================================================================

@router.post("", status_code=status.HTTP_201_CREATED, summary="Place Order")
async def create_order(
    payload: OrderCreateRequest,
    principal: Optional[Principal] = Depends(get_optional_principal),
    engine: OrderEngine = Depends(get_order_engine),
) -> dict[str, Any]:
    """
    Place an order for a table. Anonymous callers are welcome; a signed-in
    customer has the order linked to their account.
    """
    customer = None
    if principal is not None and principal.role == AccountRole.CUSTOMER:
        customer = principal.account
    order = await engine.create_order(payload, customer=customer)
    return success_response(OrderOut.model_validate(order), "Order created successfully")


@router.get("", summary="List Orders")
async def list_orders(
    status_filter: Optional[str] = Query(None, alias="status"),
    table_number: Optional[str] = Query(None, alias="tableNumber"),
    customer_id: Optional[str] = Query(None, alias="customerId"),
    vendor_id: Optional[str] = Query(None, alias="vendorId"),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    _: Principal = Depends(require_vendor_or_admin),
    scope: CallerScope = Depends(get_caller_scope),
    engine: OrderEngine = Depends(get_order_engine),
) -> dict[str, Any]:
    orders, total = await engine.list_orders(
        scope,
        status=status_filter,
        table_number=table_number,
        customer_id=customer_id,
        vendor_id=vendor_id,
        page=page,
        limit=limit,
    )
    return success_response(
        OrderPage(
            orders=[OrderOut.model_validate(o) for o in orders],
            total=total,
            page=page,
            limit=limit,
            pages=math.ceil(total / limit) if total else 0,
        )
    )


@router.get("/today", summary="Today's Orders")
async def list_today(
    _: Principal = Depends(require_vendor_or_admin),
    scope: CallerScope = Depends(get_caller_scope),
    engine: OrderEngine = Depends(get_order_engine),
) -> dict[str, Any]:
    orders = await engine.list_today(scope)
    return success_response([OrderOut.model_validate(o) for o in orders])


@router.get("/mine", summary="My Orders")
async def list_my_orders(
    principal: Principal = Depends(require_customer),
    engine: OrderEngine = Depends(get_order_engine),
) -> dict[str, Any]:
    orders = await engine.list_for_customer(principal.account.id)
    return success_response([OrderOut.model_validate(o) for o in orders])


@router.get("/{order_id}", summary="Get Order")
async def get_order(
    order_id: str,
    engine: OrderEngine = Depends(get_order_engine),
) -> dict[str, Any]:
    """Public so a table can follow its order by id."""
    order = await engine.get_order(order_id)
    return success_response(OrderOut.model_validate(order))


# =============================================================================
# VENDOR CHANGES
# =============================================================================

@router.put("/{order_id}", summary="Edit Order")
async def update_order(
    order_id: str,
    payload: OrderUpdateRequest,
    principal: Principal = Depends(require_vendor),
    engine: OrderEngine = Depends(get_order_engine),
) -> dict[str, Any]:
    order = await engine.recalculate_on_edit(
        order_id,
        principal.account.id,
        lines=payload.items,
        notes=payload.notes,
        estimated_preparation_time=payload.estimated_preparation_time,
    )
    return success_response(OrderOut.model_validate(order), "Order updated successfully")


@router.delete("/{order_id}", summary="Delete Order")
async def delete_order(
    order_id: str,
    principal: Principal = Depends(require_vendor),
    engine: OrderEngine = Depends(get_order_engine),
) -> dict[str, Any]:
    await engine.delete_order(order_id, principal.account.id)
    return success_response(message="Order deleted successfully")


@router.patch("/{order_id}/status", summary="Update Order Status")
async def update_order_status(
    order_id: str,
    payload: StatusUpdateRequest,
    principal: Principal = Depends(require_vendor),
    engine: OrderEngine = Depends(get_order_engine),
) -> dict[str, Any]:
    order = await engine.update_order_status(order_id, principal.account.id, payload.status)
    return success_response(OrderOut.model_validate(order), "Order status updated successfully")


@router.patch("/{order_id}/payment-status", summary="Update Payment Status")
async def update_payment_status(
    order_id: str,
    payload: PaymentStatusUpdateRequest,
    principal: Principal = Depends(require_vendor),
    engine: OrderEngine = Depends(get_order_engine),
) -> dict[str, Any]:
    order = await engine.update_payment_status(order_id, principal.account.id, payload.payment_status)
    return success_response(OrderOut.model_validate(order), "Payment status updated successfully")
