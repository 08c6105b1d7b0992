"""
Order Engine

Creates orders from menu references, keeps their totals consistent and
moves them through the status machine:

    pending -> preparing -> ready -> served
    pending | preparing | ready -> cancelled

Forward skips are allowed, backward moves are not, served and cancelled
are terminal. Notifications are handed to the dispatcher and never fail
the operation that triggered them.
"""

import logging
import math
from datetime import datetime, timedelta
from typing import Any, Iterable, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from tablehub.core.config import Settings
from tablehub.core.errors import (
    ItemUnavailable,
    InvalidTransition,
    NotFoundError,
    ValidationFailed,
)
from tablehub.core.time_utils import utcnow
from tablehub.models import (
    Account,
    AccountRole,
    MenuItem,
    Order,
    OrderLine,
    OrderStatus,
    PaymentStatus,
)
from tablehub.schemas import OrderCreateRequest, OrderLineRequest
from tablehub.services.notifications import NotificationDispatcher
from tablehub.services.pricing import (
    SettlementPolicy,
    apply_totals,
    calculate_order_totals,
    check_transition,
    no_settlement,
    parse_order_status,
    parse_payment_status,
    served_implies_paid,
)
from tablehub.services.scope import CallerScope

logger = logging.getLogger(__name__)


class OrderEngine:
    def __init__(
        self,
        db: AsyncSession,
        settings: Settings,
        dispatcher: NotificationDispatcher,
        settlement_policy: Optional[SettlementPolicy] = None,
    ):
        self.db = db
        self.settings = settings
        self.dispatcher = dispatcher
        if settlement_policy is None:
            settlement_policy = served_implies_paid if settings.serve_marks_paid else no_settlement
        self.settlement_policy = settlement_policy

    # =========================================================================
    # HELPERS
    # =========================================================================

    async def _load_menu_items(self, lines: Iterable[OrderLineRequest]) -> dict[str, MenuItem]:
        ids = {line.menu_item_id for line in lines}
        result = await self.db.execute(select(MenuItem).where(MenuItem.id.in_(ids)))
        return {item.id: item for item in result.scalars().all()}

    async def _get_vendor(self, vendor_id: str) -> Account:
        vendor = await self.db.get(Account, vendor_id)
        if vendor is None or vendor.role != AccountRole.VENDOR or not vendor.is_active:
            raise NotFoundError("Restaurant not found")
        return vendor

    async def _get_vendor_order(self, order_id: str, vendor_id: str) -> Order:
        """Another vendor's order is reported as missing."""
        result = await self.db.execute(
            select(Order).where(Order.id == order_id, Order.vendor_id == vendor_id)
        )
        order = result.scalar_one_or_none()
        if order is None:
            raise NotFoundError("Order not found or access denied")
        return order

    @staticmethod
    def _build_lines(requests: list[OrderLineRequest], items: dict[str, MenuItem]) -> list[OrderLine]:
        return [
            OrderLine(
                position=position,
                menu_item_id=request.menu_item_id,
                name=items[request.menu_item_id].name,
                price=items[request.menu_item_id].price,
                quantity=request.quantity,
                notes=request.notes,
            )
            for position, request in enumerate(requests)
        ]

    def _notification_payload(self, order: Order, to: Optional[str]) -> dict[str, Any]:
        return {
            "to": to,
            "order_id": order.id,
            "vendor_name": order.vendor.name if order.vendor else "",
            "table_number": order.table_number,
            "items": [
                {
                    "name": line.name,
                    "quantity": line.quantity,
                    "notes": line.notes,
                    "line_total": float(line.line_total),
                }
                for line in order.lines
            ],
            "subtotal": float(order.subtotal),
            "tax_amount": float(order.tax_amount),
            "service_charge_amount": float(order.service_charge_amount),
            "tip_amount": float(order.tip_amount),
            "total_amount": float(order.total_amount),
            "payment_method": order.payment_method.value,
            "special_requests": order.special_requests,
            "estimated_preparation_time": order.estimated_preparation_time,
            "actual_preparation_time": order.actual_preparation_time,
            "dashboard_url": f"{self.settings.frontend_url}/orders",
        }

    @staticmethod
    def _customer_address(order: Order) -> Optional[str]:
        if order.customer is not None:
            return order.customer.email
        return order.customer_email or None

    # =========================================================================
    # CREATE
    # =========================================================================

    async def create_order(self, payload: OrderCreateRequest, customer: Optional[Account] = None) -> Order:
        """
        Place an order from menu item references.

        Raises:
            ValidationFailed: blank table number, no items, or items from
                more than one vendor
            NotFoundError: unknown menu item or vendor
            ItemUnavailable: a menu item is switched off
        """
        table_number = (payload.table_number or "").strip()
        if not table_number or not payload.items:
            raise ValidationFailed("Table number and items are required")

        items = await self._load_menu_items(payload.items)
        for request in payload.items:
            item = items.get(request.menu_item_id)
            if item is None:
                raise NotFoundError(f"Menu item with ID {request.menu_item_id} not found")
            if not item.available:
                raise ItemUnavailable(f"Menu item {item.name} is not available")

        vendor_id = items[payload.items[0].menu_item_id].vendor_id
        if any(item.vendor_id != vendor_id for item in items.values()):
            raise ValidationFailed("All items in an order must come from the same restaurant")

        vendor = await self._get_vendor(vendor_id)
        profile = vendor.vendor_profile
        tax_rate = profile.tax_rate if profile else 0.0
        service_charge_rate = profile.service_charge_rate if profile else 0.0

        lines = self._build_lines(payload.items, items)
        totals = calculate_order_totals(
            ((line.price, line.quantity) for line in lines),
            tax_rate=tax_rate,
            service_charge_rate=service_charge_rate,
            tip_amount=payload.tip_amount,
            tip_percentage=payload.tip_percentage,
        )

        now = utcnow()
        order = Order(
            vendor=vendor,
            customer=customer,
            customer_email=payload.customer_email or (customer.email if customer else None),
            customer_phone=payload.customer_phone,
            table_number=table_number,
            lines=lines,
            tax_rate=tax_rate,
            service_charge_rate=service_charge_rate,
            tip_percentage=payload.tip_percentage,
            status=OrderStatus.PENDING,
            payment_status=PaymentStatus.PENDING,
            payment_method=payload.payment_method,
            special_requests=payload.special_requests,
            notes=payload.notes,
            estimated_preparation_time=max(items[line.menu_item_id].preparation_time for line in lines),
            actual_preparation_time=None,
            created_at=now,
            updated_at=now,
        )
        apply_totals(order, totals)

        self.db.add(order)
        await self.db.commit()

        logger.info(
            f"Order {order.id} created for vendor {vendor_id}, table {table_number}, "
            f"total {order.total_amount:.2f}"
        )

        self.dispatcher.submit("new_order_alert", self._notification_payload(order, vendor.email))
        customer_email = self._customer_address(order)
        if customer_email:
            self.dispatcher.submit(
                "order_confirmation", self._notification_payload(order, customer_email)
            )
        return order

    # =========================================================================
    # READ
    # =========================================================================

    async def get_order(self, order_id: str) -> Order:
        order = await self.db.get(Order, order_id)
        if order is None:
            raise NotFoundError("Order not found")
        return order

    async def list_orders(
        self,
        scope: CallerScope,
        status: Optional[str] = None,
        table_number: Optional[str] = None,
        customer_id: Optional[str] = None,
        vendor_id: Optional[str] = None,
        page: int = 1,
        limit: int = 50,
    ) -> tuple[list[Order], int]:
        """
        Orders visible to the caller, newest first.

        Returns:
            (orders on this page, total matching)
        """
        conditions = []
        if scope.vendor_ids is not None:
            if not scope.vendor_ids:
                return [], 0
            conditions.append(Order.vendor_id.in_(scope.vendor_ids))
        if vendor_id:
            if not scope.allows(vendor_id):
                return [], 0
            conditions.append(Order.vendor_id == vendor_id)
        if status:
            conditions.append(Order.status == parse_order_status(status))
        if table_number:
            conditions.append(Order.table_number == table_number)
        if customer_id:
            conditions.append(Order.customer_id == customer_id)

        total = (
            await self.db.execute(select(func.count(Order.id)).where(*conditions))
        ).scalar() or 0

        result = await self.db.execute(
            select(Order)
            .where(*conditions)
            .order_by(Order.created_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return list(result.scalars().all()), total

    async def list_today(self, scope: CallerScope) -> list[Order]:
        """Orders placed since midnight UTC within the caller's scope."""
        start = utcnow().replace(hour=0, minute=0, second=0, microsecond=0)
        conditions = [
            Order.created_at >= start,
            Order.created_at < start + timedelta(days=1),
        ]
        if scope.vendor_ids is not None:
            if not scope.vendor_ids:
                return []
            conditions.append(Order.vendor_id.in_(scope.vendor_ids))

        result = await self.db.execute(
            select(Order).where(*conditions).order_by(Order.created_at.desc())
        )
        return list(result.scalars().all())

    async def list_for_customer(self, customer_id: str) -> list[Order]:
        result = await self.db.execute(
            select(Order)
            .where(Order.customer_id == customer_id)
            .order_by(Order.created_at.desc())
        )
        return list(result.scalars().all())

    # =========================================================================
    # STATUS
    # =========================================================================

    async def update_order_status(self, order_id: str, vendor_id: str, new_status: str) -> Order:
        """
        Move an order through the status machine.

        `ready` records the preparation time and tells the customer;
        `served` runs the settlement policy.

        Raises:
            NotFoundError: no such order for this vendor
            InvalidTransition: unknown status, backward move or terminal order
        """
        order = await self._get_vendor_order(order_id, vendor_id)
        target = parse_order_status(new_status)

        if not check_transition(order.status, target):
            return order

        now = utcnow()
        order.status = target
        if target == OrderStatus.READY:
            order.actual_preparation_time = self._minutes_since(order.created_at, now)
        elif target == OrderStatus.SERVED:
            self.settlement_policy(order)
        order.updated_at = now

        await self.db.commit()
        logger.info(f"Order {order.id} -> {target.value}")

        if target == OrderStatus.READY:
            customer_email = self._customer_address(order)
            if customer_email:
                self.dispatcher.submit("order_ready", self._notification_payload(order, customer_email))
        return order

    async def update_payment_status(self, order_id: str, vendor_id: str, new_status: str) -> Order:
        order = await self._get_vendor_order(order_id, vendor_id)
        order.payment_status = parse_payment_status(new_status)
        order.updated_at = utcnow()
        await self.db.commit()
        logger.info(f"Order {order.id} payment -> {order.payment_status.value}")
        return order

    @staticmethod
    def _minutes_since(start: datetime, now: datetime) -> int:
        return max(0, math.floor((now - start).total_seconds() / 60))

    # =========================================================================
    # EDIT / DELETE
    # =========================================================================

    async def recalculate_on_edit(
        self,
        order_id: str,
        vendor_id: str,
        lines: Optional[list[OrderLineRequest]] = None,
        notes: Optional[str] = None,
        estimated_preparation_time: Optional[int] = None,
    ) -> Order:
        """
        Edit an open order.

        New lines take the menu's current name and price (availability is
        not rechecked). The order keeps the tax and service rates it was
        created with; a percentage tip follows the new subtotal.

        Raises:
            NotFoundError: no such order for this vendor, or unknown item
            InvalidTransition: order already served or cancelled
            ValidationFailed: empty line list or another vendor's item
        """
        order = await self._get_vendor_order(order_id, vendor_id)
        if order.is_terminal:
            raise InvalidTransition(f"Cannot edit an order that is {order.status.value}")

        if lines is not None:
            if not lines:
                raise ValidationFailed("An order needs at least one item")
            items = await self._load_menu_items(lines)
            for request in lines:
                item = items.get(request.menu_item_id)
                if item is None:
                    raise NotFoundError(f"Menu item with ID {request.menu_item_id} not found")
                if item.vendor_id != order.vendor_id:
                    raise ValidationFailed("All items in an order must come from the same restaurant")

            order.lines = self._build_lines(lines, items)
            totals = calculate_order_totals(
                ((line.price, line.quantity) for line in order.lines),
                tax_rate=order.tax_rate,
                service_charge_rate=order.service_charge_rate,
                tip_amount=order.tip_amount,
                tip_percentage=order.tip_percentage,
            )
            apply_totals(order, totals)

        if notes is not None:
            order.notes = notes
        if estimated_preparation_time is not None:
            order.estimated_preparation_time = estimated_preparation_time
        order.updated_at = utcnow()

        await self.db.commit()
        logger.info(f"Order {order.id} edited, total {order.total_amount:.2f}")
        return order

    async def delete_order(self, order_id: str, vendor_id: str) -> None:
        order = await self._get_vendor_order(order_id, vendor_id)
        await self.db.delete(order)
        await self.db.commit()
        logger.info(f"Order {order_id} deleted by vendor {vendor_id}")
