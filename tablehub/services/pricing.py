"""
Order Pricing and Status Rules

Pure functions shared by the order engine:
- Totals (subtotal, tax, service charge, tip, total)
- The order status state machine
- Settlement policies applied on transitions
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Callable, Iterable, Optional

from tablehub.core.errors import InvalidTransition, ValidationFailed
from tablehub.core.money import ZERO, Number, to_cents, to_decimal
from tablehub.models import Order, OrderStatus, PaymentStatus


def percent_of(amount: Number, rate: Optional[Number]) -> Decimal:
    return to_cents(to_decimal(amount) * to_decimal(rate or 0) / 100)


# =============================================================================
# TOTALS
# =============================================================================

@dataclass
class OrderTotals:
    """Every component is in whole cents; total is their exact sum."""
    subtotal: Decimal
    tax_amount: Decimal
    service_charge_amount: Decimal
    tip_amount: Decimal
    total_amount: Decimal


def resolve_tip(
    subtotal: Number,
    tip_amount: Optional[Number] = None,
    tip_percentage: Optional[Number] = None,
) -> Decimal:
    """A tip percentage wins over a fixed tip amount."""
    if tip_percentage is not None:
        return percent_of(subtotal, tip_percentage)
    if tip_amount is not None:
        return to_cents(tip_amount)
    return ZERO


def calculate_order_totals(
    lines: Iterable[tuple[Number, int]],
    tax_rate: Optional[Number] = 0,
    service_charge_rate: Optional[Number] = 0,
    tip_amount: Optional[Number] = None,
    tip_percentage: Optional[Number] = None,
) -> OrderTotals:
    """
    Compute order totals.

    Args:
        lines: (unit price, quantity) pairs
        tax_rate: percent of subtotal
        service_charge_rate: percent of subtotal
        tip_amount: fixed tip
        tip_percentage: percent of subtotal, takes precedence over tip_amount
    """
    subtotal = to_cents(sum((to_decimal(price) * quantity for price, quantity in lines), ZERO))
    tax = percent_of(subtotal, tax_rate)
    service_charge = percent_of(subtotal, service_charge_rate)
    tip = resolve_tip(subtotal, tip_amount, tip_percentage)

    return OrderTotals(
        subtotal=subtotal,
        tax_amount=tax,
        service_charge_amount=service_charge,
        tip_amount=tip,
        total_amount=subtotal + tax + service_charge + tip,
    )

def apply_totals(order: Order, totals: OrderTotals) -> None:
    order.subtotal = totals.subtotal
    order.tax_amount = totals.tax_amount
    order.service_charge_amount = totals.service_charge_amount
    order.tip_amount = totals.tip_amount
    order.total_amount = totals.total_amount


# =============================================================================
# STATUS MACHINE
# =============================================================================

# Forward-only happy path; cancelled sits outside it
STATUS_RANK = {
    OrderStatus.PENDING: 0,
    OrderStatus.PREPARING: 1,
    OrderStatus.READY: 2,
    OrderStatus.SERVED: 3,
}

TERMINAL_STATUSES = frozenset({OrderStatus.SERVED, OrderStatus.CANCELLED})


def parse_order_status(value: str) -> OrderStatus:
    try:
        return OrderStatus(str(value).strip().lower())
    except ValueError:
        valid = [s.value for s in OrderStatus]
        raise InvalidTransition(f"Invalid status. Options: {valid}")


def parse_payment_status(value: str) -> PaymentStatus:
    try:
        return PaymentStatus(str(value).strip().lower())
    except ValueError:
        valid = [s.value for s in PaymentStatus]
        raise ValidationFailed(f"Invalid payment status. Options: {valid}")


def check_transition(current: OrderStatus, target: OrderStatus) -> bool:
    """
    Validate a status change.

    Returns:
        False when target equals current (nothing to do), True otherwise

    Raises:
        InvalidTransition: leaving a terminal state or moving backwards
    """
    if current == target:
        return False
    if current in TERMINAL_STATUSES:
        raise InvalidTransition(f"Order is already {current.value}")
    if target == OrderStatus.CANCELLED:
        return True
    if STATUS_RANK[target] < STATUS_RANK[current]:
        raise InvalidTransition(
            f"Cannot move order from {current.value} back to {target.value}"
        )
    return True


# =============================================================================
# SETTLEMENT POLICIES
# =============================================================================

SettlementPolicy = Callable[[Order], None]


def served_implies_paid(order: Order) -> None:
    """Serving an order settles it."""
    order.payment_status = PaymentStatus.PAID


def no_settlement(order: Order) -> None:
    return None
