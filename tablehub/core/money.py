"""
Money helpers.

Amounts are Decimal cents everywhere inside the application and become
JSON numbers only when a response is serialized.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Union

Number = Union[Decimal, float, int, str]

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def to_decimal(value: Number) -> Decimal:
    """Floats go through str() so 1.05 stays 1.05 rather than 1.0500000000000000444."""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def to_cents(amount: Number) -> Decimal:
    """Round half up to whole cents."""
    return to_decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP)
