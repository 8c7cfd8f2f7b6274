"""
Material quantity handling.

Stock, thresholds, movements and usages are measured in kg, L, pieces...
with up to three decimal places. They are stored as integer thousandths
(the same way money is kept in integer cents) so that SQL arithmetic and
the conditional `current_stock >= :q` decrement stay exact. In Python they
are Decimal values quantized to 0.001.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from sqlalchemy.types import Integer, TypeDecorator

QUANTITY_PLACES = 3
QUANTITY_STEP = Decimal(1).scaleb(-QUANTITY_PLACES)
ZERO = Decimal(0).quantize(QUANTITY_STEP)


def to_quantity(value) -> Decimal | None:
    """Quantize a number (int, float, str or Decimal) to 0.001, half up."""
    if value is None:
        return None
    if isinstance(value, bool):
        raise TypeError("quantity must be a number")
    if isinstance(value, float):
        # repr gives the shortest round-tripping text: 0.1 -> "0.1"
        value = repr(value)
    try:
        quantity = Decimal(value)
    except InvalidOperation as exc:
        raise TypeError(f"quantity must be a number, got {value!r}") from exc
    if not quantity.is_finite():
        raise TypeError("quantity must be finite")
    return quantity.quantize(QUANTITY_STEP, rounding=ROUND_HALF_UP)


def quantity_json(value):
    """JSON form: int when whole, float otherwise, None passes through."""
    if value is None:
        return None
    quantity = to_quantity(value)
    if quantity == quantity.to_integral_value():
        return int(quantity)
    return float(quantity)


def sum_quantities(values) -> Decimal:
    return sum((to_quantity(v) for v in values if v is not None), ZERO)


class Quantity(TypeDecorator):
    """Decimal in Python, integer thousandths in the database."""

    impl = Integer
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return int(to_quantity(value).scaleb(QUANTITY_PLACES))

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return Decimal(int(value)).scaleb(-QUANTITY_PLACES).quantize(QUANTITY_STEP)
