"""Decimal helpers for currency amounts."""

from decimal import ROUND_HALF_UP, Decimal
from typing import Any

ZERO = Decimal("0")
TWO_PLACES = Decimal("0.01")


def to_decimal(value: Any) -> Decimal:
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round_money(value: Any) -> Decimal:
    """Round half-up to two decimal places."""
    return to_decimal(value).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)
