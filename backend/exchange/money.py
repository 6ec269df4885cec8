# Overview: Fixed-point helpers for currency amounts and points.

"""
Money and points are Decimal everywhere; floats never touch an amount.

- Amounts are stored as Numeric(14, 2) and rounded half-up to the cent.
- Points are whole units (1 point = 1 currency unit) rounded half-up.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from .extensions import db
from .errors import ValidationError


CENT = Decimal("0.01")
WHOLE = Decimal("1")
ZERO = Decimal("0.00")

# Maximum amount accepted from clients: 999,999,999,999.99
MAX_AMOUNT = Decimal("999999999999.99")


def Money():
    """Column type for every currency / points amount."""
    return db.Numeric(14, 2, asdecimal=True)


def round_money(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def round_points(value: Decimal) -> Decimal:
    return value.quantize(WHOLE, rounding=ROUND_HALF_UP)


def to_decimal(value, field: str = "amount") -> Decimal:
    """
    Coerce client input into a cent-precision Decimal.

    Floats go through str() so 0.1 stays 0.1. Booleans, NaN, infinities and
    values with more than two decimal places are rejected.
    """
    if value is None or isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")
    if isinstance(value, Decimal):
        d = value
    else:
        try:
            d = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            raise ValidationError(f"{field} must be a number")
    if not d.is_finite():
        raise ValidationError(f"{field} must be a finite number")
    if d != d.quantize(CENT, rounding=ROUND_HALF_UP):
        raise ValidationError(f"{field} must have at most two decimal places")
    if abs(d) > MAX_AMOUNT:
        raise ValidationError(f"{field} is too large")
    return d.quantize(CENT)


def format_amount(value: Decimal | None) -> str | None:
    if value is None:
        return None
    return str(Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP))
