# billing/services/money.py

"""
MONEY HELPERS (INTEGER MINOR UNITS)

The ledger stores and computes in integer minor units (paisa for PKR).
Decimal display units exist only at the API boundary.

Percentage maths is done with exact fractions and rounded
half-up to the minor unit once, by the caller, at the very end.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from fractions import Fraction
import math

from django.conf import settings

from billing.services.exceptions import InvalidAmount

MINOR_UNITS_PER_MAJOR = 100
TWOPLACES = Decimal("0.01")


def currency_code() -> str:
    return settings.BILLING["CURRENCY_CODE"]


def to_minor(value) -> int:
    """
    Display units -> minor units. Rejects sub-minor precision ("10.005").
    """
    try:
        d = Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError) as exc:
        raise InvalidAmount(f"Not a valid amount: {value!r}") from exc

    if not d.is_finite():
        raise InvalidAmount(f"Not a valid amount: {value!r}")
    if d != d.quantize(TWOPLACES):
        raise InvalidAmount(f"Amount {value} has more than 2 decimal places")

    return int(d * MINOR_UNITS_PER_MAJOR)


def to_major(minor: int) -> Decimal:
    return (Decimal(int(minor)) / MINOR_UNITS_PER_MAJOR).quantize(TWOPLACES)


def format_minor(minor: int) -> str:
    return f"{to_major(minor)}"


def require_minor_units(value, *, field: str = "amount", allow_zero: bool = False) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidAmount(f"{field} must be an integer number of minor units")
    if value < 0 or (value == 0 and not allow_zero):
        raise InvalidAmount(f"{field} must be > 0" if not allow_zero else f"{field} must be >= 0")
    return value


def percentage_of(amount: int, percentage) -> Fraction:
    """
    Exact amount * percentage / 100 (percentage may be Decimal / str / int).
    """
    return Fraction(int(amount)) * Fraction(str(percentage)) / 100


def round_half_up(value: Fraction) -> int:
    """
    Round an exact value to the nearest minor unit, ties away from zero.
    """
    value = Fraction(value)
    if value < 0:
        return -math.floor(-value + Fraction(1, 2))
    return math.floor(value + Fraction(1, 2))
