"""Helpers for integer minor-unit money values."""
from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

MINOR_UNITS_PER_MAJOR = 100


def to_decimal(value: Any, default: Decimal = Decimal("0")) -> Decimal:
    if value is None or value == "":
        return default
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return default


def round_minor(value: Decimal) -> int:
    """Round a fractional minor-unit amount half-up to an integer."""
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def to_minor(value: Any) -> int:
    """Convert a major-unit amount (e.g. ``"79.99"``) to minor units."""
    return round_minor(to_decimal(value) * MINOR_UNITS_PER_MAJOR)


def from_minor(amount: int) -> Decimal:
    return (Decimal(int(amount)) / MINOR_UNITS_PER_MAJOR).quantize(Decimal("0.01"))


def apply_rate(amount: int, rate: Decimal) -> int:
    return round_minor(Decimal(int(amount)) * rate)


def format_money(amount: int, currency: str = "USD") -> str:
    major = from_minor(amount)
    if currency.upper() == "USD":
        return f"${major:,.2f}"
    return f"{major:,.2f} {currency.upper()}"


def coerce_amount(value: Any, default: int = 0) -> int:
    try:
        return int(value if value is not None else default)
    except (TypeError, ValueError):
        return default
