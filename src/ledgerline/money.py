"""Decimal helpers for amounts arriving as JSON numbers or strings."""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

CENT = Decimal("0.01")
ZERO = Decimal("0")


def to_decimal(value: Any, default: Decimal | None = ZERO) -> Decimal | None:
    """Convert a backend amount to Decimal; ``default`` when missing or invalid."""
    if value is None or value == "":
        return default
    if isinstance(value, Decimal):
        return value
    try:
        result = Decimal(str(value).replace(",", "").replace("$", "").strip())
    except (TypeError, ValueError, InvalidOperation):
        return default
    if not result.is_finite():
        return default
    return result


def round_cents(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def format_currency(value: Any) -> str:
    """Format as ``$1,234.56``; negatives as ``-$1,234.56``."""
    amount = round_cents(to_decimal(value) or ZERO)
    sign = "-" if amount < 0 else ""
    return f"{sign}${abs(amount):,.2f}"
