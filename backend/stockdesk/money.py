# Overview: Decimal money helpers shared by validation, storage backends and reports.

from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP

CENT = Decimal("0.01")
ZERO = Decimal("0.00")

# Numeric(10, 2) upper bound
MAX_MONEY = Decimal("99999999.99")


def to_money(value) -> Decimal:
    """
    Normalize a stored/aggregated amount to a 2-place Decimal.

    Floats only reach here from SQL aggregates (SQLite SUM) and are routed
    through str() so binary noise does not leak into the cents.
    """
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        d = value
    elif isinstance(value, float):
        d = Decimal(repr(value))
    else:
        d = Decimal(str(value))
    return d.quantize(CENT, rounding=ROUND_HALF_UP)


def format_money(value) -> str | None:
    if value is None:
        return None
    return f"{to_money(value):.2f}"


def effective_discount(subtotal: Decimal, discount: Decimal, discount_type: str) -> Decimal:
    if discount_type == "percentage":
        return to_money(subtotal * discount / Decimal(100))
    return to_money(discount)


def compute_total(subtotal, discount, discount_type: str) -> Decimal:
    """total = max(0, subtotal - effective_discount), rounded half-up to cents."""
    subtotal = to_money(subtotal)
    total = subtotal - effective_discount(subtotal, to_money(discount), discount_type)
    return max(ZERO, to_money(total))
