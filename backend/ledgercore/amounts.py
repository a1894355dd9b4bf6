# Overview: Decimal helpers shared by ledger, valuation and journal services.

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

# Storage precision for quantities, rates and monetary amounts: Numeric(20, 4)
AMOUNT_PLACES = Decimal("0.0001")

# Tolerance for debit/credit balance checks
BALANCE_EPSILON = Decimal("0.0001")

ZERO = Decimal("0")


def to_decimal(value) -> Decimal:
    """
    Coerce user/DB input to an unquantized Decimal.

    None and "" become zero. Floats go through str() so 0.1 stays 0.1.
    """
    if value is None or value == "":
        return ZERO
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise ValueError("boolean is not an amount")
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise ValueError(f"invalid amount {value!r}") from exc


def quantize(value) -> Decimal:
    """Round to storage precision (half-up)."""
    return to_decimal(value).quantize(AMOUNT_PLACES, rounding=ROUND_HALF_UP)


def is_zero(value) -> bool:
    return abs(to_decimal(value)) < BALANCE_EPSILON


def amounts_equal(a, b) -> bool:
    return abs(to_decimal(a) - to_decimal(b)) < BALANCE_EPSILON
