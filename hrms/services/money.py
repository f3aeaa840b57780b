from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Any

ZERO = Decimal("0")
CENT = Decimal("0.01")
WHOLE = Decimal("1")


def to_decimal(value: Any, default: Decimal = ZERO) -> Decimal:
    if value is None:
        return default
    if isinstance(value, Decimal):
        return value
    try:
        # str() first so floats keep their printed value instead of binary noise
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return default


def round_money(value: Decimal) -> Decimal:
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def round_whole(value: Decimal) -> Decimal:
    """Statutory amounts are rounded half-up to whole currency units."""
    return to_decimal(value).quantize(WHOLE, rounding=ROUND_HALF_UP)


def percent_of(base: Decimal, rate: Decimal) -> Decimal:
    return to_decimal(base) * to_decimal(rate) / Decimal(100)
