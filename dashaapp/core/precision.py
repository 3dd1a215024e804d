# dashaapp/core/precision.py
# -----------------------------------------------------------------------------
# Fixed-precision decimal arithmetic for dasha durations.
#
# Guarantees:
#   • One context everywhere: 20 significant digits, ROUND_HALF_EVEN.
#   • Years ↔ seconds via a fixed mean year of 365.24219 days.
#   • Whole-second (or whole-day) results use banker's rounding.
#   • Floats enter through repr(), never through their binary expansion.
# -----------------------------------------------------------------------------

from __future__ import annotations

from decimal import Context, Decimal, ROUND_HALF_EVEN, InvalidOperation
from typing import Union
import math

from dashaapp.core.errors import InvalidInputError

__all__ = [
    "MATH_CONTEXT",
    "DAYS_PER_YEAR",
    "SECONDS_PER_DAY",
    "SECONDS_PER_YEAR",
    "to_decimal",
    "round_half_even",
    "clamp",
    "years_to_seconds",
    "years_to_rounded_days",
    "seconds_to_years",
    "proportional_seconds",
]

Number = Union[Decimal, int, float, str]

MATH_CONTEXT = Context(prec=20, rounding=ROUND_HALF_EVEN)

DAYS_PER_YEAR = Decimal("365.24219")
SECONDS_PER_DAY = Decimal("86400")
SECONDS_PER_YEAR = MATH_CONTEXT.multiply(DAYS_PER_YEAR, SECONDS_PER_DAY)

_ZERO = Decimal(0)
_ONE = Decimal(1)


def to_decimal(value: Number) -> Decimal:
    """Convert a number to Decimal; floats go through repr so 13.5 stays 13.5."""
    if isinstance(value, Decimal):
        out = value
    elif isinstance(value, bool):
        raise InvalidInputError(f"not a number: {value!r}")
    elif isinstance(value, int):
        out = Decimal(value)
    elif isinstance(value, float):
        if not math.isfinite(value):
            raise InvalidInputError(f"value must be finite, got {value!r}")
        out = Decimal(repr(value))
    else:
        try:
            out = Decimal(str(value).strip())
        except InvalidOperation as e:
            raise InvalidInputError(f"not a number: {value!r}") from e
    if not out.is_finite():
        raise InvalidInputError(f"value must be finite, got {value!r}")
    return out


def round_half_even(value: Decimal) -> int:
    """Nearest integer, ties to even."""
    return int(value.to_integral_value(rounding=ROUND_HALF_EVEN))


def clamp(value, lo, hi):
    if value < lo:
        return lo
    if value > hi:
        return hi
    return value


def years_to_seconds(years: Number) -> int:
    """Years → whole seconds (half-even). Zero stays zero; callers apply minimums."""
    y = to_decimal(years)
    secs = MATH_CONTEXT.multiply(MATH_CONTEXT.multiply(y, DAYS_PER_YEAR), SECONDS_PER_DAY)
    return round_half_even(secs)


def years_to_rounded_days(years: Number) -> int:
    """Years → whole days (half-even), never less than one day."""
    days = MATH_CONTEXT.multiply(to_decimal(years), DAYS_PER_YEAR)
    return max(1, round_half_even(days))


def seconds_to_years(seconds: int) -> Decimal:
    return MATH_CONTEXT.divide(Decimal(int(seconds)), SECONDS_PER_YEAR)


def proportional_seconds(share: Decimal, parent_seconds: int) -> int:
    """
    share × parent_seconds rounded half-even, with a one-second floor.

    `share` is a label's weight over the cycle total, already computed in
    MATH_CONTEXT so every level divides the same way.
    """
    if share <= _ZERO or share > _ONE:
        raise InvalidInputError(f"share must be in (0, 1], got {share}")
    raw = MATH_CONTEXT.multiply(share, Decimal(int(parent_seconds)))
    return max(1, round_half_even(raw))
