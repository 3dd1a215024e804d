# dashaapp/core/balance.py
from __future__ import annotations

"""
balance.py: where in the 27-segment cycle a longitude falls, and how much
of the first period is still to run.

Pipeline:
  longitude (deg, any real) → normalized [0, 360)
                            → segment index 0..26, ruler label, pada 1..4
                            → position p within the segment [0, span)
                            → elapsed fraction p/span, remaining 1 − f
                            → balance years = remaining × weight(ruler)

All arithmetic is Decimal in MATH_CONTEXT; the float longitude enters via repr.
"""

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Union

from dashaapp.core.constants import NAKSHATRA_COUNT, NAKSHATRA_NAMES, PADAS_PER_NAKSHATRA
from dashaapp.core.errors import InvalidInputError
from dashaapp.core.precision import MATH_CONTEXT, clamp, to_decimal
from dashaapp.core.weights import VIMSHOTTARI, WeightTable

__all__ = [
    "SEGMENT_SPAN",
    "NakshatraPosition",
    "Balance",
    "normalize_longitude",
    "nakshatra_position",
    "compute_balance",
    "balance_from_fraction",
]

_FULL_CIRCLE = Decimal(360)
_ZERO = Decimal(0)
_ONE = Decimal(1)

# 13°20′ = 13.333333333333333333 at 20 digits
SEGMENT_SPAN: Decimal = MATH_CONTEXT.divide(_FULL_CIRCLE, Decimal(NAKSHATRA_COUNT))
_PADA_SPAN: Decimal = MATH_CONTEXT.divide(SEGMENT_SPAN, Decimal(PADAS_PER_NAKSHATRA))


@dataclass(frozen=True)
class NakshatraPosition:
    index: int                # 0..26
    name: str
    ruler: str
    pada: int                 # 1..4
    longitude: Decimal        # normalized [0, 360)
    degrees_into: Decimal     # [0, SEGMENT_SPAN)
    progress: Decimal         # elapsed fraction [0, 1]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "name": self.name,
            "ruler": self.ruler,
            "pada": self.pada,
            "longitude": str(self.longitude),
            "degrees_into": str(self.degrees_into),
            "progress": str(self.progress),
        }


@dataclass(frozen=True)
class Balance:
    label: str
    elapsed_fraction: Decimal
    remaining_fraction: Decimal
    balance_years: Decimal


def normalize_longitude(longitude: Union[float, Decimal, int, str]) -> Decimal:
    """Wrap any finite longitude to [0, 360)."""
    lon = to_decimal(longitude)
    try:
        lon = MATH_CONTEXT.remainder(lon, _FULL_CIRCLE)
    except InvalidOperation as e:
        raise InvalidInputError(f"longitude {longitude!r} is out of range") from e
    if lon < _ZERO:
        lon = MATH_CONTEXT.add(lon, _FULL_CIRCLE)
    if lon >= _FULL_CIRCLE:  # -1e-30 + 360 rounds to 360 at 20 digits
        lon = _ZERO
    return lon


def _segment_offset(position_deg: Decimal) -> Decimal:
    """(p mod span), folded into [0, span)."""
    try:
        p = MATH_CONTEXT.remainder(position_deg, SEGMENT_SPAN)
    except InvalidOperation as e:
        raise InvalidInputError(f"segment position {position_deg} is out of range") from e
    if p < _ZERO:
        p = MATH_CONTEXT.add(p, SEGMENT_SPAN)
    if not (_ZERO <= p < SEGMENT_SPAN):
        raise InvalidInputError(f"segment position {p} outside [0, {SEGMENT_SPAN})")
    return p


def nakshatra_position(longitude: Union[float, Decimal, int, str],
                       table: WeightTable = VIMSHOTTARI) -> NakshatraPosition:
    lon = normalize_longitude(longitude)
    idx = int(MATH_CONTEXT.divide_int(lon, SEGMENT_SPAN))
    idx = min(max(idx, 0), NAKSHATRA_COUNT - 1)
    into = MATH_CONTEXT.subtract(lon, MATH_CONTEXT.multiply(SEGMENT_SPAN, Decimal(idx)))
    # lon sat a hair off a segment boundary after rounding
    if into < _ZERO and idx > 0:
        idx -= 1
        into = MATH_CONTEXT.add(into, SEGMENT_SPAN)
    elif into >= SEGMENT_SPAN and idx < NAKSHATRA_COUNT - 1:
        idx += 1
        into = MATH_CONTEXT.subtract(into, SEGMENT_SPAN)
    into = _segment_offset(into)
    progress = clamp(MATH_CONTEXT.divide(into, SEGMENT_SPAN), _ZERO, _ONE)
    pada = min(int(MATH_CONTEXT.divide_int(into, _PADA_SPAN)) + 1, PADAS_PER_NAKSHATRA)
    return NakshatraPosition(
        index=idx,
        name=NAKSHATRA_NAMES[idx],
        ruler=table.ruler_of_segment(idx),
        pada=pada,
        longitude=lon,
        degrees_into=into,
        progress=progress,
    )


def balance_from_fraction(fraction: Union[float, Decimal, int, str], label: str,
                          table: WeightTable = VIMSHOTTARI) -> Balance:
    """Balance of `label` when `fraction` of its segment has already been traversed."""
    weight = table.weight(label)
    f = to_decimal(fraction)
    if not (_ZERO <= f <= _ONE):
        raise InvalidInputError(f"anchor fraction must be within [0, 1], got {f}")
    remaining = MATH_CONTEXT.subtract(_ONE, f)
    return Balance(
        label=label,
        elapsed_fraction=f,
        remaining_fraction=remaining,
        balance_years=MATH_CONTEXT.multiply(remaining, weight),
    )


def compute_balance(position_deg: Union[float, Decimal, int, str], label: str,
                    table: WeightTable = VIMSHOTTARI) -> Balance:
    """
    Balance from a position (degrees) inside the segment ruled by `label`.

    elapsed = (p mod span) / span, clamped to [0, 1]
    balance = (1 − elapsed) × weight(label)
    """
    table.weight(label)  # ConfigurationError before any arithmetic
    p = _segment_offset(to_decimal(position_deg))
    elapsed = clamp(MATH_CONTEXT.divide(p, SEGMENT_SPAN), _ZERO, _ONE)
    return balance_from_fraction(elapsed, label, table)
