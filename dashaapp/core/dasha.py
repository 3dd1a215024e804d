# dashaapp/core/dasha.py
# -----------------------------------------------------------------------------
# Vimshottari dasha timeline: top-level periods and on-demand subdivision.
#
# Public API:
#   compute_timeline(birth, longitude, table=VIMSHOTTARI) -> Timeline
#   compute_timeline_from_anchor(birth, anchor_fraction, start_label) -> Timeline
#   subdivide(node, table=VIMSHOTTARI, start_label=None) -> tuple[PeriodNode, ...]
#
# Guarantees:
#   • Pure: identical inputs give identical nodes; no clock reads, no I/O.
#   • Every node lasts a whole number of seconds, at least one.
#   • Children tile their parent exactly: first starts at parent.start,
#     last ends at parent.end, durations sum to the parent's.
#   • The last child absorbs the rounding remainder of the nine
#     proportional splits (anti-drift correction).
#   • Sub-levels are never stored; callers subdivide the branch they need.
# -----------------------------------------------------------------------------

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple, Union

from dashaapp.core.balance import NakshatraPosition, balance_from_fraction, nakshatra_position
from dashaapp.core.constants import LEVEL_NAMES, MAX_LEVEL, MAX_MAHADASHAS
from dashaapp.core.errors import InvalidInputError, InvariantViolation
from dashaapp.core.precision import (
    MATH_CONTEXT,
    proportional_seconds,
    seconds_to_years,
    years_to_seconds,
)
from dashaapp.core.weights import VIMSHOTTARI, WeightTable

__all__ = [
    "PeriodNode",
    "Timeline",
    "subdivide",
    "compute_timeline",
    "compute_timeline_from_anchor",
    "as_utc",
]

log = logging.getLogger(__name__)

_ONE_SECOND = timedelta(seconds=1)


def as_utc(instant: datetime, what: str = "instant") -> datetime:
    """Reject naive datetimes; normalize aware ones to UTC."""
    if not isinstance(instant, datetime):
        raise InvalidInputError(f"{what} must be a datetime, got {type(instant).__name__}")
    if instant.tzinfo is None or instant.utcoffset() is None:
        raise InvalidInputError(f"{what} must be timezone-aware")
    return instant.astimezone(timezone.utc)


# ───────────────────────────── Dataclasses ─────────────────────────────

@dataclass(frozen=True)
class PeriodNode:
    label: str
    level: int                      # 1 = Mahadasha ... 6 = Dehadasha
    start: datetime
    end: datetime
    duration_seconds: int
    duration_years: Decimal
    lineage: Tuple[str, ...] = ()   # ancestor labels, outermost first

    def __post_init__(self) -> None:
        if not (1 <= self.level <= MAX_LEVEL):
            raise InvalidInputError(f"level must be within 1..{MAX_LEVEL}, got {self.level}")
        if len(self.lineage) != self.level - 1:
            raise InvalidInputError(
                f"level {self.level} node needs {self.level - 1} ancestors, got {self.lineage}"
            )
        if self.duration_seconds < 1 or self.end <= self.start:
            raise InvariantViolation(
                f"{self.label} L{self.level}: non-positive duration "
                f"({self.duration_seconds}s, {self.start.isoformat()} → {self.end.isoformat()})"
            )
        if self.end - self.start != timedelta(seconds=self.duration_seconds):
            raise InvariantViolation(
                f"{self.label} L{self.level}: end − start does not equal {self.duration_seconds}s"
            )

    # ---- identity ----
    @property
    def level_name(self) -> str:
        return LEVEL_NAMES[self.level]

    @property
    def path(self) -> Tuple[str, ...]:
        return self.lineage + (self.label,)

    # ---- read-time, instant-relative helpers ----
    def contains(self, instant: datetime) -> bool:
        """Inclusive on both ends."""
        return self.start <= instant <= self.end

    def elapsed_seconds(self, as_of: datetime) -> int:
        if as_of < self.start:
            return 0
        if as_of > self.end:
            return self.duration_seconds
        return (as_of - self.start) // _ONE_SECOND

    def remaining_seconds(self, as_of: datetime) -> int:
        return max(0, self.duration_seconds - self.elapsed_seconds(as_of))

    def elapsed_years(self, as_of: datetime) -> Decimal:
        return seconds_to_years(self.elapsed_seconds(as_of))

    def progress_percent(self, as_of: datetime) -> float:
        pct = self.elapsed_seconds(as_of) * 100.0 / self.duration_seconds
        return min(100.0, max(0.0, pct))

    def to_dict(self, as_of: Optional[datetime] = None) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "label": self.label,
            "level": self.level,
            "level_name": self.level_name,
            "lineage": list(self.lineage),
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "duration_seconds": self.duration_seconds,
            "duration_years": str(self.duration_years),
            "duration_days": round(self.duration_seconds / 86400.0, 4),
        }
        if as_of is not None:
            out["active"] = self.contains(as_of)
            out["progress_percent"] = round(self.progress_percent(as_of), 3)
            out["remaining_seconds"] = self.remaining_seconds(as_of)
        return out


@dataclass(frozen=True)
class Timeline:
    birth: datetime
    start_label: str
    anchor_fraction: Decimal        # elapsed fraction of the first period's segment
    balance_years: Decimal
    periods: Tuple[PeriodNode, ...]
    table: WeightTable = VIMSHOTTARI
    nakshatra: Optional[NakshatraPosition] = None
    longitude: Optional[Decimal] = None

    @property
    def start(self) -> datetime:
        return self.periods[0].start

    @property
    def end(self) -> datetime:
        return self.periods[-1].end

    def find_period(self, label: str) -> Optional[PeriodNode]:
        """First top-level period ruled by `label`, or None past the last period."""
        self.table.index(label)
        return next((p for p in self.periods if p.label == label), None)

    def next_mahadasha(self, as_of: datetime) -> Optional[PeriodNode]:
        return next((p for p in self.periods if p.start > as_of), None)

    def to_dict(self, as_of: Optional[datetime] = None) -> Dict[str, Any]:
        return {
            "birth": self.birth.isoformat(),
            "system": self.table.name,
            "start_label": self.start_label,
            "anchor_fraction": str(self.anchor_fraction),
            "balance_years": str(self.balance_years),
            "nakshatra": self.nakshatra.to_dict() if self.nakshatra else None,
            "longitude": str(self.longitude) if self.longitude is not None else None,
            "periods": [p.to_dict(as_of) for p in self.periods],
        }


# ───────────────────────────── Subdivision ─────────────────────────────

def _check_partition(parent: PeriodNode, children: List[PeriodNode]) -> None:
    total = sum(c.duration_seconds for c in children)
    if total != parent.duration_seconds:
        raise InvariantViolation(
            f"{'/'.join(parent.path)}: children sum to {total}s, parent has {parent.duration_seconds}s"
        )
    if children[0].start != parent.start or children[-1].end != parent.end:
        raise InvariantViolation(f"{'/'.join(parent.path)}: children do not span the parent")
    for a, b in zip(children, children[1:]):
        if a.end != b.start:
            raise InvariantViolation(
                f"{'/'.join(parent.path)}: gap between {a.label} and {b.label}"
            )


def subdivide(parent: PeriodNode, table: WeightTable = VIMSHOTTARI,
              start_label: Optional[str] = None) -> Tuple[PeriodNode, ...]:
    """
    Split `parent` into the table's N labels, rotated to begin at the parent's
    own label (or `start_label` when given). Each child gets
    weight/total × parent seconds, rounded half-even, at least one second;
    the last child ends exactly at parent.end.

    Parents too short for N one-second children cannot be partitioned and
    raise InvariantViolation.
    """
    if parent.level >= MAX_LEVEL:
        raise InvalidInputError(f"cannot subdivide below level {MAX_LEVEL}")

    n = table.size
    total = parent.duration_seconds
    if total < n:
        raise InvariantViolation(
            f"{'/'.join(parent.path)}: {total}s cannot hold {n} periods of at least one second"
        )

    labels = table.rotate(parent.label if start_label is None else start_label, n)
    lineage = parent.path
    children: List[PeriodNode] = []
    cursor = parent.start
    used = 0
    for i, lbl in enumerate(labels):
        share = table.share(lbl)
        years = MATH_CONTEXT.multiply(share, parent.duration_years)
        if i == n - 1:
            secs = total - used
            end = parent.end
        else:
            # keep one second for every later sibling
            secs = min(proportional_seconds(share, total), total - used - (n - 1 - i))
            end = cursor + timedelta(seconds=secs)
        children.append(PeriodNode(
            label=lbl,
            level=parent.level + 1,
            start=cursor,
            end=end,
            duration_seconds=secs,
            duration_years=years,
            lineage=lineage,
        ))
        used += secs
        cursor = end

    _check_partition(parent, children)
    return tuple(children)


# ───────────────────────────── Timeline ─────────────────────────────

def compute_timeline_from_anchor(
    birth: datetime,
    anchor_fraction: Union[Decimal, float, int, str],
    start_label: str,
    table: WeightTable = VIMSHOTTARI,
    max_periods: int = MAX_MAHADASHAS,
    *,
    nakshatra: Optional[NakshatraPosition] = None,
    longitude: Optional[Decimal] = None,
) -> Timeline:
    """
    Top-level periods from birth: the remaining balance of `start_label`,
    then full-weight periods in cyclic order, `max_periods` in all.
    """
    birth_utc = as_utc(birth, "birth")
    if int(max_periods) < 1:
        raise InvalidInputError(f"max_periods must be >= 1, got {max_periods}")

    bal = balance_from_fraction(anchor_fraction, start_label, table)
    periods: List[PeriodNode] = []
    cursor = birth_utc
    for i, lbl in enumerate(table.rotate(start_label, int(max_periods))):
        years = bal.balance_years if i == 0 else table.weight(lbl)
        secs = max(1, years_to_seconds(years))
        try:
            end = cursor + timedelta(seconds=secs)
        except OverflowError:
            raise InvalidInputError(
                f"timeline from {birth_utc.date().isoformat()} exceeds the supported date range"
            ) from None
        periods.append(PeriodNode(
            label=lbl,
            level=1,
            start=cursor,
            end=end,
            duration_seconds=secs,
            duration_years=years,
        ))
        cursor = end

    log.debug(
        "dasha timeline: birth=%s start=%s fraction=%s balance_years=%s periods=%d end=%s",
        birth_utc.isoformat(), start_label, bal.elapsed_fraction, bal.balance_years,
        len(periods), cursor.isoformat(),
    )
    return Timeline(
        birth=birth_utc,
        start_label=start_label,
        anchor_fraction=bal.elapsed_fraction,
        balance_years=bal.balance_years,
        periods=tuple(periods),
        table=table,
        nakshatra=nakshatra,
        longitude=longitude,
    )


def compute_timeline(
    birth: datetime,
    longitude: Union[float, Decimal, int, str],
    table: WeightTable = VIMSHOTTARI,
    max_periods: int = MAX_MAHADASHAS,
) -> Timeline:
    """Timeline for a sidereal Moon longitude (degrees) at an aware birth instant."""
    pos = nakshatra_position(longitude, table)
    return compute_timeline_from_anchor(
        birth,
        pos.progress,
        pos.ruler,
        table,
        max_periods,
        nakshatra=pos,
        longitude=pos.longitude,
    )
