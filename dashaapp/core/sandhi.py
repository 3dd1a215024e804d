# dashaapp/core/sandhi.py
from __future__ import annotations

"""
sandhi.py: transition windows around period boundaries.

At every junction between two adjacent siblings (same parent, or both
top-level) a window opens centred on the boundary instant. Its width is a
level-dependent share of the *earlier* sibling's duration, clamped to an
absolute [min, max]:

    window = clamp(round_half_even(pct(level) × current.duration_seconds), min, max)
    span   = [boundary − window/2, boundary + window/2]

Deeper levels use larger percentages: short periods have proportionally
longer junctions.

Detection only subdivides periods that overlap the requested horizon, so a
year of level-2 windows costs two or three subdivisions, not a full tree.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from dashaapp.core.constants import (
    DEFAULT_LOOKAHEAD_DAYS,
    DEFAULT_LOOKBACK_DAYS,
    DEFAULT_SANDHI_LEVELS,
    MAX_LEVEL,
    SANDHI_MAX_SECONDS,
    SANDHI_MAX_HORIZON_DAYS,
    SANDHI_MIN_SECONDS,
    SANDHI_PERCENTAGES,
)
from dashaapp.core.dasha import PeriodNode, Timeline, as_utc, subdivide
from dashaapp.core.errors import ConfigurationError, InvalidInputError
from dashaapp.core.precision import MATH_CONTEXT, SECONDS_PER_DAY, clamp, round_half_even, to_decimal

__all__ = [
    "SandhiSettings",
    "DEFAULT_SANDHI",
    "TransitionWindow",
    "transition_window_seconds",
    "transition_window",
    "upcoming_transitions",
    "recent_transitions",
    "current_transition",
]

log = logging.getLogger(__name__)


# ───────────────────────────── Settings ─────────────────────────────

@dataclass(frozen=True)
class SandhiSettings:
    percentages: Mapping[int, Decimal] = field(default_factory=lambda: dict(SANDHI_PERCENTAGES))
    min_seconds: int = SANDHI_MIN_SECONDS
    max_seconds: int = SANDHI_MAX_SECONDS

    def __post_init__(self) -> None:
        for level in range(1, MAX_LEVEL + 1):
            pct = self.percentages.get(level)
            if pct is None:
                raise ConfigurationError(f"sandhi percentage missing for level {level}")
            if not (Decimal(0) < pct <= Decimal(1)):
                raise ConfigurationError(f"sandhi percentage for level {level} must be in (0, 1], got {pct}")
        for level in range(2, MAX_LEVEL + 1):
            if self.percentages[level] < self.percentages[level - 1]:
                raise ConfigurationError(
                    f"sandhi percentages must not decrease with depth: level {level} "
                    f"({self.percentages[level]}) is below level {level - 1} ({self.percentages[level - 1]})"
                )
        if int(self.min_seconds) < 1:
            raise ConfigurationError(f"sandhi min_seconds must be >= 1, got {self.min_seconds}")
        if int(self.max_seconds) < int(self.min_seconds):
            raise ConfigurationError(
                f"sandhi max_seconds ({self.max_seconds}) is below min_seconds ({self.min_seconds})"
            )

    def percentage(self, level: int) -> Decimal:
        if not (1 <= int(level) <= MAX_LEVEL):
            raise InvalidInputError(f"level must be within 1..{MAX_LEVEL}, got {level}")
        return self.percentages[int(level)]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "percentages": {str(k): str(v) for k, v in sorted(self.percentages.items())},
            "min_seconds": int(self.min_seconds),
            "max_seconds": int(self.max_seconds),
        }


DEFAULT_SANDHI = SandhiSettings()


# ───────────────────────────── Windows ─────────────────────────────

@dataclass(frozen=True)
class TransitionWindow:
    from_label: str
    to_label: str
    level: int
    transition: datetime
    window_start: datetime
    window_end: datetime
    window_seconds: int
    lineage: Tuple[str, ...] = ()    # shared parent path; empty at level 1

    def contains(self, instant: datetime) -> bool:
        return self.window_start <= instant <= self.window_end

    def to_dict(self) -> Dict[str, Any]:
        return {
            "from": self.from_label,
            "to": self.to_label,
            "level": self.level,
            "lineage": list(self.lineage),
            "transition": self.transition.isoformat(),
            "window_start": self.window_start.isoformat(),
            "window_end": self.window_end.isoformat(),
            "window_seconds": self.window_seconds,
        }


def transition_window_seconds(level: int, duration_seconds: int,
                              settings: SandhiSettings = DEFAULT_SANDHI) -> int:
    pct = settings.percentage(level)
    raw = round_half_even(MATH_CONTEXT.multiply(pct, Decimal(int(duration_seconds))))
    return clamp(raw, int(settings.min_seconds), int(settings.max_seconds))


def transition_window(current: PeriodNode, nxt: PeriodNode,
                      settings: SandhiSettings = DEFAULT_SANDHI) -> TransitionWindow:
    """Window at the junction of two adjacent siblings, sized from `current`."""
    if current.level != nxt.level or current.lineage != nxt.lineage:
        raise InvalidInputError(f"{current.label} and {nxt.label} are not siblings")
    if current.end != nxt.start:
        raise InvalidInputError(f"{current.label} does not end where {nxt.label} starts")
    secs = transition_window_seconds(current.level, current.duration_seconds, settings)
    half = timedelta(seconds=secs) / 2
    return TransitionWindow(
        from_label=current.label,
        to_label=nxt.label,
        level=current.level,
        transition=current.end,
        window_start=current.end - half,
        window_end=current.end + half,
        window_seconds=secs,
        lineage=current.lineage,
    )


# ───────────────────────────── Detection ─────────────────────────────

def _check_levels(levels: int) -> int:
    lv = int(levels)
    if not (1 <= lv <= MAX_LEVEL):
        raise InvalidInputError(f"levels must be within 1..{MAX_LEVEL}, got {levels}")
    return lv


def _days(value: Union[int, float, Decimal, str], what: str, levels: int) -> timedelta:
    d = to_decimal(value)
    if d <= 0:
        raise InvalidInputError(f"{what} must be positive, got {value}")
    cap = SANDHI_MAX_HORIZON_DAYS[levels]
    if d > cap:
        raise InvalidInputError(f"{what} must not exceed {cap} days when scanning {levels} levels, got {value}")
    return timedelta(seconds=round_half_even(MATH_CONTEXT.multiply(d, SECONDS_PER_DAY)))


def _shift(instant: datetime, delta: timedelta, what: str) -> datetime:
    try:
        return instant + delta
    except OverflowError:
        raise InvalidInputError(f"{what} reaches past the supported date range") from None


def _collect(timeline: Timeline, lo: datetime, hi: datetime, levels: int,
             settings: SandhiSettings, accept: Callable[[datetime], bool]) -> List[TransitionWindow]:
    out: List[TransitionWindow] = []
    groups: List[Sequence[PeriodNode]] = [timeline.periods]
    for level in range(1, levels + 1):
        next_groups: List[Sequence[PeriodNode]] = []
        for group in groups:
            for current, nxt in zip(group, group[1:]):
                if accept(current.end):
                    out.append(transition_window(current, nxt, settings))
            if level == levels:
                continue
            for node in group:
                # descend only into periods that overlap [lo, hi]
                if node.end < lo or node.start > hi:
                    continue
                if node.duration_seconds < timeline.table.size:
                    continue
                next_groups.append(subdivide(node, timeline.table))
        groups = next_groups
    out.sort(key=lambda w: (w.transition, w.level))
    return out


def upcoming_transitions(
    timeline: Timeline,
    from_instant: datetime,
    lookahead_days: Union[int, float, Decimal, str] = DEFAULT_LOOKAHEAD_DAYS,
    levels: int = DEFAULT_SANDHI_LEVELS,
    settings: SandhiSettings = DEFAULT_SANDHI,
) -> Tuple[TransitionWindow, ...]:
    """
    Windows at levels 1..`levels` whose boundary lies strictly after
    `from_instant` and strictly before `from_instant + lookahead_days`,
    ascending by boundary instant (ties: shallower level first).
    """
    lo = as_utc(from_instant, "from_instant")
    lv = _check_levels(levels)
    hi = _shift(lo, _days(lookahead_days, "lookahead_days", lv), "lookahead_days")
    out = _collect(timeline, lo, hi, lv, settings, lambda t: lo < t < hi)
    log.debug("sandhi: %d upcoming windows in (%s, %s) levels=%d", len(out), lo.isoformat(), hi.isoformat(), lv)
    return tuple(out)


def recent_transitions(
    timeline: Timeline,
    as_of: datetime,
    lookback_days: Union[int, float, Decimal, str] = DEFAULT_LOOKBACK_DAYS,
    levels: int = DEFAULT_SANDHI_LEVELS,
    settings: SandhiSettings = DEFAULT_SANDHI,
) -> Tuple[TransitionWindow, ...]:
    """Windows whose boundary lies in [as_of − lookback_days, as_of]."""
    hi = as_utc(as_of, "as_of")
    lv = _check_levels(levels)
    lo = _shift(hi, -_days(lookback_days, "lookback_days", lv), "lookback_days")
    return tuple(_collect(timeline, lo, hi, lv, settings, lambda t: lo <= t <= hi))


def current_transition(windows: Iterable[TransitionWindow],
                       instant: datetime) -> Optional[TransitionWindow]:
    at = as_utc(instant)
    return next((w for w in windows if w.contains(at)), None)
