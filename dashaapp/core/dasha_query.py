# dashaapp/core/dasha_query.py
# -----------------------------------------------------------------------------
# Point-in-time queries over a Timeline.
#
# Public API:
#   active_periods(timeline, instant, depth=6) -> tuple[PeriodNode, ...]
#   active_path(timeline, instant, depth=6)    -> tuple[str, ...]
#   period_info_at(timeline, instant)          -> DashaPeriodInfo
#   resolve_path(timeline, path)               -> PeriodNode
#   children_of(timeline, path)                -> tuple[PeriodNode, ...]
#   sub_periods(node, table)                   -> tuple[PeriodNode, ...]
#   snapshot(timeline, as_of)                  -> DashaSnapshot
#
# Notes:
#   • Descent subdivides only the branch containing the instant.
#   • Containment is inclusive at both ends; on a boundary shared by two
#     siblings the earlier one is reported.
#   • Nothing here reads the clock: "current" always means "at as_of".
# -----------------------------------------------------------------------------

from __future__ import annotations

from bisect import bisect_left
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from dashaapp.core.constants import (
    DEFAULT_LOOKAHEAD_DAYS,
    DEFAULT_LOOKBACK_DAYS,
    DEFAULT_SANDHI_LEVELS,
    MAX_LEVEL,
    SANDHI_MAX_HORIZON_DAYS,
)
from dashaapp.core.dasha import PeriodNode, Timeline, as_utc, subdivide
from dashaapp.core.errors import InvalidInputError
from dashaapp.core.sandhi import (
    DEFAULT_SANDHI,
    SandhiSettings,
    TransitionWindow,
    current_transition,
    recent_transitions,
    upcoming_transitions,
)
from dashaapp.core.weights import VIMSHOTTARI, WeightTable

__all__ = [
    "DashaPeriodInfo",
    "DashaSnapshot",
    "active_periods",
    "active_path",
    "period_info_at",
    "resolve_path",
    "children_of",
    "sub_periods",
    "snapshot",
]

PathItem = Union[str, int]


@dataclass(frozen=True)
class DashaPeriodInfo:
    instant: datetime
    periods: Tuple[PeriodNode, ...]

    def lords(self) -> Tuple[str, ...]:
        return tuple(p.label for p in self.periods)

    def at_level(self, level: int) -> Optional[PeriodNode]:
        if 1 <= level <= len(self.periods):
            return self.periods[level - 1]
        return None

    def combined(self) -> str:
        """'Saturn-Mercury-Ketu' style description of the active path."""
        return "-".join(self.lords())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "instant": self.instant.isoformat(),
            "path": list(self.lords()),
            "combined": self.combined(),
            "periods": [p.to_dict(self.instant) for p in self.periods],
        }


@dataclass(frozen=True)
class DashaSnapshot:
    as_of: datetime
    active: Tuple[PeriodNode, ...]
    upcoming: Tuple[TransitionWindow, ...]
    in_transition: Optional[TransitionWindow]
    next_mahadasha: Optional[PeriodNode]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "as_of": self.as_of.isoformat(),
            "active": [p.to_dict(self.as_of) for p in self.active],
            "upcoming_transitions": [w.to_dict() for w in self.upcoming],
            "in_transition": self.in_transition.to_dict() if self.in_transition else None,
            "next_mahadasha": self.next_mahadasha.to_dict() if self.next_mahadasha else None,
        }


def _check_depth(depth: int) -> int:
    d = int(depth)
    if not (1 <= d <= MAX_LEVEL):
        raise InvalidInputError(f"depth must be within 1..{MAX_LEVEL}, got {depth}")
    return d


def _top_level_at(periods: Sequence[PeriodNode], instant: datetime) -> Optional[PeriodNode]:
    # first period whose end is at or after the instant; earlier wins on a shared boundary
    i = bisect_left([p.end for p in periods], instant)
    if i < len(periods) and periods[i].contains(instant):
        return periods[i]
    return None


def active_periods(timeline: Timeline, instant: datetime, depth: int = MAX_LEVEL) -> Tuple[PeriodNode, ...]:
    """
    The chain of periods containing `instant`, outermost first, down to
    `depth` levels. Shorter when a node cannot be subdivided further; empty
    outside the timeline.
    """
    at = as_utc(instant)
    d = _check_depth(depth)
    node = _top_level_at(timeline.periods, at)
    if node is None:
        return ()

    chain: List[PeriodNode] = [node]
    while len(chain) < d and node.duration_seconds >= timeline.table.size:
        child = next((c for c in subdivide(node, timeline.table) if c.contains(at)), None)
        if child is None:
            break
        chain.append(child)
        node = child
    return tuple(chain)


def active_path(timeline: Timeline, instant: datetime, depth: int = MAX_LEVEL) -> Tuple[str, ...]:
    return tuple(p.label for p in active_periods(timeline, instant, depth))


def period_info_at(timeline: Timeline, instant: datetime, depth: int = MAX_LEVEL) -> DashaPeriodInfo:
    at = as_utc(instant)
    return DashaPeriodInfo(instant=at, periods=active_periods(timeline, at, depth))


def resolve_path(timeline: Timeline, path: Sequence[PathItem]) -> PeriodNode:
    """
    Node reached by a label path such as ["Saturn", "Mercury"].

    The first item may also be an integer index into timeline.periods, since
    each label rules more than one top-level period; a label picks the first.
    """
    if not path:
        raise InvalidInputError("path must name at least one period")
    if len(path) > MAX_LEVEL:
        raise InvalidInputError(f"path is deeper than {MAX_LEVEL} levels")

    head = path[0]
    if isinstance(head, int) and not isinstance(head, bool):
        if not (0 <= head < len(timeline.periods)):
            raise InvalidInputError(f"top-level index {head} outside 0..{len(timeline.periods) - 1}")
        node = timeline.periods[head]
    else:
        node = next((p for p in timeline.periods if p.label == head), None)
        if node is None:
            raise InvalidInputError(f"no top-level period ruled by {head!r}")

    for label in path[1:]:
        child = next((c for c in sub_periods(node, timeline.table) if c.label == label), None)
        if child is None:
            raise InvalidInputError(f"{'/'.join(node.path)} has no sub-period {label!r}")
        node = child
    return node


def sub_periods(node: PeriodNode, table: WeightTable = VIMSHOTTARI) -> Tuple[PeriodNode, ...]:
    """Children of a node a caller asked for by path; short nodes are refused as input."""
    if node.duration_seconds < table.size:
        raise InvalidInputError(
            f"{'/'.join(node.path)} lasts {node.duration_seconds}s, too short to subdivide"
        )
    return subdivide(node, table)


def children_of(timeline: Timeline, path: Sequence[PathItem]) -> Tuple[PeriodNode, ...]:
    return sub_periods(resolve_path(timeline, path), timeline.table)


def snapshot(
    timeline: Timeline,
    as_of: datetime,
    lookahead_days: Union[int, float, Decimal, str] = DEFAULT_LOOKAHEAD_DAYS,
    levels: int = DEFAULT_SANDHI_LEVELS,
    depth: int = MAX_LEVEL,
    settings: SandhiSettings = DEFAULT_SANDHI,
) -> DashaSnapshot:
    """Active path, upcoming junctions and the junction in progress at `as_of`."""
    at = as_utc(as_of, "as_of")
    upcoming = upcoming_transitions(timeline, at, lookahead_days, levels, settings)
    # a window may still be open for a boundary that already passed
    lookback = min(
        max(DEFAULT_LOOKBACK_DAYS, int(settings.max_seconds) / 86400.0),
        SANDHI_MAX_HORIZON_DAYS[int(levels)],
    )
    recent = recent_transitions(timeline, at, lookback, levels, settings)
    return DashaSnapshot(
        as_of=at,
        active=active_periods(timeline, at, depth),
        upcoming=upcoming,
        in_transition=current_transition(recent + upcoming, at),
        next_mahadasha=timeline.next_mahadasha(at),
    )
