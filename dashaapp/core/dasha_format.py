# dashaapp/core/dasha_format.py
from __future__ import annotations

"""
Plain-text renderings of periods and paths (English only).

    duration_string(93_900)            -> "1d 2h 5m"
    describe_path(periods)             -> "Saturn Mahadasha → Mercury Bhukti → Ketu Pratyantar"
    short_path(periods, VIMSHOTTARI)   -> "Sa-Me-Ke"
"""

from datetime import datetime
from typing import List, Optional, Sequence

from dashaapp.core.constants import LEVEL_SHORT_NAMES
from dashaapp.core.dasha import PeriodNode
from dashaapp.core.weights import VIMSHOTTARI, WeightTable

__all__ = ["duration_string", "describe_path", "short_path", "format_period"]


def duration_string(seconds: int) -> str:
    """Whole days, hours and minutes; leading zero units are dropped."""
    total = max(0, int(seconds))
    days, rem = divmod(total, 86400)
    hours, rem = divmod(rem, 3600)
    minutes = rem // 60
    if days > 0:
        return f"{days}d {hours}h {minutes}m"
    if hours > 0:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"


def describe_path(periods: Sequence[PeriodNode]) -> str:
    return " → ".join(f"{p.label} {LEVEL_SHORT_NAMES[p.level]}" for p in periods)


def short_path(periods: Sequence[PeriodNode], table: WeightTable = VIMSHOTTARI) -> str:
    return "-".join(table.symbol(p.label) for p in periods)


def format_period(node: PeriodNode, as_of: Optional[datetime] = None) -> str:
    lines: List[str] = [
        f"{node.label} {node.level_name}",
        f"  {node.start.date().isoformat()} → {node.end.date().isoformat()} "
        f"({duration_string(node.duration_seconds)})",
    ]
    if node.lineage:
        lines.append(f"  within: {' / '.join(node.lineage)}")
    if as_of is not None and node.contains(as_of):
        lines.append(
            f"  progress: {node.progress_percent(as_of):.1f}%, "
            f"remaining {duration_string(node.remaining_seconds(as_of))}"
        )
    return "\n".join(lines)
