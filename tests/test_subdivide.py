# tests/test_subdivide.py
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from hypothesis import given, strategies as st

from dashaapp.core.constants import VIMSHOTTARI_LABELS
from dashaapp.core.dasha import PeriodNode, subdivide
from dashaapp.core.errors import InvalidInputError, InvariantViolation
from dashaapp.core.precision import seconds_to_years, years_to_seconds
from dashaapp.core.weights import VIMSHOTTARI

T0 = datetime(2000, 1, 1, tzinfo=timezone.utc)
ONE_DAY = 86400


def _node(label: str = "Ketu", seconds: int = 0, years: Decimal | None = None,
          start: datetime = T0, level: int = 1, lineage: tuple = ()) -> PeriodNode:
    if years is not None:
        seconds = years_to_seconds(years)
    return PeriodNode(
        label=label,
        level=level,
        start=start,
        end=start + timedelta(seconds=seconds),
        duration_seconds=seconds,
        duration_years=years if years is not None else seconds_to_years(seconds),
        lineage=lineage,
    )


def _assert_partition(parent: PeriodNode, children) -> None:
    assert len(children) == 9
    assert sum(c.duration_seconds for c in children) == parent.duration_seconds
    assert children[0].start == parent.start
    assert children[-1].end == parent.end
    for a, b in zip(children, children[1:]):
        assert a.end == b.start
    for c in children:
        assert c.duration_seconds >= 1
        assert c.level == parent.level + 1
        assert c.lineage == parent.path


# ─────────────────────────────────────────────────────────────────────────────
# Concrete scenarios
# ─────────────────────────────────────────────────────────────────────────────

def test_full_cycle_parent_splits_into_weights(l_table) -> None:
    parent = _node("L1", years=Decimal(120))
    children = subdivide(parent, l_table)
    _assert_partition(parent, children)
    assert [c.label for c in children] == [f"L{i}" for i in range(1, 10)]
    for c, years in zip(children, (7, 20, 6, 10, 7, 18, 16, 19, 17)):
        assert abs(c.duration_seconds - years_to_seconds(years)) <= ONE_DAY
        assert abs(c.duration_years - Decimal(years)) < Decimal("1e-15")
    assert children[-1].end == parent.end


def test_children_rotate_to_parent_label() -> None:
    parent = _node("Saturn", years=Decimal(19))
    children = subdivide(parent)
    assert tuple(c.label for c in children) == VIMSHOTTARI.rotate("Saturn")
    assert children[0].label == "Saturn" and children[1].label == "Mercury"


def test_start_label_override() -> None:
    parent = _node("Saturn", years=Decimal(19))
    children = subdivide(parent, VIMSHOTTARI, start_label="Rahu")
    assert children[0].label == "Rahu"
    _assert_partition(parent, children)


def test_subdivide_is_idempotent() -> None:
    parent = _node("Moon", years=Decimal("10"))
    assert subdivide(parent) == subdivide(parent)


def test_nine_second_parent_gives_one_second_children() -> None:
    parent = _node("Venus", seconds=9)
    children = subdivide(parent)
    _assert_partition(parent, children)
    assert [c.duration_seconds for c in children] == [1] * 9


def test_short_parent_keeps_room_for_later_siblings() -> None:
    parent = _node("Venus", seconds=20)
    children = subdivide(parent)
    _assert_partition(parent, children)


def test_parent_shorter_than_nine_seconds_cannot_be_split() -> None:
    with pytest.raises(InvariantViolation):
        subdivide(_node("Venus", seconds=8))


def test_level_six_is_a_leaf() -> None:
    leaf = _node("Sun", seconds=3600, level=6, lineage=("Sun",) * 5)
    with pytest.raises(InvalidInputError):
        subdivide(leaf)


def test_descend_all_six_levels() -> None:
    node = _node("Rahu", years=Decimal(18))
    for level in range(2, 7):
        children = subdivide(node)
        _assert_partition(node, children)
        node = children[-1]
        assert node.level == level
    assert len(node.lineage) == 5


def test_node_rejects_inconsistent_duration() -> None:
    with pytest.raises(InvariantViolation):
        PeriodNode("Sun", 1, T0, T0 + timedelta(seconds=10), 11, Decimal(1))
    with pytest.raises(InvariantViolation):
        PeriodNode("Sun", 1, T0, T0, 0, Decimal(0))
    with pytest.raises(InvalidInputError):
        PeriodNode("Sun", 2, T0, T0 + timedelta(seconds=10), 10, Decimal(1))  # missing lineage


def test_node_read_time_helpers() -> None:
    node = _node("Mars", seconds=1000)
    mid = T0 + timedelta(seconds=250)
    assert node.contains(T0) and node.contains(node.end)
    assert not node.contains(node.end + timedelta(microseconds=1))
    assert node.elapsed_seconds(mid) == 250
    assert node.remaining_seconds(mid) == 750
    assert node.progress_percent(mid) == pytest.approx(25.0)
    assert node.progress_percent(T0 - timedelta(days=1)) == 0.0
    assert node.progress_percent(node.end + timedelta(days=1)) == 100.0
    d = node.to_dict(mid)
    assert d["active"] is True and d["level_name"] == "Mahadasha"


# ─────────────────────────────────────────────────────────────────────────────
# Properties
# ─────────────────────────────────────────────────────────────────────────────

@given(
    st.sampled_from(VIMSHOTTARI_LABELS),
    st.integers(min_value=9, max_value=years_to_seconds(120)),
    st.integers(min_value=0, max_value=999_999),
)
def test_partition_properties(label: str, seconds: int, micros: int) -> None:
    parent = _node(label, seconds=seconds, start=T0 + timedelta(microseconds=micros))
    children = subdivide(parent)
    _assert_partition(parent, children)
    assert tuple(c.label for c in children) == VIMSHOTTARI.rotate(label)


@given(st.integers(min_value=10**6, max_value=years_to_seconds(20)))
def test_children_stay_proportional(seconds: int) -> None:
    parent = _node("Ketu", seconds=seconds)
    children = subdivide(parent)
    # every child but the last is within half a second of its share
    for c in children[:-1]:
        exact = VIMSHOTTARI.share(c.label) * seconds
        assert abs(c.duration_seconds - exact) <= Decimal("0.500001")
    # the last child absorbs at most the accumulated rounding of the others
    last = children[-1]
    assert abs(last.duration_seconds - VIMSHOTTARI.share(last.label) * seconds) <= Decimal(5)
