# tests/test_query.py
from __future__ import annotations

from datetime import datetime, timedelta

import pytest
from hypothesis import given, strategies as st

from dashaapp.core.dasha import compute_timeline, subdivide
from dashaapp.core.dasha_query import (
    active_path,
    active_periods,
    children_of,
    period_info_at,
    resolve_path,
    snapshot,
    sub_periods,
)
from dashaapp.core.errors import InvalidInputError


def test_outside_the_timeline_is_empty(timeline) -> None:
    assert active_path(timeline, timeline.start - timedelta(seconds=1)) == ()
    assert active_path(timeline, timeline.end + timedelta(seconds=1)) == ()


def test_birth_instant_resolves_to_self_starting_chain(timeline) -> None:
    # every level starts with its parent's own label
    assert active_path(timeline, timeline.start) == ("Ketu",) * 6


def test_full_depth_and_lineage(timeline) -> None:
    at = timeline.periods[4].start + timedelta(days=1234, hours=5)
    chain = active_periods(timeline, at)
    assert len(chain) == 6
    assert [p.level for p in chain] == [1, 2, 3, 4, 5, 6]
    for parent, child in zip(chain, chain[1:]):
        assert child.lineage == parent.path
        assert parent.start <= child.start and child.end <= parent.end
    assert all(p.contains(at) for p in chain)


def test_depth_limits_the_path(timeline) -> None:
    at = timeline.periods[3].start + timedelta(days=100)
    assert len(active_path(timeline, at, depth=2)) == 2
    assert len(active_path(timeline, at, depth=1)) == 1
    with pytest.raises(InvalidInputError):
        active_path(timeline, at, depth=0)
    with pytest.raises(InvalidInputError):
        active_path(timeline, at, depth=7)


def test_naive_instant_rejected(timeline) -> None:
    with pytest.raises(InvalidInputError):
        active_path(timeline, datetime(2000, 1, 1))


def test_end_instant_is_inclusive(timeline) -> None:
    for node in timeline.periods[:5]:
        assert active_path(timeline, node.end)[0] == node.label
    assert active_path(timeline, timeline.end)[0] == timeline.periods[-1].label


def test_shared_boundary_reports_the_earlier_period(timeline) -> None:
    boundary = timeline.periods[1].end
    assert active_periods(timeline, boundary)[0] is timeline.periods[1]
    just_after = boundary + timedelta(microseconds=1)
    assert active_periods(timeline, just_after)[0] is timeline.periods[2]


def test_sub_level_boundaries_are_inclusive(timeline) -> None:
    venus = timeline.periods[1]
    for child in subdivide(venus):
        path = active_path(timeline, child.end, depth=2)
        assert path == ("Venus", child.label)
    first = subdivide(venus)[0]
    # not shared with an earlier sibling at level 2, but shared with Ketu at level 1
    assert active_path(timeline, first.start + timedelta(seconds=1), depth=2) == ("Venus", "Venus")


def test_period_info(timeline) -> None:
    at = timeline.periods[7].start + timedelta(days=400)
    info = period_info_at(timeline, at)
    assert info.lords() == active_path(timeline, at)
    assert info.combined() == "-".join(info.lords())
    assert info.at_level(1) is info.periods[0]
    assert info.at_level(7) is None
    d = info.to_dict()
    assert d["path"] == list(info.lords())
    assert len(d["periods"]) == 6


def test_children_of_by_label_and_index(timeline) -> None:
    kids = children_of(timeline, ["Venus"])
    assert [c.label for c in kids][:2] == ["Venus", "Sun"]
    assert kids[0].start == timeline.periods[1].start

    second_ketu = children_of(timeline, [9])
    assert second_ketu[0].lineage == ("Ketu",)
    assert second_ketu[0].start == timeline.periods[9].start

    grand = children_of(timeline, ["Venus", "Moon"])
    assert grand[0].label == "Moon" and grand[0].lineage == ("Venus", "Moon")

    node = resolve_path(timeline, ["Venus", "Moon", "Mars"])
    assert node.level == 3 and node.path == ("Venus", "Moon", "Mars")


@pytest.mark.parametrize("path", [[], ["Pluto"], [18], [-1], ["Venus", "Pluto"], [True]])
def test_children_of_bad_paths(timeline, path) -> None:
    with pytest.raises(InvalidInputError):
        children_of(timeline, path)


def test_children_of_a_leaf_is_rejected(timeline) -> None:
    with pytest.raises(InvalidInputError):
        children_of(timeline, ["Venus"] * 6)


def test_snapshot_inside_a_junction(timeline) -> None:
    venus = timeline.periods[1]
    as_of = venus.start + timedelta(days=10)
    snap = snapshot(timeline, as_of)
    assert [p.label for p in snap.active][:2] == ["Venus", "Venus"]
    assert snap.next_mahadasha is timeline.periods[2]
    assert snap.in_transition is not None
    assert (snap.in_transition.from_label, snap.in_transition.to_label) == ("Ketu", "Venus")
    assert snap.in_transition.level == 1
    transitions = [w.transition for w in snap.upcoming]
    assert transitions == sorted(transitions)
    assert all(t > as_of for t in transitions)
    assert snap.to_dict()["in_transition"]["from"] == "Ketu"


def test_snapshot_away_from_junctions(timeline) -> None:
    venus = timeline.periods[1]
    first_child = subdivide(venus)[0]
    as_of = venus.start + (first_child.end - venus.start) / 2
    snap = snapshot(timeline, as_of)
    assert snap.in_transition is None


@given(st.integers(min_value=0, max_value=200 * 365 * 86400))
def test_every_instant_resolves_to_a_consistent_chain(timeline, offset: int) -> None:
    at = timeline.start + timedelta(seconds=offset)
    chain = active_periods(timeline, at)
    assert len(chain) == 6
    assert all(p.contains(at) for p in chain)
    for parent, child in zip(chain, chain[1:]):
        assert child.lineage == parent.path


def test_one_second_period_is_refused_as_input(birth) -> None:
    # a hair below a segment boundary leaves a one-second balance
    tl = compute_timeline(birth, 13.333333333333332)
    first = tl.periods[0]
    assert first.duration_seconds == 1
    with pytest.raises(InvalidInputError, match="too short"):
        children_of(tl, [0])
    with pytest.raises(InvalidInputError, match="too short"):
        sub_periods(first, tl.table)
    assert len(active_periods(tl, first.start)) == 1
    assert len(children_of(tl, [1])) == 9
