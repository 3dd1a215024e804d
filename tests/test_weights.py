# tests/test_weights.py
from __future__ import annotations

from decimal import Decimal

import pytest
from hypothesis import given, strategies as st

from dashaapp.core.constants import VIMSHOTTARI_LABELS
from dashaapp.core.errors import ConfigurationError, InvalidInputError
from dashaapp.core.weights import VIMSHOTTARI, WeightTable, make_table


def test_vimshottari_table_shape() -> None:
    assert VIMSHOTTARI.size == 9
    assert VIMSHOTTARI.cycle_years == Decimal(120)
    assert sum(VIMSHOTTARI.weights) == Decimal(120)
    assert VIMSHOTTARI.weight("Venus") == Decimal(20)
    assert VIMSHOTTARI.weight("Sun") == Decimal(6)
    assert VIMSHOTTARI.symbol("Saturn") == "Sa"


def test_share_uses_fixed_context() -> None:
    assert VIMSHOTTARI.share("Venus") == Decimal("0.16666666666666666667")
    assert VIMSHOTTARI.share("Moon") == Decimal("0.083333333333333333333")


def test_unknown_label_is_a_configuration_error() -> None:
    with pytest.raises(ConfigurationError):
        VIMSHOTTARI.weight("Pluto")
    with pytest.raises(ConfigurationError):
        VIMSHOTTARI.rotate("Pluto")


def test_rotate_starts_at_label() -> None:
    assert VIMSHOTTARI.rotate("Mars") == (
        "Mars", "Rahu", "Jupiter", "Saturn", "Mercury", "Ketu", "Venus", "Sun", "Moon",
    )
    assert VIMSHOTTARI.rotate("Ketu") == VIMSHOTTARI_LABELS


def test_rotate_lengths() -> None:
    assert VIMSHOTTARI.rotate("Sun", 0) == ()
    long = VIMSHOTTARI.rotate("Mercury", 20)
    assert len(long) == 20
    assert long[:2] == ("Mercury", "Ketu")
    assert long[9] == "Mercury" and long[18] == "Mercury"
    with pytest.raises(InvalidInputError):
        VIMSHOTTARI.rotate("Sun", -1)


@given(st.sampled_from(VIMSHOTTARI_LABELS), st.integers(min_value=0, max_value=40))
def test_rotation_is_cyclic(start: str, length: int) -> None:
    seq = VIMSHOTTARI.rotate(start, length)
    i0 = VIMSHOTTARI_LABELS.index(start)
    assert len(seq) == length
    for k, lbl in enumerate(seq):
        assert lbl == VIMSHOTTARI_LABELS[(i0 + k) % 9]


def test_ruler_of_segment_cycles() -> None:
    assert VIMSHOTTARI.ruler_of_segment(0) == "Ketu"
    assert VIMSHOTTARI.ruler_of_segment(9) == "Ketu"
    assert VIMSHOTTARI.ruler_of_segment(26) == "Mercury"


@pytest.mark.parametrize("labels, weights, cycle", [
    ((), (), Decimal(0)),                                          # empty
    (("A", "B"), (Decimal(1),), Decimal(1)),                       # count mismatch
    (("A", "A"), (Decimal(1), Decimal(1)), Decimal(2)),            # duplicate
    (("A", "B"), (Decimal(0), Decimal(2)), Decimal(2)),            # zero weight
    (("A", "B"), (Decimal(1), Decimal(2)), Decimal(4)),            # wrong total
])
def test_bad_tables_fail_at_construction(labels, weights, cycle) -> None:
    with pytest.raises(ConfigurationError):
        WeightTable(name="bad", labels=labels, weights=weights, cycle_years=cycle)


def test_make_table_defaults_cycle_to_sum(l_table) -> None:
    t = make_table("abc", {"a": 1, "b": "2.5"})
    assert t.cycle_years == Decimal("3.5")
    assert t.labels == ("a", "b")
    assert l_table.size == 9
    assert l_table.rotate("L8", 3) == ("L8", "L9", "L1")
    assert l_table.symbol("L3") == "L3"
