# dashaapp/core/weights.py
from __future__ import annotations

"""
Label/weight tables for proportional period schemes.

A WeightTable is the only configuration the subdivision engine needs: an
ordered cycle of labels, each contributing a fixed number of years to one
full pass. Tables validate themselves on construction, so a bad table fails
at import/startup rather than producing plausible-looking dates.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, Optional, Tuple

from dashaapp.core.constants import (
    CYCLE_YEARS,
    VIMSHOTTARI_LABELS,
    VIMSHOTTARI_SYMBOLS,
    VIMSHOTTARI_YEARS,
)
from dashaapp.core.errors import ConfigurationError, InvalidInputError
from dashaapp.core.precision import MATH_CONTEXT, to_decimal

__all__ = ["WeightTable", "VIMSHOTTARI", "make_table"]


@dataclass(frozen=True)
class WeightTable:
    name: str
    labels: Tuple[str, ...]
    weights: Tuple[Decimal, ...]
    cycle_years: Decimal
    symbols: Tuple[str, ...] = ()
    _index: Dict[str, int] = field(default_factory=dict, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if not self.labels:
            raise ConfigurationError(f"{self.name}: weight table has no labels")
        if len(self.labels) != len(self.weights):
            raise ConfigurationError(
                f"{self.name}: {len(self.labels)} labels but {len(self.weights)} weights"
            )
        if len(set(self.labels)) != len(self.labels):
            raise ConfigurationError(f"{self.name}: duplicate labels in {self.labels}")
        if self.symbols and len(self.symbols) != len(self.labels):
            raise ConfigurationError(f"{self.name}: symbols must match labels one-to-one")
        for lbl, w in zip(self.labels, self.weights):
            if w <= 0:
                raise ConfigurationError(f"{self.name}: weight for {lbl!r} must be positive, got {w}")
        total = sum(self.weights, Decimal(0))
        if total != self.cycle_years:
            raise ConfigurationError(
                f"{self.name}: weights sum to {total}, expected cycle total {self.cycle_years}"
            )
        # frozen: populate the lookup through object.__setattr__ once
        object.__setattr__(self, "_index", {lbl: i for i, lbl in enumerate(self.labels)})

    @property
    def size(self) -> int:
        return len(self.labels)

    def index(self, label: str) -> int:
        try:
            return self._index[label]
        except KeyError:
            raise ConfigurationError(f"{self.name}: unknown label {label!r}") from None

    def weight(self, label: str) -> Decimal:
        return self.weights[self.index(label)]

    def share(self, label: str) -> Decimal:
        """weight(label) / cycle_years in the engine's decimal context."""
        return MATH_CONTEXT.divide(self.weight(label), self.cycle_years)

    def symbol(self, label: str) -> str:
        i = self.index(label)
        return self.symbols[i] if self.symbols else label[:2]

    def rotate(self, start_label: str, length: Optional[int] = None) -> Tuple[str, ...]:
        """
        The label cycle rotated to begin at `start_label`, repeated as needed
        to reach `length` entries (default: one full pass).
        """
        n = self.size if length is None else int(length)
        if n < 0:
            raise InvalidInputError(f"rotation length must be >= 0, got {length}")
        i0 = self.index(start_label)
        return tuple(self.labels[(i0 + k) % self.size] for k in range(n))

    def ruler_of_segment(self, segment_index: int) -> str:
        """Label assigned to a sidereal segment: segments cycle through the labels."""
        return self.labels[int(segment_index) % self.size]


def make_table(name: str, weights: Dict[str, object], cycle_years: object = None,
               symbols: Tuple[str, ...] = ()) -> WeightTable:
    """Build a table from an ordered {label: years} mapping; cycle defaults to the sum."""
    ws = tuple(to_decimal(v) for v in weights.values())  # type: ignore[arg-type]
    cycle = to_decimal(cycle_years) if cycle_years is not None else sum(ws, Decimal(0))  # type: ignore[arg-type]
    return WeightTable(name=name, labels=tuple(weights.keys()), weights=ws,
                       cycle_years=cycle, symbols=symbols)


VIMSHOTTARI = WeightTable(
    name="vimshottari",
    labels=VIMSHOTTARI_LABELS,
    weights=VIMSHOTTARI_YEARS,
    cycle_years=CYCLE_YEARS,
    symbols=VIMSHOTTARI_SYMBOLS,
)
