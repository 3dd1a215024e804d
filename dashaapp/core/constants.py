# dashaapp/core/constants.py
# -*- coding: utf-8 -*-
"""
Dasha engine core constants

Purpose
-------
Single source of truth for:
- the Vimshottari label order, weights (years) and two-letter symbols
- the 27 nakshatra names (segment order from 0° sidereal Aries)
- hierarchy depth and level names (Mahadasha ... Dehadasha)
- top-level period count for a bounded lifespan
- sandhi (transition window) percentages and clamp bounds

Design
------
- Pure-Python, no external dependencies.
- Safe to import from any core module.
- Constants are immutable by convention (tuples / read-only mappings).
"""

from __future__ import annotations
from decimal import Decimal
from types import MappingProxyType
from typing import Mapping, Tuple

__all__ = [
    # labels
    "VIMSHOTTARI_LABELS", "VIMSHOTTARI_YEARS", "VIMSHOTTARI_SYMBOLS", "CYCLE_YEARS",
    # segments
    "NAKSHATRA_NAMES", "NAKSHATRA_COUNT", "PADAS_PER_NAKSHATRA",
    # hierarchy
    "MAX_LEVEL", "MAX_MAHADASHAS", "LEVEL_NAMES", "LEVEL_SHORT_NAMES",
    # sandhi
    "SANDHI_PERCENTAGES", "SANDHI_MIN_SECONDS", "SANDHI_MAX_SECONDS",
    "SANDHI_MAX_HORIZON_DAYS",
    "DEFAULT_LOOKAHEAD_DAYS", "DEFAULT_LOOKBACK_DAYS", "DEFAULT_SANDHI_LEVELS",
    # version tag
    "DASHA_CONSTANTS_VERSION",
]

# ── version tag ───────────────────────────────────────────────────────────────
DASHA_CONSTANTS_VERSION: str = "v1.0.0"

# ── Vimshottari labels & weights ─────────────────────────────────────────────
VIMSHOTTARI_LABELS: Tuple[str, ...] = (
    "Ketu", "Venus", "Sun", "Moon", "Mars",
    "Rahu", "Jupiter", "Saturn", "Mercury",
)

# Years per label; sums to CYCLE_YEARS.
VIMSHOTTARI_YEARS: Tuple[Decimal, ...] = tuple(
    Decimal(y) for y in ("7", "20", "6", "10", "7", "18", "16", "19", "17")
)

VIMSHOTTARI_SYMBOLS: Tuple[str, ...] = (
    "Ke", "Ve", "Su", "Mo", "Ma", "Ra", "Ju", "Sa", "Me",
)

CYCLE_YEARS: Decimal = Decimal("120")

# ── sidereal segments ────────────────────────────────────────────────────────
NAKSHATRA_NAMES: Tuple[str, ...] = (
    "Ashwini", "Bharani", "Krittika", "Rohini", "Mrigashira", "Ardra",
    "Punarvasu", "Pushya", "Ashlesha", "Magha", "Purva Phalguni",
    "Uttara Phalguni", "Hasta", "Chitra", "Swati", "Vishakha", "Anuradha",
    "Jyeshtha", "Mula", "Purva Ashadha", "Uttara Ashadha", "Shravana",
    "Dhanishta", "Shatabhisha", "Purva Bhadrapada", "Uttara Bhadrapada",
    "Revati",
)
NAKSHATRA_COUNT: int = len(NAKSHATRA_NAMES)  # 27
PADAS_PER_NAKSHATRA: int = 4

# ── hierarchy ─────────────────────────────────────────────────────────────────
MAX_LEVEL: int = 6

# 18 top-level periods ≈ two full passes; well beyond any realistic lifespan.
MAX_MAHADASHAS: int = 18

LEVEL_NAMES: Mapping[int, str] = MappingProxyType({
    1: "Mahadasha",
    2: "Antardasha",
    3: "Pratyantardasha",
    4: "Sookshmadasha",
    5: "Pranadasha",
    6: "Dehadasha",
})

# Used by the arrow-joined path description ("Saturn Mahadasha → Mercury Bhukti").
LEVEL_SHORT_NAMES: Mapping[int, str] = MappingProxyType({
    1: "Mahadasha",
    2: "Bhukti",
    3: "Pratyantar",
    4: "Sookshma",
    5: "Prana",
    6: "Deha",
})

# ── sandhi (transition windows) ──────────────────────────────────────────────
# Fraction of the ending period's duration; deeper levels get wider junctions.
SANDHI_PERCENTAGES: Mapping[int, Decimal] = MappingProxyType({
    1: Decimal("0.05"),
    2: Decimal("0.10"),
    3: Decimal("0.15"),
    4: Decimal("0.20"),
    5: Decimal("0.20"),
    6: Decimal("0.20"),
})

SANDHI_MIN_SECONDS: int = 3600             # 1 hour
SANDHI_MAX_SECONDS: int = 30 * 24 * 3600   # 30 days

DEFAULT_LOOKAHEAD_DAYS: int = 365
DEFAULT_LOOKBACK_DAYS: int = 30
DEFAULT_SANDHI_LEVELS: int = 2

# Longest detection horizon per deepest level scanned. Level 6 periods last
# about a day, so a year of them is already several hundred windows.
SANDHI_MAX_HORIZON_DAYS: Mapping[int, int] = MappingProxyType({
    1: 36500,
    2: 36500,
    3: 36500,
    4: 3653,
    5: 1096,
    6: 366,
})
