# dashaapp/utils/config.py
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

import yaml

from dashaapp.core.constants import (
    DEFAULT_LOOKAHEAD_DAYS,
    DEFAULT_SANDHI_LEVELS,
    MAX_LEVEL,
    MAX_MAHADASHAS,
    SANDHI_MAX_HORIZON_DAYS,
)
from dashaapp.core.errors import ConfigurationError, InvalidInputError
from dashaapp.core.precision import to_decimal
from dashaapp.core.sandhi import DEFAULT_SANDHI, SandhiSettings

log = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "config/defaults.yaml"


class AttrDict(dict):
    """Dict that also supports attribute access: cfg.dasha and cfg['dasha'] both work."""
    def __getattr__(self, item):
        try:
            return self[item]
        except KeyError as e:
            raise AttributeError(item) from e
    def __setattr__(self, key, value):
        self[key] = value

def _to_attr(obj):
    if isinstance(obj, dict):
        return AttrDict({k: _to_attr(v) for k, v in obj.items()})
    if isinstance(obj, list):
        return [_to_attr(x) for x in obj]
    return obj

def load_config(path: Optional[str] = None):
    """
    Load YAML config from `path` (default: $DASHA_CONFIG or config/defaults.yaml).
    A missing file yields an empty config, i.e. built-in defaults.
    Optional env overrides:
      - DASHA_LOOKAHEAD_DAYS  (dasha.default_lookahead_days)
      - DASHA_CACHE_CAPACITY  (dasha.cache_capacity)
    Returns an AttrDict for convenient access.
    """
    path = path or os.getenv("DASHA_CONFIG", DEFAULT_CONFIG_PATH)
    data: Dict[str, Any] = {}
    if os.path.exists(path):
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ConfigurationError(f"{path}: top level must be a mapping")
    else:
        log.info("config file %s not found; using built-in defaults", path)

    dasha = data.get("dasha") or {}
    if not isinstance(dasha, dict):
        raise ConfigurationError(f"{path}: 'dasha' must be a mapping")
    data["dasha"] = dasha
    lookahead = os.getenv("DASHA_LOOKAHEAD_DAYS")
    if lookahead:
        dasha["default_lookahead_days"] = lookahead
    capacity = os.getenv("DASHA_CACHE_CAPACITY")
    if capacity:
        dasha["cache_capacity"] = capacity

    return _to_attr(data)


# ───────────────────────── typed engine settings ─────────────────────────

@dataclass(frozen=True)
class DashaSettings:
    max_depth: int = MAX_LEVEL
    max_periods: int = MAX_MAHADASHAS
    default_lookahead_days: float = float(DEFAULT_LOOKAHEAD_DAYS)
    default_sandhi_levels: int = DEFAULT_SANDHI_LEVELS
    cache_capacity: int = 256
    sandhi: SandhiSettings = field(default_factory=lambda: DEFAULT_SANDHI)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "max_depth": self.max_depth,
            "max_periods": self.max_periods,
            "default_lookahead_days": self.default_lookahead_days,
            "default_sandhi_levels": self.default_sandhi_levels,
            "cache_capacity": self.cache_capacity,
            "sandhi": self.sandhi.to_dict(),
        }


def _int_setting(raw: Mapping[str, Any], key: str, default: int, lo: int, hi: Optional[int] = None) -> int:
    val = raw.get(key, default)
    try:
        n = int(val)
    except (TypeError, ValueError):
        raise ConfigurationError(f"dasha.{key} must be an integer, got {val!r}") from None
    if n < lo or (hi is not None and n > hi):
        bound = f"{lo}..{hi}" if hi is not None else f">= {lo}"
        raise ConfigurationError(f"dasha.{key} must be {bound}, got {n}")
    return n


def dasha_settings(cfg: Optional[Mapping[str, Any]] = None) -> DashaSettings:
    """Validated engine settings from a loaded config (missing keys → defaults)."""
    raw: Mapping[str, Any] = (cfg or {}).get("dasha") or {}
    sraw: Mapping[str, Any] = raw.get("sandhi") or {}

    try:
        pcts = dict(DEFAULT_SANDHI.percentages)
        for level, pct in (sraw.get("percentages") or {}).items():
            pcts[int(level)] = to_decimal(pct)
        lookahead = float(to_decimal(raw.get("default_lookahead_days", DEFAULT_LOOKAHEAD_DAYS)))
    except (InvalidInputError, TypeError, ValueError) as e:
        raise ConfigurationError(f"invalid dasha settings: {e}") from e
    if lookahead <= 0:
        raise ConfigurationError(f"dasha.default_lookahead_days must be positive, got {lookahead}")

    sandhi = SandhiSettings(
        percentages=pcts,
        min_seconds=_int_setting(sraw, "min_seconds", DEFAULT_SANDHI.min_seconds, 1),
        max_seconds=_int_setting(sraw, "max_seconds", DEFAULT_SANDHI.max_seconds, 1),
    )
    levels = _int_setting(raw, "default_sandhi_levels", DEFAULT_SANDHI_LEVELS, 1, MAX_LEVEL)
    if lookahead > SANDHI_MAX_HORIZON_DAYS[levels]:
        raise ConfigurationError(
            f"dasha.default_lookahead_days must not exceed {SANDHI_MAX_HORIZON_DAYS[levels]} "
            f"with {levels} sandhi levels, got {lookahead:g}"
        )
    return DashaSettings(
        max_depth=_int_setting(raw, "max_depth", MAX_LEVEL, 1, MAX_LEVEL),
        max_periods=_int_setting(raw, "max_periods", MAX_MAHADASHAS, 1, 36),
        default_lookahead_days=lookahead,
        default_sandhi_levels=levels,
        cache_capacity=_int_setting(raw, "cache_capacity", 256, 1),
        sandhi=sandhi,
    )
