# tests/test_config.py
from __future__ import annotations

from decimal import Decimal
from pathlib import Path

import pytest

from dashaapp.core.errors import ConfigurationError
from dashaapp.utils.config import DashaSettings, dasha_settings, load_config

DEFAULTS_YAML = Path(__file__).resolve().parent.parent / "config" / "defaults.yaml"


def test_missing_file_means_defaults(tmp_path) -> None:
    cfg = load_config(str(tmp_path / "nope.yaml"))
    assert cfg.dasha == {}
    assert dasha_settings(cfg) == DashaSettings()


def test_repo_defaults_match_builtin_defaults() -> None:
    cfg = load_config(str(DEFAULTS_YAML))
    assert cfg.dasha.max_periods == 18
    assert dasha_settings(cfg) == DashaSettings()


def test_yaml_values_and_env_overrides(tmp_path, monkeypatch) -> None:
    p = tmp_path / "cfg.yaml"
    p.write_text(
        "dasha:\n"
        "  max_depth: 4\n"
        "  sandhi:\n"
        "    percentages: {1: '0.02'}\n"
        "    min_seconds: 60\n",
        encoding="utf-8",
    )
    monkeypatch.setenv("DASHA_LOOKAHEAD_DAYS", "90")
    monkeypatch.setenv("DASHA_CACHE_CAPACITY", "16")
    s = dasha_settings(load_config(str(p)))
    assert s.max_depth == 4
    assert s.default_lookahead_days == 90.0
    assert s.cache_capacity == 16
    assert s.sandhi.percentage(1) == Decimal("0.02")
    assert s.sandhi.percentage(2) == Decimal("0.10")
    assert s.sandhi.min_seconds == 60


def test_config_path_from_env(tmp_path, monkeypatch) -> None:
    p = tmp_path / "env.yaml"
    p.write_text("dasha:\n  max_periods: 9\n", encoding="utf-8")
    monkeypatch.setenv("DASHA_CONFIG", str(p))
    assert dasha_settings(load_config()).max_periods == 9


@pytest.mark.parametrize("dasha", [
    {"max_depth": 9},
    {"max_periods": 0},
    {"cache_capacity": "lots"},
    {"default_lookahead_days": -1},
    {"sandhi": {"percentages": {2: 0}}},
    {"sandhi": {"percentages": {2: "abc"}}},
    {"sandhi": {"min_seconds": 100, "max_seconds": 10}},
    {"sandhi": {"percentages": {5: "0.10"}}},
    {"default_sandhi_levels": 6, "default_lookahead_days": 3650},
])
def test_bad_settings_rejected(dasha) -> None:
    with pytest.raises(ConfigurationError):
        dasha_settings({"dasha": dasha})


def test_non_mapping_yaml_rejected(tmp_path) -> None:
    p = tmp_path / "list.yaml"
    p.write_text("- 1\n- 2\n", encoding="utf-8")
    with pytest.raises(ConfigurationError):
        load_config(str(p))


def test_deep_default_levels_with_short_lookahead() -> None:
    s = dasha_settings({"dasha": {"default_sandhi_levels": 6, "default_lookahead_days": 30}})
    assert s.default_sandhi_levels == 6
    assert s.default_lookahead_days == 30.0
