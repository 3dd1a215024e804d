# tests/conftest.py
from __future__ import annotations

"""
Pytest configuration for the dasha engine suite.

- Registers Hypothesis profiles for local dev and CI.
- Freezes the process TZ to UTC (we always pass zones explicitly).
- Shared fixtures: a structurally Vimshottari L1..L9 table, a birth
  instant, a ready-made timeline and a Flask test client.
"""

import os
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path

import pytest
from hypothesis import settings, HealthCheck

from dashaapp.core.dasha import compute_timeline_from_anchor
from dashaapp.core.weights import VIMSHOTTARI, make_table


# ──────────────────────────────────────────────────────────────────────────────
# Hypothesis profiles
# ──────────────────────────────────────────────────────────────────────────────
settings.register_profile(
    "dev",
    settings(
        deadline=None,           # avoid flaky timeouts on slower runners
        max_examples=60,         # fast local runs
        suppress_health_check=[HealthCheck.too_slow],
    ),
)
settings.register_profile(
    "ci",
    settings(
        deadline=None,
        max_examples=120,        # a bit more coverage in CI
        suppress_health_check=[HealthCheck.too_slow],
    ),
)

_profile = (
    "ci"
    if (os.getenv("CI") or os.getenv("GITHUB_ACTIONS"))
    else os.getenv("HYPOTHESIS_PROFILE", "dev")
)
settings.load_profile(_profile)

REPO_ROOT = Path(__file__).resolve().parent.parent
DEFAULTS_YAML = REPO_ROOT / "config" / "defaults.yaml"


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line("markers", "slow: mark test as slow")


def pytest_report_header(config: pytest.Config) -> str:
    return f"Hypothesis profile: '{_profile}'"


# ──────────────────────────────────────────────────────────────────────────────
# Global fixtures
# ──────────────────────────────────────────────────────────────────────────────

@pytest.fixture(scope="session", autouse=True)
def freeze_tz_env():
    prev = os.environ.get("TZ")
    os.environ["TZ"] = "UTC"
    try:
        yield
    finally:
        if prev is None:
            os.environ.pop("TZ", None)
        else:
            os.environ["TZ"] = prev


@pytest.fixture(scope="session")
def l_table():
    """Vimshottari weights under neutral labels L1..L9."""
    return make_table(
        "l-table",
        {"L1": 7, "L2": 20, "L3": 6, "L4": 10, "L5": 7, "L6": 18, "L7": 16, "L8": 19, "L9": 17},
        cycle_years=120,
    )


@pytest.fixture(scope="session")
def birth():
    return datetime(1990, 5, 17, 4, 30, tzinfo=timezone.utc)


@pytest.fixture(scope="session")
def timeline(birth):
    """Ketu half elapsed at birth: 3.5 years of Ketu, then Venus onward."""
    return compute_timeline_from_anchor(birth, Decimal("0.5"), "Ketu", VIMSHOTTARI)


@pytest.fixture()
def client(monkeypatch):
    monkeypatch.setenv("DASHA_RL_DISABLE", "1")
    from dashaapp.main import create_app
    app = create_app(str(DEFAULTS_YAML))
    app.testing = True
    return app.test_client()
