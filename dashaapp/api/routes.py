# dashaapp/api/routes.py
"""
Dasha API routes
- Timeline: nakshatra, balance, top-level periods (optionally evaluated at as_of)
- Active path at an instant, down to Dehadasha
- Sub-periods of any node by label path
- Sandhi (transition) windows over a lookahead horizon
- Ops: /api/dasha/config

Every route takes the same birth fields: date, time, tz | utc_offset, longitude.
Instants ('as_of', 'at', 'from') are ISO-8601 strings with an offset.
"""

from __future__ import annotations

import logging
import os
from typing import Any

from flask import Blueprint, jsonify

from dashaapp.api.helpers import birth_echo, body_json, settings, timeline_from_payload
from dashaapp.core.constants import DASHA_CONSTANTS_VERSION
from dashaapp.core.dasha_format import describe_path, duration_string, short_path
from dashaapp.core.dasha_query import period_info_at, resolve_path, snapshot, sub_periods
from dashaapp.core.errors import InvalidInputError
from dashaapp.core.sandhi import upcoming_transitions
from dashaapp.core.validators import (
    ValidationError,
    parse_instant,
    parse_level,
    parse_path,
    parse_positive_days,
)
from dashaapp.core.weights import VIMSHOTTARI
from dashaapp.utils.ratelimit import rate_limit
from dashaapp.version import VERSION

log = logging.getLogger(__name__)
api = Blueprint("dasha", __name__)

# ── per-endpoint rate-limit caps (calls per minute, env-overridable) ───────────
_RL = lambda k, d: int(os.getenv(k, str(d)))
RL_TIMELINE = _RL("DASHA_RL_TIMELINE_PER_MIN", 120)
RL_QUERY    = _RL("DASHA_RL_QUERY_PER_MIN",    240)
RL_SANDHI   = _RL("DASHA_RL_SANDHI_PER_MIN",    60)
RL_CONFIG   = _RL("DASHA_RL_CONFIG_PER_MIN",    30)


# ───────────────────────── helpers ─────────────────────────
def _json_error(code: str, details: Any = None, http: int = 400):
    out = {"ok": False, "error": code}
    if details is not None:
        out["details"] = details
    return jsonify(out), http


def _client_error(e: Exception):
    if isinstance(e, ValidationError):
        return _json_error("validation_error", e.errors(), 400)
    log.info("invalid dasha input: %s", e)
    return _json_error("invalid_input", str(e), 400)


# ───────────────────────── timeline ─────────────────────────
@api.post("/api/dasha/timeline")
@rate_limit(RL_TIMELINE)
def timeline_endpoint():
    try:
        body = body_json()
        tl, birth = timeline_from_payload(body)
        as_of = parse_instant(body["as_of"], "as_of") if body.get("as_of") is not None else None
        out = {
            "ok": True,
            "birth": birth_echo(birth),
            "timeline": tl.to_dict(as_of),
            "warnings": birth["warnings"],
        }
        if as_of is not None:
            st = settings()
            snap = snapshot(tl, as_of, st.default_lookahead_days, st.default_sandhi_levels,
                            st.max_depth, st.sandhi)
            out["snapshot"] = snap.to_dict()
            out["snapshot"]["description"] = describe_path(snap.active)
    except (ValidationError, InvalidInputError) as e:
        return _client_error(e)
    return jsonify(out), 200


# ───────────────────────── active path ─────────────────────────
@api.post("/api/dasha/active")
@rate_limit(RL_QUERY)
def active_endpoint():
    try:
        body = body_json()
        tl, birth = timeline_from_payload(body)
        at = parse_instant(body.get("at"), "at")
        depth = parse_level(body.get("depth"), "depth", settings().max_depth)
        if depth > settings().max_depth:
            raise ValidationError({"loc": ["depth"], "msg": f"must not exceed {settings().max_depth}",
                                   "type": "value_error"})
        info = period_info_at(tl, at, depth)
    except (ValidationError, InvalidInputError) as e:
        return _client_error(e)

    out = {"ok": True, "birth": birth_echo(birth), "warnings": birth["warnings"]}
    out.update(info.to_dict())
    out["description"] = describe_path(info.periods)
    out["short"] = short_path(info.periods, tl.table)
    out["in_range"] = bool(info.periods)
    return jsonify(out), 200


# ───────────────────────── sub-periods ─────────────────────────
@api.post("/api/dasha/subperiods")
@rate_limit(RL_QUERY)
def subperiods_endpoint():
    try:
        body = body_json()
        tl, birth = timeline_from_payload(body)
        path = parse_path(body.get("path"))
        node = resolve_path(tl, path)
        children = sub_periods(node, tl.table)
    except (ValidationError, InvalidInputError) as e:
        return _client_error(e)

    return jsonify({
        "ok": True,
        "birth": birth_echo(birth),
        "parent": node.to_dict(),
        "children": [
            dict(c.to_dict(), duration=duration_string(c.duration_seconds)) for c in children
        ],
    }), 200


# ───────────────────────── sandhi ─────────────────────────
@api.post("/api/dasha/sandhi")
@rate_limit(RL_SANDHI)
def sandhi_endpoint():
    st = settings()
    try:
        body = body_json()
        tl, birth = timeline_from_payload(body)
        start = parse_instant(body.get("from"), "from")
        lookahead = parse_positive_days(body.get("lookahead_days"), "lookahead_days",
                                        st.default_lookahead_days)
        levels = parse_level(body.get("levels"), "levels", st.default_sandhi_levels)
        windows = upcoming_transitions(tl, start, lookahead, levels, st.sandhi)
    except (ValidationError, InvalidInputError) as e:
        return _client_error(e)

    return jsonify({
        "ok": True,
        "birth": birth_echo(birth),
        "from": start.isoformat(),
        "lookahead_days": lookahead,
        "levels": levels,
        "count": len(windows),
        "transitions": [w.to_dict() for w in windows],
    }), 200


# ───────────────────────── ops ─────────────────────────
@api.get("/api/dasha/config")
@rate_limit(RL_CONFIG)
def config_endpoint():
    table = VIMSHOTTARI
    return jsonify({
        "ok": True,
        "version": VERSION,
        "constants_version": DASHA_CONSTANTS_VERSION,
        "settings": settings().to_dict(),
        "table": {
            "name": table.name,
            "cycle_years": str(table.cycle_years),
            "labels": [
                {"label": lbl, "symbol": table.symbol(lbl), "years": str(table.weight(lbl))}
                for lbl in table.labels
            ],
        },
    }), 200
