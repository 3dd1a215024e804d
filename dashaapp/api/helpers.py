# dashaapp/api/helpers.py
from __future__ import annotations
from typing import Any, Dict, Tuple

from flask import current_app, request
from werkzeug.exceptions import BadRequest

from dashaapp.core.dasha import Timeline
from dashaapp.core.validators import BirthPayload, ValidationError, parse_birth_payload
from dashaapp.core.weights import VIMSHOTTARI
from dashaapp.utils.cache import TimelineCache
from dashaapp.utils.config import DashaSettings

# Keys under app.extensions; populated by main.create_app().
SETTINGS_KEY = "dasha_settings"
CACHE_KEY = "dasha_timeline_cache"


def body_json() -> Dict[str, Any]:
    data = request.get_json(force=True, silent=True)
    if data is None:
        raise BadRequest("request body must be JSON")
    if not isinstance(data, dict):
        raise ValidationError("payload must be an object")
    return data


def settings() -> DashaSettings:
    return current_app.extensions.get(SETTINGS_KEY) or DashaSettings()


def timeline_cache() -> TimelineCache:
    cache = current_app.extensions.get(CACHE_KEY)
    if cache is None:
        cache = TimelineCache(settings().cache_capacity)
        current_app.extensions[CACHE_KEY] = cache
    return cache


def timeline_from_payload(body: Dict[str, Any]) -> Tuple[Timeline, BirthPayload]:
    """
    Validate the birth fields of a request body and return the (cached)
    top-level timeline for that chart.
    """
    birth = parse_birth_payload(body)
    tl = timeline_cache().get_or_compute(
        birth["birth"], birth["longitude"], VIMSHOTTARI, settings().max_periods
    )
    return tl, birth


def birth_echo(birth: BirthPayload) -> Dict[str, Any]:
    return {
        "date": birth["date"],
        "time": birth["time"],
        "tz": birth.get("tz"),
        "utc_offset": birth.get("utc_offset"),
        "utc": birth["birth"].isoformat(),
        "longitude": birth["longitude"],
    }
