# dashaapp/core/validators.py
from __future__ import annotations

import math
import re
from datetime import datetime, date, timedelta, timezone, tzinfo
from typing import Any, Dict, List, Optional, Tuple, TypedDict, Union
from zoneinfo import ZoneInfo

from dashaapp.core.constants import MAX_LEVEL

# ───────────────────────── errors ─────────────────────────

class ValidationError(ValueError):
    """Structured validator error for routes.py (has .errors())."""
    def __init__(self, details: Union[str, Dict[str, Any], List[Dict[str, Any]]]):
        if isinstance(details, str):
            self._details = [{"loc": [], "msg": details, "type": "value_error"}]
            super().__init__(details)
        elif isinstance(details, dict):
            self._details = [details]
            super().__init__(details.get("msg", "validation_error"))
        elif isinstance(details, list):
            self._details = details
            super().__init__(self._details[0]["msg"] if self._details else "validation_error")
        else:
            self._details = [{"loc": [], "msg": "validation_error", "type": "value_error"}]
            super().__init__("validation_error")

    def errors(self) -> List[Dict[str, Any]]:
        return list(self._details)


# ───────────────────────── helpers ─────────────────────────

def _err(loc: List[Any] | str, msg: str, typ: str = "value_error") -> Dict[str, Any]:
    return {"loc": [loc] if isinstance(loc, str) else loc, "msg": msg, "type": typ}

def _as_float(v: Any) -> Optional[float]:
    if v is None or isinstance(v, bool):
        return None
    try:
        x = float(v)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(x):
        return None
    return x

def _as_int(v: Any) -> Optional[int]:
    if isinstance(v, bool):
        return None
    if isinstance(v, int):
        return v
    if isinstance(v, float) and v.is_integer():
        return int(v)
    if isinstance(v, str) and v.strip().lstrip("+-").isdigit():
        return int(v.strip())
    return None

def _validate_iana_tz(tz: str, loc: Optional[List[str]] = None) -> ZoneInfo:
    try:
        return ZoneInfo(tz)
    except (KeyError, ValueError, OSError):
        raise ValidationError([{
            "loc": loc or ["tz"],
            "msg": "must be a valid IANA zone like 'Asia/Kolkata'",
            "type": "value_error",
        }]) from None


# ───────────────────────── atomic parsers ─────────────────────────

_TIME_RE = re.compile(r"^\s*(?P<h>\d{1,2}):(?P<m>\d{2})(?::(?P<s>\d{2})(?:\.(?P<f>\d+))?)?\s*$")
_OFFSET_RE = re.compile(r"^\s*(?P<sign>[+-])(?P<h>\d{2}):?(?P<m>\d{2})\s*$")

def _normalize_time_hms(s: str) -> str:
    """
    Accept 'HH:MM', 'HH:MM:SS', or 'HH:MM:SS.frac'. Allow leap-second (SS==60).
    Disallow 24:00 except exactly '24:00:00'. Return canonical 'HH:MM:SS[.frac]'.
    """
    m = _TIME_RE.match(s or "")
    if not m:
        raise ValidationError(_err("time", "time must be 'HH:MM' or 'HH:MM:SS[.frac]'", "value_error.time"))
    hh = int(m.group("h")); mm = int(m.group("m"))
    ss = int(m.group("s") or 0); frac = (m.group("f") or "")
    if not (0 <= hh <= 24 and 0 <= mm <= 59 and 0 <= ss <= 60):
        raise ValidationError(_err("time", "time fields out of range", "value_error.time"))
    if hh == 24:
        if not (mm == 0 and ss == 0 and frac == ""):
            raise ValidationError(_err("time", "24:00:00 is only allowed exactly", "value_error.time"))
        return "24:00:00"
    if m.group("s") is None:
        return f"{hh:02d}:{mm:02d}:00"
    return f"{hh:02d}:{mm:02d}:{ss:02d}" + (f".{frac}" if frac else "")

def parse_date(s: str) -> date:
    try:
        return datetime.strptime(s, "%Y-%m-%d").date()
    except (TypeError, ValueError):
        raise ValidationError(_err("date", "date must be 'YYYY-MM-DD'", "value_error.date")) from None

def parse_time_str(s: str) -> str:
    return _normalize_time_hms(s)

def parse_utc_offset(s: Any, loc: str = "utc_offset") -> timezone:
    """'+05:30', '-0800', 'Z' or 'UTC' → fixed-offset tzinfo."""
    if not isinstance(s, str):
        raise ValidationError(_err(loc, "must be a string like '+05:30'", "type_error"))
    if s.strip().upper() in ("Z", "UTC"):
        return timezone.utc
    m = _OFFSET_RE.match(s)
    if not m:
        raise ValidationError(_err(loc, "must look like '+05:30' or '-0800'", "value_error.offset"))
    hh, mm = int(m.group("h")), int(m.group("m"))
    if hh > 14 or mm > 59:
        raise ValidationError(_err(loc, "offset out of range (max ±14:00)", "value_error.offset"))
    delta = timedelta(hours=hh, minutes=mm)
    return timezone(-delta if m.group("sign") == "-" else delta)

def parse_longitude(v: Any, loc: str = "longitude") -> float:
    """Sidereal longitude in degrees; any finite value, wrapped later by the engine."""
    x = _as_float(v)
    if x is None:
        raise ValidationError(_err(loc, "must be a finite number (degrees)", "type_error.float"))
    return x

def parse_instant(v: Any, loc: str = "at") -> datetime:
    """ISO-8601 instant carrying an offset, e.g. '2024-03-01T12:00:00+05:30' or '...Z'."""
    if not isinstance(v, str) or not v.strip():
        raise ValidationError(_err(loc, "required ISO-8601 string with offset", "value_error"))
    s = v.strip()
    if s.endswith(("Z", "z")):
        s = s[:-1] + "+00:00"
    try:
        dt = datetime.fromisoformat(s)
    except ValueError:
        raise ValidationError(_err(loc, "must be ISO-8601 like '2024-03-01T12:00:00+00:00'", "value_error.datetime")) from None
    if dt.tzinfo is None or dt.utcoffset() is None:
        raise ValidationError(_err(loc, "must include a UTC offset", "value_error.datetime"))
    return dt.astimezone(timezone.utc)

def parse_positive_days(v: Any, loc: str, default: float, max_days: float = 36_500.0) -> float:
    if v is None:
        return float(default)
    x = _as_float(v)
    if x is None or x <= 0:
        raise ValidationError(_err(loc, "must be a positive number of days", "value_error"))
    if x > max_days:
        raise ValidationError(_err(loc, f"must not exceed {max_days:g} days", "value_error"))
    return x

def parse_level(v: Any, loc: str, default: int) -> int:
    if v is None:
        return int(default)
    n = _as_int(v)
    if n is None or not (1 <= n <= MAX_LEVEL):
        raise ValidationError(_err(loc, f"must be an integer within 1..{MAX_LEVEL}", "value_error"))
    return n

def parse_path(v: Any, loc: str = "path") -> List[Union[str, int]]:
    """Label path; the first item may be a top-level index."""
    if not isinstance(v, (list, tuple)) or not v:
        raise ValidationError(_err(loc, "must be a non-empty array of labels", "type_error.list"))
    if len(v) > MAX_LEVEL - 1:
        raise ValidationError(_err(loc, f"at most {MAX_LEVEL - 1} labels (level {MAX_LEVEL} has no sub-periods)"))
    out: List[Union[str, int]] = []
    for i, item in enumerate(v):
        if i == 0 and isinstance(item, int) and not isinstance(item, bool):
            out.append(item)
        elif isinstance(item, str) and item.strip():
            out.append(item.strip())
        else:
            raise ValidationError(_err([loc, i], "must be a label string", "type_error"))
    return out


# ───────────────────────── local civil time → instant ─────────────────────────

def _fold_offsets(z: ZoneInfo, naive_local: datetime) -> Tuple[timedelta, List[str]]:
    """
    Offset for a naive local datetime. Detect DST ambiguity; prefer fold=0
    but warn if fold=1 differs. Warn on wall times skipped by a DST gap.
    """
    warnings: List[str] = []
    aware0 = naive_local.replace(tzinfo=z, fold=0)
    off0 = aware0.utcoffset()
    if off0 is None:
        raise ValidationError(_err("tz", "timezone returned no UTC offset"))
    off1 = naive_local.replace(tzinfo=z, fold=1).utcoffset()
    if off1 is not None and off1 != off0:
        roundtrip = aware0.astimezone(timezone.utc).astimezone(z).replace(tzinfo=None)
        warnings.append("dst_ambiguous" if roundtrip == naive_local else "dst_gap")
    return off0, warnings

def local_to_utc(d: date, time_norm: str, tz: tzinfo) -> Tuple[datetime, List[str]]:
    """
    Civil (date, 'HH:MM:SS[.frac]') in `tz` → aware UTC datetime.
    Accepts '24:00:00' (next midnight) and a leap second (SS==60, folded
    into the following second).
    """
    warnings: List[str] = []
    if time_norm == "24:00:00":
        d = d + timedelta(days=1)
        hh = mm = ss = 0
        frac = ""
    else:
        m = _TIME_RE.match(time_norm)
        if m is None:
            raise ValidationError(_err("time", "time must be 'HH:MM' or 'HH:MM:SS[.frac]'", "value_error.time"))
        hh, mm, ss = int(m.group("h")), int(m.group("m")), int(m.group("s") or 0)
        frac = m.group("f") or ""

    add_one_sec = False
    if ss == 60:
        ss = 59
        add_one_sec = True
        warnings.append("leap_second_folded")

    us = int((frac + "000000")[:6])
    naive = datetime(d.year, d.month, d.day, hh, mm, ss, us)

    if isinstance(tz, ZoneInfo):
        off, wz = _fold_offsets(tz, naive)
        warnings.extend(wz)
    else:
        off = tz.utcoffset(naive) or timedelta(0)

    try:
        out = (naive - off).replace(tzinfo=timezone.utc)
        if add_one_sec:
            out += timedelta(seconds=1)
    except OverflowError:
        raise ValidationError(_err("date", "date is outside the supported range", "value_error.date")) from None
    return out, warnings


# ───────────────────────── birth payload ─────────────────────────

class BirthPayload(TypedDict, total=False):
    date: str
    time: str            # canonical 'HH:MM:SS[.frac]'
    tz: Optional[str]
    utc_offset: Optional[str]
    birth: datetime      # aware, UTC
    longitude: float
    warnings: List[str]

def parse_birth_payload(body: Dict[str, Any]) -> BirthPayload:
    """
    Normalize the birth inputs shared by every /api/dasha/* route.

    - Require 'date', 'time' and 'longitude' (alias 'moon_longitude').
    - Zone is either 'tz' (IANA, alias 'place_tz'/'timezone') or 'utc_offset';
      not both. Neither means UTC.
    - DST-ambiguous or skipped wall times are accepted with a warning.
    """
    if not isinstance(body, dict):
        raise ValidationError("payload must be an object")

    date_s = body.get("date")
    time_s = body.get("time")
    if not isinstance(date_s, str) or not date_s.strip():
        raise ValidationError(_err("date", "required string", "value_error"))
    if not isinstance(time_s, str) or not time_s.strip():
        raise ValidationError(_err("time", "required string", "value_error"))

    d = parse_date(date_s.strip())
    t_str = parse_time_str(time_s)

    tz = body.get("tz") or body.get("place_tz") or body.get("timezone")
    off = body.get("utc_offset")
    if tz is not None and off is not None:
        raise ValidationError(_err(["tz", "utc_offset"], "give either tz or utc_offset, not both"))

    tz_out: Optional[str] = None
    off_out: Optional[str] = None
    if tz is not None:
        if not isinstance(tz, str) or not tz.strip():
            raise ValidationError(_err("tz", "must be a string (IANA)", "value_error"))
        tz_out = tz.strip()
        zone: tzinfo = _validate_iana_tz(tz_out)
    elif off is not None:
        zone = parse_utc_offset(off)
        off_out = str(off).strip()
    else:
        zone = timezone.utc

    if "longitude" in body:
        lon = parse_longitude(body.get("longitude"))
    elif "moon_longitude" in body:
        lon = parse_longitude(body.get("moon_longitude"), "moon_longitude")
    else:
        raise ValidationError(_err("longitude", "required sidereal Moon longitude (degrees)", "value_error"))

    birth, warnings = local_to_utc(d, t_str, zone)

    return {
        "date": d.strftime("%Y-%m-%d"),
        "time": t_str,
        "tz": tz_out,
        "utc_offset": off_out,
        "birth": birth,
        "longitude": lon,
        "warnings": warnings,
    }


__all__ = [
    "ValidationError",
    "BirthPayload",
    "parse_birth_payload",
    "parse_date",
    "parse_time_str",
    "parse_utc_offset",
    "parse_longitude",
    "parse_instant",
    "parse_positive_days",
    "parse_level",
    "parse_path",
    "local_to_utc",
]
