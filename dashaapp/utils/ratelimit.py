# dashaapp/utils/ratelimit.py
from __future__ import annotations

"""
Token-bucket rate limiter for the dasha routes.

- Per-client buckets scoped per route (IP, or X-API-Key when present)
- Thread-safe (per-process) via RLock
- X-RateLimit-* headers, Retry-After on 429
- Env toggles, read per request:
    DASHA_RL_DISABLE       -> disable limiter entirely
    DASHA_RL_ALLOWLIST     -> comma-separated client ids/IPs to skip
"""

import math
import os
import time
from dataclasses import dataclass
from functools import wraps
from threading import RLock
from typing import Any, Callable, Dict, Optional, Set

from flask import request, jsonify, make_response

__all__ = ["rate_limit", "client_key", "reset_buckets"]

# ───────────────────────── storage / globals ─────────────────────────
_buckets: Dict[str, "Bucket"] = {}  # in-memory; per-process
_lock = RLock()


def _disabled() -> bool:
    return os.getenv("DASHA_RL_DISABLE", "0").lower() in ("1", "true", "yes", "on")


def _allowlist() -> Set[str]:
    return {s.strip() for s in os.getenv("DASHA_RL_ALLOWLIST", "").split(",") if s.strip()}


# ───────────────────────── key functions ─────────────────────────
def _first_forwarded_for(req) -> str:
    xff = req.headers.get("X-Forwarded-For", "")
    return (xff.split(",")[0].strip() if xff else "") or (req.remote_addr or "anon")


def client_key(req) -> str:
    """X-API-Key if sent, else client IP; route-scoped."""
    ident = (req.headers.get("X-API-Key") or "").strip() or _first_forwarded_for(req)
    return f"{ident}:{(req.endpoint or req.path) or '*'}"


# ───────────────────────── bucket / math ─────────────────────────
@dataclass
class Bucket:
    tokens: float       # current tokens
    capacity: float     # burst capacity
    rate: float         # tokens per second
    ts: float           # last refill time (monotonic)
    limit: int          # advertised limit (per minute)


def _refill(b: Bucket, now: float) -> None:
    if now > b.ts:
        b.tokens = min(b.capacity, b.tokens + (now - b.ts) * b.rate)
        b.ts = now


def _cleanup(now: float) -> None:
    """Evict idle, full buckets at most every 30 s so memory stays bounded."""
    last = getattr(_cleanup, "_last", 0.0)
    if now - last < 30.0:
        return
    setattr(_cleanup, "_last", now)
    stale = [k for k, b in _buckets.items() if b.tokens >= b.capacity and (now - b.ts) > 180.0]
    for k in stale:
        _buckets.pop(k, None)


def reset_buckets() -> None:
    with _lock:
        _buckets.clear()


# ───────────────────────── public decorator ─────────────────────────
def rate_limit(max_per_minute: int, key_fn: Optional[Callable[[Any], str]] = None, *,
               burst: Optional[int] = None):
    """
    On limit, returns 429 JSON:
        {"ok": False, "error": "rate_limited", "details": {"retry_after_seconds": N}}
    """
    if max_per_minute <= 0:
        raise ValueError("max_per_minute must be > 0")

    limit = int(max_per_minute)
    capacity = float(burst if burst is not None else limit)
    rate = float(limit) / 60.0

    def decorator(f):
        @wraps(f)
        def wrapper(*args, **kwargs):
            if _disabled() or request.method in ("HEAD", "OPTIONS"):
                return f(*args, **kwargs)

            bucket_key = str((key_fn or client_key)(request))
            allow = _allowlist()
            if bucket_key in allow or bucket_key.split(":", 1)[0] in allow:
                return f(*args, **kwargs)

            now = time.monotonic()
            with _lock:
                _cleanup(now)
                b = _buckets.get(bucket_key)
                if b is None:
                    b = Bucket(tokens=capacity, capacity=capacity, rate=rate, ts=now, limit=limit)
                    _buckets[bucket_key] = b
                else:
                    _refill(b, now)

                if b.tokens + 1e-12 < 1.0:
                    retry_after = max(1, math.ceil((1.0 - b.tokens) / b.rate))
                    resp = make_response(jsonify({
                        "ok": False,
                        "error": "rate_limited",
                        "details": {"retry_after_seconds": retry_after},
                    }), 429)
                    resp.headers["Retry-After"] = str(retry_after)
                    resp.headers["X-RateLimit-Limit"] = str(b.limit)
                    resp.headers["X-RateLimit-Remaining"] = "0"
                    return resp

                b.tokens -= 1.0
                remaining = max(0, int(b.tokens))

            resp = make_response(f(*args, **kwargs))
            resp.headers.setdefault("X-RateLimit-Limit", str(limit))
            resp.headers["X-RateLimit-Remaining"] = str(remaining)
            return resp

        return wrapper

    return decorator
