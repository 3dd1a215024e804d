# dashaapp/main.py
from __future__ import annotations

import logging
import os
import traceback
from time import perf_counter
from typing import Final

from flask import Flask, Response, jsonify, request
from flask_cors import CORS
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    REGISTRY,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)
from werkzeug.exceptions import HTTPException
from werkzeug.middleware.proxy_fix import ProxyFix

from dashaapp.api.helpers import CACHE_KEY, SETTINGS_KEY
from dashaapp.api.routes import api as dasha_bp
from dashaapp.core.errors import ConfigurationError, InvalidInputError, InvariantViolation
from dashaapp.core.validators import ValidationError
from dashaapp.utils.cache import TimelineCache
from dashaapp.utils.config import dasha_settings, load_config
from dashaapp.version import VERSION

# ───────────────────────── Prometheus ─────────────────────────
MET_REQUESTS: Final = Counter("dasha_api_requests_total", "API requests", ["route"])
MET_ERRORS: Final = Counter("dasha_api_errors_total", "API errors by kind", ["kind"])
GAUGE_APP_UP: Final = Gauge("dasha_app_up", "1 if app is running")
REQ_LATENCY: Final = Histogram("dasha_request_seconds", "API request latency", ["route"])

_TRACKED = ("/", "/health", "/healthz", "/metrics")

# ───────────────────────── helpers: logging & errors ─────────────────────────
def _configure_logging(app: Flask) -> None:
    gerr = logging.getLogger("gunicorn.error")
    if gerr.handlers:
        app.logger.handlers = gerr.handlers
        app.logger.setLevel(gerr.level)
    else:
        logging.basicConfig(level=os.environ.get("LOG_LEVEL", "INFO"))

def _register_errors(app: Flask) -> None:
    @app.errorhandler(ValidationError)
    def _validation(e: ValidationError):
        MET_ERRORS.labels(kind="validation").inc()
        return jsonify(ok=False, error="validation_error", details=e.errors(), path=request.path), 400

    @app.errorhandler(InvalidInputError)
    def _invalid(e: InvalidInputError):
        MET_ERRORS.labels(kind="invalid_input").inc()
        return jsonify(ok=False, error="invalid_input", message=str(e), path=request.path), 400

    @app.errorhandler(ConfigurationError)
    def _config(e: ConfigurationError):
        MET_ERRORS.labels(kind="configuration").inc()
        app.logger.error("configuration error at %s %s: %s", request.method, request.path, e)
        return jsonify(ok=False, error="configuration_error", message=str(e), path=request.path), 500

    @app.errorhandler(InvariantViolation)
    def _invariant(e: InvariantViolation):
        MET_ERRORS.labels(kind="invariant").inc()
        app.logger.error("invariant violated at %s %s: %s", request.method, request.path, e)
        return jsonify(ok=False, error="invariant_violation", message=str(e), path=request.path), 500

    @app.errorhandler(HTTPException)
    def _http(e: HTTPException):
        app.logger.warning("HTTP %s at %s %s: %s", e.code, request.method, request.path, e.description)
        return jsonify(
            ok=False,
            error="http_error",
            code=e.code,
            name=e.name,
            message=e.description,
            path=request.path,
        ), e.code

    @app.errorhandler(Exception)
    def _any(e: Exception):
        MET_ERRORS.labels(kind="internal").inc()
        tb = traceback.format_exc()
        app.logger.error("UNHANDLED %s at %s %s\n%s", type(e).__name__, request.method, request.path, tb)
        return jsonify(
            ok=False,
            error="internal_error",
            type=type(e).__name__,
            message=str(e),
            path=request.path,
        ), 500

# ───────────────────────── health & metrics ─────────────────────────
def _register_health(app: Flask) -> None:
    @app.route("/", methods=["GET"])
    def root():
        return jsonify(ok=True, service="dasha-engine", version=VERSION, health="/health"), 200

    @app.route("/health", methods=["GET"])
    @app.route("/healthz", methods=["GET"])
    def health():
        return jsonify(ok=True, status="ok", version=VERSION), 200

def _metrics_auth_ok() -> bool:
    auth = request.authorization
    user = os.getenv("METRICS_USER", "")
    pw = os.getenv("METRICS_PASS", "")
    return bool(
        auth and auth.type == "basic" and auth.username == user and auth.password == pw and user and pw
    )

def _register_metrics(app: Flask) -> None:
    @app.before_request
    def _before():
        p = request.path or ""
        if p.startswith("/api/") or p in _TRACKED:
            MET_REQUESTS.labels(route=p).inc()
            request.environ["dasha.t0"] = perf_counter()

    @app.after_request
    def _after(resp):
        t0 = request.environ.get("dasha.t0")
        if t0 is not None:
            REQ_LATENCY.labels(route=request.path or "").observe(perf_counter() - t0)
        return resp

    # /metrics (Basic Auth)
    @app.route("/metrics", methods=["GET"])
    def metrics_endpoint():
        if not _metrics_auth_ok():
            return Response("Unauthorized", 401, {"WWW-Authenticate": 'Basic realm="metrics"'})
        GAUGE_APP_UP.set(1.0)
        return Response(generate_latest(REGISTRY), mimetype=CONTENT_TYPE_LATEST)

# ───────────────────────── app factory ─────────────────────────
def create_app(config_path: str | None = None) -> Flask:
    app = Flask(__name__)
    app.json.sort_keys = False  # type: ignore[attr-defined]
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1)  # type: ignore

    _configure_logging(app)

    # Settings are validated here so a bad config fails at startup, not per request.
    cfg = load_config(config_path)
    settings = dasha_settings(cfg)
    app.config["DASHA_CONFIG"] = cfg
    app.extensions[SETTINGS_KEY] = settings
    app.extensions[CACHE_KEY] = TimelineCache(settings.cache_capacity)

    for route in ("/api/dasha/timeline", "/api/dasha/active", "/api/dasha/subperiods",
                  "/api/dasha/sandhi", "/api/dasha/config") + _TRACKED:
        MET_REQUESTS.labels(route=route).inc(0)
    GAUGE_APP_UP.set(1.0)

    _register_health(app)
    _register_errors(app)
    _register_metrics(app)
    app.register_blueprint(dasha_bp)

    # CORS for browser UIs
    CORS(
        app,
        resources={r"/.*": {"origins": os.environ.get("CORS_ALLOW_ORIGIN") or "*"}},
        supports_credentials=False,
        methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "X-API-Key"],
        max_age=600,
    )

    app.logger.info(
        "App initialized; version=%s max_periods=%d max_depth=%d cache_capacity=%d",
        VERSION, settings.max_periods, settings.max_depth, settings.cache_capacity,
    )
    return app

# ───────────────────────── app instance ─────────────────────────
app = create_app()

if __name__ == "__main__":
    app.run(host="0.0.0.0", port=int(os.environ.get("PORT", 5000)))
