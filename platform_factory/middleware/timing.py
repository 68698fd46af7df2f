"""
Request trace ids and timing.

Every request gets a trace id (the caller's ``X-Request-ID`` when present,
otherwise 16 hex chars). The id and the elapsed time are echoed back in
``X-Request-ID`` / ``X-Request-Duration-Ms``, and the same id is written to
the AI usage log for any model call made while serving the request.
"""

import logging
import time
import uuid

from flask import Flask, g, request

logger = logging.getLogger(__name__)

QUIET_PATHS = frozenset({"/api/v1/health/live", "/api/v1/health/ready"})

DEFAULT_SLOW_REQUEST_MS = 1000


def new_trace_id() -> str:
    return uuid.uuid4().hex[:16]


def current_trace_id() -> str:
    """Trace id of the active request, or a fresh one outside a request."""
    return getattr(g, "request_id", None) or new_trace_id()


def _level_for(status: int, duration_ms: float, slow_ms: float) -> int:
    if status >= 500:
        return logging.ERROR
    if duration_ms > slow_ms:
        return logging.WARNING
    return logging.DEBUG


def init_request_timing(app: Flask):
    slow_ms = float(app.config.get("SLOW_REQUEST_MS", DEFAULT_SLOW_REQUEST_MS))

    @app.before_request
    def _open_trace():
        g.request_id = request.headers.get("X-Request-ID") or new_trace_id()
        g.request_started = time.perf_counter()

    @app.after_request
    def _close_trace(response):
        started = getattr(g, "request_started", None)
        if started is None:
            return response

        duration_ms = (time.perf_counter() - started) * 1000
        response.headers["X-Request-ID"] = g.request_id
        response.headers["X-Request-Duration-Ms"] = f"{duration_ms:.1f}"

        if request.path in QUIET_PATHS:
            return response

        level = _level_for(response.status_code, duration_ms, slow_ms)
        logger.log(
            level,
            "%s %s -> %d (%.0fms)%s",
            request.method, request.path, response.status_code, duration_ms,
            " slow" if level == logging.WARNING else "",
            extra={
                "trace_id": g.request_id,
                "endpoint": request.endpoint,
                "method": request.method,
                "path": request.path,
                "status": response.status_code,
                "duration_ms": round(duration_ms, 1),
                "remote_addr": request.remote_addr,
            },
        )
        return response
