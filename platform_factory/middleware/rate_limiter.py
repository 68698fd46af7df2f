"""
Rate limiting configuration.

Applies per-blueprint shared limits using Flask-Limiter.
The Limiter instance is created in platform_factory/__init__.py with no
default limits and a moving (sliding) window strategy; this module applies
the pipeline budget per route family and renders 429 responses.

Budgets (per caller identity: user id, else remote IP):
    - analysis pipeline:  PIPELINE_RATE_LIMIT (default 30 per 60 seconds),
                          shared across every /api/v1/analysis/* route
    - platform builds:    same budget, shared across /api/v1/platforms/*
    - health:             exempt

Usage:
    from platform_factory.middleware.rate_limiter import init_rate_limits
    init_rate_limits(app, limiter)
"""

import logging
import math
import time

from flask_limiter.errors import RateLimitExceeded

from platform_factory.core.exceptions import RateLimitError
from platform_factory.utils.errors import E, api_error

logger = logging.getLogger(__name__)

# Blueprint name → shared limit scope
SHARED_SCOPES = {
    "analysis": "analysis_pipeline",
    "platforms": "platform_builds",
}

DEFAULT_WINDOW_SECONDS = 60


def retry_after_seconds(limiter, error: RateLimitExceeded | None = None) -> int:
    """
    Seconds until the caller's window frees a slot, clamped to 1..window.
    """
    window = DEFAULT_WINDOW_SECONDS
    if error is not None and getattr(error, "limit", None) is not None:
        window = int(error.limit.limit.get_expiry())

    current = limiter.current_limit
    if current is None:
        return window
    remaining = math.ceil(current.reset_at - time.time())
    return max(1, min(window, remaining))


def init_rate_limits(app, limiter):
    """
    Apply rate limits to API blueprints and install the 429 handler.

    Must run after blueprints are registered.
    """
    pipeline_limit = app.config.get("PIPELINE_RATE_LIMIT", "30 per 60 seconds")

    for bp_name, scope in SHARED_SCOPES.items():
        bp = app.blueprints.get(bp_name)
        if bp:
            limiter.shared_limit(pipeline_limit, scope=scope)(bp)

    bp = app.blueprints.get("health")
    if bp:
        limiter.exempt(bp)

    @app.errorhandler(RateLimitExceeded)
    def _rate_limited(e):
        retry_after = retry_after_seconds(limiter, e)
        logger.warning("Rate limit exceeded: %s (retry in %ss)", e.description, retry_after)
        return _render_rate_limit(RateLimitError(retry_after))

    @app.errorhandler(RateLimitError)
    def _rate_limit_error(e):
        return _render_rate_limit(e)

    app.logger.debug("Rate limiter configured — pipeline and builds: %s", pipeline_limit)


def _render_rate_limit(error: RateLimitError):
    resp, status = api_error(E.RATE_LIMITED, str(error), extra={"retryAfter": error.retry_after})
    resp.headers["Retry-After"] = str(error.retry_after)
    return resp, status
