"""
Platform Factory
Caller identity & owner-only access control.

Provides:
    - API key authentication via X-API-Key header (key → user id)
    - Bearer JWT authentication (HS256, ``sub`` = user id)
    - ``require_auth`` / ``require_owner`` decorators
    - ``caller_rate_limit_key`` for Flask-Limiter

Security model:
    - All /api/v1/* endpoints require a caller identity (except /api/v1/health/*)
    - The analysis pipeline is restricted to the single OWNER_USER_ID account
    - Session persistence lives outside this service; we only verify what the
      request carries

Configuration (env vars / app config):
    API_KEYS          — comma-separated "<key>:<user_id>" pairs
                        e.g. "k-9f2a:owner,k-71bc:alice"
    OWNER_USER_ID     — user id allowed to drive the analysis pipeline
    API_AUTH_ENABLED  — set to "false" to disable auth (development only);
                        every caller is then treated as the owner
"""

import functools
import logging
import os
from typing import Optional

import jwt
from flask import current_app, g, request
from flask_limiter.util import get_remote_address

from platform_factory.core.exceptions import AuthError, ForbiddenError

logger = logging.getLogger(__name__)

_DISABLED_VALUES = ("false", "0", "no", "off")
_DEV_CALLER = "dev-owner"
_CALLER_ENV_KEY = "platform_factory.caller_id"


def _parse_api_keys() -> dict[str, str]:
    """
    Parse API_KEYS into {key: user_id} mapping.

    Format: "key1:owner,key2:alice"
    Entries without a user id map the key to itself.
    """
    raw = current_app.config.get("API_KEYS") or os.getenv("API_KEYS", "")
    if not raw.strip():
        return {}

    keys = {}
    for entry in raw.split(","):
        entry = entry.strip()
        if not entry:
            continue
        if ":" in entry:
            key, user_id = entry.rsplit(":", 1)
            keys[key.strip()] = user_id.strip()
        else:
            keys[entry] = entry
    return keys


def is_auth_enabled() -> bool:
    """Check whether authentication is enabled (env var or app config)."""
    env_val = os.getenv("API_AUTH_ENABLED", "")
    if env_val:
        return env_val.lower() not in _DISABLED_VALUES
    try:
        return str(current_app.config.get("API_AUTH_ENABLED", "true")).lower() not in _DISABLED_VALUES
    except RuntimeError:
        # Outside app context
        return True


def owner_user_id() -> str:
    return current_app.config.get("OWNER_USER_ID") or ""


def _identity_from_api_key() -> Optional[str]:
    key = request.headers.get("X-API-Key", "").strip()
    if not key:
        return None
    user_id = _parse_api_keys().get(key)
    if user_id is None:
        logger.warning("Invalid API key attempt: %s...", key[:8])
    return user_id


def _identity_from_bearer() -> Optional[str]:
    header = request.headers.get("Authorization", "")
    if not header.lower().startswith("bearer "):
        return None
    token = header[7:].strip()
    if not token:
        return None
    from platform_factory.services.jwt_service import decode_access_token

    try:
        payload = decode_access_token(token)
    except jwt.InvalidTokenError as exc:
        logger.warning("Rejected bearer token: %s", exc)
        return None
    sub = payload.get("sub")
    return str(sub) if sub else None


def resolve_caller_id() -> Optional[str]:
    """
    Resolve the caller's user id from the current request.

    The result is cached in the WSGI environ so the rate limiter key function
    and the auth hook share one lookup per request.
    """
    if _CALLER_ENV_KEY in request.environ:
        return request.environ[_CALLER_ENV_KEY]
    caller_id = _identity_from_api_key() or _identity_from_bearer()
    request.environ[_CALLER_ENV_KEY] = caller_id
    return caller_id


def caller_rate_limit_key() -> str:
    """Rate limit key: authenticated user id if available, else remote IP."""
    caller_id = resolve_caller_id()
    if caller_id:
        return f"user:{caller_id}"
    return get_remote_address() or "unknown"


# ── Decorators ───────────────────────────────────────────────────────────────

def require_auth(f):
    """
    Decorator: require a caller identity for the endpoint.

    Sets g.current_user_id. When auth is disabled (development), the caller
    is the configured owner.
    """
    @functools.wraps(f)
    def decorated(*args, **kwargs):
        _authenticate()
        return f(*args, **kwargs)

    return decorated


def require_owner(f):
    """
    Decorator: require the caller to be the designated owner account.

    Usage:
        @bp.route("/analyze", methods=["POST"])
        @require_owner
        def analyze(): ...
    """
    @functools.wraps(f)
    def decorated(*args, **kwargs):
        user_id = _authenticate()
        owner = owner_user_id()
        if is_auth_enabled() and (not owner or user_id != owner):
            logger.warning(
                "Access denied: caller '%s' tried to access owner-only endpoint %s",
                user_id, request.path,
            )
            raise ForbiddenError("This endpoint is restricted to the platform owner")
        return f(*args, **kwargs)

    return decorated


def _authenticate() -> str:
    if not is_auth_enabled():
        g.current_user_id = owner_user_id() or _DEV_CALLER
        return g.current_user_id

    user_id = resolve_caller_id()
    if not user_id:
        raise AuthError("Authentication required. Provide X-API-Key header or Bearer token.")
    g.current_user_id = user_id
    return user_id


# ── App-level before_request hook installer ──────────────────────────────────

def init_auth(app):
    """
    Install authentication middleware on the Flask app.

    - Rejects anonymous /api/v1/* requests with 401
    - Skips health routes and CORS pre-flight requests
    """
    @app.before_request
    def _before_request_auth():
        if not request.path.startswith("/api/v1/"):
            return None
        if request.path.startswith("/api/v1/health"):
            return None
        if request.method == "OPTIONS":
            return None
        _authenticate()
        return None

    logger.debug("Auth middleware installed (enabled=%s)", is_auth_enabled())
