"""
Bearer token support for caller identification.

Sessions live in an external identity service that signs HS256 tokens with
the shared ``JWT_SECRET_KEY``; this service only reads the ``sub`` claim as
the caller id. Issuing is kept for the CLI and tests.

Claims: ``sub`` (user id), ``type`` ("access"), ``iss`` (``JWT_ISSUER``),
``iat``, ``exp`` and a random ``jti``.
"""

import uuid
from datetime import datetime, timedelta, timezone

import jwt
from flask import current_app

ALGORITHM = "HS256"
TOKEN_TYPE = "access"
DEFAULT_ACCESS_EXPIRES = 900
DEFAULT_ISSUER = "platform-factory"
CLOCK_LEEWAY_SECONDS = 10


def _signing_key() -> str:
    return current_app.config.get("JWT_SECRET_KEY") or current_app.config["SECRET_KEY"]


def _issuer() -> str:
    return current_app.config.get("JWT_ISSUER", DEFAULT_ISSUER)


def generate_access_token(user_id: str, expires_in: int | None = None) -> str:
    """Sign an access token whose ``sub`` is ``user_id``."""
    if expires_in is None:
        expires_in = int(current_app.config.get("JWT_ACCESS_EXPIRES", DEFAULT_ACCESS_EXPIRES))
    issued_at = datetime.now(timezone.utc)
    claims = {
        "sub": str(user_id),
        "type": TOKEN_TYPE,
        "iss": _issuer(),
        "iat": issued_at,
        "exp": issued_at + timedelta(seconds=expires_in),
        "jti": uuid.uuid4().hex,
    }
    return jwt.encode(claims, _signing_key(), algorithm=ALGORITHM)


def decode_access_token(token: str) -> dict:
    """
    Verify signature, expiry, issuer and token type.

    Raises ``jwt.InvalidTokenError`` (or a subclass) when any check fails.
    """
    claims = jwt.decode(
        token,
        _signing_key(),
        algorithms=[ALGORITHM],
        issuer=_issuer(),
        leeway=CLOCK_LEEWAY_SECONDS,
        options={"require": ["sub", "exp", "iss"]},
    )
    if claims.get("type") != TOKEN_TYPE:
        raise jwt.InvalidTokenError(f"Unexpected token type: {claims.get('type')!r}")
    return claims
