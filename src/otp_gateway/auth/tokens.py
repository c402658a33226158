"""Access and refresh tokens.

Access tokens are short-lived HS256 JWTs carrying the user id in ``sub``.
Refresh tokens are opaque random strings stored on the user row and
rotated whenever they are used.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime, timedelta

import jwt

from otp_gateway.config import settings


class TokenError(ValueError):
    pass


def create_access_token(user_id: int, ttl_seconds: int | None = None) -> str:
    if not settings.jwt_secret:
        raise TokenError("JWT secret is not configured")
    now = datetime.now(UTC)
    ttl = settings.access_token_ttl_seconds if ttl_seconds is None else ttl_seconds
    payload = {
        "sub": str(user_id),
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(seconds=ttl)).timestamp()),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> int:
    """Validate *token* and return the user id it was issued for."""
    if not token:
        raise TokenError("Token is missing")
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            options={"require": ["sub", "exp"]},
        )
    except jwt.ExpiredSignatureError as exc:
        raise TokenError("Token has expired") from exc
    except jwt.InvalidTokenError as exc:
        raise TokenError("Invalid token") from exc
    try:
        return int(payload["sub"])
    except (TypeError, ValueError) as exc:
        raise TokenError("Invalid token subject") from exc


def new_refresh_token() -> str:
    return str(uuid.uuid4())
