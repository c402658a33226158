"""FastAPI dependencies shared by the auth endpoints."""

from __future__ import annotations

from fastapi import Cookie, HTTPException, Request, status

from otp_gateway.auth.tokens import TokenError, decode_access_token
from otp_gateway.otp.service import OTPService


def get_otp_service(request: Request) -> OTPService:
    """Return the OTP service built during application startup."""
    return request.app.state.otp_service


def current_user_id(access_token: str | None = Cookie(default=None)) -> int:
    """Resolve the user id from the ``access_token`` cookie or reject with 401."""
    if not access_token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authorization cookie required",
        )
    try:
        return decode_access_token(access_token)
    except TokenError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(exc),
        ) from exc
