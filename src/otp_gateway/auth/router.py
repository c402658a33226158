"""Auth router — passcode issuance, login and session tokens.

Endpoints
---------
POST /otp        → text a passcode to a phone number
POST /login      → exchange phone + passcode for session cookies
POST /logout     → drop the refresh token and clear cookies
POST /refresh    → rotate tokens using the refresh cookie
GET  /verify     → return the user id behind the access cookie
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Cookie, Depends, HTTPException, Response, status
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from otp_gateway.auth.deps import current_user_id, get_otp_service
from otp_gateway.auth.tokens import TokenError, create_access_token, new_refresh_token
from otp_gateway.config import settings
from otp_gateway.database.engine import get_session
from otp_gateway.database.repository import UserRepository
from otp_gateway.delivery.sms import DeliveryError, to_e164
from otp_gateway.models.user import User
from otp_gateway.otp.service import OTPService
from otp_gateway.otp.store import VerificationStatus

logger = logging.getLogger(__name__)

router = APIRouter(tags=["auth"])

PHONE_COOKIE = "phone"
ACCESS_COOKIE = "access_token"
REFRESH_COOKIE = "refresh_token"

# Failed outcome → (HTTP status, message)
_FAILURE_RESPONSES: dict[VerificationStatus, tuple[int, str]] = {
    VerificationStatus.INCORRECT: (status.HTTP_401_UNAUTHORIZED, "Invalid OTP"),
    VerificationStatus.NOT_FOUND: (status.HTTP_404_NOT_FOUND, "No OTP was issued for this phone"),
    VerificationStatus.EXPIRED: (status.HTTP_410_GONE, "OTP has expired"),
    VerificationStatus.INTERNAL_ERROR: (
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "Could not verify OTP",
    ),
}


# ── Request / response models ────────────────────────────

class OTPRequest(BaseModel):
    phone: str = Field(min_length=1, max_length=32)


class LoginRequest(BaseModel):
    otp: str = Field(min_length=1, max_length=16)
    phone: str | None = Field(default=None, max_length=32)


class MessageResponse(BaseModel):
    message: str


class LoginResponse(BaseModel):
    message: str
    status: VerificationStatus
    user_id: int


class VerifyResponse(BaseModel):
    user_id: int


def _error(status_code: int, status_value: str, message: str) -> HTTPException:
    return HTTPException(
        status_code=status_code,
        detail={"status": status_value, "message": message},
    )


def _set_session_cookies(response: Response, user: User) -> None:
    try:
        access_token = create_access_token(user.id)
    except TokenError as exc:
        raise _error(
            status.HTTP_500_INTERNAL_SERVER_ERROR, "internal_error", "Failed to generate token"
        ) from exc
    user.refresh_token = new_refresh_token()

    response.set_cookie(
        ACCESS_COOKIE,
        access_token,
        max_age=settings.access_token_ttl_seconds,
        httponly=True,
        secure=settings.cookie_secure,
    )
    response.set_cookie(
        REFRESH_COOKIE,
        user.refresh_token,
        max_age=settings.refresh_token_ttl_seconds,
        httponly=True,
        secure=settings.cookie_secure,
    )


# ── Endpoints ────────────────────────────────────────────

@router.post("/otp", response_model=MessageResponse)
async def request_otp(
    body: OTPRequest,
    response: Response,
    otp_service: OTPService = Depends(get_otp_service),
    session: AsyncSession = Depends(get_session),
):
    """Send a fresh passcode to ``body.phone``."""
    phone = to_e164(body.phone)
    await UserRepository(session).get_or_create(phone)
    await session.commit()

    try:
        await otp_service.issue(phone)
    except DeliveryError as exc:
        logger.error("OTP delivery to %s failed: %s", phone, exc)
        raise _error(
            status.HTTP_502_BAD_GATEWAY,
            VerificationStatus.INTERNAL_ERROR.value,
            "Failed to send OTP",
        ) from exc

    response.set_cookie(PHONE_COOKIE, phone, httponly=True, secure=settings.cookie_secure)
    return MessageResponse(message="OTP sent successfully")


@router.post("/login", response_model=LoginResponse)
async def login(
    body: LoginRequest,
    response: Response,
    phone_cookie: str | None = Cookie(default=None, alias=PHONE_COOKIE),
    otp_service: OTPService = Depends(get_otp_service),
    session: AsyncSession = Depends(get_session),
):
    """Validate a passcode and start a session."""
    raw_phone = body.phone or phone_cookie
    if not raw_phone:
        raise _error(status.HTTP_400_BAD_REQUEST, "missing_phone", "Phone number required")
    phone = to_e164(raw_phone)

    outcome = otp_service.verify(phone, body.otp)
    if outcome is not VerificationStatus.VALID:
        status_code, message = _FAILURE_RESPONSES[outcome]
        raise _error(status_code, outcome.value, message)

    user = await UserRepository(session).get_or_create(phone)
    user.is_verified = True
    _set_session_cookies(response, user)
    await session.commit()

    logger.info("User %s logged in", user.id)
    return LoginResponse(message="Login successful", status=outcome, user_id=user.id)


@router.post("/logout", response_model=MessageResponse)
async def logout(
    response: Response,
    user_id: int = Depends(current_user_id),
    session: AsyncSession = Depends(get_session),
):
    user = await UserRepository(session).find_by_id(user_id)
    if user is None:
        raise _error(status.HTTP_401_UNAUTHORIZED, "unknown_user", "Failed to find user")

    user.refresh_token = None
    await session.commit()

    response.delete_cookie(ACCESS_COOKIE, httponly=True, secure=settings.cookie_secure)
    response.delete_cookie(REFRESH_COOKIE, httponly=True, secure=settings.cookie_secure)
    logger.info("User %s logged out", user_id)
    return MessageResponse(message="Logged out successfully")


@router.post("/refresh", response_model=MessageResponse)
async def refresh_tokens(
    response: Response,
    refresh_token: str | None = Cookie(default=None, alias=REFRESH_COOKIE),
    session: AsyncSession = Depends(get_session),
):
    """Issue a new access token and rotate the refresh token."""
    if not refresh_token:
        raise _error(
            status.HTTP_400_BAD_REQUEST, "missing_refresh_token", "Refresh token required"
        )

    user = await UserRepository(session).find_by_refresh_token(refresh_token)
    if user is None:
        raise _error(
            status.HTTP_401_UNAUTHORIZED, "invalid_refresh_token", "Invalid refresh token"
        )

    _set_session_cookies(response, user)
    await session.commit()
    return MessageResponse(message="Tokens refreshed successfully")


@router.get("/verify", response_model=VerifyResponse)
async def verify_token(user_id: int = Depends(current_user_id)):
    """Confirm the access cookie is valid."""
    return VerifyResponse(user_id=user_id)
