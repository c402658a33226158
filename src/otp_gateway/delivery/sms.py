"""SMS delivery — sends passcodes to phone numbers.

``TwilioSmsSender`` talks to the Twilio Messages REST API with ``httpx``.
``ConsoleSmsSender`` only logs the message and is used when Twilio is not
configured, so the whole flow can be exercised locally.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

import httpx

from otp_gateway.config import Settings

logger = logging.getLogger(__name__)


class DeliveryError(RuntimeError):
    """The message could not be handed to the SMS provider."""


def to_e164(phone: str) -> str:
    """Ensure *phone* carries the leading ``+`` of E.164 format."""
    cleaned = phone.strip()
    if not cleaned.startswith("+"):
        cleaned = "+" + cleaned
    return cleaned


class SmsSender(ABC):
    """Sends a text message to a phone number."""

    @abstractmethod
    async def send(self, to_phone: str, body: str) -> None:
        """Deliver *body* to *to_phone*; raise :class:`DeliveryError` on failure."""


class TwilioSmsSender(SmsSender):
    """Sends SMS through the Twilio Messages API."""

    def __init__(
        self,
        account_sid: str,
        auth_token: str,
        from_phone: str,
        base_url: str = "https://api.twilio.com/2010-04-01",
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = 10.0,
    ) -> None:
        self._account_sid = account_sid
        self._auth_token = auth_token
        self._from_phone = to_e164(from_phone)
        self._url = f"{base_url.rstrip('/')}/Accounts/{account_sid}/Messages.json"
        self._transport = transport
        self._timeout = timeout

    async def send(self, to_phone: str, body: str) -> None:
        payload = {"To": to_e164(to_phone), "From": self._from_phone, "Body": body}
        try:
            async with httpx.AsyncClient(
                transport=self._transport, timeout=self._timeout
            ) as client:
                resp = await client.post(
                    self._url,
                    data=payload,
                    auth=(self._account_sid, self._auth_token),
                )
        except httpx.HTTPError as exc:
            logger.exception("Twilio request error for %s: %s", payload["To"], exc)
            raise DeliveryError("Failed to reach SMS provider") from exc

        if resp.is_success:
            logger.info("SMS sent to %s", payload["To"])
            return

        logger.error(
            "Twilio rejected SMS to %s: %s %s", payload["To"], resp.status_code, resp.text
        )
        raise DeliveryError(f"SMS provider returned {resp.status_code}")


class ConsoleSmsSender(SmsSender):
    """Development sender — writes the message to the log instead of sending it."""

    async def send(self, to_phone: str, body: str) -> None:
        logger.warning("Twilio not configured — SMS to %s logged only: %s", to_phone, body)


def build_sms_sender(settings: Settings) -> SmsSender:
    """Pick the Twilio sender when credentials are present, else the console one."""
    if settings.twilio_configured:
        return TwilioSmsSender(
            account_sid=settings.twilio_account_sid,
            auth_token=settings.twilio_auth_token,
            from_phone=settings.twilio_phone_number,
            base_url=settings.twilio_api_base_url,
        )
    return ConsoleSmsSender()
