"""OTP service — ties code generation, SMS delivery and the store together."""

from __future__ import annotations

import logging

from otp_gateway.delivery.sms import SmsSender, to_e164
from otp_gateway.otp.generator import CodeGenerator
from otp_gateway.otp.store import OTPStore, VerificationStatus

logger = logging.getLogger(__name__)


class OTPService:
    """Issues passcodes over SMS and checks them.

    The code is only stored once the SMS provider has accepted the message,
    so a failed send never leaves a usable code behind.
    """

    def __init__(
        self,
        store: OTPStore,
        generator: CodeGenerator,
        sender: SmsSender,
        ttl_seconds: int,
    ) -> None:
        self._store = store
        self._generator = generator
        self._sender = sender
        self._ttl_seconds = ttl_seconds

    @property
    def store(self) -> OTPStore:
        return self._store

    async def issue(self, phone: str) -> None:
        """Generate a code, text it to *phone* and remember it.

        Raises :class:`~otp_gateway.delivery.sms.DeliveryError` if the SMS
        could not be sent; the store is left untouched in that case.
        """
        identifier = to_e164(phone)
        code = self._generator.generate()
        await self._sender.send(identifier, self._build_body(code))
        self._store.set(identifier, code)
        logger.info("OTP issued for %s", identifier)

    def verify(self, phone: str, code: str) -> VerificationStatus:
        """Check *code* for *phone*, consuming it on success."""
        identifier = to_e164(phone)
        try:
            status = self._store.verify(identifier, code)
        except Exception:
            logger.exception("OTP verification failed unexpectedly for %s", identifier)
            return VerificationStatus.INTERNAL_ERROR
        logger.info("OTP verification for %s: %s", identifier, status.value)
        return status

    def _build_body(self, code: str) -> str:
        minutes = max(1, self._ttl_seconds // 60)
        return f"Your OTP is: {code}. It expires in {minutes} minute(s)."
