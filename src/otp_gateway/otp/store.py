"""In-memory OTP store with expiry, single-use consumption and background eviction."""

from __future__ import annotations

import enum
import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass

logger = logging.getLogger(__name__)

# OTP validity period in seconds
OTP_TTL_SECONDS = 300  # 5 minutes

# How often the evictor sweeps the table, in seconds
SWEEP_INTERVAL_SECONDS = 60.0


class OTPError(LookupError):
    """Base class for lookup failures raised by :class:`OTPStore`."""


class OTPNotFoundError(OTPError):
    """No code was issued for this identifier, or it was already consumed."""


class OTPExpiredError(OTPError):
    """A code was issued but its validity window has passed."""


class VerificationStatus(str, enum.Enum):
    """Outcome of checking a submitted code."""

    VALID = "valid"
    INCORRECT = "incorrect"
    NOT_FOUND = "not_found"
    EXPIRED = "expired"
    INTERNAL_ERROR = "internal_error"


@dataclass(frozen=True)
class OTPEntry:
    code: str
    issued_at: float
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


class OTPStore:
    """Thread-safe in-memory OTP store.

    Each entry maps ``identifier → OTPEntry``.  Expired entries are removed
    when a lookup observes them, and by a background evictor thread that
    sweeps the whole table every ``sweep_interval`` seconds.  Call
    :meth:`close` to stop the evictor.
    """

    def __init__(
        self,
        ttl_seconds: float = OTP_TTL_SECONDS,
        sweep_interval: float = SWEEP_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        start_evictor: bool = True,
    ) -> None:
        self._ttl = ttl_seconds
        self._sweep_interval = sweep_interval
        self._clock = clock
        self._store: dict[str, OTPEntry] = {}
        # Re-entrant so verify() can hold the lock across get() and delete().
        self._lock = threading.RLock()
        self._stop = threading.Event()
        self._evictor: threading.Thread | None = None
        if start_evictor:
            self._evictor = threading.Thread(
                target=self._run_evictor, name="otp-evictor", daemon=True
            )
            self._evictor.start()

    # ── Table operations ─────────────────────────────────

    def set(self, identifier: str, code: str) -> None:
        """Store *code* for *identifier*, replacing any previous entry."""
        now = self._clock()
        entry = OTPEntry(code=code, issued_at=now, expires_at=now + self._ttl)
        with self._lock:
            self._store[identifier] = entry
        logger.debug("OTP stored for %s", identifier)

    def get(self, identifier: str) -> str:
        """Return the live code for *identifier*.

        Raises :class:`OTPNotFoundError` if nothing is stored and
        :class:`OTPExpiredError` if the entry has expired, in which case the
        entry is removed.
        """
        with self._lock:
            entry = self._store.get(identifier)
            if entry is None:
                raise OTPNotFoundError(identifier)
            if entry.is_expired(self._clock()):
                del self._store[identifier]
                raise OTPExpiredError(identifier)
            return entry.code

    def delete(self, identifier: str) -> None:
        """Remove the entry for *identifier*; a missing entry is not an error."""
        with self._lock:
            self._store.pop(identifier, None)

    def verify(self, identifier: str, submitted: str) -> VerificationStatus:
        """Check *submitted* against the stored code and consume it on a match.

        A wrong code leaves the entry in place.
        """
        with self._lock:
            try:
                stored = self.get(identifier)
            except OTPExpiredError:
                logger.info("OTP expired for %s", identifier)
                return VerificationStatus.EXPIRED
            except OTPNotFoundError:
                return VerificationStatus.NOT_FOUND

            if submitted != stored:
                return VerificationStatus.INCORRECT

            try:
                self.delete(identifier)
            except Exception:
                logger.exception("Failed to consume OTP for %s", identifier)
            return VerificationStatus.VALID

    def sweep(self) -> int:
        """Remove every expired entry and return how many were removed."""
        with self._lock:
            now = self._clock()
            expired = [key for key, entry in self._store.items() if entry.is_expired(now)]
            for key in expired:
                del self._store[key]
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)

    def __contains__(self, identifier: object) -> bool:
        with self._lock:
            return identifier in self._store

    # ── Background eviction ──────────────────────────────

    @property
    def evictor_running(self) -> bool:
        return self._evictor is not None and self._evictor.is_alive()

    def close(self, timeout: float | None = 5.0) -> None:
        """Signal the evictor to stop and wait for it to exit."""
        self._stop.set()
        if self._evictor is not None:
            self._evictor.join(timeout)
            self._evictor = None

    def _run_evictor(self) -> None:
        logger.debug("OTP evictor started (interval=%ss)", self._sweep_interval)
        while not self._stop.wait(self._sweep_interval):
            try:
                removed = self.sweep()
            except Exception:
                logger.exception("OTP sweep failed")
                continue
            if removed:
                logger.info("OTP evictor removed %s expired entries", removed)
        logger.debug("OTP evictor stopped")
