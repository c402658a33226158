"""Passcode generation — a secure source with a seeded pseudorandom fallback."""

from __future__ import annotations

import logging
import os
import random
import secrets
from abc import ABC, abstractmethod

logger = logging.getLogger(__name__)

CODE_MIN = 1000
CODE_MAX = 9999


class CodeSource(ABC):
    """Something that can draw an integer in ``[CODE_MIN, CODE_MAX]``."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Short label used in logs."""

    def is_healthy(self) -> bool:
        return True

    @abstractmethod
    def draw(self) -> int:
        """Return a value in ``[CODE_MIN, CODE_MAX]``."""


class SecureCodeSource(CodeSource):
    """Draws from the operating system's CSPRNG via :mod:`secrets`."""

    @property
    def name(self) -> str:
        return "secure"

    def is_healthy(self) -> bool:
        try:
            os.urandom(1)
        except (OSError, NotImplementedError):
            return False
        return True

    def draw(self) -> int:
        return CODE_MIN + secrets.randbelow(CODE_MAX - CODE_MIN + 1)


class SeededCodeSource(CodeSource):
    """Non-cryptographic fallback, seeded once when constructed."""

    def __init__(self, seed: int | None = None) -> None:
        self._random = random.Random(seed)

    @property
    def name(self) -> str:
        return "seeded"

    def draw(self) -> int:
        return self._random.randint(CODE_MIN, CODE_MAX)


class CodeGenerator:
    """Produces 4-digit passcodes.

    The primary source is used whenever its health check passes.  If the
    check fails, the draw raises, or the drawn value falls outside
    ``[CODE_MIN, CODE_MAX]``, the fallback source is used instead.
    Generation never fails from the caller's point of view.
    """

    def __init__(
        self,
        primary: CodeSource | None = None,
        fallback: CodeSource | None = None,
    ) -> None:
        self._primary = primary or SecureCodeSource()
        self._fallback = fallback or SeededCodeSource()

    def generate(self) -> str:
        """Return a fresh passcode as a 4-character decimal string."""
        if self._primary.is_healthy():
            try:
                value = self._primary.draw()
            except (OSError, NotImplementedError) as exc:
                logger.warning(
                    "%s code source failed (%s), using %s source",
                    self._primary.name,
                    type(exc).__name__,
                    self._fallback.name,
                )
            else:
                if CODE_MIN <= value <= CODE_MAX:
                    return str(value)
                logger.warning(
                    "%s code source drew out of range, using %s source",
                    self._primary.name,
                    self._fallback.name,
                )
        else:
            logger.warning(
                "%s code source unavailable, using %s source",
                self._primary.name,
                self._fallback.name,
            )
        return str(self._fallback.draw())
