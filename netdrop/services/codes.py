"""Short-lived code maps shared by the pairing and room brokers."""
from __future__ import annotations

import asyncio
import logging
import secrets
from typing import Callable, Dict, Generic, Optional, TypeVar

from .errors import CodeSpaceExhausted

PAIRING_CODE_MIN = 100000
PAIRING_CODE_SPAN = 900000
# No 0/O or 1/I.
PASSCODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
PASSCODE_LENGTH = 6

T = TypeVar("T")

logger = logging.getLogger(__name__)


def generate_pairing_code() -> str:
    return str(PAIRING_CODE_MIN + secrets.randbelow(PAIRING_CODE_SPAN))


def generate_passcode(length: int = PASSCODE_LENGTH) -> str:
    return "".join(secrets.choice(PASSCODE_ALPHABET) for _ in range(length))


class ExpiringCodes(Generic[T]):
    """Map of unique codes to values, each removed by a timer after ``ttl`` seconds.

    Expiry is scheduled with ``loop.call_later`` on the running event loop, so
    ``put`` must be called from inside it. Consuming a code cancels its timer.
    """

    def __init__(
        self,
        *,
        ttl: float,
        attempts: int,
        generator: Callable[[], str],
        exhausted: type[CodeSpaceExhausted] = CodeSpaceExhausted,
        label: str = "code",
    ) -> None:
        self._ttl = ttl
        self._attempts = attempts
        self._generator = generator
        self._exhausted = exhausted
        self._label = label
        self._entries: Dict[str, tuple[T, asyncio.TimerHandle]] = {}

    @property
    def ttl(self) -> float:
        return self._ttl

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, code: object) -> bool:
        return code in self._entries

    def allocate(self) -> str:
        """Return a code not currently mapped."""

        for _ in range(self._attempts):
            code = self._generator()
            if code not in self._entries:
                return code
            logger.debug("Generated %s %s collided, retrying", self._label, code)
        logger.warning("No free %s after %d attempts", self._label, self._attempts)
        raise self._exhausted()

    def put(self, code: str, value: T) -> None:
        if code in self._entries:
            raise ValueError(f"{self._label} {code} is already in use")
        loop = asyncio.get_running_loop()
        handle = loop.call_later(self._ttl, self._expire, code)
        self._entries[code] = (value, handle)

    def get(self, code: str) -> Optional[T]:
        entry = self._entries.get(code)
        return entry[0] if entry else None

    def pop(self, code: str) -> Optional[T]:
        entry = self._entries.pop(code, None)
        if entry is None:
            return None
        value, handle = entry
        handle.cancel()
        return value

    def clear(self) -> None:
        for _, handle in self._entries.values():
            handle.cancel()
        self._entries.clear()

    def _expire(self, code: str) -> None:
        if self._entries.pop(code, None) is not None:
            logger.debug("%s %s expired", self._label.capitalize(), code)
