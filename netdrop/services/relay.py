"""Addressed relay of WebRTC negotiation payloads."""
from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional

from .events import Outgoing

logger = logging.getLogger(__name__)


class SignalKind(str, enum.Enum):
    OFFER = "offer"
    ANSWER = "answer"
    ICE_CANDIDATE = "ice-candidate"

    @property
    def event(self) -> str:
        return f"signal-{self.value}"

    @property
    def field(self) -> str:
        """Key carrying the payload inside the message body."""

        return "candidate" if self is SignalKind.ICE_CANDIDATE else self.value


@dataclass(slots=True, frozen=True)
class SignalEnvelope:
    kind: SignalKind
    target_id: str
    sender_id: str
    payload: Any

    @classmethod
    def from_message(cls, kind: SignalKind, sender_id: str, data: Any) -> Optional["SignalEnvelope"]:
        if not isinstance(data, Mapping):
            return None
        target_id = data.get("targetId")
        if not isinstance(target_id, str) or not target_id:
            return None
        return cls(kind=kind, target_id=target_id, sender_id=sender_id, payload=data.get(kind.field))

    def outgoing(self) -> Outgoing:
        return Outgoing(self.target_id, self.kind.event, {"senderId": self.sender_id, self.kind.field: self.payload})


class SignalRelay:
    """Forward signaling payloads to a connected target without inspecting them.

    Reachability is decided by ``is_reachable`` (the live transport set), so a
    target does not need to have announced presence. Misses are dropped.
    """

    def __init__(self, is_reachable: Callable[[str], bool]) -> None:
        self._is_reachable = is_reachable

    def relay(self, kind: SignalKind, target_id: str, sender_id: str, payload: Any) -> Optional[Outgoing]:
        return self.forward(SignalEnvelope(kind, target_id, sender_id, payload))

    def route(self, kind: SignalKind, sender_id: str, data: Any) -> Optional[Outgoing]:
        envelope = SignalEnvelope.from_message(kind, sender_id, data)
        if envelope is None:
            logger.debug("Dropping %s from %s without a target", kind.event, sender_id)
            return None
        return self.forward(envelope)

    def forward(self, envelope: SignalEnvelope) -> Optional[Outgoing]:
        if not self._is_reachable(envelope.target_id):
            logger.debug(
                "Dropping %s from %s: %s is not connected",
                envelope.kind.event,
                envelope.sender_id,
                envelope.target_id,
            )
            return None
        return envelope.outgoing()
