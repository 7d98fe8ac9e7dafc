"""Event names and the outgoing message record shared by the brokers."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any

CONNECTED = "connected"
ACK = "ack"

ANNOUNCE_PRESENCE = "announce-presence"
ACTIVE_PEERS = "active-peers"
PEER_PRESENCE = "peer-presence"
PEER_LEFT = "peer-left"

JOIN_ROOM = "join-room"
CREATE_ROOM = "create-room"
JOIN_ROOM_BY_CODE = "join-room-by-code"
LEAVE_ROOM = "leave-room"
BROADCAST_ROOM_TEXT = "broadcast-room-text"
ROOM_TEXT_RECEIVED = "room-text-received"

CREATE_PAIR_CODE = "create-pair-code"
PAIR_CODE_CREATED = "pair-code-created"
JOIN_WITH_CODE = "join-with-code"
PAIR_SUCCESS = "pair-success"

SIGNAL_OFFER = "signal-offer"
SIGNAL_ANSWER = "signal-answer"
SIGNAL_ICE_CANDIDATE = "signal-ice-candidate"


@dataclass(slots=True)
class Outgoing:
    """A message addressed to one connection, delivered in list order."""

    target_id: str
    event: str
    data: Any
    ack: int | str | None = None

    def frame(self) -> dict[str, Any]:
        frame: dict[str, Any] = {"event": self.event, "data": self.data}
        if self.ack is not None:
            frame["ack"] = self.ack
        return frame
