"""User-facing failures raised by the signaling components."""
from __future__ import annotations

PAIR_ERROR = "pair-error"
ROOM_ERROR = "room-error"
GENERIC_ERROR = "error"


class SignalingError(Exception):
    """Base class for failures reported back to the requesting client.

    ``message`` is the short human-readable string the client sees and
    ``event`` names the event used when the client did not request an ack;
    ``pair-error`` is emitted even when it did.
    """

    event = GENERIC_ERROR
    message = "Request failed"

    def __init__(self, message: str | None = None) -> None:
        if message is not None:
            self.message = message
        super().__init__(self.message)


class PairingError(SignalingError):
    event = PAIR_ERROR


class CodeNotFound(PairingError):
    message = "Invalid or expired code"


class SelfPairing(PairingError):
    message = "Cannot pair with yourself"


class PeerMissing(PairingError):
    message = "Peer not found"


class RoomError(SignalingError):
    event = ROOM_ERROR


class RoomNotFound(RoomError):
    message = "Invalid Room Code"


class InvalidRoomName(RoomError):
    message = "Room name is required"


class CodeSpaceExhausted(SignalingError):
    """No unused code could be generated within the configured attempts."""

    message = "Could not allocate a code, try again"


class PairCodeUnavailable(CodeSpaceExhausted, PairingError):
    pass


class RoomCodeUnavailable(CodeSpaceExhausted, RoomError):
    pass


class InvariantViolation(RuntimeError):
    """Internal state is inconsistent; the current request is rejected."""
