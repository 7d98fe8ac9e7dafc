"""Named rooms joined by passcode."""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Optional

from ..schemas.signaling import RoomCreatedAck, RoomJoinAck
from .codes import ExpiringCodes, generate_passcode
from .errors import InvalidRoomName, RoomCodeUnavailable, RoomNotFound
from .events import ROOM_TEXT_RECEIVED, Outgoing
from .scopes import ScopeResolver, room_scope

DEFAULT_ROOM_TTL_SECONDS = 24 * 60 * 60

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class Room:
    passcode: str
    name: str
    owner_id: str
    created_at: float = field(default_factory=time.time)


class RoomBroker:
    """Create rooms, resolve passcode joins and relay room text.

    Membership is the session's scope; the broker only keeps the
    passcode -> room association. Rooms are keyed into scopes by name,
    which merges same-named rooms, unless ``scope_by_passcode`` is set.
    """

    def __init__(
        self,
        scopes: ScopeResolver,
        *,
        ttl: float = DEFAULT_ROOM_TTL_SECONDS,
        attempts: int = 10,
        scope_by_passcode: bool = False,
    ) -> None:
        self._scopes = scopes
        self._scope_by_passcode = scope_by_passcode
        self._rooms: ExpiringCodes[Room] = ExpiringCodes(
            ttl=ttl,
            attempts=attempts,
            generator=generate_passcode,
            exhausted=RoomCodeUnavailable,
            label="room passcode",
        )

    def get(self, passcode: str) -> Optional[Room]:
        return self._rooms.get(passcode)

    def scope_for(self, room: Room) -> str:
        return room_scope(room.passcode if self._scope_by_passcode else room.name)

    def create_room(self, session_id: str, room_name: str) -> tuple[RoomCreatedAck, list[Outgoing]]:
        room_name = (room_name or "").strip()
        if not room_name:
            raise InvalidRoomName()

        passcode = self._rooms.allocate()
        room = Room(passcode=passcode, name=room_name, owner_id=session_id)
        self._rooms.put(passcode, room)
        logger.info("Room %r created by %s", room_name, session_id)

        outgoing = self._scopes.move_to(session_id, self.scope_for(room))
        return RoomCreatedAck(room_name=room_name, passcode=passcode), outgoing

    def join_by_passcode(self, session_id: str, passcode: str) -> tuple[RoomJoinAck, list[Outgoing]]:
        room = self._rooms.get(passcode.strip().upper())
        if room is None:
            raise RoomNotFound()

        outgoing = self._scopes.move_to(session_id, self.scope_for(room))
        return RoomJoinAck(success=True, room_name=room.name), outgoing

    def join_room(self, session_id: str, room_name: str | None) -> list[Outgoing]:
        return self._scopes.change_scope(session_id, room_name)

    def leave(self, session_id: str) -> list[Outgoing]:
        return self._scopes.change_scope(session_id, None)

    def broadcast_text(self, session_id: str, text: str, sender: Any) -> list[Outgoing]:
        """Fire-and-forget text to every other connection in the sender's scope."""

        scope = self._scopes.scope_of(session_id)
        payload = {"text": text, "sender": sender, "senderId": session_id}
        return [
            Outgoing(member_id, ROOM_TEXT_RECEIVED, payload)
            for member_id in self._scopes.members(scope, exclude_id=session_id)
        ]

    def close(self) -> None:
        self._rooms.clear()
