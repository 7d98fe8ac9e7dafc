"""In-memory WebRTC signaling manager."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from functools import partial
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Dict, Iterable, Mapping

from pydantic import ValidationError

from ..schemas.signaling import (
    ClientEnvelope,
    PasscodeRequest,
    PresenceAnnouncement,
    RoomNameRequest,
    RoomTextRequest,
)
from . import events
from .errors import GENERIC_ERROR, PAIR_ERROR, InvariantViolation, SignalingError
from .events import Outgoing
from .pairing import DEFAULT_CODE_TTL_SECONDS, PairingBroker
from .registry import ConnectionRegistry
from .relay import SignalKind, SignalRelay
from .rooms import DEFAULT_ROOM_TTL_SECONDS, RoomBroker
from .scopes import ScopeResolver

if TYPE_CHECKING:  # pragma: no cover - typing helpers only
    from ..core.config import Settings

SendCallable = Callable[[dict], Awaitable[None]]
HandlerResult = tuple[list[Outgoing], Any]

INVALID_PAYLOAD = "Invalid payload"
UNKNOWN_EVENT = "Unknown event"
INTERNAL_ERROR = "Internal server error"

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class SignalingConnection:
    """Connection wrapper for signaling participants."""

    connection_id: str
    send: SendCallable
    network_address: str = "unknown"


class SignalingManager:
    """Own all signaling state and process client events one at a time.

    Every event is dispatched under a single lock, so scope transitions and
    code resolution never interleave with other events. The notifications an
    event produces are queued, still under the lock, on each target's outbox
    and written by that connection's own writer task. A client that stops
    reading only backs up its own outbox.
    """

    def __init__(
        self,
        *,
        pairing_code_ttl: float = DEFAULT_CODE_TTL_SECONDS,
        room_ttl: float = DEFAULT_ROOM_TTL_SECONDS,
        room_scope_by_passcode: bool = False,
        code_generation_attempts: int = 10,
    ) -> None:
        self._connections: Dict[str, SignalingConnection] = {}
        self._outboxes: Dict[str, asyncio.Queue[Outgoing]] = {}
        self._writers: Dict[str, asyncio.Task[None]] = {}
        self._lock = asyncio.Lock()
        self.registry = ConnectionRegistry()
        self.scopes = ScopeResolver(self.registry)
        self.pairing = PairingBroker(
            self.registry, ttl=pairing_code_ttl, attempts=code_generation_attempts
        )
        self.rooms = RoomBroker(
            self.scopes,
            ttl=room_ttl,
            attempts=code_generation_attempts,
            scope_by_passcode=room_scope_by_passcode,
        )
        self.relay = SignalRelay(self.is_connected)
        self._handlers: Dict[str, Callable[[str, Any], HandlerResult]] = {
            events.ANNOUNCE_PRESENCE: self._on_announce_presence,
            events.JOIN_ROOM: self._on_join_room,
            events.CREATE_ROOM: self._on_create_room,
            events.JOIN_ROOM_BY_CODE: self._on_join_room_by_code,
            events.LEAVE_ROOM: self._on_leave_room,
            events.BROADCAST_ROOM_TEXT: self._on_broadcast_room_text,
            events.CREATE_PAIR_CODE: self._on_create_pair_code,
            events.JOIN_WITH_CODE: self._on_join_with_code,
        }
        for kind in SignalKind:
            self._handlers[kind.event] = partial(self._on_signal, kind)

    @classmethod
    def from_settings(cls, settings: "Settings") -> "SignalingManager":
        return cls(
            pairing_code_ttl=settings.pairing_code_ttl_seconds,
            room_ttl=settings.room_ttl_seconds,
            room_scope_by_passcode=settings.room_scope_by_passcode,
            code_generation_attempts=settings.code_generation_attempts,
        )

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    def is_connected(self, connection_id: str) -> bool:
        return connection_id in self._connections

    async def connect(self, connection: SignalingConnection) -> str:
        """Register a transport connection and place it in its network scope."""

        connection_id = connection.connection_id
        async with self._lock:
            self._connections[connection_id] = connection
            outbox: asyncio.Queue[Outgoing] = asyncio.Queue()
            self._outboxes[connection_id] = outbox
            self._writers[connection_id] = asyncio.create_task(
                self._write(connection, outbox), name=f"signaling-writer-{connection_id}"
            )
            scope = self.scopes.attach(connection_id, connection.network_address)
            logger.info("Connection %s opened in %s (%d online)", connection_id, scope, len(self._connections))
            self._enqueue([Outgoing(connection_id, events.CONNECTED, {"id": connection_id, "scope": scope})])
        return scope

    async def disconnect(self, connection_id: str) -> bool:
        """Drop every trace of the connection; only the first call has any effect."""

        async with self._lock:
            if self._connections.pop(connection_id, None) is None:
                return False
            self._stop_writer(connection_id)
            self.scopes.detach(connection_id)
            session = self.registry.remove(connection_id)
            logger.info("Connection %s closed (%d online)", connection_id, len(self._connections))
            if session is not None:
                self._enqueue(
                    Outgoing(peer.id, events.PEER_LEFT, {"id": connection_id})
                    for peer in self.registry.list_by_scope(session.scope)
                )
            return True

    async def handle(self, connection_id: str, message: Any) -> None:
        """Process one inbound frame; failures are reported to the sender only.

        Returns once the resulting notifications are queued, without waiting
        for any client to read them.
        """

        try:
            envelope = ClientEnvelope.model_validate(message)
        except ValidationError:
            logger.debug("Malformed frame from %s", connection_id)
            async with self._lock:
                self._enqueue([Outgoing(connection_id, GENERIC_ERROR, {"event": None, "message": INVALID_PAYLOAD})])
            return

        async with self._lock:
            if connection_id not in self._connections:
                return
            self._enqueue(self._dispatch(connection_id, envelope))

    async def flush(self, *connection_ids: str) -> None:
        """Wait until the queued frames of the given connections (default all) are written."""

        targets = connection_ids or tuple(self._outboxes)
        outboxes = [self._outboxes[target] for target in targets if target in self._outboxes]
        if outboxes:
            await asyncio.gather(*(outbox.join() for outbox in outboxes))

    def _dispatch(self, connection_id: str, envelope: ClientEnvelope) -> list[Outgoing]:
        handler = self._handlers.get(envelope.event)
        if handler is None:
            logger.debug("Unknown event %r from %s", envelope.event, connection_id)
            return self._failure(connection_id, envelope, GENERIC_ERROR, UNKNOWN_EVENT)

        try:
            outgoing, ack = handler(connection_id, envelope.data)
        except SignalingError as exc:
            logger.info("%s from %s rejected: %s", envelope.event, connection_id, exc.message)
            return self._failure(connection_id, envelope, exc.event, exc.message)
        except ValidationError:
            logger.debug("Invalid %s payload from %s", envelope.event, connection_id)
            return self._failure(connection_id, envelope, GENERIC_ERROR, INVALID_PAYLOAD)
        except InvariantViolation as exc:
            logger.error("Rejected %s from %s: %s", envelope.event, connection_id, exc)
            return self._failure(connection_id, envelope, GENERIC_ERROR, INTERNAL_ERROR)
        except Exception:
            logger.exception("Failed handling %s from %s", envelope.event, connection_id)
            return self._failure(connection_id, envelope, GENERIC_ERROR, INTERNAL_ERROR)

        if envelope.ack is not None:
            outgoing.append(
                Outgoing(connection_id, events.ACK, ack if ack is not None else {"success": True}, ack=envelope.ack)
            )
        return outgoing

    @staticmethod
    def _failure(connection_id: str, envelope: ClientEnvelope, event: str, message: str) -> list[Outgoing]:
        """Report a rejected frame to its sender.

        A requested ack carries the failure instead of the error event, except
        for ``pair-error``, which is always emitted and followed by the failed
        ack when one was requested.
        """

        failed_ack = Outgoing(connection_id, events.ACK, {"success": False, "error": message}, ack=envelope.ack)
        if event == PAIR_ERROR:
            reported = [Outgoing(connection_id, PAIR_ERROR, message)]
            return reported + [failed_ack] if envelope.ack is not None else reported
        if envelope.ack is not None:
            return [failed_ack]
        if event == GENERIC_ERROR:
            return [Outgoing(connection_id, GENERIC_ERROR, {"event": envelope.event, "message": message})]
        return [Outgoing(connection_id, event, message)]

    def _enqueue(self, outgoing: Iterable[Outgoing]) -> None:
        """Queue messages in order on their targets' outboxes; unknown targets are skipped."""

        for item in outgoing:
            outbox = self._outboxes.get(item.target_id)
            if outbox is not None:
                outbox.put_nowait(item)

    async def _write(self, connection: SignalingConnection, outbox: asyncio.Queue[Outgoing]) -> None:
        while True:
            item = await outbox.get()
            try:
                await connection.send(item.frame())
            except Exception as exc:
                logger.warning("Failed sending %s to %s: %s", item.event, item.target_id, exc)
            finally:
                outbox.task_done()

    def _stop_writer(self, connection_id: str) -> None:
        writer = self._writers.pop(connection_id, None)
        if writer is not None and not writer.done() and not writer.get_loop().is_closed():
            writer.cancel()
        outbox = self._outboxes.pop(connection_id, None)
        while outbox is not None and not outbox.empty():
            outbox.get_nowait()
            outbox.task_done()

    def close(self) -> None:
        """Cancel outstanding expiry timers and connection writers."""

        for connection_id in list(self._writers):
            self._stop_writer(connection_id)
        self.pairing.close()
        self.rooms.close()

    # ------------------------------------------------------------------
    # Event handlers
    # ------------------------------------------------------------------

    def _on_announce_presence(self, connection_id: str, data: Any) -> HandlerResult:
        presence = PresenceAnnouncement.model_validate(data if data is not None else {})
        return self.scopes.announce(connection_id, presence), None

    def _on_join_room(self, connection_id: str, data: Any) -> HandlerResult:
        request = RoomNameRequest.model_validate(data if data is not None else {})
        return self.rooms.join_room(connection_id, request.room_name), None

    def _on_create_room(self, connection_id: str, data: Any) -> HandlerResult:
        request = RoomNameRequest.model_validate(data if data is not None else {})
        ack, outgoing = self.rooms.create_room(connection_id, request.room_name)
        return outgoing, ack.model_dump(by_alias=True)

    def _on_join_room_by_code(self, connection_id: str, data: Any) -> HandlerResult:
        if not isinstance(data, Mapping):
            data = {"passcode": data}
        request = PasscodeRequest.model_validate(data)
        ack, outgoing = self.rooms.join_by_passcode(connection_id, request.passcode)
        return outgoing, ack.model_dump(by_alias=True, exclude_none=True)

    def _on_leave_room(self, connection_id: str, data: Any) -> HandlerResult:
        return self.rooms.leave(connection_id), None

    def _on_broadcast_room_text(self, connection_id: str, data: Any) -> HandlerResult:
        request = RoomTextRequest.model_validate(data)
        return self.rooms.broadcast_text(connection_id, request.text, request.sender), None

    def _on_create_pair_code(self, connection_id: str, data: Any) -> HandlerResult:
        code = self.pairing.create_code(connection_id)
        return [Outgoing(connection_id, events.PAIR_CODE_CREATED, code)], {"success": True, "code": code}

    def _on_join_with_code(self, connection_id: str, data: Any) -> HandlerResult:
        code = data.get("code") if isinstance(data, Mapping) else data
        return self.pairing.resolve_code(code, connection_id), None

    def _on_signal(self, kind: SignalKind, connection_id: str, data: Any) -> HandlerResult:
        forwarded = self.relay.route(kind, connection_id, data)
        return ([forwarded] if forwarded is not None else []), None
