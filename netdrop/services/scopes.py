"""Discovery scope assignment and transitions."""
from __future__ import annotations

import logging
from typing import Dict

from ..schemas.signaling import PresenceAnnouncement
from .errors import InvariantViolation
from .events import ACTIVE_PEERS, PEER_LEFT, PEER_PRESENCE, Outgoing
from .registry import ConnectionRegistry, PeerSession

NETWORK_PREFIX = "network:"
ROOM_PREFIX = "room:"
UNKNOWN_ADDRESS = "unknown"
_MAPPED_IPV4_PREFIX = "::ffff:"

logger = logging.getLogger(__name__)


def network_scope(address: str) -> str:
    return f"{NETWORK_PREFIX}{address}"


def room_scope(name: str) -> str:
    return f"{ROOM_PREFIX}{name}"


def normalise_address(address: str | None) -> str:
    """Strip IPv4-mapped IPv6 prefixes so dual-stack clients share a scope."""

    if not address:
        return UNKNOWN_ADDRESS
    address = address.strip()
    if address.lower().startswith(_MAPPED_IPV4_PREFIX):
        address = address[len(_MAPPED_IPV4_PREFIX):]
    return address or UNKNOWN_ADDRESS


def resolve_client_address(
    forwarded_for: str | None,
    peer_host: str | None,
    *,
    trust_forwarded: bool = True,
) -> str:
    """Return the source address of a connection, honouring proxy headers when trusted."""

    if trust_forwarded and forwarded_for:
        first = forwarded_for.split(",")[0].strip()
        if first:
            return normalise_address(first)
    return normalise_address(peer_host)


class ScopeResolver:
    """Track the scope every connected session belongs to.

    Connections are attached on connect, before they announce presence, so a
    silent connection still has a scope but is invisible to its peers. All
    notifications are returned as ordered ``Outgoing`` lists; delivering them
    is the caller's job.
    """

    def __init__(self, registry: ConnectionRegistry) -> None:
        self._registry = registry
        self._assigned: Dict[str, str] = {}
        self._addresses: Dict[str, str] = {}

    def attach(self, session_id: str, network_address: str) -> str:
        scope = network_scope(network_address)
        self._addresses[session_id] = network_address
        self._assigned[session_id] = scope
        return scope

    def detach(self, session_id: str) -> str | None:
        self._addresses.pop(session_id, None)
        return self._assigned.pop(session_id, None)

    def is_attached(self, session_id: str) -> bool:
        return session_id in self._assigned

    def address_of(self, session_id: str) -> str:
        try:
            return self._addresses[session_id]
        except KeyError:
            raise InvariantViolation(f"connection {session_id} has no network address") from None

    def scope_of(self, session_id: str) -> str:
        try:
            return self._assigned[session_id]
        except KeyError:
            raise InvariantViolation(f"connection {session_id} has no scope") from None

    def default_scope(self, session_id: str) -> str:
        return network_scope(self.address_of(session_id))

    def members(self, scope: str, exclude_id: str | None = None) -> list[str]:
        """All connected ids in ``scope``, announced or not."""

        return [
            session_id
            for session_id, assigned in self._assigned.items()
            if assigned == scope and session_id != exclude_id
        ]

    def announce(self, session_id: str, presence: PresenceAnnouncement) -> list[Outgoing]:
        """Store presence, tell the scope about it and list the scope back to the sender."""

        scope = self.scope_of(session_id)
        session, changed = self._registry.upsert(
            session_id, presence, self.address_of(session_id), scope
        )
        outgoing: list[Outgoing] = []
        if changed:
            outgoing.extend(self._fan_out(scope, session_id, PEER_PRESENCE, session.public()))
        outgoing.append(self._active_peers(session))
        return outgoing

    def change_scope(self, session_id: str, room_name: str | None) -> list[Outgoing]:
        """Move to ``room:<room_name>``, or back to the network scope when no name is given."""

        new_scope = room_scope(room_name) if room_name else self.default_scope(session_id)
        return self.move_to(session_id, new_scope)

    def move_to(self, session_id: str, new_scope: str) -> list[Outgoing]:
        old_scope = self.scope_of(session_id)
        if new_scope == old_scope:
            return []

        session = self._registry.get(session_id)
        if session is not None and session.scope != old_scope:
            raise InvariantViolation(
                f"session {session_id} registered in {session.scope} but assigned to {old_scope}"
            )

        outgoing: list[Outgoing] = []
        if session is not None:
            outgoing.extend(self._fan_out(old_scope, session_id, PEER_LEFT, {"id": session_id}))

        self._assigned[session_id] = new_scope
        logger.info("Session %s moved from %s to %s", session_id, old_scope, new_scope)

        if session is None:
            return outgoing

        self._registry.set_scope(session_id, new_scope)
        outgoing.extend(self._fan_out(new_scope, session_id, PEER_PRESENCE, session.public()))
        outgoing.append(self._active_peers(session))
        return outgoing

    def _fan_out(self, scope: str, sender_id: str, event: str, data: object) -> list[Outgoing]:
        return [
            Outgoing(peer.id, event, data)
            for peer in self._registry.list_by_scope(scope, exclude_id=sender_id)
        ]

    def _active_peers(self, session: PeerSession) -> Outgoing:
        peers = [peer.public() for peer in self._registry.list_by_scope(session.scope, exclude_id=session.id)]
        return Outgoing(session.id, ACTIVE_PEERS, peers)
