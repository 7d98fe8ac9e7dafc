"""In-memory registry of announced peer sessions."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from ..schemas.signaling import DeviceType, PresenceAnnouncement

_TYPE_LABELS = {
    DeviceType.DESKTOP: "PC",
    DeviceType.MOBILE: "Mobile",
    DeviceType.TABLET: "Tablet",
}


def default_display_name(session_id: str, device_type: DeviceType) -> str:
    """Return a short name such as ``PC-A7F`` for clients that sent none."""

    suffix = session_id[-3:].upper() if session_id else "???"
    return f"{_TYPE_LABELS.get(device_type, 'PC')}-{suffix}"


@dataclass(slots=True)
class PeerSession:
    """Presence record for one announced connection."""

    id: str
    display_name: str
    device_type: DeviceType
    network_address: str
    scope: str
    extra: Dict[str, Any] = field(default_factory=dict)

    def public(self) -> dict[str, Any]:
        """Representation sent to other clients; the network address stays private."""

        payload = dict(self.extra)
        payload.update(
            {
                "id": self.id,
                "displayName": self.display_name,
                "deviceType": self.device_type.value,
                "scope": self.scope,
            }
        )
        return payload


class ConnectionRegistry:
    """Authoritative store of announced sessions keyed by connection id."""

    def __init__(self) -> None:
        self._sessions: Dict[str, PeerSession] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def upsert(
        self,
        session_id: str,
        presence: PresenceAnnouncement,
        network_address: str,
        scope: str,
    ) -> tuple[PeerSession, bool]:
        """Create or replace the session and report whether its public view changed."""

        session = PeerSession(
            id=session_id,
            display_name=presence.display_name or default_display_name(session_id, presence.device_type),
            device_type=presence.device_type,
            network_address=network_address,
            scope=scope,
            extra=presence.extra_fields(),
        )
        previous = self._sessions.get(session_id)
        self._sessions[session_id] = session
        changed = previous is None or previous.public() != session.public()
        return session, changed

    def get(self, session_id: str) -> Optional[PeerSession]:
        return self._sessions.get(session_id)

    def remove(self, session_id: str) -> Optional[PeerSession]:
        return self._sessions.pop(session_id, None)

    def set_scope(self, session_id: str, scope: str) -> Optional[PeerSession]:
        session = self._sessions.get(session_id)
        if session is not None:
            session.scope = scope
        return session

    def list_by_scope(self, scope: str, exclude_id: str | None = None) -> list[PeerSession]:
        return [
            session
            for session in self._sessions.values()
            if session.scope == scope and session.id != exclude_id
        ]
