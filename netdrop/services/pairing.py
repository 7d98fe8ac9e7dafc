"""Pairing codes for identity exchange across scopes."""
from __future__ import annotations

import logging

from .codes import ExpiringCodes, generate_pairing_code
from .errors import CodeNotFound, PairCodeUnavailable, PeerMissing, SelfPairing
from .events import PAIR_SUCCESS, PEER_PRESENCE, Outgoing
from .registry import ConnectionRegistry

DEFAULT_CODE_TTL_SECONDS = 5 * 60

logger = logging.getLogger(__name__)


class PairingBroker:
    """Issue single-use 6-digit codes and resolve them to the issuing session.

    A successful resolution introduces both sessions to each other without
    touching either one's scope. Failed attempts leave the code alive.
    """

    def __init__(
        self,
        registry: ConnectionRegistry,
        *,
        ttl: float = DEFAULT_CODE_TTL_SECONDS,
        attempts: int = 10,
    ) -> None:
        self._registry = registry
        self._codes: ExpiringCodes[str] = ExpiringCodes(
            ttl=ttl,
            attempts=attempts,
            generator=generate_pairing_code,
            exhausted=PairCodeUnavailable,
            label="pairing code",
        )

    @property
    def codes(self) -> ExpiringCodes[str]:
        return self._codes

    def create_code(self, session_id: str) -> str:
        code = self._codes.allocate()
        self._codes.put(code, session_id)
        logger.info("Pairing code issued for %s", session_id)
        return code

    def resolve_code(self, code: object, requester_id: str) -> list[Outgoing]:
        code = str(code).strip() if code is not None else ""
        owner_id = self._codes.get(code)
        if owner_id is None:
            raise CodeNotFound()
        if owner_id == requester_id:
            raise SelfPairing()

        owner = self._registry.get(owner_id)
        requester = self._registry.get(requester_id)
        if owner is None or requester is None:
            raise PeerMissing()

        self._codes.pop(code)
        logger.info("Paired %s with %s", requester_id, owner_id)

        owner_view = owner.public()
        requester_view = requester.public()
        return [
            Outgoing(requester_id, PEER_PRESENCE, owner_view),
            Outgoing(owner_id, PEER_PRESENCE, requester_view),
            Outgoing(requester_id, PAIR_SUCCESS, {"peer": owner_view}),
            Outgoing(owner_id, PAIR_SUCCESS, {"peer": requester_view}),
        ]

    def close(self) -> None:
        self._codes.clear()
