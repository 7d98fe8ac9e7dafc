"""Signaling WebSocket endpoint."""
from __future__ import annotations

import json
import logging
from typing import Any
from uuid import uuid4

from fastapi import APIRouter, WebSocket

from ..services.scopes import resolve_client_address
from ..services.signaling import SignalingConnection, SignalingManager

router = APIRouter()

logger = logging.getLogger(__name__)


def get_signaling_manager(websocket: WebSocket) -> SignalingManager:
    return websocket.app.state.signaling


def _decode_frame(frame: dict, connection_id: str) -> Any:
    """Parse a JSON text frame; binary or non-JSON frames decode to ``None``."""

    text = frame.get("text")
    if text is None:
        logger.debug("Binary frame from %s", connection_id)
        return None
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        logger.debug("Non-JSON frame from %s", connection_id)
        return None


@router.websocket("/ws")
async def signaling_endpoint(websocket: WebSocket) -> None:
    """Presence, room and pairing events plus offer/answer/ICE relay for one browser tab."""

    manager = get_signaling_manager(websocket)
    settings = websocket.app.state.settings
    connection_id = uuid4().hex
    address = resolve_client_address(
        websocket.headers.get("x-forwarded-for"),
        websocket.client.host if websocket.client else None,
        trust_forwarded=settings.trust_forwarded_for,
    )

    await websocket.accept()
    connection = SignalingConnection(
        connection_id=connection_id,
        send=websocket.send_json,
        network_address=address,
    )
    await manager.connect(connection)

    try:
        while True:
            frame = await websocket.receive()
            if frame["type"] == "websocket.disconnect":
                break
            await manager.handle(connection_id, _decode_frame(frame, connection_id))
    finally:
        await manager.disconnect(connection_id)
