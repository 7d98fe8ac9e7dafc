"""Shared pytest fixtures for signaling tests."""
from __future__ import annotations

from typing import Iterator

import pytest

from netdrop.main import app
from netdrop.services.signaling import SignalingConnection, SignalingManager
from netdrop.services.stats import StatsService


class DummyConnection:
    """Collects frames the manager sends to one connection."""

    def __init__(self, connection_id: str, network_address: str = "1.2.3.4") -> None:
        self.connection_id = connection_id
        self.network_address = network_address
        self.messages: list[dict] = []

    async def send(self, message: dict) -> None:
        self.messages.append(message)

    def wrap(self) -> SignalingConnection:
        return SignalingConnection(self.connection_id, self.send, self.network_address)

    def events(self, name: str | None = None) -> list[dict]:
        return [message for message in self.messages if name is None or message["event"] == name]

    def data(self, name: str) -> list:
        return [message["data"] for message in self.events(name)]

    def clear(self) -> None:
        self.messages.clear()


@pytest.fixture()
def fresh_app() -> Iterator[object]:
    """Reset the application's in-memory state around a test."""

    previous = (app.state.signaling, app.state.stats)
    app.state.signaling = SignalingManager()
    app.state.stats = StatsService(display_offset=1247)
    try:
        yield app
    finally:
        app.state.signaling.close()
        app.state.signaling, app.state.stats = previous
