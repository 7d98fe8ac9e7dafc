from netdrop.core.config import Settings
from netdrop.services.rooms import Room
from netdrop.services.signaling import SignalingManager


def test_comma_separated_origins(monkeypatch):
    monkeypatch.setenv("CORS_ALLOW_ORIGINS", "http://localhost:5173, https://netdrop.example ,")

    settings = Settings(_env_file=None)

    assert settings.cors_allow_origins == ["http://localhost:5173", "https://netdrop.example"]


def test_manager_follows_settings(monkeypatch):
    monkeypatch.setenv("PAIRING_CODE_TTL_SECONDS", "42")
    monkeypatch.setenv("ROOM_SCOPE_BY_PASSCODE", "true")

    settings = Settings(_env_file=None)
    manager = SignalingManager.from_settings(settings)

    assert settings.pairing_code_ttl_seconds == 42
    assert manager.pairing.codes.ttl == 42
    assert manager.rooms.scope_for(Room(passcode="ABC123", name="Team", owner_id="a1")) == "room:ABC123"
