"""Tests for the connection registry and scope transitions."""
from __future__ import annotations

import pytest

from netdrop.schemas.signaling import DeviceType, PresenceAnnouncement
from netdrop.services.errors import InvariantViolation
from netdrop.services.registry import ConnectionRegistry, default_display_name
from netdrop.services.scopes import (
    ScopeResolver,
    network_scope,
    normalise_address,
    resolve_client_address,
    room_scope,
)


def _presence(name: str | None = None, device: str = "desktop", **extra) -> PresenceAnnouncement:
    payload = {"deviceType": device, **extra}
    if name is not None:
        payload["displayName"] = name
    return PresenceAnnouncement.model_validate(payload)


def _resolver() -> tuple[ConnectionRegistry, ScopeResolver]:
    registry = ConnectionRegistry()
    return registry, ScopeResolver(registry)


def _events(outgoing, target_id: str | None = None) -> list[tuple[str, str]]:
    return [(item.target_id, item.event) for item in outgoing if target_id is None or item.target_id == target_id]


def test_presence_aliases_and_device_fallback():
    presence = PresenceAnnouncement.model_validate({"name": "  Laptop ", "type": "Fridge", "avatar": "a.png"})

    assert presence.display_name == "Laptop"
    assert presence.device_type is DeviceType.DESKTOP
    assert presence.extra_fields() == {"avatar": "a.png"}


def test_default_display_name_uses_type_and_id_suffix():
    assert default_display_name("abc123f", DeviceType.DESKTOP) == "PC-23F"
    assert default_display_name("zz9", DeviceType.MOBILE) == "Mobile-ZZ9"
    assert default_display_name("t00", DeviceType.TABLET) == "Tablet-T00"


def test_registry_upsert_is_idempotent_and_reports_changes():
    registry = ConnectionRegistry()

    session, changed = registry.upsert("a1", _presence("Alice"), "1.2.3.4", "network:1.2.3.4")
    assert changed is True
    assert session.public() == {
        "id": "a1",
        "displayName": "Alice",
        "deviceType": "desktop",
        "scope": "network:1.2.3.4",
    }

    _, changed = registry.upsert("a1", _presence("Alice"), "1.2.3.4", "network:1.2.3.4")
    assert changed is False
    assert len(registry) == 1

    _, changed = registry.upsert("a1", _presence("Alice 2"), "1.2.3.4", "network:1.2.3.4")
    assert changed is True
    assert registry.get("a1").display_name == "Alice 2"


def test_registry_public_view_hides_address_and_keeps_extras():
    registry = ConnectionRegistry()
    session, _ = registry.upsert("a1", _presence(None, "mobile", id="spoofed", color="red"), "10.0.0.1", "s")

    public = session.public()
    assert public["id"] == "a1"
    assert public["color"] == "red"
    assert public["displayName"] == "Mobile-A1"
    assert "networkAddress" not in public and "10.0.0.1" not in public.values()


def test_registry_remove_and_list_by_scope():
    registry = ConnectionRegistry()
    registry.upsert("a1", _presence("A"), "1.2.3.4", "network:1.2.3.4")
    registry.upsert("b1", _presence("B"), "1.2.3.4", "network:1.2.3.4")
    registry.upsert("c1", _presence("C"), "5.6.7.8", "network:5.6.7.8")

    assert [s.id for s in registry.list_by_scope("network:1.2.3.4", exclude_id="a1")] == ["b1"]

    removed = registry.remove("b1")
    assert removed is not None and removed.id == "b1"
    assert registry.remove("b1") is None
    assert registry.list_by_scope("network:1.2.3.4", exclude_id="a1") == []


@pytest.mark.parametrize(
    ("forwarded", "host", "trust", "expected"),
    [
        ("203.0.113.9, 10.0.0.1", "10.0.0.1", True, "203.0.113.9"),
        ("203.0.113.9", "10.0.0.1", False, "10.0.0.1"),
        (None, "::ffff:192.168.1.20", True, "192.168.1.20"),
        (None, None, True, "unknown"),
    ],
)
def test_resolve_client_address(forwarded, host, trust, expected):
    assert resolve_client_address(forwarded, host, trust_forwarded=trust) == expected


def test_scope_keys():
    assert network_scope(normalise_address("::FFFF:1.2.3.4")) == "network:1.2.3.4"
    assert room_scope("Team") == "room:Team"


def test_announce_notifies_scope_and_lists_peers():
    registry, scopes = _resolver()
    scopes.attach("a1", "1.2.3.4")
    scopes.attach("b1", "1.2.3.4")
    scopes.attach("c1", "9.9.9.9")

    first = scopes.announce("a1", _presence("A"))
    assert _events(first) == [("a1", "active-peers")]
    assert first[0].data == []

    second = scopes.announce("b1", _presence("B"))
    assert _events(second) == [("a1", "peer-presence"), ("b1", "active-peers")]
    assert [peer["id"] for peer in second[-1].data] == ["a1"]

    other = scopes.announce("c1", _presence("C"))
    assert _events(other) == [("c1", "active-peers")]
    assert other[0].data == []


def test_repeated_announce_does_not_duplicate_presence():
    registry, scopes = _resolver()
    scopes.attach("a1", "1.2.3.4")
    scopes.attach("b1", "1.2.3.4")
    scopes.announce("a1", _presence("A"))
    scopes.announce("b1", _presence("B"))

    again = scopes.announce("b1", _presence("B"))
    assert _events(again) == [("b1", "active-peers")]
    assert len(registry) == 2


def test_change_scope_sends_leave_before_join():
    registry, scopes = _resolver()
    for session_id in ("a1", "b1", "c1"):
        scopes.attach(session_id, "1.2.3.4")
    scopes.announce("a1", _presence("A"))
    scopes.announce("b1", _presence("B"))
    scopes.change_scope("c1", "Team")
    scopes.announce("c1", _presence("C"))

    outgoing = scopes.change_scope("a1", "Team")

    assert _events(outgoing) == [
        ("b1", "peer-left"),
        ("c1", "peer-presence"),
        ("a1", "active-peers"),
    ]
    assert outgoing[0].data == {"id": "a1"}
    assert outgoing[1].data["scope"] == "room:Team"
    assert [peer["id"] for peer in outgoing[2].data] == ["c1"]
    assert registry.get("a1").scope == "room:Team"


def test_change_scope_to_same_scope_is_noop():
    _, scopes = _resolver()
    scopes.attach("a1", "1.2.3.4")
    scopes.announce("a1", _presence("A"))

    assert scopes.change_scope("a1", None) == []
    scopes.change_scope("a1", "Team")
    assert scopes.change_scope("a1", "Team") == []


def test_empty_room_name_returns_to_network_scope():
    registry, scopes = _resolver()
    scopes.attach("a1", "1.2.3.4")
    scopes.announce("a1", _presence("A"))
    scopes.change_scope("a1", "Team")

    scopes.change_scope("a1", "")

    assert scopes.scope_of("a1") == "network:1.2.3.4"
    assert registry.get("a1").scope == "network:1.2.3.4"


def test_silent_connection_moves_without_notifications():
    registry, scopes = _resolver()
    scopes.attach("a1", "1.2.3.4")
    scopes.attach("b1", "1.2.3.4")
    scopes.announce("a1", _presence("A"))

    assert scopes.change_scope("b1", "Team") == []
    assert scopes.scope_of("b1") == "room:Team"

    outgoing = scopes.announce("b1", _presence("B"))
    assert _events(outgoing) == [("b1", "active-peers")]
    assert registry.get("b1").scope == "room:Team"


def test_every_session_is_listed_in_exactly_one_scope():
    registry, scopes = _resolver()
    for session_id, address in (("a1", "1.2.3.4"), ("b1", "1.2.3.4"), ("c1", "5.6.7.8")):
        scopes.attach(session_id, address)
        scopes.announce(session_id, _presence(session_id))
    scopes.change_scope("a1", "Team")
    scopes.change_scope("c1", "Team")
    scopes.change_scope("c1", None)

    all_scopes = {"network:1.2.3.4", "network:5.6.7.8", "room:Team"}
    for session_id in ("a1", "b1", "c1"):
        hits = [scope for scope in all_scopes if session_id in {s.id for s in registry.list_by_scope(scope)}]
        assert hits == [scopes.scope_of(session_id)]


def test_unknown_connection_is_an_invariant_violation():
    _, scopes = _resolver()

    with pytest.raises(InvariantViolation):
        scopes.change_scope("ghost", "Team")
