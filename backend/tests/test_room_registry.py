from services.room_registry import RoomRegistry, sanitize
from models.room import Role, UserInfo


def test_sanitize_strips_disallowed_and_truncates() -> None:
    raw = " a/b!c " * 5
    clean = sanitize(raw)
    assert len(clean) <= 32
    assert clean == "abcabcabcabcab"
    assert all(ch.isalnum() or ch in "-_" for ch in clean)


def test_sanitize_truncates_before_stripping() -> None:
    # 32-char window is taken first, then filtered
    assert sanitize("x" * 40) == "x" * 32
    assert sanitize("!" * 31 + "ab") == "a"


def test_sanitize_keeps_dash_and_underscore() -> None:
    assert sanitize("  Mesa_01-b  ") == "Mesa_01-b"


def test_sanitize_empty_for_no_allowed_characters() -> None:
    assert sanitize("  !!/?  ") == ""
    assert sanitize(None) == ""
    assert sanitize("") == ""


def test_sanitize_stringifies_non_strings() -> None:
    assert sanitize(1234) == "1234"


def test_ensure_creates_once_and_get_does_not_create() -> None:
    registry = RoomRegistry()
    assert registry.get("mesa") is None
    assert "mesa" not in registry

    room = registry.ensure("mesa")
    assert room.master_connection_id is None
    assert room.users == {} and room.sheets == {} and room.npcs == {} and room.rolls == []
    assert registry.ensure("mesa") is room
    assert registry.get("mesa") is room
    assert len(registry) == 1


def test_rooms_do_not_share_state() -> None:
    registry = RoomRegistry()
    a = registry.ensure("a")
    b = registry.ensure("b")
    a.npcs["npc_1"] = {}
    assert b.npcs == {}


def test_delete_if_empty_only_removes_empty_rooms() -> None:
    registry = RoomRegistry()
    room = registry.ensure("mesa")
    room.users["c1"] = UserInfo(name="Ana", role=Role.PLAYER)

    assert registry.delete_if_empty("mesa") is False
    assert "mesa" in registry

    del room.users["c1"]
    assert registry.delete_if_empty("mesa") is True
    assert registry.get("mesa") is None
    assert registry.delete_if_empty("mesa") is False


def test_connection_binding() -> None:
    registry = RoomRegistry()
    registry.bind("c1", "mesa")
    assert registry.room_of("c1") == "mesa"
    assert registry.unbind("c1") == "mesa"
    assert registry.room_of("c1") is None
    assert registry.unbind("c1") is None


def test_clear_drops_rooms_and_bindings() -> None:
    registry = RoomRegistry()
    registry.ensure("mesa")
    registry.bind("c1", "mesa")
    registry.clear()
    assert len(registry) == 0
    assert registry.room_of("c1") is None
