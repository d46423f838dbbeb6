"""Disconnect handling: master hand-off notice, index refresh, empty-room deletion."""


def test_master_disconnect_clears_master_and_notifies_players(table, registry, transport) -> None:
    table.disconnect("gm")

    room = registry.get("table")
    assert room is not None
    assert room.master_connection_id is None
    assert set(room.users) == {"p1", "p2"}
    for cid in ("p1", "p2"):
        notice = transport.last(cid, "room:masterLeft")["data"]
        assert notice["roomId"] == "table"
        assert notice["message"]
    # notices are not errors and nothing goes to the departed master
    assert transport.errors("p1") == []
    assert transport.messages("gm") == []


def test_room_deleted_when_last_user_leaves(table, registry) -> None:
    table.disconnect("gm")
    table.disconnect("p1")
    assert "table" in registry
    table.disconnect("p2")
    assert "table" not in registry
    assert registry.room_of("p2") is None


def test_player_disconnect_refreshes_master_index_and_keeps_sheet(table, registry, transport) -> None:
    table.handle("p1", "sheet:save", {"roomId": "table", "sheet": {"name": "Kael"}})
    transport.clear()

    table.disconnect("p1")

    room = registry.get("table")
    assert "p1" not in room.users
    assert room.sheets["p1"] == {"name": "Kael"}
    index = transport.last("gm", "room:sheetsIndex")["data"]["list"]
    assert [e["id"] for e in index] == ["p2"]
    assert transport.messages("p2") == []


def test_disconnect_of_unknown_connection_is_noop(table, registry, transport) -> None:
    table.disconnect("nobody")
    assert transport.sent == []
    assert set(registry.get("table").users) == {"gm", "p1", "p2"}


def test_disconnect_twice_is_noop(table, registry, transport) -> None:
    table.disconnect("p1")
    transport.clear()
    table.disconnect("p1")
    assert transport.sent == []


def test_disconnected_player_leaves_group(table, transport) -> None:
    table.disconnect("p2")
    table.handle("p1", "roll:send", {"roomId": "table", "payload": 1})
    assert transport.messages("p2", "roll:broadcast") == []
    assert len(transport.messages("gm", "roll:broadcast")) == 1


def test_departed_player_loses_roll_and_sheet_rights(table, registry, transport) -> None:
    table.disconnect("p1")
    transport.clear()
    table.handle("p1", "roll:send", {"roomId": "table", "payload": 1})
    table.handle("p1", "sheet:save", {"roomId": "table", "sheet": {"hp_now": 1}})
    assert transport.sent == []
    assert registry.get("table").rolls == []


def test_master_only_room_is_deleted_on_master_disconnect(gateway, registry, transport) -> None:
    gateway.handle("gm", "room:create", {"roomId": "solo"})
    gateway.disconnect("gm")
    assert "solo" not in registry
