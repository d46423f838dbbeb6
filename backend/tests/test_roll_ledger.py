from models.room import Role, RollEntry, RollSender, Room
from services.roll_ledger import RollLedger


def _entry(n: int) -> RollEntry:
    return RollEntry(
        room_id="mesa",
        sender=RollSender(connection_id="p1", name="Ana", role=Role.PLAYER),
        payload={"n": n},
    )


def test_ledger_keeps_last_fifty_in_order() -> None:
    room = Room()
    ledger = RollLedger(limit=50)
    for n in range(55):
        ledger.append(room, _entry(n))

    history = ledger.history(room)
    assert len(history) == 50
    assert [e.payload["n"] for e in history] == list(range(5, 55))


def test_history_is_a_copy() -> None:
    room = Room()
    ledger = RollLedger(limit=3)
    ledger.append(room, _entry(1))
    history = ledger.history(room)
    history.clear()
    assert len(room.rolls) == 1


def test_default_limit_comes_from_settings() -> None:
    assert RollLedger().limit == 50


def test_entry_wire_shape() -> None:
    entry = _entry(7)
    public = entry.to_public()
    assert public["roomId"] == "mesa"
    assert public["from"] == {"connectionId": "p1", "name": "Ana", "role": "player"}
    assert public["payload"] == {"n": 7}
    assert isinstance(public["at"], int)
