"""
Summary projection — the lightweight status the master sees for every sheet.

Sheets are opaque to the relay. Only three fields are read, each with a
fallback source:

  hp   ← hp_now,  else resources.hp
  pd   ← pd_now,  else resources.pd
  name ← name,    else character.name

A source is skipped only when missing or null; an empty string stops the
lookup and yields None.
"""
import math
from typing import Any, List, Optional

from models.room import EntryType, IndexEntry, Number, Room, SheetSummary

_NPC_DEFAULT_NAME = "NPC"
_RADIX_PREFIXES = {"0x": 16, "0o": 8, "0b": 2}


def _field(doc: Any, key: str) -> Any:
    return doc.get(key) if isinstance(doc, dict) else None


def _lookup(doc: Any, key: str, nested: str, nested_key: str) -> Any:
    value = _field(doc, key)
    if value is None:
        value = _field(_field(doc, nested), nested_key)
    return value


def _parse_number_text(text: str) -> Optional[float]:
    text = text.strip()
    if not text:
        return 0.0
    if "_" in text:
        return None
    radix = _RADIX_PREFIXES.get(text[:2].lower())
    try:
        if radix:
            digits = text[2:]
            if not digits.isalnum():
                return None
            return float(int(digits, radix))
        return float(text)
    except (ValueError, OverflowError):
        return None


def _to_number(value: Any) -> Optional[Number]:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        try:
            number = float(value)
        except OverflowError:
            return None
    elif isinstance(value, str):
        number = _parse_number_text(value)
        if number is None:
            return None
    else:
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return int(number) if number.is_integer() else number


def extract_summary(doc: Any) -> SheetSummary:
    name = _lookup(doc, "name", "character", "name")
    return SheetSummary(
        hp=_to_number(_lookup(doc, "hp_now", "resources", "hp")),
        pd=_to_number(_lookup(doc, "pd_now", "resources", "pd")),
        name=str(name) if name else None,
    )


def build_index(room: Room) -> List[IndexEntry]:
    """Players in join order, then NPCs in creation order."""
    entries: List[IndexEntry] = []
    for connection_id, user in room.players().items():
        if connection_id in room.sheets:
            summary = extract_summary(room.sheets[connection_id])
        else:
            summary = SheetSummary(name=user.name)
        entries.append(IndexEntry(
            id=connection_id,
            type=EntryType.PLAYER,
            name=summary.name or user.name,
            hp=summary.hp,
            pd=summary.pd,
        ))
    for npc_id, doc in room.npcs.items():
        summary = extract_summary(doc)
        entries.append(IndexEntry(
            id=npc_id,
            type=EntryType.NPC,
            name=summary.name or _NPC_DEFAULT_NAME,
            hp=summary.hp,
            pd=summary.pd,
        ))
    return entries
