"""
Room registry — the process-wide map of room id → Room.

One instance per app (see routers/ws_router.py); tests build their own.
Also keeps the reverse index connection id → room id, so departure cleanup
looks up a single room.
"""
import logging
import re
from typing import Dict, Optional

from models.room import Room

logger = logging.getLogger(__name__)

ROOM_ID_MAX_LENGTH = 32
_ROOM_ID_DISALLOWED = re.compile(r"[^A-Za-z0-9_-]")


def sanitize(raw) -> str:
    """Trim, truncate to 32 chars, then drop anything outside [A-Za-z0-9_-].

    An empty result means the id is invalid.
    """
    text = str(raw if raw is not None else "").strip()[:ROOM_ID_MAX_LENGTH]
    return _ROOM_ID_DISALLOWED.sub("", text)


class RoomRegistry:

    def __init__(self):
        self._rooms: Dict[str, Room] = {}
        self._connection_rooms: Dict[str, str] = {}

    # ── Rooms ──────────────────────────────────────────────────────────────────

    def ensure(self, room_id: str) -> Room:
        room = self._rooms.get(room_id)
        if room is None:
            room = Room()
            self._rooms[room_id] = room
            logger.info("[%s] Room created", room_id)
        return room

    def get(self, room_id: str) -> Optional[Room]:
        return self._rooms.get(room_id)

    def delete_if_empty(self, room_id: str) -> bool:
        room = self._rooms.get(room_id)
        if room is None or room.users:
            return False
        del self._rooms[room_id]
        logger.info("[%s] Room deleted (no users left)", room_id)
        return True

    def clear(self) -> None:
        self._rooms.clear()
        self._connection_rooms.clear()

    def __len__(self) -> int:
        return len(self._rooms)

    def __contains__(self, room_id: str) -> bool:
        return room_id in self._rooms

    # ── Connection → room binding ──────────────────────────────────────────────

    def bind(self, connection_id: str, room_id: str) -> None:
        self._connection_rooms[connection_id] = room_id

    def unbind(self, connection_id: str) -> Optional[str]:
        return self._connection_rooms.pop(connection_id, None)

    def room_of(self, connection_id: str) -> Optional[str]:
        return self._connection_rooms.get(connection_id)
