from typing import List, Optional

from config import settings
from models.room import RollEntry, Room


class RollLedger:
    """Bounded, oldest-first roll history stored on each Room."""

    def __init__(self, limit: Optional[int] = None):
        self.limit = limit if limit is not None else settings.roll_history_limit

    def append(self, room: Room, entry: RollEntry) -> None:
        room.rolls.append(entry)
        while len(room.rolls) > self.limit:
            room.rolls.pop(0)

    def history(self, room: Room) -> List[RollEntry]:
        return list(room.rolls)
