from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List, Dict, Any, Union
from enum import Enum
import time


def _now_ms() -> int:
    """Epoch milliseconds, the timestamp unit clients already expect."""
    return int(time.time() * 1000)


Number = Union[int, float]


class Role(str, Enum):
    MASTER = "master"
    PLAYER = "player"


class EntryType(str, Enum):
    PLAYER = "player"
    NPC = "npc"


class UserInfo(BaseModel):
    name: str
    role: Role


class RollSender(BaseModel):
    """Snapshot of who rolled, frozen at roll time."""

    model_config = ConfigDict(frozen=True)

    connection_id: str
    name: str
    role: Role

    def to_public(self) -> Dict[str, Any]:
        return {
            "connectionId": self.connection_id,
            "name": self.name,
            "role": self.role.value,
        }


class RollEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    room_id: str
    sender: RollSender
    payload: Any = None
    at: int = Field(default_factory=_now_ms)

    def to_public(self) -> Dict[str, Any]:
        return {
            "roomId": self.room_id,
            "from": self.sender.to_public(),
            "payload": self.payload,
            "at": self.at,
        }


class Room(BaseModel):
    master_connection_id: Optional[str] = None
    users: Dict[str, UserInfo] = {}
    sheets: Dict[str, Any] = {}   # owner connection id → opaque sheet document
    npcs: Dict[str, Any] = {}     # npc id → opaque sheet document
    rolls: List[RollEntry] = []   # oldest first

    def players(self) -> Dict[str, UserInfo]:
        return {cid: u for cid, u in self.users.items() if u.role == Role.PLAYER}

    def user_name(self, connection_id: str) -> str:
        user = self.users.get(connection_id)
        return user.name if user and user.name else "Player"


class SheetSummary(BaseModel):
    hp: Optional[Number] = None
    pd: Optional[Number] = None
    name: Optional[str] = None


class IndexEntry(BaseModel):
    id: str
    type: EntryType
    name: Optional[str] = None
    hp: Optional[Number] = None
    pd: Optional[Number] = None

    def to_public(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "name": self.name,
            "hp": self.hp,
            "pd": self.pd,
        }


# ── WebSocket message shapes ──────────────────────────────────────────────────

class WSMessage(BaseModel):
    type: str
    data: Dict[str, Any] = {}


# ── HTTP response models ──────────────────────────────────────────────────────

class RoomStatusResponse(BaseModel):
    roomId: str
    hasMaster: bool
    playerCount: int
    npcCount: int
    rollCount: int
