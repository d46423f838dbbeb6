"""
Relay Gateway — inbound event dispatcher for one process's rooms.

Inbound envelope: { "type": <event>, "data": { "roomId": ..., ... } }

Client → server events handled here:
  room:create          — become the master of a (new or masterless) room
  room:join            — join a room that has a master, as a player
  room:requestIndex    — master asks for the sheets index
  sheet:save           — any member stores its own sheet
  master:requestSheet  — master reads a player's sheet
  master:updateSheet   — master overwrites a player's sheet
  npc:create           — master adds an NPC sheet
  npc:request          — master reads an NPC sheet
  npc:update           — master overwrites an NPC sheet
  npc:delete           — master removes an NPC sheet
  roll:send            — any member broadcasts a dice roll to the room

Every handler is synchronous and runs to completion before the next event is
dispatched; outbound messages are queued on the transport, never awaited.
Mutating master-only actions from a non-master are rejected with an
`error:msg`; passive reads (index, NPC fetch) from a non-master are dropped.
"""
import json
import logging
import secrets
from typing import Any, Dict, Optional, Tuple

from pydantic import ValidationError

from models.room import Role, RollEntry, RollSender, Room, UserInfo, WSMessage
from services.authorization import is_master
from services.connection_manager import envelope
from services.errors import (
    AlreadyHasMaster,
    BadMessage,
    InvalidRoomId,
    NotAuthorized,
    NotFound,
    NotRegistered,
    RelayError,
    RoomNotFound,
    UnknownEvent,
)
from services.lifecycle import ConnectionLifecycle
from services.roll_ledger import RollLedger
from services.room_registry import RoomRegistry, sanitize
from services.summary import extract_summary

logger = logging.getLogger(__name__)

USER_NAME_MAX_LENGTH = 40
NPC_ID_PREFIX = "npc_"


def _display_name(raw: Any, default: str) -> str:
    return str(raw)[:USER_NAME_MAX_LENGTH] if raw else default


def _str_field(data: Dict[str, Any], key: str) -> str:
    value = data.get(key)
    return str(value) if value is not None else ""


class RelayGateway:

    def __init__(
        self,
        registry: RoomRegistry,
        transport,
        ledger: Optional[RollLedger] = None,
    ):
        self.registry = registry
        self.transport = transport
        self.ledger = ledger or RollLedger()
        self.lifecycle = ConnectionLifecycle(registry, transport)

    # ── Entry points ───────────────────────────────────────────────────────────

    def receive(self, connection_id: str, raw: str) -> None:
        """Parse one raw text frame and dispatch it."""
        try:
            message = WSMessage.model_validate(json.loads(raw))
        except (ValueError, RecursionError, ValidationError):
            self._send_error(connection_id, BadMessage("Invalid JSON message."))
            return
        self.handle(connection_id, message.type, message.data)

    def handle(self, connection_id: str, msg_type: str, data: Dict[str, Any]) -> None:
        try:
            self._dispatch(connection_id, msg_type, data)
        except RelayError as err:
            if err.silent:
                logger.debug("%s %s ignored: %s", connection_id, msg_type, err.message)
                return
            self._send_error(connection_id, err)
        except Exception:
            logger.exception("Unhandled error in handle (type=%s)", msg_type)
            self.transport.send_to(connection_id, envelope(
                "error:msg", "Internal server error", code="SERVER_ERROR",
            ))

    def disconnect(self, connection_id: str) -> None:
        try:
            self.lifecycle.depart(connection_id)
        except Exception:
            logger.exception("%s room cleanup failed on disconnect", connection_id)

    # ── Dispatch ───────────────────────────────────────────────────────────────

    def _dispatch(self, connection_id: str, msg_type: str, data: Dict[str, Any]) -> None:
        logger.debug("%s → %s", connection_id, msg_type)

        if msg_type == "room:create":
            self._on_create(connection_id, data)

        elif msg_type == "room:join":
            self._on_join(connection_id, data)

        elif msg_type == "room:requestIndex":
            self._on_request_index(connection_id, data)

        elif msg_type == "sheet:save":
            self._on_sheet_save(connection_id, data)

        elif msg_type == "master:requestSheet":
            self._on_master_request_sheet(connection_id, data)

        elif msg_type == "master:updateSheet":
            self._on_master_update_sheet(connection_id, data)

        elif msg_type == "npc:create":
            self._on_npc_create(connection_id, data)

        elif msg_type == "npc:request":
            self._on_npc_request(connection_id, data)

        elif msg_type == "npc:update":
            self._on_npc_update(connection_id, data)

        elif msg_type == "npc:delete":
            self._on_npc_delete(connection_id, data)

        elif msg_type == "roll:send":
            self._on_roll_send(connection_id, data)

        else:
            raise UnknownEvent(f"Unknown message type: '{msg_type}'")

    # ── Helpers ────────────────────────────────────────────────────────────────

    def _send(self, connection_id: str, event: str, data: Any) -> None:
        self.transport.send_to(connection_id, envelope(event, data))

    def _send_error(self, connection_id: str, err: RelayError) -> None:
        logger.debug("%s rejected: %s (%s)", connection_id, err.message, err.code)
        self.transport.send_to(connection_id, envelope("error:msg", err.message, code=err.code))

    def _resolve(self, data: Dict[str, Any]) -> Tuple[str, Room]:
        """Sanitized room id + room, for events that need an existing room."""
        room_id = sanitize(data.get("roomId"))
        room = self.registry.get(room_id) if room_id else None
        if room is None:
            raise RoomNotFound(silent=True)
        return room_id, room

    def _require_master(self, room: Room, connection_id: str, message: str) -> None:
        if not is_master(room, connection_id):
            raise NotAuthorized(message)

    def _enter(self, connection_id: str, room_id: str, room: Room, user: UserInfo) -> None:
        """Register a connection in a room and send it the join snapshot."""
        room.users[connection_id] = user
        self.registry.bind(connection_id, room_id)
        self.transport.join_group(connection_id, room_id)
        self._send(connection_id, "room:joined", {
            "roomId": room_id,
            "role": user.role.value,
            "connectionId": connection_id,
        })
        self._send(connection_id, "roll:history", {
            "list": [entry.to_public() for entry in self.ledger.history(room)],
        })

    def _leave_other_room(self, connection_id: str, room_id: str) -> None:
        current = self.registry.room_of(connection_id)
        if current is not None and current != room_id:
            self.lifecycle.depart(connection_id)

    def _sheet_load(self, owner_id: str, sheet: Any) -> Dict[str, Any]:
        return {"ownerConnectionId": owner_id, "sheet": sheet, "type": "player", "id": owner_id}

    def _new_npc_id(self, room: Room) -> str:
        while True:
            npc_id = NPC_ID_PREFIX + secrets.token_hex(6)
            if npc_id not in room.npcs:
                return npc_id

    # ── Room membership ────────────────────────────────────────────────────────

    def _on_create(self, connection_id: str, data: Dict[str, Any]) -> None:
        room_id = sanitize(data.get("roomId"))
        if not room_id:
            raise InvalidRoomId()

        existing = self.registry.get(room_id)
        if existing and existing.master_connection_id in existing.users:
            raise AlreadyHasMaster()

        self._leave_other_room(connection_id, room_id)
        room = self.registry.ensure(room_id)
        room.master_connection_id = connection_id
        self._enter(connection_id, room_id, room, UserInfo(
            name=_display_name(data.get("name"), "Master"),
            role=Role.MASTER,
        ))
        logger.info("[%s] %s is now master", room_id, connection_id)
        self.lifecycle.emit_index(room)

    def _on_join(self, connection_id: str, data: Dict[str, Any]) -> None:
        room_id = sanitize(data.get("roomId"))
        if not room_id:
            raise InvalidRoomId()

        room = self.registry.get(room_id)
        if room is None or not room.master_connection_id:
            raise RoomNotFound()
        if is_master(room, connection_id):
            raise AlreadyHasMaster("You are already the master of this room.")

        self._leave_other_room(connection_id, room_id)
        self._enter(connection_id, room_id, room, UserInfo(
            name=_display_name(data.get("name"), "Player"),
            role=Role.PLAYER,
        ))
        logger.info("[%s] %s joined as player (%d users)", room_id, connection_id, len(room.users))

        # Same connection id seen before (transport preserved it): hand the sheet back
        if connection_id in room.sheets:
            self._send(connection_id, "sheet:load",
                       self._sheet_load(connection_id, room.sheets[connection_id]))

        self.lifecycle.emit_index(room)

    def _on_request_index(self, connection_id: str, data: Dict[str, Any]) -> None:
        _, room = self._resolve(data)
        if not is_master(room, connection_id):
            raise NotAuthorized(silent=True)
        self.lifecycle.emit_index(room)

    # ── Sheets ─────────────────────────────────────────────────────────────────

    def _on_sheet_save(self, connection_id: str, data: Dict[str, Any]) -> None:
        _, room = self._resolve(data)
        if connection_id not in room.users:
            raise NotRegistered()

        sheet = data.get("sheet")
        room.sheets[connection_id] = sheet

        if room.master_connection_id:
            summary = extract_summary(sheet)
            self._send(room.master_connection_id, "sheet:summary", {
                "ownerConnectionId": connection_id,
                "ownerName": room.user_name(connection_id),
                "hp": summary.hp,
                "pd": summary.pd,
                "name": summary.name,
            })
            self._send(room.master_connection_id, "sheet:push", {
                "ownerConnectionId": connection_id,
                "sheet": sheet,
            })
            self.lifecycle.emit_index(room)

    def _on_master_request_sheet(self, connection_id: str, data: Dict[str, Any]) -> None:
        _, room = self._resolve(data)
        self._require_master(room, connection_id, "Only the master can view other players' sheets.")

        owner_id = _str_field(data, "ownerConnectionId")
        sheet = room.sheets.get(owner_id)
        if sheet is None:
            raise NotFound("That player has not sent a sheet yet.")
        self._send(connection_id, "sheet:load", self._sheet_load(owner_id, sheet))

    def _on_master_update_sheet(self, connection_id: str, data: Dict[str, Any]) -> None:
        _, room = self._resolve(data)
        self._require_master(room, connection_id, "Only the master can edit other players' sheets.")

        owner_id = _str_field(data, "ownerConnectionId")
        if not owner_id:
            raise NotFound("Missing sheet owner.")
        sheet = data.get("sheet")
        room.sheets[owner_id] = sheet

        payload = self._sheet_load(owner_id, sheet)
        if owner_id in room.users:
            self._send(owner_id, "sheet:load", payload)
        if owner_id != connection_id:
            self._send(connection_id, "sheet:load", payload)
        self.lifecycle.emit_index(room)

    # ── NPCs (master only) ─────────────────────────────────────────────────────

    def _on_npc_create(self, connection_id: str, data: Dict[str, Any]) -> None:
        room_id, room = self._resolve(data)
        self._require_master(room, connection_id, "Only the master can create NPCs.")

        npc_id = self._new_npc_id(room)
        sheet = data.get("sheet")
        room.npcs[npc_id] = sheet if sheet is not None else {}
        logger.debug("[%s] NPC %s created", room_id, npc_id)

        self._send(connection_id, "npc:created", {"npcId": npc_id, "sheet": room.npcs[npc_id]})
        self.lifecycle.emit_index(room)

    def _on_npc_request(self, connection_id: str, data: Dict[str, Any]) -> None:
        _, room = self._resolve(data)
        if not is_master(room, connection_id):
            raise NotAuthorized(silent=True)

        npc_id = _str_field(data, "npcId")
        if npc_id not in room.npcs:
            raise NotFound("NPC not found.")
        self._send(connection_id, "npc:load", {"npcId": npc_id, "sheet": room.npcs[npc_id]})

    def _on_npc_update(self, connection_id: str, data: Dict[str, Any]) -> None:
        _, room = self._resolve(data)
        self._require_master(room, connection_id, "Only the master can edit NPCs.")

        npc_id = _str_field(data, "npcId")
        if npc_id not in room.npcs:
            raise NotFound("NPC not found.")
        sheet = data.get("sheet")
        room.npcs[npc_id] = sheet

        self._send(connection_id, "npc:load", {"npcId": npc_id, "sheet": sheet})
        self.lifecycle.emit_index(room)

    def _on_npc_delete(self, connection_id: str, data: Dict[str, Any]) -> None:
        room_id, room = self._resolve(data)
        self._require_master(room, connection_id, "Only the master can delete NPCs.")

        npc_id = _str_field(data, "npcId")
        if npc_id in room.npcs:
            del room.npcs[npc_id]
            logger.debug("[%s] NPC %s deleted", room_id, npc_id)
        self.lifecycle.emit_index(room)

    # ── Rolls ──────────────────────────────────────────────────────────────────

    def _on_roll_send(self, connection_id: str, data: Dict[str, Any]) -> None:
        room_id, room = self._resolve(data)
        user = room.users.get(connection_id)
        if user is None:
            raise NotRegistered()

        entry = RollEntry(
            room_id=room_id,
            sender=RollSender(connection_id=connection_id, name=user.name, role=user.role),
            payload=data.get("payload"),
        )
        self.ledger.append(room, entry)
        self.transport.broadcast(room_id, envelope("roll:broadcast", entry.to_public()))
