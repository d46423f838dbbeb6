"""
Connection lifecycle — what happens when a connection leaves its room.

Runs on disconnect, and before a connection creates or joins a different room
(a connection belongs to at most one room at a time).
"""
import logging
from typing import Optional

from models.room import Room
from services.authorization import is_master
from services.connection_manager import envelope
from services.room_registry import RoomRegistry
from services.summary import build_index

logger = logging.getLogger(__name__)

MASTER_LEFT_MESSAGE = "The master disconnected. The room has no master."


class ConnectionLifecycle:

    def __init__(self, registry: RoomRegistry, transport):
        self.registry = registry
        self.transport = transport

    def emit_index(self, room: Room) -> None:
        """Send the fresh sheets index to the room's master, if there is one."""
        if not room.master_connection_id:
            return
        self.transport.send_to(room.master_connection_id, envelope(
            "room:sheetsIndex",
            {"list": [entry.to_public() for entry in build_index(room)]},
        ))

    def depart(self, connection_id: str) -> Optional[str]:
        """
        Remove a connection from its room. Returns the room id it left, if any.

        - The user entry is removed; the connection's sheet stays with the room.
        - A departing master clears the room's master and the rest of the room
          is told it has no master.
        - A remaining master gets a fresh index.
        - A room left with no users is deleted.
        """
        room_id = self.registry.unbind(connection_id)
        if room_id is None:
            return None
        self.transport.leave_group(connection_id, room_id)

        room = self.registry.get(room_id)
        if room is None:
            return room_id

        was_master = is_master(room, connection_id)
        user = room.users.pop(connection_id, None)
        logger.info(
            "[%s] %s left (%s, %d users remain)",
            room_id, connection_id, user.role.value if user else "unknown", len(room.users),
        )

        if was_master:
            room.master_connection_id = None
            self.transport.broadcast(room_id, envelope(
                "room:masterLeft",
                {"roomId": room_id, "message": MASTER_LEFT_MESSAGE},
            ))

        self.emit_index(room)
        self.registry.delete_if_empty(room_id)
        return room_id
