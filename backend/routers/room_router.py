"""
Room HTTP endpoints.

Routes:
  GET /api/rooms/{room_id}   — Read-only room status (no sheets, no user ids)
"""
import logging

from fastapi import APIRouter, HTTPException

from models.room import RoomStatusResponse
from routers.ws_router import registry
from services.room_registry import sanitize

logger = logging.getLogger(__name__)

router = APIRouter(tags=["rooms"])


@router.get("/rooms/{room_id}", response_model=RoomStatusResponse)
async def get_room(room_id: str):
    """
    Lets a client check whether a room exists and has a master before
    opening a socket to join it.
    """
    clean_id = sanitize(room_id)
    room = registry.get(clean_id) if clean_id else None
    if room is None:
        raise HTTPException(status_code=404, detail="Room not found")

    return RoomStatusResponse(
        roomId=clean_id,
        hasMaster=bool(room.master_connection_id),
        playerCount=len(room.players()),
        npcCount=len(room.npcs),
        rollCount=len(room.rolls),
    )
