"""
WebSocket Hub — real-time room relay.

URL: /ws

Connection flow:
  1. Accept connection → assign a connection id
  2. Start the connection's sender task (drains its outbox onto the socket)
  3. Message loop: each text frame is a JSON envelope { type, data },
     dispatched to the RelayGateway
  4. On disconnect: leave the room (master hand-off notice, index refresh,
     empty-room deletion), then drop the connection

See services/gateway.py for the client → server event list.
"""
import asyncio
import logging
from contextlib import suppress

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from services.connection_manager import ConnectionManager
from services.gateway import RelayGateway
from services.room_registry import RoomRegistry

logger = logging.getLogger(__name__)

router = APIRouter(tags=["websocket"])

# Module-level singletons — imported by room_router and main
manager = ConnectionManager()
registry = RoomRegistry()
gateway = RelayGateway(registry, manager)


@router.websocket("/ws")
async def websocket_endpoint(ws: WebSocket):
    connection_id = await manager.connect(ws)
    sender = asyncio.create_task(manager.pump(connection_id))
    logger.info("%s connected", connection_id)

    try:
        while True:
            raw = await ws.receive_text()
            gateway.receive(connection_id, raw)
    except WebSocketDisconnect:
        pass
    finally:
        try:
            gateway.disconnect(connection_id)
        finally:
            manager.disconnect(connection_id)
            sender.cancel()
            with suppress(asyncio.CancelledError):
                await sender
            logger.info("%s disconnected", connection_id)
