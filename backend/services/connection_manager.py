"""
Connection Manager — the relay's transport layer.

Tracks active WebSocket connections, their server-assigned ids and the named
groups (rooms) they belong to. Sending never blocks the caller: every envelope
is pushed onto a bounded per-connection outbox and a sender task drains it
onto the socket. Room handlers can therefore emit from plain synchronous code
and run to completion before the next inbound event is processed.

A full outbox drops its oldest pending envelope;
a failed socket write ends that connection's sender task. Neither touches room
state.
"""
import asyncio
import logging
import uuid
from typing import Any, Dict, Optional, Set

from fastapi import WebSocket

from config import settings

logger = logging.getLogger(__name__)


def envelope(event: str, data: Any = None, **extra: Any) -> Dict[str, Any]:
    """Outbound wire shape: {"type": <event>, "data": <payload>, ...extra}."""
    message: Dict[str, Any] = {"type": event, "data": data}
    message.update(extra)
    return message


class ConnectionManager:
    """
    Safe for asyncio single-threaded event loop (no extra locking needed).
    """

    def __init__(self, outbox_size: Optional[int] = None):
        self.outbox_size = outbox_size or settings.outbox_size
        self._sockets: Dict[str, WebSocket] = {}
        self._outboxes: Dict[str, asyncio.Queue] = {}
        # {group: {connection_id}}
        self._groups: Dict[str, Set[str]] = {}
        # {connection_id: {group}}
        self._memberships: Dict[str, Set[str]] = {}

    # ── Lifecycle ──────────────────────────────────────────────────────────────

    async def connect(self, ws: WebSocket) -> str:
        await ws.accept()
        connection_id = uuid.uuid4().hex
        self._sockets[connection_id] = ws
        self._outboxes[connection_id] = asyncio.Queue(maxsize=self.outbox_size)
        logger.debug("%s connected (%d total)", connection_id, self.count())
        return connection_id

    def disconnect(self, connection_id: str) -> None:
        for group in self._memberships.pop(connection_id, set()):
            members = self._groups.get(group)
            if members is None:
                continue
            members.discard(connection_id)
            if not members:
                self._groups.pop(group, None)
        self._sockets.pop(connection_id, None)
        self._outboxes.pop(connection_id, None)
        logger.debug("%s disconnected (%d total)", connection_id, self.count())

    def count(self) -> int:
        return len(self._sockets)

    def is_connected(self, connection_id: str) -> bool:
        return connection_id in self._sockets

    # ── Groups ─────────────────────────────────────────────────────────────────

    def join_group(self, connection_id: str, group: str) -> None:
        self._groups.setdefault(group, set()).add(connection_id)
        self._memberships.setdefault(connection_id, set()).add(group)

    def leave_group(self, connection_id: str, group: str) -> None:
        members = self._groups.get(group)
        if members is not None:
            members.discard(connection_id)
            if not members:
                self._groups.pop(group, None)
        groups = self._memberships.get(connection_id)
        if groups is not None:
            groups.discard(group)

    def members(self, group: str) -> Set[str]:
        return set(self._groups.get(group, set()))

    # ── Sending ────────────────────────────────────────────────────────────────

    def send_to(self, connection_id: str, message: Dict[str, Any]) -> None:
        """Queue a private message for a single connection."""
        outbox = self._outboxes.get(connection_id)
        if outbox is None:
            return
        if outbox.full():
            try:
                dropped = outbox.get_nowait()
                logger.warning(
                    "%s outbox full, dropped pending %s", connection_id, dropped.get("type")
                )
            except asyncio.QueueEmpty:
                pass
        try:
            outbox.put_nowait(message)
        except asyncio.QueueFull:
            logger.warning("%s outbox full, dropped %s", connection_id, message.get("type"))

    def broadcast(
        self,
        group: str,
        message: Dict[str, Any],
        exclude: Optional[str] = None,
    ) -> None:
        """Queue a message for every connection in a group."""
        for connection_id in list(self._groups.get(group, set())):
            if connection_id == exclude:
                continue
            self.send_to(connection_id, message)

    async def pump(self, connection_id: str) -> None:
        """Drain a connection's outbox onto its socket until cancelled or broken."""
        ws = self._sockets.get(connection_id)
        outbox = self._outboxes.get(connection_id)
        if ws is None or outbox is None:
            return
        while True:
            message = await outbox.get()
            try:
                await ws.send_json(message)
            except Exception as exc:
                logger.warning("%s send failed: %s", connection_id, exc)
                return
