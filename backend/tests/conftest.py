from typing import Any, Dict, List, Optional, Set, Tuple

import pytest

from services.gateway import RelayGateway
from services.roll_ledger import RollLedger
from services.room_registry import RoomRegistry


class RecordingTransport:
    """In-memory stand-in for ConnectionManager that records every delivery."""

    def __init__(self) -> None:
        self.sent: List[Tuple[str, Dict[str, Any]]] = []
        self.groups: Dict[str, Set[str]] = {}

    def send_to(self, connection_id: str, message: Dict[str, Any]) -> None:
        self.sent.append((connection_id, message))

    def broadcast(self, group: str, message: Dict[str, Any], exclude: Optional[str] = None) -> None:
        for connection_id in sorted(self.groups.get(group, set())):
            if connection_id != exclude:
                self.send_to(connection_id, message)

    def join_group(self, connection_id: str, group: str) -> None:
        self.groups.setdefault(group, set()).add(connection_id)

    def leave_group(self, connection_id: str, group: str) -> None:
        self.groups.get(group, set()).discard(connection_id)

    def messages(self, connection_id: str, msg_type: Optional[str] = None) -> List[Dict[str, Any]]:
        return [
            m for cid, m in self.sent
            if cid == connection_id and (msg_type is None or m["type"] == msg_type)
        ]

    def last(self, connection_id: str, msg_type: str) -> Dict[str, Any]:
        found = self.messages(connection_id, msg_type)
        assert found, f"no {msg_type} delivered to {connection_id}"
        return found[-1]

    def errors(self, connection_id: str) -> List[Dict[str, Any]]:
        return self.messages(connection_id, "error:msg")

    def clear(self) -> None:
        self.sent.clear()


@pytest.fixture
def registry() -> RoomRegistry:
    return RoomRegistry()


@pytest.fixture
def transport() -> RecordingTransport:
    return RecordingTransport()


@pytest.fixture
def gateway(registry: RoomRegistry, transport: RecordingTransport) -> RelayGateway:
    return RelayGateway(registry, transport, RollLedger(limit=50))


@pytest.fixture
def table(gateway: RelayGateway, transport: RecordingTransport) -> RelayGateway:
    """Room "table" with master "gm" and players "p1", "p2"; transport log cleared."""
    gateway.handle("gm", "room:create", {"roomId": "table", "name": "GM"})
    gateway.handle("p1", "room:join", {"roomId": "table", "name": "Ana"})
    gateway.handle("p2", "room:join", {"roomId": "table", "name": "Bruno"})
    transport.clear()
    return gateway


@pytest.fixture
def anyio_backend() -> str:
    """The async tests drive asyncio primitives directly, so run them on asyncio only."""
    return "asyncio"
