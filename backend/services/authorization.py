from models.room import Room


def is_master(room: Room, connection_id: str) -> bool:
    """True iff this connection is the room's current master."""
    return bool(connection_id) and room.master_connection_id == connection_id
