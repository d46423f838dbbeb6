"""
Relay error taxonomy.

Every error is reported to the originating connection only, as an
`error:msg` envelope carrying the human-readable message and a stable code.
A silent error is logged and dropped instead: passive reads by a non-master
and events from connections outside the room get no reply.
None of them is fatal to the process.
"""
from typing import Optional


class RelayError(Exception):
    code = "RELAY_ERROR"
    default_message = "Request rejected."
    silent = False

    def __init__(self, message: str = "", silent: Optional[bool] = None):
        self.message = message or self.default_message
        if silent is not None:
            self.silent = silent
        super().__init__(self.message)


class InvalidRoomId(RelayError):
    code = "INVALID_ROOM_ID"
    default_message = "Invalid room id."


class RoomNotFound(RelayError):
    code = "ROOM_NOT_FOUND"
    default_message = "Room does not exist (or has no master)."


class AlreadyHasMaster(RelayError):
    code = "ALREADY_HAS_MASTER"
    default_message = "This room already has a master. Join as a player."


class NotAuthorized(RelayError):
    code = "NOT_AUTHORIZED"
    default_message = "Only the master can do that."


class NotFound(RelayError):
    code = "NOT_FOUND"
    default_message = "Not found."


class NotRegistered(RelayError):
    code = "NOT_REGISTERED"
    default_message = "You are not a member of this room."
    silent = True


class UnknownEvent(RelayError):
    code = "UNKNOWN_TYPE"
    default_message = "Unknown message type."


class BadMessage(RelayError):
    code = "PARSE_ERROR"
    default_message = "Invalid message."
