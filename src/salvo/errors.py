"""Exception hierarchy shared by the engine and the transport adapter.

Every rejection a participant can trigger is a ``ProtocolError``: it is raised
before any state is touched, reported to the offending caller only, and never
broadcast. ``PlacementError`` is the one internal fault; it means the fleet
cannot be laid out on the board and is never shown to a participant.
"""

from __future__ import annotations


class ProtocolError(Exception):
    """Base for requests rejected at the session or registry boundary."""

    reason = "protocol violation"

    def __init__(self, detail: str | None = None) -> None:
        super().__init__(detail or self.reason)
        self.detail = detail or self.reason


class NotYourTurn(ProtocolError):
    reason = "not your turn"


class OutOfBounds(ProtocolError):
    reason = "coordinate out of bounds"


class CellAlreadyResolved(ProtocolError):
    reason = "cell already resolved"


class GameAlreadyOver(ProtocolError):
    reason = "game is over"


class GameNotStarted(ProtocolError):
    reason = "game has not started"


class PlacementLocked(ProtocolError):
    reason = "fleet can no longer be changed"


class InvalidBoard(ProtocolError):
    reason = "invalid board"


class RoomNotFound(ProtocolError):
    reason = "room not found"


class RoomFull(ProtocolError):
    reason = "room is full"


class AlreadyInRoom(ProtocolError):
    reason = "already in room"


class MalformedRoomCode(ProtocolError):
    reason = "malformed room code"


class NotInRoom(ProtocolError):
    reason = "not in a room"


class RegistryFull(ProtocolError):
    reason = "no free room code"


class CommandParseError(ProtocolError):
    """Raised when an inbound message cannot be parsed as a valid command."""

    reason = "malformed command"


class PlacementError(RuntimeError):
    """Raised when the fleet cannot be placed within the retry bound."""
