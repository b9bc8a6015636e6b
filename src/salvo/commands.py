"""Parse inbound client messages into command objects.

A message is a JSON object ``{"event": <name>, "data": <payload>}``:

create                      open a room
join     "ABCD"             join a room by code
attack   [x, y]             fire at the opponent's grid
leave                       leave the current room
regenerate                  re-randomize the own fleet before the first shot
upload   ["eess...", ...]   submit an own layout (legacy path)
"""

from dataclasses import dataclass
from typing import Any, Tuple, Union

from .errors import CommandParseError


@dataclass(frozen=True)
class CreateCommand:
    pass


@dataclass(frozen=True)
class JoinCommand:
    code: str


@dataclass(frozen=True)
class AttackCommand:
    x: int
    y: int


@dataclass(frozen=True)
class LeaveCommand:
    pass


@dataclass(frozen=True)
class RegenerateCommand:
    pass


@dataclass(frozen=True)
class UploadCommand:
    rows: Tuple[str, ...]


Command = Union[CreateCommand, JoinCommand, AttackCommand, LeaveCommand, RegenerateCommand, UploadCommand]


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def parse_command(message: Any) -> Command:
    if not isinstance(message, dict):
        raise CommandParseError("message must be an object")
    verb = message.get("event")
    if not isinstance(verb, str) or not verb.strip():
        raise CommandParseError("missing event name")
    verb = verb.strip().lower()
    data = message.get("data")
    if verb == "create":
        return CreateCommand()
    elif verb == "join":
        if not isinstance(data, str):
            raise CommandParseError("join requires a room code")
        # format is checked by the registry so the caller gets MalformedRoomCode
        return JoinCommand(code=data)
    elif verb == "attack":
        if not isinstance(data, (list, tuple)) or len(data) != 2 or not all(_is_int(v) for v in data):
            raise CommandParseError("attack requires [x, y] integers")
        return AttackCommand(x=data[0], y=data[1])
    elif verb == "leave":
        return LeaveCommand()
    elif verb == "regenerate":
        return RegenerateCommand()
    elif verb == "upload":
        if not isinstance(data, (list, tuple)) or not all(isinstance(r, str) for r in data):
            raise CommandParseError("upload requires a list of row strings")
        return UploadCommand(rows=tuple(data))
    else:
        raise CommandParseError(f"Unknown command: {verb}")
