"""Lightweight event model used by GameSession to decouple game logic from transport.

Sessions and the registry emit strongly-typed events; the server translates
them into wire packets and other subscribers (logging, tests) can consume them
without parsing free text. ``type`` is the wire event name.

Delivery never happens under a session or registry lock: mutators enter
:func:`held` before taking their lock and :func:`post` queues every event
until the outermost ``held`` block of the thread exits.
"""

from __future__ import annotations

import contextlib
import threading
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Callable, Dict, Iterator, Tuple


class Category(Enum):
    """High-level event categories."""

    ROOM = auto()  # membership: created-room, update-room, room-closed
    TURN = auto()  # play: turnover, attacked, gameover
    SYNC = auto()  # state transfer: restore, upload


# Wire names
CREATED_ROOM = "created-room"
UPDATE_ROOM = "update-room"
ROOM_CLOSED = "room-closed"
TURNOVER = "turnover"
ATTACKED = "attacked"
GAMEOVER = "gameover"
RESTORE = "restore"
UPLOAD = "upload"


@dataclass(frozen=True)
class Event:
    """Immutable event addressed to one or more participant identities."""

    category: Category
    type: str
    payload: Dict[str, Any]
    recipients: Tuple[str, ...] = field(default=())


Subscriber = Callable[[Event], None]

_pending = threading.local()


@contextlib.contextmanager
def held() -> Iterator[None]:
    """Queue deliveries posted by this thread until the outermost block exits."""
    depth = getattr(_pending, "depth", 0)
    if depth == 0:
        _pending.queue = []
    _pending.depth = depth + 1
    try:
        yield
    finally:
        _pending.depth = depth
        if depth == 0:
            queued, _pending.queue = _pending.queue, []
            for deliver, ev in queued:
                deliver(ev)


def post(deliver: Callable[[Event], None], ev: Event) -> None:
    """Hand *ev* to *deliver* now, or once the current ``held`` block exits."""
    if getattr(_pending, "depth", 0):
        _pending.queue.append((deliver, ev))
    else:
        deliver(ev)
