"""Session registry: room codes, participant identities and session lifetime.

The registry is the only place that creates or destroys a ``GameSession``.
Its own lock guards the lookup tables; game state stays behind each session's
lock, so attacks in different rooms never contend. Events raised while either
lock is held are delivered after both are released.

Identities are private opaque tokens handed out by
:meth:`SessionRegistry.identify`. A known token resumes its owner; an absent
or unknown one yields a fresh identity. Each identity also carries a public
handle, the only name other participants ever see in events. When a seated
participant disconnects their seat is held for ``GRACE_PERIOD`` seconds before
the room is closed.
"""

from __future__ import annotations

import logging
import random
import re
import secrets
import threading
from typing import Any, Callable, List, Sequence

from . import config as _cfg
from .attack import AttackResult
from .errors import (
    AlreadyInRoom,
    MalformedRoomCode,
    NotInRoom,
    RegistryFull,
    RoomNotFound,
)
from .events import CREATED_ROOM, Category, Event, held, post
from .placement import FLEET
from .reconnect_controller import ReconnectController
from .session import GameSession

logger = logging.getLogger(__name__)

ROOM_CODE_RE = re.compile(rf"^[A-Z0-9]{{{_cfg.ROOM_CODE_LENGTH}}}$")


def normalize_room_code(code: Any) -> str:
    """Upper-case and validate a room code supplied by a participant."""
    if not isinstance(code, str):
        raise MalformedRoomCode(f"room code must be a string, got {type(code).__name__}")
    cleaned = code.strip().upper()
    if not ROOM_CODE_RE.match(cleaned):
        raise MalformedRoomCode(f"invalid room code {code!r}")
    return cleaned


class SessionRegistry:
    """Maps room codes and identities to live sessions."""

    def __init__(
        self,
        *,
        grace_period: float | None = None,
        rng: random.Random | None = None,
        fleet: Sequence[int] = FLEET,
        reveal_opponent: bool | None = None,
        request_uploads: bool | None = None,
        timer_factory: Callable[..., threading.Timer] = threading.Timer,
    ):
        self._rng = rng or random.Random()
        self.fleet = tuple(fleet)
        self._session_opts = {"reveal_opponent": reveal_opponent, "request_uploads": request_uploads}
        self._lock = threading.RLock()
        self._rooms: dict[str, GameSession] = {}
        self._seats: dict[str, str] = {}
        # identity -> public handle; identities are private, handles appear in events
        self._handles: dict[str, str] = {}
        self._subs: List[Callable[[Event], None]] = []
        self.recon = ReconnectController(
            _cfg.GRACE_PERIOD if grace_period is None else grace_period,
            self._expire,
            timer_factory=timer_factory,
        )

    # -------------------- event bus --------------------
    def subscribe(self, cb: Callable[[Event], None]) -> None:
        """Receive events from the registry and from every session it creates."""
        self._subs.append(cb)

    def _emit(self, ev: Event) -> None:
        post(self._deliver, ev)

    def _deliver(self, ev: Event) -> None:
        for cb in tuple(self._subs):
            try:
                cb(ev)
            except Exception:
                logger.exception("Subscriber failed on %s", ev.type)

    # -------------------- lookups --------------------
    def session_for(self, identity: str) -> GameSession | None:
        with self._lock:
            code = self._seats.get(identity)
            return self._rooms.get(code) if code else None

    def room(self, code: str) -> GameSession | None:
        with self._lock:
            return self._rooms.get(code)

    def rooms(self) -> list[str]:
        with self._lock:
            return sorted(self._rooms)

    def is_known(self, identity: str) -> bool:
        with self._lock:
            return identity in self._handles

    def handle_of(self, identity: str) -> str | None:
        with self._lock:
            return self._handles.get(identity)

    def _require_session(self, identity: str) -> GameSession:
        session = self.session_for(identity)
        if session is None:
            raise NotInRoom()
        return session

    # -------------------- identities --------------------
    def identify(self, token: str | None = None) -> str:
        """Return the identity for *token*, issuing a fresh one if it is unknown."""
        with self._lock:
            if token and token in self._handles:
                return token
            identity = secrets.token_hex(8)
            while identity in self._handles:
                identity = secrets.token_hex(8)
            self._register(identity)
            if token:
                logger.info("Unknown token %r replaced by fresh identity %s", token, identity)
            return identity

    def _register(self, identity: str) -> str:
        """Remember *identity* and give it a public handle if it has none yet."""
        handle = self._handles.get(identity)
        if handle is None:
            taken = set(self._handles.values())
            # 8 hex digits, so a handle can never equal a 16-digit identity
            handle = secrets.token_hex(4)
            while handle in taken:
                handle = secrets.token_hex(4)
            self._handles[identity] = handle
        return handle

    def resume(self, identity: str) -> dict[str, Any] | None:
        """Mark *identity* reachable again; restore its session if it has one.

        Returns the ``restore`` payload, or None when the identity holds no seat.
        """
        with held(), self._lock:
            self.recon.cancel(identity)
            code = self._seats.get(identity)
            if code is None:
                return None
            logger.info("%s reconnected to room %s", identity, code)
            return self._rooms[code].restore(identity)

    def connect(self, token: str | None = None) -> tuple[str, dict[str, Any] | None]:
        """Convenience: :meth:`identify` followed by :meth:`resume`."""
        with held(), self._lock:
            identity = self.identify(token)
            return identity, self.resume(identity)

    def disconnect(self, identity: str) -> None:
        """Transport lost for *identity*: hold its seat or let it go."""
        with held(), self._lock:
            code = self._seats.get(identity)
            if code is None:
                self._handles.pop(identity, None)
                return
            session = self._rooms[code]
            session.disconnect(identity)
            if session.is_over and not session.online:
                self._destroy(code, "finished")
            else:
                self.recon.hold(identity)

    def _expire(self, identity: str) -> None:
        with held(), self._lock:
            code = self._seats.get(identity)
            if code is None:
                return
            session = self._rooms[code]
            if identity in session.online:
                return
            logger.info("%s did not return to room %s in time", identity, code)
            self._destroy(code, "timeout")

    def _destroy(self, code: str, reason: str) -> None:
        session = self._rooms.pop(code, None)
        if session is None:
            return
        for player in session.players:
            self._seats.pop(player, None)
            self.recon.cancel(player)
            if player not in session.online:
                self._handles.pop(player, None)
        session.close(reason)

    # -------------------- rooms --------------------
    def _new_code(self) -> str:
        for _ in range(_cfg.ROOM_CODE_ATTEMPTS):
            code = "".join(self._rng.choice(_cfg.ROOM_CODE_ALPHABET) for _ in range(_cfg.ROOM_CODE_LENGTH))
            if code not in self._rooms:
                return code
            logger.debug("Room code %s collides, regenerating", code)
        raise RegistryFull()

    def create_room(self, identity: str) -> str:
        """Open a new room with *identity* as its first participant.

        A participant already seated in a live room gets that room back.
        """
        with held(), self._lock:
            self._register(identity)
            code = self._seats.get(identity)
            if code is None:
                code = self._new_code()
                session = GameSession(
                    code,
                    identity,
                    handle=self._handles[identity],
                    rng=random.Random(self._rng.getrandbits(64)),
                    fleet=self.fleet,
                    **self._session_opts,
                )
                session.subscribe(self._deliver)
                self._rooms[code] = session
                self._seats[identity] = code
                logger.info("Room %s created by %s", code, identity)
            else:
                session = self._rooms[code]
                logger.debug("%s asked for a room while seated in %s", identity, code)
            self._emit(Event(Category.ROOM, CREATED_ROOM, {"room": code}, (identity,)))
            session.announce_room()
            return code

    def join_room(self, identity: str, code: Any) -> GameSession:
        """Seat *identity* in the room identified by *code*."""
        code = normalize_room_code(code)
        with held(), self._lock:
            self._register(identity)
            session = self._rooms.get(code)
            if session is None:
                raise RoomNotFound(f"no room {code}")
            seated = self._seats.get(identity)
            if seated is not None:
                raise AlreadyInRoom(f"already seated in room {seated}")
            session.join(identity, self._handles[identity])
            self._seats[identity] = code
            return session

    def leave(self, identity: str) -> None:
        """Leave deliberately: the room is closed for both participants at once."""
        with held(), self._lock:
            code = self._seats.get(identity)
            if code is None:
                raise NotInRoom()
            logger.info("%s left room %s", identity, code)
            self._destroy(code, "left")

    # -------------------- routed game operations --------------------
    def attack(self, identity: str, x: int, y: int) -> AttackResult:
        return self._require_session(identity).attack(identity, x, y)

    def regenerate(self, identity: str) -> dict[str, Any]:
        return self._require_session(identity).regenerate(identity)

    def submit_board(self, identity: str, rows: Sequence[str]) -> dict[str, Any]:
        return self._require_session(identity).submit_board(identity, rows)

    def shutdown(self) -> None:
        """Close every room and drop all pending grace timers."""
        with held(), self._lock:
            self.recon.shutdown()
            for code in list(self._rooms):
                self._destroy(code, "shutdown")
