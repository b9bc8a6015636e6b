"""Two-player game session: the single writer of one room's game state.

A session owns both participants' grids, whose turn it is, the winner and the
set of participants currently reachable. Every public mutator runs under one
per-session lock, so attacks, joins and restores never interleave; two
attacks racing for the same turn serialize and the second one sees the first
one's turn transfer.

Lifecycle
---------
create     creator seated, creator grid randomized            -> Placement
join       second grid randomized, room announced              -> Waiting
           first turn drawn at random, ``turnover`` emitted    -> SelfTurn / OtherTurn
attack     hit keeps the turn, miss passes it                  -> SelfTurn <-> OtherTurn
win        defender has no unhit ship cell left                -> GameOver

Outbound notifications are ``Event`` objects handed to subscribers once the
session lock has been released; the session never touches sockets. Payloads
name participants by their public handle, never by identity. Rejections are
raised as ``ProtocolError`` before anything is mutated, so they reach only the
caller.
"""

from __future__ import annotations

import enum
import logging
import random
import secrets
import threading
from typing import Any, Callable, List, Sequence

from . import config as _cfg
from .attack import AttackResult, resolve_attack
from .coord_utils import format_coord, in_bounds
from .errors import (
    AlreadyInRoom,
    CellAlreadyResolved,
    GameAlreadyOver,
    GameNotStarted,
    InvalidBoard,
    NotInRoom,
    NotYourTurn,
    OutOfBounds,
    PlacementLocked,
    RoomFull,
    RoomNotFound,
)
from .events import (
    ATTACKED,
    GAMEOVER,
    RESTORE,
    ROOM_CLOSED,
    TURNOVER,
    UPDATE_ROOM,
    UPLOAD,
    Category,
    Event,
    held,
    post,
)
from .grid import Cell, Grid
from .placement import FLEET, place_fleet, random_grid, validate_fleet

logger = logging.getLogger(__name__)


class Phase(enum.Enum):
    """Session phase as seen by one participant."""

    PLACEMENT = "placement"
    WAITING = "waiting"
    SELF_TURN = "self-turn"
    OTHER_TURN = "other-turn"
    GAME_OVER = "gameover"
    CLOSED = "closed"


class GameSession:
    """Authoritative state for one room's match."""

    def __init__(
        self,
        code: str,
        creator: str,
        *,
        handle: str | None = None,
        rng: random.Random | None = None,
        fleet: Sequence[int] = FLEET,
        reveal_opponent: bool | None = None,
        request_uploads: bool | None = None,
    ):
        self.code = code
        self.fleet = tuple(fleet)
        self._rng = rng or random.Random()
        self.reveal_opponent = _cfg.REVEAL_OPPONENT if reveal_opponent is None else reveal_opponent
        self.request_uploads = _cfg.REQUEST_UPLOAD if request_uploads is None else request_uploads

        self.players: list[str] = [creator]
        # Public names used in event payloads; identities are private reconnect tokens
        self.handles: dict[str, str] = {creator: handle or secrets.token_hex(4)}
        self.grids: dict[str, Grid] = {creator: random_grid(self.fleet, rng=self._rng)}
        self.online: set[str] = {creator}
        # Identity allowed to fire next; None before the match starts and after it ends
        self.turn: str | None = None
        self.winner: str | None = None
        self.closed = False
        self._shots: dict[str, int] = {creator: 0}

        self._lock = threading.RLock()
        self._subs: List[Callable[[Event], None]] = []

    # -------------------- event bus --------------------
    def subscribe(self, cb: Callable[[Event], None]) -> None:
        """Allow external components (registry, server, tests) to receive events."""
        self._subs.append(cb)

    def _emit(self, category: Category, type_: str, payload: dict[str, Any], recipients) -> None:
        post(self._deliver, Event(category, type_, payload, tuple(recipients)))

    def _deliver(self, ev: Event) -> None:
        for cb in tuple(self._subs):
            try:
                cb(ev)
            except Exception:
                # A misbehaving subscriber must not corrupt the session
                logger.exception("Subscriber failed on %s for room %s", ev.type, self.code)

    def announce_room(self) -> None:
        """Tell every reachable participant how many people are in the room."""
        with held(), self._lock:
            self._emit(
                Category.ROOM,
                UPDATE_ROOM,
                {"room": self.code, "users": len(self.online)},
                [p for p in self.players if p in self.online],
            )

    # -------------------- queries --------------------
    @property
    def is_full(self) -> bool:
        return len(self.players) == 2

    @property
    def started(self) -> bool:
        """True once the first shot of the match has been fired."""
        return any(self._shots.values())

    @property
    def is_over(self) -> bool:
        return self.winner is not None

    def handle_of(self, identity: str) -> str:
        self._require_member(identity)
        return self.handles[identity]

    def shots(self, identity: str) -> int:
        return self._shots.get(identity, 0)

    def opponent_of(self, identity: str) -> str | None:
        self._require_member(identity)
        for p in self.players:
            if p != identity:
                return p
        return None

    def phase_for(self, identity: str) -> Phase:
        with self._lock:
            self._require_member(identity)
            if self.closed:
                return Phase.CLOSED
            if self.winner is not None:
                return Phase.GAME_OVER
            if not self.is_full:
                return Phase.PLACEMENT
            if self.turn is None:
                return Phase.WAITING
            return Phase.SELF_TURN if self.turn == identity else Phase.OTHER_TURN

    def snapshot(self, identity: str) -> dict[str, Any]:
        """Build the ``restore`` payload from *identity*'s point of view."""
        with self._lock:
            self._require_member(identity)
            opponent = self.opponent_of(identity)
            if opponent is None:
                opp_rows = Grid(self.grids[identity].size).rows()
            else:
                opp_rows = self.grids[opponent].rows(reveal=self.reveal_opponent)
            return {
                "turn": self.turn == identity,
                "player": self.grids[identity].rows(reveal=True),
                "opponent": opp_rows,
            }

    def _require_member(self, identity: str) -> None:
        if identity not in self.grids:
            raise NotInRoom(f"{identity} is not seated in room {self.code}")

    # -------------------- membership --------------------
    def join(self, identity: str, handle: str | None = None) -> None:
        """Seat the second participant and start the match."""
        with held(), self._lock:
            if self.closed:
                raise RoomNotFound(f"room {self.code} is closed")
            if identity in self.grids:
                raise AlreadyInRoom(f"already seated in room {self.code}")
            if self.is_full:
                raise RoomFull(f"room {self.code} is full")
            self.players.append(identity)
            self.handles[identity] = handle or self._fresh_handle()
            self.grids[identity] = random_grid(self.fleet, rng=self._rng)
            self._shots[identity] = 0
            self.online.add(identity)
            logger.info("Room %s: %s joined", self.code, identity)
            self.announce_room()
            if self.request_uploads:
                self._emit(Category.SYNC, UPLOAD, {}, self.players)
            self._start()

    def _fresh_handle(self) -> str:
        taken = set(self.handles.values())
        handle = secrets.token_hex(4)
        while handle in taken:
            handle = secrets.token_hex(4)
        return handle

    def _start(self) -> None:
        self.turn = self._rng.choice(self.players)
        logger.info("Room %s: game started, %s fires first", self.code, self.turn)
        self._emit(Category.TURN, TURNOVER, {"turn": self.handles[self.turn]}, self.players)

    def disconnect(self, identity: str) -> None:
        """Mark *identity* unreachable; game state is left untouched."""
        with held(), self._lock:
            self._require_member(identity)
            self.online.discard(identity)
            logger.info("Room %s: %s unreachable", self.code, identity)
            self.announce_room()

    def restore(self, identity: str) -> dict[str, Any]:
        """Resynchronize a returning participant.

        Emits ``restore`` to *identity* only and re-announces the room. Nothing
        about the match itself changes.
        """
        with held(), self._lock:
            self._require_member(identity)
            if self.closed:
                raise RoomNotFound(f"room {self.code} is closed")
            self.online.add(identity)
            payload = self.snapshot(identity)
            logger.info("Room %s: restoring %s", self.code, identity)
            self._emit(Category.SYNC, RESTORE, payload, [identity])
            self.announce_room()
            return payload

    def close(self, reason: str) -> None:
        """Shut the room; reachable participants receive ``room-closed``."""
        with held(), self._lock:
            if self.closed:
                return
            self.closed = True
            self.turn = None
            logger.info("Room %s closed (%s)", self.code, reason)
            self._emit(
                Category.ROOM,
                ROOM_CLOSED,
                {"room": self.code, "reason": reason},
                [p for p in self.players if p in self.online],
            )

    # -------------------- placement before the first shot --------------------
    def _check_placement_open(self, identity: str) -> None:
        self._require_member(identity)
        if self.closed:
            raise RoomNotFound(f"room {self.code} is closed")
        if self.winner is not None:
            raise GameAlreadyOver()
        if self.started:
            raise PlacementLocked("shots have already been fired")

    def regenerate(self, identity: str) -> dict[str, Any]:
        """Re-randomize *identity*'s fleet wholesale and resend their view."""
        with held(), self._lock:
            self._check_placement_open(identity)
            place_fleet(self.grids[identity], self.fleet, rng=self._rng)
            logger.info("Room %s: %s regenerated their fleet", self.code, identity)
            payload = self.snapshot(identity)
            self._emit(Category.SYNC, RESTORE, payload, [identity])
            return payload

    def submit_board(self, identity: str, rows: Sequence[str]) -> dict[str, Any]:
        """Replace *identity*'s fleet with an uploaded layout (legacy ``upload`` path)."""
        with held(), self._lock:
            self._check_placement_open(identity)
            try:
                grid = Grid.from_rows(rows, self.grids[identity].size)
            except ValueError as e:
                raise InvalidBoard(str(e)) from None
            validate_fleet(grid, self.fleet)
            self.grids[identity] = grid
            logger.info("Room %s: %s uploaded a fleet", self.code, identity)
            payload = self.snapshot(identity)
            self._emit(Category.SYNC, RESTORE, payload, [identity])
            return payload

    # -------------------- gameplay --------------------
    def attack(self, identity: str, x: int, y: int) -> AttackResult:
        """Fire from *identity* at (*x*, *y*) on the opponent's grid.

        Hit keeps the turn, miss passes it. The result goes to both
        participants; sinking the last ship ends the match.
        """
        with held(), self._lock:
            self._require_member(identity)
            if self.closed:
                raise RoomNotFound(f"room {self.code} is closed")
            if self.winner is not None:
                raise GameAlreadyOver()
            if self.turn is None:
                raise GameNotStarted()
            if self.turn != identity:
                raise NotYourTurn()
            defender = self.opponent_of(identity)
            grid = self.grids[defender]
            if not in_bounds(x, y, grid.size):
                raise OutOfBounds(f"({x}, {y}) is outside the grid")
            if grid.cells[x][y] in (Cell.HIT, Cell.MISS):
                raise CellAlreadyResolved(f"{format_coord(x, y)} was already fired at")

            result = resolve_attack(grid, x, y)
            self._shots[identity] += 1
            if not result.hit:
                self.turn = defender
            logger.info(
                "Room %s: %s fired at %s -> %s%s",
                self.code,
                identity,
                format_coord(x, y),
                "hit" if result.hit else "miss",
                " (sunk)" if result.sunk else "",
            )
            self._emit(
                Category.TURN,
                ATTACKED,
                {"by": self.handles[identity], "at": [x, y], **result.as_dict()},
                self.players,
            )

            if grid.all_ships_sunk():
                self.winner = identity
                self.turn = None
                shots = self._shots[identity]
                logger.info("Room %s: %s won with %d shots", self.code, identity, shots)
                self._emit(Category.TURN, GAMEOVER, {"winner": self.handles[identity], "shots": shots}, self.players)
            return result
