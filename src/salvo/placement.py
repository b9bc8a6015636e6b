"""Fleet placement: random server-side layout and validation of uploaded boards."""

from __future__ import annotations

import logging
import random
from collections import Counter
from typing import Iterable, Sequence

from . import config as _cfg
from .coord_utils import DIAGONAL, ORTHOGONAL, Coord, neighbours
from .errors import InvalidBoard, PlacementError
from .grid import Cell, Grid, Orientation

logger = logging.getLogger(__name__)

FLEET = _cfg.FLEET


def place_fleet(
    grid: Grid,
    fleet: Sequence[int] = FLEET,
    *,
    rng: random.Random | None = None,
    max_attempts: int | None = None,
) -> Grid:
    """Randomly position *fleet* on *grid* so that no two ships touch.

    The grid is cleared first; a layout is always produced wholesale. For each
    ship, in fleet order, an orientation and an anchor that keeps the
    footprint on the board are drawn uniformly until the grid accepts them.
    """
    rng = rng or random.Random()
    limit = max_attempts if max_attempts is not None else _cfg.PLACEMENT_ATTEMPTS
    grid.reset()
    for length in fleet:
        if not 0 < length <= grid.size:
            raise PlacementError(f"ship of length {length} cannot fit a {grid.size}x{grid.size} grid")
        for _ in range(limit):
            orientation = rng.choice((Orientation.HORIZONTAL, Orientation.VERTICAL))
            if orientation is Orientation.HORIZONTAL:
                x = rng.randrange(grid.size)
                y = rng.randrange(grid.size - length + 1)
            else:
                x = rng.randrange(grid.size - length + 1)
                y = rng.randrange(grid.size)
            if not grid.is_blocked(x, y, length, orientation):
                grid.place(x, y, length, orientation)
                break
        else:
            raise PlacementError(f"could not place ship of length {length} after {limit} attempts")
    logger.debug("Fleet placed:\n%s", grid.render())
    return grid


def random_grid(
    fleet: Sequence[int] = FLEET,
    *,
    rng: random.Random | None = None,
    size: int = _cfg.BOARD_SIZE,
) -> Grid:
    """Return a fresh grid populated by :func:`place_fleet`."""
    return place_fleet(Grid(size), fleet, rng=rng)


def ship_runs(grid: Grid) -> list[list[Coord]]:
    """Group the ``Ship``/``Hit`` cells of *grid* into 4-connected runs."""
    occupied = set(grid.ship_cells())
    seen: set[Coord] = set()
    runs: list[list[Coord]] = []
    for start in sorted(occupied):
        if start in seen:
            continue
        seen.add(start)
        stack, run = [start], []
        while stack:
            cell = stack.pop()
            run.append(cell)
            for nxt in neighbours(*cell, offsets=ORTHOGONAL, size=grid.size):
                if nxt in occupied and nxt not in seen:
                    seen.add(nxt)
                    stack.append(nxt)
        runs.append(sorted(run))
    return runs


def _is_straight(run: Iterable[Coord]) -> bool:
    xs = {x for x, _ in run}
    ys = {y for _, y in run}
    return len(xs) == 1 or len(ys) == 1


def validate_fleet(grid: Grid, fleet: Sequence[int] = FLEET) -> None:
    """Check that an uploaded *grid* is a legal starting layout for *fleet*.

    Only Empty and Ship cells are allowed, every ship is a straight run, no
    two ships touch diagonally, and the run lengths match the fleet exactly.
    Raises ``InvalidBoard`` describing the first problem found.
    """
    if grid.count(Cell.HIT) or grid.count(Cell.MISS):
        raise InvalidBoard("board may only contain empty and ship cells")
    runs = ship_runs(grid)
    owner = {cell: idx for idx, run in enumerate(runs) for cell in run}
    for idx, run in enumerate(runs):
        if not _is_straight(run):
            raise InvalidBoard(f"ship at {run[0]} is not a straight line")
        for cell in run:
            for diag in neighbours(*cell, offsets=DIAGONAL, size=grid.size):
                if owner.get(diag, idx) != idx:
                    raise InvalidBoard(f"ships touch at {cell} and {diag}")
    lengths = Counter(len(run) for run in runs)
    if lengths != Counter(fleet):
        raise InvalidBoard(
            f"fleet must be {sorted(fleet, reverse=True)}, got {sorted(lengths.elements(), reverse=True)}"
        )
