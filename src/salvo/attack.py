"""Attack resolution against a defender's grid.

A shot turns its target into ``Hit`` or ``Miss``. Every hit also cordons off
the four diagonal neighbours, which can never hold a ship under the no-touch
rule. When the hit completes a ship, the ship's bounding box grown by one cell
is sealed as well.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

from .coord_utils import DIAGONAL, ORTHOGONAL, Coord, in_bounds, neighbours
from .errors import CellAlreadyResolved, OutOfBounds
from .grid import Cell, Grid

Box = Tuple[Coord, Coord]


@dataclass(frozen=True)
class AttackResult:
    hit: bool
    sunk: Optional[Box] = None

    def as_dict(self) -> dict:
        sunk = [list(self.sunk[0]), list(self.sunk[1])] if self.sunk else None
        return {"hit": self.hit, "sunk": sunk}


def sunk_box(grid: Grid, x: int, y: int) -> Optional[Box]:
    """Return the bounding box of the ship through (*x*, *y*) if it is sunk.

    Floods the 4-connected ``Hit``/``Ship`` cells from the target; any
    ``Ship`` cell reached means the ship is still afloat.
    """
    stack = [(x, y)]
    seen = {(x, y)}
    min_x, min_y, max_x, max_y = x, y, x, y
    while stack:
        cx, cy = stack.pop()
        if grid.cells[cx][cy] is Cell.SHIP:
            return None
        min_x, min_y = min(min_x, cx), min(min_y, cy)
        max_x, max_y = max(max_x, cx), max(max_y, cy)
        for nxt in neighbours(cx, cy, offsets=ORTHOGONAL, size=grid.size):
            if nxt not in seen and grid.cells[nxt[0]][nxt[1]] in (Cell.HIT, Cell.SHIP):
                seen.add(nxt)
                stack.append(nxt)
    return (min_x, min_y), (max_x, max_y)


def cordon_hit(grid: Grid, x: int, y: int) -> list[Coord]:
    """Mark the empty diagonal neighbours of a hit as misses."""
    return [cell for cell in neighbours(x, y, offsets=DIAGONAL, size=grid.size) if grid.mark_miss_if_empty(*cell)]


def cordon_sunk(grid: Grid, box: Box) -> list[Coord]:
    """Mark every empty cell in *box* grown by one (clamped) as a miss."""
    (min_x, min_y), (max_x, max_y) = box
    marked: list[Coord] = []
    for cx in range(max(min_x - 1, 0), min(max_x + 1, grid.size - 1) + 1):
        for cy in range(max(min_y - 1, 0), min(max_y + 1, grid.size - 1) + 1):
            if grid.mark_miss_if_empty(cx, cy):
                marked.append((cx, cy))
    return marked


def resolve_attack(grid: Grid, x: int, y: int) -> AttackResult:
    """Fire at (*x*, *y*) on *grid* and mutate it with the outcome.

    The target must be ``Empty`` or ``Ship``; the session checks this before
    calling, so the guards below only protect direct callers.
    """
    if not in_bounds(x, y, grid.size):
        raise OutOfBounds(f"({x}, {y}) is outside the grid")
    cell = grid.cells[x][y]
    if cell in (Cell.HIT, Cell.MISS):
        raise CellAlreadyResolved(f"({x}, {y}) is already {cell.name.lower()}")

    hit = cell is Cell.SHIP
    grid.mark_result(x, y, hit)
    if not hit:
        return AttackResult(hit=False)

    cordon_hit(grid, x, y)
    box = sunk_box(grid, x, y)
    if box is not None:
        cordon_sunk(grid, box)
    return AttackResult(hit=True, sunk=box)
