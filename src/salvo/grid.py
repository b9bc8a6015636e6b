"""
grid.py

Core board data structure for the engine:
 - Cell, the four cell states, doubling as the row-string alphabet
 - Orientation, the two ship axes
 - Grid, a fixed square matrix of cells with placement, adjacency and
   result-marking operations plus the row-string encoding used by ``restore``

A ship is not stored as an entity; it is the run of contiguous ``Ship``/``Hit``
cells on the grid. Ships never touch, not even diagonally, so a 4-connected
run of those cells is always exactly one ship.
"""

from __future__ import annotations

import enum
from typing import Iterable, Iterator

from .config import BOARD_SIZE
from .coord_utils import NEIGHBOURS, Coord, footprint, in_bounds
from .errors import CellAlreadyResolved, OutOfBounds


class Cell(str, enum.Enum):
    """Cell states; the values are the characters of the wire encoding."""

    EMPTY = "e"
    SHIP = "s"
    HIT = "h"
    MISS = "m"


class Orientation(int, enum.Enum):
    """Ship axis. Horizontal runs along a row (``y`` grows), vertical down a column."""

    HORIZONTAL = 0
    VERTICAL = 1

    @property
    def step(self) -> Coord:
        return (0, 1) if self is Orientation.HORIZONTAL else (1, 0)


class Grid:
    """
    Represents one participant's board.

    ``cells[x][y]`` holds the state of row *x*, column *y*. The same grid
    backs both the owner view (ships visible) and the opponent view (ships
    hidden until hit); ``rows(reveal=False)`` produces the latter.
    """

    def __init__(self, size: int = BOARD_SIZE):
        """Initialise an empty *size*×*size* grid."""
        self.size = size
        self.cells: list[list[Cell]] = [[Cell.EMPTY for _ in range(size)] for _ in range(size)]

    # -------------------- accessors --------------------

    def cell_at(self, x: int, y: int) -> Cell:
        if not in_bounds(x, y, self.size):
            raise OutOfBounds(f"({x}, {y}) is outside the {self.size}x{self.size} grid")
        return self.cells[x][y]

    def coords(self) -> Iterator[Coord]:
        for x in range(self.size):
            for y in range(self.size):
                yield x, y

    def count(self, cell: Cell) -> int:
        return sum(row.count(cell) for row in self.cells)

    def ship_cells(self) -> list[Coord]:
        """Coordinates that hold, or held, a ship (``Ship`` or ``Hit``)."""
        return [(x, y) for x, y in self.coords() if self.cells[x][y] in (Cell.SHIP, Cell.HIT)]

    def remaining_ship_cells(self) -> int:
        return self.count(Cell.SHIP)

    def all_ships_sunk(self) -> bool:
        """Return True once no ``Ship`` cell is left unhit."""
        return self.remaining_ship_cells() == 0

    # -------------------- placement --------------------

    def is_blocked(self, x: int, y: int, length: int, orientation: Orientation) -> bool:
        """Return True if a ship cannot go at (*x*, *y*).

        A placement is blocked when any footprint cell is off the grid, or when
        the footprint or its one-cell halo (all eight neighbours of every
        footprint cell) touches a non-Empty cell.
        """
        cells = footprint(x, y, length, Orientation(orientation).step)
        if not all(in_bounds(cx, cy, self.size) for cx, cy in cells):
            return True
        for cx, cy in cells:
            if self.cells[cx][cy] is not Cell.EMPTY:
                return True
            for dx, dy in NEIGHBOURS:
                tx, ty = cx + dx, cy + dy
                if in_bounds(tx, ty, self.size) and self.cells[tx][ty] is not Cell.EMPTY:
                    return True
        return False

    def place(self, x: int, y: int, length: int, orientation: Orientation) -> list[Coord]:
        """Write a ship into the grid and return the cells it occupies.

        Callers validate with :meth:`is_blocked` first; this method does not
        repeat the adjacency check.
        """
        cells = footprint(x, y, length, Orientation(orientation).step)
        for cx, cy in cells:
            self.cells[cx][cy] = Cell.SHIP
        return cells

    def reset(self) -> None:
        for row in self.cells:
            for y in range(self.size):
                row[y] = Cell.EMPTY

    # -------------------- results --------------------

    def mark_result(self, x: int, y: int, is_hit: bool) -> None:
        """Resolve a target cell to ``Hit`` or ``Miss``."""
        current = self.cell_at(x, y)
        if current in (Cell.HIT, Cell.MISS):
            raise CellAlreadyResolved(f"({x}, {y}) is already {current.name.lower()}")
        self.cells[x][y] = Cell.HIT if is_hit else Cell.MISS

    def mark_miss_if_empty(self, x: int, y: int) -> bool:
        """Turn an Empty cell into a Miss; return whether it changed."""
        if self.cells[x][y] is Cell.EMPTY:
            self.cells[x][y] = Cell.MISS
            return True
        return False

    # -------------------- encoding --------------------

    def rows(self, *, reveal: bool = True) -> list[str]:
        """Encode the grid as one string per row using the ``e s h m`` alphabet.

        With ``reveal=False`` unhit ships are written as empty water.
        """
        out: list[str] = []
        for row in self.cells:
            chars = (
                Cell.EMPTY.value if (cell is Cell.SHIP and not reveal) else cell.value
                for cell in row
            )
            out.append("".join(chars))
        return out

    @classmethod
    def from_rows(cls, rows: Iterable[str], size: int = BOARD_SIZE) -> "Grid":
        """Parse the row-string encoding back into a grid."""
        rows = list(rows)
        if len(rows) != size:
            raise ValueError(f"expected {size} rows, got {len(rows)}")
        grid = cls(size)
        for x, row in enumerate(rows):
            if not isinstance(row, str) or len(row) != size:
                raise ValueError(f"row {x} must be a string of {size} characters")
            for y, ch in enumerate(row):
                try:
                    grid.cells[x][y] = Cell(ch)
                except ValueError:
                    raise ValueError(f"invalid cell {ch!r} at ({x}, {y})") from None
        return grid

    def copy(self) -> "Grid":
        clone = Grid(self.size)
        clone.cells = [list(row) for row in self.cells]
        return clone

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Grid):
            return NotImplemented
        return self.size == other.size and self.cells == other.cells

    def __repr__(self) -> str:
        return f"Grid(size={self.size}, ships_left={self.remaining_ship_cells()})"

    def render(self, *, reveal: bool = True) -> str:
        """Multi-line ASCII rendering for debug logs."""
        lines = ["  " + "".join(str(i + 1).rjust(2) for i in range(self.size))]
        for x, row in enumerate(self.rows(reveal=reveal)):
            lines.append(f"{chr(ord('A') + x):2} " + " ".join(row))
        return "\n".join(lines)
