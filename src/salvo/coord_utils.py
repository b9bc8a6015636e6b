"""Offset tables and coordinate helpers shared by grid, placement and attack code.

Coordinates are ``(x, y)`` with ``x`` the row and ``y`` the column.
"""

from __future__ import annotations

from typing import Iterator, Tuple

from .config import BOARD_SIZE

Coord = Tuple[int, int]

ORTHOGONAL: tuple[Coord, ...] = ((-1, 0), (1, 0), (0, -1), (0, 1))
DIAGONAL: tuple[Coord, ...] = ((-1, -1), (-1, 1), (1, -1), (1, 1))
NEIGHBOURS: tuple[Coord, ...] = ORTHOGONAL + DIAGONAL


def in_bounds(x: int, y: int, size: int = BOARD_SIZE) -> bool:
    return 0 <= x < size and 0 <= y < size


def neighbours(x: int, y: int, offsets=NEIGHBOURS, size: int = BOARD_SIZE) -> Iterator[Coord]:
    """Yield the in-bounds cells at *offsets* from (*x*, *y*)."""
    for dx, dy in offsets:
        tx, ty = x + dx, y + dy
        if in_bounds(tx, ty, size):
            yield tx, ty


def footprint(x: int, y: int, length: int, step: Coord) -> list[Coord]:
    """Cells covered by a ship of *length* anchored at (*x*, *y*) advancing by *step*."""
    dx, dy = step
    return [(x + i * dx, y + i * dy) for i in range(length)]


def format_coord(x: int, y: int) -> str:
    """
    Convert zero-based (x, y) to a label like 'A1' (row letter, column number).
    """
    return f"{chr(ord('A') + x)}{y + 1}"
