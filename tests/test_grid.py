"""Unit tests for the grid, its adjacency rule and its row encoding."""

import pytest

from salvo.coord_utils import NEIGHBOURS, footprint
from salvo.errors import CellAlreadyResolved, OutOfBounds
from salvo.grid import Cell, Grid, Orientation

from conftest import FIXED_ROWS


def test_new_grid_is_empty():
    grid = Grid()
    assert grid.size == 10
    assert grid.count(Cell.EMPTY) == 100
    assert grid.all_ships_sunk()


def test_cell_at_out_of_bounds():
    grid = Grid()
    with pytest.raises(OutOfBounds):
        grid.cell_at(10, 0)
    with pytest.raises(OutOfBounds):
        grid.cell_at(0, -1)


def test_place_horizontal_runs_along_row():
    grid = Grid()
    cells = grid.place(3, 2, 4, Orientation.HORIZONTAL)
    assert cells == [(3, 2), (3, 3), (3, 4), (3, 5)]
    assert all(grid.cell_at(x, y) is Cell.SHIP for x, y in cells)
    assert grid.count(Cell.SHIP) == 4


def test_place_vertical_runs_down_column():
    grid = Grid()
    cells = grid.place(1, 7, 3, Orientation.VERTICAL)
    assert cells == [(1, 7), (2, 7), (3, 7)]


@pytest.mark.parametrize(
    "x, y, length, orientation",
    [
        (0, 8, 3, Orientation.HORIZONTAL),
        (8, 0, 3, Orientation.VERTICAL),
        (-1, 0, 2, Orientation.HORIZONTAL),
        (0, 10, 1, Orientation.VERTICAL),
    ],
)
def test_is_blocked_out_of_bounds(x, y, length, orientation):
    assert Grid().is_blocked(x, y, length, orientation)


def test_is_blocked_allows_edges():
    grid = Grid()
    assert not grid.is_blocked(0, 5, 5, Orientation.HORIZONTAL)
    assert not grid.is_blocked(5, 9, 5, Orientation.VERTICAL)


def test_every_halo_cell_is_blocked_after_place():
    """After placing a ship, a one-cell ship anywhere in its halo is rejected."""
    grid = Grid()
    ship = grid.place(4, 4, 3, Orientation.HORIZONTAL)
    halo = {(x + dx, y + dy) for x, y in ship for dx, dy in NEIGHBOURS} - set(ship)
    assert len(halo) == 12
    for x, y in halo:
        assert grid.is_blocked(x, y, 1, Orientation.HORIZONTAL), (x, y)
    for x, y in ship:
        assert grid.is_blocked(x, y, 1, Orientation.VERTICAL)


def test_cells_two_away_are_free():
    grid = Grid()
    grid.place(4, 4, 3, Orientation.HORIZONTAL)
    assert not grid.is_blocked(2, 4, 3, Orientation.HORIZONTAL)
    assert not grid.is_blocked(4, 8, 2, Orientation.HORIZONTAL)
    assert not grid.is_blocked(6, 3, 1, Orientation.VERTICAL)


def test_long_ship_crossing_halo_is_blocked():
    grid = Grid()
    grid.place(4, 4, 3, Orientation.HORIZONTAL)
    # vertical ship whose last cell touches the first ship diagonally
    assert grid.is_blocked(0, 3, 4, Orientation.VERTICAL)
    assert not grid.is_blocked(0, 3, 3, Orientation.VERTICAL)


def test_mark_result():
    grid = Grid()
    grid.place(0, 0, 2, Orientation.HORIZONTAL)
    grid.mark_result(0, 0, True)
    grid.mark_result(5, 5, False)
    assert grid.cell_at(0, 0) is Cell.HIT
    assert grid.cell_at(5, 5) is Cell.MISS
    assert grid.remaining_ship_cells() == 1


def test_mark_result_refuses_resolved_cells():
    grid = Grid()
    grid.mark_result(5, 5, False)
    with pytest.raises(CellAlreadyResolved):
        grid.mark_result(5, 5, False)
    assert grid.cell_at(5, 5) is Cell.MISS


def test_rows_round_trip(fixed_grid):
    fixed_grid.mark_result(0, 0, True)
    fixed_grid.mark_result(9, 9, False)
    rows = fixed_grid.rows()
    assert rows[0] == "hseeeeeeee"
    assert rows[9] == "eeeeeeeeem"
    assert Grid.from_rows(rows) == fixed_grid


def test_rows_without_reveal_hide_unhit_ships(fixed_grid):
    fixed_grid.mark_result(0, 0, True)
    hidden = fixed_grid.rows(reveal=False)
    assert hidden[0] == "heeeeeeeee"
    assert not any("s" in row for row in hidden)
    assert fixed_grid.rows(reveal=True) == [FIXED_ROWS[0].replace("s", "h", 1)] + FIXED_ROWS[1:]


@pytest.mark.parametrize(
    "rows",
    [
        FIXED_ROWS[:9],
        FIXED_ROWS[:9] + ["eeeeeeeee"],
        FIXED_ROWS[:9] + ["eeeeeeeeex"],
        FIXED_ROWS[:9] + [None],
    ],
)
def test_from_rows_rejects_bad_input(rows):
    with pytest.raises(ValueError):
        Grid.from_rows(rows)


def test_copy_is_independent(fixed_grid):
    clone = fixed_grid.copy()
    clone.mark_result(0, 0, True)
    assert fixed_grid.cell_at(0, 0) is Cell.SHIP
    assert clone != fixed_grid


def test_footprint_helper():
    assert footprint(2, 2, 3, Orientation.VERTICAL.step) == [(2, 2), (3, 2), (4, 2)]
