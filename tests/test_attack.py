"""Hit, miss, cordon and sunk resolution."""

import pytest

from salvo.attack import AttackResult, resolve_attack, sunk_box
from salvo.errors import CellAlreadyResolved, OutOfBounds
from salvo.grid import Cell, Grid, Orientation


def _misses(grid):
    return {(x, y) for x, y in grid.coords() if grid.cells[x][y] is Cell.MISS}


def test_miss_touches_only_the_target(fixed_grid):
    result = resolve_attack(fixed_grid, 2, 2)
    assert result == AttackResult(hit=False, sunk=None)
    assert result.as_dict() == {"hit": False, "sunk": None}
    assert _misses(fixed_grid) == {(2, 2)}


def test_hit_cordons_diagonals(fixed_grid):
    result = resolve_attack(fixed_grid, 2, 6)
    assert result.hit and result.sunk is None
    assert fixed_grid.cell_at(2, 6) is Cell.HIT
    assert _misses(fixed_grid) == {(1, 5), (1, 7), (3, 5), (3, 7)}
    # orthogonal neighbours are left alone
    assert fixed_grid.cell_at(1, 6) is Cell.EMPTY
    assert fixed_grid.cell_at(2, 5) is Cell.SHIP


def test_hit_in_corner_cordons_single_diagonal(fixed_grid):
    resolve_attack(fixed_grid, 0, 0)
    assert _misses(fixed_grid) == {(1, 1)}


def test_sinking_destroyer_seals_expanded_box(fixed_grid):
    resolve_attack(fixed_grid, 0, 0)
    result = resolve_attack(fixed_grid, 0, 1)
    assert result.hit
    assert result.sunk == ((0, 0), (0, 1))
    assert result.as_dict() == {"hit": True, "sunk": [[0, 0], [0, 1]]}
    assert _misses(fixed_grid) == {(0, 2), (1, 0), (1, 1), (1, 2)}


def test_sinking_vertical_ship_on_edge(fixed_grid):
    for x in (5, 7):
        assert resolve_attack(fixed_grid, x, 9).sunk is None
    result = resolve_attack(fixed_grid, 6, 9)
    assert result.sunk == ((5, 9), (7, 9))
    expected = {(x, y) for x in range(4, 9) for y in (8, 9)} - {(5, 9), (6, 9), (7, 9)}
    assert _misses(fixed_grid) == expected


def test_sunk_box_reports_afloat_ship(fixed_grid):
    fixed_grid.mark_result(4, 0, True)
    assert sunk_box(fixed_grid, 4, 0) is None


def test_single_cell_ship():
    grid = Grid()
    grid.place(0, 0, 1, Orientation.HORIZONTAL)
    result = resolve_attack(grid, 0, 0)
    assert result.sunk == ((0, 0), (0, 0))
    assert _misses(grid) == {(0, 1), (1, 0), (1, 1)}


def test_sinking_only_marks_empty_cells(fixed_grid):
    fixed_grid.mark_result(3, 3, False)
    for y in range(4, 9):
        result = resolve_attack(fixed_grid, 2, y)
    assert result.sunk == ((2, 4), (2, 8))
    # neighbouring ship cells of other ships are never overwritten
    assert fixed_grid.remaining_ship_cells() == 12
    assert fixed_grid.cell_at(3, 3) is Cell.MISS


def test_resolved_cell_is_rejected(fixed_grid):
    resolve_attack(fixed_grid, 2, 2)
    before = fixed_grid.copy()
    with pytest.raises(CellAlreadyResolved):
        resolve_attack(fixed_grid, 2, 2)
    assert fixed_grid == before


def test_out_of_bounds_is_rejected(fixed_grid):
    with pytest.raises(OutOfBounds):
        resolve_attack(fixed_grid, 10, 0)
