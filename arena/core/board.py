"""Board: 3x3 grid helpers, win and draw detection.

Invariants:
    - A grid is always exactly 3 rows of 3 cells; each cell is a Mark or None
    - find_winning_line scans rows, then columns, then diagonals; first complete line wins
    - A line of mixed or empty cells is never a win
"""

from dataclasses import dataclass

from arena.core.domain_types import LineKind, Mark

BOARD_SIZE: int = 3

Cell = Mark | None
Grid = list[list[Cell]]


@dataclass(frozen=True)
class WinningLine:
    kind: LineKind
    index: int
    cells: tuple[tuple[int, int], ...]
    mark: Mark

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "index": self.index,
            "cells": [list(c) for c in self.cells],
            "mark": self.mark.value,
        }


def _lines() -> list[tuple[LineKind, int, tuple[tuple[int, int], ...]]]:
    lines = []
    for r in range(BOARD_SIZE):
        lines.append((LineKind.ROW, r, tuple((r, c) for c in range(BOARD_SIZE))))
    for c in range(BOARD_SIZE):
        lines.append((LineKind.COLUMN, c, tuple((r, c) for r in range(BOARD_SIZE))))
    lines.append((LineKind.DIAGONAL, 0, tuple((i, i) for i in range(BOARD_SIZE))))
    lines.append((
        LineKind.DIAGONAL, 1,
        tuple((i, BOARD_SIZE - 1 - i) for i in range(BOARD_SIZE)),
    ))
    return lines


LINES = _lines()


def empty_grid() -> Grid:
    return [[None] * BOARD_SIZE for _ in range(BOARD_SIZE)]


def in_bounds(row, col) -> bool:
    """True only for real ints (not bools) in 0..2."""
    for v in (row, col):
        if isinstance(v, bool) or not isinstance(v, int):
            return False
        if not 0 <= v < BOARD_SIZE:
            return False
    return True


def is_well_formed(grid) -> bool:
    if not isinstance(grid, list) or len(grid) != BOARD_SIZE:
        return False
    for row in grid:
        if not isinstance(row, list) or len(row) != BOARD_SIZE:
            return False
        if any(cell is not None and not isinstance(cell, Mark) for cell in row):
            return False
    return True


def find_winning_line(grid: Grid) -> WinningLine | None:
    for kind, index, cells in LINES:
        (r0, c0), (r1, c1), (r2, c2) = cells
        first = grid[r0][c0]
        if first is not None and first == grid[r1][c1] == grid[r2][c2]:
            return WinningLine(kind, index, cells, first)
    return None


def is_full(grid: Grid) -> bool:
    return all(cell is not None for row in grid for cell in row)


def occupied_count(grid: Grid) -> int:
    return sum(1 for row in grid for cell in row if cell is not None)


def empty_cells(grid: Grid) -> list[tuple[int, int]]:
    return [
        (r, c)
        for r in range(BOARD_SIZE)
        for c in range(BOARD_SIZE)
        if grid[r][c] is None
    ]


def render_grid(grid: Grid) -> str:
    """Human-readable board for logs and debugging."""
    return "\n---------\n".join(
        " | ".join(cell.value if cell else "-" for cell in row) for row in grid
    )


def grid_to_list(grid: Grid) -> list[list[str | None]]:
    return [[cell.value if cell else None for cell in row] for row in grid]
