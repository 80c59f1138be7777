"""
A square on the board, and the one destination that is not a square.

(placed in its own module as multiple other modules need to import it)
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

# The King's Cooking board is always 3x3. Rows run 0-2 from light's home row to dark's home row.
BOARD_DIMENSIONS = (3, 3)


@dataclass(frozen=True)
class Position:
    row: int
    col: int

    def is_within_bounds(self) -> bool:
        num_rows, num_cols = BOARD_DIMENSIONS
        return (0 <= self.row < num_rows) and (0 <= self.col < num_cols)

    def shifted(self, d_row: int, d_col: int) -> Position:
        return Position(self.row + d_row, self.col + d_col)

    def __str__(self) -> str:
        return f"({self.row},{self.col})"


class OffBoard(Enum):
    """
    A piece leaving the board through the opponent's edge.

    Kept as its own variant (instead of `None` or a magic Position) so "left the board" can never be confused
    with a real square.
    """

    EXITED = "off_board"

    def __str__(self) -> str:
        return self.value


EXITED = OffBoard.EXITED

Destination = Position | OffBoard


def all_positions() -> list[Position]:
    """Row-major order: (0,0), (0,1), ... (2,2)"""
    num_rows, num_cols = BOARD_DIMENSIONS
    return [Position(row, col) for row in range(num_rows) for col in range(num_cols)]
