"""Unit tests for src/chess/position.py"""

import pytest

from src.chess.position import EXITED, OffBoard, Position, all_positions


@pytest.mark.parametrize(
    "row, col, inside",
    [
        (0, 0, True),
        (2, 2, True),
        (1, 2, True),
        (3, 0, False),
        (0, 3, False),
        (-1, 1, False),
        (1, -1, False),
    ],
)
def test_is_within_bounds(row: int, col: int, inside: bool) -> None:
    assert Position(row, col).is_within_bounds() is inside


def test_shifted_square() -> None:
    assert Position(1, 1).shifted(1, -1) == Position(2, 0)
    assert Position(0, 0).shifted(-1, 0) == Position(-1, 0)


def test_all_positions_in_row_major_order() -> None:
    squares = all_positions()
    assert len(squares) == 9
    assert squares[0] == Position(0, 0)
    assert squares[1] == Position(0, 1)
    assert squares[-1] == Position(2, 2)


def test_exit_is_never_a_square() -> None:
    """Leaving the board must not be confused with a move to (0,0)"""
    assert EXITED != Position(0, 0)
    assert isinstance(EXITED, OffBoard)
    assert not isinstance(EXITED, Position)
    assert str(EXITED) == "off_board"


def test_position_display() -> None:
    assert str(Position(2, 1)) == "(2,1)"
