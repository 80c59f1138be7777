"""
Geometry/Base movement, capturing and exit rules

Key idea: Use strategy pattern to define the destinations for each piece type.

Whose turn it is does not matter here. That is checked later by the game engine.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Protocol

from src.chess.pieces import Piece
from src.chess.position import BOARD_DIMENSIONS, EXITED, Destination, Position
from src.core.shared_types import PieceType, Side


class Board(Protocol):
    """Just the parts the movement strategies need"""

    def piece(self, square: Position) -> Optional[Piece]: ...
    def pieces(self, side: Optional[Side] = None) -> list[Piece]: ...


Vector = tuple[int, int]

# Light starts on row 0 and marches towards row 2, dark does the opposite.
FORWARD: dict[Side, int] = {Side.LIGHT: 1, Side.DARK: -1}

ORTHOGONALS: list[Vector] = [(1, 0), (-1, 0), (0, 1), (0, -1)]
DIAGONALS: list[Vector] = [(1, 1), (1, -1), (-1, 1), (-1, -1)]
KNIGHT_DELTAS: list[Vector] = [
    (2, 1),
    (2, -1),
    (-2, 1),
    (-2, -1),
    (1, 2),
    (1, -2),
    (-1, 2),
    (-1, -2),
]
MIDDLE_COLUMN = BOARD_DIMENSIONS[1] // 2


class PawnExitRule(Enum):
    """How a pawn leaves the board."""

    # a pawn standing on the opponent's home row may step off the board
    BEYOND_LAST_RANK = "beyond_last_rank"
    # a pawn stepping forward onto the opponent's home row leaves the board instead of landing there
    ON_LAST_RANK = "on_last_rank"


@dataclass(frozen=True)
class Move:
    """An accepted move, as stored in the move history"""

    from_position: Position
    to: Destination
    piece: Piece  # snapshot BEFORE the move
    captured: Optional[Piece] = None
    timestamp: int = 0

    @property
    def side(self) -> Side:
        return self.piece.owner

    @property
    def is_exit(self) -> bool:
        return self.to is EXITED

    def describe(self) -> str:
        text = f"{self.side} {self.piece.type} {self.from_position} -> {self.to}"
        if self.captured:
            text += f" x {self.captured.type}"
        return text


def last_row(side: Side) -> int:
    """The opponent's home row: the last row a piece of `side` can stand on."""
    return BOARD_DIMENSIONS[0] - 1 if side == Side.LIGHT else 0


def is_beyond_opponent_edge(row: int, side: Side) -> bool:
    return row > BOARD_DIMENSIONS[0] - 1 if side == Side.LIGHT else row < 0


# --- MOVEMENT RULES ---
def raycasting_move(
    square: Position, board: Board, directions: list[Vector]
) -> list[Position]:
    """
    Raycasting algorithm
    -----

    Move along each direction until we hit another piece or the edge of the board.
    The first occupied square is only a destination if the opponent stands there (capture).
    """
    player = board.piece(square)
    assert player is not None

    moves: list[Position] = []
    for d_row, d_col in directions:
        target = square.shifted(d_row, d_col)
        while target.is_within_bounds():
            occupant = board.piece(target)
            if occupant is not None:
                if occupant.owner != player.owner:
                    moves.append(target)
                break
            moves.append(target)
            target = target.shifted(d_row, d_col)
    return moves


def single_step_move(
    square: Position, board: Board, deltas: list[Vector]
) -> list[Position]:
    """Raycasting is for sliding pieces. This is the equivalent for pieces that jump straight to a target square"""
    player = board.piece(square)
    assert player is not None

    moves: list[Position] = []
    for d_row, d_col in deltas:
        target = square.shifted(d_row, d_col)
        if not target.is_within_bounds():
            continue
        occupant = board.piece(target)
        if occupant is None or occupant.owner != player.owner:
            moves.append(target)
    return moves


def candidate_pawn_moves(square: Position, board: Board) -> list[Position]:
    """
    A pawn:
    - moves a single square forward, onto an empty square only.
    - takes diagonally forward.
    """
    pawn = board.piece(square)
    assert pawn is not None
    forward = FORWARD[pawn.owner]

    moves: list[Position] = []
    push = square.shifted(forward, 0)
    if push.is_within_bounds() and board.piece(push) is None:
        moves.append(push)

    for d_col in (-1, 1):
        target = square.shifted(forward, d_col)
        occupant = board.piece(target)
        if occupant is not None and occupant.owner != pawn.owner:
            moves.append(target)
    return moves


def candidate_knight_moves(square: Position, board: Board) -> list[Position]:
    """Knights always move such that |delta_row| + |delta_col| = 3, jumping over anything in between"""
    return single_step_move(square, board, KNIGHT_DELTAS)


def candidate_bishop_moves(square: Position, board: Board) -> list[Position]:
    """Bishops move diagonally: |delta_row| = |delta_col|"""
    return raycasting_move(square, board, DIAGONALS)


def candidate_rook_moves(square: Position, board: Board) -> list[Position]:
    """Rooks move either horizontally or vertically"""
    return raycasting_move(square, board, ORTHOGONALS)


def candidate_queen_moves(square: Position, board: Board) -> list[Position]:
    """
    The Queen combines the rook moves (horizontal + vertical movements) and bishop moves (diagonal movement)
    """
    return candidate_rook_moves(square, board) + candidate_bishop_moves(square, board)


# -- STRATEGY PATTERN: MOVEMENT RULES ---
CandidateMovesFn = Callable[[Position, Board], list[Position]]
MOVEMENT_RULES: dict[PieceType, CandidateMovesFn] = {
    PieceType.ROOK: candidate_rook_moves,
    PieceType.KNIGHT: candidate_knight_moves,
    PieceType.BISHOP: candidate_bishop_moves,
    PieceType.QUEEN: candidate_queen_moves,
    PieceType.PAWN: candidate_pawn_moves,
}


# --- EXIT RULES: leaving the board through the opponent's edge ---
def can_rook_exit(square: Position, board: Board) -> bool:
    """Rooks need an empty column all the way to the opponent's edge."""
    rook = board.piece(square)
    assert rook is not None
    forward = FORWARD[rook.owner]
    target = square.shifted(forward, 0)
    while target.is_within_bounds():
        if board.piece(target) is not None:
            return False
        target = target.shifted(forward, 0)
    return True


def can_knight_exit(square: Position, board: Board) -> bool:
    """Knights jump off whenever one of their L-shapes lands beyond the opponent's edge. Nothing can block them."""
    knight = board.piece(square)
    assert knight is not None
    return any(
        is_beyond_opponent_edge(square.row + d_row, knight.owner)
        for d_row, _ in KNIGHT_DELTAS
    )


def can_bishop_exit(square: Position, board: Board) -> bool:
    """
    Bishops leave the board when
    ---

    1. they already stand on the opponent's home row, or
    2. a clear diagonal leaves through the opponent's edge while crossing the middle column.
       Diagonals through a corner do not count: the bishop has to stop on the edge first.
    """
    bishop = board.piece(square)
    assert bishop is not None
    if square.row == last_row(bishop.owner):
        return True

    for d_row, d_col in DIAGONALS:
        target = square.shifted(d_row, d_col)
        blocked = False
        while target.is_within_bounds():
            if board.piece(target) is not None:
                blocked = True
                break
            target = target.shifted(d_row, d_col)

        if blocked or not is_beyond_opponent_edge(target.row, bishop.owner):
            continue

        crossing_column = target.col - d_col
        if crossing_column == MIDDLE_COLUMN:
            return True
    return False


def can_queen_exit(square: Position, board: Board) -> bool:
    """Queen may leave like a rook or like a bishop"""
    return can_rook_exit(square, board) or can_bishop_exit(square, board)


ExitRuleFn = Callable[[Position, Board], bool]
EXIT_RULES: dict[PieceType, ExitRuleFn] = {
    PieceType.ROOK: can_rook_exit,
    PieceType.KNIGHT: can_knight_exit,
    PieceType.BISHOP: can_bishop_exit,
    PieceType.QUEEN: can_queen_exit,
}


def pawn_destinations(
    square: Position,
    board: Board,
    pawn_exit: PawnExitRule = PawnExitRule.BEYOND_LAST_RANK,
) -> list[Destination]:
    """Pawn moves with the exit rule applied on top."""
    pawn = board.piece(square)
    assert pawn is not None
    squares = candidate_pawn_moves(square, board)
    destinations: list[Destination] = list(squares)

    if pawn_exit == PawnExitRule.BEYOND_LAST_RANK:
        if square.row == last_row(pawn.owner):
            destinations.append(EXITED)
        return destinations

    push = square.shifted(FORWARD[pawn.owner], 0)
    if push in squares and push.row == last_row(pawn.owner):
        destinations.remove(push)
        destinations.append(EXITED)
    return destinations


def legal_destinations(
    square: Position,
    board: Board,
    pawn_exit: PawnExitRule = PawnExitRule.BEYOND_LAST_RANK,
) -> list[Destination]:
    """Every square (and possibly the exit) the piece on `square` could go to next. Empty if the square is empty."""
    piece = board.piece(square)
    if piece is None:
        return []

    if piece.type == PieceType.PAWN:
        return pawn_destinations(square, board, pawn_exit)

    destinations: list[Destination] = list(MOVEMENT_RULES[piece.type](square, board))
    if EXIT_RULES[piece.type](square, board):
        destinations.append(EXITED)
    return destinations


def has_any_move(
    board: Board,
    side: Side,
    pawn_exit: PawnExitRule = PawnExitRule.BEYOND_LAST_RANK,
) -> bool:
    return any(
        legal_destinations(piece.position, board, pawn_exit)
        for piece in board.pieces(side)
    )
