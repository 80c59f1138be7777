"""
Pre-game piece selection.

Each player brings 3 pieces drawn from a standard chess set (no king). The pieces are lined up on the home row in the
order they were picked.
"""

import logging
import math
from dataclasses import dataclass
from typing import Optional

from src.chess.board import Board
from src.chess.pieces import PIECE_POOL, Piece
from src.chess.position import Position
from src.core.exceptions import SelectionConstraintError
from src.core.hashing import to_int32, utf16_code_units
from src.core.shared_types import FirstMover, PieceType, SelectionMode, Side

logger = logging.getLogger(__name__)

PIECES_PER_SIDE = 3
HOME_ROW: dict[Side, int] = {Side.LIGHT: 0, Side.DARK: 2}

SelectedPieces = tuple[PieceType, PieceType, PieceType]

# hash/PRNG constants. These must not change: the same seed has to give the same pieces on both browsers.
DJB2_START = 5381
LCG_MULTIPLIER = 1103515245
LCG_INCREMENT = 12345
LCG_MASK = 0x7FFFFFFF


@dataclass(frozen=True)
class PieceSelectionData:
    mode: SelectionMode
    player1_pieces: SelectedPieces
    player2_pieces: SelectedPieces
    player1_color: Optional[Side] = None


def get_available_pieces(selected: list[PieceType] | tuple[PieceType, ...]) -> list[PieceType]:
    """Piece types that have not hit their pool limit yet, in pool order"""
    return [
        piece_type
        for piece_type, limit in PIECE_POOL.items()
        if selected.count(piece_type) < limit
    ]


def seed_hash(seed: str) -> int:
    """djb2 over the UTF-16 code units of the seed, kept to a signed 32-bit integer."""
    hash_value = DJB2_START
    for code in utf16_code_units(seed):
        hash_value = to_int32(to_int32(hash_value * 33) ^ code)
    return hash_value


class SeededRandom:
    """
    Linear congruential generator.

    The multiplication is done in double precision (53-bit mantissa) on purpose: that is what the browser build does,
    and both peers must draw the same numbers.
    """

    def __init__(self, seed: str):
        self.state = seed_hash(seed)

    def next(self) -> float:
        product = float(self.state) * float(LCG_MULTIPLIER) + float(LCG_INCREMENT)
        self.state = (int(product) % 2**32) & LCG_MASK
        return self.state / LCG_MASK


def generate_random_pieces(seed: str) -> SelectedPieces:
    """Same seed -> same 3 pieces, always."""
    rng = SeededRandom(seed)
    selected: list[PieceType] = []
    for _ in range(PIECES_PER_SIDE):
        available = get_available_pieces(selected)
        index = min(math.floor(rng.next() * len(available)), len(available) - 1)
        selected.append(available[index])
    logger.debug("Random pieces for seed %r: %s", seed, selected)
    return (selected[0], selected[1], selected[2])


def validate_pieces(pieces: tuple[PieceType, ...]) -> None:
    if len(pieces) != PIECES_PER_SIDE:
        raise SelectionConstraintError(
            f"Each side needs exactly {PIECES_PER_SIDE} pieces, got {len(pieces)}."
        )
    for piece_type in pieces:
        if not isinstance(piece_type, PieceType):
            raise SelectionConstraintError(f"Unknown piece type: {piece_type!r}")
        if pieces.count(piece_type) > PIECE_POOL[piece_type]:
            raise SelectionConstraintError(
                f"Too many {piece_type}s: at most {PIECE_POOL[piece_type]} allowed."
            )


def validate_selection(data: PieceSelectionData) -> None:
    """Reject the selection before any board gets built."""
    validate_pieces(tuple(data.player1_pieces))
    validate_pieces(tuple(data.player2_pieces))

    if data.mode in (SelectionMode.MIRRORED, SelectionMode.RANDOM) and tuple(
        data.player1_pieces
    ) != tuple(data.player2_pieces):
        raise SelectionConstraintError(
            f"In {data.mode} mode both players must have the same pieces."
        )


def player1_side(
    first_mover: Optional[FirstMover] = None, player1_color: Optional[Side] = None
) -> Side:
    """Either the first mover or player 1's color decides who plays light. Exactly one of them has to be given."""
    if (first_mover is None) == (player1_color is None):
        raise SelectionConstraintError(
            "Pass either a first mover or a color for player 1 (exactly one)."
        )
    if first_mover is not None:
        return Side.LIGHT if first_mover == FirstMover.PLAYER1 else Side.DARK
    assert player1_color is not None
    return player1_color


def create_board_with_pieces(
    player1_pieces: SelectedPieces,
    player2_pieces: SelectedPieces,
    first_mover: Optional[FirstMover] = None,
    player1_color: Optional[Side] = None,
) -> Board:
    """Light lines up on row 0, dark on row 2. Column = index in the tuple."""
    validate_pieces(tuple(player1_pieces))
    validate_pieces(tuple(player2_pieces))

    p1_side = player1_side(first_mover, player1_color)
    pieces_by_side = {
        p1_side: player1_pieces,
        p1_side.opponent: player2_pieces,
    }

    board = Board.empty()
    for side, pieces in pieces_by_side.items():
        for col, piece_type in enumerate(pieces):
            board.place_piece(Piece(piece_type, side, Position(HOME_ROW[side], col)))
    return board


def setup_problems(board: Board) -> list[str]:
    """Everything that keeps `board` from being a board `create_board_with_pieces` could have set up."""
    problems = []
    for side in Side:
        pieces = board.pieces(side)
        total = board.count(side)
        if total > PIECES_PER_SIDE:
            problems.append(f"{side} starts with {total} pieces, at most {PIECES_PER_SIDE} allowed")
        for piece_type, limit in PIECE_POOL.items():
            count = sum(piece.type == piece_type for piece in pieces)
            if count > limit:
                problems.append(f"{side} starts with {count} {piece_type}s, at most {limit} allowed")
        for piece in pieces:
            if piece.position.row != HOME_ROW[side]:
                problems.append(f"{side} {piece.type} starts on {piece.position}, off its home row")
            if piece.move_count != 0:
                problems.append(f"{side} {piece.type} starts having moved {piece.move_count} times")
    return problems
