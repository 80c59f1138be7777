"""Defines the pieces of King's Cooking and the shared pool they are drawn from"""

from dataclasses import dataclass, field, replace
from typing import Self
from uuid import uuid4

from src.chess.position import Position
from src.core.shared_types import PieceType, Side

NOTATION_TO_PIECE: dict[str, PieceType] = {
    "r": PieceType.ROOK,
    "n": PieceType.KNIGHT,
    "b": PieceType.BISHOP,
    "q": PieceType.QUEEN,
    "p": PieceType.PAWN,
}

PIECE_TO_NOTATION: dict[PieceType, str] = {
    value: key for key, value in NOTATION_TO_PIECE.items()
}

# Standard chess set limits. The order of this mapping is the order pieces are offered in (and drawn in when random).
PIECE_POOL: dict[PieceType, int] = {
    PieceType.ROOK: 2,
    PieceType.KNIGHT: 2,
    PieceType.BISHOP: 2,
    PieceType.QUEEN: 1,
    PieceType.PAWN: 8,
}


def new_piece_id() -> str:
    return str(uuid4())


@dataclass(frozen=True)
class Piece:
    type: PieceType
    owner: Side
    position: Position
    move_count: int = 0
    id: str = field(default_factory=new_piece_id)

    @classmethod
    def from_notation(cls, character: str, position: Position) -> Self:
        # upper case: light pieces, lower case: dark pieces
        owner = Side.LIGHT if character.isupper() else Side.DARK
        piece_type = NOTATION_TO_PIECE[character.lower()]
        return cls(piece_type, owner, position)

    def to_notation(self) -> str:
        character = PIECE_TO_NOTATION[self.type]
        return character.upper() if self.owner == Side.LIGHT else character

    def moved_to(self, position: Position) -> Self:
        """Snapshot of this piece after a move onto `position`"""
        return replace(self, position=position, move_count=self.move_count + 1)
