"""The Game board: which piece stands where. Pure data plus the bookkeeping needed to move pieces around."""

from dataclasses import dataclass
from typing import Optional, Self

from src.chess.pieces import NOTATION_TO_PIECE, Piece
from src.chess.position import BOARD_DIMENSIONS, Position, all_positions
from src.core.shared_types import Side

EMPTY_NOTATION = "/".join([str(BOARD_DIMENSIONS[1])] * BOARD_DIMENSIONS[0])


def is_valid_notation(notation: str) -> bool:
    """Check the board notation: one group per row, each group describing exactly 3 squares."""
    num_rows, num_cols = BOARD_DIMENSIONS
    row_groups = notation.split("/")
    if len(row_groups) != num_rows:
        return False

    for row_group in row_groups:
        col_count = 0
        for character in row_group:
            if character.isdigit():
                col_count += int(character)
            elif character.lower() in NOTATION_TO_PIECE:
                col_count += 1
            else:
                return False

        if col_count != num_cols:
            return False
    return True


@dataclass
class Board:
    position: dict[Position, Optional[Piece]]

    @classmethod
    def empty(cls) -> Self:
        return cls({square: None for square in all_positions()})

    @classmethod
    def from_notation(cls, notation: str) -> Self:
        """Construct a board from a compact notation (same idea as the board part of a FEN string).

        ex. "RNB/3/rnb" means:
        * row 0 holds a light rook, knight and bishop (upper case = light)
        * row 1 is empty (a digit counts consecutive empty squares)
        * row 2 holds the dark rook, knight and bishop (lower case = dark)

        Pieces get fresh ids and a move count of zero.
        """
        if not is_valid_notation(notation):
            raise ValueError(f"Cannot interpret {notation!r} as a board.")

        board = cls.empty()
        for row, row_group in enumerate(notation.split("/")):
            col = 0
            for character in row_group:
                if character.isdigit():
                    col += int(character)
                    continue
                square = Position(row, col)
                board.position[square] = Piece.from_notation(character, square)
                col += 1
        return board

    def to_notation(self) -> str:
        return "/".join(self._row_to_notation(row) for row in range(BOARD_DIMENSIONS[0]))

    def _row_to_notation(self, row: int) -> str:
        characters: list[str] = []
        empty_count = 0
        for col in range(BOARD_DIMENSIONS[1]):
            piece = self.piece(Position(row, col))
            if piece is None:
                empty_count += 1
                continue
            if empty_count > 0:
                characters.append(str(empty_count))
                empty_count = 0
            characters.append(piece.to_notation())

        if empty_count > 0:
            characters.append(str(empty_count))
        return "".join(characters)

    def piece(self, square: Position) -> Optional[Piece]:
        """Off-board squares simply hold nothing."""
        return self.position.get(square)

    def is_empty(self, square: Position) -> bool:
        return self.piece(square) is None

    def pieces(self, side: Optional[Side] = None) -> list[Piece]:
        return [
            piece
            for piece in self.position.values()
            if piece is not None and (side is None or piece.owner == side)
        ]

    def count(self, side: Side) -> int:
        return len(self.pieces(side))

    def place_piece(self, piece: Piece) -> None:
        """Put the piece on the square it says it stands on."""
        self.position[piece.position] = piece

    def remove_piece(self, square: Position) -> Optional[Piece]:
        removed = self.position[square]
        self.position[square] = None
        return removed

    def rows(self) -> list[list[Optional[Piece]]]:
        num_rows, num_cols = BOARD_DIMENSIONS
        return [
            [self.piece(Position(row, col)) for col in range(num_cols)]
            for row in range(num_rows)
        ]

    def signature(self) -> str:
        """Every detail of the position (ids and move counts included) in one string. Used for checksums."""
        cells = [
            f"{piece.id}:{piece.to_notation()}{piece.move_count}" if piece else "-"
            for piece in (self.piece(square) for square in all_positions())
        ]
        return "|".join(cells)

    def inconsistencies(self) -> list[str]:
        """Describe every violation of the board invariants (empty list: board is sound)."""
        problems: list[str] = []
        if set(self.position.keys()) != set(all_positions()):
            problems.append("board does not cover exactly the 3x3 squares")

        seen_ids: set[str] = set()
        for square, piece in self.position.items():
            if piece is None:
                continue
            if piece.position != square:
                problems.append(
                    f"piece {piece.id} on {square} claims to stand on {piece.position}"
                )
            if piece.id in seen_ids:
                problems.append(f"piece id {piece.id} appears more than once")
            seen_ids.add(piece.id)
        return problems
