"""Request models: what the surrounding application hands to the game session"""

from typing import Optional

from pydantic import BaseModel, field_validator, model_validator

from src.chess.position import EXITED, Destination, Position
from src.core.exceptions import InvalidRequestError
from src.core.models import normalize_player_name
from src.core.shared_types import FirstMover, GameMode, PieceType, SelectionMode, Side

SquareInput = tuple[int, int]


def _validate_square(value: SquareInput) -> SquareInput:
    if not Position(*value).is_within_bounds():
        raise InvalidRequestError(f"Cannot interpret {list(value)!r} as a square on the 3x3 board.")
    return value


# --- REQUEST MODELS ---
class StartGameRequest(BaseModel):
    player1_name: str
    player2_name: str
    mode: SelectionMode
    player1_pieces: tuple[PieceType, PieceType, PieceType]
    player2_pieces: tuple[PieceType, PieceType, PieceType]
    player1_color: Optional[Side] = None
    first_mover: Optional[FirstMover] = None
    game_mode: GameMode = GameMode.HOTSEAT

    @field_validator("player1_name", "player2_name")
    @classmethod
    def validate_name(cls, value: str) -> str:
        return normalize_player_name(value)

    @model_validator(mode="after")
    def validate_side_assignment(self) -> "StartGameRequest":
        if (self.player1_color is None) == (self.first_mover is None):
            raise InvalidRequestError(
                "Choose either a color for player 1 or who moves first (exactly one)."
            )
        return self


class MoveRequest(BaseModel):
    from_square: SquareInput
    to_square: SquareInput | None = None  # None: the piece leaves the board

    @field_validator("from_square")
    @classmethod
    def validate_from_square(cls, value: SquareInput) -> SquareInput:
        return _validate_square(value)

    @field_validator("to_square")
    @classmethod
    def validate_to_square(cls, value: Optional[SquareInput]) -> Optional[SquareInput]:
        return None if value is None else _validate_square(value)

    @property
    def origin(self) -> Position:
        return Position(*self.from_square)

    @property
    def destination(self) -> Destination:
        return EXITED if self.to_square is None else Position(*self.to_square)
