"""
Wire models: what actually travels inside the URL fragment.

The pydantic models validate the shape of the data. Cross-field rules (the history matching the board etc.)
are checked by the codec once the payload has been turned back into domain objects.
"""

from typing import Annotated, Literal, Optional, Self, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator, model_validator

from src.chess.board import Board
from src.chess.game import STATE_VERSION, GameState
from src.chess.moves import Move
from src.chess.pieces import Piece
from src.chess.position import BOARD_DIMENSIONS, EXITED, Destination, OffBoard, Position
from src.core.exceptions import InvalidRequestError
from src.core.models import PlayerInfo, normalize_player_name
from src.core.shared_types import PieceType, Side

WirePosition = tuple[int, int]
OFF_BOARD = EXITED.value


def _check_position(value: WirePosition) -> WirePosition:
    if not Position(*value).is_within_bounds():
        raise ValueError(f"Position {list(value)} is outside the 3x3 board.")
    return value


def _check_name(value: str) -> str:
    try:
        return normalize_player_name(value)
    except InvalidRequestError as exc:
        raise ValueError(str(exc)) from exc


class PieceModel(BaseModel):
    id: str = Field(min_length=1)
    type: PieceType
    owner: Side
    position: WirePosition
    move_count: int = Field(ge=0)

    @field_validator("position")
    @classmethod
    def validate_position(cls, value: WirePosition) -> WirePosition:
        return _check_position(value)

    @classmethod
    def from_domain(cls, piece: Piece) -> Self:
        return cls(
            id=piece.id,
            type=piece.type,
            owner=piece.owner,
            position=(piece.position.row, piece.position.col),
            move_count=piece.move_count,
        )

    def to_domain(self) -> Piece:
        return Piece(
            type=self.type,
            owner=self.owner,
            position=Position(*self.position),
            move_count=self.move_count,
            id=self.id,
        )


class MoveModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    from_position: WirePosition = Field(alias="from")
    to: Union[WirePosition, Literal["off_board"]]
    piece: PieceModel
    captured: Optional[PieceModel] = None
    timestamp: int = Field(ge=0)

    @field_validator("from_position")
    @classmethod
    def validate_from(cls, value: WirePosition) -> WirePosition:
        return _check_position(value)

    @field_validator("to")
    @classmethod
    def validate_to(cls, value: Union[WirePosition, str]) -> Union[WirePosition, str]:
        if value == OFF_BOARD:
            return value
        return _check_position(value)  # type: ignore[arg-type]

    @model_validator(mode="after")
    def validate_snapshots(self) -> Self:
        """The piece snapshot is taken before the move, the captured one sits on the destination."""
        if self.piece.position != self.from_position:
            raise ValueError(
                f"Moving piece {self.piece.id} is recorded on {list(self.piece.position)}, not on {list(self.from_position)}."
            )
        if self.captured is None:
            return self
        if self.to == OFF_BOARD:
            raise ValueError("A piece leaving the board cannot capture.")
        if self.captured.position != self.to or self.captured.owner == self.piece.owner:
            raise ValueError(f"Captured piece {self.captured.id} does not fit the move.")
        return self

    @classmethod
    def from_domain(cls, move: Move) -> Self:
        return cls(
            from_position=(move.from_position.row, move.from_position.col),
            to=OFF_BOARD if isinstance(move.to, OffBoard) else (move.to.row, move.to.col),
            piece=PieceModel.from_domain(move.piece),
            captured=PieceModel.from_domain(move.captured) if move.captured else None,
            timestamp=move.timestamp,
        )

    def to_domain(self) -> Move:
        to: Destination = EXITED if self.to == OFF_BOARD else Position(*self.to)  # type: ignore[misc]
        return Move(
            from_position=Position(*self.from_position),
            to=to,
            piece=self.piece.to_domain(),
            captured=self.captured.to_domain() if self.captured else None,
            timestamp=self.timestamp,
        )


class PlayerModel(BaseModel):
    id: str = Field(min_length=1)
    name: str

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: str) -> str:
        return _check_name(value)

    @classmethod
    def from_domain(cls, player: PlayerInfo) -> Self:
        return cls(id=player.id, name=player.name)

    def to_domain(self) -> PlayerInfo:
        return PlayerInfo(name=self.name, id=self.id)


class GameStateModel(BaseModel):
    version: Literal["1.0.0"] = STATE_VERSION
    game_id: str = Field(min_length=1)
    board: list[list[Optional[PieceModel]]]
    move_history: list[MoveModel]
    light_player: PlayerModel
    dark_player: PlayerModel
    current_turn: Side

    @field_validator("board")
    @classmethod
    def validate_board_shape(
        cls, value: list[list[Optional[PieceModel]]]
    ) -> list[list[Optional[PieceModel]]]:
        num_rows, num_cols = BOARD_DIMENSIONS
        if len(value) != num_rows or any(len(row) != num_cols for row in value):
            raise ValueError(f"The board must be exactly {num_rows}x{num_cols}.")

        for row, cells in enumerate(value):
            for col, piece in enumerate(cells):
                if piece is not None and piece.position != (row, col):
                    raise ValueError(
                        f"Piece {piece.id} in cell {[row, col]} claims position {list(piece.position)}."
                    )
        return value

    @classmethod
    def from_domain(cls, state: GameState) -> Self:
        return cls(
            version=state.version,
            game_id=state.game_id,
            board=[
                [PieceModel.from_domain(piece) if piece else None for piece in row]
                for row in state.board.rows()
            ],
            move_history=[MoveModel.from_domain(move) for move in state.move_history],
            light_player=PlayerModel.from_domain(state.light_player),
            dark_player=PlayerModel.from_domain(state.dark_player),
            current_turn=state.current_turn,
        )

    def to_domain(self) -> GameState:
        board = Board.empty()
        for row in self.board:
            for cell in row:
                if cell is not None:
                    board.place_piece(cell.to_domain())
        return GameState(
            game_id=self.game_id,
            board=board,
            move_history=[move.to_domain() for move in self.move_history],
            light_player=self.light_player.to_domain(),
            dark_player=self.dark_player.to_domain(),
            current_turn=self.current_turn,
            version=self.version,
        )


# --- TRANSFER PAYLOADS ---
class _Payload(BaseModel):
    player_name: Optional[str] = None

    @field_validator("player_name")
    @classmethod
    def validate_player_name(cls, value: Optional[str]) -> Optional[str]:
        return None if value is None else _check_name(value)


class FullStatePayload(_Payload):
    """Everything: the peer can rebuild the game from this alone."""

    type: Literal["full_state"] = "full_state"
    game_state: GameStateModel
    checksum: str = Field(min_length=1)


class DeltaPayload(_Payload):
    """Routine turn exchange: just the last move plus enough to check both sides still agree."""

    type: Literal["delta"] = "delta"
    game_id: str = Field(min_length=1)
    turn: int = Field(ge=1)  # number of moves played once this move is applied
    move: MoveModel
    checksum: str = Field(min_length=1)


class ResyncRequestPayload(_Payload):
    """Sent when the peer noticed the games drifted apart. Carries the sender's history for comparison."""

    type: Literal["resync_request"] = "resync_request"
    game_id: str = Field(min_length=1)
    turn: int = Field(ge=0)
    move_history: list[MoveModel]
    checksum: str = Field(min_length=1)
    message: Optional[str] = None


Payload = Annotated[
    Union[FullStatePayload, DeltaPayload, ResyncRequestPayload],
    Field(discriminator="type"),
]
PAYLOAD_ADAPTER: TypeAdapter[Payload] = TypeAdapter(Payload)
