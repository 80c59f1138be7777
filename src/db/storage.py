"""
Typed access to the local key-value store.

Every value is validated with pydantic on the way in and on the way out. Anything stored that no longer validates
is treated as corrupted: it gets removed and reads as None.
"""

import logging
from typing import Any, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator

from src.chess.game import DEFAULT_RULES, GameState, Rules
from src.chess.selection import PieceSelectionData, SelectedPieces
from src.core.exceptions import MalformedStateError
from src.core.models import MAX_NAME_LENGTH
from src.core.shared_types import GameMode, SelectionMode, Side
from src.db.repository import KeyValueStore
from src.sync.codec import decode_state, encode_state, state_checksum
from src.sync.payloads import MoveModel

logger = logging.getLogger(__name__)

T = TypeVar("T")

KEY_PREFIX = "kings-cooking:"
MY_NAME = f"{KEY_PREFIX}my-name"
MY_PLAYER_ID = f"{KEY_PREFIX}my-player-id"
PLAYER1_NAME = f"{KEY_PREFIX}player1-name"
PLAYER2_NAME = f"{KEY_PREFIX}player2-name"
GAME_MODE = f"{KEY_PREFIX}game-mode"
PIECE_SELECTION = f"{KEY_PREFIX}piece-selection"
GAME_STATE = f"{KEY_PREFIX}game-state"
GAME_HISTORY = f"{KEY_PREFIX}game-history"
ALL_KEYS = [
    MY_NAME,
    MY_PLAYER_ID,
    PLAYER1_NAME,
    PLAYER2_NAME,
    GAME_MODE,
    PIECE_SELECTION,
    GAME_STATE,
    GAME_HISTORY,
]
DEFAULT_RECENT_COUNT = 10


class NameModel(BaseModel):
    name: str = Field(min_length=1, max_length=MAX_NAME_LENGTH)

    @field_validator("name")
    @classmethod
    def strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Name cannot be blank.")
        return value


class SelectionModel(BaseModel):
    mode: SelectionMode
    player1_pieces: SelectedPieces
    player2_pieces: SelectedPieces
    player1_color: Optional[Side] = None

    @classmethod
    def from_domain(cls, selection: PieceSelectionData) -> "SelectionModel":
        return cls(
            mode=selection.mode,
            player1_pieces=selection.player1_pieces,
            player2_pieces=selection.player2_pieces,
            player1_color=selection.player1_color,
        )

    def to_domain(self) -> PieceSelectionData:
        return PieceSelectionData(
            mode=self.mode,
            player1_pieces=self.player1_pieces,
            player2_pieces=self.player2_pieces,
            player1_color=self.player1_color,
        )


class HistoryEntry(MoveModel):
    """A move as kept in the local history log, with the bookkeeping needed for syncing."""

    model_config = ConfigDict(populate_by_name=True)

    move_number: int = Field(ge=0)
    player: Side
    checksum: str
    synced: bool = False

    @classmethod
    def from_state(cls, state: GameState, synced: bool = False) -> "HistoryEntry":
        """Entry for the last move played in `state`"""
        move = state.last_move
        if move is None:
            raise ValueError("No move to record yet.")
        return cls(
            **MoveModel.from_domain(move).model_dump(),
            move_number=state.turn,
            player=move.side,
            checksum=state_checksum(state),
            synced=synced,
        )


HISTORY_ADAPTER = TypeAdapter(list[HistoryEntry])


class GameStorage:
    """The values King's Cooking keeps between sessions."""

    def __init__(self, store: KeyValueStore, rules: Rules = DEFAULT_RULES) -> None:
        self.store = store
        self.rules = rules

    # --- GENERIC HELPERS ---
    def _get_validated(self, key: str, adapter: TypeAdapter[T]) -> Optional[T]:
        raw = self.store.get(key)
        if raw is None:
            return None
        try:
            return adapter.validate_python(raw)
        except ValidationError as exc:
            logger.error("Invalid stored data for %r, removing it: %s", key, exc)
            self.store.remove(key)
            return None

    def _set_validated(self, key: str, value: Any, adapter: TypeAdapter[Any]) -> bool:
        try:
            validated = adapter.validate_python(value)
        except ValidationError as exc:
            logger.error("Refusing to store invalid data for %r: %s", key, exc)
            return False
        return self.store.set(key, adapter.dump_python(validated, mode="json", by_alias=True))

    def _get_name(self, key: str) -> Optional[str]:
        stored = self._get_validated(key, TypeAdapter(NameModel))
        return stored.name if stored else None

    def _set_name(self, key: str, name: str) -> bool:
        return self._set_validated(key, {"name": name}, TypeAdapter(NameModel))

    # --- PLAYERS ---
    def get_my_name(self) -> Optional[str]:
        return self._get_name(MY_NAME)

    def set_my_name(self, name: str) -> bool:
        return self._set_name(MY_NAME, name)

    def get_my_player_id(self) -> Optional[str]:
        return self._get_validated(MY_PLAYER_ID, TypeAdapter(str))

    def set_my_player_id(self, player_id: str) -> bool:
        return self._set_validated(MY_PLAYER_ID, player_id, TypeAdapter(str))

    def get_player1_name(self) -> Optional[str]:
        return self._get_name(PLAYER1_NAME)

    def set_player1_name(self, name: str) -> bool:
        return self._set_name(PLAYER1_NAME, name)

    def get_player2_name(self) -> Optional[str]:
        return self._get_name(PLAYER2_NAME)

    def set_player2_name(self, name: str) -> bool:
        return self._set_name(PLAYER2_NAME, name)

    # --- GAME SETUP ---
    def get_game_mode(self) -> Optional[GameMode]:
        return self._get_validated(GAME_MODE, TypeAdapter(GameMode))

    def set_game_mode(self, mode: GameMode) -> bool:
        return self._set_validated(GAME_MODE, mode, TypeAdapter(GameMode))

    def get_selection(self) -> Optional[PieceSelectionData]:
        stored = self._get_validated(PIECE_SELECTION, TypeAdapter(SelectionModel))
        return stored.to_domain() if stored else None

    def set_selection(self, selection: PieceSelectionData) -> bool:
        return self._set_validated(
            PIECE_SELECTION, SelectionModel.from_domain(selection), TypeAdapter(SelectionModel)
        )

    # --- GAME STATE ---
    def get_game_state(self) -> Optional[GameState]:
        """Stored as the full-state encoding, so loading runs every check a received game goes through."""
        encoded = self._get_validated(GAME_STATE, TypeAdapter(str))
        if encoded is None:
            return None
        try:
            return decode_state(encoded, self.rules)
        except MalformedStateError as exc:
            logger.error("Stored game is corrupted, removing it: %s", exc)
            self.store.remove(GAME_STATE)
            return None

    def set_game_state(self, state: GameState) -> bool:
        return self.store.set(GAME_STATE, encode_state(state))

    # --- MOVE HISTORY LOG ---
    def get_history(self) -> Optional[list[HistoryEntry]]:
        return self._get_validated(GAME_HISTORY, HISTORY_ADAPTER)

    def set_history(self, entries: list[HistoryEntry]) -> bool:
        return self._set_validated(GAME_HISTORY, entries, HISTORY_ADAPTER)

    def append_history(self, entry: HistoryEntry) -> bool:
        return self.set_history([*(self.get_history() or []), entry])

    def mark_history_synced(self, move_number: int) -> bool:
        history = self.get_history()
        if not history:
            logger.warning("No history to mark as synced")
            return False

        for index, entry in enumerate(history):
            if entry.move_number == move_number:
                history[index] = entry.model_copy(update={"synced": True})
                return self.set_history(history)

        logger.warning("Move %d not found in history", move_number)
        return False

    def recent_history(self, count: int = DEFAULT_RECENT_COUNT) -> list[HistoryEntry]:
        history = self.get_history() or []
        return history[-count:] if count > 0 else []

    def history_entry(self, move_number: int) -> Optional[HistoryEntry]:
        return next(
            (entry for entry in self.get_history() or [] if entry.move_number == move_number),
            None,
        )

    def clear_history(self) -> None:
        self.store.remove(GAME_HISTORY)

    def clear_all(self) -> None:
        for key in ALL_KEYS:
            self.store.remove(key)
