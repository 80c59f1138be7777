"""
Pytest will auto-discover / import this file called 'conftest.py'.
This file defines fixtures/variables required for testing multiple layers.
"""

from typing import Any, Callable, Generator
from unittest.mock import patch

import pytest
from sqlalchemy import StaticPool, create_engine
from sqlalchemy.orm import Session, sessionmaker

from src.chess.board import Board
from src.chess.game import GameState, apply_move, new_game
from src.chess.position import EXITED, Position
from src.chess.selection import PieceSelectionData
from src.core.models import PlayerInfo
from src.core.shared_types import FirstMover, PieceType, SelectionMode, Side
from src.db.schema import Base

# Setup an in-memory SQLite database for testing
DATABASE_URL = "sqlite:///:memory:"
engine = create_engine(
    DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = sessionmaker(autoflush=False, bind=engine)

GAME_ID = "test-game"
ALICE = PlayerInfo("Alice", "alice-id")
BOB = PlayerInfo("Bob", "bob-id")
OPENING_PIECES = (PieceType.ROOK, PieceType.KNIGHT, PieceType.BISHOP)


@pytest.fixture
def db_session_repo() -> Generator[Session, None, None]:
    """Connection to a test database. Tables are removed at teardown to make unit tests of the store independent of each other."""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        Base.metadata.drop_all(bind=engine)
        db.close()


class MemoryStore:
    """Mock the KeyValueStore using a dictionary."""

    def __init__(self) -> None:
        self.items: dict[str, Any] = {}

    def get(self, key: str) -> Any | None:
        return self.items.get(key)

    def set(self, key: str, value: Any) -> bool:
        self.items[key] = value
        return True

    def remove(self, key: str) -> None:
        self.items.pop(key, None)


@pytest.fixture
def memory_store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def opening_selection() -> PieceSelectionData:
    """Both players picked rook, knight, bishop."""
    return PieceSelectionData(SelectionMode.MIRRORED, OPENING_PIECES, OPENING_PIECES)


@pytest.fixture
def opening_state(opening_selection: PieceSelectionData) -> GameState:
    """Light: RNB on row 0, dark: rnb on row 2, light to move."""
    return new_game(
        opening_selection, ALICE, BOB, first_mover=FirstMover.PLAYER1, game_id=GAME_ID
    )


@pytest.fixture
def state_from_notation() -> Callable[..., GameState]:
    """Build a game without history on any board (for testing positions the opening cannot reach quickly)."""

    def _build(notation: str, current_turn: Side = Side.LIGHT) -> GameState:
        return GameState(
            game_id=GAME_ID,
            board=Board.from_notation(notation),
            move_history=[],
            light_player=ALICE,
            dark_player=BOB,
            current_turn=current_turn,
        )

    return _build


@pytest.fixture
def rook_forward(opening_state: GameState) -> GameState:
    """Light rook (0,0) -> (1,0), dark to move"""
    with patch("src.chess.game._now_ms", return_value=1_000):
        return apply_move(opening_state, Position(0, 0), Position(1, 0))


@pytest.fixture
def three_moves(rook_forward: GameState) -> GameState:
    """Dark rook takes the light rook on (1,0), light knight jumps to (2,0)."""
    with patch("src.chess.game._now_ms", return_value=2_000):
        state = apply_move(rook_forward, Position(2, 0), Position(1, 0))
    with patch("src.chess.game._now_ms", return_value=3_000):
        return apply_move(state, Position(0, 1), Position(2, 0))


@pytest.fixture
def knight_ready_to_exit() -> GameState:
    """Light N R B against dark r n b. The light knight stands on (1,2), one jump from leaving the board."""
    selection = PieceSelectionData(
        SelectionMode.INDEPENDENT,
        (PieceType.KNIGHT, PieceType.ROOK, PieceType.BISHOP),
        OPENING_PIECES,
    )
    state = new_game(selection, ALICE, BOB, first_mover=FirstMover.PLAYER1, game_id=GAME_ID)
    with patch("src.chess.game._now_ms", return_value=1_000):
        state = apply_move(state, Position(0, 0), Position(1, 2))
    with patch("src.chess.game._now_ms", return_value=2_000):
        return apply_move(state, Position(2, 0), Position(1, 0))


@pytest.fixture
def knight_exited(knight_ready_to_exit: GameState) -> GameState:
    with patch("src.chess.game._now_ms", return_value=3_000):
        return apply_move(knight_ready_to_exit, Position(1, 2), EXITED)
