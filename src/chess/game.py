"""
The rules engine is the entrypoint into the domain layer for the service and sync layers.

A GameState is a value: every accepted move produces a new state, the old one is left untouched.
Whose turn it is, the game being over and the move being legal are all checked here.
"""

import logging
import time
from copy import deepcopy
from dataclasses import dataclass, replace
from typing import Optional
from uuid import uuid4

from src.chess.board import Board
from src.chess.moves import Move, PawnExitRule, legal_destinations
from src.chess.pieces import Piece
from src.chess.position import Destination, Position
from src.chess.selection import (
    PieceSelectionData,
    create_board_with_pieces,
    player1_side,
    validate_selection,
)
from src.chess.victory import TerminalCondition, VictoryResult, court_scoring
from src.core.exceptions import IllegalMoveError, MalformedStateError
from src.core.models import PlayerInfo
from src.core.shared_types import FirstMover, Side

logger = logging.getLogger(__name__)

STATE_VERSION = "1.0.0"


@dataclass(frozen=True)
class Rules:
    """The variant rules the engine plays by. Both peers have to agree on these."""

    pawn_exit: PawnExitRule = PawnExitRule.BEYOND_LAST_RANK
    terminal_condition: TerminalCondition = court_scoring


DEFAULT_RULES = Rules()


@dataclass
class GameState:
    game_id: str
    board: Board
    move_history: list[Move]
    light_player: PlayerInfo
    dark_player: PlayerInfo
    current_turn: Side = Side.LIGHT
    version: str = STATE_VERSION

    @property
    def turn(self) -> int:
        """Number of moves played so far"""
        return len(self.move_history)

    @property
    def last_move(self) -> Optional[Move]:
        return self.move_history[-1] if self.move_history else None

    @property
    def last_timestamp(self) -> int:
        return self.move_history[-1].timestamp if self.move_history else 0

    def player(self, side: Side) -> PlayerInfo:
        return self.light_player if side == Side.LIGHT else self.dark_player

    def side_of(self, player_id: str) -> Optional[Side]:
        for side in Side:
            if self.player(side).id == player_id:
                return side
        return None

    # --- derived views (everything follows from the board + the history) ---
    def pieces_on_board(self, side: Side) -> list[Piece]:
        return self.board.pieces(side)

    def court(self, side: Side) -> list[Piece]:
        """Pieces of `side` that left the board through the opponent's edge (they score)."""
        return [move.piece for move in self.move_history if move.is_exit and move.side == side]

    def captured(self, side: Side) -> list[Piece]:
        """Pieces of `side` taken by the opponent"""
        return [
            move.captured
            for move in self.move_history
            if move.captured is not None and move.captured.owner == side
        ]


def _now_ms() -> int:
    return int(time.time() * 1000)


def new_game(
    selection: PieceSelectionData,
    player1: PlayerInfo,
    player2: PlayerInfo,
    first_mover: Optional[FirstMover] = None,
    game_id: Optional[str] = None,
) -> GameState:
    """
    Start a game from a finished piece selection.

    Sides come from `first_mover` when given, otherwise from the color player 1 picked. Light always moves first.
    """
    validate_selection(selection)
    player1_color = None if first_mover is not None else selection.player1_color
    board = create_board_with_pieces(
        selection.player1_pieces,
        selection.player2_pieces,
        first_mover=first_mover,
        player1_color=player1_color,
    )
    p1_side = player1_side(first_mover, player1_color)
    players = {p1_side: player1, p1_side.opponent: player2}

    state = GameState(
        game_id=game_id or str(uuid4()),
        board=board,
        move_history=[],
        light_player=players[Side.LIGHT],
        dark_player=players[Side.DARK],
    )
    logger.debug("New game %s: %s", state.game_id, board.to_notation())
    return state


def check_game_end(state: GameState, rules: Rules = DEFAULT_RULES) -> VictoryResult:
    return rules.terminal_condition(state, rules.pawn_exit)


def get_legal_moves(
    state: GameState, position: Position, rules: Rules = DEFAULT_RULES
) -> list[Destination]:
    """
    Where the piece on `position` may go.
    Empty when there is no piece, the piece is not the turn player's or the game is over. Never raises.
    """
    if not isinstance(position, Position) or not position.is_within_bounds():
        return []

    piece = state.board.piece(position)
    if piece is None or piece.owner != state.current_turn:
        return []

    if check_game_end(state, rules).game_over:
        return []

    return legal_destinations(position, state.board, rules.pawn_exit)


def apply_move(
    state: GameState,
    from_position: Position,
    to: Destination,
    rules: Rules = DEFAULT_RULES,
) -> GameState:
    """
    Attempt to make a move
    -----

    1. there must be a piece of the turn player on `from_position`
    2. the game must still be going
    3. `to` must be one of the legal destinations
    4. captures remove the opponent's piece, exits remove the moving piece
    5. append the move and hand the turn to the opponent
    """
    piece = state.board.piece(from_position)
    if piece is None:
        raise IllegalMoveError(f"No piece on {from_position}.")

    if piece.owner != state.current_turn:
        raise IllegalMoveError(
            f"It is not {piece.owner}'s turn. Waiting for {state.current_turn} to make a move first."
        )

    if check_game_end(state, rules).game_over:
        raise IllegalMoveError("The game is over.")

    if to not in legal_destinations(from_position, state.board, rules.pawn_exit):
        raise IllegalMoveError(f"Move not allowed: {from_position} -> {to}")

    board = deepcopy(state.board)
    board.remove_piece(from_position)
    captured = None
    if isinstance(to, Position):
        captured = board.remove_piece(to)
        board.place_piece(piece.moved_to(to))

    move = Move(
        from_position=from_position,
        to=to,
        piece=piece,
        captured=captured,
        timestamp=max(_now_ms(), state.last_timestamp),
    )
    logger.debug("Game %s, move %d: %s", state.game_id, state.turn + 1, move.describe())

    return replace(
        state,
        board=board,
        move_history=[*state.move_history, move],
        current_turn=state.current_turn.opponent,
    )


# --- HISTORY PLAYBACK ---
def _play(board: Board, move: Move) -> None:
    """Redo a move on the board, no questions asked."""
    board.remove_piece(move.from_position)
    if isinstance(move.to, Position):
        board.remove_piece(move.to)
        board.place_piece(move.piece.moved_to(move.to))


def _undo(board: Board, move: Move) -> None:
    if isinstance(move.to, Position):
        landed = board.piece(move.to)
        if landed is None or landed.id != move.piece.id:
            raise MalformedStateError(
                f"Cannot rewind {move.describe()}: piece {move.piece.id} is not on {move.to}."
            )
        board.remove_piece(move.to)
        if move.captured is not None:
            board.place_piece(move.captured)

    if not board.is_empty(move.from_position):
        raise MalformedStateError(
            f"Cannot rewind {move.describe()}: {move.from_position} is occupied."
        )
    board.place_piece(move.piece)


def rewind_board(state: GameState) -> Board:
    """The board as it was before the first move, reconstructed by undoing the history back to front."""
    board = deepcopy(state.board)
    for move in reversed(state.move_history):
        _undo(board, move)
    return board


def board_at(state: GameState, index: int) -> Board:
    """Board after the first `index` moves (0: starting position, len(history): current board)."""
    if not 0 <= index <= state.turn:
        raise IndexError(f"No position {index} in a game of {state.turn} moves.")
    board = rewind_board(state)
    for move in state.move_history[:index]:
        _play(board, move)
    return board


def replay(
    initial: GameState, history: list[Move], rules: Rules = DEFAULT_RULES
) -> GameState:
    """
    Play `history` again from `initial` through the engine, so every move is checked for legality and turn order.
    The recorded moves (with their timestamps) end up in the returned state.
    """
    state = initial
    for index, move in enumerate(history):
        next_state = apply_move(state, move.from_position, move.to, rules)
        played = next_state.move_history[-1]
        if played.piece != move.piece or played.captured != move.captured:
            raise MalformedStateError(
                f"Move {index + 1} ({move.describe()}) does not match the replayed position."
            )
        state = replace(next_state, move_history=[*state.move_history, move])
    return state


