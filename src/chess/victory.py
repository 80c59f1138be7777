"""
End of game detection.

A terminal condition is a plain function of the game state. The engine picks one through `Rules.terminal_condition`
so the exact win rule can be swapped without touching the engine.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable, Optional

from src.chess.moves import PawnExitRule, has_any_move
from src.core.shared_types import Side

if TYPE_CHECKING:
    from src.chess.game import GameState


@dataclass(frozen=True)
class VictoryResult:
    game_over: bool
    winner: Optional[Side] = None  # None + game_over: draw
    score: dict[Side, int] = field(default_factory=dict)
    reason: str = ""

    @property
    def is_draw(self) -> bool:
        return self.game_over and self.winner is None


NOT_OVER = VictoryResult(game_over=False)

TerminalCondition = Callable[["GameState", PawnExitRule], VictoryResult]


def _decide(score: dict[Side, int], reason: str) -> VictoryResult:
    """Highest score wins, equal scores draw."""
    light, dark = score[Side.LIGHT], score[Side.DARK]
    if light == dark:
        return VictoryResult(True, None, score, f"Draw {light}-{dark}: {reason}")
    winner = Side.LIGHT if light > dark else Side.DARK
    return VictoryResult(
        True, winner, score, f"{winner} wins {max(light, dark)}-{min(light, dark)}: {reason}"
    )


def court_scoring(state: GameState, pawn_exit: PawnExitRule) -> VictoryResult:
    """
    Pieces that leave the board through the opponent's edge score a point.
    ---

    1. a side without pieces on the board ends the game: the survivor's remaining pieces score as well.
    2. the side to move has nothing to play: the game ends on the points scored so far.
    """
    on_board = {side: len(state.pieces_on_board(side)) for side in Side}
    court = {side: len(state.court(side)) for side in Side}

    eliminated = [side for side in Side if on_board[side] == 0]
    if eliminated:
        score = {side: court[side] + on_board[side] for side in Side}
        reason = (
            "all pieces have left the board"
            if len(eliminated) == 2
            else f"{eliminated[0]} has no pieces left on the board"
        )
        return _decide(score, reason)

    if not has_any_move(state.board, state.current_turn, pawn_exit):
        return _decide(court, f"{state.current_turn} has no legal move")

    return NOT_OVER


def first_to_exit_all(state: GameState, pawn_exit: PawnExitRule) -> VictoryResult:
    """The first side to get every surviving piece off the board wins. Losing every piece to captures loses."""
    court = {side: len(state.court(side)) for side in Side}

    # the side that just moved is checked first: its move is what ended the game
    for side in (state.current_turn.opponent, state.current_turn):
        if state.pieces_on_board(side):
            continue
        if court[side] > 0:
            return VictoryResult(True, side, court, f"{side} got all its pieces off the board")
        return VictoryResult(
            True, side.opponent, court, f"{side} lost all its pieces to captures"
        )

    if not has_any_move(state.board, state.current_turn, pawn_exit):
        return _decide(court, f"{state.current_turn} has no legal move")

    return NOT_OVER


TERMINAL_CONDITIONS: dict[str, TerminalCondition] = {
    "court_scoring": court_scoring,
    "first_to_exit_all": first_to_exit_all,
}
