"""
Divergence detection: do two move histories describe the same game?

Nothing here touches the network or changes a game. It only compares and reports.
"""

import logging
from dataclasses import dataclass, replace
from enum import StrEnum
from typing import Optional

from src.chess.game import GameState, board_at
from src.chess.moves import Move
from src.chess.position import OffBoard
from src.chess.selection import PIECES_PER_SIDE
from src.core.exceptions import MalformedStateError
from src.core.shared_types import Side
from src.sync.codec import state_checksum

logger = logging.getLogger(__name__)


class DivergenceKind(StrEnum):
    CHECKSUM = "checksum"
    TURN = "turn"
    HISTORY = "history"
    CORRUPTION = "corruption"


DIVERGENCE_MESSAGES: dict[DivergenceKind, str] = {
    DivergenceKind.CHECKSUM: (
        "Your game has drifted apart from your opponent's.\n\n"
        "This usually means:\n"
        "- the locally saved game was edited\n"
        "- you missed a link from your opponent\n\n"
        "Recovery: ask your opponent for their full game state (recommended)."
    ),
    DivergenceKind.TURN: (
        "Turn number mismatch.\n\n"
        "You probably missed one or more moves from your opponent.\n\n"
        "Recovery: ask your opponent for their full game state (recommended)."
    ),
    DivergenceKind.HISTORY: (
        "The move history is incomplete or corrupted.\n\n"
        "The locally saved game was cleared or edited.\n\n"
        "Recovery: ask your opponent for their full game state (required)."
    ),
    DivergenceKind.CORRUPTION: (
        "The saved game is corrupted.\n\n"
        "Recovery: ask your opponent for their full game state (required)."
    ),
}


def divergence_message(kind: DivergenceKind) -> str:
    return DIVERGENCE_MESSAGES[kind]


@dataclass(frozen=True)
class VerificationResult:
    valid: bool
    error: Optional[str] = None


@dataclass(frozen=True)
class DivergenceReport:
    """
    index: first move (0-based) the histories disagree on. If one history is simply longer, this is the length of
    the shorter one.
    """

    index: int
    diverged: bool
    mine: list[Move]
    theirs: list[Move]

    @property
    def agreed(self) -> list[Move]:
        return self.mine[: self.index]


@dataclass(frozen=True)
class HistoryRow:
    number: int  # 1-based, for display
    mine: Optional[str]
    theirs: Optional[str]
    divergent: bool


def moves_match(mine: Move, theirs: Move) -> bool:
    """Same origin, and either both leave the board or both land on the same square."""
    if mine.from_position != theirs.from_position:
        return False
    if isinstance(mine.to, OffBoard) or isinstance(theirs.to, OffBoard):
        return isinstance(mine.to, OffBoard) and isinstance(theirs.to, OffBoard)
    return mine.to == theirs.to


def find_divergence(mine: list[Move], theirs: list[Move]) -> DivergenceReport:
    shortest = min(len(mine), len(theirs))
    index = next(
        (i for i in range(shortest) if not moves_match(mine[i], theirs[i])),
        shortest,
    )
    diverged = index < shortest or len(mine) != len(theirs)
    if diverged:
        logger.info("Histories diverge at move %d (%d vs %d moves)", index + 1, len(mine), len(theirs))
    return DivergenceReport(index=index, diverged=diverged, mine=list(mine), theirs=list(theirs))


def history_rows(report: DivergenceReport) -> list[HistoryRow]:
    """Both histories side by side, one row per move number."""
    rows: list[HistoryRow] = []
    for i in range(max(len(report.mine), len(report.theirs))):
        mine = report.mine[i] if i < len(report.mine) else None
        theirs = report.theirs[i] if i < len(report.theirs) else None
        rows.append(
            HistoryRow(
                number=i + 1,
                mine=mine.describe() if mine else None,
                theirs=theirs.describe() if theirs else None,
                divergent=report.diverged and i >= report.index,
            )
        )
    return rows


def check_state_consistency(state: GameState) -> VerificationResult:
    """Cheap sanity checks on a local game (the codec does the full replay on anything received)."""
    problems = state.board.inconsistencies()
    if problems:
        return VerificationResult(False, "; ".join(problems))

    expected_turn = Side.LIGHT if state.turn % 2 == 0 else Side.DARK
    if state.current_turn != expected_turn:
        return VerificationResult(
            False,
            f"It should be {expected_turn}'s turn after {state.turn} moves, not {state.current_turn}'s.",
        )

    for side in Side:
        total = (
            len(state.pieces_on_board(side)) + len(state.court(side)) + len(state.captured(side))
        )
        if total > PIECES_PER_SIDE:
            return VerificationResult(
                False, f"Too many {side} pieces: {total} (at most {PIECES_PER_SIDE})."
            )
    return VerificationResult(True)


def verify_state_before_send(
    state: GameState, opponent_last_checksum: Optional[str]
) -> VerificationResult:
    """
    Before sending a move, make sure we built on the position the opponent last sent us.
    Their checksum must match our game either now or just before our own latest move.
    """
    if not opponent_last_checksum or state.turn == 0:
        return VerificationResult(True)

    if not check_state_consistency(state).valid:
        return VerificationResult(False, divergence_message(DivergenceKind.CORRUPTION))

    try:
        previous_board = board_at(state, state.turn - 1)
    except MalformedStateError as exc:
        logger.error("Game %s: cannot rewind own history: %s", state.game_id, exc)
        return VerificationResult(False, divergence_message(DivergenceKind.CORRUPTION))

    known = {state_checksum(state)}
    previous = replace(
        state,
        board=previous_board,
        move_history=state.move_history[:-1],
        current_turn=state.current_turn.opponent,
    )
    known.add(state_checksum(previous))

    if opponent_last_checksum not in known:
        logger.warning("Game %s: opponent checksum %s unknown", state.game_id, opponent_last_checksum)
        return VerificationResult(False, divergence_message(DivergenceKind.CHECKSUM))
    return VerificationResult(True)
