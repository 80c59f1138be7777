"""
What to do once two histories diverged. The four actions offered to the players:

1. send my state: put my full game on the clipboard for the opponent to adopt
2. accept their state: replace my game with the full game the opponent sent
3. review: look at both histories side by side
4. cancel: leave everything as it is
"""

import logging
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Optional, Protocol

from src.chess.game import DEFAULT_RULES, GameState, Rules
from src.chess.moves import Move
from src.core.exceptions import ClipboardError, MalformedStateError
from src.sync.codec import decode_full_state, encode_state
from src.sync.divergence import DivergenceReport, HistoryRow, find_divergence, history_rows
from src.sync.urls import build_share_url

logger = logging.getLogger(__name__)


class ResolutionAction(StrEnum):
    SEND_MY_STATE = "send_my_state"
    ACCEPT_THEIR_STATE = "accept_their_state"
    REVIEW = "review"
    CANCEL = "cancel"


class Clipboard(Protocol):
    """Whatever the surrounding application uses to hand text to the player."""

    def write_text(self, text: str) -> None: ...


@dataclass(frozen=True)
class ResolutionOutcome:
    action: ResolutionAction
    success: bool
    message: str
    state: Optional[GameState] = None  # the game to continue with
    url: Optional[str] = None
    rows: list[HistoryRow] = field(default_factory=list)


class DivergenceResolver:
    def __init__(
        self,
        state: GameState,
        their_history: list[Move],
        clipboard: Optional[Clipboard] = None,
        share_base_url: str = "",
        rules: Rules = DEFAULT_RULES,
        player_name: Optional[str] = None,
    ) -> None:
        self.state = state
        self.their_history = their_history
        self.clipboard = clipboard
        self.share_base_url = share_base_url
        self.rules = rules
        self.player_name = player_name

    @property
    def report(self) -> DivergenceReport:
        return find_divergence(self.state.move_history, self.their_history)

    def send_my_state(self) -> ResolutionOutcome:
        """A failing clipboard comes back as an unsuccessful outcome. The game is never touched."""
        url = build_share_url(self.share_base_url, encode_state(self.state, self.player_name))
        if self.clipboard is None:
            return ResolutionOutcome(
                ResolutionAction.SEND_MY_STATE,
                False,
                "No clipboard available. Copy the link manually.",
                state=self.state,
                url=url,
            )
        try:
            self.clipboard.write_text(url)
        except (ClipboardError, OSError) as exc:
            logger.error("Clipboard write failed: %s", exc)
            return ResolutionOutcome(
                ResolutionAction.SEND_MY_STATE,
                False,
                "Failed to copy the link. Please try again.",
                state=self.state,
                url=url,
            )
        return ResolutionOutcome(
            ResolutionAction.SEND_MY_STATE,
            True,
            "Full game link copied! Send it to your opponent.",
            state=self.state,
            url=url,
        )

    def accept_their_state(self, encoded: str) -> ResolutionOutcome:
        try:
            transfer = decode_full_state(encoded, self.rules)
        except MalformedStateError as exc:
            logger.warning("Refused opponent state: %s", exc)
            return ResolutionOutcome(
                ResolutionAction.ACCEPT_THEIR_STATE,
                False,
                f"Cannot use the opponent's game: {exc}",
                state=self.state,
            )

        if transfer.state.game_id != self.state.game_id:
            return ResolutionOutcome(
                ResolutionAction.ACCEPT_THEIR_STATE,
                False,
                "That link belongs to a different game.",
                state=self.state,
            )
        return ResolutionOutcome(
            ResolutionAction.ACCEPT_THEIR_STATE,
            True,
            f"Continuing from the opponent's game at move {transfer.state.turn}.",
            state=transfer.state,
        )

    def review(self) -> ResolutionOutcome:
        report = self.report
        return ResolutionOutcome(
            ResolutionAction.REVIEW,
            True,
            f"Diverged at move {report.index + 1}." if report.diverged else "Histories agree.",
            state=self.state,
            rows=history_rows(report),
        )

    def cancel(self) -> ResolutionOutcome:
        return ResolutionOutcome(ResolutionAction.CANCEL, True, "Nothing changed.", state=self.state)

    def resolve(self, action: ResolutionAction, encoded: Optional[str] = None) -> ResolutionOutcome:
        if action == ResolutionAction.SEND_MY_STATE:
            return self.send_my_state()
        if action == ResolutionAction.ACCEPT_THEIR_STATE:
            if encoded is None:
                return ResolutionOutcome(
                    action, False, "Ask your opponent to send their full game link.", state=self.state
                )
            return self.accept_their_state(encoded)
        if action == ResolutionAction.REVIEW:
            return self.review()
        if action == ResolutionAction.CANCEL:
            return self.cancel()
        raise ValueError(f"Unknown resolution action: {action!r}")
