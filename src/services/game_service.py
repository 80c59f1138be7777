"""Orchestration between the surrounding application, the rules engine, the sync layer and local persistence."""

import logging
from dataclasses import dataclass, replace
from typing import Optional

from src.api.models import MoveRequest, StartGameRequest
from src.chess.game import (
    DEFAULT_RULES,
    GameState,
    Rules,
    apply_move,
    board_at,
    check_game_end,
    get_legal_moves,
    new_game,
)
from src.chess.moves import Move
from src.chess.position import Destination, Position
from src.chess.selection import PieceSelectionData
from src.chess.victory import VictoryResult
from src.core.config import Settings, get_settings
from src.core.exceptions import (
    ClipboardError,
    IllegalMoveError,
    MalformedStateError,
    StateDivergenceError,
)
from src.core.models import PlayerInfo
from src.core.shared_types import GameMode
from src.db.storage import GameStorage, HistoryEntry
from src.sync.codec import (
    DeltaTransfer,
    FullStateTransfer,
    apply_delta,
    decode_payload,
    encode_delta,
    encode_state,
)
from src.sync.divergence import (
    DivergenceKind,
    DivergenceReport,
    divergence_message,
    find_divergence,
    verify_state_before_send,
)
from src.sync.resolution import Clipboard, DivergenceResolver, ResolutionAction, ResolutionOutcome
from src.sync.urls import build_share_url, extract_opponent_name, fragment_from_url

logger = logging.getLogger(__name__)


# --- RESULTS (failures come back as values) ---
@dataclass(frozen=True)
class MoveResult:
    success: bool
    state: Optional[GameState]
    error: Optional[str] = None
    victory: Optional[VictoryResult] = None


@dataclass(frozen=True)
class ShareResult:
    success: bool
    encoded: Optional[str] = None
    url: Optional[str] = None
    copied: bool = False
    error: Optional[str] = None


@dataclass(frozen=True)
class ReceiveResult:
    success: bool
    kind: Optional[str] = None  # full_state / delta / resync_request
    state: Optional[GameState] = None
    error: Optional[str] = None
    divergence: Optional[DivergenceKind] = None
    report: Optional[DivergenceReport] = None
    opponent_name: Optional[str] = None
    victory: Optional[VictoryResult] = None


class GameSession:
    """One local game: what a single browser tab owns."""

    def __init__(
        self,
        storage: GameStorage,
        clipboard: Optional[Clipboard] = None,
        rules: Rules = DEFAULT_RULES,
        settings: Optional[Settings] = None,
    ) -> None:
        self.storage = storage
        self.clipboard = clipboard
        self.rules = rules
        self.settings = settings or get_settings()
        self.state: Optional[GameState] = None
        self.opponent_checksum: Optional[str] = None
        self.their_history: list[Move] = []

    # -- Application facing logic ---
    def start_game(self, request: StartGameRequest) -> GameState:
        """Both players are known and the pieces are picked: set up the board and persist everything."""
        selection = PieceSelectionData(
            mode=request.mode,
            player1_pieces=request.player1_pieces,
            player2_pieces=request.player2_pieces,
            player1_color=request.player1_color,
        )
        my_id = self.storage.get_my_player_id()
        player1 = PlayerInfo(request.player1_name, my_id) if my_id else PlayerInfo(request.player1_name)
        player2 = PlayerInfo(request.player2_name)

        state = new_game(selection, player1, player2, first_mover=request.first_mover)

        self.storage.set_game_mode(request.game_mode)
        self.storage.set_selection(selection)
        self.storage.set_player1_name(player1.name)
        self.storage.set_player2_name(player2.name)
        if request.game_mode == GameMode.URL:
            self.storage.set_my_name(player1.name)
            self.storage.set_my_player_id(player1.id)
        self.storage.clear_history()

        self.opponent_checksum = None
        self.their_history = []
        self._commit(state)
        logger.info("Started game %s (%s vs %s)", state.game_id, player1.name, player2.name)
        return state

    def resume(self) -> Optional[GameState]:
        """Pick up the game saved by an earlier session, if there is a valid one."""
        self.state = self.storage.get_game_state()
        return self.state

    def reset(self) -> None:
        """New game: forget the current one and everything stored for it, names and player id included."""
        self.storage.clear_all()
        self.state = None
        self.opponent_checksum = None
        self.their_history = []
        logger.info("Cleared all stored game data")

    def saved_names(self) -> tuple[Optional[str], Optional[str]]:
        """Names of player 1 and player 2 from the last game, to prefill the name form."""
        return self.storage.get_player1_name(), self.storage.get_player2_name()

    def legal_moves(self, position: Position) -> list[Destination]:
        if self.state is None:
            return []
        return get_legal_moves(self.state, position, self.rules)

    def make_move(self, request: MoveRequest) -> MoveResult:
        if self.state is None:
            return MoveResult(False, None, "No game in progress.")

        try:
            new_state = apply_move(self.state, request.origin, request.destination, self.rules)
        except IllegalMoveError as exc:
            logger.warning("Rejected move in game %s: %s", self.state.game_id, exc)
            return MoveResult(False, self.state, str(exc))

        # in hot-seat mode there is nobody to sync with
        synced = self.storage.get_game_mode() != GameMode.URL
        self._commit(new_state)
        self.storage.append_history(HistoryEntry.from_state(new_state, synced=synced))
        return MoveResult(True, new_state, victory=check_game_end(new_state, self.rules))

    def share(self, full: bool = True) -> ShareResult:
        """Encode the game (or just the last move) for the opponent and put the link on the clipboard."""
        if self.state is None:
            return ShareResult(False, error="No game in progress.")

        if full:
            encoded = encode_state(self.state, self.storage.get_my_name())
        else:
            verification = verify_state_before_send(self.state, self.opponent_checksum)
            if not verification.valid:
                return ShareResult(False, error=verification.error)
            try:
                encoded = encode_delta(self.state, self.storage.get_my_name())
            except ValueError as exc:
                return ShareResult(False, error=str(exc))

        url = build_share_url(self.settings.share_base_url, encoded)
        return ShareResult(True, encoded=encoded, url=url, copied=self._copy(url))

    def receive(self, fragment: str) -> ReceiveResult:
        """Whatever the opponent sent: a full game, a single move or a resync request."""
        try:
            transfer = decode_payload(fragment_from_url(fragment), self.rules)
        except MalformedStateError as exc:
            return ReceiveResult(
                False,
                error=f"{divergence_message(DivergenceKind.CORRUPTION)}\n\n{exc}",
                divergence=DivergenceKind.CORRUPTION,
            )

        if isinstance(transfer, FullStateTransfer):
            return self._receive_full_state(transfer)
        if isinstance(transfer, DeltaTransfer):
            return self._receive_delta(transfer)

        self.their_history = transfer.move_history
        report = find_divergence(self._my_history(), transfer.move_history)
        return ReceiveResult(
            True,
            kind="resync_request",
            state=self.state,
            error=transfer.message,
            divergence=DivergenceKind.HISTORY if report.diverged else None,
            report=report,
        )

    def resolve(
        self, action: ResolutionAction, encoded: Optional[str] = None
    ) -> ResolutionOutcome:
        if self.state is None:
            return ResolutionOutcome(action, False, "No game in progress.")

        resolver = DivergenceResolver(
            self.state,
            self.their_history,
            clipboard=self.clipboard,
            share_base_url=self.settings.share_base_url,
            rules=self.rules,
            player_name=self.storage.get_my_name(),
        )
        outcome = resolver.resolve(
            action, fragment_from_url(encoded) if encoded is not None else None
        )
        if outcome.success and action == ResolutionAction.ACCEPT_THEIR_STATE and outcome.state:
            self._adopt(outcome.state)
        return outcome

    # -- Internal helpers --
    def _receive_full_state(self, transfer: FullStateTransfer) -> ReceiveResult:
        incoming = transfer.state
        mine = self._my_history() if self.state and self.state.game_id == incoming.game_id else []
        report = find_divergence(mine, incoming.move_history)

        # their game either continues ours or we have nothing to lose
        if report.index == len(mine):
            self._adopt(incoming)
            self.opponent_checksum = transfer.checksum
            return ReceiveResult(
                True,
                kind="full_state",
                state=incoming,
                opponent_name=self._opponent_name(incoming) or transfer.player_name,
                victory=check_game_end(incoming, self.rules),
            )

        self.their_history = incoming.move_history
        return ReceiveResult(
            False,
            kind="full_state",
            state=self.state,
            error=divergence_message(DivergenceKind.HISTORY),
            divergence=DivergenceKind.HISTORY,
            report=report,
        )

    def _receive_delta(self, delta: DeltaTransfer) -> ReceiveResult:
        if self.state is None:
            return ReceiveResult(
                False, kind="delta", error="No local game: ask for the full game link."
            )

        try:
            new_state = apply_delta(self.state, delta, self.rules)
        except StateDivergenceError as exc:
            kind = (
                DivergenceKind.TURN
                if delta.game_id == self.state.game_id and delta.turn != self.state.turn + 1
                else DivergenceKind.CHECKSUM
            )
            logger.warning("Game %s: %s", self.state.game_id, exc)
            return ReceiveResult(
                False, kind="delta", state=self.state, error=divergence_message(kind), divergence=kind
            )
        except IllegalMoveError as exc:
            logger.warning("Opponent move rejected in game %s: %s", self.state.game_id, exc)
            return ReceiveResult(False, kind="delta", state=self.state, error=str(exc))

        # our last move made it across
        if self.state.turn > 0:
            self.storage.mark_history_synced(self.state.turn)

        self._commit(new_state)
        self.storage.append_history(HistoryEntry.from_state(new_state, synced=True))
        self.opponent_checksum = delta.checksum
        return ReceiveResult(
            True,
            kind="delta",
            state=new_state,
            opponent_name=self._opponent_name(new_state) or delta.player_name,
            victory=check_game_end(new_state, self.rules),
        )

    def _commit(self, state: GameState) -> None:
        """Take `state` as the current game. Keeps working in memory if the store refuses the write."""
        self.state = state
        if not self.storage.set_game_state(state):
            logger.error("Could not persist game %s at move %d", state.game_id, state.turn)

    def _adopt(self, state: GameState) -> None:
        """Replace the local game, history log included."""
        self._commit(state)
        self.their_history = []
        self.storage.set_history(self._history_entries(state))

    def _history_entries(self, state: GameState) -> list[HistoryEntry]:
        entries = []
        for turn in range(1, state.turn + 1):
            prefix = replace(
                state,
                board=board_at(state, turn),
                move_history=state.move_history[:turn],
                current_turn=state.move_history[turn - 1].side.opponent,
            )
            entries.append(HistoryEntry.from_state(prefix, synced=True))
        return entries

    def _my_history(self) -> list[Move]:
        return self.state.move_history if self.state else []

    def _opponent_name(self, state: GameState) -> Optional[str]:
        my_id = self.storage.get_my_player_id()
        return extract_opponent_name(state, my_id) if my_id else None

    def _copy(self, text: str) -> bool:
        if self.clipboard is None:
            return False
        try:
            self.clipboard.write_text(text)
        except (ClipboardError, OSError) as exc:
            logger.error("Clipboard write failed: %s", exc)
            return False
        return True
