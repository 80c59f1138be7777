"""Unit tests for src/services/game_service.py"""

from dataclasses import replace

import pytest

from src.api.models import MoveRequest, StartGameRequest
from src.chess.game import board_at
from src.chess.position import EXITED, Position
from src.core.config import Settings
from src.core.exceptions import ClipboardError
from src.core.shared_types import GameMode, Side
from src.db.storage import GameStorage
from src.services.game_service import GameSession
from src.sync.codec import encode_resync_request, state_checksum
from src.sync.divergence import DivergenceKind, divergence_message
from src.sync.resolution import ResolutionAction
from tests.conftest import MemoryStore

# --- MOCK DEPENDENCIES ----
SETTINGS = Settings(share_base_url="https://example.org/kings-cooking")


class FakeClipboard:
    def __init__(self) -> None:
        self.text: str | None = None

    def write_text(self, text: str) -> None:
        self.text = text


class BrokenClipboard:
    def write_text(self, text: str) -> None:
        raise ClipboardError("permission denied")


def start_request(game_mode: str = "url") -> StartGameRequest:
    return StartGameRequest(
        player1_name="Alice",
        player2_name="Bob",
        mode="mirrored",
        player1_pieces=["rook", "knight", "bishop"],
        player2_pieces=["rook", "knight", "bishop"],
        first_mover="player1",
        game_mode=game_mode,
    )


def move(start: tuple[int, int], end: tuple[int, int] | None = None) -> MoveRequest:
    return MoveRequest(from_square=start, to_square=end)


@pytest.fixture
def alice() -> GameSession:
    return GameSession(GameStorage(MemoryStore()), clipboard=FakeClipboard(), settings=SETTINGS)


@pytest.fixture
def bob() -> GameSession:
    return GameSession(GameStorage(MemoryStore()), clipboard=FakeClipboard(), settings=SETTINGS)


@pytest.fixture
def hotseat() -> GameSession:
    session = GameSession(GameStorage(MemoryStore()), settings=SETTINGS)
    session.start_game(start_request("hotseat"))
    return session


# --- START / RESUME ---
def test_start_game(alice: GameSession) -> None:
    state = alice.start_game(start_request())

    assert alice.state is state
    assert state.board.to_notation() == "RNB/3/rnb"
    assert state.light_player.name == "Alice"
    assert alice.storage.get_game_mode() == GameMode.URL
    assert alice.storage.get_my_name() == "Alice"
    assert alice.storage.get_my_player_id() == state.light_player.id
    assert alice.storage.get_player2_name() == "Bob"
    assert alice.storage.get_game_state() == state


def test_player_id_is_kept_between_games(alice: GameSession) -> None:
    first = alice.start_game(start_request())
    second = alice.start_game(start_request())
    assert first.game_id != second.game_id
    assert first.light_player.id == second.light_player.id


def test_resume(hotseat: GameSession) -> None:
    hotseat.make_move(move((0, 0), (1, 0)))
    resumed = GameSession(hotseat.storage, settings=SETTINGS)
    assert resumed.resume() == hotseat.state


def test_nothing_to_resume() -> None:
    session = GameSession(GameStorage(MemoryStore()), settings=SETTINGS)
    assert session.resume() is None
    assert session.legal_moves(Position(0, 0)) == []


def test_saved_names_prefill_the_next_game(hotseat: GameSession) -> None:
    assert hotseat.saved_names() == ("Alice", "Bob")
    assert GameSession(GameStorage(MemoryStore()), settings=SETTINGS).saved_names() == (None, None)


def test_reset(alice: GameSession) -> None:
    alice.start_game(start_request())
    alice.make_move(move((0, 0), (1, 0)))

    alice.reset()
    assert alice.state is None
    assert alice.resume() is None
    assert alice.saved_names() == (None, None)
    assert alice.storage.get_my_player_id() is None
    assert not alice.share().success


# --- MOVES ---
def test_legal_moves(hotseat: GameSession) -> None:
    assert set(hotseat.legal_moves(Position(0, 0))) == {Position(1, 0), Position(2, 0)}
    assert hotseat.legal_moves(Position(2, 0)) == []


def test_make_move(hotseat: GameSession) -> None:
    result = hotseat.make_move(move((0, 0), (1, 0)))

    assert result.success
    assert result.state is hotseat.state
    assert result.state is not None and result.state.current_turn == Side.DARK
    assert result.victory is not None and not result.victory.game_over
    assert hotseat.storage.get_game_state() == result.state

    history = hotseat.storage.get_history()
    assert history is not None and len(history) == 1
    assert history[0].synced  # nobody to sync with in hot-seat mode


def test_illegal_move(hotseat: GameSession) -> None:
    before = hotseat.state
    result = hotseat.make_move(move((0, 0), (1, 1)))
    assert not result.success
    assert result.error is not None
    assert result.state is before
    assert hotseat.storage.get_history() is None


def test_move_without_game() -> None:
    session = GameSession(GameStorage(MemoryStore()), settings=SETTINGS)
    result = session.make_move(move((0, 0), (1, 0)))
    assert not result.success
    assert result.state is None


def test_game_ends_with_a_move(hotseat: GameSession) -> None:
    """The light rook takes the dark rook on its way to the exit"""
    for start, end in [
        ((0, 0), (1, 0)),  # light rook forward
        ((2, 1), (0, 0)),  # dark knight into the empty corner
        ((1, 0), (2, 0)),  # light rook takes the dark rook
        ((0, 0), (2, 1)),  # dark knight jumps back
    ]:
        assert hotseat.make_move(move(start, end)).success

    result = hotseat.make_move(move((2, 0), None))  # rook on the last row leaves
    assert result.success
    assert result.state is not None and result.state.court(Side.LIGHT)
    assert result.victory is not None


def test_unsynced_moves_in_url_mode(alice: GameSession) -> None:
    alice.start_game(start_request())
    alice.make_move(move((0, 0), (1, 0)))
    history = alice.storage.get_history()
    assert history is not None and not history[0].synced


# --- SHARING ---
def test_share_full_state(alice: GameSession) -> None:
    state = alice.start_game(start_request())
    result = alice.share()

    assert result.success
    assert result.copied
    assert result.url == f"{SETTINGS.share_base_url}#{result.encoded}"
    assert alice.clipboard.text == result.url  # type: ignore[union-attr]
    assert alice.storage.get_game_state() == state


def test_share_without_game() -> None:
    session = GameSession(GameStorage(MemoryStore()), settings=SETTINGS)
    assert not session.share().success


def test_share_delta_before_any_move(alice: GameSession) -> None:
    alice.start_game(start_request())
    result = alice.share(full=False)
    assert not result.success
    assert result.error is not None


def test_share_with_broken_clipboard() -> None:
    session = GameSession(GameStorage(MemoryStore()), clipboard=BrokenClipboard(), settings=SETTINGS)
    session.start_game(start_request())
    result = session.share()
    assert result.success
    assert not result.copied
    assert result.url is not None


# --- URL MODE ROUND TRIP ---
def test_full_game_link_then_deltas(alice: GameSession, bob: GameSession) -> None:
    alice.start_game(start_request())
    alice.make_move(move((0, 0), (1, 0)))
    link = alice.share().url
    assert link is not None

    # Bob opens Alice's link: he adopts her game
    received = bob.receive(link)
    assert received.success
    assert received.kind == "full_state"
    assert received.state == alice.state
    assert received.opponent_name == "Alice"
    assert bob.opponent_checksum == state_checksum(alice.state)  # type: ignore[arg-type]

    # Bob answers with a single move
    assert bob.make_move(move((2, 0), (1, 0))).success
    reply = bob.share(full=False)
    assert reply.success and reply.url is not None

    answered = alice.receive(reply.url)
    assert answered.success
    assert answered.kind == "delta"
    assert alice.state == bob.state

    history = alice.storage.get_history()
    assert history is not None
    assert [entry.move_number for entry in history] == [1, 2]
    assert all(entry.synced for entry in history)


def test_same_delta_twice(alice: GameSession, bob: GameSession) -> None:
    alice.start_game(start_request())
    alice.make_move(move((0, 0), (1, 0)))
    bob.receive(alice.share().encoded)  # type: ignore[arg-type]
    bob.make_move(move((2, 0), (1, 0)))
    delta = bob.share(full=False).encoded
    assert delta is not None

    assert alice.receive(delta).success
    result = alice.receive(delta)
    assert not result.success
    assert result.divergence == DivergenceKind.TURN
    assert result.state is alice.state


def test_delta_for_another_game(alice: GameSession, bob: GameSession) -> None:
    alice.start_game(start_request())
    alice.make_move(move((0, 0), (1, 0)))
    bob.receive(alice.share().encoded)  # type: ignore[arg-type]
    bob.make_move(move((2, 0), (1, 0)))
    delta = bob.share(full=False).encoded
    assert delta is not None

    alice.start_game(start_request())  # Alice moved on to a new game meanwhile
    result = alice.receive(delta)
    assert not result.success
    assert result.divergence == DivergenceKind.CHECKSUM


def test_delta_without_local_game(alice: GameSession, bob: GameSession) -> None:
    alice.start_game(start_request())
    alice.make_move(move((0, 0), (1, 0)))
    result = bob.receive(alice.share(full=False).encoded)  # type: ignore[arg-type]
    assert not result.success
    assert result.kind == "delta"
    assert bob.state is None


def test_delta_is_not_sent_on_a_diverged_game(alice: GameSession, bob: GameSession) -> None:
    alice.start_game(start_request())
    alice.make_move(move((0, 0), (1, 0)))
    bob.receive(alice.share().encoded)  # type: ignore[arg-type]
    bob.make_move(move((2, 0), (1, 0)))

    bob.opponent_checksum = "not-what-alice-sent"
    result = bob.share(full=False)
    assert not result.success
    assert result.error is not None and "drifted apart" in result.error


def test_delta_is_not_sent_from_a_broken_history(alice: GameSession, bob: GameSession) -> None:
    alice.start_game(start_request())
    alice.make_move(move((0, 0), (1, 0)))
    bob.receive(alice.share().encoded)  # type: ignore[arg-type]
    bob.make_move(move((2, 1), (0, 0)))
    assert bob.state is not None

    # the board lost the knight jump, the history still has it
    bob.state = replace(bob.state, board=board_at(bob.state, 1))
    result = bob.share(full=False)
    assert not result.success
    assert result.error == divergence_message(DivergenceKind.CORRUPTION)


def test_corrupted_link(alice: GameSession) -> None:
    alice.start_game(start_request())
    before = alice.state
    result = alice.receive(f"{SETTINGS.share_base_url}#this-is-not-a-game")
    assert not result.success
    assert result.divergence == DivergenceKind.CORRUPTION
    assert alice.state is before


# --- DIVERGENCE / RESOLUTION ---
@pytest.fixture
def diverged(alice: GameSession, bob: GameSession) -> tuple[GameSession, GameSession]:
    """Both agree on two moves, then each played a different third move"""
    alice.start_game(start_request())
    alice.make_move(move((0, 0), (1, 0)))
    alice.make_move(move((2, 0), (1, 0)))
    assert bob.receive(alice.share().encoded).success  # type: ignore[arg-type]

    alice.make_move(move((0, 1), (2, 0)))
    bob.make_move(move((0, 1), (2, 2)))
    return alice, bob


def test_full_state_with_other_history(diverged: tuple[GameSession, GameSession]) -> None:
    alice, bob = diverged
    bob_state = bob.state

    result = bob.receive(alice.share().url)  # type: ignore[arg-type]
    assert not result.success
    assert result.divergence == DivergenceKind.HISTORY
    assert result.report is not None and result.report.index == 2
    assert bob.state is bob_state  # nothing adopted yet
    assert bob.their_history == alice.state.move_history  # type: ignore[union-attr]


def test_review_then_accept(diverged: tuple[GameSession, GameSession]) -> None:
    alice, bob = diverged
    link = alice.share().url
    assert link is not None
    bob.receive(link)

    review = bob.resolve(ResolutionAction.REVIEW)
    assert [row.divergent for row in review.rows] == [False, False, True]

    accepted = bob.resolve(ResolutionAction.ACCEPT_THEIR_STATE, link)
    assert accepted.success
    assert bob.state == alice.state
    assert bob.storage.get_game_state() == alice.state
    assert bob.their_history == []

    history = bob.storage.get_history()
    assert history is not None
    assert [entry.move_number for entry in history] == [1, 2, 3]
    assert [entry.to_domain() for entry in history] == alice.state.move_history  # type: ignore[union-attr]


def test_send_my_state_instead(diverged: tuple[GameSession, GameSession]) -> None:
    alice, bob = diverged
    bob.receive(alice.share().encoded)  # type: ignore[arg-type]
    bob_state = bob.state

    outcome = bob.resolve(ResolutionAction.SEND_MY_STATE)
    assert outcome.success
    assert bob.clipboard.text == outcome.url  # type: ignore[union-attr]
    assert bob.state is bob_state

    # Alice accepts Bob's version
    alice.receive(outcome.url)  # type: ignore[arg-type]
    assert alice.resolve(ResolutionAction.ACCEPT_THEIR_STATE, outcome.url).success
    assert alice.state == bob_state


def test_cancel_keeps_my_game(diverged: tuple[GameSession, GameSession]) -> None:
    alice, bob = diverged
    bob_state = bob.state
    bob.receive(alice.share().encoded)  # type: ignore[arg-type]
    assert bob.resolve(ResolutionAction.CANCEL).success
    assert bob.state is bob_state


def test_resync_request(alice: GameSession, bob: GameSession) -> None:
    alice.start_game(start_request())
    alice.make_move(move((0, 0), (1, 0)))
    bob.receive(alice.share().encoded)  # type: ignore[arg-type]
    alice.make_move(move((2, 0), (1, 0)))

    request = encode_resync_request(alice.state, "Lost track, here is my history", "Alice")  # type: ignore[arg-type]
    result = bob.receive(request)
    assert result.success
    assert result.kind == "resync_request"
    assert result.divergence == DivergenceKind.HISTORY
    assert result.report is not None and result.report.index == 1
    assert result.error == "Lost track, here is my history"


def test_resolve_without_game() -> None:
    session = GameSession(GameStorage(MemoryStore()), settings=SETTINGS)
    assert not session.resolve(ResolutionAction.CANCEL).success


def test_exit_request_reaches_the_engine(hotseat: GameSession) -> None:
    """A move without destination is an exit attempt. From the home row a rook cannot leave yet."""
    result = hotseat.make_move(move((0, 0)))
    assert not result.success
    assert EXITED not in hotseat.legal_moves(Position(0, 0))
