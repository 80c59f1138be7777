"""
State codec: GameState <-> URL fragment safe text.

Packing: pydantic JSON -> zlib -> url-safe base64 without padding.
Nothing decoded here is trusted: every structural rule is checked and any violation raises MalformedStateError.
"""

import base64
import binascii
import logging
import re
import zlib
from dataclasses import dataclass, replace
from typing import Optional, Union

from pydantic import BaseModel, ValidationError

from src.chess.game import DEFAULT_RULES, GameState, Rules, replay, rewind_board
from src.chess.moves import Move
from src.chess.selection import setup_problems
from src.core.exceptions import (
    IllegalMoveError,
    MalformedStateError,
    StateDivergenceError,
)
from src.core.hashing import string_hash, to_base36
from src.core.shared_types import Side
from src.sync.payloads import (
    PAYLOAD_ADAPTER,
    DeltaPayload,
    FullStatePayload,
    GameStateModel,
    MoveModel,
    ResyncRequestPayload,
)

logger = logging.getLogger(__name__)

FRAGMENT_ALPHABET = re.compile(r"[A-Za-z0-9_-]+")
# refuse to inflate anything bigger than this (a finished game is a few kB)
MAX_PAYLOAD_BYTES = 1_000_000


# --- DOMAIN TRANSFER OBJECTS ---
@dataclass(frozen=True)
class FullStateTransfer:
    state: GameState
    checksum: str
    player_name: Optional[str] = None


@dataclass(frozen=True)
class DeltaTransfer:
    game_id: str
    turn: int
    move: Move
    checksum: str
    player_name: Optional[str] = None


@dataclass(frozen=True)
class ResyncRequest:
    game_id: str
    turn: int
    move_history: list[Move]
    checksum: str
    message: Optional[str] = None
    player_name: Optional[str] = None


Transfer = Union[FullStateTransfer, DeltaTransfer, ResyncRequest]


def state_checksum(state: GameState) -> str:
    """Short fingerprint of the game: id, number of moves and every detail of the board."""
    return to_base36(string_hash(f"{state.game_id}-{state.turn}-{state.board.signature()}"))


# --- PACKING ---
def _pack(payload: BaseModel) -> str:
    raw = payload.model_dump_json(by_alias=True).encode("utf-8")
    return base64.urlsafe_b64encode(zlib.compress(raw, 9)).rstrip(b"=").decode("ascii")


def _unpack(text: str) -> bytes:
    text = text.strip().removeprefix("#")
    if not text or not FRAGMENT_ALPHABET.fullmatch(text):
        raise MalformedStateError("Not an encoded game: unexpected characters.")

    padded = text + "=" * (-len(text) % 4)
    try:
        compressed = base64.urlsafe_b64decode(padded)
        inflater = zlib.decompressobj()
        raw = inflater.decompress(compressed, MAX_PAYLOAD_BYTES)
    except (binascii.Error, zlib.error, ValueError) as exc:
        raise MalformedStateError(f"Not an encoded game: {exc}") from exc

    if inflater.unconsumed_tail:
        raise MalformedStateError("Encoded game is too large.")
    if not inflater.eof:
        raise MalformedStateError("Encoded game is truncated.")
    return raw


def _parse(text: str) -> Union[FullStatePayload, DeltaPayload, ResyncRequestPayload]:
    raw = _unpack(text)
    try:
        return PAYLOAD_ADAPTER.validate_json(raw)
    except ValidationError as exc:
        logger.warning("Rejected payload: %d validation error(s)", exc.error_count())
        raise MalformedStateError(f"Invalid game data: {exc}") from exc


# --- STRUCTURAL CHECKS ---
def validate_state(state: GameState, rules: Rules = DEFAULT_RULES) -> None:
    """
    Check everything a well-formed GameState promises
    -----

    1. board squares and piece positions agree, ids are unique
    2. timestamps never go down
    3. the history can be undone back to a starting position without losing track of any piece,
       and that position is one piece selection could have set up
    4. replaying the history from there is legal move by move, turn by turn, and ends on this exact board
    """
    problems = state.board.inconsistencies()
    if problems:
        raise MalformedStateError("; ".join(problems))

    timestamps = [move.timestamp for move in state.move_history]
    if any(later < earlier for earlier, later in zip(timestamps, timestamps[1:])):
        raise MalformedStateError("Move timestamps go back in time.")

    expected_turn = Side.LIGHT if state.turn % 2 == 0 else Side.DARK
    if state.current_turn != expected_turn:
        raise MalformedStateError(
            f"After {state.turn} moves it is {expected_turn}'s turn, not {state.current_turn}'s."
        )

    initial_board = rewind_board(state)
    problems = initial_board.inconsistencies() + setup_problems(initial_board)
    if problems:
        raise MalformedStateError("Starting position: " + "; ".join(problems))

    start = replace(state, board=initial_board, move_history=[], current_turn=Side.LIGHT)
    try:
        replayed = replay(start, state.move_history, rules)
    except IllegalMoveError as exc:
        raise MalformedStateError(f"History contains an illegal move: {exc}") from exc

    if replayed.board != state.board:
        raise MalformedStateError("Replaying the history does not produce the board.")


# --- FULL STATE ---
def encode_state(state: GameState, player_name: Optional[str] = None) -> str:
    payload = FullStatePayload(
        game_state=GameStateModel.from_domain(state),
        checksum=state_checksum(state),
        player_name=player_name,
    )
    encoded = _pack(payload)
    logger.debug("Encoded game %s at turn %d (%d chars)", state.game_id, state.turn, len(encoded))
    return encoded


def _full_state_transfer(payload: FullStatePayload, rules: Rules) -> FullStateTransfer:
    state = payload.game_state.to_domain()
    validate_state(state, rules)
    if state_checksum(state) != payload.checksum:
        raise MalformedStateError("Checksum does not match the game data.")
    return FullStateTransfer(state=state, checksum=payload.checksum, player_name=payload.player_name)


def decode_full_state(text: str, rules: Rules = DEFAULT_RULES) -> FullStateTransfer:
    payload = _parse(text)
    if not isinstance(payload, FullStatePayload):
        raise MalformedStateError(f"Expected a full game state, got {payload.type!r}.")
    return _full_state_transfer(payload, rules)


def decode_state(text: str, rules: Rules = DEFAULT_RULES) -> GameState:
    return decode_full_state(text, rules).state


# --- DELTA ---
def encode_delta(state: GameState, player_name: Optional[str] = None) -> str:
    """The last move only. The peer must be exactly one move behind."""
    if state.last_move is None:
        raise ValueError("No move to send yet.")
    payload = DeltaPayload(
        game_id=state.game_id,
        turn=state.turn,
        move=MoveModel.from_domain(state.last_move),
        checksum=state_checksum(state),
        player_name=player_name,
    )
    return _pack(payload)


def _delta_transfer(payload: DeltaPayload) -> DeltaTransfer:
    return DeltaTransfer(
        game_id=payload.game_id,
        turn=payload.turn,
        move=payload.move.to_domain(),
        checksum=payload.checksum,
        player_name=payload.player_name,
    )


def decode_delta(text: str) -> DeltaTransfer:
    payload = _parse(text)
    if not isinstance(payload, DeltaPayload):
        raise MalformedStateError(f"Expected a move, got {payload.type!r}.")
    return _delta_transfer(payload)


def apply_delta(
    state: GameState, delta: DeltaTransfer, rules: Rules = DEFAULT_RULES
) -> GameState:
    """
    Play the peer's move on the local game.

    Raises StateDivergenceError when the move belongs to another game or turn, or the result does not match the
    peer's checksum. An illegal move raises IllegalMoveError.
    """
    if delta.game_id != state.game_id:
        raise StateDivergenceError(f"Move belongs to game {delta.game_id}, not {state.game_id}.")
    if delta.turn != state.turn + 1:
        raise StateDivergenceError(
            f"Move {delta.turn} cannot follow move {state.turn}: the games are out of step."
        )
    if delta.move.timestamp < state.last_timestamp:
        raise StateDivergenceError("Move is older than the last move played.")

    try:
        new_state = replay(state, [delta.move], rules)
    except MalformedStateError as exc:
        raise StateDivergenceError(str(exc)) from exc

    if state_checksum(new_state) != delta.checksum:
        raise StateDivergenceError("Checksum mismatch after applying the move.")
    return new_state


# --- RESYNC REQUEST ---
def encode_resync_request(
    state: GameState, message: Optional[str] = None, player_name: Optional[str] = None
) -> str:
    payload = ResyncRequestPayload(
        game_id=state.game_id,
        turn=state.turn,
        move_history=[MoveModel.from_domain(move) for move in state.move_history],
        checksum=state_checksum(state),
        message=message,
        player_name=player_name,
    )
    return _pack(payload)


def _resync_request(payload: ResyncRequestPayload) -> ResyncRequest:
    return ResyncRequest(
        game_id=payload.game_id,
        turn=payload.turn,
        move_history=[move.to_domain() for move in payload.move_history],
        checksum=payload.checksum,
        message=payload.message,
        player_name=payload.player_name,
    )


def decode_payload(text: str, rules: Rules = DEFAULT_RULES) -> Transfer:
    """Decode whatever the peer sent: a full state, a move or a resync request."""
    payload = _parse(text)
    try:
        if isinstance(payload, FullStatePayload):
            return _full_state_transfer(payload, rules)
        if isinstance(payload, DeltaPayload):
            return _delta_transfer(payload)
        return _resync_request(payload)
    except MalformedStateError:
        logger.warning("Rejected %s payload", payload.type)
        raise
