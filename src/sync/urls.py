"""Putting encoded games into share links and getting them back out."""

from typing import Optional
from urllib.parse import urldefrag

from src.chess.game import GameState


def build_share_url(base_url: str, fragment: str) -> str:
    """The game travels in the fragment, so it never reaches a server."""
    base, _ = urldefrag(base_url)
    return f"{base}#{fragment.removeprefix('#')}"


def fragment_from_url(url_or_fragment: str) -> str:
    """Accepts a full link, '#fragment' or the bare fragment."""
    text = url_or_fragment.strip()
    if "#" in text:
        _, fragment = urldefrag(text)
        return fragment
    return text


def extract_opponent_name(state: GameState, my_id: str) -> Optional[str]:
    """Name of whoever plays against `my_id`. None when `my_id` is not part of this game."""
    my_side = state.side_of(my_id)
    if my_side is None:
        return None
    return state.player(my_side.opponent).name
