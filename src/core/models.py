"""
Boundary layer data model(s).

Player identity is needed by the engine, the codec, the storage helpers and the service.
(Kept here so none of those layers has to import another just for this.)
"""

from dataclasses import dataclass, field
from uuid import uuid4

from src.core.exceptions import InvalidRequestError

MAX_NAME_LENGTH = 20


def normalize_player_name(name: str) -> str:
    """Surrounding whitespace is dropped, what is left must be 1 to 20 characters."""
    name = name.strip()
    if not 1 <= len(name) <= MAX_NAME_LENGTH:
        raise InvalidRequestError(f"Player names must be 1 to {MAX_NAME_LENGTH} characters long.")
    return name


@dataclass(frozen=True)
class PlayerInfo:
    """Stable identity of a player: a uuid string plus a display name."""

    name: str
    id: str = field(default_factory=lambda: str(uuid4()))

    def __post_init__(self) -> None:
        # the same name has to come back out of the share link
        object.__setattr__(self, "name", normalize_player_name(self.name))
