"""
Type definitions used across layers
"""

from enum import StrEnum


class Side(StrEnum):
    LIGHT = "light"
    DARK = "dark"

    @property
    def opponent(self) -> "Side":
        return Side.DARK if self == Side.LIGHT else Side.LIGHT


class PieceType(StrEnum):
    ROOK = "rook"
    KNIGHT = "knight"
    BISHOP = "bishop"
    QUEEN = "queen"
    PAWN = "pawn"


class SelectionMode(StrEnum):
    MIRRORED = "mirrored"
    INDEPENDENT = "independent"
    RANDOM = "random"


class FirstMover(StrEnum):
    """Alternative to an explicit color choice: whoever moves first plays light."""

    PLAYER1 = "player1"
    PLAYER2 = "player2"


class GameMode(StrEnum):
    HOTSEAT = "hotseat"
    URL = "url"
