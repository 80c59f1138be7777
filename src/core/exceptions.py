"""Exceptions raised by the domain layer. The service layer turns these into result objects."""


class GameError(Exception):
    """Base class for everything King's Cooking raises on purpose."""


class IllegalMoveError(GameError):
    """Move is not in the legal move set, or it is not this side's turn."""


class MalformedStateError(GameError):
    """A decoded snapshot failed structural validation."""


class SelectionConstraintError(GameError):
    """Piece selection violates the pool limits or the 3-piece requirement."""


class StateDivergenceError(GameError):
    """A delta does not line up with the local game (wrong game, turn or checksum)."""


class InvalidRequestError(GameError):
    """Raised from request validators. Not a ValueError, so pydantic lets it through unwrapped."""


class ClipboardError(GameError):
    """Writing to the clipboard failed."""
