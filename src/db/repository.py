"""Protocol for the local key-value store (SQLAlchemy below, a dict in the tests, browser storage in the original app)"""

from typing import Any, Protocol


class KeyValueStore(Protocol):
    """Persistence of small JSON values. Failures are reported, never raised."""

    def get(self, key: str) -> Any | None:
        """Stored value, or None if there is no such key (or it cannot be read)."""
        ...

    def set(self, key: str, value: Any) -> bool:
        """Store a JSON-serializable value. False when the write failed."""
        ...

    def remove(self, key: str) -> None:
        """Forget the key. Removing a missing key is fine."""
        ...
