"""Unit tests for src/db/sql_repository.py"""

from unittest.mock import patch

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from src.db.schema import DBItem
from src.db.sql_repository import SQLKeyValueStore


def test_set_and_get(db_session_repo: Session) -> None:
    """JSON values come back as they went in."""
    store = SQLKeyValueStore(db_session_repo)
    value = {"name": "Alice", "pieces": ["rook", "knight", "bishop"], "turn": 3}
    assert store.set("kings-cooking:test", value)
    assert store.get("kings-cooking:test") == value


def test_get_unknown_key(db_session_repo: Session) -> None:
    """
    Should return None if the key does not match anything in the database.

    NOTE with an empty database, any key is a valid test case.
    """
    store = SQLKeyValueStore(db_session_repo)
    assert store.get("missing") is None

    store.set("present", "value")
    assert store.get("missing") is None


def test_overwrite(db_session_repo: Session) -> None:
    """Setting a key twice keeps a single record with the latest value."""
    store = SQLKeyValueStore(db_session_repo)
    store.set("key", "first")
    store.set("key", ["second"])

    assert store.get("key") == ["second"]
    assert db_session_repo.query(DBItem).count() == 1


def test_remove(db_session_repo: Session) -> None:
    store = SQLKeyValueStore(db_session_repo)
    store.set("key", 1)
    store.remove("key")
    assert store.get("key") is None

    # removing twice is fine
    store.remove("key")


def test_unserializable_value(db_session_repo: Session) -> None:
    """The write is refused, the store keeps working."""
    store = SQLKeyValueStore(db_session_repo)
    assert not store.set("key", object())
    assert store.get("key") is None

    assert store.set("key", "fine")
    assert store.get("key") == "fine"


def test_failed_commit(db_session_repo: Session) -> None:
    store = SQLKeyValueStore(db_session_repo)
    error = OperationalError("INSERT", {}, Exception("database is locked"))
    with patch.object(db_session_repo, "commit", side_effect=error):
        assert not store.set("key", "value")
    assert store.get("key") is None


def test_failed_read(db_session_repo: Session) -> None:
    store = SQLKeyValueStore(db_session_repo)
    store.set("key", "value")
    error = OperationalError("SELECT", {}, Exception("disk I/O error"))
    with patch.object(db_session_repo, "scalar", side_effect=error):
        assert store.get("key") is None
    assert store.get("key") == "value"
