"""Implementation of KeyValueStore using SQLAlchemy"""

import logging
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from src.db.schema import DBItem, utc_now

logger = logging.getLogger(__name__)


class SQLKeyValueStore:
    """Data stored using SQL / methods implemented using SQLAlchemy"""

    def __init__(self, db_session: Session) -> None:
        self.db = db_session

    def get(self, key: str) -> Any | None:
        try:
            item = self._fetch_item(key)
        except SQLAlchemyError as exc:
            logger.error("Reading %r failed: %s", key, exc)
            self.db.rollback()
            return None
        return item.value if item else None

    def set(self, key: str, value: Any) -> bool:
        try:
            item = self._fetch_item(key)
            if item is None:
                self.db.add(DBItem(key=key, value=value))
            else:
                item.value = value
                item.updated_at = utc_now()
            self.db.commit()
        except (SQLAlchemyError, TypeError, ValueError) as exc:
            # TypeError/ValueError: value is not JSON serializable
            logger.error("Writing %r failed: %s", key, exc)
            self.db.rollback()
            return False
        return True

    def remove(self, key: str) -> None:
        try:
            self.db.execute(delete(DBItem).where(DBItem.key == key))
            self.db.commit()
        except SQLAlchemyError as exc:
            logger.error("Removing %r failed: %s", key, exc)
            self.db.rollback()

    def _fetch_item(self, key: str) -> DBItem | None:
        query = select(DBItem).where(DBItem.key == key)
        return self.db.scalar(query)
