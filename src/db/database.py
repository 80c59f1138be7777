"""Generate database session"""

from typing import Generator, Optional

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker

from src.core.config import Settings, get_settings
from src.db.schema import Base


def create_db_engine(settings: Optional[Settings] = None) -> Engine:
    """Engine for the configured database. Tables are created if they do not exist yet."""
    settings = settings or get_settings()
    engine = create_engine(settings.database_url, echo=settings.echo_sql)
    Base.metadata.create_all(bind=engine)
    return engine


def get_db(settings: Optional[Settings] = None) -> Generator[Session, None, None]:
    session_local = sessionmaker(bind=create_db_engine(settings))
    db = session_local()
    try:
        yield db
    finally:
        db.close()
