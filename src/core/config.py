"""
Runtime configuration.

Everything is read from environment variables once, so the rest of the code only ever sees a `Settings` object.
"""

import logging
import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Self

ENV_PREFIX = "KINGS_COOKING_"
DEFAULT_DATABASE_URL = "sqlite:///kings_cooking.db"
LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def _env(name: str, default: str) -> str:
    return os.environ.get(f"{ENV_PREFIX}{name}", default)


def _env_flag(name: str) -> bool:
    return _env(name, "false").strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    database_url: str = DEFAULT_DATABASE_URL
    share_base_url: str = ""
    log_level: str = "WARNING"
    echo_sql: bool = False

    @classmethod
    def from_env(cls) -> Self:
        return cls(
            database_url=_env("DATABASE_URL", DEFAULT_DATABASE_URL),
            share_base_url=_env("SHARE_BASE_URL", ""),
            log_level=_env("LOG_LEVEL", "WARNING").upper(),
            echo_sql=_env_flag("ECHO_SQL"),
        )


@lru_cache
def get_settings() -> Settings:
    return Settings.from_env()


def configure_logging(settings: Settings | None = None) -> None:
    """Attach a stream handler to the root logger. Unknown level names fall back to WARNING."""
    settings = settings or get_settings()
    level = logging.getLevelName(settings.log_level)
    if not isinstance(level, int):
        level = logging.WARNING
    logging.basicConfig(level=level, format=LOG_FORMAT)
