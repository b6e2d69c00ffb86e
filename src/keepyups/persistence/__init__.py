"""Persistence of the challenge snapshot.

Provides:
- A store contract with load, save, clear and today
- SQLite-backed and JSON-file-backed stores
"""

from typing import Optional

from ..clock import Clock
from ..config import Config
from ..db.sqlite import get_db
from .store import JsonFileStateStore, SqliteStateStore, StateStore

STORE_KINDS = ("sqlite", "json")


def create_store(config: Config, clock: Optional[Clock] = None) -> StateStore:
    """Create the store selected by the configuration.

    Args:
        config: Application configuration
        clock: Clock used for today()

    Raises:
        ValueError: If the configured store kind is unknown
    """
    if config.store_kind == "sqlite":
        return SqliteStateStore(
            get_db(str(config.db_path), create_tables=False), clock=clock
        )
    if config.store_kind == "json":
        return JsonFileStateStore(config.state_file, clock=clock)
    raise ValueError(
        f"Unknown store kind: {config.store_kind} (expected one of {', '.join(STORE_KINDS)})"
    )


__all__ = [
    "StateStore",
    "SqliteStateStore",
    "JsonFileStateStore",
    "STORE_KINDS",
    "create_store",
]
