"""Database module for local SQLite storage."""

from .models import Base, ChallengeStateRecord, CURRENT_STATE_KEY
from .sqlite import Database, get_db, reset_db

__all__ = [
    "Base",
    "ChallengeStateRecord",
    "CURRENT_STATE_KEY",
    "Database",
    "get_db",
    "reset_db",
]
