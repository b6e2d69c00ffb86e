"""SQLAlchemy ORM models for local SQLite storage.

Tables:
- challenge_state: The single persisted challenge snapshot
"""

from datetime import datetime, timezone

from sqlalchemy import String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# Key of the one row the challenge is stored under
CURRENT_STATE_KEY = "current"


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class ChallengeStateRecord(Base):
    """Challenge state row - overwritten in place on every save."""

    __tablename__ = "challenge_state"

    key: Mapped[str] = mapped_column(String(50), primary_key=True, default=CURRENT_STATE_KEY)

    # Flat JSON record using the stored field names
    payload: Mapped[str] = mapped_column(Text, nullable=False)

    updated_at: Mapped[str] = mapped_column(
        String(32),
        default=lambda: datetime.now(timezone.utc).isoformat(),
        onupdate=lambda: datetime.now(timezone.utc).isoformat(),
    )

    def __repr__(self) -> str:
        return f"<ChallengeStateRecord(key={self.key}, updated_at={self.updated_at})>"
