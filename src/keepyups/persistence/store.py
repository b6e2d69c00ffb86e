"""State stores for the challenge snapshot.

A store keeps exactly one record. Failures never escape the public
methods: saving reports False, loading reports None, and both log why.
"""

import logging
import os
from abc import ABC, abstractmethod
from contextlib import contextmanager
from pathlib import Path
from typing import Generator, Optional

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..challenge.schemas import ChallengeState
from ..clock import Clock, SystemClock
from ..db.models import CURRENT_STATE_KEY, ChallengeStateRecord
from ..db.sqlite import Database, get_db
from ..exceptions import MalformedSnapshot, PersistenceUnavailable

logger = logging.getLogger(__name__)


class StateStore(ABC):
    """Load, save and clear the single challenge snapshot."""

    def __init__(self, clock: Optional[Clock] = None):
        self.clock = clock or SystemClock()

    @abstractmethod
    def _read(self) -> Optional[str]:
        """Return the stored JSON text, or None when nothing is stored.

        Raises:
            PersistenceUnavailable: If the backing storage cannot be read
        """

    @abstractmethod
    def _write(self, payload: str) -> None:
        """Overwrite the stored JSON text.

        Raises:
            PersistenceUnavailable: If the backing storage cannot be written
        """

    @abstractmethod
    def _delete(self) -> None:
        """Remove the stored record if present."""

    @abstractmethod
    def _probe(self) -> None:
        """Check the backing storage is usable."""

    def save(self, state: ChallengeState) -> bool:
        """Overwrite the stored snapshot.

        Args:
            state: State to persist

        Returns:
            True if written, False if storage was unavailable
        """
        try:
            self._write(state.to_json())
        except PersistenceUnavailable as e:
            logger.warning("Failed to save challenge state: %s", e)
            return False
        return True

    def load(self) -> Optional[ChallengeState]:
        """Load the stored snapshot.

        Returns:
            The snapshot, or None on first run, unreadable storage or
            malformed content
        """
        try:
            raw = self._read()
        except PersistenceUnavailable as e:
            logger.warning("Failed to load challenge state: %s", e)
            return None

        if raw is None:
            return None

        try:
            return ChallengeState.from_json(raw)
        except MalformedSnapshot as e:
            logger.warning("Ignoring stored challenge state: %s", e)
            return None

    def clear(self) -> bool:
        """Remove the stored snapshot.

        Returns:
            True if the record is gone, False if storage was unavailable
        """
        try:
            self._delete()
        except PersistenceUnavailable as e:
            logger.warning("Failed to clear challenge state: %s", e)
            return False
        return True

    def today(self) -> str:
        """Today's local date as YYYY-MM-DD."""
        return self.clock.today()

    def is_available(self) -> bool:
        """Check whether the store can currently be used."""
        try:
            self._probe()
        except PersistenceUnavailable as e:
            logger.debug("State store unavailable: %s", e)
            return False
        return True


class SqliteStateStore(StateStore):
    """Store the snapshot as a single row in the SQLite database.

    The table is created on first use rather than at construction, so an
    unreadable database file surfaces as PersistenceUnavailable from the
    store operations instead of failing while the store is built.
    """

    def __init__(
        self,
        db: Optional[Database] = None,
        clock: Optional[Clock] = None,
        key: str = CURRENT_STATE_KEY,
    ):
        """Initialize the store.

        Args:
            db: Database instance
            clock: Clock used for today()
            key: Row key the snapshot is stored under
        """
        super().__init__(clock)
        self.db = db or get_db(create_tables=False)
        self.key = key
        self._schema_ready = False

    @contextmanager
    def _session(self) -> Generator[Session, None, None]:
        """Session on a database whose schema exists.

        Raises:
            PersistenceUnavailable: If the database cannot be opened or used
        """
        try:
            if not self._schema_ready:
                self.db.create_tables()
                self._schema_ready = True
            with self.db.get_session() as session:
                yield session
        except SQLAlchemyError as e:
            raise PersistenceUnavailable(str(e)) from e

    def _read(self) -> Optional[str]:
        with self._session() as session:
            record = session.get(ChallengeStateRecord, self.key)
            return record.payload if record else None

    def _write(self, payload: str) -> None:
        with self._session() as session:
            record = session.get(ChallengeStateRecord, self.key)
            if record is None:
                session.add(ChallengeStateRecord(key=self.key, payload=payload))
            else:
                record.payload = payload

    def _delete(self) -> None:
        with self._session() as session:
            record = session.get(ChallengeStateRecord, self.key)
            if record is not None:
                session.delete(record)

    def _probe(self) -> None:
        with self._session() as session:
            session.execute(text("SELECT 1"))


class JsonFileStateStore(StateStore):
    """Store the snapshot in a single JSON file."""

    def __init__(self, path: Path, clock: Optional[Clock] = None):
        """Initialize the store.

        Args:
            path: File the snapshot is written to
            clock: Clock used for today()
        """
        super().__init__(clock)
        self.path = Path(path).expanduser()

    def _read(self) -> Optional[str]:
        if not self.path.exists():
            return None
        try:
            return self.path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise PersistenceUnavailable(f"Cannot read {self.path}: {e}") from e

    def _write(self, payload: str) -> None:
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(payload, encoding="utf-8")
            os.replace(tmp_path, self.path)
        except OSError as e:
            raise PersistenceUnavailable(f"Cannot write {self.path}: {e}") from e

    def _delete(self) -> None:
        try:
            self.path.unlink(missing_ok=True)
        except OSError as e:
            raise PersistenceUnavailable(f"Cannot remove {self.path}: {e}") from e

    def _probe(self) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise PersistenceUnavailable(f"Cannot create {self.path.parent}: {e}") from e
        if not os.access(self.path.parent, os.W_OK):
            raise PersistenceUnavailable(f"Directory not writable: {self.path.parent}")
