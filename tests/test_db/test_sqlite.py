"""Tests for the SQLite database wrapper."""

import pytest
from sqlalchemy import inspect

from keepyups.db.models import ChallengeStateRecord
from keepyups.db.sqlite import Database, get_db, reset_db


class TestDatabase:
    """Tests for Database."""

    def test_create_tables(self, db):
        """Test the challenge table is created."""
        assert "challenge_state" in inspect(db.engine).get_table_names()

    def test_file_database_creates_directory(self, tmp_path):
        db_path = tmp_path / "nested" / "dir" / "keepyups.db"

        database = Database(str(db_path))
        database.create_tables()

        assert db_path.parent.exists()
        database.engine.dispose()

    def test_env_path(self, tmp_path, monkeypatch):
        """Test the path falls back to KEEPYUPS_DB_PATH."""
        db_path = tmp_path / "env.db"
        monkeypatch.setenv("KEEPYUPS_DB_PATH", str(db_path))

        database = Database()

        assert database.db_path == db_path
        database.engine.dispose()

    def test_session_commits(self, db):
        with db.get_session() as session:
            session.add(ChallengeStateRecord(payload="{}"))

        with db.get_session() as session:
            record = session.get(ChallengeStateRecord, "current")
            assert record.payload == "{}"
            assert record.updated_at

    def test_session_rolls_back_on_error(self, db):
        with pytest.raises(RuntimeError):
            with db.get_session() as session:
                session.add(ChallengeStateRecord(payload="{}"))
                session.flush()
                raise RuntimeError("boom")

        with db.get_session() as session:
            assert session.get(ChallengeStateRecord, "current") is None


class TestGlobalDatabase:
    """Tests for the shared database instance."""

    def test_get_db_is_cached(self, tmp_path):
        first = get_db(str(tmp_path / "a.db"))
        second = get_db(str(tmp_path / "b.db"))

        assert first is second

    def test_get_db_without_tables(self, tmp_path):
        """Test the schema can be left for the caller to create."""
        database = get_db(str(tmp_path / "lazy.db"), create_tables=False)

        assert "challenge_state" not in inspect(database.engine).get_table_names()

    def test_reset_db(self, tmp_path):
        first = get_db(str(tmp_path / "a.db"))
        reset_db()
        second = get_db(str(tmp_path / "b.db"))

        assert first is not second
        assert second.db_path == tmp_path / "b.db"
