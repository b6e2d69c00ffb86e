"""Pytest configuration and shared fixtures.

This module provides fixtures for testing keepyups, including a
controllable clock, in-memory databases and stores that record writes.
"""

from typing import Optional

import pytest

from keepyups.challenge import ChallengeDefaults, ChallengeEngine
from keepyups.clock import Clock
from keepyups.config import reset_config
from keepyups.db.sqlite import Database, reset_db
from keepyups.exceptions import PersistenceUnavailable
from keepyups.persistence import SqliteStateStore, StateStore

# 2025-03-10 09:00:00 UTC
START_MS = 1741597200000
START_DAY = "2025-03-10"


class FakeClock(Clock):
    """Clock that only moves when told to."""

    def __init__(self, now_ms: int = START_MS, today: str = START_DAY):
        self.current_ms = now_ms
        self.current_day = today

    def now_ms(self) -> int:
        return self.current_ms

    def today(self) -> str:
        return self.current_day

    def advance(self, ms: int) -> None:
        self.current_ms += ms


class MemoryStore(StateStore):
    """Store holding the payload in memory and counting writes."""

    def __init__(self, clock: Optional[Clock] = None):
        super().__init__(clock)
        self.payload: Optional[str] = None
        self.writes = 0
        self.fail_writes = False
        self.fail_reads = False

    def _read(self) -> Optional[str]:
        if self.fail_reads:
            raise PersistenceUnavailable("read disabled")
        return self.payload

    def _write(self, payload: str) -> None:
        if self.fail_writes:
            raise PersistenceUnavailable("quota exceeded")
        self.payload = payload
        self.writes += 1

    def _delete(self) -> None:
        self.payload = None

    def _probe(self) -> None:
        if self.fail_writes:
            raise PersistenceUnavailable("quota exceeded")


# ============================================================================
# Clock and Store Fixtures
# ============================================================================


@pytest.fixture
def clock() -> FakeClock:
    """Create a fake clock at a fixed morning."""
    return FakeClock()


@pytest.fixture
def store(clock: FakeClock) -> MemoryStore:
    """Create an in-memory store."""
    return MemoryStore(clock)


@pytest.fixture
def db() -> Database:
    """Create an in-memory database for testing."""
    database = Database(":memory:")
    database.create_tables()
    return database


@pytest.fixture
def sqlite_store(db: Database, clock: FakeClock) -> SqliteStateStore:
    """Create a SQLite store on the in-memory database."""
    return SqliteStateStore(db, clock=clock)


# ============================================================================
# Engine Fixtures
# ============================================================================


@pytest.fixture
def engine(store: MemoryStore, clock: FakeClock) -> ChallengeEngine:
    """Create an engine with a started first-run session."""
    challenge = ChallengeEngine(store, clock=clock)
    challenge.start_session()
    return challenge


@pytest.fixture
def make_engine(clock: FakeClock):
    """Factory for engines with their own in-memory store."""

    def _make(defaults: Optional[ChallengeDefaults] = None) -> ChallengeEngine:
        return ChallengeEngine(MemoryStore(clock), clock=clock, defaults=defaults)

    return _make


@pytest.fixture
def count_up_engine(store: MemoryStore, clock: FakeClock) -> ChallengeEngine:
    """Create a count-up engine: 1,000,000 goal, 40,000 to go, batches of 100."""
    defaults = ChallengeDefaults(
        overall_target=1000000,
        remaining_to_goal=40000,
        tick_interval_ms=390,
    )
    challenge = ChallengeEngine(store, clock=clock, defaults=defaults)
    challenge.start_session()
    challenge.set_mode("up")
    challenge.set_batch_size(100)
    return challenge


@pytest.fixture(autouse=True)
def reset_globals():
    """Reset global config and database between tests."""
    reset_db()
    reset_config()
    yield
    reset_db()
    reset_config()
