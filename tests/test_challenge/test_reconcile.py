"""Tests for reconciling stored state at session start."""

import pytest

from keepyups.challenge import (
    TOTAL_DAYS,
    BatchSize,
    ChallengeDefaults,
    ChallengeEngine,
    ChallengeMode,
)

EIGHT_HOURS_MS = 28800000


@pytest.fixture
def running(engine, clock):
    """Build a running snapshot stamped at the clock's current time."""

    def _running(**fields):
        values = {
            "paused": False,
            "last_tick_at": clock.now_ms(),
            "last_persisted_on": clock.today(),
        }
        values.update(fields)
        return engine.snapshot().model_copy(update=values)

    return _running


class TestFirstRun:
    """Tests for reconciling without a stored snapshot."""

    def test_defaults_from_settings(self, store, clock):
        """Test first run uses the configured defaults."""
        defaults = ChallengeDefaults(daily_target=500, tick_interval_ms=1000)
        engine = ChallengeEngine(store, clock=clock, defaults=defaults)

        state = engine.reconcile(None)

        assert state.counter == 500
        assert state.tick_interval_ms == 1000
        assert state.paused is True
        assert state.challenge_started_on == clock.today()
        assert state.last_tick_at == clock.now_ms()
        assert store.load().model_dump() == engine.state.model_dump()

    def test_malformed_store_starts_fresh(self, store, clock):
        """Test unreadable stored content behaves like a first run."""
        store.payload = '{"counter": "broken"'
        engine = ChallengeEngine(store, clock=clock)

        state = engine.start_session()

        assert state.counter == 40000
        assert state.current_day == 1

    def test_unavailable_store_starts_fresh(self, store, clock):
        store.fail_reads = True
        engine = ChallengeEngine(store, clock=clock)

        state = engine.start_session()

        assert state.counter == 40000


class TestSameDayCatchUp:
    """Tests for projecting missed ticks on the same calendar day."""

    def test_paused_snapshot_restores_verbatim(self, engine, clock):
        """Test a paused snapshot gets no catch-up."""
        snapshot = engine.snapshot().model_copy(update={"counter": 12345})
        clock.advance(EIGHT_HOURS_MS)

        state = engine.reconcile(snapshot)

        assert state.counter == 12345
        assert state.paused is True
        assert state.last_tick_at == clock.now_ms()

    def test_eight_hour_gap(self, engine, running, clock):
        """Test 73,846 missed ticks come off the counter."""
        engine.set_daily_target(100000)
        snapshot = running(counter=100000, tick_interval_ms=390)
        clock.advance(EIGHT_HOURS_MS)

        state = engine.reconcile(snapshot)

        assert state.counter == 100000 - 73846
        assert state.paused is False
        assert state.succeeded is False

    def test_eight_hour_gap_clamps_small_counter(self, engine, running, clock):
        """Test the counter drops by at most its current value."""
        snapshot = running(counter=500, tick_interval_ms=390)
        clock.advance(EIGHT_HOURS_MS)

        state = engine.reconcile(snapshot)

        assert state.counter == 0
        assert state.paused is True
        assert state.succeeded is True

    def test_terminal_clamp_with_batches(self, engine, running, clock):
        """Test 1000 missed ticks in batches of 100 stop at zero."""
        snapshot = running(counter=5, batch_size=BatchSize.HUNDRED)
        clock.advance(1000 * snapshot.tick_interval_ms)

        state = engine.reconcile(snapshot)

        assert state.counter == 0
        assert state.paused is True
        assert state.succeeded is True
        assert state.batch_accumulator == 0

    def test_accumulator_carries_partial_batch(self, engine, running, clock):
        """Test leftover ticks stay in the accumulator."""
        snapshot = running(
            counter=40000,
            batch_size=BatchSize.HUNDRED,
            batch_accumulator=70,
        )
        clock.advance(45 * snapshot.tick_interval_ms + 100)

        state = engine.reconcile(snapshot)

        assert state.counter == 39900
        assert state.batch_accumulator == 15

    def test_count_up_catch_up(self, engine, running, clock):
        """Test catch-up moves a count-up counter toward the goal."""
        snapshot = running(
            mode=ChallengeMode.COUNT_UP,
            counter=960000,
            batch_size=BatchSize.THOUSAND,
        )
        clock.advance(2500 * snapshot.tick_interval_ms)

        state = engine.reconcile(snapshot)

        assert state.counter == 962000
        assert state.batch_accumulator == 500

    def test_out_of_range_counter_is_clamped(self, engine, running):
        snapshot = running(counter=90000)

        state = engine.reconcile(snapshot)

        assert state.counter == 40000

    def test_twice_without_elapsed_time_is_noop(self, engine, running, clock):
        """Test reconciling the result again changes nothing."""
        snapshot = running(batch_size=BatchSize.HUNDRED)
        clock.advance(250 * snapshot.tick_interval_ms)

        first = engine.reconcile(snapshot)
        second = engine.reconcile(engine.snapshot())

        assert second.model_dump() == first.model_dump()
        assert second.succeeded == first.succeeded

    def test_legacy_snapshot_without_date(self, engine, running, clock):
        """Test a snapshot with no saved date is treated as today."""
        snapshot = running(last_persisted_on=None)
        clock.advance(10 * snapshot.tick_interval_ms)

        state = engine.reconcile(snapshot)

        assert state.counter == 39990


class TestLiveMatchesCatchUp:
    """Live ticking and catch-up land on the same state."""

    @pytest.mark.parametrize("mode", [ChallengeMode.COUNT_DOWN, ChallengeMode.COUNT_UP])
    @pytest.mark.parametrize("batch", [1, 100, 1000])
    @pytest.mark.parametrize("ticks", [1, 250, 2345])
    def test_same_result(self, make_engine, clock, mode, batch, ticks):
        live = make_engine()
        live.start_session()
        live.set_mode(mode)
        live.set_batch_size(batch)
        live.resume()
        start = live.snapshot()

        for _ in range(ticks):
            clock.advance(start.tick_interval_ms)
            live.advance()

        caught_up = make_engine()
        caught_up.reconcile(start, now=clock.now_ms(), today=clock.today())

        moved = (ticks // batch) * batch
        assert abs(live.counter - start.counter) == moved
        assert caught_up.counter == live.counter
        assert caught_up.state.batch_accumulator == live.state.batch_accumulator


class TestDayRollover:
    """Tests for reopening on a later calendar day."""

    def test_two_days_later(self, engine, running, clock):
        """Test partial progress is dropped and the day moves on."""
        snapshot = running(
            counter=31234,
            current_day=3,
            batch_size=BatchSize.HUNDRED,
            batch_accumulator=57,
        )
        clock.current_day = "2025-03-12"
        clock.advance(2 * 24 * 3600 * 1000)

        state = engine.reconcile(snapshot)

        assert state.current_day == 5
        assert state.counter == 40000
        assert state.batch_accumulator == 0
        assert state.paused is True
        assert state.succeeded is False
        assert state.batch_size == BatchSize.HUNDRED
        assert state.last_persisted_on == "2025-03-12"

    def test_clamped_at_last_day(self, engine, running, clock):
        snapshot = running(current_day=TOTAL_DAYS - 1)
        clock.current_day = "2025-04-30"

        state = engine.reconcile(snapshot)

        assert state.current_day == TOTAL_DAYS

    def test_count_up_resets_to_start(self, engine, running, clock):
        snapshot = running(mode=ChallengeMode.COUNT_UP, counter=999000)
        clock.current_day = "2025-03-11"

        state = engine.reconcile(snapshot)

        assert state.counter == 960000
        assert state.current_day == 2

    def test_completed_day_rolls_over(self, engine, running, clock):
        """Test yesterday's success does not carry over."""
        snapshot = running(counter=0, paused=True)
        clock.current_day = "2025-03-11"

        state = engine.reconcile(snapshot)

        assert state.counter == 40000
        assert state.succeeded is False

    def test_clock_moved_backwards(self, engine, running, clock):
        """Test the day never drops below the first day."""
        snapshot = running(current_day=1)
        clock.current_day = "2025-03-01"

        state = engine.reconcile(snapshot)

        assert state.current_day == 1

    def test_settings_survive_rollover(self, engine, running, clock):
        snapshot = running(tick_interval_ms=900, daily_target=800, counter=10)
        clock.current_day = "2025-03-11"

        state = engine.reconcile(snapshot)

        assert state.tick_interval_ms == 900
        assert state.counter == 800


class TestSessionRoundTrip:
    """Tests for closing and reopening through a store."""

    def test_reopen_catches_up(self, store, clock):
        first = ChallengeEngine(store, clock=clock)
        first.start_session()
        first.resume()
        first.close()

        clock.advance(100 * 360)
        second = ChallengeEngine(store, clock=clock)
        state = second.start_session()

        assert state.counter == 39900
        assert state.paused is False
