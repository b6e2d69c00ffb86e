"""Challenge state engine.

Owns the counter, the challenge day, pause state and settings. Advances
the counter on ticks, reconciles a stored snapshot against wall-clock
time when a session starts, and persists after mutations.
"""

import logging
import threading
from typing import TYPE_CHECKING, Any, Callable, Optional, Union

from ..clock import Clock, SystemClock
from ..exceptions import PersistenceUnavailable, ValidationRejected
from .catchup import (
    clamp,
    counter_bounds,
    days_between,
    fold_ticks,
    is_terminal,
    missed_ticks,
    start_value,
    stepped_counter,
    terminal_value,
)
from .schemas import (
    MAX_DAILY_TARGET,
    MAX_OVERALL_TARGET,
    MAX_TICK_RATE_MS,
    MIN_TICK_RATE_MS,
    TOTAL_DAYS,
    BatchSize,
    ChallengeDefaults,
    ChallengeMode,
    ChallengeProgress,
    ChallengeState,
)

if TYPE_CHECKING:
    from ..config import Config
    from ..persistence.store import StateStore

logger = logging.getLogger(__name__)

Observer = Callable[["ChallengeEngine"], None]


def _as_int(name: str, value: Any, low: int, high: int) -> int:
    """Coerce a setter argument to an int within [low, high].

    Raises:
        ValidationRejected: If the value is not an integer or out of range
    """
    if isinstance(value, bool):
        raise ValidationRejected(f"{name} must be an integer, got {value!r}")
    if isinstance(value, float) and not value.is_integer():
        raise ValidationRejected(f"{name} must be a whole number, got {value!r}")
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationRejected(f"{name} must be an integer, got {value!r}")
    if not low <= number <= high:
        raise ValidationRejected(f"{name} must be between {low} and {high}, got {number}")
    return number


def _settle_completion(state: ChallengeState) -> None:
    """Flag success at the terminal bound; a finished day stops ticking."""
    state.succeeded = is_terminal(state)
    if state.succeeded:
        state.counter = terminal_value(state)
        state.paused = True
        state.batch_accumulator = 0


class ChallengeEngine:
    """Keepy-ups challenge state and the rules that move it.

    All public operations are serialized by a re-entrant lock, so a ticker
    thread and command handlers may call in concurrently.

    Usage:
        engine = ChallengeEngine(store, clock)
        engine.start_session()
        engine.resume()
        # ... ticker calls engine.advance() ...
        engine.close()
    """

    def __init__(
        self,
        store: "StateStore",
        clock: Optional[Clock] = None,
        defaults: Optional[ChallengeDefaults] = None,
    ):
        """Initialize the engine with first-run state.

        Args:
            store: Where snapshots are loaded from and saved to
            clock: Source of timestamps and calendar dates
            defaults: Settings for a brand new challenge
        """
        self.store = store
        self.clock = clock or SystemClock()
        self.defaults = defaults or ChallengeDefaults()
        self._lock = threading.RLock()
        self._observers: list[Observer] = []
        self._success_dismissed = False
        self._state = self._initial_state(self.clock.now_ms(), self.clock.today())

    # ========================================================================
    # Read-only views
    # ========================================================================

    @property
    def state(self) -> ChallengeState:
        """Copy of the current state."""
        with self._lock:
            return self._state.model_copy()

    def snapshot(self) -> ChallengeState:
        """Copy of the current state, suitable for reconcile()."""
        return self.state

    @property
    def counter(self) -> int:
        return self._state.counter

    @property
    def current_day(self) -> int:
        return self._state.current_day

    @property
    def is_paused(self) -> bool:
        return self._state.paused

    @property
    def mode(self) -> ChallengeMode:
        return self._state.mode

    @property
    def batch_size(self) -> BatchSize:
        return self._state.batch_size

    @property
    def tick_interval_ms(self) -> int:
        return self._state.tick_interval_ms

    @property
    def succeeded(self) -> bool:
        return self._state.succeeded

    @property
    def show_success(self) -> bool:
        """Whether the success banner should be shown."""
        return self._state.succeeded and not self._success_dismissed

    @property
    def start_value(self) -> int:
        return start_value(self._state)

    @property
    def terminal_value(self) -> int:
        return terminal_value(self._state)

    @property
    def is_complete(self) -> bool:
        return is_terminal(self._state)

    @property
    def progress_percent(self) -> float:
        """Percentage of today's distance covered."""
        with self._lock:
            s = self._state
            if s.mode == ChallengeMode.COUNT_UP:
                done = s.counter - start_value(s)
                return (done / s.remaining_to_goal) * 100
            return ((s.daily_target - s.counter) / s.daily_target) * 100

    @property
    def overall_percent(self) -> float:
        """Percentage of the overall goal reached (count-up), else today's progress."""
        with self._lock:
            s = self._state
            if s.mode == ChallengeMode.COUNT_UP:
                return (s.counter / s.overall_target) * 100
            return self.progress_percent

    @property
    def formatted_counter(self) -> str:
        return f"{self._state.counter:,}"

    @property
    def day_label(self) -> str:
        return f"Day {self._state.current_day}/{TOTAL_DAYS}"

    def progress(self) -> ChallengeProgress:
        """Bundle the derived views into one model."""
        with self._lock:
            s = self._state
            return ChallengeProgress(
                counter=s.counter,
                formatted_counter=self.formatted_counter,
                start_value=self.start_value,
                terminal_value=self.terminal_value,
                percent=self.progress_percent,
                overall_percent=self.overall_percent,
                current_day=s.current_day,
                day_label=self.day_label,
                mode=s.mode,
                batch_size=s.batch_size,
                batch_accumulator=s.batch_accumulator,
                tick_interval_ms=s.tick_interval_ms,
                paused=s.paused,
                is_complete=self.is_complete,
                show_success=self.show_success,
            )

    # ========================================================================
    # Observers
    # ========================================================================

    def subscribe(self, callback: Observer) -> Callable[[], None]:
        """Register a callback run after every mutation.

        Returns:
            Function that removes the callback again
        """
        with self._lock:
            self._observers.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._observers:
                    self._observers.remove(callback)

        return unsubscribe

    def _notify(self) -> None:
        for callback in list(self._observers):
            try:
                callback(self)
            except Exception:
                logger.exception("Challenge observer %r failed", callback)

    # ========================================================================
    # Ticking
    # ========================================================================

    def advance(self) -> bool:
        """Count one tick.

        Returns:
            True if the tick was counted, False if paused or complete
        """
        with self._lock:
            s = self._state
            if s.paused or is_terminal(s):
                return False

            s.last_tick_at = self.clock.now_ms()
            fold = fold_ticks(s.batch_accumulator, 1, s.batch_size)
            s.batch_accumulator = fold.accumulator
            moved = fold.step > 0
            if moved:
                self._move(fold.step)

            # Throttle writes: every batch boundary and every new multiple of ten
            if s.batch_accumulator % s.batch_size == 0 or (moved and s.counter % 10 == 0):
                self._persist()
            self._notify()
            return True

    def _move(self, magnitude: int) -> None:
        """Step the counter and settle completion."""
        self._state.counter = stepped_counter(self._state, magnitude)
        _settle_completion(self._state)

    # ========================================================================
    # Session lifecycle
    # ========================================================================

    def start_session(self) -> ChallengeState:
        """Load the stored snapshot and reconcile it against the clock."""
        return self.reconcile(self.store.load())

    def reconcile(
        self,
        snapshot: Optional[ChallengeState],
        now: Optional[int] = None,
        today: Optional[str] = None,
    ) -> ChallengeState:
        """Rebuild state from a stored snapshot.

        A snapshot from an earlier calendar day rolls the challenge forward
        by the number of days passed and starts the new day paused, without
        projecting ticks. A snapshot from today restores as-is and, if it
        was running, catches up the ticks that fit between its last tick
        and now.

        Args:
            snapshot: Stored state, or None on first run
            now: Current epoch milliseconds (defaults to the clock)
            today: Current YYYY-MM-DD date (defaults to the clock)

        Returns:
            Copy of the reconciled state
        """
        with self._lock:
            now = self.clock.now_ms() if now is None else now
            today = self.clock.today() if today is None else today

            if snapshot is None:
                logger.info("No stored challenge, starting a new one on %s", today)
                self._state = self._initial_state(now, today)
            elif snapshot.last_persisted_on and snapshot.last_persisted_on != today:
                self._state = self._rolled_over(snapshot, today)
            else:
                self._state = self._caught_up(snapshot, now)

            self._success_dismissed = False
            self._state.last_tick_at = now
            self._persist()
            self._notify()
            return self._state.model_copy()

    def _initial_state(self, now: int, today: str) -> ChallengeState:
        d = self.defaults
        state = ChallengeState(
            daily_target=d.daily_target,
            tick_interval_ms=d.tick_interval_ms,
            overall_target=d.overall_target,
            remaining_to_goal=d.remaining_to_goal,
            mode=d.mode,
            batch_size=d.batch_size,
            paused=True,
            last_tick_at=now,
            challenge_started_on=today,
        )
        state.counter = start_value(state)
        return state

    def _rolled_over(self, snapshot: ChallengeState, today: str) -> ChallengeState:
        days = days_between(snapshot.last_persisted_on, today)
        state = snapshot.model_copy()
        state.current_day = clamp(snapshot.current_day + days, 1, TOTAL_DAYS)
        state.counter = start_value(state)
        state.batch_accumulator = 0
        state.paused = True
        state.succeeded = False
        if not state.challenge_started_on:
            state.challenge_started_on = today
        logger.info(
            "New day: %d day(s) since %s, now on day %d",
            days,
            snapshot.last_persisted_on,
            state.current_day,
        )
        return state

    def _caught_up(self, snapshot: ChallengeState, now: int) -> ChallengeState:
        state = snapshot.model_copy()
        low, high = counter_bounds(state)
        state.counter = clamp(state.counter, low, high)

        if not state.paused:
            missed = missed_ticks(now, state.last_tick_at, state.tick_interval_ms)
            fold = fold_ticks(state.batch_accumulator, missed, state.batch_size)
            state.batch_accumulator = fold.accumulator
            if missed:
                logger.info(
                    "Catching up %d missed tick(s): %d batch(es) of %d",
                    missed,
                    fold.batches,
                    state.batch_size,
                )
            state.counter = stepped_counter(state, fold.step)

        _settle_completion(state)
        return state

    def close(self) -> bool:
        """Persist the final state at the end of a session."""
        with self._lock:
            return self._persist()

    def clear(self) -> bool:
        """Remove the stored snapshot and start over in memory."""
        with self._lock:
            cleared = self.store.clear()
            self._state = self._initial_state(self.clock.now_ms(), self.clock.today())
            self._success_dismissed = False
            self._notify()
            return cleared

    def _persist(self) -> bool:
        self._state.last_persisted_on = self.clock.today()
        try:
            return self.store.save(self._state)
        except PersistenceUnavailable as e:
            logger.warning("Challenge state not saved: %s", e)
            return False

    def _commit(self) -> None:
        self._persist()
        self._notify()

    # ========================================================================
    # Commands
    # ========================================================================

    def pause(self) -> bool:
        """Stop counting ticks."""
        with self._lock:
            self._state.paused = True
            self._state.last_tick_at = self.clock.now_ms()
            self._commit()
            return True

    def resume(self) -> bool:
        """Start counting ticks again.

        Returns:
            False if the day is already complete
        """
        with self._lock:
            if is_terminal(self._state):
                return False
            self._state.paused = False
            self._state.last_tick_at = self.clock.now_ms()
            self._commit()
            return True

    def toggle_pause(self) -> bool:
        """Flip between paused and running.

        Returns:
            The paused flag after the toggle
        """
        with self._lock:
            if self._state.paused:
                self.resume()
            else:
                self.pause()
            return self._state.paused

    def reset_day(self) -> None:
        """Restart today's count from the mode's start value, paused."""
        with self._lock:
            s = self._state
            s.counter = start_value(s)
            s.batch_accumulator = 0
            s.succeeded = False
            s.paused = True
            s.last_tick_at = self.clock.now_ms()
            self._success_dismissed = False
            self._commit()

    def advance_day(self) -> bool:
        """Move to the next challenge day.

        Returns:
            False if already on the last day
        """
        with self._lock:
            if self._state.current_day >= TOTAL_DAYS:
                return False
            self._state.current_day += 1
            self.reset_day()
            return True

    def dismiss_success(self) -> None:
        """Hide the success banner without touching the challenge."""
        with self._lock:
            self._success_dismissed = True
            self._notify()

    # ========================================================================
    # Setters
    # ========================================================================

    def _rejected(self, error: ValidationRejected) -> bool:
        logger.debug("Rejected setting: %s", error)
        return False

    def _clamp_counter(self) -> None:
        low, high = counter_bounds(self._state)
        self._state.counter = clamp(self._state.counter, low, high)
        _settle_completion(self._state)

    def set_counter(self, value: Any) -> bool:
        """Override the counter within the mode's valid range."""
        with self._lock:
            low, high = counter_bounds(self._state)
            try:
                number = _as_int("counter", value, low, high)
            except ValidationRejected as e:
                return self._rejected(e)
            self._state.counter = number
            _settle_completion(self._state)
            self._success_dismissed = False
            self._commit()
            return True

    def set_day(self, value: Any) -> bool:
        """Jump to a challenge day."""
        with self._lock:
            try:
                number = _as_int("day", value, 1, TOTAL_DAYS)
            except ValidationRejected as e:
                return self._rejected(e)
            self._state.current_day = number
            self._commit()
            return True

    def set_daily_target(self, value: Any) -> bool:
        """Change the count-down start value."""
        with self._lock:
            try:
                number = _as_int("daily target", value, 1, MAX_DAILY_TARGET)
            except ValidationRejected as e:
                return self._rejected(e)
            self._state.daily_target = number
            self._clamp_counter()
            self._commit()
            return True

    def set_overall_target(self, value: Any) -> bool:
        """Change the count-up goal."""
        with self._lock:
            try:
                number = _as_int(
                    "overall target",
                    value,
                    self._state.remaining_to_goal,
                    MAX_OVERALL_TARGET,
                )
            except ValidationRejected as e:
                return self._rejected(e)
            self._state.overall_target = number
            self._clamp_counter()
            self._commit()
            return True

    def set_remaining_to_goal(self, value: Any) -> bool:
        """Change the count-up distance covered each day."""
        with self._lock:
            try:
                number = _as_int(
                    "remaining to goal", value, 1, self._state.overall_target
                )
            except ValidationRejected as e:
                return self._rejected(e)
            self._state.remaining_to_goal = number
            self._clamp_counter()
            self._commit()
            return True

    def set_tick_interval_ms(self, value: Any) -> bool:
        """Change the tick cadence."""
        with self._lock:
            try:
                number = _as_int(
                    "tick interval", value, MIN_TICK_RATE_MS, MAX_TICK_RATE_MS
                )
            except ValidationRejected as e:
                return self._rejected(e)
            self._state.tick_interval_ms = number
            self._commit()
            return True

    def set_batch_size(self, value: Any) -> bool:
        """Change how many ticks make one counter step."""
        with self._lock:
            try:
                size = BatchSize(_as_int("batch size", value, 1, BatchSize.THOUSAND))
            except ValidationRejected as e:
                return self._rejected(e)
            except ValueError:
                return self._rejected(
                    ValidationRejected(
                        f"batch size must be one of {[b.value for b in BatchSize]}, got {value!r}"
                    )
                )
            self._state.batch_size = size
            self._state.batch_accumulator = 0
            self._commit()
            return True

    def set_mode(self, value: Union[ChallengeMode, str]) -> bool:
        """Switch between counting down and counting up.

        The counter restarts from the new mode's start value.
        """
        with self._lock:
            try:
                mode = ChallengeMode(value)
            except ValueError:
                return self._rejected(ValidationRejected(f"unknown mode {value!r}"))
            s = self._state
            s.mode = mode
            s.counter = start_value(s)
            s.batch_accumulator = 0
            s.succeeded = False
            self._success_dismissed = False
            self._commit()
            return True


def build_engine(
    config: Optional["Config"] = None,
    clock: Optional[Clock] = None,
    store: Optional["StateStore"] = None,
) -> ChallengeEngine:
    """Create an engine wired to the configured store.

    Args:
        config: Configuration (defaults to the global config)
        clock: Clock shared by the engine and store
        store: Store to use instead of the configured one
    """
    from ..config import get_config
    from ..persistence import create_store

    config = config or get_config()
    clock = clock or SystemClock()
    if store is None:
        store = create_store(config, clock)
    return ChallengeEngine(store, clock=clock, defaults=config.challenge_defaults())
