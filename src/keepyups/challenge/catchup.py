"""Tick accounting shared by live ticking and session catch-up.

Both paths fold a number of ticks into the batch accumulator with the same
floor/modulo step, so advancing one tick at a time and catching up many
ticks at once always land on the same counter.
"""

from dataclasses import dataclass
from datetime import date

from .schemas import ChallengeMode, ChallengeState


@dataclass(frozen=True)
class TickFold:
    """Result of folding ticks into a batch accumulator."""

    batches: int
    accumulator: int
    batch_size: int

    @property
    def step(self) -> int:
        """Counter change produced by the completed batches."""
        return self.batches * self.batch_size


def fold_ticks(accumulator: int, ticks: int, batch_size: int) -> TickFold:
    """Fold ticks into the accumulator, splitting out whole batches.

    Args:
        accumulator: Ticks already counted toward the next batch
        ticks: New ticks to add (negative values count as zero)
        batch_size: Ticks per batch

    Returns:
        TickFold with the number of whole batches and the new accumulator
    """
    total = accumulator + max(0, ticks)
    return TickFold(
        batches=total // batch_size,
        accumulator=total % batch_size,
        batch_size=batch_size,
    )


def missed_ticks(now_ms: int, last_tick_at: int, tick_interval_ms: int) -> int:
    """Whole ticks that fit between the last tick and now."""
    elapsed = now_ms - last_tick_at
    if elapsed <= 0:
        return 0
    return elapsed // tick_interval_ms


def days_between(earlier: str, later: str) -> int:
    """Whole calendar days from one YYYY-MM-DD date to another."""
    return (date.fromisoformat(later) - date.fromisoformat(earlier)).days


def clamp(value: int, low: int, high: int) -> int:
    return max(low, min(high, value))


def start_value(state: ChallengeState) -> int:
    """Counter value at the start of a day in the state's mode."""
    if state.mode == ChallengeMode.COUNT_UP:
        return state.overall_target - state.remaining_to_goal
    return state.daily_target


def terminal_value(state: ChallengeState) -> int:
    """Counter value that completes the challenge day."""
    if state.mode == ChallengeMode.COUNT_UP:
        return state.overall_target
    return 0


def counter_bounds(state: ChallengeState) -> tuple[int, int]:
    """Inclusive (low, high) range the counter may take."""
    if state.mode == ChallengeMode.COUNT_UP:
        return start_value(state), state.overall_target
    return 0, state.daily_target


def is_terminal(state: ChallengeState) -> bool:
    return state.counter == terminal_value(state)


def stepped_counter(state: ChallengeState, magnitude: int) -> int:
    """Counter after moving `magnitude` in the mode's direction, clamped."""
    low, high = counter_bounds(state)
    if state.mode == ChallengeMode.COUNT_UP:
        return clamp(state.counter + magnitude, low, high)
    return clamp(state.counter - magnitude, low, high)
