"""Drift-correcting tick source.

Runs a callback on a background thread at a fixed cadence. Each tick is
scheduled against an absolute deadline rather than re-arming a fixed
delay, so slow callbacks do not add up to drift. When the thread falls
more than one interval behind, the deadline jumps to now + interval
instead of firing a burst of late ticks; catching up after long gaps is
the engine's reconcile step, not the ticker's job.
"""

import logging
import threading
import time
from typing import Callable, Optional, Union

logger = logging.getLogger(__name__)

IntervalSource = Union[int, Callable[[], int]]


def next_deadline(previous: float, now: float, interval: float) -> float:
    """Deadline of the tick after one that was due at `previous`.

    Args:
        previous: When the tick that just fired was due (monotonic seconds)
        now: Current monotonic time
        interval: Seconds between ticks

    Returns:
        previous + interval, or now + interval when more than one
        interval behind
    """
    if now - previous > interval:
        return now + interval
    return previous + interval


class Ticker:
    """Calls a function at a steady cadence until stopped.

    Usage:
        ticker = Ticker(engine.advance, lambda: engine.tick_interval_ms)
        ticker.start()
        # ... app runs ...
        ticker.stop()
    """

    def __init__(
        self,
        callback: Callable[[], object],
        interval_ms: IntervalSource,
        name: str = "keepyups-ticker",
    ):
        """Initialize the ticker.

        Args:
            callback: Called once per tick on the ticker thread
            interval_ms: Milliseconds between ticks, or a function returning
                it; a function is re-read before every tick
            name: Thread name
        """
        self.callback = callback
        self._interval_ms = interval_ms
        self.name = name
        self._lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None
        self._stop_event: Optional[threading.Event] = None
        self.ticks = 0

    @property
    def is_running(self) -> bool:
        """Check if the ticker thread is running."""
        with self._lock:
            return self._thread is not None

    def _interval_seconds(self) -> float:
        interval = self._interval_ms() if callable(self._interval_ms) else self._interval_ms
        return interval / 1000.0

    def start(self) -> None:
        """Start ticking. Does nothing if already running."""
        with self._lock:
            if self._thread is not None:
                return
            self._stop_event = threading.Event()
            self._thread = threading.Thread(
                target=self._run,
                args=(self._stop_event,),
                name=self.name,
                daemon=True,
            )
            self._thread.start()
        logger.debug("Ticker started at %.0f ms", self._interval_seconds() * 1000)

    def stop(self, timeout: Optional[float] = 2.0) -> None:
        """Stop ticking. Does nothing if already stopped."""
        with self._lock:
            if self._thread is None:
                return
            thread = self._thread
            self._stop_event.set()
            self._thread = None
            self._stop_event = None

        if thread is not threading.current_thread():
            thread.join(timeout)
        logger.debug("Ticker stopped after %d tick(s)", self.ticks)

    def _run(self, stop_event: threading.Event) -> None:
        deadline = time.monotonic() + self._interval_seconds()

        while not stop_event.is_set():
            delay = deadline - time.monotonic()
            if delay > 0 and stop_event.wait(delay):
                break

            try:
                self.callback()
            except Exception:
                logger.exception("Tick callback failed")
            self.ticks += 1

            deadline = next_deadline(deadline, time.monotonic(), self._interval_seconds())
