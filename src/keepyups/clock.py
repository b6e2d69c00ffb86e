"""Wall-clock access for the challenge engine."""

import time
from abc import ABC, abstractmethod
from datetime import date


class Clock(ABC):
    """Source of the current timestamp and calendar date."""

    @abstractmethod
    def now_ms(self) -> int:
        """Current time as epoch milliseconds."""

    @abstractmethod
    def today(self) -> str:
        """Current local calendar date as YYYY-MM-DD."""


class SystemClock(Clock):
    """Clock backed by the host's system time, local timezone."""

    def now_ms(self) -> int:
        return int(time.time() * 1000)

    def today(self) -> str:
        return date.today().isoformat()
