"""Keepy-ups challenge module.

Provides functionality for:
- Counting ticks toward the daily keepy-ups target
- Batching ticks into larger counter steps
- Rolling the challenge forward across days
- Catching up progress missed while the app was closed
"""

from .engine import ChallengeEngine, build_engine
from .schemas import (
    TOTAL_DAYS,
    BatchSize,
    ChallengeDefaults,
    ChallengeMode,
    ChallengeProgress,
    ChallengeState,
)

__all__ = [
    "ChallengeEngine",
    "build_engine",
    "TOTAL_DAYS",
    "BatchSize",
    "ChallengeDefaults",
    "ChallengeMode",
    "ChallengeProgress",
    "ChallengeState",
]
