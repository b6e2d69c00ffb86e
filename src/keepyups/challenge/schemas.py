"""Pydantic schemas for the keepy-ups challenge state."""

import json
from datetime import date
from enum import Enum, IntEnum
from typing import Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_serializer,
    field_validator,
    model_validator,
)

from ..exceptions import MalformedSnapshot

# Challenge length in days
TOTAL_DAYS = 25

DEFAULT_DAILY_TARGET = 40000
DEFAULT_TICK_RATE_MS = 360  # 1000 keepy-ups per 6 minutes
DEFAULT_OVERALL_TARGET = 1000000
DEFAULT_REMAINING_TO_GOAL = 40000

MAX_DAILY_TARGET = 100000
MAX_OVERALL_TARGET = 10000000
MIN_TICK_RATE_MS = 50
MAX_TICK_RATE_MS = 5000


class ChallengeMode(str, Enum):
    """Direction the counter moves in."""

    COUNT_DOWN = "down"  # From the daily target to zero
    COUNT_UP = "up"  # From overall target minus remaining, up to the overall target


class BatchSize(IntEnum):
    """How many ticks make up one counter change."""

    SINGLE = 1
    HUNDRED = 100
    THOUSAND = 1000


def _check_date(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    date.fromisoformat(value)
    return value


class ChallengeDefaults(BaseModel):
    """Settings used when a challenge is created from scratch."""

    daily_target: int = Field(DEFAULT_DAILY_TARGET, ge=1, le=MAX_DAILY_TARGET)
    tick_interval_ms: int = Field(
        DEFAULT_TICK_RATE_MS, ge=MIN_TICK_RATE_MS, le=MAX_TICK_RATE_MS
    )
    overall_target: int = Field(DEFAULT_OVERALL_TARGET, ge=1, le=MAX_OVERALL_TARGET)
    remaining_to_goal: int = Field(DEFAULT_REMAINING_TO_GOAL, ge=1)
    mode: ChallengeMode = ChallengeMode.COUNT_DOWN
    batch_size: BatchSize = BatchSize.SINGLE

    @model_validator(mode="after")
    def remaining_within_goal(self):
        """Validate the remaining distance fits inside the overall target."""
        if self.remaining_to_goal > self.overall_target:
            raise ValueError("remaining_to_goal must not exceed overall_target")
        return self


class ChallengeState(BaseModel):
    """Full engine state and the unit of persistence.

    Field aliases are the names used in the stored record, so older
    snapshots written by the browser version still load.
    """

    model_config = ConfigDict(populate_by_name=True)

    counter: int = Field(DEFAULT_DAILY_TARGET, ge=0)
    current_day: int = Field(1, ge=1, le=TOTAL_DAYS, alias="currentDay")
    paused: bool = Field(True, alias="isPaused")
    daily_target: int = Field(
        DEFAULT_DAILY_TARGET, ge=1, le=MAX_DAILY_TARGET, alias="dailyStartValue"
    )
    tick_interval_ms: int = Field(
        DEFAULT_TICK_RATE_MS,
        ge=MIN_TICK_RATE_MS,
        le=MAX_TICK_RATE_MS,
        alias="tickRateMs",
    )
    last_tick_at: int = Field(0, ge=0, alias="lastTickTimestamp")
    challenge_started_on: Optional[str] = Field(None, alias="challengeStartDate")
    last_persisted_on: Optional[str] = Field(None, alias="lastDateString")
    batch_size: BatchSize = Field(BatchSize.SINGLE, alias="bulkMode")
    batch_accumulator: int = Field(0, ge=0, alias="tickCounter")
    mode: ChallengeMode = Field(ChallengeMode.COUNT_DOWN, alias="countUpMode")
    overall_target: int = Field(
        DEFAULT_OVERALL_TARGET, ge=1, le=MAX_OVERALL_TARGET, alias="targetGoal"
    )
    remaining_to_goal: int = Field(
        DEFAULT_REMAINING_TO_GOAL, ge=1, alias="keepsRemaining"
    )

    # Derived on load, never stored
    succeeded: bool = Field(False, exclude=True)

    @field_validator("mode", mode="before")
    @classmethod
    def mode_from_flag(cls, v):
        """Accept the stored boolean flag as well as the enum value."""
        if isinstance(v, bool):
            return ChallengeMode.COUNT_UP if v else ChallengeMode.COUNT_DOWN
        return v

    @field_serializer("mode")
    def mode_to_flag(self, mode: ChallengeMode) -> bool:
        return mode == ChallengeMode.COUNT_UP

    @field_validator("challenge_started_on", "last_persisted_on")
    @classmethod
    def valid_date(cls, v):
        """Validate calendar date strings."""
        return _check_date(v)

    @model_validator(mode="after")
    def consistent_fields(self):
        """Validate cross-field ranges."""
        if self.remaining_to_goal > self.overall_target:
            raise ValueError("keepsRemaining must not exceed targetGoal")
        if self.batch_accumulator >= self.batch_size:
            raise ValueError("tickCounter must be smaller than bulkMode")
        return self

    def to_record(self) -> dict:
        """Flat record using the stored field names."""
        return self.model_dump(mode="json", by_alias=True)

    def to_json(self) -> str:
        """Serialize to the stored JSON form."""
        return json.dumps(self.to_record())

    @classmethod
    def from_json(cls, raw: str) -> "ChallengeState":
        """Parse a stored JSON record.

        Raises:
            MalformedSnapshot: If the text is not JSON or does not describe
                a valid state.
        """
        try:
            data = json.loads(raw)
        except (json.JSONDecodeError, TypeError) as e:
            raise MalformedSnapshot(f"Snapshot is not valid JSON: {e}") from e
        if not isinstance(data, dict):
            raise MalformedSnapshot(
                f"Snapshot must be an object, got {type(data).__name__}"
            )
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise MalformedSnapshot(f"Snapshot has unexpected shape: {e}") from e


class ChallengeProgress(BaseModel):
    """Read-only view of the challenge for display."""

    counter: int
    formatted_counter: str
    start_value: int
    terminal_value: int
    percent: float
    overall_percent: float
    current_day: int
    total_days: int = TOTAL_DAYS
    day_label: str
    mode: ChallengeMode
    batch_size: BatchSize
    batch_accumulator: int
    tick_interval_ms: int
    paused: bool
    is_complete: bool
    show_success: bool
