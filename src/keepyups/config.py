"""Configuration management for keepyups.

Loads configuration from environment variables and provides defaults.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import ValidationError

from .challenge.schemas import (
    DEFAULT_DAILY_TARGET,
    DEFAULT_OVERALL_TARGET,
    DEFAULT_REMAINING_TO_GOAL,
    DEFAULT_TICK_RATE_MS,
    ChallengeDefaults,
)

# Load .env file if present
load_dotenv()

DEFAULT_HOME = Path.home() / ".keepyups"


@dataclass
class Config:
    """Application configuration."""

    # Storage
    store_kind: str  # sqlite or json
    db_path: Path
    state_file: Path

    # New challenge defaults
    daily_target: int
    tick_rate_ms: int
    overall_target: int
    remaining_to_goal: int

    # Logging
    log_level: str

    @classmethod
    def from_env(cls) -> "Config":
        """Load configuration from environment variables."""
        return cls(
            store_kind=os.environ.get("KEEPYUPS_STORE", "sqlite").lower(),
            db_path=Path(
                os.environ.get("KEEPYUPS_DB_PATH", str(DEFAULT_HOME / "keepyups.db"))
            ).expanduser(),
            state_file=Path(
                os.environ.get("KEEPYUPS_STATE_FILE", str(DEFAULT_HOME / "state.json"))
            ).expanduser(),
            daily_target=int(
                os.environ.get("KEEPYUPS_DAILY_TARGET", str(DEFAULT_DAILY_TARGET))
            ),
            tick_rate_ms=int(
                os.environ.get("KEEPYUPS_TICK_RATE_MS", str(DEFAULT_TICK_RATE_MS))
            ),
            overall_target=int(
                os.environ.get("KEEPYUPS_OVERALL_TARGET", str(DEFAULT_OVERALL_TARGET))
            ),
            remaining_to_goal=int(
                os.environ.get("KEEPYUPS_REMAINING", str(DEFAULT_REMAINING_TO_GOAL))
            ),
            log_level=os.environ.get("KEEPYUPS_LOG_LEVEL", "WARNING").upper(),
        )

    def challenge_defaults(self) -> ChallengeDefaults:
        """Settings for a brand new challenge."""
        return ChallengeDefaults(
            daily_target=self.daily_target,
            tick_interval_ms=self.tick_rate_ms,
            overall_target=self.overall_target,
            remaining_to_goal=self.remaining_to_goal,
        )

    def validate(self) -> list[str]:
        """Validate configuration, return list of errors."""
        errors = []

        if self.store_kind not in ("sqlite", "json"):
            errors.append(f"Unknown store kind: {self.store_kind}")

        try:
            self.challenge_defaults()
        except ValidationError as e:
            for error in e.errors():
                field = ".".join(str(part) for part in error["loc"]) or "defaults"
                errors.append(f"Invalid {field}: {error['msg']}")

        # Check storage directory is writable
        storage_path = self.db_path if self.store_kind == "sqlite" else self.state_file
        if not storage_path.parent.exists():
            try:
                storage_path.parent.mkdir(parents=True, exist_ok=True)
            except OSError:
                errors.append(f"Cannot create storage directory: {storage_path.parent}")
        elif not storage_path.parent.is_dir():
            errors.append(f"Storage path is not a directory: {storage_path.parent}")

        return errors


# Global config instance
_config: Optional[Config] = None


def get_config() -> Config:
    """Get or create the global config instance."""
    global _config
    if _config is None:
        _config = Config.from_env()
    return _config


def reset_config() -> None:
    """Reset the global config instance. Used for testing."""
    global _config
    _config = None
