"""Configuration management from environment variables."""

import os
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv

from alarmstacks.utils.constants import (
    DEFAULT_SNOOZE_MINUTES,
    DEFAULT_TIMEZONE,
    MIN_LEAD_SECONDS,
)

# Load .env file if it exists
load_dotenv()


class Config:
    """Application configuration loaded from environment variables."""

    # Database
    DATABASE_PATH: Path = Path(os.getenv("DATABASE_PATH", "./data/alarmstacks.db"))

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Calendar used when a caller does not pass one
    TIMEZONE: str = os.getenv("TIMEZONE", DEFAULT_TIMEZONE)

    # Engine
    MIN_LEAD_SECONDS: int = int(os.getenv("MIN_LEAD_SECONDS", str(MIN_LEAD_SECONDS)))
    DEFAULT_SNOOZE_MINUTES: int = int(
        os.getenv("DEFAULT_SNOOZE_MINUTES", str(DEFAULT_SNOOZE_MINUTES))
    )

    @classmethod
    def validate(cls) -> None:
        """Validate configuration."""
        try:
            ZoneInfo(cls.TIMEZONE)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"Unknown TIMEZONE: {cls.TIMEZONE!r}")

        if cls.MIN_LEAD_SECONDS < 0:
            raise ValueError("MIN_LEAD_SECONDS must not be negative")

        if cls.DEFAULT_SNOOZE_MINUTES <= 0:
            raise ValueError("DEFAULT_SNOOZE_MINUTES must be positive")

        # Ensure database directory exists
        cls.DATABASE_PATH.parent.mkdir(parents=True, exist_ok=True)
