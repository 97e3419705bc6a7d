"""Configuration management from environment variables."""

import os
from dataclasses import fields, replace
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv

from momentum.db.models import LearningSettings
from momentum.utils.constants import MAX_SENSITIVITY, MIN_SENSITIVITY

# Load .env file if it exists
load_dotenv()


class Config:
    """Application configuration loaded from environment variables."""

    # Telegram
    TELEGRAM_BOT_TOKEN: str = os.getenv("TELEGRAM_BOT_TOKEN", "")

    # Database
    DATABASE_PATH: Path = Path(os.getenv("DATABASE_PATH", "./data/momentum.db"))

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Engine
    HEARTBEAT_INTERVAL: int = int(os.getenv("HEARTBEAT_INTERVAL", "60"))

    # Learning defaults for new users
    DEFAULT_TIMEZONE: str = os.getenv("DEFAULT_TIMEZONE", "UTC")
    DEFAULT_SENSITIVITY: float = float(os.getenv("DEFAULT_SENSITIVITY", "0.3"))

    @classmethod
    def validate(cls) -> None:
        """Validate required configuration."""
        if not cls.TELEGRAM_BOT_TOKEN:
            raise ValueError("TELEGRAM_BOT_TOKEN environment variable is required")

        try:
            ZoneInfo(cls.DEFAULT_TIMEZONE)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"Unknown DEFAULT_TIMEZONE: {cls.DEFAULT_TIMEZONE}")

        if not 0 < cls.DEFAULT_SENSITIVITY < 1:
            raise ValueError("DEFAULT_SENSITIVITY must be between 0 and 1")

        # Ensure database directory exists
        cls.DATABASE_PATH.parent.mkdir(parents=True, exist_ok=True)

    @classmethod
    def default_settings(cls) -> LearningSettings:
        """Learning settings for a user who has not changed anything yet."""
        return LearningSettings(
            is_enabled=True,
            sensitivity=cls.DEFAULT_SENSITIVITY,
            timezone=cls.DEFAULT_TIMEZONE,
        )


def clamp_sensitivity(value: float) -> float:
    """Keep the EWMA smoothing factor inside the range the settings allow."""
    return round(min(MAX_SENSITIVITY, max(MIN_SENSITIVITY, value)), 2)


def merge_settings(base: LearningSettings, overrides: dict) -> LearningSettings:
    """Apply a partial settings mapping on top of ``base``.

    Unknown keys are ignored and ``None`` values keep the base value, so a
    settings blob written by an older version still loads.
    """
    known = {f.name for f in fields(LearningSettings)}
    changes = {
        key: value
        for key, value in overrides.items()
        if key in known and value is not None
    }

    if "sensitivity" in changes:
        changes["sensitivity"] = clamp_sensitivity(float(changes["sensitivity"]))
    if "is_enabled" in changes:
        changes["is_enabled"] = bool(changes["is_enabled"])

    return replace(base, **changes)
