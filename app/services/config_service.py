"""
Configuration service for reading settings from the environment.
"""

import logging
import os
from datetime import datetime
from typing import Any, Optional

from app.models.timestamps import utcnow

logger = logging.getLogger("app.config")


class ConfigService:
    """Service for managing application configuration."""

    def __init__(self):
        self._cache: dict[str, Any] = {}

    def get_setting(self, key: str, default: Any = None) -> Any:
        """
        Get setting value from the environment.

        Priority: Override > Environment > Default
        """
        if key in self._cache:
            return self._cache[key]

        value = os.getenv(key, default)
        self._cache[key] = value

        logger.debug(f"Retrieved setting {key}={value}")
        return value

    def get_int(self, key: str, default: int) -> int:
        """Get an integer setting, falling back to default on garbage."""
        value = self.get_setting(key, default)
        try:
            return int(value)
        except (TypeError, ValueError):
            logger.warning(f"Invalid integer for {key}: {value}, using {default}")
            return default

    def get_bool(self, key: str, default: bool = False) -> bool:
        value = self.get_setting(key, "true" if default else "false")
        return str(value).lower() in ("1", "true", "yes", "on")

    def set_setting(self, key: str, value: Any) -> None:
        """
        Override a setting for the lifetime of the process.
        """
        self._cache[key] = value
        logger.info(f"Set setting {key}={value}")

    def reset(self) -> None:
        """Forget cached settings so the environment is read again."""
        self._cache.clear()

    def is_fake_time_enabled(self) -> bool:
        return self.get_setting("APP_NOW_MODE", "real") == "fake"

    def get_fake_time(self) -> Optional[datetime]:
        """APP_FAKE_NOW (YYYY-MM-DD) when fake mode is on and the value parses."""
        if not self.is_fake_time_enabled():
            return None

        raw = self.get_setting("APP_FAKE_NOW")
        if not raw:
            return None
        try:
            return datetime.strptime(raw, "%Y-%m-%d")
        except ValueError:
            logger.warning(f"Invalid APP_FAKE_NOW format: {raw}, using real time")
            return None

    def now(self) -> datetime:
        """
        Current time as naive UTC, or the fake date in APP_NOW_MODE=fake.

        Batch timestamps are all taken from here so tests can pin the clock.
        """
        fake = self.get_fake_time()
        if fake is not None:
            return fake
        return utcnow()


# Global instance
config_service = ConfigService()
