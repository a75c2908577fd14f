"""Application configuration management."""

import os
from typing import Optional


def _int_env(name: str, default: int) -> int:
    """Get integer environment variable with fallback."""
    try:
        return int(os.getenv(name, str(default)))
    except ValueError:
        return default


def _float_env(name: str, default: float) -> float:
    """Get float environment variable with fallback."""
    try:
        return float(os.getenv(name, str(default)))
    except ValueError:
        return default


def _optional_env(name: str) -> Optional[str]:
    """Get a stripped environment variable, treating blanks as unset."""
    val = os.getenv(name)
    if val is None:
        return None
    val = val.strip()
    return val or None


class Config:
    """Application configuration."""

    # Data store
    STORE_URL = _optional_env("TCMS_STORE_URL")
    STORE_KEY = _optional_env("TCMS_STORE_KEY")
    ACCESS_TOKEN = _optional_env("TCMS_ACCESS_TOKEN")
    USER_ID = _optional_env("TCMS_USER_ID")

    # Execution view
    PAGE_SIZE = max(1, _int_env("PAGE_SIZE", 20))
    SEARCH_DEBOUNCE_MS = max(0, _int_env("SEARCH_DEBOUNCE_MS", 300))
    EXECUTIONS_TIMEOUT_SECONDS = max(0.1, _float_env("EXECUTIONS_TIMEOUT_SECONDS", 10.0))
    NOTIFICATION_HISTORY = max(10, _int_env("NOTIFICATION_HISTORY", 50))

    # Cache Configuration
    FILTER_DATA_CACHE_TTL = _int_env("FILTER_DATA_CACHE_TTL", 300)
    VIEW_CACHE_TTL = _int_env("VIEW_CACHE_TTL", 900)
    VIEW_CACHE_MAXSIZE = max(1, _int_env("VIEW_CACHE_MAXSIZE", 64))

    @property
    def search_debounce_seconds(self) -> float:
        return self.SEARCH_DEBOUNCE_MS / 1000.0


# Global configuration instance
config = Config()
