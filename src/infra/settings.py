"""
Runtime settings for the grid sync scheduler.

Values come from environment variables (a .env file is loaded by the entry
point via python-dotenv). Getters read the environment on every call so
tests can override values with monkeypatch.

Environment Variables:
- PLOTLY_API_URL: Grid API base URL (default: https://api.plot.ly)
- SCHEDULER_DB_PATH: SQLite database path (default: data/scheduler.db)
- MINIMUM_REFRESH_INTERVAL: Smallest accepted refresh interval in seconds (default: 60)
- GRID_API_TIMEOUT_SECONDS: HTTP timeout for grid API calls (default: 30)
- LOG_LEVEL: Logging level (default: INFO)
- LOG_DIR: Directory for daily log files (default: logs)
"""

import logging
import os
from pathlib import Path

logger = logging.getLogger("grid_sync")

DEFAULT_PLOTLY_API_URL = "https://api.plot.ly"
DEFAULT_MINIMUM_REFRESH_INTERVAL = 60
DEFAULT_GRID_API_TIMEOUT_SECONDS = 30


def _get_env_int(key: str, default: int) -> int:
    """Get integer value from environment variable."""
    val = os.getenv(key)
    if val is not None:
        try:
            return int(val)
        except ValueError:
            logger.warning(f"[Settings] Invalid integer for {key}: {val}, using default: {default}")
    return default


def get_project_root() -> Path:
    """
    Get the project root directory.

    File is at src/infra/settings.py, so project root is 2 levels up.
    """
    return Path(__file__).parent.parent.parent.resolve()


def get_plotly_api_url() -> str:
    """Grid API base URL without a trailing slash."""
    return os.getenv("PLOTLY_API_URL", DEFAULT_PLOTLY_API_URL).rstrip("/")


def get_db_path() -> Path:
    """SQLite database holding queries, connections and users."""
    override = os.getenv("SCHEDULER_DB_PATH")
    if override:
        return Path(override)
    return get_project_root() / "data" / "scheduler.db"


def get_minimum_refresh_interval() -> int:
    return _get_env_int("MINIMUM_REFRESH_INTERVAL", DEFAULT_MINIMUM_REFRESH_INTERVAL)


def get_grid_api_timeout() -> int:
    return _get_env_int("GRID_API_TIMEOUT_SECONDS", DEFAULT_GRID_API_TIMEOUT_SECONDS)


def get_log_level() -> str:
    return os.getenv("LOG_LEVEL", "INFO").upper()


def get_log_dir() -> str:
    return os.getenv("LOG_DIR", "logs")
