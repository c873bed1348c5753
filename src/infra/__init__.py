"""
Infrastructure module - settings, logging, and the grid API client.
"""

from .settings import (
    get_project_root,
    get_plotly_api_url,
    get_db_path,
    get_minimum_refresh_interval,
    get_grid_api_timeout,
    get_log_level,
    get_log_dir,
)

from .logging_config import setup_logging

__all__ = [
    # settings
    "get_project_root",
    "get_plotly_api_url",
    "get_db_path",
    "get_minimum_refresh_interval",
    "get_grid_api_timeout",
    "get_log_level",
    "get_log_dir",
    # logging
    "setup_logging",
]
