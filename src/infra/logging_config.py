"""
Logging configuration module.

Daily log rotation with process start time tracking.
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

LOGGER_NAME = "grid_sync"

# Process start time is captured once and reused for all daily logs
_PROCESS_START_TIME: Optional[str] = None


def _today() -> str:
    return datetime.now().strftime("%Y%m%d")


class DailyRotatingFileHandler(logging.FileHandler):
    """
    File handler that switches files at midnight.

    Files are named logs/grid_sync_<YYYYMMDD>_<START_HHMMSS>.log. The
    HHMMSS part is the process start time and stays fixed, so every file
    written by one process shares it.
    """

    def __init__(self, log_dir: str = "logs", encoding: str = "utf-8"):
        global _PROCESS_START_TIME

        if _PROCESS_START_TIME is None:
            _PROCESS_START_TIME = datetime.now().strftime("%H%M%S")

        self.log_dir = Path(log_dir)
        self.log_dir.mkdir(parents=True, exist_ok=True)
        self._start_hhmmss = _PROCESS_START_TIME
        self._current_date = _today()

        super().__init__(self._path_for(self._current_date), mode='a', encoding=encoding)

    def _path_for(self, date_str: str) -> str:
        return str(self.log_dir / f"{LOGGER_NAME}_{date_str}_{self._start_hhmmss}.log")

    def emit(self, record: logging.LogRecord) -> None:
        """Write record, reopening on a new file first if the day changed."""
        today = _today()
        if today != self._current_date:
            self.close()
            self.baseFilename = self._path_for(today)
            self._current_date = today
            self.stream = self._open()

        super().emit(record)


def setup_logging(log_level: str = "INFO", log_dir: str = "logs") -> logging.Logger:
    """
    Configure logging and return the application logger.

    Module loggers (src.scheduler.*, src.connectors.*, ...) are attached to
    the same handlers through the root "src" logger.

    Args:
        log_level (str): Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_dir (str): Directory for daily log files

    Returns:
        logging.Logger: Configured logger instance
    """
    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')

    console_handler = logging.StreamHandler()
    console_handler.setLevel(numeric_level)
    console_handler.setFormatter(formatter)

    file_handler = DailyRotatingFileHandler(log_dir=log_dir, encoding='utf-8')
    file_handler.setLevel(numeric_level)
    file_handler.setFormatter(formatter)

    for name in (LOGGER_NAME, "src"):
        configured = logging.getLogger(name)
        configured.setLevel(numeric_level)
        # Prevent propagation to root logger (avoid duplicate logs)
        configured.propagate = False
        if configured.handlers:
            configured.handlers.clear()
        configured.addHandler(console_handler)
        configured.addHandler(file_handler)

    logger = logging.getLogger(LOGGER_NAME)
    logger.info(f"Logging started - level: {log_level}, log file: {file_handler.baseFilename}")

    return logger
