"""
Logging Setup
=============
Colored console output on stderr plus one plain-text file per day under
LOG_DIR (safex_YYYYMMDD.log). Called once from main at import time.
"""
import logging
import sys
import os
from datetime import datetime

from safex.core.config import LOG_DIR

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Loggers that follow the configured level
APP_LOGGERS = ["safex", "main", "uvicorn", "uvicorn.error", "uvicorn.access"]

# Client libraries that log every request at INFO/DEBUG
NOISY_LOGGERS = ["httpx", "httpcore", "docker", "urllib3"]


class ColoredFormatter(logging.Formatter):
    """Wraps each record in the ANSI color of its level."""

    COLORS = {
        logging.DEBUG: "\x1b[36m",
        logging.INFO: "\x1b[32m",
        logging.WARNING: "\x1b[33m",
        logging.ERROR: "\x1b[31m",
        logging.CRITICAL: "\x1b[31;1m",
    }
    RESET = "\x1b[0m"

    def __init__(self):
        super().__init__(LOG_FORMAT, datefmt=DATE_FORMAT)
        self._by_level = {
            level: logging.Formatter(color + LOG_FORMAT + self.RESET, datefmt=DATE_FORMAT)
            for level, color in self.COLORS.items()
        }

    def format(self, record):
        formatter = self._by_level.get(record.levelno)
        if formatter is None:
            return super().format(record)
        return formatter.format(record)


def daily_log_path(log_dir: str) -> str:
    return os.path.join(log_dir, f"safex_{datetime.now().strftime('%Y%m%d')}.log")


def setup_logging(level=logging.INFO, log_dir: str = LOG_DIR):
    """Replace root handlers with console + daily file handlers."""
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    root_logger.setLevel(level)

    # stderr keeps uvicorn's own output and ours interleaved correctly
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(ColoredFormatter())
    root_logger.addHandler(console_handler)

    os.makedirs(log_dir, exist_ok=True)
    file_handler = logging.FileHandler(daily_log_path(log_dir), encoding="utf-8")
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    root_logger.addHandler(file_handler)

    for name in APP_LOGGERS:
        app_logger = logging.getLogger(name)
        app_logger.setLevel(level)
        app_logger.propagate = True

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    root_logger.info("Logging initialized (console + %s)", daily_log_path(log_dir))
