"""
Logging setup for the kiosk process.

The kiosk runs unattended for weeks, so the log file rotates by size.
"""

from __future__ import annotations

import logging
import logging.handlers
import os

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_MAX_BYTES = 10 * 1024 * 1024  # 10MB
LOG_BACKUP_COUNT = 5

# Chatty third-party loggers; the kiosk display polls the API every second.
QUIET_LOGGERS = ("uvicorn.access",)


def setup_logging(log_path: str, log_level: str = "INFO") -> None:
    """Log to a rotating log_path and the console at log_level."""
    log_dir = os.path.dirname(log_path)
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)

    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level: {log_level}")

    file_handler = logging.handlers.RotatingFileHandler(
        log_path,
        maxBytes=LOG_MAX_BYTES,
        backupCount=LOG_BACKUP_COUNT,
        encoding="utf-8",
    )

    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        handlers=[file_handler, logging.StreamHandler()],
    )

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
