"""Logging setup for pagecache processes.

Library modules log through ``logging.getLogger(__name__)`` and never
configure handlers themselves. Long-running processes (the refresh worker)
call :func:`setup_logging` once at startup to route the ``pagecache``
logger to stderr and, optionally, to a size-rotated log file.
"""

from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

LOGGER_NAME = "pagecache"
LOG_FORMAT = "%(asctime)s [%(levelname)-8s] %(name)s: %(message)s"


def create_rotating_handler(
    log_file: str | Path,
    max_bytes: int = 10 * 1024 * 1024,
    backup_count: int = 5,
) -> RotatingFileHandler:
    """Create a rotating file handler, creating the parent directory."""
    path = Path(log_file).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)
    return RotatingFileHandler(
        filename=str(path),
        maxBytes=max_bytes,
        backupCount=backup_count,
        encoding="utf-8",
    )


def setup_logging(level: str = "INFO", log_file: Optional[str | Path] = None) -> logging.Logger:
    """Configure the ``pagecache`` logger.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR).
        log_file: Optional path of a rotating log file.

    Returns:
        The configured package logger.
    """
    root_logger = logging.getLogger(LOGGER_NAME)
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    # Remove existing handlers to avoid duplicates on re-init
    root_logger.handlers.clear()

    formatter = logging.Formatter(LOG_FORMAT)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = create_rotating_handler(log_file)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    return root_logger
