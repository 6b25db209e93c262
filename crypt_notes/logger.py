"""Application logging utilities."""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

from .config import get_log_dir

_LOG_FILE_NAME = "crypt-notes.log"


def configure_logging(level: str = "INFO", log_file: Path | None = None) -> logging.Logger:
    """Configure a rotating log file for the crypt_notes package.

    curses owns the terminal while the app runs, so nothing is logged to a stream.
    """
    logger = logging.getLogger("crypt_notes")
    logger.setLevel(level)
    if logger.handlers:
        return logger

    if log_file is None:
        log_file = get_log_dir() / _LOG_FILE_NAME
    log_file.parent.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        log_file,
        maxBytes=1_048_576,
        backupCount=5,
        encoding="utf-8",
    )
    formatter = logging.Formatter(
        fmt="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)
    logger.propagate = False

    logger.info("Logger initialised; logs available at %s", handler.baseFilename)
    return logger
