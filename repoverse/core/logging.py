"""Logging setup shared by every repoverse module."""
from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
import os
import sys
from pathlib import Path

PACKAGE_LOGGER = "repoverse"
LOG_DIR = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config")) / "repoverse" / "logs"
LOG_FILE = LOG_DIR / "repoverse.log"
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def configure_logging(level: int = logging.INFO, log_file: Path | None = None) -> logging.Logger:
    """Attach console and rotating file handlers to the ``repoverse`` logger.

    Records still propagate to the root logger so a host application can
    collect them. When the log directory is not writable only the console
    handler is installed.
    """

    package_logger = logging.getLogger(PACKAGE_LOGGER)
    package_logger.setLevel(level)
    if package_logger.handlers:
        return package_logger

    formatter = logging.Formatter(LOG_FORMAT)
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    package_logger.addHandler(console_handler)

    target = log_file or LOG_FILE
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(target, maxBytes=512_000, backupCount=5)
    except OSError as exc:
        package_logger.warning("File logging disabled, cannot write %s: %s", target, exc)
    else:
        file_handler.setFormatter(formatter)
        package_logger.addHandler(file_handler)
    return package_logger


def get_logger(name: str) -> logging.Logger:
    """Module logger; configures the package logger on first use."""

    if not logging.getLogger(PACKAGE_LOGGER).handlers:
        configure_logging()
    return logging.getLogger(name)
