"""Logging setup shared by the server and the desktop tools."""
from __future__ import annotations

import logging
import logging.handlers
import os
from typing import Optional

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    fmt: str = DEFAULT_FORMAT,
) -> None:
    """
    Configure the root logger with a console handler and, if ``log_file`` is
    given, a rotating file handler (1MB, 5 backups).
    """
    logger = logging.getLogger()
    logger.setLevel(level.upper())

    # Clear existing handlers to avoid duplication
    if logger.hasHandlers():
        logger.handlers.clear()

    formatter = logging.Formatter(fmt)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_file, maxBytes=1024 * 1024, backupCount=5
        )
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    logging.debug(f"Log level set to {level.upper()}, log file: {log_file}")
