"""Logging setup for releasegate.

Modules log through ``logging.getLogger(__name__)``; the entry point
attaches handlers once to the ``releasegate`` package logger so every
workflow module propagates to it.
"""

import logging
import logging.handlers
import os
import sys
from typing import List, Optional

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

DEFAULT_FORMAT = "%(asctime)s [%(levelname)s] [%(name)s] %(message)s"
ISO_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S"


def _handlers(
    name: str,
    log_dir: str,
    file_logging: bool,
    console_logging: bool,
    max_bytes: int,
    backup_count: int,
) -> List[logging.Handler]:
    handlers: List[logging.Handler] = []
    if file_logging:
        os.makedirs(log_dir, exist_ok=True)
        handlers.append(logging.handlers.RotatingFileHandler(
            os.path.join(log_dir, f"{name}.log"),
            maxBytes=max_bytes,
            backupCount=backup_count,
        ))
    if console_logging:
        # stdout carries CLI results
        handlers.append(logging.StreamHandler(sys.stderr))
    return handlers


def setup_logger(
    name: str,
    log_dir: str = "./logs",
    level: str = "INFO",
    log_format: Optional[str] = None,
    file_logging: bool = True,
    console_logging: bool = True,
    max_bytes: int = 10485760,  # 10MB
    backup_count: int = 5,
) -> logging.Logger:
    """Attach rotating file and console handlers to a logger.

    Calling it again only updates the level; handlers are attached once.

    Args:
        name: Logger name, normally the ``releasegate`` package logger
        log_dir: Directory for ``<name>.log``
        level: DEBUG, INFO, WARNING, ERROR or CRITICAL (any case)
        log_format: Format string, ISO 8601 timestamps by default
        file_logging: Write to a rotating log file
        console_logging: Write to stderr
        max_bytes: Size at which the log file rotates
        backup_count: Rotated files to keep

    Raises:
        ValueError: If the level name is unknown
    """
    level_name = level.upper()
    if level_name not in LOG_LEVELS:
        raise ValueError(f"Invalid log level: {level}. Must be one of: {', '.join(LOG_LEVELS)}")

    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, level_name))

    if logger.handlers:
        return logger

    formatter = logging.Formatter(log_format or DEFAULT_FORMAT, datefmt=ISO_DATE_FORMAT)
    for handler in _handlers(name, log_dir, file_logging, console_logging, max_bytes, backup_count):
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    return logger


def setup_from_settings(settings) -> logging.Logger:
    """Configure the package logger from ``Settings``."""
    return setup_logger(
        "releasegate",
        log_dir=settings.log_dir,
        level="DEBUG" if settings.debug else settings.log_level,
        file_logging=settings.file_logging,
    )
