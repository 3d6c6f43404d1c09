"""Structured logging configuration for concert-sync."""

import logging
import sys
from pathlib import Path
from typing import Literal

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR"]

BASE_LOGGER = "concert_sync"


def setup_logging(
    level: LogLevel = "INFO",
    log_file: Path | None = None,
    console_level: LogLevel = "WARNING",
) -> logging.Logger:
    """Configure and return the application logger.

    Args:
        level: Logging level for the application logger and file output.
        log_file: Optional path to log file.
        console_level: Logging level for stderr output.

    Returns:
        Configured logger instance.
    """
    logger = logging.getLogger(BASE_LOGGER)
    logger.setLevel(getattr(logging, level))

    if logger.handlers:
        return logger

    formatter = logging.Formatter(
        fmt="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(getattr(logging, console_level))
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(getattr(logging, level))
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


def get_logger(name: str | None = None) -> logging.Logger:
    """Get a logger instance.

    Args:
        name: Optional child logger name.

    Returns:
        Logger instance.
    """
    if name:
        return logging.getLogger(f"{BASE_LOGGER}.{name}")
    return logging.getLogger(BASE_LOGGER)
