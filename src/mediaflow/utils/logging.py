"""Logging utilities for mediaflow."""

from __future__ import annotations

import logging
import sys
from typing import TextIO

# Client libraries that log every RPC at INFO
NOISY_LOGGERS = (
    "google",
    "google.api_core",
    "google.auth",
    "urllib3",
)


def get_logger(
    name: str = "mediaflow",
    level: int = logging.INFO,
    stream: TextIO = sys.stderr,
) -> logging.Logger:
    """Get a configured logger for mediaflow.

    Args:
        name: Logger name.
        level: Logging level.
        stream: Output stream.

    Returns:
        Configured logger instance.
    """
    logger = logging.getLogger(name)

    if not logger.handlers:
        handler = logging.StreamHandler(stream)
        handler.setLevel(level)

        formatter = logging.Formatter(
            fmt="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%H:%M:%S",
        )
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    logger.setLevel(level)
    return logger


def configure_logging(level: int | str = logging.INFO) -> logging.Logger:
    """Configure the package logger and quiet the Google client libraries.

    Args:
        level: Logging level, as an int or a name such as ``"DEBUG"``.

    Returns:
        The configured ``mediaflow`` logger.
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logger = get_logger(level=level)
    for handler in logger.handlers:
        handler.setLevel(level)
    return logger
