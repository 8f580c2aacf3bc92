"""Loguru setup for the command line."""

from __future__ import annotations

import sys
from typing import Any

from loguru import logger

LOG_FORMAT = "<green>{time:HH:mm:ss}</green> <level>{level: <7}</level> {extra[source]} | {message}"


def configure_logging(debug: bool = False, sink=None) -> None:
    """Replace loguru's default handler with one at INFO, or DEBUG when asked."""
    logger.remove()
    logger.configure(extra={"source": "-"})
    logger.add(sink or sys.stderr, level="DEBUG" if debug else "INFO", format=LOG_FORMAT)


def bind_context(**kwargs: Any):
    """Return a logger with bound contextual fields (source/run)."""
    return logger.bind(**{k: v for k, v in kwargs.items() if v is not None})
