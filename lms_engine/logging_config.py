"""Logging configuration helpers for the engine."""

from __future__ import annotations

import logging
from logging import Logger

from lms_engine.config import LOG_LEVEL


def configure_logging(level: str | None = None) -> Logger:
    """Configure basic logging for the application and return the package logger."""
    resolved = getattr(logging, (level or LOG_LEVEL).upper(), logging.INFO)
    logging.basicConfig(
        level=resolved,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )
    logger = logging.getLogger("lms_engine")
    logger.setLevel(resolved)
    return logger
