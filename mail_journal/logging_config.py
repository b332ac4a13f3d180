"""Loguru logging setup for the journal loop."""

import os
import sys

from loguru import logger

# Timestamps are UTC so they line up with utc_reminder_hour
LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss!UTC}Z</green> | "
    "<level>{level: <7}</level> | "
    "<cyan>{name}</cyan>:<cyan>{line}</cyan> | {message}"
)


def setup_logging(level: str | None = None) -> None:
    """Route loguru to stderr at ``level``.

    Without an explicit level, ``MAIL_JOURNAL_LOG_LEVEL`` and then ``LOG_LEVEL``
    are consulted before falling back to INFO.
    """
    if level is None:
        level = os.environ.get("MAIL_JOURNAL_LOG_LEVEL") or os.environ.get("LOG_LEVEL", "INFO")

    logger.remove()
    logger.add(
        sys.stderr,
        format=LOG_FORMAT,
        level=level.upper(),
        colorize=sys.stderr.isatty(),
        backtrace=level.upper() == "DEBUG",
        diagnose=False,
    )
