"""Centralized logging configuration for beatcut."""

import logging
import sys
from typing import Optional, TextIO

# Libraries that log heavily at INFO/DEBUG during analysis
NOISY_LOGGERS = ("numba", "librosa", "matplotlib", "PIL", "audioread", "aiofiles")


def configure_logging(
    level: str = "INFO",
    format: Optional[str] = None,
    suppress_external: bool = True,
    stream: Optional[TextIO] = None
) -> None:
    """Configure logging for the application.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR)
        format: Custom format string, or None for default
        suppress_external: If True, suppress noisy external library logs
        stream: Output stream, stdout by default
    """
    # Default format: levelname | time | filename:lineno | message
    if format is None:
        format = "%(levelname)-5s | %(asctime)s | %(filename)s:%(lineno)d | %(message)s"

    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format=format,
        datefmt="%H:%M:%S",  # Just time, no date
        stream=stream or sys.stdout,
        force=True  # Reconfigure if already configured
    )

    if suppress_external:
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)
