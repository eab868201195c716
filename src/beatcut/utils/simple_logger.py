"""Progress-style log records for long running steps."""

import logging

# Marks progress messages in the plain log format
PROGRESS_PREFIXES = {
    'start': "▶ ",
    'update': "   · ",
    'complete': "✓ ",
}


def _log_progress(logger: logging.Logger, message: str, progress_type: str):
    if not logger.isEnabledFor(logging.INFO):
        return
    record = logger.makeRecord(
        logger.name, logging.INFO, "", 0, PROGRESS_PREFIXES[progress_type] + message, (), None
    )
    record.progress_type = progress_type
    logger.handle(record)


def log_start(logger: logging.Logger, message: str):
    """Log the start of a task."""
    _log_progress(logger, message, 'start')


def log_update(logger: logging.Logger, message: str):
    """Log a progress update."""
    _log_progress(logger, message, 'update')


def log_complete(logger: logging.Logger, message: str):
    """Log task completion."""
    _log_progress(logger, message, 'complete')
