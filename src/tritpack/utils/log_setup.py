"""Process-wide logging setup for the converter CLI.

Why: Library modules only call ``logging.getLogger(__name__)``; handlers are
attached once, at process start, by whoever owns the process. The CLI owns it
and wants a full DEBUG trace in the log file plus warnings (or INFO when verbose)
on stderr.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

PACKAGE_LOGGER = "tritpack"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(log_file: str | Path | None = None, verbose: bool = False) -> logging.Logger:
    """Attach stderr and optional file handlers to the package logger.

    Args:
        log_file: File receiving DEBUG-level records; parent directories are created
        verbose: Show INFO records on stderr instead of WARNING and above

    Returns:
        The configured ``tritpack`` logger

    Calling again replaces the handlers installed by a previous call.
    """
    logger = logging.getLogger(PACKAGE_LOGGER)
    close_logging(logger)

    logger.setLevel(logging.DEBUG)
    logger.propagate = False

    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.setLevel(logging.INFO if verbose else logging.WARNING)
    stream_handler.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
    # Fatal errors reach stderr through the CLI's own message
    stream_handler.addFilter(lambda record: record.levelno < logging.ERROR)
    logger.addHandler(stream_handler)

    if log_file is not None:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, mode="w", encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(file_handler)

    return logger


def close_logging(logger: logging.Logger | None = None) -> None:
    """Detach and close every handler on the package logger and re-enable propagation."""
    logger = logger or logging.getLogger(PACKAGE_LOGGER)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = True
