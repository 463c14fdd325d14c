"""Logging configuration for maintenance manager.

Operator-facing progress goes through :class:`~maintenance_manager.reporting.OperationContext`;
the stdlib logging set up here is the diagnostic channel behind it, on stderr
and optionally in a log file.
"""

import logging
import sys
from pathlib import Path

LOG_FORMAT = "%(asctime)s - %(name)s - %(threadName)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Client libraries that log every request at INFO/DEBUG
NOISY_LOGGERS = ("urllib3", "pyVmomi", "pyVim")

# Marks handlers installed by setup_logging so a later call replaces them
_HANDLER_TAG = "_maint_mgr_handler"


def _tagged(handler: logging.Handler) -> logging.Handler:
    setattr(handler, _HANDLER_TAG, True)
    return handler


def setup_logging(level: str = "INFO", log_file: Path | None = None, verbose: bool = False) -> None:
    """Configure logging for the application.

    Safe to call more than once: handlers from an earlier call are replaced,
    handlers installed by anyone else are left alone.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional path to log file, always written at DEBUG
        verbose: If True, set level to DEBUG and echo everything to stderr
    """
    if verbose:
        level = "DEBUG"

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))
    for handler in [h for h in root_logger.handlers if getattr(h, _HANDLER_TAG, False)]:
        root_logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    # stderr only carries warnings unless verbose
    console_handler = _tagged(logging.StreamHandler(sys.stderr))
    console_handler.setLevel(logging.DEBUG if verbose else logging.WARNING)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        try:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            file_handler = _tagged(logging.FileHandler(log_file))
        except OSError as e:
            root_logger.warning(f"Failed to create log file handler for {log_file}: {e}")
        else:
            file_handler.setLevel(logging.DEBUG)
            file_handler.setFormatter(formatter)
            root_logger.addHandler(file_handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance (typically ``get_logger(__name__)``)."""
    return logging.getLogger(name)
