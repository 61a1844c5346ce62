"""Structured logging configuration for the CastMatch service.

This module provides colored console logging and rotating file logging
with execution timing helpers.
"""

import logging
import os
import time
from contextlib import contextmanager
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

import colorlog


CONSOLE_FORMAT_COLOR = "%(log_color)s%(levelname)-8s%(reset)s %(blue)s%(name)s%(reset)s - %(message)s"
FILE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Set by configure_logging(); consulted before the environment
_defaults: dict[str, Optional[str]] = {"level": None, "log_dir": None}


def _setup_console_handler(level: int) -> logging.Handler:
    """Create and configure colored console handler.

    Args:
        level: Logging level

    Returns:
        Configured console handler
    """
    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)

    formatter = colorlog.ColoredFormatter(
        CONSOLE_FORMAT_COLOR,
        datefmt=DATE_FORMAT,
        log_colors={
            'DEBUG': 'cyan',
            'INFO': 'green',
            'WARNING': 'yellow',
            'ERROR': 'red',
            'CRITICAL': 'red,bg_white',
        }
    )

    console_handler.setFormatter(formatter)
    return console_handler


def _setup_file_handler(level: int, log_dir: Optional[Path] = None) -> logging.Handler:
    """Create and configure rotating file handler.

    Args:
        level: Logging level
        log_dir: Directory for log files (default: configured dir, CASTMATCH_LOG_DIR or logs/)

    Returns:
        Configured rotating file handler
    """
    if log_dir is None:
        env_dir = _defaults["log_dir"] or os.environ.get('CASTMATCH_LOG_DIR')
        if env_dir:
            log_dir = Path(env_dir)
        else:
            project_root = Path(__file__).parent.parent.parent
            log_dir = project_root / "logs"

    log_dir.mkdir(parents=True, exist_ok=True)

    log_file = log_dir / "castmatch.log"

    # Rotating file handler: max 10MB, keep 5 backup files
    file_handler = RotatingFileHandler(
        log_file,
        maxBytes=10 * 1024 * 1024,
        backupCount=5,
        encoding='utf-8'
    )
    file_handler.setLevel(level)

    formatter = logging.Formatter(FILE_FORMAT, datefmt=DATE_FORMAT)
    file_handler.setFormatter(formatter)

    return file_handler


def get_logger(name: str, log_dir: Optional[Path] = None, level: Optional[str] = None) -> logging.Logger:
    """Get or create a logger with console and file handlers.

    Args:
        name: Logger name (typically __name__ from calling module)
        log_dir: Directory for log files (default: logs/)
        level: Log level string (DEBUG, INFO, WARNING, ERROR, CRITICAL).
              If None, uses the configured level, then the LOG_LEVEL
              environment variable, defaulting to INFO.

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)

    # Only configure if logger has no handlers (avoid duplicate handlers)
    if not logger.handlers:
        if level is not None:
            log_level_str = level.upper()
        else:
            log_level_str = (_defaults["level"] or os.environ.get('LOG_LEVEL', 'INFO')).upper()
        log_level = getattr(logging, log_level_str, logging.INFO)

        logger.setLevel(log_level)
        logger.addHandler(_setup_console_handler(log_level))
        logger.addHandler(_setup_file_handler(log_level, log_dir))

        # Prevent propagation to root logger
        logger.propagate = False

    return logger


def configure_logging(level: str, log_dir: Optional[Path | str] = None, root: str = "castmatch") -> None:
    """Apply the service configuration to existing and future loggers.

    Module loggers are created at import time, before configuration is
    loaded, so their levels are updated in place and their file handlers
    moved to `log_dir` when one is given.

    Args:
        level: Log level string
        log_dir: Directory for log files; None keeps the current one
        root: Logger namespace to reconfigure
    """
    _defaults["level"] = level.upper()
    if log_dir is not None:
        _defaults["log_dir"] = str(log_dir)
    log_level = getattr(logging, level.upper(), logging.INFO)

    for name, existing in list(logging.Logger.manager.loggerDict.items()):
        if not isinstance(existing, logging.Logger) or not existing.handlers:
            continue
        if name != root and not name.startswith(root + "."):
            continue

        existing.setLevel(log_level)
        for handler in list(existing.handlers):
            if log_dir is not None and isinstance(handler, RotatingFileHandler):
                existing.removeHandler(handler)
                handler.close()
                existing.addHandler(_setup_file_handler(log_level, Path(log_dir)))
            else:
                handler.setLevel(log_level)


@contextmanager
def log_execution_time(logger: logging.Logger, operation: str):
    """Context manager to automatically log operation execution time.

    Args:
        logger: Logger instance
        operation: Name of the operation

    Usage:
        with log_execution_time(logger, "reference cache build"):
            await builder.build()
    """
    logger.debug(f"Starting: {operation}")
    start_time = time.time()

    try:
        yield
    finally:
        duration = time.time() - start_time
        logger.debug(f"Completed: {operation} in {duration:.3f}s")


def log_exception(logger: logging.Logger, operation: str, exception: Exception) -> None:
    """Log an exception with context.

    Args:
        logger: Logger instance
        operation: Name of the operation that failed
        exception: The exception that was raised
    """
    logger.error(f"Failed: {operation}: {exception}", exc_info=True)
