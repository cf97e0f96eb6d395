"""Structured logging configuration for the scraping engine.

This module provides colored console logging and rotating file logging
with timing helpers used around browser operations.

Engine records are one line each: an upper-case event tag, the subject
(usually the site) and ``key=value`` fields, e.g.::

    ENGINE_SUCCESS: OLX pageType=CONTENT ads=12 selector=li.card authSource=anonymous

``format_fields`` and ``log_event`` build those lines so every event renders
its values the same way and the file log stays grep-able.
"""

import logging
import os
import time
from contextlib import contextmanager
from logging.handlers import RotatingFileHandler
from pathlib import Path
from enum import Enum
from typing import Any, Mapping, Optional

try:
    import colorlog
    HAS_COLORLOG = True
except ImportError:
    HAS_COLORLOG = False


CONSOLE_FORMAT = "%(levelname)-8s %(name)s - %(message)s"
CONSOLE_FORMAT_COLOR = "%(log_color)s%(levelname)-8s%(reset)s %(blue)s%(name)s%(reset)s - %(message)s"
FILE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

LOG_FILE_NAME = "radar_engine.log"

NULL_FIELD = "NONE"


def _setup_console_handler(level: int) -> logging.Handler:
    """Create and configure console handler with optional color support.

    Args:
        level: Logging level

    Returns:
        Configured console handler
    """
    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)

    if HAS_COLORLOG:
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
    else:
        formatter = logging.Formatter(CONSOLE_FORMAT, datefmt=DATE_FORMAT)

    console_handler.setFormatter(formatter)
    return console_handler


def _setup_file_handler(level: int, log_dir: Optional[Path] = None) -> logging.Handler:
    """Create and configure rotating file handler.

    Args:
        level: Logging level
        log_dir: Directory for log files (default: LOG_DIR env var or logs/)

    Returns:
        Configured rotating file handler
    """
    if log_dir is None:
        env_log_dir = os.environ.get('LOG_DIR')
        if env_log_dir:
            log_dir = Path(env_log_dir)
        else:
            project_root = Path(__file__).parent.parent.parent
            log_dir = project_root / "logs"

    log_dir.mkdir(parents=True, exist_ok=True)

    log_file = log_dir / LOG_FILE_NAME

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
              If None, uses LOG_LEVEL environment variable, defaulting to INFO.

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)

    # Only configure if logger has no handlers (avoid duplicate handlers)
    if not logger.handlers:
        if level is not None:
            log_level_str = level.upper()
        else:
            log_level_str = os.environ.get('LOG_LEVEL', 'INFO').upper()
        log_level = getattr(logging, log_level_str, logging.INFO)

        logger.setLevel(log_level)
        logger.addHandler(_setup_console_handler(log_level))
        logger.addHandler(_setup_file_handler(log_level, log_dir))

        # Keep engine lines out of the host application's root handlers
        logger.propagate = False

    return logger


def log_performance(logger: logging.Logger, operation: str, duration: float) -> None:
    """Log performance metrics for an operation.

    Args:
        logger: Logger instance
        operation: Name of the operation
        duration: Duration in seconds
    """
    logger.info(f"Performance: {operation} completed in {duration:.3f}s")


@contextmanager
def log_execution_time(logger: logging.Logger, operation: str):
    """Context manager to automatically log operation execution time.

    Args:
        logger: Logger instance
        operation: Name of the operation

    Usage:
        with log_execution_time(logger, "site registry load"):
            registry = load_site_registry(path)
    """
    logger.debug(f"Starting: {operation}")
    start_time = time.time()

    try:
        yield
    finally:
        log_performance(logger, operation, time.time() - start_time)


def set_log_level(logger: logging.Logger, level: str) -> None:
    """Change the log level of a logger and all its handlers.

    Args:
        logger: Logger instance
        level: New log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    level_upper = level.upper()
    log_level = getattr(logging, level_upper, logging.INFO)

    logger.setLevel(log_level)
    for handler in logger.handlers:
        handler.setLevel(log_level)

    logger.info(f"Log level changed to {level_upper}")


def log_exception(logger: logging.Logger, operation: str, exception: Exception) -> None:
    """Log an exception with context.

    Args:
        logger: Logger instance
        operation: Name of the operation that failed
        exception: The exception that was raised
    """
    logger.error(f"Failed: {operation}: {exception}", exc_info=True)


def _format_value(value: Any) -> str:
    if value is None:
        return NULL_FIELD
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, Enum):
        return _format_value(value.value)
    if isinstance(value, float):
        return f"{value:.3f}"
    if isinstance(value, Mapping):
        pairs = ",".join(f"{k}:{_format_value(v)}" for k, v in sorted(value.items()))
        return "{" + pairs + "}"
    text = str(value)
    if not text or any(ch.isspace() for ch in text) or '"' in text:
        return '"' + text.replace('"', '\\"') + '"'
    return text


def format_fields(**fields: Any) -> str:
    """Render keyword fields as space-separated ``key=value`` pairs.

    Fields keep their keyword order. None renders as ``NONE``, booleans in
    lower case, floats with three decimals and mappings as ``{k:v,k:v}``
    sorted by key. Text that is empty or holds whitespace or quotes is
    double-quoted.

    Args:
        **fields: Field names and values

    Returns:
        Formatted field string (empty when no fields are given)
    """
    return " ".join(f"{key}={_format_value(value)}" for key, value in fields.items())


def log_event(
    logger: logging.Logger,
    event: str,
    subject: str,
    level: int = logging.INFO,
    **fields: Any,
) -> None:
    """Log one structured engine record: ``EVENT: subject key=value ...``.

    Args:
        logger: Logger instance
        event: Upper-case event tag (e.g. ENGINE_SUCCESS)
        subject: What the record is about, usually the site
        level: Logging level
        **fields: Fields passed to format_fields
    """
    rendered = format_fields(**fields)
    message = f"{event}: {subject} {rendered}" if rendered else f"{event}: {subject}"
    logger.log(level, message)
