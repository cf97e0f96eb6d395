"""Utility modules for configuration, logging, retries and error handling."""

from .config import get_config, load_config, reset_config
from .logger import (
    format_fields,
    get_logger,
    log_event,
    log_execution_time,
    log_performance,
    set_log_level,
    log_exception,
)
from .retry import (
    RETRY_PRESETS,
    RetryOutcome,
    RetryPolicy,
    get_preset,
    is_transient_error,
    retry,
    retry_with_result,
)

__all__ = [
    # Configuration
    "get_config",
    "load_config",
    "reset_config",
    # Logging
    "format_fields",
    "get_logger",
    "log_event",
    "log_execution_time",
    "log_performance",
    "set_log_level",
    "log_exception",
    # Retry
    "RETRY_PRESETS",
    "RetryOutcome",
    "RetryPolicy",
    "get_preset",
    "is_transient_error",
    "retry",
    "retry_with_result",
]
