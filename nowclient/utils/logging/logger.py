"""Structured logging for the ServiceNow client.

One JSON object per log line, with optional correlation IDs for tracing a
chain of API calls and a context manager for timing operations.

Key features:
- JSON structured logging
- Correlation ID support for request tracing
- Performance tracking via context managers
- Thread-safe operation
"""

import json
import logging
import time
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from threading import local
from typing import Optional

# Thread-local storage for correlation IDs
_thread_local = local()

LOGGER_NAME = "nowclient"


class StructuredLogger:
    """JSON entry building, correlation and performance tracking.

    Has no handlers of its own; subclasses decide where entries are written.
    """

    def __init__(self, level: int = logging.INFO):
        """Initialize the structured logger.

        Args:
            level: Logging level (default: INFO)
        """
        self.level = level
        self.logger = logging.getLogger(LOGGER_NAME)
        self.logger.setLevel(level)
        self.logger.handlers.clear()
        self.logger.propagate = False

    def _get_correlation_id(self) -> Optional[str]:
        """Get current correlation ID from thread-local storage."""
        return getattr(_thread_local, 'correlation_id', None)

    def set_correlation_id(self, correlation_id: Optional[str] = None) -> str:
        """Set correlation ID for current thread/request.

        Args:
            correlation_id: ID to use, or None to generate new one

        Returns:
            The correlation ID that was set
        """
        if correlation_id is None:
            correlation_id = str(uuid.uuid4())
        _thread_local.correlation_id = correlation_id
        return correlation_id

    def clear_correlation_id(self):
        """Clear correlation ID for current thread."""
        if hasattr(_thread_local, 'correlation_id'):
            delattr(_thread_local, 'correlation_id')

    def _build_entry(self, level: int, message: str, **kwargs) -> str:
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": logging.getLevelName(level),
            "message": message,
            **kwargs
        }

        correlation_id = self._get_correlation_id()
        if correlation_id:
            entry["correlation_id"] = correlation_id

        return json.dumps(entry, default=str)

    def _log(self, level: int, message: str, **kwargs):
        """Internal logging method with JSON formatting."""
        self.logger.log(level, self._build_entry(level, message, **kwargs))

    def debug(self, message: str, **kwargs):
        """Log debug message."""
        self._log(logging.DEBUG, message, **kwargs)

    def info(self, message: str, **kwargs):
        """Log info message."""
        self._log(logging.INFO, message, **kwargs)

    def warning(self, message: str, **kwargs):
        """Log warning message."""
        self._log(logging.WARNING, message, **kwargs)

    def error(self, message: str, **kwargs):
        """Log error message."""
        self._log(logging.ERROR, message, **kwargs)

    def critical(self, message: str, **kwargs):
        """Log critical message."""
        self._log(logging.CRITICAL, message, **kwargs)

    @contextmanager
    def track_performance(self, operation: str, **context):
        """Context manager for tracking operation performance.

        Usage:
            with logger.track_performance("servicenow_request", table="incident"):
                # Do operation
                pass
        """
        start_time = time.time()

        self.debug(f"{operation}_started", operation=operation, **context)

        try:
            yield
        finally:
            duration = time.time() - start_time
            self.info(
                f"{operation}_completed",
                operation=operation,
                duration_seconds=round(duration, 3),
                **context
            )


def _level_from_name(level_name) -> int:
    if isinstance(level_name, int):
        return level_name
    level = logging.getLevelName(str(level_name).upper())
    return level if isinstance(level, int) else logging.INFO


# Global logger instance
_logger = None

def get_logger(component: Optional[str] = None) -> StructuredLogger:
    """Get the global logger instance (singleton).

    The first call creates a MultiFileLogger using the configured log
    directory and level (``logging.dir`` / ``logging.level``, overridable
    with LOG_DIR / LOG_LEVEL).

    Args:
        component: Component name (routing is done per entry via the
            ``component`` keyword)

    Returns:
        The global StructuredLogger instance
    """
    global _logger
    if _logger is None:
        # Imported lazily, configuration logs through this module
        from ..config.unified_config import get_config
        from .multi_file_logger import get_multi_file_logger
        config = get_config()
        # Loading the configuration may already have created the logger
        if _logger is None:
            _logger = get_multi_file_logger(
                log_dir=config.log_dir,
                level=_level_from_name(config.log_level)
            )
    return _logger
