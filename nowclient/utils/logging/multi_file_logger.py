"""Multi-File Logging System for Better Traceability.

Each component gets its own log file, with an additional error log that
captures all ERROR level messages across components.

Log Files:
- servicenow.log: API requests, responses and query building
- system.log: Configuration and other system-wide events
- errors.log: All ERROR level messages (cross-component)
"""

import logging
import logging.handlers
from pathlib import Path
from typing import Dict, Optional
from threading import Lock

from .logger import StructuredLogger


class MultiFileLogger(StructuredLogger):
    """Logger that routes messages to different files based on component."""

    # Component to log file mapping
    COMPONENT_FILES = {
        'servicenow': 'servicenow.log',
        'query': 'servicenow.log',  # Query builder goes to servicenow log
        'system': 'system.log',
        'config': 'system.log',  # Config goes to system log
    }

    def __init__(self, log_dir: str = "logs", level: int = logging.INFO):
        """Initialize multi-file logger.

        Args:
            log_dir: Directory for log files
            level: Logging level (default: INFO)
        """
        super().__init__(level)
        self.log_dir = Path(log_dir)
        self.log_dir.mkdir(parents=True, exist_ok=True)

        self.handlers: Dict[str, logging.Handler] = {}
        self.lock = Lock()

        self._setup_handlers()
        self._setup_error_handler()

    def _setup_handlers(self):
        """Create one handler per log file; components sharing a file share it."""
        by_filename: Dict[str, logging.Handler] = {}
        for component, filename in self.COMPONENT_FILES.items():
            if filename not in by_filename:
                handler = logging.handlers.RotatingFileHandler(
                    self.log_dir / filename,
                    maxBytes=50*1024*1024,  # 50MB per file
                    backupCount=5,
                    encoding='utf-8'
                )
                handler.setFormatter(logging.Formatter('%(message)s'))
                handler.setLevel(self.level)
                by_filename[filename] = handler
            self.handlers[component] = by_filename[filename]

    def _setup_error_handler(self):
        """Create special handler for all ERROR level messages."""
        error_handler = logging.handlers.RotatingFileHandler(
            self.log_dir / 'errors.log',
            maxBytes=50*1024*1024,  # 50MB
            backupCount=10,  # Keep more error logs
            encoding='utf-8'
        )
        error_handler.setFormatter(logging.Formatter('%(message)s'))
        error_handler.setLevel(logging.ERROR)
        self.handlers['_errors'] = error_handler

    def _get_handler(self, component: Optional[str]) -> logging.Handler:
        """Get the appropriate handler for a component."""
        if component and component in self.handlers:
            return self.handlers[component]

        # Default to system log
        return self.handlers['system']

    def _log(self, level: int, message: str, **kwargs):
        """Internal logging method that routes to appropriate file."""
        if level < self.level:
            return

        record = logging.LogRecord(
            name=self.logger.name,
            level=level,
            pathname="",
            lineno=0,
            msg=self._build_entry(level, message, **kwargs),
            args=(),
            exc_info=None
        )

        with self.lock:
            handler = self._get_handler(kwargs.get('component'))
            if level >= handler.level:
                handler.emit(record)

            # Also send ERROR and above to error log
            if level >= logging.ERROR:
                self.handlers['_errors'].emit(record)

    def close(self):
        """Close all file handlers."""
        with self.lock:
            for handler in set(self.handlers.values()):
                handler.close()


# Global multi-file logger instance
_multi_logger = None
_multi_logger_lock = Lock()


def get_multi_file_logger(log_dir: str = "logs", level: int = logging.INFO) -> MultiFileLogger:
    """Get the global multi-file logger instance (singleton).

    Returns:
        The global MultiFileLogger instance
    """
    global _multi_logger
    if _multi_logger is None:
        with _multi_logger_lock:
            if _multi_logger is None:
                _multi_logger = MultiFileLogger(log_dir=log_dir, level=level)
    return _multi_logger
