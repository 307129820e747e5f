"""Structured logging for the ServiceNow client."""

from .logger import StructuredLogger, get_logger
from .multi_file_logger import MultiFileLogger, get_multi_file_logger

__all__ = [
    "StructuredLogger",
    "MultiFileLogger",
    "get_logger",
    "get_multi_file_logger",
]
