"""Structured logging module for vlconv.

Provides configurable logging with JSON format support and file rotation.
Records emitted while a file is being converted are tagged with that file.
"""

from vlconv.logging.config import configure_logging
from vlconv.logging.context import (
    FileContextFilter,
    file_context,
    get_file_context,
)
from vlconv.logging.handlers import JSONFormatter

__all__ = [
    "FileContextFilter",
    "JSONFormatter",
    "configure_logging",
    "file_context",
    "get_file_context",
]
