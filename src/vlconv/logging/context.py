"""Per-file logging context.

The orchestrator converts one file at a time; while it does, every log
record is tagged with the file's batch position and path via contextvars.
"""

from __future__ import annotations

import contextvars
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Generator

_file_index: contextvars.ContextVar[int | None] = contextvars.ContextVar(
    "file_index", default=None
)
_file_path: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "file_path", default=None
)


@contextmanager
def file_context(
    file_path: Path | str, index: int | None = None
) -> Generator[None, None, None]:
    """Tag log records emitted inside the block with a file.

    Args:
        file_path: Path of the file being converted.
        index: 1-based position of the file in the batch.

    Example:
        with file_context("/videos/a.mkv", 3):
            logger.info("Remuxing")  # -> "[#3 a.mkv] Remuxing"
    """
    index_token = _file_index.set(index)
    path_token = _file_path.set(str(file_path))
    try:
        yield
    finally:
        _file_index.reset(index_token)
        _file_path.reset(path_token)


def get_file_context() -> tuple[int | None, str | None]:
    """Get current file context as (index, path); either may be None."""
    return _file_index.get(), _file_path.get()


class FileContextFilter(logging.Filter):
    """Logging filter that injects the current file into log records.

    Adds file_index and file_path attributes for JSON output and a compact
    file_tag like "[#3 movie.mkv] " for the text format.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        """Inject file context into the record. Never drops records."""
        index, path = get_file_context()

        record.file_index = index
        record.file_path = path

        if path:
            name = Path(path).name
            record.file_tag = f"[#{index} {name}] " if index else f"[{name}] "
        else:
            record.file_tag = ""

        return True
