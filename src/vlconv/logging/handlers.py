"""JSON log output.

One object per line, so a log file can be filtered with ``jq`` by file,
encoder or outcome after a long batch.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any

# Attributes every LogRecord carries; anything else came in through extra=
_RECORD_ATTRS = frozenset(
    logging.LogRecord("", logging.INFO, "", 0, "", (), None).__dict__
) | {"message", "asctime"}

# Set on every record by FileContextFilter, None outside a file
_FILE_ATTRS = ("file_index", "file_path")


class JSONFormatter(logging.Formatter):
    """Format log records as single-line JSON objects.

    Keys: ``timestamp`` (ISO-8601 UTC), ``level``, ``message``, ``logger``
    (omitted for root), ``context`` (extra fields and the file being
    converted) and ``exception`` when one is attached.
    """

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        entry: dict[str, Any] = {
            "timestamp": created.isoformat(),
            "level": record.levelname,
            "message": record.getMessage(),
        }
        if record.name != "root":
            entry["logger"] = record.name

        context = _extra_fields(record)
        if context:
            entry["context"] = context
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


def _extra_fields(record: logging.LogRecord) -> dict[str, Any]:
    fields: dict[str, Any] = {}
    for key, value in vars(record).items():
        if key in _RECORD_ATTRS or key.startswith("_") or key == "file_tag":
            continue
        if key in _FILE_ATTRS and value is None:
            continue
        fields[key] = value
    return fields
