"""Tests for configure_logging and JSONFormatter."""

import json
import logging
from pathlib import Path

from vlconv.config.models import LoggingConfig
from vlconv.logging import JSONFormatter, configure_logging, file_context


class TestJSONFormatter:
    """Tests for JSONFormatter."""

    def test_basic_fields(self) -> None:
        """Entries carry timestamp, level, message and logger name."""
        record = logging.LogRecord(
            "vlconv.jobs", logging.WARNING, __file__, 1, "hello %s", ("x",), None
        )
        data = json.loads(JSONFormatter().format(record))
        assert data["level"] == "WARNING"
        assert data["message"] == "hello x"
        assert data["logger"] == "vlconv.jobs"
        assert "timestamp" in data

    def test_extra_goes_to_context(self) -> None:
        """Fields passed via extra end up under context."""
        logger = logging.getLogger("test.json.extra")
        record = logger.makeRecord(
            logger.name,
            logging.INFO,
            __file__,
            1,
            "msg",
            None,
            None,
            extra={"encoder": "libx264", "file_path": "/v/a.mkv", "file_tag": "x"},
        )
        data = json.loads(JSONFormatter().format(record))
        assert data["context"] == {"encoder": "libx264", "file_path": "/v/a.mkv"}


class TestConfigureLogging:
    """Tests for configure_logging."""

    def test_sets_level(self) -> None:
        """Root level follows the configured level."""
        configure_logging(LoggingConfig(level="debug"))
        assert logging.getLogger().level == logging.DEBUG

    def test_stderr_only_without_file(self) -> None:
        """Without a file a single stderr handler is installed."""
        configure_logging(LoggingConfig())
        handlers = logging.getLogger().handlers
        assert len(handlers) == 1
        assert isinstance(handlers[0], logging.StreamHandler)

    def test_writes_json_file_with_file_context(self, tmp_path: Path) -> None:
        """JSON file output includes the file being converted."""
        log_file = tmp_path / "logs" / "vlconv.log"
        configure_logging(LoggingConfig(level="info", file=log_file, format="json"))

        with file_context("/videos/a.mkv", 2):
            logging.getLogger("vlconv.test").info("converting")
        for handler in logging.getLogger().handlers:
            handler.flush()

        entry = json.loads(log_file.read_text().strip().splitlines()[-1])
        assert entry["message"] == "converting"
        assert entry["context"]["file_index"] == 2
        assert entry["context"]["file_path"] == "/videos/a.mkv"

    def test_text_format_has_file_tag(self, tmp_path: Path) -> None:
        """Text output prefixes the logger name with the file tag."""
        log_file = tmp_path / "vlconv.log"
        configure_logging(LoggingConfig(level="info", file=log_file))

        with file_context("/videos/a.mkv", 2):
            logging.getLogger("vlconv.test").warning("slow")
        for handler in logging.getLogger().handlers:
            handler.flush()

        assert "[#2 a.mkv] vlconv.test - WARNING - slow" in log_file.read_text()
