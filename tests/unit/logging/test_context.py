"""Tests for per-file logging context."""

import asyncio
import logging

from vlconv.logging.context import FileContextFilter, file_context, get_file_context


def _record() -> logging.LogRecord:
    return logging.LogRecord("test", logging.INFO, __file__, 1, "msg", None, None)


class TestFileContext:
    """Tests for the file_context context manager."""

    def test_default_is_empty(self) -> None:
        """Outside any block there is no file context."""
        assert get_file_context() == (None, None)

    def test_sets_and_resets(self) -> None:
        """Context is visible inside the block and cleared afterwards."""
        with file_context("/videos/a.mkv", 3):
            assert get_file_context() == (3, "/videos/a.mkv")
        assert get_file_context() == (None, None)

    def test_nested_blocks_restore_outer(self) -> None:
        """Leaving an inner block restores the outer file."""
        with file_context("/videos/a.mkv", 1):
            with file_context("/videos/b.mkv", 2):
                assert get_file_context() == (2, "/videos/b.mkv")
            assert get_file_context() == (1, "/videos/a.mkv")

    def test_reset_after_exception(self) -> None:
        """An exception inside the block still clears the context."""
        try:
            with file_context("/videos/a.mkv", 1):
                raise RuntimeError("boom")
        except RuntimeError:
            pass
        assert get_file_context() == (None, None)

    def test_isolated_between_tasks(self) -> None:
        """Concurrent tasks each see their own file."""

        async def worker(name: str, index: int) -> tuple:
            with file_context(name, index):
                await asyncio.sleep(0)
                return get_file_context()

        async def main() -> list:
            return await asyncio.gather(worker("a.mkv", 1), worker("b.mkv", 2))

        assert asyncio.run(main()) == [(1, "a.mkv"), (2, "b.mkv")]


class TestFileContextFilter:
    """Tests for FileContextFilter."""

    def test_adds_tag_inside_context(self) -> None:
        """Records get a compact [#index name] tag."""
        record = _record()
        with file_context("/videos/movie.mkv", 3):
            assert FileContextFilter().filter(record) is True
        assert record.file_tag == "[#3 movie.mkv] "
        assert record.file_index == 3
        assert record.file_path == "/videos/movie.mkv"

    def test_tag_without_index(self) -> None:
        """Without an index only the name is shown."""
        record = _record()
        with file_context("/videos/movie.mkv"):
            FileContextFilter().filter(record)
        assert record.file_tag == "[movie.mkv] "

    def test_empty_outside_context(self) -> None:
        """Outside a file the tag is empty and the record is kept."""
        record = _record()
        assert FileContextFilter().filter(record) is True
        assert record.file_tag == ""
        assert record.file_path is None
