"""Tests for ffmpeg stderr parsing."""

import pytest

from vlconv.tools.ffmpeg_progress import (
    compute_fraction,
    find_fatal_marker,
    find_hardware_failure,
    is_stream_copy_incompatible,
    parse_progress_sample,
    parse_time_seconds,
)

LINE = "frame= 1234 fps= 30 size= 5120kB time=00:01:23.45 bitrate=502.1kbits/s"


class TestParseTimeSeconds:
    """Tests for parse_time_seconds."""

    def test_parses_time(self) -> None:
        """time=HH:MM:SS.cc is converted to seconds."""
        assert parse_time_seconds(LINE) == pytest.approx(83.45)

    def test_hours(self) -> None:
        """Hours are included."""
        assert parse_time_seconds("time=01:00:00.00") == pytest.approx(3600.0)

    def test_negative_clamped(self) -> None:
        """Early negative timestamps count as zero."""
        assert parse_time_seconds("time=-00:00:00.05 bitrate=N/A") == 0.0

    @pytest.mark.parametrize(
        "line", ["time=N/A bitrate=N/A", "Stream #0:0: Video: h264", ""]
    )
    def test_no_time(self, line: str) -> None:
        """Lines without a timestamp yield None."""
        assert parse_time_seconds(line) is None


class TestComputeFraction:
    """Tests for compute_fraction."""

    def test_ratio(self) -> None:
        """Elapsed over total."""
        assert compute_fraction(25.0, 100.0) == pytest.approx(0.25)

    def test_clamped_to_one(self) -> None:
        """Overshoot past the probed duration is clamped."""
        assert compute_fraction(120.0, 100.0) == 1.0

    @pytest.mark.parametrize("total", [None, 0.0, -5.0])
    def test_unknown_total(self, total) -> None:
        """Unknown duration gives zero rather than dividing by zero."""
        assert compute_fraction(10.0, total) == 0.0


class TestParseProgressSample:
    """Tests for parse_progress_sample."""

    def test_sample(self) -> None:
        """Progress lines become samples with the raw line attached."""
        sample = parse_progress_sample(LINE, 166.9)
        assert sample is not None
        assert sample.elapsed_seconds == pytest.approx(83.45)
        assert sample.fraction == pytest.approx(0.5)
        assert sample.raw_line == LINE

    def test_non_progress(self) -> None:
        """Diagnostic lines are not samples."""
        assert parse_progress_sample("Press [q] to stop", 10.0) is None


class TestMarkers:
    """Tests for marker detection helpers."""

    def test_fatal_marker(self) -> None:
        """Conversion failed! is fatal."""
        lines = ["frame=1", "Conversion failed!"]
        assert find_fatal_marker(lines) == "Conversion failed!"

    def test_stream_copy_incompatible(self) -> None:
        """Muxer tag errors mean the stream cannot be copied."""
        lines = [
            "[mp4 @ 0x55] Could not find tag for codec pcm_s16le in stream #1, "
            "codec not currently supported in container"
        ]
        assert is_stream_copy_incompatible(lines) is True
        assert is_stream_copy_incompatible(["all good"]) is False

    def test_hardware_failure_case_insensitive(self) -> None:
        """Hardware patterns match regardless of case."""
        lines = ["[h264_nvenc @ 0x1] cannot load NVENC library"]
        assert find_hardware_failure(lines) == "Cannot load nvenc"
        assert find_hardware_failure(["fine"]) is None
