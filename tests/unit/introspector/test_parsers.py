"""Tests for ffprobe output parsing and the ffprobe introspector."""

import json
import subprocess
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from vlconv.introspector import (
    FFprobeIntrospector,
    MediaIntrospectionError,
    parse_duration,
    parse_ffprobe_output,
)
from vlconv.introspector.parsers import normalize_codec

FFPROBE_MKV = {
    "streams": [
        {
            "index": 0,
            "codec_type": "video",
            "codec_name": "hevc",
            "duration": "100.5",
        },
        {"index": 1, "codec_type": "audio", "codec_name": "aac"},
        {"index": 2, "codec_type": "audio", "codec_name": "ac3"},
        {"index": 3, "codec_type": "subtitle", "codec_name": "subrip"},
        {
            "index": 4,
            "codec_type": "video",
            "codec_name": "mjpeg",
            "disposition": {"attached_pic": 1},
        },
    ],
    "format": {"format_name": "matroska,webm", "duration": "120.000000"},
}


class TestParseDuration:
    """Tests for parse_duration."""

    @pytest.mark.parametrize(
        "value,expected",
        [("3600.000", 3600.0), (12.5, 12.5), (None, None), ("N/A", None), ("0", None)],
    )
    def test_values(self, value, expected) -> None:
        """Valid positive durations parse; anything else is None."""
        assert parse_duration(value) == expected


class TestNormalizeCodec:
    """Tests for normalize_codec."""

    def test_aliases(self) -> None:
        """Alternate names map to canonical codec names."""
        assert normalize_codec("H265") == "hevc"
        assert normalize_codec("avc1") == "h264"
        assert normalize_codec("") is None


class TestParseFfprobeOutput:
    """Tests for parse_ffprobe_output."""

    def test_mkv(self) -> None:
        """Video, audio and format duration are extracted."""
        probe = parse_ffprobe_output(Path("a.mkv"), FFPROBE_MKV)
        assert probe.video_codec == "hevc"
        assert probe.audio_codecs == ("aac", "ac3")
        assert probe.duration_seconds == 120.0
        assert probe.container == "matroska,webm"

    def test_cover_art_only_is_not_video(self) -> None:
        """Attached pictures do not count as a video stream."""
        data = {
            "streams": [
                {"codec_type": "audio", "codec_name": "mp3"},
                {
                    "codec_type": "video",
                    "codec_name": "png",
                    "disposition": {"attached_pic": 1},
                },
            ],
            "format": {},
        }
        probe = parse_ffprobe_output(Path("song.mkv"), data)
        assert probe.video_codec is None
        assert probe.audio_codecs == ("mp3",)

    def test_stream_duration_fallback(self) -> None:
        """Without a format duration the video stream's duration is used."""
        data = {
            "streams": [
                {"codec_type": "video", "codec_name": "h264", "duration": "9.5"}
            ],
            "format": {"duration": "N/A"},
        }
        assert parse_ffprobe_output(Path("a.avi"), data).duration_seconds == 9.5


class TestFFprobeIntrospector:
    """Tests for FFprobeIntrospector error handling."""

    def test_missing_ffprobe(self, tmp_path: Path) -> None:
        """No ffprobe configured raises MediaIntrospectionError."""
        with pytest.raises(MediaIntrospectionError, match="ffprobe"):
            FFprobeIntrospector(None).probe(tmp_path / "a.mkv")

    def test_missing_file(self, tmp_path: Path) -> None:
        """Nonexistent files raise MediaIntrospectionError."""
        with pytest.raises(MediaIntrospectionError, match="not found"):
            FFprobeIntrospector(Path("/usr/bin/ffprobe")).probe(tmp_path / "a.mkv")

    def test_success(self, tmp_path: Path) -> None:
        """ffprobe JSON is parsed into a MediaProbe."""
        source = tmp_path / "a.mkv"
        source.touch()
        result = MagicMock(stdout=json.dumps(FFPROBE_MKV))
        with patch("subprocess.run", return_value=result) as run:
            probe = FFprobeIntrospector(Path("/usr/bin/ffprobe")).probe(source)
        assert probe.path == source
        assert probe.video_codec == "hevc"
        assert run.call_args.args[0][-1] == str(source)

    def test_process_error(self, tmp_path: Path) -> None:
        """Non-zero ffprobe exits are wrapped."""
        source = tmp_path / "a.mkv"
        source.touch()
        error = subprocess.CalledProcessError(
            1, ["ffprobe"], stderr="Invalid data found when processing input"
        )
        with patch("subprocess.run", side_effect=error):
            with pytest.raises(MediaIntrospectionError, match="Invalid data"):
                FFprobeIntrospector(Path("/usr/bin/ffprobe")).probe(source)

    def test_timeout(self, tmp_path: Path) -> None:
        """Hung probes are reported as introspection errors."""
        source = tmp_path / "a.mkv"
        source.touch()
        error = subprocess.TimeoutExpired(["ffprobe"], 30)
        with patch("subprocess.run", side_effect=error):
            with pytest.raises(MediaIntrospectionError, match="timed out"):
                FFprobeIntrospector(Path("/usr/bin/ffprobe")).probe(source)

    def test_missing_streams_key(self, tmp_path: Path) -> None:
        """Output without streams is rejected."""
        source = tmp_path / "a.mkv"
        source.touch()
        result = MagicMock(stdout="{}")
        with patch("subprocess.run", return_value=result):
            with pytest.raises(MediaIntrospectionError, match="streams"):
                FFprobeIntrospector(Path("/usr/bin/ffprobe")).probe(source)
