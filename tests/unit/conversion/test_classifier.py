"""Tests for candidate classification."""

from pathlib import Path

import pytest
from conftest import FakeIntrospector, make_capabilities

from vlconv.conversion.classifier import classify, classify_probe, container_for
from vlconv.conversion.models import Classification, FailureReason, MediaProbe


def _probe(name: str, video="h264", audio=("aac",), duration=60.0) -> MediaProbe:
    return MediaProbe(
        path=Path("/videos") / name,
        video_codec=video,
        audio_codecs=tuple(audio),
        duration_seconds=duration,
    )


class TestContainerFor:
    """Tests for container_for."""

    @pytest.mark.parametrize(
        "name,expected",
        [
            ("a.mkv", "mkv"),
            ("a.MKV", "mkv"),
            ("a.wmv", "wmv"),
            ("a.3gp", "3gp"),
            ("a.mp4", None),
            ("a.txt", None),
            ("noext", None),
        ],
    )
    def test_container(self, name: str, expected) -> None:
        """Extensions map case-insensitively onto containers."""
        assert container_for(Path(name)) == expected


class TestClassifyProbe:
    """Tests for the classification decision table."""

    @pytest.mark.parametrize(
        "video,audio",
        [
            ("h264", ("aac",)),
            ("hevc", ("mp3",)),
            ("h264", ("aac", "mp3")),
            ("h264", ()),
        ],
    )
    def test_mkv_remux_eligible(self, video, audio) -> None:
        """MKV with H.264/HEVC and only AAC/MP3 audio can be stream copied."""
        candidate = classify_probe(_probe("a.mkv", video, audio), make_capabilities())
        assert candidate.classification == Classification.REMUX_ELIGIBLE
        assert candidate.reason is None
        assert candidate.video_codec == video

    @pytest.mark.parametrize(
        "video,audio",
        [
            ("vp9", ("opus",)),
            ("h264", ("dts",)),
            ("h264", ("aac", "ac3")),
            ("mpeg4", ("aac",)),
        ],
    )
    def test_mkv_transcode_required(self, video, audio) -> None:
        """Any other MKV codec mix must be re-encoded."""
        candidate = classify_probe(_probe("a.mkv", video, audio), make_capabilities())
        assert candidate.classification == Classification.TRANSCODE_REQUIRED

    @pytest.mark.parametrize("ext", ["wmv", "avi", "mov", "mpg", "mpeg", "m4v", "3gp"])
    def test_legacy_containers_always_transcode(self, ext: str) -> None:
        """Non-MKV containers are re-encoded even with MP4-safe codecs."""
        candidate = classify_probe(_probe(f"a.{ext}"), make_capabilities())
        assert candidate.classification == Classification.TRANSCODE_REQUIRED
        assert candidate.container == ext

    def test_unsupported_extension(self) -> None:
        """Unknown extensions are not convertible."""
        candidate = classify_probe(_probe("a.mp4"), make_capabilities())
        assert candidate.classification == Classification.NOT_CONVERTIBLE
        assert candidate.reason == FailureReason.UNSUPPORTED_FORMAT

    def test_no_video_stream(self) -> None:
        """Audio-only files are not convertible."""
        candidate = classify_probe(_probe("a.mkv", video=None), make_capabilities())
        assert candidate.classification == Classification.NOT_CONVERTIBLE
        assert "no video" in candidate.detail

    def test_transcode_without_encoder_tagged(self) -> None:
        """Transcode candidates carry ENCODER_MISSING without libx264/aac."""
        caps = make_capabilities(has_encoder=False)
        candidate = classify_probe(_probe("a.avi"), caps)
        assert candidate.classification == Classification.TRANSCODE_REQUIRED
        assert candidate.reason == FailureReason.ENCODER_MISSING

    def test_remux_without_encoder_is_fine(self) -> None:
        """Remuxing needs no encoder, only a runnable ffmpeg."""
        caps = make_capabilities(has_encoder=False)
        candidate = classify_probe(_probe("a.mkv"), caps)
        assert candidate.classification == Classification.REMUX_ELIGIBLE
        assert candidate.reason is None

    def test_remux_without_ffmpeg_tagged(self) -> None:
        """No ffmpeg at all: even remux candidates cannot proceed."""
        caps = make_capabilities(has_encoder=False, remux=False)
        candidate = classify_probe(_probe("a.mkv"), caps)
        assert candidate.reason == FailureReason.ENCODER_MISSING


class TestClassify:
    """Tests for classify with an introspector."""

    def test_uses_introspector(self, introspector: FakeIntrospector) -> None:
        """Probe results drive the classification."""
        introspector.add("movie.mkv", video="hevc", audio=("aac",), duration=42.0)
        path = Path("/videos/movie.mkv")
        candidate = classify(path, make_capabilities(), introspector)
        assert candidate.classification == Classification.REMUX_ELIGIBLE
        assert candidate.source_path == path
        assert candidate.duration_seconds == 42.0

    def test_unreadable_file(self, introspector: FakeIntrospector) -> None:
        """Probe failures are reported, never raised."""
        candidate = classify(Path("/videos/x.mkv"), make_capabilities(), introspector)
        assert candidate.classification == Classification.NOT_CONVERTIBLE
        assert "cannot read" in candidate.detail

    def test_unsupported_extension_not_probed(
        self, introspector: FakeIntrospector
    ) -> None:
        """Files with other extensions are rejected without probing."""
        classify(Path("/videos/x.mp4"), make_capabilities(), introspector)
        assert introspector.calls == []

    def test_without_ffprobe_classifies_by_extension(self, tmp_path: Path) -> None:
        """No ffprobe: existing files are treated as transcode candidates."""
        source = tmp_path / "movie.mkv"
        source.write_bytes(b"data")
        caps = make_capabilities(ffprobe=False)

        candidate = classify(source, caps)
        assert candidate.classification == Classification.TRANSCODE_REQUIRED
        assert candidate.reason is None

        missing = classify(tmp_path / "gone.mkv", caps)
        assert missing.classification == Classification.NOT_CONVERTIBLE
