"""Pure parsing functions for ffprobe JSON output.

These functions transform ffprobe JSON data into MediaProbe values.
All functions are pure (no I/O, no side effects) for easy testing.
"""

import logging
from pathlib import Path

from vlconv.conversion.models import MediaProbe

logger = logging.getLogger(__name__)

# ffprobe reports some codecs under several names
_CODEC_ALIASES = {
    "h265": "hevc",
    "avc": "h264",
    "avc1": "h264",
    "x264": "h264",
    "mp3float": "mp3",
}


def normalize_codec(value: str | None) -> str | None:
    """Normalize an ffprobe codec name to lowercase canonical form.

    Args:
        value: Codec name as reported by ffprobe (e.g., "H264", "h265").

    Returns:
        Canonical codec name, or None if value is empty.
    """
    if not value:
        return None
    name = value.strip().casefold()
    return _CODEC_ALIASES.get(name, name)


def parse_duration(value: str | float | None) -> float | None:
    """Parse duration string from ffprobe into seconds.

    Args:
        value: Duration string from ffprobe (e.g., "3600.000") or None.

    Returns:
        Duration in seconds as float, or None if parsing fails or the
        duration is not positive.
    """
    if value is None:
        return None
    try:
        duration = float(value)
    except (ValueError, TypeError):
        return None
    if duration <= 0:
        return None
    return duration


def _is_attached_picture(stream: dict) -> bool:
    """Cover art is reported as a video stream; ignore it."""
    disposition = stream.get("disposition") or {}
    return bool(disposition.get("attached_pic"))


def parse_ffprobe_output(path: Path, data: dict) -> MediaProbe:
    """Parse ffprobe JSON output into a MediaProbe.

    The first real video stream determines the video codec. All audio
    streams are listed in file order.

    Args:
        path: Path to the video file.
        data: Parsed ffprobe JSON output.

    Returns:
        MediaProbe for the file.
    """
    format_info = data.get("format") or {}
    container = format_info.get("format_name")

    video_codec: str | None = None
    audio_codecs: list[str] = []
    stream_duration: float | None = None

    for stream in data.get("streams") or []:
        codec_type = stream.get("codec_type")
        codec = normalize_codec(stream.get("codec_name"))
        if codec_type == "video" and not _is_attached_picture(stream):
            if video_codec is None:
                video_codec = codec
                stream_duration = parse_duration(stream.get("duration"))
        elif codec_type == "audio" and codec:
            audio_codecs.append(codec)

    # Container duration is more reliable than per-stream values in MKV
    duration = parse_duration(format_info.get("duration")) or stream_duration

    if video_codec is None:
        logger.debug("No video stream found in %s", path)

    return MediaProbe(
        path=path,
        container=container,
        video_codec=video_codec,
        audio_codecs=tuple(audio_codecs),
        duration_seconds=duration,
    )
