"""Candidate classification.

Decides from the file extension and sampled codecs whether a source can be
stream-copied into MP4, needs a full transcode, or is not a video this
pipeline handles. Classification is read-only and never raises.

| Container                         | Video        | Audio          | Result    |
|-----------------------------------|--------------|----------------|-----------|
| mkv                               | h264 / hevc  | aac / mp3 only | remux     |
| mkv                               | other        | any            | transcode |
| wmv avi mov mpg mpeg m4v 3gp 3g2  | any          | any            | transcode |
| anything else                     |              |                | skip      |
"""

import logging
from pathlib import Path

from vlconv.conversion.models import (
    Classification,
    ConversionCandidate,
    FailureReason,
    MediaProbe,
)
from vlconv.introspector import (
    FFprobeIntrospector,
    MediaIntrospectionError,
    MediaIntrospector,
)
from vlconv.tools.models import Capabilities

logger = logging.getLogger(__name__)

REMUX_CONTAINERS = frozenset({"mkv"})
TRANSCODE_CONTAINERS = frozenset(
    {"wmv", "avi", "mov", "mpg", "mpeg", "m4v", "3gp", "3g2"}
)
CONVERTIBLE_CONTAINERS = REMUX_CONTAINERS | TRANSCODE_CONTAINERS

# Codecs MP4 accepts as-is
REMUX_VIDEO_CODECS = frozenset({"h264", "hevc"})
REMUX_AUDIO_CODECS = frozenset({"aac", "mp3"})


def container_for(path: Path) -> str | None:
    """Return the convertible container named by the extension, or None."""
    container = path.suffix.casefold().lstrip(".")
    if container in CONVERTIBLE_CONTAINERS:
        return container
    return None


def _not_convertible(
    path: Path, detail: str, container: str | None = None, **kwargs
) -> ConversionCandidate:
    logger.debug("Not convertible: %s (%s)", path, detail)
    return ConversionCandidate(
        source_path=path,
        classification=Classification.NOT_CONVERTIBLE,
        container=container,
        reason=FailureReason.UNSUPPORTED_FORMAT,
        detail=detail,
        **kwargs,
    )


def _apply_capabilities(
    candidate: ConversionCandidate, capabilities: Capabilities
) -> ConversionCandidate:
    """Tag candidates the installed ffmpeg cannot handle with ENCODER_MISSING.

    The classification itself is kept so callers can still report what the
    file would have needed.
    """
    if candidate.classification == Classification.TRANSCODE_REQUIRED:
        missing = not capabilities.has_encoder
    elif candidate.classification == Classification.REMUX_ELIGIBLE:
        missing = not capabilities.can_remux
    else:
        return candidate
    if not missing:
        return candidate
    return ConversionCandidate(
        source_path=candidate.source_path,
        classification=candidate.classification,
        container=candidate.container,
        video_codec=candidate.video_codec,
        audio_codec=candidate.audio_codec,
        duration_seconds=candidate.duration_seconds,
        reason=FailureReason.ENCODER_MISSING,
        detail=f"{candidate.detail}; no usable encoder",
    )


def classify_probe(
    probe: MediaProbe, capabilities: Capabilities
) -> ConversionCandidate:
    """Classify a file from already-sampled metadata.

    Args:
        probe: Codec sample for the file.
        capabilities: Installed ffmpeg capabilities.

    Returns:
        ConversionCandidate. Transcode-required candidates are tagged with
        FailureReason.ENCODER_MISSING when no encoder is installed.
    """
    path = probe.path
    container = container_for(path)
    if container is None:
        return _not_convertible(path, f"unsupported extension '{path.suffix}'")

    audio_codec = probe.audio_codecs[0] if probe.audio_codecs else None
    if probe.video_codec is None:
        return _not_convertible(
            path,
            "no video stream",
            container=container,
            audio_codec=audio_codec,
            duration_seconds=probe.duration_seconds,
        )

    if (
        container in REMUX_CONTAINERS
        and probe.video_codec in REMUX_VIDEO_CODECS
        and all(codec in REMUX_AUDIO_CODECS for codec in probe.audio_codecs)
    ):
        classification = Classification.REMUX_ELIGIBLE
        detail = f"{probe.video_codec} video can be copied into MP4"
    else:
        classification = Classification.TRANSCODE_REQUIRED
        if container in REMUX_CONTAINERS:
            audio = ", ".join(probe.audio_codecs) or "no audio"
            detail = f"{probe.video_codec} / {audio} must be re-encoded for MP4"
        else:
            detail = f"{container.upper()} sources are always re-encoded"

    candidate = ConversionCandidate(
        source_path=path,
        classification=classification,
        container=container,
        video_codec=probe.video_codec,
        audio_codec=audio_codec,
        duration_seconds=probe.duration_seconds,
        detail=detail,
    )
    return _apply_capabilities(candidate, capabilities)


def classify(
    path: Path,
    capabilities: Capabilities,
    introspector: MediaIntrospector | None = None,
) -> ConversionCandidate:
    """Classify a source file.

    Args:
        path: Source file.
        capabilities: Installed ffmpeg capabilities.
        introspector: Metadata sampler. Defaults to ffprobe at the path
            recorded in the capabilities.

    Returns:
        ConversionCandidate. Never raises: unreadable files are reported as
        not convertible.
    """
    container = container_for(path)
    if container is None:
        return _not_convertible(path, f"unsupported extension '{path.suffix}'")

    if introspector is None:
        if capabilities.ffprobe_path is None:
            return _classify_unprobed(path, container, capabilities)
        introspector = FFprobeIntrospector(capabilities.ffprobe_path)

    try:
        probe = introspector.probe(path)
    except MediaIntrospectionError as e:
        return _not_convertible(path, str(e), container=container)

    return classify_probe(probe, capabilities)


def _classify_unprobed(
    path: Path, container: str, capabilities: Capabilities
) -> ConversionCandidate:
    """Classify by extension alone when no ffprobe is installed.

    Without codec information an MKV cannot be shown to be copy-safe, so
    every convertible file is treated as needing a transcode.
    """
    if not path.is_file():
        return _not_convertible(path, "file not found", container=container)
    candidate = ConversionCandidate(
        source_path=path,
        classification=Classification.TRANSCODE_REQUIRED,
        container=container,
        detail="codecs not sampled (ffprobe unavailable)",
    )
    return _apply_capabilities(candidate, capabilities)
