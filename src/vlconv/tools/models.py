"""Data models for the ffmpeg capability snapshot."""

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any

# Hardware H.264 encoders in probe order; the first usable one wins
HW_ENCODER_ORDER: tuple[str, ...] = (
    "h264_videotoolbox",
    "h264_nvenc",
    "h264_qsv",
    "h264_vaapi",
)

SOFTWARE_VIDEO_ENCODER = "libx264"
AUDIO_ENCODER = "aac"

# Render node used for VAAPI encoding
VAAPI_DEVICE = "/dev/dri/renderD128"


@dataclass(frozen=True)
class Capabilities:
    """What the local ffmpeg installation can do.

    Probed once per process and never mutated afterwards.

    Attributes:
        has_encoder: True when ffmpeg runs and has both a software H.264
            encoder and an AAC encoder, so full transcodes are possible.
        encoder_path: ffmpeg path usable for transcoding, or None.
        hw_accel_available: True when a hardware H.264 encoder was verified
            by encoding a synthetic frame.
        hw_encoder: Name of the verified hardware encoder, if any.
        remux_path: ffmpeg path usable for stream copy. Set whenever the
            binary runs, even when it lacks encoders.
        ffprobe_path: ffprobe path for metadata sampling, or None.
        version: Version string reported by ``ffmpeg -version``.
        version_tuple: Parsed version for comparisons.
        encoders: Encoder names listed by ``ffmpeg -encoders``.
        messages: Human-readable notes collected during detection.
        detected_at: When the snapshot was taken.
    """

    has_encoder: bool = False
    encoder_path: Path | None = None
    hw_accel_available: bool = False
    hw_encoder: str | None = None
    remux_path: Path | None = None
    ffprobe_path: Path | None = None
    version: str | None = None
    version_tuple: tuple[int, ...] | None = None
    encoders: frozenset[str] = field(default_factory=frozenset)
    messages: tuple[str, ...] = ()
    detected_at: datetime | None = None

    @property
    def can_remux(self) -> bool:
        """Return True if stream copy into MP4 is possible."""
        return self.remux_path is not None

    @property
    def supports_stats_period(self) -> bool:
        """Return True if ffmpeg accepts ``-stats_period`` (added in 4.3)."""
        if self.version_tuple is None:
            # Unparseable versions are usually git builds, which are recent
            return self.remux_path is not None
        return self.version_tuple >= (4, 3)

    def to_dict(self) -> dict[str, Any]:
        """Serialize for ``vlconv doctor --json``."""
        return {
            "has_encoder": self.has_encoder,
            "encoder_path": str(self.encoder_path) if self.encoder_path else None,
            "hw_accel_available": self.hw_accel_available,
            "hw_encoder": self.hw_encoder,
            "remux_path": str(self.remux_path) if self.remux_path else None,
            "ffprobe_path": str(self.ffprobe_path) if self.ffprobe_path else None,
            "version": self.version,
            "messages": list(self.messages),
            "detected_at": (
                self.detected_at.isoformat() if self.detected_at else None
            ),
        }
