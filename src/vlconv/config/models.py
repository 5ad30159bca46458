"""Configuration data models.

This module defines dataclasses for vlconv configuration options.
"""

from dataclasses import dataclass, field
from pathlib import Path

from vlconv.conversion.models import (
    DEFAULT_AUDIO_BITRATE_KBPS,
    DEFAULT_CRF,
    QualitySettings,
)


@dataclass
class ToolPathsConfig:
    """Configuration for external tool paths.

    All paths are optional. If not specified, tools are looked up in the
    bundle directory, well-known install locations, and PATH.
    """

    ffmpeg: Path | None = None
    ffprobe: Path | None = None

    # Directory holding binaries shipped alongside the application
    bundle_dir: Path | None = None


@dataclass
class DetectionConfig:
    """Configuration for capability detection."""

    # Skip hardware encoder probing entirely
    disable_hw_accel: bool = False

    # Seconds allowed for each detection command
    timeout_seconds: int = 10


@dataclass
class ConversionConfig:
    """Configuration for the conversion pipeline."""

    crf: int = DEFAULT_CRF
    audio_bitrate_kbps: int = DEFAULT_AUDIO_BITRATE_KBPS
    prefer_hardware: bool = True

    # Hard per-file limit on the encoder process (15 minutes)
    timeout_seconds: int = 900

    # Time between SIGTERM and SIGKILL when cancelling
    cancel_grace_seconds: float = 5.0

    target_container: str = "mp4"
    backup_suffix: str = ".bak"

    # Encoder diagnostic lines attached to each outcome
    log_tail_lines: int = 20

    def __post_init__(self) -> None:
        """Validate configuration."""
        if self.timeout_seconds <= 0:
            raise ValueError(
                f"timeout_seconds must be positive, got {self.timeout_seconds}"
            )
        if self.cancel_grace_seconds < 0:
            raise ValueError(
                "cancel_grace_seconds must not be negative, "
                f"got {self.cancel_grace_seconds}"
            )
        if not self.backup_suffix.startswith("."):
            raise ValueError(
                f"backup_suffix must start with '.', got {self.backup_suffix!r}"
            )
        # Range checks live on QualitySettings
        self.quality()

    def quality(self) -> QualitySettings:
        """Build the default QualitySettings for a batch."""
        return QualitySettings(
            crf=self.crf,
            audio_bitrate_kbps=self.audio_bitrate_kbps,
            prefer_hardware=self.prefer_hardware,
        )


@dataclass
class LoggingConfig:
    """Configuration for structured logging."""

    # Log level: debug, info, warning, error. The CLI reporter covers
    # per-file progress, so routine info records stay hidden by default.
    level: str = "warning"

    # Log file path (None = stderr only)
    file: Path | None = None

    # Log format: text or json
    format: str = "text"

    # Also log to stderr when file is set
    include_stderr: bool = False

    # Rotation threshold in bytes (default 10MB)
    max_bytes: int = 10_485_760

    # Number of rotated files to keep
    backup_count: int = 5

    def __post_init__(self) -> None:
        """Validate configuration."""
        valid_levels = {"debug", "info", "warning", "error"}
        if self.level.lower() not in valid_levels:
            raise ValueError(f"level must be one of {valid_levels}, got {self.level}")
        valid_formats = {"text", "json"}
        if self.format.lower() not in valid_formats:
            raise ValueError(
                f"format must be one of {valid_formats}, got {self.format}"
            )


@dataclass
class VLConvConfig:
    """Main configuration container.

    Aggregates all configuration sections.
    """

    tools: ToolPathsConfig = field(default_factory=ToolPathsConfig)
    detection: DetectionConfig = field(default_factory=DetectionConfig)
    conversion: ConversionConfig = field(default_factory=ConversionConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
