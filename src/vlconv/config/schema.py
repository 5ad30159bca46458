"""Pydantic models for validating the config file.

The TOML file is user-edited, so its tables are validated strictly before
being turned into the config dataclasses. Unknown keys are rejected to catch
typos such as ``audio_bitrate`` instead of ``audio_bitrate_kbps``.
"""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from vlconv.conversion.models import (
    AUDIO_BITRATE_MAX_KBPS,
    AUDIO_BITRATE_MIN_KBPS,
    CRF_MAX,
    CRF_MIN,
)


class ToolsModel(BaseModel):
    """[tools] table."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    ffmpeg: Path | None = None
    ffprobe: Path | None = None
    bundle_dir: Path | None = None


class DetectionModel(BaseModel):
    """[detection] table."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    disable_hw_accel: bool | None = None
    timeout_seconds: int | None = Field(default=None, gt=0, le=300)


class ConversionModel(BaseModel):
    """[conversion] table."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    crf: int | None = Field(default=None, ge=CRF_MIN, le=CRF_MAX)
    audio_bitrate_kbps: int | None = Field(
        default=None, ge=AUDIO_BITRATE_MIN_KBPS, le=AUDIO_BITRATE_MAX_KBPS
    )
    prefer_hardware: bool | None = None
    timeout_seconds: int | None = Field(default=None, gt=0)
    cancel_grace_seconds: float | None = Field(default=None, ge=0)
    backup_suffix: str | None = None
    log_tail_lines: int | None = Field(default=None, ge=1, le=1000)

    @field_validator("backup_suffix")
    @classmethod
    def validate_backup_suffix(cls, v: str | None) -> str | None:
        """Backup suffix must look like an extension."""
        if v is not None and (not v.startswith(".") or len(v) < 2 or "/" in v):
            raise ValueError(
                f"Invalid backup_suffix '{v}'. Must start with '.' (e.g., '.bak')."
            )
        return v


class LoggingModel(BaseModel):
    """[logging] table."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    level: Literal["debug", "info", "warning", "error"] | None = None
    file: Path | None = None
    format: Literal["text", "json"] | None = None
    include_stderr: bool | None = None
    max_bytes: int | None = Field(default=None, gt=0)
    backup_count: int | None = Field(default=None, ge=0)


class ConfigFileModel(BaseModel):
    """Top-level config file layout."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    tools: ToolsModel = Field(default_factory=ToolsModel)
    detection: DetectionModel = Field(default_factory=DetectionModel)
    conversion: ConversionModel = Field(default_factory=ConversionModel)
    logging: LoggingModel = Field(default_factory=LoggingModel)
