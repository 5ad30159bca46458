"""ffmpeg discovery, capability snapshot and stderr parsing."""

from vlconv.tools.capabilities import get_capabilities, probe, reset_capabilities
from vlconv.tools.detection import (
    detect_capabilities,
    find_ffmpeg,
    find_ffprobe,
    parse_encoder_list,
    parse_version_string,
)
from vlconv.tools.models import HW_ENCODER_ORDER, Capabilities

__all__ = [
    "Capabilities",
    "HW_ENCODER_ORDER",
    "detect_capabilities",
    "find_ffmpeg",
    "find_ffprobe",
    "get_capabilities",
    "parse_encoder_list",
    "parse_version_string",
    "probe",
    "reset_capabilities",
]
