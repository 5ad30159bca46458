"""Transcode strategy: full re-encode to H.264/AAC in MP4.

Quality maps onto encoder flags so that a lower CRF always means higher
video quality and a higher audio bitrate always means higher fidelity,
whichever encoder runs.
"""

import logging

from vlconv.config.models import ConversionConfig
from vlconv.conversion.exceptions import EncoderMissingError, UnsupportedFormatError
from vlconv.conversion.models import (
    ConversionCandidate,
    ConversionPlan,
    QualitySettings,
    Strategy,
)
from vlconv.executor.utils import plan_paths
from vlconv.tools.models import (
    AUDIO_ENCODER,
    SOFTWARE_VIDEO_ENCODER,
    VAAPI_DEVICE,
    Capabilities,
)

logger = logging.getLogger(__name__)

SOFTWARE_PRESET = "medium"


def video_quality_args(encoder: str, crf: int) -> list[str]:
    """Build video encoder and quality arguments.

    Args:
        encoder: ffmpeg encoder name.
        crf: Constant rate factor on the x264 scale (lower is better).

    Returns:
        List of ffmpeg arguments.
    """
    if encoder == "h264_videotoolbox":
        # -q:v runs 1..100, higher is better
        return ["-c:v", encoder, "-q:v", str(100 - 2 * crf), "-pix_fmt", "yuv420p"]
    if encoder == "h264_nvenc":
        return ["-c:v", encoder, "-rc", "vbr", "-cq", str(crf), "-b:v", "0"]
    if encoder == "h264_qsv":
        return ["-c:v", encoder, "-global_quality", str(crf)]
    if encoder == "h264_vaapi":
        return ["-c:v", encoder, "-qp", str(crf)]
    return [
        "-c:v",
        SOFTWARE_VIDEO_ENCODER,
        "-preset",
        SOFTWARE_PRESET,
        "-crf",
        str(crf),
        "-pix_fmt",
        "yuv420p",
    ]


def audio_quality_args(audio_bitrate_kbps: int) -> list[str]:
    """Build AAC audio arguments."""
    return ["-c:a", AUDIO_ENCODER, "-b:a", f"{audio_bitrate_kbps}k"]


def build_transcode_args(
    ffmpeg: str,
    input_path: str,
    output_path: str,
    quality: QualitySettings,
    *,
    encoder: str = SOFTWARE_VIDEO_ENCODER,
    stats_period: bool = True,
) -> list[str]:
    """Build the full ffmpeg argument list for a transcode."""
    args = [ffmpeg, "-hide_banner", "-nostdin", "-y"]
    if encoder == "h264_vaapi":
        args.extend(["-vaapi_device", VAAPI_DEVICE])
    args.extend(["-i", input_path, "-map", "0:v:0", "-map", "0:a?"])
    if encoder == "h264_vaapi":
        args.extend(["-vf", "format=nv12,hwupload"])
    args.extend(video_quality_args(encoder, quality.crf))
    args.extend(audio_quality_args(quality.audio_bitrate_kbps))
    args.extend(["-movflags", "+faststart"])
    if stats_period:
        args.extend(["-stats_period", "1"])
    args.append(output_path)
    return args


def build_transcode_plan(
    candidate: ConversionCandidate,
    quality: QualitySettings,
    capabilities: Capabilities,
    config: ConversionConfig | None = None,
    *,
    allow_hardware: bool = True,
) -> ConversionPlan:
    """Build a full re-encode plan.

    Hardware encoding is used when the caller prefers it, the capability
    snapshot verified a hardware encoder, and allow_hardware is set (it is
    cleared for the software retry after a hardware failure).

    Raises:
        UnsupportedFormatError: If the candidate is not convertible.
        EncoderMissingError: If no H.264/AAC-capable ffmpeg is installed.
    """
    if not candidate.is_convertible:
        raise UnsupportedFormatError(
            f"{candidate.source_path.name} is not a convertible video"
        )
    if not capabilities.has_encoder or capabilities.encoder_path is None:
        raise EncoderMissingError(
            "ffmpeg with libx264 and aac is required to transcode"
        )

    config = config or ConversionConfig()
    hardware = (
        allow_hardware
        and quality.prefer_hardware
        and capabilities.hw_accel_available
        and capabilities.hw_encoder is not None
    )
    encoder = SOFTWARE_VIDEO_ENCODER
    if hardware and capabilities.hw_encoder:
        encoder = capabilities.hw_encoder

    output_path, backup_path, temp_path = plan_paths(candidate.source_path, config)
    args = build_transcode_args(
        str(capabilities.encoder_path),
        str(backup_path),
        str(temp_path),
        quality,
        encoder=encoder,
        stats_period=capabilities.supports_stats_period,
    )
    logger.debug("Transcode plan for %s: %s", candidate.source_path, " ".join(args))
    return ConversionPlan(
        candidate=candidate,
        strategy=Strategy.TRANSCODE,
        quality=quality,
        output_path=output_path,
        backup_path=backup_path,
        temp_path=temp_path,
        args=tuple(args),
        hardware=hardware,
        encoder=encoder,
    )
