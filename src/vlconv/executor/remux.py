"""Fast remux strategy: stream copy into MP4 without re-encoding."""

import logging

from vlconv.config.models import ConversionConfig
from vlconv.conversion.exceptions import EncoderMissingError, UnsupportedFormatError
from vlconv.conversion.models import (
    Classification,
    ConversionCandidate,
    ConversionPlan,
    QualitySettings,
    Strategy,
)
from vlconv.executor.utils import plan_paths
from vlconv.tools.models import Capabilities

logger = logging.getLogger(__name__)


def build_remux_args(
    ffmpeg: str,
    input_path: str,
    output_path: str,
    *,
    video_codec: str | None = None,
    stats_period: bool = True,
) -> list[str]:
    """Build ffmpeg arguments that copy video and audio into MP4.

    Subtitle and attachment streams are dropped; MP4 cannot carry the
    formats MKV usually holds them in.
    """
    args = [
        ffmpeg,
        "-hide_banner",
        "-nostdin",
        "-y",
        "-i",
        input_path,
        "-map",
        "0:v",
        "-map",
        "0:a?",
        "-c",
        "copy",
    ]
    if video_codec == "hevc":
        # Apple players only recognise HEVC in MP4 under the hvc1 tag
        args.extend(["-tag:v", "hvc1"])
    args.extend(["-movflags", "+faststart"])
    if stats_period:
        args.extend(["-stats_period", "1"])
    args.append(output_path)
    return args


def build_remux_plan(
    candidate: ConversionCandidate,
    quality: QualitySettings,
    capabilities: Capabilities,
    config: ConversionConfig | None = None,
) -> ConversionPlan:
    """Build a stream-copy plan for a remux-eligible candidate.

    The encoder reads from the backup path, because the source has been
    renamed by the time the plan runs.

    Raises:
        UnsupportedFormatError: If the candidate is not remux-eligible.
        EncoderMissingError: If no runnable ffmpeg is installed.
    """
    if candidate.classification != Classification.REMUX_ELIGIBLE:
        raise UnsupportedFormatError(
            f"{candidate.source_path.name} cannot be remuxed "
            f"({candidate.classification.value})"
        )
    if capabilities.remux_path is None:
        raise EncoderMissingError("ffmpeg is not available for remuxing")

    config = config or ConversionConfig()
    output_path, backup_path, temp_path = plan_paths(candidate.source_path, config)
    args = build_remux_args(
        str(capabilities.remux_path),
        str(backup_path),
        str(temp_path),
        video_codec=candidate.video_codec,
        stats_period=capabilities.supports_stats_period,
    )
    logger.debug("Remux plan for %s: %s", candidate.source_path, " ".join(args))
    return ConversionPlan(
        candidate=candidate,
        strategy=Strategy.REMUX,
        quality=quality,
        output_path=output_path,
        backup_path=backup_path,
        temp_path=temp_path,
        args=tuple(args),
        hardware=False,
        encoder="copy",
    )
