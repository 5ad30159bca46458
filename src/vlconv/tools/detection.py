"""ffmpeg detection and capability probing.

This module locates ffmpeg and ffprobe, parses their versions, lists
encoders and verifies hardware encoders by encoding a synthetic frame.
Nothing here raises: every failure degrades to a missing capability plus
an explanatory message.
"""

import logging
import platform
import re
import shutil
import subprocess  # nosec B404 - subprocess is required for tool detection
from collections.abc import Iterable
from datetime import datetime, timezone
from pathlib import Path

from vlconv.config.models import DetectionConfig, ToolPathsConfig
from vlconv.tools.models import (
    AUDIO_ENCODER,
    HW_ENCODER_ORDER,
    SOFTWARE_VIDEO_ENCODER,
    VAAPI_DEVICE,
    Capabilities,
)

logger = logging.getLogger(__name__)

# Timeout for version/capability detection commands (seconds)
DETECTION_TIMEOUT = 10

# Package-manager install locations checked before PATH
WELL_KNOWN_DIRS: tuple[Path, ...] = (
    Path("/opt/homebrew/bin"),
    Path("/usr/local/bin"),
    Path("/usr/bin"),
)


def parse_version_string(version_str: str) -> tuple[int, ...] | None:
    """Parse a version string into a comparable tuple.

    Handles various version formats:
    - "6.1.1" -> (6, 1, 1)
    - "n6.1.1" -> (6, 1, 1)  (ffmpeg nightlies)
    - "7.0-static" -> (7, 0)

    Returns:
        Tuple of version components, or None if parsing fails.
    """
    if not version_str:
        return None

    version_str = version_str.lstrip("nv")

    match = re.match(r"(\d+(?:\.\d+)*)", version_str)
    if not match:
        return None

    return tuple(int(p) for p in match.group(1).split("."))


def _candidate_paths(
    name: str, configured_path: Path | None, bundle_dir: Path | None
) -> list[Path]:
    candidates: list[Path] = []
    if configured_path:
        candidates.append(configured_path)
    if bundle_dir:
        candidates.append(bundle_dir / name)
    candidates.extend(directory / name for directory in WELL_KNOWN_DIRS)
    return candidates


def _find_tool(
    name: str,
    configured_path: Path | None = None,
    bundle_dir: Path | None = None,
) -> Path | None:
    """Find a tool executable.

    Lookup order: configured path, bundle directory, well-known install
    locations, then PATH.

    Args:
        name: Tool name (e.g., "ffmpeg").
        configured_path: Optional configured path override.
        bundle_dir: Optional directory with binaries shipped alongside vlconv.

    Returns:
        Path to tool executable, or None if not found.
    """
    if configured_path and not configured_path.is_file():
        logger.warning(
            "Configured path for %s is not a file: %s", name, configured_path
        )

    for candidate in _candidate_paths(name, configured_path, bundle_dir):
        if candidate.is_file():
            return candidate

    which_result = shutil.which(name)
    if which_result:
        return Path(which_result)

    return None


def find_ffmpeg(tools: ToolPathsConfig) -> Path | None:
    """Locate the ffmpeg binary."""
    return _find_tool("ffmpeg", tools.ffmpeg, tools.bundle_dir)


def find_ffprobe(
    tools: ToolPathsConfig, ffmpeg_path: Path | None = None
) -> Path | None:
    """Locate ffprobe, preferring the one installed next to ffmpeg."""
    if tools.ffprobe is None and ffmpeg_path is not None:
        sibling = ffmpeg_path.with_name("ffprobe")
        if sibling.is_file():
            return sibling
    return _find_tool("ffprobe", tools.ffprobe, tools.bundle_dir)


def _run_command(
    args: list[str], timeout: int = DETECTION_TIMEOUT
) -> tuple[str, str, int]:
    """Run a command and capture output.

    Returns:
        Tuple of (stdout, stderr, returncode). Failures to run report -1.
    """
    try:
        result = subprocess.run(  # nosec B603 - args are tool paths and fixed flags
            args,
            capture_output=True,
            text=True,
            errors="replace",
            timeout=timeout,
        )
        return result.stdout, result.stderr, result.returncode
    except subprocess.TimeoutExpired:
        logger.warning("Command timed out: %s", " ".join(args))
        return "", "timeout", -1
    except FileNotFoundError:
        return "", "not found", -1
    except OSError as e:
        logger.warning("Command failed: %s - %s", " ".join(args), e)
        return "", str(e), -1


def parse_encoder_list(output: str) -> frozenset[str]:
    """Parse ``ffmpeg -encoders`` output into encoder names.

    Lines look like `` V....D libx264   libx264 H.264 / AVC ...``. The legend
    at the top (`` V..... = Video``) is skipped because its name column
    is ``=``.
    """
    compiled = re.compile(r"\s+[VASFXBDI.]{6}\s+(\S+)")
    return frozenset(
        match.group(1).casefold()
        for line in output.split("\n")
        if (match := compiled.match(line)) and match.group(1) != "="
    )


def hw_probe_command(ffmpeg_path: Path, encoder: str) -> list[str]:
    """Build the command that encodes one synthetic frame with an encoder."""
    null_device = "NUL" if platform.system() == "Windows" else "/dev/null"
    cmd = [str(ffmpeg_path), "-hide_banner", "-nostdin"]
    if encoder == "h264_vaapi":
        cmd += ["-vaapi_device", VAAPI_DEVICE]
    cmd += ["-f", "lavfi", "-i", "nullsrc=s=256x256:d=0.1"]
    if encoder == "h264_vaapi":
        cmd += ["-vf", "format=nv12,hwupload"]
    cmd += ["-frames:v", "1", "-c:v", encoder, "-f", "null", "-y", null_device]
    return cmd


def probe_hw_encoder(
    ffmpeg_path: Path, encoder: str, timeout: int = DETECTION_TIMEOUT
) -> bool:
    """Probe a single hardware encoder for actual usability.

    Returns:
        True if the encoder produced a frame, False otherwise.
    """
    _, stderr, rc = _run_command(hw_probe_command(ffmpeg_path, encoder), timeout)
    if rc != 0:
        logger.debug(
            "Hardware encoder %s unusable: %s",
            encoder,
            stderr.strip().splitlines()[-1] if stderr.strip() else rc,
        )
    return rc == 0


def detect_hw_encoder(
    ffmpeg_path: Path,
    encoders: Iterable[str],
    timeout: int = DETECTION_TIMEOUT,
) -> str | None:
    """Return the first listed hardware encoder that actually works.

    Listing in ``ffmpeg -encoders`` does not mean the hardware is present,
    so each listed candidate is exercised in probe order.
    """
    listed = set(encoders)
    for encoder in HW_ENCODER_ORDER:
        if encoder not in listed:
            continue
        if probe_hw_encoder(ffmpeg_path, encoder, timeout):
            logger.debug("Hardware encoder %s verified", encoder)
            return encoder
    return None


def detect_capabilities(
    tools: ToolPathsConfig | None = None,
    detection: DetectionConfig | None = None,
) -> Capabilities:
    """Detect what the local ffmpeg installation can do.

    Never raises; a missing or broken ffmpeg yields a snapshot with
    ``has_encoder=False`` and a message explaining why.

    Args:
        tools: Configured tool paths.
        detection: Detection options (timeouts, hardware probing switch).

    Returns:
        Frozen Capabilities snapshot.
    """
    tools = tools or ToolPathsConfig()
    detection = detection or DetectionConfig()
    detected_at = datetime.now(timezone.utc)
    messages: list[str] = []

    ffmpeg_path = find_ffmpeg(tools)
    ffprobe_path = find_ffprobe(tools, ffmpeg_path)
    if ffprobe_path is None:
        messages.append("ffprobe not found; codec sampling unavailable")

    if ffmpeg_path is None:
        messages.append("ffmpeg not found in bundle, install locations or PATH")
        logger.warning("ffmpeg not found")
        return Capabilities(
            ffprobe_path=ffprobe_path,
            messages=tuple(messages),
            detected_at=detected_at,
        )

    stdout, stderr, rc = _run_command(
        [str(ffmpeg_path), "-version"], detection.timeout_seconds
    )
    if rc != 0:
        messages.append(f"ffmpeg at {ffmpeg_path} failed to run: {stderr.strip()}")
        logger.warning(
            "ffmpeg failed to report its version",
            extra={"ffmpeg_path": str(ffmpeg_path), "returncode": rc},
        )
        return Capabilities(
            ffprobe_path=ffprobe_path,
            messages=tuple(messages),
            detected_at=detected_at,
        )

    version = None
    version_match = re.search(r"ffmpeg version (\S+)", stdout)
    if version_match:
        version = version_match.group(1)
    version_tuple = parse_version_string(version) if version else None

    stdout, stderr, rc = _run_command(
        [str(ffmpeg_path), "-hide_banner", "-encoders"], detection.timeout_seconds
    )
    if rc == 0:
        encoders = parse_encoder_list(stdout)
    else:
        logger.warning("Failed to enumerate ffmpeg encoders: %s", stderr)
        encoders = frozenset()

    has_encoder = SOFTWARE_VIDEO_ENCODER in encoders and AUDIO_ENCODER in encoders
    if not has_encoder:
        missing = [
            name for name in (SOFTWARE_VIDEO_ENCODER, AUDIO_ENCODER)
            if name not in encoders
        ]
        messages.append(
            f"ffmpeg lacks {', '.join(missing)}; only remuxing is possible"
        )

    hw_encoder = None
    if detection.disable_hw_accel:
        messages.append("hardware acceleration disabled by configuration")
    else:
        hw_encoder = detect_hw_encoder(ffmpeg_path, encoders, detection.timeout_seconds)
        if hw_encoder is None:
            messages.append("no usable hardware H.264 encoder")

    capabilities = Capabilities(
        has_encoder=has_encoder,
        encoder_path=ffmpeg_path if has_encoder else None,
        hw_accel_available=hw_encoder is not None,
        hw_encoder=hw_encoder,
        remux_path=ffmpeg_path,
        ffprobe_path=ffprobe_path,
        version=version,
        version_tuple=version_tuple,
        encoders=encoders,
        messages=tuple(messages),
        detected_at=detected_at,
    )
    logger.info(
        "Detected ffmpeg %s (encoder=%s, hardware=%s)",
        version or "unknown",
        has_encoder,
        hw_encoder or "none",
        extra={"ffmpeg_path": str(ffmpeg_path)},
    )
    return capabilities
