"""ffmpeg stderr parsing.

ffmpeg reports progress on stderr in lines such as::

    frame= 1234 fps= 30 size= 5120kB time=00:01:23.45 bitrate=502.1kbits/s

This module extracts the elapsed output time from those lines and
recognises the diagnostic markers that decide how a failed run is handled.
"""

import re
from collections.abc import Iterable

from vlconv.conversion.models import ProgressSample

# time=HH:MM:SS.cc; early lines can carry a small negative timestamp
TIME_PATTERN = re.compile(r"time=\s*(-)?(\d+):(\d{2}):(\d{2}(?:\.\d+)?)")

# Lines that mean the run failed even if the exit code claims otherwise
FATAL_MARKERS: tuple[str, ...] = (
    "Conversion failed!",
    "Error opening output file",
    "Error initializing output stream",
    "Could not write header",
    "Error while opening encoder",
)

# Stream copy into MP4 rejected; the source needs a transcode instead
STREAM_COPY_MARKERS: tuple[str, ...] = (
    "Could not find tag for codec",
    "not currently supported in container",
    "codec not currently supported",
    "Could not write header",
    "incorrect codec parameters",
)

# Hardware encoder could not be used; a software retry is worthwhile
HARDWARE_FAILURE_PATTERNS: tuple[str, ...] = (
    "Failed to initialise VAAPI",
    "Failed to create VAAPI",
    "No VAAPI support",
    "No device available",
    "Cannot load nvenc",
    "NVENC not available",
    "OpenEncodeSessionEx failed",
    "hwaccel initialisation returned error",
    "cannot create compression session",
    "Error: cannot create compression session",
    "Cannot open display",
    "Failed to open encoder",
)


def parse_time_seconds(line: str) -> float | None:
    """Extract the ``time=`` value from a progress line, in seconds.

    Returns:
        Elapsed output time (never negative), or None when the line has no
        parseable timestamp (including ``time=N/A``).
    """
    match = TIME_PATTERN.search(line)
    if not match:
        return None
    negative, hours, minutes, seconds = match.groups()
    if negative:
        return 0.0
    return int(hours) * 3600 + int(minutes) * 60 + float(seconds)


def compute_fraction(elapsed: float, total: float | None) -> float:
    """Clamp elapsed / total into [0, 1]; unknown totals give 0."""
    if total is None or total <= 0:
        return 0.0
    return max(0.0, min(1.0, elapsed / total))


def parse_progress_sample(
    line: str, total_seconds: float | None
) -> ProgressSample | None:
    """Turn a stderr line into a ProgressSample, or None if it carries no time."""
    elapsed = parse_time_seconds(line)
    if elapsed is None:
        return None
    return ProgressSample(
        elapsed_seconds=elapsed,
        total_seconds=total_seconds,
        fraction=compute_fraction(elapsed, total_seconds),
        raw_line=line,
    )


def _matches_any(lines: Iterable[str], markers: tuple[str, ...]) -> str | None:
    lowered = [marker.casefold() for marker in markers]
    for line in lines:
        folded = line.casefold()
        for marker, low in zip(markers, lowered):
            if low in folded:
                return marker
    return None


def find_fatal_marker(lines: Iterable[str]) -> str | None:
    """Return the first fatal marker found in the lines, if any."""
    return _matches_any(lines, FATAL_MARKERS)


def is_stream_copy_incompatible(lines: Iterable[str]) -> bool:
    """Return True if the lines show the muxer rejected a copied stream."""
    return _matches_any(lines, STREAM_COPY_MARKERS) is not None


def find_hardware_failure(lines: Iterable[str]) -> str | None:
    """Return the hardware failure pattern found in the lines, if any."""
    return _matches_any(lines, HARDWARE_FAILURE_PATTERNS)
