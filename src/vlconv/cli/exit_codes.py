"""Exit codes for vlconv CLI commands."""

from enum import IntEnum


class ExitCode(IntEnum):
    """Exit codes shared by all commands."""

    SUCCESS = 0

    # At least one file failed, timed out, or could not be handled
    FAILURES = 1

    # No transcode-capable ffmpeg, and nothing was converted
    ENCODER_MISSING = 2

    # Ctrl+C / SIGTERM (128 + SIGINT)
    INTERRUPTED = 130
