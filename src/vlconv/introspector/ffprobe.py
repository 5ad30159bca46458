"""Media introspection through ffprobe's JSON writer."""

import json
import subprocess  # nosec B404 - ffprobe is an external binary
from pathlib import Path

from vlconv.conversion.models import MediaProbe
from vlconv.introspector.interface import MediaIntrospectionError
from vlconv.introspector.parsers import parse_ffprobe_output

# Metadata probes should be near-instant; a hang means a broken file or mount
PROBE_TIMEOUT = 30

# Only the fields parse_ffprobe_output reads
_SHOW_ENTRIES = ":".join(
    (
        "stream=codec_type,codec_name,duration",
        "stream_disposition=attached_pic",
        "format=format_name,duration",
    )
)


class FFprobeIntrospector:
    """Probe files by reading container headers with ffprobe.

    Nothing is decoded, so a probe costs a few milliseconds even for large
    files on local disk.
    """

    def __init__(self, ffprobe_path: Path | None, timeout: int = PROBE_TIMEOUT) -> None:
        """Create an introspector.

        Args:
            ffprobe_path: ffprobe binary from the capability snapshot, or
                None when it was not found. Every probe then fails.
            timeout: Seconds before a probe is abandoned.
        """
        self._ffprobe_path = ffprobe_path
        self._timeout = timeout

    def probe(self, path: Path) -> MediaProbe:
        """Return the container, codecs and duration of ``path``.

        Raises:
            MediaIntrospectionError: ffprobe is missing, the file is missing,
                or ffprobe failed, hung or printed something unusable.
        """
        if self._ffprobe_path is None:
            raise MediaIntrospectionError(
                "ffprobe is not installed or not in PATH. "
                "Install ffmpeg or set VLCONV_FFPROBE_PATH."
            )
        if not path.exists():
            raise MediaIntrospectionError(f"File not found: {path}")

        stdout = self._invoke(path)
        try:
            document = json.loads(stdout)
        except json.JSONDecodeError as e:
            raise MediaIntrospectionError(
                f"Unreadable ffprobe output for {path}: {e}"
            ) from e

        if not isinstance(document, dict) or "streams" not in document:
            raise MediaIntrospectionError(
                f"ffprobe reported no streams for {path}; "
                "the file is damaged or not a media file"
            )
        return parse_ffprobe_output(path, document)

    def command_for(self, path: Path) -> list[str]:
        """Argument vector used to probe ``path``."""
        return [
            str(self._ffprobe_path),
            "-v",
            "error",
            "-of",
            "json",
            "-show_entries",
            _SHOW_ENTRIES,
            str(path),
        ]

    def _invoke(self, path: Path) -> str:
        try:
            completed = subprocess.run(  # nosec B603 - argv only, no shell
                self.command_for(path),
                capture_output=True,
                text=True,
                errors="replace",
                check=True,
                timeout=self._timeout,
            )
        except subprocess.TimeoutExpired as e:
            raise MediaIntrospectionError(
                f"ffprobe timed out on {path} after {e.timeout}s"
            ) from e
        except subprocess.CalledProcessError as e:
            detail = (e.stderr or "").strip() or f"exit status {e.returncode}"
            raise MediaIntrospectionError(f"ffprobe failed on {path}: {detail}") from e
        except OSError as e:
            raise MediaIntrospectionError(f"Could not run ffprobe: {e}") from e
        return completed.stdout
