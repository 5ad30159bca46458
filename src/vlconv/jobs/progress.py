"""Terminal rendering of batch events."""

from __future__ import annotations

import logging
import sys
import threading
import time
from typing import TextIO

from vlconv.jobs.events import (
    BatchEvent,
    BatchFinished,
    EncoderMissing,
    FileFinished,
    FileStarted,
    Progress,
)

logger = logging.getLogger(__name__)

# Fractions below this give wildly unstable estimates
_MIN_ETA_FRACTION = 0.01


def format_duration(seconds: float) -> str:
    """Format seconds as M:SS or H:MM:SS."""
    total = max(0, int(round(seconds)))
    hours, rest = divmod(total, 3600)
    minutes, secs = divmod(rest, 60)
    if hours:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"


def estimate_remaining(
    file_elapsed: float,
    fraction: float,
    finished_durations: list[float],
    files_after_current: int,
) -> float | None:
    """Estimate seconds left in the batch.

    The current file is extrapolated from its own progress; files not yet
    started are assumed to take as long as the average finished file (or
    as long as the current file's projected total when none has finished).

    Returns:
        Estimated seconds, or None while too little progress is known.
    """
    if fraction < _MIN_ETA_FRACTION:
        return None
    projected_total = file_elapsed / fraction
    current_left = projected_total - file_elapsed
    if finished_durations:
        per_file = sum(finished_durations) / len(finished_durations)
    else:
        per_file = projected_total
    return current_left + per_file * files_after_current


class StderrBatchReporter:
    """Reporter that renders batch events on stderr with in-place updates.

    Args:
        enabled: If False, suppresses output (for JSON mode or tests).
        verbose: Also echo the encoder's non-progress diagnostic lines.
        stream: Output stream, stderr by default.
    """

    def __init__(
        self,
        enabled: bool = True,
        verbose: bool = False,
        stream: TextIO | None = None,
    ) -> None:
        self.enabled = enabled
        self.verbose = verbose
        self._stream = stream
        self._lock = threading.Lock()
        self._index = 0
        self._total = 0
        self._file_started_at: float | None = None
        self._finished_durations: list[float] = []
        self._line_open = False

    @property
    def stream(self) -> TextIO:
        """Stream to write to; resolved lazily so tests can swap sys.stderr."""
        return self._stream or sys.stderr

    def __call__(self, event: BatchEvent) -> None:
        """Render one event."""
        if isinstance(event, FileStarted):
            self._on_file_started(event)
        elif isinstance(event, Progress):
            self._on_progress(event)
        elif isinstance(event, FileFinished):
            self._on_file_finished(event)
        elif isinstance(event, BatchFinished):
            self._on_batch_finished(event)
        elif isinstance(event, EncoderMissing):
            self._write_line(f"Warning: {event.message}")

    def _on_file_started(self, event: FileStarted) -> None:
        with self._lock:
            self._index = event.index
            self._total = event.total
            self._file_started_at = time.monotonic()
        self._write_line(f"[{event.index}/{event.total}] {event.path.name}")

    def _on_progress(self, event: Progress) -> None:
        if event.sample is None:
            if self.verbose:
                self._write_line(f"    {event.raw_line}")
            return

        with self._lock:
            started = self._file_started_at
            finished = list(self._finished_durations)
            files_after = max(0, self._total - self._index)
        elapsed = time.monotonic() - started if started is not None else 0.0
        eta = estimate_remaining(elapsed, event.fraction, finished, files_after)
        eta_text = f" ETA {format_duration(eta)}" if eta is not None else ""
        self._write_partial(f"    {event.fraction * 100:5.1f}%{eta_text}")

    def _on_file_finished(self, event: FileFinished) -> None:
        with self._lock:
            if self._file_started_at is not None:
                self._finished_durations.append(
                    time.monotonic() - self._file_started_at
                )
            self._file_started_at = None
        self._write_line(f"    {event.outcome.describe()}")

    def _on_batch_finished(self, event: BatchFinished) -> None:
        s = event.summary
        parts = [f"{s.succeeded} converted"]
        if s.failed:
            parts.append(f"{s.failed} failed")
        if s.timed_out:
            parts.append(f"{s.timed_out} timed out")
        if s.cancelled:
            parts.append(f"{s.cancelled} cancelled")
        if s.not_attempted:
            parts.append(f"{s.not_attempted} not attempted")
        self._write_line(
            f"Done in {format_duration(s.elapsed_seconds)}: {', '.join(parts)}"
        )

    def _write_partial(self, text: str) -> None:
        if not self.enabled:
            return
        self.stream.write(f"\r{text}\033[K")
        self.stream.flush()
        self._line_open = True

    def _write_line(self, text: str) -> None:
        if not self.enabled:
            return
        if self._line_open:
            self.stream.write("\r\033[K")
            self._line_open = False
        self.stream.write(f"{text}\n")
        self.stream.flush()
