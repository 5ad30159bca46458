"""Events emitted by the batch orchestrator.

A reporter is any callable that accepts one of these events. Events for a
batch arrive on the event loop, in order: optionally EncoderMissing, then
per file FileStarted, any number of Progress, FileFinished, and finally
BatchFinished.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Union

from vlconv.conversion.models import BatchSummary, ConversionOutcome, ProgressSample


@dataclass(frozen=True)
class FileStarted:
    """A file is about to be classified and converted."""

    path: Path
    index: int  # 1-based
    total: int


@dataclass(frozen=True)
class Progress:
    """A line from the encoder's diagnostic stream.

    sample is set for progress markers; other lines carry the fraction of
    the last marker unchanged.
    """

    path: Path
    fraction: float
    raw_line: str
    sample: ProgressSample | None = None


@dataclass(frozen=True)
class FileFinished:
    """A file reached its terminal outcome."""

    outcome: ConversionOutcome
    index: int
    total: int


@dataclass(frozen=True)
class BatchFinished:
    """The batch ended, normally or by cancellation."""

    summary: BatchSummary


@dataclass(frozen=True)
class EncoderMissing:
    """No transcode-capable encoder is installed. Emitted once per batch."""

    message: str


BatchEvent = Union[FileStarted, Progress, FileFinished, BatchFinished, EncoderMissing]
Reporter = Callable[[BatchEvent], None]


def null_reporter(event: BatchEvent) -> None:
    """Reporter that discards every event."""
