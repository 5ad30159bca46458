"""Batch orchestration and progress reporting."""

from vlconv.jobs.batch import BatchAlreadyStartedError, BatchOrchestrator
from vlconv.jobs.events import (
    BatchEvent,
    BatchFinished,
    EncoderMissing,
    FileFinished,
    FileStarted,
    Progress,
    Reporter,
    null_reporter,
)
from vlconv.jobs.progress import StderrBatchReporter, estimate_remaining

__all__ = [
    "BatchAlreadyStartedError",
    "BatchEvent",
    "BatchFinished",
    "BatchOrchestrator",
    "EncoderMissing",
    "FileFinished",
    "FileStarted",
    "Progress",
    "Reporter",
    "StderrBatchReporter",
    "estimate_remaining",
    "null_reporter",
]
