"""Conversion domain: candidates, plans, outcomes, and classification.

- models: Immutable value types shared by the pipeline
- classifier: Container/codec decision table (import directly; it depends
  on the tools package, which depends on config)
- conflicts: Pure decision function for existing output files
- exceptions: Conversion error taxonomy
"""

from vlconv.conversion.conflicts import (
    ConflictAction,
    ConflictResolver,
    FileMeta,
    decide_output_conflict,
)
from vlconv.conversion.exceptions import (
    ConversionError,
    ConversionTimeoutError,
    EncodeFailureError,
    EncoderMissingError,
    FilesystemError,
    OutputConflictError,
    OutputVerificationError,
    SpawnFailureError,
    StreamCopyIncompatibleError,
    UnsupportedFormatError,
    UserCancelledError,
    error_for_reason,
)
from vlconv.conversion.models import (
    BatchRun,
    BatchSummary,
    Classification,
    ConversionCandidate,
    ConversionOutcome,
    ConversionPlan,
    FailureReason,
    MediaProbe,
    OutcomeState,
    ProgressSample,
    QualitySettings,
    Strategy,
)

__all__ = [
    # Models
    "BatchRun",
    "BatchSummary",
    "Classification",
    "ConversionCandidate",
    "ConversionOutcome",
    "ConversionPlan",
    "FailureReason",
    "MediaProbe",
    "OutcomeState",
    "ProgressSample",
    "QualitySettings",
    "Strategy",
    # Conflicts
    "ConflictAction",
    "ConflictResolver",
    "FileMeta",
    "decide_output_conflict",
    # Exceptions
    "ConversionError",
    "ConversionTimeoutError",
    "EncodeFailureError",
    "EncoderMissingError",
    "FilesystemError",
    "OutputConflictError",
    "OutputVerificationError",
    "SpawnFailureError",
    "StreamCopyIncompatibleError",
    "UnsupportedFormatError",
    "UserCancelledError",
    "error_for_reason",
]
