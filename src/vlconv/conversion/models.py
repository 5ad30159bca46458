"""Conversion domain models.

Value types passed between the classifier, the conversion strategies, the
process supervisor and the batch orchestrator. Everything except BatchRun is
frozen: a candidate or plan never changes once built.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

# Quality bounds exposed to callers
CRF_MIN = 15
CRF_MAX = 30
AUDIO_BITRATE_MIN_KBPS = 128
AUDIO_BITRATE_MAX_KBPS = 320

DEFAULT_CRF = 20
DEFAULT_AUDIO_BITRATE_KBPS = 192


class Classification(Enum):
    """How a source file can be brought into the target container."""

    NOT_CONVERTIBLE = "not_convertible"
    REMUX_ELIGIBLE = "remux_eligible"
    TRANSCODE_REQUIRED = "transcode_required"


class Strategy(Enum):
    """Conversion strategy used to build an execution plan."""

    REMUX = "remux"  # Stream copy into a new container
    TRANSCODE = "transcode"  # Full re-encode


class OutcomeState(Enum):
    """Terminal state of one file in a batch."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"


class FailureReason(Enum):
    """Why a file did not convert."""

    UNSUPPORTED_FORMAT = "unsupported_format"
    ENCODER_MISSING = "encoder_missing"
    SPAWN_FAILURE = "spawn_failure"
    STREAM_COPY_INCOMPATIBLE = "stream_copy_incompatible"
    ENCODE_FAILURE = "encode_failure"
    TIMEOUT = "timeout"
    USER_CANCELLED = "user_cancelled"
    OUTPUT_VERIFICATION_FAILED = "output_verification_failed"
    OUTPUT_CONFLICT = "output_conflict"
    FILESYSTEM_ERROR = "filesystem_error"


@dataclass(frozen=True)
class QualitySettings:
    """Caller-selected quality parameters for a batch.

    Lower CRF means higher quality and larger output. Higher audio bitrate
    means higher fidelity and larger output.
    """

    crf: int = DEFAULT_CRF
    audio_bitrate_kbps: int = DEFAULT_AUDIO_BITRATE_KBPS
    prefer_hardware: bool = True

    def __post_init__(self) -> None:
        """Validate ranges."""
        if not CRF_MIN <= self.crf <= CRF_MAX:
            raise ValueError(
                f"crf must be between {CRF_MIN} and {CRF_MAX}, got {self.crf}"
            )
        bitrate = self.audio_bitrate_kbps
        if not AUDIO_BITRATE_MIN_KBPS <= bitrate <= AUDIO_BITRATE_MAX_KBPS:
            raise ValueError(
                f"audio_bitrate_kbps must be between {AUDIO_BITRATE_MIN_KBPS} and "
                f"{AUDIO_BITRATE_MAX_KBPS}, got {self.audio_bitrate_kbps}"
            )


@dataclass(frozen=True)
class MediaProbe:
    """Container metadata sampled from a source file (no decode)."""

    path: Path
    container: str | None = None
    video_codec: str | None = None
    audio_codecs: tuple[str, ...] = ()
    duration_seconds: float | None = None


@dataclass(frozen=True)
class ConversionCandidate:
    """A source file tagged with its classification."""

    source_path: Path
    classification: Classification
    container: str | None = None
    video_codec: str | None = None
    audio_codec: str | None = None
    duration_seconds: float | None = None
    reason: FailureReason | None = None
    """Set when the candidate cannot proceed (unsupported, encoder missing)."""

    detail: str = ""
    """Human-readable explanation of the classification."""

    @property
    def is_convertible(self) -> bool:
        """True if the classifier found a strategy for this file."""
        return self.classification != Classification.NOT_CONVERTIBLE

    def to_dict(self) -> dict:
        """Serialize for JSON output."""
        return {
            "path": str(self.source_path),
            "classification": self.classification.value,
            "container": self.container,
            "video_codec": self.video_codec,
            "audio_codec": self.audio_codec,
            "duration_seconds": self.duration_seconds,
            "reason": self.reason.value if self.reason else None,
            "detail": self.detail,
        }


@dataclass(frozen=True)
class ConversionPlan:
    """Everything needed to run one supervised encoder execution.

    The input to the encoder is the backup path: the source has already
    been renamed out of the way when the plan runs. The encoder writes to
    temp_path, which is promoted to output_path on success.
    """

    candidate: ConversionCandidate
    strategy: Strategy
    quality: QualitySettings
    output_path: Path
    backup_path: Path
    temp_path: Path
    args: tuple[str, ...]
    hardware: bool = False
    encoder: str | None = None

    @property
    def source_path(self) -> Path:
        """Original location of the source file."""
        return self.candidate.source_path

    @property
    def duration_seconds(self) -> float | None:
        """Probed duration of the source, used for progress fractions."""
        return self.candidate.duration_seconds


@dataclass(frozen=True)
class ProgressSample:
    """One parsed progress marker from the encoder's diagnostic stream."""

    elapsed_seconds: float
    total_seconds: float | None
    fraction: float
    raw_line: str


@dataclass(frozen=True)
class ConversionOutcome:
    """Final result for a single attempted candidate."""

    candidate: ConversionCandidate
    state: OutcomeState
    reason: FailureReason | None = None
    message: str = ""
    output_path: Path | None = None
    strategy: Strategy | None = None
    log_tail: tuple[str, ...] = ()
    """Last diagnostic lines from the encoder, kept for inspection."""

    @property
    def succeeded(self) -> bool:
        """True if the output replaced the original."""
        return self.state == OutcomeState.SUCCEEDED

    def describe(self) -> str:
        """Explain the outcome in terms of what happened on disk."""
        name = self.candidate.source_path.name
        if self.state == OutcomeState.SUCCEEDED:
            method = "remuxed" if self.strategy == Strategy.REMUX else "transcoded"
            target = self.output_path.name if self.output_path else "?"
            return f"{name}: {method}, replaced by {target}"
        if self.state == OutcomeState.TIMED_OUT:
            return f"{name}: timed out, original restored"
        if self.state == OutcomeState.CANCELLED:
            return f"{name}: cancelled, original restored"
        if self.reason in (
            FailureReason.UNSUPPORTED_FORMAT,
            FailureReason.ENCODER_MISSING,
            FailureReason.OUTPUT_CONFLICT,
        ):
            return f"{name}: skipped ({self.message or self.reason.value}), untouched"
        detail = self.message or (self.reason.value if self.reason else "failed")
        return f"{name}: failed ({detail}), original restored"

    def to_dict(self) -> dict:
        """Serialize for JSON output."""
        return {
            "path": str(self.candidate.source_path),
            "state": self.state.value,
            "reason": self.reason.value if self.reason else None,
            "message": self.message,
            "output_path": str(self.output_path) if self.output_path else None,
            "strategy": self.strategy.value if self.strategy else None,
            "log_tail": list(self.log_tail),
        }


@dataclass(frozen=True)
class BatchSummary:
    """Aggregate counts for a finished batch."""

    submitted: int
    succeeded: int = 0
    failed: int = 0
    timed_out: int = 0
    cancelled: int = 0
    elapsed_seconds: float = 0.0

    @property
    def attempted(self) -> int:
        """Number of candidates that received an outcome."""
        return self.succeeded + self.failed + self.timed_out + self.cancelled

    @property
    def not_attempted(self) -> int:
        """Candidates skipped because the batch was cancelled first."""
        return self.submitted - self.attempted

    @classmethod
    def from_outcomes(
        cls,
        submitted: int,
        outcomes: list[ConversionOutcome],
        elapsed_seconds: float = 0.0,
    ) -> BatchSummary:
        """Build a summary by counting outcome states."""
        counts = {state: 0 for state in OutcomeState}
        for outcome in outcomes:
            counts[outcome.state] += 1
        return cls(
            submitted=submitted,
            succeeded=counts[OutcomeState.SUCCEEDED],
            failed=counts[OutcomeState.FAILED],
            timed_out=counts[OutcomeState.TIMED_OUT],
            cancelled=counts[OutcomeState.CANCELLED],
            elapsed_seconds=elapsed_seconds,
        )

    def to_dict(self) -> dict:
        """Serialize for JSON output."""
        return {
            "submitted": self.submitted,
            "attempted": self.attempted,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "timed_out": self.timed_out,
            "cancelled": self.cancelled,
            "not_attempted": self.not_attempted,
            "elapsed_seconds": round(self.elapsed_seconds, 3),
        }


@dataclass
class BatchRun:
    """Mutable state of one batch. Owned by the batch orchestrator."""

    candidates: list[Path]
    current_index: int = 0
    outcomes: list[ConversionOutcome] = field(default_factory=list)
    cancel_requested: bool = False

    @property
    def total(self) -> int:
        """Number of submitted candidates."""
        return len(self.candidates)
