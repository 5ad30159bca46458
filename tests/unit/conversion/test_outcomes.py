"""Tests for outcome descriptions and batch summaries."""

from pathlib import Path

from vlconv.conversion.models import (
    BatchSummary,
    Classification,
    ConversionCandidate,
    ConversionOutcome,
    FailureReason,
    OutcomeState,
    Strategy,
)

CANDIDATE = ConversionCandidate(
    source_path=Path("/v/movie.mkv"),
    classification=Classification.REMUX_ELIGIBLE,
    container="mkv",
    video_codec="h264",
    audio_codec="aac",
    duration_seconds=60.0,
)


def _outcome(state, reason=None, **kwargs) -> ConversionOutcome:
    return ConversionOutcome(candidate=CANDIDATE, state=state, reason=reason, **kwargs)


class TestDescribe:
    """Outcome descriptions say what happened on disk."""

    def test_success(self) -> None:
        outcome = _outcome(
            OutcomeState.SUCCEEDED,
            output_path=Path("/v/movie.mp4"),
            strategy=Strategy.REMUX,
        )
        assert outcome.describe() == "movie.mkv: remuxed, replaced by movie.mp4"

    def test_failure_restored(self) -> None:
        outcome = _outcome(
            OutcomeState.FAILED, FailureReason.ENCODE_FAILURE, message="bad frame"
        )
        assert outcome.describe() == "movie.mkv: failed (bad frame), original restored"

    def test_skip_untouched(self) -> None:
        outcome = _outcome(
            OutcomeState.FAILED, FailureReason.OUTPUT_CONFLICT, message="exists"
        )
        assert outcome.describe() == "movie.mkv: skipped (exists), untouched"

    def test_timeout_and_cancel(self) -> None:
        assert "timed out" in _outcome(OutcomeState.TIMED_OUT).describe()
        assert "cancelled" in _outcome(OutcomeState.CANCELLED).describe()


class TestSerialization:
    """JSON views of candidates and outcomes."""

    def test_outcome_to_dict(self) -> None:
        data = _outcome(
            OutcomeState.TIMED_OUT,
            FailureReason.TIMEOUT,
            strategy=Strategy.TRANSCODE,
            log_tail=("a", "b"),
        ).to_dict()
        assert data["state"] == "timed_out"
        assert data["reason"] == "timeout"
        assert data["strategy"] == "transcode"
        assert data["log_tail"] == ["a", "b"]
        assert data["output_path"] is None

    def test_candidate_to_dict(self) -> None:
        data = CANDIDATE.to_dict()
        assert data["classification"] == "remux_eligible"
        assert data["path"] == "/v/movie.mkv"
        assert data["reason"] is None


class TestBatchSummary:
    """Tests for BatchSummary.from_outcomes."""

    def test_counts(self) -> None:
        outcomes = [
            _outcome(OutcomeState.SUCCEEDED),
            _outcome(OutcomeState.SUCCEEDED),
            _outcome(OutcomeState.FAILED, FailureReason.ENCODE_FAILURE),
            _outcome(OutcomeState.CANCELLED, FailureReason.USER_CANCELLED),
        ]
        summary = BatchSummary.from_outcomes(6, outcomes, 12.5)
        assert summary.succeeded == 2
        assert summary.failed == 1
        assert summary.cancelled == 1
        assert summary.attempted == 4
        assert summary.not_attempted == 2
        assert summary.to_dict()["elapsed_seconds"] == 12.5
