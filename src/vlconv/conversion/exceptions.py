"""Conversion error taxonomy.

Strategies and helpers raise these; the batch orchestrator converts every
one of them into a ConversionOutcome so a single bad file never aborts the
rest of a batch.
"""

from vlconv.conversion.models import FailureReason


class ConversionError(Exception):
    """Base exception for per-file conversion errors.

    Attributes:
        reason: Failure category reported on the outcome.
        log_tail: Last encoder diagnostic lines, if any were captured.
    """

    reason: FailureReason = FailureReason.ENCODE_FAILURE

    def __init__(self, message: str, log_tail: tuple[str, ...] = ()) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable description.
            log_tail: Last encoder diagnostic lines.
        """
        super().__init__(message)
        self.log_tail = log_tail


class UnsupportedFormatError(ConversionError):
    """Raised when a file has no conversion strategy."""

    reason = FailureReason.UNSUPPORTED_FORMAT


class EncoderMissingError(ConversionError):
    """Raised when a transcode is needed but no usable encoder exists."""

    reason = FailureReason.ENCODER_MISSING


class SpawnFailureError(ConversionError):
    """Raised when the encoder process cannot be launched."""

    reason = FailureReason.SPAWN_FAILURE


class StreamCopyIncompatibleError(ConversionError):
    """Raised when a remux fails because a stream cannot be copied.

    Triggers the transcode fallback; never shown to the user directly.
    """

    reason = FailureReason.STREAM_COPY_INCOMPATIBLE


class EncodeFailureError(ConversionError):
    """Raised when the encoder exits with an error."""

    reason = FailureReason.ENCODE_FAILURE


class ConversionTimeoutError(ConversionError):
    """Raised when the encoder exceeds the per-file timeout."""

    reason = FailureReason.TIMEOUT


class UserCancelledError(ConversionError):
    """Raised when the user cancels the batch."""

    reason = FailureReason.USER_CANCELLED


class OutputVerificationError(ConversionError):
    """Raised when the encoder reports success but the output is unusable."""

    reason = FailureReason.OUTPUT_VERIFICATION_FAILED


class OutputConflictError(ConversionError):
    """Raised when the output path is occupied and must not be replaced."""

    reason = FailureReason.OUTPUT_CONFLICT


class FilesystemError(ConversionError):
    """Raised when a backup, rename or cleanup step fails."""

    reason = FailureReason.FILESYSTEM_ERROR


_ERROR_FOR_REASON: dict[FailureReason, type[ConversionError]] = {
    cls.reason: cls
    for cls in (
        UnsupportedFormatError,
        EncoderMissingError,
        SpawnFailureError,
        StreamCopyIncompatibleError,
        EncodeFailureError,
        ConversionTimeoutError,
        UserCancelledError,
        OutputVerificationError,
        OutputConflictError,
        FilesystemError,
    )
}


def error_for_reason(
    reason: FailureReason | None, message: str, log_tail: tuple[str, ...] = ()
) -> ConversionError:
    """Build the exception matching a failure reason.

    Unknown or missing reasons map to EncodeFailureError.
    """
    error_type = _ERROR_FOR_REASON.get(reason, EncodeFailureError)
    return error_type(message, log_tail=log_tail)
