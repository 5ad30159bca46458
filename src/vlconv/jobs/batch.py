"""Serial batch conversion.

The orchestrator walks an ordered list of source files and, strictly one at
a time, classifies each file, moves it to its backup path, runs the chosen
strategy under a ProcessSupervisor and then either promotes the new output
or puts the original back. Per-file failures never escape: each attempted
file yields exactly one ConversionOutcome.

Filesystem states for a file ``movie.mkv``::

    movie.mkv                                    before / after rollback
    movie.mkv.bak + .vlconv_temp_movie.mp4       while the encoder runs
    movie.mp4                                    after success
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import AsyncIterator, Sequence
from pathlib import Path

from vlconv.config.models import ConversionConfig
from vlconv.conversion.classifier import classify
from vlconv.conversion.conflicts import (
    ConflictAction,
    ConflictResolver,
    FileMeta,
    resolve_output_conflict,
)
from vlconv.conversion.exceptions import (
    ConversionError,
    EncodeFailureError,
    EncoderMissingError,
    FilesystemError,
    OutputConflictError,
    OutputVerificationError,
    StreamCopyIncompatibleError,
    UnsupportedFormatError,
    UserCancelledError,
)
from vlconv.conversion.models import (
    BatchRun,
    BatchSummary,
    Classification,
    ConversionCandidate,
    ConversionOutcome,
    ConversionPlan,
    FailureReason,
    OutcomeState,
    ProgressSample,
    QualitySettings,
    Strategy,
)
from vlconv.executor.backup import (
    cleanup_backup,
    create_backup,
    safe_restore_from_backup,
)
from vlconv.executor.remux import build_remux_plan
from vlconv.executor.supervisor import (
    ProcessSupervisor,
    SupervisorHandle,
    SupervisorResult,
)
from vlconv.executor.transcode import build_transcode_plan
from vlconv.executor.utils import (
    cleanup_temp_file,
    output_path_for,
    promote_output,
    validate_output,
)
from vlconv.introspector import MediaIntrospector
from vlconv.jobs.events import (
    BatchFinished,
    BatchEvent,
    EncoderMissing,
    FileFinished,
    FileStarted,
    Progress,
    Reporter,
    null_reporter,
)
from vlconv.logging.context import file_context
from vlconv.tools.models import Capabilities

logger = logging.getLogger(__name__)

_STATE_FOR_REASON = {
    FailureReason.TIMEOUT: OutcomeState.TIMED_OUT,
    FailureReason.USER_CANCELLED: OutcomeState.CANCELLED,
}


class BatchAlreadyStartedError(RuntimeError):
    """Raised when run() is called a second time on the same orchestrator."""


class BatchOrchestrator:
    """Runs one batch of conversions, one file at a time.

    Args:
        capabilities: Snapshot of the installed ffmpeg.
        config: Conversion settings (timeouts, suffixes, tail length).
        supervisor: Process supervisor. Built from config when omitted.
        introspector: Metadata sampler passed to the classifier.
        reporter: Callable receiving BatchEvents on the event loop.
        conflict_resolver: Answers ASK decisions for occupied output paths.
            Without one, such files are skipped.
    """

    def __init__(
        self,
        capabilities: Capabilities,
        *,
        config: ConversionConfig | None = None,
        supervisor: ProcessSupervisor | None = None,
        introspector: MediaIntrospector | None = None,
        reporter: Reporter | None = None,
        conflict_resolver: ConflictResolver | None = None,
    ) -> None:
        self.capabilities = capabilities
        self.config = config or ConversionConfig()
        self.supervisor = supervisor or ProcessSupervisor(
            timeout_seconds=self.config.timeout_seconds,
            cancel_grace_seconds=self.config.cancel_grace_seconds,
            log_tail_lines=self.config.log_tail_lines,
        )
        self.introspector = introspector
        self.reporter: Reporter = reporter or null_reporter
        self.conflict_resolver = conflict_resolver

        self.batch: BatchRun | None = None
        self.summary: BatchSummary | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._handle: SupervisorHandle | None = None
        self._cancel_requested = False
        self._last_fraction = 0.0

    @property
    def encoder_missing(self) -> bool:
        """True when transcode-required files cannot be converted."""
        return not self.capabilities.has_encoder

    @property
    def cancel_requested(self) -> bool:
        """True once a cancel request has been observed."""
        return self._cancel_requested

    # ------------------------------------------------------------------
    # Cancellation
    # ------------------------------------------------------------------

    def request_cancel(self) -> None:
        """Stop the batch after restoring the file in flight.

        Safe to call from any thread and from signal handlers installed on
        the loop. Files not yet started receive no outcome.
        """
        loop = self._loop
        if loop is None:
            self._cancel_requested = True
            return
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is loop:
            self._apply_cancel()
        else:
            loop.call_soon_threadsafe(self._apply_cancel)

    def _apply_cancel(self) -> None:
        if self._cancel_requested:
            return
        self._cancel_requested = True
        if self.batch is not None:
            self.batch.cancel_requested = True
        logger.info("Batch cancellation requested")
        if self._handle is not None:
            self._handle.cancel()

    # ------------------------------------------------------------------
    # Batch loop
    # ------------------------------------------------------------------

    def run(
        self,
        candidates: Sequence[Path],
        quality: QualitySettings | None = None,
    ) -> AsyncIterator[ConversionOutcome]:
        """Convert files in order, yielding one outcome per attempted file.

        Args:
            candidates: Source paths, processed in the given order.
            quality: Quality settings; defaults come from the config.

        Returns:
            Async iterator of outcomes. It stops early after a cancelled
            outcome.

        Raises:
            BatchAlreadyStartedError: If the orchestrator already ran.
        """
        if self.batch is not None:
            raise BatchAlreadyStartedError("A batch orchestrator runs only once")
        self.batch = BatchRun(candidates=list(candidates))
        return self._run(self.batch, quality or self.config.quality())

    async def _run(
        self, batch: BatchRun, quality: QualitySettings
    ) -> AsyncIterator[ConversionOutcome]:
        self._loop = asyncio.get_running_loop()
        batch.cancel_requested = self._cancel_requested
        started_at = time.monotonic()
        logger.info(
            "Starting batch of %d file(s)",
            batch.total,
            extra={"crf": quality.crf, "audio_kbps": quality.audio_bitrate_kbps},
        )

        if self.encoder_missing:
            message = "; ".join(self.capabilities.messages) or "no encoder found"
            logger.warning("Encoder missing: %s", message)
            self._emit(EncoderMissing(message=message))

        for index, path in enumerate(batch.candidates):
            if self._cancel_requested:
                break
            batch.current_index = index
            self._last_fraction = 0.0
            self._emit(FileStarted(path=path, index=index + 1, total=batch.total))

            with file_context(path, index + 1):
                outcome = await self._convert_file(path, quality)
                logger.info("%s", outcome.describe())

            batch.outcomes.append(outcome)
            self._emit(
                FileFinished(outcome=outcome, index=index + 1, total=batch.total)
            )
            yield outcome

            if outcome.state == OutcomeState.CANCELLED:
                break

        self.summary = BatchSummary.from_outcomes(
            batch.total, batch.outcomes, time.monotonic() - started_at
        )
        logger.info("Batch finished", extra=self.summary.to_dict())
        self._emit(BatchFinished(summary=self.summary))

    async def _convert_file(
        self, path: Path, quality: QualitySettings
    ) -> ConversionOutcome:
        candidate = await asyncio.to_thread(
            classify, path, self.capabilities, self.introspector
        )
        try:
            backup_path = self._prepare(candidate)
        except ConversionError as e:
            return _outcome(candidate, _state_for(e), e.reason, str(e))
        return await self._convert_with_backup(candidate, quality, backup_path)

    def _prepare(self, candidate: ConversionCandidate) -> Path:
        """Check a classified file and move it to its backup path.

        Returns:
            The backup path the source now lives at.

        Raises:
            ConversionError: If the file must not be touched. The source is
                still at its original path.
        """
        if candidate.classification == Classification.NOT_CONVERTIBLE:
            raise UnsupportedFormatError(candidate.detail)
        if candidate.reason == FailureReason.ENCODER_MISSING:
            raise EncoderMissingError("no encoder installed")
        if self._cancel_requested:
            raise UserCancelledError("cancelled before conversion started")

        path = candidate.source_path
        source_meta = FileMeta.from_path(path)
        if source_meta is None:
            raise FilesystemError("source file disappeared")
        output_path = output_path_for(path, self.config.target_container)
        action = resolve_output_conflict(
            source_meta, FileMeta.from_path(output_path), self.conflict_resolver
        )
        if action == ConflictAction.SKIP:
            raise OutputConflictError(f"{output_path.name} already exists")

        try:
            return create_backup(path, self.config.backup_suffix)
        except OSError as e:
            logger.error("Could not move %s to its backup path: %s", path, e)
            raise FilesystemError(f"could not create backup: {e}") from e

    async def _convert_with_backup(
        self,
        candidate: ConversionCandidate,
        quality: QualitySettings,
        backup_path: Path,
    ) -> ConversionOutcome:
        """Run the strategy chain for a file that has been moved to backup.

        A remux rejected by the MP4 muxer falls back to a transcode once; a
        hardware encoder failure is retried once in software.
        """
        use_remux = candidate.classification == Classification.REMUX_ELIGIBLE
        allow_hardware = True

        while True:
            plan: ConversionPlan | None = None
            result: SupervisorResult | None = None
            try:
                plan = self._build_plan(candidate, quality, use_remux, allow_hardware)
                result = await self._execute(plan)
                result.raise_for_state()
                return self._finalize_success(plan, result)
            except asyncio.CancelledError:
                # The consuming task went away; the supervisor has reaped ffmpeg
                logger.warning("Conversion task cancelled, restoring original")
                self._rollback(candidate, backup_path, plan)
                raise
            except StreamCopyIncompatibleError as e:
                error: ConversionError = e
                if self.capabilities.has_encoder and not self._cancel_requested:
                    logger.warning(
                        "Stream copy rejected by MP4 muxer, falling back to transcode",
                        extra={"last_line": str(e)},
                    )
                    self._discard_output(plan)
                    use_remux = False
                    continue
            except ConversionError as e:
                error = e
                if (
                    isinstance(e, EncodeFailureError)
                    and plan is not None
                    and plan.hardware
                    and result is not None
                    and result.hardware_failure
                    and not self._cancel_requested
                ):
                    logger.warning(
                        "Hardware encoder %s failed, retrying in software",
                        plan.encoder,
                        extra={"pattern": result.hardware_failure},
                    )
                    self._discard_output(plan)
                    allow_hardware = False
                    continue

            message = self._rollback(candidate, backup_path, plan)
            if plan is not None:
                strategy = plan.strategy
            else:
                strategy = Strategy.REMUX if use_remux else Strategy.TRANSCODE
            return _outcome(
                candidate,
                _state_for(error),
                error.reason,
                message or str(error),
                strategy=strategy,
                log_tail=error.log_tail,
            )

    def _build_plan(
        self,
        candidate: ConversionCandidate,
        quality: QualitySettings,
        use_remux: bool,
        allow_hardware: bool,
    ) -> ConversionPlan:
        if use_remux:
            return build_remux_plan(candidate, quality, self.capabilities, self.config)
        return build_transcode_plan(
            candidate,
            quality,
            self.capabilities,
            self.config,
            allow_hardware=allow_hardware,
        )

    async def _execute(self, plan: ConversionPlan) -> SupervisorResult:
        logger.info(
            "Running %s%s",
            plan.strategy.value,
            f" ({plan.encoder})" if plan.strategy == Strategy.TRANSCODE else "",
        )
        handle = await self.supervisor.start(
            plan,
            on_progress=lambda sample: self._on_progress(plan, sample),
            on_log=lambda line: self._on_log(plan, line),
        )
        self._handle = handle
        try:
            # A cancel that arrived while spawning had no handle to reach
            if self._cancel_requested:
                handle.cancel()
            return await handle.wait()
        finally:
            self._handle = None

    def _on_progress(self, plan: ConversionPlan, sample: ProgressSample) -> None:
        self._last_fraction = sample.fraction
        self._emit(
            Progress(
                path=plan.source_path,
                fraction=sample.fraction,
                raw_line=sample.raw_line,
                sample=sample,
            )
        )

    def _on_log(self, plan: ConversionPlan, line: str) -> None:
        logger.debug("ffmpeg: %s", line)
        self._emit(
            Progress(path=plan.source_path, fraction=self._last_fraction, raw_line=line)
        )

    # ------------------------------------------------------------------
    # Filesystem finalization
    # ------------------------------------------------------------------

    def _finalize_success(
        self, plan: ConversionPlan, result: SupervisorResult
    ) -> ConversionOutcome:
        """Promote a verified output and drop the backup.

        Raises:
            OutputVerificationError: If the output is missing or empty.
            FilesystemError: If the output cannot be moved into place.
        """
        valid, error = validate_output(plan.temp_path)
        if not valid:
            logger.error("Encoder reported success but output is unusable: %s", error)
            raise OutputVerificationError(
                error or "output verification failed", log_tail=result.log_tail
            )

        try:
            promote_output(plan.temp_path, plan.output_path)
        except OSError as e:
            logger.error("Could not move output into place: %s", e)
            raise FilesystemError(
                f"could not move output into place: {e}", log_tail=result.log_tail
            ) from e

        message = ""
        try:
            cleanup_backup(plan.backup_path)
        except OSError as e:
            logger.error("Could not remove backup %s: %s", plan.backup_path, e)
            message = f"backup left at {plan.backup_path.name}"

        return _outcome(
            plan.candidate,
            OutcomeState.SUCCEEDED,
            None,
            message,
            output_path=plan.output_path,
            strategy=plan.strategy,
            log_tail=result.log_tail,
        )

    def _discard_output(self, plan: ConversionPlan | None) -> None:
        if plan is not None:
            cleanup_temp_file(plan.temp_path)

    def _rollback(
        self,
        candidate: ConversionCandidate,
        backup_path: Path,
        plan: ConversionPlan | None,
    ) -> str:
        """Delete partial output and put the original back.

        Returns:
            An error message if the original could not be restored, else "".
        """
        self._discard_output(plan)
        if safe_restore_from_backup(
            backup_path, candidate.source_path, self.config.backup_suffix
        ):
            return ""
        return f"original could not be restored; it is kept at {backup_path}"

    def _emit(self, event: BatchEvent) -> None:
        try:
            self.reporter(event)
        except Exception as e:
            logger.warning("Reporter error on %s: %s", type(event).__name__, e)


def _outcome(
    candidate: ConversionCandidate,
    state: OutcomeState,
    reason: FailureReason | None,
    message: str = "",
    *,
    output_path: Path | None = None,
    strategy: Strategy | None = None,
    log_tail: tuple[str, ...] = (),
) -> ConversionOutcome:
    return ConversionOutcome(
        candidate=candidate,
        state=state,
        reason=reason,
        message=message,
        output_path=output_path,
        strategy=strategy,
        log_tail=log_tail,
    )


def _state_for(error: ConversionError) -> OutcomeState:
    return _STATE_FOR_REASON.get(error.reason, OutcomeState.FAILED)
