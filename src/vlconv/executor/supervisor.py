"""Supervision of a single ffmpeg execution.

A ProcessSupervisor spawns the encoder for a ConversionPlan and returns a
SupervisorHandle that owns the execution's state machine::

    IDLE -> STARTING -> RUNNING -> COMPLETED | FAILED | TIMED_OUT | CANCELLED
                  \\-> FAILED (spawn error) | CANCELLED

The handle reads the encoder's stderr as it is produced (ffmpeg ends
progress lines with a carriage return, other diagnostics with a newline),
turns ``time=`` markers into ProgressSamples, enforces the timeout and
implements two-step cancellation (SIGTERM, then SIGKILL after a grace
period).
"""

from __future__ import annotations

import asyncio
import codecs
import logging
import re
from collections import deque
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

from vlconv.conversion.exceptions import error_for_reason
from vlconv.conversion.models import (
    ConversionPlan,
    FailureReason,
    ProgressSample,
    Strategy,
)
from vlconv.tools.ffmpeg_progress import (
    find_fatal_marker,
    find_hardware_failure,
    is_stream_copy_incompatible,
    parse_progress_sample,
)

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 900
DEFAULT_CANCEL_GRACE_SECONDS = 5.0
DEFAULT_LOG_TAIL_LINES = 20

_READ_CHUNK = 4096
_LINE_SPLIT = re.compile(r"\r\n|\r|\n")


class SupervisorState(Enum):
    """Lifecycle of one supervised execution."""

    IDLE = "idle"
    STARTING = "starting"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        """True for states that end the execution."""
        return self in TERMINAL_STATES


TERMINAL_STATES = frozenset(
    {
        SupervisorState.COMPLETED,
        SupervisorState.FAILED,
        SupervisorState.TIMED_OUT,
        SupervisorState.CANCELLED,
    }
)

_TRANSITIONS: dict[SupervisorState, frozenset[SupervisorState]] = {
    SupervisorState.IDLE: frozenset({SupervisorState.STARTING}),
    SupervisorState.STARTING: frozenset(
        {SupervisorState.RUNNING, SupervisorState.FAILED, SupervisorState.CANCELLED}
    ),
    SupervisorState.RUNNING: TERMINAL_STATES,
}


class InvalidTransitionError(Exception):
    """Raised on a state change the supervisor state machine does not allow."""

    def __init__(self, current: SupervisorState, target: SupervisorState) -> None:
        self.current = current
        self.target = target
        super().__init__(f"Invalid transition {current.value} -> {target.value}")


class SupervisedProcess(Protocol):
    """The subset of asyncio.subprocess.Process the supervisor relies on."""

    stderr: asyncio.StreamReader | None
    returncode: int | None

    async def wait(self) -> int: ...

    def terminate(self) -> None: ...

    def kill(self) -> None: ...


ProcessFactory = Callable[[Sequence[str]], Awaitable[SupervisedProcess]]
ProgressObserver = Callable[[ProgressSample], None]
LogObserver = Callable[[str], None]


async def spawn_process(args: Sequence[str]) -> SupervisedProcess:
    """Default process factory: stdout discarded, stderr piped."""
    return await asyncio.create_subprocess_exec(  # nosec B603 - argv from plan
        *args,
        stdin=asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.DEVNULL,
        stderr=asyncio.subprocess.PIPE,
    )


@dataclass(frozen=True)
class SupervisorResult:
    """How a supervised execution ended."""

    state: SupervisorState
    returncode: int | None = None
    reason: FailureReason | None = None
    message: str = ""
    log_tail: tuple[str, ...] = ()
    stream_copy_incompatible: bool = False
    hardware_failure: str | None = None
    """Hardware error pattern seen on stderr, if any."""

    last_sample: ProgressSample | None = None
    elapsed_seconds: float = 0.0

    @property
    def completed(self) -> bool:
        """True if the encoder exited cleanly."""
        return self.state == SupervisorState.COMPLETED

    def raise_for_state(self) -> None:
        """Raise the ConversionError for a run that did not complete.

        Raises:
            ConversionError: Subclass matching ``reason``, carrying the
                message and log tail.
        """
        if self.completed:
            return
        raise error_for_reason(self.reason, self.message, self.log_tail)


class SupervisorHandle:
    """Owns one encoder execution from spawn to terminal state.

    Created by ProcessSupervisor.start(). All methods except cancel() must
    be called on the event loop that created the handle.
    """

    def __init__(
        self,
        plan: ConversionPlan,
        *,
        timeout_seconds: float | None,
        cancel_grace_seconds: float,
        log_tail_lines: int,
        on_progress: ProgressObserver | None = None,
        on_log: LogObserver | None = None,
    ) -> None:
        self.plan = plan
        self._timeout = timeout_seconds
        self._grace = cancel_grace_seconds
        self._on_progress = on_progress
        self._on_log = on_log
        self._loop = asyncio.get_running_loop()

        self._state = SupervisorState.IDLE
        self._process: SupervisedProcess | None = None
        self._task: asyncio.Task[SupervisorResult] | None = None
        self._result: SupervisorResult | None = None
        self._kill_timer: asyncio.TimerHandle | None = None
        self._started_at = 0.0

        self._cancel_requested = False
        self._tail: deque[str] = deque(maxlen=log_tail_lines)
        self._last_sample: ProgressSample | None = None
        self._fatal_marker: str | None = None
        self._stream_copy_incompatible = False
        self._hardware_failure: str | None = None

    @property
    def state(self) -> SupervisorState:
        """Current state of the execution."""
        return self._state

    @property
    def last_sample(self) -> ProgressSample | None:
        """Most recent progress sample; earlier samples are not kept."""
        return self._last_sample

    @property
    def cancel_requested(self) -> bool:
        """True once cancel() has been observed on the event loop."""
        return self._cancel_requested

    def _transition(self, target: SupervisorState) -> None:
        allowed = _TRANSITIONS.get(self._state, frozenset())
        if target not in allowed:
            raise InvalidTransitionError(self._state, target)
        logger.debug(
            "Supervisor %s -> %s",
            self._state.value,
            target.value,
            extra={"source_path": str(self.plan.source_path)},
        )
        self._state = target

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def _spawn(self, factory: ProcessFactory) -> None:
        self._transition(SupervisorState.STARTING)
        if self._cancel_requested:
            self._finish_cancelled()
            return
        try:
            self._process = await factory(self.plan.args)
        except (OSError, ValueError) as e:
            logger.error(
                "Failed to start encoder: %s",
                e,
                extra={"source_path": str(self.plan.source_path)},
            )
            self._finish(
                SupervisorState.FAILED,
                reason=FailureReason.SPAWN_FAILURE,
                message=f"could not start ffmpeg: {e}",
            )
            return

        self._transition(SupervisorState.RUNNING)
        self._started_at = self._loop.time()
        self._task = self._loop.create_task(self._supervise())
        if self._cancel_requested:
            self._terminate()

    async def _supervise(self) -> SupervisorResult:
        assert self._process is not None
        try:
            returncode = await asyncio.wait_for(self._pump(), timeout=self._timeout)
        except asyncio.TimeoutError:
            await self._kill_and_reap()
            if self._cancel_requested:
                return self._finish_cancelled()
            logger.warning(
                "Encoder timed out after %ss",
                self._timeout,
                extra={"source_path": str(self.plan.source_path)},
            )
            return self._finish(
                SupervisorState.TIMED_OUT,
                returncode=self._process.returncode,
                reason=FailureReason.TIMEOUT,
                message=f"no result after {self._timeout:g}s",
            )
        except asyncio.CancelledError:
            # The awaiting task was cancelled; the encoder must not outlive it
            self._cancel_requested = True
            await asyncio.shield(self._kill_and_reap())
            self._finish_cancelled(self._process.returncode)
            raise
        finally:
            self._cancel_kill_timer()

        if self._cancel_requested:
            return self._finish_cancelled(returncode)

        if returncode == 0 and self._fatal_marker is None:
            return self._finish(SupervisorState.COMPLETED, returncode=returncode)

        if self._stream_copy_incompatible and self.plan.strategy == Strategy.REMUX:
            reason = FailureReason.STREAM_COPY_INCOMPATIBLE
        else:
            reason = FailureReason.ENCODE_FAILURE
        return self._finish(
            SupervisorState.FAILED,
            returncode=returncode,
            reason=reason,
            message=self._failure_message(returncode),
        )

    async def _pump(self) -> int:
        """Read stderr to EOF, then reap the process."""
        assert self._process is not None
        stream = self._process.stderr
        if stream is not None:
            # Chunks may end inside a multibyte character
            decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
            buffer = ""
            while True:
                chunk = await stream.read(_READ_CHUNK)
                buffer += decoder.decode(chunk, final=not chunk)
                *lines, buffer = _LINE_SPLIT.split(buffer)
                for line in lines:
                    self._handle_line(line)
                if not chunk:
                    break
            if buffer:
                self._handle_line(buffer)
        return await self._process.wait()

    def _handle_line(self, line: str) -> None:
        line = line.strip()
        if not line:
            return

        sample = parse_progress_sample(line, self.plan.duration_seconds)
        if sample is not None:
            self._last_sample = sample
            if self._on_progress is not None:
                try:
                    self._on_progress(sample)
                except Exception as e:
                    logger.warning("Progress observer error: %s", e)
            return

        self._tail.append(line)
        self._scan_markers(line)
        if self._on_log is not None:
            try:
                self._on_log(line)
            except Exception as e:
                logger.warning("Log observer error: %s", e)

    def _scan_markers(self, line: str) -> None:
        seen = (line,)
        if self._fatal_marker is None:
            self._fatal_marker = find_fatal_marker(seen)
        if not self._stream_copy_incompatible:
            self._stream_copy_incompatible = is_stream_copy_incompatible(seen)
        if self._hardware_failure is None and self.plan.hardware:
            pattern = find_hardware_failure(seen)
            if pattern is not None:
                self._hardware_failure = pattern
                logger.warning(
                    "Hardware encoder failure detected: %s",
                    pattern,
                    extra={"pattern": pattern, "encoder": self.plan.encoder},
                )

    def _failure_message(self, returncode: int | None) -> str:
        if self._tail:
            return self._tail[-1]
        return f"ffmpeg exited with code {returncode}"

    def _finish_cancelled(self, returncode: int | None = None) -> SupervisorResult:
        return self._finish(
            SupervisorState.CANCELLED,
            returncode=returncode,
            reason=FailureReason.USER_CANCELLED,
            message="cancelled by user",
        )

    def _finish(
        self,
        state: SupervisorState,
        *,
        returncode: int | None = None,
        reason: FailureReason | None = None,
        message: str = "",
    ) -> SupervisorResult:
        self._transition(state)
        elapsed = self._loop.time() - self._started_at if self._started_at else 0.0
        self._result = SupervisorResult(
            state=state,
            returncode=returncode,
            reason=reason,
            message=message,
            log_tail=tuple(self._tail),
            stream_copy_incompatible=self._stream_copy_incompatible,
            hardware_failure=self._hardware_failure,
            last_sample=self._last_sample,
            elapsed_seconds=elapsed,
        )
        return self._result

    async def wait(self) -> SupervisorResult:
        """Wait for the execution to reach a terminal state."""
        if self._task is not None:
            return await self._task
        if self._result is None:
            raise RuntimeError("Execution has not been started")
        return self._result

    # ------------------------------------------------------------------
    # Cancellation
    # ------------------------------------------------------------------

    def cancel(self) -> None:
        """Request cancellation. Safe to call from any thread.

        The encoder receives SIGTERM immediately and SIGKILL if it is still
        alive after the grace period. No-op once the execution has ended.
        """
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is self._loop:
            self._request_cancel()
        else:
            self._loop.call_soon_threadsafe(self._request_cancel)

    def _request_cancel(self) -> None:
        if self._state.is_terminal or self._cancel_requested:
            return
        self._cancel_requested = True
        logger.info(
            "Cancelling encoder",
            extra={"source_path": str(self.plan.source_path)},
        )
        # Before RUNNING there is no process yet; _spawn checks the flag
        if self._state == SupervisorState.RUNNING:
            self._terminate()

    def _terminate(self) -> None:
        if self._process is None or self._process.returncode is not None:
            return
        try:
            self._process.terminate()
        except ProcessLookupError:
            return
        self._kill_timer = self._loop.call_later(self._grace, self._force_kill)

    def _force_kill(self) -> None:
        self._kill_timer = None
        if self._process is None or self._process.returncode is not None:
            return
        logger.warning(
            "Encoder ignored SIGTERM for %ss, killing",
            self._grace,
            extra={"source_path": str(self.plan.source_path)},
        )
        try:
            self._process.kill()
        except ProcessLookupError:
            pass

    def _cancel_kill_timer(self) -> None:
        if self._kill_timer is not None:
            self._kill_timer.cancel()
            self._kill_timer = None

    async def _kill_and_reap(self) -> None:
        assert self._process is not None
        if self._process.returncode is None:
            try:
                self._process.kill()
            except ProcessLookupError:
                pass
        await self._process.wait()


class ProcessSupervisor:
    """Spawns and supervises encoder processes, one per plan.

    Args:
        timeout_seconds: Hard limit per execution, measured from the moment
            the process is running. None disables the limit.
        cancel_grace_seconds: Time between SIGTERM and SIGKILL on cancel.
        log_tail_lines: Number of diagnostic lines kept for the outcome.
        process_factory: Coroutine function that spawns a process from an
            argument list. Tests inject fakes here.
    """

    def __init__(
        self,
        timeout_seconds: float | None = DEFAULT_TIMEOUT_SECONDS,
        cancel_grace_seconds: float = DEFAULT_CANCEL_GRACE_SECONDS,
        log_tail_lines: int = DEFAULT_LOG_TAIL_LINES,
        process_factory: ProcessFactory | None = None,
    ) -> None:
        self.timeout_seconds = timeout_seconds
        self.cancel_grace_seconds = cancel_grace_seconds
        self.log_tail_lines = log_tail_lines
        self._factory: ProcessFactory = process_factory or spawn_process

    async def start(
        self,
        plan: ConversionPlan,
        on_progress: ProgressObserver | None = None,
        on_log: LogObserver | None = None,
    ) -> SupervisorHandle:
        """Spawn the encoder for a plan.

        Spawn failures do not raise; the returned handle is already in the
        FAILED state with reason SPAWN_FAILURE.
        """
        handle = SupervisorHandle(
            plan,
            timeout_seconds=self.timeout_seconds,
            cancel_grace_seconds=self.cancel_grace_seconds,
            log_tail_lines=self.log_tail_lines,
            on_progress=on_progress,
            on_log=on_log,
        )
        logger.debug("Starting encoder: %s", " ".join(plan.args))
        await handle._spawn(self._factory)
        return handle

    async def run(
        self,
        plan: ConversionPlan,
        on_progress: ProgressObserver | None = None,
        on_log: LogObserver | None = None,
    ) -> SupervisorResult:
        """Start a plan and wait for it to finish."""
        handle = await self.start(plan, on_progress, on_log)
        return await handle.wait()
