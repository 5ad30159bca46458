"""vlconv convert command."""

from __future__ import annotations

import asyncio
import dataclasses
import json
import logging
import signal
import sys
from pathlib import Path

import click

from vlconv.cli.exit_codes import ExitCode
from vlconv.config.models import VLConvConfig
from vlconv.conversion.conflicts import ConflictAction, ConflictResolver, FileMeta
from vlconv.conversion.models import (
    AUDIO_BITRATE_MAX_KBPS,
    AUDIO_BITRATE_MIN_KBPS,
    CRF_MAX,
    CRF_MIN,
    ConversionOutcome,
    FailureReason,
    OutcomeState,
    QualitySettings,
)
from vlconv.jobs.batch import BatchOrchestrator
from vlconv.jobs.progress import StderrBatchReporter
from vlconv.scanner import discover_sources
from vlconv.tools import get_capabilities

logger = logging.getLogger(__name__)

_CANCEL_SIGNALS = (signal.SIGINT, signal.SIGTERM)


def _install_cancel_handlers(
    loop: asyncio.AbstractEventLoop, orchestrator: BatchOrchestrator
) -> None:
    """Route Ctrl+C and SIGTERM to a cooperative batch cancel."""

    def handle_signal(sig: signal.Signals) -> None:
        logger.info("Received %s, cancelling batch", sig.name)
        click.echo("\nCancelling, restoring the file in progress...", err=True)
        orchestrator.request_cancel()

    for sig in _CANCEL_SIGNALS:
        try:
            loop.add_signal_handler(sig, handle_signal, sig)
        except (ValueError, RuntimeError, NotImplementedError) as e:
            # ValueError: not in main thread; NotImplementedError: Windows
            logger.debug("Could not register handler for %s: %s", sig.name, e)


def _remove_cancel_handlers(loop: asyncio.AbstractEventLoop) -> None:
    for sig in _CANCEL_SIGNALS:
        try:
            loop.remove_signal_handler(sig)
        except (ValueError, RuntimeError, NotImplementedError):
            pass  # Handler may not have been registered


async def run_batch(
    orchestrator: BatchOrchestrator,
    sources: list[Path],
    quality: QualitySettings,
) -> list[ConversionOutcome]:
    """Run a batch to completion with signal-driven cancellation."""
    loop = asyncio.get_running_loop()
    _install_cancel_handlers(loop, orchestrator)
    try:
        return [outcome async for outcome in orchestrator.run(sources, quality)]
    finally:
        _remove_cancel_handlers(loop)


def make_conflict_resolver(
    overwrite: bool, interactive: bool
) -> ConflictResolver | None:
    """Build the resolver used when the output path is already taken.

    Returns:
        A resolver that always overwrites, one that asks on the terminal, or
        None (skip) for unattended runs.
    """
    if overwrite:
        return lambda source, dest: ConflictAction.OVERWRITE
    if not interactive:
        return None

    def ask(source: FileMeta, dest: FileMeta) -> ConflictAction:
        click.echo("", err=True)
        question = (
            f"{dest.path.name} already exists ({dest.size} bytes). "
            f"Replace it with the conversion of {source.path.name}?"
        )
        if click.confirm(question, default=False, err=True):
            return ConflictAction.OVERWRITE
        return ConflictAction.SKIP

    return ask


def exit_code_for(
    outcomes: list[ConversionOutcome], cancelled: bool, encoder_missing: bool
) -> ExitCode:
    """Map batch results to a process exit code."""
    if cancelled or any(o.state == OutcomeState.CANCELLED for o in outcomes):
        return ExitCode.INTERRUPTED
    if all(o.succeeded for o in outcomes):
        return ExitCode.SUCCESS
    if (
        encoder_missing
        and not any(o.succeeded for o in outcomes)
        and any(o.reason == FailureReason.ENCODER_MISSING for o in outcomes)
    ):
        return ExitCode.ENCODER_MISSING
    return ExitCode.FAILURES


@click.command("convert")
@click.argument(
    "paths",
    nargs=-1,
    required=True,
    type=click.Path(exists=True, path_type=Path),
)
@click.option(
    "--crf",
    type=click.IntRange(CRF_MIN, CRF_MAX),
    default=None,
    help=f"Video quality, {CRF_MIN} (best) to {CRF_MAX}. Default 20.",
)
@click.option(
    "--audio-bitrate",
    "audio_bitrate",
    type=click.IntRange(AUDIO_BITRATE_MIN_KBPS, AUDIO_BITRATE_MAX_KBPS),
    default=None,
    help="AAC bitrate in kbps. Default 192.",
)
@click.option(
    "--hw/--no-hw",
    "prefer_hardware",
    default=None,
    help="Prefer a hardware encoder when one is available.",
)
@click.option(
    "--recursive",
    "-r",
    is_flag=True,
    help="Descend into subdirectories.",
)
@click.option(
    "--timeout",
    type=click.IntRange(min=1),
    default=None,
    help="Per-file encoder timeout in seconds. Default 900.",
)
@click.option(
    "--overwrite",
    is_flag=True,
    help="Replace existing MP4 files without asking.",
)
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Echo encoder diagnostics.",
)
@click.option(
    "--json",
    "json_output",
    is_flag=True,
    help="Print outcomes as JSON instead of progress.",
)
@click.pass_context
def convert_command(
    ctx: click.Context,
    paths: tuple[Path, ...],
    crf: int | None,
    audio_bitrate: int | None,
    prefer_hardware: bool | None,
    recursive: bool,
    timeout: int | None,
    overwrite: bool,
    verbose: bool,
    json_output: bool,
) -> None:
    """Convert video files or folders to MP4.

    MKV files with H.264/HEVC video and AAC/MP3 audio are remuxed without
    re-encoding; WMV, AVI, MOV, MPG, M4V and 3GP files are transcoded to
    H.264/AAC. Each original is replaced only after its MP4 is complete.
    Ctrl+C stops the batch and restores the file in progress.

    Exit codes:
      0 - All files converted
      1 - Some files failed or were skipped
      2 - No encoder installed and nothing could be converted
      130 - Cancelled
    """
    config: VLConvConfig = ctx.obj["config"]

    overrides = {
        "crf": crf,
        "audio_bitrate_kbps": audio_bitrate,
        "prefer_hardware": prefer_hardware,
        "timeout_seconds": timeout,
    }
    conversion = dataclasses.replace(
        config.conversion, **{k: v for k, v in overrides.items() if v is not None}
    )
    quality = conversion.quality()

    sources = discover_sources(paths, recursive, conversion.backup_suffix)
    if not sources:
        click.echo("No convertible files found.", err=True)
        ctx.exit(ExitCode.SUCCESS)

    capabilities = get_capabilities(config)
    orchestrator = BatchOrchestrator(
        capabilities,
        config=conversion,
        reporter=StderrBatchReporter(enabled=not json_output, verbose=verbose),
        conflict_resolver=make_conflict_resolver(
            overwrite, interactive=sys.stdin.isatty() and not json_output
        ),
    )

    outcomes = asyncio.run(run_batch(orchestrator, sources, quality))

    if json_output:
        summary = orchestrator.summary
        data = {
            "summary": summary.to_dict() if summary else None,
            "encoder_missing": orchestrator.encoder_missing,
            "outcomes": [outcome.to_dict() for outcome in outcomes],
        }
        click.echo(json.dumps(data, indent=2))

    ctx.exit(
        exit_code_for(
            outcomes, orchestrator.cancel_requested, orchestrator.encoder_missing
        )
    )
