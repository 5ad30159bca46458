"""vlconv scan command: classify files without converting them."""

import json
from pathlib import Path

import click

from vlconv.config.models import VLConvConfig
from vlconv.conversion.classifier import classify
from vlconv.conversion.models import Classification, ConversionCandidate
from vlconv.jobs.progress import format_duration
from vlconv.scanner import discover_sources
from vlconv.tools import get_capabilities

_LABELS = {
    Classification.REMUX_ELIGIBLE: "remux",
    Classification.TRANSCODE_REQUIRED: "transcode",
    Classification.NOT_CONVERTIBLE: "skip",
}


def _format_candidate(candidate: ConversionCandidate) -> str:
    label = _LABELS[candidate.classification]
    codecs = "/".join(c for c in (candidate.video_codec, candidate.audio_codec) if c)
    duration = (
        format_duration(candidate.duration_seconds)
        if candidate.duration_seconds
        else "-"
    )
    line = f"{label:<10} {candidate.source_path.name}  {codecs or '-'}  {duration}"
    if candidate.reason is not None:
        line += f"  ({candidate.detail})"
    return line


@click.command("scan")
@click.argument(
    "paths",
    nargs=-1,
    required=True,
    type=click.Path(exists=True, path_type=Path),
)
@click.option("--recursive", "-r", is_flag=True, help="Descend into subdirectories.")
@click.option("--json", "json_output", is_flag=True, help="Output results as JSON.")
@click.pass_context
def scan_command(
    ctx: click.Context,
    paths: tuple[Path, ...],
    recursive: bool,
    json_output: bool,
) -> None:
    """Show how each file would be converted, without touching it."""
    config: VLConvConfig = ctx.obj["config"]
    capabilities = get_capabilities(config)
    sources = discover_sources(paths, recursive, config.conversion.backup_suffix)
    candidates = [classify(path, capabilities) for path in sources]

    if json_output:
        click.echo(json.dumps([c.to_dict() for c in candidates], indent=2))
        return

    if not candidates:
        click.echo("No convertible files found.")
        return

    for candidate in candidates:
        click.echo(_format_candidate(candidate))

    counts = {label: 0 for label in _LABELS.values()}
    for candidate in candidates:
        counts[_LABELS[candidate.classification]] += 1
    click.echo(
        f"\n{counts['remux']} remux, {counts['transcode']} transcode, "
        f"{counts['skip']} skipped"
    )
