"""vlconv doctor command for checking the ffmpeg installation."""

import json

import click

from vlconv.config.models import VLConvConfig
from vlconv.tools import probe

EXIT_OK = 0
EXIT_REMUX_ONLY = 1
EXIT_NO_FFMPEG = 2


def _format_status(available: bool) -> str:
    """Format status for display."""
    return "✓" if available else "✗"


@click.command("doctor")
@click.option("--json", "json_output", is_flag=True, help="Output results as JSON.")
@click.pass_context
def doctor_command(ctx: click.Context, json_output: bool) -> None:
    """Check that ffmpeg can remux and transcode.

    Exit codes:
      0 - Remux and transcode available
      1 - Remux only (no libx264/aac encoder)
      2 - ffmpeg not found
    """
    config: VLConvConfig = ctx.obj["config"]
    capabilities = probe(config)

    if capabilities.has_encoder:
        exit_code = EXIT_OK
    elif capabilities.can_remux:
        exit_code = EXIT_REMUX_ONLY
    else:
        exit_code = EXIT_NO_FFMPEG

    if json_output:
        click.echo(json.dumps(capabilities.to_dict(), indent=2))
        ctx.exit(exit_code)

    click.echo("vlconv Encoder Health Check")
    click.echo("=" * 40)
    version = capabilities.version or "not found"
    click.echo(f"  {_format_status(capabilities.can_remux)} ffmpeg:  {version}")
    if capabilities.remux_path:
        click.echo(f"    └─ {capabilities.remux_path}")
    click.echo(
        f"  {_format_status(capabilities.ffprobe_path is not None)} ffprobe: "
        f"{capabilities.ffprobe_path or 'not found'}"
    )
    click.echo(f"  {_format_status(capabilities.can_remux)} Remux (stream copy)")
    encoder_status = _format_status(capabilities.has_encoder)
    click.echo(f"  {encoder_status} Transcode (libx264 + aac)")
    hw = capabilities.hw_encoder or "none"
    click.echo(f"  {_format_status(capabilities.hw_accel_available)} Hardware: {hw}")

    if capabilities.messages:
        click.echo()
        click.echo("Notes:")
        for message in capabilities.messages:
            click.echo(f"  → {message}")

    if not capabilities.can_remux:
        click.echo()
        click.echo("Install ffmpeg: https://ffmpeg.org/download.html")

    ctx.exit(exit_code)
