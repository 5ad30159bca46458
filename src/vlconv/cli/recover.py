"""vlconv recover command: undo interrupted conversions."""

from pathlib import Path

import click

from vlconv.config.models import VLConvConfig
from vlconv.scanner import recover_interrupted


@click.command("recover")
@click.argument(
    "directory",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
)
@click.option("--recursive", "-r", is_flag=True, help="Descend into subdirectories.")
@click.pass_context
def recover_command(ctx: click.Context, directory: Path, recursive: bool) -> None:
    """Restore originals left as .bak files by a crashed or killed run.

    Also deletes partial MP4 outputs. Backups whose original name is taken
    are reported and left alone.
    """
    config: VLConvConfig = ctx.obj["config"]
    report = recover_interrupted(
        directory, recursive, config.conversion.backup_suffix
    )

    for path in report.restored:
        click.echo(f"restored  {path}")
    for path in report.removed_temps:
        click.echo(f"removed   {path}")
    for path in report.conflicts:
        click.echo(f"conflict  {path} (original name in use, left alone)")
    for path in report.failed:
        click.echo(f"failed    {path}")

    if not (report.changed or report.conflicts or report.failed):
        click.echo("Nothing to recover.")

    if report.conflicts or report.failed:
        ctx.exit(1)
