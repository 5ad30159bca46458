"""CLI module for vlconv."""

import logging
from pathlib import Path

import click

from vlconv.config import get_config
from vlconv.config.logging_factory import build_logging_config
from vlconv.logging import configure_logging

logger = logging.getLogger(__name__)


def _configure_logging(
    base,
    log_level: str | None,
    log_file: Path | None,
    log_json: bool,
) -> None:
    """Configure logging from the loaded config plus CLI options."""
    logging_config = build_logging_config(
        base,
        level=log_level,
        file=log_file,
        format="json" if log_json else None,
    )
    configure_logging(logging_config)


@click.group()
@click.version_option(package_name="vlconv")
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Config file (default: ~/.vlconv/config.toml).",
)
@click.option(
    "--ffmpeg",
    "ffmpeg_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Path to the ffmpeg executable.",
)
@click.option(
    "--log-level",
    type=click.Choice(["debug", "info", "warning", "error"], case_sensitive=False),
    default=None,
    help="Override log level (default: warning).",
)
@click.option(
    "--log-file",
    type=click.Path(path_type=Path),
    default=None,
    help="Override log file path.",
)
@click.option(
    "--log-json",
    is_flag=True,
    default=False,
    help="Use JSON log format.",
)
@click.pass_context
def main(
    ctx: click.Context,
    config_path: Path | None,
    ffmpeg_path: Path | None,
    log_level: str | None,
    log_file: Path | None,
    log_json: bool,
) -> None:
    """vlconv - Convert a video library to MP4, safely and in place."""
    ctx.ensure_object(dict)

    # Tests may inject a ready-made config
    if "config" not in ctx.obj:
        try:
            ctx.obj["config"] = get_config(config_path, ffmpeg_path=ffmpeg_path)
        except ValueError as e:
            raise click.UsageError(str(e)) from e

    try:
        _configure_logging(ctx.obj["config"].logging, log_level, log_file, log_json)
    except ValueError as e:
        raise click.UsageError(str(e)) from e


# Defer import to avoid circular dependency
def _register_commands():
    from vlconv.cli.convert import convert_command
    from vlconv.cli.doctor import doctor_command
    from vlconv.cli.recover import recover_command
    from vlconv.cli.scan import scan_command

    main.add_command(convert_command)
    main.add_command(doctor_command)
    main.add_command(recover_command)
    main.add_command(scan_command)


_register_commands()
