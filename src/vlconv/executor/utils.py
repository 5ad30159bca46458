"""Output path helpers shared by the conversion strategies.

Encoders write to a hidden temp file beside the final output, which is
promoted with an atomic rename once it has been verified.
"""

import logging
import os
from pathlib import Path

from vlconv.config.models import ConversionConfig
from vlconv.executor.backup import get_backup_path

logger = logging.getLogger(__name__)

TEMP_PREFIX = ".vlconv_temp_"


def create_temp_output(output_path: Path, prefix: str = TEMP_PREFIX) -> Path:
    """Generate the temp output path for the write-then-move pattern."""
    return output_path.with_name(f"{prefix}{output_path.name}")


def is_temp_output(path: Path, prefix: str = TEMP_PREFIX) -> bool:
    """Return True if the path looks like an in-progress encoder output."""
    return path.name.startswith(prefix)


def output_path_for(source_path: Path, target_container: str = "mp4") -> Path:
    """Source path with its extension replaced by the target container."""
    return source_path.with_suffix(f".{target_container}")


def plan_paths(
    source_path: Path, config: ConversionConfig
) -> tuple[Path, Path, Path]:
    """Compute (output_path, backup_path, temp_path) for a source file."""
    output_path = output_path_for(source_path, config.target_container)
    backup_path = get_backup_path(source_path, config.backup_suffix)
    return output_path, backup_path, create_temp_output(output_path)


def validate_output(output_path: Path) -> tuple[bool, str | None]:
    """Validate encoder output.

    Returns:
        Tuple of (is_valid, error_message); error_message is None if valid.
    """
    if not output_path.exists():
        return False, f"Output file does not exist: {output_path}"

    try:
        output_size = output_path.stat().st_size
    except OSError as e:
        return False, f"Could not stat output file: {e}"

    if output_size == 0:
        return False, f"Output file is empty: {output_path}"

    return True, None


def promote_output(temp_path: Path, output_path: Path) -> Path:
    """Atomically move a verified temp output into place.

    Raises:
        OSError: If the rename fails.
    """
    os.replace(temp_path, output_path)
    logger.debug(
        "Promoted output",
        extra={"temp_path": str(temp_path), "output_path": str(output_path)},
    )
    return output_path


def cleanup_temp_file(path: Path) -> None:
    """Remove a temporary file, logging any errors."""
    if path.exists():
        try:
            path.unlink()
            logger.debug("Cleaned up temp file: %s", path)
        except OSError as e:
            logger.warning("Could not clean up temp file %s: %s", path, e)
