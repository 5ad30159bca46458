"""Reversible backups of source files.

Before an encoder runs, the source is renamed to ``<name>.bak`` in the same
directory. The encoder reads from the backup, so the original location is
free for the new output. The rename is undone if anything goes wrong.
"""

import logging
from pathlib import Path

logger = logging.getLogger(__name__)

# Appended to the full file name: movie.mkv -> movie.mkv.bak
BACKUP_SUFFIX = ".bak"


class BackupRestorationError(Exception):
    """The rename back from ``.bak`` reported success but left no file."""


def get_backup_path(file_path: Path, suffix: str = BACKUP_SUFFIX) -> Path:
    """Sibling path the backup of ``file_path`` lives at."""
    return file_path.with_name(file_path.name + suffix)


def original_path_for(backup_path: Path, suffix: str = BACKUP_SUFFIX) -> Path:
    """Undo get_backup_path.

    Raises:
        ValueError: ``backup_path`` does not carry ``suffix``, or is nothing
            but the suffix.
    """
    stem = backup_path.name.removesuffix(suffix)
    if not stem or stem == backup_path.name:
        raise ValueError(f"{backup_path} is not a {suffix} backup")
    return backup_path.with_name(stem)


def create_backup(file_path: Path, suffix: str = BACKUP_SUFFIX) -> Path:
    """Rename ``file_path`` to its backup path and return the new path.

    The rename is atomic within a directory, so at any moment exactly one
    of the original and the backup exists.

    Raises:
        FileNotFoundError: ``file_path`` is gone.
        FileExistsError: A backup is already present. It may be the only
            copy left by an interrupted run, so it is never overwritten.
        PermissionError: The directory is not writable.
    """
    if not file_path.exists():
        raise FileNotFoundError(f"Cannot backup {file_path}: no such file")

    backup_path = get_backup_path(file_path, suffix)
    if backup_path.exists():
        raise FileExistsError(
            f"Backup already exists: {backup_path}. "
            "Run 'vlconv recover' to restore interrupted conversions."
        )

    file_path.rename(backup_path)
    logger.debug(
        "Source moved aside",
        extra={"source_path": str(file_path), "backup_path": str(backup_path)},
    )
    return backup_path


def restore_from_backup(
    backup_path: Path,
    original_path: Path | None = None,
    suffix: str = BACKUP_SUFFIX,
) -> Path:
    """Move a backup back over its original name.

    Whatever sits at the original name is a partial output and is deleted
    first. ``original_path`` defaults to the backup name minus ``suffix``.

    Returns:
        The restored path.

    Raises:
        FileNotFoundError: There is no backup to restore.
        PermissionError: The directory is not writable.
        BackupRestorationError: The rename left nothing behind.
    """
    if not backup_path.is_file():
        raise FileNotFoundError(f"No backup at {backup_path}")
    target = original_path or original_path_for(backup_path, suffix)

    logger.info(
        "Restoring original",
        extra={"backup_path": str(backup_path), "target_path": str(target)},
    )
    target.unlink(missing_ok=True)
    backup_path.rename(target)

    if not target.is_file():
        raise BackupRestorationError(f"{target} is missing after restoring it")
    return target


def safe_restore_from_backup(
    backup_path: Path,
    original_path: Path | None = None,
    suffix: str = BACKUP_SUFFIX,
) -> bool:
    """restore_from_backup for rollback paths: logs and returns False on error.

    A failed restore must not hide the failure that triggered the rollback.
    """
    try:
        restore_from_backup(backup_path, original_path, suffix)
    except (OSError, ValueError, BackupRestorationError) as e:
        logger.error(
            "Could not restore %s (%s); the original is still at that path",
            backup_path,
            e,
        )
        return False
    return True


def cleanup_backup(backup_path: Path) -> None:
    """Delete a backup once its conversion is verified. Missing is fine."""
    if backup_path.exists():
        backup_path.unlink()
        logger.debug("Backup removed", extra={"backup_path": str(backup_path)})
