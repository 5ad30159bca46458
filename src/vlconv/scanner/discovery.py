"""Source file discovery and recovery of interrupted runs."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from pathlib import Path

from vlconv.conversion.classifier import container_for
from vlconv.executor.backup import (
    BACKUP_SUFFIX,
    original_path_for,
    safe_restore_from_backup,
)
from vlconv.executor.utils import cleanup_temp_file, is_temp_output

logger = logging.getLogger(__name__)


def _is_hidden(path: Path, root: Path) -> bool:
    """True if any component below root starts with a dot."""
    try:
        parts = path.relative_to(root).parts
    except ValueError:
        parts = (path.name,)
    return any(part.startswith(".") for part in parts)


def _iter_directory(directory: Path, recursive: bool) -> Iterator[Path]:
    pattern_iter = directory.rglob("*") if recursive else directory.glob("*")
    for path in sorted(pattern_iter):
        if path.is_file() and not _is_hidden(path, directory):
            yield path


def is_source_candidate(path: Path, backup_suffix: str = BACKUP_SUFFIX) -> bool:
    """Return True if a file found in a directory should be converted.

    Backups, in-progress outputs and finished MP4s are excluded so that
    re-running a batch over the same folder does not convert twice.
    """
    if path.name.endswith(backup_suffix) or is_temp_output(path):
        return False
    return container_for(path) is not None


def discover_sources(
    paths: Iterable[Path],
    recursive: bool = False,
    backup_suffix: str = BACKUP_SUFFIX,
) -> list[Path]:
    """Expand command line paths into an ordered list of source files.

    Files named explicitly are kept as given (the classifier reports the
    ones it cannot handle). Directories contribute their convertible files
    in sorted order, skipping hidden entries.

    Args:
        paths: Files and directories, in the order the user gave them.
        recursive: If True, descend into subdirectories.
        backup_suffix: Suffix identifying backups to skip.

    Returns:
        Absolute paths without duplicates, in discovery order.
    """
    files: list[Path] = []
    seen: set[Path] = set()

    def add(path: Path) -> None:
        if path not in seen:
            seen.add(path)
            files.append(path)

    for path in paths:
        path = path.expanduser().resolve()
        if path.is_file():
            add(path)
        elif path.is_dir():
            for child in _iter_directory(path, recursive):
                if is_source_candidate(child, backup_suffix):
                    add(child)
        else:
            logger.warning("Path not found: %s", path)

    return files


@dataclass
class RecoveryReport:
    """What recover_interrupted() changed."""

    restored: list[Path] = field(default_factory=list)
    removed_temps: list[Path] = field(default_factory=list)
    conflicts: list[Path] = field(default_factory=list)
    """Backups left alone because the original path is occupied."""

    failed: list[Path] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        """True if any file was restored or removed."""
        return bool(self.restored or self.removed_temps)


def recover_interrupted(
    directory: Path,
    recursive: bool = False,
    backup_suffix: str = BACKUP_SUFFIX,
) -> RecoveryReport:
    """Undo the filesystem state left by a crashed or killed batch.

    A backup whose original path is free is renamed back, and leftover
    temp outputs are deleted. A backup whose original path is occupied is
    reported and left untouched.

    Args:
        directory: Folder to repair.
        recursive: If True, descend into subdirectories.
        backup_suffix: Suffix identifying backups.

    Returns:
        RecoveryReport listing the affected files.
    """
    report = RecoveryReport()
    pattern_iter = directory.rglob("*") if recursive else directory.glob("*")

    for path in sorted(pattern_iter):
        if not path.is_file():
            continue
        if is_temp_output(path):
            cleanup_temp_file(path)
            if not path.exists():
                report.removed_temps.append(path)
            continue
        if not path.name.endswith(backup_suffix):
            continue

        try:
            original = original_path_for(path, backup_suffix)
        except ValueError:
            continue
        if original.exists():
            logger.warning(
                "Not restoring %s: %s already exists", path.name, original.name
            )
            report.conflicts.append(path)
        elif safe_restore_from_backup(path, original, backup_suffix):
            report.restored.append(original)
        else:
            report.failed.append(path)

    logger.info(
        "Recovery finished",
        extra={
            "directory": str(directory),
            "restored": len(report.restored),
            "removed_temps": len(report.removed_temps),
            "conflicts": len(report.conflicts),
        },
    )
    return report
