"""Output conflict decisions.

When the target path of a conversion is already occupied by another file,
the decision of what to do is a pure function of the two files' metadata.
Interactive prompting is supplied by the caller as a ConflictResolver and
never happens inside the pipeline itself.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

logger = logging.getLogger(__name__)


class ConflictAction(Enum):
    """What to do about an existing file at the output path."""

    PROCEED = "proceed"  # Nothing in the way
    SKIP = "skip"  # Leave both files alone
    OVERWRITE = "overwrite"  # Replace the existing output
    ASK = "ask"  # Defer to the injected resolver


@dataclass(frozen=True)
class FileMeta:
    """Minimal metadata used for conflict decisions."""

    path: Path
    size: int
    mtime: float

    @classmethod
    def from_path(cls, path: Path) -> FileMeta | None:
        """Stat a path, returning None if it does not exist."""
        try:
            st = path.stat()
        except FileNotFoundError:
            return None
        return cls(path=path, size=st.st_size, mtime=st.st_mtime)


ConflictResolver = Callable[[FileMeta, FileMeta], ConflictAction]
"""Callback that answers ASK decisions with OVERWRITE or SKIP."""


def decide_output_conflict(source: FileMeta, dest: FileMeta | None) -> ConflictAction:
    """Decide how to treat an existing file at the output path.

    Args:
        source: Metadata of the file about to be converted.
        dest: Metadata of the file occupying the output path, or None.

    Returns:
        PROCEED when the path is free or is the source itself, OVERWRITE
        when the existing file is empty (a leftover from a crashed run),
        ASK otherwise.
    """
    if dest is None:
        return ConflictAction.PROCEED
    if dest.path == source.path:
        return ConflictAction.PROCEED
    if dest.size == 0:
        return ConflictAction.OVERWRITE
    return ConflictAction.ASK


def resolve_output_conflict(
    source: FileMeta,
    dest: FileMeta | None,
    resolver: ConflictResolver | None = None,
) -> ConflictAction:
    """Apply decide_output_conflict, consulting the resolver for ASK.

    Without a resolver an ASK decision degrades to SKIP so that an
    unattended batch never overwrites an unrelated file.

    Returns:
        PROCEED, OVERWRITE, or SKIP.
    """
    action = decide_output_conflict(source, dest)
    if action != ConflictAction.ASK:
        return action

    assert dest is not None
    if resolver is None:
        logger.info(
            "Output already exists, skipping: %s",
            dest.path,
            extra={"source_path": str(source.path), "output_path": str(dest.path)},
        )
        return ConflictAction.SKIP

    answer = resolver(source, dest)
    if answer not in (ConflictAction.OVERWRITE, ConflictAction.SKIP):
        logger.warning("Conflict resolver returned %s, treating as skip", answer)
        return ConflictAction.SKIP
    return answer
