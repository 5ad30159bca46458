"""Conversion strategies, encoder supervision, and backup handling."""

from vlconv.executor.backup import (
    BACKUP_SUFFIX,
    BackupRestorationError,
    cleanup_backup,
    create_backup,
    get_backup_path,
    restore_from_backup,
    safe_restore_from_backup,
)
from vlconv.executor.remux import build_remux_plan
from vlconv.executor.supervisor import (
    InvalidTransitionError,
    ProcessSupervisor,
    SupervisorHandle,
    SupervisorResult,
    SupervisorState,
)
from vlconv.executor.transcode import build_transcode_plan

__all__ = [
    "BACKUP_SUFFIX",
    "BackupRestorationError",
    "InvalidTransitionError",
    "ProcessSupervisor",
    "SupervisorHandle",
    "SupervisorResult",
    "SupervisorState",
    "build_remux_plan",
    "build_transcode_plan",
    "cleanup_backup",
    "create_backup",
    "get_backup_path",
    "restore_from_backup",
    "safe_restore_from_backup",
]
