"""Source selection and recovery of interrupted runs."""

from vlconv.scanner.discovery import (
    RecoveryReport,
    discover_sources,
    is_source_candidate,
    recover_interrupted,
)

__all__ = [
    "RecoveryReport",
    "discover_sources",
    "is_source_candidate",
    "recover_interrupted",
]
