"""Data models shared by the orchestrator, backends and conflict engine."""

from agentsync.models.conflict import (
    Classification,
    ConflictRecord,
    ResolutionOutcome,
    ResolutionStatus,
    ResolutionStrategy,
)
from agentsync.models.results import (
    CommitResult,
    ExitCode,
    FailureKind,
    FetchResult,
    FileDefects,
    PublishResult,
    RepositorySnapshot,
    Side,
    SideSelectionResult,
    SyncCycleResult,
    SyncStatus,
    ValidationDefect,
)

__all__ = [
    "Classification",
    "ConflictRecord",
    "ResolutionOutcome",
    "ResolutionStatus",
    "ResolutionStrategy",
    "CommitResult",
    "ExitCode",
    "FailureKind",
    "FetchResult",
    "FileDefects",
    "PublishResult",
    "RepositorySnapshot",
    "Side",
    "SideSelectionResult",
    "SyncCycleResult",
    "SyncStatus",
    "ValidationDefect",
]
