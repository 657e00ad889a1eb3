"""Result types for sync cycles and backend operations.

Every outcome the orchestrator or a backend can produce is an explicit,
closed type here. Consumers match on ``status`` / ``success`` instead of
probing dictionaries for optional keys.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, IntEnum


class SyncStatus(Enum):
    """Terminal state of one sync cycle."""

    SUCCESS = "success"
    CONFLICT = "conflict"
    VALIDATION_FAILED = "validation_failed"
    NETWORK_ERROR = "network_error"
    PUSH_REJECTED = "push_rejected"
    ERROR = "error"


class FailureKind(Enum):
    """Why an infrastructure operation failed."""

    NONE = "none"
    NETWORK = "network"  # Remote unreachable, timeout
    AUTH = "auth"  # Credentials rejected by the remote


class Side(Enum):
    """Which side of a conflicted path to keep."""

    LOCAL = "local"
    REMOTE = "remote"


class ExitCode(IntEnum):
    """Process exit codes for the command-line surface."""

    SUCCESS = 0
    CONFLICT = 1
    VALIDATION_FAILED = 2
    NETWORK_ERROR = 3
    AUTH_FAILED = 4
    ERROR = 5
    PUSH_REJECTED = 6


# --- Backend outcomes ---


@dataclass(frozen=True)
class FetchResult:
    """Outcome of fetching and integrating the remote."""

    success: bool
    conflicting_files: tuple[str, ...] = ()
    error_message: str = ""
    failure_kind: FailureKind = FailureKind.NONE
    files_pulled: int = 0

    @property
    def has_conflicts(self) -> bool:
        return len(self.conflicting_files) > 0


@dataclass(frozen=True)
class CommitResult:
    """Outcome of recording a commit."""

    success: bool
    commit_id: str = ""
    error_message: str = ""
    nothing_to_commit: bool = False


@dataclass(frozen=True)
class PublishResult:
    """Outcome of pushing local commits to the remote."""

    success: bool
    error_message: str = ""
    is_behind_remote: bool = False
    failure_kind: FailureKind = FailureKind.NONE


@dataclass(frozen=True)
class SideSelectionResult:
    """Outcome of resolving a conflicted path by picking one side."""

    success: bool
    error_message: str = ""


@dataclass(frozen=True)
class RepositorySnapshot:
    """Point-in-time view of the working tree relative to HEAD and the remote.

    Paths are relative to the repository root. A path may appear in at most
    one of ``modified``, ``created`` and ``deleted``.
    """

    modified: frozenset[str] = frozenset()
    created: frozenset[str] = frozenset()
    deleted: frozenset[str] = frozenset()
    ahead: int = 0
    behind: int = 0
    conflicted: frozenset[str] = frozenset()
    merge_in_progress: bool = False  # Remote integrated but the merge not yet committed

    def __post_init__(self):
        overlap = (
            (self.modified & self.created)
            | (self.modified & self.deleted)
            | (self.created & self.deleted)
        )
        if overlap:
            raise ValueError(
                f"Path(s) listed in more than one change set: {sorted(overlap)}"
            )
        if self.ahead < 0 or self.behind < 0:
            raise ValueError("Ahead/behind counts cannot be negative")

    @property
    def has_conflicts(self) -> bool:
        return len(self.conflicted) > 0

    @property
    def changed_paths(self) -> list[str]:
        """All changed paths, sorted."""
        return sorted(self.modified | self.created | self.deleted)

    @property
    def is_clean(self) -> bool:
        return not (self.modified or self.created or self.deleted)


# --- Cycle result ---


@dataclass(frozen=True)
class ValidationDefect:
    """A single problem found in a file's content."""

    code: str  # Machine-readable defect code, e.g. "YAML_SYNTAX"
    message: str
    line: int = 0  # 1-based, 0 when not tied to a line

    def __str__(self) -> str:
        where = f" (line {self.line})" if self.line else ""
        return f"[{self.code}] {self.message}{where}"


@dataclass(frozen=True)
class FileDefects:
    """Validation defects for a single file."""

    path: str
    defects: tuple[ValidationDefect, ...] = ()


@dataclass(frozen=True)
class SyncCycleResult:
    """Outcome of one fetch, validate, commit, publish cycle."""

    status: SyncStatus
    message: str = ""
    files_pulled: int = 0
    files_modified: int = 0
    files_added: int = 0
    files_deleted: int = 0
    commit_id: str = ""
    conflicting_files: tuple[str, ...] = ()
    validation_defects: tuple[FileDefects, ...] = ()
    duration_seconds: float = 0.0
    failure_kind: FailureKind = FailureKind.NONE
    dry_run: bool = False
    cycle_id: str = ""
    commit_message: str = ""

    def __post_init__(self):
        if bool(self.conflicting_files) != (self.status == SyncStatus.CONFLICT):
            raise ValueError(
                "conflicting_files must be non-empty exactly when status is CONFLICT"
            )
        if bool(self.validation_defects) != (self.status == SyncStatus.VALIDATION_FAILED):
            raise ValueError(
                "validation_defects must be non-empty exactly when status is VALIDATION_FAILED"
            )

    @property
    def succeeded(self) -> bool:
        return self.status == SyncStatus.SUCCESS

    @property
    def files_changed(self) -> int:
        return self.files_modified + self.files_added + self.files_deleted

    @property
    def exit_code(self) -> ExitCode:
        """Map the terminal state onto the CLI's exit code table."""
        if self.status == SyncStatus.SUCCESS:
            return ExitCode.SUCCESS
        if self.status == SyncStatus.CONFLICT:
            return ExitCode.CONFLICT
        if self.status == SyncStatus.VALIDATION_FAILED:
            return ExitCode.VALIDATION_FAILED
        if self.status == SyncStatus.NETWORK_ERROR:
            if self.failure_kind == FailureKind.AUTH:
                return ExitCode.AUTH_FAILED
            return ExitCode.NETWORK_ERROR
        if self.status == SyncStatus.PUSH_REJECTED:
            return ExitCode.PUSH_REJECTED
        return ExitCode.ERROR

    def summary(self) -> str:
        label = self.status.value.upper()
        if self.dry_run:
            label = f"{label} (dry run)"
        return (
            f"[{label}] pulled={self.files_pulled} modified={self.files_modified} "
            f"added={self.files_added} deleted={self.files_deleted} "
            f"({self.duration_seconds:.2f}s)"
        )
