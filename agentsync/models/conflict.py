"""Conflict records and resolution strategies."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


class ResolutionStatus(Enum):
    UNRESOLVED = "unresolved"
    RESOLVED = "resolved"
    ABANDONED = "abandoned"


class ResolutionStrategy(Enum):
    """How a conflicted file gets resolved."""

    KEEP_LOCAL = "keep-local"  # Discard the remote fragment
    KEEP_REMOTE = "keep-remote"  # Discard the local fragment
    MERGE = "merge"  # Combine both sides (defers to MANUAL)
    MANUAL = "manual"  # User edits the file directly
    REBASE = "rebase"  # Replay local commits on top of the remote

    @property
    def is_executable(self) -> bool:
        """Whether the resolver can apply this strategy without a human."""
        return self in (ResolutionStrategy.KEEP_LOCAL, ResolutionStrategy.KEEP_REMOTE)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ConflictRecord:
    """One file's divergence between the local and remote history.

    ``resolved_at`` is set exactly when ``status`` is not UNRESOLVED and is
    never earlier than ``detected_at``.
    """

    path: str
    local_changes: str = ""
    remote_changes: str = ""
    detected_at: datetime = field(default_factory=_utcnow)
    status: ResolutionStatus = ResolutionStatus.UNRESOLVED
    strategy: ResolutionStrategy | None = None
    resolved_at: datetime | None = None
    hunk_count: int = 0

    def __post_init__(self):
        if (self.resolved_at is None) != (self.status == ResolutionStatus.UNRESOLVED):
            raise ValueError(
                f"{self.path}: resolved_at must be set exactly when status is not unresolved"
            )
        if self.resolved_at is not None and self.resolved_at < self.detected_at:
            raise ValueError(f"{self.path}: resolved_at precedes detected_at")

    @property
    def is_open(self) -> bool:
        return self.status == ResolutionStatus.UNRESOLVED

    def mark_resolved(
        self, strategy: ResolutionStrategy, at: datetime | None = None
    ) -> None:
        self.resolved_at = max(at or _utcnow(), self.detected_at)
        self.strategy = strategy
        self.status = ResolutionStatus.RESOLVED

    def abandon(self, at: datetime | None = None) -> None:
        self.resolved_at = max(at or _utcnow(), self.detected_at)
        self.status = ResolutionStatus.ABANDONED

    def reopen(self) -> None:
        """Return to UNRESOLVED, e.g. when markers turn out to still be present."""
        self.status = ResolutionStatus.UNRESOLVED
        self.strategy = None
        self.resolved_at = None

    def to_dict(self) -> dict:
        return {
            "path": self.path,
            "local_changes": self.local_changes,
            "remote_changes": self.remote_changes,
            "detected_at": self.detected_at.isoformat(),
            "status": self.status.value,
            "strategy": self.strategy.value if self.strategy else None,
            "resolved_at": self.resolved_at.isoformat() if self.resolved_at else None,
            "hunk_count": self.hunk_count,
        }

    @classmethod
    def from_dict(cls, data: dict) -> ConflictRecord:
        strategy = data.get("strategy")
        resolved_at = data.get("resolved_at")
        return cls(
            path=data["path"],
            local_changes=data.get("local_changes", ""),
            remote_changes=data.get("remote_changes", ""),
            detected_at=datetime.fromisoformat(data["detected_at"]),
            status=ResolutionStatus(data.get("status", "unresolved")),
            strategy=ResolutionStrategy(strategy) if strategy else None,
            resolved_at=datetime.fromisoformat(resolved_at) if resolved_at else None,
            hunk_count=data.get("hunk_count", 0),
        )


@dataclass(frozen=True)
class Classification:
    """Whether a conflict can be resolved without a human, and how."""

    can_auto_resolve: bool
    suggested: ResolutionStrategy
    reason: str = ""


@dataclass(frozen=True)
class ResolutionOutcome:
    """Result of attempting to resolve one conflicted path."""

    path: str
    success: bool
    message: str
    strategy: ResolutionStrategy | None = None
