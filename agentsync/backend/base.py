"""Version-control backend contract consumed by the orchestrator and resolver.

Implementations return structured outcomes for every expected failure
(behind remote, conflict, offline, rejected credentials). Exceptions are
reserved for genuinely unexpected conditions.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path

from agentsync.models.results import (
    CommitResult,
    FetchResult,
    PublishResult,
    RepositorySnapshot,
    Side,
    SideSelectionResult,
)

START_MARKER = "<<<<<<<"
BASE_MARKER = "|||||||"
DIVIDER_MARKER = "======="
END_MARKER = ">>>>>>>"


def contains_conflict_markers(text: str) -> bool:
    """True if ``text`` has a start, divider and end marker on their own lines."""
    has_start = has_divider = has_end = False
    for line in text.splitlines():
        if line.startswith(START_MARKER):
            has_start = True
        elif line.rstrip() == DIVIDER_MARKER:
            has_divider = True
        elif line.startswith(END_MARKER):
            has_end = True
    return has_start and has_divider and has_end


class VersionControlBackend(ABC):
    """Capability set the sync core needs from a remote-tracked repository."""

    @property
    @abstractmethod
    def root(self) -> Path:
        """Working-tree root."""

    @property
    @abstractmethod
    def state_dir(self) -> Path:
        """Private directory for agentsync state, never part of the working tree."""

    @abstractmethod
    def fetch(self) -> FetchResult:
        """Fetch the remote and integrate it into the working branch."""

    @abstractmethod
    def commit(self, message: str, files: list[str]) -> CommitResult:
        """Stage ``files`` (including deletions) and record a commit."""

    @abstractmethod
    def publish(self) -> PublishResult:
        """Push local commits to the remote."""

    @abstractmethod
    def status(self, pathspec: str | None = None) -> RepositorySnapshot:
        """Snapshot of working-tree changes, optionally limited to ``pathspec``."""

    @abstractmethod
    def outgoing_files(self) -> list[str]:
        """Paths whose content would reach the remote on the next publish, sorted.

        Covers commits not yet published and anything staged, including a
        resolved but uncommitted merge. Deletions are not listed.
        """

    @abstractmethod
    def select_side(self, path: str, side: Side) -> SideSelectionResult:
        """Resolve ``path`` by taking one side wholesale and marking it resolved."""

    @abstractmethod
    def is_conflicted(self, path: str) -> bool:
        """Whether the backend still lists ``path`` as unmerged."""

    @abstractmethod
    def read_conflict(self, path: str) -> str:
        """Raw content of a conflicted file, markers included."""

    @abstractmethod
    def conflicted_files(self) -> list[str]:
        """All paths currently unmerged, sorted."""

    @abstractmethod
    def abort_merge(self) -> SideSelectionResult:
        """Abandon an in-progress merge, restoring the pre-merge state."""

    @abstractmethod
    def probe_remote(self) -> FetchResult:
        """Check the remote is reachable without changing anything locally."""

    def has_conflict_markers(self, path: str) -> bool:
        """Whether the working-tree file still contains conflict markers."""
        file_path = self.root / path
        if not file_path.is_file():
            return False
        text = file_path.read_text(encoding="utf-8", errors="replace")
        return contains_conflict_markers(text)
