"""Shared test doubles and repository fixtures."""

from pathlib import Path

import pytest
from git import Repo

from agentsync.backend.base import VersionControlBackend
from agentsync.models.results import (
    CommitResult,
    FetchResult,
    PublishResult,
    RepositorySnapshot,
    SideSelectionResult,
)


class FakeBackend(VersionControlBackend):
    """In-memory backend that records every call.

    Tests set ``fetch_result``, ``snapshot``, ``outgoing``, ``commit_result`` and
    ``publish_result`` to script a cycle, then assert on ``calls``.
    A successful commit empties the snapshot, like a real repository.
    """

    def __init__(self, root: Path):
        self._root = Path(root)
        self.fetch_result = FetchResult(success=True)
        self.snapshot = RepositorySnapshot()
        self.commit_result = CommitResult(success=True, commit_id="a1b2c3d4e5f6a7b8c9d0")
        self.publish_result = PublishResult(success=True)
        self.select_results: dict[str, SideSelectionResult] = {}
        self.conflicted: set[str] = set()
        self.outgoing: list[str] = []
        self.leave_markers = False
        self.calls: list[tuple] = []

    @property
    def root(self) -> Path:
        return self._root

    @property
    def state_dir(self) -> Path:
        return self._root / ".state"

    @property
    def call_names(self) -> list[str]:
        return [c[0] for c in self.calls]

    def fetch(self):
        self.calls.append(("fetch",))
        return self.fetch_result

    def commit(self, message, files):
        self.calls.append(("commit", message, tuple(files)))
        if self.commit_result.success and not self.commit_result.nothing_to_commit:
            self.snapshot = RepositorySnapshot()
        return self.commit_result

    def publish(self):
        self.calls.append(("publish",))
        return self.publish_result

    def status(self, pathspec=None):
        self.calls.append(("status", pathspec))
        return self.snapshot

    def outgoing_files(self):
        return sorted(self.outgoing)

    def select_side(self, path, side):
        self.calls.append(("select_side", path, side))
        result = self.select_results.get(path, SideSelectionResult(success=True))
        if result.success:
            self.conflicted.discard(path)
            if not self.leave_markers:
                (self._root / path).write_text(f"kept {side.value}\n")
        return result

    def is_conflicted(self, path):
        return path in self.conflicted

    def read_conflict(self, path):
        return (self._root / path).read_text()

    def conflicted_files(self):
        return sorted(self.conflicted)

    def abort_merge(self):
        self.calls.append(("abort_merge",))
        return SideSelectionResult(success=True)

    def probe_remote(self):
        return FetchResult(success=True)

    def add_conflict(self, path: str, local: str, remote: str) -> None:
        """Write a conflicted file and register it as unmerged."""
        target = self._root / path
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(
            f"header\n<<<<<<< HEAD\n{local}=======\n{remote}>>>>>>> origin/main\nfooter\n"
        )
        self.conflicted.add(path)


@pytest.fixture
def fake_backend(tmp_path):
    return FakeBackend(tmp_path)


def _configure(repo: Repo) -> Repo:
    with repo.config_writer() as cw:
        cw.set_value("user", "name", "Test User")
        cw.set_value("user", "email", "test@example.com")
        cw.set_value("commit", "gpgsign", "false")
    return repo


@pytest.fixture
def clones(tmp_path):
    """Two clones ("alice" and "bob") of a bare remote holding one agent file."""
    remote_path = tmp_path / "remote.git"
    Repo.init(remote_path, bare=True, initial_branch="main")

    seed_path = tmp_path / "seed"
    seed = _configure(Repo.init(seed_path, initial_branch="main"))
    (seed_path / "agents").mkdir()
    (seed_path / "agents" / "base.md").write_text("# Base\n\nBe concise.\n")
    seed.git.add("--all")
    seed.git.commit("-m", "initial agent files")
    seed.create_remote("origin", str(remote_path))
    seed.git.push("origin", "main")

    alice = _configure(Repo.clone_from(str(remote_path), tmp_path / "alice"))
    bob = _configure(Repo.clone_from(str(remote_path), tmp_path / "bob"))
    return Path(alice.working_tree_dir), Path(bob.working_tree_dir)
