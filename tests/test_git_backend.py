"""Tests for the GitPython backend.

Integration tests use a bare repository as the shared remote and two
clones ("alice" and "bob") standing in for two machines.
"""

from pathlib import Path

import pytest
from git import GitCommandError, Repo

from agentsync.backend.git_backend import (
    GitBackend,
    _classify_failure,
    _describe,
    _parse_overwritten_paths,
    parse_porcelain,
)
from agentsync.conflicts.resolver import ConflictResolver
from agentsync.errors import BackendError
from agentsync.models.conflict import ResolutionStrategy
from agentsync.models.results import FailureKind, Side, SyncStatus
from agentsync.sync.orchestrator import SyncOrchestrator
from agentsync.validation.validator import ContentValidator


def _write(root: Path, path: str, content: str) -> None:
    target = root / path
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(content)


def _sync(root: Path, **kwargs):
    backend = GitBackend(root)
    return SyncOrchestrator(backend, ContentValidator(root)).run_cycle(**kwargs)


# --- Porcelain parsing ---


def test_parse_porcelain_basic_codes():
    snap = parse_porcelain(" M a.md\0?? b.md\0D  c.md\0A  d.md\0")
    assert snap.modified == {"a.md"}
    assert snap.created == {"b.md", "d.md"}
    assert snap.deleted == {"c.md"}


def test_parse_porcelain_rename_is_delete_plus_create():
    snap = parse_porcelain("R  new.md\0old.md\0")
    assert snap.created == {"new.md"}
    assert snap.deleted == {"old.md"}


def test_parse_porcelain_unmerged_and_vanished():
    snap = parse_porcelain("UU x.md\0AA y.md\0AD tmp.md\0")
    assert snap.conflicted == {"x.md", "y.md"}
    assert snap.is_clean


# --- Error text helpers ---


def test_auth_failure_is_classified():
    error = GitCommandError(["git", "fetch"], 128, stderr="fatal: Authentication failed for 'https://example.com/'")
    assert _classify_failure(error) == FailureKind.AUTH
    assert _describe(error).startswith("fatal: Authentication failed")


def test_unreachable_remote_is_network():
    error = GitCommandError(["git", "fetch"], 128, stderr="fatal: unable to access: Could not resolve host")
    assert _classify_failure(error) == FailureKind.NETWORK


def test_overwritten_paths_are_parsed():
    text = (
        "error: Your local changes to the following files would be overwritten by merge:\n"
        "\tagents/a.md\n\tagents/b.md\n"
        "Please commit your changes or stash them before you merge.\n"
    )
    assert _parse_overwritten_paths(text) == ["agents/a.md", "agents/b.md"]


# --- Repository integration ---


def test_not_a_repository(tmp_path):
    with pytest.raises(BackendError):
        GitBackend(tmp_path / "plain")


def test_status_reports_working_tree_changes(clones):
    alice, _ = clones
    (alice / "agents" / "base.md").write_text("# Base\n\nBe brief.\n")
    _write(alice, "agents/new.md", "# New\n")

    snap = GitBackend(alice).status()

    assert snap.modified == {"agents/base.md"}
    assert snap.created == {"agents/new.md"}
    assert (snap.ahead, snap.behind) == (0, 0)


def test_state_dir_is_inside_git_dir(clones):
    alice, _ = clones
    assert GitBackend(alice).state_dir == alice / ".git" / "agentsync"


def test_cycle_publishes_and_other_clone_pulls(clones):
    alice, bob = clones
    _write(alice, "agents/reviewer.md", "# Reviewer\n")

    result = _sync(alice)

    assert result.status == SyncStatus.SUCCESS
    assert result.files_added == 1
    assert len(result.commit_id) == 40

    fetched = GitBackend(bob).fetch()
    assert fetched.success
    assert fetched.files_pulled == 1
    assert (bob / "agents" / "reviewer.md").read_text() == "# Reviewer\n"


def test_second_cycle_is_a_no_op(clones):
    alice, _ = clones
    _write(alice, "agents/reviewer.md", "# Reviewer\n")
    _sync(alice)

    again = _sync(alice)

    assert again.status == SyncStatus.SUCCESS
    assert again.commit_id == ""
    assert again.files_changed == 0


def test_commit_with_no_staged_change(clones):
    alice, _ = clones
    result = GitBackend(alice).commit("sync: nothing", ["agents/base.md"])
    assert result.success
    assert result.nothing_to_commit


def test_publish_behind_remote_is_rejected(clones):
    alice, bob = clones
    _write(alice, "agents/a.md", "# A\n")
    assert _sync(alice).status == SyncStatus.SUCCESS

    backend = GitBackend(bob)
    _write(bob, "agents/b.md", "# B\n")
    assert backend.commit("sync: add b", ["agents/b.md"]).success
    published = backend.publish()

    assert not published.success
    assert published.is_behind_remote

    # The next cycle integrates the remote and publishes the pending commit
    retry = _sync(bob)
    assert retry.status == SyncStatus.SUCCESS
    assert (bob / "agents" / "a.md").exists()


def test_fetch_from_missing_remote_is_network_error(clones, tmp_path):
    alice, _ = clones
    Repo(alice).create_remote("nowhere", str(tmp_path / "missing.git"))

    result = GitBackend(alice, remote="nowhere").fetch()

    assert not result.success
    assert not result.has_conflicts
    assert result.failure_kind == FailureKind.NETWORK


def test_same_line_edit_conflicts_and_resolves(clones):
    alice, bob = clones
    (alice / "agents" / "base.md").write_text("# Base\n\nBe thorough.\n")
    assert _sync(alice).status == SyncStatus.SUCCESS

    backend = GitBackend(bob)
    (bob / "agents" / "base.md").write_text("# Base\n\nBe fast.\n")
    assert backend.commit("sync: speed", ["agents/base.md"]).success

    result = _sync(bob)
    assert result.status == SyncStatus.CONFLICT
    assert result.conflicting_files == ("agents/base.md",)
    assert backend.conflicted_files() == ["agents/base.md"]

    resolver = ConflictResolver(backend)
    record = resolver.detect()[0]
    assert "Be fast." in record.local_changes
    assert "Be thorough." in record.remote_changes

    outcome = resolver.resolve_auto("agents/base.md", ResolutionStrategy.KEEP_LOCAL)
    assert outcome.success
    assert (bob / "agents" / "base.md").read_text() == "# Base\n\nBe fast.\n"

    # The next cycle concludes the merge and publishes it
    final = _sync(bob)
    assert final.status == SyncStatus.SUCCESS
    assert GitBackend(bob).status().ahead == 0


def test_select_side_on_clean_path_fails(clones):
    alice, _ = clones
    result = GitBackend(alice).select_side("agents/base.md", Side.REMOTE)
    assert not result.success
    assert "not conflicted" in result.error_message


def test_abort_without_merge(clones):
    alice, _ = clones
    assert not GitBackend(alice).abort_merge().success


# --- Unpublished work is validated ---


def _diverge(alice: Path, bob: Path) -> GitBackend:
    """Publish an edit from alice and commit a conflicting one in bob."""
    (alice / "agents" / "base.md").write_text("# Base\n\nBe thorough.\n")
    assert _sync(alice).status == SyncStatus.SUCCESS
    backend = GitBackend(bob)
    (bob / "agents" / "base.md").write_text("# Base\n\nBe fast.\n")
    assert backend.commit("sync: speed", ["agents/base.md"]).success
    return backend


def _remote_file(tmp_path: Path, path: str) -> str:
    return Repo(tmp_path / "remote.git").git.show(f"main:{path}")


def test_manual_resolution_is_validated_before_publish(clones, tmp_path):
    alice, bob = clones
    backend = _diverge(alice, bob)
    assert _sync(bob).status == SyncStatus.CONFLICT

    token = "ghp_" + "a" * 36
    (bob / "agents" / "base.md").write_text(f'# Base\n\ntoken = "{token}"\n')
    Repo(bob).git.add("agents/base.md")

    blocked = _sync(bob)

    assert blocked.status == SyncStatus.VALIDATION_FAILED
    assert [d.path for d in blocked.validation_defects] == ["agents/base.md"]
    assert (bob / ".git" / "MERGE_HEAD").exists()
    assert token not in _remote_file(tmp_path, "agents/base.md")

    (bob / "agents" / "base.md").write_text("# Base\n\nBe thorough and fast.\n")
    Repo(bob).git.add("agents/base.md")

    final = _sync(bob)

    assert final.status == SyncStatus.SUCCESS
    assert not (bob / ".git" / "MERGE_HEAD").exists()
    assert _remote_file(tmp_path, "agents/base.md") == "# Base\n\nBe thorough and fast."
    assert backend.status().ahead == 0


def test_unpublished_commit_is_validated(clones, tmp_path):
    _, bob = clones
    repo = Repo(bob)
    (bob / "agents" / "leak.md").write_text('api_key = "' + "k" * 24 + '"\n')
    repo.git.add("--all")
    repo.git.commit("-m", "committed outside agentsync")

    result = _sync(bob)

    assert result.status == SyncStatus.VALIDATION_FAILED
    assert [d.path for d in result.validation_defects] == ["agents/leak.md"]
    remote_files = Repo(tmp_path / "remote.git").git.ls_tree("-r", "--name-only", "main")
    assert "agents/leak.md" not in remote_files.splitlines()


def test_outgoing_files_lists_unpublished_content(clones):
    alice, _ = clones
    backend = GitBackend(alice)
    assert backend.outgoing_files() == []

    (alice / "agents" / "new.md").write_text("# New\n")
    assert backend.commit("sync: add new", ["agents/new.md"]).success

    assert backend.outgoing_files() == ["agents/new.md"]


# --- Modify/delete conflicts ---


def test_local_delete_remote_modify_needs_manual(clones):
    alice, bob = clones
    (alice / "agents" / "base.md").write_text("# Base\n\nBe thorough.\n")
    assert _sync(alice).status == SyncStatus.SUCCESS

    backend = GitBackend(bob)
    (bob / "agents" / "base.md").unlink()
    assert backend.commit("sync: drop base", ["agents/base.md"]).success
    assert _sync(bob).status == SyncStatus.CONFLICT

    outcomes = ConflictResolver(backend).resolve_all()

    assert [o.success for o in outcomes] == [False]
    assert outcomes[0].strategy == ResolutionStrategy.MANUAL
    assert backend.conflicted_files() == ["agents/base.md"]
    assert (bob / "agents" / "base.md").read_text() == "# Base\n\nBe thorough.\n"


def test_local_modify_remote_delete_needs_manual(clones):
    alice, bob = clones
    (alice / "agents" / "base.md").unlink()
    assert _sync(alice).status == SyncStatus.SUCCESS

    backend = GitBackend(bob)
    (bob / "agents" / "base.md").write_text("# Base\n\nBe fast.\n")
    assert backend.commit("sync: speed", ["agents/base.md"]).success
    assert _sync(bob).status == SyncStatus.CONFLICT

    outcomes = ConflictResolver(backend).resolve_all()

    assert [o.success for o in outcomes] == [False]
    assert outcomes[0].strategy == ResolutionStrategy.MANUAL
    assert (bob / "agents" / "base.md").read_text() == "# Base\n\nBe fast.\n"
