"""Tests for the agentsync command line."""

import pytest
from click.testing import CliRunner
from git import Repo

from agentsync.cli import main


@pytest.fixture
def run(monkeypatch, tmp_path):
    monkeypatch.setenv("AGENTSYNC_LOG_DIR", str(tmp_path / "sync_logs"))
    runner = CliRunner()

    def invoke(repo, *args):
        return runner.invoke(main, ["-C", str(repo), *args])

    return invoke


def test_help_works_outside_a_repository(tmp_path):
    result = CliRunner().invoke(main, ["-C", str(tmp_path), "--help"])
    assert result.exit_code == 0
    assert "sync" in result.output


def test_not_a_repository_exits_with_error(run, tmp_path):
    result = run(tmp_path, "status", "--offline")
    assert result.exit_code == 5
    assert "Not a git repository" in result.output


def test_sync_success_then_history(run, clones):
    alice, _ = clones
    (alice / "agents" / "reviewer.md").write_text("# Reviewer\n")

    result = run(alice, "sync")
    assert result.exit_code == 0, result.output

    history = run(alice, "history")
    assert history.exit_code == 0
    assert "Sync history (1)" in history.output


def test_dry_run_commits_nothing(run, clones):
    alice, _ = clones
    (alice / "agents" / "reviewer.md").write_text("# Reviewer\n")
    head = Repo(alice).head.commit.hexsha

    result = run(alice, "sync", "--dry-run")

    assert result.exit_code == 0, result.output
    assert "1 added" in result.output
    assert Repo(alice).head.commit.hexsha == head


def test_sync_validation_failure_exit_code(run, clones):
    alice, _ = clones
    (alice / "agents" / "broken.json").write_text("{")

    result = run(alice, "sync")

    assert result.exit_code == 2
    assert "JSON_SYNTAX" in result.output


def test_validate_command(run, clones):
    alice, _ = clones
    (alice / "agents" / "ok.md").write_text("# Fine\n")
    assert run(alice, "validate").exit_code == 0

    (alice / "agents" / "bad.yaml").write_text("a: [\n")
    assert run(alice, "validate", "agents/bad.yaml").exit_code == 2


def test_invalid_config_exits_with_error(run, clones):
    alice, _ = clones
    (alice / ".agentsync.yaml").write_text("colour: blue\n")

    result = run(alice, "status", "--offline")

    assert result.exit_code == 5
    assert "colour" in result.output


def test_conflict_flow(run, clones):
    alice, bob = clones
    (alice / "agents" / "base.md").write_text("# Base\n\nBe thorough.\n")
    assert run(alice, "sync").exit_code == 0

    (bob / "agents" / "base.md").write_text("# Base\n\nBe fast.\n")
    bob_repo = Repo(bob)
    bob_repo.git.add("--all")
    bob_repo.git.commit("-m", "local edit")

    synced = run(bob, "sync")
    assert synced.exit_code == 1
    assert "agents/base.md" in synced.output

    listed = run(bob, "conflicts")
    assert listed.exit_code == 1
    assert "agents/base.md" in listed.output

    manual = run(bob, "resolve", "agents/base.md", "-s", "merge")
    assert manual.exit_code == 1
    assert "not implemented" in manual.output

    resolved = run(bob, "resolve", "agents/base.md", "-s", "keep-remote")
    assert resolved.exit_code == 0, resolved.output
    assert (bob / "agents" / "base.md").read_text() == "# Base\n\nBe thorough.\n"

    assert run(bob, "sync").exit_code == 0
    assert run(bob, "conflicts").exit_code == 0


def test_abort_restores_pre_merge_state(run, clones):
    alice, bob = clones
    (alice / "agents" / "base.md").write_text("# Base\n\nBe thorough.\n")
    assert run(alice, "sync").exit_code == 0

    (bob / "agents" / "base.md").write_text("# Base\n\nBe fast.\n")
    bob_repo = Repo(bob)
    bob_repo.git.add("--all")
    bob_repo.git.commit("-m", "local edit")
    assert run(bob, "sync").exit_code == 1

    result = run(bob, "abort")

    assert result.exit_code == 0, result.output
    assert "1 conflict(s) abandoned" in result.output
    assert (bob / "agents" / "base.md").read_text() == "# Base\n\nBe fast.\n"


def test_resolve_requires_arguments(run, clones):
    alice, _ = clones
    assert run(alice, "resolve").exit_code == 2


def test_manual_resolution_flow(run, clones):
    alice, bob = clones
    (alice / "agents" / "base.md").write_text("# Base\n\nBe thorough.\n")
    assert run(alice, "sync").exit_code == 0

    (bob / "agents" / "base.md").write_text("# Base\n\nBe fast.\n")
    bob_repo = Repo(bob)
    bob_repo.git.add("--all")
    bob_repo.git.commit("-m", "local edit")
    assert run(bob, "sync").exit_code == 1

    # A resolution that still carries the markers is refused
    bob_repo.git.add("agents/base.md")
    refused = run(bob, "sync")
    assert refused.exit_code == 2
    assert "CONFLICT_MARKERS" in refused.output

    (bob / "agents" / "base.md").write_text("# Base\n\nBe thorough, then fast.\n")
    bob_repo.git.add("agents/base.md")

    assert run(bob, "sync").exit_code == 0
    assert run(bob, "conflicts").exit_code == 0


def test_corrupt_conflict_store_exits_with_error(run, clones):
    alice, _ = clones
    state = alice / ".git" / "agentsync"
    state.mkdir(parents=True, exist_ok=True)
    (state / "conflicts.json").write_text("{broken")

    result = run(alice, "conflicts")

    assert result.exit_code == 5
    assert "unreadable" in result.output
