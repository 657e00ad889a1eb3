"""Tests for commit message generation."""

from agentsync.models.results import RepositorySnapshot
from agentsync.sync.commit_message import check_commit_message, generate_commit_message


def _snapshot(modified=(), created=(), deleted=()):
    return RepositorySnapshot(
        modified=frozenset(modified), created=frozenset(created), deleted=frozenset(deleted)
    )


def test_mixed_changes():
    msg = generate_commit_message(_snapshot(modified=["a", "b"], created=["c"]))
    assert msg == "sync: update 3 agent file(s) - 2 modified, 1 added"


def test_all_kinds_in_fixed_order():
    msg = generate_commit_message(_snapshot(modified=["a"], created=["b"], deleted=["c", "d"]))
    assert msg == "sync: update 4 agent file(s) - 1 modified, 1 added, 2 deleted"


def test_zero_counts_are_omitted():
    msg = generate_commit_message(_snapshot(deleted=["a"]))
    assert msg == "sync: update 1 agent file(s) - 1 deleted"


def test_message_is_deterministic():
    snap = _snapshot(modified=["x", "y"])
    assert generate_commit_message(snap) == generate_commit_message(snap)


def test_check_rejects_blank_and_tiny_messages():
    assert check_commit_message("") is not None
    assert check_commit_message("   ") is not None
    assert check_commit_message(" ok ") is not None


def test_check_accepts_real_message():
    assert check_commit_message("update planner agent") is None


def test_merge_without_local_changes():
    snap = RepositorySnapshot(merge_in_progress=True)
    assert generate_commit_message(snap) == "sync: merge remote changes"


def test_merge_with_staged_changes():
    snap = RepositorySnapshot(modified=frozenset({"a.md"}), merge_in_progress=True)
    assert generate_commit_message(snap) == "sync: merge remote changes - 1 modified"
