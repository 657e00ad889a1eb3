"""Commit messages for sync cycles."""

from __future__ import annotations

from agentsync.models.results import RepositorySnapshot

MIN_MESSAGE_LENGTH = 3
MERGE_MESSAGE = "sync: merge remote changes"


def generate_commit_message(snapshot: RepositorySnapshot) -> str:
    """Describe a snapshot's changes, e.g.
    ``sync: update 3 agent file(s) - 2 modified, 1 added``.

    Only non-zero counts appear, always in the order modified, added, deleted.
    A snapshot with a merge in progress is described as a merge.
    """
    counts = [
        (len(snapshot.modified), "modified"),
        (len(snapshot.created), "added"),
        (len(snapshot.deleted), "deleted"),
    ]
    total = sum(n for n, _ in counts)
    breakdown = ", ".join(f"{n} {label}" for n, label in counts if n)
    if snapshot.merge_in_progress:
        return f"{MERGE_MESSAGE} - {breakdown}" if total else MERGE_MESSAGE
    return f"sync: update {total} agent file(s) - {breakdown}"


def check_commit_message(message: str) -> str | None:
    """Return a problem description for an unusable message, else None."""
    if len(message.strip()) < MIN_MESSAGE_LENGTH:
        return (
            f"Commit message {message!r} is too short; it needs at least "
            f"{MIN_MESSAGE_LENGTH} non-blank characters"
        )
    return None
