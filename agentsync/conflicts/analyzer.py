"""Conflict analyzer — parse conflict markers and decide whether a file can
be resolved without a human.

The decision uses only the text of the two sides. Interleaved or
overlapping edits are never merged.
"""

from __future__ import annotations

import re
from datetime import datetime

from agentsync.backend.base import BASE_MARKER, DIVIDER_MARKER, END_MARKER, START_MARKER
from agentsync.models.conflict import Classification, ConflictRecord, ResolutionStrategy

_WHITESPACE = re.compile(r"\s+")

# Parser states
_OUTSIDE, _LOCAL, _BASE, _REMOTE = range(4)


def parse_fragments(raw: str) -> tuple[str, str, int]:
    """Split conflicted text into (local, remote, hunk count).

    Every hunk's local lines are concatenated into one string, and likewise
    for the remote lines. A diff3 base section (between ``|||||||`` and
    ``=======``) belongs to neither side.
    """
    local: list[str] = []
    remote: list[str] = []
    hunks = 0
    state = _OUTSIDE

    for line in raw.splitlines(keepends=True):
        bare = line.rstrip("\r\n")
        if state == _OUTSIDE:
            if bare.startswith(START_MARKER):
                state = _LOCAL
                hunks += 1
        elif state == _LOCAL:
            if bare.startswith(BASE_MARKER):
                state = _BASE
            elif bare.rstrip() == DIVIDER_MARKER:
                state = _REMOTE
            else:
                local.append(line)
        elif state == _BASE:
            if bare.rstrip() == DIVIDER_MARKER:
                state = _REMOTE
        elif state == _REMOTE:
            if bare.startswith(END_MARKER):
                state = _OUTSIDE
            else:
                remote.append(line)

    return "".join(local), "".join(remote), hunks


def _squash(text: str) -> str:
    return _WHITESPACE.sub("", text)


class ConflictAnalyzer:
    """Turns a conflicted file into a ConflictRecord and classifies it."""

    def analyze(
        self, path: str, raw_diff: str, detected_at: datetime | None = None
    ) -> ConflictRecord:
        local, remote, hunks = parse_fragments(raw_diff)
        record = ConflictRecord(
            path=path,
            local_changes=local,
            remote_changes=remote,
            hunk_count=hunks,
        )
        if detected_at is not None:
            record.detected_at = detected_at
        return record

    def classify(self, record: ConflictRecord) -> Classification:
        """Decide whether ``record`` is safe to resolve automatically.

        Rules, first match wins:
        - no marker hunks (one side deleted the file): manual
        - one side empty or whitespace-only: keep the side that has content
        - both sides equal once all whitespace is removed: keep local
        - anything else: manual
        """
        if record.hunk_count == 0:
            # Modify/delete conflicts leave no markers, so both fragments are
            # empty and say nothing about which side holds the content
            return Classification(
                can_auto_resolve=False,
                suggested=ResolutionStrategy.MANUAL,
                reason="No conflict markers; one side deleted or renamed the file",
            )

        local_blank = not record.local_changes.strip()
        remote_blank = not record.remote_changes.strip()

        if remote_blank:
            return Classification(
                can_auto_resolve=True,
                suggested=ResolutionStrategy.KEEP_LOCAL,
                reason="Remote side is empty",
            )
        if local_blank:
            return Classification(
                can_auto_resolve=True,
                suggested=ResolutionStrategy.KEEP_REMOTE,
                reason="Local side is empty",
            )
        if _squash(record.local_changes) == _squash(record.remote_changes):
            return Classification(
                can_auto_resolve=True,
                suggested=ResolutionStrategy.KEEP_LOCAL,
                reason="Sides differ only in whitespace",
            )
        return Classification(
            can_auto_resolve=False,
            suggested=ResolutionStrategy.MANUAL,
            reason="Both sides changed the same content",
        )
