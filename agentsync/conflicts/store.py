"""Conflict store — persists ConflictRecords between CLI invocations.

Storage layout:
    <git-dir>/agentsync/conflicts.json
A JSON object keyed by file path. Living inside the git directory keeps it
out of the working tree and therefore out of every sync cycle.
"""

from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path

from agentsync.errors import StoreError
from agentsync.models.conflict import ConflictRecord, ResolutionStatus


class ConflictStore:
    """Path-keyed owner of the repository's current conflict set."""

    FILENAME = "conflicts.json"

    def __init__(self, state_dir: str | Path):
        self.state_dir = Path(state_dir)
        self.path = self.state_dir / self.FILENAME
        self._records: dict[str, ConflictRecord] = self._load()

    def _load(self) -> dict[str, ConflictRecord]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            if not isinstance(data, dict):
                raise ValueError("expected a JSON object keyed by path")
            return {key: ConflictRecord.from_dict(value) for key, value in data.items()}
        except (ValueError, KeyError, TypeError) as e:
            raise StoreError(
                f"Conflict store {self.path} is unreadable ({e}); delete it and run "
                "'agentsync conflicts' to rebuild it"
            ) from e

    def _save(self) -> None:
        self.state_dir.mkdir(parents=True, exist_ok=True)
        data = {key: record.to_dict() for key, record in sorted(self._records.items())}
        self.path.write_text(json.dumps(data, indent=2), encoding="utf-8")

    def get(self, path: str) -> ConflictRecord | None:
        return self._records.get(path)

    def records(self, status: ResolutionStatus | None = None) -> list[ConflictRecord]:
        records = sorted(self._records.values(), key=lambda r: r.path)
        if status is not None:
            records = [r for r in records if r.status == status]
        return records

    def upsert(self, record: ConflictRecord) -> ConflictRecord:
        """Track a freshly analyzed conflict.

        An existing open record is refreshed with the new fragments but keeps
        its original detection time. A closed record for the same path is
        reopened, since the path is conflicted again.
        """
        existing = self._records.get(record.path)
        if existing is None:
            self._records[record.path] = record
        else:
            if not existing.is_open:
                existing.reopen()
            existing.local_changes = record.local_changes
            existing.remote_changes = record.remote_changes
            existing.hunk_count = record.hunk_count
        self._save()
        return self._records[record.path]

    def save(self, record: ConflictRecord) -> None:
        self._records[record.path] = record
        self._save()

    def abandon_all(self, at: datetime | None = None) -> list[ConflictRecord]:
        abandoned = []
        for record in self._records.values():
            if record.is_open:
                record.abandon(at)
                abandoned.append(record)
        self._save()
        return abandoned

    def clear_resolved(self) -> int:
        """Drop every closed record; returns how many were removed."""
        closed = [path for path, r in self._records.items() if not r.is_open]
        for path in closed:
            del self._records[path]
        if closed:
            self._save()
        return len(closed)
