"""Sync log — append-only record of every sync cycle.

Records are newline-delimited JSON in daily files stored under
``~/.agentsync/sync_logs/`` (configurable). They feed ``agentsync history``
and ``agentsync status``; the orchestrator never reads them back.
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


class OperationType(Enum):
    FETCH = "Fetch"
    COMMIT = "Commit"
    PUBLISH = "Publish"


@dataclass
class OperationRecord:
    """One backend operation within a cycle."""

    type: str
    outcome: str  # "success", "failed", "conflict", "skipped", ...
    file_count: int = 0
    error: str = ""


@dataclass
class CycleRecord:
    """A single sync cycle as written to the log."""

    cycle_id: str
    repo: str
    started_at: str
    ended_at: str = ""
    status: str = ""
    message: str = ""
    dry_run: bool = False
    commit_id: str = ""
    operations: list[OperationRecord] = field(default_factory=list)

    def add(
        self,
        op_type: OperationType,
        outcome: str,
        file_count: int = 0,
        error: str = "",
    ) -> None:
        self.operations.append(
            OperationRecord(type=op_type.value, outcome=outcome, file_count=file_count, error=error)
        )

    @classmethod
    def from_dict(cls, data: dict) -> CycleRecord:
        ops = [OperationRecord(**op) for op in data.get("operations", [])]
        return cls(**{**data, "operations": ops})


class SyncLogger:
    """File-based JSON-lines sync log, one file per UTC day."""

    def __init__(self, base_dir: Optional[Path] = None) -> None:
        self._base_dir = Path(base_dir) if base_dir else Path.home() / ".agentsync" / "sync_logs"
        self._base_dir.mkdir(parents=True, exist_ok=True)

    @property
    def base_dir(self) -> Path:
        return self._base_dir

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _log_file_for_date(self, dt: datetime) -> Path:
        return self._base_dir / f"{dt.strftime('%Y-%m-%d')}.jsonl"

    def _read_all(self) -> list[CycleRecord]:
        records: list[CycleRecord] = []
        for path in sorted(self._base_dir.glob("*.jsonl")):
            for lineno, line in enumerate(path.read_text(encoding="utf-8").splitlines(), 1):
                if not line.strip():
                    continue
                try:
                    records.append(CycleRecord.from_dict(json.loads(line)))
                except (ValueError, TypeError) as e:
                    logger.warning("Skipping unreadable sync log line %s:%d: %s", path.name, lineno, e)
        return records

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def write(self, record: CycleRecord) -> None:
        """Append a finished cycle record."""
        if not record.ended_at:
            record.ended_at = datetime.now(timezone.utc).isoformat()
        log_file = self._log_file_for_date(datetime.now(timezone.utc))
        with log_file.open("a", encoding="utf-8") as fh:
            fh.write(json.dumps(asdict(record)) + "\n")

    def get_cycles(
        self,
        *,
        repo: Optional[str] = None,
        status: Optional[str] = None,
        limit: int = 50,
    ) -> list[CycleRecord]:
        """Return logged cycles, newest first."""
        records = self._read_all()
        if repo:
            records = [r for r in records if r.repo == repo]
        if status:
            records = [r for r in records if r.status == status]
        records.sort(key=lambda r: r.started_at, reverse=True)
        return records[:limit]

    def last_success(self, repo: str) -> CycleRecord | None:
        """Most recent successful cycle that was not a dry run."""
        for record in self.get_cycles(repo=repo, status="success", limit=10_000):
            if not record.dry_run:
                return record
        return None
