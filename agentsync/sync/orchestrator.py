"""Sync orchestrator — run one fetch, validate, commit, publish cycle.

The cycle is a fixed sequence of fallible steps. Each step's outcome is
interpreted into exactly one terminal ``SyncStatus``:

1. Fetch: conflicts end the cycle as CONFLICT, other failures as NETWORK_ERROR
2. Snapshot: nothing changed and nothing unpublished ends the cycle as SUCCESS
3. Validate every file that would reach the remote: any defect ends the
   cycle as VALIDATION_FAILED, with nothing committed or published
4. Dry run stops here and describes the commit it would make
5. Commit, then publish: a remote that moved ends the cycle as PUSH_REJECTED

No exception escapes ``run_cycle``; anything unexpected becomes ERROR. Nothing
is retried, and the working tree is never rolled back.
"""

from __future__ import annotations

import dataclasses
import logging
import time
import uuid
from datetime import datetime, timezone

from agentsync.backend.base import VersionControlBackend
from agentsync.models.results import (
    FailureKind,
    FileDefects,
    RepositorySnapshot,
    SyncCycleResult,
    SyncStatus,
)
from agentsync.sync.commit_message import check_commit_message, generate_commit_message
from agentsync.sync.sync_log import CycleRecord, OperationType, SyncLogger
from agentsync.validation.validator import ContentValidator

logger = logging.getLogger(__name__)


class SyncOrchestrator:
    """Runs sync cycles against one repository.

    Holds no state between cycles: every call re-fetches and re-reads status.
    Callers must not run two cycles against the same working tree at once
    (see ``agentsync.sync.lock``).
    """

    def __init__(
        self,
        backend: VersionControlBackend,
        validator: ContentValidator,
        sync_logger: SyncLogger | None = None,
    ):
        self.backend = backend
        self.validator = validator
        self.sync_logger = sync_logger

    def run_cycle(
        self,
        target_path: str | None = None,
        dry_run: bool = False,
        commit_message: str | None = None,
    ) -> SyncCycleResult:
        """Run one cycle and return its terminal result.

        Args:
            target_path: Limit the cycle to changes under this repo-relative path.
            dry_run: Validate and describe the commit without changing anything.
            commit_message: Use this message instead of the generated one.
        """
        started = time.monotonic()
        cycle_id = uuid.uuid4().hex[:16]
        record = CycleRecord(
            cycle_id=cycle_id,
            repo="",
            started_at=datetime.now(timezone.utc).isoformat(),
            dry_run=dry_run,
        )

        try:
            record.repo = str(self.backend.root)
            result = self._run(record, target_path, dry_run, commit_message)
        except Exception as e:
            logger.exception("Sync cycle %s failed unexpectedly", cycle_id)
            result = SyncCycleResult(
                status=SyncStatus.ERROR,
                message=f"Unexpected error during sync: {e}",
            )

        result = dataclasses.replace(
            result,
            cycle_id=cycle_id,
            dry_run=dry_run,
            duration_seconds=time.monotonic() - started,
        )
        self._write_log(record, result)
        logger.info("Cycle %s finished: %s", cycle_id, result.summary())
        return result

    def _run(
        self,
        record: CycleRecord,
        target_path: str | None,
        dry_run: bool,
        commit_message: str | None,
    ) -> SyncCycleResult:
        # 1-2. Fetch and integrate the remote
        fetch = self.backend.fetch()
        if fetch.has_conflicts:
            files = tuple(sorted(fetch.conflicting_files))
            record.add(OperationType.FETCH, "conflict", len(files), fetch.error_message)
            return SyncCycleResult(
                status=SyncStatus.CONFLICT,
                conflicting_files=files,
                message=(
                    f"{len(files)} file(s) changed both locally and remotely: "
                    f"{', '.join(files)}. Run 'agentsync conflicts' to review them "
                    "and 'agentsync resolve' to resolve them."
                ),
            )
        if not fetch.success:
            kind = fetch.failure_kind if fetch.failure_kind != FailureKind.NONE else FailureKind.NETWORK
            record.add(OperationType.FETCH, "failed", error=fetch.error_message)
            return SyncCycleResult(
                status=SyncStatus.NETWORK_ERROR,
                failure_kind=kind,
                message=_infrastructure_message("fetch", kind, fetch.error_message),
            )
        record.add(OperationType.FETCH, "success", fetch.files_pulled)
        pulled = fetch.files_pulled

        # 3. Snapshot
        snapshot = self.backend.status(target_path)
        if snapshot.has_conflicts:
            files = tuple(sorted(snapshot.conflicted))
            return SyncCycleResult(
                status=SyncStatus.CONFLICT,
                conflicting_files=files,
                files_pulled=pulled,
                message=(
                    f"{len(files)} file(s) are still unmerged: {', '.join(files)}. "
                    "Run 'agentsync resolve' before syncing."
                ),
            )
        pending_only = snapshot.is_clean and not snapshot.merge_in_progress
        if pending_only and snapshot.ahead == 0:
            return SyncCycleResult(
                status=SyncStatus.SUCCESS,
                files_pulled=pulled,
                message="Nothing to sync; agent files are up to date.",
            )
        counts = _counts(snapshot, pulled)

        # 4. Validate everything that would reach the remote: working-tree
        # changes plus unpublished commits and a staged merge resolution
        failures = self._validate(self._outgoing_paths(snapshot))
        if failures:
            return SyncCycleResult(
                status=SyncStatus.VALIDATION_FAILED,
                validation_defects=failures,
                message=(
                    f"{len(failures)} file(s) failed validation; nothing was committed "
                    "or published. Fix the reported problems and run the sync again."
                ),
                **counts,
            )

        if pending_only:
            if dry_run:
                return SyncCycleResult(
                    status=SyncStatus.SUCCESS,
                    files_pulled=pulled,
                    message=f"Dry run: would publish {snapshot.ahead} pending commit(s).",
                )
            return self._publish_pending(record, snapshot.ahead, pulled)

        # 5-6. Commit message
        if commit_message is not None:
            problem = check_commit_message(commit_message)
            if problem:
                return SyncCycleResult(status=SyncStatus.ERROR, message=problem, **counts)
            message = commit_message.strip()
        else:
            message = generate_commit_message(snapshot)

        if dry_run:
            return SyncCycleResult(
                status=SyncStatus.SUCCESS,
                commit_message=message,
                message=(
                    f"Dry run: would commit {len(snapshot.changed_paths)} file(s) "
                    f"as '{message}' and publish to the remote."
                ),
                **counts,
            )

        # 7. Commit
        commit = self.backend.commit(message, snapshot.changed_paths)
        if not commit.success:
            record.add(OperationType.COMMIT, "failed", len(snapshot.changed_paths), commit.error_message)
            return SyncCycleResult(
                status=SyncStatus.ERROR,
                message=f"Commit failed: {commit.error_message}. Your files were left as they are.",
                **counts,
            )
        if commit.nothing_to_commit:
            record.add(OperationType.COMMIT, "skipped")
            if snapshot.ahead > 0:
                return self._publish_pending(record, snapshot.ahead, pulled)
            return SyncCycleResult(
                status=SyncStatus.SUCCESS,
                files_pulled=pulled,
                message="Nothing to commit; the changes were already recorded.",
            )
        record.add(OperationType.COMMIT, "success", len(snapshot.changed_paths))
        record.commit_id = commit.commit_id

        # 8. Publish
        publish = self.backend.publish()
        if not publish.success:
            record.add(OperationType.PUBLISH, "rejected" if publish.is_behind_remote else "failed",
                       error=publish.error_message)
            if publish.is_behind_remote:
                return SyncCycleResult(
                    status=SyncStatus.PUSH_REJECTED,
                    commit_id=commit.commit_id,
                    commit_message=message,
                    message=(
                        f"The remote has commits you do not have yet. Your changes are "
                        f"committed locally ({commit.commit_id[:12]}); run the sync again "
                        "to integrate the remote and publish."
                    ),
                    **counts,
                )
            kind = publish.failure_kind if publish.failure_kind != FailureKind.NONE else FailureKind.NETWORK
            return SyncCycleResult(
                status=SyncStatus.NETWORK_ERROR,
                failure_kind=kind,
                commit_id=commit.commit_id,
                commit_message=message,
                message=_infrastructure_message("publish", kind, publish.error_message),
                **counts,
            )
        record.add(OperationType.PUBLISH, "success", len(snapshot.changed_paths))

        # 9. Done
        return SyncCycleResult(
            status=SyncStatus.SUCCESS,
            commit_id=commit.commit_id,
            commit_message=message,
            message=f"Published {commit.commit_id[:12]} ({len(snapshot.changed_paths)} file(s) changed).",
            **counts,
        )

    def _publish_pending(self, record: CycleRecord, ahead: int, pulled: int) -> SyncCycleResult:
        """Publish commits left behind by an earlier rejected or failed push."""
        publish = self.backend.publish()
        if publish.success:
            record.add(OperationType.PUBLISH, "success")
            return SyncCycleResult(
                status=SyncStatus.SUCCESS,
                files_pulled=pulled,
                message=f"No new changes; published {ahead} pending commit(s).",
            )
        record.add(OperationType.PUBLISH, "rejected" if publish.is_behind_remote else "failed",
                   error=publish.error_message)
        if publish.is_behind_remote:
            return SyncCycleResult(
                status=SyncStatus.PUSH_REJECTED,
                files_pulled=pulled,
                message=(
                    f"The remote moved again before {ahead} pending commit(s) could be "
                    "published; run the sync again."
                ),
            )
        kind = publish.failure_kind if publish.failure_kind != FailureKind.NONE else FailureKind.NETWORK
        return SyncCycleResult(
            status=SyncStatus.NETWORK_ERROR,
            failure_kind=kind,
            files_pulled=pulled,
            message=_infrastructure_message("publish", kind, publish.error_message),
        )

    def _outgoing_paths(self, snapshot: RepositorySnapshot) -> list[str]:
        paths = snapshot.modified | snapshot.created | set(self.backend.outgoing_files())
        return sorted(paths - snapshot.deleted)

    def _validate(self, paths: list[str]) -> tuple[FileDefects, ...]:
        failures = []
        for path in paths:
            report = self.validator.validate(path)
            if not report.is_valid:
                logger.info("%s failed validation: %s", path, ", ".join(report.codes))
                failures.append(FileDefects(path=path, defects=tuple(report.defects)))
        return tuple(failures)

    def _write_log(self, record: CycleRecord, result: SyncCycleResult) -> None:
        if self.sync_logger is None:
            return
        record.status = result.status.value
        record.message = result.message
        record.commit_id = result.commit_id
        try:
            self.sync_logger.write(record)
        except Exception as e:
            logger.warning("Could not write sync log for cycle %s: %s", record.cycle_id, e, exc_info=True)


def _counts(snapshot: RepositorySnapshot, pulled: int) -> dict:
    return {
        "files_pulled": pulled,
        "files_modified": len(snapshot.modified),
        "files_added": len(snapshot.created),
        "files_deleted": len(snapshot.deleted),
    }


def _infrastructure_message(operation: str, kind: FailureKind, detail: str) -> str:
    if kind == FailureKind.AUTH:
        return (
            f"Authentication failed during {operation}: {detail}. "
            "Check your git credentials, then run the sync again."
        )
    if operation == "publish":
        return (
            f"Could not publish to the remote: {detail}. Your changes are committed "
            "locally; run the sync again once the remote is reachable."
        )
    return (
        f"Could not reach the remote: {detail}. No local files were changed; "
        "run the sync again once the remote is reachable."
    )
