"""Conflict resolver — apply a side-selection strategy and confirm it took."""

from __future__ import annotations

import logging

from agentsync.backend.base import VersionControlBackend
from agentsync.conflicts.analyzer import ConflictAnalyzer
from agentsync.conflicts.store import ConflictStore
from agentsync.models.conflict import ConflictRecord, ResolutionOutcome, ResolutionStrategy
from agentsync.models.results import Side

logger = logging.getLogger(__name__)

_SIDES = {
    ResolutionStrategy.KEEP_LOCAL: Side.LOCAL,
    ResolutionStrategy.KEEP_REMOTE: Side.REMOTE,
}


class ConflictResolver:
    """Resolves conflicted paths through the backend's side selection.

    Only KEEP_LOCAL and KEEP_REMOTE are executed. A backend that reports
    success is not trusted on its own: ``verify`` must also pass, otherwise
    the record is reopened.
    """

    def __init__(
        self,
        backend: VersionControlBackend,
        store: ConflictStore | None = None,
        analyzer: ConflictAnalyzer | None = None,
    ):
        self.backend = backend
        self.store = store
        self.analyzer = analyzer or ConflictAnalyzer()

    def _persist(self, record: ConflictRecord | None) -> None:
        if record is not None and self.store is not None:
            self.store.save(record)

    def verify(self, path: str) -> bool:
        """True iff the file has no markers and the backend no longer lists it."""
        return not self.backend.has_conflict_markers(path) and not self.backend.is_conflicted(path)

    def detect(self) -> list[ConflictRecord]:
        """Analyze every conflicted path the backend reports and track it."""
        records = []
        for path in self.backend.conflicted_files():
            record = self.analyzer.analyze(path, self.backend.read_conflict(path))
            if self.store is not None:
                record = self.store.upsert(record)
            records.append(record)
        return records

    def resolve_auto(
        self,
        path: str,
        strategy: ResolutionStrategy,
        record: ConflictRecord | None = None,
    ) -> ResolutionOutcome:
        if record is None and self.store is not None:
            record = self.store.get(path)

        side = _SIDES.get(strategy)
        if side is None:
            return ResolutionOutcome(
                path=path,
                success=False,
                strategy=strategy,
                message=(
                    f"The {strategy.value} strategy is not implemented for automatic "
                    f"resolution; fall back to manual resolution of {path}."
                ),
            )

        result = self.backend.select_side(path, side)
        if not result.success:
            logger.warning("Applying %s to %s failed: %s", strategy.value, path, result.error_message)
            return ResolutionOutcome(
                path=path,
                success=False,
                strategy=strategy,
                message=f"Failed to apply {strategy.value} to {path}: {result.error_message}",
            )

        if not self.verify(path):
            logger.warning("%s still conflicted after %s; reopening", path, strategy.value)
            if record is not None:
                record.reopen()
                self._persist(record)
            return ResolutionOutcome(
                path=path,
                success=False,
                strategy=strategy,
                message=(
                    f"Backend reported {strategy.value} applied to {path}, but conflict "
                    "markers or the unmerged state remain; the conflict was reopened."
                ),
            )

        if record is not None:
            record.mark_resolved(strategy)
            self._persist(record)
        return ResolutionOutcome(
            path=path,
            success=True,
            strategy=strategy,
            message=f"Resolved {path} with {strategy.value}",
        )

    def resolve_all(self) -> list[ResolutionOutcome]:
        """Resolve every auto-resolvable conflict; leave the rest untouched."""
        outcomes = []
        for record in self.detect():
            classification = self.analyzer.classify(record)
            if not classification.can_auto_resolve:
                outcomes.append(
                    ResolutionOutcome(
                        path=record.path,
                        success=False,
                        strategy=classification.suggested,
                        message=f"{record.path} needs manual resolution: {classification.reason}",
                    )
                )
                continue
            outcomes.append(self.resolve_auto(record.path, classification.suggested, record))
        return outcomes
