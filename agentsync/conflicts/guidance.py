"""Step-by-step instructions for strategies that need a human."""

from __future__ import annotations

from dataclasses import dataclass

from agentsync.backend.base import BASE_MARKER, DIVIDER_MARKER, END_MARKER, START_MARKER
from agentsync.models.conflict import ResolutionStrategy


@dataclass(frozen=True)
class ConflictMarkers:
    start: str = START_MARKER
    base: str = BASE_MARKER
    divider: str = DIVIDER_MARKER
    end: str = END_MARKER


@dataclass(frozen=True)
class ResolutionGuidance:
    strategy: ResolutionStrategy
    path: str
    steps: tuple[str, ...]
    markers: ConflictMarkers = ConflictMarkers()

    def render(self) -> str:
        lines = [f"{self.strategy.value} resolution for {self.path}:"]
        lines += [f"  {i}. {step}" for i, step in enumerate(self.steps, start=1)]
        return "\n".join(lines)


def _manual_steps(path: str, m: ConflictMarkers) -> list[str]:
    return [
        f"Open {path} in your editor.",
        f"Find each block starting with '{m.start}' and ending with '{m.end}'.",
        f"Lines between '{m.start}' and '{m.divider}' are your local version; "
        f"lines between '{m.divider}' and '{m.end}' are the remote version.",
        f"If a '{m.base}' section is present, it shows the common ancestor; delete it.",
        "Edit each block into the content you want and delete all marker lines.",
        f"Save the file and run 'git add {path}'. If one side deleted the file and "
        f"it has no markers, keep it with 'git add {path}' or drop it with 'git rm {path}'.",
        "Run 'agentsync sync' to validate, commit and publish the resolution.",
    ]


def _merge_steps(path: str, m: ConflictMarkers) -> list[str]:
    return [
        "Automatic merging of conflicting content is not supported; "
        "combine the two sides by hand.",
        *_manual_steps(path, m),
    ]


def _rebase_steps(path: str, m: ConflictMarkers) -> list[str]:
    return [
        "Abandon the current merge with 'agentsync abort'.",
        "Run 'git pull --rebase' to replay your local commits on top of the remote.",
        f"For each stopped commit, resolve {path} by removing the "
        f"'{m.start}' / '{m.divider}' / '{m.end}' blocks, then 'git add {path}'.",
        "Continue with 'git rebase --continue' until the rebase completes, "
        "or 'git rebase --abort' to give up.",
        "Run 'agentsync sync' to publish the rebased history.",
    ]


_BUILDERS = {
    ResolutionStrategy.MANUAL: _manual_steps,
    ResolutionStrategy.MERGE: _merge_steps,
    ResolutionStrategy.REBASE: _rebase_steps,
}


def build_guidance(strategy: ResolutionStrategy, path: str) -> ResolutionGuidance:
    """Instructions for resolving ``path`` with a human-driven strategy.

    Raises:
        ValueError: For KEEP_LOCAL / KEEP_REMOTE, which the resolver applies directly.
    """
    builder = _BUILDERS.get(strategy)
    if builder is None:
        raise ValueError(
            f"{strategy.value} is applied automatically; guidance is only "
            "available for manual, merge and rebase"
        )
    markers = ConflictMarkers()
    return ResolutionGuidance(
        strategy=strategy,
        path=path,
        steps=tuple(builder(path, markers)),
        markers=markers,
    )
