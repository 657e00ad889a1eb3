"""Conflict resolution engine.

- Analyzer: split conflicted text into local/remote fragments and classify
- Resolver: apply keep-local / keep-remote and verify the result
- Guidance: instructions for strategies a human has to carry out
- Store: path-keyed conflict records that survive between invocations
"""

from agentsync.conflicts.analyzer import ConflictAnalyzer
from agentsync.conflicts.guidance import ResolutionGuidance, build_guidance
from agentsync.conflicts.resolver import ConflictResolver
from agentsync.conflicts.store import ConflictStore

__all__ = [
    "ConflictAnalyzer",
    "ConflictResolver",
    "ConflictStore",
    "ResolutionGuidance",
    "build_guidance",
]
