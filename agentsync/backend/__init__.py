"""Version-control backends.

The sync core depends only on ``VersionControlBackend``; ``GitBackend`` is the
production implementation on top of GitPython.
"""

from agentsync.backend.base import VersionControlBackend, contains_conflict_markers
from agentsync.backend.git_backend import GitBackend

__all__ = ["VersionControlBackend", "GitBackend", "contains_conflict_markers"]
