"""Exceptions raised at setup seams (config, locking, opening the repository).

Within a sync cycle nothing is raised to the caller; failures are reported
through ``SyncCycleResult`` instead.
"""


class AgentSyncError(Exception):
    """Base class for agentsync errors."""


class ConfigError(AgentSyncError):
    """The configuration file is missing required values or is malformed."""


class LockError(AgentSyncError):
    """Another sync or resolve operation holds the repository lock."""


class BackendError(AgentSyncError):
    """The version-control backend could not be opened."""


class StoreError(AgentSyncError):
    """Persisted agentsync state (such as the conflict store) cannot be read."""
