"""Synchronization cycle — orchestrator, commit messages, sync log and lock."""

from agentsync.sync.orchestrator import SyncOrchestrator

__all__ = ["SyncOrchestrator"]
