"""agentsync — keep agent files consistent across machines through git."""

__version__ = "0.3.0"
