"""Repository configuration loaded from ``.agentsync.yaml``."""

from __future__ import annotations

import os
from dataclasses import dataclass, field, fields
from pathlib import Path

import yaml

from agentsync.errors import ConfigError

CONFIG_FILENAME = ".agentsync.yaml"
DEFAULT_MAX_FILE_SIZE = 1024 * 1024


@dataclass
class SyncConfig:
    """Settings for one synchronized repository."""

    remote: str = "origin"
    branch: str | None = None  # None means the currently checked-out branch
    agent_dir: str | None = None  # Limit syncing to this subdirectory
    network_timeout: float = 30.0  # Seconds before fetch/push count as unreachable
    max_file_size: int = DEFAULT_MAX_FILE_SIZE
    secret_patterns: list[str] = field(default_factory=list)
    log_dir: str | None = None  # None means ~/.agentsync/sync_logs
    lock_stale_after: float = 3600.0

    def resolved_log_dir(self) -> Path:
        env_dir = os.environ.get("AGENTSYNC_LOG_DIR")
        if env_dir:
            return Path(env_dir)
        if self.log_dir:
            return Path(self.log_dir).expanduser()
        return Path.home() / ".agentsync" / "sync_logs"


_FIELD_TYPES = {
    "remote": (str,),
    "branch": (str, type(None)),
    "agent_dir": (str, type(None)),
    "network_timeout": (int, float),
    "max_file_size": (int,),
    "secret_patterns": (list,),
    "log_dir": (str, type(None)),
    "lock_stale_after": (int, float),
}


def load_config(repo_path: str | Path) -> SyncConfig:
    """Load ``.agentsync.yaml`` from the repository root.

    A missing file yields the defaults.

    Raises:
        ConfigError: If the file is not valid YAML, is not a mapping, has
            unknown keys, or a value has the wrong type.
    """
    path = Path(repo_path) / CONFIG_FILENAME
    if not path.exists():
        return SyncConfig()

    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        return SyncConfig()
    if not isinstance(data, dict):
        raise ConfigError(f"{path} must contain a mapping at the top level")

    known = {f.name for f in fields(SyncConfig)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ConfigError(f"Unknown key(s) in {path}: {', '.join(unknown)}")

    for key, value in data.items():
        if isinstance(value, bool) or not isinstance(value, _FIELD_TYPES[key]):
            raise ConfigError(f"{path}: '{key}' has invalid value {value!r}")

    if "network_timeout" in data and data["network_timeout"] <= 0:
        raise ConfigError(f"{path}: 'network_timeout' must be positive")
    if "max_file_size" in data and data["max_file_size"] <= 0:
        raise ConfigError(f"{path}: 'max_file_size' must be positive")
    if any(not isinstance(p, str) for p in data.get("secret_patterns", [])):
        raise ConfigError(f"{path}: 'secret_patterns' must be a list of strings")

    return SyncConfig(**data)
