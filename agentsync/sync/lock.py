"""Repository lock so that only one sync or resolve runs at a time."""

from __future__ import annotations

import logging
import os
import socket
import time
from pathlib import Path

from agentsync.errors import LockError

logger = logging.getLogger(__name__)


class RepositoryLock:
    """Exclusive lock file inside the repository's state directory.

    Use as a context manager::

        with RepositoryLock(backend.state_dir):
            orchestrator.run_cycle()

    A lock older than ``stale_after`` seconds is assumed to belong to a
    process that died and is taken over.
    """

    FILENAME = "sync.lock"

    def __init__(self, state_dir: str | Path, stale_after: float = 3600.0):
        self.path = Path(state_dir) / self.FILENAME
        self.stale_after = stale_after
        self._held = False

    def acquire(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        for _ in range(2):
            try:
                fd = os.open(self.path, os.O_CREAT | os.O_EXCL | os.O_WRONLY)
            except FileExistsError:
                if not self._break_if_stale():
                    raise LockError(f"Another sync is running (lock held: {self._describe()})")
                continue
            with os.fdopen(fd, "w") as fh:
                fh.write(f"{socket.gethostname()} pid={os.getpid()} at={time.time():.0f}\n")
            self._held = True
            return
        raise LockError(f"Could not acquire {self.path}")

    def release(self) -> None:
        if self._held:
            self.path.unlink(missing_ok=True)
            self._held = False

    def _break_if_stale(self) -> bool:
        try:
            age = time.time() - self.path.stat().st_mtime
        except FileNotFoundError:
            return True
        if age < self.stale_after:
            return False
        logger.warning("Removing stale lock %s (%.0fs old)", self.path, age)
        self.path.unlink(missing_ok=True)
        return True

    def _describe(self) -> str:
        try:
            return self.path.read_text().strip()
        except OSError:
            return str(self.path)

    def __enter__(self) -> RepositoryLock:
        self.acquire()
        return self

    def __exit__(self, *exc) -> None:
        self.release()
