"""Git implementation of the version-control backend, built on GitPython."""

from __future__ import annotations

import logging
from pathlib import Path

from git import GitCommandError, InvalidGitRepositoryError, NoSuchPathError, Repo

from agentsync.backend.base import VersionControlBackend
from agentsync.config import SyncConfig
from agentsync.errors import BackendError
from agentsync.models.results import (
    CommitResult,
    FailureKind,
    FetchResult,
    PublishResult,
    RepositorySnapshot,
    Side,
    SideSelectionResult,
)

logger = logging.getLogger(__name__)

UNMERGED_CODES = {"DD", "AU", "UD", "UA", "DU", "AA", "UU"}

AUTH_TOKENS = (
    "authentication failed",
    "could not read username",
    "could not read password",
    "invalid username or password",
    "permission denied",
    "access denied",
    "the requested url returned error: 403",
)

BEHIND_TOKENS = (
    "non-fast-forward",
    "fetch first",
    "updates were rejected because",
)


def _describe(error: GitCommandError) -> str:
    """Pull the most useful line out of a GitPython command error."""
    stderr = (error.stderr or "").strip()
    if stderr.startswith("stderr:"):
        stderr = stderr[len("stderr:"):].strip().strip("'").strip()
    lines = [line.strip() for line in stderr.splitlines() if line.strip()]
    for line in lines:
        if line.lower().startswith(("fatal:", "error:", "!")):
            return line
    if lines:
        return lines[0]
    return str(error).strip().splitlines()[0]


def _classify_failure(error: GitCommandError) -> FailureKind:
    text = str(error).lower()
    if any(token in text for token in AUTH_TOKENS):
        return FailureKind.AUTH
    return FailureKind.NETWORK


def _parse_overwritten_paths(text: str) -> list[str]:
    """Paths git refused to overwrite, from a merge's error output."""
    paths: list[str] = []
    collecting = False
    for line in text.splitlines():
        if "would be overwritten" in line:
            collecting = True
        elif collecting and line.startswith("\t"):
            paths.append(line.strip())
        elif collecting:
            collecting = False
    return sorted(set(paths))


def parse_porcelain(output: str) -> RepositorySnapshot:
    """Build a snapshot from ``git status --porcelain -z`` output.

    Renames count as a deletion of the old path plus a creation of the new
    one. A file added to the index and then deleted from the working tree
    has no net change and is skipped.
    """
    modified: set[str] = set()
    created: set[str] = set()
    deleted: set[str] = set()
    conflicted: set[str] = set()

    entries = output.split("\0")
    i = 0
    while i < len(entries):
        entry = entries[i]
        i += 1
        if len(entry) < 4:
            continue
        code, path = entry[:2], entry[3:]
        original = ""
        if "R" in code or "C" in code:
            original = entries[i] if i < len(entries) else ""
            i += 1

        if code in UNMERGED_CODES:
            conflicted.add(path)
        elif code == "??":
            created.add(path)
        elif code == "AD":
            continue
        elif "D" in code:
            deleted.add(path)
        elif "R" in code:
            created.add(path)
            if original:
                deleted.add(original)
        elif "A" in code or "C" in code:
            created.add(path)
        else:
            modified.add(path)

    # A path re-created under a rename source name is a modification
    both = created & deleted
    modified |= both
    created -= both
    deleted -= both

    return RepositorySnapshot(
        modified=frozenset(modified),
        created=frozenset(created),
        deleted=frozenset(deleted),
        conflicted=frozenset(conflicted),
    )


class GitBackend(VersionControlBackend):
    """Runs the sync primitives against a local clone with one tracked remote."""

    def __init__(
        self,
        repo_path: str | Path,
        remote: str = "origin",
        branch: str | None = None,
        network_timeout: float = 30.0,
    ):
        try:
            self._repo = Repo(repo_path)
        except (InvalidGitRepositoryError, NoSuchPathError) as e:
            raise BackendError(f"Not a git repository: {repo_path}") from e
        if self._repo.bare:
            raise BackendError(f"Repository has no working tree: {repo_path}")
        self.remote = remote
        self.branch = branch
        self.network_timeout = network_timeout

    @classmethod
    def from_config(cls, repo_path: str | Path, config: SyncConfig) -> GitBackend:
        return cls(
            repo_path,
            remote=config.remote,
            branch=config.branch,
            network_timeout=config.network_timeout,
        )

    @property
    def root(self) -> Path:
        return Path(self._repo.working_tree_dir)

    @property
    def state_dir(self) -> Path:
        return Path(self._repo.git_dir) / "agentsync"

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _branch_name(self) -> str:
        if self.branch:
            return self.branch
        if self._repo.head.is_detached:
            raise BackendError("HEAD is detached; check out a branch or set 'branch' in config")
        return self._repo.active_branch.name

    def _remote_ref(self) -> str:
        return f"{self.remote}/{self._branch_name()}"

    def _ref_exists(self, ref: str) -> bool:
        try:
            self._repo.git.rev_parse("--verify", "--quiet", ref)
        except GitCommandError:
            return False
        return True

    def _head_sha(self) -> str | None:
        if not self._repo.head.is_valid():
            return None
        return self._repo.head.commit.hexsha

    def _merge_in_progress(self) -> bool:
        return (Path(self._repo.git_dir) / "MERGE_HEAD").exists()

    def _count_changed(self, before: str | None, after: str | None) -> int:
        if after is None or before == after:
            return 0
        if before is None:
            output = self._repo.git.ls_tree("-r", "--name-only", after)
        else:
            output = self._repo.git.diff("--name-only", before, after)
        return len([line for line in output.splitlines() if line.strip()])

    def _has_staged_changes(self) -> bool:
        output = self._repo.git.status("--porcelain", "-z", "--untracked-files=no")
        entries = output.split("\0")
        i = 0
        while i < len(entries):
            code = entries[i][:2]
            i += 1
            if "R" in code or "C" in code:
                i += 1
            if len(code) == 2 and code[0] not in " ?":
                return True
        return False

    def _unmerged_stages(self, path: str) -> set[int]:
        output = self._repo.git.ls_files("-u", "-z", "--", path)
        stages = set()
        for entry in output.split("\0"):
            if not entry.strip():
                continue
            meta = entry.split("\t", 1)[0].split()
            if len(meta) == 3:
                stages.add(int(meta[2]))
        return stages

    def _failed_fetch(self, error: GitCommandError) -> FetchResult:
        kind = _classify_failure(error)
        message = _describe(error)
        logger.warning("Fetch from %s failed (%s): %s", self.remote, kind.value, message)
        return FetchResult(success=False, error_message=message, failure_kind=kind)

    # ------------------------------------------------------------------
    # Backend contract
    # ------------------------------------------------------------------

    def fetch(self) -> FetchResult:
        pending = self.conflicted_files()
        if pending:
            return FetchResult(
                success=False,
                conflicting_files=tuple(pending),
                error_message="Unresolved conflicts remain from a previous sync",
            )
        if self._merge_in_progress():
            # The remote was integrated when the merge started; the resolved
            # merge is committed by the caller after validation.
            logger.info("Resolved merge pending; skipping fetch until it is committed")
            return FetchResult(success=True)

        logger.debug("Fetching %s (timeout %ss)", self.remote, self.network_timeout)
        try:
            self._repo.git.fetch(self.remote, kill_after_timeout=self.network_timeout)
        except GitCommandError as e:
            return self._failed_fetch(e)

        remote_ref = self._remote_ref()
        if not self._ref_exists(f"refs/remotes/{remote_ref}"):
            logger.info("Remote branch %s does not exist yet; nothing to integrate", remote_ref)
            return FetchResult(success=True)

        before = self._head_sha()
        try:
            self._repo.git.merge("--no-edit", remote_ref)
        except GitCommandError as e:
            unmerged = self.conflicted_files()
            if unmerged:
                logger.info("Merge of %s left %d conflicted file(s)", remote_ref, len(unmerged))
                return FetchResult(
                    success=False,
                    conflicting_files=tuple(unmerged),
                    error_message=f"Merging {remote_ref} produced conflicts",
                )
            blocked = _parse_overwritten_paths(str(e))
            if blocked:
                return FetchResult(
                    success=False,
                    conflicting_files=tuple(blocked),
                    error_message=(
                        f"Local changes would be overwritten by {remote_ref}; "
                        "the same files changed on both sides"
                    ),
                )
            raise BackendError(f"Merging {remote_ref} failed: {_describe(e)}") from e

        pulled = self._count_changed(before, self._head_sha())
        logger.debug("Integrated %s: %d file(s) changed", remote_ref, pulled)
        return FetchResult(success=True, files_pulled=pulled)

    def commit(self, message: str, files: list[str]) -> CommitResult:
        merging = self._merge_in_progress()
        if not files and not merging:
            return CommitResult(success=True, nothing_to_commit=True)
        try:
            if files:
                self._repo.git.add("--all", "--", *files)
            if not self._has_staged_changes() and not merging:
                logger.info("Nothing to commit after staging %d file(s)", len(files))
                return CommitResult(success=True, nothing_to_commit=True)
            self._repo.git.commit("-m", message)
        except GitCommandError as e:
            return CommitResult(success=False, error_message=_describe(e))
        sha = self._repo.head.commit.hexsha
        logger.info("Committed %s: %s", sha[:12], message)
        return CommitResult(success=True, commit_id=sha)

    def publish(self) -> PublishResult:
        branch = self._branch_name()
        try:
            self._repo.git.push(
                self.remote,
                f"HEAD:refs/heads/{branch}",
                kill_after_timeout=self.network_timeout,
            )
        except GitCommandError as e:
            text = str(e).lower()
            message = _describe(e)
            if "remote rejected" not in text and any(t in text for t in BEHIND_TOKENS):
                logger.info("Push to %s rejected: local branch is behind", self.remote)
                return PublishResult(success=False, error_message=message, is_behind_remote=True)
            kind = _classify_failure(e)
            logger.warning("Push to %s failed (%s): %s", self.remote, kind.value, message)
            return PublishResult(success=False, error_message=message, failure_kind=kind)
        return PublishResult(success=True)

    def status(self, pathspec: str | None = None) -> RepositorySnapshot:
        args = ["--porcelain", "-z", "--untracked-files=all"]
        if pathspec:
            args += ["--", pathspec]
        snapshot = parse_porcelain(self._repo.git.status(*args))

        ahead = behind = 0
        head = self._head_sha()
        if head is not None:
            remote_ref = f"refs/remotes/{self._remote_ref()}"
            if self._ref_exists(remote_ref):
                counts = self._repo.git.rev_list("--left-right", "--count", f"HEAD...{remote_ref}")
                ahead, behind = (int(n) for n in counts.split())
            else:
                ahead = int(self._repo.git.rev_list("--count", "HEAD"))

        return RepositorySnapshot(
            modified=snapshot.modified,
            created=snapshot.created,
            deleted=snapshot.deleted,
            conflicted=snapshot.conflicted,
            ahead=ahead,
            behind=behind,
            merge_in_progress=self._merge_in_progress(),
        )

    def outgoing_files(self) -> list[str]:
        remote_ref = f"refs/remotes/{self._remote_ref()}"
        if self._ref_exists(remote_ref):
            output = self._repo.git.diff(
                "--cached", "--name-only", "--diff-filter=ACMR", "-z", remote_ref
            )
        else:
            # Nothing published yet: everything tracked goes out
            output = self._repo.git.ls_files("-z")
        return sorted({p for p in output.split("\0") if p.strip()})

    def select_side(self, path: str, side: Side) -> SideSelectionResult:
        stages = self._unmerged_stages(path)
        if not stages:
            return SideSelectionResult(success=False, error_message=f"{path} is not conflicted")

        stage = 2 if side == Side.LOCAL else 3
        flag = "--ours" if side == Side.LOCAL else "--theirs"
        try:
            if stage in stages:
                self._repo.git.checkout(flag, "--", path)
                self._repo.git.add("--", path)
            else:
                # The chosen side deleted the file
                self._repo.git.rm("--quiet", "--force", "--", path)
        except GitCommandError as e:
            return SideSelectionResult(success=False, error_message=_describe(e))
        logger.info("Resolved %s by keeping the %s side", path, side.value)
        return SideSelectionResult(success=True)

    def is_conflicted(self, path: str) -> bool:
        return path in self.conflicted_files()

    def read_conflict(self, path: str) -> str:
        file_path = self.root / path
        if not file_path.is_file():
            return ""
        return file_path.read_text(encoding="utf-8", errors="replace")

    def conflicted_files(self) -> list[str]:
        output = self._repo.git.diff("--name-only", "--diff-filter=U", "-z")
        return sorted({p for p in output.split("\0") if p.strip()})

    def abort_merge(self) -> SideSelectionResult:
        if not self._merge_in_progress():
            return SideSelectionResult(success=False, error_message="No merge in progress")
        try:
            self._repo.git.merge("--abort")
        except GitCommandError as e:
            return SideSelectionResult(success=False, error_message=_describe(e))
        logger.info("Aborted in-progress merge")
        return SideSelectionResult(success=True)

    def probe_remote(self) -> FetchResult:
        try:
            self._repo.git.ls_remote("--heads", self.remote, kill_after_timeout=self.network_timeout)
        except GitCommandError as e:
            return self._failed_fetch(e)
        return FetchResult(success=True)
