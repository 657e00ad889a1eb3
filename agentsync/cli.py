"""agentsync CLI — sync agent files and resolve conflicts between machines."""

from __future__ import annotations

import re
from pathlib import Path

import click
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from agentsync import __version__
from agentsync.errors import AgentSyncError, ConfigError
from agentsync.models.results import ExitCode, SyncCycleResult, SyncStatus

console = Console()

_STATUS_STYLES = {
    SyncStatus.SUCCESS: "green",
    SyncStatus.CONFLICT: "yellow",
    SyncStatus.VALIDATION_FAILED: "red",
    SyncStatus.NETWORK_ERROR: "red",
    SyncStatus.PUSH_REJECTED: "yellow",
    SyncStatus.ERROR: "red",
}


class _Context:
    """Repository handles shared by every command in one invocation."""

    def __init__(self, repo_path: str):
        from agentsync.backend.git_backend import GitBackend
        from agentsync.config import load_config

        self.config = load_config(repo_path)
        self.backend = GitBackend.from_config(repo_path, self.config)

    def validator(self):
        from agentsync.validation.validator import ContentValidator

        try:
            return ContentValidator(
                self.backend.root,
                max_file_size=self.config.max_file_size,
                secret_patterns=self.config.secret_patterns,
            )
        except re.error as e:
            raise ConfigError(f"Invalid entry in 'secret_patterns': {e}") from e

    def lock(self):
        from agentsync.sync.lock import RepositoryLock

        return RepositoryLock(self.backend.state_dir, stale_after=self.config.lock_stale_after)

    def store(self):
        from agentsync.conflicts.store import ConflictStore

        return ConflictStore(self.backend.state_dir)

    def sync_logger(self):
        from agentsync.sync.sync_log import SyncLogger

        return SyncLogger(self.config.resolved_log_dir())


def _repo(ctx: click.Context) -> _Context:
    """Open the repository lazily so ``--help`` works anywhere."""
    if ctx.obj.get("repo") is None:
        try:
            ctx.obj["repo"] = _Context(ctx.obj["repo_path"])
        except AgentSyncError as e:
            _fail(ctx, e)
    return ctx.obj["repo"]


def _fail(ctx: click.Context, error: Exception) -> None:
    console.print(f"[red]Error:[/] {error}")
    ctx.exit(int(ExitCode.ERROR))


def _store(ctx: click.Context, repo: _Context):
    try:
        return repo.store()
    except AgentSyncError as e:
        _fail(ctx, e)


@click.group()
@click.version_option(version=__version__)
@click.option("--repo", "-C", "repo_path", default=".", help="Repository to operate on")
@click.option("--verbose", "-v", count=True, help="Increase log verbosity (-v INFO, -vv DEBUG)")
@click.option("--log-file", type=click.Path(path_type=Path), default=None, help="Write logs to file")
@click.pass_context
def main(ctx: click.Context, repo_path: str, verbose: int, log_file: Path | None):
    """agentsync — keep agent files consistent across machines.

    Every sync fetches the remote first, validates changed files, then
    commits and publishes. Conflicts are never resolved silently.
    """
    from agentsync.logging import setup_logging

    setup_logging(verbose, log_file)
    ctx.ensure_object(dict)
    ctx.obj["repo_path"] = repo_path
    ctx.obj.setdefault("repo", None)


# ── Sync ─────────────────────────────────────────────────────────────


@main.command()
@click.argument("target", required=False)
@click.option("--dry-run", is_flag=True, help="Validate and describe the commit without changing anything")
@click.option("--message", "-m", default=None, help="Commit message to use instead of the generated one")
@click.pass_context
def sync(ctx: click.Context, target: str | None, dry_run: bool, message: str | None):
    """Fetch, validate, commit and publish agent files.

    TARGET limits the sync to a subdirectory (default: 'agent_dir' from
    .agentsync.yaml, or the whole repository).
    """
    from agentsync.conflicts.resolver import ConflictResolver
    from agentsync.sync.orchestrator import SyncOrchestrator

    repo = _repo(ctx)
    console.print(f"\n[bold blue]agentsync[/] — Syncing: {repo.backend.root}\n")

    try:
        orchestrator = SyncOrchestrator(repo.backend, repo.validator(), repo.sync_logger())
        with repo.lock():
            result = orchestrator.run_cycle(
                target_path=target or repo.config.agent_dir,
                dry_run=dry_run,
                commit_message=message,
            )
            if result.succeeded and not dry_run:
                repo.store().clear_resolved()
            elif result.status == SyncStatus.CONFLICT:
                ConflictResolver(repo.backend, store=repo.store()).detect()
    except AgentSyncError as e:
        _fail(ctx, e)
        return

    _print_result(result)
    ctx.exit(int(result.exit_code))


def _print_result(result: SyncCycleResult) -> None:
    style = _STATUS_STYLES[result.status]
    console.print(Panel(result.summary(), title="Sync Result", border_style=style))
    console.print(f"  [{style}]{result.message}[/]")

    if result.commit_id:
        console.print(f"  Commit: [cyan]{result.commit_id[:12]}[/] {result.commit_message}")
    elif result.commit_message:
        console.print(f"  Message: {result.commit_message}")

    for path in result.conflicting_files:
        console.print(f"  [yellow]![/] {path}")

    for entry in result.validation_defects:
        console.print(f"\n  [red]x[/] {entry.path}")
        for defect in entry.defects:
            console.print(f"      {escape(str(defect))}")


# ── Status ───────────────────────────────────────────────────────────


@main.command()
@click.option("--offline", is_flag=True, help="Skip the remote reachability check")
@click.pass_context
def status(ctx: click.Context, offline: bool):
    """Show pending changes, open conflicts and the last successful sync."""
    from agentsync.models.conflict import ResolutionStatus

    repo = _repo(ctx)
    try:
        snapshot = repo.backend.status(repo.config.agent_dir)
    except AgentSyncError as e:
        _fail(ctx, e)
        return

    table = Table(title=f"Pending changes ({len(snapshot.changed_paths)})")
    table.add_column("Change", style="dim")
    table.add_column("Path", style="cyan")
    for label, paths in (
        ("modified", snapshot.modified),
        ("added", snapshot.created),
        ("deleted", snapshot.deleted),
        ("conflict", snapshot.conflicted),
    ):
        for path in sorted(paths):
            table.add_row(label, path)
    console.print(table)

    console.print(f"  Ahead of remote:  {snapshot.ahead} commit(s)")
    console.print(f"  Behind remote:    {snapshot.behind} commit(s)")
    if snapshot.merge_in_progress:
        console.print("  Merge:            [yellow]resolved, not yet committed[/] (run 'agentsync sync')")

    if not offline:
        probe = repo.backend.probe_remote()
        if probe.success:
            console.print(f"  Remote:           [green]reachable[/] ({repo.backend.remote})")
        else:
            console.print(f"  Remote:           [red]unreachable[/] {probe.error_message}")

    open_conflicts = _store(ctx, repo).records(ResolutionStatus.UNRESOLVED)
    if open_conflicts:
        console.print(f"  Open conflicts:   [yellow]{len(open_conflicts)}[/]")

    last = repo.sync_logger().last_success(str(repo.backend.root))
    if last:
        console.print(f"  Last sync:        {last.ended_at} ({last.commit_id[:12] or 'no commit'})")
    else:
        console.print("  Last sync:        [yellow]never[/]")


# ── Conflicts ────────────────────────────────────────────────────────


@main.command()
@click.pass_context
def conflicts(ctx: click.Context):
    """List conflicted files and whether each can be resolved automatically."""
    from agentsync.conflicts.resolver import ConflictResolver

    repo = _repo(ctx)
    resolver = ConflictResolver(repo.backend, store=_store(ctx, repo))
    records = resolver.detect()

    if not records:
        console.print("[green]No conflicts.[/]")
        return

    table = Table(title=f"Conflicts ({len(records)})")
    table.add_column("Path", style="cyan", no_wrap=True)
    table.add_column("Hunks", justify="right")
    table.add_column("Auto", justify="center")
    table.add_column("Suggested")
    table.add_column("Reason")

    for record in records:
        classification = resolver.analyzer.classify(record)
        auto = "[green]Y[/]" if classification.can_auto_resolve else "[red]N[/]"
        table.add_row(
            record.path,
            str(record.hunk_count),
            auto,
            classification.suggested.value,
            classification.reason,
        )

    console.print(table)
    console.print("\nRun 'agentsync resolve --auto' or 'agentsync resolve PATH -s STRATEGY'.")
    ctx.exit(int(ExitCode.CONFLICT))


@main.command()
@click.argument("path", required=False)
@click.option(
    "--strategy",
    "-s",
    type=click.Choice(["keep-local", "keep-remote", "merge", "manual", "rebase"]),
    default=None,
    help="How to resolve PATH",
)
@click.option("--auto", "auto_all", is_flag=True, help="Resolve every auto-resolvable conflict")
@click.pass_context
def resolve(ctx: click.Context, path: str | None, strategy: str | None, auto_all: bool):
    """Resolve a conflicted file, or all safe ones with --auto."""
    from agentsync.conflicts.guidance import build_guidance
    from agentsync.conflicts.resolver import ConflictResolver
    from agentsync.models.conflict import ResolutionStrategy

    if not auto_all and not (path and strategy):
        raise click.UsageError("Give PATH and --strategy, or use --auto")

    repo = _repo(ctx)
    resolver = ConflictResolver(repo.backend, store=_store(ctx, repo))

    try:
        with repo.lock():
            resolver.detect()
            if auto_all:
                outcomes = resolver.resolve_all()
            else:
                outcomes = [resolver.resolve_auto(path, ResolutionStrategy(strategy))]
    except AgentSyncError as e:
        _fail(ctx, e)
        return

    if not outcomes:
        console.print("[green]No conflicts.[/]")
        return

    for outcome in outcomes:
        mark = "[green]v[/]" if outcome.success else "[red]x[/]"
        console.print(f"  {mark} {outcome.message}")
        if not outcome.success and outcome.strategy and not outcome.strategy.is_executable:
            console.print(build_guidance(outcome.strategy, outcome.path).render())

    if all(o.success for o in outcomes):
        console.print("\n[green]Resolved.[/] Run 'agentsync sync' to publish the result.")
        return
    ctx.exit(int(ExitCode.CONFLICT))


@main.command()
@click.pass_context
def abort(ctx: click.Context):
    """Abandon the in-progress merge and restore the pre-sync state."""
    repo = _repo(ctx)
    try:
        with repo.lock():
            result = repo.backend.abort_merge()
            if result.success:
                abandoned = repo.store().abandon_all()
    except AgentSyncError as e:
        _fail(ctx, e)
        return

    if not result.success:
        console.print(f"[red]Could not abort:[/] {result.error_message}")
        ctx.exit(int(ExitCode.ERROR))
    console.print(f"[green]Merge aborted.[/] {len(abandoned)} conflict(s) abandoned.")


# ── Validate ─────────────────────────────────────────────────────────


@main.command()
@click.argument("files", nargs=-1)
@click.pass_context
def validate(ctx: click.Context, files: tuple):
    """Validate agent files (default: every pending change)."""
    repo = _repo(ctx)
    try:
        validator = repo.validator()
    except AgentSyncError as e:
        _fail(ctx, e)
        return

    if files:
        paths = list(files)
    else:
        snapshot = repo.backend.status(repo.config.agent_dir)
        paths = sorted(snapshot.modified | snapshot.created)

    if not paths:
        console.print("[yellow]Nothing to validate.[/]")
        return

    failed = 0
    for report in validator.validate_many(paths):
        if report.is_valid:
            console.print(f"  [green]v[/] {report.path}")
            continue
        failed += 1
        console.print(f"  [red]x[/] {report.path}")
        for defect in report.defects:
            console.print(f"      {escape(str(defect))}")

    if failed:
        console.print(f"\n[red]{failed} file(s) failed validation.[/]")
        ctx.exit(int(ExitCode.VALIDATION_FAILED))
    console.print("\n[green]Valid![/]")


# ── History ──────────────────────────────────────────────────────────


@main.command()
@click.option("--limit", "-n", default=20, help="Number of cycles to show")
@click.option("--all-repos", is_flag=True, help="Include cycles from other repositories")
@click.pass_context
def history(ctx: click.Context, limit: int, all_repos: bool):
    """Show recent sync cycles from the sync log."""
    repo = _repo(ctx)
    cycles = repo.sync_logger().get_cycles(
        repo=None if all_repos else str(repo.backend.root),
        limit=limit,
    )

    if not cycles:
        console.print("[yellow]No sync cycles recorded.[/]")
        return

    table = Table(title=f"Sync history ({len(cycles)})")
    table.add_column("Started", style="dim")
    table.add_column("Status")
    table.add_column("Commit", style="cyan")
    table.add_column("Operations")
    table.add_column("Message")

    for cycle in cycles:
        ops = " ".join(f"{op.type}:{op.outcome}" for op in cycle.operations)
        status_text = cycle.status + (" (dry run)" if cycle.dry_run else "")
        table.add_row(cycle.started_at[:19], status_text, cycle.commit_id[:12], ops, cycle.message[:60])

    console.print(table)


if __name__ == "__main__":
    main()
