"""Command line interface for the Stow Dashboard scanner."""

import json
import logging
import signal
import sys
import threading
from pathlib import Path
from typing import Callable, Optional, Tuple, Union

import click
from rich.console import Console
from rich.table import Table

from . import __version__
from .config import ConfigManager, ScanConfig
from .errors import SnapshotWriteError
from .progress import ProgressEvent, ProgressEventType
from .services.git_info import GitInfoCollector
from .services.path_classifier import PathClassifier
from .services.project_scanner import scan_projects
from .services.snapshot_queries import (
    DIRTY_KINDS,
    dirty_projects,
    find_project,
    format_bytes,
    project_details,
    project_stats,
    search_projects,
)
from .services.snapshot_store import (
    cleanup_legacy_metadata,
    load_snapshot,
    refresh_git_info,
    save_snapshot,
)

logger = logging.getLogger(__name__)

console = Console()


class ScanInterruptHandler:
    """Turns the first Ctrl-C into a cooperative cancellation request.

    A second Ctrl-C falls through to the previous handler.
    """

    def __init__(self, cancel_event: threading.Event):
        self.cancel_event = cancel_event
        self.original_sigint_handler: Optional[Union[Callable, int]] = None

    def __enter__(self):
        self.original_sigint_handler = signal.signal(signal.SIGINT, self._signal_handler)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        signal.signal(signal.SIGINT, self.original_sigint_handler)
        return False

    def _signal_handler(self, signum, frame):
        if self.cancel_event.is_set():
            signal.signal(signal.SIGINT, self.original_sigint_handler)
            raise KeyboardInterrupt
        self.cancel_event.set()
        console.print()
        console.print(
            "🛑 Cancellation requested, finishing the current project...",
            style="bold yellow",
        )


def print_progress_event(event: ProgressEvent) -> None:
    """Render one progress event as a single console line."""
    if event.type in (ProgressEventType.UPDATED, ProgressEventType.EXISTING):
        label = "Updated" if event.type == ProgressEventType.UPDATED else "Existing"
        style = "green" if event.type == ProgressEventType.UPDATED else "dim"
        console.print(
            f"{label}: {event.directory} ({event.processing_time:.3f}s)",
            style=style,
            markup=False,
            soft_wrap=True,
        )
    elif event.type == ProgressEventType.ERROR:
        console.print(
            f"Error: {event.directory}: {event.error}",
            style="red",
            markup=False,
            soft_wrap=True,
        )
    elif event.type == ProgressEventType.COMPLETE:
        suffix = " (cancelled)" if event.cancelled else ""
        console.print(
            f"Total: {event.count} projects in {event.total_time:.2f}s{suffix}",
            style="bold",
            markup=False,
        )
    elif event.type == ProgressEventType.SYNCED:
        console.print(f"Synced to: {event.file}", style="cyan", markup=False, soft_wrap=True)
    elif event.type == ProgressEventType.DELETED:
        console.print(f"Deleted: {event.file}", style="yellow", markup=False, soft_wrap=True)


def echo_json_event(event: ProgressEvent) -> None:
    """Write one progress event as a compact JSON line on stdout."""
    click.echo(json.dumps(event.to_dict(), ensure_ascii=False))


def _load_config(ctx) -> ScanConfig:
    try:
        return ctx.obj["config_manager"].get_config()
    except ValueError as e:
        raise click.ClickException(str(e))


def _require_snapshot(config: ScanConfig) -> Path:
    if config.snapshot_path is None:
        raise click.ClickException("No snapshot path configured")
    return config.snapshot_path


@click.group()
@click.option("--config", "-c", type=click.Path(exists=False), help="Config file path")
@click.option("--verbose", "-v", is_flag=True, help="Verbose output")
@click.version_option(version=__version__, prog_name="stow-scan")
@click.pass_context
def cli(ctx, config: Optional[str], verbose: bool):
    """Inventory the software projects under your scan roots.

    \b
    CONFIGURATION:
      Config file: ~/.stow-dashboard/config.json
      Roots fall back to the SCAN_ROOTS environment variable (comma
      separated), which may be set in ~/.stow-dashboard/.env.

    \b
    EXAMPLES:
      stow-scan scan -r ~/code -r ~/work
      stow-scan list -q api --stack fastapi
      stow-scan dirty --kind behind
    """
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose

    logging.basicConfig(level=logging.WARNING, format="%(levelname)s:%(name)s:%(message)s")
    if verbose:
        logging.getLogger("stow_dashboard").setLevel(logging.DEBUG)

    ctx.obj["config_manager"] = ConfigManager(Path(config) if config else None)


@cli.command()
@click.option("--root", "-r", "roots", multiple=True, help="Root directory to scan (repeatable)")
@click.option("--ignore", "-i", "ignores", multiple=True, help="Extra ignore segment (repeatable)")
@click.option("--sync", "-s", "sync_path", type=click.Path(), help="Snapshot file to write")
@click.option("--no-sync", is_flag=True, help="Scan without writing the snapshot")
@click.option("--force", "-f", is_flag=True, help="Re-extract every project")
@click.option("--workers", "-w", type=click.IntRange(1, 32), help="Concurrent extractions")
@click.option(
    "--json",
    "json_output",
    is_flag=True,
    help="Emit progress events as JSON lines for automation",
)
@click.pass_context
def scan(
    ctx,
    roots: Tuple[str, ...],
    ignores: Tuple[str, ...],
    sync_path: Optional[str],
    no_sync: bool,
    force: bool,
    workers: Optional[int],
    json_output: bool,
):
    """Scan roots and refresh the snapshot."""
    base = _load_config(ctx)
    config = base.with_overrides(
        scan_roots=list(roots) or None,
        extra_ignore_patterns=[*base.extra_ignore_patterns, *ignores] if ignores else None,
        snapshot_path=sync_path,
        force_update=True if force else None,
        max_workers=workers,
    )
    if no_sync:
        config = config.model_copy(update={"snapshot_path": None})

    if not config.scan_roots:
        raise click.ClickException(
            "No scan roots configured; pass --root or set SCAN_ROOTS"
        )

    callback = echo_json_event if json_output else print_progress_event
    cancel_event = threading.Event()
    try:
        with ScanInterruptHandler(cancel_event):
            result = scan_projects(config, callback, cancel_event)
    except SnapshotWriteError as e:
        console.print(f"❌ {e}", style="red", markup=False)
        sys.exit(2)

    if result.cancelled:
        console.print("Scan cancelled; snapshot left unchanged", style="yellow")
        sys.exit(1)


@cli.command()
@click.option("--root", "-r", "roots", multiple=True, help="Root directory to clean (repeatable)")
@click.pass_context
def cleanup(ctx, roots: Tuple[str, ...]):
    """Delete legacy per-project .project_meta.json files."""
    config = _load_config(ctx)
    targets = list(roots) or [str(r) for r in config.scan_roots]
    if not targets:
        raise click.ClickException("No roots configured; pass --root or set SCAN_ROOTS")

    classifier = PathClassifier(config.effective_ignore_patterns())
    deleted = cleanup_legacy_metadata(targets, classifier, print_progress_event)
    console.print(f"Removed {deleted} legacy metadata files")


@cli.command("list")
@click.option("--query", "-q", help="Substring to match in name, path, description or stack")
@click.option("--stack", help="Only projects with a matching stack entry")
@click.option("--limit", "-n", default=10, show_default=True, type=int)
@click.pass_context
def list_command(ctx, query: Optional[str], stack: Optional[str], limit: int):
    """List projects from the snapshot."""
    records = load_snapshot(_require_snapshot(_load_config(ctx)))
    matches = search_projects(records, query=query, stack=stack, limit=limit)
    if not matches:
        console.print("No projects found matching your criteria")
        return

    table = Table(title="Projects")
    table.add_column("Name", style="cyan")
    table.add_column("Directory")
    table.add_column("Stack")
    table.add_column("Size", justify="right")
    table.add_column("Git")
    for record in matches:
        git = record.git_info
        git_state = "-"
        if git.git_detected:
            git_state = "clean" if git.is_clean else f"{git.uncommitted_changes} changed"
        table.add_row(
            record.project_name,
            record.directory,
            ", ".join(record.stack[:5]),
            format_bytes(record.content_size_bytes),
            git_state,
        )
    console.print(table)


@cli.command()
@click.argument("name")
@click.pass_context
def show(ctx, name: str):
    """Show details for one project (name or path)."""
    records = load_snapshot(_require_snapshot(_load_config(ctx)))
    record = find_project(records, name)
    if record is None:
        raise click.ClickException(f"Project not found: {name}")
    click.echo(json.dumps(project_details(record), indent=2, ensure_ascii=False))


@cli.command()
@click.option(
    "--kind",
    type=click.Choice(list(DIRTY_KINDS)),
    default="all",
    show_default=True,
    help="Which kind of divergence to report",
)
@click.pass_context
def dirty(ctx, kind: str):
    """List repositories with uncommitted or unsynced work."""
    records = load_snapshot(_require_snapshot(_load_config(ctx)))
    found = dirty_projects(records, kind)
    if not found:
        console.print("All projects are clean and up to date!", style="green")
        return

    table = Table(title="Dirty projects")
    table.add_column("Name", style="cyan")
    table.add_column("Directory")
    table.add_column("Uncommitted", justify="right")
    table.add_column("Ahead", justify="right")
    table.add_column("Behind", justify="right")
    for record in found:
        git = record.git_info
        table.add_row(
            record.project_name,
            record.directory,
            str(git.uncommitted_changes),
            str(git.ahead),
            str(git.behind),
        )
    console.print(table)


@cli.command()
@click.pass_context
def stats(ctx):
    """Aggregate statistics over the snapshot."""
    records = load_snapshot(_require_snapshot(_load_config(ctx)))
    click.echo(json.dumps(project_stats(records), indent=2, ensure_ascii=False))


@cli.command()
@click.argument("directories", nargs=-1, required=True)
@click.pass_context
def refresh(ctx, directories: Tuple[str, ...]):
    """Re-read git state for projects already in the snapshot."""
    config = _load_config(ctx)
    snapshot_path = _require_snapshot(config)
    records = load_snapshot(snapshot_path)

    collector = GitInfoCollector(
        history_limit=config.git_history_limit, timeout=config.git_timeout
    )
    refreshed, unknown = refresh_git_info(records, directories, collector)
    for directory in unknown:
        console.print(f"Not in snapshot: {directory}", style="yellow", markup=False)
    for directory in refreshed:
        console.print(f"Refreshed: {directory}", style="green", markup=False)

    if refreshed:
        try:
            save_snapshot(snapshot_path, records, print_progress_event)
        except SnapshotWriteError as e:
            console.print(f"❌ {e}", style="red", markup=False)
            sys.exit(2)


def main():
    """Main entry point."""
    try:
        cli(obj={})
    except KeyboardInterrupt:
        console.print("\n❌ Interrupted by user", style="red")
        sys.exit(1)
    except Exception as e:
        console.print(f"❌ Unexpected error: {str(e)}", style="red", markup=False)
        sys.exit(1)


if __name__ == "__main__":
    main()
