from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.text import Text

from bricksync.auth import require_token
from bricksync.config import (
    DEFAULT_SOURCE_ROOT,
    DEFAULT_THREADS,
    BricksyncConfig,
    default_host,
    load_config,
    normalize_host,
    normalize_remote_prefix,
    save_config,
)
from bricksync.errors import BricksyncError
from bricksync.jobs import JobOutcome, JobState, reconcile
from bricksync.log import get_logger, setup_logging
from bricksync.remote import RemoteStore, WorkspaceClient
from bricksync.scanner import enumerate_artifacts
from bricksync.settings import load_job_specs
from bricksync.transfer_ui import UploadProgress
from bricksync.workspace_sync import (
    DEFAULT_ERROR_DETAILS,
    ArtifactFailure,
    SyncReport,
    plan_uploads,
    sync_tree,
)


app = typer.Typer(help="Sync notebooks into a remote workspace and upsert jobs.")
console = Console()
logger = get_logger(__name__)


@app.callback()
def main(
    log_level: str = typer.Option(
        "INFO",
        "--log-level",
        help="Logging level: DEBUG, INFO, WARNING or ERROR.",
    ),
) -> None:
    setup_logging(log_level, console=console)


def _build_store(config: BricksyncConfig) -> RemoteStore:
    return WorkspaceClient.from_config(config, require_token(config))


def _close_store(store: RemoteStore) -> None:
    close = getattr(store, "close", None)
    if callable(close):
        close()


def _render_path_summary(title: str, paths: list[str], style: str) -> None:
    if not paths:
        return
    console.print(Text(f"{title} ({len(paths)}):", style=style))
    for path in paths:
        console.print(Text(f"  {path}"))


def _render_failures(title: str, failures: list[ArtifactFailure], total: int) -> None:
    if not failures:
        return

    table = Table(title=title)
    table.add_column("Kind", style="red")
    table.add_column("Local file")
    table.add_column("Remote path")
    table.add_column("Error")
    for failure in failures:
        table.add_row(
            failure.kind,
            Text(str(failure.local_file)),
            Text(failure.remote_path or "-"),
            Text(str(failure.error)),
        )
    console.print(table)
    if total > len(failures):
        console.print(f"... and {total - len(failures)} more failure(s) not shown.")


def _render_sync_report(report: SyncReport) -> None:
    _render_path_summary("Uploaded", report.uploaded_paths, "green")
    _render_failures("Sync failures", report.first_errors(DEFAULT_ERROR_DETAILS), report.failed_count)
    console.print(
        f"Directories ensured: {len(report.directories)} | "
        f"Succeeded: {report.succeeded_count} | Failed: {report.failed_count}"
    )


def _sync(source_root: str | None, threads: int | None, extensions: tuple[str, ...]) -> int:
    try:
        config = load_config()
    except (FileNotFoundError, BricksyncError) as exc:
        console.print(f"[red]{escape(str(exc))}[/red]")
        return 1

    root = Path(source_root).expanduser().resolve() if source_root else config.source_root_path
    concurrency = threads if threads is not None else config.threads
    if not root.exists():
        logger.warning("No notebooks found at [%s]", root)
        return 0

    try:
        store = _build_store(config)
    except BricksyncError as exc:
        console.print(f"[red]{escape(str(exc))}[/red]")
        return 1

    try:
        with UploadProgress(console=console) as ui:
            report = sync_tree(
                root,
                store,
                concurrency=concurrency,
                extensions=extensions or None,
                ui=ui,
            )
    except KeyboardInterrupt:
        console.print("[yellow]Sync interrupted.[/yellow] Remote workspace may be partially updated.")
        return 130
    except ValueError as exc:
        console.print(f"[red]{escape(str(exc))}[/red]")
        return 1
    finally:
        _close_store(store)

    if report.root_missing:
        return 0

    _render_sync_report(report)
    if not report.ok:
        console.print(
            f"[red]Sync failed:[/red] {report.failed_count} of "
            f"{report.failed_count + report.succeeded_count} artifact(s) could not be written."
        )
        return 1
    console.print("[green]Workspace is in sync.[/green]")
    return 0


@app.command()
def init(
    host: str | None = typer.Argument(
        None,
        help="Workspace URL. Defaults to $DATABRICKS_HOST.",
    ),
    prefix: str = typer.Option("", "--prefix", help="Remote directory all artifacts are placed under."),
    source_root: str = typer.Option(
        DEFAULT_SOURCE_ROOT,
        "--source-root",
        help="Local directory holding the notebooks to sync.",
    ),
    threads: int = typer.Option(DEFAULT_THREADS, "--threads", min=1, help="Upload threads."),
) -> None:
    """Write a bricksync config in the current directory."""
    resolved_host = normalize_host(host or default_host())
    if not resolved_host:
        console.print("[red]No workspace host given and $DATABRICKS_HOST is not set.[/red]")
        raise typer.Exit(code=1)

    config = BricksyncConfig(
        host=resolved_host,
        remote_prefix=normalize_remote_prefix(prefix),
        source_root=source_root,
        threads=threads,
    )
    path = save_config(config)
    console.print(f"[green]Initialized bricksync[/green] for {config.host}")
    console.print(f"Config: {path}")


@app.command()
def sync(
    source_root: str | None = typer.Argument(
        None,
        help="Local notebook directory. Defaults to `source_root` from the config.",
    ),
    threads: int | None = typer.Option(
        None,
        "--threads",
        help=f"Number of upload threads (default {DEFAULT_THREADS}).",
    ),
    extension: list[str] | None = typer.Option(
        None,
        "--extension",
        help="Source extension(s) to include (repeatable). Defaults to py, scala, sql and r.",
    ),
) -> None:
    """Upload every notebook under the source root, overwriting remote copies."""
    raise typer.Exit(code=_sync(source_root, threads, tuple(extension or ())))


@app.command()
def validate(
    source_root: str | None = typer.Argument(
        None,
        help="Local notebook directory. Defaults to `source_root` from the config.",
    ),
    extension: list[str] | None = typer.Option(
        None,
        "--extension",
        help="Source extension(s) to include (repeatable).",
    ),
) -> None:
    """Check that every notebook maps to a remote path and language, without uploading."""
    if source_root:
        root = Path(source_root).expanduser().resolve()
    else:
        try:
            root = load_config().source_root_path
        except (FileNotFoundError, BricksyncError) as exc:
            console.print(f"[red]{escape(str(exc))}[/red]")
            raise typer.Exit(code=1)

    if not root.exists():
        logger.warning("No notebooks found at [%s]", root)
        raise typer.Exit(code=0)

    planned, failures = plan_uploads(root, enumerate_artifacts(root, extension or None))
    for item in planned:
        console.print(f"  {escape(item.remote.path)} [dim]({item.language.value})[/dim]")
    _render_failures("Validation failures", failures[:DEFAULT_ERROR_DETAILS], len(failures))
    console.print(f"Valid: {len(planned)} | Invalid: {len(failures)}")
    raise typer.Exit(code=1 if failures else 0)


def _render_job_outcomes(outcomes: list[JobOutcome]) -> None:
    table = Table(title="Jobs")
    table.add_column("Name")
    table.add_column("State")
    table.add_column("Link / error")
    styles = {
        JobState.VERIFIED: "green",
        JobState.FAILED: "red",
        JobState.SKIPPED: "dim",
    }
    for outcome in outcomes:
        detail = outcome.link or ""
        if outcome.error is not None:
            detail = f"{type(outcome.error).__name__}: {outcome.error}"
        style = styles.get(outcome.state, "")
        table.add_row(Text(outcome.name), Text(outcome.state.value, style=style), Text(detail))
    console.print(table)
    for outcome in outcomes:
        for warning in outcome.warnings:
            console.print(Text(warning, style="yellow"))


def _upsert_jobs(settings_path: Path, job: str | None, fail_on_duplicate: bool) -> int:
    try:
        config = load_config()
        specs = load_job_specs(settings_path)
        store = _build_store(config)
    except (FileNotFoundError, BricksyncError) as exc:
        console.print(f"[red]{escape(str(exc))}[/red]")
        return 1

    try:
        outcomes = reconcile(
            specs,
            store,
            fail_on_duplicate=fail_on_duplicate,
            single_job=job,
        )
    except KeyboardInterrupt:
        console.print("[yellow]Job upsert interrupted.[/yellow]")
        return 130
    finally:
        _close_store(store)

    if outcomes:
        _render_job_outcomes(outcomes)

    if job and all(outcome.state is JobState.SKIPPED for outcome in outcomes):
        console.print(Text(f"No job named {job} in {settings_path}.", style="red"))
        return 1

    failed = [outcome for outcome in outcomes if outcome.failed]
    if failed:
        console.print(
            f"[red]Job upsert failed:[/red] {len(failed)} job(s): "
            + escape(", ".join(outcome.name for outcome in failed))
        )
        return 1
    return 0


@app.command("upsert-jobs")
def upsert_jobs(
    settings_path: Path = typer.Argument(..., help="JSON file with the declared job settings."),
    job: str | None = typer.Option(
        None,
        "--job",
        help="Only upsert the job with this name; every other job is skipped.",
    ),
    fail_on_duplicate: bool = typer.Option(
        True,
        "--fail-on-duplicate/--allow-duplicates",
        help="Fail a job when several remote jobs share its name, instead of updating the first.",
    ),
) -> None:
    """Create or update the declared jobs, matched by name."""
    raise typer.Exit(code=_upsert_jobs(settings_path, job, fail_on_duplicate))
