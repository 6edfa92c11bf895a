"""Typer-based CLI for dify-sync."""

from pathlib import Path
from typing import NoReturn

import httpx
import typer
from rich.markup import escape

from dify_sync.config import Settings, load_sync_config
from dify_sync.domain.models import Dataset
from dify_sync.errors import DifySyncError
from dify_sync.logger import setup_logging
from dify_sync.operations.console import ConsoleClient
from dify_sync.operations.knowledge import KnowledgeClient
from dify_sync.orchestrators import DatasetSync, ImportStatus, export_definitions, import_definitions
from dify_sync.session import Credentials, PasswordSessionProvider, SessionStore
from dify_sync.ui import Reporter
from dify_sync.ui.tables import create_diff_table, create_sync_summary_table, format_action_summary

app = typer.Typer(help="Sync local markdown folders into Dify knowledge datasets")


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Show help when no subcommand is provided."""
    setup_logging("DEBUG" if verbose else "WARNING")
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit()


def _fail(reporter: Reporter, message: str) -> NoReturn:
    reporter.console.print(f"[red]Error:[/red] {escape(message)}", highlight=False)
    raise typer.Exit(1)


def _open_console(config: Settings) -> ConsoleClient:
    """Sign in (or reuse the stored session) and return a console client."""
    provider = PasswordSessionProvider(SessionStore(config.session_file))
    credentials = None
    if config.email and config.password:
        credentials = Credentials(email=config.email, password=config.password)
    session = provider.get_session(config.console_url, credentials)
    return ConsoleClient(
        session, base_url=config.console_url, timeout=config.api_timeout, page_size=config.page_size
    )


def _known_datasets(config: Settings, reporter: Reporter) -> list[Dataset]:
    """List datasets for placeholder mapping; empty without an API key."""
    if not config.api_key:
        reporter.report_warning("DIFY_API_KEY not set, dataset references are left as-is")
        return []
    with KnowledgeClient.from_settings(config) as client:
        return client.list_datasets()


@app.command()
def sync(
    config_file: Path = typer.Option(None, "--config", "-c", help="Path to sync YAML"),
):
    """Sync every configured folder into its dataset."""
    reporter = Reporter()
    config = Settings()

    try:
        sync_config = load_sync_config(config_file or config.sync_config_file)
        with DatasetSync(config) as orchestrator:
            results = orchestrator.run(sync_config.datasets, reporter=reporter)
    except (DifySyncError, ValueError, httpx.HTTPError) as e:
        _fail(reporter, str(e))

    reporter.console.print()
    reporter.console.print(create_sync_summary_table(results))
    reporter.report_summary(results)

    if any(result.has_errors for result in results):
        raise typer.Exit(1)


@app.command()
def diff(
    config_file: Path = typer.Option(None, "--config", "-c", help="Path to sync YAML"),
):
    """Show planned changes without modifying any dataset."""
    reporter = Reporter()
    config = Settings()

    try:
        sync_config = load_sync_config(config_file or config.sync_config_file)
        with DatasetSync(config) as orchestrator:
            plans = orchestrator.plan(sync_config.datasets, reporter=reporter)
    except (DifySyncError, ValueError, httpx.HTTPError) as e:
        _fail(reporter, str(e))

    for plan in plans:
        for warning in plan.warnings:
            reporter.report_warning(warning)

    entries = [entry for plan in plans for entry in plan.entries]
    if not entries:
        reporter.console.print("[dim]No documents found[/dim]")
    else:
        reporter.console.print(create_diff_table(plans))
        reporter.console.print(f"\n[bold]Summary:[/bold] {format_action_summary(entries)}")

    if any(plan.errors for plan in plans):
        raise typer.Exit(1)


@app.command()
def export(
    output_dir: Path = typer.Option(None, "--output-dir", "-o", help="Directory for definition files"),
    include_secret: bool = typer.Option(False, "--include-secret", help="Include secret values"),
):
    """Export application definitions as YAML."""
    reporter = Reporter()
    config = Settings()
    target = output_dir or config.dsl_dir

    try:
        datasets = _known_datasets(config, reporter)
        with _open_console(config) as console:
            results = export_definitions(
                console, target, include_secret=include_secret, datasets=datasets, reporter=reporter
            )
    except (DifySyncError, httpx.HTTPError) as e:
        _fail(reporter, str(e))

    exported = sum(1 for r in results if r.success)
    reporter.console.print(
        f"\n[bold]Exported {exported}/{len(results)} app(s) to {escape(str(target))}[/bold]"
    )

    if exported != len(results):
        raise typer.Exit(1)


@app.command("import")
def import_(
    input_dir: Path = typer.Option(None, "--input-dir", "-i", help="Directory of definition files"),
    force: bool = typer.Option(False, "--force", help="Overwrite apps that already exist"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Show what would be imported"),
):
    """Import application definitions from YAML."""
    reporter = Reporter()
    config = Settings()
    source = input_dir or config.dsl_dir

    try:
        if dry_run:
            results = import_definitions(None, source, dry_run=True, reporter=reporter)
        else:
            datasets = _known_datasets(config, reporter)
            with _open_console(config) as console:
                results = import_definitions(
                    console, source, force=force, datasets=datasets, reporter=reporter
                )
    except (DifySyncError, httpx.HTTPError) as e:
        _fail(reporter, str(e))

    counts = {status: sum(1 for r in results if r.status is status) for status in ImportStatus}
    prefix = "\\[DRY RUN] " if dry_run else ""
    summary = ", ".join(f"{count} {status.value}" for status, count in counts.items())
    reporter.console.print(f"\n[bold]{prefix}Import complete:[/bold] {summary}")

    if counts[ImportStatus.FAILED]:
        raise typer.Exit(1)


@app.command()
def logout():
    """Forget the stored console session."""
    reporter = Reporter()
    config = Settings()

    if SessionStore(config.session_file).clear():
        reporter.console.print(f"Removed session file {escape(str(config.session_file))}")
    else:
        reporter.console.print("[dim]No stored session[/dim]")


if __name__ == "__main__":
    app()
