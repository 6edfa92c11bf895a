"""Reporter for sync progress and results."""

from collections.abc import Sequence
from pathlib import Path

from rich.console import Console
from rich.markup import escape

from dify_sync.domain.models import DiffAction, DiffEntry, SyncResult

ACTION_STYLES = {
    DiffAction.CREATE: ("CREATE", "green"),
    DiffAction.UPDATE: ("UPDATE", "yellow"),
    DiffAction.DELETE: ("DELETE", "red"),
    DiffAction.SKIP: ("SKIP", "dim"),
}


class Reporter:
    """Sync reporter with tagged progress lines and a final summary."""

    ERROR_PREVIEW_LIMIT = 20

    def __init__(self, silent: bool = False, console: Console | None = None) -> None:
        """Initialize reporter.

        Args:
            silent: If True, suppress all output (for testing/automation).
            console: Optional console to print to (defaults to stdout).
        """
        self.silent = silent
        self.console = console or Console(quiet=silent)

    def _print(self, message: str) -> None:
        if not self.silent:
            self.console.print(message, highlight=False)

    def report_dataset_start(self, label: str, path: Path) -> None:
        """Announce the dataset about to be synced."""
        self._print(f"\n[bold]Syncing {escape(str(path))}/ → dataset: {escape(label)}[/bold]")

    def report_dataset_created(self, name: str, dataset_id: str) -> None:
        self._print(f"  [green]\\[CREATED][/green] Dataset {escape(name)} ({escape(dataset_id)})")

    def report_action(self, entry: DiffEntry) -> None:
        """Report a create/update/delete/skip as it is applied."""
        tag, color = ACTION_STYLES[entry.action]
        padding = " " * (6 - len(tag))
        detail = f" ({escape(entry.reason)})" if entry.reason else ""
        self._print(f"  [{color}]\\[{tag}][/{color}]{padding} {escape(entry.filename)}{detail}")

    def report_waiting(self, count: int) -> None:
        self._print(f"  [cyan]\\[WAIT][/cyan] Waiting for {count} documents to be indexed...")

    def report_indexed(self, name: str) -> None:
        self._print(f"  [green]\\[INDEXED][/green] {escape(name)}")

    def report_index_error(self, name: str, error: str) -> None:
        self._print(f"  [red]\\[INDEX_ERROR][/red] {escape(name)}: {escape(error)}")

    def report_definition(self, message: str) -> None:
        """Report progress of a definition export or import."""
        self._print(f"  {escape(message)}")

    def report_warning(self, message: str) -> None:
        """Report a warning message."""
        self._print(f"  [yellow]\\[WARN][/yellow] {escape(message)}")

    def report_error(self, message: str) -> None:
        """Report an error message."""
        self._print(f"  [red]\\[ERROR][/red] {escape(message)}")

    def report_summary(self, results: Sequence[SyncResult]) -> None:
        """Print run totals followed by every recorded error."""
        if self.silent:
            return

        created = sum(r.created for r in results)
        updated = sum(r.updated for r in results)
        deleted = sum(r.deleted for r in results)
        skipped = sum(r.skipped for r in results)
        errors = [(r.dataset_label, e) for r in results for e in r.errors]

        self.console.print(
            f"\n[bold]Sync complete:[/bold] {created} created, {updated} updated, "
            f"{skipped} unchanged, {deleted} deleted"
        )

        if errors:
            self.console.print(f"\n[red]{len(errors)} error(s) occurred during sync[/red]")
            for label, error in errors[: self.ERROR_PREVIEW_LIMIT]:
                target = error.filename or label
                self.console.print(
                    f"  [red]✗[/red] {escape(target)} ({error.action.value}): {escape(error.error)}"
                )
            remaining = len(errors) - self.ERROR_PREVIEW_LIMIT
            if remaining > 0:
                self.console.print(f"  ... (+{remaining} more)")
