"""Table rendering utilities for CLI output."""

from collections import Counter
from collections.abc import Iterable, Sequence

from rich.markup import escape
from rich.table import Table

from dify_sync.domain.models import DatasetPlan, DiffEntry, SyncResult

ACTION_COLORS = {
    "create": "green",
    "update": "yellow",
    "delete": "red",
    "skip": "dim",
}


def create_sync_summary_table(results: Sequence[SyncResult]) -> Table:
    """Create a table of per-dataset sync counters.

    Args:
        results: Results returned by the sync orchestrator

    Returns:
        Rich Table object ready for display
    """
    table = Table(title="Sync Summary")
    table.add_column("Dataset", style="cyan")
    table.add_column("Path", style="white")
    table.add_column("Created", justify="right", style="green")
    table.add_column("Updated", justify="right", style="yellow")
    table.add_column("Deleted", justify="right", style="red")
    table.add_column("Unchanged", justify="right", style="dim")
    table.add_column("Errors", justify="right", style="bold red")

    totals = {"created": 0, "updated": 0, "deleted": 0, "skipped": 0, "errors": 0}

    for result in results:
        counts = {
            "created": result.created,
            "updated": result.updated,
            "deleted": result.deleted,
            "skipped": result.skipped,
            "errors": len(result.errors),
        }
        table.add_row(
            escape(result.dataset_label),
            escape(str(result.path)),
            *(str(counts[key]) if counts[key] else "-" for key in totals),
        )
        for key in totals:
            totals[key] += counts[key]

    # Add totals row if multiple datasets
    if len(results) > 1:
        table.add_section()
        table.add_row(
            "[bold]TOTAL[/bold]",
            "",
            *(f"[bold]{totals[key]}[/bold]" if totals[key] else "-" for key in totals),
        )

    return table


def create_diff_table(plans: Sequence[DatasetPlan]) -> Table:
    """Create a table listing every planned action.

    Args:
        plans: Dry-run plans, one per dataset

    Returns:
        Rich Table object ready for display
    """
    entry_count = sum(len(plan.entries) for plan in plans)
    table = Table(title=f"Planned Changes ({entry_count} total)")
    table.add_column("Dataset", style="cyan")
    table.add_column("File", style="white")
    table.add_column("Action", style="yellow")
    table.add_column("Reason", style="dim")

    for plan in plans:
        for entry in sorted(plan.entries, key=lambda e: (e.action.value, e.filename)):
            color = ACTION_COLORS.get(entry.action.value, "white")
            table.add_row(
                escape(plan.dataset_label),
                escape(entry.filename),
                f"[{color}]{entry.action.value}[/{color}]",
                escape(entry.reason or "-"),
            )

    return table


def format_action_summary(entries: Iterable[DiffEntry]) -> str:
    """Create a summary string of entry counts by action.

    Args:
        entries: Diff entries

    Returns:
        Formatted summary string like "2 create, 3 update"
    """
    action_counts = Counter(e.action.value for e in entries)
    return ", ".join(f"{count} {action}" for action, count in sorted(action_counts.items()))
