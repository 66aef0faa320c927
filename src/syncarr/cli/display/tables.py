"""Table builders for CLI output.

Conventions:
- Functions named _render_*_table()
- Header style: "bold cyan"
- Primary column (first) styled as "bold"
"""

from rich.table import Table

from ..commands.common import format_size


def _render_sync_stats_table(stats, title="Sync Results"):
    """
    Create table summarizing one sync cycle.

    Args:
        stats: SyncStats for the cycle
        title: Table title

    Returns:
        Rich Table object
    """
    table = Table(title=title, header_style="bold cyan")
    table.add_column("Phase", style="bold")
    table.add_column("Result")
    table.add_column("Count", justify="right")

    table.add_row("Discovery", "Items labelled", str(stats.items_discovered))
    table.add_row("Transfer", "[green]Transferred[/green]", str(stats.files_transferred))
    table.add_row("", "[yellow]Skipped[/yellow]", str(stats.files_skipped))
    table.add_row("", "[yellow]Missing locally[/yellow]", str(stats.files_missing))
    table.add_row("", "[red]Failed[/red]", str(stats.transfer_failures))
    table.add_row("", "Data moved", format_size(stats.bytes_transferred))
    table.add_row("Cleanup", "Orphans deleted", str(stats.orphans_deleted))
    table.add_row("Matching", "Matched on destination", str(stats.matches))
    table.add_row("Metadata", "[green]Synced[/green]", str(stats.metadata_synced))
    table.add_row("", "[yellow]Already in sync[/yellow]", str(stats.metadata_skipped))
    table.add_row("", "[red]Errors[/red]", str(stats.metadata_errors))
    table.add_row("Watch state", "Reconciled", str(stats.watch_states_synced))
    table.add_row("", "[red]Errors[/red]", str(stats.watch_state_errors))

    return table


def _render_dead_letter_table(failed_items, title="Failed Transfers"):
    """
    Create table for transfers that exhausted their retries.

    Args:
        failed_items: List of FailedItem objects
        title: Table title

    Returns:
        Rich Table object
    """
    table = Table(title=title, header_style="bold cyan")
    table.add_column("Item", style="bold")
    table.add_column("Attempts", justify="right")
    table.add_column("Error", style="red")

    for failed in failed_items:
        table.add_row(failed.title, str(failed.attempts), failed.error)

    return table


def _render_libraries_table(libraries, title="Libraries"):
    table = Table(title=title, header_style="bold cyan")
    table.add_column("ID", style="bold", width=6)
    table.add_column("Title")
    table.add_column("Type", style="blue")
    table.add_column("Agent", style="dim")

    for library in sorted(libraries, key=lambda lib: lib.title.lower()):
        table.add_row(library.id, library.title, library.type, library.agent or "")

    return table
