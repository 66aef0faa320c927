"""Output formatters for CLI."""

from .console import console
from .tables import _render_dead_letter_table, _render_sync_stats_table


def format_sync_stats(stats, dry_run=False):
    """
    Display the results of one sync cycle.

    Args:
        stats: SyncStats for the cycle
        dry_run: Whether writes were only previewed
    """
    title = "Sync Results (dry run)" if dry_run else "Sync Results"
    console.print(_render_sync_stats_table(stats, title=title))

    if stats.dead_letters:
        console.print(_render_dead_letter_table(stats.dead_letters))

    duration = stats.duration
    if duration is not None:
        console.print(f"\n[dim]Completed in {duration:.1f}s[/dim]")
