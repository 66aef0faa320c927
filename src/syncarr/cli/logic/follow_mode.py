"""Continuous sync mode."""

import logging
import signal
import sys
import time
from datetime import datetime

from ..core.hooks import trigger_hook
from ..display.console import console
from ..display.formatters import format_sync_stats
from .sync_manager import SyncManager

logger = logging.getLogger(__name__)


def run_follow_mode(sync_manager: SyncManager, interval_minutes: int, show_full_output: bool = True):
    """
    Sync immediately, then every ``interval_minutes`` until interrupted.

    Args:
        sync_manager: Configured SyncManager
        interval_minutes: Minutes between cycle starts
        show_full_output: Print the results table after each cycle
    """
    interval = interval_minutes * 60

    console.print(f"[yellow]Continuous sync enabled - syncing every {interval_minutes} minutes[/yellow]")
    console.print("[yellow]Press Ctrl+C to stop[/yellow]\n")

    shutdown_requested = False

    def signal_handler(_sig, _frame):
        nonlocal shutdown_requested
        shutdown_requested = True
        sys.stdout.write("\r\033[K")
        sys.stdout.flush()
        console.print("[yellow]Shutdown requested, stopping after the current cycle...[/yellow]")

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    cycle = 0
    next_run = time.monotonic()

    def on_cycle(stats, error):
        nonlocal cycle, next_run
        cycle += 1
        next_run = time.monotonic() + interval
        sys.stdout.write("\r\033[K")
        sys.stdout.flush()

        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        if error is not None:
            console.print(f"[{timestamp}] [red]Sync cycle {cycle} failed:[/red] {error}")
            trigger_hook("sync_error", error=str(error), cycle=cycle)
            return

        console.print(f"[bold cyan]{'='*80}[/bold cyan]")
        console.print(f"[bold]Sync cycle {cycle} - {timestamp}[/bold]")
        console.print(f"[bold cyan]{'='*80}[/bold cyan]\n")
        if show_full_output:
            format_sync_stats(stats, dry_run=sync_manager.dry_run)
        trigger_hook("sync_complete", cycle=cycle, **stats.as_dict())

    def should_stop():
        if not shutdown_requested and cycle:
            remaining = max(0, int(next_run - time.monotonic()))
            _update_status_line(f"Waiting... (next sync in {remaining // 60}m {remaining % 60:02d}s)")
        return shutdown_requested

    sync_manager.run_continuous(interval, should_stop=should_stop, on_cycle=on_cycle)

    sys.stdout.write("\r\033[K")
    sys.stdout.flush()
    console.print("[green]Stopped continuous sync.[/green]")


def _update_status_line(message):
    """Update status line in place using ANSI codes."""
    sys.stdout.write(f"\r\033[K{message}")
    sys.stdout.flush()
