"""Sync command - main synchronization functionality."""

import sys

import click

from ...paths import PathMapper
from ..core import trigger_hook, with_destination_plex, with_source_plex, with_transfer
from ..display import console, format_sync_stats
from ..logic import SyncManager, run_follow_mode


@click.command()
@click.option(
    "--dry-run",
    is_flag=True,
    help="Preview changes without making them",
)
@click.option(
    "--force-full-sync",
    is_flag=True,
    help="Process every labelled item regardless of incremental shortcuts",
)
@click.option(
    "--oneshot",
    "-1",
    is_flag=True,
    help="Run a single sync cycle and exit instead of syncing continuously",
)
@click.option(
    "--interval",
    type=click.IntRange(min=1),
    default=None,
    help="Minutes between sync cycles in continuous mode (default: sync.interval)",
)
@click.pass_context
@with_transfer(optional=True)
@with_destination_plex
@with_source_plex
def sync(ctx, source_plex, destination_plex, transferrer, dry_run, force_full_sync, oneshot, interval):
    """Sync labelled items from the source Plex server to the destination.

    Transfers backing files and companions over SSH, removes destination
    files no longer produced by the source, rescans destination libraries,
    then copies ratings, tags and watch state onto the matched items.
    """
    config = ctx.obj.config

    trigger_hook('command_start', command='sync', dry_run=dry_run, oneshot=oneshot)

    if dry_run or config.get("sync.dry_run", False):
        console.print("[yellow]Running in DRY RUN mode - no changes will be made[/yellow]\n")
        dry_run = True

    force_full_sync = force_full_sync or config.get("sync.force_full_sync", False)

    sync_manager = SyncManager(
        source=source_plex,
        destination=destination_plex,
        label=config.get("sync.label"),
        path_mapper=PathMapper.from_config(config),
        transferrer=transferrer,
        dry_run=dry_run,
        force_full_sync=force_full_sync,
    )

    if not oneshot:
        run_follow_mode(sync_manager, interval or config.get("sync.interval", 60))
        trigger_hook('command_end', command='sync', success=True)
        return

    console.print(f"[cyan]Syncing items labelled '{sync_manager.label}'...[/cyan]\n")
    try:
        stats = sync_manager.run_once()
    except Exception as e:
        console.print(f"[red]Sync failed:[/red] {e}")
        trigger_hook('sync_error', error=str(e))
        trigger_hook('command_end', command='sync', success=False, error=str(e))
        sys.exit(1)

    format_sync_stats(stats, dry_run=dry_run)
    trigger_hook('sync_complete', **stats.as_dict())
    trigger_hook('command_end', command='sync', success=True)


# Export for lazy loading
cli = sync
