"""Status command - check connections and show what would be synced."""

import rich_click as click

from ...api.plex import PlexApiError
from ...transfer import TransferError, is_rsync_available
from ..core import with_destination_plex, with_source_plex, with_transfer
from ..display import _render_libraries_table, console


@click.command()
@click.pass_context
@with_transfer(optional=True)
@with_destination_plex
@with_source_plex
def status(ctx, source_plex, destination_plex, transferrer):
    """Check connection status and show library and label info."""
    config = ctx.obj.config
    label = config.get("sync.label")

    source_libraries = source_plex.list_libraries()
    console.print(_render_libraries_table(source_libraries, title="Source Libraries"))

    labelled = 0
    for library in source_libraries:
        try:
            labelled += len(source_plex.list_items_with_label(library.id, label))
        except PlexApiError as e:
            console.print(f"[yellow]⚠[/yellow] Could not filter {library.title} by label: {e}")
    console.print(f"  Items labelled '{label}': [bold]{labelled}[/bold]\n")

    destination_libraries = destination_plex.list_libraries()
    console.print(_render_libraries_table(destination_libraries, title="Destination Libraries"))

    try:
        scanning = destination_plex.is_scan_in_progress()
    except PlexApiError as e:
        console.print(f"[yellow]⚠[/yellow] Could not read destination activities: {e}")
    else:
        state = "[yellow]scanning[/yellow]" if scanning else "[green]idle[/green]"
        console.print(f"  Destination library scans: {state}\n")

    if transferrer is None:
        return

    rsync = "[green]available[/green]" if is_rsync_available() else "[dim]not available[/dim]"
    console.print(f"[cyan]Transfer method:[/cyan] {transferrer.method.value} (rsync {rsync})")

    dest_root = config.get("paths.dest_root")
    try:
        remote_files = transferrer.list_files(dest_root)
    except TransferError as e:
        console.print(f"[red]✗[/red] Could not list {dest_root}: {e}")
        return
    console.print(f"[green]✓[/green] SSH: Connected, {len(remote_files)} files under {dest_root}")


# Export for lazy loading
cli = status
