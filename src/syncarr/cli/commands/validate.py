"""Validate command - check configuration without contacting any server."""

import sys

import rich_click as click
from rich.table import Table

from ..core import ConfigurationError
from ..display import console
from .common import error_message, success_message

# Keys shown in the summary, secrets are masked
SUMMARY_KEYS = [
    ("Source", "source.host"),
    ("Source port", "source.port"),
    ("Source HTTPS", "source.requires_https"),
    ("Destination", "destination.host"),
    ("Destination port", "destination.port"),
    ("Destination HTTPS", "destination.requires_https"),
    ("Label", "sync.label"),
    ("Interval (minutes)", "sync.interval"),
    ("Dry run", "sync.dry_run"),
    ("Log level", "sync.log_level"),
    ("Replace from", "paths.replace_from"),
    ("Replace to", "paths.replace_to"),
    ("Destination root", "paths.dest_root"),
    ("Transfer method", "transfer.method"),
    ("SSH host", "ssh.host"),
    ("SSH user", "ssh.user"),
]


@click.command()
@click.pass_context
def validate(ctx):
    """Load the configuration and report any problems."""
    source = ctx.obj.config_path or "environment only"
    try:
        config = ctx.obj.config
    except ConfigurationError as e:
        console.print(error_message(f"Invalid configuration ({source}): {e}"))
        sys.exit(1)

    table = Table(title="Configuration", header_style="bold cyan")
    table.add_column("Setting", style="bold")
    table.add_column("Value")

    for name, key in SUMMARY_KEYS:
        value = config.get(key)
        table.add_row(name, "[dim]not set[/dim]" if value in (None, "") else str(value))

    table.add_row("SSH transfers", "enabled" if config.ssh_configured else "[dim]disabled[/dim]")
    console.print(table)
    console.print(success_message(f"Configuration is valid ({source})"))


# Export for lazy loading
cli = validate
