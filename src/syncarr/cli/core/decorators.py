"""Dependency injection decorators for CLI commands."""

from functools import wraps
import sys

import rich_click as click

from ..commands.common import (
    console,
    print_connection_test,
    print_connection_success,
    print_connection_failure,
)
from .exceptions import ConfigurationError

SIDE_NAMES = {"source": "Source Plex", "destination": "Destination Plex"}


def _load_config(ctx):
    """Return the loaded config, exiting with a message if it is invalid."""
    try:
        return ctx.obj.config
    except ConfigurationError as e:
        console.print(f"[red]Configuration Error:[/red] {e}")
        console.print("\n[cyan]Tip:[/cyan] Run 'syncarr validate' to check your settings.")
        sys.exit(1)


def with_config(f):
    """
    Inject config from context.

    Usage:
        @with_config
        def command(config, ...):
            pass
    """
    @wraps(f)
    @click.pass_context
    def wrapper(ctx, *args, **kwargs):
        config = _load_config(ctx)
        return f(config=config, **kwargs)
    return wrapper


def with_plex(side):
    """
    Inject an initialized and tested Plex API for one side.

    Args:
        side: "source" or "destination"; the API is passed as ``<side>_plex``

    Usage:
        @with_plex("source")
        def command(ctx, source_plex, ...):
            pass
    """
    if side not in SIDE_NAMES:
        raise ValueError(f"Unknown Plex side: {side}")

    def decorator(f):
        @wraps(f)
        @click.pass_context
        def wrapper(ctx, *args, **kwargs):
            from ..services.plex import PlexService

            config = _load_config(ctx)
            name = SIDE_NAMES[side]
            print_connection_test(name)

            with PlexService.from_config(config, side) as plex:
                if not plex.ping():
                    print_connection_failure(
                        name, f"Check {side}.host and {side}.token in your config"
                    )
                    sys.exit(1)

                print_connection_success(name, config.server_url(side))
                kwargs[f"{side}_plex"] = plex
                return f(ctx, **kwargs)
        return wrapper
    return decorator


with_source_plex = with_plex("source")
with_destination_plex = with_plex("destination")


def with_transfer(optional=True):
    """
    Inject a file Transferrer for the destination host.

    Args:
        optional: If True, pass None when SSH is not configured. If False, exit.

    Usage:
        @with_transfer(optional=True)
        def command(ctx, transferrer, ...):
            pass
    """
    def decorator(f):
        @wraps(f)
        @click.pass_context
        def wrapper(ctx, *args, **kwargs):
            from ..services.transfer import TransferService

            config = _load_config(ctx)
            if not config.ssh_configured:
                if optional:
                    console.print("[dim]SSH not configured - file transfers disabled[/dim]\n")
                    return f(ctx, transferrer=None, **kwargs)
                print_connection_failure("SSH", "Set ssh.user and ssh.password or ssh.key_path")
                sys.exit(1)

            dry_run = bool(kwargs.get("dry_run")) or config.get("sync.dry_run", False)
            with TransferService.from_config(config, dry_run=dry_run) as transferrer:
                console.print(
                    f"[cyan]File transfers via {transferrer.method.value}[/cyan]"
                    f" to {config.get('ssh.host') or config.get('destination.host')}\n"
                )
                return f(ctx, transferrer=transferrer, **kwargs)
        return wrapper
    return decorator
