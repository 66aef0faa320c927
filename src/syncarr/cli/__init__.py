"""Syncarr CLI - Command-line interface for syncing labelled Plex content between servers."""

import os

# Configure rich-click BEFORE importing click
import rich_click as click

# Enable rich-click formatting
click.rich_click.USE_RICH_MARKUP = True
click.rich_click.SHOW_ARGUMENTS = True
click.rich_click.GROUP_ARGUMENTS_OPTIONS = True
click.rich_click.MAX_WIDTH = 100

from .. import __version__
from .core import SyncarrContext, SyncarrGroup


@click.group(
    cls=SyncarrGroup,
    commands_package='syncarr.cli.commands',
    context_settings=dict(
        auto_envvar_prefix='SYNCARR',
        help_option_names=['-h', '--help'],
    ),
)
@click.version_option(version=__version__, help='Show the version and exit.')
@click.option(
    '-c',
    '--config',
    default=None,
    help='Path to config file (or set SYNCARR_CONFIG)',
)
@click.pass_context
def cli(ctx, config):
    """Sync labelled Plex items, their files and their metadata to a second Plex server."""

    # Resolve config path: CLI > env var > default
    config_path = config or os.environ.get('SYNCARR_CONFIG', 'config.yaml')

    # Config is loaded on first use so commands can report errors their own way
    ctx.obj = SyncarrContext(config_path)


if __name__ == '__main__':
    cli()
