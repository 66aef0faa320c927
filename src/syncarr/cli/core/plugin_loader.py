"""Plugin loader for lazy command loading, aliases, and global options."""

import importlib
import os
from typing import Optional

import rich_click as click
from rich_click import RichGroup

# Modules in the commands package that hold helpers, not commands
NON_COMMAND_MODULES = {"common"}


class LazyCommandGroup(click.Group):
    """Group that loads commands lazily from a package."""

    def __init__(self, *args, commands_package: str = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.commands_package = commands_package or 'syncarr.cli.commands'

    def list_commands(self, ctx):
        """
        List all available commands by discovering modules and registered commands.

        Returns:
            Sorted list of command names
        """
        rv = []

        package = importlib.import_module(self.commands_package)
        commands_dir = os.path.dirname(package.__file__)

        for filename in os.listdir(commands_dir):
            if not filename.endswith('.py') or filename.startswith('__'):
                continue
            cmd_name = filename[:-3]
            if cmd_name in NON_COMMAND_MODULES:
                continue
            if cmd_name.endswith('_cmd'):
                cmd_name = cmd_name[:-4]
            rv.append(cmd_name)

        for name in self.commands:
            if name not in rv:
                rv.append(name)

        rv.sort()
        return rv

    def get_command(self, ctx, name):
        """
        Import and return a command by name.

        Args:
            ctx: Click context
            name: Command name

        Returns:
            Click command or None if not found
        """
        if name in self.commands:
            return self.commands[name]

        for module_name in (name, f"{name}_cmd"):
            try:
                mod = importlib.import_module(f'{self.commands_package}.{module_name}')
            except ModuleNotFoundError as e:
                # Only a missing command module means "no such command"
                if e.name != f'{self.commands_package}.{module_name}':
                    raise
                continue
            cmd = getattr(mod, 'cli', None) or getattr(mod, name, None)
            if cmd is not None:
                return cmd

        return None


class AliasedGroup(click.Group):
    """Group that supports command aliases."""

    def __init__(self, *args, aliases: Optional[dict] = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.aliases = aliases or {
            'run': 'sync',
            'st': 'status',
            'check': 'validate',
        }

    def get_command(self, ctx, cmd_name):
        resolved_name = self.aliases.get(cmd_name, cmd_name)
        return super().get_command(ctx, resolved_name)

    def format_commands(self, ctx, formatter):
        """
        Format commands for help output, including aliases.

        Args:
            ctx: Click context
            formatter: Help formatter
        """
        commands = []
        for subcommand in self.list_commands(ctx):
            cmd = self.get_command(ctx, subcommand)
            if cmd is None:
                continue

            aliases = [alias for alias, target in self.aliases.items() if target == subcommand]
            if aliases:
                subcommand = f"{subcommand} ({', '.join(aliases)})"

            help_text = cmd.get_short_help_str(limit=formatter.width)
            commands.append((subcommand, help_text))

        if commands:
            with formatter.section('Commands'):
                formatter.write_dl(commands)


def _store_config_path(ctx, param, value):
    """
    Point the root context at a config file given after the subcommand.

    The root group callback has already run by the time subcommand options
    are parsed, so the path is written onto the shared context object,
    which loads its config lazily.
    """
    if value is None or ctx.resilient_parsing:
        return

    root_ctx = ctx.find_root()
    root_ctx.params[param.name] = value
    obj = root_ctx.obj
    if obj is not None and hasattr(obj, 'config_path') and not obj.loaded:
        from pathlib import Path

        obj.config_path = Path(value)


class SyncarrGroup(LazyCommandGroup, AliasedGroup, RichGroup):
    """
    Combined group with lazy loading, aliases, and global options support.

    This is the main group class used for the syncarr CLI.
    """

    # expose_value=False keeps global options out of command signatures
    GLOBAL_OPTIONS = [
        click.Option(
            ['-c', '--config'],
            default=None,
            help='Path to config file (or set SYNCARR_CONFIG)',
            expose_value=False,
            is_eager=True,
            callback=_store_config_path,
        ),
    ]

    def __init__(self, *args, commands_package: str = None, aliases: Optional[dict] = None, **kwargs):
        LazyCommandGroup.__init__(self, *args, commands_package=commands_package, **kwargs)
        AliasedGroup.__init__(self, *args, aliases=aliases, **kwargs)

    def get_command(self, ctx, cmd_name):
        """Get command with alias resolution, lazy loading, and global options."""
        resolved_name = self.aliases.get(cmd_name, cmd_name)
        cmd = LazyCommandGroup.get_command(self, ctx, resolved_name)

        if cmd is not None:
            cmd = self._add_global_options(cmd)

        return cmd

    def _add_global_options(self, cmd):
        """
        Add global options to a command if not already present.

        Args:
            cmd: Click command to add options to

        Returns:
            Command with global options added
        """
        for global_opt in self.GLOBAL_OPTIONS:
            if not any(p.name == global_opt.name for p in cmd.params):
                cmd.params.insert(0, global_opt)

        return cmd
