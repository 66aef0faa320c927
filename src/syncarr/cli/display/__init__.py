"""Display layer for CLI output."""

from .console import console
from .formatters import format_sync_stats
from .tables import (
    _render_dead_letter_table,
    _render_libraries_table,
    _render_sync_stats_table,
)

__all__ = [
    "console",
    "format_sync_stats",
    "_render_sync_stats_table",
    "_render_dead_letter_table",
    "_render_libraries_table",
]
