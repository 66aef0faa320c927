"""Core CLI infrastructure."""

from .context import SyncarrContext
from .decorators import (
    with_config,
    with_plex,
    with_source_plex,
    with_destination_plex,
    with_transfer,
)
from .exceptions import (
    SyncarrError,
    ConfigurationError,
    DestinationUnavailableError,
    SyncError,
    LibraryRefreshError,
)
from .hooks import get_hook_manager, trigger_hook
from .plugin_loader import SyncarrGroup

__all__ = [
    # Context
    "SyncarrContext",
    # Decorators
    "with_config",
    "with_plex",
    "with_source_plex",
    "with_destination_plex",
    "with_transfer",
    # Exceptions
    "SyncarrError",
    "ConfigurationError",
    "DestinationUnavailableError",
    "SyncError",
    "LibraryRefreshError",
    # Hooks
    "get_hook_manager",
    "trigger_hook",
    # Plugin loader
    "SyncarrGroup",
]
