"""Business logic layer."""

from .discovery import ContentDiscovery
from .follow_mode import run_follow_mode
from .library_refresh import LibraryRefreshCoordinator, RefreshState
from .matcher import ContentMatcher
from .metadata_sync import MetadataDiffer, MetadataSyncer, MetadataSyncError
from .sync_manager import SyncManager

__all__ = [
    "ContentDiscovery",
    "ContentMatcher",
    "LibraryRefreshCoordinator",
    "RefreshState",
    "MetadataDiffer",
    "MetadataSyncer",
    "MetadataSyncError",
    "run_follow_mode",
    "SyncManager",
]
