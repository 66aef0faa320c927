"""Service layer for API wrappers and resource management."""

from .plex import PlexService
from .transfer import TransferService

__all__ = [
    "PlexService",
    "TransferService",
]
