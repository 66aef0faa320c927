"""Custom CLI exceptions."""


class SyncarrError(Exception):
    """Base exception for Syncarr errors."""
    pass


class ConfigurationError(SyncarrError):
    """Raised when configuration is invalid or missing."""
    pass


class DestinationUnavailableError(SyncarrError):
    """Raised when the destination server cannot be reached."""
    pass


class SyncError(SyncarrError):
    """Raised when a sync run cannot continue."""
    pass


class LibraryRefreshError(SyncError):
    """Raised when destination libraries cannot be rescanned."""
    pass
