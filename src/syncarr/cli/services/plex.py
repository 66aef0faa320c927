"""Plex API service wrapper."""

from ...api.plex import PlexApi


class PlexService:
    """
    Plex API service wrapper with context manager support.

    Provides factory methods and automatic resource management.
    """

    def __init__(self, api: PlexApi):
        """
        Initialize Plex service.

        Args:
            api: PlexApi instance
        """
        self._api = api

    @classmethod
    def from_config(cls, config, side):
        """
        Create PlexService for one side of the sync.

        Args:
            config: Config object
            side: "source" or "destination"

        Returns:
            PlexService instance
        """
        api = PlexApi(
            base_url=config.server_url(side),
            token=config.get(f"{side}.token"),
            name=side,
            timeout=config.get(f"{side}.timeout", 30),
        )
        return cls(api)

    def __enter__(self):
        """Enter context manager - return API instance."""
        return self._api

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Exit context manager - close the HTTP session."""
        self._api.session.close()
        return False

    def ping(self):
        """Test Plex connection."""
        return self._api.ping()
