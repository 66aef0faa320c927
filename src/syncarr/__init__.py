"""Sync labelled Plex content between two media servers."""

__version__ = "0.1.0"
