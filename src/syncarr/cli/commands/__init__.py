"""CLI commands, loaded lazily by name."""
