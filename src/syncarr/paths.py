"""Path translation between the source server, local disk and destination."""

import logging
import os
import posixpath
from typing import Optional

logger = logging.getLogger(__name__)


class PathMappingError(ValueError):
    """Path cannot be mapped."""
    pass


class PathMapper:
    """Translate source-reported paths to local and destination paths.

    A source server reports files as it sees them (``/data/movies/x.mkv``);
    the process sees the same files under a different mount
    (``/mnt/source/movies/x.mkv``), and the destination stores them under
    its own root (``/srv/media/movies/x.mkv``).
    """

    def __init__(
        self,
        replace_from: Optional[str] = None,
        replace_to: Optional[str] = None,
        dest_root: Optional[str] = None,
    ):
        """Initialize path mapper.

        Args:
            replace_from: Prefix of source-reported paths to strip
            replace_to: Local root substituted for ``replace_from``
            dest_root: Root directory on the destination host
        """
        self.replace_from = replace_from or ""
        self.replace_to = replace_to or ""
        self.dest_root = dest_root or ""

    @classmethod
    def from_config(cls, config):
        return cls(
            replace_from=config.get("paths.replace_from"),
            replace_to=config.get("paths.replace_to"),
            dest_root=config.get("paths.dest_root"),
        )

    def to_local(self, source_path: str) -> str:
        """Map a path reported by the source server to a local path.

        Raises:
            PathMappingError: If the path is empty or outside ``replace_from``
        """
        if not source_path:
            raise PathMappingError("source path is empty")

        if not self.replace_from or not self.replace_to:
            return source_path

        relative = self._strip_prefix(source_path, self.replace_from, "source")
        return posixpath.join(self.replace_to, relative)

    def to_dest(self, local_path: str) -> str:
        """Map a local path to its location on the destination host.

        Raises:
            PathMappingError: If the path is empty, no destination root is
                configured, or the path is outside the configured root
        """
        if not local_path:
            raise PathMappingError("local path is empty")
        if not self.dest_root:
            raise PathMappingError("destination root directory is not configured")

        if self.replace_to:
            relative = self._strip_prefix(local_path, self.replace_to)
        elif self.replace_from:
            relative = self._strip_prefix(local_path, self.replace_from)
        else:
            relative = posixpath.basename(local_path)

        return f"{self.dest_root.rstrip('/')}/{relative}"

    def source_to_dest(self, source_path: str) -> tuple[str, str]:
        """Map a source path to ``(local_path, dest_path)``."""
        local_path = self.to_local(source_path)
        return local_path, self.to_dest(local_path)

    @staticmethod
    def _strip_prefix(path: str, prefix: str, kind: str = "local") -> str:
        # Match whole path segments: /data must not claim /data2
        root = prefix.rstrip("/")
        if path != root and not path.startswith(root + "/"):
            raise PathMappingError(f"{kind} path {path} is not under {prefix}")
        return path[len(root):].lstrip("/")


def find_companion_files(local_path: str) -> list[str]:
    """Find sibling files that belong with a media file.

    Subtitles and extra streams share the media file's name up to its first
    dot, e.g. ``Movie.2020.mkv`` -> ``Movie.en.srt``.

    Args:
        local_path: Path of the primary media file

    Returns:
        Sorted list of companion file paths (never includes ``local_path``)
    """
    directory, name = os.path.split(local_path)
    if "." not in name:
        return []

    prefix = name.split(".", 1)[0] + "."

    try:
        entries = os.listdir(directory or ".")
    except OSError as e:
        logger.warning(f"Failed to list {directory} for companion files: {e}")
        return []

    companions = []
    for entry in entries:
        if entry == name or not entry.startswith(prefix):
            continue
        candidate = os.path.join(directory, entry)
        if os.path.isfile(candidate):
            companions.append(candidate)

    return sorted(companions)
