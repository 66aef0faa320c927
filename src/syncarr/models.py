"""Data models for synced catalog items and run statistics."""

import os
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional


class ItemKind(Enum):
    """Kind of catalog item."""
    WORK = "movie"
    SERIES = "show"
    EPISODE = "episode"

    @property
    def type_code(self) -> int:
        """Numeric type code used by the library update endpoints."""
        return _TYPE_CODES[self]

    @classmethod
    def from_plex_type(cls, value: str) -> Optional["ItemKind"]:
        """Map a Plex ``type`` string to an ItemKind, or None if unsupported."""
        try:
            return cls((value or "").lower())
        except ValueError:
            return None


_TYPE_CODES = {
    ItemKind.WORK: 1,
    ItemKind.SERIES: 2,
    ItemKind.EPISODE: 4,
}


class TransferStatus(Enum):
    """Outcome of a single file transfer."""
    COMPLETED = "completed"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class MediaPart:
    """A file backing a catalog item."""
    file: str
    size: int = 0

    @property
    def name(self) -> str:
        return os.path.basename(self.file)


@dataclass(frozen=True)
class WatchState:
    """Watch progress of an item on one server."""
    watched: bool = False
    view_count: int = 0
    last_viewed_at: int = 0
    view_offset: int = 0


@dataclass(frozen=True)
class CatalogItem:
    """Item from a Plex library (movie, show or episode)."""
    rating_key: str
    title: str
    kind: ItemKind
    title_sort: Optional[str] = None
    original_title: Optional[str] = None
    year: Optional[int] = None
    summary: Optional[str] = None
    tagline: Optional[str] = None
    content_rating: Optional[str] = None
    studio: Optional[str] = None
    network: Optional[str] = None
    rating: Optional[float] = None
    audience_rating: Optional[float] = None
    user_rating: Optional[float] = None
    view_count: int = 0
    last_viewed_at: int = 0
    view_offset: int = 0
    thumb: Optional[str] = None
    art: Optional[str] = None
    labels: frozenset = frozenset()
    genres: frozenset = frozenset()
    collections: frozenset = frozenset()
    parts: tuple = ()
    index: Optional[int] = None
    parent_index: Optional[int] = None
    grandparent_title: Optional[str] = None
    grandparent_rating_key: Optional[str] = None

    @property
    def watch_state(self) -> WatchState:
        return WatchState(
            watched=self.view_count > 0,
            view_count=self.view_count,
            last_viewed_at=self.last_viewed_at,
            view_offset=self.view_offset,
        )

    def file_names(self) -> list[str]:
        """Base names of backing files, in declaration order."""
        return [part.name for part in self.parts if part.file]

    def display_title(self) -> str:
        if self.kind == ItemKind.EPISODE and self.grandparent_title:
            season = self.parent_index or 0
            episode = self.index or 0
            return f"{self.grandparent_title} S{season:02d}E{episode:02d} - {self.title}"
        return self.title


@dataclass(frozen=True)
class EnhancedItem:
    """Catalog item annotated with the library it was found in."""
    item: CatalogItem
    library_id: str
    episode_files: tuple = ()

    @property
    def kind(self) -> ItemKind:
        return self.item.kind

    @property
    def rating_key(self) -> str:
        return self.item.rating_key

    @property
    def title(self) -> str:
        return self.item.display_title()

    def backing_file_names(self) -> list[str]:
        """File names used to identify this item across servers.

        Series carry no files of their own, so they fall back to the
        files of their episodes.
        """
        names = self.item.file_names()
        if not names and self.kind == ItemKind.SERIES:
            return list(self.episode_files)
        return names


@dataclass(frozen=True)
class ItemMatch:
    """Source item paired with its destination counterpart."""
    source: EnhancedItem
    destination: EnhancedItem
    file_name: str


@dataclass(frozen=True)
class Library:
    """A library section on a Plex server."""
    id: str
    title: str
    type: str
    agent: Optional[str] = None


@dataclass(frozen=True)
class Activity:
    """A background activity reported by a Plex server."""
    uuid: str
    type: str
    title: str = ""
    progress: int = 0
    library_section_id: Optional[str] = None


@dataclass
class TransferResult:
    """Result of transferring a single file."""
    source_path: str
    dest_path: str
    size: int
    status: TransferStatus
    reason: str = ""
    duration: float = 0.0

    @property
    def size_mb(self) -> float:
        return round(self.size / (1024 * 1024), 1)

    @property
    def rate_mbps(self) -> float:
        if self.duration <= 0:
            return 0.0
        return round(self.size / (1024 * 1024) / self.duration, 1)


@dataclass
class FailedItem:
    """File that could not be transferred after all attempts."""
    key: str
    title: str
    error: str
    attempts: int
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass
class SyncStats:
    """Statistics for one sync cycle."""
    start_time: datetime = field(default_factory=datetime.now)
    end_time: Optional[datetime] = None
    force_full_sync: bool = False
    items_discovered: int = 0
    files_transferred: int = 0
    files_skipped: int = 0
    files_missing: int = 0
    transfer_failures: int = 0
    bytes_transferred: int = 0
    orphans_deleted: int = 0
    matches: int = 0
    metadata_synced: int = 0
    metadata_skipped: int = 0
    metadata_errors: int = 0
    watch_states_synced: int = 0
    watch_state_errors: int = 0
    dead_letters: list[FailedItem] = field(default_factory=list)

    @property
    def duration(self) -> float:
        end = self.end_time or datetime.now()
        return (end - self.start_time).total_seconds()

    def as_dict(self) -> dict:
        """Plain counters, used for log events and hooks."""
        return {
            "items_discovered": self.items_discovered,
            "files_transferred": self.files_transferred,
            "files_skipped": self.files_skipped,
            "files_missing": self.files_missing,
            "transfer_failures": self.transfer_failures,
            "bytes_transferred": self.bytes_transferred,
            "orphans_deleted": self.orphans_deleted,
            "matches": self.matches,
            "metadata_synced": self.metadata_synced,
            "metadata_skipped": self.metadata_skipped,
            "metadata_errors": self.metadata_errors,
            "watch_states_synced": self.watch_states_synced,
            "watch_state_errors": self.watch_state_errors,
            "dead_letters": len(self.dead_letters),
            "duration_sec": round(self.duration, 1),
        }
