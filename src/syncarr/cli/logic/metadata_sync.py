"""Metadata comparison and reconciliation between matched items."""

import logging
from enum import Enum
from typing import Optional

from ... import events
from ...api.plex import PlexApi, PlexApiError
from ...models import CatalogItem, ItemKind

logger = logging.getLogger(__name__)

# Ratings are equal unless they differ by more than this many tenths.
# Two tenths keeps 7.2 and 7.4 equal while 7.2 and 7.5 differ; one tenth
# would split 7.2 and 7.4.
RATING_TOLERANCE_TENTHS = 2

_WORK_TEXT = ("title", "original_title", "title_sort", "studio", "content_rating", "tagline", "summary", "thumb", "art")
_TAGS = ("labels", "genres", "collections")
_RATINGS = ("rating", "audience_rating", "user_rating")

FIELD_SETS = {
    ItemKind.WORK: {
        "exact": _WORK_TEXT + ("year",),
        "rating": _RATINGS,
        "tags": _TAGS,
    },
    ItemKind.SERIES: {
        "exact": _WORK_TEXT + ("network", "year"),
        "rating": _RATINGS,
        "tags": _TAGS,
    },
    ItemKind.EPISODE: {
        "exact": ("title", "summary", "content_rating", "year", "thumb"),
        "rating": ("user_rating",),
        "tags": (),
    },
}

# Tag fields written to the destination, keyed by item attribute
PUSHED_TAGS = {
    ItemKind.WORK: {"labels": "label", "genres": "genre"},
    ItemKind.SERIES: {"labels": "label", "genres": "genre"},
    ItemKind.EPISODE: {},
}


class MetadataSyncError(Exception):
    """Raised when one or more metadata writes fail."""

    def __init__(self, message: str, errors: Optional[list[str]] = None):
        super().__init__(message)
        self.errors = errors or []


class WatchDirection(Enum):
    """Which side a watch state was copied to."""
    TO_DESTINATION = "to_destination"
    TO_SOURCE = "to_source"


def ratings_equal(source: Optional[float], dest: Optional[float]) -> bool:
    """Compare ratings in tenths, tolerating float rounding noise."""
    source_tenths = round((source or 0.0) * 10)
    dest_tenths = round((dest or 0.0) * 10)
    return abs(source_tenths - dest_tenths) <= RATING_TOLERANCE_TENTHS


class MetadataDiffer:
    """Finds descriptive differences between two items of the same kind."""

    def find_differences(self, source: CatalogItem, dest: CatalogItem) -> list[str]:
        """List human-readable differences, empty when the items agree."""
        fields = FIELD_SETS.get(source.kind)
        if fields is None:
            return [f"unsupported item kind: {source.kind}"]
        if dest.kind != source.kind:
            return [f"kind differs: {source.kind.value} vs {dest.kind.value}"]

        differences = []
        for name in fields["exact"]:
            source_value = getattr(source, name)
            dest_value = getattr(dest, name)
            if source_value != dest_value:
                if name == "summary":
                    differences.append("summary differs")
                else:
                    differences.append(f"{name} differs: {source_value!r} vs {dest_value!r}")

        for name in fields["rating"]:
            source_value = getattr(source, name)
            dest_value = getattr(dest, name)
            if not ratings_equal(source_value, dest_value):
                differences.append(f"{name} differs: {source_value} vs {dest_value}")

        for name in fields["tags"]:
            source_tags = set(getattr(source, name))
            dest_tags = set(getattr(dest, name))
            if source_tags != dest_tags:
                differences.append(f"{name} differ: {sorted(source_tags)} vs {sorted(dest_tags)}")

        return differences

    def needs_sync(self, source: CatalogItem, dest: CatalogItem) -> bool:
        return bool(self.find_differences(source, dest))


class MetadataSyncer:
    """Pushes source metadata to the destination and reconciles watch state."""

    def __init__(
        self,
        source: PlexApi,
        destination: PlexApi,
        dry_run: bool = False,
        sync_descriptive_fields: bool = False,
    ):
        """Initialize syncer.

        Args:
            source: Source server client
            destination: Destination server client
            dry_run: Log writes instead of performing them
            sync_descriptive_fields: Also write title and summary
        """
        self.source = source
        self.destination = destination
        self.dry_run = dry_run
        self.sync_descriptive_fields = sync_descriptive_fields

    def apply(self, source: CatalogItem, dest: CatalogItem, dest_library_id: str):
        """Make the destination item's rating and tags match the source.

        Raises:
            MetadataSyncError: If any write failed
        """
        if not dest.rating_key:
            raise MetadataSyncError(f"Destination key missing for {source.title}")

        errors = []
        type_code = dest.kind.type_code

        if source.user_rating and source.user_rating > 0 and not ratings_equal(source.user_rating, dest.user_rating):
            self._write(
                errors,
                f"user rating {source.user_rating}",
                self.destination.set_rating,
                dest.rating_key,
                source.user_rating,
            )

        for attr, field in PUSHED_TAGS.get(source.kind, {}).items():
            wanted = set(getattr(source, attr))
            current = set(getattr(dest, attr))
            if wanted == current:
                continue
            if wanted:
                self._write(
                    errors,
                    f"{field} {sorted(wanted)}",
                    self.destination.set_field,
                    dest.rating_key,
                    dest_library_id,
                    type_code,
                    field,
                    sorted(wanted),
                )
            extra = current - wanted
            if extra:
                self._write(
                    errors,
                    f"remove {field} {sorted(extra)}",
                    self.destination.remove_field_values,
                    dest.rating_key,
                    dest_library_id,
                    type_code,
                    field,
                    sorted(extra),
                )

        if self.sync_descriptive_fields:
            self.apply_title(source, dest, dest_library_id, errors)
            self.apply_summary(source, dest, dest_library_id, errors)

        if errors:
            raise MetadataSyncError(
                f"{len(errors)} metadata updates failed for {source.title}", errors
            )

    def apply_title(self, source: CatalogItem, dest: CatalogItem, dest_library_id: str, errors: list):
        if source.title and source.title != dest.title:
            self._write(
                errors,
                f"title {source.title!r}",
                self.destination.set_title,
                dest.rating_key,
                dest_library_id,
                dest.kind.type_code,
                source.title,
            )

    def apply_summary(self, source: CatalogItem, dest: CatalogItem, dest_library_id: str, errors: list):
        if source.summary is not None and source.summary != dest.summary:
            self._write(
                errors,
                "summary",
                self.destination.set_summary,
                dest.rating_key,
                dest_library_id,
                dest.kind.type_code,
                source.summary,
            )

    def _write(self, errors: list, description: str, call, *args):
        if self.dry_run:
            logger.info(f"[dry run] Would set {description} on item {args[0]}")
            return
        try:
            call(*args)
            logger.debug(f"Set {description} on item {args[0]}")
        except (PlexApiError, ValueError) as e:
            errors.append(f"{description}: {e}")
            logger.error(f"Failed to set {description} on item {args[0]}: {e}")

    def reconcile_watch_state(self, source: CatalogItem, dest: CatalogItem) -> Optional[WatchDirection]:
        """Copy watch state toward whichever side is behind.

        Raises:
            PlexApiError: If the write fails
        """
        direction = resolve_watch_direction(source, dest)
        if direction is None:
            return None

        if direction == WatchDirection.TO_DESTINATION:
            target, key = self.destination, dest.rating_key
        else:
            target, key = self.source, source.rating_key

        if self.dry_run:
            logger.info(f"[dry run] Would mark {source.title} watched ({direction.value})")
            return direction

        # A scrobble adds a view stamped now, so with both sides watched the
        # next cycle may send a view back the other way. Counts do not converge.
        target.set_watch_state(key, True)
        events.watched_state_sync(
            source.rating_key,
            source.display_title(),
            source.watch_state.watched,
            dest.watch_state.watched,
        )
        return direction


def resolve_watch_direction(source: CatalogItem, dest: CatalogItem) -> Optional[WatchDirection]:
    """Decide which way watch state should flow, if at all.

    One side watched: it wins when it was viewed more recently than the
    other side, or the other side has no timestamp. Both watched: higher
    view count wins, then the newer view. Anything else stays as is.
    """
    src = source.watch_state
    dst = dest.watch_state

    if src.watched and not dst.watched:
        if dst.last_viewed_at == 0 or src.last_viewed_at > dst.last_viewed_at:
            return WatchDirection.TO_DESTINATION
        return None

    if dst.watched and not src.watched:
        if src.last_viewed_at == 0 or dst.last_viewed_at > src.last_viewed_at:
            return WatchDirection.TO_SOURCE
        return None

    if src.watched and dst.watched:
        if src.view_count > dst.view_count:
            return WatchDirection.TO_DESTINATION
        if dst.view_count > src.view_count:
            return WatchDirection.TO_SOURCE
        if src.last_viewed_at > dst.last_viewed_at:
            return WatchDirection.TO_DESTINATION
        if dst.last_viewed_at > src.last_viewed_at:
            return WatchDirection.TO_SOURCE

    return None
