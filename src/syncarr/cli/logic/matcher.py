"""Pair source items with destination items by backing file name."""

import logging

from ...api.plex import PlexApi, PlexApiError
from ...models import EnhancedItem, ItemKind, ItemMatch
from .discovery import hydrate_item

logger = logging.getLogger(__name__)


class ContentMatcher:
    """Matches items across servers by the base names of their files.

    Both servers index the same files under different keys, so the file
    name is the only identity they share.
    """

    def __init__(self, plex: PlexApi):
        """Initialize matcher.

        Args:
            plex: Destination server client
        """
        self.plex = plex

    def build_index(self) -> tuple[dict[str, EnhancedItem], dict[str, EnhancedItem]]:
        """Index destination content by file name.

        Returns:
            ``(items, series)``: file name -> item for movies and episodes,
            and episode file name -> owning show for shows. On a name
            collision the last item indexed wins.
        """
        items = {}
        series = {}

        for library in self.plex.list_libraries():
            try:
                content = self.plex.get_library_content(library.id)
            except PlexApiError as e:
                logger.warning(f"Failed to list destination library {library.title}: {e}")
                continue

            for listed in content:
                try:
                    hydrated = hydrate_item(self.plex, listed, library.id)
                except PlexApiError as e:
                    logger.warning(f"Failed to load destination item {listed.title}: {e}")
                    continue

                for enhanced in hydrated:
                    target = series if enhanced.kind == ItemKind.SERIES else items
                    for name in enhanced.backing_file_names():
                        target[name] = enhanced

        logger.debug(f"Indexed {len(items)} destination files, {len(series)} series files")
        return items, series

    def match(self, source_items: list[EnhancedItem]) -> list[ItemMatch]:
        """Pair each source item with the destination item sharing a file.

        The first of the source item's file names found in the index wins.
        Items without a match are left out.
        """
        items_index, series_index = self.build_index()
        matches = []

        for source in source_items:
            index = series_index if source.kind == ItemKind.SERIES else items_index
            match = None
            for name in source.backing_file_names():
                destination = index.get(name)
                if destination is not None:
                    match = ItemMatch(source=source, destination=destination, file_name=name)
                    break

            if match is None:
                logger.debug(f"No destination match for {source.title}")
                continue
            matches.append(match)

        logger.info(f"Matched {len(matches)} of {len(source_items)} items on destination")
        return matches
