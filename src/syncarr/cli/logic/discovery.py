"""Discovery of labelled content on a Plex server."""

import logging

from ...api.plex import PlexApi, PlexApiError
from ...models import CatalogItem, EnhancedItem, ItemKind

logger = logging.getLogger(__name__)


def hydrate_item(plex: PlexApi, item: CatalogItem, library_id: str) -> list[EnhancedItem]:
    """Load the complete record for a listed item.

    Movies and shows are re-fetched by key; episodes are used as listed.
    A show expands into itself followed by each of its episodes, and the
    show carries its episodes' file names so it can be matched by file.

    Raises:
        PlexApiError: If the detail fetch fails
    """
    if item.kind == ItemKind.EPISODE:
        return [EnhancedItem(item=item, library_id=library_id)]

    detail = plex.get_item_detail(item.rating_key)
    if detail.kind != ItemKind.SERIES:
        return [EnhancedItem(item=detail, library_id=library_id)]

    try:
        episodes = plex.get_episodes(detail.rating_key)
    except PlexApiError as e:
        logger.warning(f"Failed to load episodes of {detail.title}: {e}")
        episodes = []

    episode_files = tuple(name for episode in episodes for name in episode.file_names())
    enhanced = [EnhancedItem(item=detail, library_id=library_id, episode_files=episode_files)]
    enhanced.extend(EnhancedItem(item=episode, library_id=library_id) for episode in episodes)
    return enhanced


class ContentDiscovery:
    """Finds every item carrying the sync label on the source server."""

    def __init__(self, plex: PlexApi, label: str):
        """Initialize discovery.

        Args:
            plex: Source server client
            label: Label marking items to sync
        """
        self.plex = plex
        self.label = label

    def discover(self) -> list[EnhancedItem]:
        """Return hydrated items carrying the label, in library order.

        Raises:
            PlexApiError: If the library list cannot be fetched
        """
        libraries = self.plex.list_libraries()
        discovered = []
        seen = set()

        for library in libraries:
            listed = self._list_labelled(library.id, library.title)
            logger.debug(f"Library {library.title}: {len(listed)} items labelled '{self.label}'")

            for item in listed:
                if item.rating_key in seen:
                    continue
                try:
                    hydrated = hydrate_item(self.plex, item, library.id)
                except PlexApiError as e:
                    logger.warning(f"Failed to load full metadata for {item.title} ({item.rating_key}): {e}")
                    continue

                for enhanced in hydrated:
                    # Labelled episodes may already have come in with their show
                    if enhanced.rating_key in seen:
                        continue
                    seen.add(enhanced.rating_key)
                    discovered.append(enhanced)

        logger.info(f"Discovered {len(discovered)} items labelled '{self.label}'")
        return discovered

    def _list_labelled(self, library_id: str, library_title: str) -> list[CatalogItem]:
        try:
            return self.plex.list_items_with_label(library_id, self.label)
        except PlexApiError as e:
            logger.warning(
                f"Label filter failed for library {library_title}, filtering locally: {e}"
            )

        try:
            content = self.plex.get_library_content(library_id)
        except PlexApiError as e:
            logger.error(f"Failed to list library {library_title}: {e}")
            return []

        return [item for item in content if self.label in item.labels]
