"""Plex API client for library, metadata and activity operations."""

import logging
import xml.etree.ElementTree as ET
from typing import Optional

import requests

from ..models import Activity, CatalogItem, ItemKind, Library, MediaPart

logger = logging.getLogger(__name__)

LIBRARY_IDENTIFIER = "com.plexapp.plugins.library"
SCAN_ACTIVITY = "library.update.section"


class PlexApiError(Exception):
    """Plex API error."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class PlexApi:
    """Client for a single Plex Media Server."""

    APPLICATION_NAME = "syncarr"

    def __init__(self, base_url: str, token: str, name: str = "plex", timeout: int = 30):
        """Initialize Plex API client.

        Args:
            base_url: Server URL, e.g. https://plex.local:32400
            token: Plex authentication token
            name: Label used in log messages ("source" or "destination")
            timeout: Request timeout in seconds
        """
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.name = name
        self.timeout = timeout
        self.session = requests.Session()

    def _get_headers(self, accept: str = "application/json") -> dict:
        """Get headers for Plex API requests.

        Returns:
            Dictionary of headers
        """
        return {
            "X-Plex-Token": self.token,
            "X-Plex-Product": self.APPLICATION_NAME,
            "Accept": accept,
        }

    def _request(
        self,
        method: str,
        path: str,
        params=None,
        accept: str = "application/json",
    ) -> requests.Response:
        """Send a request and raise PlexApiError on transport or HTTP errors."""
        url = f"{self.base_url}{path}"
        try:
            response = self.session.request(
                method,
                url,
                headers=self._get_headers(accept),
                params=params,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise PlexApiError(f"{method} {path} on {self.name} failed: {e}")

        if not 200 <= response.status_code < 300:
            raise PlexApiError(
                f"{method} {path} on {self.name} returned HTTP {response.status_code}: "
                f"{response.text[:200]}",
                status_code=response.status_code,
            )
        return response

    def _get_container(self, path: str, params=None) -> dict:
        response = self._request("GET", path, params=params)
        try:
            data = response.json()
        except ValueError as e:
            raise PlexApiError(f"Invalid JSON from {self.name} {path}: {e}")
        return data.get("MediaContainer", {}) or {}

    def test_connection(self):
        """Check that the server is reachable and the token is accepted.

        Raises:
            PlexApiError: If the server cannot be reached
        """
        self._request("GET", "/identity")

    def ping(self) -> bool:
        """Test if the server is reachable.

        Returns:
            True if reachable, False otherwise
        """
        try:
            self.test_connection()
            return True
        except PlexApiError as e:
            logger.debug(f"Ping to {self.name} failed: {e}")
            return False

    def list_libraries(self) -> list[Library]:
        """List library sections on the server.

        Raises:
            PlexApiError: If API request fails
        """
        container = self._get_container("/library/sections")
        libraries = []
        for directory in container.get("Directory", []) or []:
            libraries.append(
                Library(
                    id=str(directory.get("key", "")),
                    title=directory.get("title", ""),
                    type=directory.get("type", ""),
                    agent=directory.get("agent"),
                )
            )
        logger.debug(f"Found {len(libraries)} libraries on {self.name}")
        return libraries

    def list_items_with_label(self, library_id: str, label: str) -> list[CatalogItem]:
        """List items in a library carrying a label, filtered server-side.

        Returned records are usually abbreviated; hydrate them with
        :meth:`get_item_detail`.
        """
        container = self._get_container(
            f"/library/sections/{library_id}/all", params={"label": label}
        )
        return self._parse_metadata_list(container)

    def get_library_content(self, library_id: str) -> list[CatalogItem]:
        """List every item in a library."""
        container = self._get_container(f"/library/sections/{library_id}/all")
        return self._parse_metadata_list(container)

    def get_item_detail(self, rating_key: str) -> CatalogItem:
        """Fetch the complete record for an item.

        Raises:
            PlexApiError: If the request fails or the item does not exist
        """
        container = self._get_container(f"/library/metadata/{rating_key}")
        items = self._parse_metadata_list(container)
        if not items:
            raise PlexApiError(f"Item {rating_key} not found on {self.name}", status_code=404)
        return items[0]

    def get_episodes(self, series_key: str) -> list[CatalogItem]:
        """Fetch every episode of a series."""
        container = self._get_container(f"/library/metadata/{series_key}/allLeaves")
        return self._parse_metadata_list(container)

    def set_field(
        self,
        rating_key: str,
        library_id: str,
        type_code: int,
        field: str,
        values: list[str],
    ):
        """Replace a tag field (label, genre, ...) and lock it.

        Args:
            rating_key: Item to update
            library_id: Library section the item lives in
            type_code: Plex media type code (1 movie, 2 show, 4 episode)
            field: Tag field name, e.g. "label" or "genre"
            values: Tag values to set
        """
        params = self._edit_params(rating_key, type_code)
        for i, value in enumerate(values):
            params.append((f"{field}[{i}].tag.tag", value))
        params.append((f"{field}.locked", "1"))
        self._request("PUT", f"/library/sections/{library_id}/all", params=params)
        logger.debug(f"Set {field} on {self.name} item {rating_key}: {values}")

    def remove_field_values(
        self,
        rating_key: str,
        library_id: str,
        type_code: int,
        field: str,
        values: list[str],
        lock: bool = True,
    ):
        """Remove specific values from a tag field."""
        if not values:
            return
        params = self._edit_params(rating_key, type_code)
        params.append((f"{field}[].tag.tag-", ",".join(values)))
        params.append((f"{field}.locked", "1" if lock else "0"))
        self._request("PUT", f"/library/sections/{library_id}/all", params=params)
        logger.debug(f"Removed {field} values on {self.name} item {rating_key}: {values}")

    def set_basic_field(
        self,
        rating_key: str,
        library_id: str,
        type_code: int,
        field: str,
        value: str,
    ):
        """Set a plain text field such as title or summary and lock it."""
        params = self._edit_params(rating_key, type_code)
        params.append((f"{field}.value", value))
        params.append((f"{field}.locked", "1"))
        self._request("PUT", f"/library/sections/{library_id}/all", params=params)

    def set_title(self, rating_key: str, library_id: str, type_code: int, title: str):
        self.set_basic_field(rating_key, library_id, type_code, "title", title)

    def set_summary(self, rating_key: str, library_id: str, type_code: int, summary: str):
        self.set_basic_field(rating_key, library_id, type_code, "summary", summary)

    def set_rating(self, rating_key: str, rating: float):
        """Set the user rating (0-10) of an item.

        Raises:
            ValueError: If rating is out of range
        """
        if rating < 0 or rating > 10:
            raise ValueError(f"rating must be between 0 and 10, got {rating:.1f}")
        self._request(
            "GET",
            "/:/rate",
            params={
                "key": rating_key,
                "rating": f"{rating:.0f}",
                "identifier": LIBRARY_IDENTIFIER,
            },
        )

    def set_watch_state(self, rating_key: str, watched: bool):
        """Mark an item watched or unwatched."""
        endpoint = "/:/scrobble" if watched else "/:/unscrobble"
        self._request(
            "GET",
            endpoint,
            params={"key": rating_key, "identifier": LIBRARY_IDENTIFIER},
        )

    def trigger_scan(self, library_id: str):
        """Ask the server to scan a library for new files."""
        self._request("GET", f"/library/sections/{library_id}/refresh")

    def trigger_metadata_refresh(self, library_id: str):
        """Ask the server to refresh metadata for a whole library."""
        self._request("GET", f"/library/sections/{library_id}/refresh", params={"force": 1})

    def list_activities(self) -> list[Activity]:
        """List background activities currently running on the server.

        Raises:
            PlexApiError: If the request fails or the response is not XML
        """
        response = self._request("GET", "/activities", accept="application/xml")
        try:
            root = ET.fromstring(response.content)
        except ET.ParseError as e:
            raise PlexApiError(f"Failed to parse activities from {self.name}: {e}")

        activities = []
        for elem in root.findall("Activity"):
            context = elem.find("Context")
            section_id = context.get("librarySectionID") if context is not None else None
            activities.append(
                Activity(
                    uuid=elem.get("uuid", ""),
                    type=elem.get("type", ""),
                    title=elem.get("title", ""),
                    progress=_to_int(elem.get("progress")),
                    library_section_id=section_id,
                )
            )
        return activities

    def is_scan_in_progress(self) -> bool:
        return any(a.type == SCAN_ACTIVITY for a in self.list_activities())

    @staticmethod
    def _edit_params(rating_key: str, type_code: int) -> list:
        return [
            ("type", str(type_code)),
            ("id", rating_key),
            ("includeExternalMedia", "1"),
        ]

    def _parse_metadata_list(self, container: dict) -> list[CatalogItem]:
        items = []
        for metadata in container.get("Metadata", []) or []:
            item = self._parse_metadata(metadata)
            if item:
                items.append(item)
        return items

    def _parse_metadata(self, metadata: dict) -> Optional[CatalogItem]:
        """Parse metadata into CatalogItem.

        Args:
            metadata: Metadata dictionary from Plex API

        Returns:
            CatalogItem or None if type is not supported
        """
        kind = ItemKind.from_plex_type(metadata.get("type", ""))
        if kind is None:
            return None

        parts = []
        for media in metadata.get("Media", []) or []:
            for part in media.get("Part", []) or []:
                if part.get("file"):
                    parts.append(MediaPart(file=part["file"], size=_to_int(part.get("size"))))

        return CatalogItem(
            rating_key=_normalize_key(metadata.get("ratingKey")),
            title=metadata.get("title", ""),
            kind=kind,
            title_sort=metadata.get("titleSort"),
            original_title=metadata.get("originalTitle"),
            year=metadata.get("year"),
            summary=metadata.get("summary"),
            tagline=metadata.get("tagline"),
            content_rating=metadata.get("contentRating"),
            studio=metadata.get("studio"),
            network=metadata.get("network"),
            rating=_to_float(metadata.get("rating")),
            audience_rating=_to_float(metadata.get("audienceRating")),
            user_rating=_to_float(metadata.get("userRating")),
            view_count=_to_int(metadata.get("viewCount")),
            last_viewed_at=_to_int(metadata.get("lastViewedAt")),
            view_offset=_to_int(metadata.get("viewOffset")),
            thumb=metadata.get("thumb"),
            art=metadata.get("art"),
            labels=_tags(metadata.get("Label")),
            genres=_tags(metadata.get("Genre")),
            collections=_tags(metadata.get("Collection")),
            parts=tuple(parts),
            index=metadata.get("index"),
            parent_index=metadata.get("parentIndex"),
            grandparent_title=metadata.get("grandparentTitle"),
            grandparent_rating_key=_normalize_key(metadata.get("grandparentRatingKey")) or None,
        )


def _normalize_key(value) -> str:
    """Rating keys arrive as JSON strings or integers."""
    if value is None:
        return ""
    return str(value)


def _tags(entries) -> frozenset:
    return frozenset(e.get("tag") for e in entries or [] if e.get("tag"))


def _to_float(value) -> Optional[float]:
    if isinstance(value, list):
        value = value[0] if value else None
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _to_int(value) -> int:
    if value is None or value == "":
        return 0
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0
