"""Tests for content discovery and matching."""

from __future__ import annotations

from unittest.mock import MagicMock

from conftest import make_enhanced, make_item

from syncarr.api.plex import PlexApiError
from syncarr.cli.logic.discovery import ContentDiscovery, hydrate_item
from syncarr.cli.logic.matcher import ContentMatcher
from syncarr.models import ItemKind, Library


def _show_with_episodes(plex: MagicMock) -> None:
    plex.get_item_detail.return_value = make_item("10", "Show", ItemKind.SERIES)
    plex.get_episodes.return_value = [
        make_item("11", "Pilot", ItemKind.EPISODE, files=("/data/tv/Show/Show.S01E01.mkv",)),
        make_item("12", "Second", ItemKind.EPISODE, files=("/data/tv/Show/Show.S01E02.mkv",)),
    ]


class TestHydrateItem:
    """Tests for hydrate_item."""

    def test_movie_is_refetched(self, plex: MagicMock) -> None:
        """Movies should be replaced by their full detail record."""
        detail = make_item("1", "Film", files=("/data/Film.mkv",))
        plex.get_item_detail.return_value = detail

        hydrated = hydrate_item(plex, make_item("1", "Film"), "7")

        assert [h.item for h in hydrated] == [detail]
        assert hydrated[0].library_id == "7"

    def test_show_expands_to_episodes(self, plex: MagicMock) -> None:
        """A show should yield itself, carrying its episode files, then its episodes."""
        _show_with_episodes(plex)

        hydrated = hydrate_item(plex, make_item("10", "Show", ItemKind.SERIES), "2")

        assert [h.rating_key for h in hydrated] == ["10", "11", "12"]
        assert hydrated[0].backing_file_names() == ["Show.S01E01.mkv", "Show.S01E02.mkv"]
        assert hydrated[1].kind == ItemKind.EPISODE

    def test_episode_fetch_failure_keeps_show(self, plex: MagicMock) -> None:
        """A failed episode listing should still return the show."""
        plex.get_item_detail.return_value = make_item("10", "Show", ItemKind.SERIES)
        plex.get_episodes.side_effect = PlexApiError("boom")

        hydrated = hydrate_item(plex, make_item("10", "Show", ItemKind.SERIES), "2")

        assert [h.rating_key for h in hydrated] == ["10"]

    def test_episode_used_as_listed(self, plex: MagicMock) -> None:
        """Episodes should not be re-fetched."""
        episode = make_item("11", "Pilot", ItemKind.EPISODE)
        assert hydrate_item(plex, episode, "2")[0].item is episode
        plex.get_item_detail.assert_not_called()


class TestContentDiscovery:
    """Tests for ContentDiscovery.discover."""

    def test_discovers_across_libraries(self, plex: MagicMock) -> None:
        """Labelled items from every library should be hydrated in order."""
        plex.list_libraries.return_value = [
            Library(id="1", title="Movies", type="movie"),
            Library(id="2", title="More Movies", type="movie"),
        ]
        plex.list_items_with_label.side_effect = [
            [make_item("1", "A")],
            [make_item("2", "B")],
        ]
        plex.get_item_detail.side_effect = lambda key: make_item(key, f"full-{key}")

        items = ContentDiscovery(plex, "sync").discover()

        assert [(i.rating_key, i.library_id, i.item.title) for i in items] == [
            ("1", "1", "full-1"),
            ("2", "2", "full-2"),
        ]

    def test_hydration_failure_skips_item(self, plex: MagicMock) -> None:
        """An item that cannot be hydrated should be dropped, the rest kept."""
        plex.list_items_with_label.return_value = [make_item("1", "A"), make_item("2", "B")]

        def detail(key):
            if key == "1":
                raise PlexApiError("gone", status_code=404)
            return make_item(key, "B")

        plex.get_item_detail.side_effect = detail

        items = ContentDiscovery(plex, "sync").discover()

        assert [i.rating_key for i in items] == ["2"]

    def test_labelled_episode_not_duplicated(self, plex: MagicMock) -> None:
        """An episode labelled on its own should not appear twice."""
        _show_with_episodes(plex)
        plex.list_items_with_label.return_value = [
            make_item("10", "Show", ItemKind.SERIES),
            make_item("11", "Pilot", ItemKind.EPISODE),
        ]

        items = ContentDiscovery(plex, "sync").discover()

        assert [i.rating_key for i in items] == ["10", "11", "12"]

    def test_label_filter_fallback(self, plex: MagicMock) -> None:
        """A failing server-side filter should fall back to local filtering."""
        plex.list_items_with_label.side_effect = PlexApiError("bad filter", status_code=400)
        plex.get_library_content.return_value = [
            make_item("1", "A", labels=frozenset({"sync"})),
            make_item("2", "B", labels=frozenset({"other"})),
        ]
        plex.get_item_detail.side_effect = lambda key: make_item(key, "full")

        items = ContentDiscovery(plex, "sync").discover()

        assert [i.rating_key for i in items] == ["1"]


class TestContentMatcher:
    """Tests for file-name matching on the destination."""

    def test_matches_by_file_name(self, plex: MagicMock) -> None:
        """Items should pair on base file name despite different paths and keys."""
        plex.get_library_content.return_value = [make_item("900", "Film")]
        plex.get_item_detail.return_value = make_item("900", "Film", files=("/srv/media/movies/Film.mkv",))
        source = make_enhanced(rating_key="1", title="Film", files=("/data/movies/Film.mkv",))

        matches = ContentMatcher(plex).match([source])

        assert len(matches) == 1
        assert matches[0].destination.rating_key == "900"
        assert matches[0].file_name == "Film.mkv"

    def test_episode_matching(self, plex: MagicMock) -> None:
        """Episodes should match on their file names and shows on their episodes' files."""
        plex.get_library_content.return_value = [make_item("500", "Show", ItemKind.SERIES)]
        plex.get_item_detail.return_value = make_item("500", "Show", ItemKind.SERIES)
        plex.get_episodes.return_value = [
            make_item("501", "Pilot", ItemKind.EPISODE, files=("/srv/tv/Show.S01E01.mkv",)),
        ]
        source_show = make_enhanced(rating_key="10", title="Show", kind=ItemKind.SERIES, episode_files=("Show.S01E01.mkv",))
        source_episode = make_enhanced(
            rating_key="11", title="Pilot", kind=ItemKind.EPISODE, files=("/data/tv/Show.S01E01.mkv",)
        )

        matches = ContentMatcher(plex).match([source_show, source_episode])

        assert [(m.source.rating_key, m.destination.rating_key) for m in matches] == [("10", "500"), ("11", "501")]

    def test_unmatched_items_are_left_out(self, plex: MagicMock) -> None:
        """Items without a destination file should produce no match."""
        plex.get_library_content.return_value = []
        source = make_enhanced(rating_key="1", files=("/data/Film.mkv",))
        assert ContentMatcher(plex).match([source]) == []

    def test_first_file_wins(self, plex: MagicMock) -> None:
        """With several files, the first one found on the destination should be used."""
        plex.get_library_content.return_value = [make_item("900", "Film")]
        plex.get_item_detail.return_value = make_item("900", "Film", files=("/srv/Film.part2.mkv", "/srv/Film.part1.mkv"))
        source = make_enhanced(rating_key="1", files=("/data/Film.part1.mkv", "/data/Film.part2.mkv"))

        matches = ContentMatcher(plex).match([source])

        assert matches[0].file_name == "Film.part1.mkv"

    def test_library_failure_is_skipped(self, plex: MagicMock) -> None:
        """A destination library that cannot be listed should not stop indexing."""
        plex.list_libraries.return_value = [
            Library(id="1", title="Broken", type="movie"),
            Library(id="2", title="Movies", type="movie"),
        ]
        plex.get_library_content.side_effect = [PlexApiError("500"), [make_item("900", "Film")]]
        plex.get_item_detail.return_value = make_item("900", "Film", files=("/srv/Film.mkv",))

        items, series = ContentMatcher(plex).build_index()

        assert set(items) == {"Film.mkv"}
        assert series == {}
