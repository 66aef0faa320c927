"""Tests for metadata comparison, pushes and watch-state reconciliation."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from conftest import make_item

from syncarr.api.plex import PlexApi, PlexApiError
from syncarr.cli.logic.metadata_sync import (
    RATING_TOLERANCE_TENTHS,
    MetadataDiffer,
    MetadataSyncer,
    MetadataSyncError,
    WatchDirection,
    ratings_equal,
    resolve_watch_direction,
)
from syncarr.models import ItemKind


@pytest.fixture
def source() -> MagicMock:
    """Create a mocked source server."""
    return MagicMock(spec=PlexApi)


@pytest.fixture
def destination() -> MagicMock:
    """Create a mocked destination server."""
    return MagicMock(spec=PlexApi)


class TestRatingsEqual:
    """Tests for the rating tolerance."""

    @pytest.mark.parametrize(
        "src, dst, equal",
        [
            (7.2, 7.4, True),
            (7.2, 7.5, False),
            (7.2, 7.2, True),
            (7.4, 7.2, True),
            (None, None, True),
            (None, 0.1, True),
            (None, 5.0, False),
            (0.1 + 0.2, 0.3, True),
        ],
    )
    def test_tolerance(self, src, dst, equal: bool) -> None:
        """Ratings within two tenths should be equal; missing counts as zero."""
        assert ratings_equal(src, dst) is equal

    def test_tolerance_constant(self) -> None:
        """The tolerance should be two tenths, the smallest that keeps 7.2 and 7.4 equal."""
        assert RATING_TOLERANCE_TENTHS == 2
        assert ratings_equal(7.2, 7.4) and not ratings_equal(7.2, 7.5)


class TestMetadataDiffer:
    """Tests for MetadataDiffer."""

    def test_identical_items(self) -> None:
        """Identical items should not need syncing."""
        item = make_item(year=2020, labels=frozenset({"a"}), user_rating=8.0)
        assert MetadataDiffer().needs_sync(item, item) is False

    def test_tag_sets_ignore_order(self) -> None:
        """Tag sets should compare as sets."""
        src = make_item(genres=frozenset({"Drama", "Comedy"}))
        dst = make_item(genres=frozenset({"Comedy", "Drama"}))
        assert MetadataDiffer().find_differences(src, dst) == []

    def test_reports_field_differences(self) -> None:
        """Differing text fields and tag sets should each be reported."""
        src = make_item(year=2020, studio="A24", labels=frozenset({"sync", "kids"}))
        dst = make_item(year=2021, studio="A24", labels=frozenset({"sync"}))

        differences = MetadataDiffer().find_differences(src, dst)

        assert any(d.startswith("year differs") for d in differences)
        assert any(d.startswith("labels differ") for d in differences)
        assert not any(d.startswith("studio") for d in differences)

    def test_rating_within_tolerance_is_equal(self) -> None:
        """Ratings within tolerance should not be reported."""
        src = make_item(rating=7.2, audience_rating=6.0)
        dst = make_item(rating=7.4, audience_rating=6.1)
        assert MetadataDiffer().needs_sync(src, dst) is False

    def test_episode_field_set(self) -> None:
        """Episodes should ignore tags and only compare the user rating."""
        src = make_item(kind=ItemKind.EPISODE, labels=frozenset({"x"}), rating=9.0)
        dst = make_item(kind=ItemKind.EPISODE, rating=1.0)
        assert MetadataDiffer().needs_sync(src, dst) is False

    def test_kind_mismatch(self) -> None:
        """Items of different kinds should always be reported."""
        src = make_item(kind=ItemKind.WORK)
        dst = make_item(kind=ItemKind.EPISODE)
        assert MetadataDiffer().needs_sync(src, dst) is True


class TestMetadataSyncer:
    """Tests for MetadataSyncer.apply."""

    def test_pushes_user_rating(self, source: MagicMock, destination: MagicMock) -> None:
        """A differing user rating should be written to the destination."""
        src = make_item("1", user_rating=8.0)
        dst = make_item("900", user_rating=4.0)

        MetadataSyncer(source, destination).apply(src, dst, "3")

        destination.set_rating.assert_called_once_with("900", 8.0)

    def test_zero_rating_not_pushed(self, source: MagicMock, destination: MagicMock) -> None:
        """An unrated source item should not clear the destination rating."""
        MetadataSyncer(source, destination).apply(make_item("1"), make_item("900", user_rating=6.0), "3")
        destination.set_rating.assert_not_called()

    def test_tags_replaced_as_set(self, source: MagicMock, destination: MagicMock) -> None:
        """Destination tags should be set to the source set and extras removed."""
        src = make_item("1", labels=frozenset({"sync", "kids"}), genres=frozenset({"Drama"}))
        dst = make_item("900", labels=frozenset({"sync", "old"}), genres=frozenset({"Drama"}))

        MetadataSyncer(source, destination).apply(src, dst, "3")

        destination.set_field.assert_called_once_with("900", "3", 1, "label", ["kids", "sync"])
        destination.remove_field_values.assert_called_once_with("900", "3", 1, "label", ["old"])

    def test_series_type_code(self, source: MagicMock, destination: MagicMock) -> None:
        """Shows should be updated with type code 2."""
        src = make_item("1", kind=ItemKind.SERIES, genres=frozenset({"Drama"}))
        dst = make_item("900", kind=ItemKind.SERIES)

        MetadataSyncer(source, destination).apply(src, dst, "4")

        destination.set_field.assert_called_once_with("900", "4", 2, "genre", ["Drama"])

    def test_errors_are_collected(self, source: MagicMock, destination: MagicMock) -> None:
        """Every failed write should be attempted and reported together."""
        destination.set_rating.side_effect = PlexApiError("rate failed")
        destination.set_field.side_effect = PlexApiError("tag failed")
        src = make_item("1", user_rating=9.0, labels=frozenset({"sync"}))
        dst = make_item("900")

        with pytest.raises(MetadataSyncError) as exc_info:
            MetadataSyncer(source, destination).apply(src, dst, "3")

        assert len(exc_info.value.errors) == 2

    def test_missing_destination_key(self, source: MagicMock, destination: MagicMock) -> None:
        """An empty destination key should fail without any write."""
        with pytest.raises(MetadataSyncError, match="key missing"):
            MetadataSyncer(source, destination).apply(make_item("1", user_rating=5.0), make_item(""), "3")
        destination.set_rating.assert_not_called()

    def test_dry_run(self, source: MagicMock, destination: MagicMock) -> None:
        """Dry run should not write anything."""
        src = make_item("1", user_rating=9.0, labels=frozenset({"sync"}))
        MetadataSyncer(source, destination, dry_run=True).apply(src, make_item("900"), "3")
        destination.set_rating.assert_not_called()
        destination.set_field.assert_not_called()

    def test_descriptive_fields(self, source: MagicMock, destination: MagicMock) -> None:
        """Title and summary should be pushed when enabled."""
        src = make_item("1", title="Right", summary="Plot")
        dst = make_item("900", title="Wrong", summary="")

        MetadataSyncer(source, destination, sync_descriptive_fields=True).apply(src, dst, "3")

        destination.set_title.assert_called_once_with("900", "3", 1, "Right")
        destination.set_summary.assert_called_once_with("900", "3", 1, "Plot")


class TestWatchState:
    """Tests for watch-state reconciliation."""

    def test_source_watched_dest_never_viewed(self) -> None:
        """A watched source should win over a never-viewed destination."""
        src = make_item(view_count=1, last_viewed_at=100)
        dst = make_item()
        assert resolve_watch_direction(src, dst) == WatchDirection.TO_DESTINATION

    def test_dest_watched_more_recently(self) -> None:
        """A destination watched after the source's last view should win."""
        src = make_item(last_viewed_at=100)
        dst = make_item(view_count=1, last_viewed_at=200)
        assert resolve_watch_direction(src, dst) == WatchDirection.TO_SOURCE

    def test_stale_watched_side_does_not_win(self) -> None:
        """A watched side older than the other side's last view should not win."""
        src = make_item(view_count=1, last_viewed_at=100)
        dst = make_item(view_offset=5000, last_viewed_at=200)
        assert resolve_watch_direction(src, dst) is None

    def test_both_watched_higher_count_wins(self) -> None:
        """With both watched, the higher view count should win."""
        src = make_item(view_count=3, last_viewed_at=100)
        dst = make_item(view_count=1, last_viewed_at=200)
        assert resolve_watch_direction(src, dst) == WatchDirection.TO_DESTINATION

    def test_both_watched_tie_newer_wins(self) -> None:
        """With equal counts, the newer view should win."""
        src = make_item(view_count=2, last_viewed_at=100)
        dst = make_item(view_count=2, last_viewed_at=200)
        assert resolve_watch_direction(src, dst) == WatchDirection.TO_SOURCE

    def test_scrobbled_side_wins_the_next_tie(self) -> None:
        """After catching up by one view, the freshly scrobbled side should win the tie."""
        src = make_item(view_count=2, last_viewed_at=100)
        dst = make_item(view_count=1, last_viewed_at=50)
        assert resolve_watch_direction(src, dst) == WatchDirection.TO_DESTINATION

        scrobbled = make_item(view_count=2, last_viewed_at=300)
        assert resolve_watch_direction(src, scrobbled) == WatchDirection.TO_SOURCE

    def test_equal_states(self) -> None:
        """Identical or unwatched states should need nothing."""
        assert resolve_watch_direction(make_item(), make_item()) is None
        same = make_item(view_count=1, last_viewed_at=100)
        assert resolve_watch_direction(same, same) is None

    def test_reconcile_marks_losing_side(self, source: MagicMock, destination: MagicMock) -> None:
        """Reconciliation should scrobble the side that is behind."""
        src = make_item("1", view_count=1, last_viewed_at=100)
        dst = make_item("900")

        direction = MetadataSyncer(source, destination).reconcile_watch_state(src, dst)

        assert direction == WatchDirection.TO_DESTINATION
        destination.set_watch_state.assert_called_once_with("900", True)
        source.set_watch_state.assert_not_called()

    def test_reconcile_to_source(self, source: MagicMock, destination: MagicMock) -> None:
        """A destination that is ahead should update the source."""
        src = make_item("1")
        dst = make_item("900", view_count=1, last_viewed_at=100)

        MetadataSyncer(source, destination).reconcile_watch_state(src, dst)

        source.set_watch_state.assert_called_once_with("1", True)
