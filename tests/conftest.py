"""Shared fixtures for syncarr tests."""

from __future__ import annotations

from typing import Any
from unittest.mock import MagicMock

import pytest

from syncarr.api.plex import PlexApi
from syncarr.models import CatalogItem, EnhancedItem, ItemKind, Library, MediaPart


def make_item(
    rating_key: str = "1",
    title: str = "Movie",
    kind: ItemKind = ItemKind.WORK,
    files: tuple = (),
    **fields: Any,
) -> CatalogItem:
    """Build a CatalogItem with backing files given as paths."""
    parts = tuple(MediaPart(file=path, size=100) for path in files)
    return CatalogItem(rating_key=rating_key, title=title, kind=kind, parts=parts, **fields)


def make_enhanced(library_id: str = "1", **kwargs: Any) -> EnhancedItem:
    """Build an EnhancedItem around make_item()."""
    episode_files = kwargs.pop("episode_files", ())
    return EnhancedItem(item=make_item(**kwargs), library_id=library_id, episode_files=episode_files)


class FakeClock:
    """Monotonic clock advanced only by the fake sleep."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def base_env() -> dict[str, str]:
    """Minimal environment accepted by Config."""
    return {
        "SOURCE_PLEX_HOST": "source.local",
        "SOURCE_PLEX_TOKEN": "source-token",
        "DEST_PLEX_HOST": "dest.local",
        "DEST_PLEX_TOKEN": "dest-token",
        "SYNC_LABEL": "sync",
    }


@pytest.fixture
def fake_clock() -> FakeClock:
    """Create a fake clock."""
    return FakeClock()


@pytest.fixture
def plex() -> MagicMock:
    """Create a mocked PlexApi with one movie library."""
    api = MagicMock(spec=PlexApi)
    api.name = "mock"
    api.list_libraries.return_value = [Library(id="1", title="Movies", type="movie")]
    api.list_activities.return_value = []
    return api
