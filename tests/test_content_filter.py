"""Restricted content predicate tests."""

from __future__ import annotations

from types import SimpleNamespace

import pytest

from app.config import Settings
from app.content_filter import ContentFilter

CLEAN = {
    "name": "Soul Land",
    "overview": "Tang San is reborn in a world of spirit masters.",
    "genre_ids": [16, 10759],
}


@pytest.fixture
def content_filter() -> ContentFilter:
    return ContentFilter()


def test_clean_item_is_not_restricted(content_filter: ContentFilter) -> None:
    assert content_filter.is_restricted(CLEAN) is False


def test_category_match_is_case_insensitive(content_filter: ContentFilter) -> None:
    assert content_filter.is_restricted({**CLEAN, "category": " kids "}) is True
    assert content_filter.is_restricted({**CLEAN, "category": "Action"}) is False


def test_sentinel_genre_id_marks_restricted(content_filter: ContentFilter) -> None:
    assert content_filter.is_restricted({**CLEAN, "genre_ids": [16, 10762]}) is True


def test_genre_name_terms_mark_restricted(content_filter: ContentFilter) -> None:
    item = {**CLEAN, "genre_ids": [], "genres": [{"id": 10751, "name": "Family"}]}

    assert content_filter.is_restricted(item) is True


@pytest.mark.parametrize(
    "overrides",
    [
        {"name": "Kids Adventure Club"},
        {"overview": "A show for preschool viewers."},
        {"overview": "Lessons for CHILDREN of all ages."},
    ],
)
def test_title_and_overview_keywords_mark_restricted(
    content_filter: ContentFilter, overrides: dict[str, str]
) -> None:
    assert content_filter.is_restricted({**CLEAN, **overrides}) is True


def test_orm_like_objects_are_supported(content_filter: ContentFilter) -> None:
    genre = SimpleNamespace(id=10762, name="Kids")
    item = SimpleNamespace(
        title="Little Heroes",
        overview="",
        category=None,
        genre_ids=[],
        genres=[genre],
    )

    assert content_filter.is_restricted(item) is True
    assert content_filter.is_restricted_genre(genre) is True
    assert content_filter.is_restricted_genre(SimpleNamespace(id=16, name="Animation")) is False


def test_partition_preserves_order(content_filter: ContentFilter) -> None:
    first = {**CLEAN, "name": "Jade Dynasty"}
    kids = {**CLEAN, "category": "Kids"}
    second = {**CLEAN, "name": "Link Click"}

    general, restricted = content_filter.partition([first, kids, second])

    assert general == [first, second]
    assert restricted == [kids]


def test_filter_built_from_settings() -> None:
    settings = Settings(
        _env_file=None,
        RESTRICTED_CATEGORY="Children",
        RESTRICTED_GENRE_IDS="10762,99",
        RESTRICTED_KEYWORDS="toddler",
    )
    content_filter = ContentFilter.from_settings(settings)

    assert content_filter.is_restricted({**CLEAN, "genre_ids": [99]}) is True
    assert content_filter.is_restricted({**CLEAN, "overview": "For a toddler"}) is True
    assert content_filter.is_restricted({**CLEAN, "overview": "For kids"}) is False
    assert content_filter.is_restricted({**CLEAN, "category": "children"}) is True


def test_stored_restricted_genres_mark_restricted(content_filter: ContentFilter) -> None:
    row = SimpleNamespace(
        title="Pandas",
        overview="Bamboo adventures.",
        category=None,
        genre_ids=[16, 10751],
        genres=[SimpleNamespace(id=16, name="Animation")],
        restricted_genres=[{"id": 10751, "name": "Kids & Family"}],
    )

    assert content_filter.is_restricted(row) is True
    assert content_filter.is_restricted(
        SimpleNamespace(**{**vars(row), "restricted_genres": []})
    ) is False
