"""Detection of restricted (child-oriented) catalog content.

A single predicate decides whether an item belongs in the dedicated kids
listing or in the general listings. It accepts ORM rows, pydantic models and
raw provider payloads so discovery results can be screened before they are
stored.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Sequence, TypeVar

from .config import Settings

T = TypeVar("T")


def _read(item: object, *names: str) -> Any:
    """Return the first non-``None`` attribute or key among ``names``."""

    for name in names:
        if isinstance(item, Mapping):
            value = item.get(name)
        else:
            value = getattr(item, name, None)
        if value is not None:
            return value
    return None


def _genre_entries(item: object) -> list[tuple[int | None, str]]:
    entries: list[tuple[int | None, str]] = []
    # Stored rows keep restricted genres apart from the linked ones.
    for attribute in ("genres", "restricted_genres"):
        genres = _read(item, attribute)
        if not isinstance(genres, Iterable) or isinstance(genres, (str, bytes)):
            continue
        for genre in genres:
            genre_id = _read(genre, "id")
            name = _read(genre, "name")
            entries.append(
                (
                    int(genre_id) if isinstance(genre_id, int) else None,
                    name if isinstance(name, str) else "",
                )
            )
    return entries


def _genre_ids(item: object) -> set[int]:
    ids: set[int] = set()
    raw_ids = _read(item, "genre_ids")
    if isinstance(raw_ids, Iterable) and not isinstance(raw_ids, (str, bytes)):
        for value in raw_ids:
            try:
                ids.add(int(value))
            except (TypeError, ValueError):
                continue
    ids.update(genre_id for genre_id, _ in _genre_entries(item) if genre_id is not None)
    return ids


@dataclass(frozen=True, slots=True)
class ContentFilter:
    """Predicate separating restricted content from general listings."""

    category: str = "Kids"
    genre_ids: frozenset[int] = frozenset({10762})
    genre_terms: tuple[str, ...] = ("kids", "family")
    keywords: tuple[str, ...] = ("kids", "children", "child", "family", "preschool")

    @classmethod
    def from_settings(cls, settings: Settings) -> "ContentFilter":
        return cls(
            category=settings.restricted_category,
            genre_ids=frozenset(settings.restricted_genre_ids),
            genre_terms=tuple(settings.restricted_genre_terms),
            keywords=tuple(settings.restricted_keywords),
        )

    def is_restricted_genre(self, genre: object) -> bool:
        """Return ``True`` when a single genre marks content as restricted."""

        genre_id = _read(genre, "id")
        if isinstance(genre_id, int) and genre_id in self.genre_ids:
            return True
        name = _read(genre, "name")
        if not isinstance(name, str):
            return False
        folded = name.casefold()
        return any(term in folded for term in self.genre_terms)

    def is_restricted(self, item: object) -> bool:
        """Return ``True`` when ``item`` is child-oriented content."""

        category = _read(item, "category")
        if (
            isinstance(category, str)
            and self.category
            and category.strip().casefold() == self.category.casefold()
        ):
            return True

        if _genre_ids(item) & self.genre_ids:
            return True

        for _, name in _genre_entries(item):
            folded = name.casefold()
            if any(term in folded for term in self.genre_terms):
                return True

        title = _read(item, "title", "name")
        overview = _read(item, "overview")
        haystacks = [
            value.casefold() for value in (title, overview) if isinstance(value, str)
        ]
        return any(
            keyword in text for keyword in self.keywords for text in haystacks
        )

    def partition(self, items: Sequence[T]) -> tuple[list[T], list[T]]:
        """Split ``items`` into (general, restricted) preserving order."""

        general: list[T] = []
        restricted: list[T] = []
        for item in items:
            (restricted if self.is_restricted(item) else general).append(item)
        return general, restricted
