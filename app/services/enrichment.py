"""Collect and enrich provider metadata for a single catalog item."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, TypeVar

from ..config import Settings
from ..errors import FatalFetchError
from .tmdb import TMDBClient, TMDBError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(slots=True)
class FetchOutcome:
    """Result of one optional provider fetch."""

    name: str
    ok: bool
    error: str | None = None


@dataclass(slots=True)
class EnrichedRecord:
    """Provider data gathered for one item, ready to be merged."""

    external_id: int
    media_type: str
    detail: dict[str, Any]
    posters: list[str]
    native_title: str | None = None
    keywords: list[dict[str, Any]] = field(default_factory=list)
    outcomes: list[FetchOutcome] = field(default_factory=list)

    @property
    def degraded(self) -> bool:
        return any(not outcome.ok for outcome in self.outcomes)

    def failed_fetches(self) -> list[str]:
        return [outcome.name for outcome in self.outcomes if not outcome.ok]

    def outcome(self, name: str) -> FetchOutcome | None:
        for entry in self.outcomes:
            if entry.name == name:
                return entry
        return None

    @property
    def title(self) -> str:
        return str(self.detail.get("name") or self.detail.get("title") or "")

    @property
    def reference_date(self) -> str | None:
        key = "release_date" if self.media_type == "movie" else "first_air_date"
        value = self.detail.get(key)
        return value if isinstance(value, str) and value else None

    @property
    def genres(self) -> list[dict[str, Any]]:
        genres = self.detail.get("genres") or []
        return [
            genre
            for genre in genres
            if isinstance(genre, dict) and isinstance(genre.get("id"), int)
        ]


def order_posters(images: dict[str, Any], primary: str | None) -> list[str]:
    """Return unique poster paths with the primary poster first."""

    posters: list[str] = []
    for entry in images.get("posters") or []:
        path = entry.get("file_path") if isinstance(entry, dict) else None
        if isinstance(path, str) and path and path not in posters:
            posters.append(path)
    if primary:
        if primary in posters:
            posters.remove(primary)
        posters.insert(0, primary)
    return posters


class CatalogFetchOrchestrator:
    """Fetch detail, artwork and optional metadata for one provider item."""

    def __init__(self, settings: Settings, tmdb: TMDBClient):
        self._settings = settings
        self._tmdb = tmdb

    async def fetch_and_enrich(self, external_id: int, media_type: str) -> EnrichedRecord:
        """Return the enriched record or raise :class:`FatalFetchError`.

        Detail and images are required. Translations, alternative titles and
        keywords degrade to empty values and are reported via ``outcomes``.
        """

        try:
            detail = await self._tmdb.get_details(media_type, external_id)
        except TMDBError as exc:
            raise FatalFetchError("detail", external_id, str(exc)) from exc

        try:
            images = await self._tmdb.get_images(media_type, external_id)
        except TMDBError as exc:
            raise FatalFetchError("images", external_id, str(exc)) from exc

        primary = detail.get("poster_path")
        record = EnrichedRecord(
            external_id=external_id,
            media_type=media_type,
            detail=detail,
            posters=order_posters(images, primary if isinstance(primary, str) else None),
        )

        (native_title, title_outcomes), (keywords, keyword_outcome) = await asyncio.gather(
            self._resolve_native_title(external_id, media_type),
            self._optional(
                "keywords",
                external_id,
                lambda: self._tmdb.get_keywords(media_type, external_id),
                default=[],
            ),
        )
        record.native_title = native_title
        record.keywords = keywords
        record.outcomes = [*title_outcomes, keyword_outcome]
        if record.degraded:
            logger.warning(
                "Enrichment degraded for %s/%s: %s",
                media_type,
                external_id,
                ", ".join(record.failed_fetches()),
            )
        return record

    async def _resolve_native_title(
        self, external_id: int, media_type: str
    ) -> tuple[str | None, list[FetchOutcome]]:
        translations, translations_outcome = await self._optional(
            "translations",
            external_id,
            lambda: self._tmdb.get_translations(media_type, external_id),
            default=[],
        )
        outcomes = [translations_outcome]
        title = self.select_translated_title(translations)
        if title:
            return title, outcomes

        alternatives, alternatives_outcome = await self._optional(
            "alternative_titles",
            external_id,
            lambda: self._tmdb.get_alternative_titles(media_type, external_id),
            default=[],
        )
        outcomes.append(alternatives_outcome)
        return self.select_alternative_title(alternatives), outcomes

    def select_translated_title(self, translations: list[dict[str, Any]]) -> str | None:
        """Pick the translated title following the locale preference order."""

        def _title(entry: dict[str, Any]) -> str | None:
            data = entry.get("data") or {}
            if not isinstance(data, dict):
                return None
            value = data.get("title") or data.get("name")
            if isinstance(value, str) and value.strip():
                return value.strip()
            return None

        for language in self._settings.native_languages:
            for entry in translations:
                if str(entry.get("iso_639_1") or "").lower() == language:
                    title = _title(entry)
                    if title:
                        return title
        for region in self._settings.native_regions:
            for entry in translations:
                if str(entry.get("iso_3166_1") or "").upper() == region:
                    title = _title(entry)
                    if title:
                        return title
        return None

    def select_alternative_title(self, titles: list[dict[str, Any]]) -> str | None:
        """Pick an alternative title from the preferred regions."""

        for region in self._settings.alt_title_regions:
            for entry in titles:
                if str(entry.get("iso_3166_1") or "").upper() != region:
                    continue
                value = entry.get("title")
                if isinstance(value, str) and value.strip():
                    return value.strip()
        return None

    async def _optional(
        self,
        name: str,
        external_id: int,
        fetch: Callable[[], Awaitable[T]],
        *,
        default: T,
    ) -> tuple[T, FetchOutcome]:
        try:
            value = await fetch()
        except (TMDBError, ValueError) as exc:
            logger.info("Optional %s fetch failed for %s: %s", name, external_id, exc)
            return default, FetchOutcome(name=name, ok=False, error=str(exc))
        return value, FetchOutcome(name=name, ok=True)
