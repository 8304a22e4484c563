"""Pydantic models describing sync requests and catalog payloads."""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, ClassVar, Literal

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)

from .status import MediaStatus, coerce_status

MediaType = Literal["movie", "tv"]

DONGHUA_GENRE_ID = 16
FAMILY_GENRE_ID = 10751
KIDS_GENRE_ID = 10762


class Keyword(BaseModel):
    """Provider keyword attached to a media item."""

    id: int
    name: str


class SyncOverrides(BaseModel):
    """Caller supplied values that win over provider data when non-empty."""

    model_config = ConfigDict(populate_by_name=True)

    status: MediaStatus | None = None
    native_title: str | None = Field(
        default=None, validation_alias=AliasChoices("native_title", "nativeTitle", "chineseTitle")
    )
    synopsis: str | None = None
    vote_average: float | None = Field(
        default=None, ge=0, le=10, validation_alias=AliasChoices("vote_average", "voteAverage")
    )
    vote_count: int | None = Field(
        default=None, ge=0, validation_alias=AliasChoices("vote_count", "voteCount")
    )
    episode_count: int | None = Field(
        default=None, ge=0, validation_alias=AliasChoices("episode_count", "episodeCount")
    )
    release_date: date | None = Field(
        default=None, validation_alias=AliasChoices("release_date", "releaseDate")
    )
    first_air_date: date | None = Field(
        default=None, validation_alias=AliasChoices("first_air_date", "firstAirDate")
    )
    category: str | None = None

    @field_validator("native_title", "synopsis", "category", mode="before")
    @classmethod
    def _blank_to_none(cls, value: object) -> object:
        if isinstance(value, str):
            value = value.strip()
            return value or None
        return value

    @field_validator("status", mode="before")
    @classmethod
    def _parse_status(cls, value: object) -> object:
        if value is None or value == "":
            return None
        status = coerce_status(value)
        if status is None:
            raise ValueError(f"Unknown status {value!r}")
        return status

    @field_validator("release_date", "first_air_date", mode="before")
    @classmethod
    def _blank_date(cls, value: object) -> object:
        if isinstance(value, str):
            value = value.strip()
            if not value:
                return None
            return value[:10]
        return value


class SyncRequest(SyncOverrides):
    """Body of a single-item sync request."""

    external_id: int | None = Field(
        default=None, validation_alias=AliasChoices("external_id", "externalId", "tmdbId")
    )
    media_type: str | None = Field(
        default=None, validation_alias=AliasChoices("media_type", "mediaType", "type")
    )

    def overrides(self) -> SyncOverrides:
        return SyncOverrides.model_validate(
            self.model_dump(exclude={"external_id", "media_type"})
        )


class DiscoveryFilter(BaseModel):
    """Filters forwarded to the provider's discovery endpoint."""

    model_config = ConfigDict(populate_by_name=True)

    PRESETS: ClassVar[dict[str, dict[str, Any]]] = {
        "popular": {"media_type": "tv", "sort_by": "popularity.desc"},
        "trending": {"media_type": "tv", "sort_by": "popularity.desc"},
        "top_rated": {"media_type": "tv", "sort_by": "vote_average.desc"},
        "movie_popular": {"media_type": "movie", "sort_by": "popularity.desc"},
        "movie_top_rated": {"media_type": "movie", "sort_by": "vote_average.desc"},
        "movie_china_popular": {
            "media_type": "movie",
            "sort_by": "popularity.desc",
            "with_genres": [],
            "without_genres": [DONGHUA_GENRE_ID, FAMILY_GENRE_ID, KIDS_GENRE_ID],
        },
        "movie_china_top_rated": {
            "media_type": "movie",
            "sort_by": "vote_average.desc",
            "with_genres": [],
            "without_genres": [DONGHUA_GENRE_ID, FAMILY_GENRE_ID, KIDS_GENRE_ID],
        },
    }

    media_type: MediaType = Field(
        default="tv", validation_alias=AliasChoices("media_type", "mediaType", "type")
    )
    with_genres: list[int] = Field(default_factory=lambda: [DONGHUA_GENRE_ID])
    without_genres: list[int] = Field(
        default_factory=lambda: [FAMILY_GENRE_ID, KIDS_GENRE_ID]
    )
    with_origin_country: str | None = "CN"
    with_original_language: str | None = "zh"
    with_keywords: list[int] = Field(default_factory=list)
    sort_by: str = "popularity.desc"
    include_adult: bool = False

    @field_validator("with_genres", "without_genres", mode="before")
    @classmethod
    def _parse_genres(cls, value: object) -> object:
        if value is None:
            return []
        if isinstance(value, str):
            return [part.strip() for part in value.split(",") if part.strip()]
        return value

    @field_validator("with_keywords", mode="before")
    @classmethod
    def _sanitize_keywords(cls, value: object) -> list[int]:
        """Keep only positive integer keyword ids."""

        if value is None:
            return []
        if isinstance(value, str):
            raw_values: list[object] = value.split(",")
        elif isinstance(value, (list, tuple, set)):
            raw_values = list(value)
        else:
            return []
        cleaned: list[int] = []
        for entry in raw_values:
            text = str(entry).strip()
            if text.isdigit() and int(text) > 0 and int(text) not in cleaned:
                cleaned.append(int(text))
        return cleaned

    @field_validator("with_origin_country", mode="before")
    @classmethod
    def _upper_country(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip().upper() or None
        return value

    @field_validator("with_original_language", mode="before")
    @classmethod
    def _lower_language(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip().lower() or None
        return value

    @classmethod
    def preset(cls, name: str) -> "DiscoveryFilter":
        """Return one of the named admin import presets."""

        try:
            options = cls.PRESETS[name]
        except KeyError as exc:
            valid = ", ".join(cls.PRESETS)
            raise ValueError(f"Invalid preset {name!r}. Use one of: {valid}") from exc
        return cls.model_validate(options)

    def to_params(self, page: int) -> dict[str, Any]:
        """Return query parameters for the requested discovery page."""

        params: dict[str, Any] = {
            "sort_by": self.sort_by,
            "include_adult": str(self.include_adult).lower(),
            "page": page,
        }
        if self.with_genres:
            params["with_genres"] = ",".join(str(genre) for genre in self.with_genres)
        if self.without_genres:
            params["without_genres"] = ",".join(
                str(genre) for genre in self.without_genres
            )
        if self.with_origin_country:
            params["with_origin_country"] = self.with_origin_country
        if self.with_original_language:
            params["with_original_language"] = self.with_original_language
        if self.with_keywords:
            params["with_keywords"] = ",".join(str(keyword) for keyword in self.with_keywords)
        return params


class BulkImportRequest(BaseModel):
    """Body of a bulk discovery import request."""

    model_config = ConfigDict(populate_by_name=True)

    preset: str | None = Field(default=None, validation_alias=AliasChoices("preset", "type"))
    filter: DiscoveryFilter | None = None
    quota: int | None = Field(
        default=20, ge=0, validation_alias=AliasChoices("quota", "limit")
    )
    max_pages: int | None = Field(
        default=None, ge=1, le=500, validation_alias=AliasChoices("max_pages", "maxPages")
    )
    overrides: SyncOverrides | None = None

    def resolve_filter(self) -> DiscoveryFilter:
        if self.filter is not None:
            return self.filter
        if self.preset:
            return DiscoveryFilter.preset(self.preset)
        return DiscoveryFilter()


class BatchSummary(BaseModel):
    """Tally returned by a bulk import run."""

    imported: int = 0
    updated: int = 0
    skipped: int = 0
    errors: int = 0
    pages_fetched: int = 0
    cancelled: bool = False

    @property
    def processed(self) -> int:
        return self.imported + self.updated + self.errors

    def message(self) -> str:
        return (
            f"Import complete: {self.imported} imported, {self.updated} updated, "
            f"{self.skipped} skipped, {self.errors} errors"
        )


class GenrePayload(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str


class EpisodePayload(BaseModel):
    """Episode representation returned by the catalog API."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    media_item_id: int
    episode_number: int
    season_number: int
    title: str
    thumbnail: str | None = None
    duration: int | None = None
    air_date: date | None = None
    external_episode_id: int | None = None
    overview: str | None = None
    vote_average: float | None = None
    vote_count: int | None = None


class MediaItemPayload(BaseModel):
    """Media item representation returned by the catalog API."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    external_id: int
    title: str
    native_title: str | None = None
    overview: str = ""
    synopsis: str | None = None
    poster_path: str = ""
    posters: list[str] = Field(default_factory=list)
    backdrop_path: str = ""
    release_date: date | None = None
    first_air_date: date | None = None
    vote_average: float = 0.0
    vote_count: int = 0
    status: MediaStatus = MediaStatus.UNKNOWN
    episode_count: int = 0
    media_type: str
    category: str | None = None
    genres: list[GenrePayload] = Field(default_factory=list)
    keywords: list[Keyword] = Field(default_factory=list)
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @field_validator("status", mode="before")
    @classmethod
    def _coerce_stored_status(cls, value: object) -> MediaStatus:
        return coerce_status(value) or MediaStatus.UNKNOWN
