"""Application configuration models."""

from __future__ import annotations

import re
from functools import lru_cache
from typing import Annotated, Iterable, Literal

from pydantic import Field, HttpUrl, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


def _split_values(value: object, *, name: str) -> list[str]:
    """Split comma separated environment values into trimmed entries."""

    if value is None:
        return []
    if isinstance(value, str):
        raw_values = [part.strip() for part in value.split(",")]
    elif isinstance(value, Iterable):
        raw_values = [str(part).strip() for part in value]
    else:
        raise TypeError(f"{name} must be a string or iterable of strings")
    return [entry for entry in raw_values if entry]


class Settings(BaseSettings):
    """Settings loaded from environment variables or a .env file."""

    app_name: str = Field(default="Donghua Catalog", alias="APP_NAME")
    server_host: str = Field(default="0.0.0.0", alias="HOST")
    server_port: int = Field(default=3001, alias="PORT")

    tmdb_api_key: str | None = Field(default=None, alias="TMDB_API_KEY")
    tmdb_api_url: HttpUrl = Field(
        default="https://api.themoviedb.org/3", alias="TMDB_API_URL"
    )
    tmdb_image_base_url: str = Field(
        default="https://image.tmdb.org/t/p/w500", alias="TMDB_IMAGE_BASE_URL"
    )
    tmdb_timeout_seconds: float = Field(
        default=20.0, alias="TMDB_TIMEOUT", gt=0, le=300
    )
    tmdb_max_retries: int = Field(default=2, alias="TMDB_MAX_RETRIES", ge=0, le=10)

    restricted_category: str = Field(default="Kids", alias="RESTRICTED_CATEGORY")
    restricted_genre_ids: Annotated[tuple[int, ...], NoDecode] = Field(
        default=(10762,), alias="RESTRICTED_GENRE_IDS"
    )
    restricted_genre_terms: Annotated[tuple[str, ...], NoDecode] = Field(
        default=("kids", "family"), alias="RESTRICTED_GENRE_TERMS"
    )
    restricted_keywords: Annotated[tuple[str, ...], NoDecode] = Field(
        default=("kids", "children", "child", "family", "preschool"),
        alias="RESTRICTED_KEYWORDS",
    )

    native_languages: Annotated[tuple[str, ...], NoDecode] = Field(
        default=("zh", "cn"), alias="NATIVE_LANGUAGES"
    )
    native_regions: Annotated[tuple[str, ...], NoDecode] = Field(
        default=("CN",), alias="NATIVE_REGIONS"
    )
    alt_title_regions: Annotated[tuple[str, ...], NoDecode] = Field(
        default=("CN", "TW", "HK"), alias="ALT_TITLE_REGIONS"
    )
    native_script_pattern: str = Field(
        default="[\\u4e00-\\u9fa5]", alias="NATIVE_SCRIPT_PATTERN"
    )

    bulk_item_delay_seconds: float = Field(
        default=0.25, alias="BULK_ITEM_DELAY", ge=0, le=30
    )
    bulk_existing_policy: Literal["skip", "update"] = Field(
        default="skip", alias="BULK_EXISTING_POLICY"
    )
    bulk_default_max_pages: int = Field(
        default=5, alias="BULK_MAX_PAGES", ge=1, le=500
    )

    database_url: str = Field(
        default="sqlite+aiosqlite:///./donghua.db", alias="DATABASE_URL"
    )

    environment: Literal["development", "production"] = Field(
        default="development", alias="ENVIRONMENT"
    )

    @field_validator("restricted_genre_ids", mode="before")
    @classmethod
    def _parse_genre_ids(cls, value: object) -> tuple[int, ...]:
        """Normalise sentinel genre ids from environment values."""

        cleaned: list[int] = []
        for entry in _split_values(value, name="RESTRICTED_GENRE_IDS"):
            if not entry.isdigit():
                raise ValueError("RESTRICTED_GENRE_IDS must contain numeric ids")
            genre_id = int(entry)
            if genre_id not in cleaned:
                cleaned.append(genre_id)
        return tuple(cleaned)

    @field_validator(
        "restricted_genre_terms", "restricted_keywords", mode="before"
    )
    @classmethod
    def _parse_terms(cls, value: object) -> tuple[str, ...]:
        """Case-fold blocklist terms and drop duplicates."""

        cleaned: list[str] = []
        for entry in _split_values(value, name="restricted terms"):
            term = entry.casefold()
            if term not in cleaned:
                cleaned.append(term)
        return tuple(cleaned)

    @field_validator("native_languages", mode="before")
    @classmethod
    def _parse_languages(cls, value: object) -> tuple[str, ...]:
        return tuple(
            dict.fromkeys(
                entry.lower() for entry in _split_values(value, name="NATIVE_LANGUAGES")
            )
        )

    @field_validator("native_regions", "alt_title_regions", mode="before")
    @classmethod
    def _parse_regions(cls, value: object) -> tuple[str, ...]:
        return tuple(
            dict.fromkeys(
                entry.upper() for entry in _split_values(value, name="regions")
            )
        )

    @field_validator("native_script_pattern")
    @classmethod
    def _validate_script_pattern(cls, value: str) -> str:
        try:
            re.compile(value)
        except re.error as exc:
            raise ValueError("NATIVE_SCRIPT_PATTERN must be a valid regular expression") from exc
        return value

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")


@lru_cache
def get_settings() -> Settings:
    """Return a cached settings instance."""

    return Settings()  # type: ignore[call-arg]
