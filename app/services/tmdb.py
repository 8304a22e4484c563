"""Client for the subset of The Movie Database (TMDB) API used by the sync core."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx

from ..config import Settings

logger = logging.getLogger(__name__)

MEDIA_TYPES = ("movie", "tv")


class TMDBError(Exception):
    """Raised when TMDB cannot be reached or answers with an error status."""

    def __init__(self, endpoint: str, message: str, status_code: int | None = None):
        super().__init__(f"TMDB request {endpoint} failed: {message}")
        self.endpoint = endpoint
        self.status_code = status_code


class TMDBClient:
    """Thin wrapper around the TMDB v3 HTTP API."""

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient):
        if not settings.tmdb_api_key:
            raise ValueError("TMDB API key is required when initialising TMDBClient")
        self._settings = settings
        self._client = http_client
        self._max_retries = settings.tmdb_max_retries

    async def get_details(self, media_type: str, external_id: int) -> dict[str, Any]:
        return await self._get_object(f"/{self._path_type(media_type)}/{external_id}")

    async def get_images(self, media_type: str, external_id: int) -> dict[str, Any]:
        return await self._get_object(
            f"/{self._path_type(media_type)}/{external_id}/images"
        )

    async def get_translations(
        self, media_type: str, external_id: int
    ) -> list[dict[str, Any]]:
        payload = await self._get_object(
            f"/{self._path_type(media_type)}/{external_id}/translations"
        )
        translations = payload.get("translations")
        return [entry for entry in translations or [] if isinstance(entry, dict)]

    async def get_alternative_titles(
        self, media_type: str, external_id: int
    ) -> list[dict[str, Any]]:
        payload = await self._get_object(
            f"/{self._path_type(media_type)}/{external_id}/alternative_titles"
        )
        # Movies answer with ``titles`` while TV answers with ``results``.
        titles = payload.get("titles") or payload.get("results") or []
        return [entry for entry in titles if isinstance(entry, dict)]

    async def get_keywords(
        self, media_type: str, external_id: int
    ) -> list[dict[str, Any]]:
        """Return keywords as ``{"id", "name"}`` dictionaries for either media type."""

        payload = await self._get_object(
            f"/{self._path_type(media_type)}/{external_id}/keywords"
        )
        raw = payload.get("results")
        if not isinstance(raw, list):
            raw = payload.get("keywords")
        if not isinstance(raw, list):
            return []
        keywords: list[dict[str, Any]] = []
        for entry in raw:
            if not isinstance(entry, dict) or entry.get("id") is None:
                continue
            keywords.append({"id": int(entry["id"]), "name": str(entry.get("name") or "")})
        return keywords

    async def get_season(self, external_id: int, season_number: int) -> dict[str, Any]:
        return await self._get_object(f"/tv/{external_id}/season/{season_number}")

    async def discover(
        self, media_type: str, params: dict[str, Any]
    ) -> dict[str, Any]:
        """Return one page of discovery results."""

        return await self._get_object(
            f"/discover/{self._path_type(media_type)}", params=params
        )

    @staticmethod
    def _path_type(media_type: str) -> str:
        if media_type not in MEDIA_TYPES:
            raise ValueError(f"Unsupported media type {media_type!r}")
        return media_type

    async def _get_object(
        self, endpoint: str, *, params: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        data = await self._get(endpoint, params=params)
        if not isinstance(data, dict):
            raise TMDBError(endpoint, "unexpected response structure")
        return data

    async def _get(
        self, endpoint: str, *, params: dict[str, Any] | None = None
    ) -> Any:
        """Perform a GET request, retrying transient failures."""

        query = dict(params or {})
        query["api_key"] = self._settings.tmdb_api_key
        attempt = 0
        while True:
            try:
                response = await self._client.get(endpoint, params=query)
            except httpx.HTTPError as exc:
                attempt += 1
                if attempt <= self._max_retries:
                    backoff = min(2 ** (attempt - 1), 5) + (0.1 * attempt)
                    logger.info(
                        "Transient error talking to TMDB (%s). Retrying %s in %.1fs",
                        exc.__class__.__name__,
                        endpoint,
                        backoff,
                    )
                    await asyncio.sleep(backoff)
                    continue
                raise TMDBError(endpoint, exc.__class__.__name__) from exc

            if response.status_code == 429 or response.status_code >= 500:
                attempt += 1
                if attempt <= self._max_retries:
                    backoff = min(2 ** (attempt - 1), 5) + (0.1 * attempt)
                    logger.info(
                        "TMDB returned %s for %s. Retrying in %.1fs",
                        response.status_code,
                        endpoint,
                        backoff,
                    )
                    await asyncio.sleep(backoff)
                    continue
            break

        if response.status_code >= 400:
            logger.warning(
                "TMDB request %s failed: %s %s",
                endpoint,
                response.status_code,
                response.text[:200],
            )
            raise TMDBError(
                endpoint, f"HTTP {response.status_code}", status_code=response.status_code
            )
        try:
            return response.json()
        except ValueError as exc:
            raise TMDBError(endpoint, "invalid JSON payload") from exc
