"""Pytest configuration and test helpers."""

from __future__ import annotations

import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Callable


# Ensure the application package is importable when running tests without an
# editable install. This mirrors the expected runtime layout where ``app`` sits
# at the project root.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import httpx  # noqa: E402
import pytest  # noqa: E402

from app.config import Settings  # noqa: E402
from app.database import Database  # noqa: E402

TMDB_BASE_URL = "https://api.themoviedb.org/3"

Route = tuple[int, Any]


class FakeTMDB:
    """In-memory TMDB responder served through ``httpx.MockTransport``.

    Routes are keyed by the request path below the API version prefix, e.g.
    ``/tv/42/season/1``. Unknown paths answer with 404 like the real API.
    """

    def __init__(self) -> None:
        self.routes: dict[str, Route] = {}
        self.requests: list[httpx.Request] = []

    def add(self, path: str, payload: Any, status: int = 200) -> None:
        self.routes[path] = (status, payload)

    def fail(self, path: str, status: int = 500) -> None:
        self.routes[path] = (status, {"status_message": "failure"})

    def paths(self) -> list[str]:
        return [self._relative(request.url.path) for request in self.requests]

    def add_show(
        self,
        external_id: int,
        *,
        name: str = "Battle Through the Heavens",
        status: str = "Ended",
        first_air_date: str = "2017-01-07",
        seasons: dict[int, int] | None = None,
        genres: list[dict[str, Any]] | None = None,
        translations: list[dict[str, Any]] | None = None,
        alternative_titles: list[dict[str, Any]] | None = None,
        keywords: list[dict[str, Any]] | None = None,
        **detail: Any,
    ) -> None:
        seasons = seasons or {}
        payload = {
            "id": external_id,
            "name": name,
            "overview": f"{name} follows a young cultivator.",
            "status": status,
            "first_air_date": first_air_date,
            "poster_path": f"/poster-{external_id}.jpg",
            "backdrop_path": f"/backdrop-{external_id}.jpg",
            "vote_average": 8.1,
            "vote_count": 120,
            "number_of_seasons": len(seasons),
            "number_of_episodes": sum(seasons.values()),
            "genres": genres
            if genres is not None
            else [{"id": 16, "name": "Animation"}, {"id": 10759, "name": "Action & Adventure"}],
        }
        payload.update(detail)
        self.add(f"/tv/{external_id}", payload)
        self._add_common("tv", external_id, translations, alternative_titles)
        self.add(f"/tv/{external_id}/keywords", {"results": keywords or []})
        for season_number, count in seasons.items():
            self.add(
                f"/tv/{external_id}/season/{season_number}",
                {
                    "season_number": season_number,
                    "episodes": [
                        {
                            "id": external_id * 1000 + season_number * 100 + number,
                            "episode_number": number,
                            "name": f"Episode {number}",
                            "still_path": f"/still-{season_number}-{number}.jpg",
                            "runtime": 20,
                            "air_date": "2017-01-07",
                            "overview": "",
                            "vote_average": 7.5,
                            "vote_count": 3,
                            "crew": [{"id": 1, "name": "Director", "job": "Director"}],
                            "guest_stars": [],
                        }
                        for number in range(1, count + 1)
                    ],
                },
            )

    def add_movie(
        self,
        external_id: int,
        *,
        title: str = "Ne Zha",
        status: str = "Released",
        release_date: str = "2019-07-26",
        genres: list[dict[str, Any]] | None = None,
        translations: list[dict[str, Any]] | None = None,
        alternative_titles: list[dict[str, Any]] | None = None,
        keywords: list[dict[str, Any]] | None = None,
        **detail: Any,
    ) -> None:
        payload = {
            "id": external_id,
            "title": title,
            "overview": f"{title} defies fate.",
            "status": status,
            "release_date": release_date,
            "poster_path": f"/poster-{external_id}.jpg",
            "backdrop_path": f"/backdrop-{external_id}.jpg",
            "vote_average": 7.9,
            "vote_count": 800,
            "genres": genres if genres is not None else [{"id": 16, "name": "Animation"}],
        }
        payload.update(detail)
        self.add(f"/movie/{external_id}", payload)
        self._add_common("movie", external_id, translations, alternative_titles)
        self.add(f"/movie/{external_id}/keywords", {"keywords": keywords or []})

    def add_discover(self, media_type: str, pages: list[list[dict[str, Any]]]) -> None:
        def page_payload(request: httpx.Request) -> dict[str, Any]:
            page = int(request.url.params.get("page", "1"))
            results = pages[page - 1] if 0 < page <= len(pages) else []
            return {"page": page, "total_pages": len(pages), "results": results}

        self.routes[f"/discover/{media_type}"] = (200, page_payload)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get(self._relative(request.url.path))
        if route is None:
            return httpx.Response(404, json={"status_message": "not found"})
        status, payload = route
        if callable(payload):
            payload = payload(request)
        return httpx.Response(status, json=payload)

    def _add_common(
        self,
        media_type: str,
        external_id: int,
        translations: list[dict[str, Any]] | None,
        alternative_titles: list[dict[str, Any]] | None,
    ) -> None:
        self.add(
            f"/{media_type}/{external_id}/images",
            {
                "posters": [
                    {"file_path": f"/alt-{external_id}.jpg"},
                    {"file_path": f"/poster-{external_id}.jpg"},
                ]
            },
        )
        self.add(
            f"/{media_type}/{external_id}/translations",
            {"translations": translations or []},
        )
        titles_key = "titles" if media_type == "movie" else "results"
        self.add(
            f"/{media_type}/{external_id}/alternative_titles",
            {titles_key: alternative_titles or []},
        )

    @staticmethod
    def _relative(path: str) -> str:
        prefix = httpx.URL(TMDB_BASE_URL).path
        return path[len(prefix):] if path.startswith(prefix) else path


@pytest.fixture
def anyio_backend() -> str:
    """Force AnyIO tests to run on asyncio without requiring trio."""

    return "asyncio"


@pytest.fixture
def fake_tmdb() -> FakeTMDB:
    return FakeTMDB()


@pytest.fixture
def settings_factory(tmp_path) -> Callable[..., Settings]:
    """Return a factory building settings suitable for tests."""

    def factory(**overrides: Any) -> Settings:
        values: dict[str, Any] = {
            "TMDB_API_KEY": "test-key",
            "TMDB_API_URL": TMDB_BASE_URL,
            "TMDB_MAX_RETRIES": 0,
            "BULK_ITEM_DELAY": 0,
            "DATABASE_URL": f"sqlite+aiosqlite:///{tmp_path / 'catalog.db'}",
        }
        values.update(overrides)
        return Settings(_env_file=None, **values)  # type: ignore[arg-type]

    return factory


@pytest.fixture
def catalog_harness(settings_factory, fake_tmdb):
    """Return an async context manager yielding wired services and the database."""

    from app.main import build_services

    @asynccontextmanager
    async def harness(**overrides: Any) -> AsyncIterator[tuple[Any, Database]]:
        settings = settings_factory(**overrides)
        database = Database(settings.database_url)
        await database.create_all()
        transport = httpx.MockTransport(fake_tmdb.handler)
        async with httpx.AsyncClient(
            transport=transport, base_url=str(settings.tmdb_api_url)
        ) as http_client:
            try:
                yield build_services(settings, http_client, database), database
            finally:
                await database.dispose()

    return harness
