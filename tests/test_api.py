"""HTTP route tests using stubbed services."""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.db_models import MediaItem
from app.errors import (
    FatalFetchError,
    ItemConflictError,
    ItemNotFoundError,
    SyncValidationError,
)
from app.main import CatalogServices, register_routes
from app.models import BatchSummary, DiscoveryFilter, SyncOverrides
from app.services.bulk_import import BulkImporter
from app.services.catalog import CatalogQueries
from app.services.sync import CatalogSyncService, SyncResult


def _item(item_id: int = 1, external_id: int = 42) -> MediaItem:
    return MediaItem(
        id=item_id,
        external_id=external_id,
        title="Link Click",
        native_title="时光代理人",
        overview="Two friends dive into photographs.",
        synopsis=None,
        poster_path="/poster.jpg",
        posters=["/poster.jpg"],
        backdrop_path="",
        vote_average=8.9,
        vote_count=500,
        status="complete",
        episode_count=11,
        media_type="tv",
        category=None,
        genre_ids=[16],
        keywords=[{"id": 1, "name": "time travel"}],
    )


class DummySyncService(CatalogSyncService):
    """Sync service stub driven by the requested external id."""

    def __init__(self) -> None:  # pragma: no cover - nothing to initialise
        # Deliberately skip super().__init__ to avoid touching external systems.
        self.calls: list[tuple[Any, Any, SyncOverrides | None]] = []

    async def add_item(  # type: ignore[override]
        self, external_id: Any, media_type: Any, overrides: SyncOverrides | None = None, **_: Any
    ) -> SyncResult:
        self.calls.append((external_id, media_type, overrides))
        if media_type not in ("movie", "tv"):
            raise SyncValidationError("external id and media type are required")
        if external_id == 409:
            raise ItemConflictError(409, 7)
        if external_id == 502:
            raise FatalFetchError("detail", 502, "HTTP 500")
        return SyncResult(item=_item(external_id=external_id), created=True)

    async def resync_item(  # type: ignore[override]
        self, item_id: int, overrides: SyncOverrides | None = None, **_: Any
    ) -> SyncResult:
        if item_id != 1:
            raise ItemNotFoundError(f"Media item {item_id} not found")
        return SyncResult(item=_item(), created=False)


class DummyImporter(BulkImporter):
    def __init__(self) -> None:  # pragma: no cover - nothing to initialise
        self.filters: list[DiscoveryFilter] = []

    async def bulk_import(  # type: ignore[override]
        self, discovery_filter: DiscoveryFilter, quota=None, max_pages=None, **_: Any
    ) -> BatchSummary:
        self.filters.append(discovery_filter)
        return BatchSummary(imported=2, skipped=1, pages_fetched=1)


class DummyQueries(CatalogQueries):
    def __init__(self) -> None:  # pragma: no cover - nothing to initialise
        self.deleted: list[int] = []

    async def list_items(self, *, restricted: bool = False, **_: Any) -> list[MediaItem]:  # type: ignore[override]
        return [] if restricted else [_item()]

    async def get_item(self, item_id: int) -> MediaItem:  # type: ignore[override]
        if item_id != 1:
            raise ItemNotFoundError(f"Media item {item_id} not found")
        return _item()

    async def delete_item(self, item_id: int) -> None:  # type: ignore[override]
        if item_id != 1:
            raise ItemNotFoundError(f"Media item {item_id} not found")
        self.deleted.append(item_id)

    async def statistics(self) -> dict[str, Any]:  # type: ignore[override]
        return {"total_items": 1}


def _client() -> tuple[TestClient, CatalogServices]:
    app = FastAPI()
    register_routes(app)
    services = CatalogServices(
        sync=DummySyncService(), importer=DummyImporter(), queries=DummyQueries()
    )
    app.state.services = services
    return TestClient(app), services


def test_healthcheck() -> None:
    client, _ = _client()
    with client:
        response = client.get("/healthz")

    assert response.json() == {"status": "ok"}


def test_sync_creates_item_with_overrides() -> None:
    client, services = _client()
    with client:
        response = client.post(
            "/api/admin/sync",
            json={"tmdbId": 42, "type": "tv", "status": "completed", "chineseTitle": "时光"},
        )

    assert response.status_code == 201
    payload = response.json()
    assert payload["created"] is True
    assert payload["item"]["native_title"] == "时光代理人"
    assert payload["item"]["keywords"] == [{"id": 1, "name": "time travel"}]
    external_id, media_type, overrides = services.sync.calls[0]
    assert (external_id, media_type) == (42, "tv")
    assert overrides is not None and overrides.native_title == "时光"


def test_sync_error_mapping() -> None:
    client, _ = _client()
    with client:
        conflict = client.post("/api/admin/sync", json={"tmdbId": 409, "type": "tv"})
        invalid = client.post("/api/admin/sync", json={"tmdbId": 1, "type": "anime"})
        fatal = client.post("/api/admin/sync", json={"tmdbId": 502, "type": "movie"})
        bad_status = client.post(
            "/api/admin/sync", json={"tmdbId": 1, "type": "tv", "status": "paused"}
        )

    assert conflict.status_code == 409
    assert conflict.json()["detail"]["existing_id"] == 7
    assert invalid.status_code == 400
    assert fatal.status_code == 502
    assert bad_status.status_code == 400


def test_resync_unknown_item_returns_404() -> None:
    client, _ = _client()
    with client:
        missing = client.post("/api/admin/items/5/resync", json={})
        found = client.post("/api/admin/items/1/resync")

    assert missing.status_code == 404
    assert found.status_code == 200
    assert found.json()["created"] is False


def test_bulk_import_accepts_presets() -> None:
    client, services = _client()
    with client:
        response = client.post("/api/admin/import", json={"preset": "movie_top_rated", "limit": 5})
        rejected = client.post("/api/admin/import", json={"preset": "nope"})

    assert response.status_code == 200
    assert response.json()["imported"] == 2
    assert response.json()["message"].startswith("Import complete: 2 imported")
    assert services.importer.filters[0].media_type == "movie"
    assert services.importer.filters[0].sort_by == "vote_average.desc"
    assert rejected.status_code == 400


def test_catalog_routes() -> None:
    client, services = _client()
    with client:
        listing = client.get("/api/catalog")
        kids = client.get("/api/catalog/kids")
        detail = client.get("/api/catalog/1")
        missing = client.get("/api/catalog/2")
        deleted = client.delete("/api/admin/items/1")
        stats = client.get("/api/admin/statistics")

    assert [entry["id"] for entry in listing.json()] == [1]
    assert kids.json() == []
    assert detail.json()["status"] == "complete"
    assert missing.status_code == 404
    assert deleted.json() == {"deleted": 1}
    assert services.queries.deleted == [1]
    assert stats.json() == {"total_items": 1}
