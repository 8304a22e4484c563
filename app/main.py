"""Entry point for the FastAPI-powered donghua catalog service."""

from __future__ import annotations

import logging
from contextlib import AsyncExitStack, asynccontextmanager
from dataclasses import dataclass
from typing import Any

import httpx
from fastapi import Body, FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from pydantic import ValidationError

from .config import Settings, get_settings
from .content_filter import ContentFilter
from .database import Database
from .errors import (
    FatalFetchError,
    ItemConflictError,
    ItemNotFoundError,
    PersistenceError,
    SyncValidationError,
)
from .models import (
    BatchSummary,
    BulkImportRequest,
    EpisodePayload,
    MediaItemPayload,
    SyncOverrides,
    SyncRequest,
)
from .services.bulk_import import BulkImporter
from .services.catalog import CatalogQueries
from .services.enrichment import CatalogFetchOrchestrator
from .services.episodes import EpisodeSynchronizer
from .services.sync import CatalogSyncService, SyncResult
from .services.tmdb import TMDBClient

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app: FastAPI


@dataclass(slots=True)
class CatalogServices:
    """Services shared by the HTTP routes."""

    sync: CatalogSyncService
    importer: BulkImporter
    queries: CatalogQueries


def build_services(
    settings: Settings, http_client: httpx.AsyncClient, database: Database
) -> CatalogServices:
    """Wire the provider client, store and services together."""

    content_filter = ContentFilter.from_settings(settings)
    tmdb = TMDBClient(settings, http_client)
    orchestrator = CatalogFetchOrchestrator(settings, tmdb)
    episodes = EpisodeSynchronizer(settings, tmdb, database.session_factory)
    sync = CatalogSyncService(
        settings, orchestrator, episodes, database.session_factory, content_filter
    )
    importer = BulkImporter(
        settings, tmdb, sync, database.session_factory, content_filter
    )
    queries = CatalogQueries(database.session_factory, content_filter)
    return CatalogServices(sync=sync, importer=importer, queries=queries)


@asynccontextmanager
async def lifespan(fastapi_app: FastAPI):
    settings: Settings = fastapi_app.state.settings
    exit_stack = AsyncExitStack()
    tmdb_http_client = await exit_stack.enter_async_context(
        httpx.AsyncClient(
            base_url=str(settings.tmdb_api_url),
            timeout=httpx.Timeout(settings.tmdb_timeout_seconds, connect=10.0),
        )
    )
    database = Database(settings.database_url)
    await database.create_all()

    fastapi_app.state.database = database
    fastapi_app.state.services = build_services(settings, tmdb_http_client, database)

    try:
        yield
    finally:  # pragma: no cover - teardown path exercised at runtime
        await database.dispose()
        await exit_stack.aclose()


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    fastapi_app = FastAPI(
        title=settings.app_name,
        description="Chinese animation catalog synchronised from TMDB",
        version="1.0.0",
        lifespan=lifespan,
    )

    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "DELETE"],
        allow_headers=["*"],
    )

    fastapi_app.state.settings = settings
    register_routes(fastapi_app)
    return fastapi_app


def get_services(fastapi_app: FastAPI) -> CatalogServices:
    services = getattr(fastapi_app.state, "services", None)
    if not isinstance(services, CatalogServices):
        raise RuntimeError("Catalog services not initialised")
    return services


def _validation_detail(exc: ValidationError) -> list[dict[str, Any]]:
    return exc.errors(include_url=False, include_context=False)


def _item_payload(result: SyncResult) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "item": MediaItemPayload.model_validate(result.item).model_dump(mode="json"),
        "created": result.created,
        "degraded": [outcome.name for outcome in result.outcomes if not outcome.ok],
    }
    report = result.episodes
    if report is not None:
        payload["episodes"] = {
            "stored": report.stored_episode_count,
            "synced_seasons": report.synced_seasons,
            "failed_seasons": report.failed_seasons,
            "failures": report.episode_failures,
        }
    return payload


def register_routes(fastapi_app: FastAPI) -> None:
    @fastapi_app.get("/healthz")
    async def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    @fastapi_app.get("/api/catalog")
    async def list_catalog(
        media_type: str | None = Query(default=None, alias="type"),
        status: str | None = None,
        limit: int | None = Query(default=None, ge=0),
    ) -> list[dict[str, Any]]:
        services = get_services(fastapi_app)
        items = await services.queries.list_items(
            media_type=media_type, status=status, limit=limit
        )
        return [
            MediaItemPayload.model_validate(item).model_dump(mode="json") for item in items
        ]

    @fastapi_app.get("/api/catalog/kids")
    async def list_kids_catalog(
        media_type: str | None = Query(default=None, alias="type"),
        limit: int | None = Query(default=None, ge=0),
    ) -> list[dict[str, Any]]:
        services = get_services(fastapi_app)
        items = await services.queries.list_items(
            restricted=True, media_type=media_type, limit=limit
        )
        return [
            MediaItemPayload.model_validate(item).model_dump(mode="json") for item in items
        ]

    @fastapi_app.get("/api/catalog/{item_id}")
    async def get_catalog_item(item_id: int) -> dict[str, Any]:
        services = get_services(fastapi_app)
        try:
            item = await services.queries.get_item(item_id)
        except ItemNotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        return MediaItemPayload.model_validate(item).model_dump(mode="json")

    @fastapi_app.get("/api/catalog/{item_id}/episodes")
    async def list_catalog_episodes(item_id: int) -> list[dict[str, Any]]:
        services = get_services(fastapi_app)
        try:
            episodes = await services.queries.list_episodes(item_id)
        except ItemNotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        return [
            EpisodePayload.model_validate(episode).model_dump(mode="json")
            for episode in episodes
        ]

    @fastapi_app.post("/api/admin/sync", status_code=201)
    async def sync_item(
        payload: dict[str, Any] | None = Body(default=None),
    ) -> dict[str, Any]:
        services = get_services(fastapi_app)
        try:
            request = SyncRequest.model_validate(payload or {})
        except ValidationError as exc:
            raise HTTPException(status_code=400, detail=_validation_detail(exc)) from exc
        try:
            result = await services.sync.add_item(
                request.external_id, request.media_type, request.overrides()
            )
        except SyncValidationError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        except ItemConflictError as exc:
            raise HTTPException(
                status_code=409,
                detail={"error": str(exc), "existing_id": exc.existing_id},
            ) from exc
        except FatalFetchError as exc:
            raise HTTPException(status_code=502, detail=str(exc)) from exc
        except PersistenceError as exc:
            raise HTTPException(status_code=500, detail=str(exc)) from exc
        return _item_payload(result)

    @fastapi_app.post("/api/admin/items/{item_id}/resync")
    async def resync_item(
        item_id: int, payload: dict[str, Any] | None = Body(default=None)
    ) -> dict[str, Any]:
        services = get_services(fastapi_app)
        try:
            overrides = SyncOverrides.model_validate(payload or {})
        except ValidationError as exc:
            raise HTTPException(status_code=400, detail=_validation_detail(exc)) from exc
        try:
            result = await services.sync.resync_item(item_id, overrides)
        except ItemNotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        except FatalFetchError as exc:
            raise HTTPException(status_code=502, detail=str(exc)) from exc
        except PersistenceError as exc:
            raise HTTPException(status_code=500, detail=str(exc)) from exc
        return _item_payload(result)

    @fastapi_app.post("/api/admin/import")
    async def bulk_import(
        payload: dict[str, Any] | None = Body(default=None),
    ) -> dict[str, Any]:
        services = get_services(fastapi_app)
        try:
            request = BulkImportRequest.model_validate(payload or {})
            discovery_filter = request.resolve_filter()
        except ValidationError as exc:
            raise HTTPException(status_code=400, detail=_validation_detail(exc)) from exc
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc

        summary: BatchSummary = await services.importer.bulk_import(
            discovery_filter,
            request.quota,
            request.max_pages,
            overrides=request.overrides,
        )
        return {"message": summary.message(), **summary.model_dump()}

    @fastapi_app.delete("/api/admin/items/{item_id}")
    async def delete_item(item_id: int) -> dict[str, Any]:
        services = get_services(fastapi_app)
        try:
            await services.queries.delete_item(item_id)
        except ItemNotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        return {"deleted": item_id}

    @fastapi_app.get("/api/admin/statistics")
    async def statistics() -> dict[str, Any]:
        services = get_services(fastapi_app)
        return await services.queries.statistics()


app = create_app()


if __name__ == "__main__":  # pragma: no cover - manual execution
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "app.main:app",
        host=settings.server_host,
        port=settings.server_port,
        reload=settings.environment == "development",
    )
