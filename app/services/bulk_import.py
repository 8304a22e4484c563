"""Bulk import of provider discovery results."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Iterable, Literal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..config import Settings
from ..content_filter import ContentFilter
from ..db_models import MediaItem
from ..errors import CatalogError
from ..models import BatchSummary, DiscoveryFilter, SyncOverrides
from ..utils import as_code_list, coerce_int, contains_script
from .sync import CatalogSyncService
from .tmdb import TMDBClient, TMDBError

logger = logging.getLogger(__name__)

ExistingPolicy = Literal["skip", "update"]


class BulkImporter:
    """Page through a discovery query and sync every acceptable candidate.

    Candidates are processed one at a time with a fixed delay between them so
    writes for one external id never overlap and the provider is not flooded.
    """

    def __init__(
        self,
        settings: Settings,
        tmdb: TMDBClient,
        sync_service: CatalogSyncService,
        session_factory: async_sessionmaker[AsyncSession],
        content_filter: ContentFilter | None = None,
    ):
        self._settings = settings
        self._tmdb = tmdb
        self._sync = sync_service
        self._session_factory = session_factory
        self._content_filter = content_filter or ContentFilter.from_settings(settings)

    async def bulk_import(
        self,
        discovery_filter: DiscoveryFilter,
        quota: int | None = None,
        max_pages: int | None = None,
        *,
        overrides: SyncOverrides | None = None,
        existing_policy: ExistingPolicy | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> BatchSummary:
        """Import up to ``quota`` candidates from at most ``max_pages`` pages.

        A non-positive or missing ``quota`` imports everything the pages yield.
        Single item failures are tallied, never raised.
        """

        summary = BatchSummary()
        policy = existing_policy or self._settings.bulk_existing_policy
        page_limit = max_pages or self._settings.bulk_default_max_pages
        target = quota if quota and quota > 0 else None
        seen: set[int] = set()
        total_pages: int | None = None
        page = 1

        logger.info(
            "Starting bulk import of %s (quota: %s, max pages: %s, existing: %s)",
            discovery_filter.media_type,
            target or "all",
            page_limit,
            policy,
        )

        while page <= page_limit and (total_pages is None or page <= total_pages):
            if target is not None and summary.processed >= target:
                break
            if cancel_event is not None and cancel_event.is_set():
                summary.cancelled = True
                break

            try:
                payload = await self._tmdb.discover(
                    discovery_filter.media_type, discovery_filter.to_params(page)
                )
            except TMDBError as exc:
                logger.warning("Stopping bulk import, discovery page %s failed: %s", page, exc)
                break
            summary.pages_fetched += 1
            total_pages = coerce_int(payload.get("total_pages")) or 1

            results = payload.get("results") or []
            candidates = self.select_candidates(results, discovery_filter, seen)
            stored = await self._stored_external_ids(
                candidate["id"] for candidate in candidates
            )

            for candidate in candidates:
                if target is not None and summary.processed >= target:
                    break
                if cancel_event is not None and cancel_event.is_set():
                    summary.cancelled = True
                    break
                external_id = candidate["id"]
                if external_id in stored and policy == "skip":
                    logger.debug("Skipping %s, already in catalog", external_id)
                    summary.skipped += 1
                    continue
                await self._import_candidate(
                    candidate, discovery_filter.media_type, overrides, policy, summary
                )
                if self._settings.bulk_item_delay_seconds:
                    await asyncio.sleep(self._settings.bulk_item_delay_seconds)

            if summary.cancelled:
                break
            page += 1

        logger.info(summary.message())
        return summary

    def select_candidates(
        self,
        results: Iterable[Any],
        discovery_filter: DiscoveryFilter,
        seen: set[int],
    ) -> list[dict[str, Any]]:
        """Return the results worth importing, recording their ids in ``seen``."""

        candidates: list[dict[str, Any]] = []
        for result in results:
            if not isinstance(result, dict):
                continue
            external_id = coerce_int(result.get("id"))
            if external_id is None:
                continue
            media_type = result.get("media_type")
            if media_type and media_type != discovery_filter.media_type:
                continue
            if external_id in seen:
                continue
            seen.add(external_id)
            if not self.matches_origin(result, discovery_filter):
                logger.debug(
                    "Skipping %s, outside requested origin",
                    result.get("name") or result.get("title"),
                )
                continue
            if self._content_filter.is_restricted(result):
                logger.debug(
                    "Skipping restricted content %s",
                    result.get("name") or result.get("title"),
                )
                continue
            candidates.append({**result, "id": external_id})
        return candidates

    def matches_origin(
        self, result: dict[str, Any], discovery_filter: DiscoveryFilter
    ) -> bool:
        """Re-check genre, language and origin, since discovery only approximates them."""

        genre_ids = {
            genre_id
            for genre_id in (coerce_int(value) for value in result.get("genre_ids") or [])
            if genre_id is not None
        }
        genre_ids.update(
            genre["id"]
            for genre in result.get("genres") or []
            if isinstance(genre, dict) and isinstance(genre.get("id"), int)
        )
        if any(genre_id not in genre_ids for genre_id in discovery_filter.with_genres):
            return False
        if genre_ids & set(discovery_filter.without_genres):
            return False

        wanted_language = discovery_filter.with_original_language
        if wanted_language:
            accepted = {wanted_language}
            if wanted_language in self._settings.native_languages:
                accepted.update(self._settings.native_languages)
            language = str(result.get("original_language") or "").lower()
            if language not in accepted:
                return False

        wanted_country = discovery_filter.with_origin_country
        if wanted_country:
            countries = {
                code.upper()
                for code in as_code_list(result.get("origin_country"))
                + as_code_list(result.get("production_countries"))
            }
            if countries:
                return wanted_country in countries
            titles = (
                result.get("name"),
                result.get("title"),
                result.get("original_name"),
                result.get("original_title"),
            )
            return any(
                contains_script(title, self._settings.native_script_pattern)
                for title in titles
                if isinstance(title, str)
            )
        return True

    async def _stored_external_ids(self, external_ids: Iterable[int]) -> set[int]:
        ids = list(external_ids)
        if not ids:
            return set()
        async with self._session_factory() as session:
            rows = await session.scalars(
                select(MediaItem.external_id).where(MediaItem.external_id.in_(ids))
            )
            return set(rows.all())

    async def _import_candidate(
        self,
        candidate: dict[str, Any],
        media_type: str,
        overrides: SyncOverrides | None,
        policy: ExistingPolicy,
        summary: BatchSummary,
    ) -> None:
        external_id = candidate["id"]
        name = candidate.get("name") or candidate.get("title") or external_id
        try:
            result = await self._sync.ensure_item(
                external_id,
                media_type,
                overrides,
                update_existing=policy == "update",
            )
        except CatalogError as exc:
            logger.warning("Error importing %s (%s): %s", name, external_id, exc)
            summary.errors += 1
            return
        except Exception:
            logger.exception("Unexpected error importing %s (%s)", name, external_id)
            summary.errors += 1
            return

        if result is None:
            summary.skipped += 1
        elif result.created:
            summary.imported += 1
        else:
            summary.updated += 1
