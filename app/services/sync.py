"""Create and refresh catalog items from provider data."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..config import Settings
from ..content_filter import ContentFilter
from ..db_models import Genre, MediaItem
from ..errors import (
    FatalFetchError,
    ItemConflictError,
    ItemNotFoundError,
    PersistenceError,
    SyncValidationError,
)
from ..models import SyncOverrides
from ..status import classify_status, parse_date
from ..utils import coerce_int, first_non_empty
from .enrichment import CatalogFetchOrchestrator, EnrichedRecord, FetchOutcome
from .episodes import EpisodeSyncReport, EpisodeSynchronizer

logger = logging.getLogger(__name__)


class SyncStage(str, Enum):
    """Progress of a single item through the sync pipeline."""

    PENDING = "pending"
    FETCHING_DETAIL = "fetching_detail"
    ENRICHING = "enriching"
    MERGING = "merging"
    PERSISTED = "persisted"
    EPISODE_SYNCING = "episode_syncing"
    DONE = "done"
    FAILED = "failed"


@dataclass(slots=True)
class SyncResult:
    """Outcome of syncing one item."""

    item: MediaItem
    created: bool
    stage: SyncStage = SyncStage.DONE
    outcomes: list[FetchOutcome] = field(default_factory=list)
    episodes: EpisodeSyncReport | None = None

    @property
    def degraded(self) -> bool:
        return any(not outcome.ok for outcome in self.outcomes)


def validate_sync_target(external_id: object, media_type: object) -> tuple[int, str]:
    """Validate the identifying fields of a sync request before any I/O."""

    if external_id is None or external_id == "":
        raise SyncValidationError("external id and media type are required")
    parsed_id = coerce_int(external_id)
    if parsed_id is None or parsed_id <= 0:
        raise SyncValidationError(f"Invalid external id {external_id!r}")
    if not media_type:
        raise SyncValidationError("external id and media type are required")
    if media_type not in ("movie", "tv"):
        raise SyncValidationError(
            f'Invalid media type {media_type!r}. Must be "movie" or "tv"'
        )
    return parsed_id, str(media_type)


class CatalogSyncService:
    """Merge provider records with caller overrides and persist them."""

    def __init__(
        self,
        settings: Settings,
        orchestrator: CatalogFetchOrchestrator,
        episodes: EpisodeSynchronizer,
        session_factory: async_sessionmaker[AsyncSession],
        content_filter: ContentFilter | None = None,
    ):
        self._settings = settings
        self._orchestrator = orchestrator
        self._episodes = episodes
        self._session_factory = session_factory
        self._content_filter = content_filter or ContentFilter.from_settings(settings)

    async def find_id_by_external_id(self, external_id: int) -> int | None:
        async with self._session_factory() as session:
            return await session.scalar(
                select(MediaItem.id).where(MediaItem.external_id == external_id)
            )

    async def add_item(
        self,
        external_id: object,
        media_type: object,
        overrides: SyncOverrides | None = None,
        *,
        sync_episodes: bool = True,
    ) -> SyncResult:
        """Create a new item, rejecting external ids that are already stored."""

        parsed_id, parsed_type = validate_sync_target(external_id, media_type)
        existing_id = await self.find_id_by_external_id(parsed_id)
        if existing_id is not None:
            logger.info(
                "Media item with external id %s already exists as %s",
                parsed_id,
                existing_id,
            )
            raise ItemConflictError(parsed_id, existing_id)
        return await self._sync(
            parsed_id,
            parsed_type,
            overrides or SyncOverrides(),
            existing_id=None,
            sync_episodes=sync_episodes,
        )

    async def resync_item(
        self,
        item_id: int,
        overrides: SyncOverrides | None = None,
        *,
        sync_episodes: bool = True,
    ) -> SyncResult:
        """Refresh a stored item in place from the provider."""

        async with self._session_factory() as session:
            item = await session.get(MediaItem, item_id)
            if item is None:
                raise ItemNotFoundError(f"Media item {item_id} not found")
            external_id, media_type = item.external_id, item.media_type
        return await self._sync(
            external_id,
            media_type,
            overrides or SyncOverrides(),
            existing_id=item_id,
            sync_episodes=sync_episodes,
        )

    async def ensure_item(
        self,
        external_id: object,
        media_type: object,
        overrides: SyncOverrides | None = None,
        *,
        update_existing: bool = False,
    ) -> SyncResult | None:
        """Add an item, or resync/skip it when it already exists.

        Returns ``None`` when the item exists and ``update_existing`` is off.
        """

        try:
            return await self.add_item(external_id, media_type, overrides)
        except ItemConflictError as exc:
            if not update_existing:
                return None
            return await self.resync_item(exc.existing_id, overrides)

    async def _sync(
        self,
        external_id: int,
        media_type: str,
        overrides: SyncOverrides,
        *,
        existing_id: int | None,
        sync_episodes: bool,
    ) -> SyncResult:
        self._log_stage(media_type, external_id, SyncStage.FETCHING_DETAIL)
        try:
            record = await self._orchestrator.fetch_and_enrich(external_id, media_type)
        except FatalFetchError as exc:
            logger.warning(
                "Sync %s/%s %s: %s",
                media_type,
                external_id,
                SyncStage.FAILED.value,
                exc,
            )
            raise

        self._log_stage(media_type, external_id, SyncStage.MERGING)
        item_id = await self._persist(record, overrides, existing_id)
        self._log_stage(media_type, external_id, SyncStage.PERSISTED)

        episode_report: EpisodeSyncReport | None = None
        if media_type == "tv" and sync_episodes:
            self._log_stage(media_type, external_id, SyncStage.EPISODE_SYNCING)
            episode_report = await self._episodes.sync(
                item_id,
                external_id,
                record.detail,
                status_locked=overrides.status is not None,
            )

        item = await self._load(item_id)
        logger.info(
            "%s %s (%s/%s, status: %s)",
            "Imported" if existing_id is None else "Updated",
            item.title,
            media_type,
            external_id,
            item.status,
        )
        return SyncResult(
            item=item,
            created=existing_id is None,
            stage=SyncStage.DONE,
            outcomes=list(record.outcomes),
            episodes=episode_report,
        )

    async def _persist(
        self,
        record: EnrichedRecord,
        overrides: SyncOverrides,
        existing_id: int | None,
    ) -> int:
        try:
            async with self._session_factory() as session:
                # Genres are resolved before a new item joins the session.
                # session.get() autoflushes, and a flushed new item would then
                # lazy-load its genres collection outside the async context.
                linked: tuple[list[Genre], list[dict[str, Any]]] | None = None
                if "genres" in record.detail:
                    linked = await self._link_genres(session, record.genres)
                if existing_id is None:
                    item = MediaItem(
                        external_id=record.external_id,
                        media_type=record.media_type,
                        genres=[],
                        restricted_genres=[],
                    )
                    session.add(item)
                else:
                    item = await session.get(MediaItem, existing_id)
                    if item is None:
                        raise ItemNotFoundError(f"Media item {existing_id} not found")
                self.merge_record(item, record, overrides, is_new=existing_id is None)
                if linked is not None:
                    item.genres, item.restricted_genres = linked
                await session.commit()
                return item.id
        except IntegrityError as exc:
            raise PersistenceError(
                f"Store rejected media item {record.external_id}: {exc.orig}"
            ) from exc
        except SQLAlchemyError as exc:
            raise PersistenceError(
                f"Failed to persist media item {record.external_id}: {exc}"
            ) from exc

    def merge_record(
        self,
        item: MediaItem,
        record: EnrichedRecord,
        overrides: SyncOverrides,
        *,
        is_new: bool,
    ) -> None:
        """Apply override > provider > stored value > default precedence."""

        detail = record.detail

        def pick(override: Any, fetched: Any, current: Any, default: Any) -> Any:
            value = first_non_empty(override, fetched)
            if value is None and not is_new:
                value = first_non_empty(current)
            return default if value is None else value

        item.media_type = record.media_type
        item.title = pick(
            None, first_non_empty(detail.get("name"), detail.get("title")), item.title, ""
        )
        item.native_title = pick(
            overrides.native_title, record.native_title, item.native_title, None
        )
        item.overview = pick(None, detail.get("overview"), item.overview, "")
        item.synopsis = pick(overrides.synopsis, None, item.synopsis, None)
        item.poster_path = pick(None, detail.get("poster_path"), item.poster_path, "")
        item.posters = pick(None, record.posters or None, item.posters or None, [])
        item.backdrop_path = pick(
            None, detail.get("backdrop_path"), item.backdrop_path, ""
        )
        item.release_date = pick(
            overrides.release_date,
            parse_date(detail.get("release_date")),
            item.release_date,
            None,
        )
        item.first_air_date = pick(
            overrides.first_air_date,
            parse_date(detail.get("first_air_date")),
            item.first_air_date,
            None,
        )
        fetched_average = detail.get("vote_average")
        item.vote_average = float(
            pick(
                overrides.vote_average,
                fetched_average if isinstance(fetched_average, (int, float)) else None,
                item.vote_average,
                0.0,
            )
        )
        item.vote_count = int(
            pick(
                overrides.vote_count,
                coerce_int(detail.get("vote_count")),
                item.vote_count,
                0,
            )
        )
        declared_episodes = (
            coerce_int(detail.get("number_of_episodes"))
            if record.media_type == "tv"
            else None
        )
        item.episode_count = int(
            pick(overrides.episode_count, declared_episodes, item.episode_count, 0)
        )
        item.category = pick(overrides.category, None, item.category, None)
        if "genres" in detail or is_new:
            item.genre_ids = list(dict.fromkeys(genre["id"] for genre in record.genres))

        keywords_outcome = record.outcome("keywords")
        if keywords_outcome is None or keywords_outcome.ok or is_new:
            item.keywords = list(record.keywords)

        if overrides.status is not None:
            item.status = overrides.status.value
        else:
            item.status = classify_status(
                record.media_type,
                detail.get("status"),
                item.reference_date,
                item.episode_count,
            ).value

    async def _link_genres(
        self, session: AsyncSession, genres: list[dict[str, Any]]
    ) -> tuple[list[Genre], list[dict[str, Any]]]:
        """Create or rename every referenced genre.

        Returns the genres to link and, separately, the ``{id, name}`` entries
        of restricted genres. Those are kept on the item rather than linked so
        the content filter still sees them.
        """

        linked: list[Genre] = []
        restricted: list[dict[str, Any]] = []
        seen: set[int] = set()
        for payload in genres:
            genre_id = payload["id"]
            if genre_id in seen:
                continue
            seen.add(genre_id)
            name = first_non_empty(payload.get("name")) or f"Genre {genre_id}"
            genre = await session.get(Genre, genre_id)
            if genre is None:
                genre = Genre(id=genre_id, name=name)
                session.add(genre)
            else:
                genre.name = name
            if self._content_filter.is_restricted_genre(genre):
                logger.debug("Not linking restricted genre %s (%s)", genre_id, name)
                restricted.append({"id": genre_id, "name": name})
                continue
            linked.append(genre)
        return linked, restricted

    @staticmethod
    def _log_stage(media_type: str, external_id: int, stage: SyncStage) -> None:
        logger.debug("Sync %s/%s: %s", media_type, external_id, stage.value)

    async def _load(self, item_id: int) -> MediaItem:
        async with self._session_factory() as session:
            item = await session.get(MediaItem, item_id)
            if item is None:
                raise ItemNotFoundError(f"Media item {item_id} not found")
            return item
