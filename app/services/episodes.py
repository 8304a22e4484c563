"""Season and episode synchronisation for TV items."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..config import Settings
from ..db_models import Episode, MediaItem
from ..status import (
    MediaStatus,
    classify_status,
    coerce_status,
    parse_date,
    refine_status_after_sync,
)
from ..utils import build_image_url, coerce_int, first_non_empty
from .tmdb import TMDBClient, TMDBError

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class EpisodeSyncReport:
    """Summary of one walk over a show's seasons."""

    seasons_requested: int = 0
    synced_seasons: list[int] = field(default_factory=list)
    failed_seasons: list[int] = field(default_factory=list)
    episodes_upserted: int = 0
    episode_failures: int = 0
    stored_episode_count: int = 0
    previous_status: MediaStatus | None = None
    final_status: MediaStatus | None = None

    @property
    def status_changed(self) -> bool:
        return self.final_status is not None and self.final_status != self.previous_status


def _people(entries: Any, role_key: str) -> list[dict[str, Any]]:
    people: list[dict[str, Any]] = []
    if not isinstance(entries, list):
        return people
    for entry in entries:
        if not isinstance(entry, dict) or entry.get("id") is None:
            continue
        people.append(
            {
                "id": entry["id"],
                "name": entry.get("name") or "",
                role_key: entry.get(role_key),
            }
        )
    return people


class EpisodeSynchronizer:
    """Walk seasons 1..N of a show and upsert every episode."""

    def __init__(
        self,
        settings: Settings,
        tmdb: TMDBClient,
        session_factory: async_sessionmaker[AsyncSession],
    ):
        self._settings = settings
        self._tmdb = tmdb
        self._session_factory = session_factory

    async def sync(
        self,
        media_item_id: int,
        external_id: int,
        detail: dict[str, Any],
        *,
        status_locked: bool = False,
    ) -> EpisodeSyncReport:
        """Sync all declared seasons, then recompute the item's status.

        A failed season fetch skips that season; a failed episode write skips
        that episode. Neither aborts the walk. When ``status_locked`` is set
        the caller chose the status explicitly and it is left untouched.
        """

        report = EpisodeSyncReport(
            seasons_requested=coerce_int(detail.get("number_of_seasons")) or 0
        )
        counter = 1

        for season_number in range(1, report.seasons_requested + 1):
            try:
                season = await self._tmdb.get_season(external_id, season_number)
            except TMDBError as exc:
                logger.warning(
                    "Skipping season %s of %s: %s", season_number, external_id, exc
                )
                report.failed_seasons.append(season_number)
                continue

            report.synced_seasons.append(season_number)
            for payload in season.get("episodes") or []:
                if not isinstance(payload, dict):
                    continue
                provider_number = coerce_int(payload.get("episode_number"))
                number = provider_number or counter
                try:
                    await self._upsert_episode(
                        media_item_id, number, season_number, payload
                    )
                except Exception:
                    logger.exception(
                        "Failed to upsert episode %s (season %s) of %s",
                        number,
                        season_number,
                        external_id,
                    )
                    report.episode_failures += 1
                    if provider_number:
                        counter = max(counter, provider_number + 1)
                    else:
                        counter += 1
                    continue
                report.episodes_upserted += 1
                counter = max(counter, number) + 1

        await self._finalize_status(media_item_id, detail, report, status_locked)
        logger.info(
            "Episodes synced for %s: %s stored, %s failed seasons, status %s",
            external_id,
            report.stored_episode_count,
            len(report.failed_seasons),
            report.final_status.value if report.final_status else "unchanged",
        )
        return report

    async def _upsert_episode(
        self,
        media_item_id: int,
        number: int,
        season_number: int,
        payload: dict[str, Any],
    ) -> None:
        episode_id = Episode.composite_id(media_item_id, number)
        still_path = first_non_empty(payload.get("still_path"))
        async with self._session_factory() as session:
            episode = await session.get(Episode, episode_id)
            if episode is None:
                episode = Episode(
                    id=episode_id,
                    media_item_id=media_item_id,
                    episode_number=number,
                    servers=[],
                    subtitles=[],
                )
                session.add(episode)
            episode.season_number = season_number
            episode.title = first_non_empty(payload.get("name")) or f"Episode {number}"
            episode.still_path = still_path
            episode.thumbnail = build_image_url(
                still_path, self._settings.tmdb_image_base_url
            )
            episode.duration = coerce_int(payload.get("runtime"))
            episode.air_date = parse_date(payload.get("air_date"))
            episode.external_episode_id = coerce_int(payload.get("id"))
            episode.overview = first_non_empty(payload.get("overview"))
            vote_average = payload.get("vote_average")
            episode.vote_average = (
                float(vote_average) if isinstance(vote_average, (int, float)) else None
            )
            episode.vote_count = coerce_int(payload.get("vote_count"))
            episode.crew = _people(payload.get("crew"), "job")
            episode.guest_stars = _people(payload.get("guest_stars"), "character")
            await session.commit()

    async def _finalize_status(
        self,
        media_item_id: int,
        detail: dict[str, Any],
        report: EpisodeSyncReport,
        status_locked: bool,
    ) -> None:
        try:
            async with self._session_factory() as session:
                item = await session.get(MediaItem, media_item_id)
                if item is None:
                    logger.warning("Media item %s vanished during episode sync", media_item_id)
                    return
                report.previous_status = coerce_status(item.status)
                report.stored_episode_count = int(
                    await session.scalar(
                        select(func.count())
                        .select_from(Episode)
                        .where(Episode.media_item_id == media_item_id)
                    )
                    or 0
                )
                if status_locked:
                    report.final_status = report.previous_status
                    return

                classified = classify_status(
                    "tv",
                    detail.get("status"),
                    item.first_air_date,
                    report.stored_episode_count,
                )
                final = refine_status_after_sync(classified, report.stored_episode_count)
                report.final_status = final
                if item.status != final.value:
                    item.status = final.value
                    await session.commit()
                    logger.info(
                        "Updated status for %s: %s -> %s (%s episodes synced)",
                        item.title,
                        report.previous_status.value if report.previous_status else None,
                        final.value,
                        report.stored_episode_count,
                    )
        except SQLAlchemyError:
            logger.exception("Failed to recompute status for media item %s", media_item_id)
