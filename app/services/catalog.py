"""Read and maintenance queries over the stored catalog."""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..content_filter import ContentFilter
from ..db_models import Episode, MediaItem
from ..errors import ItemNotFoundError

logger = logging.getLogger(__name__)


class CatalogQueries:
    """Listing, lookup, deletion and statistics for media items."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        content_filter: ContentFilter,
    ):
        self._session_factory = session_factory
        self._content_filter = content_filter

    async def list_items(
        self,
        *,
        restricted: bool = False,
        media_type: str | None = None,
        status: str | None = None,
        limit: int | None = None,
    ) -> list[MediaItem]:
        """Return general items, or only restricted ones when ``restricted`` is set.

        Items are ordered by vote average, then title. The restricted check runs
        in Python, so ``limit`` applies after filtering.
        """

        statement = select(MediaItem).order_by(
            MediaItem.vote_average.desc(), MediaItem.title
        )
        if media_type:
            statement = statement.where(MediaItem.media_type == media_type)
        if status:
            statement = statement.where(MediaItem.status == status)

        async with self._session_factory() as session:
            items = list((await session.scalars(statement)).all())

        general, kids = self._content_filter.partition(items)
        selected = kids if restricted else general
        if limit is not None and limit >= 0:
            selected = selected[:limit]
        return selected

    async def get_item(self, item_id: int) -> MediaItem:
        async with self._session_factory() as session:
            item = await session.get(MediaItem, item_id)
        if item is None:
            raise ItemNotFoundError(f"Media item {item_id} not found")
        return item

    async def list_episodes(self, item_id: int) -> list[Episode]:
        async with self._session_factory() as session:
            if await session.get(MediaItem, item_id) is None:
                raise ItemNotFoundError(f"Media item {item_id} not found")
            rows = await session.scalars(
                select(Episode)
                .where(Episode.media_item_id == item_id)
                .order_by(Episode.episode_number)
            )
            return list(rows.all())

    async def delete_item(self, item_id: int) -> None:
        """Delete an item together with its episodes."""

        async with self._session_factory() as session:
            item = await session.get(MediaItem, item_id)
            if item is None:
                raise ItemNotFoundError(f"Media item {item_id} not found")
            await session.execute(delete(Episode).where(Episode.media_item_id == item_id))
            await session.delete(item)
            await session.commit()
        logger.info("Deleted media item %s (%s)", item_id, item.title)

    async def statistics(self) -> dict[str, Any]:
        """Return totals plus counts grouped by status and by media type."""

        async with self._session_factory() as session:
            total_items = await session.scalar(select(func.count()).select_from(MediaItem))
            total_episodes = await session.scalar(
                select(func.count()).select_from(Episode)
            )
            by_status = await session.execute(
                select(MediaItem.status, func.count()).group_by(MediaItem.status)
            )
            by_type = await session.execute(
                select(MediaItem.media_type, func.count()).group_by(MediaItem.media_type)
            )
            items = list((await session.scalars(select(MediaItem))).all())

        _, restricted = self._content_filter.partition(items)
        return {
            "total_items": int(total_items or 0),
            "total_episodes": int(total_episodes or 0),
            "restricted_items": len(restricted),
            "by_status": {status: count for status, count in by_status.all()},
            "by_media_type": {media_type: count for media_type, count in by_type.all()},
        }
