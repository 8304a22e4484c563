"""SQLAlchemy ORM models backing the persistent catalog."""

from __future__ import annotations

from datetime import date, datetime
from typing import Any

from sqlalchemy import (
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    JSON,
    String,
    Table,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .database import Base
from .status import MediaStatus

media_item_genres = Table(
    "media_item_genres",
    Base.metadata,
    Column(
        "media_item_id",
        ForeignKey("media_items.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column("genre_id", ForeignKey("genres.id", ondelete="CASCADE"), primary_key=True),
)


class Genre(Base):
    """Provider genre referenced by one or more media items."""

    __tablename__ = "genres"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    name: Mapped[str] = mapped_column(String(120))


class MediaItem(Base):
    """A synchronised series or movie linked to its provider record."""

    __tablename__ = "media_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    external_id: Mapped[int] = mapped_column(Integer, unique=True, index=True)
    title: Mapped[str] = mapped_column(String(255))
    native_title: Mapped[str | None] = mapped_column(String(255), nullable=True)
    overview: Mapped[str] = mapped_column(Text, default="")
    synopsis: Mapped[str | None] = mapped_column(Text, nullable=True)
    poster_path: Mapped[str] = mapped_column(String(255), default="")
    posters: Mapped[list[str]] = mapped_column(JSON, default=list)
    backdrop_path: Mapped[str] = mapped_column(String(255), default="")
    release_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    first_air_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    vote_average: Mapped[float] = mapped_column(Float, default=0.0)
    vote_count: Mapped[int] = mapped_column(Integer, default=0)
    status: Mapped[str] = mapped_column(String(32), default=MediaStatus.UNKNOWN.value)
    episode_count: Mapped[int] = mapped_column(Integer, default=0)
    media_type: Mapped[str] = mapped_column(String(8))
    category: Mapped[str | None] = mapped_column(String(64), nullable=True)
    genre_ids: Mapped[list[int]] = mapped_column(JSON, default=list)
    restricted_genres: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list)
    keywords: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    genres: Mapped[list[Genre]] = relationship(
        secondary=media_item_genres, lazy="selectin", order_by=Genre.id
    )
    episodes: Mapped[list["Episode"]] = relationship(
        back_populates="media_item",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Episode.episode_number",
    )

    @property
    def reference_date(self) -> date | None:
        """Return the date that drives status classification."""

        if self.media_type == "movie":
            return self.release_date
        return self.first_air_date


class Episode(Base):
    """A synchronised episode keyed by its parent and episode number."""

    __tablename__ = "episodes"
    __table_args__ = (
        UniqueConstraint(
            "media_item_id", "episode_number", name="uq_episode_media_item_number"
        ),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    media_item_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("media_items.id", ondelete="CASCADE"), index=True
    )
    episode_number: Mapped[int] = mapped_column(Integer)
    season_number: Mapped[int] = mapped_column(Integer, default=1)
    title: Mapped[str] = mapped_column(String(255))
    thumbnail: Mapped[str | None] = mapped_column(String(512), nullable=True)
    still_path: Mapped[str | None] = mapped_column(String(255), nullable=True)
    duration: Mapped[int | None] = mapped_column(Integer, nullable=True)
    air_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    external_episode_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    overview: Mapped[str | None] = mapped_column(Text, nullable=True)
    vote_average: Mapped[float | None] = mapped_column(Float, nullable=True)
    vote_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    crew: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list)
    guest_stars: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list)
    servers: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list)
    subtitles: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    media_item: Mapped[MediaItem] = relationship(back_populates="episodes")

    @staticmethod
    def composite_id(media_item_id: int, episode_number: int) -> str:
        """Return the deterministic key for an episode of a media item."""

        return f"{media_item_id}-{episode_number}"
