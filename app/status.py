"""Lifecycle status classification for provider records.

Provider status strings are free text ("Returning Series", "Ended",
"Post Production", ...). They are trimmed and case-folded, then looked up in
one table per media type and date phase. Each table has exactly one default,
so every combination of inputs maps to a single :class:`MediaStatus`.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from enum import Enum
from typing import Mapping


class MediaStatus(str, Enum):
    """Closed set of lifecycle states stored on a media item."""

    UPCOMING = "upcoming"
    ONGOING = "ongoing"
    COMPLETE = "complete"
    CANCELED = "canceled"
    RELEASED = "released"
    POST_PRODUCTION = "post_production"
    IN_PRODUCTION = "in_production"
    PILOT = "pilot"
    RUMORED = "rumored"
    PLANNED = "planned"
    UNKNOWN = "unknown"


_MOVIE_RELEASED: Mapping[str, MediaStatus] = {
    "released": MediaStatus.RELEASED,
    "canceled": MediaStatus.CANCELED,
    "cancelled": MediaStatus.CANCELED,
    "post production": MediaStatus.POST_PRODUCTION,
    "in production": MediaStatus.IN_PRODUCTION,
}

_MOVIE_UNDATED: Mapping[str, MediaStatus] = {
    **_MOVIE_RELEASED,
    "rumored": MediaStatus.RUMORED,
    "planned": MediaStatus.PLANNED,
}

_TV_AIRED: Mapping[str, MediaStatus] = {
    "returning series": MediaStatus.ONGOING,
    "returning": MediaStatus.ONGOING,
    "ended": MediaStatus.COMPLETE,
    "canceled": MediaStatus.CANCELED,
    "cancelled": MediaStatus.CANCELED,
    "in production": MediaStatus.ONGOING,
    "pilot": MediaStatus.PILOT,
    "planned": MediaStatus.UPCOMING,
}

_TV_UNDATED: Mapping[str, MediaStatus] = {
    "planned": MediaStatus.UPCOMING,
    "in production": MediaStatus.UPCOMING,
    "ended": MediaStatus.COMPLETE,
    "canceled": MediaStatus.CANCELED,
    "cancelled": MediaStatus.CANCELED,
    "returning series": MediaStatus.ONGOING,
    "returning": MediaStatus.ONGOING,
}

# (media type, has the date passed?) -> (lookup table, default)
STATUS_TABLES: Mapping[tuple[str, bool], tuple[Mapping[str, MediaStatus], MediaStatus]] = {
    ("movie", True): (_MOVIE_RELEASED, MediaStatus.RELEASED),
    ("movie", False): (_MOVIE_UNDATED, MediaStatus.UPCOMING),
    # An aired show with an unrecognised status is assumed to still be running.
    ("tv", True): (_TV_AIRED, MediaStatus.ONGOING),
    ("tv", False): (_TV_UNDATED, MediaStatus.UPCOMING),
}

# Free-text aliases accepted from admins and legacy rows.
_STATUS_ALIASES: Mapping[str, MediaStatus] = {
    "completed": MediaStatus.COMPLETE,
    "ended": MediaStatus.COMPLETE,
    "returning": MediaStatus.ONGOING,
    "returning series": MediaStatus.ONGOING,
    "in production": MediaStatus.IN_PRODUCTION,
    "post production": MediaStatus.POST_PRODUCTION,
    "cancelled": MediaStatus.CANCELED,
}


def normalize_status_text(value: object) -> str:
    """Trim and case-fold a provider status string."""

    if not isinstance(value, str):
        return ""
    return " ".join(value.split()).casefold()


def parse_date(value: object) -> date | None:
    """Return a ``date`` for ISO strings, dates or datetimes, else ``None``."""

    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or len(value.strip()) < 10:
        return None
    try:
        return date.fromisoformat(value.strip()[:10])
    except ValueError:
        return None


def classify_status(
    media_type: object,
    status_text: object,
    reference_date: object = None,
    episode_count: object = 0,
    *,
    today: date | None = None,
) -> MediaStatus:
    """Return the lifecycle status for a provider record.

    ``reference_date`` is the release date for movies and the first air date
    for TV. A date strictly after ``today`` always yields ``upcoming``.
    ``episode_count`` is accepted for callers that track it; aired shows with
    an unrecognised status are ``ongoing`` regardless of the count.
    """

    if media_type not in ("movie", "tv"):
        return MediaStatus.UNKNOWN

    current = today or datetime.now(timezone.utc).date()
    parsed = parse_date(reference_date)
    if parsed is not None and parsed > current:
        return MediaStatus.UPCOMING

    table, default = STATUS_TABLES[(str(media_type), parsed is not None)]
    return table.get(normalize_status_text(status_text), default)


def refine_status_after_sync(
    classified: MediaStatus, synced_episode_count: int
) -> MediaStatus:
    """Apply the retention rules used once episodes have been synced."""

    if classified is MediaStatus.COMPLETE and synced_episode_count > 0:
        return MediaStatus.COMPLETE
    if classified is MediaStatus.ONGOING and synced_episode_count > 0:
        return MediaStatus.ONGOING
    if classified is MediaStatus.UPCOMING and synced_episode_count == 0:
        return MediaStatus.UPCOMING
    return classified


def coerce_status(value: object) -> MediaStatus | None:
    """Map a stored or user supplied status string onto :class:`MediaStatus`."""

    if isinstance(value, MediaStatus):
        return value
    text = normalize_status_text(value)
    if not text:
        return None
    if text in _STATUS_ALIASES:
        return _STATUS_ALIASES[text]
    try:
        return MediaStatus(text.replace(" ", "_"))
    except ValueError:
        return None
