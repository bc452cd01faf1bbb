"""Tag layers composed into the format tags written to each item.

Each layer maps an item to ``(key, value)`` pairs. A kind's pipeline merges its
layers left to right; a later layer never replaces a key an earlier layer
already produced, and empty values are dropped.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence

from ..library.models import ItemKind, MediaItem

TAG_ARRAY_SEPARATOR = ","
DATE_RELEASED_FORMAT = "%Y-%m-%d %I:%M:%S"

PROCESSED_TAG = ("comment", "Processed by Jellyfin")

TagPairs = Iterable[tuple[str, str | None]]
TagLayer = Callable[[MediaItem], TagPairs]


def _number(value: int | None) -> str | None:
    return None if value is None else str(value)


def _max_index(items: Iterable[MediaItem]) -> str | None:
    indices = [item.index_number for item in items if item.index_number is not None]
    return str(max(indices)) if indices else None


def common_tags(item: MediaItem) -> TagPairs:
    rating = None
    if item.critic_rating is not None:
        rating = str(int(item.critic_rating) // 20)

    return [
        ("title", item.name),
        ("album", item.album),
        ("genre", TAG_ARRAY_SEPARATOR.join(item.genres)),
        ("rating", rating),
        ("keywords", TAG_ARRAY_SEPARATOR.join(item.tags)),
        PROCESSED_TAG,
    ]


def video_tags(item: MediaItem) -> TagPairs:
    date_released = None
    if item.premiere_date is not None:
        date_released = item.premiere_date.strftime(DATE_RELEASED_FORMAT)

    return [
        *provider_id_tags(item),
        ("description", item.tagline),
        ("summary", item.overview),
        ("law_rating", item.official_rating),
        ("date_released", date_released),
        ("production_studio", TAG_ARRAY_SEPARATOR.join(item.studios)),
        ("recording_location", TAG_ARRAY_SEPARATOR.join(item.production_locations)),
    ]


def series_tags(item: MediaItem) -> TagPairs:
    if item.kind == ItemKind.SERIES:
        return [("show", item.name)]

    series = item.series
    return [("show", item.series_name or (series.name if series else None))]


def season_tags(item: MediaItem) -> TagPairs:
    season = item.season if item.kind == ItemKind.EPISODE else item
    if season is None:
        return [("season_number", _number(item.parent_index_number))]

    series = season.parent
    return [
        ("season_number", _number(season.index_number)),
        ("season_total", _max_index(series.children) if series else None),
    ]


def episode_tags(item: MediaItem) -> TagPairs:
    season = item.season
    season_number = item.parent_index_number
    if season_number is None and season is not None:
        season_number = season.index_number

    series = item.series
    return [
        ("episode_number", _number(item.index_number)),
        ("episode_total", _max_index(season.children) if season else None),
        ("season_number", _number(season_number)),
        ("season_total", _max_index(series.children) if series else None),
    ]


def provider_id_tags(item: MediaItem) -> list[tuple[str, str]]:
    return [format_provider_id(item.kind, key, value) for key, value in item.provider_ids.items()]


def format_provider_id(kind: ItemKind, key: str, value: str) -> tuple[str, str]:
    """Rename a provider id and prefix its value with the provider's URL path."""
    key = key.lower()
    if key == "tvdb":
        key = "tvdb2"

    if key == "tmdb":
        value = _format_tmdb_id(kind, value)
    elif key == "tvdb2":
        value = _format_tvdb_id(kind, value)

    return key, value


def _format_tmdb_id(kind: ItemKind, value: str) -> str:
    if kind == ItemKind.MOVIE:
        return f"movie/{value}"
    if kind in {ItemKind.EPISODE, ItemKind.SEASON, ItemKind.SERIES}:
        return f"tv/{value}"
    return value


def _format_tvdb_id(kind: ItemKind, value: str) -> str:
    return {
        ItemKind.MOVIE: f"movies/{value}",
        ItemKind.EPISODE: f"episodes/{value}",
        ItemKind.SERIES: f"series/{value}",
    }.get(kind, value)


def compose(item: MediaItem, layers: Sequence[TagLayer]) -> dict[str, str]:
    """Merge layers left to right into an ordered tag dict without empty values."""
    tags: dict[str, str] = {}
    seen: set[str] = set()
    for layer in layers:
        for key, value in layer(item):
            if value is None or value == "" or key.lower() in seen:
                continue
            seen.add(key.lower())
            tags[key] = value
    return tags


COMMON_LAYERS: tuple[TagLayer, ...] = (common_tags,)
MOVIE_LAYERS: tuple[TagLayer, ...] = (common_tags, video_tags)
EPISODE_LAYERS: tuple[TagLayer, ...] = (common_tags, video_tags, series_tags, episode_tags)
SEASON_LAYERS: tuple[TagLayer, ...] = (common_tags, series_tags, season_tags)
SERIES_LAYERS: tuple[TagLayer, ...] = (common_tags, series_tags)
