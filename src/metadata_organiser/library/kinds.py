"""Per-kind behaviour: which tag layers apply, what to match drops on, how to list items."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

from ..tags import layers
from .models import ItemKind, MediaItem

logger = logging.getLogger(__name__)


class Library(Protocol):
    """Library query collaborator."""

    def list_items(
        self,
        kind: ItemKind,
        *,
        recursive: bool = True,
        sort_by: str = "SortName",
        sort_order: str = "Ascending",
    ) -> list[MediaItem]: ...


def _name(item: MediaItem) -> str:
    return item.name


def _series_name(item: MediaItem) -> str:
    series = item.series
    if series is not None and series.name:
        return series.name
    return item.series_name or item.name


@dataclass(frozen=True)
class ItemKindStrategy:
    """Capabilities of one item kind."""

    kind: ItemKind
    tag_layers: tuple[layers.TagLayer, ...]
    drop_value: Callable[[MediaItem], str]

    def format_tags(self, item: MediaItem) -> dict[str, str]:
        return layers.compose(item, self.tag_layers)

    def enumerate(self, library: Library) -> list[MediaItem]:
        """Items of this kind, in library order, whose file or directory exists."""
        items = library.list_items(self.kind, recursive=True)
        existing = [item for item in items if item.exists]
        if len(existing) != len(items):
            logger.info(
                "Skipping %d %s items missing from disk",
                len(items) - len(existing),
                self.kind.value.lower(),
            )
        return existing


STRATEGIES: dict[ItemKind, ItemKindStrategy] = {
    ItemKind.MOVIE: ItemKindStrategy(ItemKind.MOVIE, layers.MOVIE_LAYERS, _name),
    ItemKind.EPISODE: ItemKindStrategy(ItemKind.EPISODE, layers.EPISODE_LAYERS, _series_name),
    ItemKind.SEASON: ItemKindStrategy(ItemKind.SEASON, layers.SEASON_LAYERS, _series_name),
    ItemKind.SERIES: ItemKindStrategy(ItemKind.SERIES, layers.SERIES_LAYERS, _name),
    ItemKind.EXTRA: ItemKindStrategy(ItemKind.EXTRA, layers.COMMON_LAYERS, _name),
}


def strategy_for(kind: ItemKind) -> ItemKindStrategy:
    return STRATEGIES[kind]
