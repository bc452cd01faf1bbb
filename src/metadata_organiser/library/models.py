"""Library item records."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any


class ItemKind(Enum):
    """Kinds of library item the organiser knows how to tag."""

    MOVIE = "Movie"
    EPISODE = "Episode"
    SEASON = "Season"
    SERIES = "Series"
    EXTRA = "Extra"


@dataclass
class MediaStream:
    """One elementary stream inside a media container."""

    index: int
    title: str | None = None
    type: str | None = None


@dataclass(eq=False)
class MediaItem:
    """A library entry backed by a file (movies, episodes, extras) or a directory."""

    id: str
    kind: ItemKind
    path: Path
    name: str = ""
    album: str | None = None
    genres: list[str] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)
    studios: list[str] = field(default_factory=list)
    production_locations: list[str] = field(default_factory=list)
    provider_ids: dict[str, str] = field(default_factory=dict)
    critic_rating: float | None = None
    tagline: str | None = None
    overview: str | None = None
    official_rating: str | None = None
    premiere_date: datetime | None = None
    series_name: str | None = None
    index_number: int | None = None
    parent_index_number: int | None = None
    streams: list[MediaStream] = field(default_factory=list)

    # Hierarchy: series -> seasons -> episodes
    parent: MediaItem | None = field(default=None, repr=False)
    children: list[MediaItem] = field(default_factory=list, repr=False)
    extras: list[MediaItem] = field(default_factory=list, repr=False)

    library_root: Path | None = None
    raw: dict[str, Any] = field(default_factory=dict, repr=False)

    @property
    def is_directory_backed(self) -> bool:
        return self.kind in {ItemKind.SEASON, ItemKind.SERIES}

    @property
    def exists(self) -> bool:
        """Whether the backing file or directory is currently on disk."""
        if self.is_directory_backed:
            return self.path.is_dir()
        return self.path.is_file()

    @property
    def season(self) -> MediaItem | None:
        if self.kind == ItemKind.EPISODE:
            return self.parent
        return None

    @property
    def series(self) -> MediaItem | None:
        if self.kind == ItemKind.SERIES:
            return self
        if self.kind == ItemKind.SEASON:
            return self.parent
        if self.kind == ItemKind.EPISODE and self.parent is not None:
            return self.parent.parent
        return None

    def add_child(self, child: MediaItem) -> None:
        if child not in self.children:
            self.children.append(child)
        child.parent = self

    def __str__(self) -> str:
        return f"{self.kind.value} '{self.name}' ({self.path})"
