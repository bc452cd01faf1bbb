"""Jellyfin library client."""

from __future__ import annotations

import logging
import re
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any

import httpx

from metadata_organiser.library.models import ItemKind, MediaItem, MediaStream

if TYPE_CHECKING:
    from metadata_organiser.config import OrganiserConfig

logger = logging.getLogger(__name__)

ITEM_FIELDS = ",".join(
    [
        "Path",
        "Genres",
        "Tags",
        "Studios",
        "ProductionLocations",
        "ProviderIds",
        "Overview",
        "Taglines",
        "OfficialRating",
        "PremiereDate",
        "CriticRating",
        "MediaStreams",
        "ParentId",
    ],
)

TV_KINDS = (ItemKind.SERIES, ItemKind.SEASON, ItemKind.EPISODE)

_EXCESS_FRACTION = re.compile(r"(\.\d{6})\d+")


def _parse_date(value: str | None) -> datetime | None:
    if not value:
        return None
    # Jellyfin emits 7 fractional digits, more than fromisoformat accepts
    value = _EXCESS_FRACTION.sub(r"\1", value.replace("Z", "+00:00"))
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        logger.debug("Unparseable date from Jellyfin: %s", value)
        return None


def _names(values: list[Any] | None) -> list[str]:
    names: list[str] = []
    for value in values or []:
        name = value.get("Name") if isinstance(value, dict) else value
        if name and name not in names:
            names.append(str(name))
    return names


class JellyfinLibrary:
    """Reads library items from a Jellyfin server's HTTP API."""

    def __init__(
        self,
        config: OrganiserConfig,
        transport: httpx.BaseTransport | None = None,
    ):
        self.config = config
        self._transport = transport
        self._roots: list[Path] | None = None
        self._tv_items: dict[ItemKind, list[MediaItem]] | None = None

    @property
    def is_configured(self) -> bool:
        return bool(self.config.jellyfin_url and self.config.jellyfin_api_key)

    def _client(self) -> httpx.Client:
        return httpx.Client(
            base_url=self.config.jellyfin_url or "",
            headers={"X-Emby-Token": self.config.jellyfin_api_key or ""},
            timeout=self.config.jellyfin_request_timeout,
            transport=self._transport,
        )

    def _request(
        self,
        method: str,
        endpoint: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
    ) -> Any:
        with self._client() as client:
            response = client.request(method, endpoint, params=params, json=json)
            response.raise_for_status()
            if not response.content:
                return None
            return response.json()

    def _get_items(self, params: dict[str, Any]) -> list[dict[str, Any]]:
        try:
            data = self._request("GET", "/Items", params=params)
        except httpx.HTTPError as exc:
            logger.warning("Jellyfin item query failed: %s", exc)
            return []
        return list((data or {}).get("Items", []))

    # Library structure

    def get_library_roots(self) -> list[Path]:
        """Folders configured as library locations, deepest first."""
        if self._roots is None:
            try:
                folders = self._request("GET", "/Library/VirtualFolders") or []
            except httpx.HTTPError as exc:
                logger.warning("Could not read Jellyfin library folders: %s", exc)
                folders = []
            roots = {Path(location) for folder in folders for location in folder.get("Locations", [])}
            self._roots = sorted(roots, key=lambda root: len(root.parts), reverse=True)
        return self._roots

    def find_library_root(self, path: Path) -> Path | None:
        for root in self.get_library_roots():
            if path.is_relative_to(root):
                return root
        return None

    # Queries

    def list_items(
        self,
        kind: ItemKind,
        *,
        recursive: bool = True,
        sort_by: str = "SortName",
        sort_order: str = "Ascending",
    ) -> list[MediaItem]:
        """List non-virtual items of ``kind`` in the requested order."""
        if kind in TV_KINDS:
            return list(self._load_tv_items(recursive, sort_by, sort_order)[kind])
        return [
            self._to_item(payload, kind)
            for payload in self._query(kind, recursive, sort_by, sort_order)
        ]

    def get_extras(self, item: MediaItem) -> list[MediaItem]:
        """Special features (trailers, featurettes, theme videos) of ``item``."""
        try:
            payloads = self._request("GET", f"/Items/{item.id}/SpecialFeatures") or []
        except httpx.HTTPError as exc:
            logger.warning("Could not read extras of %s: %s", item, exc)
            return []
        return [self._to_item(payload, ItemKind.EXTRA) for payload in payloads]

    def delete_item(self, item: MediaItem) -> None:
        """Remove ``item`` from the library. Jellyfin also deletes its files."""
        logger.info("Deleting %s from the library", item)
        self._request("DELETE", f"/Items/{item.id}")

    def update_item(self, item: MediaItem) -> None:
        """Write the item's editable metadata back to the library."""
        payload = dict(item.raw)
        payload.update(
            {
                "Name": item.name,
                "Genres": list(item.genres),
                "Tags": list(item.tags),
                "Studios": [{"Name": studio} for studio in item.studios],
                "ProductionLocations": list(item.production_locations),
                "ProviderIds": dict(item.provider_ids),
            },
        )
        self._request("POST", f"/Items/{item.id}", json=payload)

    def _query(
        self,
        kind: ItemKind,
        recursive: bool,
        sort_by: str,
        sort_order: str,
    ) -> list[dict[str, Any]]:
        return self._get_items(
            {
                "IncludeItemTypes": kind.value,
                "Recursive": str(recursive).lower(),
                "IsMissing": "false",
                "SortBy": sort_by,
                "SortOrder": sort_order,
                "Fields": ITEM_FIELDS,
            },
        )

    def _load_tv_items(
        self,
        recursive: bool,
        sort_by: str,
        sort_order: str,
    ) -> dict[ItemKind, list[MediaItem]]:
        """Load series, seasons and episodes together and link them."""
        if self._tv_items is not None:
            return self._tv_items

        loaded = {
            kind: [self._to_item(payload, kind) for payload in self._query(kind, recursive, sort_by, sort_order)]
            for kind in TV_KINDS
        }

        by_id = {item.id: item for items in loaded.values() for item in items}

        def find_parent(item: MediaItem, key: str, kind: ItemKind) -> MediaItem | None:
            # ParentId may point past the expected level (an episode directly under its series)
            parent = by_id.get(item.raw.get(key) or item.raw.get("ParentId") or "")
            return parent if parent is not None and parent.kind == kind else None

        for season in loaded[ItemKind.SEASON]:
            series = find_parent(season, "SeriesId", ItemKind.SERIES)
            if series is not None:
                series.add_child(season)
        for episode in loaded[ItemKind.EPISODE]:
            season = find_parent(episode, "SeasonId", ItemKind.SEASON)
            if season is not None:
                season.add_child(episode)

        self._tv_items = loaded
        return loaded

    def _to_item(self, payload: dict[str, Any], kind: ItemKind) -> MediaItem:
        path = Path(payload.get("Path") or "")
        taglines = payload.get("Taglines") or []
        item = MediaItem(
            id=str(payload.get("Id", "")),
            kind=kind,
            path=path,
            name=payload.get("Name") or "",
            album=payload.get("Album"),
            genres=_names(payload.get("Genres")),
            tags=_names(payload.get("Tags")),
            studios=_names(payload.get("Studios")),
            production_locations=_names(payload.get("ProductionLocations")),
            provider_ids={key: str(value) for key, value in (payload.get("ProviderIds") or {}).items() if value},
            critic_rating=payload.get("CriticRating"),
            tagline=taglines[0] if taglines else None,
            overview=payload.get("Overview"),
            official_rating=payload.get("OfficialRating"),
            premiere_date=_parse_date(payload.get("PremiereDate")),
            series_name=payload.get("SeriesName"),
            index_number=payload.get("IndexNumber"),
            parent_index_number=payload.get("ParentIndexNumber"),
            streams=[
                MediaStream(
                    index=stream["Index"],
                    title=stream.get("Title"),
                    type=stream.get("Type"),
                )
                for stream in payload.get("MediaStreams") or []
                if isinstance(stream.get("Index"), int)
            ],
            raw=payload,
        )
        if payload.get("Path"):
            item.library_root = self.find_library_root(path)
        return item
