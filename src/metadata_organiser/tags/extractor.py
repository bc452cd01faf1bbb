"""Tag extraction: what to write to an item, and what is already on disk."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from pathlib import Path
from typing import TYPE_CHECKING, Any

from ..library.kinds import strategy_for
from ..services.ffmpeg import FORMAT_TAGS_SELECTOR, STREAM_TAGS_SELECTOR
from .layers import PROCESSED_TAG
from .mapping import TagMap, get_case_insensitive
from .streams import blank_tags, match_tags_to_value

if TYPE_CHECKING:
    from ..library.models import MediaItem
    from ..services.ffmpeg import MediaEncoder

logger = logging.getLogger(__name__)

StreamTagMap = dict[int, dict[str, str]]


class TagExtractor:
    """Derives output tags for items and reads the tags already in their files."""

    def __init__(self, encoder: MediaEncoder):
        self.encoder = encoder

    def format_tags(self, item: MediaItem) -> dict[str, str]:
        """Tags to assign to ``item``, built from its kind's layers."""
        return strategy_for(item.kind).format_tags(item)

    # Probing

    def extract_entries_from_file(self, item: MediaItem, entries: str) -> str:
        return self.encoder.probe(item.path, entries)

    def extract_format_tags_from_file(self, item: MediaItem) -> dict[str, str]:
        output = self.extract_entries_from_file(item, FORMAT_TAGS_SELECTOR)
        return parse_format_tags(output, item.path)

    def extract_stream_tags_from_file(self, item: MediaItem) -> StreamTagMap:
        output = self.extract_entries_from_file(item, STREAM_TAGS_SELECTOR)
        return parse_stream_tags(output, item.path)

    # Mapping

    def get_mapped_format_tag_values(self, item: MediaItem, tag_map: TagMap) -> dict[str, str]:
        """Corrections for the file's current format tags; tags without a hit are left out."""
        if not tag_map:
            return {}
        return tag_map.remap(self.extract_format_tags_from_file(item).items())

    def get_mapped_stream_tag_values(self, item: MediaItem, tag_map: TagMap) -> StreamTagMap:
        """Corrections for each stream's current tags, keyed by stream index."""
        if not tag_map:
            return {}

        stream_tags = self.extract_stream_tags_from_file(item)
        return {
            stream.index: tag_map.remap(stream_tags.get(stream.index, {}).items())
            for stream in item.streams
        }

    # Dropping

    def get_drop_stream_tags(
        self,
        item: MediaItem,
        on_value: str,
        drop_stream_tags_on_name: Iterable[str] | None = None,
    ) -> StreamTagMap:
        """Stream tags to blank because they contain ``on_value``, keyed by stream index."""
        field_names = list(drop_stream_tags_on_name or [])
        if not field_names:
            return {}

        stream_tags = self.extract_stream_tags_from_file(item)
        drop: StreamTagMap = {}
        for stream in item.streams:
            tags = stream_tags.get(stream.index)
            if tags is None:
                continue
            drop[stream.index] = blank_tags(match_tags_to_value(tags, on_value, field_names))
        return drop

    def item_has_been_processed(self, item: MediaItem) -> bool:
        """Whether the file already carries the processed marker."""
        key, value = PROCESSED_TAG
        return get_case_insensitive(self.extract_format_tags_from_file(item), key) == value

    def read_tag_mapping(self, path: Path) -> TagMap:
        """Read the tag map, falling back to an empty map on any problem."""
        if not path.is_file():
            logger.warning("Could not find mapping file at %s", path)
            return TagMap()

        logger.info("Loading mapping file from %s", path)
        try:
            content = path.read_text(encoding="utf-8")
        except PermissionError:
            logger.exception("Insufficient permissions to load %s", path)
            return TagMap()
        except OSError:
            logger.exception("Could not read mapping file %s", path)
            return TagMap()

        try:
            return TagMap.from_json(json.loads(content))
        except (json.JSONDecodeError, ValueError):
            logger.exception("Could not load JSON file %s", path)
            return TagMap()


def _decode(output: str, path: Path) -> dict[str, Any]:
    if not output.strip():
        logger.warning("No probe output for %s", path)
        return {}
    try:
        decoded = json.loads(output)
    except json.JSONDecodeError as e:
        logger.warning("Malformed probe output for %s: %s", path, e)
        return {}
    if not isinstance(decoded, dict):
        logger.warning("Unexpected probe output for %s: %s", path, output[:100])
        return {}
    return decoded


def _string_tags(tags: object) -> dict[str, str]:
    if not isinstance(tags, dict):
        return {}
    return {str(key): str(value) for key, value in tags.items() if value is not None}


def parse_format_tags(output: str, path: Path) -> dict[str, str]:
    """Parse ``{"format": {"tags": {...}}}`` into a tag dict."""
    format_section = _decode(output, path).get("format")
    if not isinstance(format_section, dict):
        return {}
    return _string_tags(format_section.get("tags"))


def parse_stream_tags(output: str, path: Path) -> StreamTagMap:
    """Parse ``{"streams": [{"index": N, "tags": {...}}]}`` into tags per stream index."""
    streams = _decode(output, path).get("streams")
    if not isinstance(streams, list):
        return {}

    parsed: StreamTagMap = {}
    for stream in streams:
        if not isinstance(stream, dict) or not isinstance(stream.get("index"), int):
            continue
        parsed[stream["index"]] = _string_tags(stream.get("tags"))
    return parsed
