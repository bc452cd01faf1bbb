"""Writes library metadata into media files, one item kind per pass."""

from __future__ import annotations

import logging
import shlex
import shutil
import threading
from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Protocol

from .config import OrganiserConfig
from .error_handling import FileReplaceError
from .library.kinds import Library, strategy_for
from .library.models import ItemKind, MediaItem
from .progress import ProgressHandler
from .services.ffmpeg import MediaEncoder
from .tags.extractor import StreamTagMap, TagExtractor
from .tags.mapping import TagMap
from .tags.streams import blank_tags

logger = logging.getLogger(__name__)

METADATA_FOLDER_NAME = "metadata"
DRY_RUN_PREFIX = "DRY RUN | "


class ExtrasLibrary(Library, Protocol):
    def get_extras(self, item: MediaItem) -> list[MediaItem]: ...


class ItemOutcome(Enum):
    """What a pass did with one item."""

    PROCESSED = "processed"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class PassResult:
    """Summary of one library pass."""

    kind: ItemKind
    total: int = 0
    outcomes: dict[str, ItemOutcome] = field(default_factory=dict)
    cancelled: bool = False

    def record(self, item: MediaItem, outcome: ItemOutcome) -> None:
        self.outcomes[str(item.path)] = outcome

    def count(self, outcome: ItemOutcome) -> int:
        return sum(1 for recorded in self.outcomes.values() if recorded == outcome)

    def __str__(self) -> str:
        summary = (
            f"{self.kind.value}: {self.count(ItemOutcome.PROCESSED)} processed, "
            f"{self.count(ItemOutcome.SKIPPED)} skipped, "
            f"{self.count(ItemOutcome.FAILED)} failed"
        )
        return f"{summary} (cancelled)" if self.cancelled else summary


class LibraryProcessor:
    """Processes metadata across all library items of one kind."""

    def __init__(
        self,
        config: OrganiserConfig,
        kind: ItemKind,
        library: ExtrasLibrary,
        encoder: MediaEncoder | None = None,
        extractor: TagExtractor | None = None,
    ):
        self.config = config
        self.strategy = strategy_for(kind)
        self.library = library
        self.encoder = encoder or MediaEncoder(config)
        self.extractor = extractor or TagExtractor(self.encoder)

    @property
    def transcode_directory(self) -> Path:
        return self.config.transcode_dir / METADATA_FOLDER_NAME

    def set_metadata(
        self,
        drop_stream_tags: Iterable[str],
        drop_stream_tags_on_value: Iterable[str],
        tag_map_path: Path,
        dry_run: bool,
        force: bool,
        progress_handler: ProgressHandler,
        cancel_event: threading.Event,
    ) -> PassResult:
        """Extract and write metadata for every item of this processor's kind.

        Stops at the next item boundary once ``cancel_event`` is set; items
        already written stay written. A failed file replacement raises
        ``FileReplaceError`` and aborts the pass.
        """
        drop_stream_tags = list(drop_stream_tags)
        drop_stream_tags_on_value = list(drop_stream_tags_on_value)

        items = self.strategy.enumerate(self.library)
        result = PassResult(self.strategy.kind, total=len(items))
        progress_handler.set_progress_to_initial()

        logger.info("Removing all stream tags: %s", ", ".join(drop_stream_tags))
        logger.info(
            "Removing stream tags which contain the item name from the following tag names: %s",
            ", ".join(drop_stream_tags_on_value),
        )

        tag_map = self.extractor.read_tag_mapping(tag_map_path)

        for index, item in enumerate(items):
            if cancel_event.is_set():
                logger.info(
                    "Cancelled %s pass after %d of %d items",
                    self.strategy.kind.value.lower(),
                    index,
                    len(items),
                )
                result.cancelled = True
                return result

            progress_handler.progress(index, len(items))
            if not force and self._has_been_processed(item):
                logger.debug("Skipping already processed %s", item)
                result.record(item, ItemOutcome.SKIPPED)
                continue

            outcome = self._set_metadata_on_item(
                item,
                self.strategy.format_tags(item),
                drop_stream_tags,
                drop_stream_tags_on_value,
                self.strategy.drop_value(item),
                tag_map,
                dry_run,
                force,
                cancel_event,
            )
            result.record(item, outcome)

        progress_handler.set_progress_to_final()
        result.cancelled = cancel_event.is_set()
        return result

    def _has_been_processed(self, item: MediaItem) -> bool:
        if item.is_directory_backed:
            return False
        return self.extractor.item_has_been_processed(item)

    def _set_metadata_on_item(
        self,
        item: MediaItem,
        format_tags: dict[str, str],
        drop_stream_tags: list[str],
        drop_stream_tags_on_value: list[str],
        drop_on_value: str,
        tag_map: TagMap,
        dry_run: bool,
        force: bool,
        cancel_event: threading.Event,
    ) -> ItemOutcome:
        outcome = ItemOutcome.PROCESSED

        # Seasons and series are folders; only their extras carry a container
        if not item.is_directory_backed:
            stream_tags = self.get_stream_tags(
                item,
                drop_stream_tags,
                drop_stream_tags_on_value,
                drop_on_value,
                tag_map,
            )
            transcode_path = self.encode_metadata(
                item,
                tag_map.apply(format_tags),
                stream_tags,
                dry_run,
                cancel_event,
            )
            if transcode_path is None or not self.move_file(transcode_path, item.path, dry_run):
                outcome = ItemOutcome.SKIPPED if cancel_event.is_set() else ItemOutcome.FAILED

        for extra in self._get_extras(item):
            if cancel_event.is_set():
                break
            if not force and self.extractor.item_has_been_processed(extra):
                logger.debug("Skipping already processed extra %s", extra)
                continue
            self._set_metadata_on_item(
                extra,
                self.extractor.format_tags(extra),
                drop_stream_tags,
                drop_stream_tags_on_value,
                drop_on_value,
                tag_map,
                dry_run,
                force,
                cancel_event,
            )

        if self.transcode_directory.exists():
            shutil.rmtree(self.transcode_directory)

        return outcome

    def _get_extras(self, item: MediaItem) -> list[MediaItem]:
        if not item.extras:
            item.extras = self.library.get_extras(item)
        return [extra for extra in item.extras if extra.exists]

    def get_stream_tags(
        self,
        item: MediaItem,
        drop_stream_tags: list[str],
        drop_stream_tags_on_value: list[str],
        drop_on_value: str,
        tag_map: TagMap,
    ) -> StreamTagMap:
        """Stream tags to write: name-matched drops, global drops, then mapped values."""
        merged: StreamTagMap = {}

        drops = self.extractor.get_drop_stream_tags(item, drop_on_value, drop_stream_tags_on_value)
        for index, tags in drops.items():
            merged.setdefault(index, {}).update(tags)

        blanks = blank_tags(drop_stream_tags)
        if blanks:
            for stream in item.streams:
                merged.setdefault(stream.index, {}).update(blanks)

        for index, tags in self.extractor.get_mapped_stream_tag_values(item, tag_map).items():
            merged.setdefault(index, {}).update(tags)

        return {index: tags for index, tags in sorted(merged.items()) if tags}

    def get_transcode_path(self, item: MediaItem) -> Path:
        """Scratch output mirroring the item's location inside its library."""
        root = item.library_root
        if root is not None and item.path.is_relative_to(root):
            return self.transcode_directory / item.path.relative_to(root)
        return self.transcode_directory / item.id / item.path.name

    def build_transcode_args(
        self,
        item: MediaItem,
        format_tags: dict[str, str],
        stream_tags: StreamTagMap,
        output_path: Path,
    ) -> list[str]:
        """Build the ffmpeg arguments; the order of the groups matters."""
        args = ["-loglevel", "warning", "-i", f"file:{item.path}", "-map", "0", "-map_metadata:g", "-1"]

        for stream in item.streams:
            args.extend([f"-map_metadata:s:{stream.index}", f"0:s:{stream.index}"])

        args.extend(["-c", "copy"])

        for key, value in format_tags.items():
            args.extend(["-metadata:g", f"{key.upper()}={value}"])

        for index in sorted(stream_tags):
            for key, value in stream_tags[index].items():
                args.extend([f"-metadata:s:{index}", f"{key}={value}"])

        args.extend(["-y", str(output_path)])
        return args

    def encode_metadata(
        self,
        item: MediaItem,
        format_tags: dict[str, str],
        stream_tags: StreamTagMap,
        dry_run: bool,
        cancel_event: threading.Event,
    ) -> Path | None:
        """Remux ``item`` with new metadata, returning the output path.

        Returns None when ffmpeg fails or is cancelled. A dry run only logs the
        command and returns the path it would have written.
        """
        transcode_path = self.get_transcode_path(item)
        args = self.build_transcode_args(item, format_tags, stream_tags, transcode_path)

        prefix = DRY_RUN_PREFIX if dry_run else ""
        logger.info(
            "%sEncoding metadata to file:\n%s",
            prefix,
            shlex.join(self.encoder.build_remux_command(args)),
        )

        if dry_run:
            return transcode_path

        transcode_path.parent.mkdir(parents=True, exist_ok=True)

        try:
            result = self.encoder.remux(args, cancel_event)
        except OSError as e:
            logger.warning("Could not start ffmpeg for %s: %s", item.path, e)
            return None

        if result.cancelled:
            logger.info("Encoding of %s was cancelled", item.path)
            return None

        if result.returncode != 0:
            logger.warning(
                "ffmpeg exited with code %s for %s: %s",
                result.returncode,
                item.path,
                result.stderr.strip(),
            )
            return None

        return transcode_path

    def move_file(self, source_path: Path, target_path: Path, dry_run: bool) -> bool:
        """Replace ``target_path`` with ``source_path``.

        Returns False when there is nothing to move. Filesystem errors are
        raised as ``FileReplaceError``.
        """
        prefix = DRY_RUN_PREFIX if dry_run else ""
        logger.info("%sMoving file: %s -> %s", prefix, source_path, target_path)
        if dry_run:
            return True

        if not source_path.exists():
            logger.warning("Could not find file: %s", source_path)
            return False

        try:
            target_path.unlink(missing_ok=True)
            shutil.move(str(source_path), str(target_path))
        except OSError as e:
            logger.exception("Failed to move file: %s -> %s", source_path, target_path)
            raise FileReplaceError(source_path, target_path, original_error=e) from e

        return True
