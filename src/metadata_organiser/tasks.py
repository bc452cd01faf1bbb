"""Metadata tasks: one or more library passes sharing a single progress report."""

import logging
import threading
from collections.abc import Callable

from .config import OrganiserConfig
from .library.models import ItemKind
from .processor import ExtrasLibrary, LibraryProcessor, PassResult
from .progress import ProgressHandler
from .services.ffmpeg import MediaEncoder
from .tags.extractor import TagExtractor

logger = logging.getLogger(__name__)


class MetadataTask:
    """Runs library passes over a sequence of item kinds, each in its own progress range."""

    name = ""
    key = ""
    description = ""
    passes: tuple[tuple[ItemKind, float, float], ...] = ()

    def __init__(
        self,
        config: OrganiserConfig,
        library: ExtrasLibrary,
        encoder: MediaEncoder | None = None,
    ):
        self.config = config
        self.library = library
        self.encoder = encoder or MediaEncoder(config)
        extractor = TagExtractor(self.encoder)
        self.processors = {
            kind: LibraryProcessor(config, kind, library, self.encoder, extractor)
            for kind, _, _ in self.passes
        }

    def execute(
        self,
        report: Callable[[float], None],
        cancel_event: threading.Event,
    ) -> list[PassResult]:
        """Run every pass in order, stopping early when one is cancelled."""
        report(0)
        logger.info(
            "%s (dry run: %s, force: %s)",
            self.name,
            self.config.dry_run,
            self.config.force,
        )

        results: list[PassResult] = []
        for kind, initial, final in self.passes:
            result = self.processors[kind].set_metadata(
                self.config.drop_tags,
                self.config.drop_tags_on_item_name,
                self.config.mapping_path,
                self.config.dry_run,
                self.config.force,
                ProgressHandler(report, initial, final),
                cancel_event,
            )
            results.append(result)
            logger.info("%s", result)
            if result.cancelled:
                return results

        report(100)
        return results


class SetMovieMetadataTask(MetadataTask):
    name = "Set metadata to movie files"
    key = "SetMovieMetadata"
    description = "Automatically handle assignment of metadata to movie related files."
    passes = ((ItemKind.MOVIE, 5, 100),)


class SetShowMetadataTask(MetadataTask):
    name = "Set metadata to show files"
    key = "SetShowMetadata"
    description = "Automatically handle assignment of metadata to show related files."
    passes = (
        (ItemKind.EPISODE, 0, 80),
        (ItemKind.SEASON, 80, 90),
        (ItemKind.SERIES, 90, 100),
    )
