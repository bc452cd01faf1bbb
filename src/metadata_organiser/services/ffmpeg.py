"""Wrapper for the ffprobe and ffmpeg executables."""

import logging
import shlex
import subprocess
import threading
from pathlib import Path

from metadata_organiser.config import OrganiserConfig
from metadata_organiser.process import ProcessResult, run_process, run_process_cancellable

logger = logging.getLogger(__name__)

FORMAT_TAGS_SELECTOR = "format_tags"
STREAM_TAGS_SELECTOR = "stream=index : stream_tags"


class MediaEncoder:
    """Runs ffprobe to read embedded metadata and ffmpeg to rewrite it."""

    def __init__(self, config: OrganiserConfig):
        self.config = config
        self.ffmpeg_binary = config.ffmpeg_binary
        self.ffprobe_binary = config.ffprobe_binary

    def build_probe_command(self, path: Path, entries: str) -> list[str]:
        """Build the ffprobe command line.

        The large analysis and probe sizes let ffprobe read tags from containers
        whose metadata sits far from the start of the file.
        """
        return [
            self.ffprobe_binary,
            "-analyzeduration",
            "200M",
            "-probesize",
            "1G",
            "-i",
            f"file:{path}",
            "-threads",
            "0",
            "-v",
            "warning",
            "-show_entries",
            entries,
            "-print_format",
            "json=compact=1",
        ]

    def probe(self, path: Path, entries: str) -> str:
        """Return ffprobe's JSON output, or an empty string if it could not run."""
        cmd = self.build_probe_command(path, entries)
        logger.info("Probing file:\n%s", shlex.join(cmd))

        try:
            result = run_process(cmd, timeout=self.config.probe_timeout)
        except (OSError, subprocess.SubprocessError) as e:
            logger.warning("Could not probe %s: %s", path, e)
            return ""

        if result.returncode != 0:
            logger.warning(
                "ffprobe exited with code %s for %s: %s",
                result.returncode,
                path,
                result.stderr.strip(),
            )
        return result.stdout

    def build_remux_command(self, args: list[str]) -> list[str]:
        return [self.ffmpeg_binary, *args]

    def remux(self, args: list[str], cancel_event: threading.Event) -> ProcessResult:
        """Run ffmpeg with ``args`` until it exits or ``cancel_event`` is set."""
        return run_process_cancellable(
            self.build_remux_command(args),
            cancel_event,
            poll_interval=self.config.process_poll_interval,
            terminate_timeout=self.config.process_terminate_timeout,
        )

    def get_version(self, binary: str | None = None) -> str | None:
        """Get the first line of ``binary -version``."""
        binary = binary or self.ffmpeg_binary
        try:
            result = run_process(
                [binary, "-version"],
                timeout=self.config.tool_version_timeout,
            )
            if result.returncode == 0 and result.stdout:
                return result.stdout.splitlines()[0].strip()
        except (OSError, subprocess.SubprocessError) as e:
            logger.warning("Could not get %s version: %s", binary, e)

        return None

    def check_availability(self) -> bool:
        """Check that both ffmpeg and ffprobe run."""
        return all(
            self.get_version(binary) is not None
            for binary in (self.ffmpeg_binary, self.ffprobe_binary)
        )
