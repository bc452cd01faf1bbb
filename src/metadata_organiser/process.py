"""Blocking external process helpers."""

import logging
import subprocess
import threading
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass
class ProcessResult:
    """Outcome of an external process run."""

    returncode: int
    stdout: str = ""
    stderr: str = ""
    cancelled: bool = False

    @property
    def success(self) -> bool:
        return self.returncode == 0 and not self.cancelled


def run_process(cmd: list[str], *, timeout: float | None = None) -> ProcessResult:
    """Spawn a process, wait for it and capture its output."""
    result = subprocess.run(
        cmd,
        check=False,
        capture_output=True,
        text=True,
        encoding="utf-8",
        errors="replace",
        timeout=timeout,
    )
    return ProcessResult(result.returncode, result.stdout or "", result.stderr or "")


def run_process_cancellable(
    cmd: list[str],
    cancel_event: threading.Event,
    *,
    poll_interval: float = 0.5,
    terminate_timeout: float = 10,
) -> ProcessResult:
    """Run a process until it exits or ``cancel_event`` is set.

    Output is drained on background threads so a chatty child can never block
    on a full pipe while we poll. On cancellation the child is terminated, and
    killed if it outlives ``terminate_timeout``.
    """
    process = subprocess.Popen(
        cmd,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
        encoding="utf-8",
        errors="replace",
    )

    stdout_lines: list[str] = []
    stderr_lines: list[str] = []

    def drain(stream, lines: list[str]) -> None:
        if stream is None:
            return
        for line in stream:
            lines.append(line.rstrip("\n"))

    readers = [
        threading.Thread(target=drain, args=(process.stdout, stdout_lines), daemon=True),
        threading.Thread(target=drain, args=(process.stderr, stderr_lines), daemon=True),
    ]
    for reader in readers:
        reader.start()

    cancelled = False
    while process.poll() is None:
        if cancel_event.is_set():
            cancelled = True
            logger.info("Cancellation requested, terminating process %s", process.pid)
            process.terminate()
            try:
                process.wait(timeout=terminate_timeout)
            except subprocess.TimeoutExpired:
                logger.warning("Process %s did not terminate, killing it", process.pid)
                process.kill()
                process.wait()
            break
        cancel_event.wait(poll_interval)

    for reader in readers:
        reader.join()

    return ProcessResult(
        returncode=process.returncode,
        stdout="\n".join(stdout_lines),
        stderr="\n".join(stderr_lines),
        cancelled=cancelled,
    )
