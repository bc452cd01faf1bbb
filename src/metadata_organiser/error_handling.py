"""Error handling for metadata-organiser."""

import logging
import shutil
import subprocess
import sys
from enum import Enum
from pathlib import Path

import httpx
from rich.console import Console

logger = logging.getLogger(__name__)
console = Console()


class ErrorCategory(Enum):
    """Categories of errors for better user experience."""

    CONFIGURATION = "configuration"
    DEPENDENCY = "dependency"
    NETWORK = "network"
    FILESYSTEM = "filesystem"
    EXTERNAL_TOOL = "external_tool"
    SYSTEM = "system"


class OrganiserError(Exception):
    """Base exception carrying a category and a suggested solution."""

    def __init__(
        self,
        message: str,
        category: ErrorCategory,
        *,
        solution: str | None = None,
        details: str | None = None,
        recoverable: bool = True,
        log_level: int = logging.ERROR,
        original_error: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category
        self.solution = solution
        self.details = details
        self.recoverable = recoverable
        self.log_level = log_level
        self.original_error = original_error

    def display_to_user(self) -> None:
        """Display error to user with helpful context."""
        category_styles = {
            ErrorCategory.CONFIGURATION: ("⚙️", "yellow"),
            ErrorCategory.DEPENDENCY: ("📦", "red"),
            ErrorCategory.NETWORK: ("🌐", "orange1"),
            ErrorCategory.FILESYSTEM: ("📁", "red"),
            ErrorCategory.EXTERNAL_TOOL: ("🔧", "red"),
            ErrorCategory.SYSTEM: ("💻", "red"),
        }

        emoji, color = category_styles.get(self.category, ("❌", "red"))

        console.print(
            f"\n{emoji} [bold {color}]{self.category.value.title()} Error[/bold {color}]",
        )
        console.print(f"[{color}]{self.message}[/{color}]")

        if self.details:
            console.print(f"\n[dim]Details:[/dim] {self.details}")

        if self.solution:
            console.print(f"\n[green]💡 Solution:[/green] {self.solution}")

        if self.recoverable:
            console.print(
                "\n[dim]This error may be temporary. You can try again.[/dim]",
            )
        else:
            console.print(
                "\n[dim]This error requires intervention before continuing.[/dim]",
            )

        if self.original_error:
            logger.log(
                self.log_level,
                "%s: %s",
                self.category.value,
                self.message,
                exc_info=self.original_error,
            )
        else:
            logger.log(self.log_level, "%s: %s", self.category.value, self.message)


class ConfigurationError(OrganiserError):
    """Configuration-related errors."""

    def __init__(self, message: str, *, config_path: Path | None = None, **kwargs):
        solution = kwargs.pop("solution", None)
        if not solution and config_path:
            solution = f"Check your configuration file at {config_path}"
        super().__init__(
            message,
            ErrorCategory.CONFIGURATION,
            solution=solution,
            **kwargs,
        )


class DependencyError(OrganiserError):
    """Missing or broken dependency errors."""

    def __init__(
        self,
        dependency: str,
        *,
        install_command: str | None = None,
        **kwargs,
    ):
        message = f"Required dependency '{dependency}' is not available"
        solution = kwargs.pop("solution", None)
        if not solution and install_command:
            solution = f"Install with: {install_command}"
        super().__init__(
            message,
            ErrorCategory.DEPENDENCY,
            solution=solution,
            recoverable=False,
            **kwargs,
        )


class FileReplaceError(OrganiserError):
    """Replacing a library file with its remuxed copy failed."""

    def __init__(self, source: Path, target: Path, **kwargs):
        message = f"Failed to move file: {source} -> {target}"
        solution = kwargs.pop(
            "solution",
            f"Check permissions on {target.parent} and that {target} is not in use",
        )
        super().__init__(
            message,
            ErrorCategory.FILESYSTEM,
            solution=solution,
            recoverable=False,
            **kwargs,
        )
        self.source = source
        self.target = target


def categorize(error: Exception) -> ErrorCategory:
    """Best category for an exception raised outside our own error types."""
    # ConnectionError and TimeoutError are OSErrors too; check them first
    if isinstance(error, httpx.HTTPError | ConnectionError | TimeoutError):
        return ErrorCategory.NETWORK
    if isinstance(error, subprocess.SubprocessError):
        return ErrorCategory.EXTERNAL_TOOL
    if isinstance(error, OSError):
        return ErrorCategory.FILESYSTEM
    return ErrorCategory.SYSTEM


def handle_error(error: Exception, **kwargs) -> OrganiserError:
    """Display ``error`` to the user, wrapping it in an OrganiserError if needed."""
    if not isinstance(error, OrganiserError):
        error = OrganiserError(
            str(error) or f"Unexpected {type(error).__name__}",
            categorize(error),
            original_error=error,
            **kwargs,
        )
    error.display_to_user()
    return error


def check_dependencies(
    ffmpeg_binary: str = "ffmpeg",
    ffprobe_binary: str = "ffprobe",
) -> list[DependencyError]:
    """Check for missing dependencies and return list of errors."""
    errors = []

    for binary, purpose in [
        (ffprobe_binary, "ffprobe is required to read embedded metadata"),
        (ffmpeg_binary, "ffmpeg is required to rewrite container metadata"),
    ]:
        if not shutil.which(binary):
            errors.append(
                DependencyError(
                    binary,
                    solution="Install FFmpeg from https://ffmpeg.org/ or your package manager",
                    details=purpose,
                ),
            )

    return errors


def graceful_exit(exit_code: int = 1) -> None:
    """Exit gracefully with helpful message."""
    if exit_code == 0:
        console.print("\n[green]✨ metadata-organiser completed successfully[/green]")
    else:
        console.print("\n[red]metadata-organiser encountered errors and had to stop[/red]")
        console.print("[dim]Check the logs above for details on what went wrong[/dim]")
        console.print(
            "[dim]Run 'metadata-organiser config validate' to check your configuration[/dim]",
        )

    sys.exit(exit_code)
