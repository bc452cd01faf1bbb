"""Command-line interface for metadata-organiser."""

import logging
import signal
import subprocess
import sys
import threading
from pathlib import Path

import click
import httpx
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import BarColumn, Progress, TaskProgressColumn, TextColumn
from rich.table import Table

from .config import OrganiserConfig, create_sample_config, load_config
from .error_handling import (
    ConfigurationError,
    FileReplaceError,
    check_dependencies,
    graceful_exit,
    handle_error,
)
from .library.models import ItemKind, MediaItem, MediaStream
from .processor import ItemOutcome, PassResult
from .services.ffmpeg import MediaEncoder
from .services.jellyfin import JellyfinLibrary
from .tags.extractor import TagExtractor
from .tasks import MetadataTask, SetMovieMetadataTask, SetShowMetadataTask

console = Console()


def setup_logging(
    *,
    verbose: bool = False,
    config: OrganiserConfig | None = None,
) -> None:
    """Set up logging configuration."""
    level = logging.DEBUG if verbose else logging.INFO

    # Clean up existing handlers first to prevent resource leaks
    cleanup_logging()

    # Configure RichHandler to show path only at DEBUG level
    show_path = level == logging.DEBUG
    handlers: list[logging.Handler] = [
        RichHandler(console=console, rich_tracebacks=True, show_path=show_path),
    ]

    if config and config.log_dir:
        config.log_dir.mkdir(parents=True, exist_ok=True)
        log_file = config.log_dir / "metadata-organiser.log"
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(
            logging.Formatter(
                "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            ),
        )
        handlers.append(file_handler)

    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=handlers,
        force=True,
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


def cleanup_logging() -> None:
    """Clean up logging handlers to prevent ResourceWarnings."""
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        if isinstance(handler, logging.FileHandler):
            handler.close()
            root_logger.removeHandler(handler)


@click.group()
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True, path_type=Path),
    help="Configuration file path",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
@click.pass_context
def cli(ctx: click.Context, config: Path | None, verbose: bool) -> None:
    """metadata-organiser - write Jellyfin library metadata into media files."""
    try:
        ctx.ensure_object(dict)
        loaded_config = load_config(config)
        ctx.obj["config"] = loaded_config
        ctx.obj["verbose"] = verbose

        setup_logging(verbose=verbose, config=loaded_config)
    except (OSError, ValueError, RuntimeError) as e:
        config_error = ConfigurationError(
            f"Failed to load configuration: {e}",
            config_path=config,
            solution="Run 'metadata-organiser config validate' to check your configuration file",
        )
        console.print(f"[red]Configuration Error:[/red] {config_error}")
        sys.exit(1)


@cli.group("config")
@click.pass_context
def config_cmd(ctx: click.Context) -> None:
    """Configuration management commands."""


@config_cmd.command("show")
@click.pass_context
def config_show(ctx: click.Context) -> None:
    """Show current configuration."""
    config: OrganiserConfig = ctx.obj["config"]

    table = Table()
    table.add_column("Setting")
    table.add_column("Value")

    table.add_row("Dry Run", str(config.dry_run))
    table.add_row("Force", str(config.force))
    table.add_row("Tag Map", str(config.mapping_path))
    table.add_row("Drop Stream Tags", ", ".join(config.drop_tags) or "None")
    table.add_row(
        "Drop Stream Tags On Item Name",
        ", ".join(config.drop_tags_on_item_name) or "None",
    )
    table.add_row("Transcode Directory", str(config.transcode_dir))
    table.add_row("Log Directory", str(config.log_dir))
    table.add_row("ffmpeg", config.ffmpeg_binary)
    table.add_row("ffprobe", config.ffprobe_binary)
    table.add_row("Jellyfin URL", config.jellyfin_url or "Not configured")
    table.add_row(
        "Jellyfin API Key",
        "***" if config.jellyfin_api_key else "Not configured",
    )

    console.print(table)


@config_cmd.command("validate")
@click.pass_context
def config_validate(ctx: click.Context) -> None:
    """Validate current configuration."""
    config: OrganiserConfig = ctx.obj["config"]

    console.print("[bold]Configuration Validation[/bold]")

    errors = []

    for name, path in [
        ("Config", config.config_dir),
        ("Transcode", config.transcode_dir),
        ("Log", config.log_dir),
    ]:
        try:
            path.mkdir(parents=True, exist_ok=True)
            console.print(f"[green]✓[/green] {name} directory: {path}")
        except OSError as e:
            console.print(f"[red]✗[/red] {name} directory: {e}")
            errors.append(f"{name} directory: {e}")

    if config.jellyfin_url and config.jellyfin_api_key:
        console.print(f"[green]✓[/green] Jellyfin: {config.jellyfin_url}")
    else:
        console.print("[red]✗[/red] Jellyfin URL or API key not configured")
        errors.append("Jellyfin URL or API key not configured")

    for dependency in check_dependencies(config.ffmpeg_binary, config.ffprobe_binary):
        console.print(f"[red]✗[/red] {dependency.message}")
        errors.append(dependency.message)

    if config.mapping_path.exists():
        console.print(f"[green]✓[/green] Tag map: {config.mapping_path}")
    else:
        console.print(
            f"[yellow]⚠[/yellow] Tag map not found, values will not be remapped: {config.mapping_path}",
        )

    if errors:
        console.print(f"\n[red]Found {len(errors)} configuration errors[/red]")
        sys.exit(1)
    else:
        console.print("\n[green]Configuration is valid[/green]")


@config_cmd.command("init")
@click.option(
    "--path",
    "-p",
    type=click.Path(path_type=Path),
    default=Path.home() / ".config" / "metadata-organiser" / "config.toml",
    help="Path for the configuration file",
)
def config_init(path: Path) -> None:
    """Create a sample configuration file."""
    try:
        create_sample_config(path)
        console.print(f"[green]Created sample configuration at {path}[/green]")
        console.print("Please edit the configuration file with your settings.")
    except OSError as e:
        console.print(f"[red]Error creating configuration: {e}[/red]")
        sys.exit(1)


@cli.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show tool and server availability."""
    config: OrganiserConfig = ctx.obj["config"]
    encoder = MediaEncoder(config)

    console.print("[bold]System Status[/bold]")

    for binary in (config.ffprobe_binary, config.ffmpeg_binary):
        version = encoder.get_version(binary)
        if version:
            console.print(f"⚙️ {binary}: {version}")
        else:
            console.print(f"⚙️ {binary}: [red]Not available[/red]")

    library = JellyfinLibrary(config)
    if not library.is_configured:
        console.print("📚 Jellyfin: [yellow]Not configured[/yellow]")
        return

    roots = library.get_library_roots()
    if roots:
        console.print(f"📚 Jellyfin: Connected ({len(roots)} library folders)")
    else:
        console.print("📚 Jellyfin: [yellow]Unreachable or no library folders[/yellow]")


def _run_tasks(ctx: click.Context, task_types: list[type[MetadataTask]]) -> None:
    config: OrganiserConfig = ctx.obj["config"]

    missing_deps = check_dependencies(config.ffmpeg_binary, config.ffprobe_binary)
    if missing_deps:
        for dependency in missing_deps:
            dependency.display_to_user()
        sys.exit(1)

    library = JellyfinLibrary(config)
    if not library.is_configured:
        ConfigurationError(
            "Jellyfin URL and API key are required",
            solution="Set jellyfin_url and jellyfin_api_key in your configuration",
        ).display_to_user()
        sys.exit(1)

    cancel_event = threading.Event()

    def request_cancel(signum, frame) -> None:
        console.print("[yellow]Cancelling after the current item...[/yellow]")
        cancel_event.set()

    previous_handler = signal.signal(signal.SIGINT, request_cancel)
    results: list[PassResult] = []
    try:
        with Progress(
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            console=console,
        ) as progress:
            for task_type in task_types:
                task = task_type(config, library)
                bar = progress.add_task(task.name, total=100)
                results.extend(
                    task.execute(
                        lambda percent, bar=bar: progress.update(bar, completed=percent),
                        cancel_event,
                    ),
                )
                if cancel_event.is_set():
                    break
    except FileReplaceError as e:
        e.display_to_user()
        graceful_exit(1)
    except (httpx.HTTPError, OSError, subprocess.SubprocessError) as e:
        handle_error(e, solution="Check the log file for the full traceback")
        graceful_exit(1)
    finally:
        signal.signal(signal.SIGINT, previous_handler)

    _print_summary(results)


def _print_summary(results: list[PassResult]) -> None:
    table = Table(title="Summary")
    table.add_column("Kind")
    table.add_column("Items", justify="right")
    for outcome in ItemOutcome:
        table.add_column(outcome.value.title(), justify="right")
    table.add_column("Cancelled")

    for result in results:
        table.add_row(
            result.kind.value,
            str(result.total),
            *(str(result.count(outcome)) for outcome in ItemOutcome),
            "yes" if result.cancelled else "",
        )

    console.print(table)


def _run_options(func):
    func = click.option(
        "--force/--no-force",
        default=None,
        help="Reprocess items already tagged as processed",
    )(func)
    return click.option(
        "--dry-run/--no-dry-run",
        default=None,
        help="Log the ffmpeg commands without modifying files",
    )(func)


def _apply_overrides(ctx: click.Context, dry_run: bool | None, force: bool | None) -> None:
    config: OrganiserConfig = ctx.obj["config"]
    updates = {}
    if dry_run is not None:
        updates["dry_run"] = dry_run
    if force is not None:
        updates["force"] = force
    if updates:
        ctx.obj["config"] = config.model_copy(update=updates)


@cli.command()
@_run_options
@click.pass_context
def movies(ctx: click.Context, dry_run: bool | None, force: bool | None) -> None:
    """Write metadata to movie files."""
    _apply_overrides(ctx, dry_run, force)
    _run_tasks(ctx, [SetMovieMetadataTask])


@cli.command()
@_run_options
@click.pass_context
def shows(ctx: click.Context, dry_run: bool | None, force: bool | None) -> None:
    """Write metadata to episode files and show extras."""
    _apply_overrides(ctx, dry_run, force)
    _run_tasks(ctx, [SetShowMetadataTask])


@cli.command("all")
@_run_options
@click.pass_context
def run_all(ctx: click.Context, dry_run: bool | None, force: bool | None) -> None:
    """Write metadata to movies, then shows."""
    _apply_overrides(ctx, dry_run, force)
    _run_tasks(ctx, [SetMovieMetadataTask, SetShowMetadataTask])


@cli.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--mapping",
    "-m",
    type=click.Path(path_type=Path),
    default=None,
    help="Tag map to preview (defaults to the configured one)",
)
@click.pass_context
def probe(ctx: click.Context, path: Path, mapping: Path | None) -> None:
    """Show a file's embedded tags and the corrections the tag map would make."""
    config: OrganiserConfig = ctx.obj["config"]
    extractor = TagExtractor(MediaEncoder(config))
    item = MediaItem(id=path.stem, kind=ItemKind.EXTRA, path=path, name=path.stem)

    format_table = Table(title="Format tags")
    format_table.add_column("Tag")
    format_table.add_column("Value")
    for key, value in extractor.extract_format_tags_from_file(item).items():
        format_table.add_row(key, value)
    console.print(format_table)

    stream_tags = extractor.extract_stream_tags_from_file(item)
    item.streams = [MediaStream(index=index) for index in sorted(stream_tags)]
    stream_table = Table(title="Stream tags")
    stream_table.add_column("Stream", justify="right")
    stream_table.add_column("Tag")
    stream_table.add_column("Value")
    for index, tags in sorted(stream_tags.items()):
        for key, value in tags.items():
            stream_table.add_row(str(index), key, value)
    console.print(stream_table)

    tag_map = extractor.read_tag_mapping(mapping or config.mapping_path)
    corrections = extractor.get_mapped_format_tag_values(item, tag_map)
    stream_corrections = {
        index: tags
        for index, tags in extractor.get_mapped_stream_tag_values(item, tag_map).items()
        if tags
    }
    if corrections or stream_corrections:
        console.print("[bold]Tag map corrections[/bold]")
        for key, value in corrections.items():
            console.print(f"  {key} -> {value}")
        for index, tags in sorted(stream_corrections.items()):
            for key, value in tags.items():
                console.print(f"  stream {index} {key} -> {value}")
    else:
        console.print("[dim]No tag map corrections[/dim]")


def main() -> None:
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
