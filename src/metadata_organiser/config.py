"""Configuration management for metadata-organiser."""

import os
from pathlib import Path

import tomli
from pydantic import BaseModel, Field, field_validator

MAPPING_FILE_NAME = "metadata_map.json"


class OrganiserConfig(BaseModel):
    """Main configuration for metadata-organiser."""

    # Behaviour
    dry_run: bool = Field(default=False)
    force: bool = Field(default=False)

    # Tag handling
    tag_map_path: str = Field(default="")  # Empty means <config_dir>/metadata_map.json
    drop_stream_tags: str = Field(default="")  # Comma-separated tag names
    drop_stream_tags_on_item_name: str = Field(default="")  # Comma-separated tag names

    # Paths
    config_dir: Path = Field(default=Path("~/.config/metadata-organiser"))
    transcode_dir: Path = Field(default=Path("~/.cache/metadata-organiser/transcodes"))
    log_dir: Path = Field(default=Path("~/.local/share/metadata-organiser/logs"))

    # External tools
    ffmpeg_binary: str = Field(default="ffmpeg")
    ffprobe_binary: str = Field(default="ffprobe")

    # Jellyfin API
    jellyfin_url: str | None = None
    jellyfin_api_key: str | None = Field(default=None, validate_default=True)

    # Timeout Settings (seconds)
    jellyfin_request_timeout: int = Field(default=30)
    probe_timeout: int = Field(default=120)  # 2 minutes
    tool_version_timeout: int = Field(default=10)
    process_terminate_timeout: int = Field(default=10)

    # Processing Intervals (seconds)
    process_poll_interval: float = Field(default=0.5)

    @field_validator("config_dir", "transcode_dir", "log_dir", mode="before")
    @classmethod
    def expand_paths(cls, v: Path | str) -> Path:
        """Expand user home directory in paths."""
        if isinstance(v, str):
            v = Path(v)
        return v.expanduser().resolve()

    @field_validator("jellyfin_api_key", mode="after")
    @classmethod
    def api_key_from_environment(cls, v: str | None) -> str | None:
        """Fall back to the JELLYFIN_API_KEY environment variable."""
        return v or os.getenv("JELLYFIN_API_KEY")

    @field_validator("jellyfin_url", mode="after")
    @classmethod
    def strip_trailing_slash(cls, v: str | None) -> str | None:
        return v.rstrip("/") if v else v

    @property
    def mapping_path(self) -> Path:
        """Resolved location of the JSON tag map."""
        if self.tag_map_path:
            return Path(self.tag_map_path).expanduser()
        return self.config_dir / MAPPING_FILE_NAME

    @property
    def drop_tags(self) -> list[str]:
        """Stream tags removed from every stream."""
        return split_arguments(self.drop_stream_tags)

    @property
    def drop_tags_on_item_name(self) -> list[str]:
        """Stream tags removed when they contain the item's name."""
        return split_arguments(self.drop_stream_tags_on_item_name)

    def ensure_directories(self) -> None:
        """Create required directories if they don't exist."""
        for dir_path in [self.config_dir, self.transcode_dir, self.log_dir]:
            dir_path.mkdir(parents=True, exist_ok=True)


def split_arguments(value: str, separator: str = ",") -> list[str]:
    """Split a comma-separated option into trimmed, non-empty values."""
    return [part.strip() for part in value.split(separator) if part.strip()]


def load_config(config_path: Path | None = None) -> OrganiserConfig:
    """Load configuration from file or defaults."""
    if config_path is None:
        # Check common config locations (user config first)
        possible_paths = [
            Path.home() / ".config" / "metadata-organiser" / "config.toml",
            Path.cwd() / "metadata-organiser.toml",
        ]

        for path in possible_paths:
            if path.exists():
                config_path = path
                break

    if config_path and config_path.exists():
        with open(config_path, "rb") as f:
            config_data = tomli.load(f)
        return OrganiserConfig(**config_data)
    # Use defaults
    return OrganiserConfig()


def create_sample_config(path: Path) -> None:
    """Create a sample configuration file."""
    sample_config = """# metadata-organiser Configuration
# ================================

# ============================================================================
# JELLYFIN - required to enumerate library items
# ============================================================================

jellyfin_url = "http://localhost:8096"            # Jellyfin server URL
jellyfin_api_key = "your_api_key_here"            # Dashboard > API Keys (or set JELLYFIN_API_KEY)

# ============================================================================
# BEHAVIOUR
# ============================================================================

dry_run = true                                    # Log the ffmpeg commands without touching any file
force = false                                     # Reprocess items already tagged as processed

# ============================================================================
# TAGS
# ============================================================================

tag_map_path = ""                                 # JSON value map; empty = <config_dir>/metadata_map.json
drop_stream_tags = ""                             # Stream tags to blank on every stream, e.g. "title,handler_name"
drop_stream_tags_on_item_name = "title"           # Stream tags to blank when they contain the item name

# ============================================================================
# PATHS
# ============================================================================

config_dir = "~/.config/metadata-organiser"
transcode_dir = "~/.cache/metadata-organiser/transcodes"   # Scratch space for remuxed files
log_dir = "~/.local/share/metadata-organiser/logs"

# ============================================================================
# ADVANCED SETTINGS - Most users can leave these as defaults
# ============================================================================

ffmpeg_binary = "ffmpeg"
ffprobe_binary = "ffprobe"

jellyfin_request_timeout = 30                     # Jellyfin API request timeout (seconds)
probe_timeout = 120                               # ffprobe timeout (seconds)
tool_version_timeout = 10                         # ffmpeg/ffprobe version check timeout
process_terminate_timeout = 10                    # Grace period before killing a cancelled remux
process_poll_interval = 0.5                       # How often a running remux checks for cancellation
"""

    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        f.write(sample_config)
