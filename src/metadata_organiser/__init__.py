"""metadata-organiser - write Jellyfin library metadata into media files."""

__version__ = "0.1.0"
