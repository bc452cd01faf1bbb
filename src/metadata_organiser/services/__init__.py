"""External service integrations.

Wrappers for the tools and servers metadata-organiser talks to: ffprobe and
ffmpeg for reading and rewriting container metadata, and the Jellyfin HTTP API
for enumerating library items. Keeping them separate makes them easy to mock
during testing.
"""
