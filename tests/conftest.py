"""Shared test configuration and fixtures."""

import logging
import threading

import pytest
from library_fakes import FakeEncoder, FakeLibrary

from metadata_organiser.cli import cleanup_logging
from metadata_organiser.config import OrganiserConfig


@pytest.fixture(scope="function", autouse=True)
def cleanup_logging_handlers():
    """Automatically cleanup logging handlers after each test to prevent ResourceWarnings."""
    yield
    cleanup_logging()


@pytest.fixture(scope="function", autouse=True)
def reset_logging():
    """Reset logging configuration after each test."""
    yield
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        handler.close()
        root_logger.removeHandler(handler)
    root_logger.setLevel(logging.WARNING)


@pytest.fixture
def config(tmp_path):
    """Configuration rooted in a temporary directory."""
    return OrganiserConfig(
        config_dir=tmp_path / "config",
        transcode_dir=tmp_path / "transcodes",
        log_dir=tmp_path / "logs",
        jellyfin_url="http://jellyfin.test",
        jellyfin_api_key="secret",
        process_poll_interval=0.05,
    )


@pytest.fixture
def library_root(tmp_path):
    root = tmp_path / "library"
    root.mkdir()
    return root


@pytest.fixture
def library():
    return FakeLibrary()


@pytest.fixture
def encoder(config):
    return FakeEncoder(config)


@pytest.fixture
def cancel_event():
    return threading.Event()
