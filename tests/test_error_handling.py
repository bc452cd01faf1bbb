"""Tests for enhanced error handling system."""

import logging
import subprocess
from pathlib import Path
from unittest.mock import patch

import httpx
import pytest

from metadata_organiser.error_handling import (
    ConfigurationError,
    DependencyError,
    ErrorCategory,
    FileReplaceError,
    OrganiserError,
    categorize,
    check_dependencies,
    graceful_exit,
    handle_error,
)


class TestOrganiserError:
    """Test the base OrganiserError class."""

    def test_basic_error_creation(self):
        """Test creating a basic OrganiserError."""
        error = OrganiserError(
            "Test error message",
            ErrorCategory.CONFIGURATION,
            solution="Fix your config",
        )

        assert error.message == "Test error message"
        assert error.category == ErrorCategory.CONFIGURATION
        assert error.solution == "Fix your config"
        assert error.recoverable is True
        assert error.log_level == logging.ERROR

    def test_error_display(self, capsys):
        """Test error display to user."""
        error = OrganiserError(
            "Configuration is invalid",
            ErrorCategory.CONFIGURATION,
            solution="Check your config file",
            details="Missing required field 'jellyfin_url'",
        )

        error.display_to_user()
        captured = capsys.readouterr()

        assert "Configuration Error" in captured.out
        assert "Configuration is invalid" in captured.out
        assert "Check your config file" in captured.out
        assert "Missing required field" in captured.out

    def test_non_recoverable_error(self, capsys):
        """Test non-recoverable error display."""
        error = OrganiserError(
            "Fatal system error",
            ErrorCategory.SYSTEM,
            recoverable=False,
        )

        error.display_to_user()
        captured = capsys.readouterr()

        assert "requires intervention" in captured.out


class TestSpecificErrors:
    """Test the specialised error types."""

    def test_configuration_error_points_at_file(self):
        error = ConfigurationError("Bad value", config_path=Path("/etc/organiser.toml"))

        assert error.category == ErrorCategory.CONFIGURATION
        assert "/etc/organiser.toml" in error.solution

    def test_dependency_error(self):
        error = DependencyError("ffmpeg", install_command="apt install ffmpeg")

        assert error.category == ErrorCategory.DEPENDENCY
        assert "ffmpeg" in error.message
        assert error.solution == "Install with: apt install ffmpeg"
        assert error.recoverable is False

    def test_file_replace_error(self):
        cause = PermissionError("denied")
        error = FileReplaceError(Path("/tmp/a.mkv"), Path("/media/a.mkv"), original_error=cause)

        assert error.message == "Failed to move file: /tmp/a.mkv -> /media/a.mkv"
        assert error.category == ErrorCategory.FILESYSTEM
        assert error.recoverable is False
        assert error.source == Path("/tmp/a.mkv")
        assert error.target == Path("/media/a.mkv")
        assert error.original_error is cause


class TestHandleError:
    """Test conversion of generic exceptions."""

    def test_filesystem_errors_categorised(self, capsys):
        handle_error(PermissionError("Permission denied"))

        assert "Filesystem Error" in capsys.readouterr().out

    def test_network_errors_categorised(self, capsys):
        handle_error(ConnectionError("refused"))

        assert "Network Error" in capsys.readouterr().out

    def test_organiser_errors_displayed_as_is(self, capsys):
        original = DependencyError("ffprobe")

        assert handle_error(original) is original
        assert "Required dependency 'ffprobe'" in capsys.readouterr().out

    def test_wrapped_error_keeps_cause(self, capsys):
        cause = OSError("Read-only file system")

        wrapped = handle_error(cause, solution="Remount the library read-write")

        assert wrapped.original_error is cause
        assert wrapped.solution == "Remount the library read-write"
        assert "Read-only file system" in capsys.readouterr().out

    @pytest.mark.parametrize(
        ("error", "category"),
        [
            (httpx.ConnectError("refused"), ErrorCategory.NETWORK),
            (TimeoutError("timed out"), ErrorCategory.NETWORK),
            (subprocess.TimeoutExpired("ffprobe", 120), ErrorCategory.EXTERNAL_TOOL),
            (FileNotFoundError("missing"), ErrorCategory.FILESYSTEM),
            (RuntimeError("boom"), ErrorCategory.SYSTEM),
        ],
    )
    def test_categorize(self, error, category):
        assert categorize(error) == category


class TestDependencies:
    """Test the external tool check."""

    @patch("metadata_organiser.error_handling.shutil.which")
    def test_all_present(self, mock_which):
        mock_which.return_value = "/usr/bin/tool"

        assert check_dependencies() == []

    @patch("metadata_organiser.error_handling.shutil.which")
    def test_missing_ffmpeg(self, mock_which):
        mock_which.side_effect = lambda binary: None if binary == "ffmpeg" else "/usr/bin/ffprobe"

        errors = check_dependencies()

        assert len(errors) == 1
        assert "'ffmpeg'" in errors[0].message

    @patch("metadata_organiser.error_handling.shutil.which")
    def test_custom_binaries_checked(self, mock_which):
        mock_which.return_value = None

        errors = check_dependencies("/opt/ffmpeg", "/opt/ffprobe")

        assert {call.args[0] for call in mock_which.call_args_list} == {"/opt/ffmpeg", "/opt/ffprobe"}
        assert len(errors) == 2


def test_graceful_exit_code():
    with pytest.raises(SystemExit) as exc_info:
        graceful_exit(2)

    assert exc_info.value.code == 2
