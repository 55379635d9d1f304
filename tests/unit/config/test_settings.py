"""Tests for TracksortSettings — environment-based configuration."""

import os
from pathlib import Path
from unittest.mock import patch

import pytest

from tracksort.config.settings import TracksortSettings, get_settings
from tracksort.exceptions import ConfigurationError


class TestDefaults:
    """Test default values when no env vars are set."""

    def test_default_port(self):
        with patch.dict(os.environ, {}, clear=True):
            settings = get_settings()
        assert settings.port == 8080
        assert settings.host == "0.0.0.0"

    def test_default_positions_path(self):
        with patch.dict(os.environ, {}, clear=True):
            settings = get_settings()
        assert settings.positions_path == Path(".") / "issues.json"

    def test_default_flags(self):
        with patch.dict(os.environ, {}, clear=True):
            settings = get_settings()
        assert settings.tunnel is False
        assert settings.json_logs is True
        assert settings.static_dir is None

    def test_default_token_empty(self):
        with patch.dict(os.environ, {}, clear=True):
            settings = get_settings()
        assert settings.github_token == ""


class TestEnvOverrides:
    """Test that environment variables override defaults."""

    def test_token(self):
        with patch.dict(os.environ, {"TRACKSORT_GITHUB_TOKEN": "abc"}):
            settings = get_settings()
        assert settings.github_token == "abc"

    def test_port(self):
        with patch.dict(os.environ, {"TRACKSORT_PORT": "9000"}):
            settings = get_settings()
        assert settings.port == 9000

    def test_data_dir_and_file(self):
        with patch.dict(
            os.environ,
            {"TRACKSORT_DATA_DIR": "/tmp/ts", "TRACKSORT_POSITIONS_FILE": "order.json"},
        ):
            settings = get_settings()
        assert settings.positions_path == Path("/tmp/ts/order.json")

    def test_log_level_uppercased(self):
        with patch.dict(os.environ, {"TRACKSORT_LOG_LEVEL": "debug"}):
            settings = get_settings()
        assert settings.log_level == "DEBUG"

    def test_static_dir(self):
        with patch.dict(os.environ, {"TRACKSORT_STATIC_DIR": "public"}):
            settings = get_settings()
        assert settings.static_dir == Path("public")

    @pytest.mark.parametrize("value,expected", [("1", True), ("yes", True), ("false", False), ("junk", False)])
    def test_tunnel_bool_parsing(self, value, expected):
        with patch.dict(os.environ, {"TRACKSORT_TUNNEL": value}):
            settings = get_settings()
        assert settings.tunnel is expected


class TestRequireToken:
    def test_missing_token_raises(self):
        with pytest.raises(ConfigurationError, match="No authorization token"):
            TracksortSettings().require_token()

    def test_present_token_returned(self):
        assert TracksortSettings(github_token="abc").require_token() == "abc"

    def test_settings_are_frozen(self):
        settings = TracksortSettings()
        with pytest.raises(Exception):
            settings.port = 1  # type: ignore[misc]
