"""Centralized environment-based settings for tracksort.

Reads configuration from environment variables with sensible defaults.
CLI flags in ``tracksort.__main__`` override individual fields with
``dataclasses.replace``.

Usage:
    from tracksort.config.settings import get_settings
    settings = get_settings()
"""

import os
from dataclasses import dataclass
from pathlib import Path

from tracksort.exceptions import ConfigurationError


@dataclass(frozen=True)
class TracksortSettings:
    """Immutable application settings loaded from environment."""

    # Credential forwarded to GitHub
    github_token: str = ""
    github_api_url: str = "https://api.github.com"
    request_timeout: float = 30.0

    # HTTP listener
    host: str = "0.0.0.0"
    port: int = 8080

    # Storage
    data_dir: Path = Path(".")
    positions_file: str = "issues.json"

    # Static assets (None = not served)
    static_dir: Path | None = None

    # Public tunnel through a local ngrok agent
    tunnel: bool = False
    ngrok_api_url: str = "http://127.0.0.1:4040"

    # Logging
    log_level: str = "INFO"
    json_logs: bool = True

    # Real-time channel
    subscriber_queue_size: int = 100

    @property
    def positions_path(self) -> Path:
        return self.data_dir / self.positions_file

    def require_token(self) -> str:
        """Return the GitHub credential or fail before anything is bound."""
        if not self.github_token:
            raise ConfigurationError(
                "No authorization token provided. Pass --token or set TRACKSORT_GITHUB_TOKEN."
            )
        return self.github_token


def get_settings() -> TracksortSettings:
    """Load settings from environment variables.

    Environment variables (all optional):
        TRACKSORT_GITHUB_TOKEN: Credential forwarded to GitHub (required to serve)
        TRACKSORT_GITHUB_API_URL: GitHub API base URL (default: https://api.github.com)
        TRACKSORT_REQUEST_TIMEOUT: Outbound request timeout in seconds (default: 30)
        TRACKSORT_HOST: Listen address (default: 0.0.0.0)
        TRACKSORT_PORT: Listen port (default: 8080)
        TRACKSORT_DATA_DIR: Directory holding the positions file (default: .)
        TRACKSORT_POSITIONS_FILE: Snapshot file name (default: issues.json)
        TRACKSORT_STATIC_DIR: Directory served at / (default: unset)
        TRACKSORT_TUNNEL: Open an ngrok tunnel on startup (default: false)
        TRACKSORT_NGROK_API_URL: Local ngrok agent API (default: http://127.0.0.1:4040)
        TRACKSORT_LOG_LEVEL: Logging level (default: INFO)
        TRACKSORT_JSON_LOGS: Render logs as JSON (default: true)
        TRACKSORT_SUBSCRIBER_QUEUE_SIZE: Pending events per subscriber (default: 100)
    """
    def _bool(key: str, default: bool = False) -> bool:
        val = os.environ.get(key, "").lower()
        if val in ("1", "true", "yes"):
            return True
        if val in ("0", "false", "no"):
            return False
        return default

    static_dir = os.environ.get("TRACKSORT_STATIC_DIR", "")

    return TracksortSettings(
        github_token=os.environ.get("TRACKSORT_GITHUB_TOKEN", ""),
        github_api_url=os.environ.get("TRACKSORT_GITHUB_API_URL", "https://api.github.com"),
        request_timeout=float(os.environ.get("TRACKSORT_REQUEST_TIMEOUT", "30")),
        host=os.environ.get("TRACKSORT_HOST", "0.0.0.0"),
        port=int(os.environ.get("TRACKSORT_PORT", "8080")),
        data_dir=Path(os.environ.get("TRACKSORT_DATA_DIR", ".")),
        positions_file=os.environ.get("TRACKSORT_POSITIONS_FILE", "issues.json"),
        static_dir=Path(static_dir) if static_dir else None,
        tunnel=_bool("TRACKSORT_TUNNEL", False),
        ngrok_api_url=os.environ.get("TRACKSORT_NGROK_API_URL", "http://127.0.0.1:4040"),
        log_level=os.environ.get("TRACKSORT_LOG_LEVEL", "INFO").upper(),
        json_logs=_bool("TRACKSORT_JSON_LOGS", True),
        subscriber_queue_size=int(os.environ.get("TRACKSORT_SUBSCRIBER_QUEUE_SIZE", "100")),
    )
