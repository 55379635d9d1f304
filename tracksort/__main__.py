"""tracksort CLI — entry point for the ordering service.

Usage:
    python -m tracksort serve --token TOKEN [--port 8080] [--tunnel]
    python -m tracksort positions        Print stored ordering keys

Settings come from TRACKSORT_* environment variables; flags override them.
"""

from __future__ import annotations

import argparse
import dataclasses
import sys
from pathlib import Path

import structlog

from tracksort.config.settings import TracksortSettings, get_settings
from tracksort.exceptions import ConfigurationError, FormatError, PersistenceError
from tracksort.factory import build_app
from tracksort.storage.position_store import PositionStore
from tracksort.utils.logging import configure_logging

logger = structlog.get_logger()


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="tracksort",
        description="tracksort — custom ordering for GitHub issues",
    )
    parser.add_argument(
        "--data-dir",
        type=Path,
        default=None,
        help="Directory holding the positions file",
    )
    parser.add_argument(
        "--positions-file",
        default=None,
        help="Positions snapshot file name (default: issues.json)",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Logging level",
    )
    parser.add_argument(
        "--console-logs",
        action="store_true",
        help="Human-readable logs instead of JSON",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    serve = subparsers.add_parser("serve", help="Run the HTTP service")
    serve.add_argument("--token", default=None, help="GitHub credential to forward")
    serve.add_argument("--host", default=None, help="Listen address")
    serve.add_argument("--port", type=int, default=None, help="Listen port (default: 8080)")
    serve.add_argument(
        "--static-dir",
        type=Path,
        default=None,
        help="Directory of static assets served at /",
    )
    serve.add_argument(
        "--tunnel",
        action="store_true",
        help="Expose the port through a local ngrok agent",
    )

    subparsers.add_parser("positions", help="Print stored ordering keys")

    return parser.parse_args(argv)


def _apply_overrides(settings: TracksortSettings, args: argparse.Namespace) -> TracksortSettings:
    """Layer CLI flags over environment settings."""
    overrides = {
        "data_dir": args.data_dir,
        "positions_file": args.positions_file,
        "log_level": args.log_level,
        "github_token": getattr(args, "token", None),
        "host": getattr(args, "host", None),
        "port": getattr(args, "port", None),
        "static_dir": getattr(args, "static_dir", None),
    }
    changes = {k: v for k, v in overrides.items() if v is not None}
    if args.console_logs:
        changes["json_logs"] = False
    if getattr(args, "tunnel", False):
        changes["tunnel"] = True
    return dataclasses.replace(settings, **changes)


def _cmd_serve(settings: TracksortSettings) -> int:
    """Build the app and run it under uvicorn."""
    import uvicorn

    try:
        app = build_app(settings)
    except ConfigurationError as exc:
        logger.error("Configuration error", error=str(exc))
        return 2
    except (FormatError, PersistenceError) as exc:
        logger.error("Cannot load positions", error=str(exc))
        return 1

    logger.info(
        "Starting server",
        url=f"http://localhost:{settings.port}/",
        host=settings.host,
    )
    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())
    return 0


def _cmd_positions(settings: TracksortSettings) -> int:
    """Print every stored key, lowest (first displayed) first."""
    store = PositionStore(persist_path=settings.positions_path)
    try:
        store.load()
    except (FormatError, PersistenceError) as exc:
        logger.error("Cannot load positions", error=str(exc))
        return 1

    entries = store.ordered()
    print(f"\n{'Issue ID':<20} {'Sort position'}")
    print("-" * 45)
    for issue_id, key in entries:
        print(f"{issue_id:<20} {key!r}")
    print(f"\n{len(entries)} positions in {settings.positions_path}")
    return 0


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    settings = _apply_overrides(get_settings(), args)
    configure_logging(json_output=settings.json_logs, level=settings.log_level)

    if args.command == "serve":
        return _cmd_serve(settings)
    elif args.command == "positions":
        return _cmd_positions(settings)
    else:
        print(f"Unknown command: {args.command}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
