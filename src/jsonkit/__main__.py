"""Entry point for running the jsonkit server.

Usage:
    python -m jsonkit --dir ./data --port 3000
    python -m jsonkit --config ./jsonkit.yaml -vv
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from collections.abc import Sequence
from pathlib import Path

from jsonkit import __version__
from jsonkit.config import load_config, validate_config
from jsonkit.errors import ConfigError, WatcherFatal
from jsonkit.logging import get_logger, setup_logging

log = get_logger()


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="jsonkit",
        description="Serve a directory of JSON files as a live tree",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=None,
        help="Increase verbosity (repeat up to 4 times)",
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="Config file (applied after user and project config)",
    )
    parser.add_argument(
        "--dir",
        help="JSON directory to expose (overrides navigation.json_directory)",
    )
    parser.add_argument(
        "--host",
        help="Interface to bind",
    )
    parser.add_argument(
        "--port",
        type=int,
        help="Port to listen on",
    )
    parser.add_argument(
        "--no-watch",
        action="store_true",
        help="Serve listings without pushing change events",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Parse arguments, load config and run the server until it stops."""
    args = create_parser().parse_args(argv)

    try:
        config = load_config(config_file=args.config)
        if args.dir:
            config.navigation.json_directory = args.dir
        if args.host:
            config.server.host = args.host
        if args.port is not None:
            config.server.port = args.port
        if args.no_watch:
            config.watch.enabled = False
        if args.verbose is not None:
            config.logging.verbose = min(args.verbose + 1, 4)
        validate_config(config)
    except ConfigError as e:
        print(f"[jsonkit] {e}", file=sys.stderr)
        return 2

    setup_logging(config.logging, dev=config.app.dev)

    # Import here to keep startup of --help/--version light
    from jsonkit.server.server import TreeServer

    try:
        asyncio.run(TreeServer(config, config_file=args.config).serve())
    except WatcherFatal as e:
        log.error("%s", e)
        return 1
    except KeyboardInterrupt:
        pass
    return 0


if __name__ == "__main__":
    sys.exit(main())
