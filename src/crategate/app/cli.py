"""Command-line interface for the Crategate Discogs gateway."""

from __future__ import annotations

import argparse
import asyncio
import sys
from typing import Any

from aiohttp import web

from crategate.app.app_config import Config
from crategate.app.orchestrator import Orchestrator
from crategate.app.web import create_app
from crategate.core.exceptions import ConfigurationError
from crategate.core.logger import get_loggers
from crategate.core.models.gateway_models import LogLevel
from crategate.services.dependency_container import DependencyContainer

EXIT_OK = 0
EXIT_CONFIG_ERROR = 1
EXIT_INTERRUPTED = 130


def _add_serve_command(subparsers: Any) -> None:
    """Add serve command."""
    parser = subparsers.add_parser(
        "serve",
        help="Run the HTTP gateway",
        description="Serve the lookup endpoints over HTTP",
    )
    parser.add_argument("--host", help="Bind address (defaults to server.host)")
    parser.add_argument("--port", type=int, help="Bind port (defaults to server.port)")


def _add_release_command(subparsers: Any) -> None:
    """Add release details command."""
    parser = subparsers.add_parser(
        "release",
        help="Look up normalized release details",
        description="Fetch a release or master and print its normalized details",
    )
    parser.add_argument("--id", type=int, help="Release (or master) id")
    parser.add_argument("--master-id", type=int, help="Master id")
    parser.add_argument("--result-type", choices=["master", "release"], help="Kind of the id")


def _add_artists_command(subparsers: Any) -> None:
    """Add artists command."""
    parser = subparsers.add_parser(
        "artists",
        help="Look up artist names",
        description="Print the cleaned artist names of a release or master",
    )
    parser.add_argument("--id", type=int, help="Release id")
    parser.add_argument("--master-id", type=int, help="Master id")


def _add_barcode_command(subparsers: Any) -> None:
    """Add barcode command."""
    parser = subparsers.add_parser(
        "barcode",
        help="Look up releases by barcode",
        description="Search masters and releases matching a barcode",
    )
    parser.add_argument("barcode", help="Barcode (non-digits are ignored)")


def _add_search_command(subparsers: Any) -> None:
    """Add search command."""
    parser = subparsers.add_parser(
        "search",
        help="Ranked free-text search",
        description="Search masters and releases; prefix the query with '#' to match catalog numbers only",
    )
    parser.add_argument("query", help="Search text")
    parser.add_argument("--page", type=int, default=1, help="Result page (1-based)")
    parser.add_argument("--per-page", type=int, help="Results per page")


class CLI:
    """Command-line interface handler."""

    def __init__(self) -> None:
        """Initialize CLI parser."""
        self.parser = self._create_parser()

    @staticmethod
    def _create_parser() -> argparse.ArgumentParser:
        """Create the argument parser."""
        parser = argparse.ArgumentParser(
            prog="crategate",
            description="Crategate - rate limited, cached Discogs lookups",
            formatter_class=argparse.RawDescriptionHelpFormatter,
            epilog="""
Examples:
    # Serve the HTTP endpoints
    %(prog)s serve --port 8080

    # Release details for a master
    %(prog)s release --id 13814 --result-type master

    # Catalog number search
    %(prog)s search "#DGC-24425"
            """,
        )
        parser.add_argument(
            "--config",
            type=str,
            help="Path to configuration file. If not specified, CONFIG_PATH, then 'config.yaml' are tried; built-in defaults otherwise.",
        )
        parser.add_argument(
            "--verbose",
            "-v",
            action="store_true",
            help="Enable debug console logging",
        )

        subparsers = parser.add_subparsers(
            dest="command", title="Commands", description="Available commands", help="Use '%(prog)s COMMAND --help' for command-specific help"
        )
        _add_serve_command(subparsers)
        _add_release_command(subparsers)
        _add_artists_command(subparsers)
        _add_barcode_command(subparsers)
        _add_search_command(subparsers)
        return parser

    def parse_args(self, args: list[str] | None = None) -> argparse.Namespace:
        """Parse command-line arguments."""
        return self.parser.parse_args(args)

    def print_help(self) -> None:
        """Print help message."""
        self.parser.print_help()


async def _run_lookup(container: DependencyContainer, args: argparse.Namespace) -> None:
    await container.initialize()
    try:
        await Orchestrator(container).run_command(args)
    finally:
        await container.close()


def _serve(container: DependencyContainer, args: argparse.Namespace) -> None:
    server_cfg = container.config.server
    host = args.host or server_cfg.host
    port = args.port or server_cfg.port
    container.console_logger.info("Serving Discogs gateway on http://%s:%d", host, port)
    web.run_app(create_app(container), host=host, port=port, print=None)


def main(argv: list[str] | None = None) -> int:
    """Execute the command-line entry point.

    Returns:
        Process exit code

    """
    cli = CLI()
    args = cli.parse_args(argv)
    if args.command is None:
        cli.print_help()
        return EXIT_OK

    try:
        config = Config(args.config).load()
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    if args.verbose:
        config.logging.console_level = LogLevel.DEBUG

    console_logger, error_logger, listener = get_loggers(config)
    container = DependencyContainer(config, console_logger, error_logger, logging_listener=listener)
    try:
        if args.command == "serve":
            _serve(container, args)
        else:
            asyncio.run(_run_lookup(container, args))
    except KeyboardInterrupt:
        console_logger.info("Interrupted by user.")
        return EXIT_INTERRUPTED
    finally:
        container.shutdown()
    return EXIT_OK
