"""Routes one-off CLI lookups to the gateway and prints their results."""

from __future__ import annotations

import argparse
from typing import TYPE_CHECKING, Any

from crategate.core.logger import get_shared_console

if TYPE_CHECKING:
    from crategate.services.dependency_container import DependencyContainer


class Orchestrator:
    """Executes a parsed lookup command against the gateway."""

    def __init__(self, deps: DependencyContainer) -> None:
        self.deps = deps
        self.console_logger = deps.console_logger

    def _print_result(self, data: Any) -> None:
        """Print a command result as JSON on the shared console."""
        get_shared_console().print_json(data=data)

    async def run_command(self, args: argparse.Namespace) -> None:
        """Execute the lookup named by ``args.command``."""
        gateway = self.deps.gateway
        match args.command:
            case "release":
                details = await gateway.get_release_details(args.id, args.master_id, args.result_type)
                self._print_result(details.model_dump())
            case "artists":
                self._print_result({"artists": await gateway.get_artist_names(args.id, args.master_id)})
            case "barcode":
                results = await gateway.lookup_barcode(args.barcode)
                self._print_result({"results": results, "total": len(results)})
            case "search":
                page = await gateway.search(args.query, args.page, args.per_page)
                self._print_result(page.model_dump())
            case _:
                self.console_logger.error("Unknown command: %s", args.command)
