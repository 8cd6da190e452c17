"""Command-line entry for localevents cache diagnostics.

Exposes the cache's maintenance surface (stats, cleanup, clear) so the
on-device cache can be inspected and reset outside the app.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys
from typing import Any, NoReturn, Optional

from .cache import CacheCoordinator, CacheError
from .config.settings import LocalEventsSettings, load_settings
from .logging_setup import configure_logging

logger = logging.getLogger(__name__)


def _create_parser() -> argparse.ArgumentParser:
    """Create argument parser for the localevents CLI.

    Returns:
        Configured argument parser
    """
    parser = argparse.ArgumentParser(
        prog="localevents",
        description="LocalEvents - offline event and image cache maintenance",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  localevents stats                         # Show record, image and favorite cache stats
  localevents cleanup                       # Purge expired pages and images now
  localevents clear                         # Remove everything, favorite images included
  localevents --config ./config.yaml init   # Prepare storage and print stats
        """,
    )

    parser.add_argument(
        "--config",
        metavar="FILE",
        help="YAML configuration file (default: ~/.config/localevents/config.yaml)",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging (also LOCALEVENTS_DEBUG=1)",
    )
    parser.add_argument(
        "command",
        choices=("stats", "cleanup", "clear", "init"),
        help="Maintenance action to run",
    )

    return parser


def _print_json(payload: Any) -> None:
    print(json.dumps(payload, indent=2, sort_keys=True))


async def run_command(command: str, settings: LocalEventsSettings) -> dict[str, Any]:
    """Execute one maintenance command and return its JSON-ready result."""
    coordinator = CacheCoordinator.from_config(settings.cache_config)
    try:
        if command == "init":
            stats = await coordinator.initialize()
            return stats.model_dump(mode="json")
        if command == "stats":
            stats = await coordinator.stats()
            return stats.model_dump(mode="json")
        if command == "cleanup":
            removed = await coordinator.cleanup_now()
            return {"removed_record_pages": removed}
        if command == "clear":
            await coordinator.clear_all()
            return {"cleared": True}
        raise ValueError(f"Unknown command: {command}")
    finally:
        await coordinator.close()


def main(argv: Optional[list[str]] = None) -> NoReturn:
    """Run the localevents CLI."""
    parser = _create_parser()
    args = parser.parse_args(argv)

    settings = load_settings(args.config)
    configure_logging(debug_mode=args.debug or settings.logging.debug)
    if not (args.debug or settings.logging.debug or os.getenv("LOCALEVENTS_LOG_LEVEL")):
        logging.getLogger().setLevel(getattr(logging, settings.logging.console_level.upper(), logging.INFO))

    try:
        result = asyncio.run(run_command(args.command, settings))
    except CacheError as exc:
        logger.error("Command '%s' failed: %s", args.command, exc)
        sys.exit(1)

    _print_json(result)
    sys.exit(0)


if __name__ == "__main__":
    main()
