# main.py

"""Entry point for the pricewatch price monitor."""

import argparse
import asyncio
import logging
import sys
from collections.abc import Coroutine
from typing import Any

from pricewatch.config.logging_config import setup_logging

logger = logging.getLogger("pricewatch.main")


def _build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="pricewatch",
        description="Local noon.com price change monitor.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser(
        "run",
        help="Poll tracked products on a jittered alarm until stopped.",
    )
    sub.add_parser(
        "check",
        help="Run a single poll cycle now.",
    )

    add = sub.add_parser("add", help="Start tracking a product page.")
    add.add_argument("url", help="noon.com product page URL.")

    remove = sub.add_parser("remove", help="Stop tracking a product.")
    remove.add_argument("item_id", help="Tracked product id.")

    sub.add_parser("list", help="Show tracked products.")

    open_ = sub.add_parser(
        "open",
        help="Act on a notification (open the product page).",
    )
    open_.add_argument("notification_id", help="e.g. <code>:<item id>")
    open_.add_argument(
        "-b",
        "--button",
        type=int,
        default=0,
        help="Button index clicked (default: 0, the primary action).",
    )
    return parser


def _command(args: argparse.Namespace) -> Coroutine[Any, Any, int]:
    """Map parsed arguments to the runner coroutine."""
    from pricewatch.cli import runner

    if args.command == "run":
        return runner.run_monitor()
    if args.command == "check":
        return runner.run_check()
    if args.command == "add":
        return runner.run_add(args.url)
    if args.command == "remove":
        return runner.run_remove(args.item_id)
    if args.command == "list":
        return runner.run_list()
    return runner.run_open(args.notification_id, args.button)


def main(argv: list[str] | None = None) -> None:
    """Parse the command line and run the selected command."""
    args = _build_parser().parse_args(argv)

    log_file = setup_logging()
    logger.info("pricewatch %s starting, log file: %s", args.command, log_file)

    try:
        exit_code = asyncio.run(_command(args))
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")
        exit_code = 0
    except Exception:
        logger.critical("Fatal error in %s", args.command, exc_info=True)
        raise
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
