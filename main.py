# main.py

"""Entry point for the grocery_scout command line."""

import argparse
import asyncio
import logging
import sys

from src.config.logging_config import setup_logging
from src.config.settings import Settings

logger = logging.getLogger("grocery_scout.main")


def _build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="grocery-scout",
        description=(
            "Search grocery prices, scout shopping lists, and track "
            "price trends."
        ),
    )
    parser.add_argument(
        "query",
        nargs="?",
        default=None,
        help="Product to search for.",
    )
    parser.add_argument(
        "--barcode",
        default=None,
        help="Search by UPC/EAN barcode instead of a name.",
    )
    parser.add_argument(
        "--scout",
        default=None,
        metavar="LIST",
        help="Price every unchecked item on a shopping list.",
    )
    parser.add_argument(
        "--new-list",
        default=None,
        dest="new_list",
        metavar="NAME",
        help="Create a shopping list.",
    )
    parser.add_argument(
        "--items",
        default=None,
        help="Comma-separated items for --new-list.",
    )
    parser.add_argument(
        "--add-item",
        nargs=2,
        default=None,
        dest="add_item",
        metavar=("LIST", "ITEM"),
        help="Append an item to a shopping list.",
    )
    parser.add_argument(
        "--check",
        nargs=2,
        default=None,
        metavar=("LIST", "ITEM"),
        help="Toggle an item's checked state (ITEM is an id or name).",
    )
    parser.add_argument(
        "--remove-item",
        nargs=2,
        default=None,
        dest="remove_item",
        metavar=("LIST", "ITEM"),
        help="Remove an item from a shopping list.",
    )
    parser.add_argument(
        "--delete-list",
        default=None,
        dest="delete_list",
        metavar="LIST",
        help="Delete a shopping list.",
    )
    parser.add_argument(
        "--lists",
        action="store_true",
        default=False,
        help="Show all shopping lists.",
    )
    parser.add_argument(
        "--stats",
        default=None,
        metavar="PRODUCT",
        help="Show price history statistics for a product.",
    )
    parser.add_argument(
        "--chart",
        default=None,
        metavar="PRODUCT",
        help="Export a price history chart for a product.",
    )
    parser.add_argument(
        "--no-browser",
        action="store_true",
        default=False,
        dest="no_browser",
        help="Do not open exported charts in a browser.",
    )
    parser.add_argument(
        "--near",
        default=None,
        help="City, state or zip to search near.",
    )
    parser.add_argument("--lat", type=float, default=None)
    parser.add_argument("--lng", type=float, default=None)
    parser.add_argument(
        "--account",
        default=Settings.DEFAULT_ACCOUNT_ID,
        help=f"Account id (default: {Settings.DEFAULT_ACCOUNT_ID}).",
    )
    parser.add_argument(
        "--db",
        default=None,
        dest="db_path",
        help="Snapshot database path.",
    )
    parser.add_argument(
        "-f",
        "--format",
        choices=["json", "table"],
        default="table",
        dest="output_format",
        help="Output format (default: table).",
    )
    return parser


def _dispatch(
    args: argparse.Namespace, parser: argparse.ArgumentParser,
) -> int:
    """Route parsed arguments to the matching command."""
    from src.cli import runner
    from src.services.search_provider import GeoLocation

    location = None
    if args.lat is not None and args.lng is not None:
        location = GeoLocation(latitude=args.lat, longitude=args.lng)

    if args.new_list:
        return runner.run_create_list(
            args.new_list, args.items, args.account, args.db_path,
        )
    if args.add_item:
        list_ref, item = args.add_item
        return runner.run_add_item(
            list_ref, item, args.account, args.db_path,
        )
    if args.check:
        list_ref, item = args.check
        return runner.run_toggle_item(
            list_ref, item, args.account, args.db_path,
        )
    if args.remove_item:
        list_ref, item = args.remove_item
        return runner.run_remove_item(
            list_ref, item, args.account, args.db_path,
        )
    if args.delete_list:
        return runner.run_delete_list(
            args.delete_list, args.account, args.db_path,
        )
    if args.lists:
        return runner.run_show_lists(
            args.account, args.output_format, args.db_path,
        )
    if args.stats:
        return runner.run_stats(
            args.stats, args.account, args.output_format, args.db_path,
        )
    if args.chart:
        return runner.run_chart(
            args.chart, args.account,
            open_browser=not args.no_browser,
            db_path=args.db_path,
        )
    if args.scout:
        return asyncio.run(runner.cli_scout(
            args.scout, args.account, args.output_format,
            location=location, db_path=args.db_path,
        ))
    if args.barcode or args.query:
        return asyncio.run(runner.cli_search(
            args.query, args.account, args.output_format,
            barcode=args.barcode, location=location,
            near=args.near, db_path=args.db_path,
        ))

    parser.print_help(sys.stderr)
    return 2


def main() -> None:
    """Parse arguments and run one command."""
    log_file = setup_logging()
    logger.info("grocery_scout starting, log file: %s", log_file)

    parser = _build_parser()
    args = parser.parse_args()
    try:
        exit_code = _dispatch(args, parser)
    except Exception:
        logger.critical("Fatal error", exc_info=True)
        raise
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
