#!/usr/bin/env python3
"""Book Explorer CLI - search and browse the Open Library catalog."""
import argparse
import asyncio
import sys
import json
from dataclasses import asdict
from tabulate import tabulate
from pageturner.client import CatalogClient
from pageturner.async_client import AsyncCatalogClient
from pageturner.config import Config
from pageturner.errors import CatalogError, NotFound
from pageturner.parse import ALL_CATEGORIES, CATEGORIES
from pageturner.service import CatalogService, AsyncCatalogService
import logging

logger = logging.getLogger(__name__)


def setup_logging(config: Config):
    """Configure root logging from config."""
    logging.basicConfig(
        level=getattr(logging, config.LOG_LEVEL.upper(), logging.INFO),
        format='%(asctime)s - %(levelname)s - %(message)s'
    )


def _truncate(text: str, width: int) -> str:
    return text[:width] + "..." if len(text) > width else text


def display_books(books, format_type: str):
    """Display books in specified format."""
    if format_type == "table":
        headers = ["ID", "Title", "Authors", "Year", "Category", "Subjects"]
        rows = [
            [
                book.id,
                _truncate(book.title, 50),
                _truncate(book.authors_str, 30),
                book.year or "Unknown",
                book.category or "-",
                _truncate(book.subjects_str, 30)
            ]
            for book in books
        ]
        print("\n" + tabulate(rows, headers=headers, tablefmt="grid"))

    elif format_type == "json":
        print(json.dumps([asdict(book) for book in books], indent=2))

    elif format_type == "compact":
        for i, book in enumerate(books, 1):
            print(f"{i}. {book.title} - {book.authors_str}")


def display_detail(book, cover_url, format_type: str):
    """Display a single book detail."""
    if format_type == "json":
        data = asdict(book)
        data["cover_url"] = cover_url
        print(json.dumps(data, indent=2))
        return

    rows = [
        ["ID", book.id],
        ["Title", book.title],
        ["Authors", book.authors_str],
        ["First published", book.first_publish_date or "Unknown"],
        ["Subjects", _truncate(", ".join(book.subjects) or "None", 60)],
        ["Cover", cover_url or "None"],
        ["Description", _truncate(book.description, 300)]
    ]
    print("\n" + tabulate(rows, tablefmt="grid"))


def run_command(args, service):
    """Run a command against the sync service."""
    if args.command == "search":
        display_books(service.search(args.query, page=args.page, limit=args.limit), args.format)
    elif args.command == "recent":
        result = service.recent(limit=args.limit, category=args.category)
        display_books(result.items, args.format)
        logger.info(f"Showing {len(result.items)} of {result.total} matches")
    elif args.command == "new":
        display_books(service.new_arrivals(limit=args.limit, category=args.category), args.format)
    elif args.command == "detail":
        book = service.detail(args.work_id)
        display_detail(book, service.client.cover_url(book.cover_id, args.size), args.format)


async def run_command_async(args, service):
    """Run a command against the async service."""
    if args.command == "search":
        display_books(await service.search(args.query, page=args.page, limit=args.limit), args.format)
    elif args.command == "recent":
        result = await service.recent(limit=args.limit, category=args.category)
        display_books(result.items, args.format)
        logger.info(f"Showing {len(result.items)} of {result.total} matches")
    elif args.command == "new":
        display_books(await service.new_arrivals(limit=args.limit, category=args.category), args.format)
    elif args.command == "detail":
        book = await service.detail(args.work_id)
        display_detail(book, service.client.cover_url(book.cover_id, args.size), args.format)


def explore_sync(args, config: Config):
    """Explore the catalog using the sync client."""
    with CatalogClient(
        base_url=config.CATALOG_BASE_URL,
        timeout=config.DEFAULT_TIMEOUT,
        covers_base_url=config.COVERS_BASE_URL
    ) as client:
        run_command(args, CatalogService(client))


async def explore_async(args, config: Config):
    """Explore the catalog using the async client."""
    async with AsyncCatalogClient(
        base_url=config.CATALOG_BASE_URL,
        timeout=config.DEFAULT_TIMEOUT,
        covers_base_url=config.COVERS_BASE_URL
    ) as client:
        await run_command_async(args, AsyncCatalogService(client))


def build_parser() -> argparse.ArgumentParser:
    """Build the CLI argument parser."""
    parser = argparse.ArgumentParser(
        description="Book Explorer - search and browse the Open Library catalog",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Search with defaults
  %(prog)s search "dune"

  # Recent listing as JSON through the async client
  %(prog)s recent --limit 40 --format json --async

  # Detail view with a large cover
  %(prog)s detail OL45804W --size L
        """
    )
    parser.add_argument("--async", dest="use_async", action="store_true", help="Use async client")

    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    formats = ["table", "json", "compact"]
    categories = [ALL_CATEGORIES] + list(CATEGORIES)
    default_limit = Config.DEFAULT_PAGE_SIZE

    # Search command
    search_parser = subparsers.add_parser("search", help="Search for books")
    search_parser.add_argument("query", help="Search query")
    search_parser.add_argument("--page", type=int, default=1, help="Result page (default: 1)")
    search_parser.add_argument("--limit", type=int, default=default_limit, help=f"Max results (default: {default_limit})")
    search_parser.add_argument("--format", choices=formats, default="table", help="Output format")

    # Recent command
    recent_parser = subparsers.add_parser("recent", help="List recently published books")
    recent_parser.add_argument("--limit", type=int, default=default_limit, help=f"Records to request (default: {default_limit})")
    recent_parser.add_argument("--format", choices=formats, default="table", help="Output format")
    recent_parser.add_argument("--category", choices=categories, default=ALL_CATEGORIES, help="Only show one category")

    # New arrivals command
    new_parser = subparsers.add_parser("new", help="List books first published this year")
    new_parser.add_argument("--limit", type=int, default=default_limit, help=f"Records to request (default: {default_limit})")
    new_parser.add_argument("--format", choices=formats, default="table", help="Output format")
    new_parser.add_argument("--category", choices=categories, default=ALL_CATEGORIES, help="Only show one category")

    # Detail command
    detail_parser = subparsers.add_parser("detail", help="Show one work")
    detail_parser.add_argument("work_id", help="Open Library work ID, e.g. OL45804W")
    detail_parser.add_argument("--size", choices=["S", "M", "L"], default="M", help="Cover size")
    detail_parser.add_argument("--format", choices=["table", "json"], default="table", help="Output format")

    return parser


def main(argv=None):
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    config = Config()
    setup_logging(config)

    try:
        if args.use_async:
            asyncio.run(explore_async(args, config))
        else:
            explore_sync(args, config)

    except KeyboardInterrupt:
        logger.info("\n⚠️  Interrupted by user")
        sys.exit(0)
    except NotFound as e:
        logger.error(f"❌ {e}")
        sys.exit(2)
    except CatalogError as e:
        logger.error(f"❌ Error: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
