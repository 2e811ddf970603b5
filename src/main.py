"""
Cardmarket Offer Finder — Application Entrypoint

Configures structlog, opens the async SQLAlchemy engine and dispatches one
command.

Run via:
    python -m src.main find <url> --condition NM --language French
    python -m src.main add <url> --condition NM --language French --partition wishlist
    python -m src.main list --partition collection
    python -m src.main move 3 --partition collection
    python -m src.main delete 3
    python -m src.main rescrape
    python -m src.main stats
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import Any

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from src.config import CardPartition, settings
from src.models.base import Base
from src.pipeline import card_store
from src.pipeline.rescrape import rescrape_all_cards
from src.scraper import MatchCriteria
from src.scraper.errors import EnvironmentUnavailable, ScraperError
from src.scraper.runner import ScraperRunner


# ---------------------------------------------------------------------------
# Structlog Configuration
# ---------------------------------------------------------------------------


def _configure_logging(log_level: str = "INFO") -> None:
    """
    Set up structured logging with JSON output.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR).
    """
    # Log lines go to stderr, command output to stdout
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, log_level.upper()),
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.JSONRenderer(),
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


# ---------------------------------------------------------------------------
# Database Setup
# ---------------------------------------------------------------------------


async def create_db_engine(database_url: str | None = None) -> tuple[Any, async_sessionmaker[AsyncSession]]:
    """
    Create SQLAlchemy async engine and session factory.

    The cards table is created when missing, so a fresh SQLite file works
    without running migrations first.

    Returns:
        (engine, session_factory) tuple.
    """
    logger = structlog.get_logger(__name__)
    url = database_url or settings.DATABASE_URL

    logger.info("database_engine_initializing", database_url=url)

    engine = create_async_engine(url, echo=False, pool_pre_ping=True)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

    logger.info("database_engine_ready")
    return engine, session_factory


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------


def _add_criteria_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("url", help="Cardmarket product listing URL.")
    parser.add_argument(
        "--condition",
        required=True,
        help="Condition grade (e.g., NM, EX, 'Near Mint').",
    )
    parser.add_argument(
        "--language",
        required=True,
        help="Card language (e.g., French, English, Japanese).",
    )
    parser.add_argument(
        "--first-edition",
        action="store_true",
        help="Require a first-edition copy.",
    )


def _partition_argument(parser: argparse.ArgumentParser, required: bool = False) -> None:
    parser.add_argument(
        "--partition",
        type=CardPartition,
        choices=list(CardPartition),
        metavar="{collection,wishlist}",
        default=None if required else CardPartition.COLLECTION,
        required=required,
        help="collection | wishlist",
    )


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Find the cheapest Cardmarket offer matching a condition, language and edition.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--allow-fallback",
        action="store_true",
        help="Relax the criteria (edition, then language, then anything) when nothing matches exactly.",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    find = commands.add_parser("find", help="Scrape a listing and print the matching offer.")
    _add_criteria_arguments(find)

    add = commands.add_parser("add", help="Scrape a listing and save it.")
    _add_criteria_arguments(add)
    _partition_argument(add)

    listing = commands.add_parser("list", help="List saved cards, newest first.")
    _partition_argument(listing)

    move = commands.add_parser("move", help="Move a saved card to another partition.")
    move.add_argument("card_id", type=int)
    _partition_argument(move, required=True)

    delete = commands.add_parser("delete", help="Delete a saved card.")
    delete.add_argument("card_id", type=int)

    commands.add_parser("rescrape", help="Refresh the price of every saved card.")
    commands.add_parser("stats", help="Card counts and values per partition.")

    return parser.parse_args(argv)


def _print_card(card: Any) -> None:
    edition = " 1st ed." if card.is_first_edition else ""
    print(
        f"[{card.id}] {card.name} | {card.set_name} | {card.rarity} | "
        f"{card.quality} {card.language}{edition} | {card.price}"
    )


async def run_command(
    args: argparse.Namespace,
    session_factory: async_sessionmaker[AsyncSession],
    runner: ScraperRunner,
) -> int:
    """Execute one parsed command. Returns the process exit code."""
    if args.command == "find":
        criteria = MatchCriteria(
            condition_grade=args.condition,
            language=args.language,
            is_first_edition=args.first_edition,
        )
        result = await runner.find_offer(args.url, criteria)
        offer = result.chosen_offer
        print(f"{result.display_name} ({result.set_label}, {result.rarity})")
        print(
            f"  {offer.price_display}  {offer.condition_grade} {offer.language}"
            f"{' 1st ed.' if offer.is_first_edition else ''}"
        )
        print(f"  {result.offer_count} offer(s) seen, profile={result.profile_name}")
        return 0

    async with session_factory() as session:
        if args.command == "add":
            request = card_store.AddCardRequest(
                url=args.url,
                partition=args.partition,
                condition_grade=args.condition,
                language=args.language,
                is_first_edition=args.first_edition,
            )
            _print_card(await card_store.add_card(session, request, runner))
        elif args.command == "list":
            for card in await card_store.list_cards(session, args.partition):
                _print_card(card)
        elif args.command == "move":
            _print_card(await card_store.move_card(session, args.card_id, args.partition))
        elif args.command == "delete":
            if not await card_store.delete_card(session, args.card_id):
                print(f"No card with id {args.card_id}", file=sys.stderr)
                return 1
        elif args.command == "rescrape":
            stats = await rescrape_all_cards(session, runner)
            print(f"{stats.updated}/{stats.total_cards} card(s) updated, {stats.errors} error(s)")
            for detail in stats.error_details:
                print(f"  {detail}")
        elif args.command == "stats":
            stats = await card_store.get_stats(session)
            print(f"collection: {stats.collection_count} card(s), {stats.collection_value:.2f} €")
            print(f"wishlist:   {stats.wishlist_count} card(s), {stats.wishlist_value:.2f} €")
            print(f"total:      {stats.total_cards} card(s), {stats.total_value:.2f} €")
    return 0


# ---------------------------------------------------------------------------
# Application Startup
# ---------------------------------------------------------------------------


async def main(argv: list[str] | None = None) -> int:
    """
    Application entrypoint.

    Execution order:
    1. Configure logging (structlog JSON)
    2. Create async database engine and session factory
    3. Run the requested command
    """
    args = parse_args(argv)

    _configure_logging(log_level=settings.LOG_LEVEL)
    logger = structlog.get_logger(__name__)
    logger.info("offer_finder_startup", command=args.command)

    engine, session_factory = await create_db_engine()
    runner = ScraperRunner(allow_fallback=True if args.allow_fallback else None)

    try:
        return await run_command(args, session_factory, runner)
    except EnvironmentUnavailable as e:
        print(f"Browser unavailable: {e.reason}\n{e.guidance}", file=sys.stderr)
        return 2
    except (ScraperError, LookupError) as e:
        print(str(e), file=sys.stderr)
        return 1
    finally:
        await engine.dispose()
        logger.info("offer_finder_shutdown_complete")


# ---------------------------------------------------------------------------
# CLI Entry
# ---------------------------------------------------------------------------


def cli() -> None:
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    cli()
