"""Command line entry point: ``cip scrape | query | seance | clean``."""
from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import List

import structlog

from .database import Database
from .errors import CipError
from .errors import NotFoundError
from .models import GroupBy
from .query import Style
from .query import build_query_options
from .query import render_detail
from .query import render_listing
from .scraper import CipScraper
from .settings import Settings
from .settings import get_settings

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="cip", description="Paris independent cinema listings (cip-paris.fr)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    db_parent = argparse.ArgumentParser(add_help=False)
    db_parent.add_argument("--db-path", type=Path, default=None, help="Database file path")

    subparsers.add_parser(
        "scrape", parents=[db_parent], help="Scrape cip-paris.fr and replace the stored listings"
    )

    query = subparsers.add_parser("query", parents=[db_parent], help="Query the stored listings")
    query.add_argument("-d", "--day", help="Day to query, DD/MM")
    query.add_argument("-t", "--time", dest="at", help="Only seances after HH:MM")
    query.add_argument("--until", help="Extend the window up to this day, DD/MM")
    query.add_argument("--vf", action="store_true", help="Show VF only")
    query.add_argument("--vo", action="store_true", help="Show VO only")
    query.add_argument("-c", "--cinema", help="Cinema name contains TEXT")
    query.add_argument("-f", "--film", help="Film title contains TEXT")
    query.add_argument(
        "-g",
        "--group",
        choices=[g.value for g in GroupBy],
        default=GroupBy.CINEMA.value,
        help="Group by cinemas or films",
    )

    seance = subparsers.add_parser("seance", parents=[db_parent], help="Show information about a seance")
    seance.add_argument("id", type=int, metavar="SEANCE_ID", help="Seance id")

    subparsers.add_parser("clean", parents=[db_parent], help="Delete the database")
    return parser


async def run_scrape(settings: Settings, db_path: Path) -> int:
    log = structlog.get_logger("cip_listings.scrape")
    started = datetime.now()
    snapshot = await CipScraper(settings).scrape()
    async with Database(db_path, settings) as db:
        await db.replace_snapshot(snapshot)
        info = await db.get_snapshot_info()
    log.info(
        "scrape finished",
        cinemas=info.cinemas,
        films=info.films,
        seances=info.seances,
        duration_seconds=round((datetime.now() - started).total_seconds(), 2),
    )
    print(f"Stored {info.seances} seances from {info.cinemas} cinemas ({info.films} films) in {db_path}")
    return 0


async def run_query(args: argparse.Namespace, settings: Settings, db_path: Path, style: Style) -> int:
    today = datetime.now(settings.tz).date()
    options = build_query_options(
        today,
        day=args.day,
        at=args.at,
        until=args.until,
        vf=args.vf,
        vo=args.vo,
        cinema=args.cinema,
        film=args.film,
    )
    if not db_path.exists():
        logger.debug(f"No database at {db_path}, nothing scraped yet")
        return 0
    async with Database(db_path, settings) as db:
        results = await db.query_seances(options, today=today)
    output = render_listing(results, GroupBy(args.group), single_day=options.single_day, style=style)
    if output:
        print(output)
    return 0


async def run_seance(seance_id: int, settings: Settings, db_path: Path, style: Style) -> int:
    if not db_path.exists():
        raise NotFoundError(seance_id)
    async with Database(db_path, settings) as db:
        detail = await db.get_seance(seance_id)
    print(render_detail(detail, settings.base_url, style=style))
    return 0


def main(argv: List[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    settings = get_settings()
    if args.verbose:
        settings = settings.model_copy(update={"log_level": "DEBUG"})
    settings.setup_logging()

    db_path = args.db_path or settings.db_path
    style = Style(enabled=settings.color and sys.stdout.isatty())

    try:
        if args.command == "scrape":
            return asyncio.run(run_scrape(settings, db_path))
        if args.command == "query":
            return asyncio.run(run_query(args, settings, db_path, style))
        if args.command == "seance":
            return asyncio.run(run_seance(args.id, settings, db_path, style))
        if args.command == "clean":
            Database.delete(db_path)
            return 0
    except CipError as e:
        logger.debug(f"{args.command} failed", exc_info=True)
        print(f"error: {e}", file=sys.stderr)
        return e.exit_code

    return 2


if __name__ == "__main__":  # pragma: no cover - CLI entry
    raise SystemExit(main())
