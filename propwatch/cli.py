"""Command-line entry point.

The cron trigger lives outside this package; an external scheduler calls
`propwatch run`.

Usage:
    propwatch run
    propwatch run-source FOTOCASA
    propwatch init-db
"""

import argparse
import asyncio
import sys
from typing import List, Optional

import structlog

from propwatch.core.exceptions import UnknownSourceError
from propwatch.core.logging import configure_logging
from propwatch.db.session import async_session_factory, engine, init_db
from propwatch.scrapers.orchestrator import RunCounters, ScraperOrchestrator
from propwatch.scrapers.register_sources import register_all_scrapers
from propwatch.scrapers.utils.browser_manager import get_browser_manager
from propwatch.services.alert_service import AlertService
from propwatch.services.catalog_service import CatalogService
from propwatch.services.config_service import ConfigService
from propwatch.services.run_service import RunService

logger = structlog.get_logger(__name__)


async def _run(source_id: Optional[str] = None) -> int:
    register_all_scrapers()
    try:
        async with async_session_factory() as db:
            orchestrator = ScraperOrchestrator(
                config_provider=ConfigService(db),
                catalog=CatalogService(db),
                runs=RunService(db),
                alerts=AlertService(db),
            )
            if source_id is None:
                counters = await orchestrator.run()
                _print_summary(counters)
                return 0

            try:
                counters = await orchestrator.run_single_source(source_id)
            except UnknownSourceError as e:
                print(f"Error: {e.message}", file=sys.stderr)
                return 2
            _print_summary(counters)
            return 0
    finally:
        await get_browser_manager().shutdown()
        await engine.dispose()


async def _init_db() -> int:
    try:
        await init_db()
    finally:
        await engine.dispose()
    logger.info("database_initialized")
    return 0


def _print_summary(counters: Optional[RunCounters]) -> None:
    if counters is None:
        print("Run skipped or failed; see the log for details.")
        return
    print(
        f"found={counters.total_found} new={counters.new_listings} "
        f"updated={counters.updated_listings} price_changes={counters.price_changes} "
        f"filtered_out={counters.filtered_out} errors={counters.errors}"
    )
    for source, count in counters.source_counts.items():
        print(f"  {source}: {count}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="propwatch",
        description="Scrape Spanish property listing sites into the catalog",
    )
    parser.add_argument("--log-level", help="Override LOG_LEVEL (e.g. DEBUG)")
    parser.add_argument("--json-logs", action="store_true", default=None, help="Render logs as JSON")

    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("run", help="Run a full crawl cycle over the configured sources")
    single = subparsers.add_parser("run-source", help="Scrape one source without a run record")
    single.add_argument("source", help="Source id (e.g. PISOSCOM, FOTOCASA, IDEALISTA)")
    subparsers.add_parser("init-db", help="Create database tables")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Parse arguments and dispatch the command."""
    args = build_parser().parse_args(argv)
    configure_logging(level=args.log_level, json_logs=args.json_logs)

    if args.command == "init-db":
        return asyncio.run(_init_db())
    if args.command == "run-source":
        return asyncio.run(_run(args.source))
    return asyncio.run(_run())


if __name__ == "__main__":
    sys.exit(main())
