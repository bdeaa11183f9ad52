"""
Job Ingestion Run

Purpose:
--------
Main entry point for one ingestion run: fetch every enabled source
(Greenhouse, Lever, Ashby), classify postings for remote relevance, upsert
relevant ones as Jobs and expire jobs that disappeared upstream.

Usage:
------
# Normal run against Supabase:
python pipeline/fetch_jobs.py

# Local run on config/sources.json with an in-memory store:
python pipeline/fetch_jobs.py --storage memory

# Dry run (nothing persisted, registry not updated), JSON summary:
python pipeline/fetch_jobs.py --dry-run --json

Exit codes: 0 all sources fetched, 1 at least one source failed, 2 setup error.
"""

import argparse
import json
import logging
import signal
import sys
from pathlib import Path
from typing import Dict, List, Optional

# Add project root to path so we can import scrapers module
sys.path.insert(0, str(Path(__file__).parent.parent))

from pipeline.classifier import RelevanceKeywords, load_relevance_keywords
from pipeline.job_adapter import JobProcessingAdapter
from pipeline.orchestrator import RunCoordinator, RunState, RunSummary
from pipeline.settings import Settings
from pipeline.storage import FileSourceRegistry, MemoryJobStore, MemorySourceRegistry
from scrapers.ashby.ashby_fetcher import AshbyFetcher
from scrapers.common.base import BaseFetcher
from scrapers.greenhouse.greenhouse_api_fetcher import GreenhouseFetcher
from scrapers.lever.lever_fetcher import LeverFetcher

logger = logging.getLogger(__name__)

FETCHER_CLASSES = [GreenhouseFetcher, LeverFetcher, AshbyFetcher]

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def build_fetchers(
    store,
    adapter,
    keywords: Optional[RelevanceKeywords] = None,
    timeout: float = 30.0,
    rate_limit: float = 0.5
) -> Dict[str, BaseFetcher]:
    """One fetcher per supported source type, keyed by type tag."""
    return {
        cls.source_type: cls(store, adapter, keywords=keywords, timeout=timeout, rate_limit=rate_limit)
        for cls in FETCHER_CLASSES
    }


def build_backends(settings: Settings, dry_run: bool = False):
    """
    Return (registry, store) for the configured storage backend.

    Dry runs read the file registry but never write back to it.
    """
    if dry_run:
        sources = FileSourceRegistry(settings.sources_file).list_sources()
        return MemorySourceRegistry(sources), MemoryJobStore()

    if settings.storage == 'memory':
        return FileSourceRegistry(settings.sources_file), MemoryJobStore()

    from pipeline.db_connection import SupabaseJobStore, SupabaseSourceRegistry, get_supabase_client
    client = get_supabase_client()
    return SupabaseSourceRegistry(client), SupabaseJobStore(client)


def log_summary(summary: RunSummary) -> None:
    logger.info("=" * 80)
    logger.info(f"RUN {summary.state.value}")
    logger.info("=" * 80)
    for result in summary.sources:
        line = (
            f"  {result.source_name} [{result.source_type}]: {result.stats.found} found, "
            f"{result.stats.relevant} relevant, {result.stats.processed} processed, "
            f"{result.stats.errors} errors, {result.expired} expired"
        )
        if result.error_message:
            line += f" - FAILED: {result.error_message}"
        logger.info(line)
    totals = summary.totals
    logger.info(
        f"Totals: {totals.found} found, {totals.relevant} relevant, {totals.processed} processed, "
        f"{totals.errors} errors, {summary.expired} expired"
    )


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description='Run one job ingestion pass over all enabled sources',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python pipeline/fetch_jobs.py
  python pipeline/fetch_jobs.py --storage memory --max-workers 5
  python pipeline/fetch_jobs.py --dry-run --json
        """
    )
    parser.add_argument(
        '--storage',
        choices=['supabase', 'memory'],
        help='Storage backend (default: JOB_STORAGE or supabase)'
    )
    parser.add_argument(
        '--sources-file',
        type=Path,
        help='JSON source registry for memory storage (default: SOURCES_FILE or config/sources.json)'
    )
    parser.add_argument(
        '--max-workers',
        type=int,
        help='Sources fetched concurrently (default: FETCH_MAX_WORKERS or 3)'
    )
    parser.add_argument(
        '--dry-run',
        action='store_true',
        help='Fetch and classify, but persist nothing and leave the registry untouched'
    )
    parser.add_argument(
        '--json',
        action='store_true',
        help='Print the run summary as JSON on stdout'
    )
    parser.add_argument(
        '--log-level',
        help='Logging level (default: LOG_LEVEL or INFO)'
    )
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)

    try:
        settings = Settings.from_env()
    except ValueError as e:
        logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)
        logger.error(str(e))
        return 2

    if args.storage:
        settings.storage = args.storage
    if args.sources_file:
        settings.sources_file = args.sources_file
    if args.max_workers:
        settings.max_workers = max(1, args.max_workers)

    logging.basicConfig(
        level=getattr(logging, (args.log_level or settings.log_level).upper(), logging.INFO),
        format=LOG_FORMAT
    )

    try:
        registry, store = build_backends(settings, dry_run=args.dry_run)
    except (ValueError, OSError) as e:
        logger.error(f"Could not initialise storage: {e}")
        return 2

    keywords = load_relevance_keywords(settings.keywords_file)
    adapter = JobProcessingAdapter(logo_token=settings.logo_dev_token)
    fetchers = build_fetchers(store, adapter, keywords, settings.timeout, settings.rate_limit)

    coordinator = RunCoordinator(
        registry, store, fetchers,
        max_workers=settings.max_workers,
        log=logging.getLogger('pipeline.run')
    )

    # Ctrl-C cancels the run; in-flight sources stop between postings
    previous_handler = signal.signal(signal.SIGINT, lambda signum, frame: coordinator.cancel())

    logger.info(f"Storage: {'memory (dry run)' if args.dry_run else settings.storage}")
    try:
        summary = coordinator.run()
    finally:
        signal.signal(signal.SIGINT, previous_handler)
    log_summary(summary)

    if args.json:
        print(json.dumps(summary.to_dict(), indent=2))

    return 0 if summary.state == RunState.COMPLETED else 1


if __name__ == "__main__":
    sys.exit(main())
