"""
Source Administration

List, add, enable and disable ingestion sources.

Usage:
------
python pipeline/manage_sources.py list
python pipeline/manage_sources.py add acme-lever "Acme" lever --config '{"companyIdentifier": "acme"}' \
    --website https://acme.com
python pipeline/manage_sources.py disable acme-lever
python pipeline/manage_sources.py enable acme-lever

Uses JOB_STORAGE to pick the registry: Supabase 'sources' table, or
config/sources.json (SOURCES_FILE) for memory storage.
"""

import argparse
import json
import logging
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import List, Optional

sys.path.insert(0, str(Path(__file__).parent.parent))

from pipeline.models import Source, SourceType
from pipeline.settings import Settings
from pipeline.storage import FileSourceRegistry
from scrapers.ashby.ashby_fetcher import AshbyFetcher
from scrapers.common.base import SourceConfigError
from scrapers.greenhouse.greenhouse_api_fetcher import GreenhouseFetcher
from scrapers.lever.lever_fetcher import LeverFetcher

logger = logging.getLogger(__name__)

# A source not fetched for this long is reported as stale
STALE_AFTER = timedelta(days=2)

CONFIG_VALIDATORS = {
    SourceType.GREENHOUSE.value: GreenhouseFetcher,
    SourceType.LEVER.value: LeverFetcher,
    SourceType.ASHBY.value: AshbyFetcher,
}


def source_health(source: Source, now: Optional[datetime] = None) -> str:
    """'Disabled', 'Never fetched', 'Stale' or 'Healthy' from enabled flag and last_fetched."""
    if not source.enabled:
        return 'Disabled'
    if source.last_fetched is None:
        return 'Never fetched'
    now = now or datetime.now(timezone.utc)
    if now - source.last_fetched > STALE_AFTER:
        return 'Stale'
    return 'Healthy'


def build_source(source_id: str, name: str, source_type: str, config: dict,
                 website: Optional[str] = None, logo_url: Optional[str] = None,
                 enabled: bool = True) -> Source:
    """
    Build a Source after checking its type and config.

    Raises:
        SourceConfigError: unknown type or config missing required fields
    """
    source_type = source_type.strip().lower()
    fetcher_cls = CONFIG_VALIDATORS.get(source_type)
    if fetcher_cls is None:
        raise SourceConfigError(f"Unknown source type '{source_type}' (expected one of {sorted(CONFIG_VALIDATORS)})")
    # validate_config does not touch store/adapter
    fetcher_cls(store=None, adapter=None).validate_config(config)
    return Source(
        id=source_id.strip(),
        name=name.strip(),
        type=source_type,
        config=config,
        enabled=enabled,
        company_website=website,
        logo_url=logo_url,
    )


def open_registry(settings: Settings):
    if settings.storage == 'memory':
        return FileSourceRegistry(settings.sources_file)
    from pipeline.db_connection import SupabaseSourceRegistry
    return SupabaseSourceRegistry()


def print_sources(sources: List[Source]) -> None:
    now = datetime.now(timezone.utc)
    if not sources:
        print("No sources configured")
        return
    print(f"{'ID':<28} {'TYPE':<11} {'STATUS':<14} {'LAST FETCHED':<22} NAME")
    for source in sorted(sources, key=lambda s: s.name.lower()):
        last = source.last_fetched.strftime('%Y-%m-%d %H:%M UTC') if source.last_fetched else '-'
        print(f"{source.id:<28} {source.type:<11} {source_health(source, now):<14} {last:<22} {source.name}")


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description='Manage job ingestion sources')
    subparsers = parser.add_subparsers(dest='command', required=True)

    subparsers.add_parser('list', help='List all sources with health status')

    add = subparsers.add_parser('add', help='Register a new source')
    add.add_argument('id', help='Stable source id, e.g. acme-lever')
    add.add_argument('name', help='Company display name')
    add.add_argument('type', choices=sorted(CONFIG_VALIDATORS), help='ATS type')
    add.add_argument('--config', required=True, help='Source config as JSON')
    add.add_argument('--website', help='Company website (used for the logo)')
    add.add_argument('--logo-url', help='Explicit logo URL')
    add.add_argument('--disabled', action='store_true', help='Register the source disabled')

    for command in ('enable', 'disable'):
        sub = subparsers.add_parser(command, help=f'{command.capitalize()} a source')
        sub.add_argument('id', help='Source id')

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    try:
        registry = open_registry(Settings.from_env())

        if args.command == 'list':
            print_sources(registry.list_sources())
        elif args.command == 'add':
            try:
                config = json.loads(args.config)
            except json.JSONDecodeError as e:
                raise SourceConfigError(f"--config is not valid JSON: {e}")
            source = build_source(args.id, args.name, args.type, config,
                                  website=args.website, logo_url=args.logo_url,
                                  enabled=not args.disabled)
            registry.add_source(source)
            logger.info(f"Added source {source.id} ({source.type})")
        else:
            source = registry.set_enabled(args.id, args.command == 'enable')
            logger.info(f"Source {source.id} is now {'enabled' if source.enabled else 'disabled'}")
    except (ValueError, KeyError) as e:
        logger.error(str(e))
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
