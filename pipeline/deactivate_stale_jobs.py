"""
Stale Job Deactivation

Expire ACTIVE jobs that no ingestion run has refreshed in N days. This
catches jobs whose source was disabled or has been failing for a while,
which reconciliation never touches.

Usage:
------
python pipeline/deactivate_stale_jobs.py                # 14 day threshold
python pipeline/deactivate_stale_jobs.py --days 30
python pipeline/deactivate_stale_jobs.py --dry-run      # list only
"""

import argparse
import logging
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import List, Optional

sys.path.insert(0, str(Path(__file__).parent.parent))

from pipeline.models import Job, JobStatus

logger = logging.getLogger(__name__)

DEFAULT_STALE_DAYS = 14


def find_stale_jobs(store, days: int = DEFAULT_STALE_DAYS, now: Optional[datetime] = None) -> List[Job]:
    """ACTIVE jobs whose updated_at (or created_at, if never updated) is older than the cutoff."""
    cutoff = (now or datetime.now(timezone.utc)) - timedelta(days=days)
    stale = []
    for job in store.list_jobs(status=JobStatus.ACTIVE):
        last_touched = job.updated_at or job.created_at
        if last_touched is not None and last_touched < cutoff:
            stale.append(job)
    return stale


def deactivate_stale_jobs(
    store,
    days: int = DEFAULT_STALE_DAYS,
    dry_run: bool = False,
    now: Optional[datetime] = None
) -> int:
    """
    Expire stale ACTIVE jobs.

    Returns:
        Number of jobs expired (number found when dry_run)
    """
    if days < 1:
        raise ValueError(f"days must be at least 1, got {days}")

    now = now or datetime.now(timezone.utc)
    stale = find_stale_jobs(store, days, now)
    logger.info(f"Found {len(stale)} ACTIVE jobs not updated in {days} days (cutoff {now - timedelta(days=days):%Y-%m-%d})")

    for job in stale:
        last_touched = job.updated_at or job.created_at
        logger.info(f"  - {job.id} '{job.title}' ({job.source_type}:{job.source_native_id}), last updated {last_touched:%Y-%m-%d}")

    if dry_run:
        logger.warning("DRY RUN: no jobs deactivated")
        return len(stale)
    if not stale:
        return 0

    expired = store.expire_jobs([job.id for job in stale], now)
    if expired != len(stale):
        logger.warning(f"Found {len(stale)} stale jobs but expired {expired}; some changed concurrently")
    logger.info(f"Deactivated {expired} stale jobs")
    return expired


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description='Expire ACTIVE jobs not refreshed in N days')
    parser.add_argument('--days', type=int, default=DEFAULT_STALE_DAYS,
                        help=f'Staleness threshold in days (default: {DEFAULT_STALE_DAYS})')
    parser.add_argument('--dry-run', action='store_true', help='List stale jobs without expiring them')
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    from pipeline.db_connection import SupabaseJobStore
    try:
        store = SupabaseJobStore()
        deactivate_stale_jobs(store, days=args.days, dry_run=args.dry_run)
    except ValueError as e:
        logger.error(str(e))
        return 2
    return 0


if __name__ == "__main__":
    sys.exit(main())
