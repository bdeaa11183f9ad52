"""
Run Coordinator

PURPOSE:
One ingestion run over every enabled source:

    IDLE -> RUNNING -> COMPLETED | PARTIALLY_FAILED

1. Load enabled sources from the registry
2. Process each source with the fetcher registered for its type, up to
   max_workers sources at a time (postings within a source are sequential)
3. Reconcile: for every source whose fetch succeeded, expire its ACTIVE jobs
   that were not seen this run, then stamp last_fetched
4. Summarize per-source and total stats

A source that failed at the fetch level (bad config, HTTP error, timeout,
bad payload, no fetcher, cancelled) is never reconciled, so an outage can't
expire its jobs. Work already written for other sources is kept either way.

USAGE:
    coordinator = RunCoordinator(registry, store, build_fetchers(store, adapter))
    summary = coordinator.run()
    print(summary.to_dict())
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Dict, List, Optional, Set

from pipeline.models import Source
from scrapers.common.base import CANCELLED_MESSAGE, BaseFetcher, FetchResult, SourceStats

logger = logging.getLogger(__name__)

DEFAULT_MAX_WORKERS = 3


class RunState(str, Enum):
    IDLE = 'IDLE'
    RUNNING = 'RUNNING'
    COMPLETED = 'COMPLETED'
    PARTIALLY_FAILED = 'PARTIALLY_FAILED'


@dataclass
class SourceRunResult:
    """Per-source outcome of one run."""
    source_id: str
    source_name: str
    source_type: str
    stats: SourceStats = field(default_factory=SourceStats)
    found_source_ids: Set[str] = field(default_factory=set)
    error_message: Optional[str] = None
    expired: int = 0
    reconciled: bool = False

    @classmethod
    def from_fetch(cls, source: Source, result: FetchResult) -> 'SourceRunResult':
        return cls(
            source_id=source.id,
            source_name=source.name,
            source_type=source.type,
            stats=result.stats,
            found_source_ids=set(result.found_source_ids),
            error_message=result.error_message,
        )

    @classmethod
    def failure(cls, source: Source, message: str) -> 'SourceRunResult':
        return cls(
            source_id=source.id,
            source_name=source.name,
            source_type=source.type,
            stats=SourceStats(errors=1),
            error_message=message,
        )

    def to_dict(self) -> Dict:
        data = {
            'source_id': self.source_id,
            'source_name': self.source_name,
            'source_type': self.source_type,
            **self.stats.to_dict(),
            'expired': self.expired,
        }
        if self.error_message:
            data['error_message'] = self.error_message
        return data


@dataclass
class RunSummary:
    state: RunState
    sources: List[SourceRunResult] = field(default_factory=list)
    totals: SourceStats = field(default_factory=SourceStats)
    expired: int = 0
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    @property
    def failed_sources(self) -> List[SourceRunResult]:
        return [s for s in self.sources if s.error_message]

    def to_dict(self) -> Dict:
        return {
            'state': self.state.value,
            'started_at': self.started_at.isoformat() if self.started_at else None,
            'finished_at': self.finished_at.isoformat() if self.finished_at else None,
            'per_source': [s.to_dict() for s in self.sources],
            'totals': {**self.totals.to_dict(), 'expired': self.expired},
        }


class RunCoordinator:
    """
    Coordinates one ingestion run.

    Args:
        registry: SourceRegistry (list_enabled_sources, mark_fetched)
        store: JobStore (expire_jobs_not_in)
        fetchers: source type -> BaseFetcher
        max_workers: Sources processed concurrently
        log: Run logger (fetchers derive per-type children from it)
        clock: Returns the current time; injectable for tests
    """

    def __init__(
        self,
        registry,
        store,
        fetchers: Dict[str, BaseFetcher],
        max_workers: int = DEFAULT_MAX_WORKERS,
        log: Optional[logging.Logger] = None,
        clock: Optional[Callable[[], datetime]] = None
    ):
        self.registry = registry
        self.store = store
        self.fetchers = {str(k).lower(): v for k, v in fetchers.items()}
        self.max_workers = max(1, int(max_workers))
        self.log = log or logger
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.state = RunState.IDLE
        self._cancel_event = threading.Event()
        self._lock = threading.Lock()

    def cancel(self) -> None:
        """Ask a running run to stop. Sources not finished are left unreconciled."""
        self.log.warning("Cancellation requested")
        self._cancel_event.set()

    def _process(self, source: Source, fetcher: BaseFetcher) -> SourceRunResult:
        if self._cancel_event.is_set():
            return SourceRunResult.failure(source, CANCELLED_MESSAGE)
        try:
            result = fetcher.process_source(source, self.log, cancel_event=self._cancel_event)
        except Exception as e:
            self.log.exception(f"[{source.name} ({source.id})] Unexpected error: {e}")
            return SourceRunResult.failure(source, f"Unexpected error: {e}")
        return SourceRunResult.from_fetch(source, result)

    def _reconcile(self, result: SourceRunResult, now: datetime) -> None:
        label = f"{result.source_name} ({result.source_id})"
        try:
            result.expired = self.store.expire_jobs_not_in(result.source_id, result.found_source_ids, now)
            result.reconciled = True
            if result.expired:
                self.log.info(f"[{label}] Expired {result.expired} jobs no longer listed")
        except Exception as e:
            self.log.error(f"[{label}] Reconciliation failed: {e}")
            return

        try:
            self.registry.mark_fetched(result.source_id, now)
        except Exception as e:
            self.log.error(f"[{label}] Could not update last_fetched: {e}")

    def run(self) -> RunSummary:
        """
        Execute one run.

        Raises:
            RuntimeError: a run is already in progress on this coordinator
        """
        with self._lock:
            if self.state == RunState.RUNNING:
                raise RuntimeError("Run already in progress")
            self.state = RunState.RUNNING
            self._cancel_event.clear()

        started_at = self.clock()
        try:
            sources = self.registry.list_enabled_sources()
        except Exception:
            self.state = RunState.IDLE
            raise
        self.log.info(f"Starting run over {len(sources)} enabled sources (max {self.max_workers} concurrent)")

        results: Dict[str, SourceRunResult] = {}
        runnable = []
        for source in sources:
            fetcher = self.fetchers.get(str(source.type).lower())
            if fetcher is None:
                message = f"No fetcher registered for source type '{source.type}'"
                self.log.error(f"[{source.name} ({source.id})] {message}")
                results[source.id] = SourceRunResult.failure(source, message)
            else:
                runnable.append((source, fetcher))

        if runnable:
            with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
                futures = {
                    executor.submit(self._process, source, fetcher): source
                    for source, fetcher in runnable
                }
                for future in as_completed(futures):
                    source = futures[future]
                    results[source.id] = future.result()

        ordered = [results[source.id] for source in sources if source.id in results]

        now = self.clock()
        for result in ordered:
            if result.error_message is None:
                self._reconcile(result, now)
            else:
                self.log.warning(
                    f"[{result.source_name} ({result.source_id})] Skipping reconciliation: {result.error_message}"
                )

        totals = SourceStats()
        for result in ordered:
            totals.add(result.stats)

        failed = any(result.error_message for result in ordered)
        self.state = RunState.PARTIALLY_FAILED if failed else RunState.COMPLETED

        summary = RunSummary(
            state=self.state,
            sources=ordered,
            totals=totals,
            expired=sum(result.expired for result in ordered),
            started_at=started_at,
            finished_at=self.clock(),
        )
        self.log.info(
            f"Run {self.state.value}: {totals.found} found, {totals.relevant} relevant, "
            f"{totals.processed} processed, {totals.errors} errors, {summary.expired} expired "
            f"({len(summary.failed_sources)} of {len(ordered)} sources failed)"
        )
        return summary
