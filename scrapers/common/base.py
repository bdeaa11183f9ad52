"""
Shared fetch-and-process loop for every ATS fetcher.

Each ATS module only implements two things: config validation and turning the
ATS response into RawPosting objects. Everything after that (classification,
handing relevant postings to the adapter, stats, per-posting error isolation)
is the same for every source type and lives in BaseFetcher.process_source().

USAGE:
    fetcher = LeverFetcher(store, adapter)
    result = fetcher.process_source(source, logger)
    result.stats.found, result.found_source_ids, result.error_message
"""

import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, field
from typing import Dict, List, Optional, Set

from pipeline.classifier import RelevanceKeywords, classify_posting
from pipeline.models import RawPosting, Source
from scrapers.common.http import DEFAULT_TIMEOUT, FetchError

logger = logging.getLogger(__name__)

CANCELLED_MESSAGE = 'Cancelled'

# Pause between paginated requests to the same ATS
RATE_LIMIT_DELAY = 0.5


class SourceConfigError(ValueError):
    """Source config is missing a required field or has the wrong shape."""


@dataclass
class SourceStats:
    found: int = 0
    relevant: int = 0
    processed: int = 0
    errors: int = 0

    def add(self, other: 'SourceStats') -> None:
        self.found += other.found
        self.relevant += other.relevant
        self.processed += other.processed
        self.errors += other.errors

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


@dataclass
class FetchResult:
    """
    Outcome of processing one source.

    error_message is set only for fetch-level failures (bad config, transport,
    parse, cancellation). Per-posting errors are counted in stats.errors but
    leave error_message unset, so the source is still reconciled.
    """
    stats: SourceStats = field(default_factory=SourceStats)
    found_source_ids: Set[str] = field(default_factory=set)
    error_message: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.error_message is not None


def require_config_string(config: Dict, key: str) -> str:
    """Return config[key] stripped, or raise SourceConfigError."""
    if not isinstance(config, dict):
        raise SourceConfigError(f"Source config must be an object, got {type(config).__name__}")
    value = config.get(key)
    if not isinstance(value, str) or not value.strip():
        raise SourceConfigError(f"Missing or invalid '{key}' in source config")
    return value.strip()


class BaseFetcher(ABC):
    """
    Fetcher for one ATS type.

    Args:
        store: JobStore handed to the adapter
        adapter: Object with process(posting, source, store, logger) -> Job
        keywords: Relevance keyword lists (classifier defaults if None)
        timeout: Per-request HTTP timeout in seconds
        rate_limit: Pause between paginated requests
    """

    source_type: str = ''

    def __init__(
        self,
        store,
        adapter,
        keywords: Optional[RelevanceKeywords] = None,
        timeout: float = DEFAULT_TIMEOUT,
        rate_limit: float = RATE_LIMIT_DELAY
    ):
        self.store = store
        self.adapter = adapter
        self.keywords = keywords
        self.timeout = timeout
        self.rate_limit = rate_limit

    @abstractmethod
    def validate_config(self, config: Dict) -> Dict:
        """
        Check the source config for this ATS.

        Returns:
            Normalized config dict

        Raises:
            SourceConfigError: required fields missing or invalid
        """

    @abstractmethod
    def fetch_postings(self, config: Dict, log: logging.Logger) -> List[RawPosting]:
        """
        Call the ATS and decode every posting in the response.

        Raises:
            FetchError: transport, status or payload-shape failure
        """

    def process_source(
        self,
        source: Source,
        log: Optional[logging.Logger] = None,
        cancel_event: Optional[threading.Event] = None
    ) -> FetchResult:
        """
        Fetch one source, classify each posting and persist the relevant ones.

        Never raises for config, transport or per-posting failures; those are
        reported through the returned FetchResult.
        """
        log = (log or logger).getChild(self.source_type or 'fetcher')
        result = FetchResult()
        label = f"{source.name} ({source.id})"

        try:
            config = self.validate_config(source.config)
        except SourceConfigError as e:
            log.error(f"[{label}] Invalid config: {e}")
            result.stats.errors = 1
            result.error_message = f"Invalid config: {e}"
            return result

        if cancel_event is not None and cancel_event.is_set():
            result.error_message = CANCELLED_MESSAGE
            return result

        try:
            postings = self.fetch_postings(config, log)
        except FetchError as e:
            log.error(f"[{label}] Fetch failed: {e}")
            result.stats.errors = 1
            result.error_message = str(e)
            return result

        result.stats.found = len(postings)
        # Every posting counts as seen, relevant or not, so none of them expire
        for posting in postings:
            result.found_source_ids.add(str(posting.id))
        log.info(f"[{label}] Found {len(postings)} postings")

        for posting in postings:
            if cancel_event is not None and cancel_event.is_set():
                log.warning(f"[{label}] Cancelled after {result.stats.processed} processed")
                result.error_message = CANCELLED_MESSAGE
                return result

            try:
                verdict = classify_posting(posting, self.keywords)
                if not verdict.relevant:
                    log.debug(f"[{label}] Skipping {posting.id} '{posting.title}': {verdict.reason}")
                    continue

                result.stats.relevant += 1
                self.adapter.process(posting, source, self.store, log)
                result.stats.processed += 1
            except Exception as e:
                result.stats.errors += 1
                log.error(f"[{label}] Error processing posting {posting.id}: {e}")

        log.info(
            f"[{label}] {result.stats.found} found, {result.stats.relevant} relevant, "
            f"{result.stats.processed} processed, {result.stats.errors} errors"
        )
        return result
