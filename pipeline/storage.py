"""
Storage and source registry interfaces.

The pipeline never talks to a database client directly: the run coordinator,
fetchers and adapter receive a JobStore and a SourceRegistry at construction.
Supabase-backed implementations live in pipeline/db_connection.py; this
module holds the interfaces plus in-memory / JSON-file implementations used
for dry runs, local development and tests.
"""

import json
import logging
import threading
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from pipeline.job_normalizer import normalize_company_name
from pipeline.models import Company, Job, JobStatus, Source, parse_timestamp

logger = logging.getLogger(__name__)

# Owned by the first write or by the serving layer; update_job() never sends them
PRESERVED_JOB_FIELDS = ('id', 'view_count', 'click_count', 'created_at', 'published_at')


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def source_from_dict(data: Dict) -> Source:
    return Source(
        id=str(data['id']),
        name=data.get('name') or str(data['id']),
        type=str(data.get('type') or '').lower(),
        config=data.get('config') or {},
        enabled=bool(data.get('enabled', True)),
        last_fetched=parse_timestamp(data.get('lastFetched') or data.get('last_fetched')),
        company_website=data.get('companyWebsite') or data.get('company_website'),
        logo_url=data.get('logoUrl') or data.get('logo_url'),
    )


def source_to_dict(source: Source) -> Dict:
    return {
        'id': source.id,
        'name': source.name,
        'type': source.type,
        'config': source.config,
        'enabled': source.enabled,
        'lastFetched': source.last_fetched.isoformat() if source.last_fetched else None,
        'companyWebsite': source.company_website,
        'logoUrl': source.logo_url,
    }


class JobStore(ABC):
    """Persistence for canonical jobs and companies."""

    @abstractmethod
    def find_job_by_derived_id(self, job_id: str) -> Optional[Job]:
        raise NotImplementedError

    @abstractmethod
    def upsert_job(self, job: Job) -> Job:
        """Insert or replace the job with job.id. One write."""
        raise NotImplementedError

    @abstractmethod
    def update_job(self, job: Job) -> Job:
        """
        Refresh an existing job in place. One write.

        Everything except PRESERVED_JOB_FIELDS is written, so counters bumped
        since the job was read are kept.
        """
        raise NotImplementedError

    @abstractmethod
    def find_or_create_company(
        self, name: str, website: Optional[str] = None, logo: Optional[str] = None
    ) -> Company:
        raise NotImplementedError

    @abstractmethod
    def expire_jobs_not_in(
        self, source_id: str, found_ids: Iterable[str], now: Optional[datetime] = None
    ) -> int:
        """
        Expire ACTIVE jobs of source_id whose native id is not in found_ids.

        Returns:
            Number of jobs transitioned to EXPIRED
        """
        raise NotImplementedError

    @abstractmethod
    def list_jobs(self, source_id: Optional[str] = None, status: Optional[JobStatus] = None) -> List[Job]:
        raise NotImplementedError

    @abstractmethod
    def expire_jobs(self, job_ids: Iterable[str], now: Optional[datetime] = None) -> int:
        """Expire the given jobs if they are still ACTIVE. Returns the count."""
        raise NotImplementedError


class SourceRegistry(ABC):
    """Configured ingestion sources."""

    @abstractmethod
    def list_sources(self) -> List[Source]:
        raise NotImplementedError

    @abstractmethod
    def add_source(self, source: Source) -> Source:
        raise NotImplementedError

    @abstractmethod
    def set_enabled(self, source_id: str, enabled: bool) -> Source:
        raise NotImplementedError

    @abstractmethod
    def mark_fetched(self, source_id: str, timestamp: datetime) -> None:
        raise NotImplementedError

    def list_enabled_sources(self) -> List[Source]:
        return [source for source in self.list_sources() if source.enabled]

    def get_source(self, source_id: str) -> Optional[Source]:
        for source in self.list_sources():
            if source.id == source_id:
                return source
        return None


class MemoryJobStore(JobStore):
    """
    Thread-safe in-memory JobStore.

    Returns copies so callers can't mutate stored rows behind the store's back.
    write_count counts upsert_job() and update_job() calls.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._jobs: Dict[str, Job] = {}
        self._companies: Dict[str, Company] = {}
        self.write_count = 0

    def find_job_by_derived_id(self, job_id: str) -> Optional[Job]:
        with self._lock:
            job = self._jobs.get(job_id)
            return job.copy() if job else None

    def upsert_job(self, job: Job) -> Job:
        with self._lock:
            self._jobs[job.id] = job.copy()
            self.write_count += 1
        return job

    def update_job(self, job: Job) -> Job:
        with self._lock:
            stored = self._jobs.get(job.id)
            if stored is None:
                self._jobs[job.id] = job.copy()
            else:
                changes = {k: v for k, v in job.copy().__dict__.items() if k not in PRESERVED_JOB_FIELDS}
                self._jobs[job.id] = stored.copy(**changes)
            self.write_count += 1
        return job

    def find_or_create_company(
        self, name: str, website: Optional[str] = None, logo: Optional[str] = None
    ) -> Company:
        key = normalize_company_name(name) or name.strip().lower()
        with self._lock:
            company = self._companies.get(key)
            if company is None:
                company = Company(id=str(uuid.uuid4()), name=name.strip(), normalized_name=key,
                                  website=website, logo=logo)
                self._companies[key] = company
                logger.info(f"Created company '{company.name}' ({company.id})")
            else:
                # Attach details discovered later, never overwrite existing ones
                if website and not company.website:
                    company.website = website
                if logo and not company.logo:
                    company.logo = logo
            return Company(**company.__dict__)

    def expire_jobs_not_in(
        self, source_id: str, found_ids: Iterable[str], now: Optional[datetime] = None
    ) -> int:
        found = {str(native_id) for native_id in found_ids}
        now = now or utcnow()
        expired = 0
        with self._lock:
            for job_id, job in self._jobs.items():
                if (job.source_id == source_id and job.status == JobStatus.ACTIVE
                        and job.source_native_id not in found):
                    self._jobs[job_id] = job.copy(status=JobStatus.EXPIRED, expires_at=now, updated_at=now)
                    expired += 1
        return expired

    def list_jobs(self, source_id: Optional[str] = None, status: Optional[JobStatus] = None) -> List[Job]:
        with self._lock:
            return [
                job.copy() for job in self._jobs.values()
                if (source_id is None or job.source_id == source_id)
                and (status is None or job.status == status)
            ]

    def expire_jobs(self, job_ids: Iterable[str], now: Optional[datetime] = None) -> int:
        now = now or utcnow()
        expired = 0
        with self._lock:
            for job_id in job_ids:
                job = self._jobs.get(job_id)
                if job and job.status == JobStatus.ACTIVE:
                    self._jobs[job_id] = job.copy(status=JobStatus.EXPIRED, expires_at=now, updated_at=now)
                    expired += 1
        return expired

    def list_companies(self) -> List[Company]:
        with self._lock:
            return [Company(**c.__dict__) for c in self._companies.values()]


class MemorySourceRegistry(SourceRegistry):
    """SourceRegistry held in memory."""

    def __init__(self, sources: Optional[Iterable[Source]] = None):
        self._lock = threading.Lock()
        self._sources: Dict[str, Source] = {}
        for source in sources or []:
            self._sources[source.id] = source

    def list_sources(self) -> List[Source]:
        with self._lock:
            return list(self._sources.values())

    def add_source(self, source: Source) -> Source:
        with self._lock:
            if source.id in self._sources:
                raise ValueError(f"Source '{source.id}' already exists")
            self._sources[source.id] = source
        self._save()
        return source

    def set_enabled(self, source_id: str, enabled: bool) -> Source:
        with self._lock:
            source = self._sources.get(source_id)
            if source is None:
                raise KeyError(f"Unknown source '{source_id}'")
            source.enabled = enabled
        self._save()
        return source

    def mark_fetched(self, source_id: str, timestamp: datetime) -> None:
        with self._lock:
            source = self._sources.get(source_id)
            if source is None:
                logger.warning(f"mark_fetched: unknown source '{source_id}'")
                return
            source.last_fetched = timestamp
        self._save()

    def _save(self) -> None:
        pass


class FileSourceRegistry(MemorySourceRegistry):
    """
    SourceRegistry backed by a JSON file (config/sources.json).

    File format:
        {"sources": [{"id": "...", "name": "...", "type": "lever",
                      "config": {"companyIdentifier": "..."}, "enabled": true,
                      "lastFetched": null, "companyWebsite": "...", "logoUrl": null}]}

    Every mutation rewrites the file.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        super().__init__(self._load())

    def _load(self) -> List[Source]:
        if not self.path.exists():
            logger.warning(f"Sources file not found: {self.path}")
            return []
        with open(self.path) as f:
            data = json.load(f)
        entries = data.get('sources', []) if isinstance(data, dict) else data
        sources = []
        for entry in entries:
            try:
                sources.append(source_from_dict(entry))
            except (KeyError, TypeError) as e:
                logger.warning(f"Skipping malformed source entry {entry!r}: {e}")
        return sources

    def _save(self) -> None:
        with self._lock:
            payload = {'sources': [source_to_dict(s) for s in self._sources.values()]}
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix('.tmp')
        with open(tmp_path, 'w') as f:
            json.dump(payload, f, indent=2)
        tmp_path.replace(self.path)
