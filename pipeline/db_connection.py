"""
Supabase-backed JobStore and SourceRegistry.

Tables (see migrations/001_ingestion_schema.sql):
    sources    - id, name, type, config (jsonb), enabled, last_fetched, company_website, logo_url
    companies  - id, name, normalized_name (unique), website, logo
    jobs       - one row per (source_type, source_native_id); id is the derived UUIDv5

The client is created lazily so importing this module never needs credentials.
"""
import os
import uuid
import logging
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from dotenv import load_dotenv
from supabase import create_client, Client

from pipeline.job_normalizer import normalize_company_name
from pipeline.models import (
    Company, ExperienceLevel, Job, JobStatus, JobType, SalaryCycle, Source,
    WorkplaceType, parse_timestamp,
)
from pipeline.storage import PRESERVED_JOB_FIELDS, JobStore, SourceRegistry, source_from_dict, utcnow

load_dotenv()

logger = logging.getLogger(__name__)

PAGE_SIZE = 1000
BATCH_SIZE = 100

_client: Optional[Client] = None


def get_supabase_client() -> Client:
    """Create (once) and return the Supabase client from SUPABASE_URL / SUPABASE_KEY."""
    global _client
    if _client is None:
        url = os.getenv("SUPABASE_URL")
        key = os.getenv("SUPABASE_KEY")
        if not url or not key:
            raise ValueError("Missing SUPABASE_URL or SUPABASE_KEY in .env file")
        _client = create_client(url, key)
    return _client


# ============================================
# Row conversion
# ============================================

def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _enum(enum_cls, value, default=None):
    if value is None:
        return default
    try:
        return enum_cls(value)
    except ValueError:
        return default


def job_to_row(job: Job) -> Dict:
    return {
        "id": job.id,
        "title": job.title,
        "source_id": job.source_id,
        "source_type": job.source_type,
        "source_native_id": job.source_native_id,
        "company_id": job.company_id,
        "description": job.description,
        "requirements": job.requirements,
        "responsibilities": job.responsibilities,
        "benefits": job.benefits,
        "job_type": job.job_type.value,
        "experience_level": job.experience_level.value,
        "workplace_type": job.workplace_type.value,
        "location": job.location,
        "country": job.country,
        "skills": list(job.skills),
        "tags": list(job.tags),
        "salary_min": job.salary_min,
        "salary_max": job.salary_max,
        "salary_currency": job.salary_currency,
        "salary_cycle": job.salary_cycle.value if job.salary_cycle else None,
        "show_salary": job.show_salary,
        "application_url": job.application_url,
        "status": job.status.value,
        "view_count": job.view_count,
        "click_count": job.click_count,
        "created_at": _iso(job.created_at),
        "updated_at": _iso(job.updated_at),
        "published_at": _iso(job.published_at),
        "expires_at": _iso(job.expires_at),
    }


def row_to_job(row: Dict) -> Job:
    return Job(
        id=row["id"],
        title=row.get("title") or "",
        source_id=row.get("source_id") or "",
        source_type=row.get("source_type") or "",
        source_native_id=str(row.get("source_native_id") or ""),
        company_id=row.get("company_id"),
        description=row.get("description") or "",
        requirements=row.get("requirements") or "",
        responsibilities=row.get("responsibilities") or "",
        benefits=row.get("benefits") or "",
        job_type=_enum(JobType, row.get("job_type"), JobType.UNKNOWN),
        experience_level=_enum(ExperienceLevel, row.get("experience_level"), ExperienceLevel.UNKNOWN),
        workplace_type=_enum(WorkplaceType, row.get("workplace_type"), WorkplaceType.UNKNOWN),
        location=row.get("location") or "",
        country=row.get("country"),
        skills=list(row.get("skills") or []),
        tags=list(row.get("tags") or []),
        salary_min=row.get("salary_min"),
        salary_max=row.get("salary_max"),
        salary_currency=row.get("salary_currency"),
        salary_cycle=_enum(SalaryCycle, row.get("salary_cycle")),
        show_salary=bool(row.get("show_salary")),
        application_url=row.get("application_url"),
        status=_enum(JobStatus, row.get("status"), JobStatus.ACTIVE),
        view_count=row.get("view_count") or 0,
        click_count=row.get("click_count") or 0,
        created_at=parse_timestamp(row.get("created_at")),
        updated_at=parse_timestamp(row.get("updated_at")),
        published_at=parse_timestamp(row.get("published_at")),
        expires_at=parse_timestamp(row.get("expires_at")),
    )


def row_to_company(row: Dict) -> Company:
    return Company(
        id=row["id"],
        name=row.get("name") or "",
        normalized_name=row.get("normalized_name") or "",
        website=row.get("website"),
        logo=row.get("logo"),
    )


# ============================================
# Stores
# ============================================

class SupabaseJobStore(JobStore):
    """JobStore on the Supabase 'jobs' and 'companies' tables."""

    def __init__(self, client: Optional[Client] = None):
        self.client = client or get_supabase_client()

    def find_job_by_derived_id(self, job_id: str) -> Optional[Job]:
        result = self.client.table("jobs").select("*").eq("id", job_id).execute()
        return row_to_job(result.data[0]) if result.data else None

    def upsert_job(self, job: Job) -> Job:
        self.client.table("jobs").upsert(job_to_row(job), on_conflict="id").execute()
        return job

    def update_job(self, job: Job) -> Job:
        row = {k: v for k, v in job_to_row(job).items() if k not in PRESERVED_JOB_FIELDS}
        result = self.client.table("jobs").update(row).eq("id", job.id).execute()
        if not result.data:
            # Row deleted since it was read
            logger.warning(f"Job {job.id} vanished before update, re-inserting")
            self.upsert_job(job)
        return job

    def find_or_create_company(
        self, name: str, website: Optional[str] = None, logo: Optional[str] = None
    ) -> Company:
        normalized = normalize_company_name(name) or name.strip().lower()
        existing = self._select_company(normalized)

        if existing.data:
            company = row_to_company(existing.data[0])
            # Fill in details discovered later, never overwrite existing ones
            updates = {}
            if website and not company.website:
                updates["website"] = website
            if logo and not company.logo:
                updates["logo"] = logo
            if updates:
                self.client.table("companies").update(updates).eq("id", company.id).execute()
                company.website = updates.get("website", company.website)
                company.logo = updates.get("logo", company.logo)
            return company

        data = {
            "id": str(uuid.uuid4()),
            "name": name.strip(),
            "normalized_name": normalized,
            "website": website,
            "logo": logo,
        }
        # Another worker may have inserted it since the select; keep their row
        result = self.client.table("companies") \
            .upsert(data, on_conflict="normalized_name", ignore_duplicates=True) \
            .execute()
        if result.data:
            logger.info(f"Created company '{data['name']}'")
            return row_to_company(result.data[0])

        existing = self._select_company(normalized)
        if not existing.data:
            raise RuntimeError(f"Company '{normalized}' neither inserted nor found")
        return row_to_company(existing.data[0])

    def _select_company(self, normalized: str):
        return self.client.table("companies").select("*").eq("normalized_name", normalized).execute()

    def _select_paged(self, columns: str, source_id: Optional[str] = None,
                      status: Optional[JobStatus] = None) -> List[Dict]:
        rows = []
        offset = 0
        while True:
            query = self.client.table("jobs").select(columns).order("id")
            if source_id is not None:
                query = query.eq("source_id", source_id)
            if status is not None:
                query = query.eq("status", status.value)
            result = query.range(offset, offset + PAGE_SIZE - 1).execute()

            if not result.data:
                break
            rows.extend(result.data)
            if len(result.data) < PAGE_SIZE:
                break
            offset += PAGE_SIZE
        return rows

    def expire_jobs_not_in(
        self, source_id: str, found_ids: Iterable[str], now: Optional[datetime] = None
    ) -> int:
        found = {str(native_id) for native_id in found_ids}
        active = self._select_paged("id, source_native_id", source_id=source_id, status=JobStatus.ACTIVE)
        missing = [row["id"] for row in active if str(row.get("source_native_id")) not in found]
        return self.expire_jobs(missing, now)

    def list_jobs(self, source_id: Optional[str] = None, status: Optional[JobStatus] = None) -> List[Job]:
        return [row_to_job(row) for row in self._select_paged("*", source_id=source_id, status=status)]

    def expire_jobs(self, job_ids: Iterable[str], now: Optional[datetime] = None) -> int:
        job_ids = list(job_ids)
        stamp = (now or utcnow()).isoformat()
        expired = 0
        for i in range(0, len(job_ids), BATCH_SIZE):
            batch = job_ids[i:i + BATCH_SIZE]
            # status filter keeps the transition ACTIVE -> EXPIRED only
            result = self.client.table("jobs") \
                .update({"status": JobStatus.EXPIRED.value, "expires_at": stamp, "updated_at": stamp}) \
                .in_("id", batch) \
                .eq("status", JobStatus.ACTIVE.value) \
                .execute()
            expired += len(result.data or [])
        return expired


class SupabaseSourceRegistry(SourceRegistry):
    """SourceRegistry on the Supabase 'sources' table."""

    def __init__(self, client: Optional[Client] = None):
        self.client = client or get_supabase_client()

    def list_sources(self) -> List[Source]:
        result = self.client.table("sources").select("*").order("name").execute()
        sources = []
        for row in result.data or []:
            try:
                sources.append(source_from_dict(row))
            except (KeyError, TypeError) as e:
                logger.warning(f"Skipping malformed source row {row.get('id')}: {e}")
        return sources

    def list_enabled_sources(self) -> List[Source]:
        result = self.client.table("sources").select("*").eq("enabled", True).execute()
        return [source_from_dict(row) for row in result.data or []]

    def add_source(self, source: Source) -> Source:
        existing = self.client.table("sources").select("id").eq("id", source.id).execute()
        if existing.data:
            raise ValueError(f"Source '{source.id}' already exists")
        self.client.table("sources").insert({
            "id": source.id,
            "name": source.name,
            "type": source.type,
            "config": source.config,
            "enabled": source.enabled,
            "last_fetched": _iso(source.last_fetched),
            "company_website": source.company_website,
            "logo_url": source.logo_url,
        }).execute()
        return source

    def set_enabled(self, source_id: str, enabled: bool) -> Source:
        result = self.client.table("sources").update({"enabled": enabled}).eq("id", source_id).execute()
        if not result.data:
            raise KeyError(f"Unknown source '{source_id}'")
        return source_from_dict(result.data[0])

    def mark_fetched(self, source_id: str, timestamp: datetime) -> None:
        self.client.table("sources").update({"last_fetched": timestamp.isoformat()}).eq("id", source_id).execute()
