"""
Normalizing Adapter

PURPOSE:
Turn one relevant RawPosting (plus the Source it came from) into the canonical
Job record and write it with a single store call.

    posting + source
        -> derive_job_id(source.type, posting.id)
        -> find_or_create_company(source.name)
        -> field mapping (sections, job type, experience, workplace, salary, skills)
        -> upsert_job(job) for a new job, update_job(job) for a known one   # exactly one write

Re-sighting rules for an existing job:
- id, created_at, published_at, view/click counters are kept
- content fields and updated_at are refreshed
- EXPIRED goes back to ACTIVE (the posting is live again upstream)
- PENDING_REVIEW and REJECTED are moderation decisions and are kept
"""

import logging
from datetime import datetime, timezone
from typing import Callable, List, Optional

from pipeline.job_normalizer import (
    company_logo_url,
    detect_experience_level,
    detect_job_type,
    extract_skills,
    map_workplace_type,
    parse_salary,
    parse_sections,
)
from pipeline.models import Job, JobStatus, RawPosting, Source, derive_job_id

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def build_tags(posting: RawPosting) -> List[str]:
    """Department and team names, deduplicated, original casing."""
    tags = []
    for value in (posting.department, posting.team):
        if isinstance(value, str) and value.strip() and value.strip() not in tags:
            tags.append(value.strip())
    return tags


class JobProcessingAdapter:
    """
    Maps postings to Jobs and persists them.

    Args:
        clock: Returns the current time (aware datetime); injectable for tests
        logo_token: logo.dev token for company logos derived from the website
    """

    def __init__(self, clock: Optional[Callable[[], datetime]] = None, logo_token: Optional[str] = None):
        self.clock = clock or _utcnow
        self.logo_token = logo_token

    def process(self, posting: RawPosting, source: Source, store, log: Optional[logging.Logger] = None) -> Job:
        """
        Normalize and upsert one posting.

        Returns:
            The Job as written

        Raises:
            ValueError: the posting has no usable id
            Any storage exception, unchanged
        """
        log = log or logger
        job_id = derive_job_id(source.type, posting.id)
        now = self.clock()

        logo = source.logo_url or company_logo_url(source.company_website, self.logo_token)
        company = store.find_or_create_company(source.name, website=source.company_website, logo=logo)

        content = posting.description or ''
        sections = parse_sections(content)
        salary_min, salary_max, currency, cycle, show_salary = parse_salary(
            posting.salary_min, posting.salary_max, posting.salary_currency, posting.salary_interval
        )

        fields = dict(
            title=(posting.title or '').strip(),
            company_id=company.id,
            description=sections['description'],
            requirements=sections['requirements'],
            responsibilities=sections['responsibilities'],
            benefits=sections['benefits'],
            job_type=detect_job_type(posting.employment_type, f"{posting.title} {content}"),
            experience_level=detect_experience_level(posting.title, content),
            workplace_type=map_workplace_type(posting.workplace_type, posting.location),
            location=posting.location or '',
            country=posting.country,
            skills=extract_skills(f"{posting.title}\n{content}"),
            tags=build_tags(posting),
            salary_min=salary_min,
            salary_max=salary_max,
            salary_currency=currency,
            salary_cycle=cycle,
            show_salary=show_salary,
            application_url=posting.apply_url or posting.url or None,
            updated_at=now,
        )

        existing = store.find_job_by_derived_id(job_id)
        if existing is not None:
            if existing.status == JobStatus.EXPIRED:
                log.info(f"Reactivating expired job {job_id} ({source.type}:{posting.id})")
                fields.update(status=JobStatus.ACTIVE, expires_at=None)
            job = existing.copy(**fields)
            log.debug(f"Updating job {job_id} '{job.title}'")
            # Content only; counters and creation timestamps stay as stored
            store.update_job(job)
            return job

        job = Job(
            id=job_id,
            source_id=source.id,
            source_type=source.type,
            source_native_id=str(posting.id),
            status=JobStatus.ACTIVE,
            created_at=now,
            published_at=now,
            **fields
        )
        log.debug(f"Creating job {job_id} '{job.title}'")
        store.upsert_job(job)
        return job
