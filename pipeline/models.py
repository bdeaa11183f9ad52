"""
Data model for the job ingestion pipeline

Covers three layers:
- Source: a configured connection to one company's ATS board (registry row)
- RawPosting: the intermediate shape every fetcher decodes into (never stored)
- Job / Company: the canonical records written to storage

Job IDs are derived, not assigned: derive_job_id(source_type, native_id) is a
UUIDv5 over "<type>:<native id>", so re-fetching the same posting always
targets the same row.
"""

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


class SourceType(str, Enum):
    GREENHOUSE = 'greenhouse'
    LEVER = 'lever'
    ASHBY = 'ashby'


class JobStatus(str, Enum):
    ACTIVE = 'ACTIVE'
    PENDING_REVIEW = 'PENDING_REVIEW'
    EXPIRED = 'EXPIRED'
    REJECTED = 'REJECTED'


class JobType(str, Enum):
    FULL_TIME = 'FULL_TIME'
    PART_TIME = 'PART_TIME'
    CONTRACT = 'CONTRACT'
    INTERNSHIP = 'INTERNSHIP'
    FREELANCE = 'FREELANCE'
    UNKNOWN = 'UNKNOWN'


class ExperienceLevel(str, Enum):
    ENTRY = 'ENTRY'
    MID = 'MID'
    SENIOR = 'SENIOR'
    LEAD = 'LEAD'
    UNKNOWN = 'UNKNOWN'


class WorkplaceType(str, Enum):
    REMOTE = 'REMOTE'
    HYBRID = 'HYBRID'
    ON_SITE = 'ON_SITE'
    UNKNOWN = 'UNKNOWN'


class SalaryCycle(str, Enum):
    HOURLY = 'HOURLY'
    DAILY = 'DAILY'
    WEEKLY = 'WEEKLY'
    MONTHLY = 'MONTHLY'
    YEARLY = 'YEARLY'


# Fixed namespace so derived IDs survive process restarts and deployments
JOB_ID_NAMESPACE = uuid.UUID('6f1c1f3e-54a4-4c47-9d0a-6a0b6b3e2f41')


def derive_job_id(source_type: str, native_id: str) -> str:
    """
    Derive the canonical Job ID from (source type, source-native id).

    Args:
        source_type: ATS type tag (e.g. 'lever')
        native_id: The posting's id as returned by the ATS

    Returns:
        UUIDv5 string, identical for identical inputs

    Raises:
        ValueError: if either part is empty
    """
    type_key = str(getattr(source_type, 'value', source_type) or '').strip().lower()
    native_key = str(native_id if native_id is not None else '').strip()
    if not type_key or not native_key:
        raise ValueError(f"Cannot derive job id from ({source_type!r}, {native_id!r})")
    return str(uuid.uuid5(JOB_ID_NAMESPACE, f"{type_key}:{native_key}"))


@dataclass
class Source:
    """A configured ingestion source (one company board on one ATS)."""
    id: str
    name: str
    type: str
    config: Dict[str, Any] = field(default_factory=dict)
    enabled: bool = True
    last_fetched: Optional[datetime] = None
    company_website: Optional[str] = None
    logo_url: Optional[str] = None


@dataclass
class RawPosting:
    """
    Source-native posting decoded from an ATS response.

    Every optional field may be None; fetchers never assume the ATS sent it.
    workplace_type is already normalized to 'remote' | 'on-site' | 'hybrid' | None.
    """
    id: str
    title: str
    location: str = ''
    description: str = ''
    url: str = ''
    apply_url: str = ''
    workplace_type: Optional[str] = None
    employment_type: Optional[str] = None
    department: Optional[str] = None
    team: Optional[str] = None
    country: Optional[str] = None
    published_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    salary_min: Optional[float] = None
    salary_max: Optional[float] = None
    salary_currency: Optional[str] = None
    salary_interval: Optional[str] = None


@dataclass
class Company:
    id: str
    name: str
    normalized_name: str
    website: Optional[str] = None
    logo: Optional[str] = None


@dataclass
class Job:
    """Canonical persisted job record."""
    id: str
    title: str
    source_id: str
    source_type: str
    source_native_id: str
    company_id: Optional[str] = None
    description: str = ''
    requirements: str = ''
    responsibilities: str = ''
    benefits: str = ''
    job_type: JobType = JobType.UNKNOWN
    experience_level: ExperienceLevel = ExperienceLevel.UNKNOWN
    workplace_type: WorkplaceType = WorkplaceType.UNKNOWN
    location: str = ''
    country: Optional[str] = None
    skills: List[str] = field(default_factory=list)
    tags: List[str] = field(default_factory=list)
    salary_min: Optional[float] = None
    salary_max: Optional[float] = None
    salary_currency: Optional[str] = None
    salary_cycle: Optional[SalaryCycle] = None
    show_salary: bool = False
    application_url: Optional[str] = None
    status: JobStatus = JobStatus.ACTIVE
    view_count: int = 0
    click_count: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    published_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None

    def copy(self, **changes) -> 'Job':
        fields = {'skills': list(self.skills), 'tags': list(self.tags)}
        fields.update(changes)
        return replace(self, **fields)


def parse_timestamp(value) -> Optional[datetime]:
    """
    Parse an ATS timestamp into an aware datetime.

    Accepts ISO-8601 strings (with 'Z' or an offset), datetimes, and epoch
    milliseconds (Lever's createdAt). Returns None for anything else.
    """
    if value is None or value == '' or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.strip().replace('Z', '+00:00'))
        except ValueError:
            return None
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    return None
