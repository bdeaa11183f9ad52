"""
Greenhouse Job Board API Client

PURPOSE:
Fetch job postings from Greenhouse's public Job Board API (no auth required)
and decode them into GreenhouseJob postings for the shared fetch loop.

API Endpoint:
    GET https://boards-api.greenhouse.io/v1/boards/{board_token}/jobs?content=true

Response notes:
- content is HTML, entity-escaped (&lt;p&gt;), converted to plain text here
- Salary comes from pay_input_ranges in cents with currency_type
- There is no structured remote flag; boards that track it do so through
  custom metadata fields ("Workplace Type", "Remote", "Location Type")

USAGE:
    from scrapers.greenhouse.greenhouse_api_fetcher import fetch_greenhouse_jobs, GreenhouseFetcher

    jobs = fetch_greenhouse_jobs('figma')
    result = GreenhouseFetcher(store, adapter).process_source(source, logger)
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

from pipeline.models import RawPosting, SourceType, parse_timestamp
from scrapers.common.base import BaseFetcher, require_config_string
from scrapers.common.filters import normalize_workplace_type, plain_text, strip_html
from scrapers.common.http import DEFAULT_TIMEOUT, FetchError, http_get_json

logger = logging.getLogger(__name__)

GREENHOUSE_API_URL = "https://boards-api.greenhouse.io/v1/boards"

# Custom metadata field names boards use for the workplace arrangement
WORKPLACE_METADATA_NAMES = ['workplace', 'remote', 'location type', 'work type', 'work arrangement']


@dataclass
class GreenhouseJob(RawPosting):
    """Parsed Greenhouse job posting from the Job Board API."""
    board_token: str = ''
    internal_job_id: Optional[str] = None


def parse_compensation(pay_ranges: Optional[List[Dict]]) -> Dict:
    """
    Extract salary from Greenhouse pay_input_ranges.

    Greenhouse provides compensation in cents with currency_type.
    We convert cents to whole units.

    Args:
        pay_ranges: List of pay range dicts from API response

    Returns:
        Dict with keys: min, max, currency (only those present)
    """
    if not pay_ranges or not isinstance(pay_ranges, list) or not isinstance(pay_ranges[0], dict):
        return {}

    result = {}

    # Use first pay range (primary compensation)
    pay_range = pay_ranges[0]

    min_cents = pay_range.get('min_cents')
    max_cents = pay_range.get('max_cents')
    currency = pay_range.get('currency_type')

    if isinstance(min_cents, (int, float)):
        result['min'] = min_cents // 100
    if isinstance(max_cents, (int, float)):
        result['max'] = max_cents // 100
    if currency:
        result['currency'] = currency

    return result


def parse_workplace_metadata(metadata: Optional[List[Dict]]) -> Optional[str]:
    """
    Read the workplace arrangement from a board's custom metadata fields.

    Returns:
        'remote' | 'on-site' | 'hybrid' | None
    """
    if not isinstance(metadata, list):
        return None

    for item in metadata:
        if not isinstance(item, dict):
            continue
        name = str(item.get('name') or '').lower()
        if not any(key in name for key in WORKPLACE_METADATA_NAMES):
            continue

        value = item.get('value')
        if isinstance(value, bool):
            # "Remote: yes/no" style checkbox
            if 'remote' in name:
                return 'remote' if value else None
            continue
        if isinstance(value, list):
            value = value[0] if value else None
        workplace = normalize_workplace_type(value)
        if workplace:
            return workplace
    return None


def parse_greenhouse_job(job_data: Dict, board_token: str) -> GreenhouseJob:
    """
    Parse raw Greenhouse API job data into GreenhouseJob object.

    Args:
        job_data: Raw job dict from Greenhouse API
        board_token: The company's Greenhouse board token

    Returns:
        GreenhouseJob object
    """
    location_data = job_data.get('location') or {}
    location = plain_text(location_data.get('name') if isinstance(location_data, dict) else location_data)

    # Department (first department if multiple)
    departments = job_data.get('departments')
    department = None
    if isinstance(departments, list) and departments and isinstance(departments[0], dict):
        department = departments[0].get('name')

    comp = parse_compensation(job_data.get('pay_input_ranges'))

    content_html = job_data.get('content')
    description = strip_html(content_html) if isinstance(content_html, str) else ''

    published = job_data.get('first_published') or job_data.get('updated_at')

    return GreenhouseJob(
        id=str(job_data.get('id', '')),
        title=plain_text(job_data.get('title')),
        location=location or '',
        description=description,
        url=job_data.get('absolute_url') or '',
        apply_url=job_data.get('absolute_url') or '',
        workplace_type=parse_workplace_metadata(job_data.get('metadata')),
        department=department,
        published_at=parse_timestamp(published),
        updated_at=parse_timestamp(job_data.get('updated_at')),
        salary_min=comp.get('min'),
        salary_max=comp.get('max'),
        salary_currency=comp.get('currency'),
        board_token=board_token,
        internal_job_id=str(job_data['internal_job_id']) if job_data.get('internal_job_id') else None,
    )


def fetch_greenhouse_jobs(board_token: str, timeout: float = DEFAULT_TIMEOUT) -> List[GreenhouseJob]:
    """
    Fetch all jobs for a single Greenhouse board.

    Single request per company with ?content=true to inline full descriptions.
    Postings without an id are skipped.

    Raises:
        FetchError: HTTP failure or unexpected response shape
    """
    url = f"{GREENHOUSE_API_URL}/{board_token}/jobs"
    data = http_get_json(url, params={'content': 'true'}, timeout=timeout)

    jobs_data = data.get('jobs') if isinstance(data, dict) else None
    if not isinstance(jobs_data, list):
        raise FetchError(f"Unexpected response format from Greenhouse board {board_token}")

    jobs = []
    for job_data in jobs_data:
        if not isinstance(job_data, dict) or not job_data.get('id'):
            logger.warning(f"Skipping Greenhouse posting without id on board {board_token}")
            continue
        try:
            jobs.append(parse_greenhouse_job(job_data, board_token))
        except Exception as e:
            # Keep the id so one bad field can't expire a stored job
            logger.warning(f"Could not decode Greenhouse posting {job_data['id']} on board {board_token}: {e}")
            jobs.append(GreenhouseJob(id=str(job_data['id']), title=plain_text(job_data.get('title')),
                                      board_token=board_token))
    return jobs


class GreenhouseFetcher(BaseFetcher):
    """Config: {"boardToken": "<board token>"}"""

    source_type = SourceType.GREENHOUSE.value

    def validate_config(self, config: Dict) -> Dict:
        return {'boardToken': require_config_string(config, 'boardToken')}

    def fetch_postings(self, config: Dict, log: logging.Logger) -> List[GreenhouseJob]:
        log.debug(f"Fetching Greenhouse board {config['boardToken']}")
        return fetch_greenhouse_jobs(config['boardToken'], timeout=self.timeout)
