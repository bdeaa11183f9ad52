"""
Lever Postings API Client

PURPOSE:
Fetch job postings from Lever's public Postings API (no auth required)
and decode them into LeverJob postings for the shared fetch loop.

API Documentation: https://github.com/lever/postings-api

Response notes:
- Returns a bare JSON list; paginated with skip/limit
- Structured workplaceType ('remote' | 'onsite' | 'hybrid' | 'unspecified')
- Optional salaryRange {min, max, currency, interval}
- createdAt is epoch milliseconds
- EU-hosted companies live on a separate instance (api.eu.lever.co)

USAGE:
    from scrapers.lever.lever_fetcher import fetch_lever_jobs, LeverFetcher

    jobs = fetch_lever_jobs('spotify')
    jobs = fetch_lever_jobs('spotify', instance='eu')
"""

import logging
import time
from dataclasses import dataclass
from typing import Dict, List, Optional

from pipeline.models import RawPosting, SourceType, parse_timestamp
from scrapers.common.base import RATE_LIMIT_DELAY, BaseFetcher, SourceConfigError, require_config_string
from scrapers.common.filters import join_locations, normalize_workplace_type, plain_text, strip_html
from scrapers.common.http import DEFAULT_TIMEOUT, FetchError, http_get_json

logger = logging.getLogger(__name__)

# Lever API endpoints
LEVER_API_URLS = {
    "global": "https://api.lever.co/v0/postings",
    "eu": "https://api.eu.lever.co/v0/postings"
}

PAGE_SIZE = 100
MAX_PAGES = 50


@dataclass
class LeverJob(RawPosting):
    """Parsed Lever job posting."""
    company_identifier: str = ''
    commitment: Optional[str] = None  # Full-time, Part-time, etc.
    instance: str = "global"


def build_full_description(job_data: Dict) -> str:
    """
    Build full job description from all available Lever fields.

    Concatenates:
    - descriptionPlain (main description)
    - lists (Responsibilities, Requirements, etc.)
    - additional (extra info)

    Args:
        job_data: Raw job dict from Lever API

    Returns:
        Combined plain text description
    """
    parts = []

    main_text = plain_text(job_data.get('descriptionPlain')) or strip_html(job_data.get('description'))
    if main_text:
        parts.append(main_text)

    # Lists carry the section heading in 'text' and an HTML <li> body in 'content'
    lists = job_data.get('lists')
    for list_item in lists if isinstance(lists, list) else []:
        if not isinstance(list_item, dict):
            continue
        list_text = plain_text(list_item.get('text'))
        list_content = strip_html(list_item.get('content'))
        if list_text and list_content:
            parts.append(f"{list_text}:\n{list_content}")

    additional = plain_text(job_data.get('additionalPlain')) or strip_html(job_data.get('additional'))
    if additional:
        parts.append(f"Additional Information:\n{additional}")

    return '\n\n'.join(parts)


def parse_lever_location(categories: Dict) -> str:
    # allLocations holds the full list ("Paris", "London"); location is the primary one
    all_locations = categories.get('allLocations')
    if isinstance(all_locations, list) and all_locations:
        return join_locations(all_locations)
    return join_locations([categories.get('location')])


def parse_lever_job(job_data: Dict, company_identifier: str, instance: str = "global") -> LeverJob:
    """
    Parse raw Lever API job data into LeverJob object.

    Args:
        job_data: Raw job dict from Lever API
        company_identifier: The company's Lever site slug
        instance: 'global' or 'eu'

    Returns:
        LeverJob object
    """
    categories = job_data.get('categories') or {}
    if not isinstance(categories, dict):
        categories = {}

    salary = job_data.get('salaryRange') or {}
    if not isinstance(salary, dict):
        salary = {}

    workplace_raw = job_data.get('workplaceType')

    return LeverJob(
        id=str(job_data.get('id', '')),
        title=plain_text(job_data.get('text')),
        location=parse_lever_location(categories),
        description=build_full_description(job_data),
        url=job_data.get('hostedUrl') or '',
        apply_url=job_data.get('applyUrl') or job_data.get('hostedUrl') or '',
        workplace_type=normalize_workplace_type(workplace_raw),
        employment_type=categories.get('commitment'),
        department=categories.get('department'),
        team=categories.get('team'),
        country=job_data.get('country'),
        published_at=parse_timestamp(job_data.get('createdAt')),
        updated_at=parse_timestamp(job_data.get('updatedAt')),
        salary_min=salary.get('min'),
        salary_max=salary.get('max'),
        salary_currency=salary.get('currency'),
        salary_interval=salary.get('interval'),
        company_identifier=company_identifier,
        commitment=categories.get('commitment'),
        instance=instance
    )


def fetch_lever_jobs(
    company_identifier: str,
    instance: str = "global",
    timeout: float = DEFAULT_TIMEOUT,
    rate_limit: float = RATE_LIMIT_DELAY,
    page_size: int = PAGE_SIZE
) -> List[LeverJob]:
    """
    Fetch all jobs for a single Lever site, following skip/limit pagination.

    Args:
        company_identifier: The company's Lever site slug (e.g., 'spotify')
        instance: 'global' or 'eu'
        timeout: Per-request timeout in seconds
        rate_limit: Seconds to wait between page requests
        page_size: Postings per page

    Returns:
        List of LeverJob objects (postings without an id are skipped)

    Raises:
        FetchError: any page fails or returns something other than a list
    """
    base_url = LEVER_API_URLS.get(instance, LEVER_API_URLS['global'])
    url = f"{base_url}/{company_identifier}"

    jobs = []
    skip = 0
    for page in range(MAX_PAGES):
        if page > 0:
            time.sleep(rate_limit)

        params = {'mode': 'json', 'skip': skip, 'limit': page_size}
        jobs_data = http_get_json(url, params=params, timeout=timeout)

        if not isinstance(jobs_data, list):
            raise FetchError(f"Unexpected response format from Lever site {company_identifier}")

        for job_data in jobs_data:
            if not isinstance(job_data, dict) or not job_data.get('id'):
                logger.warning(f"Skipping Lever posting without id on site {company_identifier}")
                continue
            try:
                jobs.append(parse_lever_job(job_data, company_identifier, instance))
            except Exception as e:
                # Keep the id so one bad field can't expire a stored job
                logger.warning(f"Could not decode Lever posting {job_data['id']} on site {company_identifier}: {e}")
                jobs.append(LeverJob(id=str(job_data['id']), title=plain_text(job_data.get('text')),
                                     company_identifier=company_identifier, instance=instance))

        if len(jobs_data) < page_size:
            break
        skip += page_size
    else:
        logger.warning(f"Lever site {company_identifier} hit the {MAX_PAGES} page limit")

    return jobs


class LeverFetcher(BaseFetcher):
    """Config: {"companyIdentifier": "<site slug>", "instance": "global" | "eu"}"""

    source_type = SourceType.LEVER.value

    def validate_config(self, config: Dict) -> Dict:
        identifier = require_config_string(config, 'companyIdentifier')
        instance = config.get('instance') or 'global'
        if instance not in LEVER_API_URLS:
            raise SourceConfigError(
                f"Unknown Lever instance '{instance}' (expected one of {sorted(LEVER_API_URLS)})"
            )
        return {'companyIdentifier': identifier, 'instance': instance}

    def fetch_postings(self, config: Dict, log: logging.Logger) -> List[LeverJob]:
        log.debug(f"Fetching Lever site {config['companyIdentifier']} ({config['instance']})")
        return fetch_lever_jobs(
            config['companyIdentifier'],
            instance=config['instance'],
            timeout=self.timeout,
            rate_limit=self.rate_limit
        )
