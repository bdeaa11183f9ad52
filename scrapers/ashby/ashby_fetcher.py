"""
Ashby Postings API Client

PURPOSE:
Fetch job postings from Ashby's public API (no auth required).
Follows the same functional pattern as lever_fetcher.py.

API Endpoint:
    GET https://api.ashbyhq.com/posting-api/job-board/{job_board_name}?includeCompensation=true

Key Advantages:
- Structured compensation data (min/max/currency in dedicated fields)
- Explicit workplaceType and isRemote flag
- Structured postalAddress (city/region/country)
- Both HTML and plain text descriptions provided
- Published date in ISO 8601 format

USAGE:
    from scrapers.ashby.ashby_fetcher import fetch_ashby_jobs, AshbyFetcher

    jobs = fetch_ashby_jobs('notion')
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

from pipeline.models import RawPosting, SourceType, parse_timestamp
from scrapers.common.base import BaseFetcher, require_config_string
from scrapers.common.filters import join_locations, normalize_workplace_type, plain_text, strip_html
from scrapers.common.http import DEFAULT_TIMEOUT, FetchError, http_get_json

logger = logging.getLogger(__name__)

# Ashby API endpoint
ASHBY_API_URL = "https://api.ashbyhq.com/posting-api/job-board"


@dataclass
class AshbyJob(RawPosting):
    """Parsed Ashby job posting."""
    job_board_name: str = ''
    is_remote: bool = False
    compensation_summary: Optional[str] = None
    city: Optional[str] = None
    region: Optional[str] = None


def _salary_component(components) -> Dict:
    """First component with compensationType 'Salary', as min/max/currency/interval."""
    for comp in components if isinstance(components, list) else []:
        if not isinstance(comp, dict) or comp.get('compensationType') != 'Salary':
            continue
        result = {}
        if comp.get('minValue'):
            result['min'] = comp['minValue']
        if comp.get('maxValue'):
            result['max'] = comp['maxValue']
        if comp.get('currencyCode'):
            result['currency'] = comp['currencyCode']
        if comp.get('interval'):
            result['interval'] = comp['interval']
        return result
    return {}


def parse_compensation(comp_data: Optional[Dict]) -> Dict:
    """
    Extract structured compensation from Ashby's nested format.

    Ashby provides compensation in multiple formats:
    1. salaryRange in compensationTiers (some companies)
    2. components array within tiers with compensationType='Salary'
    3. summaryComponents at top level

    Args:
        comp_data: Raw compensation dict from Ashby API

    Returns:
        Dict with keys: min, max, currency, interval, summary (only those present)
    """
    if not isinstance(comp_data, dict):
        return {}

    result = {}
    if comp_data.get('compensationTierSummary'):
        result['summary'] = comp_data['compensationTierSummary']

    tiers = comp_data.get('compensationTiers')
    tier = {}
    if isinstance(tiers, list) and tiers and isinstance(tiers[0], dict):
        tier = tiers[0]

    # Method 1: salaryRange in the first tier
    salary_range = tier.get('salaryRange') or {}
    if isinstance(salary_range, dict):
        min_data = salary_range.get('min') or {}
        max_data = salary_range.get('max') or {}
        if isinstance(min_data, dict) and min_data.get('value'):
            result['min'] = min_data['value']
            result['currency'] = min_data.get('currency')
        if isinstance(max_data, dict) and max_data.get('value'):
            result['max'] = max_data['value']
            result['currency'] = max_data.get('currency') or result.get('currency')

    # Method 2: components array within the tier
    if 'min' not in result and 'max' not in result:
        result.update(_salary_component(tier.get('components')))

    # Method 3: summaryComponents at top level
    if 'min' not in result and 'max' not in result:
        result.update(_salary_component(comp_data.get('summaryComponents')))

    return result


def parse_ashby_workplace(job_data: Dict) -> Optional[str]:
    """workplaceType wins; isRemote=True is the fallback. isRemote=False says nothing."""
    workplace = normalize_workplace_type(job_data.get('workplaceType'))
    if workplace:
        return workplace
    if job_data.get('isRemote') is True:
        return 'remote'
    return None


def parse_ashby_job(job_data: Dict, job_board_name: str) -> AshbyJob:
    """
    Parse raw Ashby API job data into AshbyJob object.

    Args:
        job_data: Raw job dict from Ashby API
        job_board_name: The company's Ashby job board name

    Returns:
        AshbyJob object
    """
    address_data = job_data.get('address')
    address = (address_data.get('postalAddress') if isinstance(address_data, dict) else None) or {}
    if not isinstance(address, dict):
        address = {}

    # Primary location plus any secondary ones
    locations = [job_data.get('location')]
    secondary = job_data.get('secondaryLocations')
    for sec_loc in secondary if isinstance(secondary, list) else []:
        if isinstance(sec_loc, dict):
            locations.append(sec_loc.get('location'))

    comp = parse_compensation(job_data.get('compensation'))

    description = plain_text(job_data.get('descriptionPlain')) or strip_html(job_data.get('descriptionHtml'))

    return AshbyJob(
        id=str(job_data.get('id', '')),
        title=plain_text(job_data.get('title')),
        location=join_locations(locations),
        description=description,
        url=job_data.get('jobUrl') or '',
        apply_url=job_data.get('applyUrl') or job_data.get('jobUrl') or '',
        workplace_type=parse_ashby_workplace(job_data),
        employment_type=job_data.get('employmentType'),
        department=job_data.get('department'),
        team=job_data.get('team'),
        country=address.get('addressCountry'),
        published_at=parse_timestamp(job_data.get('publishedAt')),
        updated_at=parse_timestamp(job_data.get('updatedAt')),
        salary_min=comp.get('min'),
        salary_max=comp.get('max'),
        salary_currency=comp.get('currency'),
        salary_interval=comp.get('interval'),
        job_board_name=job_board_name,
        is_remote=job_data.get('isRemote') is True,
        compensation_summary=comp.get('summary'),
        city=address.get('addressLocality'),
        region=address.get('addressRegion'),
    )


def fetch_ashby_jobs(job_board_name: str, timeout: float = DEFAULT_TIMEOUT) -> List[AshbyJob]:
    """
    Fetch all jobs for a single Ashby job board.

    Raises:
        FetchError: HTTP failure or unexpected response shape
    """
    url = f"{ASHBY_API_URL}/{job_board_name}"
    data = http_get_json(url, params={'includeCompensation': 'true'}, timeout=timeout)

    jobs_data = data.get('jobs') if isinstance(data, dict) else None
    if not isinstance(jobs_data, list):
        raise FetchError(f"Unexpected response format from Ashby board {job_board_name}")

    jobs = []
    for job_data in jobs_data:
        if not isinstance(job_data, dict) or not job_data.get('id'):
            logger.warning(f"Skipping Ashby posting without id on board {job_board_name}")
            continue
        try:
            jobs.append(parse_ashby_job(job_data, job_board_name))
        except Exception as e:
            # Keep the id so one bad field can't expire a stored job
            logger.warning(f"Could not decode Ashby posting {job_data['id']} on board {job_board_name}: {e}")
            jobs.append(AshbyJob(id=str(job_data['id']), title=plain_text(job_data.get('title')),
                                 job_board_name=job_board_name))
    return jobs


class AshbyFetcher(BaseFetcher):
    """Config: {"jobBoardName": "<job board name>"}"""

    source_type = SourceType.ASHBY.value

    def validate_config(self, config: Dict) -> Dict:
        return {'jobBoardName': require_config_string(config, 'jobBoardName')}

    def fetch_postings(self, config: Dict, log: logging.Logger) -> List[AshbyJob]:
        log.debug(f"Fetching Ashby board {config['jobBoardName']}")
        return fetch_ashby_jobs(config['jobBoardName'], timeout=self.timeout)
