"""Greenhouse ATS Fetcher Module"""

from scrapers.greenhouse.greenhouse_api_fetcher import (
    fetch_greenhouse_jobs,
    GreenhouseFetcher,
    GreenhouseJob
)

__all__ = [
    'fetch_greenhouse_jobs',
    'GreenhouseFetcher',
    'GreenhouseJob'
]
