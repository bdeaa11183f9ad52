"""Ashby ATS Fetcher Module"""

from scrapers.ashby.ashby_fetcher import (
    fetch_ashby_jobs,
    AshbyFetcher,
    AshbyJob
)

__all__ = [
    'fetch_ashby_jobs',
    'AshbyFetcher',
    'AshbyJob'
]
