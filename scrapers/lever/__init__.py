"""
Lever ATS Fetcher Module

Fetches job postings from Lever's public Postings API (JSON, no auth,
skip/limit pagination, separate EU instance).

API Documentation: https://github.com/lever/postings-api
"""

from .lever_fetcher import (
    fetch_lever_jobs,
    LeverFetcher,
    LeverJob,
    LEVER_API_URLS,
)

__all__ = [
    'fetch_lever_jobs',
    'LeverFetcher',
    'LeverJob',
    'LEVER_API_URLS',
]
