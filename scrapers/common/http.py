"""
HTTP helper shared by the ATS fetchers.

Every call carries a timeout. Anything other than a 2xx JSON response is
raised as FetchError so the caller treats it as a fetch-level failure.
"""

import json
import logging
from typing import Dict, Optional

import requests

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30

DEFAULT_HEADERS = {
    'User-Agent': 'job-ingestion-bot/1.0',
    'Accept': 'application/json'
}

BODY_SNIPPET_LENGTH = 200


class FetchError(Exception):
    """Transport or parse failure for one source (non-2xx, timeout, bad JSON)."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


def http_get_json(
    url: str,
    params: Optional[Dict] = None,
    headers: Optional[Dict] = None,
    timeout: float = DEFAULT_TIMEOUT
):
    """
    GET a URL and decode its JSON body.

    Args:
        url: Endpoint URL
        params: Query parameters
        headers: Extra headers (merged over DEFAULT_HEADERS)
        timeout: Seconds before the request is abandoned

    Returns:
        Decoded JSON (dict or list)

    Raises:
        FetchError: on timeout, connection error, non-2xx status or invalid JSON
    """
    request_headers = dict(DEFAULT_HEADERS)
    if headers:
        request_headers.update(headers)

    try:
        response = requests.get(url, headers=request_headers, params=params, timeout=timeout)
    except requests.exceptions.Timeout:
        raise FetchError(f"Timeout after {timeout}s: {url}")
    except requests.exceptions.RequestException as e:
        raise FetchError(f"Request error for {url}: {str(e)[:BODY_SNIPPET_LENGTH]}")

    if not 200 <= response.status_code < 300:
        snippet = (response.text or '')[:BODY_SNIPPET_LENGTH]
        raise FetchError(f"HTTP {response.status_code}: {snippet}", status_code=response.status_code)

    try:
        return response.json()
    except (json.JSONDecodeError, ValueError):
        raise FetchError(f"Invalid JSON from {url}", status_code=response.status_code)
