"""
Shared text and keyword utilities for ATS fetchers.

Provides keyword list loading, keyword matching, workplace-type normalization
and HTML stripping used by every fetcher (Greenhouse, Lever, Ashby) and by the
relevance classifier.

USAGE:
    from scrapers.common.filters import (
        load_keyword_lists, find_keyword, find_keyword_phrase,
        normalize_workplace_type, strip_html
    )
"""

import re
import logging
import yaml
from html import unescape
from pathlib import Path
from typing import Dict, Iterable, List, Optional

logger = logging.getLogger(__name__)

DEFAULT_KEYWORDS_PATH = Path(__file__).parent.parent.parent / 'config' / 'relevance_keywords.yaml'

# Raw ATS workplace values -> normalized form consumed by the classifier
WORKPLACE_TYPE_ALIASES = {
    'remote': 'remote',
    'fully remote': 'remote',
    'remote-first': 'remote',
    'on-site': 'on-site',
    'onsite': 'on-site',
    'on_site': 'on-site',
    'on site': 'on-site',
    'in-office': 'on-site',
    'in office': 'on-site',
    'office': 'on-site',
    'hybrid': 'hybrid',
}


def load_keyword_lists(config_path: Optional[Path] = None) -> Dict[str, List[str]]:
    """
    Load keyword lists from YAML config.

    Args:
        config_path: Path to YAML config file. If None, uses config/relevance_keywords.yaml.

    Returns:
        Dict of list name -> lowercase keywords. Empty dict when the file is
        missing or unreadable (callers fall back to built-in defaults).
    """
    if config_path is None:
        config_path = DEFAULT_KEYWORDS_PATH

    try:
        with open(config_path, 'r') as f:
            config = yaml.safe_load(f) or {}
    except FileNotFoundError:
        logger.warning(f"Keyword config not found at {config_path}. Using built-in defaults.")
        return {}
    except (OSError, yaml.YAMLError) as e:
        logger.warning(f"Failed to load keyword config {config_path}: {e}. Using built-in defaults.")
        return {}

    if not isinstance(config, dict):
        logger.warning(f"Keyword config {config_path} is not a mapping. Using built-in defaults.")
        return {}

    lists = {}
    for name, values in config.items():
        if isinstance(values, list):
            lists[name] = [str(v).strip().lower() for v in values if str(v).strip()]
    logger.debug(f"Loaded {len(lists)} keyword lists from {config_path}")
    return lists


def find_keyword(text: Optional[str], keywords: Iterable[str]) -> Optional[str]:
    """
    Return the first keyword contained in text (case-insensitive substring match).

    Examples:
        >>> find_keyword('Remote - LATAM', ['worldwide', 'latam'])
        'latam'
        >>> find_keyword('New York', ['remote']) is None
        True
    """
    if not text:
        return None
    text_lower = text.lower()
    for keyword in keywords:
        if keyword and keyword.lower() in text_lower:
            return keyword
    return None


def find_keyword_phrase(text: Optional[str], phrases: Iterable[str]) -> Optional[str]:
    """
    Return the first phrase found in text on word boundaries.

    Unlike find_keyword(), 'us only' will not match inside 'campus only'.
    Whitespace inside a phrase matches any run of whitespace.
    """
    if not text:
        return None
    text_lower = re.sub(r'\s+', ' ', text.lower())
    for phrase in phrases:
        if not phrase:
            continue
        escaped = r'\s+'.join(re.escape(part) for part in phrase.lower().split())
        if re.search(rf'(?<!\w){escaped}(?!\w)', text_lower):
            return phrase
    return None


def normalize_workplace_type(value) -> Optional[str]:
    """
    Map an ATS workplace value to 'remote' | 'on-site' | 'hybrid' | None.

    Unknown or empty values map to None so the classifier falls back to
    free-text checks instead of guessing.
    """
    if not isinstance(value, str):
        return None
    key = value.strip().lower()
    if key in WORKPLACE_TYPE_ALIASES:
        return WORKPLACE_TYPE_ALIASES[key]
    # Ashby sends CamelCase ('OnSite'), some boards send 'On-Site (NYC)'
    compact = re.sub(r'[^a-z]', '', key)
    if compact.startswith('onsite') or compact.startswith('inoffice'):
        return 'on-site'
    if compact.startswith('hybrid'):
        return 'hybrid'
    if compact.startswith('remote'):
        return 'remote'
    return None


def join_locations(locations: Iterable[Optional[str]]) -> str:
    """Join location names with ' / ', dropping blanks and duplicates."""
    parts = []
    for loc in locations:
        if isinstance(loc, str) and loc.strip() and loc.strip() not in parts:
            parts.append(loc.strip())
    return ' / '.join(parts)


def plain_text(value) -> str:
    """value stripped if it is a string, else ''."""
    return value.strip() if isinstance(value, str) else ''


def strip_html(html_content: str) -> str:
    """
    Strip HTML tags and decode entities from content.

    Args:
        html_content: Raw HTML string

    Returns:
        Plain text string
    """
    if not isinstance(html_content, str) or not html_content:
        return ""

    # Decode HTML entities first (Greenhouse returns &lt;div&gt; instead of <div>)
    clean = unescape(html_content)
    clean = re.sub(r'<(script|style)[^>]*>.*?</\1>', ' ', clean, flags=re.DOTALL | re.IGNORECASE)
    # Keep paragraph and list structure so section parsing still sees headings
    clean = re.sub(r'<\s*(br|/p|/li|/h[1-6]|/div)\s*/?>', '\n', clean, flags=re.IGNORECASE)
    clean = re.sub(r'<[^>]+>', ' ', clean)
    clean = re.sub(r'[ \t\u00a0]+', ' ', clean)
    clean = re.sub(r'\s*\n\s*', '\n', clean)
    return clean.strip()
