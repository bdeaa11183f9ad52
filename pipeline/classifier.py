"""
Relevance Classifier

PURPOSE:
Decide whether a posting is remote-eligible for the target audience
(remote workers outside the US/EU, primarily LATAM) before it is stored.

Decision order (first match wins):
    1. Explicit on-site/hybrid workplace type   -> irrelevant
    2. Restrictive phrase in title/location/description
       (country, citizenship, visa, timezone)     -> irrelevant
    3. Explicit remote workplace type            -> relevant
    4. Remote keyword in location text           -> relevant
    5. Nothing conclusive                        -> irrelevant

Structured workplace type always beats free text for on-site/hybrid, but a
restriction in the text beats an explicit "remote" flag: "Remote (US citizens
only)" is still closed to the audience.

classify_posting() does no I/O. Keyword lists are passed in (or default to
the built-ins below) so results are deterministic for a given input.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from scrapers.common.filters import (
    find_keyword,
    find_keyword_phrase,
    load_keyword_lists,
    normalize_workplace_type,
)

logger = logging.getLogger(__name__)

REASON_EXPLICIT_REMOTE = 'Explicitly remote'
REASON_EXPLICIT_ONSITE = 'Explicitly on-site/hybrid'
REASON_RESTRICTIVE = 'Restrictive keyword detected'
REASON_REMOTE_LOCATION = 'Remote keyword in location'
REASON_NO_INDICATOR = 'No clear remote indicator'

DEFAULT_REMOTE_LOCATION_KEYWORDS = [
    'remote', 'worldwide', 'global', 'anywhere', 'work from home', 'remoto',
    'latam', 'latin america', 'americas', 'south america', 'brazil', 'brasil',
]

DEFAULT_RESTRICTIVE_PHRASES = [
    'us only', 'usa only', 'u.s. only', 'united states only',
    'us citizen', 'us citizens', 'u.s. citizen', 'u.s. citizens', 'citizens only',
    'us citizenship', 'u.s. citizenship', 'green card', 'security clearance',
    'must reside in', 'must be located in', 'must live in', 'must be based in',
    'eligible to work in the us', 'authorized to work in the us',
    'timezone requirement', 'time zone requirement',
]


@dataclass
class RelevanceKeywords:
    """Keyword lists consumed by classify_posting()."""
    remote_location: List[str] = field(default_factory=lambda: list(DEFAULT_REMOTE_LOCATION_KEYWORDS))
    restrictive: List[str] = field(default_factory=lambda: list(DEFAULT_RESTRICTIVE_PHRASES))


@dataclass
class RelevanceResult:
    relevant: bool
    reason: str
    keyword: Optional[str] = None


DEFAULT_KEYWORDS = RelevanceKeywords()


def load_relevance_keywords(config_path: Optional[Path] = None) -> RelevanceKeywords:
    """
    Build RelevanceKeywords from config/relevance_keywords.yaml.

    Lists absent from the file keep their built-in defaults.
    """
    lists = load_keyword_lists(config_path)
    keywords = RelevanceKeywords()
    if lists.get('remote_location_keywords'):
        keywords.remote_location = lists['remote_location_keywords']
    if lists.get('restrictive_phrases'):
        keywords.restrictive = lists['restrictive_phrases']
    logger.debug(
        f"Relevance keywords: {len(keywords.remote_location)} remote, "
        f"{len(keywords.restrictive)} restrictive"
    )
    return keywords


def classify(
    workplace_type: Optional[str],
    location: Optional[str],
    title: Optional[str] = None,
    description: Optional[str] = None,
    keywords: Optional[RelevanceKeywords] = None,
) -> RelevanceResult:
    """
    Classify one posting from its raw signals.

    Args:
        workplace_type: Declared workplace type ('remote', 'on-site', 'hybrid',
            any ATS spelling of those, or None)
        location: Free-text location
        title: Job title
        description: Plain-text description
        keywords: Keyword lists (defaults to built-ins)

    Returns:
        RelevanceResult with relevant flag, human-readable reason and the
        keyword that decided it (when a keyword did)
    """
    keywords = keywords or DEFAULT_KEYWORDS
    workplace = normalize_workplace_type(workplace_type)

    if workplace in ('on-site', 'hybrid'):
        return RelevanceResult(False, REASON_EXPLICIT_ONSITE)

    combined_text = ' \n'.join(part for part in (title, location, description) if part)
    restriction = find_keyword_phrase(combined_text, keywords.restrictive)
    if restriction:
        return RelevanceResult(False, REASON_RESTRICTIVE, restriction)

    if workplace == 'remote':
        return RelevanceResult(True, REASON_EXPLICIT_REMOTE)

    remote_keyword = find_keyword(location, keywords.remote_location)
    if remote_keyword:
        return RelevanceResult(True, REASON_REMOTE_LOCATION, remote_keyword)

    return RelevanceResult(False, REASON_NO_INDICATOR)


def classify_posting(posting, keywords: Optional[RelevanceKeywords] = None) -> RelevanceResult:
    """Classify a RawPosting (or any object with the same attributes)."""
    return classify(
        workplace_type=getattr(posting, 'workplace_type', None),
        location=getattr(posting, 'location', None),
        title=getattr(posting, 'title', None),
        description=getattr(posting, 'description', None),
        keywords=keywords,
    )
