"""
Field normalization helpers for the Normalizing Adapter.

Deterministic text heuristics that map free-form ATS values onto the
canonical enums. Every function has an explicit fallback and never raises on
unknown input.
"""

import re
from typing import Dict, List, Optional, Tuple
from urllib.parse import urlparse

from pipeline.models import ExperienceLevel, JobType, SalaryCycle, WorkplaceType

COMMON_SKILLS = [
    'javascript', 'typescript', 'python', 'java', 'c++', 'c#', 'ruby', 'php',
    'golang', 'rust', 'kotlin', 'swift', 'scala', 'elixir',
    'react', 'vue', 'angular', 'next.js', 'node.js', 'express', 'django', 'flask',
    'fastapi', 'rails', 'spring boot',
    'aws', 'azure', 'gcp', 'docker', 'kubernetes', 'terraform',
    'sql', 'mongodb', 'postgresql', 'mysql', 'redis', 'kafka', 'spark', 'airflow',
    'graphql', 'git', 'ci/cd', 'agile', 'scrum',
]

SECTION_NOT_FOUND = 'See job description'

SECTION_HEADINGS = {
    'requirements': ['requirements', 'qualifications', 'what you bring', 'what we look for',
                     "what we're looking for", 'who you are', 'about you', 'must have'],
    'responsibilities': ['responsibilities', "what you'll do", 'what you will do',
                         'the role', 'your role', 'day to day', 'key duties'],
    'benefits': ['benefits', 'what we offer', 'perks', 'compensation and benefits', 'why join us'],
}

LEGAL_SUFFIXES = ['inc', 'llc', 'ltd', 'corp', 'corporation', 'gmbh', 'sa', 'ltda', 'plc', 'co']

SALARY_CYCLE_ALIASES = {
    'hour': SalaryCycle.HOURLY, 'hourly': SalaryCycle.HOURLY, 'per-hour-wage': SalaryCycle.HOURLY,
    'day': SalaryCycle.DAILY, 'daily': SalaryCycle.DAILY,
    'week': SalaryCycle.WEEKLY, 'weekly': SalaryCycle.WEEKLY,
    'month': SalaryCycle.MONTHLY, 'monthly': SalaryCycle.MONTHLY, 'per-month-salary': SalaryCycle.MONTHLY,
    'year': SalaryCycle.YEARLY, 'yearly': SalaryCycle.YEARLY, 'annual': SalaryCycle.YEARLY,
    'annually': SalaryCycle.YEARLY, 'per-year-salary': SalaryCycle.YEARLY, '1 year': SalaryCycle.YEARLY,
}


def _has_word(text: str, keyword: str) -> bool:
    # '\b' fails after a trailing '.', '+' or '#', so use lookarounds instead
    return re.search(rf'(?<![\w]){re.escape(keyword)}(?![\w+#])', text) is not None


def extract_skills(content: str) -> List[str]:
    """Return known skills mentioned in content, in COMMON_SKILLS order."""
    if not content:
        return []
    content_lower = content.lower()
    return [skill for skill in COMMON_SKILLS if _has_word(content_lower, skill)]


def detect_job_type(employment_type: Optional[str], content: str = '') -> JobType:
    """
    Map a declared employment type (or, failing that, content keywords) to JobType.

    Declared values like 'FullTime', 'Full-time', 'part_time', 'Contractor'
    are matched first. Content is only consulted when nothing is declared.
    Falls back to FULL_TIME for content and UNKNOWN for unrecognised
    declared values.
    """
    if employment_type and employment_type.strip():
        compact = re.sub(r'[^a-z]', '', employment_type.lower())
        if 'parttime' in compact:
            return JobType.PART_TIME
        if 'fulltime' in compact or compact == 'permanent' or compact == 'regular':
            return JobType.FULL_TIME
        if 'contract' in compact or 'temporary' in compact or compact == 'temp':
            return JobType.CONTRACT
        if 'intern' in compact:
            return JobType.INTERNSHIP
        if 'freelance' in compact:
            return JobType.FREELANCE
        return JobType.UNKNOWN

    content_lower = (content or '').lower()
    if 'part time' in content_lower or 'part-time' in content_lower:
        return JobType.PART_TIME
    if _has_word(content_lower, 'contract') or _has_word(content_lower, 'contractor'):
        return JobType.CONTRACT
    if _has_word(content_lower, 'internship') or _has_word(content_lower, 'intern'):
        return JobType.INTERNSHIP
    if _has_word(content_lower, 'freelance') or _has_word(content_lower, 'freelancer'):
        return JobType.FREELANCE
    return JobType.FULL_TIME


def detect_experience_level(title: str, content: str = '') -> ExperienceLevel:
    """
    Infer seniority, title first, then content.

    LEAD beats SENIOR beats ENTRY; MID when nothing matches.
    """
    lead = ['vp', 'director', 'manager', 'lead', 'head of', 'chief']
    senior = ['senior', 'sr.', 'sr', 'principal', 'staff', 'specialist']
    entry = ['junior', 'jr.', 'jr', 'entry', 'associate', 'graduate', 'intern', 'internship', 'trainee']

    for text in (title or '', content or ''):
        text_lower = text.lower()
        if not text_lower:
            continue
        if any(_has_word(text_lower, kw) for kw in lead):
            return ExperienceLevel.LEAD
        if any(_has_word(text_lower, kw) for kw in senior):
            return ExperienceLevel.SENIOR
        if any(_has_word(text_lower, kw) for kw in entry):
            return ExperienceLevel.ENTRY
    return ExperienceLevel.MID


def map_workplace_type(workplace_type: Optional[str], location: str = '') -> WorkplaceType:
    """Map the normalized posting value to the WorkplaceType enum."""
    if workplace_type == 'remote':
        return WorkplaceType.REMOTE
    if workplace_type == 'hybrid':
        return WorkplaceType.HYBRID
    if workplace_type == 'on-site':
        return WorkplaceType.ON_SITE
    if location and 'remote' in location.lower():
        return WorkplaceType.REMOTE
    return WorkplaceType.UNKNOWN


def parse_sections(content: str) -> Dict[str, str]:
    """
    Split plain-text content into description / requirements / responsibilities / benefits.

    Blocks start at lines that look like headings (short non-bullet lines,
    or lines ending with ':'); each block goes to the first section whose heading
    keyword it contains, otherwise to description. Empty sections fall back to
    'See job description'; an empty description falls back to the full content.
    """
    sections = {'description': [], 'requirements': [], 'responsibilities': [], 'benefits': []}
    current = 'description'

    for line in (content or '').splitlines():
        stripped = line.strip()
        if not stripped:
            continue
        looks_like_heading = stripped.endswith(':') or (
            len(stripped) <= 60
            and not stripped.endswith('.')
            and not stripped.startswith(('-', '*', '•'))
        )
        if looks_like_heading:
            heading = stripped.lower().rstrip(':')
            matched = None
            for section, headings in SECTION_HEADINGS.items():
                if any(h in heading for h in headings):
                    matched = section
                    break
            if matched:
                current = matched
        sections[current].append(stripped)

    result = {name: '\n'.join(lines) for name, lines in sections.items()}
    for name in ('requirements', 'responsibilities', 'benefits'):
        if not result[name]:
            result[name] = SECTION_NOT_FOUND
    if not result['description']:
        result['description'] = content or ''
    return result


def parse_salary_amount(value) -> Optional[float]:
    """
    Parse a salary amount.

    Accepts numbers and strings such as '120000', '120,000', '$120k', '1.5M'.
    Returns None for anything unparsable, negative or zero.

    Examples:
        >>> parse_salary_amount('$120k')
        120000.0
        >>> parse_salary_amount('competitive') is None
        True
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        amount = float(value)
        return amount if amount > 0 else None
    if not isinstance(value, str):
        return None

    match = re.search(r'(\d[\d,]*(?:\.\d+)?)\s*([kKmM](?![a-zA-Z]))?', value)
    if not match:
        return None
    try:
        amount = float(match.group(1).replace(',', ''))
    except ValueError:
        return None
    suffix = (match.group(2) or '').lower()
    if suffix == 'k':
        amount *= 1_000
    elif suffix == 'm':
        amount *= 1_000_000
    return amount if amount > 0 else None


def map_salary_cycle(interval: Optional[str]) -> Optional[SalaryCycle]:
    if not isinstance(interval, str) or not interval.strip():
        return None
    return SALARY_CYCLE_ALIASES.get(interval.strip().lower())


def parse_salary(
    salary_min, salary_max, currency: Optional[str], interval: Optional[str]
) -> Tuple[Optional[float], Optional[float], Optional[str], Optional[SalaryCycle], bool]:
    """
    Normalize a salary range.

    Returns:
        (min, max, currency, cycle, show_salary). show_salary is True only when
        at least one bound parsed; min/max are swapped if reversed.
    """
    low = parse_salary_amount(salary_min)
    high = parse_salary_amount(salary_max)
    if low is None and high is None:
        return None, None, None, None, False
    if low is not None and high is not None and low > high:
        low, high = high, low
    currency_code = currency.strip().upper() if isinstance(currency, str) and currency.strip() else None
    return low, high, currency_code, map_salary_cycle(interval), True


def normalize_string_for_search(value: Optional[str]) -> str:
    if not value:
        return ''
    cleaned = re.sub(r"[.,/#!$%^&*;:{}=\-_`~()']", '', value.lower())
    return re.sub(r'\s{2,}', ' ', cleaned).strip()


def normalize_company_name(name: Optional[str]) -> str:
    """
    Normalize a company name for lookup.

    Examples:
        >>> normalize_company_name('Acme, Inc.')
        'acme'
    """
    normalized = normalize_string_for_search(name)
    suffixes = '|'.join(LEGAL_SUFFIXES)
    normalized = re.sub(rf'\s\b({suffixes})\b', '', normalized)
    return re.sub(r'\s{2,}', ' ', normalized).strip()


def extract_domain(url: Optional[str]) -> Optional[str]:
    """Return the bare hostname of a website URL (no scheme, no 'www.')."""
    if not url or not url.strip():
        return None
    url = url.strip()
    if not url.startswith(('http://', 'https://')):
        url = 'https://' + url
    hostname = urlparse(url).hostname
    if not hostname:
        return None
    return re.sub(r'^www\.', '', hostname)


def company_logo_url(website: Optional[str], token: Optional[str] = None) -> Optional[str]:
    """Build a logo.dev image URL from the company website, if there is one."""
    domain = extract_domain(website)
    if not domain:
        return None
    suffix = f"?token={token}" if token else ''
    return f"https://img.logo.dev/{domain}{suffix}"
