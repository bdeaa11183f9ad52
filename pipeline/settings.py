"""
Runtime settings from environment variables (.env supported via python-dotenv).

    SUPABASE_URL, SUPABASE_KEY     Supabase credentials (JOB_STORAGE=supabase)
    JOB_STORAGE                    'supabase' (default) or 'memory'
    SOURCES_FILE                   JSON source registry used with JOB_STORAGE=memory
    RELEVANCE_KEYWORDS_FILE        YAML keyword lists for the classifier
    FETCH_MAX_WORKERS              Sources fetched concurrently (default 3)
    FETCH_TIMEOUT_SECONDS          Per-request HTTP timeout (default 30)
    FETCH_RATE_LIMIT_SECONDS       Pause between paginated requests (default 0.5)
    LOGO_DEV_TOKEN                 Optional logo.dev token for company logos
    LOG_LEVEL                      Logging level (default INFO)
"""

import os
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).parent.parent
DEFAULT_SOURCES_FILE = PROJECT_ROOT / 'config' / 'sources.json'
DEFAULT_KEYWORDS_FILE = PROJECT_ROOT / 'config' / 'relevance_keywords.yaml'

STORAGE_BACKENDS = ('supabase', 'memory')


def _env_number(name: str, default, cast):
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return cast(raw)
    except ValueError:
        logger.warning(f"Invalid {name}={raw!r}, using default {default}")
        return default


@dataclass
class Settings:
    storage: str = 'supabase'
    supabase_url: Optional[str] = None
    supabase_key: Optional[str] = None
    sources_file: Path = DEFAULT_SOURCES_FILE
    keywords_file: Path = DEFAULT_KEYWORDS_FILE
    max_workers: int = 3
    timeout: float = 30.0
    rate_limit: float = 0.5
    logo_dev_token: Optional[str] = None
    log_level: str = 'INFO'

    @classmethod
    def from_env(cls) -> 'Settings':
        load_dotenv()

        storage = (os.getenv('JOB_STORAGE') or 'supabase').strip().lower()
        if storage not in STORAGE_BACKENDS:
            raise ValueError(f"JOB_STORAGE must be one of {STORAGE_BACKENDS}, got '{storage}'")

        return cls(
            storage=storage,
            supabase_url=os.getenv('SUPABASE_URL'),
            supabase_key=os.getenv('SUPABASE_KEY'),
            sources_file=Path(os.getenv('SOURCES_FILE') or DEFAULT_SOURCES_FILE),
            keywords_file=Path(os.getenv('RELEVANCE_KEYWORDS_FILE') or DEFAULT_KEYWORDS_FILE),
            max_workers=max(1, _env_number('FETCH_MAX_WORKERS', 3, int)),
            timeout=_env_number('FETCH_TIMEOUT_SECONDS', 30.0, float),
            rate_limit=_env_number('FETCH_RATE_LIMIT_SECONDS', 0.5, float),
            logo_dev_token=os.getenv('LOGO_DEV_TOKEN') or None,
            log_level=(os.getenv('LOG_LEVEL') or 'INFO').upper(),
        )
