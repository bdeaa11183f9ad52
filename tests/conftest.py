"""
Shared fixtures: in-memory store and registry, sample sources, fixed clock,
and a helper for building mocked requests responses.
"""

import sys
from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import Mock

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from pipeline.job_adapter import JobProcessingAdapter
from pipeline.models import Source
from pipeline.storage import MemoryJobStore, MemorySourceRegistry

FIXED_NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def make_response(json_data=None, status_code=200, text=''):
    """Mock requests.Response with the given status and JSON body."""
    response = Mock()
    response.status_code = status_code
    response.text = text
    if isinstance(json_data, Exception):
        response.json.side_effect = json_data
    else:
        response.json.return_value = json_data
    return response


@pytest.fixture
def store():
    return MemoryJobStore()


@pytest.fixture
def clock():
    return lambda: FIXED_NOW


@pytest.fixture
def adapter(clock):
    return JobProcessingAdapter(clock=clock)


@pytest.fixture
def lever_source():
    return Source(
        id='acme-lever',
        name='Acme',
        type='lever',
        config={'companyIdentifier': 'acme'},
        company_website='https://www.acme.com',
    )


@pytest.fixture
def greenhouse_source():
    return Source(id='globex-gh', name='Globex', type='greenhouse', config={'boardToken': 'globex'})


@pytest.fixture
def ashby_source():
    return Source(id='initech-ashby', name='Initech', type='ashby', config={'jobBoardName': 'initech'})


@pytest.fixture
def registry(lever_source, greenhouse_source, ashby_source):
    return MemorySourceRegistry([lever_source, greenhouse_source, ashby_source])
