"""
Test Greenhouse fetcher module

All HTTP calls mocked.

Tests:
1. parse_compensation() - cents to whole units
2. parse_workplace_metadata() - custom metadata fields
3. parse_greenhouse_job() - job parsing from API response
4. fetch_greenhouse_jobs() - success, HTTP error, timeout, bad payload
5. GreenhouseFetcher config validation
"""

import sys
from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import patch

import pytest
import requests

sys.path.insert(0, str(Path(__file__).parent.parent))

from conftest import make_response
from scrapers.common.base import SourceConfigError
from scrapers.common.http import FetchError
from scrapers.greenhouse.greenhouse_api_fetcher import (
    GREENHOUSE_API_URL,
    GreenhouseFetcher,
    GreenhouseJob,
    fetch_greenhouse_jobs,
    parse_compensation,
    parse_greenhouse_job,
    parse_workplace_metadata,
)

SAMPLE_JOB = {
    "id": 4012345,
    "internal_job_id": 99,
    "title": "Senior Data Engineer",
    "updated_at": "2026-02-10T09:30:00-05:00",
    "first_published": "2026-01-05T12:00:00-05:00",
    "location": {"name": "Remote - Americas"},
    "absolute_url": "https://boards.greenhouse.io/globex/jobs/4012345",
    "content": "&lt;p&gt;Build pipelines.&lt;/p&gt;&lt;h3&gt;Requirements&lt;/h3&gt;&lt;ul&gt;&lt;li&gt;Python&lt;/li&gt;&lt;/ul&gt;",
    "departments": [{"id": 1, "name": "Data"}],
    "metadata": [
        {"id": 10, "name": "Workplace Type", "value": "Remote", "value_type": "single_select"}
    ],
    "pay_input_ranges": [
        {"min_cents": 12000000, "max_cents": 15000000, "currency_type": "USD", "title": "Base"}
    ],
}


class TestParseCompensation:
    """pay_input_ranges parsing"""

    def test_cents_converted(self):
        """Cents are converted to whole units"""
        result = parse_compensation(SAMPLE_JOB['pay_input_ranges'])
        assert result == {'min': 120000, 'max': 150000, 'currency': 'USD'}

    def test_empty(self):
        """Missing or malformed ranges give an empty dict"""
        assert parse_compensation(None) == {}
        assert parse_compensation([]) == {}
        assert parse_compensation(['oops']) == {}

    def test_partial_range(self):
        """Only min present"""
        assert parse_compensation([{"min_cents": 5000000}]) == {'min': 50000}


class TestParseWorkplaceMetadata:
    """Workplace type from custom metadata"""

    def test_single_select(self):
        """'Workplace Type: Remote'"""
        assert parse_workplace_metadata(SAMPLE_JOB['metadata']) == 'remote'

    def test_multi_select_list_value(self):
        """List values use the first entry"""
        metadata = [{"name": "Location Type", "value": ["Hybrid"]}]
        assert parse_workplace_metadata(metadata) == 'hybrid'

    def test_boolean_remote_flag(self):
        """'Remote' checkbox true means remote, false means unknown"""
        assert parse_workplace_metadata([{"name": "Remote", "value": True}]) == 'remote'
        assert parse_workplace_metadata([{"name": "Remote", "value": False}]) is None

    def test_unrelated_fields_ignored(self):
        """Other metadata fields are skipped"""
        metadata = [{"name": "Cost Center", "value": "Remote Ops"}]
        assert parse_workplace_metadata(metadata) is None

    def test_missing(self):
        """No metadata at all"""
        assert parse_workplace_metadata(None) is None
        assert parse_workplace_metadata([]) is None


class TestParseGreenhouseJob:
    """Job parsing"""

    def test_parse_full_job(self):
        """All fields mapped"""
        job = parse_greenhouse_job(SAMPLE_JOB, 'globex')
        assert job.id == '4012345'
        assert job.title == 'Senior Data Engineer'
        assert job.location == 'Remote - Americas'
        assert job.workplace_type == 'remote'
        assert job.department == 'Data'
        assert job.salary_min == 120000
        assert job.salary_currency == 'USD'
        assert job.apply_url == SAMPLE_JOB['absolute_url']
        assert job.board_token == 'globex'
        assert job.internal_job_id == '99'
        assert job.published_at == datetime(2026, 1, 5, 17, 0, tzinfo=timezone.utc)

    def test_content_is_plain_text(self):
        """Escaped HTML content becomes plain text with line breaks"""
        job = parse_greenhouse_job(SAMPLE_JOB, 'globex')
        assert '<' not in job.description
        assert 'Requirements\nPython' in job.description

    def test_minimal_job(self):
        """Only id and title present"""
        job = parse_greenhouse_job({"id": 1, "title": "Engineer"}, 'globex')
        assert job.id == '1'
        assert job.location == ''
        assert job.description == ''
        assert job.workplace_type is None
        assert job.department is None
        assert job.salary_min is None
        assert job.published_at is None

    def test_string_location(self):
        """Location given as a plain string"""
        job = parse_greenhouse_job({"id": 1, "title": "X", "location": "Berlin"}, 'globex')
        assert job.location == 'Berlin'


class TestFetchGreenhouseJobs:
    """Fetching from the Job Board API"""

    @patch('scrapers.common.http.requests.get')
    def test_fetch_success(self, mock_get):
        """Jobs are parsed, content=true is requested"""
        mock_get.return_value = make_response({"jobs": [SAMPLE_JOB, {"id": 2, "title": "PM"}]})

        jobs = fetch_greenhouse_jobs('globex', timeout=10)

        assert [job.id for job in jobs] == ['4012345', '2']
        args, kwargs = mock_get.call_args
        assert args[0] == f"{GREENHOUSE_API_URL}/globex/jobs"
        assert kwargs['params'] == {'content': 'true'}
        assert kwargs['timeout'] == 10

    @patch('scrapers.common.http.requests.get')
    def test_postings_without_id_skipped(self, mock_get):
        """Postings missing an id are dropped"""
        mock_get.return_value = make_response({"jobs": [{"title": "No id"}, SAMPLE_JOB]})
        assert len(fetch_greenhouse_jobs('globex')) == 1

    @patch('scrapers.common.http.requests.get')
    def test_http_error(self, mock_get):
        """Non-2xx raises FetchError with status and body snippet"""
        mock_get.return_value = make_response(status_code=404, text='Board not found' + 'x' * 500)

        with pytest.raises(FetchError) as exc_info:
            fetch_greenhouse_jobs('missing')

        message = str(exc_info.value)
        assert message.startswith('HTTP 404: Board not found')
        assert len(message) <= len('HTTP 404: ') + 200
        assert exc_info.value.status_code == 404

    @patch('scrapers.common.http.requests.get')
    def test_timeout(self, mock_get):
        """Timeout raises FetchError"""
        mock_get.side_effect = requests.exceptions.Timeout()
        with pytest.raises(FetchError, match='Timeout'):
            fetch_greenhouse_jobs('slow')

    @patch('scrapers.common.http.requests.get')
    def test_invalid_json(self, mock_get):
        """Unparsable body raises FetchError"""
        mock_get.return_value = make_response(ValueError('No JSON'))
        with pytest.raises(FetchError, match='Invalid JSON'):
            fetch_greenhouse_jobs('broken')

    @patch('scrapers.common.http.requests.get')
    def test_unexpected_shape(self, mock_get):
        """'jobs' missing from the payload raises FetchError"""
        mock_get.return_value = make_response({"meta": {}})
        with pytest.raises(FetchError, match='Unexpected response format'):
            fetch_greenhouse_jobs('weird')


class TestGreenhouseFetcherConfig:
    """Config validation"""

    def test_valid(self):
        """boardToken is required and stripped"""
        fetcher = GreenhouseFetcher(store=None, adapter=None)
        assert fetcher.validate_config({'boardToken': ' globex '}) == {'boardToken': 'globex'}

    @pytest.mark.parametrize('config', [{}, {'boardToken': ''}, {'boardToken': 42}, None, 'globex'])
    def test_invalid(self, config):
        """Missing, empty or non-string tokens are rejected"""
        with pytest.raises(SourceConfigError):
            GreenhouseFetcher(store=None, adapter=None).validate_config(config)


class TestMalformedPostings:
    """One bad posting never takes down its siblings"""

    BOARD = {"jobs": [
        {"id": 1, "title": "SRE", "location": {"name": "Remote - Worldwide"}},
        {"id": 2, "title": "Platform Engineer", "location": {"name": "Remote"},
         "departments": {"name": "Engineering"}, "content": ["not", "html"],
         "pay_input_ranges": {"min_cents": 1}},
    ]}

    def test_wrong_shaped_fields_degrade(self):
        """Dict where a list is expected falls back to defaults"""
        job = parse_greenhouse_job(self.BOARD["jobs"][1], 'globex')
        assert job.department is None
        assert job.description == ''
        assert job.salary_min is None
        assert job.location == 'Remote'

    @patch('scrapers.common.http.requests.get')
    def test_source_keeps_good_postings(self, mock_get, store, adapter, greenhouse_source):
        """Both postings are found and processed"""
        mock_get.return_value = make_response(self.BOARD)

        result = GreenhouseFetcher(store, adapter).process_source(greenhouse_source)

        assert result.error_message is None
        assert result.stats.to_dict() == {'found': 2, 'relevant': 2, 'processed': 2, 'errors': 0}
        assert result.found_source_ids == {'1', '2'}

    @patch('scrapers.greenhouse.greenhouse_api_fetcher.parse_greenhouse_job')
    @patch('scrapers.common.http.requests.get')
    def test_undecodable_posting_still_found(self, mock_get, mock_parse):
        """A posting the parser chokes on is kept as an id-only stub"""
        mock_get.return_value = make_response(self.BOARD)
        mock_parse.side_effect = [GreenhouseJob(id='1', title='SRE', location='Remote'), KeyError(0)]

        jobs = fetch_greenhouse_jobs('globex')

        assert [job.id for job in jobs] == ['1', '2']
        assert jobs[1].title == 'Platform Engineer'
        assert jobs[1].location == ''


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
