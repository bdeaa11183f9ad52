"""
Test Ashby fetcher module

All HTTP calls mocked. Tests dataclass, compensation parsing, job parsing, and fetch behavior.

Tests:
1. AshbyJob dataclass structure
2. parse_compensation() - all three methods
3. parse_ashby_job() - job parsing from API response
4. Fetch jobs (success, 404, timeout, invalid JSON)
5. AshbyFetcher config validation
"""

import sys
from pathlib import Path
from unittest.mock import patch

import pytest
import requests

sys.path.insert(0, str(Path(__file__).parent.parent))

from conftest import make_response
from scrapers.ashby.ashby_fetcher import (
    ASHBY_API_URL,
    AshbyFetcher,
    AshbyJob,
    fetch_ashby_jobs,
    parse_ashby_job,
    parse_compensation,
)
from scrapers.common.base import SourceConfigError
from scrapers.common.http import FetchError


class TestAshbyJobDataclass:
    """Test AshbyJob dataclass"""

    def test_minimal_job(self):
        """Test creating job with minimal required fields"""
        job = AshbyJob(id="abc-123", title="Data Scientist")
        assert job.id == "abc-123"
        assert job.is_remote is False
        assert job.salary_min is None
        assert job.workplace_type is None
        assert job.location == ''


class TestParseCompensation:
    """Test compensation parsing"""

    def test_method1_salary_range_in_tiers(self):
        """Test salaryRange inside compensationTiers"""
        comp = {
            "compensationTierSummary": "$150K - $200K",
            "compensationTiers": [{
                "salaryRange": {
                    "min": {"value": 150000, "currency": "USD"},
                    "max": {"value": 200000, "currency": "USD"}
                }
            }]
        }
        result = parse_compensation(comp)
        assert result['min'] == 150000
        assert result['max'] == 200000
        assert result['currency'] == "USD"
        assert result['summary'] == "$150K - $200K"

    def test_method2_components_array(self):
        """Test components array within a tier"""
        comp = {
            "compensationTiers": [{
                "components": [
                    {"compensationType": "EquityPercentage", "minValue": 0.1},
                    {"compensationType": "Salary", "minValue": 120000, "maxValue": 180000,
                     "currencyCode": "USD", "interval": "1 YEAR"}
                ]
            }]
        }
        result = parse_compensation(comp)
        assert result['min'] == 120000
        assert result['max'] == 180000
        assert result['currency'] == "USD"
        assert result['interval'] == "1 YEAR"

    def test_method3_summary_components(self):
        """Test summaryComponents fallback"""
        comp = {
            "summaryComponents": [
                {"compensationType": "Salary", "minValue": 80000, "maxValue": 110000, "currencyCode": "GBP"}
            ]
        }
        result = parse_compensation(comp)
        assert result['min'] == 80000
        assert result['max'] == 110000
        assert result['currency'] == "GBP"

    def test_empty_compensation(self):
        """Test None and empty dict"""
        assert parse_compensation(None) == {}
        assert 'min' not in parse_compensation({})

    def test_missing_values_in_salary_range(self):
        """Test salaryRange without values"""
        comp = {"compensationTiers": [{"salaryRange": {"min": {}, "max": {}}}]}
        result = parse_compensation(comp)
        assert 'min' not in result
        assert 'max' not in result

    def test_method1_takes_priority_over_method3(self):
        """Test tier salaryRange wins over summaryComponents"""
        comp = {
            "compensationTiers": [{
                "salaryRange": {"min": {"value": 150000, "currency": "USD"}}
            }],
            "summaryComponents": [
                {"compensationType": "Salary", "minValue": 1, "currencyCode": "EUR"}
            ]
        }
        result = parse_compensation(comp)
        assert result['min'] == 150000
        assert result['currency'] == "USD"


class TestParseAshbyJob:
    """Test job parsing"""

    def test_parse_basic_job(self):
        """Test basic fields"""
        job = parse_ashby_job({
            "id": "job-001",
            "title": "Data Engineer",
            "location": "London, UK",
            "descriptionPlain": "Build pipelines...",
            "jobUrl": "https://jobs.ashbyhq.com/co/job-001",
            "applyUrl": "https://jobs.ashbyhq.com/co/job-001/apply",
            "isRemote": False,
            "publishedAt": "2026-01-15T10:00:00.000+00:00",
        }, "co")
        assert job.id == "job-001"
        assert job.title == "Data Engineer"
        assert job.location == "London, UK"
        assert job.is_remote is False
        assert job.workplace_type is None
        assert job.apply_url.endswith("/apply")
        assert job.published_at.year == 2026
        assert job.job_board_name == "co"

    def test_workplace_type_wins(self):
        """Test workplaceType is used before isRemote"""
        job = parse_ashby_job({"id": "1", "title": "T", "workplaceType": "Hybrid", "isRemote": True}, "co")
        assert job.workplace_type == 'hybrid'

    def test_is_remote_fallback(self):
        """Test isRemote=True without workplaceType"""
        job = parse_ashby_job({"id": "1", "title": "T", "isRemote": True}, "co")
        assert job.workplace_type == 'remote'
        assert job.is_remote is True

    def test_onsite_camel_case(self):
        """Test Ashby 'OnSite' spelling"""
        job = parse_ashby_job({"id": "1", "title": "T", "workplaceType": "OnSite"}, "co")
        assert job.workplace_type == 'on-site'

    def test_parse_with_secondary_locations(self):
        """Test secondary locations are joined"""
        job = parse_ashby_job({
            "id": "1", "title": "T", "location": "New York",
            "secondaryLocations": [{"location": "San Francisco"}, {"location": "New York"}, "bad"]
        }, "co")
        assert job.location == "New York / San Francisco"

    def test_parse_with_structured_address(self):
        """Test postalAddress fields"""
        job = parse_ashby_job({
            "id": "1", "title": "T",
            "address": {"postalAddress": {
                "addressLocality": "San Francisco",
                "addressRegion": "California",
                "addressCountry": "US"
            }}
        }, "co")
        assert job.city == "San Francisco"
        assert job.region == "California"
        assert job.country == "US"

    def test_parse_malformed_address(self):
        """Test address that isn't an object"""
        job = parse_ashby_job({"id": "1", "title": "T", "address": "somewhere"}, "co")
        assert job.country is None

    def test_parse_with_compensation(self):
        """Test compensation fields flow through"""
        job = parse_ashby_job({
            "id": "1", "title": "T",
            "compensation": {"summaryComponents": [
                {"compensationType": "Salary", "minValue": 180000, "maxValue": 250000,
                 "currencyCode": "USD", "interval": "1 YEAR"}
            ]}
        }, "co")
        assert job.salary_min == 180000
        assert job.salary_max == 250000
        assert job.salary_interval == "1 YEAR"

    def test_parse_html_fallback_description(self):
        """Test HTML description is stripped when no plain text"""
        job = parse_ashby_job({"id": "1", "title": "T", "descriptionHtml": "<p>HTML description</p>"}, "co")
        assert job.description == "HTML description"


class TestFetchAshbyJobs:
    """Test fetching jobs from Ashby API"""

    @patch('scrapers.common.http.requests.get')
    def test_fetch_jobs_success(self, mock_get):
        """Test successful job fetch"""
        mock_get.return_value = make_response({
            "jobs": [{"id": "job-001", "title": "Data Engineer", "location": "Remote"}]
        })

        jobs = fetch_ashby_jobs("co")

        assert len(jobs) == 1
        assert jobs[0].id == "job-001"
        args, kwargs = mock_get.call_args
        assert args[0] == f"{ASHBY_API_URL}/co"
        assert kwargs['params'] == {'includeCompensation': 'true'}

    @patch('scrapers.common.http.requests.get')
    def test_fetch_jobs_not_found(self, mock_get):
        """Test handling 404 response"""
        mock_get.return_value = make_response(status_code=404, text='Not Found')
        with pytest.raises(FetchError, match='HTTP 404: Not Found'):
            fetch_ashby_jobs("nonexistent")

    @patch('scrapers.common.http.requests.get')
    def test_fetch_jobs_timeout(self, mock_get):
        """Test handling timeout"""
        mock_get.side_effect = requests.exceptions.Timeout()
        with pytest.raises(FetchError, match='Timeout'):
            fetch_ashby_jobs("timeout-co")

    @patch('scrapers.common.http.requests.get')
    def test_fetch_jobs_invalid_json(self, mock_get):
        """Test handling invalid JSON response"""
        import json
        mock_get.return_value = make_response(json.JSONDecodeError("", "", 0))
        with pytest.raises(FetchError, match='Invalid JSON'):
            fetch_ashby_jobs("bad-json")


class TestAshbyFetcherConfig:
    """Test config validation"""

    def test_valid(self):
        """Test jobBoardName accepted"""
        fetcher = AshbyFetcher(store=None, adapter=None)
        assert fetcher.validate_config({'jobBoardName': 'notion'}) == {'jobBoardName': 'notion'}

    def test_missing(self):
        """Test jobBoardName required"""
        with pytest.raises(SourceConfigError):
            AshbyFetcher(store=None, adapter=None).validate_config({'companyIdentifier': 'notion'})


class TestApiUrl:
    """Test API URL configuration"""

    def test_api_url_format(self):
        """Test API URL is correctly formatted"""
        assert ASHBY_API_URL == "https://api.ashbyhq.com/posting-api/job-board"


class TestMalformedPostings:
    """One bad posting never takes down its siblings"""

    BOARD = {"jobs": [
        {"id": "a-1", "title": "Designer", "workplaceType": "Remote"},
        {"id": "a-2", "title": "Engineer", "workplaceType": "Remote",
         "compensation": {"compensationTiers": {"x": 1}, "summaryComponents": "n/a"},
         "secondaryLocations": {"location": "Berlin"}, "address": {"postalAddress": "Berlin"},
         "descriptionPlain": ["text"]},
    ]}

    def test_wrong_shaped_fields_degrade(self):
        """Dict where a list is expected falls back to defaults"""
        job = parse_ashby_job(self.BOARD["jobs"][1], "co")
        assert job.salary_min is None
        assert job.country is None
        assert job.description == ''
        assert job.workplace_type == 'remote'

    @patch('scrapers.common.http.requests.get')
    def test_source_keeps_good_postings(self, mock_get, store, adapter, ashby_source):
        """Both postings are found and processed"""
        mock_get.return_value = make_response(self.BOARD)

        result = AshbyFetcher(store, adapter).process_source(ashby_source)

        assert result.error_message is None
        assert result.stats.to_dict() == {'found': 2, 'relevant': 2, 'processed': 2, 'errors': 0}
        assert result.found_source_ids == {'a-1', 'a-2'}

    @patch('scrapers.ashby.ashby_fetcher.parse_ashby_job')
    @patch('scrapers.common.http.requests.get')
    def test_undecodable_posting_still_found(self, mock_get, mock_parse):
        """A posting the parser chokes on is kept as an id-only stub"""
        mock_get.return_value = make_response(self.BOARD)
        mock_parse.side_effect = [AshbyJob(id='a-1', title='Designer'), KeyError(0)]

        jobs = fetch_ashby_jobs("co")

        assert [job.id for job in jobs] == ['a-1', 'a-2']
        assert jobs[1].title == 'Engineer'
        assert jobs[1].job_board_name == 'co'


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
