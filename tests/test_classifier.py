"""
Test relevance classifier

Pure function, no mocking needed.

Tests:
1. Decision order on the reference cases
2. Restrictive phrases in title/location/description
3. Workplace type spellings from each ATS
4. Keyword loading from YAML (valid, missing, broken)
"""

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from pipeline.classifier import (
    REASON_EXPLICIT_ONSITE,
    REASON_EXPLICIT_REMOTE,
    REASON_NO_INDICATOR,
    REASON_REMOTE_LOCATION,
    REASON_RESTRICTIVE,
    RelevanceKeywords,
    classify,
    classify_posting,
    load_relevance_keywords,
)
from pipeline.models import RawPosting


class TestReferenceCases:
    """Concrete cases the classifier must get right"""

    def test_explicit_remote(self):
        """Structured remote flag is relevant"""
        result = classify('remote', None)
        assert result.relevant is True
        assert result.reason == REASON_EXPLICIT_REMOTE

    def test_onsite_beats_remote_location_text(self):
        """Structured on-site wins over remote-sounding location text"""
        result = classify('on-site', 'Remote Team')
        assert result.relevant is False
        assert result.reason == REASON_EXPLICIT_ONSITE

    def test_remote_keyword_in_location(self):
        """No structured type, remote keyword in location"""
        result = classify(None, 'Remote - LATAM')
        assert result.relevant is True
        assert result.reason == REASON_REMOTE_LOCATION
        assert result.keyword == 'remote'

    def test_restriction_beats_explicit_remote(self):
        """Remote posting limited to US citizens is not relevant"""
        result = classify('remote', None, description='Candidates must be US citizen to apply.')
        assert result.relevant is False
        assert result.reason == REASON_RESTRICTIVE
        assert result.keyword == 'us citizen'

    def test_no_indicator(self):
        """Plain city location with no structured type"""
        result = classify(None, 'New York')
        assert result.relevant is False
        assert result.reason == REASON_NO_INDICATOR


class TestRestrictiveDetection:
    """Restrictive phrase detection"""

    def test_restriction_in_location(self):
        """'US only' in the location text"""
        result = classify(None, 'Remote (US only)')
        assert result.relevant is False
        assert result.reason == REASON_RESTRICTIVE

    def test_restriction_in_title(self):
        """Restriction in the title is caught too"""
        result = classify('remote', 'Anywhere', title='Engineer - Security Clearance Required')
        assert result.reason == REASON_RESTRICTIVE

    def test_restriction_without_workplace_type(self):
        """Restriction applies even when no workplace type is declared"""
        result = classify(None, 'Worldwide', description='You must reside in the United States.')
        assert result.relevant is False
        assert result.reason == REASON_RESTRICTIVE

    def test_phrase_needs_word_boundaries(self):
        """'us only' does not match inside 'campus only'"""
        result = classify(None, 'Remote', description='Parking is for campus only visitors.')
        assert result.relevant is True

    def test_phrase_spanning_line_break(self):
        """Whitespace inside a phrase matches newlines from HTML stripping"""
        result = classify('remote', None, description='Applicants must\nreside in Canada')
        assert result.reason == REASON_RESTRICTIVE

    def test_onsite_checked_before_restriction(self):
        """On-site reason wins when both apply"""
        result = classify('hybrid', 'NYC', description='US citizens only')
        assert result.reason == REASON_EXPLICIT_ONSITE


class TestWorkplaceSpellings:
    """ATS-specific workplace values"""

    @pytest.mark.parametrize('value', ['OnSite', 'onsite', 'On-site', 'in office'])
    def test_onsite_spellings(self, value):
        """Every on-site spelling is treated as on-site"""
        assert classify(value, 'Remote').reason == REASON_EXPLICIT_ONSITE

    @pytest.mark.parametrize('value', ['Remote', 'REMOTE', 'fully remote'])
    def test_remote_spellings(self, value):
        """Every remote spelling is treated as remote"""
        assert classify(value, 'Berlin').reason == REASON_EXPLICIT_REMOTE

    def test_unspecified_falls_through(self):
        """Lever 'unspecified' is treated as absent"""
        assert classify('unspecified', 'Berlin').reason == REASON_NO_INDICATOR


class TestClassifyPosting:
    """classify_posting() on RawPosting objects"""

    def test_reads_posting_fields(self):
        """Uses workplace_type, location, title and description"""
        posting = RawPosting(id='1', title='Backend Engineer', location='Anywhere in LATAM')
        result = classify_posting(posting)
        assert result.relevant is True
        assert result.reason == REASON_REMOTE_LOCATION

    def test_custom_keywords(self):
        """Custom keyword lists replace the defaults"""
        keywords = RelevanceKeywords(remote_location=['distributed'], restrictive=['no contractors'])
        posting = RawPosting(id='1', title='Engineer', location='Distributed team')
        assert classify_posting(posting, keywords).relevant is True
        assert classify_posting(RawPosting(id='2', title='Engineer', location='Remote'), keywords).relevant is False

    def test_deterministic(self):
        """Same input, same output"""
        posting = RawPosting(id='1', title='Engineer', location='Remote', workplace_type=None)
        assert classify_posting(posting) == classify_posting(posting)


class TestLoadRelevanceKeywords:
    """Keyword config loading"""

    def test_loads_repo_config(self):
        """Default config file loads and includes LATAM"""
        keywords = load_relevance_keywords()
        assert 'latam' in keywords.remote_location
        assert 'us citizen' in keywords.restrictive

    def test_missing_file_uses_defaults(self, tmp_path):
        """Missing file falls back to built-ins"""
        keywords = load_relevance_keywords(tmp_path / 'nope.yaml')
        assert keywords == RelevanceKeywords()

    def test_partial_file(self, tmp_path):
        """Lists absent from the file keep defaults"""
        path = tmp_path / 'keywords.yaml'
        path.write_text("remote_location_keywords:\n  - Distributed\n")
        keywords = load_relevance_keywords(path)
        assert keywords.remote_location == ['distributed']
        assert keywords.restrictive == RelevanceKeywords().restrictive

    def test_broken_yaml_uses_defaults(self, tmp_path):
        """Unparsable YAML falls back to built-ins"""
        path = tmp_path / 'keywords.yaml'
        path.write_text("remote_location_keywords: [unclosed\n")
        assert load_relevance_keywords(path) == RelevanceKeywords()


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
