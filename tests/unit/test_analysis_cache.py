"""
Unit tests for the per-session analysis cache
"""
from datetime import datetime, timedelta

import pytest

from roomlens.schemas.design import DesignSuggestions
from roomlens.schemas.spatial import SpatialAnalysis
from roomlens.services.analysis_cache import SessionAnalysisCache
from roomlens.services.proportions import derive_proportions

IMAGE_URL = "https://example.com/room.jpg"


@pytest.fixture
def enriched(sample_spatial_json):
    return derive_proportions(SpatialAnalysis.model_validate(sample_spatial_json))


class TestSessionAnalysisCache:
    """Tests for storing and retrieving cached results"""

    @pytest.mark.unit
    def test_store_and_get(self, analysis_cache, enriched):
        analysis_cache.store_analysis("session-a", IMAGE_URL, enriched)

        cached = analysis_cache.get("session-a", IMAGE_URL)
        assert cached is not None
        assert cached.analysis is enriched
        assert cached.suggestions is None

    @pytest.mark.unit
    def test_sessions_and_images_are_isolated(self, analysis_cache, enriched):
        analysis_cache.store_analysis("session-a", IMAGE_URL, enriched)

        assert analysis_cache.get("session-b", IMAGE_URL) is None
        assert analysis_cache.get("session-a", "https://example.com/other.jpg") is None

    @pytest.mark.unit
    def test_no_session_id_means_no_caching(self, analysis_cache, enriched):
        analysis_cache.store_analysis(None, IMAGE_URL, enriched)

        assert analysis_cache.sessions == {}
        assert analysis_cache.get(None, IMAGE_URL) is None

    @pytest.mark.unit
    def test_suggestions_replace_entry(self, analysis_cache, enriched, sample_suggestions_json):
        analysis_cache.store_analysis("session-a", IMAGE_URL, enriched)
        original = analysis_cache.get("session-a", IMAGE_URL)
        suggestions = DesignSuggestions.model_validate(sample_suggestions_json)

        analysis_cache.store_suggestions("session-a", IMAGE_URL, suggestions)

        updated = analysis_cache.get("session-a", IMAGE_URL)
        assert updated.suggestions is suggestions
        assert updated.analysis is enriched
        assert original.suggestions is None

    @pytest.mark.unit
    def test_suggestions_without_analysis_are_dropped(self, analysis_cache, sample_suggestions_json):
        suggestions = DesignSuggestions.model_validate(sample_suggestions_json)
        analysis_cache.store_suggestions("session-a", IMAGE_URL, suggestions)

        assert analysis_cache.get("session-a", IMAGE_URL) is None

    @pytest.mark.unit
    def test_discard(self, analysis_cache, enriched):
        analysis_cache.store_analysis("session-a", IMAGE_URL, enriched)

        assert analysis_cache.discard("session-a") is True
        assert analysis_cache.discard("session-a") is False
        assert analysis_cache.get("session-a", IMAGE_URL) is None

    @pytest.mark.unit
    def test_expired_sessions_are_cleaned_up(self, enriched):
        cache = SessionAnalysisCache(session_ttl_hours=1)
        cache.store_analysis("old", IMAGE_URL, enriched)
        cache.sessions["old"].last_updated = datetime.now() - timedelta(hours=2)

        assert cache.get("old", IMAGE_URL) is None

        cache.store_analysis("stale", IMAGE_URL, enriched)
        cache.sessions["stale"].last_updated = datetime.now() - timedelta(hours=2)
        assert cache.cleanup_expired_sessions() == 1
        assert "stale" not in cache.sessions
