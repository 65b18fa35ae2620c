"""
Unit tests for the design suggestion requester
"""
import json

import pytest

from roomlens.core.exceptions import InvalidInput, ProviderNotConfigured, UnparsableResponse
from roomlens.schemas.spatial import SpatialAnalysis
from roomlens.services.design_suggestion_service import DESIGN_INSTRUCTION, DesignSuggestionService
from roomlens.services.proportions import derive_proportions

IMAGE_URL = "https://example.com/room.jpg"


@pytest.fixture
def service(mock_chat, analysis_cache):
    return DesignSuggestionService(mock_chat, analysis_cache)


@pytest.fixture
def spatial(sample_spatial_json):
    return SpatialAnalysis.model_validate(sample_spatial_json)


class TestSuggest:
    """Tests for suggestion requests"""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_parses_suggestions(self, service, mock_chat, spatial, sample_suggestions_json):
        mock_chat.complete.return_value = json.dumps(sample_suggestions_json)

        result = await service.suggest(IMAGE_URL, spatial_json=spatial, user_prompt="make it airy")

        assert result.layout_issues[0].region_ref == "sofa-1"
        assert result.product_suggestions[0].query == "sheer curtains"

        args, kwargs = mock_chat.complete.call_args
        assert args[0] == DESIGN_INSTRUCTION
        blocks = args[1]
        assert blocks[0].startswith("Spatial JSON:\n")
        assert '"proportions"' in blocks[0]
        assert blocks[1] == "User instructions/context: make it airy"
        assert kwargs["temperature"] == 0.0

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_missing_categories_default_to_empty(self, service, mock_chat, spatial):
        mock_chat.complete.return_value = '{"layout_issues": null}'

        result = await service.suggest(IMAGE_URL, spatial_json=spatial)

        assert result.layout_issues == []
        assert result.measurements == []

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_dangling_refs_are_kept(self, service, mock_chat, spatial):
        mock_chat.complete.return_value = json.dumps(
            {"layout_issues": [{"id": "issue-1", "description": "x", "region_ref": "ghost-9"}]}
        )

        result = await service.suggest(IMAGE_URL, spatial_json=spatial)

        assert result.dangling_region_refs(spatial) == {"ghost-9"}

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_numeric_region_refs_match_numeric_ids(self, service, mock_chat):
        spatial = SpatialAnalysis.model_validate(
            {"furniture": [{"id": 1, "label": "sofa", "box": {"x": 0.1, "y": 0.5, "width": 0.4, "height": 0.2}}]}
        )
        mock_chat.complete.return_value = json.dumps(
            {
                "layout_issues": [{"id": 1, "description": "Sofa crowds the walkway", "region_ref": 1}],
                "product_suggestions": [{"id": 2, "query": "slim sofa", "region_ref": 1}],
            }
        )

        result = await service.suggest(IMAGE_URL, spatial_json=spatial)

        assert spatial.region_ids() == ["1"]
        assert result.layout_issues[0].region_ref == "1"
        assert result.product_suggestions[0].region_ref == "1"
        assert result.dangling_region_refs(spatial) == set()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_uses_cached_analysis_and_caches_result(
        self, service, mock_chat, analysis_cache, spatial, sample_suggestions_json
    ):
        analysis_cache.store_analysis("session-1", IMAGE_URL, derive_proportions(spatial))
        mock_chat.complete.return_value = json.dumps(sample_suggestions_json)

        first = await service.suggest(IMAGE_URL, session_id="session-1")
        second = await service.suggest(IMAGE_URL, session_id="session-1")

        assert second is first
        assert mock_chat.complete.await_count == 1
        assert analysis_cache.get("session-1", IMAGE_URL).suggestions is first


class TestFailures:
    """Tests for failure ordering and mapping"""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_missing_credential_comes_first(self, service, mock_chat):
        mock_chat.require_configured.side_effect = ProviderNotConfigured("OPENAI_API_KEY")

        with pytest.raises(ProviderNotConfigured):
            await service.suggest(IMAGE_URL)
        mock_chat.complete.assert_not_awaited()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_no_analysis_is_invalid_input(self, service, mock_chat):
        with pytest.raises(InvalidInput):
            await service.suggest(IMAGE_URL, session_id="session-1")
        mock_chat.complete.assert_not_awaited()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_unparsable_reply(self, service, mock_chat, spatial):
        mock_chat.complete.return_value = "Sorry, I can't help with that."

        with pytest.raises(UnparsableResponse):
            await service.suggest(IMAGE_URL, spatial_json=spatial)
