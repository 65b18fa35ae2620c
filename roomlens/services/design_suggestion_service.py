"""
Design suggestion requester: turns an enriched spatial analysis into layout critique and product ideas
"""
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from roomlens.core.exceptions import InvalidInput, UnparsableResponse
from roomlens.middleware.logging_middleware import get_logger
from roomlens.schemas.design import DesignSuggestions
from roomlens.schemas.spatial import EnrichedSpatialAnalysis, SpatialAnalysis
from roomlens.services.analysis_cache import SessionAnalysisCache
from roomlens.services.chatgpt_service import ChatGPTService
from roomlens.services.json_extraction import extract_json_object
from roomlens.services.proportions import derive_proportions

logger = get_logger(__name__)

DESIGN_INSTRUCTION = """You are an interior design strategist. Given the spatial JSON describing a room layout,
identify layout issues, suggest improvements referencing region IDs, and propose generic product ideas
that can be passed to an e-commerce search. Respond ONLY in JSON with:
{
  "layout_issues": [{ "id": "issue-1", "description": "...", "region_ref": "sofa-1" }],
  "improvement_suggestions": [{ "id": "improve-1", "description": "...", "region_ref": "window-1" }],
  "product_suggestions": [{ "id": "product-1", "query": "sheer curtains", "notes": "for window-1", "region_ref": "window-1" }],
  "measurements": [{ "id": "measure-1", "description": "Walkway approx 2.1 ft", "region_ref": "path-1" }]
}
Tie regions back to the spatial JSON: region_ref must be one of the ids it contains.
Product suggestions should be generic item types (e.g., "round side table", "sheer curtains", "5x8 rug"), never brands.
Measurements can be proportional estimates even if approximate."""


def parse_design_suggestions(data: Dict[str, Any], payload: str = "") -> DesignSuggestions:
    try:
        return DesignSuggestions.model_validate(data)
    except ValidationError as e:
        first = e.errors()[0] if e.errors() else {}
        location = ".".join(str(part) for part in first.get("loc", ()))
        raise UnparsableResponse(
            f"Design suggestions do not match the expected schema at '{location}': {first.get('msg')}",
            payload=payload,
            details={"errors": e.error_count()},
        ) from e


class DesignSuggestionService:
    """Requests design suggestions for an analysis that has already completed"""

    def __init__(self, chat: ChatGPTService, cache: SessionAnalysisCache):
        self.chat = chat
        self.cache = cache

    def resolve_analysis(
        self,
        image_url: str,
        spatial_json: Optional[SpatialAnalysis],
        session_id: Optional[str],
    ) -> EnrichedSpatialAnalysis:
        """Use the supplied spatial JSON, or the analysis cached for this session and image"""
        if spatial_json is not None:
            return derive_proportions(spatial_json)
        cached = self.cache.get(session_id, image_url)
        if cached is None:
            raise InvalidInput("imageUrl and spatialJson are required")
        return cached.analysis

    async def suggest(
        self,
        image_url: str,
        spatial_json: Optional[SpatialAnalysis] = None,
        user_prompt: Optional[str] = None,
        session_id: Optional[str] = None,
    ) -> DesignSuggestions:
        self.chat.require_configured()

        analysis = self.resolve_analysis(image_url, spatial_json, session_id)

        cached = self.cache.get(session_id, image_url)
        if spatial_json is None and cached is not None and cached.suggestions is not None:
            logger.info(f"Returning cached design suggestions for {image_url[:80]}")
            return cached.suggestions

        blocks: List[str] = [f"Spatial JSON:\n{analysis.model_dump_json()}"]
        if user_prompt:
            blocks.append(f"User instructions/context: {user_prompt}")

        text = await self.chat.complete(DESIGN_INSTRUCTION, blocks, temperature=0.0, purpose="design suggestions")
        data = extract_json_object(text, context="design suggestions")
        suggestions = parse_design_suggestions(data, payload=text)

        dangling = suggestions.dangling_region_refs(analysis)
        if dangling:
            logger.warning(f"Design suggestions reference unknown regions: {sorted(dangling)}")

        logger.info(
            f"Design suggestions for {image_url[:80]}: {len(suggestions.layout_issues)} issues, "
            f"{len(suggestions.improvement_suggestions)} improvements, {len(suggestions.product_suggestions)} products"
        )
        if spatial_json is None:
            self.cache.store_suggestions(session_id, image_url, suggestions)
        return suggestions
