"""
Spatial analysis pipeline: photo URL -> vision model -> typed spatial analysis -> proportions
"""
from typing import Any, Dict, List, Optional

import aiohttp
from pydantic import ValidationError

from roomlens.core.config import Settings
from roomlens.core.exceptions import UnparsableResponse
from roomlens.middleware.logging_middleware import get_logger
from roomlens.schemas.spatial import EnrichedSpatialAnalysis, SpatialAnalysis
from roomlens.services.analysis_cache import SessionAnalysisCache
from roomlens.services.google_ai_service import GoogleAIStudioService
from roomlens.services.image_fetch import fetch_image_base64
from roomlens.services.json_extraction import extract_json_object
from roomlens.services.proportions import derive_proportions

logger = get_logger(__name__)

SPATIAL_INSTRUCTION = """You are a spatial intelligence system for interior design.
Analyze the room image and output STRICT JSON with normalized (0-1) coordinates relative to the full image width/height.
Structure:
{
  "windows": [{ "id": "window-1", "box": { "x": 0.1, "y": 0.05, "width": 0.25, "height": 0.2 } }],
  "doors": [{ "id": "door-1", "box": { "x": 0.8, "y": 0.2, "width": 0.1, "height": 0.6 } }],
  "furniture": [{ "id": "sofa-1", "label": "blue modern sofa", "box": { "x": 0.3, "y": 0.55, "width": 0.35, "height": 0.2 } }],
  "walkways": [{ "id": "path-1", "points": [{ "x": 0.2, "y": 0.8 }, { "x": 0.5, "y": 0.7 }] }],
  "empty_zones": [{ "id": "corner-1", "box": { "x": 0.0, "y": 0.6, "width": 0.15, "height": 0.3 }, "note": "open corner" }],
  "obstructions": [{ "id": "chair-block", "label": "accent chair", "box": { "x": 0.6, "y": 0.6, "width": 0.1, "height": 0.15 } }],
  "depth_cues": ["strong perspective towards back wall"],
  "metadata": { "notes": ["door swings inward"], "circulation": ["entry -> sofa -> window seating"] }
}
Ensure every coordinate is between 0 and 1. Every id must be unique within its category.
Include at least walkways, furniture, and windows when visible. Respond with the JSON object only."""


def parse_spatial_analysis(data: Dict[str, Any], payload: str = "") -> SpatialAnalysis:
    """Validate extracted JSON into the typed model; schema violations are unparsable responses"""
    try:
        return SpatialAnalysis.model_validate(data)
    except ValidationError as e:
        first = e.errors()[0] if e.errors() else {}
        location = ".".join(str(part) for part in first.get("loc", ()))
        raise UnparsableResponse(
            f"Spatial JSON does not match the expected schema at '{location}': {first.get('msg')}",
            payload=payload,
            details={"errors": e.error_count()},
        ) from e


class SpatialAnalysisService:
    """Runs the spatial analysis pipeline for one image"""

    def __init__(
        self,
        settings: Settings,
        vision: GoogleAIStudioService,
        http_session: aiohttp.ClientSession,
        cache: SessionAnalysisCache,
    ):
        self.settings = settings
        self.vision = vision
        self.http_session = http_session
        self.cache = cache

    async def analyze(
        self,
        image_url: str,
        user_prompt: Optional[str] = None,
        session_id: Optional[str] = None,
    ) -> EnrichedSpatialAnalysis:
        """
        Produce the enriched spatial analysis for an image.

        Repeat calls for the same session and image return the cached result
        without contacting the model.
        """
        cached = self.cache.get(session_id, image_url)
        if cached is not None:
            logger.info(f"Returning cached spatial analysis for {image_url[:80]}")
            return cached.analysis

        # Credential check comes before the image fetch so a missing key costs nothing
        self.vision.require_configured()

        image = await fetch_image_base64(self.http_session, image_url, timeout=self.settings.image_fetch_timeout)

        extra_texts: List[str] = []
        if user_prompt:
            extra_texts.append(f"User request/context: {user_prompt}")

        text = await self.vision.generate_text(
            SPATIAL_INSTRUCTION,
            image=image,
            extra_texts=extra_texts,
            max_output_tokens=self.settings.google_ai_max_tokens,
            temperature=0.0,
            purpose="spatial analysis",
        )

        data = extract_json_object(text, context="spatial analysis")
        analysis = parse_spatial_analysis(data, payload=text)
        enriched = derive_proportions(analysis)

        logger.info(
            f"Spatial analysis for {image_url[:80]}: "
            f"{len(enriched.furniture)} furniture, {len(enriched.windows)} windows, "
            f"{len(enriched.doors)} doors, {len(enriched.walkways)} walkways"
        )
        self.cache.store_analysis(session_id, image_url, enriched)
        return enriched
