"""
Spatial analysis API routes
"""
import logging
from typing import Optional

import aiohttp
from fastapi import APIRouter, Depends, Response

from roomlens.core.config import Settings
from roomlens.core.exceptions import InvalidInput
from roomlens.dependencies import (
    get_analysis_cache,
    get_app_settings,
    get_http_session,
    get_session_id,
    get_spatial_service,
)
from roomlens.schemas.spatial import (
    EnrichedSpatialAnalysis,
    InsightPanelSchema,
    OverlayRequest,
    OverlayResponse,
    SpatialAnalyzeRequest,
)
from roomlens.services.analysis_cache import SessionAnalysisCache
from roomlens.services.image_fetch import fetch_image_bytes
from roomlens.services.overlay_renderer import build_insights, build_overlay, render_overlay_png
from roomlens.services.proportions import derive_proportions
from roomlens.services.spatial_analysis_service import SpatialAnalysisService

logger = logging.getLogger(__name__)
router = APIRouter()  # No prefix here - it's added in main.py


def resolve_overlay_analysis(
    request: OverlayRequest,
    cache: SessionAnalysisCache,
    session_id: Optional[str],
) -> EnrichedSpatialAnalysis:
    """Spatial JSON from the body wins; otherwise use the analysis cached for this session and image"""
    if request.spatial_json is not None:
        return derive_proportions(request.spatial_json)
    if request.image_url:
        cached = cache.get(session_id, request.image_url)
        if cached is not None:
            return cached.analysis
    raise InvalidInput("spatialJson is required when no analysis is cached for this image")


@router.post("/analyze", response_model=EnrichedSpatialAnalysis)
async def analyze_room(
    request: SpatialAnalyzeRequest,
    service: SpatialAnalysisService = Depends(get_spatial_service),
    session_id: Optional[str] = Depends(get_session_id),
):
    """Extract a normalized spatial layout from a room photo and derive its proportions"""
    logger.info(f"Spatial analysis requested for {request.image_url[:80]}")
    return await service.analyze(request.image_url, user_prompt=request.user_prompt, session_id=session_id)


@router.post("/overlay", response_model=OverlayResponse)
async def render_overlay(
    request: OverlayRequest,
    cache: SessionAnalysisCache = Depends(get_analysis_cache),
    settings: Settings = Depends(get_app_settings),
    session_id: Optional[str] = Depends(get_session_id),
):
    """SVG overlay of the analysis plus the insight panel"""
    analysis = resolve_overlay_analysis(request, cache, session_id)
    drawing = build_overlay(analysis, request.highlighted_region_id, request.aspect_ratio)
    insights = build_insights(analysis, max_items=settings.insight_max_items)
    return OverlayResponse(
        svg=drawing.to_svg(),
        highlighted_region_id=request.highlighted_region_id,
        insights=InsightPanelSchema(**insights.to_dict()),
    )


@router.post("/overlay/preview")
async def render_overlay_preview(
    request: OverlayRequest,
    cache: SessionAnalysisCache = Depends(get_analysis_cache),
    settings: Settings = Depends(get_app_settings),
    http_session: aiohttp.ClientSession = Depends(get_http_session),
    session_id: Optional[str] = Depends(get_session_id),
):
    """The overlay composited onto the photo, as PNG"""
    if not request.image_url:
        raise InvalidInput("imageUrl is required")
    analysis = resolve_overlay_analysis(request, cache, session_id)
    image_bytes, _ = await fetch_image_bytes(http_session, request.image_url, timeout=settings.image_fetch_timeout)
    drawing = build_overlay(analysis, request.highlighted_region_id, request.aspect_ratio)
    return Response(content=render_overlay_png(image_bytes, drawing), media_type="image/png")
