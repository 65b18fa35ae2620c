"""
Design suggestion API routes
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends

from roomlens.dependencies import get_design_service, get_session_id
from roomlens.schemas.design import DesignSuggestions, DesignSuggestionsRequest
from roomlens.services.design_suggestion_service import DesignSuggestionService

logger = logging.getLogger(__name__)
router = APIRouter()  # No prefix here - it's added in main.py


@router.post("/suggestions", response_model=DesignSuggestions)
async def design_suggestions(
    request: DesignSuggestionsRequest,
    service: DesignSuggestionService = Depends(get_design_service),
    session_id: Optional[str] = Depends(get_session_id),
):
    """
    Layout issues, improvements, product ideas and measurements for an analyzed room.

    The spatial JSON comes from the body, or from the analysis already cached
    for this session and image.
    """
    return await service.suggest(
        request.image_url,
        spatial_json=request.spatial_json,
        user_prompt=request.user_prompt,
        session_id=session_id,
    )
