"""
Render API routes
"""
import logging

from fastapi import APIRouter, Depends

from roomlens.dependencies import get_render_service
from roomlens.schemas.render import RenderRequest, RenderResponse
from roomlens.services.render_service import RenderService

logger = logging.getLogger(__name__)
router = APIRouter()  # No prefix here - it's added in main.py


@router.post("", response_model=RenderResponse)
async def render_room(request: RenderRequest, service: RenderService = Depends(get_render_service)):
    """Image-to-image redesign. Failures return the original image with a warning."""
    result = await service.render(request.image_url, request.prompt)
    if result.warning:
        logger.warning(f"Render returned placeholder ({result.state.value}): {result.warning}")
    return result
