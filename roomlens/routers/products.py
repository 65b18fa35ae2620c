"""
Product lookup API routes
"""
import logging

from fastapi import APIRouter, Depends

from roomlens.dependencies import get_product_service
from roomlens.schemas.products import (
    LensLookupRequest,
    LensLookupResponse,
    SmartLookupRequest,
    SmartLookupResponse,
)
from roomlens.services.product_search_service import ProductSearchService

logger = logging.getLogger(__name__)
router = APIRouter()  # No prefix here - it's added in main.py


@router.post("/lens", response_model=LensLookupResponse)
async def lens_lookup(request: LensLookupRequest, service: ProductSearchService = Depends(get_product_service)):
    """Find a listing that visually matches the pictured item"""
    product = await service.lens_lookup(request.image_url)
    return LensLookupResponse(product=product)


@router.post("/smart", response_model=SmartLookupResponse)
async def smart_lookup(request: SmartLookupRequest, service: ProductSearchService = Depends(get_product_service)):
    """Describe the (optionally cropped) item as a shopping query and search for it"""
    return await service.smart_lookup(
        request.image_url,
        user_prompt=request.user_prompt,
        crop_region=request.crop_region,
    )
