"""
Pydantic schemas for product lookup endpoints
"""
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class CropRegion(BaseModel):
    """Pixel-space crop rectangle on the source image"""

    x: float
    y: float
    width: float
    height: float


class ProductMatch(BaseModel):
    """A shoppable listing"""

    name: Optional[str] = None
    category: str = "Detected item"
    description: Optional[str] = None
    quantity: int = 1
    search_terms: List[str] = Field(default_factory=list)
    link_url: Optional[str] = None
    image_url: Optional[str] = None
    price: Optional[str] = None
    asin: Optional[str] = None


class LensLookupRequest(BaseModel):
    """Request body for POST /api/products/lens"""

    model_config = ConfigDict(populate_by_name=True)

    image_url: str = Field(..., alias="imageUrl", min_length=1)
    prompt: Optional[str] = None


class LensLookupResponse(BaseModel):
    product: ProductMatch


class SmartLookupRequest(BaseModel):
    """Request body for POST /api/products/smart"""

    model_config = ConfigDict(populate_by_name=True)

    image_url: str = Field(..., alias="imageUrl", min_length=1)
    user_prompt: Optional[str] = Field(default=None, alias="userPrompt")
    crop_region: Optional[CropRegion] = Field(default=None, alias="cropRegion")


class SmartLookupResponse(BaseModel):
    keywords: str
    products: List[ProductMatch]
