"""
Pydantic schemas for image-to-image render requests
"""
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class RenderJobState(str, Enum):
    """Lifecycle of a queued render job"""

    SUBMITTED = "SUBMITTED"
    POLLING = "POLLING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    TIMED_OUT = "TIMED_OUT"


class RenderRequest(BaseModel):
    """Request body for POST /api/render"""

    model_config = ConfigDict(populate_by_name=True)

    image_url: str = Field(..., alias="imageUrl", min_length=1)
    prompt: str = Field(..., min_length=1)


class RenderResponse(BaseModel):
    """Render outcome. On any non-fatal failure image_url is the input image and warning explains why."""

    image_url: Optional[str] = None
    state: RenderJobState
    warning: Optional[str] = None
    job_id: Optional[str] = None
    polls: int = 0
