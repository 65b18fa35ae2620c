"""
Pydantic schemas for design suggestions derived from a spatial analysis
"""
from typing import Annotated, Any, List, Optional, Set

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field

from roomlens.schemas.spatial import RegionId, SpatialAnalysis, none_to_list


class SuggestionModel(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)


class DesignSuggestion(SuggestionModel):
    """A layout issue, improvement or measurement note, optionally tied to a region id"""

    id: RegionId
    description: str
    region_ref: Optional[RegionId] = None


class ProductSuggestion(SuggestionModel):
    """A generic (non-brand) product search query"""

    id: RegionId
    query: str
    notes: Optional[str] = None
    region_ref: Optional[RegionId] = None


SuggestionList = Annotated[List[DesignSuggestion], BeforeValidator(none_to_list)]


class DesignSuggestions(SuggestionModel):
    layout_issues: SuggestionList = Field(default_factory=list)
    improvement_suggestions: SuggestionList = Field(default_factory=list)
    product_suggestions: Annotated[List[ProductSuggestion], BeforeValidator(none_to_list)] = Field(
        default_factory=list
    )
    measurements: SuggestionList = Field(default_factory=list)

    def all_items(self) -> List[Any]:
        return [
            *self.layout_issues,
            *self.improvement_suggestions,
            *self.product_suggestions,
            *self.measurements,
        ]

    def dangling_region_refs(self, analysis: SpatialAnalysis) -> Set[str]:
        """region_ref values that name no entity in the analysis (advisory only)"""
        known = set(analysis.region_ids())
        return {item.region_ref for item in self.all_items() if item.region_ref and item.region_ref not in known}


class DesignSuggestionsRequest(BaseModel):
    """Request body for POST /api/design/suggestions"""

    model_config = ConfigDict(populate_by_name=True)

    image_url: str = Field(..., alias="imageUrl", min_length=1)
    spatial_json: Optional[SpatialAnalysis] = Field(default=None, alias="spatialJson")
    user_prompt: Optional[str] = Field(default=None, alias="userPrompt")
