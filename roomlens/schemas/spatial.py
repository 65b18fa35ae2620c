"""
Pydantic schemas for spatial layout analysis.

All coordinates are normalized to the source image: x and width are fractions
of image width, y and height are fractions of image height. The vision model
does not reliably keep values inside [0, 1], so nothing is clamped here;
consumers that draw or measure clamp on their side.
"""
from typing import Annotated, Any, Iterator, List, Optional, Tuple

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, field_validator

CATEGORIES: Tuple[str, ...] = ("windows", "doors", "furniture", "walkways", "empty_zones", "obstructions")


class SpatialModel(BaseModel):
    """Base for model-authored structures: unknown keys are dropped, instances are immutable"""

    model_config = ConfigDict(extra="ignore", frozen=True)


def none_to_list(value: Any) -> Any:
    return [] if value is None else value


def _id_to_str(value: Any) -> Any:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return value


RegionId = Annotated[str, BeforeValidator(_id_to_str)]
TextList = Annotated[List[str], BeforeValidator(none_to_list)]


class NormalizedBox(SpatialModel):
    """Axis-aligned box in normalized image coordinates"""

    x: float
    y: float
    width: float
    height: float


class Point(SpatialModel):
    x: float
    y: float


class SpatialRegion(SpatialModel):
    """A detected structural or furniture element"""

    id: RegionId
    label: Optional[str] = None
    box: NormalizedBox
    note: Optional[str] = None


class SpatialPath(SpatialModel):
    """A walkway or circulation path drawn as a polyline"""

    id: RegionId
    points: Annotated[List[Point], BeforeValidator(none_to_list)] = Field(default_factory=list)
    label: Optional[str] = None


RegionList = Annotated[List[SpatialRegion], BeforeValidator(none_to_list)]
PathList = Annotated[List[SpatialPath], BeforeValidator(none_to_list)]


class SpatialMetadata(SpatialModel):
    notes: TextList = Field(default_factory=list)
    circulation: TextList = Field(default_factory=list)


class SpatialAnalysis(SpatialModel):
    """Structural description of a room photo as returned by the vision model"""

    windows: RegionList = Field(default_factory=list)
    doors: RegionList = Field(default_factory=list)
    furniture: RegionList = Field(default_factory=list)
    walkways: PathList = Field(default_factory=list)
    empty_zones: RegionList = Field(default_factory=list)
    obstructions: RegionList = Field(default_factory=list)
    depth_cues: TextList = Field(default_factory=list)
    metadata: SpatialMetadata = Field(default_factory=SpatialMetadata)

    @field_validator("metadata", mode="before")
    @classmethod
    def _default_metadata(cls, value: Any) -> Any:
        return {} if value is None else value

    def iter_entities(self) -> Iterator[Tuple[str, Any]]:
        """Yield (category, entity) for every region and path, in category order"""
        for category in CATEGORIES:
            for entity in getattr(self, category):
                yield category, entity

    def region_ids(self) -> List[str]:
        return [entity.id for _, entity in self.iter_entities()]


class ProportionSummary(BaseModel):
    """Ratios derived from the spatial regions; None when the source entity is absent"""

    model_config = ConfigDict(frozen=True)

    sofa_room_width_ratio: Optional[float] = None
    sofa_room_height_ratio: Optional[float] = None
    walkway_width_ratio: Optional[float] = None
    estimated_room_depth: Optional[float] = None
    window_wall_ratio: Optional[float] = None
    door_wall_ratio: Optional[float] = None


class SpatialMeasurement(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: RegionId
    label: str
    width_ratio: Optional[float] = None
    height_ratio: Optional[float] = None


class EnrichedSpatialAnalysis(SpatialAnalysis):
    """SpatialAnalysis plus derived proportions and measurements"""

    proportions: ProportionSummary = Field(default_factory=ProportionSummary)
    measurements: List[SpatialMeasurement] = Field(default_factory=list)


class SpatialAnalyzeRequest(BaseModel):
    """Request body for POST /api/spatial/analyze"""

    model_config = ConfigDict(populate_by_name=True)

    image_url: str = Field(..., alias="imageUrl", min_length=1)
    user_prompt: Optional[str] = Field(default=None, alias="userPrompt")


class OverlayRequest(BaseModel):
    """Request body for POST /api/spatial/overlay"""

    model_config = ConfigDict(populate_by_name=True)

    image_url: Optional[str] = Field(default=None, alias="imageUrl")
    spatial_json: Optional[SpatialAnalysis] = Field(default=None, alias="spatialJson")
    highlighted_region_id: Optional[str] = Field(default=None, alias="highlightedRegionId")
    aspect_ratio: float = Field(default=4 / 3, alias="aspectRatio", gt=0)


class InsightPanelSchema(BaseModel):
    proportions: List[str] = Field(default_factory=list)
    notes: List[str] = Field(default_factory=list)
    depth_cues: List[str] = Field(default_factory=list)
    circulation: List[str] = Field(default_factory=list)


class OverlayResponse(BaseModel):
    svg: str
    highlighted_region_id: Optional[str] = None
    insights: InsightPanelSchema
