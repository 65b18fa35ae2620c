"""
Overlay renderer for spatial analyses.

Normalized [0, 1] coordinates are clamped and scaled into a 0-100 percentage
space, so the SVG produced here can be stretched over the photo at whatever
size it is displayed. Each category has a fixed visual encoding; the region
whose id is currently highlighted (the one a hovered suggestion points at)
is drawn in the highlight color with a heavier stroke.
"""
import io
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Union
from xml.sax.saxutils import escape, quoteattr

from PIL import Image, ImageDraw, UnidentifiedImageError

from roomlens.core.exceptions import InvalidInput
from roomlens.schemas.spatial import (
    ProportionSummary,
    SpatialAnalysis,
    SpatialPath,
    SpatialRegion,
)

logger = logging.getLogger(__name__)

SURFACE_SIZE = 100.0
HIGHLIGHT_COLOR = "#facc15"
HIGHLIGHT_WIDTH_FACTOR = 2.5
DEFAULT_MAX_INSIGHTS = 4


@dataclass(frozen=True)
class CategoryStyle:
    stroke: str
    stroke_width: float = 0.4
    fill: Optional[str] = None
    fill_opacity: float = 0.0
    dash: Optional[str] = None
    show_label: bool = False


CATEGORY_STYLES: Dict[str, CategoryStyle] = {
    "windows": CategoryStyle(stroke="#38bdf8", fill="#38bdf8", fill_opacity=0.08),
    "doors": CategoryStyle(stroke="#f59e0b", fill="#f59e0b", fill_opacity=0.08),
    "furniture": CategoryStyle(stroke="#a3e635", stroke_width=0.5, show_label=True),
    "walkways": CategoryStyle(stroke="#f472b6", stroke_width=0.6, dash="2 1.5"),
    "empty_zones": CategoryStyle(stroke="#22c55e", fill="#22c55e", fill_opacity=0.15, dash="1.5 1"),
    "obstructions": CategoryStyle(stroke="#ef4444", fill="#ef4444", fill_opacity=0.45, show_label=True),
}


def clamp01(value: float) -> float:
    return max(0.0, min(1.0, float(value)))


def to_surface(value: float) -> float:
    """Clamp a normalized coordinate and scale it to the percentage surface"""
    return round(clamp01(value) * SURFACE_SIZE, 3)


@dataclass(frozen=True)
class OverlayRect:
    region_id: str
    category: str
    x: float
    y: float
    width: float
    height: float
    stroke: str
    stroke_width: float
    fill: Optional[str] = None
    fill_opacity: float = 0.0
    dash: Optional[str] = None
    label: Optional[str] = None
    highlighted: bool = False


@dataclass(frozen=True)
class OverlayPolyline:
    region_id: str
    category: str
    points: Tuple[Tuple[float, float], ...]
    stroke: str
    stroke_width: float
    dash: Optional[str] = None
    label: Optional[str] = None
    highlighted: bool = False


OverlayShape = Union[OverlayRect, OverlayPolyline]


@dataclass
class OverlayDrawing:
    """Ordered shapes in a 0-100 coordinate space, ready to layer over the photo"""

    shapes: List[OverlayShape] = field(default_factory=list)
    aspect_ratio: float = 4 / 3
    highlighted_region_id: Optional[str] = None

    def shapes_for(self, region_id: str) -> List[OverlayShape]:
        return [shape for shape in self.shapes if shape.region_id == region_id]

    def highlighted_ids(self) -> List[str]:
        return [shape.region_id for shape in self.shapes if shape.highlighted]

    def to_svg(self) -> str:
        parts = [
            f'<svg xmlns="http://www.w3.org/2000/svg" viewBox="0 0 {SURFACE_SIZE:g} {SURFACE_SIZE:g}" '
            f'preserveAspectRatio="none" style="aspect-ratio: {self.aspect_ratio:.4f}">'
        ]
        for shape in self.shapes:
            parts.append(_shape_to_svg(shape))
        parts.append("</svg>")
        return "".join(parts)


def _stroke_attrs(shape: OverlayShape) -> str:
    attrs = (
        f'stroke="{shape.stroke}" stroke-width="{shape.stroke_width:g}" '
        f'vector-effect="non-scaling-stroke" data-region-id={quoteattr(shape.region_id)} '
        f'data-category="{shape.category}"'
    )
    if shape.dash:
        attrs += f' stroke-dasharray="{shape.dash}"'
    if shape.highlighted:
        attrs += ' data-highlighted="true"'
    return attrs


def _label_to_svg(x: float, y: float, text: str, color: str) -> str:
    return f'<text x="{x:g}" y="{max(y - 0.8, 2.5):g}" font-size="2.4" fill="{color}">{escape(text)}</text>'


def _shape_to_svg(shape: OverlayShape) -> str:
    if isinstance(shape, OverlayRect):
        fill = f'fill="{shape.fill}" fill-opacity="{shape.fill_opacity:g}"' if shape.fill else 'fill="none"'
        svg = (
            f'<rect x="{shape.x:g}" y="{shape.y:g}" width="{shape.width:g}" height="{shape.height:g}" '
            f"{fill} {_stroke_attrs(shape)}/>"
        )
        if shape.label:
            svg += _label_to_svg(shape.x, shape.y, shape.label, shape.stroke)
        return svg

    points = " ".join(f"{x:g},{y:g}" for x, y in shape.points)
    svg = f'<polyline points="{points}" fill="none" {_stroke_attrs(shape)}/>'
    if shape.label and shape.points:
        svg += _label_to_svg(shape.points[0][0], shape.points[0][1], shape.label, shape.stroke)
    return svg


def _region_shape(category: str, region: SpatialRegion, highlighted: bool) -> OverlayRect:
    style = CATEGORY_STYLES[category]
    x = clamp01(region.box.x)
    y = clamp01(region.box.y)
    # Extent is clamped so the box never leaves the image or turns inside out
    width = min(clamp01(region.box.width), 1.0 - x)
    height = min(clamp01(region.box.height), 1.0 - y)
    return OverlayRect(
        region_id=region.id,
        category=category,
        x=to_surface(x),
        y=to_surface(y),
        width=to_surface(width),
        height=to_surface(height),
        stroke=HIGHLIGHT_COLOR if highlighted else style.stroke,
        stroke_width=style.stroke_width * (HIGHLIGHT_WIDTH_FACTOR if highlighted else 1.0),
        fill=style.fill,
        fill_opacity=style.fill_opacity,
        dash=style.dash,
        label=(region.label or region.id) if style.show_label else None,
        highlighted=highlighted,
    )


def _path_shape(path: SpatialPath, highlighted: bool) -> Optional[OverlayPolyline]:
    if len(path.points) < 2:
        return None
    style = CATEGORY_STYLES["walkways"]
    return OverlayPolyline(
        region_id=path.id,
        category="walkways",
        points=tuple((to_surface(point.x), to_surface(point.y)) for point in path.points),
        stroke=HIGHLIGHT_COLOR if highlighted else style.stroke,
        stroke_width=style.stroke_width * (HIGHLIGHT_WIDTH_FACTOR if highlighted else 1.0),
        dash=style.dash,
        label=path.label,
        highlighted=highlighted,
    )


def build_overlay(
    analysis: SpatialAnalysis,
    highlighted_region_id: Optional[str] = None,
    aspect_ratio: float = 4 / 3,
) -> OverlayDrawing:
    """Map every region and walkway of the analysis to an overlay shape"""
    drawing = OverlayDrawing(aspect_ratio=aspect_ratio, highlighted_region_id=highlighted_region_id)
    for category, entity in analysis.iter_entities():
        highlighted = highlighted_region_id is not None and entity.id == highlighted_region_id
        if isinstance(entity, SpatialPath):
            shape = _path_shape(entity, highlighted)
            if shape is not None:
                drawing.shapes.append(shape)
        else:
            drawing.shapes.append(_region_shape(category, entity, highlighted))
    return drawing


class OverlayHighlighter:
    """Cross-highlighting state: hovering a suggestion lights up the region it references"""

    def __init__(self, analysis: SpatialAnalysis, aspect_ratio: float = 4 / 3):
        self.analysis = analysis
        self.aspect_ratio = aspect_ratio
        self.highlighted_region_id: Optional[str] = None

    def hover(self, suggestion: Any) -> Optional[str]:
        self.highlighted_region_id = getattr(suggestion, "region_ref", None)
        return self.highlighted_region_id

    def unhover(self) -> None:
        self.highlighted_region_id = None

    def is_highlighted(self, region_id: str) -> bool:
        return self.highlighted_region_id is not None and region_id == self.highlighted_region_id

    def render(self) -> OverlayDrawing:
        return build_overlay(self.analysis, self.highlighted_region_id, self.aspect_ratio)


@dataclass
class InsightPanel:
    """Human-readable summary shown next to the overlay"""

    proportions: List[str] = field(default_factory=list)
    notes: List[str] = field(default_factory=list)
    depth_cues: List[str] = field(default_factory=list)
    circulation: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, List[str]]:
        return {
            "proportions": list(self.proportions),
            "notes": list(self.notes),
            "depth_cues": list(self.depth_cues),
            "circulation": list(self.circulation),
        }


def _percent(ratio: float) -> int:
    return round(clamp01(ratio) * 100)


def proportion_sentences(proportions: Optional[ProportionSummary]) -> List[str]:
    if proportions is None:
        return []
    sentences = []
    if proportions.sofa_room_width_ratio is not None:
        sentences.append(f"Sofa spans {_percent(proportions.sofa_room_width_ratio)}% of room width")
    if proportions.sofa_room_height_ratio is not None:
        sentences.append(f"Sofa fills {_percent(proportions.sofa_room_height_ratio)}% of the frame height")
    if proportions.walkway_width_ratio is not None:
        sentences.append(f"Walkways average {_percent(proportions.walkway_width_ratio)}% of the frame")
    if proportions.window_wall_ratio is not None:
        sentences.append(f"Windows cover {_percent(proportions.window_wall_ratio)}% of wall width")
    if proportions.door_wall_ratio is not None:
        sentences.append(f"Doors cover {_percent(proportions.door_wall_ratio)}% of wall width")
    if proportions.estimated_room_depth is not None:
        sentences.append(f"Estimated depth index {proportions.estimated_room_depth:.2f} (heuristic)")
    return sentences


def build_insights(analysis: SpatialAnalysis, max_items: int = DEFAULT_MAX_INSIGHTS) -> InsightPanel:
    """Summaries for the insight panel, each section capped at max_items bullets"""
    proportions = getattr(analysis, "proportions", None)
    return InsightPanel(
        proportions=proportion_sentences(proportions)[:max_items],
        notes=list(analysis.metadata.notes[:max_items]),
        depth_cues=list(analysis.depth_cues[:max_items]),
        circulation=list(analysis.metadata.circulation[:max_items]),
    )


def _hex_to_rgba(color: str, alpha: float) -> Tuple[int, int, int, int]:
    color = color.lstrip("#")
    return int(color[0:2], 16), int(color[2:4], 16), int(color[4:6], 16), int(round(clamp01(alpha) * 255))


def _dash_pattern(dash: Optional[str], scale: float) -> Optional[Tuple[float, float]]:
    if not dash:
        return None
    on, off = (float(part) for part in dash.split()[:2])
    return on * scale, off * scale


def _draw_segment(draw: ImageDraw.ImageDraw, start, end, fill, width: int, dash) -> None:
    if dash is None:
        draw.line([start, end], fill=fill, width=width)
        return
    (x0, y0), (x1, y1) = start, end
    length = ((x1 - x0) ** 2 + (y1 - y0) ** 2) ** 0.5
    if length == 0:
        return
    on, off = dash
    position = 0.0
    while position < length:
        segment_end = min(position + on, length)
        draw.line(
            [
                (x0 + (x1 - x0) * position / length, y0 + (y1 - y0) * position / length),
                (x0 + (x1 - x0) * segment_end / length, y0 + (y1 - y0) * segment_end / length),
            ],
            fill=fill,
            width=width,
        )
        position = segment_end + off


def render_overlay_png(image_bytes: bytes, drawing: OverlayDrawing) -> bytes:
    """Composite the overlay onto the source photo and return PNG bytes"""
    try:
        base = Image.open(io.BytesIO(image_bytes)).convert("RGBA")
    except (UnidentifiedImageError, OSError) as e:
        raise InvalidInput(f"Image could not be decoded for the overlay preview: {e}") from e
    layer = Image.new("RGBA", base.size, (0, 0, 0, 0))
    draw = ImageDraw.Draw(layer)

    sx = base.width / SURFACE_SIZE
    sy = base.height / SURFACE_SIZE
    unit = max(1.0, min(base.width, base.height) / 200.0)

    for shape in drawing.shapes:
        stroke = _hex_to_rgba(shape.stroke, 1.0)
        width = max(1, int(round(shape.stroke_width * unit * 2)))
        dash = _dash_pattern(shape.dash, unit * 4)

        if isinstance(shape, OverlayRect):
            left, top = shape.x * sx, shape.y * sy
            right, bottom = left + shape.width * sx, top + shape.height * sy
            if shape.fill and shape.fill_opacity > 0:
                draw.rectangle([left, top, right, bottom], fill=_hex_to_rgba(shape.fill, shape.fill_opacity))
            corners = [(left, top), (right, top), (right, bottom), (left, bottom), (left, top)]
            for start, end in zip(corners, corners[1:]):
                _draw_segment(draw, start, end, stroke, width, dash)
            if shape.label:
                draw.text((left + 2, max(top - 12, 0)), shape.label, fill=stroke)
        else:
            scaled = [(x * sx, y * sy) for x, y in shape.points]
            for start, end in zip(scaled, scaled[1:]):
                _draw_segment(draw, start, end, stroke, width, dash)

    composite = Image.alpha_composite(base, layer)
    buffer = io.BytesIO()
    composite.convert("RGB").save(buffer, format="PNG", optimize=True)
    logger.info(f"Rendered overlay preview {base.width}x{base.height} with {len(drawing.shapes)} shapes")
    return buffer.getvalue()
