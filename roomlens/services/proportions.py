"""
Proportion deriver: geometric ratios computed from a parsed spatial analysis.

Everything here is pure. The input analysis is never mutated; the result is a
new EnrichedSpatialAnalysis that shares the input's entity objects and adds
`proportions` and `measurements`.

estimated_room_depth is a heuristic proxy driven by how many depth cues the
vision model reported. It is not a measured depth.
"""
from typing import List, Optional

from roomlens.schemas.spatial import (
    EnrichedSpatialAnalysis,
    ProportionSummary,
    SpatialAnalysis,
    SpatialMeasurement,
    SpatialPath,
    SpatialRegion,
)

DEFAULT_ROOM_DEPTH = 0.6
DEPTH_BASE = 0.5
DEPTH_PER_CUE = 0.1


def find_sofa(furniture: List[SpatialRegion]) -> Optional[SpatialRegion]:
    """First furniture entry whose label mentions a sofa"""
    for item in furniture:
        if item.label and "sofa" in item.label.lower():
            return item
    return None


def path_width_estimate(path: SpatialPath) -> Optional[float]:
    """Larger side of the bounding box around a path's points; None for paths with fewer than 2 points"""
    if len(path.points) < 2:
        return None
    xs = [point.x for point in path.points]
    ys = [point.y for point in path.points]
    return max(max(xs) - min(xs), max(ys) - min(ys))


def average_walkway_width(walkways: List[SpatialPath]) -> Optional[float]:
    widths = [width for width in (path_width_estimate(path) for path in walkways) if width is not None]
    if not widths:
        return None
    return sum(widths) / len(widths)


def total_width(regions: List[SpatialRegion]) -> Optional[float]:
    if not regions:
        return None
    return sum(region.box.width for region in regions)


def estimate_room_depth(depth_cues: List[str]) -> float:
    if not depth_cues:
        return DEFAULT_ROOM_DEPTH
    return min(1.0, len(depth_cues) * DEPTH_PER_CUE + DEPTH_BASE)


def build_measurements(
    sofa: Optional[SpatialRegion],
    walkway_width: Optional[float],
    window_width: Optional[float],
    door_width: Optional[float],
) -> List[SpatialMeasurement]:
    """Human-presentable measurements in fixed order: sofa, walkway, windows, doors"""
    measurements: List[SpatialMeasurement] = []
    if sofa is not None:
        measurements.append(
            SpatialMeasurement(
                id=sofa.id,
                label=f"{sofa.label or 'Sofa'} footprint",
                width_ratio=sofa.box.width,
                height_ratio=sofa.box.height,
            )
        )
    if walkway_width is not None:
        measurements.append(SpatialMeasurement(id="walkways", label="Average walkway width", width_ratio=walkway_width))
    if window_width is not None:
        measurements.append(SpatialMeasurement(id="windows", label="Total window width", width_ratio=window_width))
    if door_width is not None:
        measurements.append(SpatialMeasurement(id="doors", label="Total door width", width_ratio=door_width))
    return measurements


def derive_proportions(analysis: SpatialAnalysis) -> EnrichedSpatialAnalysis:
    """Layer proportions and measurements onto a shallow copy of the analysis"""
    sofa = find_sofa(analysis.furniture)
    walkway_width = average_walkway_width(analysis.walkways)
    window_width = total_width(analysis.windows)
    door_width = total_width(analysis.doors)

    proportions = ProportionSummary(
        sofa_room_width_ratio=sofa.box.width if sofa else None,
        sofa_room_height_ratio=sofa.box.height if sofa else None,
        walkway_width_ratio=walkway_width,
        estimated_room_depth=estimate_room_depth(analysis.depth_cues),
        window_wall_ratio=window_width,
        door_wall_ratio=door_width,
    )

    base = {name: getattr(analysis, name) for name in SpatialAnalysis.model_fields}
    return EnrichedSpatialAnalysis(
        **base,
        proportions=proportions,
        measurements=build_measurements(sofa, walkway_width, window_width, door_width),
    )
