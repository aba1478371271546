"""
Slicing module - Top surface extraction and ironing path generation.

- polygon_ops: pyclipper-backed difference / union / offset on PolygonSets
- top_surface: per-layer top surface areas of a mesh
- ironing_patterns: raster, zigzag and concentric fill over an area
- path_order: segment ordering, travel/extrusion flagging and flow scaling
- ironing: per-layer state machine tying the above together
"""

from openiron.slicing.polygon_ops import (
    clean,
    difference,
    from_shapely,
    intersection,
    offset,
    point_in_set,
    to_shapely,
    union,
)
from openiron.slicing.top_surface import MeshLayers, TopSurface, compute_top_surface
from openiron.slicing.ironing_patterns import IRONING_PATTERNS, generate_pattern
from openiron.slicing.path_order import assemble, order_monotonic, order_nearest_neighbor
from openiron.slicing.ironing import IroningState, LayerResult, iron_layer
from openiron.slicing.toolpath import LayerPlan, LineSegment, ToolpathSegment, ToolpathType

__all__ = [
    "clean",
    "difference",
    "from_shapely",
    "intersection",
    "offset",
    "point_in_set",
    "to_shapely",
    "union",
    "MeshLayers",
    "TopSurface",
    "compute_top_surface",
    "IRONING_PATTERNS",
    "generate_pattern",
    "assemble",
    "order_monotonic",
    "order_nearest_neighbor",
    "IroningState",
    "LayerResult",
    "iron_layer",
    "LayerPlan",
    "LineSegment",
    "ToolpathSegment",
    "ToolpathType",
]
