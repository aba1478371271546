"""
Ironing Pattern Generators — fill patterns clipped to a top surface area.

Patterns:
1. raster     — Parallel lines at a fixed angle and spacing
2. concentric — Successive inward offsets of the boundary, as closed loops
3. zigzag     — Raster lines joined end to end wherever the join stays
                inside the area

Line-polygon clipping uses **shapely** for robust intersection handling.
Inset and concentric offsets use **pyclipper** through ``polygon_ops``.

The output is unordered raw geometry; ordering is done by ``path_order``.

References:
- shapely: https://shapely.readthedocs.io/
- pyclipper: https://github.com/fonttools/pyclipper
"""

from __future__ import annotations

import math
import logging
from typing import Callable, Dict, List, Tuple

from shapely.geometry import LineString, MultiPolygon
from shapely.geometry.base import BaseGeometry

from openiron.core.config import FillPattern, PatternConfig
from openiron.core.exceptions import ConfigurationError
from openiron.core.geometry import Point2D, PolygonSet
from openiron.slicing.polygon_ops import offset, to_shapely, union
from openiron.slicing.toolpath import LineSegment

logger = logging.getLogger(__name__)

# Pieces shorter than this (mm) are clipping debris, not printable lines.
_MIN_LINE_LENGTH = 1e-3

# Connectors may graze the boundary by this much (mm) and still count as inside.
_COVER_TOLERANCE = 1e-3

_MAX_CONCENTRIC_LOOPS = 10000

Scanline = List[Tuple[Point2D, Point2D]]


# ---------------------------------------------------------------------------
# Core helpers (library-backed)
# ---------------------------------------------------------------------------


def _extract_lines(geometry: BaseGeometry) -> List[Tuple[Point2D, Point2D]]:
    """Straight pieces of a line/polygon intersection, as endpoint pairs."""
    if geometry.is_empty:
        return []

    if geometry.geom_type == "LineString":
        parts = [geometry]
    elif geometry.geom_type in ("MultiLineString", "GeometryCollection"):
        parts = [g for g in geometry.geoms if g.geom_type == "LineString"]
    else:
        return []

    pieces = []
    for part in parts:
        if part.length < _MIN_LINE_LENGTH:
            continue
        coords = list(part.coords)
        pieces.append((
            (float(coords[0][0]), float(coords[0][1])),
            (float(coords[-1][0]), float(coords[-1][1])),
        ))
    return pieces


def _scanlines(region: MultiPolygon, angle: float, spacing: float) -> List[Scanline]:
    """
    Clip parallel lines at ``angle`` and ``spacing`` to ``region``.

    The first line sits half a spacing inside the region's extent, measured
    across the lines. A region narrower than one spacing gets a single line
    through the middle of its extent.

    Returns:
        One list per scanline (in order across the lines) of pieces, each
        piece oriented along the line direction and sorted along it.
    """
    cos_a = math.cos(angle)
    sin_a = math.sin(angle)

    # Direction perpendicular to scan lines
    perp_x = -sin_a
    perp_y = cos_a

    coords = [c for poly in region.geoms for c in poly.exterior.coords]
    along = [x * cos_a + y * sin_a for x, y in coords]
    across = [x * perp_x + y * perp_y for x, y in coords]
    min_d, max_d = min(along), max(along)
    min_n, max_n = min(across), max(across)
    width = max_n - min_n

    if width < spacing:
        offsets = [min_n + width / 2.0]
    else:
        count = int(math.floor((width - spacing / 2.0) / spacing)) + 1
        offsets = [min_n + spacing / 2.0 + i * spacing for i in range(count)]

    margin = spacing
    lines: List[Scanline] = []
    for t in offsets:
        p1 = (t * perp_x + (min_d - margin) * cos_a, t * perp_y + (min_d - margin) * sin_a)
        p2 = (t * perp_x + (max_d + margin) * cos_a, t * perp_y + (max_d + margin) * sin_a)
        pieces = _extract_lines(LineString([p1, p2]).intersection(region))

        oriented = []
        for a, b in pieces:
            if a[0] * cos_a + a[1] * sin_a > b[0] * cos_a + b[1] * sin_a:
                a, b = b, a
            oriented.append((a, b))
        oriented.sort(key=lambda piece: piece[0][0] * cos_a + piece[0][1] * sin_a)
        if oriented:
            lines.append(oriented)
    return lines


# ---------------------------------------------------------------------------
# Pattern generators
# ---------------------------------------------------------------------------


def generate_raster(area: PolygonSet, config: PatternConfig) -> List[LineSegment]:
    """Raster pattern: one straight segment per scanline piece."""
    region = to_shapely(area)
    if region.is_empty:
        return []
    return [
        LineSegment((a, b), flow=config.flow)
        for scanline in _scanlines(region, config.angle, config.line_spacing)
        for a, b in scanline
    ]


def generate_zigzag(area: PolygonSet, config: PatternConfig) -> List[LineSegment]:
    """
    Zigzag pattern: raster lines in alternating directions, joined into
    polylines wherever the connector between two consecutive lines lies
    inside the area.
    """
    region = to_shapely(area)
    if region.is_empty:
        return []
    inside = region.buffer(_COVER_TOLERANCE)

    strokes: List[LineSegment] = []
    chain: List[Point2D] = []
    for index, scanline in enumerate(_scanlines(region, config.angle, config.line_spacing)):
        pieces = scanline if index % 2 == 0 else [(b, a) for a, b in reversed(scanline)]
        for a, b in pieces:
            if chain and inside.covers(LineString([chain[-1], a])):
                chain.extend([a, b])
                continue
            if chain:
                strokes.append(LineSegment(tuple(chain), flow=config.flow))
            chain = [a, b]
    if chain:
        strokes.append(LineSegment(tuple(chain), flow=config.flow))
    return strokes


def generate_concentric(area: PolygonSet, config: PatternConfig) -> List[LineSegment]:
    """
    Concentric pattern: the boundary of the area, then successive inward
    offsets by the line spacing, each ring as a closed loop.
    """
    loops: List[LineSegment] = []
    current = area
    for _ in range(_MAX_CONCENTRIC_LOOPS):
        if current.is_empty:
            break
        loops.extend(
            LineSegment(tuple(ring), flow=config.flow, closed=True)
            for ring in current
        )
        current = offset(current, -config.line_spacing)
    else:
        logger.warning("Concentric pattern hit the %d loop limit", _MAX_CONCENTRIC_LOOPS)
    return loops


# --- Pattern Registry ---

PatternGenerator = Callable[[PolygonSet, PatternConfig], List[LineSegment]]

IRONING_PATTERNS: Dict[FillPattern, PatternGenerator] = {
    FillPattern.RASTER: generate_raster,
    FillPattern.CONCENTRIC: generate_concentric,
    FillPattern.ZIGZAG: generate_zigzag,
}


def check_pattern_config(config: PatternConfig) -> None:
    """
    Reject settings synthesis cannot run with.

    The pydantic model already enforces these; this also covers configs
    built with ``model_construct``, which skips validation.

    Raises:
        ConfigurationError: On non-positive spacing or an unknown pattern.
    """
    if not config.line_spacing > 0:
        raise ConfigurationError(
            "Line spacing must be positive",
            details={"line_spacing": config.line_spacing},
        )
    if config.pattern not in IRONING_PATTERNS:
        raise ConfigurationError(
            f"Unknown ironing pattern: {config.pattern}",
            details={"available": [p.value for p in IRONING_PATTERNS]},
        )


def generate_pattern(area: PolygonSet, config: PatternConfig) -> List[LineSegment]:
    """
    Generate ironing line segments for a top surface area.

    Parameters:
        area: Top surface area to fill.
        config: Pattern settings.

    Returns:
        Unordered line segments; empty when there is nothing to iron.

    Raises:
        ConfigurationError: If the settings are invalid, before any
            geometry is processed.
    """
    check_pattern_config(config)

    if area.is_empty:
        return []

    fillable = offset(area, -config.inset_distance) if config.inset_distance > 0 else union(area)
    if fillable.is_empty:
        if config.skip_if_empty:
            logger.debug("Inset of %.3f mm collapsed the area", config.inset_distance)
            return []
        # A thin surface still gets a pass over its full area.
        fillable = union(area)
        if fillable.is_empty:
            return []

    generator = IRONING_PATTERNS[config.pattern]
    segments = generator(fillable, config)
    logger.debug(
        "Generated %d segments with %s over %.3f mm^2",
        len(segments), generator.__name__, fillable.area(),
    )
    return segments
