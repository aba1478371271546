"""
Polygon Set Algebra — boolean and offset operations over PolygonSets.

Provides the primitives the top surface extractor and the ironing pattern
synthesizer are built on:
- difference / union / intersection (nonzero winding rule)
- offset (grow with positive distance, shrink with negative)
- clean (drop near-duplicate and near-collinear vertices, repair
  self-intersections)

Uses **pyclipper** (Python bindings for Angus Johnson's Clipper library)
for robust integer-grid polygon clipping and offsetting, and **shapely** for
interchange with line-clipping code.

Every operation snaps coordinates to a 1 µm integer grid first. Degenerate
input never raises: it produces an empty (or repaired) result.

References:
- pyclipper: https://github.com/fonttools/pyclipper
- Clipper library: http://www.angusj.com/delphi/clipper.php
"""

from __future__ import annotations

import logging
from typing import Iterable, List, Sequence, Tuple

import pyclipper
from shapely.geometry import GeometryCollection, MultiPolygon
from shapely.geometry import Polygon as ShapelyPolygon
from shapely.geometry.base import BaseGeometry
from shapely.geometry.polygon import orient

from openiron.core.exceptions import GeometryError
from openiron.core.geometry import Point2D, PolygonSet

logger = logging.getLogger(__name__)

ClipperPath = List[Tuple[int, int]]

# pyclipper uses integer coordinates for precision.
# We scale floating-point mm coordinates by this factor.
CLIPPER_SCALE = 1000  # 1 mm  → 1000 clipper units  → 0.001 mm resolution

# Miter joins are clipped beyond this multiple of the offset distance, so
# acute corners do not shoot spikes across the surface.
_MITER_LIMIT = 2.0

# Rings smaller than this (in clipper units squared) are numerical debris.
_MIN_AREA = 4.0

# Vertices closer than this (clipper units) are merged by clean().
_CLEAN_DISTANCE = 1.415


def to_clipper(polygon: Sequence[Point2D]) -> ClipperPath:
    """Scale floating-point polygon to pyclipper integer coordinates."""
    return [(int(round(x * CLIPPER_SCALE)), int(round(y * CLIPPER_SCALE)))
            for x, y in polygon]


def from_clipper(path: Sequence[Sequence[int]]) -> List[Point2D]:
    """Scale pyclipper integer coordinates back to floating-point mm."""
    return [(x / CLIPPER_SCALE, y / CLIPPER_SCALE) for x, y in path]


def _to_paths(polygon_set: PolygonSet) -> List[ClipperPath]:
    return [to_clipper(p) for p in polygon_set.polygons]


def _from_paths(paths: Iterable[ClipperPath]) -> PolygonSet:
    """Convert clipper output, dropping collapsed and sub-grid rings."""
    kept = [
        from_clipper(p) for p in paths
        if len(p) >= 3 and abs(pyclipper.Area(p)) >= _MIN_AREA
    ]
    return PolygonSet.from_polygons(kept)


def _add_paths(clipper: pyclipper.Pyclipper, paths: List[ClipperPath], poly_type: int) -> int:
    """
    Add paths one at a time, skipping those clipper rejects.

    Clipper refuses rings with fewer than three distinct points; those carry
    no area so skipping them is exact.
    """
    added = 0
    for path in paths:
        try:
            clipper.AddPath(path, poly_type, True)
            added += 1
        except pyclipper.ClipperException:
            logger.debug("Skipping degenerate ring with %d vertices", len(path))
    return added


def _boolean(a: PolygonSet, b: PolygonSet, clip_type: int) -> List[ClipperPath]:
    pc = pyclipper.Pyclipper()
    if not _add_paths(pc, _to_paths(a), pyclipper.PT_SUBJECT):
        return []
    _add_paths(pc, _to_paths(b), pyclipper.PT_CLIP)
    try:
        return pc.Execute(clip_type, pyclipper.PFT_NONZERO, pyclipper.PFT_NONZERO)
    except pyclipper.ClipperException as e:
        logger.warning("Polygon boolean failed, treating result as empty: %s", e)
        return []


def difference(a: PolygonSet, b: PolygonSet) -> PolygonSet:
    """
    Region covered by ``a`` and not by ``b``.

    Parameters:
        a: Subject region.
        b: Region to remove. May be empty.

    Returns:
        Normalised PolygonSet (CCW outers, CW holes); empty if nothing
        remains.
    """
    if a.is_empty:
        return PolygonSet.empty()
    return _from_paths(_boolean(a, b, pyclipper.CT_DIFFERENCE))


def union(a: PolygonSet, b: PolygonSet | None = None) -> PolygonSet:
    """Region covered by ``a`` or ``b``; with one argument, normalises ``a``."""
    b = b if b is not None else PolygonSet.empty()
    if a.is_empty:
        a, b = b, a
    if a.is_empty:
        return PolygonSet.empty()
    return _from_paths(_boolean(a, b, pyclipper.CT_UNION))


def intersection(a: PolygonSet, b: PolygonSet) -> PolygonSet:
    """Region covered by both ``a`` and ``b``."""
    if a.is_empty or b.is_empty:
        return PolygonSet.empty()
    return _from_paths(_boolean(a, b, pyclipper.CT_INTERSECTION))


def clean(polygon_set: PolygonSet) -> PolygonSet:
    """
    Remove near-duplicate and near-collinear vertices, then resolve any
    self-intersections into simple rings under the nonzero rule.
    """
    if polygon_set.is_empty:
        return PolygonSet.empty()
    paths = pyclipper.CleanPolygons(_to_paths(polygon_set), _CLEAN_DISTANCE)
    paths = [p for p in paths if len(p) >= 3]
    if not paths:
        return PolygonSet.empty()
    try:
        simple = pyclipper.SimplifyPolygons(paths, pyclipper.PFT_NONZERO)
    except pyclipper.ClipperException as e:
        logger.warning("Polygon simplification failed, treating as empty: %s", e)
        return PolygonSet.empty()
    return _from_paths(simple)


def offset(polygon_set: PolygonSet, distance: float) -> PolygonSet:
    """
    Grow (positive) or shrink (negative) every boundary by ``distance``.

    Holes move the opposite way to their outer boundary, so shrinking a
    region widens its holes. Regions that collapse or invert are dropped.

    Parameters:
        polygon_set: Region to offset.
        distance: Offset distance in mm.

    Returns:
        Offset region; empty if everything collapsed.
    """
    normalised = union(polygon_set)
    if normalised.is_empty:
        return PolygonSet.empty()

    delta = int(round(distance * CLIPPER_SCALE))
    if delta == 0:
        return normalised

    pco = pyclipper.PyclipperOffset(_MITER_LIMIT)
    try:
        pco.AddPaths(_to_paths(normalised), pyclipper.JT_MITER, pyclipper.ET_CLOSEDPOLYGON)
        result = pco.Execute(delta)
    except pyclipper.ClipperException as e:
        logger.warning("Polygon offset failed, treating result as empty: %s", e)
        return PolygonSet.empty()

    if not result:
        return PolygonSet.empty()
    return _from_paths(result)


def point_in_set(point: Point2D, polygon_set: PolygonSet) -> bool:
    """
    Whether ``point`` lies in the region (nonzero winding, boundary counts).
    """
    scaled = (int(round(point[0] * CLIPPER_SCALE)), int(round(point[1] * CLIPPER_SCALE)))
    winding = 0
    for path in _to_paths(polygon_set):
        hit = pyclipper.PointInPolygon(scaled, path)
        if hit == -1:
            return True
        if hit:
            winding += 1 if pyclipper.Orientation(path) else -1
    return winding != 0


def to_shapely(polygon_set: PolygonSet) -> MultiPolygon:
    """
    Convert to a shapely MultiPolygon, pairing holes with their outer rings.

    The pairing comes from clipper's polygon tree, so nested islands inside
    holes become their own polygons.
    """
    if polygon_set.is_empty:
        return MultiPolygon()

    pc = pyclipper.Pyclipper()
    if not _add_paths(pc, _to_paths(polygon_set), pyclipper.PT_SUBJECT):
        return MultiPolygon()
    try:
        tree = pc.Execute2(pyclipper.CT_UNION, pyclipper.PFT_NONZERO, pyclipper.PFT_NONZERO)
    except pyclipper.ClipperException as e:
        logger.warning("Polygon tree build failed, treating as empty: %s", e)
        return MultiPolygon()

    polygons: List[ShapelyPolygon] = []
    pending = list(tree.Childs)
    while pending:
        node = pending.pop()
        if node.IsHole or len(node.Contour) < 3:
            continue
        holes = [from_clipper(h.Contour) for h in node.Childs if len(h.Contour) >= 3]
        polygons.append(ShapelyPolygon(from_clipper(node.Contour), holes))
        for hole in node.Childs:
            pending.extend(hole.Childs)

    return MultiPolygon([p for p in polygons if not p.is_empty])


def from_shapely(geometry: BaseGeometry) -> PolygonSet:
    """
    Convert a shapely (Multi)Polygon or collection into a PolygonSet.

    Non-areal members of a collection are ignored.

    Raises:
        GeometryError: If the geometry is not areal at all (a line or point).
    """
    if geometry.is_empty:
        return PolygonSet.empty()

    if isinstance(geometry, ShapelyPolygon):
        parts = [geometry]
    elif isinstance(geometry, (MultiPolygon, GeometryCollection)):
        parts = [g for g in geometry.geoms if isinstance(g, ShapelyPolygon)]
    else:
        raise GeometryError(
            f"Cannot build a region from {geometry.geom_type}",
            details={"geom_type": geometry.geom_type},
        )

    rings: List[List[Point2D]] = []
    for part in parts:
        oriented = orient(part, sign=1.0)
        rings.append(list(oriented.exterior.coords))
        rings.extend(list(interior.coords) for interior in oriented.interiors)
    return PolygonSet.from_polygons(rings)
