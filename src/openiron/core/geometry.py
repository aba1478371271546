"""
2D geometry types for OpenIron.

Provides the immutable value types that flow between the top surface
extractor, the ironing pattern synthesizer and the path assembler:

- ``PolygonSet``: a possibly multiply-connected planar region made of closed
  rings. Counter-clockwise rings are outer boundaries, clockwise rings are
  holes (nonzero winding rule).
- ``BoundingBox``: axis-aligned 2D bounds of a region.

Coordinates are floating-point millimetres. Boolean and offset operations on
these types live in ``openiron.slicing.polygon_ops``.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, Iterator, List, Optional, Sequence, Tuple

import numpy as np

Point2D = Tuple[float, float]
Polygon = Tuple[Point2D, ...]


def signed_area(polygon: Sequence[Point2D]) -> float:
    """Compute signed area (positive = CCW, negative = CW)."""
    if len(polygon) < 3:
        return 0.0
    pts = np.asarray(polygon, dtype=float)
    x = pts[:, 0]
    y = pts[:, 1]
    return float(np.dot(x, np.roll(y, -1)) - np.dot(np.roll(x, -1), y)) / 2.0


@dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned 2D bounding box."""

    min_x: float
    min_y: float
    max_x: float
    max_y: float

    @classmethod
    def from_points(cls, points: Iterable[Point2D]) -> Optional["BoundingBox"]:
        """Bounding box of a point cloud, or None if there are no points."""
        pts = np.asarray(list(points), dtype=float)
        if pts.size == 0:
            return None
        mins = pts.min(axis=0)
        maxs = pts.max(axis=0)
        return cls(float(mins[0]), float(mins[1]), float(maxs[0]), float(maxs[1]))

    @property
    def width(self) -> float:
        return self.max_x - self.min_x

    @property
    def height(self) -> float:
        return self.max_y - self.min_y

    @property
    def center(self) -> Point2D:
        return ((self.min_x + self.max_x) / 2.0, (self.min_y + self.max_y) / 2.0)

    @property
    def diagonal(self) -> float:
        return math.hypot(self.width, self.height)

    def contains(self, point: Point2D, tolerance: float = 0.0) -> bool:
        """Whether the point lies inside the box (inclusive, with tolerance)."""
        x, y = point
        return (
            self.min_x - tolerance <= x <= self.max_x + tolerance
            and self.min_y - tolerance <= y <= self.max_y + tolerance
        )


@dataclass(frozen=True)
class PolygonSet:
    """
    Immutable set of closed polygon rings describing a planar region.

    Rings are stored without a repeated closing vertex. The set may be empty,
    which represents a region of zero area.

    Attributes:
        polygons: Tuple of rings, each a tuple of (x, y) points.
    """

    polygons: Tuple[Polygon, ...] = ()

    @classmethod
    def from_polygons(cls, polygons: Iterable[Sequence[Sequence[float]]]) -> "PolygonSet":
        """
        Build a set from any iterable of point sequences.

        Closing vertices are stripped and rings with fewer than three
        vertices are dropped, since they enclose no area.
        """
        rings: List[Polygon] = []
        for polygon in polygons:
            ring = [(float(p[0]), float(p[1])) for p in polygon]
            if len(ring) > 1 and ring[0] == ring[-1]:
                ring.pop()
            if len(ring) >= 3:
                rings.append(tuple(ring))
        return cls(tuple(rings))

    @classmethod
    def empty(cls) -> "PolygonSet":
        return cls(())

    @classmethod
    def rectangle(
        cls, min_x: float, min_y: float, max_x: float, max_y: float,
    ) -> "PolygonSet":
        """Counter-clockwise axis-aligned rectangle."""
        return cls.from_polygons([
            [(min_x, min_y), (max_x, min_y), (max_x, max_y), (min_x, max_y)],
        ])

    @property
    def is_empty(self) -> bool:
        return not self.polygons

    def __len__(self) -> int:
        return len(self.polygons)

    def __iter__(self) -> Iterator[Polygon]:
        return iter(self.polygons)

    def area(self) -> float:
        """
        Net enclosed area.

        Outer rings contribute positively and holes negatively, so a
        well-formed set (CCW outers, CW holes) reports its true area. A set
        given entirely in clockwise order reports the magnitude.
        """
        return abs(sum(signed_area(p) for p in self.polygons))

    def vertices(self) -> Iterator[Point2D]:
        for polygon in self.polygons:
            yield from polygon

    def bounds(self) -> Optional[BoundingBox]:
        return BoundingBox.from_points(self.vertices())

    def outers(self) -> "PolygonSet":
        """Only the counter-clockwise (outer boundary) rings."""
        return PolygonSet(tuple(p for p in self.polygons if signed_area(p) > 0))

    def holes(self) -> "PolygonSet":
        """Only the clockwise (hole) rings."""
        return PolygonSet(tuple(p for p in self.polygons if signed_area(p) < 0))

    def __add__(self, other: "PolygonSet") -> "PolygonSet":
        """Concatenate rings without merging overlaps (see polygon_ops.union)."""
        return PolygonSet(self.polygons + other.polygons)
