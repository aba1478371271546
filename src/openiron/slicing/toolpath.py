"""
Toolpath data structures for ironing.

This module provides the raw pattern geometry handed from the pattern
synthesizer to the path assembler (``LineSegment``) and the ordered moves the
assembler writes into a layer's output plan (``ToolpathSegment``,
``LayerPlan``).
"""

import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Iterator, List, Optional, Sequence, Tuple

import numpy as np
from compas.geometry import Point

from openiron.core.geometry import Point2D


class ToolpathType(Enum):
    """Type of toolpath segment."""

    IRONING = "ironing"  # Low-flow smoothing pass over a top surface
    TRAVEL = "travel"  # Non-printing moves


@dataclass(frozen=True)
class LineSegment:
    """
    One pass of a fill pattern.

    Either a straight stroke (two points) or, for concentric patterns, a
    closed loop whose last point connects back to its first.

    Attributes:
        points: Ordered 2D points of the pass (at least two).
        flow: Flow multiplier tag carried to the extrusion moves.
        closed: Whether the pass is a closed loop.
    """

    points: Tuple[Point2D, ...]
    flow: float = 1.0
    closed: bool = False

    @property
    def start(self) -> Point2D:
        return self.points[0]

    @property
    def end(self) -> Point2D:
        return self.points[0] if self.closed else self.points[-1]

    @property
    def length(self) -> float:
        pts = np.asarray(self.path_points(), dtype=float)
        if len(pts) < 2:
            return 0.0
        return float(np.sum(np.hypot(*np.diff(pts, axis=0).T)))

    def path_points(self) -> List[Point2D]:
        """Points to visit, with the closing vertex repeated for loops."""
        if self.closed:
            return list(self.points) + [self.points[0]]
        return list(self.points)

    def reversed(self) -> "LineSegment":
        """Return a new segment traversed in the opposite direction."""
        return LineSegment(tuple(reversed(self.points)), self.flow, self.closed)

    def starting_at(self, index: int) -> "LineSegment":
        """Rotate a closed loop so that it starts at vertex ``index``."""
        if not self.closed:
            raise ValueError("Only closed loops can be rotated")
        pts = self.points[index:] + self.points[:index]
        return LineSegment(pts, self.flow, True)


@dataclass
class ToolpathSegment:
    """
    Represents a single move of a layer plan.

    Attributes:
        points: List of 3D points defining the path
        type: Type of toolpath segment
        layer_index: Index of the layer this segment belongs to
        extrusion_width: Width of extruded material (mm)
        speed: Movement speed (mm/s)
        flow_rate: Effective flow multiplier (0 for travel)
        metadata: Additional process-specific data
    """

    points: List[Point]
    type: ToolpathType
    layer_index: int
    extrusion_width: float = 0.4
    speed: float = 20.0
    flow_rate: float = 1.0
    metadata: dict = field(default_factory=dict)

    @property
    def is_extrusion(self) -> bool:
        return self.type != ToolpathType.TRAVEL and self.flow_rate > 0

    def get_length(self) -> float:
        """Calculate total length of the segment."""
        if len(self.points) < 2:
            return 0.0
        pts = np.array([[p.x, p.y, p.z] for p in self.points], dtype=float)
        return float(np.sum(np.linalg.norm(np.diff(pts, axis=0), axis=1)))

    def get_start_point(self) -> Point:
        """Get the starting point of the segment."""
        if not self.points:
            raise ValueError("Segment has no points")
        return self.points[0]

    def get_end_point(self) -> Point:
        """Get the ending point of the segment."""
        if not self.points:
            raise ValueError("Segment has no points")
        return self.points[-1]


@dataclass
class LayerPlan:
    """
    Output plan of one layer, owned by the caller.

    Moves are only ever appended. A plan may be shared by several meshes
    ironed on different threads; a writer that reads ``last_position`` and
    then appends moves starting there must hold ``locked()`` for the whole
    sequence, so the batch continues from the move it was planned against.

    Attributes:
        layer_index: Index of the layer
        z: Print height of the layer (mm)
        start_position: Nozzle position before the first move, if known
        travel_speed: Speed used for travel moves (mm/s)
        segments: Planned moves, in print order
    """

    layer_index: int
    z: float = 0.0
    start_position: Optional[Point2D] = None
    travel_speed: float = 150.0
    segments: List[ToolpathSegment] = field(default_factory=list)
    metadata: dict = field(default_factory=dict)
    _lock: threading.RLock = field(default_factory=threading.RLock, init=False, repr=False, compare=False)

    @contextmanager
    def locked(self) -> Iterator["LayerPlan"]:
        """Hold the plan exclusively, e.g. from reading the position to appending."""
        with self._lock:
            yield self

    @property
    def last_position(self) -> Optional[Point2D]:
        """Last planned position, or the starting position if nothing is planned."""
        with self._lock:
            if self.segments:
                end = self.segments[-1].get_end_point()
                return (end.x, end.y)
            return self.start_position

    def to_point(self, point: Point2D) -> Point:
        return Point(point[0], point[1], self.z)

    def make_travel(self, start: Point2D, end: Point2D) -> ToolpathSegment:
        return ToolpathSegment(
            points=[self.to_point(start), self.to_point(end)],
            type=ToolpathType.TRAVEL,
            layer_index=self.layer_index,
            speed=self.travel_speed,
            flow_rate=0.0,
        )

    def make_extrusion(
        self,
        points: Sequence[Point2D],
        extrusion_width: float,
        speed: float,
        flow_rate: float,
    ) -> ToolpathSegment:
        return ToolpathSegment(
            points=[self.to_point(p) for p in points],
            type=ToolpathType.IRONING,
            layer_index=self.layer_index,
            extrusion_width=extrusion_width,
            speed=speed,
            flow_rate=flow_rate,
        )

    def extend(self, segments: Iterable[ToolpathSegment]) -> None:
        """Append a batch of moves atomically."""
        batch = list(segments)
        if not batch:
            return
        with self._lock:
            self.segments.extend(batch)

    def get_segments_by_type(self, seg_type: ToolpathType) -> List[ToolpathSegment]:
        """Get all segments of a specific type."""
        return [seg for seg in self.segments if seg.type == seg_type]

    def get_total_length(self, seg_type: Optional[ToolpathType] = None) -> float:
        """Calculate total plan length, optionally for one segment type."""
        return sum(
            seg.get_length() for seg in self.segments
            if seg_type is None or seg.type == seg_type
        )

    def get_build_time_estimate(self) -> float:
        """
        Estimate layer time in seconds.

        Assumes constant speed for each segment.
        """
        total_time = 0.0
        for seg in self.segments:
            length = seg.get_length()
            if seg.speed > 0:
                total_time += length / seg.speed

        return total_time
