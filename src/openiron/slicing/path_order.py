"""
Path ordering and flow assembly for ironing lines.

Turns the unordered segments of a fill pattern into one traversal, flags the
gaps between them as travel or extrusion, scales the flow, and appends the
result to a layer plan.

Two orderings are available:
- nearest neighbour: greedy, bi-directional, starting from the plan's last
  position; minimises travel.
- monotonic: sorted across the fill direction so the nozzle never drags back
  over lines it has just smoothed.
"""

from __future__ import annotations

import logging
import math
from typing import List, Optional, Sequence

import numpy as np

from openiron.core.config import LineConfig
from openiron.core.geometry import Point2D
from openiron.slicing.toolpath import LayerPlan, LineSegment, ToolpathSegment

logger = logging.getLogger(__name__)

# Gaps below this (mm) need no move at all.
COINCIDENT_DISTANCE = 1e-3


def _orient_towards(segment: LineSegment, position: Optional[Point2D]) -> LineSegment:
    """Start an open segment at its end nearest ``position``; rotate a loop to its nearest vertex."""
    if position is None:
        return segment
    if segment.closed:
        pts = np.asarray(segment.points, dtype=float)
        nearest = int(np.argmin(np.hypot(pts[:, 0] - position[0], pts[:, 1] - position[1])))
        return segment.starting_at(nearest)
    if math.dist(segment.end, position) < math.dist(segment.start, position):
        return segment.reversed()
    return segment


def order_nearest_neighbor(
    segments: Sequence[LineSegment], start: Optional[Point2D] = None,
) -> List[LineSegment]:
    """
    Order segments by greedy nearest neighbour with bi-directional check.

    Open segments may be traversed from either end; closed loops may start at
    any vertex. The input sequence is not modified.
    """
    remaining = list(segments)
    if not remaining:
        return []

    ordered: List[LineSegment] = []
    if start is None:
        current = remaining.pop(0)
    else:
        current = None

    if current is not None:
        ordered.append(current)
        position: Optional[Point2D] = current.path_points()[-1]
    else:
        position = start

    # Candidate entry points: both ends for open segments, every vertex for loops.
    entries = [np.asarray(s.points if s.closed else (s.start, s.end), dtype=float) for s in remaining]
    alive = [True] * len(remaining)

    for _ in range(len(remaining)):
        best_idx = -1
        best_dist = float("inf")
        px, py = position
        for idx, pts in enumerate(entries):
            if not alive[idx]:
                continue
            dist = float(np.min(np.hypot(pts[:, 0] - px, pts[:, 1] - py)))
            if dist < best_dist:
                best_dist = dist
                best_idx = idx
        alive[best_idx] = False
        chosen = _orient_towards(remaining[best_idx], position)
        ordered.append(chosen)
        position = chosen.path_points()[-1]

    return ordered


def order_monotonic(
    segments: Sequence[LineSegment], angle: float, start: Optional[Point2D] = None,
) -> List[LineSegment]:
    """
    Order segments monotonically across the fill direction.

    Segments are sorted by their position on the axis perpendicular to
    ``angle`` (then along it), and each is entered from the end nearest the
    current position. The sweep begins on the side of the segments nearest
    ``start``: it runs in decreasing order across the fill direction when
    ``start`` lies beyond the middle of their extent.
    """
    cos_a = math.cos(angle)
    sin_a = math.sin(angle)

    spans = []
    for segment in segments:
        pts = np.asarray(segment.points, dtype=float)
        across = pts[:, 0] * -sin_a + pts[:, 1] * cos_a
        along = pts[:, 0] * cos_a + pts[:, 1] * sin_a
        # Snap to the 1 µm grid so lines on one scanline share a key.
        spans.append((
            round(float(across.min()), 3),
            round(float(across.max()), 3),
            round(float(along.min()), 3),
            segment,
        ))
    if not spans:
        return []

    descending = False
    if start is not None:
        middle = (min(s[0] for s in spans) + max(s[1] for s in spans)) / 2.0
        descending = start[0] * -sin_a + start[1] * cos_a > middle

    if descending:
        spans.sort(key=lambda s: (-s[1], s[2]))
    else:
        spans.sort(key=lambda s: (s[0], s[2]))

    ordered: List[LineSegment] = []
    position = start
    for *_, segment in spans:
        chosen = _orient_towards(segment, position)
        ordered.append(chosen)
        position = chosen.path_points()[-1]
    return ordered


def assemble(
    segments: Sequence[LineSegment],
    line_config: LineConfig,
    flow_ratio: float,
    monotonic: bool,
    plan: LayerPlan,
    connect_distance: float = 0.0,
    angle: float = 0.0,
    speed: Optional[float] = None,
    entry: Optional[Point2D] = None,
) -> bool:
    """
    Order ironing segments and append them to a layer plan.

    Every extrusion move carries ``flow_ratio * line_config.flow`` (times the
    segment's own relative flow tag, 1.0 for regular passes). A gap between
    consecutive segments up to ``connect_distance`` is bridged by an
    extruded connector; a longer gap gets a travel move.

    The plan is held locked from reading its last position to appending the
    batch, and nothing is written until every move has been built.

    Parameters:
        segments: Raw pattern segments; not modified.
        line_config: Default width, speed and flow of ironing lines.
        flow_ratio: Ironing flow multiplier.
        monotonic: Order across the fill direction instead of by distance.
        plan: Layer plan to append to.
        connect_distance: Longest gap bridged by extrusion (mm).
        angle: Fill direction (radians), used for monotonic ordering.
        speed: Ironing speed overriding ``line_config.speed``.
        entry: Point to travel to before the first segment; ordering starts
            from there. Becomes the plan's start position if it has none.

    Returns:
        True if any extrusion was appended; False (plan untouched) when there
        were no segments.
    """
    if not segments:
        return False

    base_flow = flow_ratio * line_config.flow
    move_speed = speed if speed is not None else line_config.speed
    width = line_config.line_width

    with plan.locked():
        position = plan.last_position
        start_position = plan.start_position
        moves: List[ToolpathSegment] = []
        travel_distance = 0.0

        if entry is not None:
            if position is None:
                start_position = entry
            elif math.dist(position, entry) > COINCIDENT_DISTANCE:
                moves.append(plan.make_travel(position, entry))
                travel_distance += math.dist(position, entry)
            position = entry

        if monotonic:
            ordered = order_monotonic(segments, angle, position)
        else:
            ordered = order_nearest_neighbor(segments, position)

        for segment in ordered:
            pts = segment.path_points()
            flow = base_flow * segment.flow
            if position is not None:
                gap = math.dist(position, pts[0])
                if gap <= COINCIDENT_DISTANCE:
                    pass
                elif gap <= connect_distance:
                    moves.append(plan.make_extrusion([position, pts[0]], width, move_speed, flow))
                else:
                    moves.append(plan.make_travel(position, pts[0]))
                    travel_distance += gap
            moves.append(plan.make_extrusion(pts, width, move_speed, flow))
            position = pts[-1]

        plan.start_position = start_position
        plan.extend(moves)

    logger.debug(
        "Assembled %d ironing segments on layer %d (%.2f mm travel)",
        len(ordered), plan.layer_index, travel_distance,
    )
    return True
