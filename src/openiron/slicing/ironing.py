"""
Per-layer ironing of one mesh.

Drives a single (mesh, layer) unit of work through its states:

    PENDING → TOP_SURFACE_COMPUTED → SKIPPED
                                   → PATTERN_GENERATED → ASSEMBLED

with FAILED reachable from any non-terminal state. Failures of one layer are
caught here and reported in its ``LayerResult``; they never reach the plan
and never affect other layers.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet, Optional

from pydantic import ValidationError

from openiron.core.config import FillPattern, IroningConfig, LineConfig
from openiron.core.exceptions import IroningStateError, OpenIronError
from openiron.core.geometry import Point2D, PolygonSet
from openiron.core.logging import get_logger, layer_context
from openiron.slicing.ironing_patterns import generate_pattern
from openiron.slicing.path_order import assemble
from openiron.slicing.top_surface import MeshLayers, TopSurface
from openiron.slicing.toolpath import LayerPlan

logger = get_logger(__name__)


class IroningState(Enum):
    """State of one (mesh, layer) ironing unit."""

    PENDING = "pending"
    TOP_SURFACE_COMPUTED = "top_surface_computed"
    SKIPPED = "skipped"
    PATTERN_GENERATED = "pattern_generated"
    ASSEMBLED = "assembled"
    FAILED = "failed"


_TRANSITIONS: Dict[IroningState, FrozenSet[IroningState]] = {
    IroningState.PENDING: frozenset({IroningState.TOP_SURFACE_COMPUTED, IroningState.FAILED}),
    IroningState.TOP_SURFACE_COMPUTED: frozenset({
        IroningState.SKIPPED, IroningState.PATTERN_GENERATED, IroningState.FAILED,
    }),
    IroningState.PATTERN_GENERATED: frozenset({IroningState.ASSEMBLED, IroningState.FAILED}),
    IroningState.SKIPPED: frozenset(),
    IroningState.ASSEMBLED: frozenset(),
    IroningState.FAILED: frozenset(),
}


@dataclass
class LayerResult:
    """Outcome of ironing one layer of one mesh."""

    mesh_name: str
    layer_number: int
    state: IroningState = IroningState.PENDING
    reason: Optional[str] = None
    error: Optional[str] = None
    segment_count: int = 0

    @property
    def is_terminal(self) -> bool:
        return not _TRANSITIONS[self.state]

    @property
    def did_work(self) -> bool:
        return self.state == IroningState.ASSEMBLED

    def advance(self, state: IroningState) -> None:
        """
        Move to ``state``.

        Raises:
            IroningStateError: If the transition is not allowed.
        """
        if state not in _TRANSITIONS[self.state]:
            raise IroningStateError(
                f"Illegal ironing transition {self.state.value} -> {state.value}",
                layer_number=self.layer_number,
                details={"mesh": self.mesh_name},
            )
        self.state = state

    def skip(self, reason: str) -> None:
        self.advance(IroningState.SKIPPED)
        self.reason = reason

    def fail(self, error: str) -> None:
        self.advance(IroningState.FAILED)
        self.error = error


def skip_reason(
    config: IroningConfig, layers: MeshLayers, layer_number: int, area: PolygonSet,
) -> Optional[str]:
    """Why a layer is not ironed, or None if it should be."""
    if not config.enabled:
        return "disabled"
    if config.skip_first_layer and layer_number == 0:
        return "first_layer"
    if config.only_highest_layer and layer_number != layers.highest_filled_layer():
        return "not_highest_layer"
    if area.is_empty:
        return "no_top_surface"
    return None


def start_side(
    area: PolygonSet, angle: float, position: Optional[Point2D],
) -> Optional[Point2D]:
    """
    Vertex of the area where the line sweep should begin.

    The two candidates are the vertices farthest apart across the ironing
    lines; the one nearer the nozzle wins, so the pass sweeps across the
    surface in one direction instead of starting in the middle. Without a
    known position the front (lowest across) side is used.
    """
    perp_x = -math.sin(angle)
    perp_y = math.cos(angle)
    vertices = list(area.vertices())
    if not vertices:
        return None
    front = min(vertices, key=lambda p: p[0] * perp_x + p[1] * perp_y)
    back = max(vertices, key=lambda p: p[0] * perp_x + p[1] * perp_y)

    if position is None or math.dist(position, front) <= math.dist(position, back):
        return front
    return back


def iron_layer(
    top_surface: TopSurface,
    layers: MeshLayers,
    layer_number: int,
    config: IroningConfig,
    line_config: LineConfig,
    plan: LayerPlan,
) -> LayerResult:
    """
    Generate ironing for one layer of a mesh and append it to the layer plan.

    The layer's top surface is computed on demand if it has not been already.

    Parameters:
        top_surface: The mesh's top surface slots.
        layers: The mesh's finalized layer outlines.
        layer_number: Layer to iron.
        config: Mesh-level ironing settings.
        line_config: Default width, speed and flow of ironing lines.
        plan: Output plan of the layer.

    Returns:
        LayerResult in a terminal state.
    """
    result = LayerResult(mesh_name=layers.name, layer_number=layer_number)
    with layer_context(layers.name, layer_number):
        try:
            if not top_surface.is_computed(layer_number):
                top_surface.set_areas_from_layers(layers, layer_number, config.spiralize)
            area = top_surface.area(layer_number)
            result.advance(IroningState.TOP_SURFACE_COMPUTED)

            reason = skip_reason(config, layers, layer_number, area)
            if reason is not None:
                result.skip(reason)
                logger.debug("ironing_layer_skipped", reason=reason)
                return result

            pattern_config = config.pattern_config(layer_number, line_config.line_width)
            segments = generate_pattern(area, pattern_config)
            if not segments:
                result.skip("no_segments")
                logger.debug("ironing_layer_skipped", reason="no_segments")
                return result
            result.advance(IroningState.PATTERN_GENERATED)
            result.segment_count = len(segments)

            with plan.locked():
                entry = None
                if pattern_config.pattern in (FillPattern.RASTER, FillPattern.ZIGZAG):
                    entry = start_side(area, pattern_config.angle, plan.last_position)
                assemble(
                    segments,
                    line_config,
                    config.flow_ratio,
                    config.monotonic,
                    plan,
                    connect_distance=config.connect_distance,
                    angle=pattern_config.angle,
                    speed=config.speed,
                    entry=entry,
                )
            result.advance(IroningState.ASSEMBLED)
            logger.info("ironing_layer_assembled", segments=len(segments))
        except (OpenIronError, ValidationError) as e:
            result.fail(str(e))
            logger.error("ironing_layer_failed", error=str(e))
    return result
