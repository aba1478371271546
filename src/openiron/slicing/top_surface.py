"""
Top Surface Extractor — regions of each layer exposed to open air.

The top surface of layer ``n`` is everything printed on layer ``n`` that is
not covered by layer ``n + 1``. For the top-most layer the whole outline is
top surface.

Each layer's result depends only on two finalized, read-only layer outlines
and is written into its own slot of ``TopSurface.areas``, so layers can be
computed in any order and in parallel.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Executor
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from openiron.core.exceptions import TopSurfaceError
from openiron.core.geometry import PolygonSet
from openiron.slicing.polygon_ops import difference

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MeshLayers:
    """
    Finalized per-layer outlines of one mesh, as produced by the slicer.

    Attributes:
        name: Mesh name, used in logs and results.
        outlines: One PolygonSet per layer, bottom to top.
        layer_height: Height of each layer (mm).
        first_layer_height: Height of layer 0 (mm); defaults to layer_height.
    """

    name: str
    outlines: Tuple[PolygonSet, ...]
    layer_height: float = 0.2
    first_layer_height: Optional[float] = None

    @classmethod
    def from_outlines(
        cls, name: str, outlines: Sequence[PolygonSet], layer_height: float = 0.2,
    ) -> "MeshLayers":
        return cls(name=name, outlines=tuple(outlines), layer_height=layer_height)

    @property
    def layer_count(self) -> int:
        return len(self.outlines)

    def outline(self, layer_number: int) -> PolygonSet:
        if not 0 <= layer_number < self.layer_count:
            raise IndexError(
                f"Layer {layer_number} out of range for mesh '{self.name}' "
                f"with {self.layer_count} layers"
            )
        return self.outlines[layer_number]

    def layer_z(self, layer_number: int) -> float:
        """Z height of the top of a layer."""
        first = self.first_layer_height if self.first_layer_height is not None else self.layer_height
        return first + layer_number * self.layer_height

    def highest_filled_layer(self) -> Optional[int]:
        """Index of the highest layer with a non-empty outline."""
        for layer_number in range(self.layer_count - 1, -1, -1):
            if not self.outlines[layer_number].is_empty:
                return layer_number
        return None


def compute_top_surface(
    layer_area: PolygonSet, layer_above: Optional[PolygonSet],
) -> PolygonSet:
    """
    Top surface of a layer given the layer directly above it.

    Parameters:
        layer_area: Outline of the layer.
        layer_above: Outline of the next layer up, or None when there is no
            layer above.

    Returns:
        ``layer_area`` unchanged when there is no layer above, otherwise
        ``layer_area`` minus ``layer_above``.
    """
    if layer_above is None:
        return layer_area
    return difference(layer_area, layer_above)


class TopSurface:
    """
    Top surface areas of one mesh, one write-once slot per layer.

    The slot array is sized to the mesh's layer count up front. A slot is
    ``None`` until computed; after that it never changes.
    """

    def __init__(self, layer_count: int):
        if layer_count < 0:
            raise TopSurfaceError("Layer count cannot be negative", details={"layer_count": layer_count})
        self._areas: List[Optional[PolygonSet]] = [None] * layer_count
        self._lock = threading.Lock()

    @classmethod
    def for_mesh(cls, layers: MeshLayers) -> "TopSurface":
        return cls(layers.layer_count)

    @property
    def layer_count(self) -> int:
        return len(self._areas)

    @property
    def areas(self) -> Tuple[Optional[PolygonSet], ...]:
        """Snapshot of all slots; unset slots are None."""
        return tuple(self._areas)

    def is_computed(self, layer_number: int) -> bool:
        self._check_index(layer_number)
        return self._areas[layer_number] is not None

    def area(self, layer_number: int) -> PolygonSet:
        """
        Top surface of a layer.

        Raises:
            TopSurfaceError: If the layer has not been computed yet.
        """
        self._check_index(layer_number)
        area = self._areas[layer_number]
        if area is None:
            raise TopSurfaceError(
                f"Top surface for layer {layer_number} has not been computed",
                layer_number=layer_number,
            )
        return area

    def store(self, layer_number: int, area: PolygonSet) -> PolygonSet:
        """
        Write a layer's slot once.

        Storing an identical value again is a no-op, which keeps recomputation
        idempotent. Storing a different value raises.
        """
        self._check_index(layer_number)
        with self._lock:
            current = self._areas[layer_number]
            if current is None:
                self._areas[layer_number] = area
                return area
        if current != area:
            raise TopSurfaceError(
                f"Top surface for layer {layer_number} is already set",
                layer_number=layer_number,
            )
        return current

    def set_areas_from_layers(
        self, layers: MeshLayers, layer_number: int, spiralize: bool = False,
    ) -> PolygonSet:
        """
        Compute and store the top surface of one layer.

        In spiralize (vase) mode the model is printed as a single wall, so
        whether air is above a layer says nothing useful; only the top-most
        layer gets its full outline and every other layer is empty.

        Parameters:
            layers: The mesh's finalized layer outlines.
            layer_number: Layer to compute.
            spiralize: Whether the mesh is printed in spiralize mode.

        Returns:
            The stored top surface.
        """
        is_top = layer_number == layers.layer_count - 1
        if spiralize:
            area = layers.outline(layer_number) if is_top else PolygonSet.empty()
        else:
            above = None if is_top else layers.outline(layer_number + 1)
            area = compute_top_surface(layers.outline(layer_number), above)

        logger.debug(
            "Top surface %s layer %d: %d rings, %.3f mm^2",
            layers.name, layer_number, len(area), area.area(),
        )
        return self.store(layer_number, area)

    def compute_all(
        self,
        layers: MeshLayers,
        spiralize: bool = False,
        executor: Optional[Executor] = None,
    ) -> None:
        """
        Fill every slot that is not yet computed.

        Slots are independent, so with an executor they are computed
        concurrently. Slots already filled are left as they are.
        """
        if layers.layer_count != self.layer_count:
            raise TopSurfaceError(
                "Layer count mismatch",
                details={"top_surface": self.layer_count, "mesh": layers.layer_count},
            )
        pending = [n for n in range(self.layer_count) if self._areas[n] is None]
        if executor is None:
            for layer_number in pending:
                self.set_areas_from_layers(layers, layer_number, spiralize)
            return

        futures = [
            executor.submit(self.set_areas_from_layers, layers, n, spiralize)
            for n in pending
        ]
        for future in futures:
            future.result()

    def _check_index(self, layer_number: int) -> None:
        if not 0 <= layer_number < self.layer_count:
            raise TopSurfaceError(
                f"Layer {layer_number} out of range",
                layer_number=layer_number,
                details={"layer_count": self.layer_count},
            )
