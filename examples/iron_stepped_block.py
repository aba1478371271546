"""
Demonstration of OpenIron top surface detection and ironing.

This script shows how to:
1. Describe a sliced mesh as per-layer outlines
2. Extract top surfaces for every layer
3. Generate ironing into per-layer plans
4. Inspect the result
"""

import math

from openiron.core.config import FillPattern, IroningConfig, LineConfig
from openiron.core.geometry import PolygonSet
from openiron.core.logging import configure_logging
from openiron.pipeline import IroningPipeline, MeshJob
from openiron.slicing.top_surface import MeshLayers
from openiron.slicing.toolpath import LayerPlan, ToolpathType


def stepped_block() -> MeshLayers:
    """A 30x30 mm block, 10 layers tall, with a 10x10 mm tower on top."""
    base = PolygonSet.rectangle(0, 0, 30, 30)
    tower = PolygonSet.rectangle(10, 10, 20, 20)
    outlines = [base] * 10 + [tower] * 5
    return MeshLayers.from_outlines("stepped_block", outlines, layer_height=0.2)


def main():
    """Run ironing demonstration."""
    configure_logging(level="INFO")

    print("=" * 60)
    print("OpenIron Ironing Demo")
    print("=" * 60)

    layers = stepped_block()
    config = IroningConfig(
        enabled=True,
        pattern=FillPattern.ZIGZAG,
        line_spacing=0.4,
        flow_ratio=0.1,
        skin_angles=[math.radians(45), math.radians(135)],
    )
    plans = {
        n: LayerPlan(layer_index=n, z=layers.layer_z(n))
        for n in range(layers.layer_count)
    }

    print(f"\n1. Mesh '{layers.name}': {layers.layer_count} layers")

    pipeline = IroningPipeline(max_workers=4)
    result = pipeline.run([MeshJob(layers, config, LineConfig(line_width=0.4))], plans)

    print("\n2. Top surfaces")
    surface = result.top_surfaces[layers.name]
    for n, area in enumerate(surface.areas):
        if area is not None and not area.is_empty:
            print(f"   [OK] Layer {n}: {area.area():.1f} mm^2 exposed")

    print("\n3. Ironing")
    for unit in result.layer_results:
        if unit.did_work:
            plan = plans[unit.layer_number]
            ironed = plan.get_total_length(ToolpathType.IRONING)
            travel = plan.get_total_length(ToolpathType.TRAVEL)
            print(
                f"   [OK] Layer {unit.layer_number}: {unit.segment_count} strokes, "
                f"{ironed:.1f} mm ironed, {travel:.1f} mm travel"
            )

    print(f"\n   Assembled layers: {result.assembled_layers}")
    print(f"   Errors: {result.errors or 'none'}")


if __name__ == "__main__":
    main()
