"""
Tests for the ironing pipeline orchestrator.

Tests cover step chaining, per-layer partial failure, cancellation, progress
callbacks, and result structure on small synthetic meshes.
"""

import threading

import pytest

from openiron.core.config import FillPattern, IroningConfig, LineConfig
from openiron.core.geometry import PolygonSet
from openiron.pipeline import IroningPipeline, MeshJob, PipelineResult
from openiron.slicing.ironing import IroningState
from openiron.slicing.top_surface import MeshLayers, TopSurface
from openiron.slicing.toolpath import LayerPlan, ToolpathType


@pytest.fixture
def config():
    return IroningConfig(
        enabled=True,
        pattern=FillPattern.RASTER,
        line_spacing=1.0,
        inset_distance=0.0,
    )


@pytest.fixture
def stepped(square, center_square):
    return MeshLayers.from_outlines("stepped", [square, square, center_square, center_square])


@pytest.fixture
def plans():
    return {n: LayerPlan(layer_index=n, z=0.2 * (n + 1)) for n in range(4)}


@pytest.mark.unit
class TestPipelineResult:
    def test_defaults(self):
        result = PipelineResult(success=False)
        assert result.top_surfaces == {}
        assert result.layer_results == []
        assert result.errors == []
        assert result.assembled_layers == 0
        assert result.cancelled is False


@pytest.mark.unit
class TestPipelineExecution:
    def test_full_run(self, stepped, config, plans):
        """Top surfaces then ironing, for every layer with a plan."""
        result = IroningPipeline(max_workers=4).run([MeshJob(stepped, config)], plans)

        assert result.success is True
        assert [s.name for s in result.steps] == ["top_surface", "ironing"]
        assert all(s.success for s in result.steps)
        assert "top_surface" in result.timings
        assert "ironing" in result.timings
        assert result.errors == []

        surface = result.top_surfaces["stepped"]
        assert all(surface.is_computed(n) for n in range(4))
        assert surface.area(1).area() == pytest.approx(84.0)

        states = {r.layer_number: r.state for r in result.layer_results}
        assert states == {
            0: IroningState.SKIPPED,
            1: IroningState.ASSEMBLED,
            2: IroningState.SKIPPED,
            3: IroningState.ASSEMBLED,
        }
        assert result.assembled_layers == 2
        assert plans[0].segments == []
        assert plans[1].get_segments_by_type(ToolpathType.IRONING)
        assert plans[3].get_segments_by_type(ToolpathType.IRONING)

    def test_parallel_matches_sequential(self, stepped, config):
        """Worker count does not change the output."""
        outputs = []
        for workers in (1, 4):
            run_plans = {n: LayerPlan(layer_index=n) for n in range(4)}
            IroningPipeline(max_workers=workers).run([MeshJob(stepped, config)], run_plans)
            outputs.append([
                [(p.x, p.y) for seg in run_plans[n].segments for p in seg.points]
                for n in range(4)
            ])
        assert outputs[0] == outputs[1]

    def test_disabled_mesh_writes_nothing(self, stepped, plans):
        result = IroningPipeline().run([MeshJob(stepped, IroningConfig())], plans)

        assert result.success is True
        assert result.assembled_layers == 0
        assert all(r.reason == "disabled" for r in result.layer_results)
        assert all(plan.segments == [] for plan in plans.values())

    def test_layers_without_plan_are_not_ironed(self, stepped, config):
        plans = {3: LayerPlan(layer_index=3)}
        result = IroningPipeline().run([MeshJob(stepped, config)], plans)

        assert [r.layer_number for r in result.layer_results] == [3]
        # Top surfaces are still computed for every layer.
        assert all(result.top_surfaces["stepped"].is_computed(n) for n in range(4))

    def test_two_meshes_share_plans(self, stepped, config, plans):
        other = MeshLayers.from_outlines(
            "tile", [PolygonSet.rectangle(20, 0, 25, 5)] * 2,
        )
        result = IroningPipeline(max_workers=2).run(
            [MeshJob(stepped, config), MeshJob(other, config, LineConfig(line_width=0.5))],
            plans,
        )

        assert set(result.top_surfaces) == {"stepped", "tile"}
        assert result.assembled_layers == 3
        widths = {seg.extrusion_width for seg in plans[1].get_segments_by_type(ToolpathType.IRONING)}
        assert widths == {0.4, 0.5}

    def test_shared_plan_stays_continuous(self, config):
        """Meshes ironed concurrently into one plan never break the move chain."""
        fine = config.model_copy(update={"line_spacing": 0.2})
        jobs = [
            MeshJob(MeshLayers.from_outlines(f"tile{i}", [PolygonSet.rectangle(
                15 * (i % 4), 15 * (i // 4), 15 * (i % 4) + 10, 15 * (i // 4) + 10,
            )]), fine)
            for i in range(12)
        ]
        plan = LayerPlan(layer_index=0)

        result = IroningPipeline(max_workers=8).run(jobs, {0: plan})

        assert result.assembled_layers == 12
        position = plan.start_position
        for seg in plan.segments:
            start = seg.get_start_point()
            assert abs(start.x - position[0]) < 1e-3
            assert abs(start.y - position[1]) < 1e-3
            end = seg.get_end_point()
            position = (end.x, end.y)

    def test_duplicate_mesh_names_rejected(self, stepped, config, plans):
        result = IroningPipeline().run([MeshJob(stepped, config), MeshJob(stepped, config)], plans)

        assert result.success is False
        assert "Duplicate mesh names" in result.errors[0]
        assert result.steps == []

    def test_unit_failure_is_isolated(self, stepped, config, plans, monkeypatch):
        """A crashing layer is recorded; the others still complete."""
        import openiron.pipeline as pipeline_module

        real_iron_layer = pipeline_module.iron_layer

        def flaky(surface, layers, layer_number, *args):
            if layer_number == 1:
                raise RuntimeError("boom")
            return real_iron_layer(surface, layers, layer_number, *args)

        monkeypatch.setattr(pipeline_module, "iron_layer", flaky)
        result = IroningPipeline().run([MeshJob(stepped, config)], plans)

        assert result.success is True
        failed = [r for r in result.layer_results if r.state == IroningState.FAILED]
        assert [r.layer_number for r in failed] == [1]
        assert failed[0].error == "boom"
        assert len(result.errors) == 1
        assert "stepped layer 1" in result.errors[0]
        assert result.assembled_layers == 1
        assert plans[1].segments == []

    def test_top_surface_failure_stops_pipeline(self, stepped, config, plans, monkeypatch):
        def broken(self, layers, layer_number, spiralize=False):
            raise RuntimeError("bad outline")

        monkeypatch.setattr(TopSurface, "set_areas_from_layers", broken)
        result = IroningPipeline().run([MeshJob(stepped, config)], plans)

        assert result.success is False
        assert len(result.steps) == 1
        assert not result.steps[0].success
        assert "Top surface extraction failed" in result.errors[0]
        assert result.layer_results == []


@pytest.mark.unit
class TestPipelineControl:
    def test_progress_callback(self, stepped, config, plans):
        """Progress is reported per step, ending at 1.0."""
        calls = []
        pipeline = IroningPipeline(progress_callback=lambda step, pct: calls.append((step, pct)))
        pipeline.run([MeshJob(stepped, config)], plans)

        steps = {step for step, _ in calls}
        assert steps == {"top_surface", "ironing"}
        assert ("top_surface", 0.0) in calls
        assert ("ironing", 1.0) in calls
        assert all(0.0 <= pct <= 1.0 for _, pct in calls)

    def test_cancel_before_run(self, stepped, config, plans):
        """A cancelled pipeline schedules no work and writes nothing."""
        event = threading.Event()
        pipeline = IroningPipeline(cancel_event=event)
        pipeline.cancel()
        assert event.is_set()

        result = pipeline.run([MeshJob(stepped, config)], plans)

        assert result.success is True
        assert result.cancelled is True
        assert result.layer_results == []
        assert all(plan.segments == [] for plan in plans.values())

    def test_cancel_during_ironing_keeps_finished_layers(self, stepped, config, plans):
        """Layers done before cancellation stay valid."""
        def on_progress(step, pct):
            if step == "ironing" and 0.0 < pct < 1.0:
                pipeline.cancel()

        pipeline = IroningPipeline(max_workers=1, progress_callback=on_progress)
        result = pipeline.run([MeshJob(stepped, config)], plans)

        assert result.success is True
        assert result.cancelled is True
        assert result.layer_results
        assert all(r.is_terminal for r in result.layer_results)
