"""
Pipeline orchestrator for ironing a whole slice.

Chains, per mesh: top surface extraction for every layer -> ironing of every
layer into that layer's plan.

Every (mesh, layer) unit only reads finalized outlines and writes its own
top surface slot and its own plan, so units run in parallel on a thread
pool. A failing unit is recorded and the rest carry on. Cancelling (through
``cancel_event``) stops scheduling further units; finished units remain
valid.
"""

import threading
import time
from concurrent.futures import Executor, ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from openiron.core.config import IroningConfig, LineConfig
from openiron.core.logging import get_logger
from openiron.slicing.ironing import IroningState, LayerResult, iron_layer
from openiron.slicing.top_surface import MeshLayers, TopSurface
from openiron.slicing.toolpath import LayerPlan

logger = get_logger(__name__)


@dataclass
class MeshJob:
    """One mesh to iron, with its own settings."""

    layers: MeshLayers
    config: IroningConfig
    line_config: LineConfig = field(default_factory=LineConfig)


@dataclass
class StepResult:
    """Result of a single pipeline step."""

    name: str
    success: bool
    data: Any = None
    error: Optional[str] = None
    duration_s: float = 0.0


@dataclass
class PipelineResult:
    """Result of a complete ironing run."""

    success: bool
    top_surfaces: Dict[str, TopSurface] = field(default_factory=dict)
    layer_results: List[LayerResult] = field(default_factory=list)
    steps: List[StepResult] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    timings: Dict[str, float] = field(default_factory=dict)
    cancelled: bool = False

    def count(self, state: IroningState) -> int:
        return sum(1 for r in self.layer_results if r.state == state)

    @property
    def assembled_layers(self) -> int:
        return self.count(IroningState.ASSEMBLED)


# Type alias for progress callback: (step_name, fraction 0.0-1.0)
ProgressCallback = Callable[[str, float], None]


def _noop_callback(step: str, pct: float) -> None:
    pass


class IroningPipeline:
    """Top surface + ironing orchestrator for a set of meshes.

    Usage:
        pipeline = IroningPipeline(max_workers=4)
        plans = {n: LayerPlan(layer_index=n, z=z_of(n)) for n in range(layer_count)}
        result = pipeline.run([MeshJob(layers, config)], plans)
    """

    def __init__(
        self,
        max_workers: Optional[int] = None,
        progress_callback: Optional[ProgressCallback] = None,
        cancel_event: Optional[threading.Event] = None,
    ):
        self._max_workers = max_workers
        self._progress = progress_callback or _noop_callback
        self._cancel = cancel_event or threading.Event()

    def cancel(self) -> None:
        """Stop scheduling new units of work."""
        self._cancel.set()

    def run(self, jobs: Sequence[MeshJob], plans: Mapping[int, LayerPlan]) -> PipelineResult:
        """Compute top surfaces and ironing for every mesh and layer.

        Args:
            jobs: Meshes to process.
            plans: Output plan per layer index, shared by all meshes on that
                layer. Layers without a plan are not ironed.

        Returns:
            PipelineResult with one LayerResult per processed unit.
        """
        result = PipelineResult(success=False)
        names = [job.layers.name for job in jobs]
        if len(set(names)) != len(names):
            result.errors.append(f"Duplicate mesh names: {names}")
            return result

        with ThreadPoolExecutor(max_workers=self._max_workers) as executor:
            step = self._run_step(
                "top_surface",
                lambda: self._compute_top_surfaces(jobs, executor),
            )
            result.steps.append(step)
            result.timings["top_surface"] = step.duration_s
            if not step.success:
                result.errors.append(f"Top surface extraction failed: {step.error}")
                return result
            result.top_surfaces = step.data

            step = self._run_step(
                "ironing",
                lambda: self._iron_layers(jobs, result.top_surfaces, plans, executor),
            )
            result.steps.append(step)
            result.timings["ironing"] = step.duration_s
            if not step.success:
                result.errors.append(f"Ironing failed: {step.error}")
                return result
            result.layer_results = step.data

        result.errors.extend(
            f"{r.mesh_name} layer {r.layer_number}: {r.error}"
            for r in result.layer_results if r.state == IroningState.FAILED
        )
        result.cancelled = self._cancel.is_set()
        result.success = True
        logger.info(
            "ironing_pipeline_complete",
            meshes=len(jobs),
            assembled=result.assembled_layers,
            skipped=result.count(IroningState.SKIPPED),
            failed=result.count(IroningState.FAILED),
            cancelled=result.cancelled,
        )
        return result

    def _compute_top_surfaces(
        self, jobs: Sequence[MeshJob], executor: Executor,
    ) -> Dict[str, TopSurface]:
        surfaces: Dict[str, TopSurface] = {}
        futures = []
        for job in jobs:
            surface = TopSurface.for_mesh(job.layers)
            surfaces[job.layers.name] = surface
            for layer_number in range(job.layers.layer_count):
                if self._cancel.is_set():
                    break
                futures.append(executor.submit(
                    surface.set_areas_from_layers, job.layers, layer_number, job.config.spiralize,
                ))
        for done, future in enumerate(futures, start=1):
            future.result()
            self._progress("top_surface", done / len(futures))
        return surfaces

    def _iron_layers(
        self,
        jobs: Sequence[MeshJob],
        surfaces: Dict[str, TopSurface],
        plans: Mapping[int, LayerPlan],
        executor: Executor,
    ) -> List[LayerResult]:
        futures = []
        for job in jobs:
            surface = surfaces[job.layers.name]
            for layer_number in range(job.layers.layer_count):
                plan = plans.get(layer_number)
                if plan is None or not surface.is_computed(layer_number):
                    continue
                futures.append(executor.submit(
                    self._run_unit, surface, job, layer_number, plan,
                ))

        results: List[LayerResult] = []
        for done, future in enumerate(futures, start=1):
            unit = future.result()
            if unit is not None:
                results.append(unit)
            self._progress("ironing", done / len(futures))
        return results

    def _run_unit(
        self, surface: TopSurface, job: MeshJob, layer_number: int, plan: LayerPlan,
    ) -> Optional[LayerResult]:
        """Iron one (mesh, layer) unit; unexpected errors stay in its result."""
        if self._cancel.is_set():
            return None
        try:
            return iron_layer(surface, job.layers, layer_number, job.config, job.line_config, plan)
        except Exception as e:
            logger.error(
                "ironing_unit_crashed", mesh=job.layers.name, layer=layer_number, error=str(e),
            )
            unit = LayerResult(mesh_name=job.layers.name, layer_number=layer_number)
            unit.fail(str(e))
            return unit

    def _run_step(self, name: str, fn: Callable) -> StepResult:
        """Execute a single pipeline step with timing and error handling."""
        self._progress(name, 0.0)
        t0 = time.perf_counter()
        try:
            data = fn()
            duration = time.perf_counter() - t0
            self._progress(name, 1.0)
            logger.info("pipeline_step_complete", step=name, duration_s=round(duration, 2))
            return StepResult(name=name, success=True, data=data, duration_s=duration)
        except Exception as e:
            duration = time.perf_counter() - t0
            logger.error("pipeline_step_failed", step=name, duration_s=round(duration, 2), error=str(e))
            return StepResult(
                name=name, success=False, error=str(e), duration_s=duration
            )
