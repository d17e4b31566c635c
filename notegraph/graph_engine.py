"""Graph engine orchestrator.

Purpose
-------
:class:`GraphEngine` is the single entry point used by the canvas. For one
graph specification it

1. validates and compiles the spec (pass-through variants stop here),
2. culls graphs outside the viewport,
3. derives the effective resolution from the :class:`LODState`, the LOD
   bucket and, for surfaces, the triangle ceiling,
4. runs the generator(s) for the plot kind.

Structural problems are reported as ``status == "invalid"`` with the error
attached and no geometry; a spec never yields partial output.

Logging
-------
Rejected specs are logged at DEBUG on ``notegraph.graph_engine`` together with
per-render timings::

    import logging
    logging.getLogger("notegraph").setLevel(logging.DEBUG)
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional, Sequence, Union

from .GraphSpec import CURVE_KINDS, GraphSpec
from .curve_generator import CurveGenerator
from .engine_config import EngineConfig
from .errors import GraphEngineError
from .evaluation_cache import EvaluationCache
from .evaluator import ExpressionEvaluator
from .geometry import PointSequence, RegionGeometry, SurfaceMesh
from .graph_spec_validator import CompiledPlot, GraphSpecValidator
from .integral_region import IntegralRegionBuilder
from .lod_controller import GraphBounds, LODController, LODLevel, LODState, Viewport
from .surface_mesh import SurfaceMeshBuilder

__all__ = ["GraphEngine", "GraphResult", "RenderItem", "RENDER_STATUSES"]

logger = logging.getLogger(__name__)

RENDER_STATUSES = ("ok", "invalid", "culled", "passthrough")

SpecLike = Union[GraphSpec, Mapping[str, Any]]


@dataclass(frozen=True, eq=False)
class GraphResult:
    """Outcome of rendering one graph spec.

    Only the fields that apply to the plot kind are set: ``curve`` for 2D
    kinds, ``mesh`` for surfaces, ``region`` when ``integral.showArea`` is on,
    ``integral_value`` for ``2d_integral`` and ``3d_integral``.
    """

    status: str
    graph_spec: Optional[GraphSpec] = None
    curve: Optional[PointSequence] = None
    mesh: Optional[SurfaceMesh] = None
    region: Optional[RegionGeometry] = None
    integral_value: Optional[float] = None
    resolution: Optional[int] = None
    lod: Optional[LODLevel] = None
    antialias: bool = False
    error: Optional[GraphEngineError] = None

    @property
    def ok(self) -> bool:
        return self.status == "ok"

    def to_json(self) -> dict[str, Any]:
        out: dict[str, Any] = {"status": self.status}
        if self.error is not None:
            out["error"] = {"type": type(self.error).__name__, "message": str(self.error)}
        if self.curve is not None:
            out["curve"] = self.curve.to_json()
        if self.mesh is not None:
            out["mesh"] = self.mesh.to_json()
        if self.region is not None:
            out["region"] = self.region.to_json()
        if self.integral_value is not None:
            out["integralValue"] = self.integral_value
        if self.resolution is not None:
            out["resolution"] = self.resolution
        if self.lod is not None:
            out["lod"] = self.lod.value
        if self.status == "ok":
            out["antialias"] = self.antialias
        return out


@dataclass(frozen=True)
class RenderItem:
    """One graph of a batch: its spec plus optional canvas placement."""

    graph_spec: SpecLike
    position: Optional[Sequence[float]] = None
    bounds: Optional[GraphBounds] = None


class GraphEngine:
    """Validate, size and generate geometry for graph specs.

    Parameters
    ----------
    config : EngineConfig, optional
    evaluator : ExpressionEvaluator, optional
        Shared by every generator; a new one with a cache sized by ``config``
        is created when omitted.
    """

    def __init__(
        self,
        config: EngineConfig | None = None,
        evaluator: ExpressionEvaluator | None = None,
    ) -> None:
        self.config = config if config is not None else EngineConfig()
        if evaluator is None:
            evaluator = ExpressionEvaluator(
                EvaluationCache(self.config.cache_capacity, self.config.cache_policy)
            )
        self.evaluator = evaluator
        self.validator = GraphSpecValidator(self.evaluator, self.config)
        self.lod = LODController(self.config)
        self.curves = CurveGenerator(self.evaluator, self.config)
        self.surfaces = SurfaceMeshBuilder(self.evaluator, self.config)
        self.regions = IntegralRegionBuilder(self.evaluator, self.config)

    def render(
        self,
        graph_spec: SpecLike,
        state: Optional[LODState] = None,
        viewport: Optional[Viewport] = None,
        position: Optional[Sequence[float]] = None,
        bounds: Optional[GraphBounds] = None,
    ) -> GraphResult:
        """Render one spec.

        Returns
        -------
        GraphResult
            ``status`` is ``"ok"``, ``"invalid"``, ``"culled"`` or
            ``"passthrough"``.
        """
        state = state if state is not None else LODState()
        start = time.perf_counter() if logger.isEnabledFor(logging.DEBUG) else None
        try:
            spec = graph_spec if isinstance(graph_spec, GraphSpec) else GraphSpec.from_dict(graph_spec)
            compiled = self.validator.validate(spec)
        except GraphEngineError as exc:
            logger.debug("invalid graph spec: %s", exc)
            return GraphResult(status="invalid", error=exc)
        if compiled is None:
            return GraphResult(status="passthrough", graph_spec=spec)
        if viewport is not None and bounds is not None and self.lod.should_cull(bounds, viewport):
            return GraphResult(status="culled", graph_spec=spec)

        quality = self.lod.quality_for_fps(state.fps)
        resolution = self.lod.compute_effective_resolution(
            compiled.resolution, state.zoom, state.visible_graph_count, quality
        )
        level = LODLevel.NEAR
        if viewport is not None and position is not None:
            level = self.lod.classify_lod(viewport, position)
        resolution = self.lod.apply_lod(resolution, level)

        try:
            geometry = self._generate(compiled.with_resolution(resolution), level)
        except GraphEngineError as exc:
            logger.debug("graph generation failed for %s: %s", compiled.kind, exc)
            return GraphResult(status="invalid", graph_spec=spec, error=exc)

        result = GraphResult(
            status="ok",
            graph_spec=spec,
            antialias=self.lod.antialiasing_enabled(state),
            **geometry,
        )
        if start is not None:
            logger.debug(
                "rendered %s at resolution %s (lod %s, quality %s) in %.3f ms",
                compiled.kind, result.resolution, level.value, quality.value,
                (time.perf_counter() - start) * 1000,
            )
        return result

    def render_many(
        self,
        items: Iterable[RenderItem | SpecLike],
        state: Optional[LODState] = None,
        viewport: Optional[Viewport] = None,
    ) -> list[GraphResult]:
        """Render a batch; graphs that are not culled count as visible."""
        batch = [item if isinstance(item, RenderItem) else RenderItem(item) for item in items]
        state = state if state is not None else LODState()
        visible = sum(
            1
            for item in batch
            if viewport is None or item.bounds is None or not self.lod.should_cull(item.bounds, viewport)
        )
        state = self.lod.update(state, visible_graph_count=visible)
        return [
            self.render(item.graph_spec, state, viewport=viewport, position=item.position, bounds=item.bounds)
            for item in batch
        ]

    def _generate(self, compiled: CompiledPlot, level: LODLevel) -> dict[str, Any]:
        kind = compiled.kind
        integral = compiled.integral
        show_area = integral is not None and integral.show_area
        out: dict[str, Any] = {"lod": level}

        if kind in CURVE_KINDS:
            out["curve"] = self.curves.generate(compiled)
            if kind == "2d_integral":
                out["integral_value"] = self.regions.estimate_area_2d(compiled)
                if show_area:
                    out["region"] = self.regions.build_area_2d(compiled)
            out["resolution"] = compiled.resolution
            return out

        max_triangles = self.lod.max_triangles_for(level)
        compiled = compiled.with_resolution(self.lod.capped_resolution(compiled.resolution, max_triangles))
        mesh = self.surfaces.build_triangulated_mesh(compiled)
        out["mesh"] = self.lod.cap_triangle_count(
            mesh, max_triangles, lambda res: self.surfaces.build_triangulated_mesh(compiled, res)
        )
        out["resolution"] = out["mesh"].resolution
        if kind == "3d_integral":
            out["integral_value"] = self.regions.estimate_volume_3d(compiled)
            if show_area:
                out["region"] = self.regions.build_volume_3d(compiled)
        elif kind == "cylindrical_integral" and show_area:
            out["region"] = self.regions.build_cylindrical_volume(compiled)
        elif kind == "spherical_integral" and show_area:
            out["region"] = self.regions.build_spherical_volume(compiled)
        return out
