"""Level-of-detail and adaptive-resolution policy.

Purpose
-------
Decides how densely a graph is sampled from what the canvas reports:

- viewport zoom and the number of graphs on screen scale the base resolution,
- the smoothed frame rate picks a quality tier,
- the distance of a graph from the viewport centre picks a LOD bucket, which
  scales resolution again and caps the triangle count of surfaces,
- graphs entirely outside the (margin-expanded) viewport are culled.

All decisions are pure functions of their inputs, an immutable
:class:`LODState` snapshot and the :class:`~notegraph.engine_config.EngineConfig`.
The only way to obtain a new state is :meth:`LODController.update`.

Examples
--------
>>> controller = LODController()
>>> controller.compute_effective_resolution(200, zoom=1.0, visible_graph_count=1)
200
>>> controller.compute_effective_resolution(200, zoom=1.0, visible_graph_count=6)
100
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Callable, Mapping, Optional, Sequence

from .domain_sampler import validate_count
from .engine_config import EngineConfig
from .geometry import SurfaceMesh

__all__ = [
    "LODLevel",
    "Quality",
    "LODState",
    "Viewport",
    "CameraState",
    "GraphBounds",
    "LODController",
]

logger = logging.getLogger(__name__)


class LODLevel(str, Enum):
    NEAR = "near"
    MEDIUM = "medium"
    FAR = "far"


class Quality(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


def _finite(value: Any, name: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        raise ValueError(f"{name} must be a finite number, got {value!r}")
    return float(value)


def _positive(value: Any, name: str) -> float:
    value = _finite(value, name)
    if value <= 0:
        raise ValueError(f"{name} must be > 0, got {value}")
    return value


@dataclass(frozen=True)
class LODState:
    """Snapshot of the inputs that drive resolution decisions.

    ``fps`` is the exponentially smoothed frame rate, not the last sample.
    """

    zoom: float = 1.0
    visible_graph_count: int = 1
    fps: float = 60.0

    def __post_init__(self) -> None:
        _positive(self.zoom, "zoom")
        if isinstance(self.visible_graph_count, bool) or not isinstance(self.visible_graph_count, int):
            raise ValueError(f"visible_graph_count must be an int, got {self.visible_graph_count!r}")
        if self.visible_graph_count < 0:
            raise ValueError("visible_graph_count must be >= 0")
        if _finite(self.fps, "fps") < 0:
            raise ValueError("fps must be >= 0")


@dataclass(frozen=True)
class Viewport:
    """Visible canvas rectangle in canvas units plus its zoom."""

    x: float = 0.0
    y: float = 0.0
    width: float = 800.0
    height: float = 600.0
    zoom: float = 1.0

    def __post_init__(self) -> None:
        _positive(self.zoom, "viewport zoom")

    @property
    def center(self) -> tuple[float, float]:
        return (self.x + self.width / 2, self.y + self.height / 2)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Viewport":
        return cls(**{k: data[k] for k in ("x", "y", "width", "height", "zoom") if k in data})


@dataclass(frozen=True)
class GraphBounds:
    """Axis-aligned rectangle a graph occupies on the canvas."""

    x: float
    y: float
    width: float
    height: float


@dataclass(frozen=True)
class CameraState:
    """Camera channel report ``{position, rotation, zoom}``.

    Only ``zoom`` influences sampling; position and rotation are carried for
    the renderer.
    """

    position: tuple[float, float, float] = (0.0, 0.0, 0.0)
    rotation: tuple[float, float, float] = (0.0, 0.0, 0.0)
    zoom: float = 1.0

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CameraState":
        def _vec(value: Any) -> tuple[float, float, float]:
            if isinstance(value, Mapping):
                value = (value.get("x", 0.0), value.get("y", 0.0), value.get("z", 0.0))
            x, y, z = value
            return (float(x), float(y), float(z))

        return cls(
            position=_vec(data.get("position", (0.0, 0.0, 0.0))),
            rotation=_vec(data.get("rotation", (0.0, 0.0, 0.0))),
            zoom=_positive(data.get("zoom", 1.0), "camera zoom"),
        )


class LODController:
    """Resolution, LOD and culling decisions for one canvas."""

    def __init__(self, config: EngineConfig | None = None) -> None:
        self.config = config if config is not None else EngineConfig()

    # ------------------------------------------------------------------
    # resolution

    def compute_effective_resolution(
        self,
        base: int,
        zoom: float,
        visible_graph_count: int,
        quality: Quality | str = Quality.HIGH,
    ) -> int:
        """Scale ``base`` by zoom, crowding and quality.

        ``base * clamp(zoom) * clamp(threshold / count) * quality_factor`` is
        floored and clamped into ``[ceil(min_fraction * base),
        max_factor * base]``, then capped at ``max_resolution``. The result is
        non-decreasing in ``zoom`` and non-increasing in ``visible_graph_count``.

        Raises
        ------
        InvalidDomain
            If ``base`` is not a positive integer.
        ValueError
            For a non-positive zoom or a negative graph count.
        """
        cfg = self.config
        base = validate_count(base)
        zoom = _positive(zoom, "zoom")
        if visible_graph_count < 0:
            raise ValueError(f"visible_graph_count must be >= 0, got {visible_graph_count}")
        if not cfg.adaptive_quality:
            return min(base, cfg.max_resolution)

        zoom_factor = min(max(zoom, cfg.min_zoom_factor), cfg.max_zoom_factor)
        count = max(visible_graph_count, 1)
        graph_factor = min(max(cfg.graph_count_threshold / count, cfg.min_graph_factor), 1.0)
        quality_factor = cfg.quality_factors[Quality(quality).value]

        raw = math.floor(base * zoom_factor * graph_factor * quality_factor)
        lowest = math.ceil(cfg.min_resolution_fraction * base)
        highest = math.floor(cfg.max_resolution_factor * base)
        return int(min(max(raw, lowest), highest, cfg.max_resolution))

    def classify_lod(self, viewport: Viewport, position: Sequence[float]) -> LODLevel:
        """Bucket a graph by its distance from the viewport centre over zoom."""
        if not self.config.lod_enabled:
            return LODLevel.NEAR
        cx, cy = viewport.center
        distance = math.hypot(position[0] - cx, position[1] - cy) / viewport.zoom
        if distance > self.config.lod_far_distance:
            return LODLevel.FAR
        if distance > self.config.lod_medium_distance:
            return LODLevel.MEDIUM
        return LODLevel.NEAR

    def scale_for_lod(self, level: LODLevel | str) -> float:
        return self.config.lod_scale[LODLevel(level).value]

    def max_triangles_for(self, level: LODLevel | str) -> int:
        return self.config.lod_max_triangles[LODLevel(level).value]

    def apply_lod(self, resolution: int, level: LODLevel | str) -> int:
        """Scale ``resolution`` by the bucket factor (never below 1)."""
        return max(1, math.floor(validate_count(resolution) * self.scale_for_lod(level)))

    # ------------------------------------------------------------------
    # triangle ceilings

    @staticmethod
    def capped_resolution(resolution: int, max_triangles: int) -> int:
        """Finest grid ``<= resolution`` whose ``2 * res**2`` triangles fit."""
        resolution = validate_count(resolution)
        if isinstance(max_triangles, bool) or not isinstance(max_triangles, int) or max_triangles < 2:
            raise ValueError(f"max_triangles must be an integer >= 2, got {max_triangles!r}")
        return max(1, min(resolution, math.isqrt(max_triangles // 2)))

    def cap_triangle_count(
        self,
        mesh: SurfaceMesh,
        max_triangles: int,
        rebuild: Callable[[int], SurfaceMesh],
    ) -> SurfaceMesh:
        """Return ``mesh`` or a coarser rebuild that stays within ``max_triangles``.

        Decimation always resamples the grid through ``rebuild(resolution)``;
        vertices are never dropped from an existing mesh.
        """
        if mesh.triangle_count <= max_triangles:
            return mesh
        resolution = self.capped_resolution(mesh.resolution, max_triangles)
        logger.debug(
            "capping mesh: %d triangles > %d, rebuilding at resolution %d (was %d)",
            mesh.triangle_count, max_triangles, resolution, mesh.resolution,
        )
        return rebuild(resolution)

    # ------------------------------------------------------------------
    # state and performance

    def update(
        self,
        state: LODState,
        *,
        fps: Optional[float] = None,
        zoom: Optional[float] = None,
        visible_graph_count: Optional[int] = None,
        camera: Optional[CameraState] = None,
    ) -> LODState:
        """Return a new snapshot; ``state`` itself is never modified.

        An fps sample is blended as ``alpha * fps + (1 - alpha) * state.fps``.
        A camera report contributes only its zoom.
        """
        changes: dict[str, Any] = {}
        if fps is not None:
            sample = _finite(fps, "fps")
            if sample < 0:
                raise ValueError(f"fps must be >= 0, got {sample}")
            alpha = self.config.fps_smoothing
            changes["fps"] = alpha * sample + (1.0 - alpha) * state.fps
        if camera is not None:
            changes["zoom"] = camera.zoom
        if zoom is not None:
            changes["zoom"] = _positive(zoom, "zoom")
        if visible_graph_count is not None:
            changes["visible_graph_count"] = visible_graph_count
        return replace(state, **changes)

    def quality_for_fps(self, fps: float) -> Quality:
        if fps >= self.config.high_fps:
            return Quality.HIGH
        if fps >= self.config.medium_fps:
            return Quality.MEDIUM
        return Quality.LOW

    def antialiasing_enabled(self, state: LODState) -> bool:
        return state.fps > self.config.antialias_fps

    # ------------------------------------------------------------------
    # culling

    def should_cull(self, bounds: GraphBounds, viewport: Viewport) -> bool:
        """True when ``bounds`` lies entirely outside the viewport plus margin."""
        if not self.config.frustum_culling:
            return False
        margin = self.config.cull_margin / viewport.zoom
        return (
            bounds.x + bounds.width < viewport.x - margin
            or bounds.x > viewport.x + viewport.width + margin
            or bounds.y + bounds.height < viewport.y - margin
            or bounds.y > viewport.y + viewport.height + margin
        )
