"""Engine configuration.

All tunables of the sampling, level-of-detail and caching layers live in one
frozen :class:`EngineConfig`. Defaults reproduce the behaviour of the canvas
renderer; callers override individual fields with ``dataclasses.replace`` or
build a config from a JSON-compatible mapping with :meth:`EngineConfig.from_mapping`.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from types import MappingProxyType
from typing import Any, Mapping

from .evaluation_cache import EVICTION_POLICIES

__all__ = ["EngineConfig", "DEFAULT_RESOLUTIONS"]

DEFAULT_RESOLUTIONS: Mapping[str, int] = MappingProxyType(
    {
        "2d_explicit": 200,
        "2d_parametric": 200,
        "2d_polar": 200,
        "2d_integral": 200,
        "3d_surface": 50,
        "3d_integral": 50,
        "cylindrical_integral": 50,
        "spherical_integral": 50,
    }
)


@dataclass(frozen=True)
class EngineConfig:
    """Tunables for the graph engine.

    Parameters
    ----------
    default_resolutions : Mapping[str, int]
        Samples per axis when a plot does not set ``resolution``.
    cache_capacity : int
        Entries kept by each evaluator's result cache.
    cache_policy : {"fifo", "lru"}
        Eviction order of the result cache.
    min_resolution_fraction : float
        Effective resolution never drops below ``ceil(fraction * base)``.
    max_resolution_factor : float
        Effective resolution never exceeds ``factor * base``.
    max_resolution : int
        Absolute ceiling on samples per axis. Plots asking for more are
        rejected; effective resolutions are clamped to it.
    min_zoom_factor, max_zoom_factor : float
        Clamp applied to the viewport zoom before it scales resolution.
    graph_count_threshold : int
        Up to this many visible graphs keep full resolution.
    min_graph_factor : float
        Lowest scale applied for many simultaneously visible graphs.
    quality_factors : Mapping[str, float]
        Resolution scale per performance tier (``high``/``medium``/``low``).
    high_fps, medium_fps : float
        Smoothed frame-rate thresholds for the ``high`` and ``medium`` tiers.
    antialias_fps : float
        Smoothed fps above which the renderer may enable antialiasing.
    fps_smoothing : float
        Exponential smoothing weight given to each new fps sample.
    lod_medium_distance, lod_far_distance : float
        Zoom-scaled distances from the viewport centre separating LOD buckets.
    lod_scale : Mapping[str, float]
        Resolution scale per LOD bucket (``near``/``medium``/``far``).
    lod_max_triangles : Mapping[str, int]
        Triangle ceiling per LOD bucket.
    cull_margin : float
        Screen-space margin kept around the viewport before culling.
    volume_resolution : int
        Upper bound on the per-axis lattice of cylindrical volumes.
    adaptive_quality : bool
        When false, the effective resolution is always the base resolution.
    frustum_culling : bool
        When false, no graph is ever culled.
    lod_enabled : bool
        When false, every graph is classified ``near``.
    """

    default_resolutions: Mapping[str, int] = field(default_factory=lambda: DEFAULT_RESOLUTIONS)
    cache_capacity: int = 1000
    cache_policy: str = "fifo"
    min_resolution_fraction: float = 0.1
    max_resolution_factor: float = 2.0
    max_resolution: int = 5000
    min_zoom_factor: float = 0.1
    max_zoom_factor: float = 2.0
    graph_count_threshold: int = 3
    min_graph_factor: float = 0.3
    quality_factors: Mapping[str, float] = field(
        default_factory=lambda: MappingProxyType({"high": 1.0, "medium": 0.5, "low": 0.25})
    )
    high_fps: float = 50.0
    medium_fps: float = 30.0
    antialias_fps: float = 30.0
    fps_smoothing: float = 0.2
    lod_medium_distance: float = 500.0
    lod_far_distance: float = 1000.0
    lod_scale: Mapping[str, float] = field(
        default_factory=lambda: MappingProxyType({"near": 1.0, "medium": 0.6, "far": 0.3})
    )
    lod_max_triangles: Mapping[str, int] = field(
        default_factory=lambda: MappingProxyType({"near": 50_000, "medium": 15_000, "far": 5_000})
    )
    cull_margin: float = 100.0
    volume_resolution: int = 24
    adaptive_quality: bool = True
    frustum_culling: bool = True
    lod_enabled: bool = True

    def __post_init__(self) -> None:
        # Partial overrides of per-kind resolutions keep the other defaults.
        resolutions = {**DEFAULT_RESOLUTIONS, **dict(self.default_resolutions)}
        object.__setattr__(self, "default_resolutions", MappingProxyType(resolutions))
        for name in ("quality_factors", "lod_scale", "lod_max_triangles"):
            object.__setattr__(self, name, MappingProxyType(dict(getattr(self, name))))
        self._validate()

    def _validate(self) -> None:
        if self.cache_capacity < 1:
            raise ValueError(f"cache_capacity must be >= 1, got {self.cache_capacity}")
        if self.cache_policy not in EVICTION_POLICIES:
            raise ValueError(f"cache_policy must be one of {EVICTION_POLICIES}, got {self.cache_policy!r}")
        if not 0 < self.min_resolution_fraction <= 1:
            raise ValueError("min_resolution_fraction must be in (0, 1]")
        if self.max_resolution_factor < 1:
            raise ValueError("max_resolution_factor must be >= 1")
        if self.max_resolution < 1:
            raise ValueError(f"max_resolution must be >= 1, got {self.max_resolution}")
        if not 0 < self.min_zoom_factor <= 1 <= self.max_zoom_factor:
            raise ValueError("zoom factor bounds must satisfy 0 < min <= 1 <= max")
        if self.graph_count_threshold < 1:
            raise ValueError("graph_count_threshold must be >= 1")
        if not 0 < self.min_graph_factor <= 1:
            raise ValueError("min_graph_factor must be in (0, 1]")
        if not 0 < self.fps_smoothing <= 1:
            raise ValueError("fps_smoothing must be in (0, 1]")
        if self.medium_fps > self.high_fps:
            raise ValueError("medium_fps must not exceed high_fps")
        if self.lod_medium_distance > self.lod_far_distance:
            raise ValueError("lod_medium_distance must not exceed lod_far_distance")
        if self.volume_resolution < 1:
            raise ValueError("volume_resolution must be >= 1")
        for key in ("high", "medium", "low"):
            if key not in self.quality_factors:
                raise ValueError(f"quality_factors is missing {key!r}")
        for key in ("near", "medium", "far"):
            if key not in self.lod_scale or key not in self.lod_max_triangles:
                raise ValueError(f"lod_scale and lod_max_triangles need an entry for {key!r}")
        for kind, value in self.default_resolutions.items():
            if isinstance(value, bool) or not isinstance(value, int) or value < 1:
                raise ValueError(f"default resolution for {kind!r} must be a positive integer, got {value!r}")

    def default_resolution(self, kind: str) -> int:
        return self.default_resolutions[kind]

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "EngineConfig":
        """Build a config from a JSON-compatible mapping with snake_case keys.

        Raises
        ------
        ValueError
            For unknown keys or invalid values.
        """
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"unknown EngineConfig option(s): {', '.join(unknown)}")
        return cls(**dict(data))
