"""Shaded integral regions and numeric integral estimates.

Regions
-------
- ``build_area_2d``: one vertical pair per sampled ``x`` inside the bounds,
  from the integrand down to the axis (or to ``function2``).
- ``build_volume_3d``: one vertical pair per ``(x, y)`` grid sample whose bound
  coordinate lies inside the bounds.
- ``build_cylindrical_volume``: a point cloud filling
  ``lower(r) <= z <= upper(r)`` below the ``cylindricalZ`` surface.
- ``build_spherical_volume``: one radial pair per ``(theta, phi)`` sample, from
  ``max(lower(theta), 0)`` out to ``min(sphericalR, upper(theta))``.

Bounds are literal numbers or expressions in the integral variable and are
re-evaluated at every sample. A missing bound means the edge of the domain
(for spherical volumes: radius ``0`` and the surface itself).

Estimates
---------
``estimate_area_2d`` uses :func:`scipy.integrate.quad` when both bounds are
constant and the trapezoid rule over the sampled region otherwise.
``estimate_volume_3d`` applies the trapezoid rule over the masked grid. Both
are signed (``f - function2`` between functions) and return ``nan`` when the
integrand is not finite somewhere inside the region.
"""

from __future__ import annotations

import logging
import math
import warnings
from typing import Optional

import numpy as np
from scipy import integrate

from .GraphSpec import PlotSpec
from .domain_sampler import sample_1d, sample_2d
from .engine_config import EngineConfig
from .errors import UnsupportedPlotKind
from .evaluator import ExpressionEvaluator
from .expression import Expression
from .geometry import RegionGeometry
from .graph_spec_validator import CompiledPlot, GraphSpecValidator

__all__ = ["IntegralRegionBuilder"]

logger = logging.getLogger(__name__)


def _require_kind(compiled: CompiledPlot, kind: str, operation: str) -> None:
    if compiled.kind != kind:
        raise UnsupportedPlotKind(f"{operation} needs a {kind!r} plot, got {compiled.kind!r}")


class IntegralRegionBuilder:
    """Build shaded regions and estimates for the integral kinds."""

    def __init__(
        self,
        evaluator: ExpressionEvaluator | None = None,
        config: EngineConfig | None = None,
    ) -> None:
        self.evaluator = evaluator if evaluator is not None else ExpressionEvaluator()
        self.config = config if config is not None else EngineConfig()
        self._validator = GraphSpecValidator(self.evaluator, self.config)

    # ------------------------------------------------------------------
    # bounds

    def _bound_at(self, bound: float | Expression | None, default: float, value: float) -> float:
        if bound is None:
            return default
        if isinstance(bound, Expression):
            return self.evaluator.evaluate_at(bound, value)
        return bound

    def _bounds_at(self, compiled: CompiledPlot, value: float, lo_default: float, hi_default: float) -> tuple[float, float]:
        return (
            self._bound_at(compiled.lower_bound, lo_default, value),
            self._bound_at(compiled.upper_bound, hi_default, value),
        )

    def _integrands(self, compiled: CompiledPlot) -> tuple[Expression, Optional[Expression]]:
        integral = compiled.integral
        f = compiled.expression("integral.function")
        f2 = compiled.expression("integral.function2") if integral is not None and integral.between_functions else None
        return f, f2

    # ------------------------------------------------------------------
    # regions

    def build_area_2d(self, plot: PlotSpec | CompiledPlot, resolution: Optional[int] = None) -> RegionGeometry:
        """Vertical pairs ``((x, f, 0), (x, 0 or f2, 0))`` inside the bounds."""
        compiled = self._validator.ensure_compiled(plot, resolution)
        _require_kind(compiled, "2d_integral", "build_area_2d")
        f, f2 = self._integrands(compiled)
        x_min, x_max = compiled.interval("x")
        pairs = []
        degraded = 0
        for x in sample_1d((x_min, x_max), compiled.resolution).tolist():
            lo, hi = self._bounds_at(compiled, x, x_min, x_max)
            if not (math.isfinite(lo) and math.isfinite(hi)):
                degraded += 1
                continue
            if not lo <= x <= hi:
                continue
            top = self.evaluator.evaluate_at(f, x)
            base = self.evaluator.evaluate_at(f2, x) if f2 is not None else 0.0
            if not (math.isfinite(top) and math.isfinite(base)):
                degraded += 1
                continue
            pairs.append(((x, top, 0.0), (x, base, 0.0)))
        return self._region(compiled, pairs, degraded)

    def build_volume_3d(self, plot: PlotSpec | CompiledPlot, resolution: Optional[int] = None) -> RegionGeometry:
        """Vertical pairs ``((x, y, f), (x, y, 0 or f2))`` inside the bounds.

        The bounds constrain the coordinate named by ``integral.variable``
        (``x`` or ``y``).
        """
        compiled = self._validator.ensure_compiled(plot, resolution)
        _require_kind(compiled, "3d_integral", "build_volume_3d")
        f, f2 = self._integrands(compiled)
        axis = 0 if compiled.bound_variable in (None, "x") else 1
        edge_lo, edge_hi = compiled.interval("xy"[axis])
        grid_x, grid_y = sample_2d(compiled.interval("x"), compiled.interval("y"), compiled.resolution)
        pairs = []
        degraded = 0
        for x, y in zip(grid_x.ravel().tolist(), grid_y.ravel().tolist()):
            coord = (x, y)[axis]
            lo, hi = self._bounds_at(compiled, coord, edge_lo, edge_hi)
            if not (math.isfinite(lo) and math.isfinite(hi)):
                degraded += 1
                continue
            if not lo <= coord <= hi:
                continue
            top = self.evaluator.evaluate_at(f, x, y)
            base = self.evaluator.evaluate_at(f2, x, y) if f2 is not None else 0.0
            if not (math.isfinite(top) and math.isfinite(base)):
                degraded += 1
                continue
            pairs.append(((x, y, top), (x, y, base)))
        return self._region(compiled, pairs, degraded)

    def build_cylindrical_volume(
        self, plot: PlotSpec | CompiledPlot, resolution: Optional[int] = None
    ) -> RegionGeometry:
        """Point cloud ``(r cos theta, r sin theta, z)`` of the bounded volume.

        The ``(r, theta, z)`` lattice uses ``min(resolution,
        EngineConfig.volume_resolution)`` steps per axis. A point is kept when
        ``lower(r) <= z <= upper(r)`` and ``z`` does not exceed a finite
        ``cylindricalZ(r, theta)``.
        """
        compiled = self._validator.ensure_compiled(plot, resolution)
        _require_kind(compiled, "cylindrical_integral", "build_cylindrical_volume")
        steps = min(compiled.resolution, self.config.volume_resolution)
        surface = compiled.expression("cylindricalZ")
        z_min, z_max = compiled.interval("z")
        zs = sample_1d((z_min, z_max), steps).tolist()
        thetas = sample_1d(compiled.interval("theta"), steps).tolist()
        points = []
        degraded = 0
        for r in sample_1d(compiled.interval("r"), steps).tolist():
            lo, hi = self._bounds_at(compiled, r, z_min, z_max)
            if not (math.isfinite(lo) and math.isfinite(hi)):
                degraded += 1
                continue
            for theta in thetas:
                top = self.evaluator.evaluate_at(surface, r, theta)
                cos_t, sin_t = math.cos(theta), math.sin(theta)
                for z in zs:
                    if lo <= z <= hi and (not math.isfinite(top) or z <= top):
                        points.append((r * cos_t, r * sin_t, z))
        return self._region(compiled, None, degraded, points=points)

    def build_spherical_volume(
        self, plot: PlotSpec | CompiledPlot, resolution: Optional[int] = None
    ) -> RegionGeometry:
        """Radial pairs ``(outer point, inner point)`` per ``(theta, phi)`` sample.

        Samples are excluded when the radius or a bound is not finite, when
        the radius is negative, or when the radial interval is empty.
        """
        compiled = self._validator.ensure_compiled(plot, resolution)
        _require_kind(compiled, "spherical_integral", "build_spherical_volume")
        surface = compiled.expression("sphericalR")
        grid_t, grid_p = sample_2d(compiled.interval("theta"), compiled.interval("phi"), compiled.resolution)
        pairs = []
        degraded = 0
        for theta, phi in zip(grid_t.ravel().tolist(), grid_p.ravel().tolist()):
            radius = self.evaluator.evaluate_at(surface, theta, phi)
            lo, hi = self._bounds_at(compiled, theta, 0.0, math.inf)
            if not math.isfinite(radius) or radius < 0 or math.isnan(lo) or math.isnan(hi):
                degraded += 1
                continue
            inner = max(lo, 0.0)
            outer = min(radius, hi)
            if inner > outer:
                continue
            direction = (math.sin(phi) * math.cos(theta), math.sin(phi) * math.sin(theta), math.cos(phi))
            pairs.append((tuple(outer * d for d in direction), tuple(inner * d for d in direction)))
        return self._region(compiled, pairs, degraded)

    @staticmethod
    def _region(compiled: CompiledPlot, pairs, degraded: int, points=None) -> RegionGeometry:
        if degraded:
            logger.debug("%s region: excluded %d non-finite samples", compiled.kind, degraded)
        if points is not None:
            return RegionGeometry(points=points, degraded=degraded)
        return RegionGeometry(pairs=pairs, degraded=degraded)

    # ------------------------------------------------------------------
    # estimates

    def estimate_area_2d(self, plot: PlotSpec | CompiledPlot, resolution: Optional[int] = None) -> float:
        """Signed area under ``function`` (or between the two functions).

        Returns
        -------
        float
            ``nan`` when the integrand or a bound is not finite in the region.
        """
        compiled = self._validator.ensure_compiled(plot, resolution)
        _require_kind(compiled, "2d_integral", "estimate_area_2d")
        f, f2 = self._integrands(compiled)
        lower = compiled.literal_bound("lower")
        upper = compiled.literal_bound("upper")
        if lower is not None and upper is not None:
            return self._quad(f, f2, lower, upper)

        xs = sample_1d(compiled.interval("x"), compiled.resolution)
        x_min, x_max = compiled.interval("x")
        heights = np.zeros_like(xs)
        for i, x in enumerate(xs.tolist()):
            lo, hi = self._bounds_at(compiled, x, x_min, x_max)
            if not (math.isfinite(lo) and math.isfinite(hi)):
                return math.nan
            if lo <= x <= hi:
                heights[i] = self._height(f, f2, x)
        if not np.all(np.isfinite(heights)):
            return math.nan
        return float(integrate.trapezoid(heights, xs))

    def estimate_volume_3d(self, plot: PlotSpec | CompiledPlot, resolution: Optional[int] = None) -> float:
        """Signed volume under ``function`` over the bounded part of the grid."""
        compiled = self._validator.ensure_compiled(plot, resolution)
        _require_kind(compiled, "3d_integral", "estimate_volume_3d")
        f, f2 = self._integrands(compiled)
        axis = 0 if compiled.bound_variable in (None, "x") else 1
        edge_lo, edge_hi = compiled.interval("xy"[axis])
        xs = sample_1d(compiled.interval("x"), compiled.resolution)
        ys = sample_1d(compiled.interval("y"), compiled.resolution)
        heights = np.zeros((len(xs), len(ys)))
        for i, x in enumerate(xs.tolist()):
            for j, y in enumerate(ys.tolist()):
                coord = (x, y)[axis]
                lo, hi = self._bounds_at(compiled, coord, edge_lo, edge_hi)
                if not (math.isfinite(lo) and math.isfinite(hi)):
                    return math.nan
                if lo <= coord <= hi:
                    heights[i, j] = self._height(f, f2, x, y)
        if not np.all(np.isfinite(heights)):
            return math.nan
        return float(integrate.trapezoid(integrate.trapezoid(heights, ys, axis=1), xs))

    def _height(self, f: Expression, f2: Optional[Expression], *values: float) -> float:
        top = self.evaluator.evaluate_at(f, *values)
        if f2 is None:
            return top
        return top - self.evaluator.evaluate_at(f2, *values)

    @staticmethod
    def _quad(f: Expression, f2: Optional[Expression], lower: float, upper: float) -> float:
        if not (math.isfinite(lower) and math.isfinite(upper)):
            return math.nan
        seen_non_finite = False

        def integrand(x: float) -> float:
            nonlocal seen_non_finite
            value = f.evaluate_raw((x,))
            if f2 is not None:
                value -= f2.evaluate_raw((x,))
            if not math.isfinite(value):
                seen_non_finite = True
                return 0.0
            return value

        # Evaluated without the result cache.
        with warnings.catch_warnings():
            warnings.simplefilter("ignore", integrate.IntegrationWarning)
            value, abserr = integrate.quad(integrand, lower, upper, limit=200)
        if seen_non_finite or not math.isfinite(value):
            return math.nan
        logger.debug("quad [%g, %g] = %r (abserr %.2e)", lower, upper, value, abserr)
        return float(value)
