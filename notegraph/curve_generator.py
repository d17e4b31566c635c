"""Ordered point sequences for 2D curves.

Supported kinds are ``2d_explicit``, ``2d_parametric``, ``2d_polar`` and
``2d_integral`` (which draws its integrand, or ``yOfX`` when given). All
points lie in the ``z = 0`` plane.

Samples whose value is not finite are omitted rather than replaced; the index
of the next kept point is recorded in :attr:`PointSequence.breaks` so a line
strip can be split there instead of bridging the gap. Polar samples with a
negative radius are omitted as well.
"""

from __future__ import annotations

import logging
import math
import time
from typing import Iterator, Optional

from .GraphSpec import PlotSpec
from .domain_sampler import sample_1d
from .engine_config import EngineConfig
from .errors import UnsupportedPlotKind
from .evaluator import ExpressionEvaluator
from .geometry import PointSequence
from .graph_spec_validator import CompiledPlot, GraphSpecValidator

__all__ = ["CurveGenerator"]

logger = logging.getLogger(__name__)

_Sample = Optional[tuple[float, float, float]]


class CurveGenerator:
    """Sample curve kinds into :class:`PointSequence` objects.

    ``generate`` is a pure function of the plot and the resolution; running it
    twice yields identical points.
    """

    def __init__(
        self,
        evaluator: ExpressionEvaluator | None = None,
        config: EngineConfig | None = None,
    ) -> None:
        self.evaluator = evaluator if evaluator is not None else ExpressionEvaluator()
        self.config = config if config is not None else EngineConfig()
        self._validator = GraphSpecValidator(self.evaluator, self.config)

    def generate(self, plot: PlotSpec | CompiledPlot, resolution: Optional[int] = None) -> PointSequence:
        """Sample ``plot`` at ``resolution + 1`` parameter values.

        Raises
        ------
        UnsupportedPlotKind
            For surface and volume kinds.
        """
        compiled = self._validator.ensure_compiled(plot, resolution)
        samplers = {
            "2d_explicit": self._explicit,
            "2d_integral": self._explicit,
            "2d_parametric": self._parametric,
            "2d_polar": self._polar,
        }
        sampler = samplers.get(compiled.kind)
        if sampler is None:
            raise UnsupportedPlotKind(f"CurveGenerator cannot generate {compiled.kind!r}")

        start = time.perf_counter() if logger.isEnabledFor(logging.DEBUG) else None
        curve = _collect(sampler(compiled))
        if start is not None:
            logger.debug(
                "%s curve: %d points, %d omitted, %d breaks in %.3f ms",
                compiled.kind, len(curve), curve.degraded, len(curve.breaks),
                (time.perf_counter() - start) * 1000,
            )
        return curve

    def _explicit(self, compiled: CompiledPlot) -> Iterator[_Sample]:
        expr = compiled.expression(compiled.rule.drawn_slot)
        for x in sample_1d(compiled.interval("x"), compiled.resolution).tolist():
            y = self.evaluator.evaluate_at(expr, x)
            yield (x, y, 0.0) if math.isfinite(y) else None

    def _parametric(self, compiled: CompiledPlot) -> Iterator[_Sample]:
        x_of_t = compiled.expression("xOfT")
        y_of_t = compiled.expression("yOfT")
        for t in sample_1d(compiled.interval("t"), compiled.resolution).tolist():
            x = self.evaluator.evaluate_at(x_of_t, t)
            y = self.evaluator.evaluate_at(y_of_t, t)
            yield (x, y, 0.0) if math.isfinite(x) and math.isfinite(y) else None

    def _polar(self, compiled: CompiledPlot) -> Iterator[_Sample]:
        r_of_theta = compiled.expression("rOfTheta")
        for theta in sample_1d(compiled.interval("theta"), compiled.resolution).tolist():
            r = self.evaluator.evaluate_at(r_of_theta, theta)
            if not math.isfinite(r) or r < 0:
                yield None
                continue
            yield (r * math.cos(theta), r * math.sin(theta), 0.0)


def _collect(samples: Iterator[_Sample]) -> PointSequence:
    points: list[tuple[float, float, float]] = []
    breaks: list[int] = []
    omitted = 0
    gap = False
    for sample in samples:
        if sample is None:
            omitted += 1
            gap = True
            continue
        if gap and points:
            breaks.append(len(points))
        gap = False
        points.append(sample)
    return PointSequence(points, breaks=tuple(breaks), degraded=omitted)
