"""Validation gate between a :class:`GraphSpec` and the generators.

Purpose
-------
Nothing is sampled until a plot has been compiled here. Compilation checks the
plot kind, the required expression slots and domain axes, the resolution, the
style ranges and the integral settings, and parses every expression once. The
result, a :class:`CompiledPlot`, is what the generators consume; they never see
raw expression strings.

Errors
------
:meth:`GraphSpecValidator.validate` raises the typed errors of
:mod:`notegraph.errors`. :meth:`GraphSpecValidator.check` wraps the same logic
and returns a :class:`ValidationReport` instead, which is what an editor uses
to show an "invalid specification" state without a ``try`` block.
"""

from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any, Mapping, Optional, Union

from .GraphSpec import GraphSpec, IntegralSpec, PlotSpec
from .domain_sampler import Interval, as_float, validate_count, validate_interval
from .engine_config import EngineConfig
from .errors import (
    GraphEngineError,
    InvalidDomain,
    InvalidGraphSpec,
    MissingExpressionSlot,
    ParseError,
)
from .evaluator import ExpressionEvaluator
from .expression import Expression

__all__ = ["KindRule", "KIND_RULES", "CompiledPlot", "ValidationReport", "GraphSpecValidator"]

logger = logging.getLogger(__name__)

CompiledBound = Union[float, Expression, None]


@dataclass(frozen=True)
class KindRule:
    """What a plot kind needs before it can be sampled.

    ``drawn_slot`` names the expression that is drawn; for integral kinds it
    may be absent from the spec, in which case the integrand is drawn.
    """

    slots: tuple[str, ...]
    variables: tuple[str, ...]
    axes: tuple[str, ...]
    drawn_slot: str
    integrand: bool = False
    bound_variables: tuple[str, ...] = ()


KIND_RULES: Mapping[str, KindRule] = MappingProxyType(
    {
        "2d_explicit": KindRule(("yOfX",), ("x",), ("x",), "yOfX"),
        "2d_parametric": KindRule(("xOfT", "yOfT"), ("t",), ("t",), "xOfT"),
        "2d_polar": KindRule(("rOfTheta",), ("theta",), ("theta",), "rOfTheta"),
        "2d_integral": KindRule((), ("x",), ("x",), "yOfX", integrand=True, bound_variables=("x",)),
        "3d_surface": KindRule(("surfaceZ",), ("x", "y"), ("x", "y"), "surfaceZ"),
        "3d_integral": KindRule(
            (), ("x", "y"), ("x", "y"), "surfaceZ", integrand=True, bound_variables=("x", "y")
        ),
        "cylindrical_integral": KindRule(
            ("cylindricalZ",), ("r", "theta"), ("r", "theta"), "cylindricalZ", bound_variables=("r",)
        ),
        "spherical_integral": KindRule(
            ("sphericalR",), ("theta", "phi"), ("theta", "phi"), "sphericalR", bound_variables=("theta",)
        ),
    }
)

# Polar plots historically stored the angle range under ``x``.
_AXIS_FALLBACKS: Mapping[str, str] = MappingProxyType({"theta": "x"})


@dataclass(frozen=True)
class CompiledPlot:
    """A validated plot with parsed expressions and resolved intervals.

    Expression keys are the slot names of the spec plus ``integral.function``,
    ``integral.function2``, ``integral.lowerBound`` and ``integral.upperBound``
    where present.
    """

    plot: PlotSpec
    rule: KindRule
    resolution: int
    intervals: Mapping[str, Interval]
    expressions: Mapping[str, Expression]
    bound_variable: Optional[str] = None
    lower_bound: CompiledBound = None
    upper_bound: CompiledBound = None

    @property
    def kind(self) -> str:
        return self.plot.kind

    @property
    def integral(self) -> Optional[IntegralSpec]:
        return self.plot.integral

    def expression(self, slot: str) -> Expression:
        try:
            return self.expressions[slot]
        except KeyError:
            raise MissingExpressionSlot(slot, self.kind) from None

    def has_expression(self, slot: str) -> bool:
        return slot in self.expressions

    def interval(self, axis: str) -> Interval:
        try:
            return self.intervals[axis]
        except KeyError:
            raise InvalidDomain(f"{self.kind} has no domain for axis {axis!r}") from None

    def with_resolution(self, resolution: int) -> "CompiledPlot":
        return replace(self, resolution=validate_count(resolution))

    def literal_bound(self, which: str) -> Optional[float]:
        """Return the ``lower``/``upper`` bound as a number when it does not vary.

        ``None`` is returned for a bound that depends on the bound variable.
        A missing bound resolves to the matching edge of the bound variable's
        interval.
        """
        bound = self.lower_bound if which == "lower" else self.upper_bound
        if bound is None:
            lo, hi = self.interval(self.bound_variable or self.rule.variables[0])
            return lo if which == "lower" else hi
        if isinstance(bound, Expression):
            return bound.evaluate_raw((0.0,)) if bound.is_constant else None
        return float(bound)


@dataclass(frozen=True)
class ValidationReport:
    """Non-raising outcome of :meth:`GraphSpecValidator.check`."""

    ok: bool
    compiled: Optional[CompiledPlot] = None
    error: Optional[GraphEngineError] = None
    passthrough: bool = False

    @property
    def message(self) -> str:
        return "" if self.error is None else str(self.error)


@dataclass
class GraphSpecValidator:
    """Compile graph specifications.

    Parameters
    ----------
    evaluator : ExpressionEvaluator, optional
        Used for (memoized) parsing.
    config : EngineConfig, optional
        Supplies default resolutions.
    """

    evaluator: ExpressionEvaluator = field(default_factory=ExpressionEvaluator)
    config: EngineConfig = field(default_factory=EngineConfig)

    def validate(self, graph_spec: GraphSpec | Mapping[str, Any]) -> Optional[CompiledPlot]:
        """Compile a mathematical spec; return ``None`` for pass-through variants.

        Raises
        ------
        InvalidGraphSpec, MissingExpressionSlot, InvalidDomain, ParseError
        """
        if not isinstance(graph_spec, GraphSpec):
            graph_spec = GraphSpec.from_dict(graph_spec)
        if not graph_spec.is_mathematical:
            return None
        if graph_spec.plot is None:
            raise InvalidGraphSpec("mathematical graph spec is missing 'plot'")
        return self.compile(graph_spec.plot)

    def check(self, graph_spec: GraphSpec | Mapping[str, Any]) -> ValidationReport:
        try:
            compiled = self.validate(graph_spec)
        except GraphEngineError as exc:
            logger.debug("graph spec rejected: %s", exc)
            return ValidationReport(ok=False, error=exc)
        if compiled is None:
            return ValidationReport(ok=True, passthrough=True)
        return ValidationReport(ok=True, compiled=compiled)

    def compile(self, plot: PlotSpec) -> CompiledPlot:
        """Check ``plot`` and parse all of its expressions."""
        start = time.perf_counter() if logger.isEnabledFor(logging.DEBUG) else None
        rule = KIND_RULES.get(plot.kind)
        if rule is None:
            raise InvalidGraphSpec(
                f"unknown plot kind {plot.kind!r}; expected one of {', '.join(KIND_RULES)}"
            )

        intervals = self._intervals(plot, rule)
        resolution = self._resolution(plot)
        self._check_style(plot)

        expressions: dict[str, Expression] = {}
        for slot in rule.slots:
            expressions[slot] = self._parse_slot(plot, slot, rule.variables)
        if rule.drawn_slot not in expressions and plot.expression(rule.drawn_slot):
            expressions[rule.drawn_slot] = self._parse_slot(plot, rule.drawn_slot, rule.variables)

        bound_variable: Optional[str] = None
        lower: CompiledBound = None
        upper: CompiledBound = None
        integral = plot.integral
        if rule.integrand:
            if integral is None or not integral.function.strip():
                raise MissingExpressionSlot("integral.function", plot.kind)
            expressions["integral.function"] = self._parse(
                "integral.function", integral.function, rule.variables
            )
            if integral.between_functions:
                if not (integral.function2 or "").strip():
                    raise MissingExpressionSlot("integral.function2", plot.kind)
                expressions["integral.function2"] = self._parse(
                    "integral.function2", integral.function2, rule.variables
                )
            expressions.setdefault(rule.drawn_slot, expressions["integral.function"])
        if integral is not None and rule.bound_variables:
            bound_variable = integral.variable or rule.bound_variables[0]
            if bound_variable not in rule.bound_variables:
                raise InvalidGraphSpec(
                    f"{plot.kind} integral variable must be one of {rule.bound_variables}, "
                    f"got {bound_variable!r}"
                )
            lower = self._bound(expressions, "integral.lowerBound", integral.lower_bound, bound_variable)
            upper = self._bound(expressions, "integral.upperBound", integral.upper_bound, bound_variable)
        if integral is not None and integral.area_opacity is not None:
            if not 0.0 <= integral.area_opacity <= 1.0:
                raise InvalidGraphSpec(f"integral.areaOpacity must be in [0, 1], got {integral.area_opacity}")
        if plot.kind == "cylindrical_integral":
            # The volume lattice needs a z range; it is optional until shading is requested.
            if plot.interval("z") is not None or (integral is not None and integral.show_area):
                intervals["z"] = self._axis_interval(plot, "z")

        compiled = CompiledPlot(
            plot=plot,
            rule=rule,
            resolution=resolution,
            intervals=MappingProxyType(intervals),
            expressions=MappingProxyType(expressions),
            bound_variable=bound_variable,
            lower_bound=lower,
            upper_bound=upper,
        )
        if start is not None:
            logger.debug(
                "compiled %s (%d expressions, resolution %d) in %.3f ms",
                plot.kind, len(expressions), resolution, (time.perf_counter() - start) * 1000,
            )
        return compiled

    def ensure_compiled(self, plot: PlotSpec | CompiledPlot, resolution: Optional[int] = None) -> CompiledPlot:
        """Compile ``plot`` unless it already is, then apply a resolution override."""
        compiled = plot if isinstance(plot, CompiledPlot) else self.compile(plot)
        if resolution is not None:
            compiled = compiled.with_resolution(self._within_ceiling(resolution))
        return compiled

    # ------------------------------------------------------------------
    # helpers

    def _intervals(self, plot: PlotSpec, rule: KindRule) -> dict[str, Interval]:
        return {axis: self._axis_interval(plot, axis) for axis in rule.axes}

    @staticmethod
    def _axis_interval(plot: PlotSpec, axis: str) -> Interval:
        interval = plot.interval(axis)
        if interval is None and axis in _AXIS_FALLBACKS:
            interval = plot.interval(_AXIS_FALLBACKS[axis])
        if interval is None:
            raise InvalidDomain(f"{plot.kind} requires a domain for axis {axis!r}")
        return validate_interval(interval, axis=axis)

    def _resolution(self, plot: PlotSpec) -> int:
        if plot.resolution is None:
            return min(self.config.default_resolution(plot.kind), self.config.max_resolution)
        return self._within_ceiling(plot.resolution)

    def _within_ceiling(self, resolution: Any) -> int:
        resolution = validate_count(resolution)
        if resolution > self.config.max_resolution:
            raise InvalidDomain(
                f"resolution {resolution} exceeds the maximum of {self.config.max_resolution}"
            )
        return resolution

    @staticmethod
    def _check_style(plot: PlotSpec) -> None:
        width = plot.style.line_width
        if width is not None and not (math.isfinite(width) and width >= 0):
            raise InvalidGraphSpec(f"style.lineWidth must be a finite number >= 0, got {width}")

    def _parse_slot(self, plot: PlotSpec, slot: str, variables: tuple[str, ...]) -> Expression:
        source = plot.expression(slot)
        if source is None or not source.strip():
            raise MissingExpressionSlot(slot, plot.kind)
        return self._parse(slot, source, variables)

    def _parse(self, slot: str, source: str, variables: tuple[str, ...]) -> Expression:
        try:
            return self.evaluator.parse(source, variables)
        except ParseError as exc:
            raise ParseError(f"{slot}: {exc.reason}", exc.position, exc.source) from exc

    def _bound(
        self, expressions: dict[str, Expression], slot: str, bound: Any, variable: str
    ) -> CompiledBound:
        if bound is None:
            return None
        if isinstance(bound, str):
            if not bound.strip():
                return None
            expr = self._parse(slot, bound, (variable,))
            expressions[slot] = expr
            return expr
        value = as_float(bound, slot)
        if not math.isfinite(value):
            raise InvalidDomain(f"{slot} must be finite, got {value}")
        return value
