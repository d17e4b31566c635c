"""Immutable graph specification records and their JSON mapping.

A ``GraphSpec`` is the complete description of one graph as sent by the
editor layer. It is created once, never edited in place (use
:meth:`PlotSpec.replace` / :meth:`GraphSpec.with_plot` to derive a new one),
and converted to and from the camelCase JSON structure of the input contract:

.. code-block:: json

    {
      "graphType": "mathematical",
      "plot": {
        "kind": "2d_explicit",
        "domain": {"x": [-5, 5]},
        "resolution": 200,
        "expressions": {"yOfX": "x^2"},
        "style": {"color": "#3b82f6", "lineWidth": 2}
      }
    }

Unknown keys are ignored. ``chart`` and ``statistical`` graphs are kept as
their raw payload and re-emitted unchanged.
"""

from __future__ import annotations

import json
from copy import deepcopy
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any, Mapping, Optional, Union

from .domain_sampler import as_float
from .errors import InvalidDomain, InvalidGraphSpec

__all__ = [
    "PLOT_KINDS",
    "CURVE_KINDS",
    "SURFACE_KINDS",
    "DOMAIN_AXES",
    "GRAPH_TYPES",
    "Bound",
    "PlotStyle",
    "IntegralSpec",
    "PlotSpec",
    "GraphSpec",
]

PLOT_KINDS = (
    "2d_explicit",
    "2d_parametric",
    "2d_polar",
    "2d_integral",
    "3d_surface",
    "3d_integral",
    "cylindrical_integral",
    "spherical_integral",
)
CURVE_KINDS = ("2d_explicit", "2d_parametric", "2d_polar", "2d_integral")
SURFACE_KINDS = ("3d_surface", "3d_integral", "cylindrical_integral", "spherical_integral")
DOMAIN_AXES = ("x", "y", "z", "t", "r", "theta", "phi")
GRAPH_TYPES = ("mathematical", "chart", "statistical")

Bound = Union[float, str, None]


def _freeze(mapping: Mapping[str, Any]) -> Mapping[str, Any]:
    return MappingProxyType(dict(mapping))


def _require_mapping(value: Any, where: str) -> Mapping[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise InvalidGraphSpec(f"{where} must be an object, got {type(value).__name__}")
    return value


def _optional(value: Any, types: tuple[type, ...], where: str) -> Any:
    if value is None:
        return None
    if isinstance(value, bool) and bool not in types:
        raise InvalidGraphSpec(f"{where} has the wrong type: {value!r}")
    if not isinstance(value, types):
        raise InvalidGraphSpec(f"{where} has the wrong type: {value!r}")
    return value


def _bound_from_json(value: Any, where: str) -> Bound:
    if value is None or isinstance(value, str):
        return value
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidGraphSpec(f"{where} must be a number or an expression string, got {value!r}")
    return as_float(value, where)


@dataclass(frozen=True)
class PlotStyle:
    """Explicit style configuration; never derived from ambient theme state."""

    color: Optional[str] = None
    line_width: Optional[float] = None
    show_grid: Optional[bool] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> "PlotStyle":
        data = _require_mapping(data, "plot.style")
        return cls(
            color=_optional(data.get("color"), (str,), "plot.style.color"),
            line_width=_optional(data.get("lineWidth"), (int, float), "plot.style.lineWidth"),
            show_grid=_optional(data.get("showGrid"), (bool,), "plot.style.showGrid"),
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        if self.color is not None:
            out["color"] = self.color
        if self.line_width is not None:
            out["lineWidth"] = self.line_width
        if self.show_grid is not None:
            out["showGrid"] = self.show_grid
        return out


@dataclass(frozen=True)
class IntegralSpec:
    """Integral sub-specification.

    Parameters
    ----------
    function : str
        Integrand (curve or surface expression).
    function2 : str or None
        Second function for regions between two curves / surfaces.
    variable : str or None
        Variable the bounds are expressed in; ``None`` picks the plot kind's
        default (``x`` for Cartesian kinds, ``r`` for cylindrical, ``theta``
        for spherical).
    lower_bound, upper_bound : float, str or None
        Literal number, expression in ``variable``, or ``None`` for the
        domain edge.
    between_functions : bool
        Shade between ``function`` and ``function2`` instead of the baseline.
    show_area : bool
        Whether the engine builds the shaded region at all.
    area_color : str or None
    area_opacity : float or None
        Opacity in ``[0, 1]``.
    """

    function: str
    function2: Optional[str] = None
    variable: Optional[str] = None
    lower_bound: Bound = None
    upper_bound: Bound = None
    between_functions: bool = False
    show_area: bool = False
    area_color: Optional[str] = None
    area_opacity: Optional[float] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "IntegralSpec":
        data = _require_mapping(data, "plot.integral")
        function = data.get("function")
        if function is not None and not isinstance(function, str):
            raise InvalidGraphSpec(f"plot.integral.function must be a string, got {function!r}")
        return cls(
            function=function or "",
            function2=_optional(data.get("function2"), (str,), "plot.integral.function2"),
            variable=_optional(data.get("variable"), (str,), "plot.integral.variable") or None,
            lower_bound=_bound_from_json(data.get("lowerBound"), "plot.integral.lowerBound"),
            upper_bound=_bound_from_json(data.get("upperBound"), "plot.integral.upperBound"),
            between_functions=bool(_optional(data.get("betweenFunctions"), (bool,), "plot.integral.betweenFunctions")),
            show_area=bool(_optional(data.get("showArea"), (bool,), "plot.integral.showArea")),
            area_color=_optional(data.get("areaColor"), (str,), "plot.integral.areaColor"),
            area_opacity=_optional(data.get("areaOpacity"), (int, float), "plot.integral.areaOpacity"),
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"function": self.function}
        if self.variable is not None:
            out["variable"] = self.variable
        if self.function2 is not None:
            out["function2"] = self.function2
        if self.lower_bound is not None:
            out["lowerBound"] = self.lower_bound
        if self.upper_bound is not None:
            out["upperBound"] = self.upper_bound
        out["betweenFunctions"] = self.between_functions
        out["showArea"] = self.show_area
        if self.area_color is not None:
            out["areaColor"] = self.area_color
        if self.area_opacity is not None:
            out["areaOpacity"] = self.area_opacity
        return out


@dataclass(frozen=True)
class PlotSpec:
    """Immutable description of one mathematical plot."""

    kind: str
    domain: Mapping[str, tuple[float, float]] = field(default_factory=dict)
    expressions: Mapping[str, str] = field(default_factory=dict)
    resolution: Optional[int] = None
    integral: Optional[IntegralSpec] = None
    style: PlotStyle = field(default_factory=PlotStyle)
    title: Optional[str] = None
    x_label: Optional[str] = None
    y_label: Optional[str] = None
    z_label: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "domain", _freeze({axis: tuple(bounds) for axis, bounds in self.domain.items()})
        )
        object.__setattr__(self, "expressions", _freeze(self.expressions))

    def expression(self, slot: str) -> Optional[str]:
        return self.expressions.get(slot)

    def interval(self, axis: str) -> Optional[tuple[float, float]]:
        return self.domain.get(axis)

    def replace(self, **changes: Any) -> "PlotSpec":
        """Return a copy with ``changes`` applied (the original is untouched)."""
        return replace(self, **changes)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PlotSpec":
        data = _require_mapping(data, "plot")
        kind = data.get("kind")
        if not isinstance(kind, str) or not kind:
            raise InvalidGraphSpec("plot.kind is required")

        domain: dict[str, tuple[float, float]] = {}
        for axis, bounds in _require_mapping(data.get("domain"), "plot.domain").items():
            if axis not in DOMAIN_AXES or bounds is None:
                continue
            if isinstance(bounds, (str, bytes)) or not isinstance(bounds, (list, tuple)) or len(bounds) != 2:
                raise InvalidDomain(f"domain.{axis} must be a [min, max] array, got {bounds!r}")
            lo, hi = bounds
            for b in (lo, hi):
                if isinstance(b, bool) or not isinstance(b, (int, float)):
                    raise InvalidDomain(f"domain.{axis} bounds must be numbers, got {bounds!r}")
            domain[axis] = (as_float(lo, f"domain.{axis}"), as_float(hi, f"domain.{axis}"))

        expressions: dict[str, str] = {}
        for slot, source in _require_mapping(data.get("expressions"), "plot.expressions").items():
            if source is None:
                continue
            if not isinstance(source, str):
                raise InvalidGraphSpec(f"plot.expressions.{slot} must be a string, got {source!r}")
            expressions[str(slot)] = source

        resolution = data.get("resolution")
        if resolution is not None and (isinstance(resolution, bool) or not isinstance(resolution, (int, float))):
            raise InvalidDomain(f"plot.resolution must be a positive integer, got {resolution!r}")
        if isinstance(resolution, float):
            if not resolution.is_integer():
                raise InvalidDomain(f"plot.resolution must be a positive integer, got {resolution!r}")
            resolution = int(resolution)

        integral_data = data.get("integral")
        return cls(
            kind=kind,
            domain=domain,
            expressions=expressions,
            resolution=resolution,
            integral=IntegralSpec.from_dict(integral_data) if integral_data is not None else None,
            style=PlotStyle.from_dict(data.get("style")),
            title=_optional(data.get("title"), (str,), "plot.title"),
            x_label=_optional(data.get("xLabel"), (str,), "plot.xLabel"),
            y_label=_optional(data.get("yLabel"), (str,), "plot.yLabel"),
            z_label=_optional(data.get("zLabel"), (str,), "plot.zLabel"),
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"kind": self.kind}
        for key, value in (("title", self.title), ("xLabel", self.x_label),
                           ("yLabel", self.y_label), ("zLabel", self.z_label)):
            if value is not None:
                out[key] = value
        out["domain"] = {axis: [lo, hi] for axis, (lo, hi) in self.domain.items()}
        if self.resolution is not None:
            out["resolution"] = self.resolution
        out["expressions"] = dict(self.expressions)
        if self.integral is not None:
            out["integral"] = self.integral.to_dict()
        style = self.style.to_dict()
        if style:
            out["style"] = style
        return out


@dataclass(frozen=True)
class GraphSpec:
    """Tagged union over ``graph_type``.

    Parameters
    ----------
    graph_type : str
        ``"mathematical"``, ``"chart"`` or ``"statistical"``.
    plot : PlotSpec or None
        Present for mathematical graphs.
    payload : Mapping or None
        Raw, untouched body of non-mathematical graphs.
    version : str or None
        Schema version carried through serialization.
    """

    graph_type: str
    plot: Optional[PlotSpec] = None
    payload: Optional[Mapping[str, Any]] = None
    version: Optional[str] = None

    @property
    def is_mathematical(self) -> bool:
        return self.graph_type == "mathematical"

    @classmethod
    def mathematical(cls, plot: PlotSpec, *, version: str | None = None) -> "GraphSpec":
        return cls(graph_type="mathematical", plot=plot, version=version)

    def with_plot(self, plot: PlotSpec) -> "GraphSpec":
        return replace(self, plot=plot)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "GraphSpec":
        """Build a spec from its JSON-compatible form.

        A bare ``{"plot": ...}`` document (no ``graphType``) is read as a
        mathematical graph.

        Raises
        ------
        InvalidGraphSpec, InvalidDomain
            For structurally malformed input.
        """
        if not isinstance(data, Mapping):
            raise InvalidGraphSpec(f"graph spec must be an object, got {type(data).__name__}")
        graph_type = data.get("graphType")
        if graph_type is None and "plot" in data:
            graph_type = "mathematical"
        if graph_type not in GRAPH_TYPES:
            raise InvalidGraphSpec(f"unknown graphType {graph_type!r}")
        version = _optional(data.get("version"), (str,), "version")
        if graph_type == "mathematical":
            if data.get("plot") is None:
                raise InvalidGraphSpec("mathematical graph spec is missing 'plot'")
            return cls(graph_type=graph_type, plot=PlotSpec.from_dict(data["plot"]), version=version)
        payload = {k: deepcopy(v) for k, v in data.items() if k not in ("graphType", "version")}
        return cls(graph_type=graph_type, payload=MappingProxyType(payload), version=version)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"graphType": self.graph_type}
        if self.version is not None:
            out["version"] = self.version
        if self.plot is not None:
            out["plot"] = self.plot.to_dict()
        if self.payload is not None:
            out.update(deepcopy(dict(self.payload)))
        return out

    @classmethod
    def from_json(cls, text: str) -> "GraphSpec":
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise InvalidGraphSpec(f"graph spec is not valid JSON: {exc}") from exc
        return cls.from_dict(data)

    def to_json(self, **kwargs: Any) -> str:
        return json.dumps(self.to_dict(), **kwargs)

    def __repr__(self) -> str:
        if self.plot is not None:
            return f"GraphSpec(graph_type={self.graph_type!r}, kind={self.plot.kind!r})"
        return f"GraphSpec(graph_type={self.graph_type!r})"
