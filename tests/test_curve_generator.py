from __future__ import annotations

import math
from importlib import import_module

import numpy as np
import pytest

CurveGenerator = import_module("notegraph.curve_generator").CurveGenerator
PlotSpec = import_module("notegraph.GraphSpec").PlotSpec
errors = import_module("notegraph.errors")


def _plot(kind: str, domain: dict, expressions: dict, resolution: int | None = None, **extra) -> PlotSpec:
    return PlotSpec.from_dict(
        {"kind": kind, "domain": domain, "expressions": expressions, "resolution": resolution, **extra}
    )


def test_explicit_curve_with_three_samples() -> None:
    curve = CurveGenerator().generate(_plot("2d_explicit", {"x": [0, 2]}, {"yOfX": "x^2"}, 2))
    assert curve.to_json() == [
        {"x": 0.0, "y": 0.0, "z": 0.0},
        {"x": 1.0, "y": 1.0, "z": 0.0},
        {"x": 2.0, "y": 4.0, "z": 0.0},
    ]
    assert curve.breaks == ()
    assert curve.degraded == 0


def test_resolution_override_wins_over_spec() -> None:
    plot = _plot("2d_explicit", {"x": [0, 1]}, {"yOfX": "x"}, 4)
    assert len(CurveGenerator().generate(plot)) == 5
    assert len(CurveGenerator().generate(plot, resolution=10)) == 11


def test_non_finite_samples_are_omitted_and_breaks_recorded() -> None:
    curve = CurveGenerator().generate(_plot("2d_explicit", {"x": [-2, 2]}, {"yOfX": "1/x"}, 4))
    xs = curve.points[:, 0].tolist()
    assert xs == [-2.0, -1.0, 1.0, 2.0]
    assert curve.breaks == (2,)
    assert curve.degraded == 1
    runs = curve.segments()
    assert [len(r) for r in runs] == [2, 2]


def test_leading_omissions_do_not_create_a_break() -> None:
    curve = CurveGenerator().generate(_plot("2d_explicit", {"x": [-2, 2]}, {"yOfX": "sqrt(x)"}, 4))
    assert curve.points[:, 0].tolist() == [0.0, 1.0, 2.0]
    assert curve.breaks == ()
    assert curve.degraded == 2


def test_parametric_circle() -> None:
    plot = _plot("2d_parametric", {"t": [0, 2 * math.pi]}, {"xOfT": "cos(t)", "yOfT": "sin(t)"}, 8)
    curve = CurveGenerator().generate(plot)
    assert len(curve) == 9
    radii = np.hypot(curve.points[:, 0], curve.points[:, 1])
    assert np.allclose(radii, 1.0)
    assert np.allclose(curve.points[0], curve.points[-1])


def test_parametric_omits_when_either_coordinate_fails() -> None:
    plot = _plot("2d_parametric", {"t": [-1, 1]}, {"xOfT": "t", "yOfT": "log(t)"}, 2)
    curve = CurveGenerator().generate(plot)
    assert curve.points[:, 0].tolist() == [1.0]


def test_polar_maps_and_omits_negative_radius() -> None:
    plot = _plot("2d_polar", {"theta": [0, math.pi]}, {"rOfTheta": "cos(theta)"}, 4)
    curve = CurveGenerator().generate(plot)
    # cos is negative on (pi/2, pi]
    assert len(curve) == 3
    first = curve.points[0]
    assert first.tolist() == pytest.approx([1.0, 0.0, 0.0])
    assert curve.degraded == 2


def test_polar_uses_x_domain_when_theta_is_absent() -> None:
    plot = _plot("2d_polar", {"x": [0, math.pi / 2]}, {"rOfTheta": "2"}, 1)
    curve = CurveGenerator().generate(plot)
    assert np.allclose(curve.points, [[2.0, 0.0, 0.0], [0.0, 2.0, 0.0]], atol=1e-12)


def test_integral_kind_draws_integrand_or_y_of_x() -> None:
    gen = CurveGenerator()
    plot = _plot("2d_integral", {"x": [0, 1]}, {}, 1, integral={"function": "3*x"})
    assert gen.generate(plot).points[:, 1].tolist() == [0.0, 3.0]
    plot = _plot("2d_integral", {"x": [0, 1]}, {"yOfX": "x + 10"}, 1, integral={"function": "3*x"})
    assert gen.generate(plot).points[:, 1].tolist() == [10.0, 11.0]


def test_generation_is_deterministic() -> None:
    plot = _plot("2d_explicit", {"x": [-3, 3]}, {"yOfX": "sin(x) * exp(-x^2)"}, 50)
    a = CurveGenerator().generate(plot)
    b = CurveGenerator().generate(plot)
    assert a.points.tobytes() == b.points.tobytes()
    assert not a.points.flags.writeable


def test_surface_kind_is_unsupported() -> None:
    plot = _plot("3d_surface", {"x": [0, 1], "y": [0, 1]}, {"surfaceZ": "x"}, 2)
    with pytest.raises(errors.UnsupportedPlotKind):
        CurveGenerator().generate(plot)


def test_identity_curve_over_symmetric_domain() -> None:
    curve = CurveGenerator().generate(_plot("2d_explicit", {"x": [-1, 1]}, {"yOfX": "x"}, 2))
    assert curve.points.tolist() == [[-1.0, -1.0, 0.0], [0.0, 0.0, 0.0], [1.0, 1.0, 0.0]]
