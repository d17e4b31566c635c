"""Property-based checks for parsing, sampling, LOD policy and mesh layout.

Symbolic results from SymPy serve as the oracle for expression evaluation.
"""

from __future__ import annotations

import math
from importlib import import_module

import numpy as np
import pytest
import sympy as sp

parse_expression = import_module("notegraph.expression_parser").parse_expression
sample_1d = import_module("notegraph.domain_sampler").sample_1d
LODController = import_module("notegraph.lod_controller").LODController
SurfaceMeshBuilder = import_module("notegraph.surface_mesh").SurfaceMeshBuilder
PlotSpec = import_module("notegraph.GraphSpec").PlotSpec

try:
    from hypothesis import given, settings
    from hypothesis import strategies as st
except ModuleNotFoundError:  # pragma: no cover - environment-specific fallback
    pytest.skip("hypothesis is required for property-based tests", allow_module_level=True)


SMALL_INTS = st.integers(min_value=-9, max_value=9)
SAMPLE_POINTS = st.floats(min_value=-10.0, max_value=10.0, allow_nan=False, allow_infinity=False, width=64)

_x = sp.Symbol("x")


@settings(deadline=None)
@given(a=SMALL_INTS, b=SMALL_INTS, c=SMALL_INTS, x=SAMPLE_POINTS)
def test_polynomial_matches_sympy(a: int, b: int, c: int, x: float) -> None:
    source = f"{a}*x^2 + ({b})*x - ({c})"
    expr = parse_expression(source, ("x",))
    oracle = float((a * _x**2 + b * _x - c).subs(_x, x))
    assert expr.evaluate_raw((x,)) == pytest.approx(oracle, rel=1e-12, abs=1e-9)


@settings(deadline=None)
@given(k=st.integers(min_value=1, max_value=5), x=SAMPLE_POINTS)
def test_trig_and_exp_match_sympy(k: int, x: float) -> None:
    expr = parse_expression(f"sin({k}*x) * cos(x) + exp(-x^2 / {k})", "x")
    oracle = sp.lambdify(_x, sp.sin(k * _x) * sp.cos(_x) + sp.exp(-(_x**2) / k), "math")
    assert expr.evaluate_raw((x,)) == pytest.approx(oracle(x), rel=1e-12, abs=1e-9)


@given(base=st.integers(min_value=1, max_value=4), e1=st.integers(0, 3), e2=st.integers(0, 2))
def test_power_is_right_associative_like_sympy(base: int, e1: int, e2: int) -> None:
    expr = parse_expression(f"{base}^{e1}^{e2}", ("x",))
    assert expr.evaluate_raw((0.0,)) == float(sp.Integer(base) ** (sp.Integer(e1) ** sp.Integer(e2)))


@given(
    lo=st.floats(min_value=-1e6, max_value=1e6, allow_nan=False),
    width=st.floats(min_value=0.0, max_value=1e6, allow_nan=False),
    count=st.integers(min_value=1, max_value=500),
)
def test_sample_1d_endpoints_and_order(lo: float, width: float, count: int) -> None:
    hi = lo + width
    samples = sample_1d((lo, hi), count)
    assert len(samples) == count + 1
    assert samples[0] == lo
    assert samples[-1] == pytest.approx(hi)
    assert np.all(np.diff(samples) >= 0)


@given(
    base=st.integers(min_value=1, max_value=500),
    zoom_a=st.floats(min_value=0.01, max_value=10.0),
    zoom_b=st.floats(min_value=0.01, max_value=10.0),
    count=st.integers(min_value=0, max_value=50),
)
def test_effective_resolution_monotone_in_zoom_and_bounded(
    base: int, zoom_a: float, zoom_b: float, count: int
) -> None:
    controller = LODController()
    lo_zoom, hi_zoom = sorted((zoom_a, zoom_b))
    a = controller.compute_effective_resolution(base, lo_zoom, count)
    b = controller.compute_effective_resolution(base, hi_zoom, count)
    assert a <= b
    for value in (a, b):
        assert math.ceil(0.1 * base) <= value <= 2 * base


@given(
    base=st.integers(min_value=1, max_value=500),
    zoom=st.floats(min_value=0.01, max_value=10.0),
    n=st.integers(min_value=1, max_value=50),
)
def test_effective_resolution_non_increasing_in_graph_count(base: int, zoom: float, n: int) -> None:
    controller = LODController()
    assert controller.compute_effective_resolution(base, zoom, n + 1) <= controller.compute_effective_resolution(
        base, zoom, n
    )


@given(res=st.integers(min_value=1, max_value=2000), max_tri=st.integers(min_value=2, max_value=200_000))
def test_capped_resolution_never_exceeds_ceiling(res: int, max_tri: int) -> None:
    capped = LODController.capped_resolution(res, max_tri)
    assert 1 <= capped <= res
    assert 2 * capped**2 <= max_tri


@settings(max_examples=25, deadline=None)
@given(res=st.integers(min_value=1, max_value=12), a=SMALL_INTS, b=SMALL_INTS)
def test_finite_surface_has_full_triangle_count(res: int, a: int, b: int) -> None:
    plot = PlotSpec.from_dict(
        {
            "kind": "3d_surface",
            "domain": {"x": [-1, 1], "y": [-1, 1]},
            "resolution": res,
            "expressions": {"surfaceZ": f"{a}*x + ({b})*y"},
        }
    )
    mesh = SurfaceMeshBuilder().build_triangulated_mesh(plot)
    assert mesh.triangle_count == 2 * res**2
    assert mesh.vertex_count == 4 * res**2
    assert int(mesh.indices.max()) < mesh.vertex_count
    assert np.allclose(np.linalg.norm(mesh.normals, axis=1), 1.0)
