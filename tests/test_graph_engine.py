"""End-to-end behaviour of :class:`notegraph.GraphEngine`."""

from __future__ import annotations

import json
import logging
from importlib import import_module

import pytest

notegraph = import_module("notegraph")

GraphEngine = notegraph.GraphEngine
GraphSpec = notegraph.GraphSpec
EngineConfig = notegraph.EngineConfig
RenderItem = notegraph.RenderItem
Viewport = notegraph.Viewport
GraphBounds = notegraph.GraphBounds
LODLevel = notegraph.LODLevel
LODState = notegraph.LODState


def _math(plot: dict) -> dict:
    return {"graphType": "mathematical", "plot": plot}


PARABOLA = _math({"kind": "2d_explicit", "domain": {"x": [-1, 1]}, "resolution": 20, "expressions": {"yOfX": "x^2"}})
SURFACE = _math(
    {
        "kind": "3d_surface",
        "domain": {"x": [-2, 2], "y": [-2, 2]},
        "expressions": {"surfaceZ": "sin(x) * cos(y)"},
    }
)


def test_render_curve_reports_ok_and_geometry() -> None:
    result = GraphEngine().render(PARABOLA)
    assert result.ok
    assert result.resolution == 20
    assert len(result.curve) == 21
    assert result.mesh is None and result.region is None
    assert result.lod is LODLevel.NEAR
    assert result.antialias
    payload = result.to_json()
    assert payload["status"] == "ok"
    assert payload["curve"][0] == {"x": -1.0, "y": 1.0, "z": 0.0}


def test_invalid_spec_yields_error_and_no_geometry(caplog) -> None:
    doc = _math({"kind": "2d_explicit", "domain": {"x": [0, 1]}, "expressions": {"yOfX": "sin(x"}})
    with caplog.at_level(logging.DEBUG, logger="notegraph.graph_engine"):
        result = GraphEngine().render(doc)
    assert result.status == "invalid"
    assert isinstance(result.error, notegraph.ParseError)
    assert result.curve is None and result.mesh is None
    assert result.to_json()["error"]["type"] == "ParseError"
    assert "invalid graph spec" in caplog.text


def test_unknown_kind_is_invalid_not_raised() -> None:
    result = GraphEngine().render(_math({"kind": "4d_hyper"}))
    assert result.status == "invalid"
    assert isinstance(result.error, notegraph.InvalidGraphSpec)


def test_chart_specs_pass_through() -> None:
    doc = {"graphType": "chart", "chart": {"type": "line"}}
    result = GraphEngine().render(doc)
    assert result.status == "passthrough"
    assert result.graph_spec.to_dict() == doc


def test_graphs_outside_the_viewport_are_culled() -> None:
    view = Viewport(x=0, y=0, width=800, height=600)
    result = GraphEngine().render(PARABOLA, viewport=view, bounds=GraphBounds(2000, 0, 100, 100))
    assert result.status == "culled"
    assert result.curve is None


def test_render_from_json_text_is_byte_identical() -> None:
    engine = GraphEngine()
    spec = GraphSpec.from_dict(SURFACE)
    again = GraphSpec.from_json(json.dumps(json.loads(spec.to_json())))
    a = engine.render(spec).mesh
    b = GraphEngine().render(again).mesh
    assert a.vertices.tobytes() == b.vertices.tobytes()
    assert a.normals.tobytes() == b.normals.tobytes()
    assert a.indices.tobytes() == b.indices.tobytes()


def test_zoom_and_quality_change_resolution() -> None:
    engine = GraphEngine()
    assert engine.render(PARABOLA, LODState(zoom=2.0)).resolution == 40
    assert engine.render(PARABOLA, LODState(fps=40.0)).resolution == 10
    low = engine.render(PARABOLA, LODState(fps=10.0))
    assert low.resolution == 5
    assert not low.antialias


def test_far_surface_respects_triangle_ceiling() -> None:
    config = EngineConfig(lod_max_triangles={"near": 50_000, "medium": 15_000, "far": 200})
    view = Viewport(x=0, y=0, width=800, height=600)
    result = GraphEngine(config).render(SURFACE, viewport=view, position=(400 + 1500, 300))
    assert result.lod is LODLevel.FAR
    assert result.resolution == 10
    assert result.mesh.triangle_count <= 200


def test_render_many_counts_only_visible_graphs() -> None:
    view = Viewport(x=0, y=0, width=800, height=600)
    inside = [RenderItem(PARABOLA, position=(400, 300), bounds=GraphBounds(10, 10, 50, 50)) for _ in range(6)]
    outside = RenderItem(PARABOLA, position=(5000, 300), bounds=GraphBounds(5000, 10, 50, 50))
    results = GraphEngine().render_many([*inside, outside], viewport=view)
    assert [r.status for r in results] == ["ok"] * 6 + ["culled"]
    # six visible graphs halve the resolution
    assert {r.resolution for r in results[:6]} == {10}


def test_render_many_accepts_bare_specs() -> None:
    results = GraphEngine().render_many([PARABOLA, PARABOLA])
    assert [r.resolution for r in results] == [20, 20]


def test_area_integral_reports_value_and_region() -> None:
    doc = _math(
        {
            "kind": "2d_integral",
            "domain": {"x": [0, 3]},
            "resolution": 30,
            "integral": {"function": "x^2", "lowerBound": 0, "upperBound": 3, "showArea": True},
        }
    )
    result = GraphEngine().render(doc)
    assert result.ok
    assert result.integral_value == pytest.approx(9.0)
    assert len(result.region) == 31
    assert result.to_json()["integralValue"] == pytest.approx(9.0)


def test_volume_integral_without_area_has_no_region() -> None:
    doc = _math(
        {
            "kind": "3d_integral",
            "domain": {"x": [0, 1], "y": [0, 1]},
            "resolution": 10,
            "integral": {"function": "x + y"},
        }
    )
    result = GraphEngine().render(doc)
    assert result.integral_value == pytest.approx(1.0)
    assert result.region is None
    assert result.mesh.triangle_count == 200


def test_shared_evaluator_cache_is_reused_between_renders() -> None:
    engine = GraphEngine()
    engine.render(PARABOLA)
    hits = engine.evaluator.cache.info().hits
    engine.render(PARABOLA)
    assert engine.evaluator.cache.info().hits > hits


def test_config_from_mapping_rejects_unknown_and_invalid_options() -> None:
    config = EngineConfig.from_mapping({"cache_policy": "lru", "default_resolutions": {"2d_explicit": 10}})
    assert config.cache_policy == "lru"
    assert config.default_resolution("2d_explicit") == 10
    assert config.default_resolution("3d_surface") == 50
    with pytest.raises(ValueError, match="unknown EngineConfig option"):
        EngineConfig.from_mapping({"resolution": 5})
    with pytest.raises(ValueError):
        EngineConfig.from_mapping({"cache_capacity": 0})


def test_engine_cache_follows_config() -> None:
    engine = GraphEngine(EngineConfig(cache_capacity=5, cache_policy="lru"))
    engine.render(PARABOLA)
    info = engine.evaluator.cache.info()
    assert info.capacity == 5
    assert info.size == 5
    assert info.evictions == 16


@pytest.mark.parametrize(
    "plot, error",
    [
        (
            {"kind": "2d_explicit", "domain": {"x": [0, 1]}, "expressions": {"yOfX": "+".join(["x"] * 1500)}},
            "ParseError",
        ),
        (
            {"kind": "2d_explicit", "domain": {"x": [0, 10**400]}, "expressions": {"yOfX": "x"}},
            "InvalidDomain",
        ),
        (
            {"kind": "2d_explicit", "domain": {"x": [0, 1]}, "resolution": 10**9, "expressions": {"yOfX": "x"}},
            "InvalidDomain",
        ),
    ],
)
def test_hostile_specs_render_as_invalid(plot, error) -> None:
    result = GraphEngine().render(_math(plot))
    assert result.status == "invalid"
    assert result.curve is None
    assert type(result.error).__name__ == error


def test_zoomed_resolution_stops_at_configured_ceiling() -> None:
    engine = GraphEngine(EngineConfig(max_resolution=30))
    assert engine.render(PARABOLA, LODState(zoom=2.0)).resolution == 30
    assert GraphEngine(EngineConfig(max_resolution=10)).render(PARABOLA).status == "invalid"
