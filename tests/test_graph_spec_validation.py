"""GraphSpec data model and validation gate."""

from __future__ import annotations

import json
from importlib import import_module

import pytest

graph_spec = import_module("notegraph.GraphSpec")
validator_mod = import_module("notegraph.graph_spec_validator")
errors = import_module("notegraph.errors")

GraphSpec = graph_spec.GraphSpec
PlotSpec = graph_spec.PlotSpec
GraphSpecValidator = validator_mod.GraphSpecValidator


def _math(plot: dict) -> dict:
    return {"graphType": "mathematical", "plot": plot}


EXPLICIT = _math(
    {
        "kind": "2d_explicit",
        "title": "parabola",
        "domain": {"x": [-5, 5]},
        "resolution": 200,
        "expressions": {"yOfX": "x^2"},
        "style": {"color": "#3b82f6", "lineWidth": 2},
    }
)


def test_round_trip_preserves_the_json_document() -> None:
    spec = GraphSpec.from_dict(EXPLICIT)
    again = GraphSpec.from_json(spec.to_json())
    assert again.to_dict() == spec.to_dict()
    assert spec.to_dict()["plot"]["domain"] == {"x": [-5.0, 5.0]}
    assert spec.plot.style.line_width == 2


def test_spec_is_immutable_and_replace_returns_new_objects() -> None:
    spec = GraphSpec.from_dict(EXPLICIT)
    with pytest.raises(Exception):
        spec.plot.kind = "3d_surface"
    with pytest.raises(TypeError):
        spec.plot.expressions["yOfX"] = "x"
    changed = spec.with_plot(spec.plot.replace(resolution=10))
    assert changed.plot.resolution == 10
    assert spec.plot.resolution == 200


def test_bare_plot_document_is_mathematical() -> None:
    spec = GraphSpec.from_dict({"plot": EXPLICIT["plot"]})
    assert spec.is_mathematical


def test_chart_payload_passes_through_untouched() -> None:
    doc = {"graphType": "chart", "chart": {"type": "bar", "data": [1, 2, 3]}, "extra": {"a": None}}
    spec = GraphSpec.from_dict(doc)
    assert spec.to_dict() == doc
    assert GraphSpecValidator().validate(spec) is None
    report = GraphSpecValidator().check(doc)
    assert report.ok and report.passthrough


@pytest.mark.parametrize(
    "doc, error",
    [
        ({"graphType": "pie"}, errors.InvalidGraphSpec),
        ({"graphType": "mathematical"}, errors.InvalidGraphSpec),
        (_math({"domain": {"x": [0, 1]}}), errors.InvalidGraphSpec),
        (_math({"kind": "2d_explicit", "domain": {"x": [0]}}), errors.InvalidDomain),
        (_math({"kind": "2d_explicit", "domain": {"x": ["a", 1]}}), errors.InvalidDomain),
        (_math({"kind": "2d_explicit", "resolution": 2.5}), errors.InvalidDomain),
        (_math({"kind": "2d_explicit", "expressions": {"yOfX": 3}}), errors.InvalidGraphSpec),
        (_math({"kind": "2d_explicit", "style": {"lineWidth": "wide"}}), errors.InvalidGraphSpec),
    ],
)
def test_malformed_documents_raise_typed_errors(doc, error) -> None:
    with pytest.raises(error):
        GraphSpec.from_dict(doc)


def test_invalid_json_text_is_invalid_graph_spec() -> None:
    with pytest.raises(errors.InvalidGraphSpec):
        GraphSpec.from_json("{not json")


def test_unknown_keys_and_axes_are_ignored() -> None:
    doc = _math(
        {
            "kind": "2d_explicit",
            "domain": {"x": [0, 1], "w": [0, 1]},
            "expressions": {"yOfX": "x", "zOfQ": "q"},
            "unknownKey": True,
        }
    )
    compiled = GraphSpecValidator().validate(doc)
    assert set(compiled.intervals) == {"x"}


@pytest.mark.parametrize(
    "plot, slot",
    [
        ({"kind": "2d_explicit", "domain": {"x": [0, 1]}, "expressions": {}}, "yOfX"),
        ({"kind": "2d_explicit", "domain": {"x": [0, 1]}, "expressions": {"yOfX": "  "}}, "yOfX"),
        ({"kind": "2d_parametric", "domain": {"t": [0, 1]}, "expressions": {"xOfT": "t"}}, "yOfT"),
        ({"kind": "3d_surface", "domain": {"x": [0, 1], "y": [0, 1]}}, "surfaceZ"),
        ({"kind": "2d_integral", "domain": {"x": [0, 1]}}, "integral.function"),
        (
            {
                "kind": "2d_integral",
                "domain": {"x": [0, 1]},
                "integral": {"function": "x", "betweenFunctions": True},
            },
            "integral.function2",
        ),
    ],
)
def test_missing_slots_name_the_slot(plot, slot) -> None:
    with pytest.raises(errors.MissingExpressionSlot) as info:
        GraphSpecValidator().validate(_math(plot))
    assert info.value.slot == slot
    assert slot in str(info.value)


def test_domain_checks() -> None:
    v = GraphSpecValidator()
    with pytest.raises(errors.InvalidDomain, match="min > max"):
        v.validate(_math({"kind": "2d_explicit", "domain": {"x": [5, -5]}, "expressions": {"yOfX": "x"}}))
    with pytest.raises(errors.InvalidDomain, match="axis 'y'"):
        v.validate(_math({"kind": "3d_surface", "domain": {"x": [0, 1]}, "expressions": {"surfaceZ": "x"}}))
    with pytest.raises(errors.InvalidDomain):
        v.validate(
            _math({"kind": "2d_explicit", "domain": {"x": [0, 1]}, "resolution": 0, "expressions": {"yOfX": "x"}})
        )


def test_out_of_range_numbers_are_invalid_domains() -> None:
    with pytest.raises(errors.InvalidDomain, match="out of range"):
        GraphSpec.from_dict(_math({"kind": "2d_explicit", "domain": {"x": [0, 10**400]}, "expressions": {"yOfX": "x"}}))
    with pytest.raises(errors.InvalidDomain, match="out of range"):
        GraphSpec.from_dict(
            _math({"kind": "2d_integral", "domain": {"x": [0, 1]}, "integral": {"function": "x", "lowerBound": 10**400}})
        )


def test_resolution_above_the_ceiling_is_rejected() -> None:
    v = GraphSpecValidator()
    base = {"kind": "2d_explicit", "domain": {"x": [0, 1]}, "expressions": {"yOfX": "x"}}
    for resolution in (10**9, 1e300):
        with pytest.raises(errors.InvalidDomain, match="exceeds the maximum of 5000"):
            v.validate(_math({**base, "resolution": resolution}))
    assert v.validate(_math({**base, "resolution": 5000})).resolution == 5000

    small = GraphSpecValidator(config=import_module("notegraph.engine_config").EngineConfig(max_resolution=50))
    compiled = small.validate(_math(base))
    assert compiled.resolution == 50
    assert small.ensure_compiled(compiled, 20).resolution == 20
    with pytest.raises(errors.InvalidDomain):
        small.ensure_compiled(compiled, 51)


def test_polar_domain_falls_back_to_x() -> None:
    compiled = GraphSpecValidator().validate(
        _math({"kind": "2d_polar", "domain": {"x": [0, 3]}, "expressions": {"rOfTheta": "theta"}})
    )
    assert compiled.interval("theta") == (0.0, 3.0)


def test_parse_errors_name_the_slot() -> None:
    with pytest.raises(errors.ParseError) as info:
        GraphSpecValidator().validate(
            _math({"kind": "2d_explicit", "domain": {"x": [0, 1]}, "expressions": {"yOfX": "x +* 2"}})
        )
    assert info.value.reason.startswith("yOfX:")


def test_integral_bounds_and_options_are_checked() -> None:
    v = GraphSpecValidator()
    base = {"kind": "2d_integral", "domain": {"x": [0, 4]}}
    compiled = v.validate(_math({**base, "integral": {"function": "x", "lowerBound": 1, "upperBound": "x/2 + 1"}}))
    assert compiled.lower_bound == 1.0
    assert compiled.expression("integral.upperBound").variables == ("x",)
    assert compiled.literal_bound("upper") is None
    assert compiled.literal_bound("lower") == 1.0

    with pytest.raises(errors.ParseError):
        v.validate(_math({**base, "integral": {"function": "x", "upperBound": "y"}}))
    with pytest.raises(errors.InvalidGraphSpec):
        v.validate(_math({**base, "integral": {"function": "x", "variable": "y"}}))
    with pytest.raises(errors.InvalidGraphSpec):
        v.validate(_math({**base, "integral": {"function": "x", "areaOpacity": 1.5}}))


def test_default_resolution_comes_from_config() -> None:
    config = import_module("notegraph.engine_config").EngineConfig(default_resolutions={"3d_surface": 12})
    v = GraphSpecValidator(config=config)
    compiled = v.validate(
        _math({"kind": "3d_surface", "domain": {"x": [0, 1], "y": [0, 1]}, "expressions": {"surfaceZ": "x*y"}})
    )
    assert compiled.resolution == 12
    curve = v.validate(_math({"kind": "2d_explicit", "domain": {"x": [0, 1]}, "expressions": {"yOfX": "x"}}))
    assert curve.resolution == 200


def test_check_reports_instead_of_raising() -> None:
    report = GraphSpecValidator().check(_math({"kind": "nope"}))
    assert not report.ok
    assert isinstance(report.error, errors.InvalidGraphSpec)
    assert "unknown plot kind" in report.message


def test_json_text_with_integral_round_trips() -> None:
    doc = _math(
        {
            "kind": "2d_integral",
            "domain": {"x": [0, 1]},
            "expressions": {},
            "integral": {"function": "x", "lowerBound": "0", "showArea": True, "areaOpacity": 0.4},
        }
    )
    text = GraphSpec.from_dict(doc).to_json(sort_keys=True)
    assert json.loads(text)["plot"]["integral"]["areaOpacity"] == 0.4
    assert GraphSpec.from_json(text).to_json(sort_keys=True) == text
