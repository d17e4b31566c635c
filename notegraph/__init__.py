"""Top-level public API for the ``notegraph`` package.

The package turns graph specifications authored in a note-taking canvas into
renderable geometry:

>>> from notegraph import GraphEngine, GraphSpec
>>> spec = GraphSpec.from_dict({
...     "graphType": "mathematical",
...     "plot": {"kind": "2d_explicit", "domain": {"x": [0, 2]},
...              "resolution": 2, "expressions": {"yOfX": "x^2"}},
... })
>>> GraphEngine().render(spec).curve.to_json()  # doctest: +NORMALIZE_WHITESPACE
[{'x': 0.0, 'y': 0.0, 'z': 0.0}, {'x': 1.0, 'y': 1.0, 'z': 0.0},
 {'x': 2.0, 'y': 4.0, 'z': 0.0}]

The building blocks (parser, evaluator, generators, LOD policy) are exported
as well for callers that need finer control.
"""

import logging

from .GraphSpec import GraphSpec, IntegralSpec, PlotSpec, PlotStyle
from .curve_generator import CurveGenerator
from .debouncing import RecomputeDebouncer
from .domain_sampler import sample_1d, sample_2d, validate_interval
from .engine_config import EngineConfig
from .errors import (
    BindingMismatch,
    GraphEngineError,
    InvalidDomain,
    InvalidGraphSpec,
    MissingExpressionSlot,
    ParseError,
    UnsupportedPlotKind,
)
from .evaluation_cache import CacheInfo, EvaluationCache
from .evaluator import ExpressionEvaluator
from .expression import Expression
from .expression_parser import parse_cached, parse_expression
from .geometry import PointSequence, RegionGeometry, SurfaceMesh, batch_meshes
from .graph_engine import GraphEngine, GraphResult, RenderItem
from .graph_spec_validator import CompiledPlot, GraphSpecValidator, ValidationReport
from .integral_region import IntegralRegionBuilder
from .lod_controller import (
    CameraState,
    GraphBounds,
    LODController,
    LODLevel,
    LODState,
    Quality,
    Viewport,
)
from .surface_mesh import SurfaceMeshBuilder

# Importing the package never configures global logging.
logging.getLogger(__name__).addHandler(logging.NullHandler())

__version__ = "0.1.0"
