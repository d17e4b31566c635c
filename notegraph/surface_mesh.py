"""Point clouds and triangulated meshes for surface kinds.

Purpose
-------
Samples a two-parameter expression ``f(u, v)`` over its grid and maps each
sample into 3D:

- ``3d_surface`` and ``3d_integral``: ``(u, v) = (x, y)``, position ``(x, y, f)``.
- ``cylindrical_integral``: ``(u, v) = (r, theta)``, position
  ``(r cos theta, r sin theta, f)``.
- ``spherical_integral``: ``(u, v) = (theta, phi)``, position
  ``(f sin phi cos theta, f sin phi sin theta, f cos phi)``.

A sample is missing when the expression is not finite there or, for the
spherical kind, when the radius is negative.

Mesh layout
-----------
Each grid cell ``(i, j)`` with four usable corners contributes its own four
vertices, in the order ``(i, j)``, ``(i+1, j)``, ``(i, j+1)``, ``(i+1, j+1)``,
and two triangles ``(0, 1, 2)`` and ``(1, 3, 2)`` relative to the cell's first
vertex. Every vertex carries the unit normal of the cross product of its two
cell edges; a zero-length cross product leaves a zero normal. Cells with a
missing corner are skipped, so a mesh at resolution ``n`` has
``2 * n**2 - 2 * skipped_cells`` triangles.
"""

from __future__ import annotations

import logging
import time
from typing import Optional

import numpy as np

from .GraphSpec import PlotSpec, SURFACE_KINDS
from .domain_sampler import sample_1d
from .engine_config import EngineConfig
from .errors import UnsupportedPlotKind
from .evaluator import ExpressionEvaluator
from .geometry import PointSequence, SurfaceMesh
from .graph_spec_validator import CompiledPlot, GraphSpecValidator

__all__ = ["SurfaceMeshBuilder", "unit_normals", "map_positions"]

logger = logging.getLogger(__name__)


def unit_normals(a: np.ndarray, b: np.ndarray, c: np.ndarray) -> np.ndarray:
    """Row-wise ``normalize(cross(b - a, c - a))``; zero-length rows stay zero."""
    normal = np.cross(b - a, c - a)
    length = np.linalg.norm(normal, axis=-1, keepdims=True)
    out = np.zeros_like(normal)
    np.divide(normal, length, out=out, where=length > 0)
    return out


class SurfaceMeshBuilder:
    """Build point clouds and meshes for the surface kinds."""

    def __init__(
        self,
        evaluator: ExpressionEvaluator | None = None,
        config: EngineConfig | None = None,
    ) -> None:
        self.evaluator = evaluator if evaluator is not None else ExpressionEvaluator()
        self.config = config if config is not None else EngineConfig()
        self._validator = GraphSpecValidator(self.evaluator, self.config)

    def sample_grid(self, compiled: CompiledPlot) -> tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
        """Evaluate the drawn expression over the ``(u, v)`` grid.

        Returns
        -------
        grid_u, grid_v : ndarray, shape (n+1, n+1)
            Parameter grids (``ij`` indexing).
        values : ndarray, shape (n+1, n+1)
            Raw expression values (may contain ``nan``/``inf``).
        valid : ndarray of bool, shape (n+1, n+1)
            Usable samples.
        """
        if compiled.kind not in SURFACE_KINDS:
            raise UnsupportedPlotKind(f"SurfaceMeshBuilder cannot build {compiled.kind!r}")
        u_axis, v_axis = compiled.rule.axes
        us = sample_1d(compiled.interval(u_axis), compiled.resolution)
        vs = sample_1d(compiled.interval(v_axis), compiled.resolution)
        expr = compiled.expression(compiled.rule.drawn_slot)
        values = np.array(
            [[self.evaluator.evaluate_at(expr, u, v) for v in vs.tolist()] for u in us.tolist()],
            dtype=np.float64,
        ).reshape(len(us), len(vs))
        grid_u, grid_v = np.meshgrid(us, vs, indexing="ij")
        valid = np.isfinite(values)
        if compiled.kind == "spherical_integral":
            with np.errstate(invalid="ignore"):
                valid &= values >= 0
        return grid_u, grid_v, values, valid

    def build_point_cloud(self, plot: PlotSpec | CompiledPlot, resolution: Optional[int] = None) -> PointSequence:
        """Grid-ordered points; missing samples are placed at ``f = 0``.

        The outer loop walks the first parameter axis. ``degraded`` on the
        result counts the zero-filled samples.
        """
        compiled = self._validator.ensure_compiled(plot, resolution)
        grid_u, grid_v, values, valid = self.sample_grid(compiled)
        filled = map_positions(compiled.kind, grid_u, grid_v, np.where(valid, values, 0.0))
        degraded = int(valid.size - np.count_nonzero(valid))
        if degraded:
            logger.debug("%s point cloud: zero-filled %d of %d samples", compiled.kind, degraded, valid.size)
        return PointSequence(filled.reshape(-1, 3), degraded=degraded)

    def build_triangulated_mesh(
        self, plot: PlotSpec | CompiledPlot, resolution: Optional[int] = None
    ) -> SurfaceMesh:
        """Triangulate the sampled grid (see the module docstring for the layout)."""
        compiled = self._validator.ensure_compiled(plot, resolution)
        start = time.perf_counter() if logger.isEnabledFor(logging.DEBUG) else None
        grid_u, grid_v, values, valid = self.sample_grid(compiled)
        positions = map_positions(compiled.kind, grid_u, grid_v, np.where(valid, values, np.nan))

        cell_ok = valid[:-1, :-1] & valid[1:, :-1] & valid[:-1, 1:] & valid[1:, 1:]
        p1 = positions[:-1, :-1][cell_ok]
        p2 = positions[1:, :-1][cell_ok]
        p3 = positions[:-1, 1:][cell_ok]
        p4 = positions[1:, 1:][cell_ok]
        cells = p1.shape[0]

        vertices = np.stack([p1, p2, p3, p4], axis=1).reshape(-1, 3)
        normals = np.stack(
            [
                unit_normals(p1, p2, p3),
                unit_normals(p2, p4, p1),
                unit_normals(p3, p1, p4),
                unit_normals(p4, p3, p2),
            ],
            axis=1,
        ).reshape(-1, 3)
        first = 4 * np.arange(cells, dtype=np.int64)[:, None]
        indices = np.stack([first + (0, 1, 2), first + (1, 3, 2)], axis=1).reshape(-1, 3)

        skipped = int(cell_ok.size - cells)
        mesh = SurfaceMesh(
            vertices=vertices,
            normals=normals,
            indices=indices,
            resolution=compiled.resolution,
            skipped_cells=skipped,
        )
        if start is not None:
            logger.debug(
                "%s mesh: resolution %d, %d triangles, %d skipped cells in %.3f ms",
                compiled.kind, compiled.resolution, mesh.triangle_count, skipped,
                (time.perf_counter() - start) * 1000,
            )
        return mesh


def map_positions(kind: str, u: np.ndarray, v: np.ndarray, f: np.ndarray) -> np.ndarray:
    """Map parameter grids and values to 3D positions for ``kind``."""
    if kind == "cylindrical_integral":
        xyz = (u * np.cos(v), u * np.sin(v), f)
    elif kind == "spherical_integral":
        xyz = (f * np.sin(v) * np.cos(u), f * np.sin(v) * np.sin(u), f * np.cos(v))
    else:
        xyz = (u, v, f)
    return np.stack(xyz, axis=-1)
