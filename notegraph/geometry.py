"""Sampled geometry produced by the generators.

Purpose
-------
Every generator returns one of three frozen records:

- :class:`PointSequence` for 2D curves (line strips),
- :class:`SurfaceMesh` for triangulated surfaces,
- :class:`RegionGeometry` for shaded integral regions.

Arrays are float64 (indices uint32) and marked read-only, so a record can be
shared between a cache, a renderer and a test without defensive copies.

Serialization
-------------
``to_json()`` returns the wire shapes consumed by the canvas renderer:

- curves: ``[{"x": .., "y": .., "z": ..}, ...]``
- surfaces: ``{"vertices": [...], "normals": [...], "indices": [...]}`` (flat,
  stride 3)
- regions: ``[[{x,y,z}, {x,y,z}], ...]`` or, for point clouds,
  ``[{x,y,z}, ...]``
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Sequence

import numpy as np

__all__ = ["PointSequence", "SurfaceMesh", "RegionGeometry", "batch_meshes", "readonly"]


def readonly(values: Any, dtype: Any = np.float64) -> np.ndarray:
    """Return a read-only array copy of ``values``."""
    out = np.array(values, dtype=dtype, copy=True)
    out.flags.writeable = False
    return out


def _points_array(points: Any) -> np.ndarray:
    arr = readonly(points)
    if arr.size == 0:
        arr = readonly(np.empty((0, 3)))
    if arr.ndim != 2 or arr.shape[1] != 3:
        raise ValueError(f"points must have shape (n, 3), got {arr.shape}")
    return arr


def _point_dicts(points: np.ndarray) -> list[dict[str, float]]:
    return [{"x": float(x), "y": float(y), "z": float(z)} for x, y, z in points.tolist()]


@dataclass(frozen=True, eq=False)
class PointSequence:
    """Ordered 3D points of a curve.

    Parameters
    ----------
    points : array-like, shape (n, 3)
        Points in domain traversal order; omitted samples leave no entry.
    breaks : tuple of int
        Index of every point that directly follows one or more omitted
        samples, except the first point. The renderer starts a new strip at
        each of them.
    degraded : int
        Number of omitted samples.
    """

    points: np.ndarray
    breaks: tuple[int, ...] = ()
    degraded: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "points", _points_array(self.points))
        object.__setattr__(self, "breaks", tuple(int(b) for b in self.breaks))

    def __len__(self) -> int:
        return int(self.points.shape[0])

    def segments(self) -> list[np.ndarray]:
        """Split :attr:`points` at :attr:`breaks` into contiguous runs."""
        cuts = [b for b in self.breaks if 0 < b < len(self)]
        return [run for run in np.split(self.points, cuts) if len(run)]

    def to_json(self) -> list[dict[str, float]]:
        return _point_dicts(self.points)


@dataclass(frozen=True, eq=False)
class SurfaceMesh:
    """Indexed triangle mesh with one unit normal per vertex.

    ``vertices`` and ``normals`` have shape ``(n, 3)``; ``indices`` has shape
    ``(m, 3)`` with one row per triangle. ``resolution`` is the grid size the
    mesh was sampled at and ``skipped_cells`` the number of grid cells
    dropped because a corner was not finite.
    """

    vertices: np.ndarray
    normals: np.ndarray
    indices: np.ndarray
    resolution: int = 0
    skipped_cells: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "vertices", _points_array(self.vertices))
        object.__setattr__(self, "normals", _points_array(self.normals))
        indices = readonly(self.indices, np.uint32)
        if indices.size == 0:
            indices = readonly(np.empty((0, 3)), np.uint32)
        object.__setattr__(self, "indices", indices.reshape(-1, 3))
        if self.vertices.shape != self.normals.shape:
            raise ValueError("vertices and normals must have the same shape")

    @property
    def triangle_count(self) -> int:
        return int(self.indices.shape[0])

    @property
    def vertex_count(self) -> int:
        return int(self.vertices.shape[0])

    def to_json(self) -> dict[str, list]:
        return {
            "vertices": self.vertices.ravel().tolist(),
            "normals": self.normals.ravel().tolist(),
            "indices": self.indices.ravel().tolist(),
        }


@dataclass(frozen=True, eq=False)
class RegionGeometry:
    """Shaded integral region.

    Either ``pairs`` (shape ``(n, 2, 3)``: function point then baseline or
    second-function point) or, for cylindrical volumes, a bare point cloud in
    ``points``. ``degraded`` counts excluded samples.
    """

    pairs: np.ndarray = field(default_factory=lambda: np.empty((0, 2, 3)))
    points: np.ndarray | None = None
    degraded: int = 0

    def __post_init__(self) -> None:
        pairs = readonly(self.pairs)
        if pairs.size == 0:
            pairs = readonly(np.empty((0, 2, 3)))
        if pairs.ndim != 3 or pairs.shape[1:] != (2, 3):
            raise ValueError(f"pairs must have shape (n, 2, 3), got {pairs.shape}")
        object.__setattr__(self, "pairs", pairs)
        if self.points is not None:
            object.__setattr__(self, "points", _points_array(self.points))

    @property
    def is_point_cloud(self) -> bool:
        return self.points is not None

    def __len__(self) -> int:
        if self.points is not None:
            return int(self.points.shape[0])
        return int(self.pairs.shape[0])

    def to_json(self) -> list:
        if self.points is not None:
            return _point_dicts(self.points)
        return [[_point_dicts(pair[:1])[0], _point_dicts(pair[1:])[0]] for pair in self.pairs]


def batch_meshes(items: Iterable[tuple[SurfaceMesh, Sequence[float]]]) -> SurfaceMesh:
    """Merge meshes into one, translating each by its offset.

    Indices of every mesh after the first are shifted by the number of
    vertices already emitted, so the merged index buffer stays valid.
    """
    vertices: list[np.ndarray] = []
    normals: list[np.ndarray] = []
    indices: list[np.ndarray] = []
    base = 0
    resolution = 0
    skipped = 0
    for mesh, offset in items:
        shift = np.asarray(offset, dtype=np.float64).reshape(3)
        vertices.append(mesh.vertices + shift)
        normals.append(mesh.normals)
        indices.append(mesh.indices.astype(np.int64) + base)
        base += mesh.vertex_count
        resolution = max(resolution, mesh.resolution)
        skipped += mesh.skipped_cells
    if not vertices:
        return SurfaceMesh(np.empty((0, 3)), np.empty((0, 3)), np.empty((0, 3)))
    return SurfaceMesh(
        vertices=np.concatenate(vertices),
        normals=np.concatenate(normals),
        indices=np.concatenate(indices),
        resolution=resolution,
        skipped_cells=skipped,
    )
