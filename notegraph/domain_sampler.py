"""Evenly spaced parameter grids over closed intervals."""

from __future__ import annotations

import math
from typing import Any, Sequence

import numpy as np

from .errors import InvalidDomain

__all__ = ["Interval", "as_float", "validate_interval", "validate_count", "sample_1d", "sample_2d"]

Interval = tuple[float, float]


def as_float(value: Any, where: str) -> float:
    """``float(value)``, raising :class:`InvalidDomain` for integers beyond float range."""
    try:
        return float(value)
    except OverflowError as exc:
        raise InvalidDomain(f"{where} is out of range for a float") from exc


def validate_interval(interval: Any, *, axis: str = "interval") -> Interval:
    """Return ``interval`` as a ``(min, max)`` float pair or raise :class:`InvalidDomain`."""
    if isinstance(interval, (str, bytes)) or not isinstance(interval, Sequence) or len(interval) != 2:
        raise InvalidDomain(f"domain {axis} must be a [min, max] pair, got {interval!r}")
    lo, hi = interval
    for bound in (lo, hi):
        if isinstance(bound, bool) or not isinstance(bound, (int, float, np.integer, np.floating)):
            raise InvalidDomain(f"domain {axis} bounds must be numbers, got {interval!r}")
    lo, hi = as_float(lo, f"domain {axis}"), as_float(hi, f"domain {axis}")
    if not (math.isfinite(lo) and math.isfinite(hi)):
        raise InvalidDomain(f"domain {axis} bounds must be finite, got [{lo}, {hi}]")
    if lo > hi:
        raise InvalidDomain(f"domain {axis} has min > max: [{lo}, {hi}]")
    return (lo, hi)


def validate_count(count: Any) -> int:
    if isinstance(count, bool) or not isinstance(count, (int, np.integer)) or count < 1:
        raise InvalidDomain(f"sample count must be an integer >= 1, got {count!r}")
    return int(count)


def _readonly(values: np.ndarray) -> np.ndarray:
    values.flags.writeable = False
    return values


def sample_1d(interval: Any, count: Any) -> np.ndarray:
    """Return ``count + 1`` evenly spaced values covering ``interval`` inclusively.

    Examples
    --------
    >>> sample_1d((0, 10), 5).tolist()
    [0.0, 2.0, 4.0, 6.0, 8.0, 10.0]
    """
    lo, hi = validate_interval(interval)
    n = validate_count(count)
    return _readonly(np.linspace(lo, hi, n + 1, dtype=np.float64))


def sample_2d(interval_x: Any, interval_y: Any, count: Any) -> tuple[np.ndarray, np.ndarray]:
    """Return ``(X, Y)`` grids of shape ``(count + 1, count + 1)``.

    ``X[i, j]`` is the i-th sample of ``interval_x`` and ``Y[i, j]`` the j-th
    sample of ``interval_y`` (``ij`` indexing), so iterating ``i`` in the outer
    loop walks the first axis.
    """
    xs = sample_1d(interval_x, count)
    ys = sample_1d(interval_y, count)
    grid_x, grid_y = np.meshgrid(xs, ys, indexing="ij")
    return _readonly(grid_x), _readonly(grid_y)
