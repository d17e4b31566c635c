"""Expression evaluator facade: memoized parsing plus cached evaluation.

Purpose
-------
Generators never talk to the parser or the interpreter directly; they go
through one :class:`ExpressionEvaluator`, which

- parses each ``(source, variables)`` pair once (via :func:`parse_cached`),
- enforces that ``evaluate`` receives exactly the parse-time variables,
- memoizes results in an injectable :class:`EvaluationCache`,
- counts non-finite results for diagnostics without ever raising for them.

Logging
-------
The module logger is silent by default. Enable it with::

    import logging
    logging.getLogger("notegraph.evaluator").setLevel(logging.DEBUG)
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Mapping, Sequence

from .errors import BindingMismatch
from .evaluation_cache import EvaluationCache
from .expression import Expression
from .expression_parser import parse_cached

__all__ = ["ExpressionEvaluator"]

logger = logging.getLogger(__name__)


class ExpressionEvaluator:
    """Parse and evaluate restricted math expressions.

    Parameters
    ----------
    cache : EvaluationCache, optional
        Result cache; a fresh 1000-entry FIFO cache is created when omitted.
        Pass a dedicated instance per worker thread to shard it.
    """

    def __init__(self, cache: EvaluationCache | None = None) -> None:
        self._cache = cache if cache is not None else EvaluationCache()
        self._degraded = 0

    @property
    def cache(self) -> EvaluationCache:
        return self._cache

    @property
    def degraded_count(self) -> int:
        """Number of non-finite results produced so far."""
        return self._degraded

    def parse(self, source: str, variables: Iterable[str] | str) -> Expression:
        """Parse ``source`` with the given ordered variables.

        Raises
        ------
        ParseError
            For syntax errors and unknown identifiers.
        """
        return parse_cached(source, variables)

    def evaluate(self, expr: Expression, bindings: Mapping[str, float]) -> float:
        """Evaluate ``expr`` at ``bindings`` (symbol name to number).

        Returns
        -------
        float
            Possibly ``nan`` or ``inf``; never raises for numeric trouble.

        Raises
        ------
        BindingMismatch
            If the binding names differ from the parse-time variables.
        """
        if set(bindings) != set(expr.variables):
            raise BindingMismatch(
                f"expression {expr.source!r} expects bindings for {expr.variables}, "
                f"got {tuple(sorted(bindings))}"
            )
        try:
            values = tuple(float(bindings[name]) for name in expr.variables)
        except (TypeError, ValueError) as exc:
            raise BindingMismatch(f"binding values must be numbers, got {dict(bindings)!r}") from exc
        return self._evaluate_values(expr, values)

    def evaluate_at(self, expr: Expression, *values: float) -> float:
        """Positional variant of :meth:`evaluate` in variable order."""
        if len(values) != len(expr.variables):
            raise BindingMismatch(
                f"expression {expr.source!r} expects {len(expr.variables)} value(s), got {len(values)}"
            )
        return self._evaluate_values(expr, tuple(float(v) for v in values))

    def evaluate_many(self, expr: Expression, samples: Sequence[float]) -> list[float]:
        """Evaluate a one-variable expression at each sample, in order."""
        if len(expr.variables) != 1:
            raise BindingMismatch(
                f"evaluate_many needs a one-variable expression, {expr.source!r} has {expr.variables}"
            )
        return [self._evaluate_values(expr, (float(s),)) for s in samples]

    def _evaluate_values(self, expr: Expression, values: tuple[float, ...]) -> float:
        key = (expr.key, values)
        cached = self._cache.get(key)
        if cached is not None:
            return cached
        result = expr.evaluate_raw(values)
        if not math.isfinite(result):
            self._degraded += 1
            if logger.isEnabledFor(logging.DEBUG):
                logger.debug("non-finite result %r for %r at %s", result, expr.source, values)
        self._cache.put(key, result)
        return result

    def __repr__(self) -> str:
        return f"ExpressionEvaluator(cache={self._cache!r}, degraded={self._degraded})"
