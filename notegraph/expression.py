"""Parsed expression trees and their tree-walking interpreter.

Purpose
-------
User-authored graph expressions are untrusted text. Instead of compiling them
into Python code, :mod:`notegraph.expression_parser` turns them into the small
immutable tree defined here, and this module interprets that tree over NumPy
``float64`` scalars. Only the node types below exist, so the interpreter can
only ever perform the allow-listed arithmetic and function calls.

Numeric behaviour
-----------------
Evaluation runs inside ``numpy.errstate(all="ignore")``: division by zero,
domain errors (``sqrt(-1)``, ``log(0)``) and overflow produce ``inf``/``nan``
instead of raising. Callers decide what to do with non-finite results.

Examples
--------
>>> from notegraph.expression_parser import parse_expression
>>> expr = parse_expression("x^2 + 1", ("x",))
>>> expr.evaluate_raw((3.0,))
10.0
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Callable, Mapping, Union

import numpy as np

__all__ = [
    "Literal",
    "Variable",
    "UnaryOp",
    "BinaryOp",
    "Call",
    "Node",
    "Expression",
    "FunctionSpec",
    "FUNCTIONS",
    "CONSTANTS",
]


def _round_half_up(value: np.float64) -> np.float64:
    return np.floor(value + 0.5)


def _nan_aware_min(*values: np.float64) -> np.float64:
    if any(np.isnan(v) for v in values):
        return np.float64(np.nan)
    return min(values)


def _nan_aware_max(*values: np.float64) -> np.float64:
    if any(np.isnan(v) for v in values):
        return np.float64(np.nan)
    return max(values)


@dataclass(frozen=True)
class FunctionSpec:
    """Allow-listed function: implementation plus accepted argument counts."""

    name: str
    impl: Callable[..., np.float64]
    min_args: int
    max_args: int | None  # None means variadic

    def accepts(self, count: int) -> bool:
        if count < self.min_args:
            return False
        return self.max_args is None or count <= self.max_args

    def arity_text(self) -> str:
        if self.max_args is None:
            return f"at least {self.min_args} argument(s)"
        if self.min_args == self.max_args:
            return f"exactly {self.min_args} argument(s)"
        return f"{self.min_args} to {self.max_args} arguments"


FUNCTIONS: Mapping[str, FunctionSpec] = {
    spec.name: spec
    for spec in (
        FunctionSpec("sin", np.sin, 1, 1),
        FunctionSpec("cos", np.cos, 1, 1),
        FunctionSpec("tan", np.tan, 1, 1),
        FunctionSpec("asin", np.arcsin, 1, 1),
        FunctionSpec("acos", np.arccos, 1, 1),
        FunctionSpec("atan", np.arctan, 1, 1),
        FunctionSpec("exp", np.exp, 1, 1),
        FunctionSpec("log", np.log, 1, 1),
        FunctionSpec("log10", np.log10, 1, 1),
        FunctionSpec("sqrt", np.sqrt, 1, 1),
        FunctionSpec("abs", np.abs, 1, 1),
        FunctionSpec("floor", np.floor, 1, 1),
        FunctionSpec("ceil", np.ceil, 1, 1),
        FunctionSpec("round", _round_half_up, 1, 1),
        FunctionSpec("min", _nan_aware_min, 1, None),
        FunctionSpec("max", _nan_aware_max, 1, None),
        FunctionSpec("pow", np.power, 2, 2),
    )
}

CONSTANTS: Mapping[str, float] = {"pi": math.pi, "e": math.e}


# -----------------------------------------------------------------------------
# Tree nodes
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class Literal:
    """Numeric literal or named constant (``pi``, ``e``)."""

    value: float
    name: str | None = None

    def eval(self, env: tuple[np.float64, ...]) -> np.float64:
        return np.float64(self.value)

    def to_source(self) -> str:
        return self.name if self.name is not None else repr(self.value)


@dataclass(frozen=True)
class Variable:
    """Reference to a bound variable by its slot in the variable tuple."""

    name: str
    index: int

    def eval(self, env: tuple[np.float64, ...]) -> np.float64:
        return env[self.index]

    def to_source(self) -> str:
        return self.name


@dataclass(frozen=True)
class UnaryOp:
    op: str
    operand: "Node"

    def eval(self, env: tuple[np.float64, ...]) -> np.float64:
        value = self.operand.eval(env)
        return -value if self.op == "-" else value

    def to_source(self) -> str:
        return f"({self.op}{self.operand.to_source()})"


@dataclass(frozen=True)
class BinaryOp:
    op: str
    left: "Node"
    right: "Node"

    def eval(self, env: tuple[np.float64, ...]) -> np.float64:
        a = self.left.eval(env)
        b = self.right.eval(env)
        if self.op == "+":
            return a + b
        if self.op == "-":
            return a - b
        if self.op == "*":
            return a * b
        if self.op == "/":
            return np.divide(a, b)
        return np.power(a, b)

    def to_source(self) -> str:
        return f"({self.left.to_source()} {self.op} {self.right.to_source()})"


@dataclass(frozen=True)
class Call:
    function: str
    args: tuple["Node", ...]

    def eval(self, env: tuple[np.float64, ...]) -> np.float64:
        values = tuple(arg.eval(env) for arg in self.args)
        return FUNCTIONS[self.function].impl(*values)

    def to_source(self) -> str:
        inner = ", ".join(arg.to_source() for arg in self.args)
        return f"{self.function}({inner})"


Node = Union[Literal, Variable, UnaryOp, BinaryOp, Call]


@dataclass(frozen=True)
class Expression:
    """Immutable parsed expression bound to an ordered variable tuple.

    Two expressions parsed from the same source with the same variables are
    equal and share :attr:`key`, which the evaluation cache uses as identity.
    """

    source: str
    variables: tuple[str, ...]
    root: Node = field(repr=False)

    @property
    def key(self) -> tuple[str, tuple[str, ...]]:
        return (self.source, self.variables)

    @property
    def is_constant(self) -> bool:
        return not _uses_variables(self.root)

    def evaluate_raw(self, values: tuple[float, ...]) -> float:
        """Evaluate with positional values in :attr:`variables` order (no cache)."""
        env = tuple(np.float64(v) for v in values)
        with np.errstate(all="ignore"):
            return float(self.root.eval(env))

    def canonical(self) -> str:
        """Fully parenthesized form, useful for debugging precedence."""
        return self.root.to_source()


def _uses_variables(node: Node) -> bool:
    if isinstance(node, Variable):
        return True
    if isinstance(node, Literal):
        return False
    if isinstance(node, UnaryOp):
        return _uses_variables(node.operand)
    if isinstance(node, BinaryOp):
        return _uses_variables(node.left) or _uses_variables(node.right)
    return any(_uses_variables(arg) for arg in node.args)
