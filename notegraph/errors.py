"""Error taxonomy for the graph engine.

Structural failures (bad expressions, bad domains, missing expression slots,
malformed specifications) are raised as the typed exceptions below and must be
surfaced to the caller. Ordinary bad math (NaN, infinities, division by zero)
is never raised; it degrades to omitted or zero-filled samples.
"""

from __future__ import annotations

__all__ = [
    "GraphEngineError",
    "ParseError",
    "InvalidDomain",
    "MissingExpressionSlot",
    "InvalidGraphSpec",
    "UnsupportedPlotKind",
    "BindingMismatch",
]


class GraphEngineError(Exception):
    """Base class for structural errors reported by the engine."""


class ParseError(GraphEngineError, ValueError):
    """Expression source could not be parsed.

    Parameters
    ----------
    reason : str
        Human-readable description of the problem.
    position : int
        Zero-based character offset in the source where the problem was found.
    source : str, optional
        The offending source text, used only for the message.
    """

    def __init__(self, reason: str, position: int, source: str | None = None) -> None:
        self.reason = reason
        self.position = position
        self.source = source
        if source is None:
            message = f"{reason} (at position {position})"
        else:
            message = f"{reason} (at position {position} in {source!r})"
        super().__init__(message)


class InvalidDomain(GraphEngineError, ValueError):
    """Sampling interval or resolution is unusable (fatal for that plot)."""


class MissingExpressionSlot(GraphEngineError, KeyError):
    """A plot kind requires an expression slot that is absent or empty."""

    def __init__(self, slot: str, kind: str) -> None:
        self.slot = slot
        self.kind = kind
        super().__init__(f"{kind} requires the {slot!r} expression")

    def __str__(self) -> str:
        # KeyError would otherwise repr() the message.
        return str(self.args[0])


class InvalidGraphSpec(GraphEngineError, ValueError):
    """Specification is structurally malformed (wrong types, unknown kind...)."""


class UnsupportedPlotKind(InvalidGraphSpec):
    """A generator was asked to handle a plot kind it does not produce."""


class BindingMismatch(GraphEngineError, TypeError):
    """``evaluate`` was called with bindings that differ from the parse-time variables."""
