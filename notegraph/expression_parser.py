"""Tokenizer and Pratt parser for the restricted expression language.

Grammar
-------
::

    expr    := expr ('+' | '-') expr
             | expr ('*' | '/') expr
             | expr ('^' | '**') expr        # right associative
             | ('-' | '+') expr              # binds looser than '^'
             | NUMBER | CONSTANT | VARIABLE
             | FUNCTION '(' expr (',' expr)* ')'
             | '(' expr ')'

Every identifier is resolved while parsing: bound variables, the constants
``pi`` and ``e``, or an allow-listed function (see
:data:`notegraph.expression.FUNCTIONS`). Anything else is reported as a
:class:`~notegraph.errors.ParseError` carrying the character position, so
problems surface when a specification is validated rather than mid-sampling.

Public API
----------
- :func:`tokenize`
- :func:`parse_expression`
- :func:`parse_cached` (memoized; exposes ``cache_info`` / ``cache_clear``)
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Iterable

from .errors import ParseError
from .expression import (
    CONSTANTS,
    FUNCTIONS,
    BinaryOp,
    Call,
    Expression,
    Literal,
    Node,
    UnaryOp,
    Variable,
)

__all__ = ["Token", "tokenize", "parse_expression", "parse_cached", "normalize_variables"]

logger = logging.getLogger(__name__)

_MAX_DEPTH = 200
_PARSE_CACHE_MAXSIZE = 512

_TOKEN_SPEC = [
    ("NUMBER", r"(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?"),
    ("IDENT", r"[A-Za-z_][A-Za-z0-9_]*"),
    ("POW", r"\*\*"),
    ("OP", r"[-+*/^(),]"),
    ("SPACE", r"\s+"),
    ("MISMATCH", r"."),
]
_TOKEN_RE = re.compile("|".join(f"(?P<{name}>{pattern})" for name, pattern in _TOKEN_SPEC))

# Binding powers for infix operators.
_INFIX_BP: dict[str, tuple[int, int]] = {
    "+": (10, 11),
    "-": (10, 11),
    "*": (20, 21),
    "/": (20, 21),
    "^": (41, 40),  # right associative
}
_PREFIX_BP = 30


@dataclass(frozen=True)
class Token:
    kind: str  # NUMBER, IDENT, OP, END
    text: str
    position: int


def tokenize(source: str) -> list[Token]:
    """Split ``source`` into tokens, ending with a synthetic ``END`` token.

    Raises
    ------
    ParseError
        On any character outside the language.
    """
    tokens: list[Token] = []
    for match in _TOKEN_RE.finditer(source):
        kind = match.lastgroup
        text = match.group()
        if kind == "SPACE":
            continue
        if kind == "MISMATCH":
            raise ParseError(f"unexpected character {text!r}", match.start(), source)
        if kind == "POW":
            kind, text = "OP", "^"
        tokens.append(Token(kind, text, match.start()))
    tokens.append(Token("END", "", len(source)))
    return tokens


def normalize_variables(variables: Iterable[str] | str) -> tuple[str, ...]:
    """Validate and return the ordered variable tuple for a call site.

    Raises
    ------
    ValueError
        If there are not one or two distinct identifier names, or a name
        collides with a constant or allow-listed function.
    """
    if isinstance(variables, str):
        names = (variables,)
    else:
        names = tuple(variables)
    if not 1 <= len(names) <= 2:
        raise ValueError(f"expressions take one or two variables, got {len(names)}: {names!r}")
    if len(set(names)) != len(names):
        raise ValueError(f"duplicate variable names: {names!r}")
    for name in names:
        if not isinstance(name, str) or not re.fullmatch(r"[A-Za-z_][A-Za-z0-9_]*", name):
            raise ValueError(f"invalid variable name: {name!r}")
        if name in CONSTANTS or name in FUNCTIONS:
            raise ValueError(f"variable name {name!r} shadows a built-in constant or function")
    return names


class _Parser:
    def __init__(self, source: str, variables: tuple[str, ...]) -> None:
        self.source = source
        self.variables = variables
        self.tokens = tokenize(source)
        self.pos = 0
        self.depth = 0
        # Tree height per interior node (by id); leaves count as 1.
        self._heights: dict[int, int] = {}

    # -- token helpers -------------------------------------------------------

    def peek(self) -> Token:
        return self.tokens[self.pos]

    def advance(self) -> Token:
        tok = self.tokens[self.pos]
        self.pos += 1
        return tok

    def error(self, reason: str, token: Token) -> ParseError:
        return ParseError(reason, token.position, self.source)

    def expect(self, text: str) -> Token:
        tok = self.peek()
        if tok.kind != "OP" or tok.text != text:
            found = "end of input" if tok.kind == "END" else repr(tok.text)
            raise self.error(f"expected {text!r}, found {found}", tok)
        return self.advance()

    def grow(self, node: Node, children: Iterable[Node], token: Token) -> Node:
        """Record the height of a new interior node, rejecting over-deep trees.

        Left-associative chains such as ``x+x+...+x`` are built iteratively,
        so the recursion counter in :meth:`expression` does not see them.
        """
        height = 1 + max((self._heights.get(id(child), 1) for child in children), default=0)
        if height > _MAX_DEPTH:
            raise self.error("expression is nested too deeply", token)
        self._heights[id(node)] = height
        return node

    # -- grammar -------------------------------------------------------------

    def parse(self) -> Node:
        if self.peek().kind == "END":
            raise self.error("empty expression", self.peek())
        node = self.expression(0)
        tok = self.peek()
        if tok.kind != "END":
            raise self.error(f"unexpected {tok.text!r}", tok)
        return node

    def expression(self, min_bp: int) -> Node:
        self.depth += 1
        if self.depth > _MAX_DEPTH:
            raise self.error("expression is nested too deeply", self.peek())
        try:
            left = self.prefix()
            while True:
                tok = self.peek()
                if tok.kind != "OP" or tok.text not in _INFIX_BP:
                    break
                left_bp, right_bp = _INFIX_BP[tok.text]
                if left_bp < min_bp:
                    break
                self.advance()
                right = self.expression(right_bp)
                left = self.grow(BinaryOp(tok.text, left, right), (left, right), tok)
            return left
        finally:
            self.depth -= 1

    def prefix(self) -> Node:
        tok = self.advance()
        if tok.kind == "NUMBER":
            return Literal(float(tok.text))
        if tok.kind == "IDENT":
            return self.identifier(tok)
        if tok.kind == "OP" and tok.text in ("-", "+"):
            operand = self.expression(_PREFIX_BP)
            return self.grow(UnaryOp(tok.text, operand), (operand,), tok)
        if tok.kind == "OP" and tok.text == "(":
            inner = self.expression(0)
            self.expect(")")
            return inner
        if tok.kind == "END":
            raise self.error("unexpected end of expression", tok)
        raise self.error(f"unexpected {tok.text!r}", tok)

    def identifier(self, tok: Token) -> Node:
        name = tok.text
        is_call = self.peek().kind == "OP" and self.peek().text == "("
        if name in self.variables:
            if is_call:
                raise self.error(f"variable {name!r} cannot be called", tok)
            return Variable(name, self.variables.index(name))
        if name in CONSTANTS:
            if is_call:
                raise self.error(f"constant {name!r} cannot be called", tok)
            return Literal(CONSTANTS[name], name)
        if name in FUNCTIONS:
            if not is_call:
                raise self.error(f"function {name!r} must be called with arguments", tok)
            return self.call(tok)
        if is_call:
            raise self.error(f"unknown function {name!r}", tok)
        raise self.error(f"unknown identifier {name!r}", tok)

    def call(self, name_tok: Token) -> Node:
        self.expect("(")
        args: list[Node] = []
        if self.peek().kind == "OP" and self.peek().text == ")":
            self.advance()
        else:
            while True:
                args.append(self.expression(0))
                if self.peek().kind == "OP" and self.peek().text == ",":
                    self.advance()
                    continue
                self.expect(")")
                break
        spec = FUNCTIONS[name_tok.text]
        if not spec.accepts(len(args)):
            raise self.error(
                f"{spec.name}() takes {spec.arity_text()}, got {len(args)}", name_tok
            )
        return self.grow(Call(spec.name, tuple(args)), args, name_tok)


def parse_expression(source: str, variables: Iterable[str] | str) -> Expression:
    """Parse ``source`` into an :class:`~notegraph.expression.Expression`.

    Parameters
    ----------
    source : str
        Expression text, e.g. ``"sin(x) * exp(-y^2)"``.
    variables : iterable of str
        Ordered free variables (one or two).

    Raises
    ------
    ParseError
        On syntax errors, unknown identifiers or wrong function arity.
    ValueError
        If ``variables`` is not a valid variable tuple.
    """
    if not isinstance(source, str):
        raise ParseError(f"expression must be a string, got {type(source).__name__}", 0)
    names = normalize_variables(variables)
    root = _Parser(source, names).parse()
    return Expression(source=source, variables=names, root=root)


@lru_cache(maxsize=_PARSE_CACHE_MAXSIZE)
def _parse_cached_impl(source: str, variables: tuple[str, ...]) -> Expression:
    # Only runs on cache misses; exceptions are not cached.
    if logger.isEnabledFor(logging.DEBUG):
        logger.debug("parse_cached: cache MISS source=%r vars=%s", source, variables)
    return parse_expression(source, variables)


def parse_cached(source: str, variables: Iterable[str] | str) -> Expression:
    """Memoized :func:`parse_expression`.

    Parsing is pure, so the same ``(source, variables)`` pair always maps to
    the same immutable :class:`Expression` object while it stays cached.
    """
    if not isinstance(source, str):
        raise ParseError(f"expression must be a string, got {type(source).__name__}", 0)
    return _parse_cached_impl(source, normalize_variables(variables))


parse_cached.cache_info = _parse_cached_impl.cache_info  # type: ignore[attr-defined]
parse_cached.cache_clear = _parse_cached_impl.cache_clear  # type: ignore[attr-defined]
