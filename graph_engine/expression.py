"""Safe evaluation of single-variable expressions such as ``x^2`` or ``sin(2*pi*x)``.

Source text is tokenized against a strict whitelist, parsed by recursive
descent into a small AST and evaluated by walking the tree with ``x`` bound
to a float. Nothing is ever handed to the interpreter, so an expression can
only ever compute a number.

Grammar::

    expr    := term (("+" | "-") term)*
    term    := unary (("*" | "/") unary)*
    unary   := ("-" | "+") unary | power
    power   := primary (("^" | "**") unary)?
    primary := NUMBER | "x" | CONSTANT | FUNCTION "(" expr ")" | "(" expr ")"

``evaluate`` is total: any parse, domain or overflow problem yields ``None``.
"""
from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Callable

from .constants import MAX_EXPRESSION_LENGTH, MAX_NESTING_DEPTH
from .errors import EvaluationError, ExpressionError

__all__ = [
    "Token",
    "Node",
    "Number",
    "Variable",
    "Constant",
    "UnaryOp",
    "BinaryOp",
    "Call",
    "CompiledExpression",
    "FUNCTIONS",
    "CONSTANTS",
    "tokenize",
    "parse",
    "compile_expression",
    "evaluate",
    "is_valid_expression",
    "to_sympy",
    "latex_label",
]

logger = logging.getLogger(__name__)

_NORMALIZE = {
    "−": "-",  # unicode minus
    "×": "*",
    "·": "*",
    "π": "pi",
}

_NUMBER_RE = re.compile(r"[0-9]+(?:\.[0-9]*)?|\.[0-9]+")
_NAME_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
_OPERATORS = ("**", "+", "-", "*", "/", "^", "(", ")")


# ---------------------------------------------------------------------------
# Function whitelist
# ---------------------------------------------------------------------------


def _sqrt(v: float) -> float:
    if v < 0:
        raise EvaluationError("sqrt of a negative number")
    return math.sqrt(v)


def _log(v: float) -> float:
    if v <= 0:
        raise EvaluationError("log of a non-positive number")
    return math.log(v)


def _log10(v: float) -> float:
    if v <= 0:
        raise EvaluationError("log10 of a non-positive number")
    return math.log10(v)


def _round_half_up(v: float) -> float:
    return float(math.floor(v + 0.5))


FUNCTIONS: dict[str, Callable[[float], float]] = {
    "sin": math.sin,
    "cos": math.cos,
    "tan": math.tan,
    "asin": math.asin,
    "acos": math.acos,
    "atan": math.atan,
    "sqrt": _sqrt,
    "abs": abs,
    "log": _log,  # natural logarithm, same as ln
    "ln": _log,
    "log10": _log10,
    "exp": math.exp,
    "floor": lambda v: float(math.floor(v)),
    "ceil": lambda v: float(math.ceil(v)),
    "round": _round_half_up,
}

CONSTANTS: dict[str, float] = {"pi": math.pi, "e": math.e}

VARIABLE = "x"


def _finite(value: float) -> float:
    if not math.isfinite(value):
        raise EvaluationError("non-finite value")
    return value


# ---------------------------------------------------------------------------
# Tokens
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Token:
    kind: str  # "number" | "name" | "op" | "end"
    text: str
    position: int


def tokenize(source: str) -> list[Token]:
    """Split *source* into whitelisted tokens, raising ``ExpressionError`` otherwise."""
    for glyph, repl in _NORMALIZE.items():
        source = source.replace(glyph, repl)

    tokens: list[Token] = []
    pos = 0
    length = len(source)
    while pos < length:
        ch = source[pos]
        if ch.isspace():
            pos += 1
            continue
        m = _NUMBER_RE.match(source, pos)
        if m:
            tokens.append(Token("number", m.group(0), pos))
            pos = m.end()
            continue
        m = _NAME_RE.match(source, pos)
        if m:
            name = m.group(0)
            if name != VARIABLE and name not in CONSTANTS and name not in FUNCTIONS:
                raise ExpressionError(f"Unknown name '{name}'", pos)
            tokens.append(Token("name", name, pos))
            pos = m.end()
            continue
        for op in _OPERATORS:
            if source.startswith(op, pos):
                tokens.append(Token("op", op, pos))
                pos += len(op)
                break
        else:
            raise ExpressionError(f"Unsupported character '{ch}'", pos)
    tokens.append(Token("end", "", length))
    return tokens


# ---------------------------------------------------------------------------
# AST
# ---------------------------------------------------------------------------


class Node:
    """Base class for expression tree nodes."""

    def evaluate(self, x: float) -> float:
        raise NotImplementedError

    def to_sympy(self, sp: Any) -> Any:  # noqa: ANN401 – sympy objects
        raise NotImplementedError


@dataclass(frozen=True)
class Number(Node):
    text: str

    def evaluate(self, x: float) -> float:
        return _finite(float(self.text))

    def to_sympy(self, sp: Any) -> Any:
        if "." in self.text:
            return sp.Float(self.text)
        return sp.Integer(self.text)


@dataclass(frozen=True)
class Variable(Node):
    def evaluate(self, x: float) -> float:
        try:
            value = float(x)
        except (TypeError, ValueError, OverflowError) as exc:
            raise EvaluationError(f"x is not a number: {x!r}") from exc
        return _finite(value)

    def to_sympy(self, sp: Any) -> Any:
        return sp.Symbol(VARIABLE)


@dataclass(frozen=True)
class Constant(Node):
    name: str

    def evaluate(self, x: float) -> float:
        return CONSTANTS[self.name]

    def to_sympy(self, sp: Any) -> Any:
        return sp.pi if self.name == "pi" else sp.E


@dataclass(frozen=True)
class UnaryOp(Node):
    op: str
    operand: Node

    def evaluate(self, x: float) -> float:
        value = self.operand.evaluate(x)
        return -value if self.op == "-" else value

    def to_sympy(self, sp: Any) -> Any:
        inner = self.operand.to_sympy(sp)
        return -inner if self.op == "-" else inner


@dataclass(frozen=True)
class BinaryOp(Node):
    op: str
    left: Node
    right: Node

    def evaluate(self, x: float) -> float:
        a = self.left.evaluate(x)
        b = self.right.evaluate(x)
        try:
            if self.op == "+":
                return _finite(a + b)
            if self.op == "-":
                return _finite(a - b)
            if self.op == "*":
                return _finite(a * b)
            if self.op == "/":
                if b == 0:
                    raise EvaluationError("division by zero")
                return _finite(a / b)
            # math.pow refuses negative bases with fractional exponents
            # instead of returning a complex number
            return _finite(math.pow(a, b))
        except (ValueError, OverflowError, ZeroDivisionError) as exc:
            raise EvaluationError(str(exc)) from exc

    def to_sympy(self, sp: Any) -> Any:
        a = self.left.to_sympy(sp)
        b = self.right.to_sympy(sp)
        if self.op == "+":
            return a + b
        if self.op == "-":
            return a - b
        if self.op == "*":
            return a * b
        if self.op == "/":
            return a / b
        return sp.Pow(a, b)


@dataclass(frozen=True)
class Call(Node):
    name: str
    argument: Node

    def evaluate(self, x: float) -> float:
        value = self.argument.evaluate(x)
        try:
            return _finite(float(FUNCTIONS[self.name](value)))
        except (ValueError, OverflowError) as exc:
            raise EvaluationError(f"{self.name}: {exc}") from exc

    def to_sympy(self, sp: Any) -> Any:
        arg = self.argument.to_sympy(sp)
        if self.name in ("log", "ln"):
            return sp.log(arg)
        if self.name == "log10":
            return sp.log(arg, 10)
        if self.name == "abs":
            return sp.Abs(arg)
        if self.name == "ceil":
            return sp.ceiling(arg)
        if self.name == "round":
            return sp.Function("round")(arg)
        return getattr(sp, self.name)(arg)


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


class _Parser:
    def __init__(self, tokens: list[Token]) -> None:
        self.tokens = tokens
        self.index = 0
        self.depth = 0

    @property
    def current(self) -> Token:
        return self.tokens[self.index]

    def _advance(self) -> Token:
        tok = self.tokens[self.index]
        self.index += 1
        return tok

    def _accept(self, *ops: str) -> Token | None:
        tok = self.current
        if tok.kind == "op" and tok.text in ops:
            self.index += 1
            return tok
        return None

    def _expect(self, op: str) -> None:
        if self._accept(op) is None:
            tok = self.current
            found = tok.text or "end of input"
            raise ExpressionError(f"Expected '{op}' but found '{found}'", tok.position)

    def parse(self) -> Node:
        if self.current.kind == "end":
            raise ExpressionError("Empty expression", 0)
        node = self.expr()
        tok = self.current
        if tok.kind != "end":
            raise ExpressionError(f"Unexpected '{tok.text}'", tok.position)
        return node

    def expr(self) -> Node:
        node = self.term()
        while True:
            tok = self._accept("+", "-")
            if tok is None:
                return node
            node = BinaryOp(tok.text, node, self.term())

    def term(self) -> Node:
        node = self.unary()
        while True:
            tok = self._accept("*", "/")
            if tok is None:
                return node
            node = BinaryOp(tok.text, node, self.unary())

    def unary(self) -> Node:
        self.depth += 1
        if self.depth > MAX_NESTING_DEPTH:
            raise ExpressionError("Expression is nested too deeply", self.current.position)
        try:
            tok = self._accept("-", "+")
            if tok is not None:
                return UnaryOp(tok.text, self.unary())
            return self.power()
        finally:
            self.depth -= 1

    def power(self) -> Node:
        base = self.primary()
        if self._accept("^", "**") is not None:
            return BinaryOp("^", base, self.unary())
        return base

    def primary(self) -> Node:
        tok = self._advance()
        if tok.kind == "number":
            return Number(tok.text)
        if tok.kind == "name":
            if tok.text == VARIABLE:
                return Variable()
            if tok.text in CONSTANTS:
                return Constant(tok.text)
            self._expect("(")
            arg = self.expr()
            self._expect(")")
            return Call(tok.text, arg)
        if tok.kind == "op" and tok.text == "(":
            node = self.expr()
            self._expect(")")
            return node
        found = tok.text or "end of input"
        raise ExpressionError(f"Unexpected '{found}'", tok.position)


def parse(source: str) -> Node:
    """Parse *source* into an AST, raising ``ExpressionError`` on any problem."""
    if not isinstance(source, str):
        raise ExpressionError("Expression must be text")
    if len(source) > MAX_EXPRESSION_LENGTH:
        raise ExpressionError(f"Expression is longer than {MAX_EXPRESSION_LENGTH} characters")
    return _Parser(tokenize(source)).parse()


# ---------------------------------------------------------------------------
# Public entry points
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CompiledExpression:
    """A parsed expression, or the reason it could not be parsed."""

    source: str
    node: Node | None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.node is not None

    def evaluate(self, x: float) -> float | None:
        if self.node is None:
            return None
        try:
            return self.node.evaluate(x)
        except EvaluationError:
            return None


@lru_cache(maxsize=256)
def _compile(source: str) -> CompiledExpression:
    try:
        return CompiledExpression(source, parse(source))
    except ExpressionError as exc:
        logger.debug("Rejected expression %r: %s", source, exc.message)
        return CompiledExpression(source, None, exc.message)


def compile_expression(source: Any) -> CompiledExpression:  # noqa: ANN401 – untrusted input
    if not isinstance(source, str):
        return CompiledExpression(repr(source), None, "Expression must be text")
    return _compile(source)


def evaluate(expression: Any, x: float) -> float | None:  # noqa: ANN401 – untrusted input
    """Return the value of *expression* at *x*, or ``None`` when it has none."""
    try:
        xf = float(x)
    except (TypeError, ValueError, OverflowError):
        return None
    return compile_expression(expression).evaluate(xf)


def is_valid_expression(expression: Any) -> bool:  # noqa: ANN401
    return compile_expression(expression).ok


def to_sympy(source: str | Node) -> Any:  # noqa: ANN401 – sympy expression
    """Build the SymPy equivalent of an expression from its tree (never from text)."""
    import sympy as sp

    node = parse(source) if isinstance(source, str) else source
    return node.to_sympy(sp)


@lru_cache(maxsize=128)
def latex_label(source: str) -> str | None:
    """Return a mathtext label ``$y = ...$`` for *source*, or ``None``."""
    compiled = compile_expression(source)
    if compiled.node is None:
        return None
    try:
        import sympy as sp

        return f"$y = {sp.latex(compiled.node.to_sympy(sp))}$"
    except Exception as exc:  # pragma: no cover - sympy edge cases
        logger.debug("No LaTeX label for %r: %s", source, exc)
        return None
