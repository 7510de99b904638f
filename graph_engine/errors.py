"""Exception types raised by the graph engine."""
from __future__ import annotations

__all__ = [
    "GraphEngineError",
    "GraphConfigError",
    "ExpressionError",
    "EvaluationError",
    "SessionError",
]


class GraphEngineError(Exception):
    """Base class for every error raised by :mod:`graph_engine`."""


class GraphConfigError(GraphEngineError, ValueError):
    """A graph configuration violates one of its invariants."""


class ExpressionError(GraphEngineError, ValueError):
    """An expression could not be parsed or was rejected during authoring.

    ``message`` is safe to show to the author; ``position`` is the character
    offset of the offending token when known.
    """

    def __init__(self, message: str, position: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.position = position


class EvaluationError(GraphEngineError, ArithmeticError):
    """Evaluation left the function's domain or produced a non-finite value."""


class SessionError(GraphEngineError, RuntimeError):
    """An authoring transition is not allowed in the current session state."""
