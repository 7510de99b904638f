"""Public package interface for the Cartesian graph engine.

Importing this package gives you easy access to the top‑level helpers without
having to know the internal module layout.

Typical usage
-------------
>>> from graph_engine import GraphModel, GraphPoint, PointAnswer, validate_answer
>>> model = GraphModel(is_interactive=True, answer=PointAnswer(GraphPoint(2, 4)))
>>> validate_answer(model, GraphPoint(2.3, 4.1)).correct
True
"""
from importlib.metadata import version as _version  # type: ignore

from .constants import DEFAULT_CANVAS, Canvas
from .errors import (
    EvaluationError,
    ExpressionError,
    GraphConfigError,
    GraphEngineError,
    SessionError,
)
from .expression import compile_expression, evaluate, is_valid_expression, parse
from .grading import AreaPolicy, Verdict, click_to_point, grade_click, validate_answer
from .mapping import CoordinateMapper
from .model import (
    AnswerArea,
    AreaAnswer,
    FunctionAnswer,
    GraphFunction,
    GraphLine,
    GraphModel,
    GraphPoint,
    PointAnswer,
)
from .sampling import sample_function, sample_model
from .scene import build_scene
from .session import GraphSession, SessionState

__all__ = [
    "Canvas",
    "DEFAULT_CANVAS",
    "GraphEngineError",
    "GraphConfigError",
    "ExpressionError",
    "EvaluationError",
    "SessionError",
    "parse",
    "compile_expression",
    "evaluate",
    "is_valid_expression",
    "CoordinateMapper",
    "GraphPoint",
    "GraphFunction",
    "GraphLine",
    "AnswerArea",
    "PointAnswer",
    "FunctionAnswer",
    "AreaAnswer",
    "GraphModel",
    "sample_function",
    "sample_model",
    "Verdict",
    "AreaPolicy",
    "validate_answer",
    "click_to_point",
    "grade_click",
    "build_scene",
    "GraphSession",
    "SessionState",
    "__version__",
]

try:
    __version__ = _version("graph_engine")
except Exception:  # pragma: no cover – package not installed yet
    __version__ = "0.0.0"
