"""Grade a student's graphical answer against the model's correct answer.

Grading never raises: a model that cannot be graded, or a submission of the
wrong shape, simply yields an incorrect verdict with an infinite metric.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, Union

from .constants import CLICK_DECIMALS, DEFAULT_CANVAS, Canvas
from .errors import GraphConfigError
from .mapping import CoordinateMapper
from .model import (
    AnswerArea,
    AreaAnswer,
    FunctionAnswer,
    GraphModel,
    GraphPoint,
    PointAnswer,
)

__all__ = [
    "Verdict",
    "AreaPolicy",
    "DEFAULT_AREA_POLICY",
    "SubmittedAnswer",
    "validate_answer",
    "click_to_point",
    "grade_click",
]

logger = logging.getLogger(__name__)

SubmittedAnswer = Union[GraphPoint, str, AnswerArea]


@dataclass(frozen=True)
class Verdict:
    correct: bool
    metric: float

    def to_dict(self) -> dict[str, Any]:
        return {"correct": self.correct, "metric": self.metric if math.isfinite(self.metric) else None}


_UNGRADABLE = Verdict(False, math.inf)


@dataclass(frozen=True)
class AreaPolicy:
    """How a submitted rectangle is judged against the correct area.

    ``coverage`` mode requires the submitted rectangle to cover at least
    ``min_coverage`` of the correct area (1.0 means full containment).
    ``centroid`` mode only requires the submitted rectangle's centre to fall
    inside the correct area.
    """

    mode: str = "coverage"
    min_coverage: float = 1.0

    def __post_init__(self) -> None:
        if self.mode not in ("coverage", "centroid"):
            raise GraphConfigError(f"Unknown area grading mode {self.mode!r}")
        if not 0.0 <= self.min_coverage <= 1.0:
            raise GraphConfigError(f"min_coverage must lie in [0, 1], got {self.min_coverage!r}")


DEFAULT_AREA_POLICY = AreaPolicy()


def _coverage(submitted: AnswerArea, correct: AnswerArea) -> float:
    """Fraction of *correct* covered by *submitted*."""
    if correct.area == 0:
        # A point or segment counts as covered once it lies inside the rectangle.
        return 1.0 if submitted.contains_area(correct) else 0.0
    overlap = submitted.intersection(correct)
    if overlap is None:
        return 0.0
    return min(1.0, overlap.area / correct.area)


def _grade_point(model: GraphModel, correct: GraphPoint, submitted: Any) -> Verdict:  # noqa: ANN401
    if not isinstance(submitted, GraphPoint):
        logger.warning("Point question received %s submission", type(submitted).__name__)
        return _UNGRADABLE
    distance = submitted.distance_to(correct)
    if not math.isfinite(distance):
        return _UNGRADABLE
    return Verdict(distance <= model.tolerance_radius, distance)


def _grade_function(correct_id: str, submitted: Any) -> Verdict:  # noqa: ANN401
    if not isinstance(submitted, str):
        logger.warning("Function question received %s submission", type(submitted).__name__)
        return _UNGRADABLE
    metric = 0.0 if submitted == correct_id else 1.0
    return Verdict(metric == 0.0, metric)


def _grade_area(correct: AnswerArea, submitted: Any, policy: AreaPolicy) -> Verdict:  # noqa: ANN401
    if not isinstance(submitted, AnswerArea):
        logger.warning("Area question received %s submission", type(submitted).__name__)
        return _UNGRADABLE
    values = (submitted.x1, submitted.y1, submitted.x2, submitted.y2)
    if not all(isinstance(v, (int, float)) and math.isfinite(v) for v in values):
        return _UNGRADABLE
    coverage = _coverage(submitted, correct)
    if policy.mode == "centroid":
        return Verdict(correct.contains(submitted.centroid), coverage)
    return Verdict(coverage >= policy.min_coverage, coverage)


def validate_answer(
    model: GraphModel,
    submitted: SubmittedAnswer | Any,
    *,
    area_policy: AreaPolicy = DEFAULT_AREA_POLICY,
) -> Verdict:
    """Return the verdict for *submitted* against ``model``'s correct answer."""
    answer = model.answer
    if not model.is_interactive or answer is None:
        logger.warning("Graph is not gradable (interactive=%s, answer=%r)", model.is_interactive, answer)
        return _UNGRADABLE
    try:
        if isinstance(answer, PointAnswer):
            return _grade_point(model, answer.point, submitted)
        if isinstance(answer, FunctionAnswer):
            return _grade_function(answer.function_id, submitted)
        if isinstance(answer, AreaAnswer):
            return _grade_area(answer.area, submitted, area_policy)
    except (TypeError, ValueError, ArithmeticError) as exc:
        logger.warning("Could not grade submission %r: %s", submitted, exc)
        return _UNGRADABLE
    return _UNGRADABLE


def click_to_point(
    model: GraphModel, px: float, py: float, canvas: Canvas = DEFAULT_CANVAS
) -> GraphPoint | None:
    """Map a canvas click to a graph point rounded for display, or ``None`` off-frame."""
    mapper = CoordinateMapper.for_model(model, canvas)
    if not mapper.in_drawing_area(px, py):
        return None
    x, y = mapper.snap_to_graph(px, py, CLICK_DECIMALS)
    return GraphPoint(x, y)


def grade_click(
    model: GraphModel,
    px: float,
    py: float,
    canvas: Canvas = DEFAULT_CANVAS,
) -> tuple[GraphPoint, Verdict] | None:
    """Grade a click in answer mode; clicks on the margin are ignored."""
    try:
        point = click_to_point(model, px, py, canvas)
    except GraphConfigError as exc:
        logger.warning("Cannot map click on this canvas: %s", exc)
        return None
    if point is None:
        return None
    return point, validate_answer(model, point)
