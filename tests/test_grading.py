from __future__ import annotations

import logging
import math

import pytest

from graph_engine.errors import GraphConfigError
from graph_engine.grading import AreaPolicy, Verdict, click_to_point, grade_click, validate_answer
from graph_engine.mapping import CoordinateMapper
from graph_engine.model import (
    AnswerArea,
    AreaAnswer,
    FunctionAnswer,
    GraphFunction,
    GraphModel,
    GraphPoint,
    PointAnswer,
)


def _point_model(x: float = 0, y: float = 0, tolerance: float = 0.5) -> GraphModel:
    return GraphModel(
        is_interactive=True,
        answer=PointAnswer(GraphPoint(x, y)),
        tolerance_radius=tolerance,
    )


def _area_model(area: AnswerArea) -> GraphModel:
    return GraphModel(is_interactive=True, answer=AreaAnswer(area))


def test_point_within_tolerance_boundary_is_inclusive() -> None:
    model = _point_model(tolerance=2)
    on_edge = validate_answer(model, GraphPoint(2, 0))
    assert on_edge == Verdict(True, 2.0)
    assert not validate_answer(model, GraphPoint(2.0001, 0)).correct


def test_zero_tolerance_needs_exact_point() -> None:
    model = _point_model(1, 1, tolerance=0)
    assert validate_answer(model, GraphPoint(1, 1)).correct
    assert not validate_answer(model, GraphPoint(1, 1 + 1e-9)).correct


def test_click_near_correct_point_is_graded_correct() -> None:
    model = _point_model(2, 4)
    px, py = CoordinateMapper.for_model(model).to_screen(2.3, 4.1)

    assert click_to_point(model, px, py) == GraphPoint(2.3, 4.1)
    point, verdict = grade_click(model, px, py)
    assert point == GraphPoint(2.3, 4.1)
    assert verdict.correct
    assert verdict.metric == pytest.approx(0.31623, abs=1e-5)


def test_margin_click_is_ignored() -> None:
    model = _point_model()
    assert click_to_point(model, 10, 10) is None
    assert grade_click(model, 499, 200) is None


def test_function_answer_is_identity_match() -> None:
    model = GraphModel(
        functions=(GraphFunction("func-1", "x"), GraphFunction("func-2", "x^2")),
        is_interactive=True,
        answer=FunctionAnswer("func-1"),
    )
    assert validate_answer(model, "func-1") == Verdict(True, 0.0)
    assert validate_answer(model, "func-2") == Verdict(False, 1.0)


def test_area_containing_correct_area_is_correct() -> None:
    model = _area_model(AnswerArea(0, 0, 2, 2))
    assert validate_answer(model, AnswerArea(-1, -1, 3, 3)) == Verdict(True, 1.0)
    assert validate_answer(model, AnswerArea(0, 0, 2, 2)).correct


def test_partial_overlap_respects_min_coverage() -> None:
    model = _area_model(AnswerArea(0, 0, 2, 2))
    submitted = AnswerArea(1, 0, 3, 2)
    assert validate_answer(model, submitted) == Verdict(False, 0.5)
    relaxed = AreaPolicy(min_coverage=0.5)
    assert validate_answer(model, submitted, area_policy=relaxed) == Verdict(True, 0.5)


def test_centroid_policy() -> None:
    model = _area_model(AnswerArea(0, 0, 2, 2))
    policy = AreaPolicy(mode="centroid")
    assert validate_answer(model, AnswerArea(1, 0, 3, 2), area_policy=policy).correct
    far = validate_answer(model, AnswerArea(3, 3, 5, 5), area_policy=policy)
    assert far == Verdict(False, 0.0)


def test_reversed_corners_are_normalised() -> None:
    model = _area_model(AnswerArea(2, 2, 0, 0))
    assert validate_answer(model, AnswerArea(3, 3, -1, -1)) == Verdict(True, 1.0)


def test_disjoint_area_is_wrong() -> None:
    model = _area_model(AnswerArea(0, 0, 1, 1))
    assert validate_answer(model, AnswerArea(5, 5, 6, 6)) == Verdict(False, 0.0)


def test_degenerate_correct_area() -> None:
    model = _area_model(AnswerArea(1, 1, 1, 1))
    assert validate_answer(model, AnswerArea(0, 0, 2, 2)) == Verdict(True, 1.0)
    assert validate_answer(model, AnswerArea(2, 2, 3, 3)) == Verdict(False, 0.0)


@pytest.mark.parametrize(
    "model, submitted",
    [
        (_point_model(), "func-1"),
        (_point_model(), AnswerArea(0, 0, 1, 1)),
        (_point_model(), GraphPoint(float("nan"), 0)),
        (_area_model(AnswerArea(0, 0, 1, 1)), GraphPoint(0, 0)),
        (_area_model(AnswerArea(0, 0, 1, 1)), AnswerArea(0, 0, float("inf"), 1)),
        (GraphModel(is_interactive=True, answer=FunctionAnswer("f")), GraphPoint(0, 0)),
        (GraphModel(), GraphPoint(0, 0)),
        (GraphModel(is_interactive=True), GraphPoint(0, 0)),
        (_point_model().evolve(is_interactive=False), GraphPoint(0, 0)),
    ],
)
def test_ungradable_submissions_are_wrong_with_infinite_metric(model, submitted) -> None:
    verdict = validate_answer(model, submitted)
    assert not verdict.correct
    assert math.isinf(verdict.metric)


def test_ungradable_model_logs_warning(caplog) -> None:
    with caplog.at_level(logging.WARNING, logger="graph_engine.grading"):
        validate_answer(GraphModel(), GraphPoint(0, 0))
    assert "not gradable" in caplog.text


def test_grading_is_idempotent_and_pure() -> None:
    model = _point_model(1, 1)
    snapshot = model.to_dict()
    first = validate_answer(model, GraphPoint(1.2, 1.2))
    second = validate_answer(model, GraphPoint(1.2, 1.2))
    assert first == second
    assert model.to_dict() == snapshot


@pytest.mark.parametrize("kwargs", [{"mode": "bogus"}, {"min_coverage": 1.5}, {"min_coverage": -0.1}])
def test_area_policy_is_checked(kwargs) -> None:
    with pytest.raises(GraphConfigError):
        AreaPolicy(**kwargs)


def test_verdict_to_dict() -> None:
    assert Verdict(True, 0.25).to_dict() == {"correct": True, "metric": 0.25}
    assert Verdict(False, math.inf).to_dict() == {"correct": False, "metric": None}
