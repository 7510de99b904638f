"""Authoring state machine for building a graph question.

Every transition returns a new :class:`GraphSession` holding a new
:class:`GraphModel`; neither is ever modified in place, so a caller can keep
the previous session around (e.g. for undo) or discard a rejected edit by
simply not replacing it.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Iterable

from . import constants as C
from .constants import DEFAULT_CANVAS, Canvas
from .errors import ExpressionError, SessionError
from .expression import compile_expression
from .mapping import CoordinateMapper
from .model import (
    AnswerArea,
    AreaAnswer,
    CorrectAnswer,
    FunctionAnswer,
    GraphFunction,
    GraphLine,
    GraphModel,
    GraphPoint,
    PointAnswer,
)

__all__ = ["SessionState", "GraphSession"]

logger = logging.getLogger(__name__)

_UNSET: Any = object()


class SessionState(str, Enum):
    IDLE = "idle"
    EDITING_LINE = "editing_line"
    DEFINING_ANSWER = "defining_answer"


def _next_id(prefix: str, existing: Iterable[str]) -> str:
    taken = set(existing)
    n = len(taken) + 1
    while f"{prefix}-{n}" in taken:
        n += 1
    return f"{prefix}-{n}"


def _coerce_answer(answer: Any) -> CorrectAnswer:  # noqa: ANN401
    if isinstance(answer, (PointAnswer, FunctionAnswer, AreaAnswer)):
        return answer
    if isinstance(answer, GraphPoint):
        return PointAnswer(answer)
    if isinstance(answer, AnswerArea):
        return AreaAnswer(answer)
    if isinstance(answer, str):
        return FunctionAnswer(answer)
    raise SessionError(f"Unsupported correct answer {answer!r}")


@dataclass(frozen=True)
class GraphSession:
    model: GraphModel = field(default_factory=GraphModel.default)
    canvas: Canvas = DEFAULT_CANVAS
    state: SessionState = SessionState.IDLE
    active_line_id: str | None = None

    @property
    def mapper(self) -> CoordinateMapper:
        return CoordinateMapper.for_model(self.model, self.canvas)

    def _with(self, model: GraphModel | None = None, **changes: Any) -> "GraphSession":
        if model is not None:
            changes["model"] = model
        new = replace(self, **changes)
        if new.state != self.state:
            logger.debug("Session state %s -> %s", self.state.value, new.state.value)
        return new

    def _require_line(self, line_id: str) -> GraphLine:
        line = self.model.line(line_id)
        if line is None:
            raise SessionError(f"No line with id {line_id!r}")
        return line

    def _require_function(self, function_id: str) -> GraphFunction:
        func = self.model.function(function_id)
        if func is None:
            raise SessionError(f"No function with id {function_id!r}")
        return func

    def _replace_line(self, new_line: GraphLine) -> GraphModel:
        lines = tuple(new_line if line.id == new_line.id else line for line in self.model.lines)
        return self.model.evolve(lines=lines)

    # -- lines -------------------------------------------------------------

    def add_line(self, kind: str = "line", color: str | None = None) -> "GraphSession":
        """Create an empty line, select it and start editing it."""
        line_id = _next_id("line", (line.id for line in self.model.lines))
        line = GraphLine(
            id=line_id,
            color=color or C.COLORS[len(self.model.lines) % len(C.COLORS)],
            kind=kind,
        )
        model = self.model.evolve(lines=self.model.lines + (line,))
        return self._with(model, state=SessionState.EDITING_LINE, active_line_id=line_id)

    def select_line(self, line_id: str) -> "GraphSession":
        self._require_line(line_id)
        return self._with(state=SessionState.EDITING_LINE, active_line_id=line_id)

    def deselect(self) -> "GraphSession":
        return self._with(state=SessionState.IDLE, active_line_id=None)

    def remove_line(self, line_id: str) -> "GraphSession":
        model = self.model.evolve(lines=tuple(line for line in self.model.lines if line.id != line_id))
        if self.active_line_id == line_id:
            return self._with(model, state=SessionState.IDLE, active_line_id=None)
        return self._with(model)

    def clear_line(self, line_id: str) -> "GraphSession":
        line = self._require_line(line_id)
        return self._with(self._replace_line(replace(line, points=())))

    def update_line(self, line_id: str, *, color: str | None = None, kind: str | None = None) -> "GraphSession":
        line = self._require_line(line_id)
        changes: dict[str, Any] = {}
        if color is not None:
            changes["color"] = color
        if kind is not None:
            changes["kind"] = kind
        return self._with(self._replace_line(replace(line, **changes)))

    def click(self, px: float, py: float) -> "GraphSession":
        """Handle a canvas click; clicks on the margin or while idle change nothing."""
        mapper = self.mapper
        if not mapper.in_drawing_area(px, py):
            return self
        x, y = mapper.snap_to_graph(px, py)
        if self.state is SessionState.EDITING_LINE and self.active_line_id is not None:
            line = self.model.line(self.active_line_id)
            if line is None:
                return self
            return self._with(self._replace_line(line.with_point(GraphPoint(x, y))))
        if self.state is SessionState.DEFINING_ANSWER and isinstance(self.model.answer, PointAnswer):
            return self._with(self.model.evolve(answer=PointAnswer(GraphPoint(x, y))))
        return self

    # -- functions ---------------------------------------------------------

    def add_function(
        self,
        expression: str,
        *,
        color: str | None = None,
        label: str | None = None,
    ) -> "GraphSession":
        """Append ``y = expression`` after checking it evaluates at the check point.

        Raises ``ExpressionError`` with a message meant for the author when the
        input is empty or has no value at ``x = CHECK_X``.
        """
        source = (expression or "").strip()
        if not source:
            raise ExpressionError("Enter an expression")
        compiled = compile_expression(source)
        if compiled.evaluate(C.CHECK_X) is None:
            logger.debug("add_function rejected %r (%s)", source, compiled.error or "no value at check point")
            raise ExpressionError("Invalid expression. Examples: x^2, sin(x), 2*x+1")
        func = GraphFunction(
            id=_next_id("func", (f.id for f in self.model.functions)),
            expression=source,
            color=color or C.COLORS[len(self.model.functions) % len(C.COLORS)],
            label=label if label is not None else f"y = {source}",
        )
        return self._with(self.model.evolve(functions=self.model.functions + (func,)))

    def remove_function(self, function_id: str) -> "GraphSession":
        functions = tuple(f for f in self.model.functions if f.id != function_id)
        if self.model.correct_function_id == function_id:
            model = self.model.evolve(functions=functions, answer=None)
            state = SessionState.IDLE if self.state is SessionState.DEFINING_ANSWER else self.state
            return self._with(model, state=state)
        return self._with(self.model.evolve(functions=functions))

    def update_function(self, function_id: str, *, color: str | None = None, label: Any = _UNSET) -> "GraphSession":
        func = self._require_function(function_id)
        changes: dict[str, Any] = {}
        if color is not None:
            changes["color"] = color
        if label is not _UNSET:
            changes["label"] = label
        new_func = replace(func, **changes)
        functions = tuple(new_func if f.id == function_id else f for f in self.model.functions)
        return self._with(self.model.evolve(functions=functions))

    # -- axes and grid -----------------------------------------------------

    def set_ranges(
        self,
        x_range: tuple[float, float] | None = None,
        y_range: tuple[float, float] | None = None,
    ) -> "GraphSession":
        changes: dict[str, Any] = {}
        if x_range is not None:
            changes["x_range"] = x_range
        if y_range is not None:
            changes["y_range"] = y_range
        return self._with(self.model.evolve(**changes))

    def set_labels(
        self,
        x_label: str | None = None,
        y_label: str | None = None,
        title: Any = _UNSET,
    ) -> "GraphSession":
        changes: dict[str, Any] = {}
        if x_label is not None:
            changes["x_label"] = x_label
        if y_label is not None:
            changes["y_label"] = y_label
        if title is not _UNSET:
            changes["title"] = title or None
        return self._with(self.model.evolve(**changes))

    def set_grid(self, show: bool | None = None, step: float | None = None) -> "GraphSession":
        changes: dict[str, Any] = {}
        if show is not None:
            changes["show_grid"] = bool(show)
        if step is not None:
            changes["grid_step"] = step
        return self._with(self.model.evolve(**changes))

    # -- answer ------------------------------------------------------------

    def set_interactive(self, interactive: bool) -> "GraphSession":
        model = self.model.evolve(is_interactive=bool(interactive))
        if not interactive and self.state is SessionState.DEFINING_ANSWER:
            return self._with(model, state=SessionState.IDLE)
        return self._with(model)

    def set_tolerance(self, radius: float) -> "GraphSession":
        return self._with(self.model.evolve(tolerance_radius=radius))

    def set_correct_answer(self, answer: CorrectAnswer | GraphPoint | AnswerArea | str) -> "GraphSession":
        if not self.model.is_interactive:
            raise SessionError("Enable interactive mode before defining the correct answer")
        correct = _coerce_answer(answer)
        if isinstance(correct, FunctionAnswer):
            self._require_function(correct.function_id)
        return self._with(
            self.model.evolve(answer=correct),
            state=SessionState.DEFINING_ANSWER,
            active_line_id=None,
        )

    def finish(self) -> GraphModel:
        """Return the authored model once it is complete enough to be graded."""
        return self.model.validate()
