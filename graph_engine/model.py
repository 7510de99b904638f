"""Serializable description of a graph and its correct answer.

A :class:`GraphModel` is immutable: every edit produces a new instance via
:meth:`GraphModel.evolve`, which re-runs the structural invariants. The wire
format is the flat camelCase structure stored by the question bank.
"""
from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass, field, replace
from typing import Any, ClassVar, Mapping, Union

from . import constants as C
from .errors import GraphConfigError

__all__ = [
    "GraphPoint",
    "GraphFunction",
    "GraphLine",
    "AnswerArea",
    "PointAnswer",
    "FunctionAnswer",
    "AreaAnswer",
    "CorrectAnswer",
    "GraphModel",
]

logger = logging.getLogger(__name__)


def _to_float(value: Any, name: str) -> float:  # noqa: ANN401 – untrusted input
    try:
        out = float(value)
    except (TypeError, ValueError):
        raise GraphConfigError(f"{name} must be a number, got {value!r}")
    if not math.isfinite(out):
        raise GraphConfigError(f"{name} must be finite, got {value!r}")
    return out


def _to_range(value: Any, name: str) -> tuple[float, float]:  # noqa: ANN401
    if not isinstance(value, (list, tuple)) or len(value) != 2:
        raise GraphConfigError(f"{name} must be a [min, max] pair, got {value!r}")
    return _to_float(value[0], f"{name}[0]"), _to_float(value[1], f"{name}[1]")


def _put_optional(out: dict[str, Any], key: str, value: Any) -> None:  # noqa: ANN401
    if value is not None:
        out[key] = value


# ---------------------------------------------------------------------------
# Value types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class GraphPoint:
    x: float
    y: float
    label: str | None = None

    def distance_to(self, other: "GraphPoint") -> float:
        return math.hypot(self.x - other.x, self.y - other.y)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"x": self.x, "y": self.y}
        _put_optional(out, "label", self.label)
        return out

    @classmethod
    def from_dict(cls, data: Any) -> "GraphPoint":  # noqa: ANN401
        if isinstance(data, (list, tuple)) and len(data) >= 2:
            return cls(_to_float(data[0], "point.x"), _to_float(data[1], "point.y"))
        if not isinstance(data, Mapping):
            raise GraphConfigError(f"Expected a point {{x, y}}, got {data!r}")
        label = data.get("label")
        return cls(
            _to_float(data.get("x"), "point.x"),
            _to_float(data.get("y"), "point.y"),
            str(label) if label is not None else None,
        )


@dataclass(frozen=True)
class GraphFunction:
    id: str
    expression: str
    color: str = C.COLORS[0]
    label: str | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"id": self.id, "expression": self.expression, "color": self.color}
        _put_optional(out, "label", self.label)
        return out

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "GraphFunction":
        if not isinstance(data, Mapping) or "id" not in data:
            raise GraphConfigError(f"Function entries need an id, got {data!r}")
        label = data.get("label")
        return cls(
            id=str(data["id"]),
            expression=str(data.get("expression", "")),
            color=str(data.get("color", C.COLORS[0])),
            label=str(label) if label is not None else None,
        )


@dataclass(frozen=True)
class GraphLine:
    id: str
    points: tuple[GraphPoint, ...] = ()
    color: str = C.COLORS[0]
    kind: str = "line"
    label: str | None = None

    def __post_init__(self) -> None:
        if self.kind not in C.LINE_KINDS:
            raise GraphConfigError(f"Line kind must be one of {C.LINE_KINDS}, got {self.kind!r}")
        if not isinstance(self.points, tuple):
            object.__setattr__(self, "points", tuple(self.points))

    def with_point(self, point: GraphPoint) -> "GraphLine":
        return replace(self, points=self.points + (point,))

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "id": self.id,
            "points": [p.to_dict() for p in self.points],
            "color": self.color,
            "type": self.kind,
        }
        _put_optional(out, "label", self.label)
        return out

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "GraphLine":
        if not isinstance(data, Mapping) or "id" not in data:
            raise GraphConfigError(f"Line entries need an id, got {data!r}")
        raw_points = data.get("points") or []
        if not isinstance(raw_points, list):
            raise GraphConfigError(f"Line {data['id']!r} points must be a list")
        label = data.get("label")
        return cls(
            id=str(data["id"]),
            points=tuple(GraphPoint.from_dict(p) for p in raw_points),
            color=str(data.get("color", C.COLORS[0])),
            kind=str(data.get("type", data.get("kind", "line"))),
            label=str(label) if label is not None else None,
        )


@dataclass(frozen=True)
class AnswerArea:
    """Axis-aligned rectangle given by two opposite corners."""

    x1: float
    y1: float
    x2: float
    y2: float

    def normalized(self) -> "AnswerArea":
        return AnswerArea(
            min(self.x1, self.x2), min(self.y1, self.y2), max(self.x1, self.x2), max(self.y1, self.y2)
        )

    @property
    def width(self) -> float:
        return abs(self.x2 - self.x1)

    @property
    def height(self) -> float:
        return abs(self.y2 - self.y1)

    @property
    def area(self) -> float:
        return self.width * self.height

    @property
    def centroid(self) -> GraphPoint:
        return GraphPoint((self.x1 + self.x2) / 2, (self.y1 + self.y2) / 2)

    def contains(self, point: GraphPoint) -> bool:
        box = self.normalized()
        return box.x1 <= point.x <= box.x2 and box.y1 <= point.y <= box.y2

    def contains_area(self, other: "AnswerArea") -> bool:
        box = self.normalized()
        inner = other.normalized()
        return box.x1 <= inner.x1 and inner.x2 <= box.x2 and box.y1 <= inner.y1 and inner.y2 <= box.y2

    def intersection(self, other: "AnswerArea") -> "AnswerArea | None":
        a = self.normalized()
        b = other.normalized()
        x1, y1 = max(a.x1, b.x1), max(a.y1, b.y1)
        x2, y2 = min(a.x2, b.x2), min(a.y2, b.y2)
        if x1 > x2 or y1 > y2:
            return None
        return AnswerArea(x1, y1, x2, y2)

    def to_dict(self) -> dict[str, float]:
        return {"x1": self.x1, "y1": self.y1, "x2": self.x2, "y2": self.y2}

    @classmethod
    def from_dict(cls, data: Any) -> "AnswerArea":  # noqa: ANN401
        if not isinstance(data, Mapping):
            raise GraphConfigError(f"Expected an area {{x1, y1, x2, y2}}, got {data!r}")
        return cls(*(_to_float(data.get(k), f"area.{k}") for k in ("x1", "y1", "x2", "y2")))


# ---------------------------------------------------------------------------
# Correct answer (tagged union)
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PointAnswer:
    kind: ClassVar[str] = "point"
    point: GraphPoint


@dataclass(frozen=True)
class FunctionAnswer:
    kind: ClassVar[str] = "function"
    function_id: str


@dataclass(frozen=True)
class AreaAnswer:
    kind: ClassVar[str] = "area"
    area: AnswerArea


CorrectAnswer = Union[PointAnswer, FunctionAnswer, AreaAnswer]


_ANSWER_FIELDS = {"point": "correctPoint", "function": "correctFunctionId", "area": "correctArea"}


def _answer_from_dict(data: Mapping[str, Any]) -> CorrectAnswer | None:
    answer_type = data.get("answerType")
    if answer_type is not None and answer_type not in C.ANSWER_TYPES:
        raise GraphConfigError(f"answerType must be one of {C.ANSWER_TYPES}, got {answer_type!r}")
    # Legacy configs predate answerType and only ever graded points.
    kept = _ANSWER_FIELDS[answer_type or "point"]
    ignored = [key for key in _ANSWER_FIELDS.values() if key != kept and data.get(key) is not None]
    if ignored:
        logger.warning(
            "Ignoring %s: answerType is %s", ", ".join(ignored), answer_type or "unset (legacy point)"
        )
    raw = data.get(kept)
    if raw is None:
        return None
    if kept == "correctPoint":
        return PointAnswer(GraphPoint.from_dict(raw))
    if kept == "correctFunctionId":
        return FunctionAnswer(str(raw))
    return AreaAnswer(AnswerArea.from_dict(raw))


# ---------------------------------------------------------------------------
# Graph model
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class GraphModel:
    x_range: tuple[float, float] = (-10.0, 10.0)
    y_range: tuple[float, float] = (-10.0, 10.0)
    x_label: str = "x"
    y_label: str = "y"
    title: str | None = None
    show_grid: bool = True
    grid_step: float = 1.0
    lines: tuple[GraphLine, ...] = ()
    functions: tuple[GraphFunction, ...] = ()
    is_interactive: bool = False
    answer: CorrectAnswer | None = None
    tolerance_radius: float = C.DEFAULT_TOLERANCE
    # An answerType declared without its correct* value survives a reload.
    declared_answer_type: str | None = field(default=None, repr=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "x_range", _to_range(self.x_range, "xRange"))
        object.__setattr__(self, "y_range", _to_range(self.y_range, "yRange"))
        object.__setattr__(self, "lines", tuple(self.lines))
        object.__setattr__(self, "functions", tuple(self.functions))

        x_min, x_max = self.x_range
        y_min, y_max = self.y_range
        if x_min >= x_max:
            raise GraphConfigError(f"xRange min ({x_min}) must be less than max ({x_max})")
        if y_min >= y_max:
            raise GraphConfigError(f"yRange min ({y_min}) must be less than max ({y_max})")
        object.__setattr__(self, "grid_step", _to_float(self.grid_step, "gridStep"))
        object.__setattr__(self, "tolerance_radius", _to_float(self.tolerance_radius, "toleranceRadius"))
        if not self.grid_step > 0:
            raise GraphConfigError(f"gridStep must be positive, got {self.grid_step!r}")
        if not self.tolerance_radius >= 0:
            raise GraphConfigError(f"toleranceRadius must be >= 0, got {self.tolerance_radius!r}")

        line_ids = [line.id for line in self.lines]
        if len(set(line_ids)) != len(line_ids):
            raise GraphConfigError("Line ids must be unique")
        func_ids = [func.id for func in self.functions]
        if len(set(func_ids)) != len(func_ids):
            raise GraphConfigError("Function ids must be unique")

        if self.declared_answer_type is not None:
            if self.declared_answer_type not in C.ANSWER_TYPES:
                raise GraphConfigError(f"Unknown answerType {self.declared_answer_type!r}")
            if self.answer is not None and self.answer.kind != self.declared_answer_type:
                raise GraphConfigError(
                    f"answerType {self.declared_answer_type!r} does not match the "
                    f"{self.answer.kind!r} correct answer"
                )

    # -- accessors mirroring the flat wire names ---------------------------

    @property
    def answer_type(self) -> str | None:
        if self.answer is not None:
            return self.answer.kind
        return self.declared_answer_type

    @property
    def correct_point(self) -> GraphPoint | None:
        return self.answer.point if isinstance(self.answer, PointAnswer) else None

    @property
    def correct_function_id(self) -> str | None:
        return self.answer.function_id if isinstance(self.answer, FunctionAnswer) else None

    @property
    def correct_area(self) -> AnswerArea | None:
        return self.answer.area if isinstance(self.answer, AreaAnswer) else None

    def line(self, line_id: str) -> GraphLine | None:
        return next((line for line in self.lines if line.id == line_id), None)

    def function(self, function_id: str) -> GraphFunction | None:
        return next((func for func in self.functions if func.id == function_id), None)

    # -- construction helpers ---------------------------------------------

    @classmethod
    def default(cls) -> "GraphModel":
        return cls.from_dict(C.DEFAULT_CONFIG)

    def evolve(self, **changes: Any) -> "GraphModel":
        """Return a copy with *changes* applied; invariants are checked again."""
        if "answer" in changes:
            changes.setdefault("declared_answer_type", None)
        return replace(self, **changes)

    def validate(self) -> "GraphModel":
        """Check that an interactive model can be graded; return ``self``."""
        if not self.is_interactive:
            return self
        if self.answer is None:
            raise GraphConfigError(
                "Interactive graphs need a correct answer"
                + (f" for answerType {self.declared_answer_type!r}" if self.declared_answer_type else "")
            )
        if isinstance(self.answer, FunctionAnswer) and self.function(self.answer.function_id) is None:
            raise GraphConfigError(
                f"correctFunctionId {self.answer.function_id!r} does not match any function"
            )
        return self

    # -- serialization -----------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "xRange": list(self.x_range),
            "yRange": list(self.y_range),
            "xLabel": self.x_label,
            "yLabel": self.y_label,
        }
        _put_optional(out, "title", self.title)
        out.update(
            {
                "showGrid": self.show_grid,
                "gridStep": self.grid_step,
                "lines": [line.to_dict() for line in self.lines],
                "functions": [func.to_dict() for func in self.functions],
                "isInteractive": self.is_interactive,
            }
        )
        _put_optional(out, "answerType", self.answer_type)
        if isinstance(self.answer, PointAnswer):
            out["correctPoint"] = self.answer.point.to_dict()
        elif isinstance(self.answer, FunctionAnswer):
            out["correctFunctionId"] = self.answer.function_id
        elif isinstance(self.answer, AreaAnswer):
            out["correctArea"] = self.answer.area.to_dict()
        out["toleranceRadius"] = self.tolerance_radius
        return out

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], *, strict: bool = False) -> "GraphModel":
        """Load a stored configuration, filling gaps with the viewer defaults.

        With ``strict=True`` the result must also be gradable (see :meth:`validate`).
        """
        if not isinstance(data, Mapping):
            raise GraphConfigError(f"Graph configuration must be an object, got {type(data).__name__}")
        d = C.DEFAULT_CONFIG
        raw_lines = data.get("lines") or []
        raw_funcs = data.get("functions") or []
        if not isinstance(raw_lines, list) or not isinstance(raw_funcs, list):
            raise GraphConfigError("lines and functions must be lists")
        title = data.get("title")
        answer = _answer_from_dict(data)
        declared = data.get("answerType")
        model = cls(
            x_range=_to_range(data.get("xRange", d["xRange"]), "xRange"),
            y_range=_to_range(data.get("yRange", d["yRange"]), "yRange"),
            x_label=str(data.get("xLabel", d["xLabel"])),
            y_label=str(data.get("yLabel", d["yLabel"])),
            title=str(title) if title is not None else None,
            show_grid=bool(data.get("showGrid", d["showGrid"])),
            grid_step=_to_float(data.get("gridStep", d["gridStep"]), "gridStep"),
            lines=tuple(GraphLine.from_dict(item) for item in raw_lines),
            functions=tuple(GraphFunction.from_dict(item) for item in raw_funcs),
            is_interactive=bool(data.get("isInteractive", d["isInteractive"])),
            answer=answer,
            tolerance_radius=_to_float(data.get("toleranceRadius", d["toleranceRadius"]), "toleranceRadius"),
            declared_answer_type=declared if answer is None and declared is not None else None,
        )
        return model.validate() if strict else model

    def to_json(self, **kwargs: Any) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False, **kwargs)

    @classmethod
    def from_json(cls, text: str, *, strict: bool = False) -> "GraphModel":
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise GraphConfigError(f"Graph configuration is not valid JSON: {exc}") from exc
        return cls.from_dict(data, strict=strict)
