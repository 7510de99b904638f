"""Turn a graph model into a flat list of drawable primitives.

Primitives carry pre-mapped canvas coordinates (pixels, y down) and plain
style values, so any drawing technology can consume them in list order.
"""
from __future__ import annotations

import logging
import math
from dataclasses import asdict, dataclass
from typing import Any, ClassVar, Union

from . import constants as C
from .constants import DEFAULT_CANVAS, DEFAULT_RESOLUTION, Canvas
from .expression import latex_label
from .mapping import CoordinateMapper
from .model import AnswerArea, AreaAnswer, FunctionAnswer, GraphModel, GraphPoint, PointAnswer
from .sampling import sample_model

__all__ = [
    "RectPrimitive",
    "LinePrimitive",
    "PathPrimitive",
    "CirclePrimitive",
    "EllipsePrimitive",
    "TextPrimitive",
    "Primitive",
    "build_scene",
]

logger = logging.getLogger(__name__)


class _Primitive:
    kind: ClassVar[str] = ""

    def to_dict(self) -> dict[str, Any]:
        out = asdict(self)  # type: ignore[call-overload]
        out["type"] = self.kind
        return out


@dataclass(frozen=True)
class RectPrimitive(_Primitive):
    kind: ClassVar[str] = "rect"
    x: float
    y: float
    width: float
    height: float
    fill: str | None = None
    stroke: str | None = None
    stroke_width: float = 1.0
    opacity: float = 1.0
    dashed: bool = False
    role: str = ""


@dataclass(frozen=True)
class LinePrimitive(_Primitive):
    kind: ClassVar[str] = "line"
    x1: float
    y1: float
    x2: float
    y2: float
    stroke: str
    stroke_width: float
    role: str = "grid"
    is_axis: bool = False


@dataclass(frozen=True)
class PathPrimitive(_Primitive):
    kind: ClassVar[str] = "path"
    points: tuple[tuple[float, float], ...]
    stroke: str
    stroke_width: float
    opacity: float = 1.0
    role: str = ""
    ref_id: str | None = None


@dataclass(frozen=True)
class CirclePrimitive(_Primitive):
    kind: ClassVar[str] = "circle"
    cx: float
    cy: float
    r: float
    fill: str | None = None
    stroke: str | None = None
    stroke_width: float = 0.0
    role: str = ""
    ref_id: str | None = None


@dataclass(frozen=True)
class EllipsePrimitive(_Primitive):
    kind: ClassVar[str] = "ellipse"
    cx: float
    cy: float
    rx: float
    ry: float
    fill: str | None = None
    stroke: str | None = None
    stroke_width: float = 1.0
    opacity: float = 1.0
    dashed: bool = False
    role: str = ""


@dataclass(frozen=True)
class TextPrimitive(_Primitive):
    kind: ClassVar[str] = "text"
    x: float
    y: float
    text: str
    anchor: str = "middle"  # start | middle | end
    font_size: float = 10
    color: str = C.TICK_COLOR
    bold: bool = False
    role: str = ""
    math: str | None = None  # mathtext alternative to ``text``


Primitive = Union[RectPrimitive, LinePrimitive, PathPrimitive, CirclePrimitive, EllipsePrimitive, TextPrimitive]


def _grid_values(lo: float, hi: float, step: float) -> list[float]:
    """Multiples of *step* inside ``[lo, hi]`` computed without accumulating error.

    When more than ``MAX_GRID_LINES`` values would result, the step is widened
    to the smallest multiple of *step* that stays under the cap.
    """
    eps = 1e-9
    span = (hi - lo) / step
    if not math.isfinite(span):
        logger.debug("Grid skipped: range [%s, %s] is too wide for step %s", lo, hi, step)
        return []
    if span + 1 > C.MAX_GRID_LINES:
        factor = math.ceil(span / (C.MAX_GRID_LINES - 2))
        logger.debug("Grid step %s widened %dx for range [%s, %s]", step, factor, lo, hi)
        step *= factor
    lo_k, hi_k = lo / step, hi / step
    if not (math.isfinite(lo_k) and math.isfinite(hi_k)):
        return []
    first = math.ceil(lo_k - eps)
    last = math.floor(hi_k + eps)
    values = []
    for k in range(first, last + 1):
        v = round(k * step, 10)
        values.append(0.0 if v == 0 else v)
    return values


def _format_number(v: float) -> str:
    return f"{v:g}"


def _clamp(v: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, v))


def _grid(model: GraphModel, mapper: CoordinateMapper) -> list[Primitive]:
    top = mapper.padding
    bottom = mapper.height - mapper.padding
    left = mapper.padding
    right = mapper.width - mapper.padding
    out: list[Primitive] = []
    for x in _grid_values(*model.x_range, model.grid_step):
        px, _ = mapper.to_screen(x, 0)
        axis = x == 0
        out.append(
            LinePrimitive(px, top, px, bottom, C.AXIS_COLOR if axis else C.GRID_COLOR, 1.5 if axis else 0.5, "grid", axis)
        )
    for y in _grid_values(*model.y_range, model.grid_step):
        _, py = mapper.to_screen(0, y)
        axis = y == 0
        out.append(
            LinePrimitive(left, py, right, py, C.AXIS_COLOR if axis else C.GRID_COLOR, 1.5 if axis else 0.5, "grid", axis)
        )
    return out


def _axis_labels(model: GraphModel, mapper: CoordinateMapper) -> list[Primitive]:
    out: list[Primitive] = []
    bottom = mapper.height - mapper.padding
    for x in _grid_values(*model.x_range, model.grid_step):
        if x != 0:
            px, _ = mapper.to_screen(x, 0)
            out.append(TextPrimitive(px, bottom + 15, _format_number(x), role="tick"))
    for y in _grid_values(*model.y_range, model.grid_step):
        if y != 0:
            _, py = mapper.to_screen(0, y)
            out.append(TextPrimitive(mapper.padding - 10, py + 4, _format_number(y), anchor="end", role="tick"))

    axis_x, axis_y = mapper.to_screen(_clamp(0.0, *model.x_range), _clamp(0.0, *model.y_range))
    out.append(
        TextPrimitive(
            mapper.width - mapper.padding + 10, axis_y + 4, model.x_label,
            anchor="start", font_size=12, color=C.LABEL_COLOR, bold=True, role="axis-name",
        )
    )
    out.append(
        TextPrimitive(
            axis_x + 10, mapper.padding - 10, model.y_label,
            anchor="start", font_size=12, color=C.LABEL_COLOR, bold=True, role="axis-name",
        )
    )
    return out


def _function_paths(
    mapper: CoordinateMapper,
    polylines: list[tuple[GraphPoint, ...]],
    stroke: str,
    stroke_width: float,
    role: str,
    ref_id: str,
    opacity: float = 1.0,
) -> list[Primitive]:
    return [
        PathPrimitive(
            tuple(mapper.to_screen(p.x, p.y) for p in poly),
            stroke,
            stroke_width,
            opacity=opacity,
            role=role,
            ref_id=ref_id,
        )
        for poly in polylines
    ]


def _area_rect(mapper: CoordinateMapper, area: AnswerArea, color: str, role: str, opacity: float) -> RectPrimitive:
    box = area.normalized()
    left, top = mapper.to_screen(box.x1, box.y2)
    right, bottom = mapper.to_screen(box.x2, box.y1)
    return RectPrimitive(
        left, top, right - left, bottom - top,
        fill=color, stroke=color, stroke_width=2, opacity=opacity, dashed=True, role=role,
    )


def build_scene(
    model: GraphModel,
    canvas: Canvas = DEFAULT_CANVAS,
    *,
    mode: str = "preview",
    active_line_id: str | None = None,
    submitted: GraphPoint | AnswerArea | str | None = None,
    resolution: int = DEFAULT_RESOLUTION,
    math_labels: bool = False,
) -> list[Primitive]:
    """Return the primitives for *model* in drawing order.

    ``mode`` is one of ``edit``, ``preview``, ``answer`` or ``review``. The
    correct answer is never drawn in ``answer`` mode. ``submitted`` is the
    student's transient answer and is drawn whenever given. With
    ``math_labels`` the default function legends also carry a mathtext form.
    """
    if mode not in C.RENDER_MODES:
        raise ValueError(f"mode must be one of {C.RENDER_MODES}, got {mode!r}")
    mapper = CoordinateMapper.for_model(model, canvas)
    pad = mapper.padding
    inner_w, inner_h = mapper.inner_width, mapper.inner_height
    scene: list[Primitive] = [RectPrimitive(pad, pad, inner_w, inner_h, fill=C.FRAME_FILL, role="background")]

    if model.title:
        scene.append(
            TextPrimitive(mapper.width / 2, pad / 2, model.title, font_size=14, color=C.LABEL_COLOR, bold=True, role="title")
        )
    if model.show_grid:
        scene.extend(_grid(model, mapper))
    scene.extend(_axis_labels(model, mapper))

    sampled = sample_model(model, resolution)
    for idx, func in enumerate(model.functions):
        polylines = sampled[func.id]
        scene.extend(_function_paths(mapper, polylines, func.color, 2.5, "function", func.id))
        if func.label and polylines:
            math_text = latex_label(func.expression) if math_labels and func.label == f"y = {func.expression}" else None
            scene.append(
                TextPrimitive(
                    mapper.width - pad - 10, pad + 20 + idx * 20, func.label,
                    anchor="end", font_size=12, color=func.color, bold=True, role="function-label", math=math_text,
                )
            )

    editing = mode == "edit"
    for line in model.lines:
        if not line.points:
            continue
        active = editing and line.id == active_line_id
        screen = tuple(mapper.to_screen(p.x, p.y) for p in line.points)
        if line.kind != "scatter":
            scene.append(PathPrimitive(screen, line.color, 3 if active else 2, role="data-line", ref_id=line.id))
        radius = 6 if active else (4 if line.kind == "scatter" else 3)
        for (px, py), point in zip(screen, line.points):
            scene.append(
                CirclePrimitive(
                    px, py, radius, fill=line.color,
                    stroke="#ffffff" if active else None, stroke_width=2 if active else 0,
                    role="data-point", ref_id=line.id,
                )
            )
            if point.label:
                scene.append(TextPrimitive(px, py - 10, point.label, color=line.color, role="point-label"))

    if mode != "answer":
        scene.extend(_correct_overlay(model, mapper, sampled))
    if submitted is not None:
        scene.extend(_submitted_marker(model, mapper, sampled, submitted))

    scene.append(RectPrimitive(pad, pad, inner_w, inner_h, stroke=C.FRAME_STROKE, stroke_width=1, role="border"))
    return scene


def _correct_overlay(model: GraphModel, mapper: CoordinateMapper, sampled: dict[str, Any]) -> list[Primitive]:
    answer = model.answer
    if isinstance(answer, PointAnswer):
        cx, cy = mapper.to_screen(answer.point.x, answer.point.y)
        sx, sy = mapper.scale
        return [
            EllipsePrimitive(
                cx, cy, model.tolerance_radius * sx, model.tolerance_radius * sy,
                fill=C.CORRECT_COLOR, stroke=C.CORRECT_COLOR, stroke_width=2, opacity=0.2, dashed=True,
                role="tolerance",
            ),
            CirclePrimitive(cx, cy, 6, fill=C.CORRECT_COLOR, role="correct-point"),
            TextPrimitive(cx, cy - 12, "Correct answer", color=C.CORRECT_COLOR, bold=True, role="correct-label"),
        ]
    if isinstance(answer, AreaAnswer):
        return [_area_rect(mapper, answer.area, C.CORRECT_COLOR, "correct-area", 0.2)]
    if isinstance(answer, FunctionAnswer) and answer.function_id in sampled:
        return _function_paths(
            mapper, sampled[answer.function_id], C.CORRECT_COLOR, 6, "correct-function", answer.function_id, 0.35
        )
    return []


def _submitted_marker(
    model: GraphModel,
    mapper: CoordinateMapper,
    sampled: dict[str, Any],
    submitted: GraphPoint | AnswerArea | str,
) -> list[Primitive]:
    if isinstance(submitted, GraphPoint):
        cx, cy = mapper.to_screen(submitted.x, submitted.y)
        return [
            CirclePrimitive(cx, cy, 8, fill=C.SUBMITTED_COLOR, stroke="#ffffff", stroke_width=2, role="submitted-point"),
            TextPrimitive(
                cx, cy - 12, f"({_format_number(submitted.x)}, {_format_number(submitted.y)})",
                color=C.SUBMITTED_COLOR, bold=True, role="submitted-label",
            ),
        ]
    if isinstance(submitted, AnswerArea):
        return [_area_rect(mapper, submitted, C.SUBMITTED_COLOR, "submitted-area", 0.15)]
    if isinstance(submitted, str) and submitted in sampled:
        return _function_paths(mapper, sampled[submitted], C.SUBMITTED_COLOR, 5, "submitted-function", submitted, 0.5)
    return []
