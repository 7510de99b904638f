"""Package‑wide constants and default graph configuration."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class Canvas:
    """Pixel dimensions of the drawing surface and its fixed inset."""

    width: float = 500
    height: float = 400
    padding: float = 40


DEFAULT_CANVAS = Canvas()

COLORS: tuple[str, ...] = (
    "#3b82f6",  # blue
    "#ef4444",  # red
    "#22c55e",  # green
    "#f59e0b",  # amber
    "#8b5cf6",  # violet
    "#ec4899",  # pink
    "#06b6d4",  # cyan
    "#f97316",  # orange
)

CORRECT_COLOR = "#22c55e"
SUBMITTED_COLOR = "#3b82f6"
GRID_COLOR = "#e5e7eb"
AXIS_COLOR = "#000000"
TICK_COLOR = "#6b7280"
LABEL_COLOR = "#374151"
FRAME_FILL = "#fafafa"
FRAME_STROKE = "#d1d5db"

DEFAULT_RESOLUTION = 200
CHECK_X = 1.0
CLICK_DECIMALS = 1
DEFAULT_TOLERANCE = 0.5

MAX_EXPRESSION_LENGTH = 512
MAX_NESTING_DEPTH = 64
MAX_GRID_LINES = 200  # per axis

LINE_KINDS = ("line", "curve", "scatter")
ANSWER_TYPES = ("point", "function", "area")
RENDER_MODES = ("edit", "preview", "answer", "review")

DEFAULT_CONFIG: dict[str, Any] = {
    "xRange": [-10, 10],
    "yRange": [-10, 10],
    "xLabel": "x",
    "yLabel": "y",
    "showGrid": True,
    "gridStep": 1,
    "lines": [],
    "functions": [],
    "toleranceRadius": DEFAULT_TOLERANCE,
    "isInteractive": False,
}

__all__ = [
    "Canvas",
    "DEFAULT_CANVAS",
    "COLORS",
    "CORRECT_COLOR",
    "SUBMITTED_COLOR",
    "GRID_COLOR",
    "AXIS_COLOR",
    "TICK_COLOR",
    "LABEL_COLOR",
    "FRAME_FILL",
    "FRAME_STROKE",
    "DEFAULT_RESOLUTION",
    "CHECK_X",
    "CLICK_DECIMALS",
    "DEFAULT_TOLERANCE",
    "MAX_EXPRESSION_LENGTH",
    "MAX_NESTING_DEPTH",
    "MAX_GRID_LINES",
    "LINE_KINDS",
    "ANSWER_TYPES",
    "RENDER_MODES",
    "DEFAULT_CONFIG",
]
