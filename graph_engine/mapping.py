"""Linear mapping between graph space (math units, y up) and canvas pixels (y down)."""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import TYPE_CHECKING

from .constants import CLICK_DECIMALS, DEFAULT_CANVAS, Canvas
from .errors import GraphConfigError

if TYPE_CHECKING:  # pragma: no cover
    from .model import GraphModel

__all__ = ["CoordinateMapper"]


@dataclass(frozen=True)
class CoordinateMapper:
    """Affine per-axis map for a fixed drawing-area inset.

    The axes are scaled independently, so one graph unit may span a
    different number of pixels horizontally and vertically.
    """

    x_range: tuple[float, float]
    y_range: tuple[float, float]
    width: float = DEFAULT_CANVAS.width
    height: float = DEFAULT_CANVAS.height
    padding: float = DEFAULT_CANVAS.padding

    def __post_init__(self) -> None:
        x_min, x_max = self.x_range
        y_min, y_max = self.y_range
        if not all(math.isfinite(v) for v in (x_min, x_max, y_min, y_max)):
            raise GraphConfigError("Axis ranges must be finite numbers")
        if x_max <= x_min:
            raise GraphConfigError(f"xRange max ({x_max}) must be greater than min ({x_min})")
        if y_max <= y_min:
            raise GraphConfigError(f"yRange max ({y_max}) must be greater than min ({y_min})")
        if self.inner_width <= 0 or self.inner_height <= 0:
            raise GraphConfigError("Canvas is too small for its padding")

    @classmethod
    def for_model(cls, model: "GraphModel", canvas: Canvas = DEFAULT_CANVAS) -> "CoordinateMapper":
        return cls(model.x_range, model.y_range, canvas.width, canvas.height, canvas.padding)

    @property
    def inner_width(self) -> float:
        return self.width - 2 * self.padding

    @property
    def inner_height(self) -> float:
        return self.height - 2 * self.padding

    @property
    def scale(self) -> tuple[float, float]:
        """Pixels per graph unit along x and y."""
        x_min, x_max = self.x_range
        y_min, y_max = self.y_range
        return self.inner_width / (x_max - x_min), self.inner_height / (y_max - y_min)

    def to_screen(self, x: float, y: float) -> tuple[float, float]:
        x_min, x_max = self.x_range
        y_min, y_max = self.y_range
        px = self.padding + (x - x_min) / (x_max - x_min) * self.inner_width
        py = self.height - self.padding - (y - y_min) / (y_max - y_min) * self.inner_height
        return px, py

    def to_graph(self, px: float, py: float) -> tuple[float, float]:
        x_min, x_max = self.x_range
        y_min, y_max = self.y_range
        x = x_min + (px - self.padding) / self.inner_width * (x_max - x_min)
        y = y_min + (self.height - self.padding - py) / self.inner_height * (y_max - y_min)
        return x, y

    def snap_to_graph(self, px: float, py: float, decimals: int = CLICK_DECIMALS) -> tuple[float, float]:
        """Map a click to graph space, rounding half up to ``decimals`` places."""
        factor = 10 ** decimals
        x, y = self.to_graph(px, py)
        return math.floor(x * factor + 0.5) / factor, math.floor(y * factor + 0.5) / factor

    def in_drawing_area(self, px: float, py: float) -> bool:
        """Return ``True`` when a pixel lies inside the inset (edges included)."""
        return (
            self.padding <= px <= self.width - self.padding
            and self.padding <= py <= self.height - self.padding
        )
