"""Sample plotted functions into polylines that break at gaps and frame exits."""
from __future__ import annotations

import logging

import numpy as np

from .constants import DEFAULT_RESOLUTION
from .expression import compile_expression
from .model import GraphFunction, GraphModel, GraphPoint

__all__ = ["Polyline", "sample_function", "sample_model"]

logger = logging.getLogger(__name__)

Polyline = tuple[GraphPoint, ...]


def sample_function(
    func: GraphFunction,
    x_range: tuple[float, float],
    y_range: tuple[float, float],
    resolution: int = DEFAULT_RESOLUTION,
) -> list[Polyline]:
    """Return one polyline per maximal run of defined, in-frame samples.

    ``resolution`` equal steps are taken from ``x_min`` to ``x_max`` (both
    ends included). A sample that is undefined or outside ``y_range`` closes
    the current run; runs shorter than two points are dropped so asymptotes
    never get bridged by a spurious segment.
    """
    if int(resolution) < 1:
        raise ValueError(f"resolution must be at least 1, got {resolution!r}")
    compiled = compile_expression(func.expression)
    if not compiled.ok:
        logger.debug("Skipping function %s: %s", func.id, compiled.error)
        return []

    x_min, x_max = x_range
    y_min, y_max = y_range
    polylines: list[Polyline] = []
    current: list[GraphPoint] = []
    dropped = 0
    for x in np.linspace(float(x_min), float(x_max), int(resolution) + 1):
        xf = float(x)
        y = compiled.evaluate(xf)
        if y is not None and y_min <= y <= y_max:
            current.append(GraphPoint(xf, y))
            continue
        dropped += 1
        if len(current) > 1:
            polylines.append(tuple(current))
        current = []
    if len(current) > 1:
        polylines.append(tuple(current))

    if dropped:
        logger.debug("Function %s: %d samples undefined or out of frame", func.id, dropped)
    return polylines


def sample_model(model: GraphModel, resolution: int = DEFAULT_RESOLUTION) -> dict[str, list[Polyline]]:
    """Sample every function of *model*, keyed by function id in drawing order."""
    return {
        func.id: sample_function(func, model.x_range, model.y_range, resolution)
        for func in model.functions
    }
