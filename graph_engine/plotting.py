"""Rasterise a primitive list to a **PNG file** with Matplotlib."""
from __future__ import annotations

import logging
import os
import tempfile
import warnings
from pathlib import Path
from typing import Any, Sequence

from .constants import DEFAULT_CANVAS, Canvas
from .model import GraphModel
from .scene import (
    CirclePrimitive,
    EllipsePrimitive,
    LinePrimitive,
    PathPrimitive,
    Primitive,
    RectPrimitive,
    TextPrimitive,
    build_scene,
)

__all__ = ["select_backend", "render_png", "render_model_png"]

logger = logging.getLogger(__name__)

_DPI = 100
_ANCHORS = {"start": "left", "middle": "center", "end": "right"}


def select_backend() -> Any:  # noqa: ANN401 – returns the pyplot module
    """Import pyplot, choosing a usable backend on demand."""
    # Lazy import so the package works without matplotlib unless a PNG is requested
    try:
        import matplotlib  # type: ignore
    except Exception as exc:  # pragma: no cover - environment-dependent
        raise RuntimeError(
            "matplotlib is required to render graphs. Install it or use the primitive list directly."
        ) from exc

    try:
        backend = matplotlib.get_backend().lower()
    except Exception:
        backend = ""
    if backend not in {"agg", "tkagg"}:
        env_backend = os.environ.get("MPLBACKEND", "").lower()
        prefer_tk = bool(os.environ.get("DISPLAY")) or env_backend == "tkagg"
        if prefer_tk:
            try:
                matplotlib.use("TkAgg")
            except Exception as exc:  # pragma: no cover - depends on system backend
                warnings.warn(
                    f"Preferred GUI backend 'TkAgg' unavailable; falling back to 'Agg': {exc}",
                    RuntimeWarning,
                )
                matplotlib.use("Agg")
        else:
            matplotlib.use("Agg")

    import matplotlib.pyplot as plt  # type: ignore

    return plt


def _mathtext_ok(text: str) -> bool:
    from matplotlib.mathtext import MathTextParser  # type: ignore

    try:
        MathTextParser("path").parse(text)
    except ValueError:
        return False
    return True


def _draw(ax: Any, prim: Primitive, z: int) -> None:  # noqa: ANN401
    from matplotlib import patches  # type: ignore

    if isinstance(prim, RectPrimitive):
        if prim.fill is not None:
            ax.add_patch(
                patches.Rectangle(
                    (prim.x, prim.y), prim.width, prim.height,
                    facecolor=prim.fill, edgecolor="none", alpha=prim.opacity, zorder=z,
                )
            )
        if prim.stroke is not None:
            ax.add_patch(
                patches.Rectangle(
                    (prim.x, prim.y), prim.width, prim.height,
                    fill=False, edgecolor=prim.stroke, linewidth=prim.stroke_width,
                    linestyle="--" if prim.dashed else "-", zorder=z,
                )
            )
    elif isinstance(prim, LinePrimitive):
        ax.plot([prim.x1, prim.x2], [prim.y1, prim.y2], color=prim.stroke, linewidth=prim.stroke_width, zorder=z)
    elif isinstance(prim, PathPrimitive):
        xs = [p[0] for p in prim.points]
        ys = [p[1] for p in prim.points]
        ax.plot(xs, ys, color=prim.stroke, linewidth=prim.stroke_width, alpha=prim.opacity, zorder=z)
    elif isinstance(prim, CirclePrimitive):
        ax.add_patch(
            patches.Circle(
                (prim.cx, prim.cy), prim.r,
                facecolor=prim.fill or "none",
                edgecolor=prim.stroke or "none",
                linewidth=prim.stroke_width,
                zorder=z,
            )
        )
    elif isinstance(prim, EllipsePrimitive):
        ax.add_patch(
            patches.Ellipse(
                (prim.cx, prim.cy), 2 * prim.rx, 2 * prim.ry,
                facecolor=prim.fill or "none", edgecolor="none", alpha=prim.opacity, zorder=z,
            )
        )
        if prim.stroke is not None:
            ax.add_patch(
                patches.Ellipse(
                    (prim.cx, prim.cy), 2 * prim.rx, 2 * prim.ry,
                    fill=False, edgecolor=prim.stroke, linewidth=prim.stroke_width,
                    linestyle="--" if prim.dashed else "-", zorder=z,
                )
            )
    elif isinstance(prim, TextPrimitive):
        text = prim.text
        if prim.math and _mathtext_ok(prim.math):
            text = prim.math
        ax.text(
            prim.x, prim.y, text,
            ha=_ANCHORS.get(prim.anchor, "center"), va="baseline",
            fontsize=prim.font_size * 0.75,  # px -> pt at 100 dpi
            color=prim.color, fontweight="bold" if prim.bold else "normal",
            zorder=z,
        )


def render_png(
    primitives: Sequence[Primitive],
    canvas: Canvas = DEFAULT_CANVAS,
    path: str | os.PathLike[str] | None = None,
) -> str:
    """Draw *primitives* in canvas pixel space and return the PNG path."""
    plt = select_backend()

    fig = plt.figure(figsize=(canvas.width / _DPI, canvas.height / _DPI), dpi=_DPI)
    try:
        ax = fig.add_axes([0, 0, 1, 1])
        ax.set_xlim(0, canvas.width)
        ax.set_ylim(canvas.height, 0)  # screen rows grow downward
        ax.set_aspect("auto")
        ax.axis("off")

        for z, prim in enumerate(primitives):
            _draw(ax, prim, z)

        if path is None:
            fd, tmp = tempfile.mkstemp(suffix=".png")
            os.close(fd)
            png_path = Path(tmp)
        else:
            png_path = Path(path)
        fig.savefig(png_path, format="png", dpi=_DPI)
    finally:
        plt.close(fig)
    logger.debug("Rendered %d primitives to %s", len(primitives), png_path)
    return str(png_path)


def render_model_png(
    model: GraphModel,
    canvas: Canvas = DEFAULT_CANVAS,
    path: str | os.PathLike[str] | None = None,
    **scene_kwargs: Any,
) -> str:
    """Build the scene for *model* and render it; keyword arguments go to ``build_scene``."""
    scene_kwargs.setdefault("math_labels", True)
    return render_png(build_scene(model, canvas, **scene_kwargs), canvas, path)
