"""Command‑line interface for rendering, sampling and grading stored graph configs."""
from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any

from . import constants as C
from .errors import GraphConfigError, GraphEngineError
from .expression import compile_expression, evaluate
from .grading import AreaPolicy, validate_answer
from .model import AnswerArea, GraphModel, GraphPoint
from .plotting import render_model_png, select_backend
from .sampling import sample_model

__all__ = ["main"]

logger = logging.getLogger(__name__)


def _preview_png(path: str, title: str | None) -> None:
    """Show a rendered PNG at its native pixel size (best effort)."""
    try:
        import numpy as np  # type: ignore
        from PIL import Image  # type: ignore
    except ImportError as exc:
        print(f"Could not preview {path}; missing dependency: {exc}", file=sys.stderr)
        return

    plt = select_backend()
    try:
        with Image.open(path) as img:
            pixels = np.asarray(img.convert("RGBA"))
        height, width = pixels.shape[:2]
        fig = plt.figure(figsize=(width / 100, height / 100), dpi=100)
        ax = fig.add_axes([0, 0, 1, 1])
        ax.imshow(pixels)
        ax.axis("off")
        if title and fig.canvas.manager is not None:
            fig.canvas.manager.set_window_title(title)
        plt.show()
    except (OSError, RuntimeError) as exc:
        print(f"Could not preview {path}: {exc}", file=sys.stderr)


def _floats(text: str, count: int, flag: str) -> list[float]:
    parts = [p.strip() for p in text.split(",")]
    if len(parts) != count:
        raise argparse.ArgumentTypeError(f"{flag} expects {count} comma-separated numbers, got {text!r}")
    try:
        return [float(p) for p in parts]
    except ValueError:
        raise argparse.ArgumentTypeError(f"{flag} expects numbers, got {text!r}")


def _positive_int(text: str) -> int:
    try:
        value = int(text)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected a positive integer, got {text!r}")
    if value < 1:
        raise argparse.ArgumentTypeError(f"expected a positive integer, got {text!r}")
    return value


def _load_model(path: str, *, strict: bool = False) -> GraphModel:
    try:
        if path == "-":
            text = sys.stdin.read()
        else:
            text = Path(path).read_text("utf-8")
    except UnicodeDecodeError as exc:
        raise GraphConfigError(f"Graph configuration {path} is not UTF-8 text: {exc}") from exc
    return GraphModel.from_json(text, strict=strict)


def _parse_cli(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Cartesian graph engine for exam questions")
    parser.add_argument(
        "--log-level",
        choices=["WARNING", "INFO", "DEBUG"],
        default="WARNING",
        help="Logging level for graph_engine",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    p_render = sub.add_parser("render", help="Render a stored graph config to PNG")
    p_render.add_argument("config", help="Path to graph config JSON (use '-' to read from stdin)")
    p_render.add_argument("--mode", choices=C.RENDER_MODES, default="preview")
    p_render.add_argument("--out", help="Write PNG to this path (default: temp file)")
    p_render.add_argument("--resolution", type=_positive_int, default=C.DEFAULT_RESOLUTION)
    p_render.add_argument("--preview", action="store_true", help="Open the PNG after rendering")

    p_grade = sub.add_parser("grade", help="Grade a submitted answer against a config")
    p_grade.add_argument("config", help="Path to graph config JSON (use '-' to read from stdin)")
    answer = p_grade.add_mutually_exclusive_group(required=True)
    answer.add_argument("--point", help="Submitted point as X,Y")
    answer.add_argument("--function", help="Submitted function id")
    answer.add_argument("--area", help="Submitted area as X1,Y1,X2,Y2")
    p_grade.add_argument(
        "--min-coverage",
        type=float,
        default=1.0,
        help="Fraction of the correct area the submitted area must cover",
    )
    p_grade.add_argument(
        "--centroid",
        action="store_true",
        help="Accept an area whose centre lies inside the correct area",
    )

    p_sample = sub.add_parser("sample", help="Print sampled function polylines as JSON")
    p_sample.add_argument("config", help="Path to graph config JSON (use '-' to read from stdin)")
    p_sample.add_argument("--resolution", type=_positive_int, default=C.DEFAULT_RESOLUTION)

    p_eval = sub.add_parser("eval", help="Evaluate an expression at x")
    p_eval.add_argument("expression")
    p_eval.add_argument("x", type=float)
    return parser.parse_args(argv)


def _configure_logging(level_name: str) -> None:
    logging.basicConfig(level=logging.WARNING)
    level = getattr(logging, level_name)
    pkg_logger = logging.getLogger("graph_engine")
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(logging.BASIC_FORMAT))
    handler.setLevel(level)
    pkg_logger.addHandler(handler)
    pkg_logger.propagate = False
    pkg_logger.setLevel(level)


def _submitted(ns: argparse.Namespace) -> Any:  # noqa: ANN401
    if ns.point is not None:
        x, y = _floats(ns.point, 2, "--point")
        return GraphPoint(x, y)
    if ns.area is not None:
        return AnswerArea(*_floats(ns.area, 4, "--area"))
    return ns.function


def _run(ns: argparse.Namespace) -> int:
    if ns.command == "eval":
        compiled = compile_expression(ns.expression)
        if not compiled.ok:
            print(f"error: {compiled.error}", file=sys.stderr)
        print(json.dumps(evaluate(ns.expression, ns.x)))
        return 0

    if ns.command == "render":
        model = _load_model(ns.config)
        path = render_model_png(model, path=ns.out, mode=ns.mode, resolution=ns.resolution)
        print(path)
        if ns.preview:
            _preview_png(path, model.title)
        return 0

    if ns.command == "sample":
        model = _load_model(ns.config)
        sampled = sample_model(model, ns.resolution)
        out = {fid: [[[p.x, p.y] for p in poly] for poly in polys] for fid, polys in sampled.items()}
        print(json.dumps(out, separators=(",", ":")))
        return 0

    # grade
    model = _load_model(ns.config, strict=True)
    policy = AreaPolicy(mode="centroid" if ns.centroid else "coverage", min_coverage=ns.min_coverage)
    verdict = validate_answer(model, _submitted(ns), area_policy=policy)
    logger.info("Graded %s answer: %s", model.answer_type, verdict)
    print(json.dumps(verdict.to_dict()))
    return 0


def main(argv: list[str] | None = None) -> int:
    ns = _parse_cli(argv)
    _configure_logging(ns.log_level)
    try:
        return _run(ns)
    except (GraphEngineError, argparse.ArgumentTypeError, OSError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
