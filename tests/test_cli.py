import io
import json
import logging
from pathlib import Path
from typing import Any, Iterator

import pytest

from graph_engine import cli


@pytest.fixture(autouse=True)
def _restore_pkg_logger() -> Iterator[None]:
    pkg_logger = logging.getLogger("graph_engine")
    old_handlers = pkg_logger.handlers[:]
    old_level = pkg_logger.level
    old_propagate = pkg_logger.propagate
    try:
        yield
    finally:
        for h in pkg_logger.handlers[:]:
            if h not in old_handlers:
                pkg_logger.removeHandler(h)
        pkg_logger.setLevel(old_level)
        pkg_logger.propagate = old_propagate


def _write(tmp_path: Path, data: dict) -> str:
    path = tmp_path / "graph.json"
    path.write_text(json.dumps(data), "utf-8")
    return str(path)


POINT_QUESTION = {
    "isInteractive": True,
    "answerType": "point",
    "correctPoint": {"x": 2, "y": 4},
    "toleranceRadius": 0.5,
}


def test_eval_prints_value(capsys: Any) -> None:
    assert cli.main(["eval", "x^2", "3"]) == 0
    assert capsys.readouterr().out.strip() == "9.0"


def test_eval_reports_invalid_expression(capsys: Any) -> None:
    assert cli.main(["eval", "alert(1)", "0"]) == 0
    captured = capsys.readouterr()
    assert captured.out.strip() == "null"
    assert "alert" in captured.err


def test_grade_point(tmp_path: Path, capsys: Any) -> None:
    config = _write(tmp_path, POINT_QUESTION)
    assert cli.main(["grade", config, "--point", "2.3,4.1"]) == 0
    result = json.loads(capsys.readouterr().out)
    assert result["correct"] is True
    assert result["metric"] == pytest.approx(0.31623, abs=1e-5)


def test_grade_area_with_relaxed_coverage(tmp_path: Path, capsys: Any) -> None:
    config = _write(
        tmp_path,
        {"isInteractive": True, "answerType": "area", "correctArea": {"x1": 0, "y1": 0, "x2": 2, "y2": 2}},
    )
    assert cli.main(["grade", config, "--area", "1,0,3,2"]) == 0
    assert json.loads(capsys.readouterr().out) == {"correct": False, "metric": 0.5}
    assert cli.main(["grade", config, "--area", "1,0,3,2", "--min-coverage", "0.5"]) == 0
    assert json.loads(capsys.readouterr().out) == {"correct": True, "metric": 0.5}


def test_grade_wrong_shape_prints_null_metric(tmp_path: Path, capsys: Any) -> None:
    config = _write(tmp_path, POINT_QUESTION)
    assert cli.main(["grade", config, "--function", "func-1"]) == 0
    assert json.loads(capsys.readouterr().out) == {"correct": False, "metric": None}


def test_grade_reads_stdin(monkeypatch: pytest.MonkeyPatch, capsys: Any) -> None:
    monkeypatch.setattr("sys.stdin", io.StringIO(json.dumps(POINT_QUESTION)))
    assert cli.main(["grade", "-", "--point", "9,9"]) == 0
    assert json.loads(capsys.readouterr().out)["correct"] is False


@pytest.mark.parametrize(
    "data, args",
    [
        ({"isInteractive": True, "answerType": "area"}, ["--area", "0,0,1,1"]),
        ({"xRange": [5, 1]}, ["--point", "0,0"]),
        (POINT_QUESTION, ["--point", "1;2"]),
        (POINT_QUESTION, ["--area", "1,2"]),
    ],
)
def test_bad_input_exits_with_error(tmp_path: Path, capsys: Any, data: dict, args: list) -> None:
    config = _write(tmp_path, data)
    assert cli.main(["grade", config, *args]) == 2
    assert capsys.readouterr().err.startswith("error:")


def test_missing_config_file(tmp_path: Path, capsys: Any) -> None:
    assert cli.main(["sample", str(tmp_path / "missing.json")]) == 2
    assert "error:" in capsys.readouterr().err


def test_sample_prints_polylines(tmp_path: Path, capsys: Any) -> None:
    config = _write(
        tmp_path,
        {"xRange": [-1, 1], "yRange": [-1, 1], "functions": [{"id": "func-1", "expression": "x"}]},
    )
    assert cli.main(["sample", config, "--resolution", "4"]) == 0
    out = json.loads(capsys.readouterr().out)
    assert out == {"func-1": [[[-1.0, -1.0], [-0.5, -0.5], [0.0, 0.0], [0.5, 0.5], [1.0, 1.0]]]}


def test_render_writes_png(tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys: Any) -> None:
    monkeypatch.delenv("DISPLAY", raising=False)
    monkeypatch.delenv("MPLBACKEND", raising=False)
    config = _write(tmp_path, {**POINT_QUESTION, "functions": [{"id": "func-1", "expression": "x^2"}]})
    out_png = tmp_path / "out.png"
    assert cli.main(["render", config, "--mode", "answer", "--out", str(out_png)]) == 0
    assert capsys.readouterr().out.strip() == str(out_png)
    assert out_png.is_file()


def test_log_level_is_isolated(monkeypatch: pytest.MonkeyPatch, capsys: Any) -> None:
    root = logging.getLogger()
    old_handlers = root.handlers[:]
    old_level = root.level
    for h in old_handlers:
        root.removeHandler(h)

    def fake_evaluate(expression: str, x: float) -> float:
        logging.getLogger().debug("root debug")
        logging.getLogger("graph_engine").debug("pkg debug")
        return 1.0

    monkeypatch.setattr(cli, "evaluate", fake_evaluate)
    try:
        assert cli.main(["--log-level", "DEBUG", "eval", "x", "1"]) == 0
        err = capsys.readouterr().err
        assert "pkg debug" in err
        assert "root debug" not in err
    finally:
        for h in root.handlers[:]:
            root.removeHandler(h)
        for h in old_handlers:
            root.addHandler(h)
        root.setLevel(old_level)


def test_render_preview_shows_image(tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys: Any) -> None:
    monkeypatch.delenv("DISPLAY", raising=False)
    monkeypatch.delenv("MPLBACKEND", raising=False)
    import matplotlib.pyplot as plt

    shown: list[bool] = []
    monkeypatch.setattr(plt, "show", lambda *a, **k: shown.append(True))
    config = _write(tmp_path, {"title": "Preview", "functions": [{"id": "func-1", "expression": "sin(x)"}]})
    assert cli.main(["render", config, "--out", str(tmp_path / "p.png"), "--preview"]) == 0
    assert shown == [True]
    plt.close("all")


@pytest.mark.parametrize("command", ["sample", "render"])
@pytest.mark.parametrize("resolution", ["0", "-3", "many"])
def test_resolution_must_be_a_positive_integer(
    tmp_path: Path, capsys: Any, command: str, resolution: str
) -> None:
    config = _write(tmp_path, {"functions": [{"id": "func-1", "expression": "x"}]})
    with pytest.raises(SystemExit) as exc:
        cli.main([command, config, "--resolution", resolution])
    assert exc.value.code == 2
    assert "positive integer" in capsys.readouterr().err


def test_config_that_is_not_utf8_exits_with_error(tmp_path: Path, capsys: Any) -> None:
    path = tmp_path / "graph.json"
    path.write_bytes(b"\xff\xfe{\x00}\x00")
    assert cli.main(["sample", str(path)]) == 2
    assert cli.main(["grade", str(path), "--point", "0,0"]) == 2
    err = capsys.readouterr().err
    assert err.startswith("error:")
    assert "UTF-8" in err


def test_render_to_unwritable_path_exits_with_error(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys: Any
) -> None:
    monkeypatch.delenv("DISPLAY", raising=False)
    monkeypatch.delenv("MPLBACKEND", raising=False)
    config = _write(tmp_path, {"functions": [{"id": "func-1", "expression": "x"}]})
    out_png = tmp_path / "missing" / "out.png"
    assert cli.main(["render", config, "--out", str(out_png)]) == 2
    assert capsys.readouterr().err.startswith("error:")
    assert not out_png.exists()
