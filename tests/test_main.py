"""Smoke tests for the CLI entrypoint in ``main.py``.

These tests make sure the command-line surface stays wired to the config
loader, the weighted scorer and the decoder, using tiny throwaway files.
"""
from __future__ import annotations

import importlib
import json
import sys
from pathlib import Path

import pytest


@pytest.fixture(autouse=True)
def restore_argv():
    original = sys.argv[:]
    try:
        yield
    finally:
        sys.argv = original


def _write_model(tmp_path: Path) -> Path:
    config = tmp_path / "config.yaml"
    config.write_text(
        "\n".join(
            [
                "stack_size: 3",
                "history_features:",
                "  - most_recent_count: 1",
                "paths:",
                "  model_weights: weights.json",
            ]
        ),
        encoding="utf-8",
    )
    (tmp_path / "weights.json").write_text(
        json.dumps(
            {
                "bias": {"B": 0.5, "O": 1.0},
                "weights": {
                    "shape=Xx": {"B": 2.0, "I": 0.5, "O": -1.0},
                    "shape=x": {"B": -0.5, "I": 0.2, "O": 0.8},
                    "PreviousOutcome_0=B": {"I": 3.0},
                },
            }
        ),
        encoding="utf-8",
    )
    return config


def test_main_requires_input_arguments():
    """Invoking ``main.main`` without the mandatory flags exits."""
    sys.argv = ["main"]
    with pytest.raises(SystemExit):
        import main as main_module

        main_module.main()


def test_main_reports_missing_files(tmp_path: Path):
    """The CLI exits with an error when the input file is absent."""
    config = _write_model(tmp_path)

    sys.argv = [
        "main",
        "--input",
        str(tmp_path / "missing.json"),
        "--output",
        str(tmp_path / "out.json"),
        "--config",
        str(config),
    ]

    main_module = importlib.import_module("main")
    with pytest.raises(SystemExit) as excinfo:
        main_module.main()
    assert excinfo.value.code == 1


def test_main_decodes_and_writes_outcomes(tmp_path: Path):
    config = _write_model(tmp_path)
    steps = tmp_path / "steps.json"
    steps.write_text(
        json.dumps({"steps": [[["shape", "Xx"]], [["shape", "x"]], [["shape", "x"]]]}),
        encoding="utf-8",
    )
    output = tmp_path / "out" / "decoded.json"

    sys.argv = [
        "main",
        "--input",
        str(steps),
        "--output",
        str(output),
        "--config",
        str(config),
        "--nbest",
        "2",
    ]

    main_module = importlib.import_module("main")
    main_module.main()

    data = json.loads(output.read_text(encoding="utf-8"))
    assert data["outcomes"] == ["B", "I", "O"]
    assert data["score"] == pytest.approx(7.5)

    ranked = json.loads(output.with_suffix(".nbest.json").read_text(encoding="utf-8"))["outcomes"]
    assert len(ranked) == 2
    assert ranked[0]["outcomes"] == ["B", "I", "O"]


def test_main_rejects_invalid_stack_size(tmp_path: Path):
    config = _write_model(tmp_path)
    steps = tmp_path / "steps.json"
    steps.write_text(json.dumps({"steps": [[["shape", "x"]]]}), encoding="utf-8")

    sys.argv = [
        "main",
        "--input",
        str(steps),
        "--output",
        str(tmp_path / "out.json"),
        "--config",
        str(config),
        "--stack-size",
        "0",
    ]

    main_module = importlib.import_module("main")
    with pytest.raises(SystemExit) as excinfo:
        main_module.main()
    assert excinfo.value.code == 1


def test_main_reports_missing_weights_path_without_quotes(tmp_path: Path, capsys):
    config = tmp_path / "config.yaml"
    config.write_text("stack_size: 2\n", encoding="utf-8")
    steps = tmp_path / "steps.json"
    steps.write_text(json.dumps({"steps": [[["shape", "x"]]]}), encoding="utf-8")

    sys.argv = [
        "main",
        "--input",
        str(steps),
        "--output",
        str(tmp_path / "out.json"),
        "--config",
        str(config),
    ]

    main_module = importlib.import_module("main")
    with pytest.raises(SystemExit) as excinfo:
        main_module.main()
    assert excinfo.value.code == 1
    assert "Error: Configuration is missing paths.model_weights" in capsys.readouterr().err
