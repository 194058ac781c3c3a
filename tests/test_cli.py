from __future__ import annotations

import json

import numpy as np
from typer.testing import CliRunner

from jax_mnist.adapters.left.cli import app

runner = CliRunner()


def _write_npz(path) -> None:
    rng = np.random.default_rng(0)
    np.savez(
        path,
        x_train=rng.integers(0, 256, size=(32, 28, 28), dtype=np.uint8),
        y_train=np.arange(32) % 10,
        x_test=rng.integers(0, 256, size=(16, 28, 28), dtype=np.uint8),
        y_test=np.arange(16) % 10,
    )


def test_train_dense_from_npz_writes_jsonl_log(tmp_path) -> None:
    npz_path = tmp_path / "mnist.npz"
    log_path = tmp_path / "train.jsonl"
    _write_npz(npz_path)

    result = runner.invoke(
        app,
        [
            "train",
            "--pipeline",
            "dense",
            "--dataset-kind",
            "npz",
            "--npz-path",
            str(npz_path),
            "--epochs",
            "1",
            "--batch-size",
            "16",
            "--log-path",
            str(log_path),
        ],
    )

    assert result.exit_code == 0, result.output
    assert "Test accuracy:" in result.output

    events = [json.loads(ln)["metrics"].get("event") for ln in log_path.read_text(encoding="utf-8").splitlines()]
    assert events[0] == "run_start"
    assert "pipeline_end" in events


def test_unknown_optimizer_exits_non_zero(tmp_path) -> None:
    npz_path = tmp_path / "mnist.npz"
    _write_npz(npz_path)

    result = runner.invoke(
        app,
        ["train", "--dataset-kind", "npz", "--npz-path", str(npz_path), "--optimizer", "lbfgs-ish"],
    )

    assert result.exit_code == 1
    assert "unknown optimizer" in result.output


def test_negative_labels_exit_non_zero(tmp_path) -> None:
    npz_path = tmp_path / "mnist.npz"
    np.savez(
        npz_path,
        x_train=np.zeros((4, 28, 28), dtype=np.uint8),
        y_train=np.array([0, 1, -1, 2]),
        x_test=np.zeros((2, 28, 28), dtype=np.uint8),
        y_test=np.array([0, 1]),
    )

    result = runner.invoke(app, ["train", "--dataset-kind", "npz", "--npz-path", str(npz_path)])

    assert result.exit_code == 1
    assert "negative class ids" in result.output
